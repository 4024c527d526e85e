"""Budget Tracker: bank statement import, categorization, and spending analytics."""

__version__ = "0.1.0"
