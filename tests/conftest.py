"""Shared pytest fixtures for Budget Tracker tests.

Provides reusable fixtures for:
- Fixture file paths (QFX bank and card statements, issuer CSV exports).
- tmp_project_dir: A temporary directory initialized with the default
  config files, for config, pipeline and CLI tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from budget_tracker.config import initialize

# ---------------------------------------------------------------------------
# Path constants
# ---------------------------------------------------------------------------

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Fixture file path helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the tests/fixtures/ directory."""
    return FIXTURES_DIR


@pytest.fixture
def checking_qfx() -> Path:
    """Indented bank statement with five transactions."""
    return FIXTURES_DIR / "checking.qfx"


@pytest.fixture
def credit_card_qfx() -> Path:
    """Single-line credit card statement with two transactions."""
    return FIXTURES_DIR / "credit_card.qfx"


@pytest.fixture
def card_activity_csv() -> Path:
    """Issuer CSV with five valid rows."""
    return FIXTURES_DIR / "card_activity.csv"


@pytest.fixture
def card_partial_csv() -> Path:
    """Issuer CSV with five valid rows and one row missing its amount."""
    return FIXTURES_DIR / "card_partial.csv"


# ---------------------------------------------------------------------------
# tmp_project_dir -- temp directory with default configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Create a temporary project initialized with the default files.

    Contains config.toml, categories.toml, rules.toml and an empty data/
    directory. Cleaned up automatically after the test.
    """
    project = tmp_path / "budget-project"
    initialize(project)
    return project
