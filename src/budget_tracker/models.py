"""Core data models for Budget Tracker.

This module defines the dataclasses shared by the parsers, the categorization
engine, and the analytics engine. It has zero internal imports -- everything
depends on it, but it depends on nothing within the package.

Amounts are ``Decimal`` and dates are plain ``datetime.date`` values, so no
time zone ever enters the picture.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

SOURCE_QFX = "QFX"
SOURCE_CSV = "CSV"

UNCATEGORIZED = "uncategorized"


class TransactionType(str, enum.Enum):
    """Direction of money movement, consistent with the sign of the amount."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"

    @classmethod
    def from_amount(cls, amount: Decimal) -> TransactionType:
        """Return DEBIT for negative amounts, CREDIT otherwise."""
        return cls.DEBIT if amount < 0 else cls.CREDIT


@dataclass(frozen=True)
class Transaction:
    """A single normalized transaction.

    Parsers create these; nothing in the core mutates them afterwards.
    Category assignment and exclusion produce new instances through
    :func:`dataclasses.replace`.

    Attributes:
        id: Deterministic fingerprint of date, amount, description and
            account id. Used to deduplicate repeated imports.
        date: Transaction date.
        description: Merchant/memo text, entity-decoded.
        amount: Signed amount. Negative means money spent, positive means
            money received, whatever the source format's own convention.
        type: DEBIT or CREDIT, always consistent with the sign of *amount*.
        source: Parser tag, ``"QFX"`` or ``"CSV"``.
        category_id: Assigned category, or None when uncategorized.
        is_excluded: True when the user excluded this record from analytics.
        is_manually_categorized: True once a user override was applied.
            Blocks re-categorization by the engine.
        account_id: Account number from the source file, if any.
        original_transaction_id: The bank's own id (FITID), if any.
        memo: Free-form passthrough text.
        source_file: Name of the file the record came from.
    """

    id: str
    date: date
    description: str
    amount: Decimal
    type: TransactionType
    source: str
    category_id: str | None = None
    is_excluded: bool = False
    is_manually_categorized: bool = False
    account_id: str | None = None
    original_transaction_id: str | None = None
    memo: str | None = None
    source_file: str = ""

    @property
    def is_debit(self) -> bool:
        return self.type is TransactionType.DEBIT


@dataclass
class ParseError:
    """A structured diagnostic produced while parsing a file.

    Attributes:
        message: Human-readable description of the problem.
        severity: ``"error"`` (record or file dropped) or ``"warning"``
            (informational).
        line: 1-based line/row number, when known.
        field: Name of the offending field, when known.
    """

    message: str
    severity: str = SEVERITY_ERROR
    line: int | None = None
    field: str | None = None

    def __str__(self) -> str:
        location = f"line {self.line}: " if self.line is not None else ""
        return f"{self.severity}: {location}{self.message}"


@dataclass
class ParseResult:
    """Return type of every parser: recovered records plus diagnostics."""

    transactions: list[Transaction] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)

    def extend(self, other: ParseResult) -> None:
        """Append another result's transactions and errors to this one."""
        self.transactions.extend(other.transactions)
        self.errors.extend(other.errors)

    @property
    def warnings(self) -> list[ParseError]:
        return [e for e in self.errors if e.severity == SEVERITY_WARNING]


@dataclass
class CategoryPattern:
    """A regex pattern attached to a category.

    Attributes:
        id: Pattern identifier.
        pattern: Regular expression, matched case-insensitively against
            the transaction description.
        priority: Lower numbers are tried first.
        enabled: Disabled patterns are ignored.
        is_default: True for built-in patterns.
        description: Optional label.
    """

    id: str
    pattern: str
    priority: int
    enabled: bool = True
    is_default: bool = False
    description: str = ""


@dataclass
class Category:
    """A spending category with zero or more patterns."""

    id: str
    name: str
    color: str = ""
    patterns: list[CategoryPattern] = field(default_factory=list)
    is_custom: bool = False
    is_default: bool = False


@dataclass
class CategorizationRule:
    """A flat categorization rule (the older, pre-pattern schema).

    Rules are consulted only when no category pattern matched.
    """

    id: str
    category_id: str
    pattern: str
    priority: int
    enabled: bool = True


@dataclass(frozen=True)
class MatchableRule:
    """One entry of the flattened rule list evaluated by the engine.

    Attributes:
        provenance: ``"pattern"`` for category patterns, ``"rule"`` for
            flat categorization rules.
        category_id: Category assigned on match.
        pattern: Regular expression source.
        priority: Lower numbers are tried first.
    """

    provenance: str
    category_id: str
    pattern: str
    priority: int


@dataclass
class RepeatedExpense:
    """A group of similar debits at the same merchant.

    Attributes:
        merchant_key: Normalized merchant key shared by every member.
        occurrences: Number of transactions in the group.
        average_amount: Mean absolute amount.
        total_amount: Sum of absolute amounts.
        transaction_ids: Ids of the member transactions, in input order.
        is_likely_subscription: True when the mean interval between
            charges looks monthly.
        estimated_monthly: The average amount for likely subscriptions,
            None otherwise.
    """

    merchant_key: str
    occurrences: int
    average_amount: Decimal
    total_amount: Decimal
    transaction_ids: list[str]
    is_likely_subscription: bool
    estimated_monthly: Decimal | None = None


@dataclass
class MonthlySummary:
    """Spending for one calendar month (``"YYYY-MM"``).

    ``total_debits`` is the signed (negative) sum of debit amounts.
    Income is not tracked, so ``total_credits`` and ``net`` stay zero.
    """

    month: str
    total_debits: Decimal
    category_totals: dict[str, Decimal]
    transaction_count: int
    total_credits: Decimal = Decimal("0")
    net: Decimal = Decimal("0")


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date


@dataclass
class OverallStats:
    """Aggregate figures across the whole (non-excluded) set."""

    total_debits: Decimal
    transaction_count: int
    date_range: DateRange | None
    month_count: int
    average_monthly_expenses: Decimal
    total_credits: Decimal = Decimal("0")
    net: Decimal = Decimal("0")


@dataclass
class DerivedAnalytics:
    monthly_summaries: list[MonthlySummary]
    category_totals: dict[str, Decimal]
    repeated_expenses: list[RepeatedExpense]
    overall_stats: OverallStats


@dataclass(frozen=True)
class TimeWindow:
    """Optional date filter. *start* is inclusive, *end* is exclusive."""

    enabled: bool = False
    start: date | None = None
    end: date | None = None


@dataclass
class AnalyticsConfig:
    """Tunable thresholds for repeated-expense detection.

    Attributes:
        similarity_tolerance: Maximum relative deviation of any member's
            amount from the group mean. Default: 0.10.
        subscription_min_days: Lower bound (inclusive) of the mean
            interval for a likely subscription. Default: 25.
        subscription_max_days: Upper bound (inclusive). Default: 35.
        merchant_key_length: Characters kept in a merchant key.
            Default: 30.
    """

    similarity_tolerance: Decimal = Decimal("0.10")
    subscription_min_days: int = 25
    subscription_max_days: int = 35
    merchant_key_length: int = 30


@dataclass
class AppConfig:
    """Top-level application configuration loaded from config.toml.

    Attributes:
        ledger_file: CSV file holding every imported transaction,
            relative to the project root. Default: "data/transactions.csv".
        analytics: Repeated-expense thresholds.
        time_window: Date filter applied before analytics.
    """

    ledger_file: str = "data/transactions.csv"
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    time_window: TimeWindow = field(default_factory=TimeWindow)


@dataclass
class Exclusions:
    """User exclusions, persisted in state.toml.

    Attributes:
        signatures: Signatures of excluded transactions. They survive a
            ledger wipe because they do not depend on the account id.
        merchants: Merchant keys whose repeated expenses are hidden.
    """

    signatures: list[str] = field(default_factory=list)
    merchants: list[str] = field(default_factory=list)


@dataclass
class RuleSet:
    """Categorization inputs from rules.toml and state.toml.

    Attributes:
        rules: Hand-authored flat rules from rules.toml, in file order.
        learned_rules: Rules derived from manual categorizations.
        description_mappings: Exact description to category id table.
    """

    rules: list[CategorizationRule] = field(default_factory=list)
    learned_rules: list[CategorizationRule] = field(default_factory=list)
    description_mappings: dict[str, str] = field(default_factory=dict)

    @property
    def all_rules(self) -> list[CategorizationRule]:
        """Hand-authored rules first, then learned rules."""
        return [*self.rules, *self.learned_rules]


@dataclass
class PipelineResult:
    """Final output of a full import run.

    Attributes:
        transactions: The merged ledger after the import.
        added: Number of new transactions added by this run.
        duplicates: Number of parsed transactions already in the ledger.
        errors: Every parse diagnostic, across all files.
    """

    transactions: list[Transaction] = field(default_factory=list)
    added: int = 0
    duplicates: int = 0
    errors: list[ParseError] = field(default_factory=list)
