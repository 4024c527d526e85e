"""Spending analytics over a transaction collection.

Every function here is pure: it takes the full input, returns new values,
and never modifies the transactions it is given. Only debits count as
spending; excluded transactions are ignored.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Iterable
from dataclasses import replace
from decimal import Decimal

from budget_tracker.identity import generate_transaction_signature
from budget_tracker.models import (
    UNCATEGORIZED,
    AnalyticsConfig,
    DateRange,
    DerivedAnalytics,
    MonthlySummary,
    OverallStats,
    TimeWindow,
    Transaction,
)
from budget_tracker.recurring import detect_repeated_expenses

_ZERO = Decimal("0")


def month_key(txn: Transaction) -> str:
    """``"YYYY-MM"`` for the transaction's date."""
    return txn.date.strftime("%Y-%m")


def monthly_summaries(transactions: Iterable[Transaction]) -> list[MonthlySummary]:
    """Summarize spending per calendar month, oldest month first.

    ``total_debits`` is the signed sum of debit amounts (so it is negative
    or zero); ``category_totals`` holds absolute debit amounts per category.
    """
    by_month: dict[str, list[Transaction]] = defaultdict(list)
    for txn in transactions:
        by_month[month_key(txn)].append(txn)

    summaries = []
    for month, txns in by_month.items():
        included = [t for t in txns if not t.is_excluded]
        debits = [t for t in included if t.is_debit]
        summaries.append(
            MonthlySummary(
                month=month,
                total_debits=sum((t.amount for t in debits), _ZERO),
                category_totals=_category_totals(included),
                transaction_count=len(included),
            )
        )

    summaries.sort(key=lambda s: s.month)
    return summaries


def category_totals(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """Absolute debit totals per category id across all non-excluded records."""
    return _category_totals(t for t in transactions if not t.is_excluded)


def overall_stats(transactions: Iterable[Transaction]) -> OverallStats:
    """Totals, date range and monthly average for non-excluded records."""
    included = [t for t in transactions if not t.is_excluded]
    total_debits = abs(sum((t.amount for t in included if t.is_debit), _ZERO))

    date_range = None
    if included:
        dates = [t.date for t in included]
        date_range = DateRange(start=min(dates), end=max(dates))

    month_count = len({month_key(t) for t in included})
    average = total_debits / month_count if month_count else _ZERO

    return OverallStats(
        total_debits=total_debits,
        transaction_count=len(included),
        date_range=date_range,
        month_count=month_count,
        average_monthly_expenses=average,
    )


def compute_all(
    transactions: Iterable[Transaction],
    config: AnalyticsConfig | None = None,
    excluded_merchants: Collection[str] = (),
) -> DerivedAnalytics:
    """Compute every derived structure in one call.

    Args:
        transactions: Transactions to analyse.
        config: Repeated-expense thresholds. Defaults apply when None.
        excluded_merchants: Merchant keys the user dismissed; their
            repeated expenses are left out of the result.
    """
    transactions = list(transactions)
    config = config or AnalyticsConfig()

    repeated = detect_repeated_expenses(
        transactions,
        tolerance=config.similarity_tolerance,
        min_interval_days=config.subscription_min_days,
        max_interval_days=config.subscription_max_days,
        key_length=config.merchant_key_length,
    )
    if excluded_merchants:
        repeated = [r for r in repeated if r.merchant_key not in excluded_merchants]

    return DerivedAnalytics(
        monthly_summaries=monthly_summaries(transactions),
        category_totals=category_totals(transactions),
        repeated_expenses=repeated,
        overall_stats=overall_stats(transactions),
    )


def filter_time_window(
    transactions: Iterable[Transaction],
    window: TimeWindow,
) -> list[Transaction]:
    """Keep transactions inside *window*: start inclusive, end exclusive."""
    transactions = list(transactions)
    if not window.enabled:
        return transactions
    return [
        t
        for t in transactions
        if (window.start is None or t.date >= window.start)
        and (window.end is None or t.date < window.end)
    ]


def apply_exclusions(
    transactions: Iterable[Transaction],
    excluded_signatures: Collection[str],
) -> list[Transaction]:
    """Mark transactions whose signature the user excluded earlier."""
    if not excluded_signatures:
        return list(transactions)
    result = []
    for txn in transactions:
        signature = generate_transaction_signature(txn.date, txn.amount, txn.description)
        if signature in excluded_signatures and not txn.is_excluded:
            txn = replace(txn, is_excluded=True)
        result.append(txn)
    return result


def set_excluded(
    transactions: Iterable[Transaction],
    signatures: Collection[str],
    excluded: bool,
) -> list[Transaction]:
    """Set ``is_excluded`` on every transaction whose signature is in *signatures*.

    Unlike :func:`apply_exclusions` this also clears the flag, so a user
    toggle takes effect on every matching ledger row at once.
    """
    result = []
    for txn in transactions:
        signature = generate_transaction_signature(txn.date, txn.amount, txn.description)
        if signature in signatures and txn.is_excluded != excluded:
            txn = replace(txn, is_excluded=excluded)
        result.append(txn)
    return result


def _category_totals(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for txn in transactions:
        if txn.is_debit:
            totals[txn.category_id or UNCATEGORIZED] += abs(txn.amount)
    return dict(totals)
