"""Repeated expense and subscription detection.

Detection algorithm:
- Only debits that are not excluded are considered.
- Debits are grouped by merchant key (noise-stripped description, first 30
  characters), so slightly different descriptions of the same merchant
  share a bucket.
- A group needs at least 2 members.
- Every member's absolute amount must be within 10% of the group mean,
  otherwise the whole group is dropped.
- A qualifying group is a likely subscription when the mean gap between
  consecutive charges (sorted by date) is between 25 and 35 days inclusive.

The thresholds are named module constants and can be overridden per call.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal

from budget_tracker.identity import MERCHANT_KEY_LENGTH, normalize_merchant
from budget_tracker.models import RepeatedExpense, Transaction

SIMILARITY_TOLERANCE = Decimal("0.10")
SUBSCRIPTION_MIN_DAYS = 25
SUBSCRIPTION_MAX_DAYS = 35
MIN_OCCURRENCES = 2


def detect_repeated_expenses(
    transactions: Iterable[Transaction],
    tolerance: Decimal = SIMILARITY_TOLERANCE,
    min_interval_days: int = SUBSCRIPTION_MIN_DAYS,
    max_interval_days: int = SUBSCRIPTION_MAX_DAYS,
    key_length: int = MERCHANT_KEY_LENGTH,
) -> list[RepeatedExpense]:
    """Find groups of similar debits at the same merchant.

    Args:
        transactions: Transactions to scan. Not modified.
        tolerance: Maximum relative deviation of any amount from the
            group's mean absolute amount.
        min_interval_days: Lower bound of the mean interval for a likely
            subscription.
        max_interval_days: Upper bound of the mean interval.
        key_length: Characters kept in the merchant key.

    Returns:
        Repeated expenses sorted by total amount, largest first.
    """
    groups: dict[str, list[Transaction]] = defaultdict(list)
    for txn in transactions:
        if txn.is_debit and not txn.is_excluded:
            groups[normalize_merchant(txn.description, key_length)].append(txn)

    repeated: list[RepeatedExpense] = []
    for merchant_key, members in groups.items():
        if len(members) < MIN_OCCURRENCES:
            continue

        amounts = [abs(t.amount) for t in members]
        total = sum(amounts, Decimal("0"))
        average = total / len(amounts)

        if not amounts_are_similar(amounts, average, tolerance):
            continue

        is_subscription = is_likely_subscription(members, min_interval_days, max_interval_days)
        repeated.append(
            RepeatedExpense(
                merchant_key=merchant_key,
                occurrences=len(members),
                average_amount=average,
                total_amount=total,
                transaction_ids=[t.id for t in members],
                is_likely_subscription=is_subscription,
                estimated_monthly=average if is_subscription else None,
            )
        )

    repeated.sort(key=lambda r: r.total_amount, reverse=True)
    return repeated


def amounts_are_similar(
    amounts: list[Decimal],
    average: Decimal,
    tolerance: Decimal = SIMILARITY_TOLERANCE,
) -> bool:
    """Check that every amount is within *tolerance* of *average* (relative)."""
    if not amounts or average == 0:
        return False
    return all(abs(amount - average) / average <= tolerance for amount in amounts)


def is_likely_subscription(
    transactions: list[Transaction],
    min_interval_days: int = SUBSCRIPTION_MIN_DAYS,
    max_interval_days: int = SUBSCRIPTION_MAX_DAYS,
) -> bool:
    """Check whether the mean gap between charges looks monthly."""
    if len(transactions) < 2:
        return False

    dates = sorted(t.date for t in transactions)
    gaps = [(later - earlier).days for earlier, later in zip(dates, dates[1:])]
    mean_gap = sum(gaps) / len(gaps)
    return min_interval_days <= mean_gap <= max_interval_days
