"""Ledger persistence and report printing.

- :func:`write_ledger` / :func:`read_ledger` store every imported
  transaction in a single CSV file with a fixed column schema.
- :func:`print_import_summary` prints what an import did, including every
  parse diagnostic.
- :func:`print_report` prints the derived analytics: overall stats, monthly
  summaries, category totals and repeated expenses.
"""

from __future__ import annotations

import csv
from collections import Counter
from datetime import date
from decimal import Decimal
from pathlib import Path

from budget_tracker.models import (
    UNCATEGORIZED,
    Category,
    DerivedAnalytics,
    PipelineResult,
    Transaction,
    TransactionType,
)

# Fixed ledger column order.
CSV_COLUMNS = [
    "id",
    "date",
    "description",
    "amount",
    "type",
    "source",
    "category_id",
    "is_excluded",
    "is_manually_categorized",
    "account_id",
    "original_transaction_id",
    "memo",
    "source_file",
]


# ---------------------------------------------------------------------------
# Ledger CSV
# ---------------------------------------------------------------------------


def write_ledger(transactions: list[Transaction], path: str | Path) -> Path:
    """Write *transactions* to the ledger CSV, replacing its contents.

    Rows are written in date order; transactions on the same date keep
    their relative order.

    Returns:
        The :class:`~pathlib.Path` of the written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    ordered = sorted(transactions, key=lambda t: t.date)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for txn in ordered:
            writer.writerow(
                {
                    "id": txn.id,
                    "date": txn.date.isoformat(),
                    "description": txn.description,
                    "amount": str(txn.amount),
                    "type": txn.type.value,
                    "source": txn.source,
                    "category_id": txn.category_id or "",
                    "is_excluded": str(txn.is_excluded),
                    "is_manually_categorized": str(txn.is_manually_categorized),
                    "account_id": txn.account_id or "",
                    "original_transaction_id": txn.original_transaction_id or "",
                    "memo": txn.memo or "",
                    "source_file": txn.source_file,
                }
            )

    return path


def read_ledger(path: str | Path) -> list[Transaction]:
    """Read the ledger CSV. A missing file is an empty ledger.

    Raises:
        KeyError: If a required column is missing.
        ValueError: If a date or amount cannot be parsed.
    """
    path = Path(path)
    if not path.exists():
        return []

    transactions: list[Transaction] = []
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            amount = Decimal(row["amount"])
            transactions.append(
                Transaction(
                    id=row["id"],
                    date=date.fromisoformat(row["date"]),
                    description=row["description"],
                    amount=amount,
                    type=TransactionType(row["type"]),
                    source=row["source"],
                    category_id=row["category_id"] or None,
                    is_excluded=row["is_excluded"] == "True",
                    is_manually_categorized=row["is_manually_categorized"] == "True",
                    account_id=row.get("account_id") or None,
                    original_transaction_id=row.get("original_transaction_id") or None,
                    memo=row.get("memo") or None,
                    source_file=row.get("source_file") or "",
                )
            )
    return transactions


# ---------------------------------------------------------------------------
# Summary printers
# ---------------------------------------------------------------------------


def print_import_summary(result: PipelineResult) -> None:
    """Print a human-readable import summary to stdout."""
    txns = result.transactions
    source_counts: Counter[str] = Counter(t.source for t in txns)
    categorized = sum(1 for t in txns if t.category_id is not None)
    excluded = sum(1 for t in txns if t.is_excluded)
    errors = [e for e in result.errors if e.severity == "error"]
    warnings = [e for e in result.errors if e.severity == "warning"]

    print()
    print("== Import Summary ==")
    print(f"Added:      {result.added} new transaction(s)")
    print(f"Duplicates: {result.duplicates} skipped")
    if source_counts:
        parts = [f"{src} ({count} txns)" for src, count in sorted(source_counts.items())]
        print(f"Ledger:     {len(txns)} transactions: {', '.join(parts)}")
    else:
        print("Ledger:     (empty)")
    pct = categorized / len(txns) * 100 if txns else 0.0
    print(f"Categorized: {categorized} / {len(txns)} ({pct:.1f}%)")
    print(f"Excluded:   {excluded}")

    if warnings:
        print()
        print(f"Warnings: {len(warnings)}")
        for w in warnings:
            print(f"  - {w}")

    if errors:
        print()
        print(f"Errors: {len(errors)}")
        for e in errors:
            print(f"  - {e}")

    print()


def print_report(analytics: DerivedAnalytics, categories: list[Category]) -> None:
    """Print the analytics report to stdout."""
    names = {c.id: c.name for c in categories}
    names.setdefault(UNCATEGORIZED, "Uncategorized")
    stats = analytics.overall_stats

    print()
    print("== Spending Report ==")
    if stats.date_range is not None:
        print(f"Period:   {stats.date_range.start} to {stats.date_range.end}")
    else:
        print("Period:   (no transactions)")
    print(f"Total:    ${stats.total_debits:,.2f} over {stats.month_count} month(s)")
    print(f"Average:  ${stats.average_monthly_expenses:,.2f} per month")
    print(f"Count:    {stats.transaction_count} transactions")

    if analytics.monthly_summaries:
        print()
        print("Monthly spending:")
        for summary in analytics.monthly_summaries:
            print(
                f"  {summary.month}  ${abs(summary.total_debits):>12,.2f}"
                f"  ({summary.transaction_count} txns)"
            )

    if analytics.category_totals:
        print()
        print("Spending by category:")
        ordered = sorted(analytics.category_totals.items(), key=lambda pair: -pair[1])
        for category_id, total in ordered:
            label = names.get(category_id, category_id)
            print(f"  {label + ':':<25} ${total:,.2f}")

    if analytics.repeated_expenses:
        print()
        print("Repeated expenses:")
        for expense in analytics.repeated_expenses:
            marker = " [subscription]" if expense.is_likely_subscription else ""
            monthly = (
                f", ~${expense.estimated_monthly:,.2f}/mo"
                if expense.estimated_monthly is not None
                else ""
            )
            print(
                f"  {expense.merchant_key:<30} {expense.occurrences}x"
                f" avg ${expense.average_amount:,.2f}"
                f" total ${expense.total_amount:,.2f}{monthly}{marker}"
            )

    print()


def print_transactions(transactions: list[Transaction]) -> None:
    """Print one line per transaction, oldest first, with a 12-char id."""
    for txn in sorted(transactions, key=lambda t: t.date):
        flags = " (excluded)" if txn.is_excluded else ""
        category = txn.category_id or "-"
        print(
            f"{txn.id[:12]}  {txn.date}  {txn.amount:>10}  {category:<15}"
            f"  {txn.description}{flags}"
        )
