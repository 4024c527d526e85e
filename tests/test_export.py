"""Tests for budget_tracker.export -- ledger CSV and printed summaries."""

from __future__ import annotations

import csv
from datetime import date
from decimal import Decimal
from pathlib import Path

from budget_tracker.analytics import compute_all
from budget_tracker.export import (
    CSV_COLUMNS,
    print_import_summary,
    print_report,
    print_transactions,
    read_ledger,
    write_ledger,
)
from budget_tracker.identity import generate_transaction_id
from budget_tracker.models import (
    Category,
    ParseError,
    PipelineResult,
    Transaction,
    TransactionType,
)


def _make_txn(
    description: str = "NETFLIX.COM",
    amount: str = "-15.49",
    txn_date: date = date(2025, 1, 1),
    **kwargs,
) -> Transaction:
    value = Decimal(amount)
    return Transaction(
        id=generate_transaction_id(txn_date, value, description, kwargs.get("account_id")),
        date=txn_date,
        description=description,
        amount=value,
        type=TransactionType.from_amount(value),
        source=kwargs.pop("source", "QFX"),
        **kwargs,
    )


def _read_csv(path: Path) -> tuple[list[str], list[dict[str, str]]]:
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        rows = list(reader)
        return list(reader.fieldnames or []), rows


class TestLedger:
    """Tests for write_ledger() / read_ledger()."""

    def test_columns_and_values(self, tmp_path: Path):
        txn = _make_txn(
            category_id="subscriptions",
            account_id="42",
            original_transaction_id="FIT1",
            memo="Streaming plan",
            source_file="checking.qfx",
        )
        path = write_ledger([txn], tmp_path / "data" / "transactions.csv")

        header, rows = _read_csv(path)

        assert header == CSV_COLUMNS
        assert rows[0]["id"] == txn.id
        assert rows[0]["date"] == "2025-01-01"
        assert rows[0]["amount"] == "-15.49"
        assert rows[0]["type"] == "DEBIT"
        assert rows[0]["category_id"] == "subscriptions"
        assert rows[0]["is_excluded"] == "False"

    def test_round_trip(self, tmp_path: Path):
        txns = [
            _make_txn(category_id="subscriptions", memo="plan", source_file="a.qfx"),
            _make_txn(
                "BEST BUY 00012345, SAN JOSE",
                "-1299.99",
                date(2025, 1, 20),
                source="CSV",
                is_excluded=True,
            ),
            _make_txn("PAYROLL", "2500.00", date(2025, 1, 3), is_manually_categorized=True),
        ]
        path = tmp_path / "ledger.csv"

        write_ledger(txns, path)
        loaded = read_ledger(path)

        assert loaded == sorted(txns, key=lambda t: t.date)

    def test_rows_sorted_by_date(self, tmp_path: Path):
        txns = [
            _make_txn(txn_date=date(2025, 3, 1)),
            _make_txn(txn_date=date(2025, 1, 1)),
            _make_txn(txn_date=date(2025, 2, 1)),
        ]
        _, rows = _read_csv(write_ledger(txns, tmp_path / "l.csv"))
        assert [r["date"] for r in rows] == ["2025-01-01", "2025-02-01", "2025-03-01"]

    def test_missing_ledger_is_empty(self, tmp_path: Path):
        assert read_ledger(tmp_path / "nope.csv") == []


class TestPrinters:
    """Tests for the stdout summaries."""

    def test_import_summary(self, capsys):
        result = PipelineResult(
            transactions=[
                _make_txn(category_id="subscriptions"),
                _make_txn("MERCHANT X", "-19.01", source="CSV"),
            ],
            added=2,
            duplicates=3,
            errors=[
                ParseError("Missing required fields", severity="warning", line=5),
                ParseError("Unknown file format: notes.txt"),
            ],
        )

        print_import_summary(result)
        out = capsys.readouterr().out

        assert "== Import Summary ==" in out
        assert "Added:      2 new transaction(s)" in out
        assert "Duplicates: 3 skipped" in out
        assert "CSV (1 txns), QFX (1 txns)" in out
        assert "Categorized: 1 / 2 (50.0%)" in out
        assert "warning: line 5: Missing required fields" in out
        assert "error: Unknown file format: notes.txt" in out

    def test_import_summary_empty(self, capsys):
        print_import_summary(PipelineResult())
        out = capsys.readouterr().out
        assert "Ledger:     (empty)" in out
        assert "Categorized: 0 / 0 (0.0%)" in out

    def test_report(self, capsys):
        txns = [
            _make_txn(txn_date=date(2025, 1, 1), category_id="subscriptions"),
            _make_txn(txn_date=date(2025, 1, 31), category_id="subscriptions"),
            _make_txn("WHOLE FOODS", "-80.00", date(2025, 1, 5)),
        ]
        categories = [Category(id="subscriptions", name="Subscriptions")]

        print_report(compute_all(txns), categories)
        out = capsys.readouterr().out

        assert "== Spending Report ==" in out
        assert "Period:   2025-01-01 to 2025-01-31" in out
        assert "Total:    $110.98 over 1 month(s)" in out
        assert "Subscriptions:" in out
        assert "Uncategorized:" in out
        assert "NETFLIX.COM" in out
        assert "[subscription]" in out

    def test_report_empty(self, capsys):
        print_report(compute_all([]), [])
        out = capsys.readouterr().out
        assert "Period:   (no transactions)" in out
        assert "Repeated expenses" not in out

    def test_transactions_listing(self, capsys):
        txn = _make_txn(is_excluded=True)
        print_transactions([txn])
        out = capsys.readouterr().out

        assert out.startswith(txn.id[:12])
        assert "NETFLIX.COM (excluded)" in out
