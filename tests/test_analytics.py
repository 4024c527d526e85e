"""Tests for budget_tracker.analytics -- summaries, stats, windows, exclusions."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from budget_tracker.analytics import (
    apply_exclusions,
    category_totals,
    compute_all,
    filter_time_window,
    monthly_summaries,
    overall_stats,
    set_excluded,
)
from budget_tracker.identity import generate_transaction_id, generate_transaction_signature
from budget_tracker.models import (
    AnalyticsConfig,
    DateRange,
    TimeWindow,
    Transaction,
    TransactionType,
)


def _make_txn(
    description: str,
    amount: str,
    txn_date: date,
    category_id: str | None = None,
    *,
    is_excluded: bool = False,
    account_id: str | None = None,
) -> Transaction:
    value = Decimal(amount)
    return Transaction(
        id=generate_transaction_id(txn_date, value, description, account_id),
        date=txn_date,
        description=description,
        amount=value,
        type=TransactionType.from_amount(value),
        source="QFX",
        category_id=category_id,
        is_excluded=is_excluded,
        account_id=account_id,
    )


def _sample() -> list[Transaction]:
    return [
        _make_txn("WHOLE FOODS", "-80.00", date(2025, 1, 5), "groceries"),
        _make_txn("NETFLIX.COM", "-15.49", date(2025, 1, 10), "subscriptions"),
        _make_txn("PAYROLL", "2500.00", date(2025, 1, 15), "income"),
        _make_txn("MYSTERY", "-4.51", date(2025, 1, 20)),
        _make_txn("SAFEWAY", "-20.00", date(2025, 2, 3), "groceries"),
        _make_txn("BIG TV", "-999.00", date(2025, 2, 9), "shopping", is_excluded=True),
    ]


class TestMonthlySummaries:
    """Tests for monthly_summaries()."""

    def test_groups_by_month_in_order(self):
        summaries = monthly_summaries(list(reversed(_sample())))
        assert [s.month for s in summaries] == ["2025-01", "2025-02"]

    def test_totals_are_signed_debit_sums(self):
        january, february = monthly_summaries(_sample())

        assert january.total_debits == Decimal("-100.00")
        assert february.total_debits == Decimal("-20.00")

    def test_category_totals_are_absolute(self):
        january, _ = monthly_summaries(_sample())
        assert january.category_totals == {
            "groceries": Decimal("80.00"),
            "subscriptions": Decimal("15.49"),
            "uncategorized": Decimal("4.51"),
        }

    def test_excluded_records_not_counted(self):
        _, february = monthly_summaries(_sample())

        assert february.transaction_count == 1
        assert "shopping" not in february.category_totals

    def test_credits_counted_but_not_summed(self):
        january, _ = monthly_summaries(_sample())
        assert january.transaction_count == 4
        assert "income" not in january.category_totals


class TestCategoryTotals:
    def test_across_all_months(self):
        assert category_totals(_sample()) == {
            "groceries": Decimal("100.00"),
            "subscriptions": Decimal("15.49"),
            "uncategorized": Decimal("4.51"),
        }


class TestOverallStats:
    """Tests for overall_stats()."""

    def test_sample(self):
        stats = overall_stats(_sample())

        assert stats.total_debits == Decimal("120.00")
        assert stats.transaction_count == 5
        assert stats.date_range == DateRange(date(2025, 1, 5), date(2025, 2, 3))
        assert stats.month_count == 2
        assert stats.average_monthly_expenses == Decimal("60.00")

    def test_empty_input(self):
        stats = overall_stats([])

        assert stats.total_debits == Decimal("0")
        assert stats.transaction_count == 0
        assert stats.date_range is None
        assert stats.month_count == 0
        assert stats.average_monthly_expenses == Decimal("0")

    def test_only_excluded_records(self):
        stats = overall_stats([_make_txn("X", "-5", date(2025, 1, 1), is_excluded=True)])
        assert stats.date_range is None
        assert stats.month_count == 0


class TestComputeAll:
    """Tests for compute_all()."""

    def test_bundles_every_structure(self):
        txns = _sample() + [
            _make_txn("NETFLIX.COM", "-15.49", date(2025, 2, 9), "subscriptions"),
        ]

        analytics = compute_all(txns)

        assert len(analytics.monthly_summaries) == 2
        assert analytics.category_totals["subscriptions"] == Decimal("30.98")
        assert [r.merchant_key for r in analytics.repeated_expenses] == ["NETFLIX.COM"]
        assert analytics.repeated_expenses[0].is_likely_subscription is True
        assert analytics.overall_stats.transaction_count == 6

    def test_dismissed_merchants_hidden(self):
        txns = [
            _make_txn("NETFLIX.COM", "-15.49", date(2025, 1, 10)),
            _make_txn("NETFLIX.COM", "-15.49", date(2025, 2, 9)),
        ]

        analytics = compute_all(txns, excluded_merchants=["NETFLIX.COM"])

        assert analytics.repeated_expenses == []
        assert analytics.overall_stats.transaction_count == 2

    def test_config_thresholds_used(self):
        txns = [
            _make_txn("GYM", "-100", date(2025, 1, 1)),
            _make_txn("GYM", "-125", date(2025, 2, 1)),
        ]
        loose = AnalyticsConfig(similarity_tolerance=Decimal("0.25"))

        assert compute_all(txns).repeated_expenses == []
        assert len(compute_all(txns, loose).repeated_expenses) == 1

    def test_does_not_modify_input(self):
        txns = _sample()
        before = list(txns)
        compute_all(txns)
        assert txns == before


class TestFilterTimeWindow:
    """Tests for filter_time_window(): start inclusive, end exclusive."""

    def test_disabled_window_keeps_everything(self):
        window = TimeWindow(enabled=False, start=date(2025, 2, 1))
        assert len(filter_time_window(_sample(), window)) == 6

    def test_bounds(self):
        window = TimeWindow(enabled=True, start=date(2025, 1, 10), end=date(2025, 2, 3))
        kept = filter_time_window(_sample(), window)
        assert [t.date for t in kept] == [date(2025, 1, 10), date(2025, 1, 15), date(2025, 1, 20)]

    def test_open_ended(self):
        window = TimeWindow(enabled=True, start=date(2025, 2, 1))
        assert [t.description for t in filter_time_window(_sample(), window)] == [
            "SAFEWAY",
            "BIG TV",
        ]


class TestApplyExclusions:
    """Tests for apply_exclusions()."""

    def test_marks_matching_signatures(self):
        txns = _sample()
        target = txns[0]
        signature = generate_transaction_signature(target.date, target.amount, target.description)

        result = apply_exclusions(txns, {signature})

        assert result[0].is_excluded is True
        assert [t.is_excluded for t in result[1:5]] == [False] * 4
        assert txns[0].is_excluded is False

    def test_signature_ignores_account(self):
        """An exclusion recorded on one account applies to the same charge on re-import."""
        original = _make_txn("CAFE", "-5.00", date(2025, 1, 1), account_id="111")
        reimported = _make_txn("CAFE", "-5.0", date(2025, 1, 1), account_id="222")
        signature = generate_transaction_signature(original.date, original.amount, original.description)

        assert apply_exclusions([reimported], [signature])[0].is_excluded is True

    def test_no_signatures(self):
        txns = _sample()
        assert apply_exclusions(txns, []) == txns


class TestSetExcluded:
    """Tests for set_excluded()."""

    def test_sets_and_clears_every_matching_row(self):
        checking = _make_txn("CAFE", "-5.00", date(2025, 1, 1), account_id="111")
        card = _make_txn("CAFE", "-5.00", date(2025, 1, 1), account_id="222")
        other = _make_txn("DINER", "-9.00", date(2025, 1, 1))
        signature = generate_transaction_signature(checking.date, checking.amount, checking.description)

        excluded = set_excluded([checking, card, other], {signature}, True)
        assert [t.is_excluded for t in excluded] == [True, True, False]

        restored = set_excluded(excluded, {signature}, False)
        assert [t.is_excluded for t in restored] == [False, False, False]

    def test_leaves_input_untouched(self):
        txn = _make_txn("CAFE", "-5.00", date(2025, 1, 1))
        signature = generate_transaction_signature(txn.date, txn.amount, txn.description)

        set_excluded([txn], [signature], True)

        assert txn.is_excluded is False
