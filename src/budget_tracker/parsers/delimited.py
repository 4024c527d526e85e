"""Card-issuer CSV statement parser.

CSV format:
    Trans. Date, Post Date, Description, Amount, Category

Sign convention:
    Positive amounts are charges (debits), negative amounts are payments and
    refunds (credits) -- the opposite of the unified convention, so every
    amount is negated here before it leaves the parser.

The issuer's Category column is kept as memo text only. It does not seed
categorization.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from budget_tracker.identity import generate_transaction_id
from budget_tracker.models import (
    SEVERITY_WARNING,
    SOURCE_CSV,
    ParseError,
    ParseResult,
    Transaction,
    TransactionType,
)

logger = logging.getLogger(__name__)

HEADER_LINE = "Trans. Date,Post Date,Description,Amount,Category"
REQUIRED_COLUMNS = {"Trans. Date", "Description", "Amount"}

# Data rows are reported 1-based with the header counted as line 1.
_HEADER_OFFSET = 2


def parse(content: str, source_file: str = "") -> ParseResult:
    """Parse the text of an issuer CSV export into normalized Transactions.

    Args:
        content: Full file text.
        source_file: File name recorded on each transaction.

    Returns:
        A ParseResult. Rows with missing required fields are skipped with a
        warning; rows with an unparseable date or amount are skipped with an
        error. Malformed CSV structure fails the whole file.
    """
    result = ParseResult()
    reader = csv.DictReader(io.StringIO(content, newline=""), strict=True)

    try:
        if reader.fieldnames is None:
            return result
        reader.fieldnames = [name.strip() for name in reader.fieldnames]

        missing = REQUIRED_COLUMNS - set(reader.fieldnames)
        if missing:
            result.errors.append(
                ParseError(message=f"Missing expected columns: {', '.join(sorted(missing))}")
            )
            return result

        rows = list(reader)
    except csv.Error as exc:
        result.errors.append(ParseError(message=f"Error parsing CSV file: {exc}"))
        return result

    for index, row in enumerate(rows):
        txn = _parse_row(row, index + _HEADER_OFFSET, source_file, result.errors)
        if txn is not None:
            result.transactions.append(txn)

    if rows and not result.transactions:
        result.errors.append(ParseError(message="No valid transactions found in CSV file"))

    logger.info(
        "%s: parsed %d of %d CSV rows",
        source_file or "<csv>",
        len(result.transactions),
        len(rows),
    )
    return result


def _parse_row(
    row: dict[str, str | None],
    line: int,
    source_file: str,
    errors: list[ParseError],
) -> Transaction | None:
    """Build one Transaction from a CSV row, or record why it was skipped."""
    date_str = (row.get("Trans. Date") or "").strip()
    description = (row.get("Description") or "").strip()
    amount_str = (row.get("Amount") or "").strip()
    category = (row.get("Category") or "").strip()

    if not date_str or not description or not amount_str:
        logger.debug("row %d: missing required fields", line)
        errors.append(
            ParseError(
                message="Missing required fields (Trans. Date, Description, or Amount)",
                severity=SEVERITY_WARNING,
                line=line,
            )
        )
        return None

    try:
        txn_date = datetime.strptime(date_str, "%m/%d/%Y").date()
    except ValueError:
        errors.append(
            ParseError(
                message=f"Invalid date format: {date_str}",
                field="Trans. Date",
                line=line,
            )
        )
        return None

    try:
        issuer_amount = Decimal(amount_str.replace(",", ""))
    except InvalidOperation:
        issuer_amount = None
    if issuer_amount is None or not issuer_amount.is_finite():
        errors.append(
            ParseError(
                message=f"Invalid amount: {amount_str}",
                field="Amount",
                line=line,
            )
        )
        return None

    # Issuer convention is debit-positive; flip to debit-negative.
    amount = -issuer_amount

    return Transaction(
        id=generate_transaction_id(txn_date, amount, description),
        date=txn_date,
        description=description,
        amount=amount,
        type=TransactionType.from_amount(amount),
        source=SOURCE_CSV,
        memo=f"Original category: {category}" if category else None,
        source_file=source_file,
    )
