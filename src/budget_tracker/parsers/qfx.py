"""QFX / OFX 1.x statement parser.

File layout:
    A block of ``KEY:VALUE`` header lines, then an SGML body rooted at
    ``<OFX>``. Each transaction is a ``<STMTTRN>`` aggregate holding
    ``TRNTYPE``, ``DTPOSTED``, ``TRNAMT``, ``FITID``, ``NAME`` and optionally
    ``MEMO`` leaf elements.

Sign convention:
    Negative amounts are debits, positive amounts are credits. This already
    matches the unified convention, so amounts are stored as-is.

Dates:
    ``YYYYMMDDHHMMSS``, optionally followed by ``.mmm`` and/or a bracketed
    GMT offset such as ``[-5:EST]``. Only the first eight digits are used.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal, InvalidOperation

from budget_tracker.identity import generate_transaction_id
from budget_tracker.models import (
    SEVERITY_ERROR,
    SEVERITY_WARNING,
    SOURCE_QFX,
    ParseError,
    ParseResult,
    Transaction,
    TransactionType,
)
from budget_tracker.parsers.sgml import TagSoupError, repair_tag_soup, split_header

logger = logging.getLogger(__name__)

HTML_ENTITIES = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
}

_ENTITY_RE = re.compile(r"&[a-z0-9#]+;", re.IGNORECASE)
_DATE_PREFIX_RE = re.compile(r"(\d{4})(\d{2})(\d{2})")


def parse(content: str, source_file: str = "") -> ParseResult:
    """Parse the text of a QFX/OFX file into normalized Transactions.

    Args:
        content: Full file text.
        source_file: File name recorded on each transaction.

    Returns:
        A ParseResult. Structural failures produce a single file-level
        error and no transactions; invalid dates or amounts skip only the
        affected transaction.
    """
    result = ParseResult()

    try:
        _, body = split_header(content)
        root = ET.fromstring(repair_tag_soup(body))
    except (TagSoupError, ET.ParseError) as exc:
        result.errors.append(ParseError(message=f"Error parsing QFX file: {exc}"))
        return result

    account_id = extract_account_id(root)
    markers = list(root.iter("STMTTRN"))

    for index, element in enumerate(markers, start=1):
        txn = _parse_transaction(element, index, account_id, source_file, result.errors)
        if txn is not None:
            result.transactions.append(txn)

    if not result.transactions:
        if markers:
            result.errors.append(
                ParseError(message="No valid transactions found in QFX file", severity=SEVERITY_ERROR)
            )
        else:
            result.errors.append(
                ParseError(message="No transactions found in QFX file", severity=SEVERITY_WARNING)
            )

    logger.info(
        "%s: parsed %d of %d QFX transactions",
        source_file or "<qfx>",
        len(result.transactions),
        len(markers),
    )
    return result


def _parse_transaction(
    element: ET.Element,
    index: int,
    account_id: str | None,
    source_file: str,
    errors: list[ParseError],
) -> Transaction | None:
    """Build one Transaction from a ``<STMTTRN>`` element, or record why not."""
    date_str = _text(element, "DTPOSTED")
    txn_date = parse_ofx_date(date_str)
    if txn_date is None:
        logger.debug("transaction %d: invalid DTPOSTED %r", index, date_str)
        errors.append(
            ParseError(
                message=f"Invalid date format: {date_str}",
                field="DTPOSTED",
                line=index,
            )
        )
        return None

    amount_str = _text(element, "TRNAMT")
    amount = _parse_amount(amount_str)
    if amount is None:
        logger.debug("transaction %d: invalid TRNAMT %r", index, amount_str)
        errors.append(
            ParseError(
                message=f"Invalid amount: {amount_str}",
                field="TRNAMT",
                line=index,
            )
        )
        return None

    name = _text(element, "NAME") or _text(element, "PAYEE/NAME") or "Unknown"
    description = decode_html_entities(name)
    memo = _text(element, "MEMO")

    return Transaction(
        id=generate_transaction_id(txn_date, amount, description, account_id),
        date=txn_date,
        description=description,
        amount=amount,
        type=TransactionType.from_amount(amount),
        source=SOURCE_QFX,
        account_id=account_id,
        original_transaction_id=_text(element, "FITID") or None,
        memo=decode_html_entities(memo) if memo else None,
        source_file=source_file,
    )


def parse_ofx_date(value: str) -> date | None:
    """Parse an OFX date-time, keeping only the calendar date.

    Accepts ``YYYYMMDD`` followed by anything (time of day, ``.mmm``
    fraction, ``[offset:TZ]``). Returns None if the first eight characters
    are not a valid date.
    """
    match = _DATE_PREFIX_RE.match(value.strip())
    if match is None:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def extract_account_id(root: ET.Element) -> str | None:
    """Return the account id from a bank or credit card statement, if any."""
    for path in (".//BANKACCTFROM/ACCTID", ".//CCACCTFROM/ACCTID"):
        value = root.findtext(path)
        if value and value.strip():
            return value.strip()
    return None


def decode_html_entities(text: str) -> str:
    """Decode the small fixed set of HTML entities banks put in payee names.

    Unrecognized entities are left unchanged.
    """
    return _ENTITY_RE.sub(lambda m: HTML_ENTITIES.get(m.group(0), m.group(0)), text)


def _parse_amount(value: str) -> Decimal | None:
    if not value:
        return None
    try:
        amount = Decimal(value)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def _text(element: ET.Element, path: str) -> str:
    return (element.findtext(path) or "").strip()
