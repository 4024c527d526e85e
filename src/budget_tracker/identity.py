"""Deterministic identifiers and description normalization.

Two digests identify a transaction:

- the *fingerprint* (``Transaction.id``) covers date, amount, description and
  account id, and deduplicates repeated imports of the same file;
- the *signature* leaves the account id out, so an exclusion recorded against
  it still applies after the ledger is wiped and re-imported.

The noise-stripping helpers are shared by the categorization engine (when it
derives a pattern from a manual categorization) and by repeated-expense
detection (when it groups charges by merchant).
"""

from __future__ import annotations

import hashlib
import re
from datetime import date
from decimal import Decimal

MERCHANT_KEY_LENGTH = 30

_PROCESSOR_PREFIX_RE = re.compile(r"SQ \*", re.IGNORECASE)
_REFERENCE_NUMBER_RE = re.compile(r"\d{10,}")
_LOCATION_CODE_RE = re.compile(r"[A-Z]{2}\d{4,}")


def canonical_amount(amount: Decimal) -> str:
    """Render *amount* so that numerically equal values hash the same.

    ``Decimal("19.010")`` and ``Decimal("19.01")`` both become ``"19.01"``;
    ``Decimal("-0")`` becomes ``"0"``.
    """
    if amount == 0:
        return "0"
    return format(amount.normalize(), "f")


def generate_transaction_id(
    txn_date: date,
    amount: Decimal,
    description: str,
    account_id: str | None = None,
) -> str:
    """Generate the fingerprint used to deduplicate transactions.

    The id is the SHA-256 hex digest of the pipe-delimited concatenation of
    the ISO date, the canonical amount, the description and the account id
    (empty string when absent).

    Args:
        txn_date: Transaction date.
        amount: Signed amount in the unified convention.
        description: Description as stored on the transaction.
        account_id: Account number from the source file, if any.

    Returns:
        A 64-character lowercase hex string.
    """
    raw = f"{txn_date.isoformat()}|{canonical_amount(amount)}|{description}|{account_id or ''}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def generate_transaction_signature(txn_date: date, amount: Decimal, description: str) -> str:
    """Generate the account-independent signature used for exclusions."""
    raw = f"{txn_date.isoformat()}|{canonical_amount(amount)}|{description}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def strip_description_noise(description: str) -> str:
    """Remove processor prefixes, reference numbers and location codes.

    Strips the ``SQ *`` card-processor prefix (any case), runs of ten or
    more digits, and two capital letters followed by four or more digits
    (e.g. ``CA94105``), then trims surrounding whitespace.
    """
    cleaned = _PROCESSOR_PREFIX_RE.sub("", description)
    cleaned = _REFERENCE_NUMBER_RE.sub("", cleaned)
    cleaned = _LOCATION_CODE_RE.sub("", cleaned)
    return cleaned.strip()


def normalize_merchant(description: str, key_length: int = MERCHANT_KEY_LENGTH) -> str:
    """Return the merchant key used to group recurring charges.

    Deliberately lossy: only the first *key_length* characters of the
    noise-stripped description are kept.
    """
    return strip_description_noise(description)[:key_length]
