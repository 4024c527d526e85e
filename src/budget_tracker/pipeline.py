"""Import pipeline orchestration for Budget Tracker.

Composes the import stages: parse, deduplicate against the existing ledger,
re-apply persisted exclusions, and categorize. Every stage takes a list of
:class:`~budget_tracker.models.Transaction` objects and returns a new list;
parse diagnostics are accumulated into the final
:class:`~budget_tracker.models.PipelineResult`.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from pathlib import Path

from budget_tracker.analytics import apply_exclusions
from budget_tracker.categorizer import CategorizationEngine
from budget_tracker.models import Category, PipelineResult, RuleSet, Transaction
from budget_tracker.parsers import parse_files

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def run(
    files: Iterable[Path],
    categories: list[Category],
    rule_set: RuleSet,
    existing: Iterable[Transaction] = (),
    excluded_signatures: Collection[str] = (),
) -> PipelineResult:
    """Import *files* into the ledger of *existing* transactions.

    Stages executed in order:

    1. **Parse** -- detect each file's format and parse it; files are
       concatenated in argument order.
    2. **Deduplicate** -- drop parsed transactions whose ``id`` is already
       in the ledger (or earlier in this import).
    3. **Exclude** -- mark transactions whose signature was excluded.
    4. **Categorize** -- run the categorization engine over records that
       have no category and were not categorized by hand.

    Args:
        files: Paths of the files to import.
        categories: Category list with patterns.
        rule_set: Flat rules, learned rules and description memory.
        existing: Transactions already in the ledger.
        excluded_signatures: Signatures of excluded transactions.

    Returns:
        A :class:`PipelineResult` with the merged ledger and every parse
        diagnostic.
    """
    parse_result = parse_files(files)

    existing = list(existing)
    merged, added, duplicates = deduplicate(existing, parse_result.transactions)
    if duplicates:
        logger.info("Skipped %d duplicate transaction(s)", duplicates)

    merged = apply_exclusions(merged, set(excluded_signatures))

    engine = CategorizationEngine(
        categories,
        rule_set.all_rules,
        rule_set.description_mappings,
    )
    merged = engine.batch_categorize(merged)

    return PipelineResult(
        transactions=merged,
        added=added,
        duplicates=duplicates,
        errors=parse_result.errors,
    )


def deduplicate(
    existing: list[Transaction],
    incoming: Iterable[Transaction],
) -> tuple[list[Transaction], int, int]:
    """Append *incoming* transactions whose ids are not yet present.

    Existing records always win, so manual categories and exclusions on the
    ledger survive a re-import of the same file.

    Two identical records within *incoming* (same date, amount, description
    and account) share an id, so only the first is kept and the second
    counts as a duplicate.

    Returns:
        ``(merged, added, duplicates)``.
    """
    seen = {txn.id for txn in existing}
    merged = list(existing)
    added = 0
    duplicates = 0

    for txn in incoming:
        if txn.id in seen:
            duplicates += 1
            continue
        seen.add(txn.id)
        merged.append(txn)
        added += 1

    return merged, added, duplicates
