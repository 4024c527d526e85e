"""Categorization engine: description memory, regex patterns, flat rules.

Lookup order for a single transaction:

1. **Description memory** -- an exact match of the full description in the
   table learned from earlier manual categorizations wins outright.
2. **Category patterns** -- every enabled pattern of every category, tried
   in ascending priority. Equal priorities keep declaration order.
3. **Flat rules** -- the older rule list, same ordering policy.
4. Otherwise the transaction stays uncategorized (``None``).

Tiers 2 and 3 are flattened into one list of
:class:`~budget_tracker.models.MatchableRule` sorted by ``(tier, priority)``
so a single loop evaluates both. Regexes are compiled once per engine;
invalid ones are logged and skipped.

Depends on ``models.py`` and ``identity.py`` only.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import replace

from budget_tracker.identity import strip_description_noise
from budget_tracker.models import (
    UNCATEGORIZED,
    CategorizationRule,
    Category,
    MatchableRule,
    Transaction,
)

logger = logging.getLogger(__name__)

PROVENANCE_PATTERN = "pattern"
PROVENANCE_RULE = "rule"

LEARNED_RULE_PRIORITY = 100
LEARNED_PATTERN_LENGTH = 30

_TIERS = {PROVENANCE_PATTERN: 0, PROVENANCE_RULE: 1}


def flatten_rules(
    categories: Iterable[Category],
    rules: Iterable[CategorizationRule],
) -> list[MatchableRule]:
    """Collect enabled patterns and rules into one evaluation-ordered list.

    Category patterns come before flat rules regardless of priority; within
    each tier the sort is by ascending priority and is stable, so equal
    priorities keep declaration order.
    """
    flat: list[MatchableRule] = []
    for category in categories:
        for pattern in category.patterns:
            if pattern.enabled:
                flat.append(
                    MatchableRule(
                        provenance=PROVENANCE_PATTERN,
                        category_id=category.id,
                        pattern=pattern.pattern,
                        priority=pattern.priority,
                    )
                )
    for rule in rules:
        if rule.enabled:
            flat.append(
                MatchableRule(
                    provenance=PROVENANCE_RULE,
                    category_id=rule.category_id,
                    pattern=rule.pattern,
                    priority=rule.priority,
                )
            )

    flat.sort(key=lambda m: (_TIERS[m.provenance], m.priority))
    return flat


class CategorizationEngine:
    """Assigns category ids to transactions.

    The engine holds no persisted state: callers build it from the current
    categories, rules and description memory on every invocation.

    Args:
        categories: Ordered category list; declaration order breaks
            priority ties.
        rules: Flat categorization rules.
        description_mappings: Exact description to category id table.
    """

    def __init__(
        self,
        categories: Iterable[Category],
        rules: Iterable[CategorizationRule] = (),
        description_mappings: Mapping[str, str] | None = None,
    ) -> None:
        self.categories = list(categories)
        self.rules = list(rules)
        self.description_mappings = dict(description_mappings or {})
        self._compiled = self._compile(flatten_rules(self.categories, self.rules))

    @staticmethod
    def _compile(flat: list[MatchableRule]) -> list[tuple[MatchableRule, re.Pattern[str]]]:
        compiled = []
        for matchable in flat:
            try:
                regex = re.compile(matchable.pattern, re.IGNORECASE)
            except re.error as exc:
                logger.warning(
                    "Skipping invalid regex pattern %r for category %r (%s): %s",
                    matchable.pattern,
                    matchable.category_id,
                    matchable.provenance,
                    exc,
                )
                continue
            compiled.append((matchable, regex))
        return compiled

    def match(self, description: str) -> MatchableRule | None:
        """Return the first pattern or rule matching *description*."""
        for matchable, regex in self._compiled:
            if regex.search(description):
                return matchable
        return None

    def categorize(self, transaction: Transaction) -> str | None:
        """Return the category id for *transaction*, or None."""
        mapped = self.description_mappings.get(transaction.description)
        if mapped:
            return mapped

        matchable = self.match(transaction.description)
        if matchable is not None:
            return matchable.category_id
        return None

    def batch_categorize(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        """Categorize every transaction that has no category yet.

        Manually categorized transactions and transactions that already
        carry a category id are returned unchanged, so running this twice
        is the same as running it once.

        Returns:
            A new list; the input transactions are not modified.
        """
        result: list[Transaction] = []
        assigned = 0
        for txn in transactions:
            if txn.is_manually_categorized or txn.category_id is not None:
                result.append(txn)
                continue
            category_id = self.categorize(txn)
            if category_id is not None:
                assigned += 1
                txn = replace(txn, category_id=category_id)
            result.append(txn)

        logger.info("Categorized %d of %d transaction(s)", assigned, len(result))
        return result

    def learn_from_manual_categorization(
        self,
        transaction: Transaction,
        category_id: str,
    ) -> CategorizationRule:
        """Derive a reusable rule from a manual categorization.

        The rule's priority is low (numerically high) so that hand-written
        rules still win when both match.

        Raises:
            ValueError: If the description yields an empty pattern, which
                would match every transaction.
        """
        pattern = extract_merchant_pattern(transaction.description)
        if not pattern:
            raise ValueError(
                f"cannot derive a rule from description {transaction.description!r}"
            )
        return CategorizationRule(
            id=uuid.uuid4().hex,
            category_id=category_id,
            pattern=pattern,
            priority=LEARNED_RULE_PRIORITY,
            enabled=True,
        )

    def get_category_by_id(self, category_id: str) -> Category | None:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None


def extract_merchant_pattern(description: str) -> str:
    """Turn a description into a literal regex for its merchant.

    Noise (processor prefix, reference numbers, location codes) is removed,
    the result is cut to its first 30 characters, and every regex
    metacharacter is escaped. A description that is all noise (e.g.
    ``SQ *1234567890``) keeps its raw text instead.
    """
    merchant = strip_description_noise(description) or description.strip()
    return re.escape(merchant[:LEARNED_PATTERN_LENGTH])


def apply_manual_categorization(
    transactions: Iterable[Transaction],
    transaction_id: str,
    category_id: str,
    description_mappings: Mapping[str, str],
) -> tuple[list[Transaction], dict[str, str]]:
    """Apply a user override to a transaction and every same-description peer.

    Args:
        transactions: Current transactions.
        transaction_id: Id of the transaction the user recategorized.
        category_id: The category chosen by the user.
        description_mappings: Current description memory.

    Returns:
        ``(transactions, mappings)``: new lists/dicts with the override
        applied and the description remembered.

    Raises:
        KeyError: If no transaction has *transaction_id*.
    """
    transactions = list(transactions)
    target = next((t for t in transactions if t.id == transaction_id), None)
    if target is None:
        raise KeyError(transaction_id)

    mappings = dict(description_mappings)
    mappings[target.description] = category_id

    updated = [
        replace(t, category_id=category_id, is_manually_categorized=True)
        if t.description == target.description
        else t
        for t in transactions
    ]
    return updated, mappings


def uncategorized(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Non-excluded transactions without a category."""
    return [t for t in transactions if t.category_id is None and not t.is_excluded]


def category_counts(transactions: Iterable[Transaction]) -> dict[str, int]:
    """Count non-excluded transactions per category id."""
    counts: Counter[str] = Counter()
    for txn in transactions:
        if not txn.is_excluded:
            counts[txn.category_id or UNCATEGORIZED] += 1
    return dict(counts)
