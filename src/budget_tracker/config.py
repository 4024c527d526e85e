"""Configuration loading, writing, and project initialization.

Reads TOML files using stdlib ``tomllib`` and writes them using ``tomli_w``.
Depends only on ``models.py``.

Project files:

- ``config.toml`` -- ledger location, analytics thresholds, time window.
- ``categories.toml`` -- the category list with its regex patterns.
- ``rules.toml`` -- hand-authored flat rules. Never written by the tool.
- ``state.toml`` -- system-managed: learned rules, description memory and
  exclusions. Rewritten in full on every save.
"""

from __future__ import annotations

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

from budget_tracker.models import (
    AnalyticsConfig,
    AppConfig,
    CategorizationRule,
    Category,
    CategoryPattern,
    Exclusions,
    RuleSet,
    TimeWindow,
)

# ---------------------------------------------------------------------------
# Default file content
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_TOML = """\
# Budget Tracker configuration

[general]
ledger_file = "data/transactions.csv"

[analytics]
# Repeated expenses: every amount within this fraction of the group mean.
similarity_tolerance = 0.10
# Likely subscription: mean days between charges within this range.
subscription_min_days = 25
subscription_max_days = 35
merchant_key_length = 30

[time_window]
enabled = false
# start = 2025-01-01   # inclusive
# end = 2026-01-01     # exclusive
"""

_DEFAULT_CATEGORIES_TOML = """\
# Categories, in priority tie-break order.
# Patterns are case-insensitive regular expressions; lower priority wins.
#
# [coffee]
# name = "Coffee"
# color = "#92400e"
# patterns = [
#   { id = "coffee-1", pattern = "(blue bottle|peet)", priority = 5 },
# ]

[groceries]
name = "Groceries"
color = "#10b981"

[restaurants]
name = "Restaurants & Dining"
color = "#f59e0b"

[transportation]
name = "Transportation"
color = "#3b82f6"

[gas]
name = "Gas & Fuel"
color = "#8b5cf6"

[entertainment]
name = "Entertainment"
color = "#ec4899"

[shopping]
name = "Shopping & Retail"
color = "#ef4444"

[utilities]
name = "Utilities"
color = "#14b8a6"

[healthcare]
name = "Healthcare"
color = "#06b6d4"

[insurance]
name = "Insurance"
color = "#6366f1"

[housing]
name = "Housing"
color = "#84cc16"

[subscriptions]
name = "Subscriptions"
color = "#a855f7"

[travel]
name = "Travel"
color = "#0ea5e9"

[services]
name = "Services"
color = "#f97316"

[income]
name = "Income/Payments"
color = "#22c55e"

[other]
name = "Other"
color = "#64748b"
"""

_DEFAULT_RULES_TOML = """\
# Flat categorization rules, consulted after category patterns.
# The tool never modifies this file; learned rules go to state.toml.

[[rules]]
id = "r1"
category_id = "groceries"
pattern = "(safeway|kroger|whole foods|trader joe|albertsons|publix|wegmans)"
priority = 10

[[rules]]
id = "r2"
category_id = "groceries"
pattern = "(grocery|supermarket|market)"
priority = 15

[[rules]]
id = "r3"
category_id = "restaurants"
pattern = "(starbucks|coffee|cafe|restaurant|dining)"
priority = 10

[[rules]]
id = "r4"
category_id = "restaurants"
pattern = "(mcdonald|burger king|wendy|subway|chipotle|panera)"
priority = 10

[[rules]]
id = "r5"
category_id = "restaurants"
pattern = "(pizza|taco|burrito)"
priority = 12

[[rules]]
id = "r6"
category_id = "transportation"
pattern = "(uber|lyft|taxi|transit|metro|bart)"
priority = 10

[[rules]]
id = "r7"
category_id = "gas"
pattern = "(shell|chevron|exxon|mobil|bp|arco|gas|fuel)"
priority = 10

[[rules]]
id = "r8"
category_id = "subscriptions"
pattern = "(netflix|spotify|hulu|disney|amazon prime|apple music)"
priority = 10

[[rules]]
id = "r9"
category_id = "utilities"
pattern = "(electric|power|water|internet|comcast|at&t|verizon)"
priority = 10

[[rules]]
id = "r10"
category_id = "shopping"
pattern = "(amazon|target|walmart|costco|best buy)"
priority = 10

[[rules]]
id = "r11"
category_id = "income"
pattern = "(payment|credit|refund)"
priority = 10

[[rules]]
id = "r12"
category_id = "healthcare"
pattern = "(pharmacy|cvs|walgreens|doctor|medical|health)"
priority = 10

[[rules]]
id = "r13"
category_id = "entertainment"
pattern = "(movie|theater|cinema|concert|ticket)"
priority = 10
"""

_STATE_HEADER = "# System-managed state. Do not hand-edit.\n\n"

# Directories that ``initialize`` creates.
_INIT_DIRS = ["data"]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` from *root* and return an :class:`AppConfig`.

    Raises:
        FileNotFoundError: If ``config.toml`` does not exist.
        ValueError: If a value has the wrong type.
    """
    data = _read_toml(root / "config.toml")

    general = data.get("general", {})
    analytics = data.get("analytics", {})
    window = data.get("time_window", {})

    defaults = AnalyticsConfig()
    return AppConfig(
        ledger_file=general.get("ledger_file", "data/transactions.csv"),
        analytics=AnalyticsConfig(
            similarity_tolerance=Decimal(
                str(analytics.get("similarity_tolerance", defaults.similarity_tolerance))
            ),
            subscription_min_days=int(
                analytics.get("subscription_min_days", defaults.subscription_min_days)
            ),
            subscription_max_days=int(
                analytics.get("subscription_max_days", defaults.subscription_max_days)
            ),
            merchant_key_length=int(
                analytics.get("merchant_key_length", defaults.merchant_key_length)
            ),
        ),
        time_window=TimeWindow(
            enabled=bool(window.get("enabled", False)),
            start=_parse_date(window.get("start"), "time_window.start"),
            end=_parse_date(window.get("end"), "time_window.end"),
        ),
    )


def load_categories(root: Path) -> list[Category]:
    """Load ``categories.toml`` and return the categories in file order.

    Raises:
        FileNotFoundError: If ``categories.toml`` does not exist.
        ValueError: If a pattern entry lacks ``pattern`` or ``priority``.
    """
    data = _read_toml(root / "categories.toml")
    categories: list[Category] = []

    for category_id, section in data.items():
        if not isinstance(section, dict):
            continue
        patterns = []
        for index, entry in enumerate(section.get("patterns", [])):
            try:
                patterns.append(
                    CategoryPattern(
                        id=str(entry.get("id", f"{category_id}-{index + 1}")),
                        pattern=entry["pattern"],
                        priority=int(entry["priority"]),
                        enabled=bool(entry.get("enabled", True)),
                        is_default=bool(entry.get("is_default", False)),
                        description=entry.get("description", ""),
                    )
                )
            except KeyError as exc:
                raise ValueError(
                    f"categories.toml: pattern {index + 1} of {category_id!r} is missing {exc}"
                ) from exc
        categories.append(
            Category(
                id=category_id,
                name=section.get("name", category_id),
                color=section.get("color", ""),
                patterns=patterns,
                is_custom=bool(section.get("is_custom", False)),
                is_default=bool(section.get("is_default", False)),
            )
        )

    return categories


def load_rules(root: Path) -> RuleSet:
    """Load ``rules.toml`` plus the learned parts of ``state.toml``.

    A missing ``state.toml`` is treated as empty.

    Raises:
        FileNotFoundError: If ``rules.toml`` does not exist.
        ValueError: If a rule entry is missing a required key.
    """
    data = _read_toml(root / "rules.toml")
    state = _read_state(root)

    return RuleSet(
        rules=_parse_rules(data.get("rules", []), "rules.toml"),
        learned_rules=_parse_rules(state.get("learned_rules", []), "state.toml"),
        description_mappings={
            str(k): str(v) for k, v in state.get("description_mappings", {}).items()
        },
    )


def load_exclusions(root: Path) -> Exclusions:
    """Load exclusions from ``state.toml`` (empty if the file is missing)."""
    section = _read_state(root).get("exclusions", {})
    return Exclusions(
        signatures=list(section.get("signatures", [])),
        merchants=list(section.get("merchants", [])),
    )


def save_learned(root: Path, rule_set: RuleSet) -> None:
    """Write learned rules and description memory to ``state.toml``.

    Exclusions already in the file are preserved.
    """
    state = _read_state(root)
    state["learned_rules"] = [_rule_to_dict(r) for r in rule_set.learned_rules]
    state["description_mappings"] = dict(rule_set.description_mappings)
    _write_state(root, state)


def save_exclusions(root: Path, exclusions: Exclusions) -> None:
    """Write exclusions to ``state.toml``, preserving learned rules."""
    state = _read_state(root)
    state["exclusions"] = {
        "signatures": list(exclusions.signatures),
        "merchants": list(exclusions.merchants),
    }
    _write_state(root, state)


def initialize(target_dir: Path) -> None:
    """Create the standard directory structure and default config files.

    Idempotent: existing directories are left alone and existing files
    are **not** overwritten.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    for d in _INIT_DIRS:
        (target_dir / d).mkdir(parents=True, exist_ok=True)

    _write_if_missing(target_dir / "config.toml", _DEFAULT_CONFIG_TOML)
    _write_if_missing(target_dir / "categories.toml", _DEFAULT_CATEGORIES_TOML)
    _write_if_missing(target_dir / "rules.toml", _DEFAULT_RULES_TOML)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Read and parse a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _read_state(root: Path) -> dict:
    path = root / "state.toml"
    if not path.exists():
        return {}
    return _read_toml(path)


def _write_state(root: Path, state: dict) -> None:
    (root / "state.toml").write_text(_STATE_HEADER + tomli_w.dumps(state), encoding="utf-8")


def _parse_rules(entries: list[dict], filename: str) -> list[CategorizationRule]:
    rules = []
    for index, entry in enumerate(entries):
        try:
            rules.append(
                CategorizationRule(
                    id=str(entry.get("id", f"rule-{index + 1}")),
                    category_id=entry["category_id"],
                    pattern=entry["pattern"],
                    priority=int(entry["priority"]),
                    enabled=bool(entry.get("enabled", True)),
                )
            )
        except KeyError as exc:
            raise ValueError(f"{filename}: rule {index + 1} is missing {exc}") from exc
    return rules


def _rule_to_dict(rule: CategorizationRule) -> dict:
    return {
        "id": rule.id,
        "category_id": rule.category_id,
        "pattern": rule.pattern,
        "priority": rule.priority,
        "enabled": rule.enabled,
    }


def _parse_date(value: object, name: str) -> date | None:
    """Accept a TOML date or an ISO ``YYYY-MM-DD`` string."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"config.toml: {name} is not a YYYY-MM-DD date: {value!r}") from exc
    raise ValueError(f"config.toml: {name} must be a date, got {value!r}")


def _write_if_missing(path: Path, content: str) -> None:
    """Write *content* to *path* only if the file does not already exist."""
    if not path.exists():
        path.write_text(content, encoding="utf-8")
