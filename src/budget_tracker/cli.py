"""Click CLI entry point for the budget command.

Handles argument parsing, config loading, and error display. All business
logic is delegated to ``pipeline``, ``categorizer``, ``analytics``,
``config``, and ``export`` modules.
"""

from __future__ import annotations

import logging
import sys
from datetime import date
from pathlib import Path

import click

from budget_tracker import __version__


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Set up logging based on verbosity flags."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _parse_iso_date(ctx: click.Context, param: click.Parameter, value: str | None) -> date | None:
    """Click callback validating an optional ``YYYY-MM-DD`` option."""
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"Invalid date: {value!r}. Expected YYYY-MM-DD.") from None


def _load_project(root: Path):
    """Load config, categories and rules, exiting with a message on failure."""
    from budget_tracker.config import load_categories, load_config, load_rules

    try:
        return load_config(root), load_categories(root), load_rules(root)
    except FileNotFoundError as exc:
        click.echo(
            f"Error: {exc}. Run 'budget init' to create the project structure.",
            err=True,
        )
        sys.exit(1)
    except Exception as exc:
        click.echo(f"Error loading configuration: {exc}", err=True)
        sys.exit(1)


def _load_ledger(path: Path):
    from budget_tracker.export import read_ledger

    try:
        return read_ledger(path)
    except Exception as exc:
        click.echo(f"Error reading ledger {path}: {exc}", err=True)
        sys.exit(1)


def _load_exclusions(root: Path):
    from budget_tracker.config import load_exclusions

    try:
        return load_exclusions(root)
    except Exception as exc:
        click.echo(f"Error loading state: {exc}", err=True)
        sys.exit(1)


def _find_transaction(transactions: list, id_prefix: str):
    """Return the single ledger transaction whose id starts with *id_prefix*."""
    matches = [t for t in transactions if t.id.startswith(id_prefix)]
    if len(matches) != 1:
        problem = "no transaction" if not matches else "more than one transaction"
        click.echo(f"Error: {problem} matches id {id_prefix!r}", err=True)
        sys.exit(1)
    return matches[0]


@click.group()
@click.version_option(version=__version__, prog_name="budget-tracker")
def cli() -> None:
    """Import bank statements, categorize spending, and find subscriptions."""


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
def init(target_dir: str) -> None:
    """Initialize a new project directory with default configuration."""
    from budget_tracker.config import initialize

    target = Path(target_dir).resolve()

    try:
        initialize(target)
    except Exception as exc:
        click.echo(f"Error initializing project: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Initialized budget tracker project in {target}")


@cli.command("import")
@click.argument("files", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
@click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")
def import_files(files: tuple[Path, ...], verbose: bool, debug: bool) -> None:
    """Import QFX and CSV statement files into the ledger."""
    _configure_logging(verbose, debug)
    root = Path.cwd()

    config, categories, rule_set = _load_project(root)

    from budget_tracker.config import load_exclusions
    from budget_tracker.export import print_import_summary, write_ledger
    from budget_tracker.pipeline import run

    ledger_path = root / config.ledger_file
    existing = _load_ledger(ledger_path)

    try:
        exclusions = load_exclusions(root)
        result = run(
            files=files,
            categories=categories,
            rule_set=rule_set,
            existing=existing,
            excluded_signatures=exclusions.signatures,
        )
    except Exception as exc:
        click.echo(f"Error running import: {exc}", err=True)
        sys.exit(1)

    try:
        write_ledger(result.transactions, ledger_path)
        if verbose:
            click.echo(f"Wrote ledger to {ledger_path}")
    except Exception as exc:
        click.echo(f"Error writing ledger: {exc}", err=True)
        sys.exit(1)

    print_import_summary(result)


@cli.command()
@click.option("--start", callback=_parse_iso_date, help="First day to include (YYYY-MM-DD).")
@click.option("--end", callback=_parse_iso_date, help="First day to exclude (YYYY-MM-DD).")
def report(start: date | None, end: date | None) -> None:
    """Print monthly spending, category totals and repeated expenses."""
    root = Path.cwd()
    config, categories, _ = _load_project(root)

    from budget_tracker.analytics import compute_all, filter_time_window
    from budget_tracker.export import print_report
    from budget_tracker.models import TimeWindow

    transactions = _load_ledger(root / config.ledger_file)

    window = config.time_window
    if start is not None or end is not None:
        window = TimeWindow(enabled=True, start=start, end=end)

    exclusions = _load_exclusions(root)

    analytics = compute_all(
        filter_time_window(transactions, window),
        config.analytics,
        excluded_merchants=exclusions.merchants,
    )
    print_report(analytics, categories)


@cli.command()
@click.argument("transaction_id")
@click.argument("category_id")
@click.option(
    "--learn", "learn_rule", is_flag=True, default=False,
    help="Also derive a reusable rule from the description.",
)
def categorize(transaction_id: str, category_id: str, learn_rule: bool) -> None:
    """Assign CATEGORY_ID to a transaction and remember its description."""
    root = Path.cwd()
    config, categories, rule_set = _load_project(root)

    from budget_tracker.categorizer import CategorizationEngine, apply_manual_categorization
    from budget_tracker.config import save_learned
    from budget_tracker.export import write_ledger

    if category_id not in {c.id for c in categories}:
        click.echo(f"Error: unknown category {category_id!r}", err=True)
        sys.exit(1)

    ledger_path = root / config.ledger_file
    transactions = _load_ledger(ledger_path)
    target = _find_transaction(transactions, transaction_id)

    transactions, rule_set.description_mappings = apply_manual_categorization(
        transactions, target.id, category_id, rule_set.description_mappings
    )

    if learn_rule:
        engine = CategorizationEngine(categories, rule_set.all_rules)
        try:
            new_rule = engine.learn_from_manual_categorization(target, category_id)
        except ValueError as exc:
            click.echo(f"Warning: no rule learned, {exc}", err=True)
        else:
            rule_set.learned_rules.append(new_rule)
            click.echo(f'Learned rule: "{new_rule.pattern}" -> {category_id}')

    try:
        save_learned(root, rule_set)
        write_ledger(transactions, ledger_path)
    except Exception as exc:
        click.echo(f"Error saving changes: {exc}", err=True)
        sys.exit(1)

    updated = sum(1 for t in transactions if t.description == target.description)
    click.echo(f"Categorized {updated} transaction(s) as {category_id}")


@cli.command()
@click.argument("transaction_id")
def exclude(transaction_id: str) -> None:
    """Toggle whether a transaction is excluded from analytics."""
    root = Path.cwd()
    config, _, _ = _load_project(root)

    from budget_tracker.analytics import set_excluded
    from budget_tracker.config import save_exclusions
    from budget_tracker.export import write_ledger
    from budget_tracker.identity import generate_transaction_signature

    ledger_path = root / config.ledger_file
    transactions = _load_ledger(ledger_path)
    target = _find_transaction(transactions, transaction_id)
    exclusions = _load_exclusions(root)

    signature = generate_transaction_signature(target.date, target.amount, target.description)
    now_excluded = not target.is_excluded
    if now_excluded:
        if signature not in exclusions.signatures:
            exclusions.signatures.append(signature)
    else:
        exclusions.signatures = [s for s in exclusions.signatures if s != signature]

    # Same charge seen on another account shares the signature.
    transactions = set_excluded(transactions, {signature}, now_excluded)

    try:
        save_exclusions(root, exclusions)
        write_ledger(transactions, ledger_path)
    except Exception as exc:
        click.echo(f"Error saving changes: {exc}", err=True)
        sys.exit(1)

    state = "Excluded" if now_excluded else "Included"
    click.echo(f"{state} transaction {target.id[:12]} ({target.description})")


@cli.command()
@click.argument("merchant_key")
def dismiss(merchant_key: str) -> None:
    """Toggle excluding a repeated expense, by its merchant key, from analytics.

    Dismissing excludes every transaction of the group; dismissing the same
    key again restores them.
    """
    root = Path.cwd()
    config, _, _ = _load_project(root)

    from budget_tracker.analytics import set_excluded
    from budget_tracker.config import save_exclusions
    from budget_tracker.export import write_ledger
    from budget_tracker.identity import generate_transaction_signature, normalize_merchant
    from budget_tracker.recurring import detect_repeated_expenses

    ledger_path = root / config.ledger_file
    transactions = _load_ledger(ledger_path)
    exclusions = _load_exclusions(root)
    thresholds = config.analytics

    def signature_of(txn) -> str:
        return generate_transaction_signature(txn.date, txn.amount, txn.description)

    if merchant_key in exclusions.merchants:
        members = [
            t
            for t in transactions
            if t.is_debit
            and normalize_merchant(t.description, thresholds.merchant_key_length) == merchant_key
        ]
        signatures = {signature_of(t) for t in members} & set(exclusions.signatures)
        exclusions.merchants.remove(merchant_key)
        exclusions.signatures = [s for s in exclusions.signatures if s not in signatures]
        transactions = set_excluded(transactions, signatures, False)
        message = f"Restored repeated expense {merchant_key!r} ({len(signatures)} transaction(s))"
    else:
        repeated = detect_repeated_expenses(
            transactions,
            tolerance=thresholds.similarity_tolerance,
            min_interval_days=thresholds.subscription_min_days,
            max_interval_days=thresholds.subscription_max_days,
            key_length=thresholds.merchant_key_length,
        )
        group = next((r for r in repeated if r.merchant_key == merchant_key), None)
        if group is None:
            click.echo(f"Error: no repeated expense matches {merchant_key!r}", err=True)
            sys.exit(1)
        member_ids = set(group.transaction_ids)
        signatures = {signature_of(t) for t in transactions if t.id in member_ids}
        exclusions.merchants.append(merchant_key)
        exclusions.signatures.extend(
            s for s in sorted(signatures) if s not in exclusions.signatures
        )
        transactions = set_excluded(transactions, signatures, True)
        message = f"Dismissed repeated expense {merchant_key!r} ({group.occurrences} transaction(s))"

    try:
        save_exclusions(root, exclusions)
        write_ledger(transactions, ledger_path)
    except Exception as exc:
        click.echo(f"Error saving changes: {exc}", err=True)
        sys.exit(1)

    click.echo(message)


@cli.command("list")
@click.option(
    "--uncategorized", "only_uncategorized", is_flag=True, default=False,
    help="Show only transactions without a category.",
)
def list_transactions(only_uncategorized: bool) -> None:
    """List ledger transactions with their short ids."""
    root = Path.cwd()
    config, _, _ = _load_project(root)

    from budget_tracker.categorizer import uncategorized
    from budget_tracker.export import print_transactions

    transactions = _load_ledger(root / config.ledger_file)
    if only_uncategorized:
        transactions = uncategorized(transactions)
    print_transactions(transactions)
