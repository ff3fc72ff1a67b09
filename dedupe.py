#!/usr/bin/env python3
"""
Event Catalog Deduplication
===========================

Command-line interface for finding and removing duplicate event listings.

Usage:
    python dedupe.py run                       # Dry run: report what would be removed
    python dedupe.py run --apply               # Delete the duplicates
    python dedupe.py run --days 3 --skip-rules # AI pass only, first 3 days
    python dedupe.py analyze --date 2025-03-14 # Graded report for one day, as JSON
    python dedupe.py validate                  # Check configuration
    python dedupe.py status                    # Show last run results
"""

import json
import signal
import sys
from datetime import datetime
from pathlib import Path

import click
import yaml

from dedup import __version__
from dedup.ai import get_chat_client, is_ai_available
from dedup.config import ConfigurationError, load_pipeline_config
from dedup.filters import FilterError, load_default_filter
from dedup.logger import get_logger, setup_logging
from dedup.matcher import GradedMatcher, StrictMatcher, find_duplicates
from dedup.models.event import CATALOG_TZ
from dedup.pipeline import apply_removals, run_pipeline
from dedup.store import MarkdownEventStore, StoreError

# Status file for tracking run results
STATUS_FILE = ".dedup_status.json"

# Global flag for interrupt handling
_interrupted = False


def load_config(config_path: Path) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def setup_logging_from_config(
    config: dict,
    config_dir: Path,
    log_level_override: str | None = None,
    log_file_override: Path | None = None,
    stream=None,
) -> None:
    """Configure logging based on config file and CLI overrides."""
    logging_cfg = config.get("logging", {}) or {}

    # CLI flags override config file settings
    effective_log_level = log_level_override or logging_cfg.get("log_level", "INFO")
    effective_log_file = log_file_override or logging_cfg.get("log_file")
    log_dir = config_dir if effective_log_file else None

    setup_logging(
        level=effective_log_level,
        log_file=str(effective_log_file) if effective_log_file else None,
        log_dir=log_dir,
        log_format=logging_cfg.get("log_format", "text"),
        max_bytes=logging_cfg.get("max_file_size", 10 * 1024 * 1024),
        backup_count=logging_cfg.get("backup_count", 5),
        stream=stream,
    )


def save_status(config_dir: Path, status: dict) -> None:
    """Save run status to file."""
    status_path = config_dir / STATUS_FILE
    status["timestamp"] = datetime.now(CATALOG_TZ).isoformat()
    with open(status_path, "w", encoding="utf-8") as f:
        json.dump(status, f, indent=2)


def load_status(config_dir: Path) -> dict | None:
    """Load last run status from file."""
    status_path = config_dir / STATUS_FILE
    if not status_path.exists():
        return None
    with open(status_path, encoding="utf-8") as f:
        return json.load(f)


def is_interrupted() -> bool:
    return _interrupted


def signal_handler(signum, frame):
    """Handle interrupt signals gracefully."""
    global _interrupted
    _interrupted = True
    click.echo(
        click.style("\n\nInterrupt received, finishing current day...", fg="yellow")
    )


# Set up signal handlers
signal.signal(signal.SIGINT, signal_handler)
signal.signal(signal.SIGTERM, signal_handler)


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=Path(__file__).parent / "config.yaml",
    help="Path to configuration file",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(
        ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
    ),
    default=None,
    help="Override log level from config",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path from config",
)
@click.version_option(version=__version__, prog_name="event-dedup")
@click.pass_context
def cli(ctx, config: Path, log_level: str | None, log_file: Path | None):
    """
    Event Catalog Deduplication - Find and remove duplicate listings.

    A rule-based pass removes obvious duplicates, then an AI pass reviews
    each remaining day. Runs are dry runs unless --apply is given.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["config_dir"] = config.parent
    ctx.obj["log_level"] = log_level
    ctx.obj["log_file"] = log_file

    try:
        ctx.obj["config"] = load_config(config)
    except FileNotFoundError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    # If no subcommand is provided, show help
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.option(
    "--apply",
    "apply_changes",
    is_flag=True,
    default=False,
    help="Delete duplicates (default is a dry run)",
)
@click.option(
    "--days",
    type=click.IntRange(min=1),
    default=None,
    help="Process at most this many days in the AI pass",
)
@click.option(
    "--delay",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds to wait between AI requests",
)
@click.option(
    "--source",
    "-s",
    type=str,
    default=None,
    help="Only consider events from this source",
)
@click.option(
    "--strategy",
    type=click.Choice([StrictMatcher.name, GradedMatcher.name]),
    default=None,
    help="Rule-based matching strategy",
)
@click.option("--skip-ai", is_flag=True, default=False, help="Skip the AI pass")
@click.option("--skip-rules", is_flag=True, default=False, help="Skip the rule-based pass")
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    default=None,
    help="Threads for the rule-based pass (1 = sequential)",
)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print the report as JSON",
)
@click.pass_context
def run(
    ctx,
    apply_changes: bool,
    days: int | None,
    delay: float | None,
    source: str | None,
    strategy: str | None,
    skip_ai: bool,
    skip_rules: bool,
    workers: int | None,
    as_json: bool,
):
    """
    Find duplicates and optionally delete them.

    Without --apply nothing is deleted; the report shows what would be.
    """
    cfg = ctx.obj["config"]
    config_path = ctx.obj["config_path"]
    config_dir = ctx.obj["config_dir"]

    setup_logging_from_config(
        cfg,
        config_dir,
        ctx.obj["log_level"],
        ctx.obj["log_file"],
        stream=sys.stderr if as_json else None,
    )
    logger = get_logger("dedup.cli")

    try:
        pipeline_config = load_pipeline_config(config_path)
        record_filter = load_default_filter(config_dir / pipeline_config.filters_file)
    except (ConfigurationError, FilterError) as e:
        click.echo(click.style(f"Configuration error: {e}", fg="red"), err=True)
        sys.exit(1)

    # CLI flags override config file settings
    if days is not None:
        pipeline_config.ai.max_days = days
    if delay is not None:
        pipeline_config.ai.delay_seconds = delay
    if strategy:
        pipeline_config.rules.strategy = strategy
    if workers is not None:
        pipeline_config.rules.workers = workers
    if skip_ai:
        pipeline_config.ai.enabled = False
    if skip_rules:
        pipeline_config.rules.enabled = False

    store = MarkdownEventStore(config_dir / pipeline_config.store.content_dir)
    try:
        records = store.load_events(
            source=source, future_only=pipeline_config.store.future_only
        )
    except StoreError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if not as_json:
        mode = "APPLY" if apply_changes else "DRY RUN"
        click.echo(f"\nMode: {click.style(mode, fg='red' if apply_changes else 'yellow')}")
        click.echo(f"Events loaded: {len(records)}")

    client = get_chat_client() if pipeline_config.ai.enabled else None
    if pipeline_config.ai.enabled and client is None:
        logger.warning(
            "AI service not configured. Set AZURE_OPENAI_API_KEY and "
            "AZURE_OPENAI_ENDPOINT, or OPENAI_API_KEY"
        )

    report = run_pipeline(
        records,
        pipeline_config,
        client,
        record_filter=record_filter,
        should_stop=is_interrupted,
    )

    deleted = 0
    remaining = None
    if apply_changes:
        try:
            deleted = apply_removals(
                store, report.remove_ids, batch_size=pipeline_config.store.batch_size
            )
            remaining = store.count()
        except StoreError as e:
            logger.error(f"Deletion failed: {e}")
            report.errors.append(str(e))

    if as_json:
        output = report.to_dict()
        output["applied"] = apply_changes
        output["deleted"] = deleted
        click.echo(json.dumps(output, indent=2, ensure_ascii=False))
    else:
        _print_report(report, apply_changes, deleted, remaining)

    save_status(
        config_dir,
        {
            "events_analyzed": report.events_analyzed,
            "duplicates_found": report.duplicates_found,
            "rule_removals": report.rule_removals,
            "ai_removals": report.ai_removals,
            "days_processed": report.days_processed,
            "tokens_used": report.tokens_used,
            "deleted": deleted,
            "errors": len(report.errors),
            "dry_run": not apply_changes,
            "interrupted": _interrupted,
        },
    )

    # Exit code
    if _interrupted:
        sys.exit(130)  # Standard exit code for SIGINT
    elif report.errors:
        sys.exit(1)
    else:
        sys.exit(0)


def _print_report(report, apply_changes: bool, deleted: int, remaining: int | None):
    for group in report.groups:
        click.echo(f"\n[{group.method}] Keep: \"{group.keep.title}\" ({group.keep.source})")
        for record in group.remove:
            click.echo(f"  - Remove: \"{record.title}\" ({record.source})")
        click.echo(f"    Reason: {group.reason}")

    for group in report.ai_groups:
        click.echo(f"\n[ai] {group.date}: remove {', '.join(group.remove)}")
        click.echo(f"    Reason: {group.reason}")

    click.echo("\n" + "=" * 50)
    click.echo(click.style("DEDUPLICATION SUMMARY", bold=True))
    click.echo("=" * 50)
    click.echo(f"  Events analyzed:    {report.events_analyzed}")
    click.echo(f"  Rule removals:      {report.rule_removals}")
    click.echo(f"  AI removals:        {report.ai_removals}")
    click.echo(f"  Days processed:     {report.days_processed}")
    click.echo(f"  Tokens used:        {report.tokens_used}")
    click.echo(f"  Total to remove:    {report.duplicates_found}")
    click.echo(f"  Errors:             {len(report.errors)}")
    click.echo("=" * 50)

    for error in report.errors:
        click.echo(click.style(f"  ✗ {error}", fg="red"))

    if apply_changes:
        click.echo(click.style(f"\nDeleted {deleted} events", fg="green"))
        if remaining is not None:
            click.echo(f"Remaining events: {remaining}")
    elif report.remove_ids:
        click.echo(click.style("\nDRY RUN - Run with --apply to delete", fg="yellow"))


@cli.command()
@click.option(
    "--date",
    "-d",
    "day",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Only report duplicates on this day",
)
@click.option(
    "--source",
    "-s",
    type=str,
    default=None,
    help="Only consider events from this source",
)
@click.pass_context
def analyze(ctx, day: datetime | None, source: str | None):
    """
    Report graded duplicate candidates as JSON.

    Uses the graded matcher (high/medium confidence) and never deletes.
    """
    cfg = ctx.obj["config"]
    config_path = ctx.obj["config_path"]
    config_dir = ctx.obj["config_dir"]

    setup_logging_from_config(
        cfg, config_dir, ctx.obj["log_level"], ctx.obj["log_file"], stream=sys.stderr
    )

    try:
        pipeline_config = load_pipeline_config(config_path)
    except ConfigurationError as e:
        click.echo(click.style(f"Configuration error: {e}", fg="red"), err=True)
        sys.exit(1)

    store = MarkdownEventStore(config_dir / pipeline_config.store.content_dir)
    try:
        # A past day can only be analyzed if past events are loaded
        records = store.load_events(
            source=source,
            future_only=pipeline_config.store.future_only and day is None,
        )
    except StoreError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    tz = pipeline_config.tz
    date_key = day.strftime("%Y-%m-%d") if day else None
    if date_key:
        records = [
            r for r in records if r.start_date.astimezone(tz).strftime("%Y-%m-%d") == date_key
        ]

    groups = find_duplicates(records, GradedMatcher(), timezone=tz)
    output = {
        "date": date_key,
        "events_analyzed": len(records),
        "duplicate_pairs": len(groups),
        "groups": [
            {
                **group.to_dict(),
                "date": group.keep.start_date.astimezone(tz).strftime("%Y-%m-%d"),
            }
            for group in groups
        ],
    }
    click.echo(json.dumps(output, indent=2, ensure_ascii=False))


@cli.command()
@click.pass_context
def validate(ctx):
    """
    Validate configuration files.

    Checks config.yaml against its schema, the default filter file and
    the content directory. Reports any validation issues found.
    """
    config_path = ctx.obj["config_path"]
    config_dir = ctx.obj["config_dir"]

    errors = []
    warnings = []
    pipeline_config = None

    click.echo("\nValidating configuration files...\n")

    # 1. Validate main config.yaml
    click.echo(f"  Checking {config_path.name}...")
    try:
        pipeline_config = load_pipeline_config(config_path)
        click.echo(click.style(f"    ✓ {config_path.name} is valid", fg="green"))
    except ConfigurationError as e:
        errors.append(str(e))

    if pipeline_config is not None:
        # 2. Validate default filter file
        filters_file = config_dir / pipeline_config.filters_file
        click.echo(f"  Checking {filters_file.name}...")
        if not filters_file.exists():
            warnings.append(f"Default filter file not found: {filters_file}")
            click.echo(click.style("    ! File not found (using defaults)", fg="yellow"))
        else:
            try:
                load_default_filter(filters_file)
                click.echo(click.style(f"    ✓ {filters_file.name} is valid", fg="green"))
            except FilterError as e:
                errors.append(f"Default filter error: {e}")

        # 3. Check content directory
        click.echo("  Checking content directory...")
        content_dir = config_dir / pipeline_config.store.content_dir
        if content_dir.exists():
            click.echo(click.style(f"    ✓ content_dir exists: {content_dir}", fg="green"))
        else:
            warnings.append(f"content_dir does not exist: {content_dir}")
            click.echo(click.style(f"    ! content_dir not found: {content_dir}", fg="yellow"))

        # 4. AI service credentials
        click.echo("  Checking AI service...")
        if not is_ai_available():
            warnings.append("AI service not configured (AI pass will be skipped)")
            click.echo(click.style("    ! No AI credentials in environment", fg="yellow"))
        else:
            click.echo(click.style("    ✓ AI service configured", fg="green"))

    # Report results
    click.echo("\n" + "=" * 50)
    if errors:
        click.echo(click.style("VALIDATION FAILED", fg="red", bold=True))
        click.echo("=" * 50)
        click.echo("\nErrors:")
        for error in errors:
            click.echo(click.style(f"  ✗ {error}", fg="red"))
    else:
        click.echo(click.style("VALIDATION PASSED", fg="green", bold=True))
        click.echo("=" * 50)

    if warnings:
        click.echo("\nWarnings:")
        for warning in warnings:
            click.echo(click.style(f"  ! {warning}", fg="yellow"))

    click.echo()

    sys.exit(1 if errors else 0)


@cli.command()
@click.pass_context
def status(ctx):
    """
    Show last run results.

    Displays summary statistics from the most recent deduplication run.
    """
    config_dir = ctx.obj["config_dir"]

    status_data = load_status(config_dir)

    if not status_data:
        click.echo("No previous run status found.")
        click.echo("Run 'python dedupe.py run' to perform a run.")
        return

    click.echo("\n" + "=" * 50)
    click.echo(click.style("LAST RUN STATUS", bold=True))
    click.echo("=" * 50)

    timestamp = status_data.get("timestamp", "Unknown")
    click.echo(f"  Timestamp:          {timestamp}")
    click.echo(f"  Events analyzed:    {status_data.get('events_analyzed', 0)}")
    click.echo(f"  Duplicates found:   {status_data.get('duplicates_found', 0)}")
    click.echo(f"  Days processed:     {status_data.get('days_processed', 0)}")
    click.echo(f"  Tokens used:        {status_data.get('tokens_used', 0)}")
    click.echo(f"  Deleted:            {status_data.get('deleted', 0)}")
    click.echo(f"  Errors:             {status_data.get('errors', 0)}")

    if status_data.get("dry_run"):
        click.echo(click.style("  Mode:               DRY RUN", fg="yellow"))

    if status_data.get("interrupted"):
        click.echo(click.style("  Status:             INTERRUPTED", fg="yellow"))
    elif status_data.get("errors", 0) > 0:
        click.echo(click.style("  Status:             COMPLETED WITH ERRORS", fg="red"))
    else:
        click.echo(click.style("  Status:             SUCCESS", fg="green"))

    click.echo("=" * 50)


if __name__ == "__main__":
    cli()
