"""Command line front end for YTSearch."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ytsearch.dependencies import (
    get_preferences_repository,
    get_search_service,
    get_settings,
)
from ytsearch.logging_config import configure_application_logging
from ytsearch.models.preferences import Prefs
from ytsearch.services.block_list import (
    BlockListError,
    block_channel,
    parse_block_entry,
    unblock_channel,
)
from ytsearch.services.duration_buckets import DurationFilterState, toggle_duration_bucket
from ytsearch.services.errors import SearchConfigurationError, YTSearchError
from ytsearch.services.preset_ops import (
    delete_preset,
    duplicate_preset,
    export_preset,
    import_preset,
)
from ytsearch.services.query_builder import build_query_params, build_query_text
from ytsearch.services.result_views import (
    ResultSort,
    format_duration,
    sort_results,
    visible_results,
)
from ytsearch.services.search_runner import RunMode
from ytsearch.services.time_window import hours_back_window, resolve_window, time_window_label

console = Console()
err_console = Console(stderr=True)


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Echo log records to stderr.")
def main(verbose: bool) -> None:
    """YTSearch - multi-preset YouTube search from the terminal."""
    configure_application_logging(get_settings(), console=verbose)


@main.command()
@click.option("--preset", "preset_id", help="Run a single preset by id (default: all enabled).")
@click.option("--hours", type=click.IntRange(min=0), help="Query this many hours back instead.")
@click.option("--region", help='Override the region code ("none" clears it).')
@click.option("--allow-any-language", is_flag=True, help="Disable English-only filtering.")
@click.option("--ignore-not-terms", is_flag=True, help="Drop NOT terms for this run.")
@click.option("--query", "query_text", help="Override the free-text query of every preset.")
@click.option("--min-duration", type=click.IntRange(min=0), help="Minimum duration in seconds.")
@click.option("--dry-run", is_flag=True, help="Print request parameters without calling the API.")
@click.option("--limit", default=10, show_default=True, type=click.IntRange(min=0))
@click.option(
    "--sort",
    "sort_order",
    type=click.Choice([order.value for order in ResultSort]),
    default=ResultSort.NEWEST.value,
    show_default=True,
)
@click.option("--save/--no-save", default=None, help="Cache these results (default: only without overrides).")
def run(
    preset_id: str | None,
    hours: int | None,
    region: str | None,
    allow_any_language: bool,
    ignore_not_terms: bool,
    query_text: str | None,
    min_duration: int | None,
    dry_run: bool,
    limit: int,
    sort_order: str,
    save: bool | None,
) -> None:
    """Run presets and print the merged results."""
    prefs = get_preferences_repository().load()
    overridden = _apply_run_overrides(
        prefs,
        hours=hours,
        region=region,
        allow_any_language=allow_any_language,
        ignore_not_terms=ignore_not_terms,
        query_text=query_text,
        min_duration=min_duration,
    )
    mode = RunMode.single(preset_id) if preset_id else RunMode.any_enabled()

    if dry_run:
        _print_dry_run(prefs, mode)
        return

    service = get_search_service()
    try:
        outcome = service.run(prefs, mode)
    except YTSearchError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    should_save = (not overridden) if save is None else save
    if should_save:
        service.remember(prefs, mode, outcome)

    console.print(
        f"presets: {outcome.presets_ran} pages: {outcome.pages_fetched} "
        f"raw: {outcome.raw_items} unique: {outcome.unique_ids} "
        f"passed: {outcome.passed_filters} kept: {len(outcome.videos)} "
        f"duplicates: {outcome.duplicates_within_presets + outcome.duplicates_across_presets}",
        highlight=False,
    )
    for failure in outcome.failed_presets:
        err_console.print(f"[yellow]Preset failed:[/yellow] {failure.message}")

    videos = sort_results(outcome.videos, ResultSort(sort_order))[:limit]
    if videos:
        table = Table("Published", "Duration", "Presets", "Channel", "Title")
        for video in videos:
            table.add_row(
                video.published_at,
                format_duration(video.duration_secs),
                escape("+".join(video.source_presets)),
                escape(video.channel_display_name or video.channel_title),
                escape(video.title),
            )
        console.print(table)


@main.command()
@click.option("--preset", "preset_id", help="Only show videos found by this preset.")
@click.option(
    "--sort",
    "sort_order",
    type=click.Choice([order.value for order in ResultSort]),
    default=ResultSort.NEWEST.value,
    show_default=True,
)
def last(preset_id: str | None, sort_order: str) -> None:
    """Show the most recently cached results."""
    prefs = get_preferences_repository().load()
    cached = get_search_service().last_results(prefs)
    if cached is None:
        console.print("[yellow]No cached results yet.[/yellow]")
        return

    order = ResultSort(sort_order)
    mode = RunMode.single(preset_id) if preset_id else RunMode.any_enabled()
    videos = visible_results(cached.videos, prefs, mode, order=order)
    console.print(
        f"Cached {cached.generated_at} - {escape(cached.status_line)} [dim](by {order.label.lower()})[/dim]",
        highlight=False,
    )
    for video in videos:
        console.print(f"  {video.published_at}  {escape(video.title)}  [dim]{video.url}[/dim]", highlight=False)


@main.group(invoke_without_command=True)
@click.pass_context
def presets(ctx: click.Context) -> None:
    """List presets, or manage them with a subcommand."""
    if ctx.invoked_subcommand is not None:
        return

    prefs = get_preferences_repository().load()
    table = Table("Id", "Name", "Enabled", "Built-in", "Query")
    for preset in prefs.searches:
        table.add_row(
            preset.id,
            escape(preset.name),
            "yes" if preset.enabled else "no",
            "yes" if preset.system else "",
            escape(build_query_text(preset.query)),
        )
    console.print(table)


@presets.command(name="export")
@click.argument("preset_id")
def export_preset_command(preset_id: str) -> None:
    """Print one preset as JSON."""
    preset = get_preferences_repository().load().find_preset(preset_id)
    if preset is None:
        err_console.print(f"[red]Preset '{preset_id}' not found.[/red]")
        raise SystemExit(1)
    click.echo(export_preset(preset))


@presets.command(name="import")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_preset_command(source: Path) -> None:
    """Add a preset from a JSON file (a preset, a list, or a prefs document)."""
    repository = get_preferences_repository()
    prefs = repository.load()
    try:
        stored = import_preset(prefs, source.read_text(encoding="utf-8"))
    except SearchConfigurationError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc
    repository.save(prefs)
    console.print(f"[green]Imported preset:[/green] {stored.name} ({stored.id})")


@presets.command(name="duplicate")
@click.argument("preset_id")
def duplicate_preset_command(preset_id: str) -> None:
    repository = get_preferences_repository()
    prefs = repository.load()
    try:
        duplicate = duplicate_preset(prefs, preset_id)
    except SearchConfigurationError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc
    repository.save(prefs)
    console.print(f"[green]Created preset:[/green] {duplicate.name} ({duplicate.id})")


@presets.command(name="delete")
@click.argument("preset_id")
def delete_preset_command(preset_id: str) -> None:
    repository = get_preferences_repository()
    prefs = repository.load()
    try:
        removed = delete_preset(prefs, preset_id)
    except SearchConfigurationError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc
    repository.save(prefs)
    console.print(f"Removed preset '{removed.name}'.")


@presets.command(name="reset")
def reset_presets_command() -> None:
    """Restore built-in presets (keeps the API key and minimum duration)."""
    repository = get_preferences_repository()
    repository.reset_to_defaults(repository.load())
    console.print("Defaults restored.")


@main.command()
@click.argument("channel_id")
@click.option("--title", default="", help="Channel title used as the label.")
def block(channel_id: str, title: str) -> None:
    """Hide a channel from all results."""
    repository = get_preferences_repository()
    prefs = repository.load()
    try:
        prefs.blocked_channels = block_channel(
            prefs.blocked_channels,
            channel_id=channel_id,
            channel_title=title,
        )
    except BlockListError as exc:
        err_console.print(f"[yellow]{exc}[/yellow]")
        raise SystemExit(1) from exc
    repository.save(prefs)
    console.print(f"Blocked channel: {title or channel_id}")


@main.command()
@click.argument("channel_key", required=False)
def unblock(channel_key: str | None) -> None:
    """Unblock a channel, or list blocked channels when no key is given."""
    repository = get_preferences_repository()
    prefs = repository.load()
    if channel_key is None:
        if not prefs.blocked_channels:
            console.print("(no blocked channels)")
        for entry in prefs.blocked_channels:
            parsed = parse_block_entry(entry)
            console.print(f"  {parsed.key}  [dim]{escape(parsed.label)}[/dim]", highlight=False)
        return

    remaining, changed = unblock_channel(prefs.blocked_channels, channel_key)
    if not changed:
        err_console.print(f"[yellow]Channel '{channel_key}' is not blocked.[/yellow]")
        raise SystemExit(1)
    prefs.blocked_channels = remaining
    repository.save(prefs)
    console.print(f"Unblocked channel: {channel_key}")


@main.command()
@click.option("--toggle", "bucket_id", help="Toggle a duration bucket by id.")
def buckets(bucket_id: str | None) -> None:
    """Show duration buckets and their selection."""
    repository = get_preferences_repository()
    prefs = repository.load()
    if bucket_id is not None:
        if prefs.global_prefs.duration_filters.bucket_by_id(bucket_id) is None:
            err_console.print(f"[red]Duration bucket '{bucket_id}' not found.[/red]")
            raise SystemExit(1)
        if toggle_duration_bucket(prefs.global_prefs, bucket_id):
            repository.save(prefs)

    state = DurationFilterState.from_global(prefs.global_prefs)
    for bucket in state.buckets:
        marker = "[green]*[/green]" if bucket.selected else " "
        console.print(f"{marker} {bucket.config.id:<10} {bucket.config.label}", highlight=False)


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host: str, port: int) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from ytsearch.main import create_app

    uvicorn.run(create_app(), host=host, port=port)


def _apply_run_overrides(
    prefs: Prefs,
    *,
    hours: int | None,
    region: str | None,
    allow_any_language: bool,
    ignore_not_terms: bool,
    query_text: str | None,
    min_duration: int | None,
) -> bool:
    overridden = False
    if hours is not None:
        window = hours_back_window(hours)
        for preset in prefs.searches:
            preset.window_override = window
        overridden = True

    if region is not None:
        cleaned = region.strip()
        prefs.global_prefs.region_code = (
            None if not cleaned or cleaned.lower() == "none" else cleaned.upper()
        )
        overridden = True

    for preset in prefs.searches:
        if allow_any_language:
            preset.english_only_override = False
        if ignore_not_terms:
            preset.query.not_terms = []
        if query_text is not None:
            preset.query.q = query_text
        if min_duration is not None:
            preset.min_duration_override = min_duration

    return overridden or any(
        (allow_any_language, ignore_not_terms, query_text is not None, min_duration is not None)
    )


def _print_dry_run(prefs: Prefs, mode: RunMode) -> None:
    targets = [
        preset
        for preset in prefs.searches
        if (preset.enabled if mode.is_any else preset.id == mode.preset_id)
    ]
    if not targets:
        err_console.print("[yellow]No presets selected.[/yellow]")
        return

    for preset in targets:
        try:
            params = build_query_params(prefs.global_prefs, preset)
        except SearchConfigurationError as exc:
            err_console.print(f"[red]{preset.name}:[/red] {exc}")
            continue
        window = resolve_window(prefs.global_prefs, preset)
        if window is not None:
            params.append(("publishedAfter", window.start_rfc3339))
            params.append(("publishedBefore", window.end_rfc3339))
        window_label = (
            "custom window"
            if preset.window_override is not None
            else time_window_label(prefs.global_prefs.default_window)
        )
        console.print(f"[bold]{preset.name}[/bold] ({window_label}) => {escape(str(params))}", highlight=False)


if __name__ == "__main__":
    main()
