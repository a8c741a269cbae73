"""Click-based CLI for Tablet Sync."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from pydantic import ValidationError

from tabsync import __version__
from tabsync.config import (
    ensure_config_exists,
    get_config_path,
    load_config,
    set_external_root,
    validate_config_file,
)
from tabsync.config.schema import TabSyncConfig
from tabsync.errors import ExternalRootNotSetError
from tabsync.library.models import Item
from tabsync.library.store import LibraryStore
from tabsync.logger import setup_logging
from tabsync.output.console import Console, create_console
from tabsync.sync.engine import ConflictInfo, Resolution, SyncEngine
from tabsync.utils.paths import FileSystem

PREFER_CHOICES = {
    "external": Resolution.USE_EXTERNAL,
    "internal": Resolution.USE_INTERNAL,
}


class AppContext:
    """Objects shared by all commands of one invocation."""

    def __init__(self, config_path: Optional[Path], verbose: bool):
        self.config_path = config_path
        self.verbose = verbose
        self._config: Optional[TabSyncConfig] = None
        self._console: Optional[Console] = None

    @property
    def console(self) -> Console:
        if self._console is None:
            if self._config is not None:
                self._console = create_console(
                    verbose=self.verbose or self._config.output.verbose,
                    colored=self._config.output.colored,
                    error_display_limit=self._config.output.error_display_limit,
                )
            else:
                self._console = create_console(verbose=self.verbose)
        return self._console

    def load(self) -> TabSyncConfig:
        """Load configuration, exiting with status 1 if it is missing or invalid."""
        if self._config is not None:
            return self._config
        try:
            config = load_config(self.config_path)
        except FileNotFoundError as e:
            self.console.print_error(str(e))
            sys.exit(1)
        except ValidationError as e:
            self.console.print_error(f"Invalid configuration:\n{e}")
            sys.exit(1)

        self._config = config
        self._console = None
        setup_logging(verbose=self.verbose or config.output.verbose, log_file=config.output.log_file)
        return config

    def open_engine(self) -> SyncEngine:
        config = self.load()
        library = LibraryStore.open(config.library)
        return SyncEngine(config, library, fs=FileSystem())


pass_app = click.make_pass_decorator(AppContext)


def _lookup(engine: SyncEngine, console: Console, keys: tuple[str, ...]) -> list[Item]:
    """Resolve item keys, warning about unknown ones."""
    items = []
    for key in keys:
        item = engine.library.get(key)
        if item is None:
            console.print_warning(f"Unknown item: {key}")
        else:
            items.append(item)
    return items


def _make_resolver(console: Console, prefer: Optional[str]):
    if prefer:
        resolution = PREFER_CHOICES[prefer]
        return lambda conflict: resolution

    def ask(conflict: ConflictInfo) -> Resolution:
        return console.resolve_conflict(conflict)

    return ask


def _confirm_batch(engine: SyncEngine, console: Console, operation: str, count: int, yes: bool) -> bool:
    if yes or not engine.needs_batch_confirmation(count):
        return True
    return console.confirm_batch(operation, count)


@click.group()
@click.version_option(version=__version__, prog_name="tabsync")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (default: ~/.config/tabsync/config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """Tablet Sync - send library PDFs to a tablet folder and bring them back.

    \b
    Workflow:
      tabsync send KEY...     copy or move files to the external folder
      tabsync check           mark files that were annotated externally
      tabsync get KEY...      bring files back into the library
      tabsync sync            bring back every modified file
    """
    ctx.obj = AppContext(config_path, verbose)


# ==================== Sync commands ====================


@cli.command()
@click.argument("keys", nargs=-1, required=True)
@click.option("--project", "-p", help="Project folder label or subfolder of the external root")
@click.option("--yes", "-y", is_flag=True, help="Do not ask before large batches")
@pass_app
def send(app: AppContext, keys: tuple[str, ...], project: Optional[str], yes: bool) -> None:
    """Send files to the external folder.

    KEYS are item keys; regular items send all their PDF attachments.
    """
    engine = app.open_engine()
    console = app.console

    selection = engine.expand_selection(_lookup(engine, console, keys))
    validation = engine.validate_for_send(selection)
    if validation.invalid:
        console.print_warning(f"{len(validation.invalid)} item(s) cannot be sent")
        console.print_invalid(validation.invalid)
    if not validation.valid:
        console.print_info("Nothing to send")
        return

    if not _confirm_batch(engine, console, "Send", len(validation.valid), yes):
        console.print_warning("Send cancelled")
        return

    try:
        summary = asyncio.run(engine.send(validation.valid, project))
    except ExternalRootNotSetError as e:
        console.print_error(str(e))
        sys.exit(1)

    console.print_summary(summary)
    if summary.has_errors:
        sys.exit(1)


@cli.command()
@click.argument("keys", nargs=-1)
@click.option("--all", "all_items", is_flag=True, help="Retrieve every file on external storage")
@click.option(
    "--prefer",
    type=click.Choice(list(PREFER_CHOICES)),
    help="Resolve conflicts without prompting",
)
@click.option("--no-extract", is_flag=True, help="Skip annotation extraction")
@click.option("--yes", "-y", is_flag=True, help="Do not ask before large batches")
@pass_app
def get(
    app: AppContext,
    keys: tuple[str, ...],
    all_items: bool,
    prefer: Optional[str],
    no_extract: bool,
    yes: bool,
) -> None:
    """Bring files back from the external folder.

    Files changed on both sides are conflicts; you are asked which copy
    to keep unless --prefer is given.
    """
    engine = app.open_engine()
    console = app.console

    if all_items:
        selection = engine.tracked_items()
    elif keys:
        selection = engine.expand_selection(_lookup(engine, console, keys))
    else:
        console.print_error("Give item keys or --all")
        sys.exit(2)

    validation = engine.validate_for_get(selection)
    if validation.invalid and app.verbose:
        console.print_invalid(validation.invalid)
    if not validation.valid:
        console.print_info("Nothing to retrieve")
        return

    if not _confirm_batch(engine, console, "Retrieve", len(validation.valid), yes):
        console.print_warning("Retrieve cancelled")
        return

    resolver = _make_resolver(console, prefer)
    summary = asyncio.run(engine.retrieve(validation.valid, resolver, extract=not no_extract))

    console.print_summary(summary)
    if summary.has_errors and len(summary.errors) > summary.skipped:
        sys.exit(1)


@cli.command()
@click.argument("keys", nargs=-1)
@pass_app
def check(app: AppContext, keys: tuple[str, ...]) -> None:
    """Mark files whose external copy changed since they were sent."""
    engine = app.open_engine()
    console = app.console

    items = engine.expand_selection(_lookup(engine, console, keys)) if keys else None
    result = asyncio.run(engine.check_modifications(items))
    console.print_check_result(result)


@cli.command()
@click.option(
    "--prefer",
    type=click.Choice(list(PREFER_CHOICES)),
    help="Resolve conflicts without prompting",
)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@pass_app
def sync(app: AppContext, prefer: Optional[str], yes: bool) -> None:
    """Retrieve every file modified on external storage."""
    engine = app.open_engine()
    console = app.console

    def confirm(count: int) -> bool:
        if yes:
            return True
        return console.confirm(f"Sync {count} modified file(s)?", default=True)

    summary = asyncio.run(engine.sync_modified(_make_resolver(console, prefer), confirm=confirm))
    if summary is None:
        console.print_success("Everything is in sync!")
        return

    console.print_summary(summary)
    if summary.has_errors and len(summary.errors) > summary.skipped:
        sys.exit(1)


@cli.command()
@click.option("--all", "show_all", is_flag=True, help="Include items without a status")
@pass_app
def status(app: AppContext, show_all: bool) -> None:
    """Show sync and reading list status of library attachments."""
    engine = app.open_engine()
    console = app.console

    rows = []
    for item in sorted(engine.library.items(), key=lambda i: i.key):
        if not item.is_attachment or item.is_top_level:
            continue
        item_status = engine.status_of(item)
        if not item_status.value and not show_all:
            continue
        record = engine.record_of(item)
        location = record.external_location if record is not None else None
        rows.append((item, item_status, location))

    console.print_status_table(rows)


# ==================== Reading list ====================


@cli.group()
def reading() -> None:
    """Manage the reading list."""
    pass


@reading.command("add")
@click.argument("keys", nargs=-1, required=True)
@pass_app
def reading_add(app: AppContext, keys: tuple[str, ...]) -> None:
    """Add items to the reading list."""
    engine = app.open_engine()
    items = _lookup(engine, app.console, keys)
    added = asyncio.run(engine.reading_list.add(items))
    app.console.print_success(f"Added {added} item(s) to the reading list")


@reading.command("remove")
@click.argument("keys", nargs=-1, required=True)
@pass_app
def reading_remove(app: AppContext, keys: tuple[str, ...]) -> None:
    """Remove items from the reading list."""
    engine = app.open_engine()
    items = _lookup(engine, app.console, keys)
    removed = asyncio.run(engine.reading_list.remove(items))
    app.console.print_success(f"Removed {removed} item(s) from the reading list")


@reading.command("list")
@pass_app
def reading_list(app: AppContext) -> None:
    """List the reading list."""
    engine = app.open_engine()
    items = engine.reading_list.items()
    if not items:
        app.console.print_info("The reading list is empty")
        return
    app.console.print_items(items, title=f"Reading list ({len(items)})")


# ==================== Library ====================


@cli.group()
def library() -> None:
    """Manage the library."""
    pass


@library.command("add")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--title", "-t", default="", help="Item title (default: file name)")
@click.option("--author", "-a", "authors", multiple=True, help="Author last name (repeatable)")
@click.option("--year", "-y", default="", help="Publication year")
@click.option("--journal", "-j", default="", help="Journal or publication title")
@click.option("--link", is_flag=True, help="Link the file in place instead of copying it")
@pass_app
def library_add(
    app: AppContext,
    file: Path,
    title: str,
    authors: tuple[str, ...],
    year: str,
    journal: str,
    link: bool,
) -> None:
    """Add a file to the library."""
    config = app.load()
    store = LibraryStore.open(config.library)

    parent, attachment = asyncio.run(
        store.import_file(
            file,
            title=title,
            creators=list(authors),
            date=year,
            publication_title=journal,
            link=link,
        )
    )
    app.console.print_success(f"Added {attachment.filename} as {attachment.key} (parent {parent.key})")


# ==================== Configuration ====================


@cli.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("init")
@click.option(
    "--external-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="External folder to send files to",
)
@pass_app
def config_init(app: AppContext, external_root: Optional[Path]) -> None:
    """Create a default configuration file."""
    path, created = ensure_config_exists(app.config_path)
    if created:
        app.console.print_success(f"Created configuration: {path}")
    else:
        app.console.print_info(f"Configuration already exists: {path}")

    if external_root is not None:
        set_external_root(external_root, path)
        app.console.print_success(f"External root set to {external_root.expanduser()}")


@config.command("show")
@pass_app
def config_show(app: AppContext) -> None:
    """Show the effective configuration."""
    config = app.load()
    path = app.config_path or get_config_path()
    app.console.print_config_summary(str(path), config.sync.external_root, config.sync.mode.value)
    text = yaml.dump(config.model_dump(mode="json"), default_flow_style=False, sort_keys=False)
    app.console.print(text, markup=False)


@config.command("validate")
@pass_app
def config_validate(app: AppContext) -> None:
    """Validate the configuration file."""
    valid, errors = validate_config_file(app.config_path)
    if valid:
        app.console.print_success("Configuration is valid")
        return
    for error in errors:
        app.console.print_error(error)
    sys.exit(1)


@config.command("path")
@pass_app
def config_path(app: AppContext) -> None:
    """Print the configuration file path."""
    click.echo(str(app.config_path or get_config_path()))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
