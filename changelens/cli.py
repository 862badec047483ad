"""Typer-based CLI for ChangeLens."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__, config
from .config_manager import (
    DEFAULT_CONTEXT_CONFIG,
    load_context_config,
    reset_context_config,
    save_context_setting,
)
from .errors import ChangeLensError, GitError, ParseError
from .models import ChangedSnippet, ContextSettings
from .pipeline import ChangeLocalizationPipeline
from .vcs import GitClient

console = Console()

app = typer.Typer(
    help="🔎 ChangeLens: locate changed code units and gather context for test generation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Configuration: bundling depth, token budget and import resolution.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"ChangeLens v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """ChangeLens: diff-driven code localization and context bundling."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _settings(max_depth: Optional[int], token_limit: Optional[int]) -> ContextSettings:
    settings = config.current_settings()
    if max_depth is not None:
        settings.max_depth = max_depth
    if token_limit is not None:
        settings.token_limit = token_limit
    return settings


def _snippet_table(snippets: List[ChangedSnippet], root: Path) -> Table:
    table = Table(title="Changed code units")
    table.add_column("File")
    table.add_column("Lines", justify="right")
    table.add_column("Kind")
    table.add_column("Name")
    table.add_column("Changed", justify="right")
    for s in snippets:
        try:
            shown = str(Path(s.file_path).relative_to(root))
        except ValueError:
            shown = s.file_path
        table.add_row(
            shown,
            f"{s.start_line}-{s.end_line}",
            s.kind,
            s.name or "-",
            ", ".join(str(n) for n in s.changed_lines),
        )
    return table


@app.command("locate")
def locate(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file the diff applies to."),
    diff: Path = typer.Option(..., "--diff", "-d", exists=True, dir_okay=False, help="Unified diff of FILE."),
    show_code: bool = typer.Option(False, "--code", "-c", help="Print each snippet's source."),
    project_root: Path = typer.Option(Path("."), "--root", "-r", exists=True, file_okay=False, help="Project root."),
):
    """📍 Locate changed code units in one file from a saved diff.

    Example:
      changelens locate src/app.ts --diff app.diff
    """
    root = project_root.resolve()
    pipeline = ChangeLocalizationPipeline(root, settings=config.current_settings())
    try:
        snippets = pipeline.locate_changes(file.resolve(), diff.read_text(encoding="utf-8"))
    except ParseError as e:
        typer.echo(f"❌ Could not parse {file}: {e}")
        raise typer.Exit(1)
    except (OSError, UnicodeDecodeError) as e:
        typer.echo(f"❌ Could not read {file}: {e}")
        raise typer.Exit(1)

    if not snippets:
        typer.echo("Nothing to do: no changed code units found.")
        return

    console.print(_snippet_table(snippets, root))
    if show_code:
        for s in snippets:
            typer.echo(f"\n--- {s.kind} {s.name or ''} ({s.start_line}-{s.end_line}) ---")
            typer.echo(s.text)


@app.command("changes")
def changes(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Repository root."),
    base: Optional[str] = typer.Option(None, "--base", "-b", help="Git ref to diff against (default HEAD)."),
):
    """🧩 List changed code units across the working tree.

    Example:
      changelens changes . --base main
    """
    root = path.resolve()
    git = GitClient(root)
    pipeline = ChangeLocalizationPipeline(root, settings=config.current_settings())
    try:
        result = pipeline.run(
            git.changed_files(base),
            lambda f: git.file_diff(f, base),
            with_context=False,
        )
    except GitError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    for skipped, reason in result.skipped.items():
        if reason != "unsupported or excluded":
            typer.echo(f"⚠️  Skipped {skipped}: {reason}")
    if result.is_empty:
        typer.echo("Nothing to do: no changed code units found.")
        return
    console.print(_snippet_table(result.snippets, root))


@app.command("context")
def context(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Repository root."),
    base: Optional[str] = typer.Option(None, "--base", "-b", help="Git ref to diff against (default HEAD)."),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=0, help=f"Import levels to follow (configured: {config.MAX_DEPTH})."),
    token_limit: Optional[int] = typer.Option(None, "--token-limit", min=1, help=f"Token budget per snippet (configured: {config.TOKEN_LIMIT})."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the payload to this file."),
):
    """📦 Build the context payload for every changed code unit.

    Example:
      changelens context . --max-depth 3 --output context.txt
    """
    root = path.resolve()
    git = GitClient(root)
    settings = _settings(max_depth, token_limit)
    pipeline = ChangeLocalizationPipeline(root, settings=settings)
    try:
        result = pipeline.run(git.changed_files(base), lambda f: git.file_diff(f, base))
    except ChangeLensError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if result.is_empty:
        typer.echo("Nothing to do: no changed code units found.")
        return

    sections = []
    for snippet, text in zip(result.snippets, result.contexts):
        header = f"/* {snippet.file_path}:{snippet.start_line}-{snippet.end_line} {snippet.kind} */"
        sections.append(f"{header}\n{text}")
    payload = "\n".join(sections)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(payload, encoding="utf-8")
        typer.echo(f"✅ Context for {len(result.snippets)} unit(s) written to {output}")
    else:
        typer.echo(payload)

    if result.truncated:
        typer.echo("⚠️  Token budget reached: some context was truncated.", err=True)


# ------------------------------------------------------------------
# config
# ------------------------------------------------------------------

@config_app.command("show")
def config_show():
    """Show the effective [context] settings."""
    table = Table(title=f"Settings ({config.CONFIG_FILE})")
    table.add_column("Key")
    table.add_column("Value")
    for key, value in load_context_config(config.CONFIG_FILE).items():
        shown = ", ".join(value) if isinstance(value, list) else str(value)
        table.add_row(key, shown)
    console.print(table)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name."),
    value: str = typer.Argument(..., help="New value (comma-separated for lists)."),
):
    """Change one [context] setting."""
    if key not in DEFAULT_CONTEXT_CONFIG:
        typer.echo(f"❌ Unknown setting '{key}'. Known: {', '.join(DEFAULT_CONTEXT_CONFIG)}")
        raise typer.Exit(1)
    try:
        saved = save_context_setting(key, value, config.CONFIG_FILE)
    except ValueError as e:
        typer.echo(f"❌ Invalid value for {key}: {e}")
        raise typer.Exit(1)
    if not saved:
        typer.echo(f"❌ Could not write {config.CONFIG_FILE}")
        raise typer.Exit(1)
    typer.echo(f"✅ {key} = {value}")


@config_app.command("reset")
def config_reset():
    """Restore default [context] settings."""
    if not reset_context_config(config.CONFIG_FILE):
        typer.echo(f"❌ Could not write {config.CONFIG_FILE}")
        raise typer.Exit(1)
    typer.echo("✅ Settings reset to defaults")
