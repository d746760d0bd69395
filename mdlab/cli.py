"""
CLI interface for mdlab with Rich output.
"""

import logging
import shutil
import signal
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.status import Status
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from mdlab.cancellation import CancelToken
from mdlab.config import Settings, load_settings
from mdlab.directives import DIRECTIVE_DESCRIPTIONS, Directive, DirectiveKind
from mdlab.kernel import Kernel
from mdlab.languages import get_processor
from mdlab.notebook import Cell, Notebook
from mdlab.session import DocumentSession
from mdlab.utils import get_cell_status, get_cell_type_icon, render_code, search_notes, truncate_text

console = Console()

STARTER_CELLS = [
    Cell.prose("# {name}\n\nCode blocks run when you ask for them. Output is written back below each block."),
    Cell.code("python", 'greeting = "hello"\ngreeting', language_tag="python"),
    Cell.prose("Later blocks see everything defined above them:"),
    Cell.code("python", "print(greeting.upper())", language_tag="python"),
]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
    )
    logging.getLogger("mdlab").setLevel(level)


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _open(ctx: click.Context, path: str) -> DocumentSession:
    return DocumentSession.open(Path(path), settings=_settings(ctx))


def _cell_panel(index: int, cell: Cell) -> Panel:
    _, status_style = get_cell_status(cell)
    icon = get_cell_type_icon(cell)

    if cell.is_code:
        content = render_code(cell)
        badge = f" [magenta]:{cell.directive}[/magenta]" if cell.directive else ""
        title = f"[{status_style}][{index}] {icon}[/{status_style}]{badge}"
    else:
        content = Markdown(cell.content) if cell.content.strip() else Text("(empty)", style="dim italic")
        title = f"[dim][{index}] {icon}[/dim]"

    return Panel(
        content,
        title=title,
        title_align="left",
        border_style="blue" if cell.is_code else "dim",
        padding=(0, 1),
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug information")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """mdlab: run the code blocks of Markdown documents."""
    settings = load_settings()
    _configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.argument("path", type=click.Path(), required=False, default=None)
@click.option("--name", "-n", default=None, help="Document title")
@click.pass_context
def new(ctx: click.Context, path: Optional[str], name: Optional[str]):
    """Create a new document (defaults to the notes index file)."""
    target = Path(path) if path else _settings(ctx).index_file
    if target.exists():
        console.print(f"[red]Already exists:[/red] {target}")
        sys.exit(1)

    if name is None:
        name = target.stem
    nb = Notebook.new(name=name)
    for cell in STARTER_CELLS:
        nb.add_cell(cell.model_copy(update={"content": cell.content.format(name=name)}))
    nb.save(target)

    console.print(Panel(
        f"[green]Created:[/green] {target}\n"
        f"[dim]Cells:[/dim] {len(nb.cells)} ({len(nb.code_cells())} code)",
        title="[bold blue]mdlab[/bold blue]",
        border_style="green",
    ))
    console.print(f"\n[dim]Run with:[/dim] mdlab run {target}")


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.pass_context
def show(ctx: click.Context, path: str):
    """Render a document's cells."""
    session = _open(ctx, path)
    for i, cell in enumerate(session.notebook.cells):
        console.print(_cell_panel(i, cell))
        if cell.is_code and cell.captured_output:
            console.print(Panel(
                Text(cell.captured_output),
                title="[green]Output[/green]",
                title_align="left",
                border_style="green",
                padding=(0, 1),
            ))


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--cell", "-c", "cells", type=int, multiple=True, help="Cell index to run (repeatable)")
@click.option("--all", "run_all", is_flag=True, help="Run every code cell")
@click.option("--no-save", is_flag=True, help="Do not write output back to the document")
@click.pass_context
def run(ctx: click.Context, path: str, cells: tuple, run_all: bool, no_save: bool):
    """Run code cells and write their output back into the document."""
    session = _open(ctx, path)
    kernel = Kernel(session.settings)

    if cells and not run_all:
        indices = list(cells)
        for index in indices:
            if not 0 <= index < len(session.notebook.cells) or not session.notebook.cells[index].is_code:
                console.print(f"[red]Cell {index} is not a code cell[/red]")
                sys.exit(1)
    else:
        indices = [i for i, _ in session.notebook.code_cells()]

    if not indices:
        console.print("[yellow]No code cells to execute[/yellow]")
        return

    token = CancelToken()
    failures = 0
    # Ctrl-C cancels the running cell through the token
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
    try:
        for index in indices:
            if token.is_cancelled:
                break
            cell = session.notebook.cells[index]
            console.print(f"[dim]--- Cell {index} ({cell.language}) ---[/dim]")
            with Status("Executing...", console=console, spinner="dots"):
                result = kernel.execute_cell(session, index, token=token)

            if result.error:
                console.print(f"[red]{result.error}[/red]")
            elif result.output:
                console.print(Text(result.output))
            if not result.success:
                failures += 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if token.is_cancelled:
        console.print("[yellow]Cancelled[/yellow]")

    if not no_save:
        session.save()

    total = len(indices)
    if failures:
        console.print(f"[yellow]{total - failures}/{total} cells succeeded[/yellow]")
        sys.exit(1)
    console.print(f"[green]All {total} cells executed successfully[/green]")


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--check", is_flag=True, help="Exit 1 if the file would change")
def fmt(path: str, check: bool):
    """Rewrite a document through the parser and serializer."""
    original = Path(path).read_text(encoding="utf-8")
    formatted = Notebook.from_markdown(original).to_markdown()

    if formatted == original:
        console.print(f"[green]Unchanged:[/green] {path}")
        return
    if check:
        console.print(f"[yellow]Would reformat:[/yellow] {path}")
        sys.exit(1)
    Path(path).write_text(formatted, encoding="utf-8")
    console.print(f"[green]Reformatted:[/green] {path}")


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.argument("index", type=int)
@click.argument("directive", type=click.Choice([k.value for k in DirectiveKind]), required=False)
@click.option("--value", default=None, help="Filename for the create directive")
@click.pass_context
def tag(ctx: click.Context, path: str, index: int, directive: Optional[str], value: Optional[str]):
    """Set a cell's directive, or clear it when DIRECTIVE is omitted."""
    session = _open(ctx, path)
    try:
        new_directive = Directive.of(DirectiveKind(directive), value) if directive else None
        session.set_directive(index, new_directive)
    except (IndexError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    session.save()

    if new_directive is None:
        console.print(f"Cleared directive on cell {index}")
    else:
        console.print(
            f"Cell {index}: [magenta]:{new_directive}[/magenta] "
            f"[dim]{DIRECTIVE_DESCRIPTIONS[new_directive.kind]}[/dim]"
        )


@main.command(name="main")
@click.argument("path", type=click.Path(exists=True))
@click.option("--language", "-l", default=None, help="Language (defaults to the last code cell's)")
@click.pass_context
def main_file(ctx: click.Context, path: str, language: Optional[str]):
    """Show the program generated for a language."""
    session = _open(ctx, path)
    if language is None:
        code = session.notebook.code_cells()
        language = code[-1][1].language if code else None

    main_path = session.main_file_path(language)
    if main_path is None:
        console.print(f"[red]No generated program for {language or 'this document'}[/red]")
        sys.exit(1)
    if not main_path.exists():
        console.print(f"[yellow]{main_path} does not exist yet; run a {language} cell first[/yellow]")
        sys.exit(1)

    console.print(f"[dim]{main_path}[/dim]")
    syntax_language = get_processor(language).name
    console.print(Syntax(main_path.read_text(encoding="utf-8"), syntax_language, theme="monokai", line_numbers=True))


@main.command()
@click.pass_context
def clean(ctx: click.Context):
    """Delete the temporary workspace."""
    temp_path = _settings(ctx).temp_path
    if not temp_path.exists():
        console.print(f"[dim]Nothing to clean at {temp_path}[/dim]")
        return
    shutil.rmtree(temp_path)
    console.print(f"[green]Removed[/green] {temp_path}")


@main.command()
@click.argument("query")
@click.option("--limit", default=50, help="Maximum number of matches")
@click.pass_context
def search(ctx: click.Context, query: str, limit: int):
    """Search Markdown notes under the base path."""
    base_path = _settings(ctx).base_path
    hits = list(search_notes(base_path, query, limit=limit))
    if not hits:
        console.print(f"[yellow]No matches for '{query}' in {base_path}[/yellow]")
        return

    table = Table(title=f"Matches for '{query}'", border_style="blue")
    table.add_column("File", style="cyan")
    table.add_column("Line", justify="right", style="dim")
    table.add_column("Text", style="white")
    for hit in hits:
        try:
            shown = hit.path.relative_to(base_path)
        except ValueError:
            shown = hit.path
        table.add_row(str(shown), str(hit.line_number), truncate_text(hit.line, 80))
    console.print(table)


if __name__ == "__main__":
    main()
