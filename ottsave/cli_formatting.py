"""Rich CLI formatting helpers for ottsave commands."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .codec.records import Record, SparseRecords

console = Console()


def print_header(title: str):
    """Print a styled section header."""
    console.print(Panel(Text(title, style="bold cyan"), border_style="dim"))


def print_savegame_summary(save, path: str):
    """Print header fields and well-known scalars as a rich table."""
    major, minor = save.version
    table = Table(title="Savegame", border_style="cyan", show_header=False, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("File", escape(path))
    table.add_row("Magic", save.header.magic.decode("latin-1"))
    table.add_row("Compression", save.header.compression.value)
    table.add_row("Version", f"{major}.{minor}")
    table.add_row("Schema set", save.schema_set)
    if save.map_size is not None:
        table.add_row("Map size", f"{save.map_size[0]} x {save.map_size[1]}")
    if save.calendar_date is not None:
        table.add_row("Date", save.calendar_date.isoformat())
    elif save.date is not None:
        table.add_row("Date", f"day {save.date}")
    console.print(table)


def _shape(data) -> str:
    if isinstance(data, Record):
        return f"1 record, {len(data)} fields"
    if isinstance(data, SparseRecords):
        if not data:
            return "0 records"
        return f"{len(data)} records, indices {data.indices[0]}..{data.indices[-1]}"
    return f"{len(data)} records"


def print_chunk_table(save):
    """Print one row per chunk: tag, encoding and decoded shape."""
    table = Table(title="Chunks", border_style="cyan", padding=(0, 1))
    table.add_column("Tag", style="bold")
    table.add_column("Encoding")
    table.add_column("Contents", justify="right", style="green")

    for tag, encoding in save.encodings.items():
        if tag in save.chunks:
            contents = _shape(save.chunks[tag])
        else:
            contents = "[yellow]skipped[/yellow]"
        table.add_row(tag, encoding.name.lower(), contents)

    console.print(table)
    if save.skipped:
        console.print(f"\n  [dim]Skipped unknown chunks: {', '.join(save.skipped)}[/dim]")


def print_load_error(path: str, exc: Exception):
    console.print(f"[bold red]Failed to load {escape(path)}:[/bold red] {type(exc).__name__}: {escape(str(exc))}")
