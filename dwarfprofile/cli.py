"""dwarfprofile CLI — the main entry point for size profiling."""

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from dwarfprofile import __version__

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {escape(message)}")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def main():
    """dwarfprofile — find out what is big in a compiled program.

    Reads the DWARF debug information of a binary and attributes its code
    bytes to functions, inlined call sites and compile units.
    """


# ── Profile ──────────────────────────────────────────────────────────


@main.command()
@click.argument("binary", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", "config_path", default=None, type=click.Path(exists=True),
              help="YAML configuration file")
@click.option("--single-address-size", type=click.IntRange(min=0), default=None,
              help="Bytes given to code with only a start address (0 disables)")
@click.option("--ignore-unnamed/--report-unnamed", default=None,
              help="Do not report scopes without a name")
@click.option("--group-by", type=click.Choice(["unit", "source"]), default=None,
              help="Group by compile unit or by declaring source file")
@click.option("--depth", "-d", type=click.IntRange(min=0), multiple=True,
              help="Breakdown depth (repeatable)")
@click.option("--sort/--no-sort", default=None, help="Order siblings by size")
@click.option("--trace", is_flag=True, help="Print every attributed node while walking")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def profile(
    binary: str,
    config_path: str | None,
    single_address_size: int | None,
    ignore_unnamed: bool | None,
    group_by: str | None,
    depth: tuple,
    sort: bool | None,
    trace: bool,
    verbose: bool,
):
    """Attribute the code size of BINARY and print breakdowns by depth."""
    from elftools.common.exceptions import DWARFError, ELFError

    from dwarfprofile.config import ProfileConfig, load_config
    from dwarfprofile.dwarf.loader import DwarfLoader
    from dwarfprofile.errors import ProfileError
    from dwarfprofile.profiler import ProfileRun
    from dwarfprofile.reporting.trace import TraceReporter, format_breakdown

    _setup_logging(verbose)

    try:
        config = load_config(config_path) if config_path else ProfileConfig()
        config = config.with_overrides(
            single_address_size=single_address_size,
            ignore_unnamed=ignore_unnamed,
            group_by=group_by,
            dump_depths=list(depth) or None,
            sort=sort,
        )
    except ValueError as e:
        _fail(str(e))

    console.print(f"\n[bold blue]dwarfprofile[/] — Profiling: {binary}\n")

    run = ProfileRun(config, trace=TraceReporter(console) if trace else None)
    try:
        with DwarfLoader(binary) as loader:
            result = run.profile(loader.iter_units())
    except (ProfileError, ValueError, ELFError, DWARFError) as e:
        _fail(str(e))

    table = Table(title=f"Compile Units ({len(result.units)} found)")
    table.add_column("Unit", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Reported", justify="right", style="green")
    table.add_column("Gaps", justify="right", style="yellow")
    table.add_column("OK", justify="center")

    for unit in result.units:
        ok = "[green]Y[/]" if unit.conserved else "[red]N[/]"
        table.add_row(
            escape(unit.path),
            str(unit.unit_size),
            str(unit.reported_size),
            str(unit.gap_size),
            ok,
        )
    console.print(table)

    for d in config.dump_depths:
        console.print(f"\n---\n\n Breakdown at depth {d}\n")
        for line in format_breakdown(result.tree, d):
            console.print(line, markup=False, highlight=False)

    console.print(f"\n[bold]Total:[/] {result.total_size} bytes")


# ── Units ────────────────────────────────────────────────────────────


@main.command()
@click.argument("binary", type=click.Path(exists=True, dir_okay=False))
@click.option("--single-address-size", type=click.IntRange(min=0), default=1,
              help="Bytes given to code with only a start address")
def units(binary: str, single_address_size: int):
    """List the compile units of BINARY with their code size."""
    from elftools.common.exceptions import DWARFError, ELFError

    from dwarfprofile.attribution.location import code_size
    from dwarfprofile.dwarf.loader import DwarfLoader

    try:
        with DwarfLoader(binary) as loader:
            rows = [
                (unit.path, code_size(unit.root, single_address_size))
                for unit in loader.iter_units()
            ]
    except (ValueError, ELFError, DWARFError) as e:
        _fail(str(e))

    if not rows:
        console.print("[yellow]No compile units found.[/]")
        return

    table = Table(title=f"Compile Units ({len(rows)} found)")
    table.add_column("Unit", style="cyan")
    table.add_column("Size", justify="right", style="green")
    for path, size in rows:
        table.add_row(escape(path), str(size))
    console.print(table)


if __name__ == "__main__":
    main()
