"""Command-line interface for gridcalc."""

from __future__ import annotations

import json
from pathlib import Path

import click

from gridcalc import __version__


@click.group()
@click.version_option(version=__version__, prog_name="gridcalc")
def main() -> None:
    """gridcalc -- spreadsheet formula engine.

    Evaluate formulas, adjust them for fill/copy and recalculate sheet files.
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_cell_values(items: tuple[str, ...]) -> dict[str, str]:
    values: dict[str, str] = {}
    for item in items:
        if "=" not in item:
            raise click.ClickException(f"Invalid --cell format: {item!r}. Use A1=value.")
        addr, raw = item.split("=", 1)
        values[addr.strip().upper()] = raw
    return values


# ---------------------------------------------------------------------------
# Formulas
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("formula")
@click.option("--cell", "cells", multiple=True, help="Literal cell value as A1=value (repeatable).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def eval_cmd(formula: str, cells: tuple[str, ...], as_json: bool) -> None:
    """Evaluate FORMULA against literal cell values."""
    from gridcalc.formulas import compute_formula
    from gridcalc.formulas.evaluator import format_number, parse_numeric_prefix
    from gridcalc.notation import ref_to_key

    values: dict[str, float | str] = {}
    for addr, raw in _parse_cell_values(cells).items():
        key = ref_to_key(addr)
        if key is None:
            raise click.ClickException(f"Invalid cell address: {addr!r}")
        num = parse_numeric_prefix(raw)
        values[key] = num if num is not None and format_number(num) == raw.strip() else raw

    def lookup(ref: str) -> float | str | None:
        key = ref_to_key(ref)
        return values.get(key) if key else None

    result = compute_formula(formula, lookup)

    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return
    if result.error is not None:
        detail = f" ({result.message})" if result.message else ""
        raise click.ClickException(f"{result.error}{detail}")
    click.echo(result.text)


@main.command()
@click.argument("formula")
def tokens(formula: str) -> None:
    """Print the token stream of FORMULA."""
    from gridcalc.formulas import FormulaParseError, strip_formula_prefix, tokenize

    try:
        toks = tokenize(strip_formula_prefix(formula))
    except FormulaParseError as e:
        raise click.ClickException(str(e))
    for tok in toks:
        click.echo(f"{tok.position:>4}  {tok.kind.value:<10}  {tok.text}")


@main.command()
@click.argument("formula")
@click.option("--rows", "delta_row", default=0, type=int, help="Row offset of the copy.")
@click.option("--cols", "delta_col", default=0, type=int, help="Column offset of the copy.")
def fill(formula: str, delta_row: int, delta_col: int) -> None:
    """Print FORMULA as it reads after copying it by --rows/--cols."""
    from gridcalc.formulas import adjust_formula_for_fill

    click.echo(adjust_formula_for_fill(formula, delta_row, delta_col))


# ---------------------------------------------------------------------------
# Sheets
# ---------------------------------------------------------------------------


@main.command()
@click.argument("sheet_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--project", "project_dir", default=None, type=click.Path(file_okay=False), help="Project directory for config and logs.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def recalc(sheet_file: str, project_dir: str | None, as_json: bool) -> None:
    """Load SHEET_FILE, compute every cell and print the results."""
    from gridcalc.logging import set_project_dir
    from gridcalc.project import SheetSpecError, load_project_config, load_sheet_spec
    from gridcalc.sheet import Sheet

    config = None
    if project_dir:
        config = load_project_config(Path(project_dir))
        set_project_dir(project_dir)

    try:
        spec = load_sheet_spec(Path(sheet_file), config)
        sheet = Sheet.from_spec(spec, sheet_id=Path(sheet_file).stem)
    except (SheetSpecError, ValueError) as e:
        raise click.ClickException(str(e))

    snapshot = sheet.snapshot()
    if as_json:
        out = {
            addr: {
                "display": cell.display,
                "kind": cell.kind.value,
                "error": cell.error,
            }
            for addr, cell in ((a, sheet.get_cell(a)) for a in snapshot)
        }
        click.echo(json.dumps(out, indent=2))
        return
    for addr, display in snapshot.items():
        raw = sheet.get_cell(addr).raw or ""
        suffix = f"    {raw}" if raw.startswith("=") else ""
        click.echo(f"{addr:<6} {display}{suffix}")


@main.command()
@click.argument("project_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--cell", default=None, help="Filter by cell address.")
@click.option("--limit", default=50, type=int, help="Max events to show.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def events(
    project_dir: str,
    level: str | None,
    event_type: str | None,
    cell: str | None,
    limit: int,
    as_json: bool,
) -> None:
    """Show logged events for PROJECT_DIR, most recent first."""
    from gridcalc.logging import EventSink

    sink = EventSink(Path(project_dir))
    evts = sink.read_global(
        level=level,
        event_type=event_type,
        cell=cell.upper() if cell else None,
        limit=limit,
    )
    if as_json:
        click.echo(json.dumps(evts, indent=2))
        return
    if not evts:
        click.echo("No events found.")
        return
    for e in evts:
        code = f" [{e['error_code']}]" if e.get("error_code") else ""
        click.echo(f"{e.get('ts', '')}  {e.get('level', ''):<7}  {e.get('event_type', '')}{code}  {e.get('message', '')}")


if __name__ == "__main__":
    main()
