"""
Table rendering for evaluation traces and fuzz run summaries.

Rich is used for terminals; `plain=True` switches to a tabulate grid, which
reads better in CI logs and redirected output.
"""

import sys

from rich.console import Console
from rich.table import Table
from tabulate import tabulate

NO_STEPS = "(no steps recorded)"


def _step_rows(steps):
    return [[str(i), s] for i, s in enumerate(steps or [], 1)] or [["-", NO_STEPS]]


def print_calc_trace(expr: str, steps: list, outcome: str, plain: bool = False, file=None):
    file = file if file is not None else sys.stdout
    header = f"\n[Calculator Trace] {outcome}\n  EXPR: {expr!r}\n"
    rows = _step_rows(steps)
    if plain:
        print(header, file=file)
        print(tabulate(rows, headers=["#", "Operation / Result"], tablefmt="grid"), file=file)
        return

    console = Console(file=file, highlight=False)
    console.print(header, markup=False)
    table = Table(title="Steps")
    table.add_column("#", style="cyan", no_wrap=True)
    table.add_column("Operation / Result", style="magenta")
    for num, step in rows:
        table.add_row(num, step)
    console.print(table)


def summary_rows(stats: dict) -> list:
    return [
        ["Target", stats.get("target")],
        ["Mode", stats.get("mode")],
        ["Total Inputs", stats.get("total_inputs")],
        ["Handled Exceptions", stats.get("handled_exceptions")],
        ["Unexpected (Crashes)", stats.get("unexpected_exceptions")],
        ["Duration (s)", stats.get("duration_sec")],
        ["Artifacts dir", stats.get("artifacts_dir")],
    ]


def render_summary(stats: dict, plain: bool = False, file=None):
    file = file if file is not None else sys.stdout
    rows = summary_rows(stats)
    print("\n=== Fuzzing Run Summary ===", file=file)
    if plain:
        print(tabulate(rows, headers=["Metric", "Value"], tablefmt="grid"), file=file)
        return

    console = Console(file=file, highlight=False)
    table = Table(title="Fuzzing Run Summary")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")
    for k, v in rows:
        table.add_row(str(k), str(v))
    console.print(table)
