# Benchmark Results Reporting
"""
Presentation of a benchmark run: rich console tables, a tqdm progress bar for
silent runs, and JSON export of the complete run.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from tqdm import tqdm

from posttest.config import PositionConfig
from posttest.metrics import RunSummary
from posttest.run import EngineRuntime, PositionResult, RunListener, RunState

logger = logging.getLogger(__name__)

BANNER = "posttest-cli"
MISSING = "--"
NOT_AVAILABLE = "n/a"


def _header(label: str) -> Text:
    return Text(label, style="blue")


def _new_table(*headers: str) -> Table:
    table = Table(box=box.SQUARE, show_header=True, header_style="")
    for i, label in enumerate(headers):
        table.add_column(_header(label), justify="left" if i == 0 else "right")
    return table


def _optional(value: Optional[int], suffix: str = "") -> str:
    return NOT_AVAILABLE if value is None else f"{value}{suffix}"


def build_engine_table(state: RunState) -> Table:
    table = Table(box=box.SQUARE, show_header=True, header_style="")
    for label in ("id", "name", "executable", "strings", "status"):
        table.add_column(_header(label))
    for engine in state.engines:
        style = "green" if engine.ok else "red"
        table.add_row(str(engine.id), Text(engine.name, style=style), engine.executable,
                      " ".join(engine.arguments), engine.status.value)
    return table


def build_position_table(state: RunState, position: PositionConfig, results: List[PositionResult]) -> Table:
    table = _new_table(f"depth: {position.depth}", "time", "nodes", "nps", "best move")
    for result in results:
        name = state.engine(result.engine_id).name
        if result.ok:
            table.add_row(name, str(result.time_ms), str(result.nodes), str(result.nps), result.best_move)
        else:
            table.add_row(Text(f"{name} (failed)", style="red"), MISSING, MISSING, MISSING, MISSING)
    return table


def build_overall_table(summary: RunSummary) -> Table:
    table = _new_table("Overall", "time", "nodes", "nps", "failed")
    for totals in summary.totals:
        failed = Text(str(totals.failed_count), style="red" if totals.failed_count else "")
        table.add_row(totals.name, str(totals.time_ms), str(totals.nodes), _optional(totals.nps), failed)
    return table


def build_comparison_table(summary: RunSummary) -> Table:
    table = _new_table("engine", "vs", "time %", "nodes %", "nps %")
    for comparison in summary.comparisons:
        table.add_row(comparison.name, comparison.other_name, _optional(comparison.time_pct, "%"),
                      _optional(comparison.nodes_pct, "%"), _optional(comparison.nps_pct, "%"))
    return table


class ConsoleReporter(RunListener):
    """Prints the engine, per-position and overall tables as the run progresses."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_banner(self):
        self.console.print(Rule(Text(BANNER, style="bold")))

    def on_engines_tested(self, state: RunState):
        self.console.print(Text("Engines:", style="underline"))
        self.console.print(build_engine_table(state))

    def on_position_finished(self, state: RunState, position_index: int, position: PositionConfig,
                             results: List[PositionResult]):
        self.console.print(Text(f"Position {position_index + 1} of {len(state.positions)} (fen: {position.fen}):",
                                style="underline"))
        self.console.print(build_position_table(state, position, results))

    def on_run_finished(self, state: RunState, summary: RunSummary):
        self.console.print(Text("Overall performance:", style="underline"))
        self.console.print(build_overall_table(summary))
        if summary.comparisons:
            self.console.print(Text("Comparison:", style="underline"))
            self.console.print(build_comparison_table(summary))


class ProgressReporter(RunListener):
    """Silent mode: a single progress bar over all queries."""

    def __init__(self, file=None):
        self.file = file
        self.bar: Optional[tqdm] = None

    def on_engines_tested(self, state: RunState):
        total = len(state.positions) * len(state.ok_engines())
        self.bar = tqdm(
            total=total,
            desc=f"Running {len(state.engines)} engines with {len(state.positions)} positions",
            unit="query",
            file=self.file,
        )

    def on_query_started(self, state: RunState, position_index: int, position: PositionConfig,
                         engine: EngineRuntime):
        if self.bar is None:
            return
        self.bar.set_postfix_str(f"position {position_index + 1} with {engine.name}")
        self.bar.update(1)

    def on_run_finished(self, state: RunState, summary: RunSummary):
        if self.bar is not None:
            self.bar.close()
            self.bar = None


class ResultsExporter:
    """Writes a finished run to a JSON file."""

    @staticmethod
    def to_dict(state: RunState, summary: RunSummary) -> Dict[str, Any]:
        return {
            "engines": [engine.to_dict() for engine in state.engines],
            "positions": [position.to_dict() for position in state.positions],
            "results": [result.to_dict() for result in state.results],
            **summary.to_dict(),
        }

    @staticmethod
    def export(state: RunState, summary: RunSummary, output_path: str) -> Path:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(ResultsExporter.to_dict(state, summary), f, indent=2)
        logger.info(f"Results exported to {path}")
        return path
