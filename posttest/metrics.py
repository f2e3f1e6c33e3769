# Performance Metrics
"""
Reduce per-position results into per-engine totals and optional pairwise
percentage comparisons between engines.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from posttest.run import RunState

logger = logging.getLogger(__name__)


@dataclass
class EngineTotals:
    """Summed search metrics of one engine over all positions."""
    engine_id: int
    name: str
    time_ms: int = 0
    nodes: int = 0
    failed_count: int = 0
    positions: int = 0

    @property
    def has_timing(self) -> bool:
        return self.time_ms > 0

    @property
    def nps(self) -> Optional[int]:
        """floor(nodes / time_ms * 1000), or None without timing data."""
        if not self.has_timing:
            return None
        return self.nodes * 1000 // self.time_ms

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["nps"] = self.nps
        return data


@dataclass
class EngineComparison:
    """Relative difference of ``other`` against ``engine``, in whole percent.

    Positive values favour ``engine``: the other engine needed more time,
    searched more nodes, or reached a lower nps. ``None`` when the base of a
    delta is zero or missing.
    """
    engine_id: int
    name: str
    other_id: int
    other_name: str
    time_pct: Optional[int]
    nodes_pct: Optional[int]
    nps_pct: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RunSummary:
    """Aggregates of a finished run."""
    totals: List[EngineTotals] = field(default_factory=list)
    comparisons: List[EngineComparison] = field(default_factory=list)

    def totals_for(self, engine_id: int) -> Optional[EngineTotals]:
        for totals in self.totals:
            if totals.engine_id == engine_id:
                return totals
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totals": [t.to_dict() for t in self.totals],
            "comparisons": [c.to_dict() for c in self.comparisons],
        }


class MetricsAnalyzer:
    """Aggregates benchmark results."""

    @staticmethod
    def summarize(state: "RunState") -> RunSummary:
        totals = MetricsAnalyzer.aggregate(state)
        comparisons = MetricsAnalyzer.compare(state, totals)
        return RunSummary(totals=totals, comparisons=comparisons)

    @staticmethod
    def aggregate(state: "RunState") -> List[EngineTotals]:
        """Totals for every engine that passed its handshake, in engine order."""
        totals = []
        for engine in state.ok_engines():
            engine_totals = EngineTotals(engine_id=engine.id, name=engine.name)
            for result in state.results_for_engine(engine.id):
                # Failed results carry zero time and nodes.
                engine_totals.time_ms += result.time_ms
                engine_totals.nodes += result.nodes
                engine_totals.positions += 1
                if not result.ok:
                    engine_totals.failed_count += 1
            if not engine_totals.has_timing:
                logger.debug(f"No timing data for {engine.name}; nps not available")
            totals.append(engine_totals)
        return totals

    @staticmethod
    def compare(state: "RunState", totals: List[EngineTotals]) -> List[EngineComparison]:
        """Pairwise deltas for engines flagged for advanced comparison."""
        comparisons = []
        for base in totals:
            if not state.engine(base.engine_id).advanced_comparison:
                continue
            for other in totals:
                if other.engine_id == base.engine_id:
                    continue
                comparisons.append(EngineComparison(
                    engine_id=base.engine_id,
                    name=base.name,
                    other_id=other.engine_id,
                    other_name=other.name,
                    time_pct=MetricsAnalyzer.percent_delta(other.time_ms, base.time_ms),
                    nodes_pct=MetricsAnalyzer.percent_delta(other.nodes, base.nodes),
                    nps_pct=MetricsAnalyzer.percent_delta(base.nps, other.nps),
                ))
        return comparisons

    @staticmethod
    def percent_delta(value: Optional[int], base: Optional[int]) -> Optional[int]:
        """floor((value - base) / base * 100), or None for a zero/missing base."""
        if value is None or base is None or base == 0:
            return None
        return (value - base) * 100 // base
