# Benchmark Run
"""
Drive the handshake and position-analysis exchanges across every engine and
position, one exchange at a time, and collect the results.

Engines are identified first; an engine whose handshake fails is marked
FAILED and skipped for the rest of the run. Positions are then visited in
order, and for each position every healthy engine in order. A failed query
is recorded as a FAILED result and never stops the run.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import psutil

from posttest.config import EngineConfig, PositionConfig, RunOptions
from posttest.engines.uci_bridge import PositionInfo, UCIClient
from posttest.metrics import MetricsAnalyzer, RunSummary
from posttest.utils.error_utils import ProcessError, ProtocolError, SpawnError

EXCHANGE_ERRORS = (SpawnError, ProcessError, ProtocolError)


class Status(str, Enum):
    OK = "ok"
    FAILED = "failed"


@dataclass
class EngineRuntime:
    """Per-run state of one configured engine."""
    id: int
    executable: str
    arguments: List[str]
    name: str
    status: Status = Status.OK
    display_name: Optional[str] = None
    advanced_comparison: bool = False

    @classmethod
    def from_config(cls, index: int, config: EngineConfig) -> "EngineRuntime":
        return cls(
            id=index,
            executable=config.executable,
            arguments=list(config.arguments),
            name=config.display_name or f"engine{index}",
            display_name=config.display_name,
            advanced_comparison=config.advanced_comparison,
        )

    @property
    def ok(self) -> bool:
        return self.status is Status.OK

    def mark_failed(self):
        self.status = Status.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "executable": self.executable,
            "strings": list(self.arguments),
            "status": self.status.value,
            "advancedComparison": self.advanced_comparison,
        }


@dataclass
class PositionResult:
    """Outcome of one (position, engine) query.

    ``nodes == 0`` means the query failed: such a result is always FAILED
    with zeroed metrics and no best move.
    """
    fen: str
    depth: int
    engine_id: int
    status: Status = Status.OK
    nodes: int = 0
    time_ms: int = 0
    nps: int = 0
    best_move: str = ""
    position_index: int = 0
    peak_memory_mb: float = 0.0

    def __post_init__(self):
        if self.nodes == 0 or self.status is Status.FAILED:
            self.status = Status.FAILED
            self.nodes = self.time_ms = self.nps = 0
            self.best_move = ""
            self.peak_memory_mb = 0.0

    @property
    def ok(self) -> bool:
        return self.status is Status.OK

    @classmethod
    def from_info(cls, position_index: int, position: PositionConfig, engine_id: int,
                  info: PositionInfo) -> "PositionResult":
        return cls(
            fen=position.fen,
            depth=position.depth,
            engine_id=engine_id,
            nodes=info.nodes,
            time_ms=info.time_ms,
            nps=info.nps,
            best_move=info.best_move,
            position_index=position_index,
            peak_memory_mb=info.peak_memory_mb,
        )

    @classmethod
    def failed(cls, position_index: int, position: PositionConfig, engine_id: int) -> "PositionResult":
        return cls(
            fen=position.fen,
            depth=position.depth,
            engine_id=engine_id,
            status=Status.FAILED,
            position_index=position_index,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class RunState:
    """Engines, positions and the append-only result list of one run."""
    engines: List[EngineRuntime]
    positions: List[PositionConfig]
    results: List[PositionResult] = field(default_factory=list)

    def engine(self, engine_id: int) -> EngineRuntime:
        return self.engines[engine_id]

    def ok_engines(self) -> List[EngineRuntime]:
        return [engine for engine in self.engines if engine.ok]

    def results_for_position(self, position_index: int) -> List[PositionResult]:
        return [r for r in self.results if r.position_index == position_index]

    def results_for_engine(self, engine_id: int) -> List[PositionResult]:
        return [r for r in self.results if r.engine_id == engine_id]


class RunListener:
    """Receives run progress; every hook is optional."""

    def on_engines_tested(self, state: RunState):
        pass

    def on_query_started(self, state: RunState, position_index: int, position: PositionConfig,
                         engine: EngineRuntime):
        pass

    def on_position_finished(self, state: RunState, position_index: int, position: PositionConfig,
                             results: List[PositionResult]):
        pass

    def on_run_finished(self, state: RunState, summary: RunSummary):
        pass


class BenchmarkRun:
    """Sequential engine x position benchmark."""

    def __init__(self, engines: Sequence[EngineConfig], positions: Sequence[PositionConfig],
                 options: Optional[RunOptions] = None, client: Optional[UCIClient] = None,
                 listeners: Sequence[RunListener] = (), logger: Optional[logging.Logger] = None):
        self.options = options or RunOptions()
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.client = client or UCIClient(
            handshake_timeout=self.options.handshake_timeout,
            query_timeout=self.options.query_timeout,
            sample_interval=self.options.sample_interval,
            logger=self.logger,
        )
        self.listeners = list(listeners)
        self.state = RunState(
            engines=[EngineRuntime.from_config(index, config) for index, config in enumerate(engines)],
            positions=list(positions),
        )
        self.logger.debug(f"Setup run object with {len(self.state.engines)} engines and "
                          f"{len(self.state.positions)} positions completed.")

    def run(self) -> RunSummary:
        """Identify engines, query every position, and aggregate the results."""
        self._log_system_info()
        start_time = time.time()

        self.test_engines()
        self.start_run()

        summary = MetricsAnalyzer.summarize(self.state)
        self.logger.debug(f"Run finished in {time.time() - start_time:.1f}s with {len(self.state.results)} results")
        for listener in self.listeners:
            listener.on_run_finished(self.state, summary)
        return summary

    def test_engines(self):
        """Handshake with every engine; failures disable the engine for the run."""
        self.logger.debug("Testing engines ...")
        for engine in self.state.engines:
            try:
                name = self.client.get_engine_name(engine.executable, engine.arguments)
            except EXCHANGE_ERRORS as e:
                self.logger.error(f"Engine with executable \"{engine.executable}\" and strings "
                                  f"\"{' '.join(engine.arguments)}\" doesn't work: {e}")
                engine.mark_failed()
                continue

            if engine.display_name is None:
                engine.name = name
            self.logger.debug(f"UCI support for engine {name} detected (engine{engine.id}).")

        for listener in self.listeners:
            listener.on_engines_tested(self.state)

    def start_run(self):
        """Query every position with every healthy engine, positions outer."""
        self.logger.debug("Starting run ...")
        for position_index, position in enumerate(self.state.positions):
            for engine in self.state.engines:
                if not engine.ok:
                    continue
                for listener in self.listeners:
                    listener.on_query_started(self.state, position_index, position, engine)
                self.state.results.append(self._query(position_index, position, engine))

            for listener in self.listeners:
                listener.on_position_finished(self.state, position_index, position,
                                              self.state.results_for_position(position_index))

    def _query(self, position_index: int, position: PositionConfig, engine: EngineRuntime) -> PositionResult:
        try:
            info = self.client.get_position_info(engine.executable, engine.arguments, position.fen, position.depth)
        except EXCHANGE_ERRORS as e:
            self.logger.error(f"Couldn't get position info for engine {engine.name} and fen {position.fen}: {e}")
            return PositionResult.failed(position_index, position, engine.id)

        result = PositionResult.from_info(position_index, position, engine.id, info)
        self.logger.debug(f"{engine.name} @ depth {position.depth}: {result.nodes} nodes in {result.time_ms}ms "
                          f"({result.nps} nps), best move {result.best_move}")
        return result

    def _log_system_info(self):
        memory_gb = psutil.virtual_memory().total / (1024 ** 3)
        self.logger.debug(f"System resources - CPU cores: {psutil.cpu_count()} | Memory: {memory_gb:.0f}GB")
