# UCI Engine Bridge
"""
UCI exchanges with chess engines.

Two exchanges are supported, each run against a freshly spawned process:

- handshake: ``uci`` -> ``id name ...`` -> ``uciok``, discovers the engine name
- position analysis: ``position fen ...`` + ``go depth N`` -> ``info ...`` ->
  ``bestmove``, collects nodes, time and nps of the finished search

The protocol classes are plain state machines fed one output line at a time;
``UCIClient`` wires them to an ``EngineProcess``.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from posttest.engines.process import EngineProcess
from posttest.utils.error_utils import ProcessError, ProtocolError

DEFAULT_HANDSHAKE_TIMEOUT = 5.0
DEFAULT_QUERY_TIMEOUT = 300.0

# info token -> PositionAnalysis attribute
METRIC_TOKENS = {
    "nps": "nps",
    "nodes": "nodes",
    "time": "time_ms",
}


class HandshakeState(Enum):
    INIT = "init"
    AWAIT_UCIOK = "await_uciok"
    DONE = "done"
    FAILED = "failed"


class SearchState(Enum):
    INIT = "init"
    SEARCHING = "searching"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PositionInfo:
    """Metrics of one completed fixed-depth search."""
    nps: int
    nodes: int
    time_ms: int
    best_move: str
    peak_memory_mb: float = 0.0


def _parse_count(tokens: List[str], index: int) -> Optional[int]:
    if index >= len(tokens) or not tokens[index].isdigit():
        return None
    return int(tokens[index])


class UCIHandshake:
    """Identify an engine and confirm it speaks UCI."""

    def __init__(self):
        self.state = HandshakeState.INIT
        self.name: Optional[str] = None
        self.uciok_seen = False

    def begin(self) -> List[str]:
        self.state = HandshakeState.AWAIT_UCIOK
        return ["uci"]

    def feed_line(self, line: str) -> bool:
        """Consume one output line. Returns True when ``uciok`` was seen."""
        tokens = line.split()
        terminal = False
        for i, token in enumerate(tokens):
            if token == "id" and i + 1 < len(tokens) and tokens[i + 1] == "name":
                name = " ".join(tokens[i + 2:])
                if name:
                    self.name = name
            elif token == "uciok":
                terminal = True
        if terminal:
            self.uciok_seen = True
        return terminal

    def finish(self, returncode: Optional[int] = None) -> str:
        """Resolve the handshake once the process has exited."""
        if self.name:
            self.state = HandshakeState.DONE
            return self.name
        self.state = HandshakeState.FAILED
        raise ProtocolError(
            "no engine name discovered",
            context_data={"returncode": returncode, "uciok_seen": self.uciok_seen},
        )

    def fail(self):
        self.state = HandshakeState.FAILED


class PositionAnalysis:
    """Run a fixed-depth search and keep the metrics of its last info line."""

    def __init__(self, fen: str, depth: int):
        self.fen = fen
        self.depth = int(depth)
        self.state = SearchState.INIT
        self.nps = 0
        self.nodes = 0
        self.time_ms = 0
        self.best_move: Optional[str] = None

    def begin(self) -> List[str]:
        self.state = SearchState.SEARCHING
        return [f"position fen {self.fen}", f"go depth {self.depth}"]

    def feed_line(self, line: str) -> bool:
        """Consume one output line. Returns True on the first ``bestmove``."""
        if self.best_move is not None:
            return False
        tokens = line.split()
        for i, token in enumerate(tokens):
            attribute = METRIC_TOKENS.get(token)
            if attribute is not None:
                value = _parse_count(tokens, i + 1)
                if value is not None:
                    setattr(self, attribute, value)
            elif token == "bestmove":
                self.best_move = tokens[i + 1] if i + 1 < len(tokens) else ""
                return True
        return False

    def finish(self, returncode: Optional[int] = None) -> PositionInfo:
        """Resolve the search once the process has exited."""
        if not self.best_move or self.nodes == 0:
            self.state = SearchState.FAILED
            reason = "no bestmove received" if not self.best_move else "engine reported 0 nodes"
            raise ProtocolError(
                f"Couldn't get position info: {reason}",
                context_data={"fen": self.fen, "depth": self.depth, "returncode": returncode},
            )
        self.state = SearchState.DONE
        return PositionInfo(nps=self.nps, nodes=self.nodes, time_ms=self.time_ms, best_move=self.best_move)

    def fail(self):
        self.state = SearchState.FAILED


class UCIClient:
    """Runs UCI exchanges, one freshly spawned engine process per exchange."""

    def __init__(self, handshake_timeout: Optional[float] = DEFAULT_HANDSHAKE_TIMEOUT,
                 query_timeout: Optional[float] = DEFAULT_QUERY_TIMEOUT,
                 sample_interval: float = 0.1, logger: Optional[logging.Logger] = None):
        self.handshake_timeout = handshake_timeout
        self.query_timeout = query_timeout
        self.sample_interval = sample_interval
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def get_engine_name(self, executable: str, arguments: Sequence[str] = ()) -> str:
        """Handshake with the engine and return its declared name."""
        handshake = UCIHandshake()
        returncode, _ = self._exchange(executable, arguments, handshake, self.handshake_timeout, "handshake")
        name = handshake.finish(returncode)
        self.logger.debug(f"UCI support for engine {name} detected.")
        return name

    def get_position_info(self, executable: str, arguments: Sequence[str], fen: str, depth: int) -> PositionInfo:
        """Search ``fen`` to ``depth`` and return the final search metrics."""
        analysis = PositionAnalysis(fen, depth)
        returncode, peak_memory_mb = self._exchange(executable, arguments, analysis, self.query_timeout, "search")
        info = analysis.finish(returncode)
        info.peak_memory_mb = peak_memory_mb
        return info

    def _exchange(self, executable: str, arguments: Sequence[str], protocol, timeout: Optional[float],
                  label: str) -> Tuple[int, float]:
        process = EngineProcess.start(executable, arguments, sample_interval=self.sample_interval)
        with process:
            def handle_line(line: str):
                self.logger.debug(f"UCI <- {executable}: {line}")
                if protocol.feed_line(line):
                    process.close_input()

            process.on_output_line(handle_line)
            process.on_error_line(lambda line: self.logger.debug(f"{executable} stderr: {line}"))
            process.on_exit(lambda code: self.logger.debug(f"Child process exited with code {code}"))

            try:
                for command in protocol.begin():
                    process.write_line(command)
                returncode = process.wait(timeout)
            except ProcessError:
                protocol.fail()
                raise

            if returncode is None:
                protocol.fail()
                raise ProtocolError(
                    f"{label} with {executable} did not finish within {timeout:g}s",
                    context_data={"executable": executable, "timeout": timeout},
                )
            return returncode, process.peak_memory_mb
