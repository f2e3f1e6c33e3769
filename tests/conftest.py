"""Pytest configuration and shared fixtures for the posttest test suite."""

import logging
import sys
from pathlib import Path
from typing import Callable, List

import pytest

from posttest.config import EngineConfig, PositionConfig


# Configure test logging
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

# A scriptable UCI engine. Answers 'uci' and 'go depth N' like a real engine
# and exits on end of input.
FAKE_ENGINE_SOURCE = r'''
import argparse
import sys
import time

parser = argparse.ArgumentParser()
parser.add_argument("--name", default="Fake Engine 1.0")
parser.add_argument("--no-name", action="store_true")
parser.add_argument("--nodes", type=int, default=12345)
parser.add_argument("--nps", type=int, default=500000)
parser.add_argument("--time", type=int, default=25)
parser.add_argument("--bestmove", default="e2e4")
parser.add_argument("--hang-search", action="store_true")
parser.add_argument("--chunked", action="store_true")
parser.add_argument("--stderr", action="store_true")
parser.add_argument("--log", default=None)
args = parser.parse_args()


def emit(line):
    if args.chunked and len(line) > 4:
        half = len(line) // 2
        sys.stdout.write(line[:half])
        sys.stdout.flush()
        time.sleep(0.02)
        line = line[half:]
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


for raw in sys.stdin:
    command = raw.strip()
    if args.log:
        with open(args.log, "a") as log:
            log.write(command + "\n")
    if args.stderr:
        sys.stderr.write("debug: received " + command + "\n")
        sys.stderr.flush()
    if command == "uci":
        if not args.no_name:
            emit("id name " + args.name)
        emit("id author posttest")
        emit("uciok")
    elif command.startswith("go depth"):
        if args.hang_search:
            continue
        depth = int(command.split()[2])
        for d in range(1, depth):
            emit("info depth %d score cp 20 nodes %d nps %d time %d pv %s"
                 % (d, args.nodes // (depth - d + 1), args.nps, args.time // (depth - d + 1), args.bestmove))
        emit("info depth %d seldepth %d score cp 25 nodes %d nps %d time %d pv %s"
             % (depth, depth, args.nodes, args.nps, args.time, args.bestmove))
        emit("bestmove " + args.bestmove + " ponder e7e5")
    elif command == "quit":
        break
'''


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: Tests that spawn real engine subprocesses"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that wait for an exchange timeout"
    )


@pytest.fixture(autouse=True)
def reset_posttest_logger():
    """Undo setup_logging() so caplog keeps seeing posttest records."""
    yield
    logger = logging.getLogger("posttest")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture(scope="session")
def fake_engine_script(tmp_path_factory) -> Path:
    """Path of the fake UCI engine script."""
    path = tmp_path_factory.mktemp("engines") / "fake_engine.py"
    path.write_text(FAKE_ENGINE_SOURCE)
    return path


@pytest.fixture
def fake_engine(fake_engine_script) -> Callable[..., EngineConfig]:
    """Factory for engine configs running the fake engine with extra flags."""
    def make(*flags: str, name=None, advanced_comparison: bool = False) -> EngineConfig:
        return EngineConfig(
            executable=sys.executable,
            arguments=(str(fake_engine_script),) + tuple(flags),
            display_name=name,
            advanced_comparison=advanced_comparison,
        )
    return make


@pytest.fixture
def missing_engine(tmp_path) -> EngineConfig:
    """An engine whose executable does not exist."""
    return EngineConfig(executable=str(tmp_path / "no-such-engine"))


@pytest.fixture
def start_position() -> PositionConfig:
    return PositionConfig(fen=START_FEN, depth=3)


@pytest.fixture
def positions() -> List[PositionConfig]:
    return [
        PositionConfig(fen=START_FEN, depth=3),
        PositionConfig(fen="r1bqkbnr/pppp1ppp/2n5/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R w KQkq - 2 3", depth=4),
    ]
