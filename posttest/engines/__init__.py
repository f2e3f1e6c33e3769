"""UCI engine processes and protocol exchanges."""

from .process import EngineProcess, LineBuffer
from .uci_bridge import (PositionAnalysis, PositionInfo, UCIClient,
                         UCIHandshake)

__all__ = [
    "EngineProcess",
    "LineBuffer",
    "PositionAnalysis",
    "PositionInfo",
    "UCIClient",
    "UCIHandshake",
]
