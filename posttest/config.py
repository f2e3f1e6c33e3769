# Benchmark Configuration System
"""
Configuration management for posttest.
Loads engine and position lists from JSON (or YAML) files and validates them
before any engine process is spawned.
"""

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import chess
import yaml

from posttest.engines.uci_bridge import DEFAULT_HANDSHAKE_TIMEOUT, DEFAULT_QUERY_TIMEOUT
from posttest.utils.error_utils import ConfigFormatError

logger = logging.getLogger(__name__)

STARTPOS = "startpos"
YAML_SUFFIXES = (".yaml", ".yml")


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for one UCI engine executable."""
    executable: str
    arguments: Tuple[str, ...] = ()
    display_name: Optional[str] = None
    advanced_comparison: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"executable": self.executable, "strings": list(self.arguments)}
        if self.display_name is not None:
            data["name"] = self.display_name
        if self.advanced_comparison:
            data["advancedComparison"] = True
        return data


@dataclass(frozen=True)
class PositionConfig:
    """A position to search and the fixed depth to search it to."""
    fen: str
    depth: int

    def to_dict(self) -> Dict[str, Any]:
        return {"fen": self.fen, "depth": self.depth}


@dataclass
class RunOptions:
    """Bounds and sampling for engine exchanges (seconds).

    A timeout of ``None`` or ``<= 0`` lets an exchange run without bound.
    """
    handshake_timeout: Optional[float] = DEFAULT_HANDSHAKE_TIMEOUT
    query_timeout: Optional[float] = DEFAULT_QUERY_TIMEOUT
    sample_interval: float = 0.1


class ConfigManager:
    """Loads and validates engine and position configuration files."""

    @staticmethod
    def load_engines(config_path: str) -> List[EngineConfig]:
        """Load the engine list from a JSON or YAML file."""
        data = ConfigManager._read(config_path, "engine")
        engines = [ConfigManager.parse_engine(entry, index) for index, entry in enumerate(data)]
        logger.debug(f"Loaded {len(engines)} engines from {config_path}")
        return engines

    @staticmethod
    def load_positions(config_path: str) -> List[PositionConfig]:
        """Load the position list from a JSON or YAML file."""
        data = ConfigManager._read(config_path, "position")
        positions = [ConfigManager.parse_position(entry, index) for index, entry in enumerate(data)]
        logger.debug(f"Loaded {len(positions)} positions from {config_path}")
        return positions

    @staticmethod
    def _read(config_path: str, kind: str) -> List[Any]:
        path = Path(config_path)
        if not path.is_absolute():
            path = Path.cwd() / path

        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.suffix.lower() in YAML_SUFFIXES:
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except OSError as e:
            raise ConfigFormatError(
                f"Couldn't load {kind} config file from \"{path}\". Please check name and location of your config file.",
                context_data={"path": str(path)},
            ) from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigFormatError(f"Invalid {kind} config file \"{path}\": {e}",
                                    context_data={"path": str(path)}) from e

        if not isinstance(data, list):
            raise ConfigFormatError(f"The {kind} config file \"{path}\" must contain a list of {kind} entries",
                                    context_data={"path": str(path)})
        return data

    @staticmethod
    def parse_engine(entry: Any, index: int = 0) -> EngineConfig:
        """Validate one engine entry: ``{executable, strings, name?, advancedComparison?}``."""
        where = f"engine entry {index}"
        if not isinstance(entry, dict):
            raise ConfigFormatError(f"{where} must be an object")

        executable = entry.get("executable")
        if not isinstance(executable, str) or not executable.strip():
            raise ConfigFormatError(f"{where} needs a non-empty string 'executable'")

        strings = entry.get("strings", [])
        if strings is None:
            strings = []
        if not isinstance(strings, list) or not all(isinstance(s, str) for s in strings):
            raise ConfigFormatError(f"{where}: 'strings' must be a list of strings")

        name = entry.get("name")
        if name is not None and (not isinstance(name, str) or not name.strip()):
            raise ConfigFormatError(f"{where}: 'name' must be a non-empty string")

        advanced = entry.get("advancedComparison", False)
        if not isinstance(advanced, bool):
            raise ConfigFormatError(f"{where}: 'advancedComparison' must be true or false")

        return EngineConfig(
            executable=executable,
            arguments=tuple(strings),
            display_name=name,
            advanced_comparison=advanced,
        )

    @staticmethod
    def parse_position(entry: Any, index: int = 0) -> PositionConfig:
        """Validate one position entry: ``{fen, depth}``."""
        where = f"position entry {index}"
        if not isinstance(entry, dict):
            raise ConfigFormatError(f"{where} must be an object")

        fen = entry.get("fen")
        if not isinstance(fen, str) or not fen.strip():
            raise ConfigFormatError(f"{where} needs a non-empty string 'fen'")

        depth = entry.get("depth")
        if isinstance(depth, bool) or not isinstance(depth, int) or depth <= 0:
            raise ConfigFormatError(f"{where}: 'depth' must be a positive integer, got {depth!r}")

        fen = fen.strip()
        if not ConfigManager.is_valid_fen(fen):
            # Sent verbatim anyway; some engines accept what python-chess rejects.
            logger.warning(f"{where}: '{fen}' does not parse as a FEN")

        return PositionConfig(fen=fen, depth=depth)

    @staticmethod
    def is_valid_fen(fen: str) -> bool:
        if fen == STARTPOS:
            return True
        try:
            chess.Board(fen)
        except ValueError:
            return False
        return True

    @staticmethod
    def stockfish_engine(path: Optional[str] = None) -> Optional[EngineConfig]:
        """Engine entry for a local Stockfish binary, or None if none is found."""
        executable = path or shutil.which("stockfish")
        if not executable:
            logger.error("Stockfish was requested but no 'stockfish' executable is on PATH")
            return None
        return EngineConfig(executable=executable)

