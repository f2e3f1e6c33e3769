"""Tests for loading and validating engine and position configuration."""

import json
import logging

import pytest
import yaml

from posttest.config import ConfigManager, EngineConfig, PositionConfig
from posttest.utils.error_utils import ConfigFormatError, ErrorCategory, ErrorSeverity

from tests.conftest import START_FEN


def write_json(path, data):
    path.write_text(json.dumps(data))
    return str(path)


class TestEngineConfig:

    def test_load_json(self, tmp_path):
        path = write_json(tmp_path / "engines.json", [
            {"executable": "/usr/bin/stockfish", "strings": []},
            {"executable": "lc0", "strings": ["--weights=net.pb"], "name": "Leela", "advancedComparison": True},
        ])
        engines = ConfigManager.load_engines(path)
        assert engines == [
            EngineConfig("/usr/bin/stockfish"),
            EngineConfig("lc0", ("--weights=net.pb",), "Leela", True),
        ]

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "engines.yaml"
        path.write_text(yaml.safe_dump([{"executable": "stockfish", "strings": ["-x"]}]))
        assert ConfigManager.load_engines(str(path)) == [EngineConfig("stockfish", ("-x",))]

    def test_relative_path_resolves_against_cwd(self, tmp_path, monkeypatch):
        write_json(tmp_path / "engines.json", [{"executable": "stockfish"}])
        monkeypatch.chdir(tmp_path)
        assert ConfigManager.load_engines("engines.json") == [EngineConfig("stockfish")]

    def test_to_dict_round_trips_through_parser(self):
        engine = EngineConfig("lc0", ("a", "b"), "Leela", True)
        assert ConfigManager.parse_engine(engine.to_dict()) == engine

    @pytest.mark.parametrize("entry", [
        "stockfish",
        {},
        {"executable": ""},
        {"executable": 5},
        {"executable": "sf", "strings": "not-a-list"},
        {"executable": "sf", "strings": [1, 2]},
        {"executable": "sf", "name": ""},
        {"executable": "sf", "advancedComparison": "yes"},
    ])
    def test_invalid_entries(self, entry):
        with pytest.raises(ConfigFormatError):
            ConfigManager.parse_engine(entry, 3)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFormatError, match="Couldn't load engine config file") as excinfo:
            ConfigManager.load_engines(str(tmp_path / "nope.json"))
        assert excinfo.value.category is ErrorCategory.CONFIGURATION
        assert excinfo.value.severity is ErrorSeverity.CRITICAL

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "engines.json"
        path.write_text("[{\"executable\": ")
        with pytest.raises(ConfigFormatError, match="Invalid engine config file"):
            ConfigManager.load_engines(str(path))

    def test_top_level_must_be_list(self, tmp_path):
        path = write_json(tmp_path / "engines.json", {"executable": "stockfish"})
        with pytest.raises(ConfigFormatError, match="must contain a list"):
            ConfigManager.load_engines(path)

    def test_stockfish_engine_explicit_path(self):
        assert ConfigManager.stockfish_engine("/opt/sf") == EngineConfig("/opt/sf")

    def test_stockfish_engine_not_on_path(self, monkeypatch, caplog):
        monkeypatch.setattr("posttest.config.shutil.which", lambda name: None)
        with caplog.at_level(logging.ERROR, logger="posttest.config"):
            assert ConfigManager.stockfish_engine() is None
        assert "Stockfish" in caplog.text


class TestPositionConfig:

    def test_load_json(self, tmp_path):
        path = write_json(tmp_path / "positions.json", [
            {"fen": START_FEN, "depth": 10},
            {"fen": "startpos", "depth": 1},
        ])
        assert ConfigManager.load_positions(path) == [
            PositionConfig(START_FEN, 10),
            PositionConfig("startpos", 1),
        ]

    def test_fen_is_stripped(self):
        assert ConfigManager.parse_position({"fen": f"  {START_FEN} ", "depth": 2}).fen == START_FEN

    @pytest.mark.parametrize("depth", [0, -3, "10", 2.5, True, None])
    def test_invalid_depth(self, depth):
        with pytest.raises(ConfigFormatError, match="depth"):
            ConfigManager.parse_position({"fen": START_FEN, "depth": depth})

    @pytest.mark.parametrize("entry", [[START_FEN, 3], {"depth": 3}, {"fen": "   ", "depth": 3}])
    def test_invalid_entries(self, entry):
        with pytest.raises(ConfigFormatError):
            ConfigManager.parse_position(entry)

    def test_unparseable_fen_only_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="posttest.config"):
            position = ConfigManager.parse_position({"fen": "not a fen", "depth": 4})
        assert position == PositionConfig("not a fen", 4)
        assert "does not parse as a FEN" in caplog.text

    @pytest.mark.parametrize("fen,valid", [
        (START_FEN, True),
        ("startpos", True),
        ("8/8/8/8/8/8/8/8 w - - 0 1", True),
        ("rnbqkbnr/pppppppp/8/8 w KQkq - 0 1", False),
    ])
    def test_is_valid_fen(self, fen, valid):
        assert ConfigManager.is_valid_fen(fen) is valid


def test_error_string_carries_category_and_severity():
    error = ConfigFormatError("bad file", context_data={"path": "x.json"})
    assert str(error) == "[configuration:critical] bad file"
    assert error.message == "bad file"
    assert error.context_data == {"path": "x.json"}
