from __future__ import annotations

import json
from pathlib import Path

import pytest

from oszust.engine.ai import AISpec
from oszust.engine.controller import GameConfig
from oszust.paths import get_paths
from oszust.services.content import ContentError, ContentService
from oszust.services.telemetry import TelemetryService


def test_content_schemas_validate() -> None:
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    content.validate_all()


def test_shipped_rules_match_code_defaults() -> None:
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    assert content.load_game_config() == GameConfig()
    assert content.load_ai_spec() == AISpec()


def _write_rules(tmp_path: Path, mutate) -> ContentService:
    paths = get_paths()
    raw = json.loads((paths.data_dir / "rules.json").read_text(encoding="utf-8"))
    mutate(raw)
    (tmp_path / "rules.json").write_text(json.dumps(raw), encoding="utf-8")
    return ContentService(tmp_path, paths.schema_dir)


def test_out_of_range_probability_is_rejected(tmp_path: Path) -> None:
    def mutate(raw: dict) -> None:
        raw["ai"]["self_correct"] = 1.5

    content = _write_rules(tmp_path, mutate)
    with pytest.raises(ContentError) as exc:
        content.load_ai_spec()
    assert "ai/self_correct" in str(exc.value)


def test_inverted_correction_delays_are_rejected(tmp_path: Path) -> None:
    def mutate(raw: dict) -> None:
        raw["ai"]["delays"]["correction_min"] = 5.0

    content = _write_rules(tmp_path, mutate)
    with pytest.raises(ContentError):
        content.load_ai_spec()


def test_missing_and_broken_files(tmp_path: Path) -> None:
    paths = get_paths()
    with pytest.raises(ContentError):
        ContentService(tmp_path, paths.schema_dir).load_rules()
    (tmp_path / "rules.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ContentError):
        ContentService(tmp_path, paths.schema_dir).load_rules()


def test_telemetry_appends_json_lines(tmp_path: Path) -> None:
    sink = TelemetryService(tmp_path / "logs" / "events.jsonl", game_id="7")
    sink.log("GAME_STARTED", {"seed": 7})
    sink.log("GAME_OVER", {"winner": 1})
    lines = (tmp_path / "logs" / "events.jsonl").read_text(encoding="utf-8").splitlines()
    recs = [json.loads(line) for line in lines]
    assert [r["type"] for r in recs] == ["GAME_STARTED", "GAME_OVER"]
    assert recs[0]["payload"] == {"seed": 7}
    assert recs[1]["game"] == "7"


def test_paths_point_into_the_repo() -> None:
    paths = get_paths()
    assert (paths.data_dir / "rules.json").is_file()
    assert (paths.schema_dir / "rules.schema.json").is_file()
    assert paths.userdata_dir == paths.repo_root / "userdata"
