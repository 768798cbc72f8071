from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping

from jsonschema import Draft202012Validator

from oszust.engine.ai import AISpec
from oszust.engine.controller import GameConfig
from oszust.engine.types import Rank

logger = logging.getLogger(__name__)


class ContentError(RuntimeError):
    pass


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ContentError(f"Missing content file: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"Invalid JSON in {path}: {e}") from e


def validate_json(instance: object, schema: object, *, context: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.absolute_path])
    if errors:
        lines = [f"Schema validation failed for {context}:"]
        for err in errors[:10]:
            loc = "/".join(str(p) for p in err.absolute_path)
            lines.append(f"- {loc}: {err.message}")
        raise ContentError("\n".join(lines))


def _require_map(obj: Mapping[str, object], key: str) -> Mapping[str, object]:
    v = obj.get(key)
    if not isinstance(v, dict):
        raise ContentError(f"Expected object for {key}")
    return v


def _require_number(obj: Mapping[str, object], key: str) -> float:
    v = obj.get(key)
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ContentError(f"Expected number for {key}")
    return float(v)


def _require_int(obj: Mapping[str, object], key: str) -> int:
    v = obj.get(key)
    if isinstance(v, bool) or not isinstance(v, int):
        raise ContentError(f"Expected int for {key}")
    return v


class ContentService:
    """Loads the rules configuration shipped in ``data/``."""

    def __init__(self, data_dir: Path, schema_dir: Path) -> None:
        self._data_dir = data_dir
        self._schema_dir = schema_dir
        self._rules: Mapping[str, object] | None = None

    def load_rules(self) -> Mapping[str, object]:
        if self._rules is not None:
            return self._rules
        path = self._data_dir / "rules.json"
        raw = _load_json(path)
        schema = _load_json(self._schema_dir / "rules.schema.json")
        validate_json(raw, schema, context=str(path))
        if not isinstance(raw, dict):
            raise ContentError("rules.json must be an object")
        logger.debug("Loaded rules from %s", path)
        self._rules = raw
        return raw

    def load_game_config(self) -> GameConfig:
        raw = self.load_rules()
        players = raw.get("players")
        if not isinstance(players, list) or len(players) != 2:
            raise ContentError("rules.json.players must list two players")
        names: list[str] = []
        humans: list[bool] = []
        for p in players:
            if not isinstance(p, dict):
                raise ContentError("player entries must be objects")
            name = p.get("name")
            human = p.get("human")
            if not isinstance(name, str) or not isinstance(human, bool):
                raise ContentError("player entries need a name and a human flag")
            names.append(name)
            humans.append(human)

        timing = _require_map(raw, "timing")
        limits = _require_map(raw, "limits")
        return GameConfig(
            penalty_timeout=_require_number(timing, "penalty_timeout"),
            player_names=(names[0], names[1]),
            human_players=(humans[0], humans[1]),
            max_deal_attempts=_require_int(limits, "max_deal_attempts"),
            max_auto_actions=_require_int(limits, "max_auto_actions"),
        )

    def load_ai_spec(self) -> AISpec:
        ai = _require_map(self.load_rules(), "ai")
        challenge = _require_map(ai, "challenge")
        final = _require_map(ai, "final_challenge")
        delays = _require_map(ai, "delays")

        raw_ranks = challenge.get("high_ranks")
        if not isinstance(raw_ranks, list):
            raise ContentError("ai.challenge.high_ranks must be a list")
        # the schema restricts the values
        high_ranks: tuple[Rank, ...] = tuple(r for r in raw_ranks if isinstance(r, str))  # type: ignore[misc]

        lo = _require_number(delays, "correction_min")
        hi = _require_number(delays, "correction_max")
        if lo > hi:
            raise ContentError("ai.delays.correction_min must not exceed correction_max")

        return AISpec(
            challenge_base=_require_number(challenge, "base"),
            challenge_declared_three=_require_number(challenge, "declared_three"),
            challenge_declared_single=_require_number(challenge, "declared_single"),
            challenge_high_rank=_require_number(challenge, "high_rank"),
            high_ranks=high_ranks,
            challenge_short_hand=_require_number(challenge, "short_hand"),
            short_hand_size=_require_int(challenge, "short_hand_size"),
            final_challenge_three=_require_number(final, "declared_three"),
            final_challenge_other=_require_number(final, "other"),
            opening_bluff=_require_number(ai, "opening_bluff"),
            remember_last_card=_require_number(ai, "remember_last_card"),
            self_correct=_require_number(ai, "self_correct"),
            accuse_delay=_require_number(delays, "accuse"),
            correction_delay_min=lo,
            correction_delay_max=hi,
            final_decision_delay=_require_number(delays, "final_decision"),
        )

    def validate_all(self) -> None:
        # Load is validation (schema + parse)
        _ = self.load_game_config()
        _ = self.load_ai_spec()
