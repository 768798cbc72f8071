from __future__ import annotations

import argparse
import logging
import random
from dataclasses import dataclass, replace
from pathlib import Path

from oszust.engine import ai
from oszust.engine.actions import Action, ReportMissingDeclarationAction
from oszust.engine.controller import TurnController
from oszust.engine.types import DECK_SIZE
from oszust.paths import get_paths
from oszust.services.content import ContentService
from oszust.services.telemetry import TelemetryService

logger = logging.getLogger("simulate_games")

TICK = 0.5


@dataclass
class GameSummary:
    seed: int
    winner: int | None
    turns: int
    steps: int


def _seat_zero_move(controller: TurnController, rng: random.Random, spec: ai.AISpec) -> Action | None:
    """Seat 0 is flagged human, so the tool plays it with the AI policy."""
    state = controller.state
    final = state.final_challenge
    if final is not None:
        if final.decider == 0:
            return ai.decide_final_challenge(state, 0, rng, spec)
        return None
    window = state.penalty
    if window is not None and window.accuser == 0:
        if window.is_open(controller.now):
            return ReportMissingDeclarationAction(player=0)
        return None
    if state.current_player == 0:
        return ai.choose_action(state, 0, rng, spec)
    return None


def play_one(content: ContentService, seed: int, telemetry: Path | None, max_steps: int) -> GameSummary:
    config = content.load_game_config()
    spec = content.load_ai_spec()
    config = replace(config, player_names=("Seat 0", "Seat 1"), human_players=(True, False))
    sink = TelemetryService(telemetry, game_id=str(seed)) if telemetry is not None else None
    controller = TurnController(config, spec, sink)
    controller.start_game(seed)
    rng = random.Random(seed + 1)

    steps = 0
    while not controller.state.is_over and steps < max_steps:
        steps += 1
        action = _seat_zero_move(controller, rng, spec)
        if action is None:
            controller.advance(TICK)
        else:
            result = controller.submit(action)
            if not result.ok:
                logger.error("Seat 0 action %s rejected: %s", action, result.error)
                break
        total = controller.state.card_total()
        if total != DECK_SIZE:
            raise AssertionError(f"Card count drifted to {total} in game {seed}")

    state = controller.state
    if not state.is_over:
        logger.warning("Game %d stopped after %d steps without a winner", seed, steps)
    return GameSummary(seed=seed, winner=state.winner, turns=state.turns_played, steps=steps)


def main() -> int:
    paths = get_paths()
    parser = argparse.ArgumentParser(prog="simulate_games")
    parser.add_argument("--games", type=int, default=100)
    parser.add_argument("--seed", type=int, default=1)
    # bare --telemetry writes to userdata/telemetry.jsonl
    parser.add_argument("--telemetry", type=Path, nargs="?", const=paths.userdata_dir / "telemetry.jsonl", default=None)
    parser.add_argument("--max-steps", type=int, default=5000)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    content = ContentService(paths.data_dir, paths.schema_dir)
    content.validate_all()

    wins = [0, 0]
    unfinished = 0
    turns = 0
    for i in range(args.games):
        summary = play_one(content, args.seed + i, args.telemetry, args.max_steps)
        turns += summary.turns
        if summary.winner is None:
            unfinished += 1
        else:
            wins[summary.winner] += 1

    played = max(1, args.games)
    print(f"games: {args.games}")
    print(f"seat 0 wins: {wins[0]}  seat 1 wins: {wins[1]}  unfinished: {unfinished}")
    print(f"average turns: {turns / played:.1f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
