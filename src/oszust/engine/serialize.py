from __future__ import annotations

from collections.abc import Iterable

from .actions import (
    Action,
    ChallengeAction,
    ChallengeFinalAction,
    ConcedeFinalAction,
    DeclareLastCardAction,
    PassAction,
    PlayCardsAction,
    ReportMissingDeclarationAction,
    TakePileAction,
)
from .state import DeclaredPlay, FinalChallenge, GameState, PenaltyWindow, PlayerState
from .types import Card

_ACTION_TYPES: dict[type, str] = {
    DeclareLastCardAction: "declare_last_card",
    ChallengeAction: "challenge",
    TakePileAction: "take_pile",
    PassAction: "pass",
    ReportMissingDeclarationAction: "report_missing_declaration",
    ChallengeFinalAction: "challenge_final",
    ConcedeFinalAction: "concede_final",
}


def card_ids(cards: Iterable[Card]) -> list[str]:
    return [c.id for c in cards]


def action_to_dict(a: Action) -> dict[str, object]:
    if isinstance(a, PlayCardsAction):
        return {
            "type": "play",
            "player": a.player,
            "card_ids": list(a.card_ids),
            "declared_rank": a.declared_rank,
        }
    name = _ACTION_TYPES.get(type(a))
    if name is None:
        # should be unreachable
        return {"type": "unknown"}
    return {"type": name, "player": a.player}


def declared_play_to_dict(p: DeclaredPlay | None) -> dict[str, object] | None:
    if p is None:
        return None
    return {
        "player": p.player,
        "declared_rank": p.declared_rank,
        "declared_count": p.declared_count,
        "actual_cards": card_ids(p.actual_cards),
        "is_challengeable": p.is_challengeable,
    }


def _pending_to_dict(p: PenaltyWindow | FinalChallenge | None) -> dict[str, object] | None:
    if p is None:
        return None
    if isinstance(p, PenaltyWindow):
        return {
            "kind": "penalty",
            "id": p.id,
            "target": p.target,
            "accuser": p.accuser,
            "opens_at": p.opens_at,
            "expires_at": p.expires_at,
            "status": p.status,
        }
    return {
        "kind": "final_challenge",
        "id": p.id,
        "decider": p.decider,
        "play": declared_play_to_dict(p.play),
        "status": p.status,
    }


def _player_to_dict(p: PlayerState) -> dict[str, object]:
    return {
        "id": p.id,
        "name": p.name,
        "is_human": p.is_human,
        "hand": card_ids(p.hand),
    }


def snapshot(state: GameState) -> dict[str, object]:
    """Return a JSON-serializable canonical snapshot of the current game state."""
    return {
        "seed": state.seed,
        "current_player": state.current_player,
        "opening_player": state.opening_player,
        "winner": state.winner,
        "halted": state.halted,
        "players": [_player_to_dict(p) for p in state.players],
        "pile": card_ids(state.pile),
        "last_play": declared_play_to_dict(state.last_play),
        "pending": _pending_to_dict(state.pending),
        "turns_played": state.turns_played,
        "action_log": [action_to_dict(a) for a in state.action_log],
    }
