"""Pure validation and resolution over :class:`GameState`.

Nothing here mutates the state or touches timers; the controller applies
whatever these functions decide.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .state import DeclaredPlay, GameState
from .types import (
    ANCHOR_CARD_ID,
    ANCHOR_RANK,
    PILE_TAKE_COUNT,
    PLAY_SIZES,
    RANK_ORDER,
    RANKS,
    Card,
    Rank,
    RejectReason,
    is_rank,
)


@dataclass(frozen=True)
class PlayVerdict:
    ok: bool
    reason: RejectReason | None = None
    message: str = ""
    cards: tuple[Card, ...] = ()
    declared_rank: Rank | None = None
    is_challengeable: bool = True
    is_opening: bool = False


@dataclass(frozen=True)
class ChallengeOutcome:
    is_bluff: bool
    challenger: int
    taker: int
    revealed: tuple[Card, ...]
    cards_taken: tuple[Card, ...]


def _reject(reason: RejectReason, message: str) -> PlayVerdict:
    return PlayVerdict(ok=False, reason=reason, message=message)


def rank_floor(state: GameState) -> int:
    """Minimum rank order a new declaration must reach (0 = anything goes)."""
    if state.last_play is None:
        return 0
    return RANK_ORDER[state.last_play.declared_rank]


def legal_ranks(state: GameState) -> list[Rank]:
    floor = rank_floor(state)
    return [r for r in RANKS if RANK_ORDER[r] >= floor]


def is_four_of_a_kind(cards: Sequence[Card]) -> bool:
    return len(cards) == 4 and len({c.rank for c in cards}) == 1


def validate_play(
    state: GameState, player: int, card_ids: Sequence[str], declared_rank: str | None
) -> PlayVerdict:
    if player != state.current_player:
        return _reject("NotYourTurn", "Not your turn.")
    if len(set(card_ids)) != len(card_ids):
        return _reject("CardNotOwned", "The same card was selected twice.")

    ps = state.players[player]
    cards: list[Card] = []
    for cid in card_ids:
        card = ps.find(cid)
        if card is None:
            return _reject("CardNotOwned", f"{cid} is not in your hand.")
        cards.append(card)

    if len(cards) not in PLAY_SIZES:
        return _reject("InvalidCardCount", "Play 1, 3 or 4 cards.")

    if state.opening_player is not None:
        if player != state.opening_player:
            return _reject("OpeningConstraintViolated", "Only the anchor holder may open.")
        anchor = [c for c in cards if c.id == ANCHOR_CARD_ID]
        if not anchor:
            return _reject("OpeningConstraintViolated", f"The opening play must include {ANCHOR_CARD_ID}.")
        others = [c for c in cards if c.id != ANCHOR_CARD_ID]
        return PlayVerdict(
            ok=True,
            cards=tuple(anchor + others),
            declared_rank=ANCHOR_RANK,
            is_challengeable=True,
            is_opening=True,
        )

    floor = rank_floor(state)

    if is_four_of_a_kind(cards):
        rank = cards[0].rank
        if RANK_ORDER[rank] < floor:
            return _reject("RankTooLow", f"{rank} is below the current rank.")
        return PlayVerdict(ok=True, cards=tuple(cards), declared_rank=rank, is_challengeable=False)

    if not is_rank(declared_rank):
        return _reject("InvalidRank", f"Unknown rank: {declared_rank!r}.")
    declared: Rank = declared_rank  # type: ignore[assignment]
    if RANK_ORDER[declared] < floor:
        return _reject("RankTooLow", f"{declared} is below the current rank.")
    return PlayVerdict(ok=True, cards=tuple(cards), declared_rank=declared, is_challengeable=True)


def challengeable_play(state: GameState, challenger: int) -> DeclaredPlay | None:
    play = state.last_play
    if play is None or not play.is_challengeable or play.player == challenger:
        return None
    return play


def resolve_challenge(state: GameState, play: DeclaredPlay, challenger: int) -> ChallengeOutcome:
    """Decide who takes the pile. The anchor card always stays behind."""
    is_bluff = play.is_bluff
    return ChallengeOutcome(
        is_bluff=is_bluff,
        challenger=challenger,
        taker=play.player if is_bluff else challenger,
        revealed=play.actual_cards,
        cards_taken=tuple(state.playable_pile),
    )


def pile_top(state: GameState, count: int = PILE_TAKE_COUNT) -> tuple[Card, ...]:
    playable = state.playable_pile
    if count <= 0:
        return ()
    return tuple(playable[-count:])


def validate_take_pile(state: GameState, player: int) -> RejectReason | None:
    if player != state.current_player:
        return "NotYourTurn"
    if state.opening_player is not None:
        return "OpeningConstraintViolated"
    if not state.playable_pile:
        return "PileEmpty"
    return None


def validate_pass(state: GameState, player: int) -> RejectReason | None:
    if player != state.current_player:
        return "NotYourTurn"
    if state.opening_player is not None:
        return "OpeningConstraintViolated"
    if state.players[player].hand or state.playable_pile:
        return "PassNotAllowed"
    return None
