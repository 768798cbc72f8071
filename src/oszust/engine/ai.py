from __future__ import annotations

import random
from dataclasses import dataclass

from .actions import (
    Action,
    ChallengeAction,
    ChallengeFinalAction,
    ConcedeFinalAction,
    DeclareLastCardAction,
    FinalDecision,
    PassAction,
    PlayCardsAction,
    TakePileAction,
)
from .protocols import PenaltyProtocol
from .rules import challengeable_play, legal_ranks, rank_floor
from .state import GameState
from .types import ANCHOR_CARD_ID, ANCHOR_RANK, RANK_ORDER, RANKS, Card, Rank


@dataclass(frozen=True)
class AISpec:
    """Tuning parameters for the computer opponent.

    The defaults match ``data/rules.json``; ContentService builds one from
    that file.
    """

    challenge_base: float = 0.05
    challenge_declared_three: float = 0.40
    challenge_declared_single: float = 0.10
    challenge_high_rank: float = 0.15
    high_ranks: tuple[Rank, ...] = ("K", "A")
    challenge_short_hand: float = 0.20
    short_hand_size: int = 3
    final_challenge_three: float = 0.75
    final_challenge_other: float = 0.40
    opening_bluff: float = 0.2
    remember_last_card: float = 0.85
    self_correct: float = 0.5
    accuse_delay: float = 1.5
    correction_delay_min: float = 1.0
    correction_delay_max: float = 4.0
    final_decision_delay: float = 1.5


def _groups(hand: list[Card]) -> list[list[Card]]:
    by_rank: dict[Rank, list[Card]] = {}
    for c in hand:
        by_rank.setdefault(c.rank, []).append(c)
    return [by_rank[r] for r in RANKS if r in by_rank]


def _play(player: int, cards: list[Card], rank: Rank) -> PlayCardsAction:
    return PlayCardsAction.of(player, [c.id for c in cards], rank)


def challenge_probability(state: GameState, player: int, spec: AISpec) -> float:
    """Chance of calling the current declaration; 1.0 when it cannot be true."""
    play = challengeable_play(state, player)
    if play is None:
        return 0.0
    held = state.players[player].count_rank(play.declared_rank)
    if play.exceeds_copies(held):
        return 1.0

    p = spec.challenge_base
    if play.declared_count == 3:
        p += spec.challenge_declared_three
    if play.declared_count == 1:
        p += spec.challenge_declared_single
    if play.declared_rank in spec.high_ranks:
        p += spec.challenge_high_rank
    if len(state.players[play.player].hand) <= spec.short_hand_size:
        p += spec.challenge_short_hand
    return p


def should_challenge(state: GameState, player: int, rng: random.Random, spec: AISpec) -> bool:
    p = challenge_probability(state, player, spec)
    if p <= 0.0:
        return False
    return p >= 1.0 or rng.random() < p


def decide_opening(state: GameState, player: int, rng: random.Random, spec: AISpec) -> PlayCardsAction:
    hand = state.players[player].hand
    anchor = next(c for c in hand if c.id == ANCHOR_CARD_ID)
    eights = [c for c in hand if c.rank == ANCHOR_RANK and not c.is_anchor]
    if len(eights) < 2:
        return _play(player, [anchor], ANCHOR_RANK)

    chosen = [anchor] + eights[:3]
    # occasionally pass an unrelated card off as an eight
    if rng.random() < spec.opening_bluff and len(hand) > len(chosen):
        filler = next((c for c in hand if c.rank != ANCHOR_RANK), None)
        if filler is not None:
            chosen[1] = filler
    return _play(player, chosen, ANCHOR_RANK)


def bluff_rank(state: GameState) -> Rank:
    floor = rank_floor(state)
    legal = legal_ranks(state)
    for r in legal:
        if RANK_ORDER[r] in (floor, floor + 1):
            return r
    return legal[0]


def plan_play(state: GameState, player: int) -> Action:
    """Deterministic choice of cards for the AI's own turn."""
    hand = state.players[player].hand
    if not hand:
        if state.playable_pile:
            return TakePileAction(player=player)
        return PassAction(player=player)

    floor = rank_floor(state)
    groups = _groups(hand)
    honest = [g for g in groups if g[0].order >= floor]

    four = next((g for g in honest if len(g) == 4), None)
    if four is not None:
        return _play(player, four, four[0].rank)
    three = next((g for g in honest if len(g) >= 3), None)
    if three is not None:
        return _play(player, three[:3], three[0].rank)
    if honest:
        single = honest[0]
        return _play(player, single[:1], single[0].rank)

    smallest = min(groups, key=lambda g: (len(g), g[0].order))
    return _play(player, smallest[:1], bluff_rank(state))


def choose_action(state: GameState, player: int, rng: random.Random, spec: AISpec | None = None) -> Action:
    """Next command for the AI on its own turn.

    The AI may answer with a challenge or a last-card call before the play
    itself; it is invoked again after each accepted command.
    """
    spec = spec or AISpec()
    hand_size = len(state.players[player].hand)
    called = PenaltyProtocol.call_counts(state, player, hand_size)

    if state.opening_player == player:
        play: Action = decide_opening(state, player, rng, spec)
    else:
        if not called and should_challenge(state, player, rng, spec):
            return ChallengeAction(player=player)
        play = plan_play(state, player)

    if (
        isinstance(play, PlayCardsAction)
        and PenaltyProtocol.requires_call(hand_size, len(play.card_ids))
        and not called
        and rng.random() < spec.remember_last_card
    ):
        return DeclareLastCardAction(player=player)
    return play


def should_self_correct(rng: random.Random, spec: AISpec) -> bool:
    return rng.random() < spec.self_correct


def correction_delay(rng: random.Random, spec: AISpec) -> float:
    return rng.uniform(spec.correction_delay_min, spec.correction_delay_max)


def decide_final_challenge(state: GameState, player: int, rng: random.Random, spec: AISpec) -> FinalDecision:
    final = state.final_challenge
    if final is None:
        raise ValueError("No final challenge is pending.")
    play = final.play
    if play.exceeds_copies(state.players[player].count_rank(play.declared_rank)):
        return ChallengeFinalAction(player=player)
    chance = spec.final_challenge_three if play.declared_count == 3 else spec.final_challenge_other
    if rng.random() < chance:
        return ChallengeFinalAction(player=player)
    return ConcedeFinalAction(player=player)
