from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Literal

from .actions import Action
from .types import ANCHOR_CARD_ID, COPIES_PER_RANK, Card, Rank

Event = dict[str, object]

ProtocolStatus = Literal["armed", "resolved"]


class InvariantViolation(RuntimeError):
    pass


@dataclass
class PlayerState:
    id: int
    name: str
    is_human: bool
    hand: list[Card] = field(default_factory=list)

    def find(self, card_id: str) -> Card | None:
        for c in self.hand:
            if c.id == card_id:
                return c
        return None

    def count_rank(self, rank: Rank) -> int:
        return sum(1 for c in self.hand if c.rank == rank)


@dataclass(frozen=True)
class DeclaredPlay:
    player: int
    declared_rank: Rank
    declared_count: int
    actual_cards: tuple[Card, ...]
    is_challengeable: bool

    @property
    def is_bluff(self) -> bool:
        return any(c.rank != self.declared_rank for c in self.actual_cards)

    def exceeds_copies(self, held_of_rank: int) -> bool:
        """True when the claim plus cards seen elsewhere cannot all exist."""
        return self.declared_count + held_of_rank > COPIES_PER_RANK


@dataclass(frozen=True)
class LastCardCall:
    player: int
    hand_size: int


@dataclass
class PenaltyWindow:
    id: int
    target: int
    accuser: int
    opens_at: float
    expires_at: float
    status: ProtocolStatus = "armed"
    outcome: str | None = None

    @property
    def armed(self) -> bool:
        return self.status == "armed"

    def is_open(self, now: float) -> bool:
        return now >= self.expires_at

    def resolve(self, outcome: str) -> bool:
        # Single assignment: only the first resolution sticks.
        if self.status != "armed":
            return False
        self.status = "resolved"
        self.outcome = outcome
        return True


@dataclass
class FinalChallenge:
    id: int
    play: DeclaredPlay
    decider: int
    status: ProtocolStatus = "armed"
    outcome: str | None = None

    @property
    def armed(self) -> bool:
        return self.status == "armed"

    def resolve(self, outcome: str) -> bool:
        if self.status != "armed":
            return False
        self.status = "resolved"
        self.outcome = outcome
        return True


PendingProtocol = PenaltyWindow | FinalChallenge


@dataclass
class GameState:
    seed: int
    rng: random.Random
    players: list[PlayerState]
    current_player: int
    pile: list[Card] = field(default_factory=list)
    opening_player: int | None = None
    anchor_played: bool = False
    last_play: DeclaredPlay | None = None
    last_card_call: LastCardCall | None = None
    pending: PendingProtocol | None = None
    closed_protocol: PendingProtocol | None = None
    winner: int | None = None
    halted: bool = False
    turns_played: int = 0
    protocol_seq: int = 0
    action_log: list[Action] = field(default_factory=list)
    event_log: list[Event] = field(default_factory=list)

    def opponent(self, player: int) -> int:
        return 1 - player

    @property
    def is_over(self) -> bool:
        return self.winner is not None or self.halted

    @property
    def anchor_on_pile(self) -> bool:
        return bool(self.pile) and self.pile[0].id == ANCHOR_CARD_ID

    @property
    def playable_pile(self) -> list[Card]:
        """The part of the pile that pickups and challenges may move."""
        return self.pile[1:] if self.anchor_on_pile else list(self.pile)

    def card_total(self) -> int:
        return len(self.pile) + sum(len(p.hand) for p in self.players)

    def next_protocol_id(self) -> int:
        self.protocol_seq += 1
        return self.protocol_seq

    @property
    def penalty(self) -> PenaltyWindow | None:
        return self.pending if isinstance(self.pending, PenaltyWindow) else None

    @property
    def final_challenge(self) -> FinalChallenge | None:
        return self.pending if isinstance(self.pending, FinalChallenge) else None
