from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Suit = Literal["Spade", "Heart", "Club", "Diamond"]
Rank = Literal["8", "9", "10", "J", "Q", "K", "A"]

SUITS: tuple[Suit, ...] = ("Spade", "Heart", "Club", "Diamond")
RANKS: tuple[Rank, ...] = ("8", "9", "10", "J", "Q", "K", "A")

RANK_ORDER: dict[Rank, int] = {
    "8": 1,
    "9": 2,
    "10": 3,
    "J": 4,
    "Q": 5,
    "K": 6,
    "A": 7,
}

COPIES_PER_RANK = len(SUITS)
DECK_SIZE = len(SUITS) * len(RANKS)
PLAY_SIZES = (1, 3, 4)
PILE_TAKE_COUNT = 3

ANCHOR_RANK: Rank = "8"
ANCHOR_SUIT: Suit = "Heart"
ANCHOR_CARD_ID = f"{ANCHOR_RANK}-{ANCHOR_SUIT}"

RejectReason = Literal[
    "NotYourTurn",
    "CardNotOwned",
    "InvalidCardCount",
    "InvalidRank",
    "RankTooLow",
    "OpeningConstraintViolated",
    "NoChallengeablePlay",
    "PileEmpty",
    "PassNotAllowed",
    "ProtocolNotPending",
    "ProtocolPending",
    "PenaltyWindowNotOpen",
    "StaleProtocolAction",
    "GameNotInProgress",
]


def is_rank(value: object) -> bool:
    return isinstance(value, str) and value in RANK_ORDER


@dataclass(frozen=True)
class Card:
    suit: Suit
    rank: Rank

    @property
    def id(self) -> str:
        return f"{self.rank}-{self.suit}"

    @property
    def order(self) -> int:
        return RANK_ORDER[self.rank]

    @property
    def is_anchor(self) -> bool:
        return self.id == ANCHOR_CARD_ID

    @staticmethod
    def from_id(card_id: str) -> "Card":
        rank, sep, suit = card_id.partition("-")
        if not sep or rank not in RANK_ORDER or suit not in SUITS:
            raise ValueError(f"Unknown card id: {card_id!r}")
        return Card(suit=suit, rank=rank)  # type: ignore[arg-type]

    def __str__(self) -> str:
        return self.id
