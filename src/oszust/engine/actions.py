from __future__ import annotations

from dataclasses import dataclass

from .types import Rank


@dataclass(frozen=True)
class PlayCardsAction:
    player: int
    card_ids: tuple[str, ...]
    declared_rank: Rank | None = None

    @staticmethod
    def of(player: int, card_ids: list[str] | tuple[str, ...], declared_rank: Rank | None = None) -> "PlayCardsAction":
        return PlayCardsAction(player=player, card_ids=tuple(card_ids), declared_rank=declared_rank)


@dataclass(frozen=True)
class DeclareLastCardAction:
    player: int


@dataclass(frozen=True)
class ChallengeAction:
    player: int


@dataclass(frozen=True)
class TakePileAction:
    player: int


@dataclass(frozen=True)
class PassAction:
    player: int


@dataclass(frozen=True)
class ReportMissingDeclarationAction:
    player: int


@dataclass(frozen=True)
class ChallengeFinalAction:
    player: int


@dataclass(frozen=True)
class ConcedeFinalAction:
    player: int


FinalDecision = ChallengeFinalAction | ConcedeFinalAction

Action = (
    PlayCardsAction
    | DeclareLastCardAction
    | ChallengeAction
    | TakePileAction
    | PassAction
    | ReportMissingDeclarationAction
    | ChallengeFinalAction
    | ConcedeFinalAction
)
