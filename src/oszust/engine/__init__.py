"""Headless rules engine for Oszust.

Every random choice goes through the game's seeded ``random.Random``, so a
seed plus a command sequence always reproduces the same game.
"""

from .actions import (
    ChallengeAction,
    ChallengeFinalAction,
    ConcedeFinalAction,
    DeclareLastCardAction,
    PassAction,
    PlayCardsAction,
    ReportMissingDeclarationAction,
    TakePileAction,
)
from .ai import AISpec
from .controller import GameConfig, StepResult, TurnController
from .state import GameState, InvariantViolation
from .types import Card, Rank, RejectReason, Suit

__all__ = [
    "AISpec",
    "Card",
    "ChallengeAction",
    "ChallengeFinalAction",
    "ConcedeFinalAction",
    "DeclareLastCardAction",
    "GameConfig",
    "GameState",
    "InvariantViolation",
    "PassAction",
    "PlayCardsAction",
    "Rank",
    "RejectReason",
    "ReportMissingDeclarationAction",
    "StepResult",
    "Suit",
    "TakePileAction",
    "TurnController",
]
