from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Sequence

from .types import ANCHOR_CARD_ID, DECK_SIZE, RANKS, SUITS, Card

logger = logging.getLogger(__name__)

Hands = tuple[list[Card], list[Card]]


class DealError(RuntimeError):
    pass


def build_deck() -> list[Card]:
    """The 28 cards in canonical order: suit by suit, ranks ascending."""
    return [Card(suit=suit, rank=rank) for suit in SUITS for rank in RANKS]


def shuffle(deck: Sequence[Card], rng: random.Random) -> list[Card]:
    # random.Random.shuffle is an in-place Fisher-Yates; keep the input untouched.
    out = list(deck)
    rng.shuffle(out)
    return out


def deal(shuffled: Sequence[Card]) -> Hands:
    hands: Hands = ([], [])
    for i, card in enumerate(shuffled):
        hands[i % 2].append(card)
    return hands


def find_anchor_holder(hands: Hands) -> int | None:
    for player, hand in enumerate(hands):
        if any(c.id == ANCHOR_CARD_ID for c in hand):
            return player
    return None


def deal_new_game(rng: random.Random, max_attempts: int = 10) -> tuple[Hands, int]:
    """Shuffle and deal until one hand holds the anchor card.

    Returns the two hands and the index of the opening player. A deal without
    the anchor is retried with a fresh shuffle rather than reported.
    """
    for attempt in range(1, max_attempts + 1):
        hands = deal(shuffle(build_deck(), rng))
        holder = find_anchor_holder(hands)
        if holder is not None:
            return hands, holder
        logger.info("Deal %d had no anchor holder; redealing", attempt)
    raise DealError(f"No valid deal after {max_attempts} attempts.")


def split_hands(hand0_ids: Iterable[str]) -> Hands:
    """Give the named cards to player 0 and the rest of the deck to player 1."""
    wanted = list(hand0_ids)
    if len(set(wanted)) != len(wanted):
        raise ValueError("Duplicate card ids in hand.")
    cards = [Card.from_id(cid) for cid in wanted]
    chosen = set(wanted)
    rest = [c for c in build_deck() if c.id not in chosen]
    if len(cards) + len(rest) != DECK_SIZE:
        raise ValueError("Hands must partition the deck.")
    return cards, rest
