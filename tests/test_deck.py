from __future__ import annotations

import random
from collections import Counter

import pytest

from oszust.engine import deck
from oszust.engine.deck import DealError, build_deck, deal, deal_new_game, find_anchor_holder, shuffle, split_hands
from oszust.engine.types import ANCHOR_CARD_ID, DECK_SIZE, Card


def test_deck_has_four_of_each_rank() -> None:
    deck = build_deck()
    assert len(deck) == DECK_SIZE
    assert len({c.id for c in deck}) == DECK_SIZE
    assert set(Counter(c.rank for c in deck).values()) == {4}
    assert deck[0].id == "8-Spade"


def test_shuffle_is_reproducible_and_leaves_input_alone() -> None:
    deck = build_deck()
    a = shuffle(deck, random.Random(7))
    b = shuffle(deck, random.Random(7))
    assert [c.id for c in a] == [c.id for c in b]
    assert deck == build_deck()
    assert sorted(c.id for c in a) == sorted(c.id for c in deck)


def test_deal_alternates_cards() -> None:
    deck = build_deck()
    hands = deal(deck)
    assert len(hands[0]) == len(hands[1]) == 14
    assert hands[0][0] == deck[0]
    assert hands[1][0] == deck[1]


def test_deal_new_game_reports_anchor_holder() -> None:
    hands, holder = deal_new_game(random.Random(3))
    assert any(c.id == ANCHOR_CARD_ID for c in hands[holder])
    assert find_anchor_holder(hands) == holder


def test_split_hands_gives_player_zero_the_named_cards() -> None:
    hand0, hand1 = split_hands(["8-Heart", "A-Club"])
    assert [c.id for c in hand0] == ["8-Heart", "A-Club"]
    assert len(hand1) == DECK_SIZE - 2
    with pytest.raises(ValueError):
        split_hands(["9-Spade", "9-Spade"])


def test_card_ids_round_trip() -> None:
    card = Card.from_id("10-Diamond")
    assert card.rank == "10"
    assert card.suit == "Diamond"
    assert str(card.id) == "10-Diamond"
    assert Card.from_id(ANCHOR_CARD_ID).is_anchor
    with pytest.raises(ValueError):
        Card.from_id("2-Heart")


def test_deal_without_anchor_holder_is_redealt(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []
    real_deal = deck.deal

    def deal_dropping_anchor_once(shuffled: list[Card]) -> deck.Hands:
        calls.append(len(shuffled))
        hands = real_deal(shuffled)
        if len(calls) == 1:
            return ([c for c in hands[0] if not c.is_anchor], [c for c in hands[1] if not c.is_anchor])
        return hands

    monkeypatch.setattr(deck, "deal", deal_dropping_anchor_once)
    hands, holder = deal_new_game(random.Random(3))
    assert len(calls) == 2
    assert any(c.is_anchor for c in hands[holder])


def test_deal_gives_up_after_max_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []

    def deal_without_anchor(shuffled: list[Card]) -> deck.Hands:
        calls.append(len(shuffled))
        return ([], [])

    monkeypatch.setattr(deck, "deal", deal_without_anchor)
    with pytest.raises(DealError):
        deal_new_game(random.Random(3), max_attempts=3)
    assert len(calls) == 3
