from __future__ import annotations

from oszust.engine.actions import ChallengeAction, PassAction, PlayCardsAction, TakePileAction
from oszust.engine.controller import GameConfig, StepResult, TurnController
from oszust.engine.deck import split_hands
from oszust.engine.state import DeclaredPlay, Event
from oszust.engine.types import Card, Rank

HAND0 = ["8-Heart", "9-Spade", "9-Club", "Q-Spade", "10-Spade", "J-Spade", "A-Spade"]


def _start(hand0: list[str] = HAND0) -> TurnController:
    controller = TurnController(GameConfig(human_players=(True, True)))
    controller.start_from_hands(split_hands(hand0))
    return controller


def _play(c: TurnController, player: int, ids: list[str], rank: Rank | None = None) -> StepResult:
    return c.submit(PlayCardsAction.of(player, ids, rank))


def _event(events: list[Event], event_type: str) -> Event:
    return next(e for e in events if e["type"] == event_type)


def test_declared_play_with_mismatched_cards_is_a_bluff() -> None:
    cards = tuple(Card.from_id(cid) for cid in ["9-Spade", "9-Club", "Q-Heart"])
    play = DeclaredPlay(player=0, declared_rank="Q", declared_count=3, actual_cards=cards, is_challengeable=True)
    assert play.is_bluff
    honest = DeclaredPlay(player=0, declared_rank="9", declared_count=1, actual_cards=cards[:1], is_challengeable=True)
    assert not honest.is_bluff


def test_only_anchor_holder_may_open() -> None:
    c = _start()
    assert c.phase == "opening"
    assert c.state.current_player == 0

    res = _play(c, 1, ["9-Heart"], "9")
    assert not res.ok
    assert res.error == "NotYourTurn"

    res = _play(c, 0, ["9-Spade"], "9")
    assert res.error == "OpeningConstraintViolated"

    res = _play(c, 0, ["8-Heart", "9-Spade"], "8")
    assert res.error == "InvalidCardCount"

    assert c.submit(TakePileAction(player=0)).error == "OpeningConstraintViolated"
    assert c.state.pile == []


def test_opening_declares_eight_and_pins_anchor() -> None:
    c = _start()
    res = _play(c, 0, ["9-Spade", "8-Heart", "9-Club"], "A")
    assert res.ok
    play = c.state.last_play
    assert play is not None
    assert play.declared_rank == "8"
    assert play.declared_count == 3
    assert play.is_challengeable
    assert [card.id for card in c.state.pile] == ["8-Heart", "9-Spade", "9-Club"]
    assert c.state.current_player == 1
    assert c.phase == "challenge_window"


def test_bluff_is_caught_and_declarer_takes_pile() -> None:
    c = _start()
    assert _play(c, 0, ["8-Heart"]).ok
    assert _play(c, 1, ["9-Heart", "9-Diamond", "Q-Heart"], "Q").ok

    res = c.submit(ChallengeAction(player=0))
    assert res.ok
    resolved = _event(res.events, "CHALLENGE_RESOLVED")
    assert resolved["is_bluff"] is True
    assert resolved["taker"] == 1
    assert resolved["cards_taken"] == ["9-Heart", "9-Diamond", "Q-Heart"]
    assert len(c.state.players[1].hand) == 21
    assert [card.id for card in c.state.pile] == ["8-Heart"]
    assert c.state.current_player == 1
    assert c.state.last_play is None


def test_failed_challenge_hands_pile_to_challenger() -> None:
    c = _start()
    _play(c, 0, ["8-Heart"])
    _play(c, 1, ["Q-Heart"], "Q")

    res = c.submit(ChallengeAction(player=0))
    assert res.ok
    assert _event(res.events, "CHALLENGE_RESOLVED")["taker"] == 0
    assert len(c.state.players[0].hand) == 7
    assert c.state.current_player == 0


def test_declaring_below_current_rank_is_rejected() -> None:
    c = _start()
    _play(c, 0, ["8-Heart"])
    _play(c, 1, ["Q-Heart"], "Q")

    res = _play(c, 0, ["9-Spade"], "9")
    assert not res.ok
    assert res.error == "RankTooLow"
    assert _event(res.events, "PLAY_REJECTED")["reason"] == "RankTooLow"
    assert len(c.state.players[0].hand) == 6
    assert c.state.current_player == 0


def test_honest_four_of_a_kind_cannot_be_challenged() -> None:
    c = _start()
    _play(c, 0, ["8-Heart"])
    res = _play(c, 1, ["K-Spade", "K-Heart", "K-Club", "K-Diamond"])
    assert res.ok
    play = c.state.last_play
    assert play is not None
    assert play.declared_rank == "K"
    assert not play.is_challengeable

    assert c.submit(ChallengeAction(player=0)).error == "NoChallengeablePlay"
    assert _play(c, 0, ["Q-Spade"], "Q").error == "RankTooLow"
    assert _play(c, 0, ["A-Spade"], "A").ok


def test_malformed_plays_are_rejected() -> None:
    c = _start()
    _play(c, 0, ["8-Heart"])
    assert _play(c, 1, ["9-Spade"], "9").error == "CardNotOwned"
    assert _play(c, 1, ["9-Heart", "9-Heart", "9-Diamond"], "9").error == "CardNotOwned"
    assert _play(c, 1, ["Q-Heart"], "Z").error == "InvalidRank"  # type: ignore[arg-type]
    assert _play(c, 1, ["Q-Heart"], None).error == "InvalidRank"
    assert len(c.state.players[1].hand) == 21


def test_take_pile_moves_top_three_and_leaves_anchor() -> None:
    c = _start()
    assert c.submit(TakePileAction(player=1)).error == "NotYourTurn"
    _play(c, 0, ["8-Heart", "9-Spade", "9-Club"])
    assert c.submit(PassAction(player=1)).error == "PassNotAllowed"
    _play(c, 1, ["Q-Heart"], "Q")
    _play(c, 0, ["A-Spade"], "A")

    res = c.submit(TakePileAction(player=1))
    assert res.ok
    assert _event(res.events, "PILE_TAKEN")["cards"] == ["9-Club", "Q-Heart", "A-Spade"]
    assert [card.id for card in c.state.pile] == ["8-Heart", "9-Spade"]
    assert len(c.state.players[1].hand) == 23
    assert c.state.last_play is None
    assert c.state.current_player == 0


def test_empty_playable_pile_cannot_be_taken() -> None:
    c = _start()
    _play(c, 0, ["8-Heart"])
    assert c.submit(TakePileAction(player=1)).error == "PileEmpty"
