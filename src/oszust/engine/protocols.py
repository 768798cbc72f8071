"""Last-card penalty and final-challenge protocols.

Both protocols live in ``GameState.pending``; at most one is active. They
move between ``armed`` and ``resolved`` only, and the first resolution wins.
Card movement is left to the controller.
"""

from __future__ import annotations

from .state import DeclaredPlay, FinalChallenge, GameState, LastCardCall, PenaltyWindow
from .types import RejectReason


def _close(state: GameState, protocol: PenaltyWindow | FinalChallenge) -> None:
    if state.pending is protocol:
        state.pending = None
    state.closed_protocol = protocol


class PenaltyProtocol:
    def __init__(self, timeout: float) -> None:
        self.timeout = timeout

    @staticmethod
    def requires_call(hand_before: int, played: int) -> bool:
        return hand_before - played == 1

    @staticmethod
    def call_counts(state: GameState, player: int, hand_before: int) -> bool:
        """A call is only valid for the hand size it was made at."""
        call = state.last_card_call
        return call is not None and call.player == player and call.hand_size == hand_before

    @staticmethod
    def record_call(state: GameState, player: int) -> LastCardCall:
        call = LastCardCall(player=player, hand_size=len(state.players[player].hand))
        state.last_card_call = call
        return call

    def arm(self, state: GameState, target: int, now: float) -> PenaltyWindow:
        window = PenaltyWindow(
            id=state.next_protocol_id(),
            target=target,
            accuser=state.opponent(target),
            opens_at=now,
            expires_at=now + self.timeout,
        )
        state.pending = window
        return window

    @staticmethod
    def concerns_target(state: GameState, player: int) -> bool:
        window = state.penalty
        if window is not None and window.target == player:
            return True
        closed = state.closed_protocol
        return isinstance(closed, PenaltyWindow) and closed.target == player

    @staticmethod
    def self_declare(state: GameState, player: int) -> RejectReason | None:
        window = state.penalty
        if window is None or window.target != player:
            return "StaleProtocolAction" if PenaltyProtocol.concerns_target(state, player) else "ProtocolNotPending"
        if not window.resolve("declared"):
            return "StaleProtocolAction"
        _close(state, window)
        return None

    @staticmethod
    def accuse(state: GameState, player: int, now: float) -> RejectReason | None:
        window = state.penalty
        if window is not None and window.accuser == player:
            if not window.is_open(now):
                return "PenaltyWindowNotOpen"
            if not window.resolve("accused"):
                return "StaleProtocolAction"
            _close(state, window)
            return None
        closed = state.closed_protocol
        if isinstance(closed, PenaltyWindow) and closed.accuser == player:
            return "StaleProtocolAction"
        return "ProtocolNotPending"

    @staticmethod
    def waive(state: GameState, player: int, now: float) -> PenaltyWindow | None:
        """The accuser moved on after the window opened."""
        window = state.penalty
        if window is None or window.accuser != player or not window.is_open(now):
            return None
        if window.resolve("waived"):
            _close(state, window)
            return window
        return None

    @staticmethod
    def invalidate(state: GameState) -> PenaltyWindow | None:
        window = state.penalty
        if window is None or len(state.players[window.target].hand) == 1:
            return None
        if window.resolve("cancelled"):
            _close(state, window)
            return window
        return None

    @staticmethod
    def supersede(state: GameState) -> PenaltyWindow | None:
        window = state.penalty
        if window is not None and window.resolve("superseded"):
            _close(state, window)
            return window
        return None


class FinalChallengeProtocol:
    @staticmethod
    def triggers(play: DeclaredPlay, hand_left: int) -> bool:
        return play.is_challengeable and hand_left == 0

    @staticmethod
    def open(state: GameState, play: DeclaredPlay) -> FinalChallenge:
        final = FinalChallenge(id=state.next_protocol_id(), play=play, decider=state.opponent(play.player))
        state.pending = final
        return final

    @staticmethod
    def claim(state: GameState, player: int, outcome: str) -> tuple[FinalChallenge | None, RejectReason | None]:
        final = state.final_challenge
        if final is None:
            closed = state.closed_protocol
            if isinstance(closed, FinalChallenge) and closed.decider == player:
                return None, "StaleProtocolAction"
            return None, "ProtocolNotPending"
        if player != final.decider:
            return None, "NotYourTurn"
        if not final.resolve(outcome):
            return None, "StaleProtocolAction"
        _close(state, final)
        return final, None
