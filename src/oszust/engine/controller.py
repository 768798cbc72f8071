from __future__ import annotations

import logging
import random
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Literal, Protocol

from . import ai
from .actions import (
    Action,
    ChallengeAction,
    ChallengeFinalAction,
    ConcedeFinalAction,
    DeclareLastCardAction,
    PassAction,
    PlayCardsAction,
    ReportMissingDeclarationAction,
    TakePileAction,
)
from .deck import Hands, deal_new_game, find_anchor_holder
from .protocols import FinalChallengeProtocol, PenaltyProtocol
from .rules import (
    ChallengeOutcome,
    challengeable_play,
    pile_top,
    resolve_challenge,
    validate_pass,
    validate_play,
    validate_take_pile,
)
from .scheduler import Scheduler
from .serialize import card_ids, declared_play_to_dict
from .state import (
    DeclaredPlay,
    Event,
    FinalChallenge,
    GameState,
    InvariantViolation,
    PenaltyWindow,
    PlayerState,
)
from .types import DECK_SIZE, Card, RejectReason

logger = logging.getLogger(__name__)

COMMANDS = (
    PlayCardsAction,
    DeclareLastCardAction,
    ChallengeAction,
    TakePileAction,
    PassAction,
    ReportMissingDeclarationAction,
    ChallengeFinalAction,
    ConcedeFinalAction,
)

Phase = Literal[
    "idle",
    "opening",
    "playing",
    "challenge_window",
    "penalty_armed",
    "final_challenge_pending",
    "game_over",
]


class EventSink(Protocol):
    def log(self, event_type: str, payload: Mapping[str, object]) -> None: ...


@dataclass(frozen=True)
class GameConfig:
    penalty_timeout: float = 3.0
    player_names: tuple[str, str] = ("Player", "AI")
    human_players: tuple[bool, bool] = (True, False)
    max_deal_attempts: int = 10
    max_auto_actions: int = 500


@dataclass
class StepResult:
    ok: bool
    events: list[Event]
    error: RejectReason | None = None
    message: str = ""


class TurnController:
    """Owns the game state and applies every command to it.

    All transitions go through :meth:`submit` (commands) or :meth:`advance`
    (time). After each accepted command the controller runs its follow-up
    steps explicitly: protocol validity, win check, invariant check, then
    the computer player's moves.
    """

    def __init__(
        self,
        config: GameConfig | None = None,
        ai_spec: ai.AISpec | None = None,
        telemetry: EventSink | None = None,
    ) -> None:
        self.config = config or GameConfig()
        self.ai_spec = ai_spec or ai.AISpec()
        self.telemetry = telemetry
        self.scheduler = Scheduler()
        self.penalty = PenaltyProtocol(self.config.penalty_timeout)
        self.final = FinalChallengeProtocol()
        self._state: GameState | None = None
        self._batch: list[Event] = []

    # ------------------------------------------------------------------
    # Public surface

    @property
    def state(self) -> GameState:
        if self._state is None:
            raise RuntimeError("No game has been started.")
        return self._state

    @property
    def now(self) -> float:
        return self.scheduler.now

    @property
    def phase(self) -> Phase:
        state = self._state
        if state is None:
            return "idle"
        if state.is_over:
            return "game_over"
        if state.final_challenge is not None:
            return "final_challenge_pending"
        if state.penalty is not None:
            return "penalty_armed"
        if state.opening_player is not None:
            return "opening"
        if state.last_play is not None and state.last_play.is_challengeable:
            return "challenge_window"
        return "playing"

    def start_game(self, seed: int | None = None) -> StepResult:
        if seed is None:
            seed = random.randrange(2**31)
        rng = random.Random(seed)
        hands, opener = deal_new_game(rng, self.config.max_deal_attempts)
        return self._begin(seed, rng, hands, opener)

    def start_from_hands(self, hands: Sequence[Sequence[Card]], seed: int = 0) -> StepResult:
        """Start from a fixed deal instead of a shuffle."""
        dealt: Hands = (list(hands[0]), list(hands[1]))
        ids = card_ids(dealt[0] + dealt[1])
        if len(ids) != DECK_SIZE or len(set(ids)) != DECK_SIZE:
            raise ValueError(f"Hands must hold all {DECK_SIZE} cards exactly once.")
        opener = find_anchor_holder(dealt)
        if opener is None:
            raise ValueError("Nobody holds the anchor card.")
        return self._begin(seed, random.Random(seed), dealt, opener)

    def submit(self, action: Action) -> StepResult:
        state = self._state
        if state is not None and state.winner is not None and self._settles_closed_final(action):
            return self._reject("StaleProtocolAction", "The final challenge is already settled.", action)
        if state is None or state.is_over:
            return StepResult(ok=False, events=[], error="GameNotInProgress", message="No game in progress.")
        with self._halt_on_violation():
            result = self._apply(action)
            if result.ok:
                self._drive_ai()
            result.events = self._take_batch()
        return result

    def advance(self, dt: float) -> list[Event]:
        """Move the clock forward by ``dt`` time units and fire due timers."""
        with self._halt_on_violation():
            return self.scheduler.advance(dt)

    # ------------------------------------------------------------------
    # Lifecycle

    def _begin(self, seed: int, rng: random.Random, hands: Hands, opener: int) -> StepResult:
        self.scheduler.cancel_all()
        self.scheduler = Scheduler()
        players = [
            PlayerState(
                id=i,
                name=self.config.player_names[i],
                is_human=self.config.human_players[i],
                hand=list(hands[i]),
            )
            for i in (0, 1)
        ]
        self._state = GameState(
            seed=seed,
            rng=rng,
            players=players,
            current_player=opener,
            opening_player=opener,
        )
        self._batch = []
        logger.info("Game started (seed=%s); %s opens", seed, players[opener].name)
        with self._halt_on_violation():
            self._emit("GAME_STARTED", seed=seed, opening_player=opener)
            self._check_invariants()
            self._drive_ai()
            return StepResult(ok=True, events=self._take_batch())

    @contextmanager
    def _halt_on_violation(self) -> Iterator[None]:
        try:
            yield
        except InvariantViolation:
            logger.critical("Game state invariant violated; halting", exc_info=True)
            if self._state is not None:
                self._state.halted = True
            self.scheduler.cancel_all()
            raise

    def _finish(self, winner: int, reason: str) -> None:
        state = self.state
        state.winner = winner
        state.pending = None
        self.scheduler.cancel_all()
        logger.info("Game over: %s wins (%s)", state.players[winner].name, reason)
        self._emit("GAME_OVER", winner=winner, reason=reason)

    # ------------------------------------------------------------------
    # Events

    def _emit(self, event_type: str, **payload: object) -> None:
        event: Event = {"type": event_type, **payload}
        self.state.event_log.append(event)
        self._batch.append(event)
        if self.telemetry is not None:
            self.telemetry.log(event_type, payload)

    def _take_batch(self) -> list[Event]:
        out, self._batch = self._batch, []
        return out

    def _reject(self, reason: RejectReason | None, message: str, action: Action) -> StepResult:
        error: RejectReason = reason or "GameNotInProgress"
        if error == "StaleProtocolAction":
            logger.debug("Ignoring stale %s", action)
        if isinstance(action, PlayCardsAction):
            self._emit("PLAY_REJECTED", player=action.player, reason=error)
        return StepResult(ok=False, events=[], error=error, message=message)

    def _settles_closed_final(self, action: Action) -> bool:
        """A decision aimed at the final challenge that already ended the game."""
        closed = self.state.closed_protocol
        return (
            isinstance(action, (ChallengeFinalAction, ConcedeFinalAction))
            and isinstance(closed, FinalChallenge)
            and closed.decider == action.player
        )

    # ------------------------------------------------------------------
    # Command dispatch

    def _apply(self, action: Action) -> StepResult:
        state = self.state
        if state.is_over:
            return StepResult(ok=False, events=[], error="GameNotInProgress", message="The game is over.")
        if not isinstance(action, COMMANDS):
            raise TypeError(f"Unknown action: {action!r}")

        # Log first so the record holds every attempted command.
        state.action_log.append(action)

        if state.final_challenge is not None and not isinstance(
            action, (ChallengeFinalAction, ConcedeFinalAction)
        ):
            return self._reject("ProtocolPending", "Waiting for the final challenge decision.", action)

        if isinstance(action, PlayCardsAction):
            result = self._play_cards(action)
        elif isinstance(action, DeclareLastCardAction):
            result = self._declare_last_card(action)
        elif isinstance(action, ChallengeAction):
            result = self._challenge(action)
        elif isinstance(action, TakePileAction):
            result = self._take_pile(action)
        elif isinstance(action, PassAction):
            result = self._pass(action)
        elif isinstance(action, ReportMissingDeclarationAction):
            result = self._report_missing_declaration(action)
        elif isinstance(action, ChallengeFinalAction):
            result = self._challenge_final(action)
        else:
            result = self._concede_final(action)

        if result.ok:
            self._after_transition()
        return result

    def _play_cards(self, action: PlayCardsAction) -> StepResult:
        state = self.state
        verdict = validate_play(state, action.player, action.card_ids, action.declared_rank)
        if not verdict.ok or verdict.declared_rank is None:
            return self._reject(verdict.reason, verdict.message, action)

        state.closed_protocol = None
        self._waive_penalty(action.player)

        ps = state.players[action.player]
        hand_before = len(ps.hand)
        called = self.penalty.call_counts(state, action.player, hand_before)

        played = {c.id for c in verdict.cards}
        ps.hand = [c for c in ps.hand if c.id not in played]
        state.pile.extend(verdict.cards)
        if verdict.is_opening:
            state.opening_player = None
            state.anchor_played = True

        play = DeclaredPlay(
            player=action.player,
            declared_rank=verdict.declared_rank,
            declared_count=len(verdict.cards),
            actual_cards=verdict.cards,
            is_challengeable=verdict.is_challengeable,
        )
        state.last_play = play
        state.last_card_call = None
        state.turns_played += 1
        state.current_player = state.opponent(action.player)
        self._emit("PLAY_ACCEPTED", play=declared_play_to_dict(play), opening=verdict.is_opening)

        if not ps.hand:
            if self.final.triggers(play, 0):
                self._open_final_challenge(play)
            else:
                self._finish(action.player, "four_of_a_kind")
        elif self.penalty.requires_call(hand_before, len(verdict.cards)) and not called:
            self._arm_penalty(action.player)
        return StepResult(ok=True, events=[])

    def _declare_last_card(self, action: DeclareLastCardAction) -> StepResult:
        state = self.state
        player = action.player
        window = state.penalty

        if window is not None and window.target == player:
            err = self.penalty.self_declare(state, player)
            if err is not None:
                return self._reject(err, "That penalty window is already closed.", action)
            self.scheduler.cancel_protocol(window.id)
            self._emit("LAST_CARD_DECLARED", player=player)
            self._emit("PENALTY_AVOIDED", target=player, protocol_id=window.id)
            return StepResult(ok=True, events=[])

        # A call ahead of the play that leaves one card.
        if player == state.current_player and len(state.players[player].hand) >= 2:
            call = self.penalty.record_call(state, player)
            self._emit("LAST_CARD_DECLARED", player=player, hand_size=call.hand_size)
            return StepResult(ok=True, events=[])

        if self.penalty.concerns_target(state, player):
            return self._reject("StaleProtocolAction", "That penalty window is already closed.", action)
        if player != state.current_player:
            return self._reject("NotYourTurn", "Not your turn.", action)
        return self._reject("ProtocolNotPending", "Nothing to declare.", action)

    def _challenge(self, action: ChallengeAction) -> StepResult:
        state = self.state
        if action.player != state.current_player:
            return self._reject("NotYourTurn", "Not your turn.", action)
        play = challengeable_play(state, action.player)
        if play is None:
            return self._reject("NoChallengeablePlay", "There is no play to challenge.", action)
        state.closed_protocol = None
        self._waive_penalty(action.player)
        self._settle_challenge(play, action.player)
        return StepResult(ok=True, events=[])

    def _take_pile(self, action: TakePileAction) -> StepResult:
        state = self.state
        reason = validate_take_pile(state, action.player)
        if reason is not None:
            return self._reject(reason, "You cannot take from the pile now.", action)
        state.closed_protocol = None
        self._waive_penalty(action.player)
        taken = pile_top(state)
        self._move_to_hand(taken, action.player)
        state.last_play = None
        state.current_player = state.opponent(action.player)
        self._emit("PILE_TAKEN", player=action.player, cards=card_ids(taken))
        return StepResult(ok=True, events=[])

    def _pass(self, action: PassAction) -> StepResult:
        state = self.state
        reason = validate_pass(state, action.player)
        if reason is not None:
            return self._reject(reason, "You still have a move.", action)
        state.closed_protocol = None
        self._waive_penalty(action.player)
        state.current_player = state.opponent(action.player)
        self._emit("TURN_PASSED", player=action.player)
        return StepResult(ok=True, events=[])

    def _report_missing_declaration(self, action: ReportMissingDeclarationAction) -> StepResult:
        state = self.state
        window = state.penalty
        err = self.penalty.accuse(state, action.player, self.now)
        if err is not None or window is None:
            return self._reject(err, "No penalty can be reported now.", action)
        self.scheduler.cancel_protocol(window.id)
        taken = pile_top(state)
        self._move_to_hand(taken, window.target)
        state.last_play = None
        state.last_card_call = None
        state.current_player = window.accuser
        self._emit(
            "PENALTY_APPLIED",
            target=window.target,
            accuser=window.accuser,
            cards_taken=card_ids(taken),
            protocol_id=window.id,
        )
        return StepResult(ok=True, events=[])

    def _challenge_final(self, action: ChallengeFinalAction) -> StepResult:
        final, err = self.final.claim(self.state, action.player, "challenged")
        if err is not None or final is None:
            return self._reject(err, "No final challenge is pending.", action)
        self.scheduler.cancel_protocol(final.id)
        outcome = self._settle_challenge(final.play, action.player)
        if not outcome.is_bluff:
            self._finish(final.play.player, "final_challenge_honest")
        return StepResult(ok=True, events=[])

    def _concede_final(self, action: ConcedeFinalAction) -> StepResult:
        final, err = self.final.claim(self.state, action.player, "conceded")
        if err is not None or final is None:
            return self._reject(err, "No final challenge is pending.", action)
        self.scheduler.cancel_protocol(final.id)
        self._finish(final.play.player, "conceded")
        return StepResult(ok=True, events=[])

    # ------------------------------------------------------------------
    # Shared transitions

    def _move_to_hand(self, cards: Sequence[Card], player: int) -> None:
        state = self.state
        moving = {c.id for c in cards}
        state.pile = [c for c in state.pile if c.id not in moving]
        state.players[player].hand.extend(cards)

    def _settle_challenge(self, play: DeclaredPlay, challenger: int) -> ChallengeOutcome:
        state = self.state
        outcome = resolve_challenge(state, play, challenger)
        self._move_to_hand(outcome.cards_taken, outcome.taker)
        state.last_play = None
        state.current_player = outcome.taker
        self._emit(
            "CHALLENGE_RESOLVED",
            challenger=challenger,
            declarer=play.player,
            is_bluff=outcome.is_bluff,
            taker=outcome.taker,
            revealed_cards=card_ids(outcome.revealed),
            cards_taken=card_ids(outcome.cards_taken),
        )
        return outcome

    def _open_final_challenge(self, play: DeclaredPlay) -> None:
        state = self.state
        self._supersede_penalty()
        final = self.final.open(state, play)
        state.current_player = final.decider
        self._emit("FINAL_CHALLENGE_PENDING", player=play.player, decider=final.decider, protocol_id=final.id)
        if not state.players[final.decider].is_human:
            pid = final.id
            self.scheduler.schedule(
                (pid, "ai-final"), self.ai_spec.final_decision_delay, lambda: self._on_ai_final_decision(pid)
            )

    def _arm_penalty(self, target: int) -> None:
        state = self.state
        self._supersede_penalty()
        window = self.penalty.arm(state, target, self.now)
        pid = window.id
        self._emit(
            "PENALTY_ARMED",
            target=window.target,
            accuser=window.accuser,
            expires_at=window.expires_at,
            protocol_id=pid,
        )
        self.scheduler.schedule((pid, "expire"), self.penalty.timeout, lambda: self._on_penalty_expired(pid))
        if not state.players[target].is_human:
            delay = ai.correction_delay(state.rng, self.ai_spec)
            self.scheduler.schedule((pid, "ai-correct"), delay, lambda: self._on_ai_correction(pid))

    def _close_window(self, window: PenaltyWindow, event_type: str, **extra: object) -> None:
        self.scheduler.cancel_protocol(window.id)
        self._emit(event_type, target=window.target, accuser=window.accuser, protocol_id=window.id, **extra)

    def _waive_penalty(self, player: int) -> None:
        window = self.penalty.waive(self.state, player, self.now)
        if window is not None:
            self._close_window(window, "PENALTY_WAIVED")

    def _supersede_penalty(self) -> None:
        window = self.penalty.supersede(self.state)
        if window is not None:
            self._close_window(window, "PENALTY_CANCELLED", reason="superseded")

    def _after_transition(self) -> None:
        state = self.state
        window = self.penalty.invalidate(state)
        if window is not None:
            logger.debug("Penalty window %d cancelled: hand size changed", window.id)
            self._close_window(window, "PENALTY_CANCELLED", reason="hand_changed")

        if state.winner is None and state.final_challenge is None:
            for p in state.players:
                if not p.hand:
                    self._finish(p.id, "empty_hand")
                    break
        self._check_invariants()

    def _check_invariants(self) -> None:
        state = self.state
        ids = card_ids(state.pile) + [c.id for p in state.players for c in p.hand]
        if len(ids) != DECK_SIZE:
            raise InvariantViolation(f"Card count is {len(ids)}, expected {DECK_SIZE}.")
        if len(set(ids)) != DECK_SIZE:
            raise InvariantViolation("A card is duplicated.")
        if state.anchor_played and not state.anchor_on_pile:
            raise InvariantViolation("The anchor card left the bottom of the pile.")

    # ------------------------------------------------------------------
    # Computer player

    def _ai_to_move(self) -> int | None:
        state = self.state
        if state.is_over or state.final_challenge is not None:
            return None
        player = state.current_player
        if state.players[player].is_human:
            return None
        window = state.penalty
        if window is not None and window.accuser == player:
            # the accusation timer decides what happens next
            return None
        return player

    def _drive_ai(self) -> None:
        state = self.state
        for _ in range(self.config.max_auto_actions):
            player = self._ai_to_move()
            if player is None:
                return
            action = ai.choose_action(state, player, state.rng, self.ai_spec)
            result = self._apply(action)
            if not result.ok:
                logger.error("AI action %s was rejected: %s", action, result.error)
                return
        logger.warning("AI drive stopped after %d actions", self.config.max_auto_actions)

    def _live(self, protocol_id: int) -> bool:
        state = self._state
        return state is not None and not state.is_over and state.pending is not None and state.pending.id == protocol_id

    def _on_penalty_expired(self, protocol_id: int) -> list[Event]:
        if not self._live(protocol_id):
            logger.debug("Penalty timer %d fired after resolution", protocol_id)
            return self._take_batch()
        state = self.state
        window = state.penalty
        assert window is not None
        self._emit("PENALTY_WINDOW_OPENED", target=window.target, accuser=window.accuser, protocol_id=protocol_id)
        if not state.players[window.accuser].is_human:
            self.scheduler.schedule(
                (protocol_id, "ai-accuse"), self.ai_spec.accuse_delay, lambda: self._on_ai_accuse(protocol_id)
            )
        return self._take_batch()

    def _run_timer_action(self, action: Action) -> list[Event]:
        result = self._apply(action)
        if result.ok:
            self._drive_ai()
        return self._take_batch()

    def _on_ai_accuse(self, protocol_id: int) -> list[Event]:
        window = self.state.penalty if self._live(protocol_id) else None
        if window is None:
            return self._take_batch()
        return self._run_timer_action(ReportMissingDeclarationAction(player=window.accuser))

    def _on_ai_correction(self, protocol_id: int) -> list[Event]:
        window = self.state.penalty if self._live(protocol_id) else None
        if window is None:
            return self._take_batch()
        if not ai.should_self_correct(self.state.rng, self.ai_spec):
            logger.debug("%s did not notice its missing call", self.state.players[window.target].name)
            return self._take_batch()
        return self._run_timer_action(DeclareLastCardAction(player=window.target))

    def _on_ai_final_decision(self, protocol_id: int) -> list[Event]:
        state = self.state
        final = state.final_challenge if self._live(protocol_id) else None
        if final is None:
            return self._take_batch()
        decision = ai.decide_final_challenge(state, final.decider, state.rng, self.ai_spec)
        return self._run_timer_action(decision)
