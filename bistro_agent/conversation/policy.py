"""
Dialogue policy: decides, turn by turn, what the reservation host does next.

Each caller event produces exactly one Action. The policy asks for the
first missing field in fixed order, runs the weather lookup once as soon as
a date and a location are both known, reads the draft back once it is
complete, and only commits after an affirmative reply. Language
understanding happens upstream: a CallerTurn arrives with slot values and
the location reference already extracted.

Usage:
    policy = DialoguePolicy(weather=OpenWeatherAdvisory(), persister=HttpBookingPersister())
    action = policy.start()
    while not policy.is_done:
        action = await policy.handle(CallerTurn(utterance=text, values=slots))
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from bistro_agent.config import settings
from bistro_agent.conversation.confirmation import Classification, ConfirmationGate
from bistro_agent.conversation.draft_store import DraftStatus, DraftStore, ValidationError
from bistro_agent.conversation.state_machine import (
    DialogueState,
    DialogueStateMachine,
    InvalidTransitionError,
    TransitionTrigger,
)
from bistro_agent.logging_context import get_call_logger
from bistro_agent.tools.booking import BookingPersister, PersistenceError
from bistro_agent.tools.weather import WEATHER_UNAVAILABLE, WeatherAdvisory, suggest_seating
from bistro_agent.utils import redact_name

logger = get_call_logger(__name__)


@dataclass
class CallerTurn:
    """One caller utterance after language understanding.

    ``values`` maps booking field names to what the caller supplied in this
    turn, in any order. ``location`` is the place the caller mentioned, if any.
    """

    utterance: str = ""
    values: dict[str, Any] = field(default_factory=dict)
    location: Optional[str] = None


@dataclass
class Hangup:
    """The caller hung up or cancelled."""

    reason: str = "hangup"


DialogueEvent = Union[CallerTurn, Hangup]


class ActionKind(str, Enum):
    ASK = "ask"
    CONFIRM = "confirm"
    CLARIFY = "clarify"
    RETRY_COMMIT = "retry_commit"
    COMPLETE = "complete"
    FAIL = "fail"
    ABANDON = "abandon"


@dataclass(frozen=True)
class Action:
    """The single outward move for a turn.

    ``prompt`` is the ask or recap itself; ``preface`` carries anything said
    before it (weather advisory, apology for a rejected value).
    """

    kind: ActionKind
    prompt: str
    field_name: Optional[str] = None
    preface: Optional[str] = None
    booking_id: Optional[str] = None

    @property
    def text(self) -> str:
        return f"{self.preface} {self.prompt}" if self.preface else self.prompt


class SessionClosedError(Exception):
    """Raised when an event arrives after the dialogue has ended."""


class DialoguePolicy:
    """
    Explicit state machine driving one reservation call.

    Collaborators are injected so tests can count weather lookups and
    persistence attempts, or make them fail.
    """

    CALLER_FIELDS = frozenset(DraftStore.REQUIRED_FIELDS)

    def __init__(
        self,
        weather: WeatherAdvisory,
        persister: BookingPersister,
        gate: Optional[ConfirmationGate] = None,
        store: Optional[DraftStore] = None,
        max_commit_attempts: Optional[int] = None,
        restaurant_name: Optional[str] = None,
    ) -> None:
        self._weather = weather
        self._persister = persister
        self.gate = gate or ConfirmationGate()
        self.store = store or DraftStore()
        self.sm = DialogueStateMachine(
            guards={TransitionTrigger.ALL_FIELDS_FILLED: self.store.is_complete}
        )
        self._max_commit_attempts = (
            settings.dialogue.max_commit_attempts
            if max_commit_attempts is None
            else max_commit_attempts
        )
        self._restaurant_name = restaurant_name or settings.restaurant.name

        self._location: Optional[str] = None
        self._weather_requested = False
        self._failed_commits = 0
        self._abandoned = False
        self.booking_id: Optional[str] = None
        self.transcript: list[Action] = []

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> DialogueState:
        return self.sm.current_state

    @property
    def status(self) -> DraftStatus:
        return self.store.status

    @property
    def is_done(self) -> bool:
        return self.sm.is_terminal()

    @property
    def last_action(self) -> Optional[Action]:
        return self.transcript[-1] if self.transcript else None

    def start(self) -> Action:
        """Greet the caller and ask for the first detail."""
        greeting = f"Hi, thanks for calling {self._restaurant_name}!"
        return self._emit(self._advance(preface=greeting))

    async def handle(self, event: DialogueEvent) -> Action:
        """Process one caller event and return the single resulting action."""
        if self.sm.is_terminal():
            raise SessionClosedError(f"Dialogue already ended in state '{self.state.value}'")
        if isinstance(event, Hangup):
            return self.abandon(event.reason)

        if self.state == DialogueState.COLLECTING:
            return await self._handle_collecting(event)
        if self.state == DialogueState.AWAITING_CONFIRMATION:
            return await self._handle_confirmation(event)
        raise InvalidTransitionError(
            f"Caller turn delivered while '{self.state.value}' is still in progress"
        )

    def abandon(self, reason: str = "hangup") -> Action:
        """End the session without persisting. Safe to call while a tool call is in flight."""
        if self.sm.is_terminal():
            if self.last_action is None:
                raise SessionClosedError(f"Dialogue already ended in state '{self.state.value}'")
            return self.last_action
        self.sm.transition(TransitionTrigger.SESSION_ENDED)
        self.store.discard()
        self._abandoned = True
        logger.info("Session abandoned (%s)", reason)
        return self._emit(Action(ActionKind.ABANDON, "Okay, I've cancelled that. Goodbye!"))

    # ------------------------------------------------------------------ #
    # Turn handlers
    # ------------------------------------------------------------------ #

    async def _handle_collecting(self, turn: CallerTurn) -> Action:
        rejection = self._apply_values(turn.values)
        self._remember_location(turn.location)
        advisory = await self._maybe_enrich()
        if self._abandoned:
            return self.last_action  # type: ignore[return-value]

        prefaces = [p for p in (advisory, self._rejection_text(rejection)) if p]
        return self._emit(self._advance(preface=" ".join(prefaces) or None))

    async def _handle_confirmation(self, turn: CallerTurn) -> Action:
        rejection: Optional[ValidationError] = None
        if turn.values:
            rejection = self._apply_values(turn.values)
            self._failed_commits = 0
            if rejection is not None:
                self._reopen_field(rejection.field_name)
        self._remember_location(turn.location)
        advisory = await self._maybe_enrich()
        if self._abandoned:
            return self.last_action  # type: ignore[return-value]

        if turn.values or advisory:
            # A reply given to a recap that has since changed is not a confirmation.
            update = self._rejection_text(rejection) if rejection else None
            if turn.values and rejection is None:
                update = "Thanks, I've updated that."
            prefaces = [p for p in (advisory, update) if p]
            return self._emit(self._advance(preface=" ".join(prefaces) or None))

        result = self.gate.classify(turn.utterance)
        logger.info("Confirmation reply classified as %s", result.label.value)

        if result.label == Classification.AFFIRMATIVE:
            action = await self._commit()
            return action if self._abandoned else self._emit(action)
        if result.label == Classification.NEGATIVE:
            if result.field_name is None:
                return self._emit(Action(
                    ActionKind.CLARIFY,
                    "No problem. Which detail should I change?",
                ))
            return self._emit(self._reopen(result.field_name, "No problem, let's fix that."))
        return self._emit(self._confirm_action())

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    def _apply_values(self, values: dict[str, Any]) -> Optional[ValidationError]:
        """Store every supplied value; return the first rejection, if any."""
        first_rejection: Optional[ValidationError] = None
        for name in DraftStore.REQUIRED_FIELDS:
            if name not in values:
                continue
            try:
                self.store.set(name, values[name])
            except ValidationError as exc:
                logger.info("Rejected value for %s", name)
                first_rejection = first_rejection or exc
        ignored = set(values) - self.CALLER_FIELDS
        if ignored:
            logger.warning("Ignoring values for fields the caller cannot set: %s", sorted(ignored))
        return first_rejection

    def _remember_location(self, location: Optional[str]) -> None:
        if location and location.strip() and self._location is None:
            self._location = location.strip()

    async def _maybe_enrich(self) -> Optional[str]:
        """Run the weather lookup once date and location are known.

        Returns the advisory sentence to say, or None when the lookup did not
        run this turn or came back unavailable.
        """
        if self._weather_requested or self._location is None:
            return None
        if self.store.draft.booking_date is None:
            return None

        self._weather_requested = True
        origin = self.state
        self.sm.transition(TransitionTrigger.LOCATION_AND_DATE_KNOWN)
        advisory = await self._weather.lookup(self._location)
        if self._abandoned:
            logger.info("Weather result arrived after the call ended; ignoring it")
            return None

        spoken: Optional[str] = None
        if advisory == WEATHER_UNAVAILABLE:
            logger.warning("Weather advisory unavailable for %s", self._location)
        else:
            self.store.set("weather_info", advisory)
            seating = suggest_seating(advisory)
            spoken = advisory
            if seating is not None:
                self.store.set("seating_preference", seating)
                spoken = f"{advisory} I'd suggest {seating.lower()} seating."

        if origin == DialogueState.AWAITING_CONFIRMATION or self.store.is_complete():
            self.sm.transition(TransitionTrigger.ALL_FIELDS_FILLED)
            self.store.mark_awaiting_confirmation()
        else:
            self.sm.transition(TransitionTrigger.ADVISORY_APPLIED)
        return spoken

    def _advance(self, preface: Optional[str] = None) -> Action:
        """From collecting: ask the first missing field, or read back a complete draft."""
        if self.state == DialogueState.COLLECTING and self.store.is_complete():
            self.sm.transition(TransitionTrigger.ALL_FIELDS_FILLED)
            self.store.mark_awaiting_confirmation()
        if self.state == DialogueState.AWAITING_CONFIRMATION:
            return self._confirm_action(preface=preface)

        next_field = self.store.missing_required()[0]
        logger.info("Asking for %s", next_field.name)
        return Action(ActionKind.ASK, next_field.question, field_name=next_field.name, preface=preface)

    def _confirm_action(self, preface: Optional[str] = None) -> Action:
        return Action(ActionKind.CONFIRM, self.gate.recap(self.store.draft), preface=preface)

    def _reopen(self, field_name: str, preface: Optional[str]) -> Action:
        """Send the dialogue back to collecting for one disputed field."""
        self._reopen_field(field_name)
        return self._advance(preface=preface)

    def _reopen_field(self, field_name: str) -> None:
        self.store.clear(field_name)
        self.sm.transition(TransitionTrigger.CALLER_CORRECTED)
        self._failed_commits = 0

    async def _commit(self) -> Action:
        self.store.mark_confirmed()
        self.sm.transition(TransitionTrigger.CALLER_CONFIRMED)
        logger.info(
            "Committing booking for %s (attempt %d)",
            redact_name(self.store.draft.customer_name), self._failed_commits + 1,
        )

        try:
            booking_id = await self._persister.create(self.store.draft)
        except PersistenceError as exc:
            if self._abandoned:
                logger.info("Commit failed after the call ended; ignoring it")
                return self.last_action  # type: ignore[return-value]
            return self._commit_failed(exc)

        if self._abandoned:
            logger.warning("Booking %s resolved after the call ended; ignoring it", booking_id)
            return self.last_action  # type: ignore[return-value]

        self.store.mark_committed()
        self.sm.transition(TransitionTrigger.BOOKING_SUCCESS)
        self.booking_id = booking_id
        logger.info("Booking %s committed", booking_id)
        return Action(ActionKind.COMPLETE, "Booked! See you then.", booking_id=booking_id)

    def _commit_failed(self, exc: PersistenceError) -> Action:
        self._failed_commits += 1
        logger.warning(
            "Commit attempt failed (%d/%d): %s",
            self._failed_commits, self._max_commit_attempts, exc,
        )
        if self._failed_commits >= self._max_commit_attempts:
            self.sm.transition(TransitionTrigger.RETRIES_EXHAUSTED)
            self.store.discard()
            return Action(
                ActionKind.FAIL,
                "I'm sorry, I still can't save your booking. "
                "Please call us back a little later and we'll get you sorted.",
            )
        self.store.mark_awaiting_confirmation()
        self.sm.transition(TransitionTrigger.BOOKING_FAILED)
        return Action(
            ActionKind.RETRY_COMMIT,
            "Shall I try saving it again?",
            preface="Sorry, I couldn't save the booking just now.",
        )

    @staticmethod
    def _rejection_text(rejection: Optional[ValidationError]) -> Optional[str]:
        if rejection is None:
            return None
        return f"Sorry, {rejection}"

    def _emit(self, action: Action) -> Action:
        self.transcript.append(action)
        return action
