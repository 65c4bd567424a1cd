"""
Finite state machine for the reservation dialogue.

Every transition the dialogue policy may take is declared in TRANSITIONS.
Guards bind the draft-store invariants to the graph: the confirmation
state is unreachable while a required field is missing.

Usage:
    sm = DialogueStateMachine(guards={TransitionTrigger.ALL_FIELDS_FILLED: store.is_complete})
    sm.transition(TransitionTrigger.ALL_FIELDS_FILLED)
    assert sm.current_state == DialogueState.AWAITING_CONFIRMATION
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class DialogueState(str, Enum):
    """Where a reservation call currently stands."""
    COLLECTING = "collecting"
    ENRICHING_WEATHER = "enriching_weather"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"
    ABANDONED = "abandoned"


class TransitionTrigger(str, Enum):
    """Caller and tool outcomes that move the dialogue."""
    LOCATION_AND_DATE_KNOWN = "location_and_date_known"
    ADVISORY_APPLIED = "advisory_applied"
    ALL_FIELDS_FILLED = "all_fields_filled"
    CALLER_CONFIRMED = "caller_confirmed"
    CALLER_CORRECTED = "caller_corrected"
    BOOKING_SUCCESS = "booking_success"
    BOOKING_FAILED = "booking_failed"
    RETRIES_EXHAUSTED = "retries_exhausted"
    SESSION_ENDED = "session_ended"


TERMINAL_STATES = frozenset({DialogueState.DONE, DialogueState.FAILED, DialogueState.ABANDONED})


@dataclass
class Transition:
    """One edge of the dialogue graph."""
    from_state: DialogueState
    to_state: DialogueState
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    """One visited state and the trigger that led there."""
    state: DialogueState
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised for an undeclared edge or one whose guard fails."""


class DialogueStateMachine:
    """
    Deterministic state machine for one reservation call.

    Guards are supplied per trigger at construction time because they read
    the session's draft. A trigger whose guard fails is rejected the same
    way as an undeclared one.
    """

    TRANSITIONS: list[Transition] = [
        # --- Weather enrichment, orthogonal to slot order ---
        Transition(DialogueState.COLLECTING, DialogueState.ENRICHING_WEATHER,
                   TransitionTrigger.LOCATION_AND_DATE_KNOWN),
        Transition(DialogueState.AWAITING_CONFIRMATION, DialogueState.ENRICHING_WEATHER,
                   TransitionTrigger.LOCATION_AND_DATE_KNOWN),
        Transition(DialogueState.ENRICHING_WEATHER, DialogueState.COLLECTING,
                   TransitionTrigger.ADVISORY_APPLIED),
        Transition(DialogueState.ENRICHING_WEATHER, DialogueState.AWAITING_CONFIRMATION,
                   TransitionTrigger.ALL_FIELDS_FILLED),

        # --- Confirmation gate ---
        Transition(DialogueState.COLLECTING, DialogueState.AWAITING_CONFIRMATION,
                   TransitionTrigger.ALL_FIELDS_FILLED),
        Transition(DialogueState.AWAITING_CONFIRMATION, DialogueState.COMMITTING,
                   TransitionTrigger.CALLER_CONFIRMED),
        Transition(DialogueState.AWAITING_CONFIRMATION, DialogueState.COLLECTING,
                   TransitionTrigger.CALLER_CORRECTED),

        # --- Commit result ---
        Transition(DialogueState.COMMITTING, DialogueState.DONE,
                   TransitionTrigger.BOOKING_SUCCESS),
        Transition(DialogueState.COMMITTING, DialogueState.AWAITING_CONFIRMATION,
                   TransitionTrigger.BOOKING_FAILED),
        Transition(DialogueState.COMMITTING, DialogueState.FAILED,
                   TransitionTrigger.RETRIES_EXHAUSTED),

        # --- Hangup / cancel from any live state ---
        *[
            Transition(state, DialogueState.ABANDONED, TransitionTrigger.SESSION_ENDED)
            for state in (
                DialogueState.COLLECTING,
                DialogueState.ENRICHING_WEATHER,
                DialogueState.AWAITING_CONFIRMATION,
                DialogueState.COMMITTING,
            )
        ],
    ]

    def __init__(
        self, guards: Optional[dict[TransitionTrigger, Callable[[], bool]]] = None
    ) -> None:
        self._guards = dict(guards or {})
        self._current_state = DialogueState.COLLECTING
        self._history: list[StateEntry] = [
            StateEntry(state=DialogueState.COLLECTING, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> DialogueState:
        return self._current_state

    def transition(self, trigger: TransitionTrigger) -> DialogueState:
        """
        Execute a state transition.

        Returns:
            The new dialogue state.

        Raises:
            InvalidTransitionError: If no valid transition exists or its guard fails.
        """
        guard = self._guards.get(trigger)
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                if guard is not None and not guard():
                    raise InvalidTransitionError(
                        f"Guard for '{trigger.value}' rejected the transition "
                        f"from '{self._current_state.value}'"
                    )

                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "State transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Triggers declared for the current state, ignoring guards."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """State values in visit order, for logs and the console summary."""
        return [entry.state.value for entry in self._history]

    def has_visited(self, state: DialogueState) -> bool:
        return any(entry.state == state for entry in self._history)

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES
