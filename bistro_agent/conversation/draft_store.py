"""
Draft store: the booking-in-progress for one call and its status.

Values pass a per-field validator before they are stored; an invalid value
raises ValidationError and leaves the draft untouched, which the dialogue
policy turns into a re-ask. Status changes are guarded so a draft can only
await confirmation once complete, and can only be committed after it was
confirmed.

Usage:
    store = DraftStore()
    store.set("customer_name", "jane doe")
    store.missing_required()[0].name   # -> "booking_date"
    if store.is_complete():
        store.mark_awaiting_confirmation()
"""

import logging
import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Callable, Optional

from bistro_agent.utils import parse_count

logger = logging.getLogger(__name__)

_NONE_REPLIES = {"none", "no", "nope", "nothing", "n/a", "na", "no thanks", "nothing special"}

_MONTHS = (
    r"jan(uary)?|feb(ruary)?|mar(ch)?|apr(il)?|may|june?|july?|aug(ust)?"
    r"|sep(t(ember)?)?|oct(ober)?|nov(ember)?|dec(ember)?"
)
_WEEKDAYS = r"mon(day)?|tue(s(day)?)?|wed(nesday)?|thu(rs(day)?)?|fri(day)?|sat(urday)?|sun(day)?"

_DATE_RE = re.compile(
    r"\b\d{4}-\d{1,2}-\d{1,2}\b"
    r"|\b\d{1,2}[/.]\d{1,2}([/.]\d{2,4})?\b"
    rf"|\b({_MONTHS})\b"
    rf"|\b({_WEEKDAYS})\b"
    r"|\b\d{1,2}(st|nd|rd|th)\b"
    r"|\b(today|tonight|tomorrow)\b",
    re.IGNORECASE,
)

_TIME_RE = re.compile(
    r"\b([01]?\d|2[0-3]):[0-5]\d\b"
    r"|\b(1[0-2]|0?[1-9])(:[0-5]\d)?\s*([ap]\.?m\.?)(?![a-z])"
    r"|\b(1[0-2]|0?[1-9])\s*o'?clock\b"
    r"|\b(noon|midday|midnight)\b",
    re.IGNORECASE,
)


class DraftStatus(str, Enum):
    """Lifecycle status of a booking draft."""

    COLLECTING = "collecting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    COMMITTED = "committed"
    ABANDONED = "abandoned"


class ValidationError(Exception):
    """A value was rejected for a field; the draft was not changed."""

    def __init__(self, field_name: str, value: Any, message: str) -> None:
        super().__init__(message)
        self.field_name = field_name
        self.value = value


class DraftStatusError(Exception):
    """Raised when a status change would break a draft invariant."""


class DraftLockedError(DraftStatusError):
    """Raised when a confirmed, committed or discarded draft is mutated."""


# ---------------------------------------------------------------------- #
# Validators: return the normalized value or raise ValueError
# ---------------------------------------------------------------------- #

def _text(value: Any) -> str:
    text = str(value).strip()
    if not text:
        raise ValueError("empty")
    return text


def _validate_name(value: Any) -> str:
    return _text(value).title()


def _validate_guests(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("not a count")
    count = value if isinstance(value, int) else parse_count(_text(value))
    if count is None or count < 1:
        raise ValueError("not a positive count")
    return count


def _validate_date(value: Any) -> str:
    text = _text(value)
    if not _DATE_RE.search(text):
        raise ValueError("not date-like")
    return text


def _validate_time(value: Any) -> str:
    text = _text(value)
    if not _TIME_RE.search(text):
        raise ValueError("not time-like")
    return text


def _validate_requests(value: Any) -> str:
    text = _text(value)
    if text.lower().rstrip(".!") in _NONE_REPLIES:
        return "none"
    return text


def _validate_seating(value: Any) -> str:
    text = _text(value).lower()
    if text not in ("indoor", "outdoor"):
        raise ValueError("seating must be indoor or outdoor")
    return text.title()


@dataclass(frozen=True)
class FieldDefinition:
    """Schema for one booking attribute."""

    name: str
    display_name: str
    validator: Callable[[Any], Any]
    required: bool = True
    question: str = ""
    recap_template: str = ""


@dataclass
class BookingDraft:
    """The booking-in-progress. Every attribute is absent until set."""

    customer_name: Optional[str] = None
    number_of_guests: Optional[int] = None
    booking_date: Optional[str] = None
    booking_time: Optional[str] = None
    cuisine_preference: Optional[str] = None
    special_requests: Optional[str] = None
    seating_preference: Optional[str] = None
    weather_info: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Present attributes only."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        return {k: v for k, v in values.items() if v is not None}


@dataclass
class FieldHistory:
    """Attempts and rejected values for a single field, kept for diagnostics."""

    attempts: int = 0
    rejected_values: list[str] = field(default_factory=list)
    previous_values: list[str] = field(default_factory=list)


class DraftStore:
    """
    Owns one BookingDraft and its DraftStatus for the duration of a call.

    Required fields are asked in FIELD_DEFINITIONS order. Seating and weather
    are optional enrichments filled by the weather lookup, never asked.
    """

    FIELD_DEFINITIONS: list[FieldDefinition] = [
        FieldDefinition(
            name="customer_name",
            display_name="name",
            validator=_validate_name,
            question="Could I get a name for the booking?",
            recap_template="name {}",
        ),
        FieldDefinition(
            name="booking_date",
            display_name="date",
            validator=_validate_date,
            question="What date would you like to come in?",
            recap_template="date {}",
        ),
        FieldDefinition(
            name="booking_time",
            display_name="time",
            validator=_validate_time,
            question="And what time works for you?",
            recap_template="time {}",
        ),
        FieldDefinition(
            name="number_of_guests",
            display_name="number of guests",
            validator=_validate_guests,
            question="How many guests will be joining?",
            recap_template="{} guests",
        ),
        FieldDefinition(
            name="cuisine_preference",
            display_name="cuisine preference",
            validator=_text,
            question="Do you have a cuisine preference?",
            recap_template="cuisine {}",
        ),
        FieldDefinition(
            name="special_requests",
            display_name="special requests",
            validator=_validate_requests,
            question="Any special requests, like allergies or a birthday?",
            recap_template="special requests {}",
        ),
        FieldDefinition(
            name="seating_preference",
            display_name="seating",
            validator=_validate_seating,
            required=False,
            recap_template="seating {}",
        ),
        FieldDefinition(
            name="weather_info",
            display_name="weather",
            validator=_text,
            required=False,
        ),
    ]

    REQUIRED_FIELDS: tuple[str, ...] = tuple(d.name for d in FIELD_DEFINITIONS if d.required)

    _MUTABLE_STATUSES = frozenset({DraftStatus.COLLECTING, DraftStatus.AWAITING_CONFIRMATION})

    def __init__(self) -> None:
        self.draft = BookingDraft()
        self.status = DraftStatus.COLLECTING
        self.history: dict[str, FieldHistory] = {
            defn.name: FieldHistory() for defn in self.FIELD_DEFINITIONS
        }

    @classmethod
    def get_definition(cls, name: str) -> FieldDefinition:
        for defn in cls.FIELD_DEFINITIONS:
            if defn.name == name:
                return defn
        raise KeyError(f"Unknown booking field: {name}")

    def _check_mutable(self) -> None:
        if self.status not in self._MUTABLE_STATUSES:
            raise DraftLockedError(f"Draft is {self.status.value} and can no longer change")

    # ------------------------------------------------------------------ #
    # Values
    # ------------------------------------------------------------------ #

    def set(self, name: str, value: Any) -> Any:
        """
        Validate and store a value.

        Returns:
            The normalized value that was stored.

        Raises:
            ValidationError: If the value fails the field's validator.
            DraftLockedError: If the draft is past confirmation or discarded.
        """
        defn = self.get_definition(name)
        self._check_mutable()
        record = self.history[name]
        record.attempts += 1

        try:
            normalized = defn.validator(value)
        except ValueError:
            record.rejected_values.append(str(value))
            logger.debug("Field '%s' rejected value %r", name, value)
            raise ValidationError(
                name, value, f"'{value}' doesn't look like a valid {defn.display_name}."
            ) from None

        previous = getattr(self.draft, name)
        if previous is not None and previous != normalized:
            record.previous_values.append(str(previous))
        setattr(self.draft, name, normalized)
        logger.debug("Field '%s' set", name)
        return normalized

    def clear(self, name: str) -> None:
        """Remove a value so it is asked again. A complete draft falls back to collecting."""
        self.get_definition(name)
        self._check_mutable()
        previous = getattr(self.draft, name)
        if previous is not None:
            self.history[name].previous_values.append(str(previous))
        setattr(self.draft, name, None)
        if self.get_definition(name).required:
            self.status = DraftStatus.COLLECTING

    def get(self, name: str) -> Any:
        self.get_definition(name)
        return getattr(self.draft, name)

    def missing_required(self) -> list[FieldDefinition]:
        """Required fields not yet present, in ask order."""
        return [
            defn
            for defn in self.FIELD_DEFINITIONS
            if defn.required and getattr(self.draft, defn.name) is None
        ]

    def is_complete(self) -> bool:
        return not self.missing_required()

    # ------------------------------------------------------------------ #
    # Status
    # ------------------------------------------------------------------ #

    def mark_awaiting_confirmation(self) -> None:
        if self.status not in (DraftStatus.COLLECTING, DraftStatus.AWAITING_CONFIRMATION,
                               DraftStatus.CONFIRMED):
            raise DraftStatusError(f"Cannot await confirmation from {self.status.value}")
        if not self.is_complete():
            missing = [d.name for d in self.missing_required()]
            raise DraftStatusError(f"Cannot await confirmation, still missing: {missing}")
        self.status = DraftStatus.AWAITING_CONFIRMATION

    def mark_confirmed(self) -> None:
        if self.status != DraftStatus.AWAITING_CONFIRMATION:
            raise DraftStatusError(f"Cannot confirm from {self.status.value}")
        self.status = DraftStatus.CONFIRMED

    def mark_committed(self) -> None:
        if self.status != DraftStatus.CONFIRMED:
            raise DraftStatusError(f"Cannot commit from {self.status.value}")
        self.status = DraftStatus.COMMITTED
        logger.info("Draft committed")

    def discard(self) -> None:
        """Drop all collected values. Committed drafts are kept as they are."""
        if self.status == DraftStatus.COMMITTED:
            raise DraftLockedError("A committed draft cannot be discarded")
        self.draft = BookingDraft()
        self.status = DraftStatus.ABANDONED
        logger.info("Draft discarded")

    def get_stats(self) -> dict[str, Any]:
        """Collection statistics for diagnostics and the console demo."""
        required = len(self.REQUIRED_FIELDS)
        filled = required - len(self.missing_required())
        return {
            "total_attempts": sum(h.attempts for h in self.history.values()),
            "total_rejections": sum(len(h.rejected_values) for h in self.history.values()),
            "total_corrections": sum(len(h.previous_values) for h in self.history.values()),
            "fields_filled": filled,
            "fields_required": required,
            "fill_rate": filled / required if required else 0,
        }
