"""
Confirmation gate: read-back of the draft and classification of the reply.

``recap`` is a pure function of the draft so a re-emitted recap is always
word-for-word the same. Reply classification is delegated to a
ReplyClassifier collaborator; anything below the confidence floor is
treated as Ambiguous and leads to a re-ask, never to a silent commit.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from bistro_agent.config import settings
from bistro_agent.conversation.draft_store import BookingDraft, DraftStore

logger = logging.getLogger(__name__)


class Classification(str, Enum):
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class ClassificationResult:
    """A classified confirmation reply.

    ``field_name`` names the booking field a negative reply disputes, when
    the caller said which one.
    """

    label: Classification
    confidence: float = 0.0
    field_name: Optional[str] = None


class ReplyClassifier(Protocol):
    def classify(self, utterance: str) -> ClassificationResult: ...


def recap(draft: BookingDraft) -> str:
    """Render the read-back: required fields in ask order, then seating if known."""
    parts: list[str] = []
    for defn in DraftStore.FIELD_DEFINITIONS:
        if not defn.recap_template:
            continue
        value = getattr(draft, defn.name)
        if value is not None:
            parts.append(defn.recap_template.format(value))
    return f"Let me confirm everything: {', '.join(parts)}. Is this correct?"


class KeywordReplyClassifier:
    """Keyword-based yes/no detection with field hints.

    Replies containing both polarities, or neither, come back with zero
    confidence so the gate re-asks.
    """

    AFFIRMATIVE_PATTERNS = [
        r"\byes\b", r"\byeah\b", r"\byep\b", r"\byup\b", r"\bcorrect\b",
        r"\bthat'?s right\b", r"\bsounds good\b", r"\bperfect\b", r"\bsure\b",
        r"\bconfirm(ed)?\b", r"\bgo ahead\b", r"\bbook it\b", r"\babsolutely\b",
    ]

    NEGATIVE_PATTERNS = [
        r"\bno\b", r"\bnope\b", r"\bnot right\b", r"\bwrong\b", r"\bincorrect\b",
        r"\bchange\b", r"\bactually\b", r"\bmistake\b", r"\bnot quite\b",
    ]

    FIELD_HINTS: list[tuple[str, str]] = [
        ("customer_name", r"\bname\b"),
        ("booking_date", r"\b(date|day)\b"),
        ("booking_time", r"\b(time|o'?clock)\b"),
        ("number_of_guests", r"\b(guests?|people|party|persons?|headcount)\b"),
        ("cuisine_preference", r"\b(cuisine|food)\b"),
        ("special_requests", r"\b(requests?|allerg(y|ies)|birthday)\b"),
    ]

    def __init__(self) -> None:
        self._affirmative = [re.compile(p, re.IGNORECASE) for p in self.AFFIRMATIVE_PATTERNS]
        self._negative = [re.compile(p, re.IGNORECASE) for p in self.NEGATIVE_PATTERNS]
        self._fields = [(name, re.compile(p, re.IGNORECASE)) for name, p in self.FIELD_HINTS]

    def _field_mentioned(self, utterance: str) -> Optional[str]:
        for name, pattern in self._fields:
            if pattern.search(utterance):
                return name
        return None

    def classify(self, utterance: str) -> ClassificationResult:
        text = utterance.strip()
        yes = any(p.search(text) for p in self._affirmative)
        no = any(p.search(text) for p in self._negative)
        field_name = self._field_mentioned(text)

        if yes and not no and field_name is None:
            return ClassificationResult(Classification.AFFIRMATIVE, 0.9)
        if no and not yes:
            return ClassificationResult(Classification.NEGATIVE, 0.9, field_name)
        if field_name is not None and not yes:
            # "the time is off" carries no explicit "no" but still disputes a field
            return ClassificationResult(Classification.NEGATIVE, 0.7, field_name)
        return ClassificationResult(Classification.AMBIGUOUS, 0.0)


class ConfirmationGate:
    """Recap rendering plus confidence-gated reply classification."""

    def __init__(
        self,
        classifier: Optional[ReplyClassifier] = None,
        min_confidence: Optional[float] = None,
    ) -> None:
        self._classifier = classifier or KeywordReplyClassifier()
        self._min_confidence = (
            settings.dialogue.min_classifier_confidence
            if min_confidence is None
            else min_confidence
        )

    def recap(self, draft: BookingDraft) -> str:
        return recap(draft)

    def classify(self, utterance: str) -> ClassificationResult:
        result = self._classifier.classify(utterance)
        if result.label != Classification.AMBIGUOUS and result.confidence < self._min_confidence:
            logger.debug(
                "Reply classified %s at %.2f, below %.2f; treating as ambiguous",
                result.label.value, result.confidence, self._min_confidence,
            )
            return ClassificationResult(Classification.AMBIGUOUS, result.confidence)
        if result.field_name is not None and result.field_name not in DraftStore.REQUIRED_FIELDS:
            return ClassificationResult(result.label, result.confidence)
        return result
