from bistro_agent.conversation.confirmation import (
    Classification,
    ClassificationResult,
    ConfirmationGate,
    KeywordReplyClassifier,
    recap,
)
from bistro_agent.conversation.draft_store import (
    BookingDraft,
    DraftStatus,
    DraftStore,
    ValidationError,
)
from bistro_agent.conversation.state_machine import (
    DialogueState,
    DialogueStateMachine,
    TransitionTrigger,
)

__all__ = [
    "BookingDraft",
    "Classification",
    "ClassificationResult",
    "ConfirmationGate",
    "DialogueState",
    "DialogueStateMachine",
    "DraftStatus",
    "DraftStore",
    "KeywordReplyClassifier",
    "TransitionTrigger",
    "ValidationError",
    "recap",
]
