"""Per-call state shared with the voice session."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class CallData:
    """
    Per-session data kept on ``session.userdata``.

    The booking itself lives in the dialogue policy's draft store; this only
    mirrors what the voice layer needs to report on the call.
    """
    call_id: str = ""
    state: str = "collecting"
    last_action: Optional[str] = None
    booking_id: Optional[str] = None
    turns: int = 0
