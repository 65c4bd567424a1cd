"""
Booking persistence collaborators.

``HttpBookingPersister`` posts a confirmed draft to the booking API.
``InMemoryBookingPersister`` keeps records in-process for the console
demo and tests. Both make exactly one attempt per call and report failure
by raising PersistenceError; no deduplication key is sent, so a retry after
a reported failure may store the booking twice.
"""

import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError as SchemaError

from bistro_agent.config import BackendConfig, settings
from bistro_agent.conversation.draft_store import BookingDraft
from bistro_agent.schemas.booking_schema import BookingCreate, BookingCreated

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """The booking could not be stored."""


class BookingPersister(Protocol):
    """Commit a completed draft, returning the stored booking's id."""

    async def create(self, draft: BookingDraft) -> str: ...


def build_payload(draft: BookingDraft) -> dict[str, Any]:
    """Render the ``POST /bookings`` body for a draft.

    Raises:
        PersistenceError: If the draft is missing a required attribute.
    """
    try:
        body = BookingCreate(**draft.to_dict())
    except SchemaError as exc:
        raise PersistenceError(
            f"Draft is not a valid booking: {exc.error_count()} error(s)"
        ) from exc
    return body.model_dump(by_alias=True, exclude_none=True)


class HttpBookingPersister:
    """Writes bookings through the booking API."""

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or settings.backend
        self._client = client

    @property
    def endpoint(self) -> str:
        return f"{self._config.booking_api_url.rstrip('/')}{self._config.api_prefix}/bookings"

    async def create(self, draft: BookingDraft) -> str:
        payload = build_payload(draft)
        logger.info(
            "Saving booking for %s guests on %s",
            payload["numberOfGuests"], payload["bookingDate"],
        )
        try:
            if self._client is not None:
                resp = await self._client.post(self.endpoint, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._config.booking_timeout_sec) as client:
                    resp = await client.post(self.endpoint, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise PersistenceError(f"Booking API unreachable: {exc}") from exc

        if resp.status_code != 201:
            raise PersistenceError(f"Booking API returned status {resp.status_code}")
        try:
            result = BookingCreated.model_validate(resp.json())
        except (ValueError, SchemaError) as exc:
            raise PersistenceError("Booking API returned a malformed body") from exc
        if not result.success or result.id is None:
            raise PersistenceError(f"Booking API rejected the booking: {result.message}")

        logger.info("Booking saved with id %s", result.id)
        return str(result.id)


class InMemoryBookingPersister:
    """Process-local booking store.

    ``fail_times`` makes the first N create calls fail, which the console
    demo uses to walk through a commit retry.
    """

    def __init__(self, fail_times: int = 0) -> None:
        self._bookings: dict[str, dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self._fail_times = fail_times
        self.calls = 0

    async def create(self, draft: BookingDraft) -> str:
        self.calls += 1
        if self._fail_times > 0:
            self._fail_times -= 1
            raise PersistenceError("Simulated storage failure")

        payload = build_payload(draft)
        booking_id = str(next(self._ids))
        self._bookings[booking_id] = {
            **payload,
            "id": booking_id,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        logger.info("Booking stored in memory: %s", booking_id)
        return booking_id

    def get_booking(self, booking_id: str) -> Optional[dict[str, Any]]:
        return self._bookings.get(booking_id)

    def list_bookings(self) -> list[dict[str, Any]]:
        """All stored bookings, newest first."""
        return list(reversed(self._bookings.values()))

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        self._bookings.clear()
        self.calls = 0
