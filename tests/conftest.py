"""Shared test fixtures and helpers."""

import asyncio
from typing import Optional

import pytest

from bistro_agent.conversation.draft_store import BookingDraft, DraftStore
from bistro_agent.conversation.policy import CallerTurn, DialoguePolicy
from bistro_agent.conversation.state_machine import DialogueStateMachine
from bistro_agent.tools.booking import PersistenceError

PARIS_ADVISORY = "Weather in Paris: Clear, 22.0°C."

FULL_DETAILS = {
    "customer_name": "jane doe",
    "booking_date": "2026-10-24",
    "booking_time": "7pm",
    "number_of_guests": "4",
    "cuisine_preference": "Italian",
    "special_requests": "none",
}


class FakeWeather:
    """Counts lookups and returns a fixed advisory."""

    def __init__(self, advisory: str = PARIS_ADVISORY) -> None:
        self.advisory = advisory
        self.calls: list[str] = []

    async def lookup(self, location: str) -> str:
        self.calls.append(location)
        return self.advisory


class FakePersister:
    """Records create calls; the first ``fail_times`` raise PersistenceError."""

    def __init__(self, fail_times: int = 0, booking_id: str = "42") -> None:
        self.fail_times = fail_times
        self.booking_id = booking_id
        self.drafts: list[dict] = []

    @property
    def calls(self) -> int:
        return len(self.drafts)

    async def create(self, draft: BookingDraft) -> str:
        self.drafts.append(draft.to_dict())
        if self.fail_times > 0:
            self.fail_times -= 1
            raise PersistenceError("storage down")
        return self.booking_id


class GatedPersister(FakePersister):
    """Blocks inside create until ``release`` is set, so a hangup can land mid-commit."""

    def __init__(self, fail: bool = False) -> None:
        super().__init__(fail_times=1 if fail else 0)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def create(self, draft: BookingDraft) -> str:
        self.entered.set()
        await self.release.wait()
        return await super().create(draft)


@pytest.fixture
def draft_store():
    return DraftStore()


@pytest.fixture
def state_machine():
    return DialogueStateMachine()


@pytest.fixture
def weather():
    return FakeWeather()


@pytest.fixture
def persister():
    return FakePersister()


@pytest.fixture
def policy(weather, persister):
    return DialoguePolicy(
        weather=weather,
        persister=persister,
        max_commit_attempts=2,
        restaurant_name="Vaiu Bistro",
    )


def make_policy(
    advisory: str = PARIS_ADVISORY,
    fail_times: int = 0,
    max_commit_attempts: int = 2,
) -> tuple[DialoguePolicy, FakeWeather, FakePersister]:
    """Build a policy with fresh fakes, returning all three."""
    weather = FakeWeather(advisory)
    persister = FakePersister(fail_times=fail_times)
    policy = DialoguePolicy(
        weather=weather,
        persister=persister,
        max_commit_attempts=max_commit_attempts,
        restaurant_name="Vaiu Bistro",
    )
    return policy, weather, persister


async def fill_all(policy: DialoguePolicy, location: Optional[str] = None):
    """Deliver every required field in one turn."""
    policy.start()
    return await policy.handle(CallerTurn(values=dict(FULL_DETAILS), location=location))
