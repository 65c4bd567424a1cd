"""Tests for the dialogue policy's turn-by-turn decisions and invariants."""

import random

import pytest

from bistro_agent.conversation.draft_store import DraftStatus
from bistro_agent.conversation.policy import (
    ActionKind,
    CallerTurn,
    Hangup,
    SessionClosedError,
)
from bistro_agent.conversation.state_machine import DialogueState
from bistro_agent.tools.weather import WEATHER_UNAVAILABLE
from tests.conftest import FULL_DETAILS, PARIS_ADVISORY, fill_all, make_policy


def _orders(count: int = 6) -> list[list[str]]:
    rng = random.Random(7)
    orders = []
    for _ in range(count):
        names = list(FULL_DETAILS)
        rng.shuffle(names)
        orders.append(names)
    return orders


class TestStart:
    def test_greets_and_asks_name(self, policy):
        action = policy.start()
        assert action.kind == ActionKind.ASK
        assert action.field_name == "customer_name"
        assert action.text.startswith("Hi, thanks for calling Vaiu Bistro!")
        assert policy.transcript == [action]


class TestAskOrder:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("order", _orders())
    async def test_always_asks_first_missing_field(self, order):
        policy, _, _ = make_policy()
        policy.start()
        for name in order:
            action = await policy.handle(CallerTurn(values={name: FULL_DETAILS[name]}))
            if action.kind == ActionKind.ASK:
                assert action.field_name == policy.store.missing_required()[0].name
        assert action.kind == ActionKind.CONFIRM

    @pytest.mark.asyncio
    async def test_several_values_in_one_turn(self, policy):
        policy.start()
        action = await policy.handle(CallerTurn(values={
            "customer_name": "Jane", "booking_time": "7pm", "number_of_guests": "2",
        }))
        assert action.field_name == "booking_date"

    @pytest.mark.asyncio
    async def test_invalid_value_is_reasked(self, policy):
        policy.start()
        await policy.handle(CallerTurn(values={"customer_name": "Jane"}))
        await policy.handle(CallerTurn(values={"booking_date": "tomorrow"}))
        await policy.handle(CallerTurn(values={"booking_time": "7pm"}))
        action = await policy.handle(CallerTurn(values={"number_of_guests": "zero"}))
        assert action.kind == ActionKind.ASK
        assert action.field_name == "number_of_guests"
        assert action.preface.startswith("Sorry, 'zero' doesn't look like a valid number of guests.")
        assert policy.store.draft.number_of_guests is None

    @pytest.mark.asyncio
    async def test_enrichment_fields_from_caller_ignored(self, policy):
        policy.start()
        await policy.handle(CallerTurn(values={
            "customer_name": "Jane", "seating_preference": "Outdoor", "weather_info": "sunny",
        }))
        assert policy.store.draft.seating_preference is None
        assert policy.store.draft.weather_info is None


class TestConfirmationInvariant:
    @pytest.mark.asyncio
    async def test_awaiting_confirmation_iff_complete(self, policy):
        policy.start()
        turns = [
            CallerTurn(values={"customer_name": "Jane"}),
            CallerTurn(values={"booking_date": "Friday", "booking_time": "8pm"}),
            CallerTurn(values={"number_of_guests": "lots"}),
            CallerTurn(values={"number_of_guests": "3"}),
            CallerTurn(values={"cuisine_preference": "Thai", "special_requests": "none"}),
            CallerTurn(utterance="hmm"),
            CallerTurn(utterance="no, the time is wrong"),
            CallerTurn(values={"booking_time": "9pm"}),
        ]
        for turn in turns:
            await policy.handle(turn)
            awaiting = policy.state == DialogueState.AWAITING_CONFIRMATION
            assert awaiting == policy.store.is_complete()
            assert (policy.status == DraftStatus.AWAITING_CONFIRMATION) == awaiting

    @pytest.mark.asyncio
    async def test_complete_draft_gets_recap(self, policy):
        action = await fill_all(policy)
        assert action.kind == ActionKind.CONFIRM
        assert action.prompt == policy.gate.recap(policy.store.draft)
        assert policy.state == DialogueState.AWAITING_CONFIRMATION


class TestCommitGate:
    @pytest.mark.asyncio
    async def test_no_commit_without_affirmative(self, policy, persister):
        await fill_all(policy)
        for reply in ["hmm", "what was that?", "nope"]:
            await policy.handle(CallerTurn(utterance=reply))
        assert persister.calls == 0
        assert policy.status != DraftStatus.COMMITTED

    @pytest.mark.asyncio
    async def test_affirmative_commits_once(self, policy, persister):
        await fill_all(policy)
        action = await policy.handle(CallerTurn(utterance="yes, that's right"))
        assert action.kind == ActionKind.COMPLETE
        assert action.booking_id == "42"
        assert persister.calls == 1
        assert policy.status == DraftStatus.COMMITTED
        assert policy.state == DialogueState.DONE
        assert policy.booking_id == "42"

    @pytest.mark.asyncio
    async def test_committed_payload_is_the_confirmed_draft(self, policy, persister):
        await fill_all(policy)
        await policy.handle(CallerTurn(utterance="yes"))
        assert persister.drafts[0]["customer_name"] == "Jane Doe"
        assert persister.drafts[0]["number_of_guests"] == 4

    @pytest.mark.asyncio
    async def test_ambiguous_reply_repeats_recap_verbatim(self, policy):
        first = await fill_all(policy)
        again = await policy.handle(CallerTurn(utterance="hmm, let me think"))
        assert again.kind == ActionKind.CONFIRM
        assert again.text == first.prompt

    @pytest.mark.asyncio
    async def test_bare_no_asks_which_detail(self, policy):
        await fill_all(policy)
        action = await policy.handle(CallerTurn(utterance="no"))
        assert action.kind == ActionKind.CLARIFY
        assert policy.state == DialogueState.AWAITING_CONFIRMATION

    @pytest.mark.asyncio
    async def test_negative_with_field_reopens_it(self, policy):
        await fill_all(policy)
        action = await policy.handle(CallerTurn(utterance="no, the time is wrong"))
        assert action.kind == ActionKind.ASK
        assert action.field_name == "booking_time"
        assert policy.state == DialogueState.COLLECTING
        assert policy.store.draft.booking_time is None

    @pytest.mark.asyncio
    async def test_value_during_confirmation_is_a_correction(self, policy, persister):
        await fill_all(policy)
        action = await policy.handle(CallerTurn(values={"number_of_guests": "6"}))
        assert action.kind == ActionKind.CONFIRM
        assert action.preface == "Thanks, I've updated that."
        assert "6 guests" in action.prompt
        assert persister.calls == 0

    @pytest.mark.asyncio
    async def test_invalid_correction_reopens_field(self, policy):
        await fill_all(policy)
        action = await policy.handle(CallerTurn(values={"booking_time": "whenever"}))
        assert action.kind == ActionKind.ASK
        assert action.field_name == "booking_time"
        assert policy.state == DialogueState.COLLECTING


class TestWeatherEnrichment:
    @pytest.mark.asyncio
    async def test_lookup_waits_for_date(self, policy, weather):
        policy.start()
        await policy.handle(CallerTurn(values={"customer_name": "Jane"}, location="Paris"))
        assert weather.calls == []
        action = await policy.handle(CallerTurn(values={"booking_date": "Friday"}))
        assert weather.calls == ["Paris"]
        assert action.field_name == "booking_time"
        assert action.preface == f"{PARIS_ADVISORY} I'd suggest outdoor seating."

    @pytest.mark.asyncio
    async def test_lookup_at_most_once(self, policy, weather):
        policy.start()
        await policy.handle(CallerTurn(values={"customer_name": "Jane"}, location="Paris"))
        await policy.handle(CallerTurn(values={"booking_date": "Friday"}, location="Paris"))
        await policy.handle(CallerTurn(values={"booking_time": "7pm"}, location="London"))
        await policy.handle(CallerTurn(values={"number_of_guests": "2"}, location="Paris"))
        assert len(weather.calls) == 1
        assert policy.sm.get_state_trace().count("enriching_weather") == 1

    @pytest.mark.asyncio
    async def test_advisory_fills_seating_and_weather(self, policy):
        await fill_all(policy, location="Paris")
        assert policy.store.draft.weather_info == PARIS_ADVISORY
        assert policy.store.draft.seating_preference == "Outdoor"
        assert policy.last_action.kind == ActionKind.CONFIRM
        assert policy.last_action.prompt.endswith("seating Outdoor. Is this correct?")

    @pytest.mark.asyncio
    async def test_cold_weather_suggests_indoor(self):
        policy, _, _ = make_policy(advisory="Weather in Oslo: Clear, 4.0°C.")
        await fill_all(policy, location="Oslo")
        assert policy.store.draft.seating_preference == "Indoor"

    @pytest.mark.asyncio
    async def test_unavailable_weather_degrades_silently(self):
        policy, weather, _ = make_policy(advisory=WEATHER_UNAVAILABLE)
        action = await fill_all(policy, location="Atlantis")
        assert len(weather.calls) == 1
        assert action.kind == ActionKind.CONFIRM
        assert action.preface is None
        assert policy.store.draft.weather_info is None
        assert policy.store.draft.seating_preference is None

    @pytest.mark.asyncio
    async def test_location_during_confirmation_rereads_recap(self, policy, persister, weather):
        await fill_all(policy)
        action = await policy.handle(CallerTurn(utterance="yes", location="Paris"))
        assert weather.calls == ["Paris"]
        assert action.kind == ActionKind.CONFIRM
        assert action.preface.startswith(PARIS_ADVISORY)
        assert "seating Outdoor" in action.prompt
        assert persister.calls == 0
        assert policy.state == DialogueState.AWAITING_CONFIRMATION

    @pytest.mark.asyncio
    async def test_correction_and_location_during_confirmation(self, policy, persister, weather):
        await fill_all(policy)
        action = await policy.handle(
            CallerTurn(utterance="actually 8pm, we're in Paris",
                       values={"booking_time": "8pm"}, location="Paris")
        )
        assert policy.store.draft.booking_time == "8pm"
        assert weather.calls == ["Paris"]
        assert action.kind == ActionKind.CONFIRM
        assert "time 8pm" in action.prompt
        assert "seating Outdoor" in action.prompt
        assert PARIS_ADVISORY in action.preface
        assert action.preface.endswith("Thanks, I've updated that.")
        assert persister.calls == 0
        assert policy.state == DialogueState.AWAITING_CONFIRMATION

    @pytest.mark.asyncio
    async def test_invalid_correction_and_location_reopens_field(self, policy, weather):
        await fill_all(policy)
        action = await policy.handle(
            CallerTurn(values={"number_of_guests": "0"}, location="Paris")
        )
        assert weather.calls == ["Paris"]
        assert action.kind == ActionKind.ASK
        assert action.field_name == "number_of_guests"
        assert action.preface.startswith(PARIS_ADVISORY)
        assert "Sorry" in action.preface
        assert policy.store.draft.number_of_guests is None
        assert policy.store.draft.seating_preference == "Outdoor"
        assert policy.state == DialogueState.COLLECTING


class TestCommitFailures:
    @pytest.mark.asyncio
    async def test_failure_offers_retry(self):
        policy, _, persister = make_policy(fail_times=1)
        await fill_all(policy)
        action = await policy.handle(CallerTurn(utterance="yes"))
        assert action.kind == ActionKind.RETRY_COMMIT
        assert persister.calls == 1
        assert policy.state == DialogueState.AWAITING_CONFIRMATION
        assert policy.status == DraftStatus.AWAITING_CONFIRMATION

    @pytest.mark.asyncio
    async def test_second_consecutive_failure_is_terminal(self):
        policy, _, persister = make_policy(fail_times=5)
        await fill_all(policy)
        await policy.handle(CallerTurn(utterance="yes"))
        action = await policy.handle(CallerTurn(utterance="yes"))
        assert action.kind == ActionKind.FAIL
        assert persister.calls == 2
        assert policy.state == DialogueState.FAILED
        assert policy.is_done

    @pytest.mark.asyncio
    async def test_correction_resets_failure_count(self):
        policy, _, persister = make_policy(fail_times=2)
        await fill_all(policy)
        await policy.handle(CallerTurn(utterance="yes"))
        await policy.handle(CallerTurn(utterance="no, the time is wrong"))
        await policy.handle(CallerTurn(values={"booking_time": "8pm"}))
        action = await policy.handle(CallerTurn(utterance="yes"))
        assert action.kind == ActionKind.RETRY_COMMIT
        action = await policy.handle(CallerTurn(utterance="yes"))
        assert action.kind == ActionKind.COMPLETE
        assert persister.calls == 3

    @pytest.mark.asyncio
    async def test_terminal_failure_discards_draft(self):
        policy, _, _ = make_policy(fail_times=5)
        await fill_all(policy)
        await policy.handle(CallerTurn(utterance="yes"))
        await policy.handle(CallerTurn(utterance="yes"))
        assert policy.state == DialogueState.FAILED
        assert policy.status == DraftStatus.ABANDONED
        assert policy.store.draft.to_dict() == {}
        assert policy.booking_id is None

    @pytest.mark.asyncio
    async def test_valid_correction_resets_failure_count(self):
        policy, _, persister = make_policy(fail_times=2)
        await fill_all(policy)
        await policy.handle(CallerTurn(utterance="yes"))
        action = await policy.handle(CallerTurn(values={"number_of_guests": "6"}))
        assert action.kind == ActionKind.CONFIRM
        assert "6 guests" in action.prompt
        action = await policy.handle(CallerTurn(utterance="yes"))
        assert action.kind == ActionKind.RETRY_COMMIT
        assert policy.state == DialogueState.AWAITING_CONFIRMATION
        action = await policy.handle(CallerTurn(utterance="yes"))
        assert action.kind == ActionKind.COMPLETE
        assert persister.calls == 3


class TestTermination:
    @pytest.mark.asyncio
    async def test_hangup_discards_draft(self, policy, persister):
        policy.start()
        await policy.handle(CallerTurn(values={"customer_name": "Jane"}))
        action = await policy.handle(Hangup())
        assert action.kind == ActionKind.ABANDON
        assert policy.state == DialogueState.ABANDONED
        assert policy.status == DraftStatus.ABANDONED
        assert policy.store.draft.to_dict() == {}
        assert persister.calls == 0

    @pytest.mark.asyncio
    async def test_events_after_end_are_rejected(self, policy):
        policy.start()
        await policy.handle(Hangup())
        with pytest.raises(SessionClosedError):
            await policy.handle(CallerTurn(values={"customer_name": "Jane"}))

    @pytest.mark.asyncio
    async def test_abandon_is_idempotent(self, policy):
        policy.start()
        first = policy.abandon("hangup")
        second = policy.abandon("disconnect")
        assert first is second
        assert len(policy.transcript) == 2

    @pytest.mark.asyncio
    async def test_abandon_after_done_keeps_booking(self, policy):
        await fill_all(policy)
        await policy.handle(CallerTurn(utterance="yes"))
        action = policy.abandon("disconnect")
        assert action.kind == ActionKind.COMPLETE
        assert policy.status == DraftStatus.COMMITTED


    @pytest.mark.asyncio
    async def test_abandon_after_end_without_reply_is_rejected(self, policy):
        policy.start()
        policy.abandon("hangup")
        policy.transcript.clear()
        with pytest.raises(SessionClosedError):
            policy.abandon("disconnect")
