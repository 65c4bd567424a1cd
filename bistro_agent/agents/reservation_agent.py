"""
Reservation agent: the LiveKit voice front of the dialogue policy.

The model hears the caller, extracts details into tool arguments and
voices whatever the policy decides. Each tool call is one caller turn.
"""

from __future__ import annotations

from typing import Optional

from livekit.agents import Agent, RunContext, function_tool

from bistro_agent.conversation.policy import Action, CallerTurn, DialoguePolicy, SessionClosedError
from bistro_agent.logging_context import get_call_logger
from bistro_agent.prompts.prompt_templates import build_action_instruction
from bistro_agent.prompts.system_prompts import RESERVATION_SYSTEM_PROMPT
from bistro_agent.schemas.call_schema import CallData

logger = get_call_logger(__name__)


class ReservationAgent(Agent):
    """Single-agent reservation host driven by a DialoguePolicy."""

    def __init__(self, policy: DialoguePolicy) -> None:
        super().__init__(instructions=RESERVATION_SYSTEM_PROMPT)
        self._policy = policy

    async def on_enter(self) -> None:
        action = self._policy.start()
        self.session.generate_reply(instructions=build_action_instruction(action))

    # ------------------------------------------------------------------ #
    # Turn tools
    # ------------------------------------------------------------------ #

    @function_tool()
    async def record_details(
        self,
        context: RunContext[CallData],
        customer_name: Optional[str] = None,
        booking_date: Optional[str] = None,
        booking_time: Optional[str] = None,
        number_of_guests: Optional[str] = None,
        cuisine_preference: Optional[str] = None,
        special_requests: Optional[str] = None,
        location: Optional[str] = None,
    ) -> str:
        """Record booking details the caller just gave.

        Pass only what the caller said in this turn. location is a city the
        caller mentioned, used for a weather-based seating suggestion.
        """
        values = {
            name: value
            for name, value in {
                "customer_name": customer_name,
                "booking_date": booking_date,
                "booking_time": booking_time,
                "number_of_guests": number_of_guests,
                "cuisine_preference": cuisine_preference,
                "special_requests": special_requests,
            }.items()
            if value is not None
        }
        return await self._take_turn(context, CallerTurn(values=values, location=location))

    @function_tool()
    async def respond_to_recap(self, context: RunContext[CallData], reply: str) -> str:
        """Pass on the caller's answer to the booking read-back, word for word."""
        return await self._take_turn(context, CallerTurn(utterance=reply))

    @function_tool()
    async def end_call(self, context: RunContext[CallData]) -> str:
        """The caller wants to cancel or hang up."""
        action = self._policy.abandon("caller cancelled")
        self._sync(context, action)
        return build_action_instruction(action)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _take_turn(self, context: RunContext[CallData], turn: CallerTurn) -> str:
        try:
            action = await self._policy.handle(turn)
        except SessionClosedError:
            logger.info("Turn received after the call ended")
            return "The call is over. Say goodbye."
        self._sync(context, action)
        return build_action_instruction(action)

    def _sync(self, context: RunContext[CallData], action: Action) -> None:
        data = context.userdata
        data.turns += 1
        data.state = self._policy.state.value
        data.last_action = action.kind.value
        data.booking_id = self._policy.booking_id
