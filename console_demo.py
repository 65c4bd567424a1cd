"""
Offline console demo: plays a whole reservation call without any API keys.

Uses the real dialogue policy, draft store and confirmation gate with an
in-memory booking store and canned weather. No LLM, no LiveKit, no
network calls. Caller input is mapped onto the field being asked, and
"in <City>" is picked up as the location.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario retry
"""

import argparse
import asyncio
import re
from typing import Optional, Union

from bistro_agent.config import settings
from bistro_agent.conversation.policy import CallerTurn, DialoguePolicy, Hangup
from bistro_agent.conversation.state_machine import DialogueState
from bistro_agent.tools.booking import InMemoryBookingPersister
from bistro_agent.tools.weather import WEATHER_UNAVAILABLE

BLUE = "\033[94m"
GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

_LOCATION_RE = re.compile(r"\bin ([A-Z][a-zA-Z]+(?: [A-Z][a-zA-Z]+)*)")
_HANGUP_WORDS = {"quit", "exit", "q", "bye", "hang up", "cancel"}


class CannedWeatherAdvisory:
    """Fixed forecasts for a few cities; everything else is unavailable."""

    FORECASTS = {
        "paris": ("Clear", 22.0),
        "london": ("Rain", 12.5),
        "sydney": ("Clouds", 19.0),
    }

    def __init__(self) -> None:
        self.calls = 0

    async def lookup(self, location: str) -> str:
        self.calls += 1
        forecast = self.FORECASTS.get(location.lower())
        if forecast is None:
            return WEATHER_UNAVAILABLE
        main, temp = forecast
        return f"Weather in {location}: {main}, {temp}°C."


def interpret(text: str, policy: DialoguePolicy) -> Union[CallerTurn, Hangup]:
    """Stand-in for the language model: map raw input onto the asked field."""
    if text.lower().strip() in _HANGUP_WORDS:
        return Hangup("caller typed " + text.strip())

    location: Optional[str] = None
    match = _LOCATION_RE.search(text)
    if match:
        location = match.group(1)
        text = (text[: match.start()] + text[match.end():]).strip(" ,.")

    if policy.state != DialogueState.COLLECTING:
        return CallerTurn(utterance=text, location=location)

    last = policy.last_action
    values = {}
    if last is not None and last.field_name and text:
        values[last.field_name] = text
    return CallerTurn(utterance=text, values=values, location=location)


class ConsoleSession:
    """Simulates a reservation call in the terminal."""

    SCENARIOS: dict[str, list[str]] = {
        "booking": [
            "Jane Doe",
            "2026-10-24 in Paris",
            "7pm",
            "4",
            "Italian",
            "none",
            "yes",
        ],
        "invalid_guests": [
            "Sam Lee",
            "tomorrow",
            "19:30",
            "zero",
            "two",
            "Thai",
            "a birthday cake",
            "yes please",
        ],
        "retry": [
            "Alex Kim",
            "Friday",
            "8pm",
            "6",
            "Japanese",
            "nothing",
            "yes",
            "yes",
        ],
        "hangup": [
            "Chris Park",
            "hang up",
        ],
        "ambiguous": [
            "Robin Hart",
            "December 3rd in London",
            "noon",
            "3",
            "French",
            "window table",
            "hmm, let me think",
            "no, the time is wrong",
            "1pm",
            "yes",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, fail_times: int = 0) -> None:
        self.weather = CannedWeatherAdvisory()
        self.persister = InMemoryBookingPersister(fail_times=fail_times)
        self.policy = DialoguePolicy(weather=self.weather, persister=self.persister)

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[Host]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        print(f"{BOLD}  Restaurant: {settings.restaurant.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _summary(self) -> None:
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{DIM}  State trace: {' -> '.join(self.policy.sm.get_state_trace())}{RESET}")
        print(f"{DIM}  Draft status: {self.policy.status.value}{RESET}")
        print(f"{DIM}  Draft stats: {self.policy.store.get_stats()}{RESET}")
        print(f"{DIM}  Weather calls: {self.weather.calls}, "
              f"booking attempts: {self.persister.calls}{RESET}")
        if self.policy.booking_id:
            print(f"{DIM}  Stored: {self.persister.get_booking(self.policy.booking_id)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def _process_input(self, text: str) -> None:
        event = interpret(text, self.policy)
        action = await self.policy.handle(event)
        self.agent_say(action.text)
        self.system_log(f"State: {self.policy.state.value} | action: {action.kind.value}")

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"RESERVATION HOST - Scenario: {scenario}")
        self.agent_say(self.policy.start().text)

        for step in steps:
            if self.policy.is_done:
                break
            print(f"\n{BLUE}[Caller] {RESET}{step}")
            await self._process_input(step)

        self._summary()

    async def run(self) -> None:
        self._banner("RESERVATION HOST - Console Demo (type 'quit' to hang up)")
        self.agent_say(self.policy.start().text)

        while not self.policy.is_done:
            user_input = input(f"\n{BLUE}[Caller] {RESET}").strip()
            if not user_input:
                continue
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.agent_say("That was quite long. Could you keep it brief for me?")
                continue
            await self._process_input(user_input)

        self._summary()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline reservation host demo")
    parser.add_argument("--scenario", choices=sorted(ConsoleSession.SCENARIOS))
    args = parser.parse_args(argv)

    session = ConsoleSession(fail_times=1 if args.scenario == "retry" else 0)
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
