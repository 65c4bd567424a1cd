"""
Entry point for the reservation voice agent and its booking API.

Configures the STT -> LLM -> TTS pipeline around a ReservationAgent whose
control flow comes from the DialoguePolicy.

Usage:
    Live voice:   python main.py dev
    Console mode: python main.py console [--scenario booking]
    Booking API:  python main.py backend
"""

import logging
import sys

from bistro_agent.config import settings

logger = logging.getLogger(__name__)


def _build_session():
    """Build a new AgentSession with the configured STT/LLM/TTS pipeline."""
    from livekit.agents import AgentSession
    from livekit.plugins import cartesia, deepgram, openai, silero

    from bistro_agent.schemas.call_schema import CallData

    return AgentSession[CallData](
        stt=deepgram.STT(
            model=settings.model.stt_model,
            language=settings.model.stt_language,
        ),
        llm=openai.LLM(
            model=settings.model.llm_model,
            temperature=settings.model.llm_temperature,
        ),
        tts=cartesia.TTS(
            model=settings.model.tts_model,
            voice=settings.model.tts_voice_id,
        ),
        vad=silero.VAD.load(),
        userdata=CallData(),
    )


def _build_policy():
    """One policy per call, wired to the real weather and booking collaborators."""
    from bistro_agent.conversation.policy import DialoguePolicy
    from bistro_agent.tools.booking import HttpBookingPersister
    from bistro_agent.tools.weather import OpenWeatherAdvisory

    return DialoguePolicy(weather=OpenWeatherAdvisory(), persister=HttpBookingPersister())


async def entrypoint(ctx) -> None:
    """LiveKit job entrypoint. Kept at module level so worker processes can import it."""
    from bistro_agent.agents.reservation_agent import ReservationAgent
    from bistro_agent.logging_context import set_call_id

    set_call_id(ctx.room.name)
    policy = _build_policy()
    session = _build_session()
    session.userdata.call_id = ctx.room.name

    @ctx.room.on("participant_disconnected")
    def _on_disconnect(participant) -> None:
        policy.abandon("caller disconnected")

    await session.start(room=ctx.room, agent=ReservationAgent(policy))
    await ctx.connect()
    logger.info("Voice agent session started in room: %s", ctx.room.name)


def _run_voice_mode() -> None:
    """Start the full LiveKit voice pipeline (requires API keys)."""
    from livekit.agents import WorkerOptions, cli

    worker = WorkerOptions(
        entrypoint_fnc=entrypoint,
        agent_name=settings.agent_name,
    )
    cli.run_app(worker)


def _run_console_mode(argv: list[str]) -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import main as console_main

    console_main(argv)


def _run_backend_mode() -> None:
    """Serve the booking API."""
    import uvicorn

    from bistro_agent.api import create_app

    uvicorn.run(create_app(), host=settings.backend.host, port=settings.backend.port)


if __name__ == "__main__":
    mode = sys.argv[1] if len(sys.argv) > 1 else "dev"
    if mode == "console":
        _run_console_mode(sys.argv[2:])
    elif mode == "backend":
        _run_backend_mode()
    else:
        _run_voice_mode()
