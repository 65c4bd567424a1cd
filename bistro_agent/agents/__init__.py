from bistro_agent.agents.reservation_agent import ReservationAgent

__all__ = ["ReservationAgent"]
