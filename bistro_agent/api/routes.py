"""Booking endpoints: create a booking and list stored bookings."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError

from bistro_agent.db import Booking, Database
from bistro_agent.schemas.booking_schema import BookingCreate, BookingCreated, BookingOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_database(request: Request) -> Database:
    return request.app.state.database


@router.post("", status_code=status.HTTP_201_CREATED, response_model=BookingCreated)
def create_booking(payload: BookingCreate, database: Database = Depends(get_database)):
    """
    Store a confirmed booking.

    Returns:
        201 with the new id, or 500 with ``success: false`` when the write
        fails. A failed write leaves nothing behind.
    """
    logger.info(
        "Incoming booking: %s guests on %s at %s",
        payload.number_of_guests, payload.booking_date, payload.booking_time,
    )
    try:
        with database.session() as session:
            booking = Booking(**payload.model_dump())
            session.add(booking)
            session.flush()
            booking_id = booking.id
    except SQLAlchemyError as e:
        logger.error(f"Error saving booking: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=BookingCreated(success=False, message="Failed to save").model_dump(),
        )

    logger.info("Booking %s saved", booking_id)
    return BookingCreated(success=True, message="Booking saved", id=booking_id)


@router.get("", response_model=List[BookingOut])
def list_bookings(database: Database = Depends(get_database)):
    """All bookings, newest first."""
    try:
        with database.session() as session:
            rows = session.scalars(
                select(Booking).order_by(desc(Booking.created_at), desc(Booking.id))
            ).all()
            return [BookingOut.model_validate(row) for row in rows]
    except SQLAlchemyError as e:
        logger.error(f"Error fetching bookings: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Could not fetch bookings"},
        )
