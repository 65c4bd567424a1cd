"""Booking wire models shared by the HTTP persister and the booking API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookingCreate(_CamelModel):
    """Body of ``POST /bookings``. Strings everywhere except the guest count."""

    customer_name: str = Field(min_length=1)
    number_of_guests: int = Field(gt=0)
    booking_date: str = Field(min_length=1)
    booking_time: str = Field(min_length=1)
    cuisine_preference: str = Field(min_length=1)
    special_requests: str = Field(min_length=1)
    seating_preference: Optional[str] = None
    weather_info: Optional[str] = None


class BookingCreated(BaseModel):
    """Result of a booking write."""

    success: bool
    message: str
    id: Optional[int] = None


class BookingOut(BookingCreate):
    """A stored booking as returned by ``GET /bookings``."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    created_at: datetime
