"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from app.schemas.flight import FlightResponse
from app.schemas.user import UserSummary


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class PassengerCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    age: int = Field(..., ge=1, le=130)
    gender: Gender
    # Omitted seats are filled from the passenger's position (1A, 1B, ...)
    seat_number: Optional[str] = Field(None, min_length=1, max_length=8)

    model_config = {"str_strip_whitespace": True}

    @field_validator("seat_number")
    @classmethod
    def upper_seat(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v is not None else v


class BookingCreate(BaseModel):
    flight_id: int
    passengers: list[PassengerCreate] = Field(..., min_length=1)


class PassengerResponse(BaseModel):
    first_name: str
    last_name: str
    age: int
    gender: str
    seat_number: str

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    booking_reference: str
    user_id: int
    flight_id: Optional[int]
    passengers: list[PassengerResponse]
    total_seats: int
    total_amount: float
    status: str
    payment_status: str
    created_at: datetime
    flight: Optional[FlightResponse] = None
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking: BookingResponse
    seats_restored: bool
