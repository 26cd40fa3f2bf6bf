"""
Pydantic schemas for flight search, import and responses.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class FlightSort(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    DEPARTURE_ASC = "departure_asc"
    DEPARTURE_DESC = "departure_desc"
    DURATION = "duration"


class FlightCreate(BaseModel):
    """A flight record as accepted by the seed/import command."""

    airline: str = Field(..., min_length=1, max_length=120)
    airline_code: str = Field(..., min_length=1, max_length=8)
    flight_number: int = Field(..., gt=0)
    origin: str = Field(..., min_length=3, max_length=3)
    destination: str = Field(..., min_length=3, max_length=3)
    price: float = Field(..., ge=0)
    seat_capacity: int = Field(..., gt=0)
    available_seats: Optional[int] = Field(None, ge=0)
    departure: datetime
    arrival: datetime
    operational_days: list[int] = Field(default_factory=lambda: list(range(7)), min_length=1)

    @field_validator("origin", "destination", "airline_code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("operational_days")
    @classmethod
    def valid_weekdays(cls, v: list[int]) -> list[int]:
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("operational days must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))

    @model_validator(mode="after")
    def check_schedule_and_seats(self) -> "FlightCreate":
        if self.arrival <= self.departure:
            raise ValueError("arrival must be after departure")
        if self.available_seats is not None and self.available_seats > self.seat_capacity:
            raise ValueError("available_seats cannot exceed seat_capacity")
        return self

    @property
    def duration_minutes(self) -> int:
        return int((self.arrival - self.departure).total_seconds() // 60)


class FlightResponse(BaseModel):
    id: int
    airline: str
    airline_code: str
    flight_number: int
    origin: str
    destination: str
    price: float
    seat_capacity: int
    available_seats: int
    departure: datetime
    arrival: datetime
    duration: str
    duration_minutes: int
    operational_days: list[int]

    model_config = {"from_attributes": True}


class FlightListResponse(BaseModel):
    flights: list[FlightResponse]
    count: int
    cached: bool = False


class BookedSeatsResponse(BaseModel):
    flight_id: int
    seats: list[str]
    count: int
