"""
Flight model with seat inventory tracking.

Key design decisions:
- `available_seats` is denormalized (avoids counting passengers on every search)
- `version` column enables optimistic locking for concurrent booking
- Operational weekdays are stored as a bitmask so "operates on day N" is a
  single bitwise test on every backend (0 = Sunday ... 6 = Saturday)
- Duration is stored in minutes so sorting by it is numeric
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Index, CheckConstraint
from sqlalchemy.orm import validates

from app.db.base import Base, TimestampMixin

ALL_DAYS_MASK = 0b1111111


def weekday_mask(days) -> int:
    mask = 0
    for day in days:
        if not 0 <= int(day) <= 6:
            raise ValueError(f"Operational day must be between 0 and 6, got {day}")
        mask |= 1 << int(day)
    return mask


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins:02d}m"


class Flight(Base, TimestampMixin):
    __tablename__ = "flights"

    id = Column(Integer, primary_key=True, index=True)
    airline = Column(String(120), nullable=False)
    airline_code = Column(String(8), nullable=False)
    flight_number = Column(Integer, nullable=False)
    origin = Column(String(3), nullable=False)
    destination = Column(String(3), nullable=False)
    price = Column(Float, nullable=False)
    seat_capacity = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    departure = Column(DateTime(timezone=True), nullable=False)
    arrival = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    operational_days_mask = Column(Integer, nullable=False, default=ALL_DAYS_MASK)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_flight_price_non_negative"),
        CheckConstraint("seat_capacity > 0", name="check_seat_capacity_positive"),
        CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        CheckConstraint("available_seats <= seat_capacity", name="check_available_lte_capacity"),
        # Route search: origin + destination + departure window
        Index("ix_flights_route_departure", "origin", "destination", "departure"),
        Index("ix_flights_price", "price"),
    )

    @validates("origin", "destination")
    def _normalize_airport_code(self, key, value):
        return value.strip().upper()

    @validates("airline_code")
    def _normalize_airline_code(self, key, value):
        return value.strip().upper()

    @property
    def operational_days(self) -> list[int]:
        mask = self.operational_days_mask or 0
        return [day for day in range(7) if mask & (1 << day)]

    @operational_days.setter
    def operational_days(self, days) -> None:
        self.operational_days_mask = weekday_mask(days)

    @property
    def duration(self) -> str:
        return format_duration(self.duration_minutes)

    def operates_on(self, day: int) -> bool:
        return bool((self.operational_days_mask or 0) & (1 << day))

    def __repr__(self) -> str:
        return (
            f"<Flight(id={self.id}, {self.airline_code}{self.flight_number} "
            f"{self.origin}->{self.destination}, available={self.available_seats}/{self.seat_capacity})>"
        )
