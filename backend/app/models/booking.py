"""
Booking ledger: a user's reservation of one or more seats on a flight.

Key design decisions:
- Passengers live in their own table but belong to exactly one booking
- Each passenger row repeats the flight id and an `is_active` flag; a partial
  unique index on (flight_id, seat_number) over active rows means the database
  itself refuses a second active holder of a seat
- Status field allows cancellation without deleting records
- Defaults (status, payment status, reference, fallback seats) are applied by
  `Booking.create`, never by column defaults
"""

import secrets
import time

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import relationship, validates

from app.db.base import Base, TimestampMixin

BOOKING_STATUSES = ("confirmed", "pending", "cancelled")
PAYMENT_STATUSES = ("paid", "pending", "failed")
GENDERS = ("Male", "Female", "Other")

SEATS_PER_ROW = 6


def fallback_seat_number(index: int) -> str:
    """Seat for the passenger at `index` when none was chosen: 0 -> 1A, 5 -> 1F, 6 -> 2A."""
    row = index // SEATS_PER_ROW + 1
    column = chr(ord("A") + index % SEATS_PER_ROW)
    return f"{row}{column}"


def generate_booking_reference() -> str:
    return f"BK{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_reference = Column(String(32), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    flight_id = Column(Integer, ForeignKey("flights.id", ondelete="SET NULL"), nullable=True, index=True)
    total_seats = Column(Integer, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String(20), nullable=False)
    payment_status = Column(String(20), nullable=False)

    # Relationships
    user = relationship("User", lazy="selectin")
    flight = relationship("Flight", lazy="selectin")
    passengers = relationship(
        "Passenger",
        back_populates="booking",
        lazy="selectin",
        order_by="Passenger.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="check_booking_total_seats_positive"),
        CheckConstraint("total_amount >= 0", name="check_booking_total_amount_non_negative"),
        CheckConstraint(
            "status IN ('confirmed', 'pending', 'cancelled')", name="check_booking_status"
        ),
        CheckConstraint(
            "payment_status IN ('paid', 'pending', 'failed')", name="check_booking_payment_status"
        ),
    )

    @classmethod
    def create(
        cls,
        user_id: int,
        flight_id: int,
        unit_price: float,
        passengers: list[dict],
        status: str = "confirmed",
        payment_status: str = "paid",
    ) -> "Booking":
        """
        Build a new booking with its passengers.

        Totals are derived from the passenger list so total_seats always equals
        the number of passengers, and passengers without a seat number get the
        fallback seat for their position.
        """
        if not passengers:
            raise ValueError("At least one passenger is required")

        booking = cls(
            booking_reference=generate_booking_reference(),
            user_id=user_id,
            flight_id=flight_id,
            total_seats=len(passengers),
            total_amount=unit_price * len(passengers),
            status=status,
            payment_status=payment_status,
        )
        for index, data in enumerate(passengers):
            booking.passengers.append(
                Passenger(
                    position=index,
                    flight_id=flight_id,
                    first_name=data["first_name"],
                    last_name=data["last_name"],
                    age=data["age"],
                    gender=data["gender"],
                    seat_number=data.get("seat_number") or fallback_seat_number(index),
                    is_active=status != "cancelled",
                )
            )
        return booking

    @property
    def is_active(self) -> bool:
        return self.status != "cancelled"

    @property
    def seat_numbers(self) -> list[str]:
        return [p.seat_number for p in self.passengers]

    @validates("booking_reference")
    def _freeze_reference(self, key, value):
        if self.booking_reference is not None and value != self.booking_reference:
            raise ValueError("booking_reference cannot be changed once set")
        return value

    @validates("status")
    def _check_status(self, key, value):
        if value not in BOOKING_STATUSES:
            raise ValueError(f"Invalid booking status: {value}")
        return value

    @validates("payment_status")
    def _check_payment_status(self, key, value):
        if value not in PAYMENT_STATUSES:
            raise ValueError(f"Invalid payment status: {value}")
        return value

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, ref={self.booking_reference}, user={self.user_id}, "
            f"flight={self.flight_id}, seats={self.total_seats}, status={self.status})>"
        )


class Passenger(Base):
    __tablename__ = "booking_passengers"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    flight_id = Column(Integer, nullable=True)
    position = Column(Integer, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(String(10), nullable=False)
    seat_number = Column(String(8), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    booking = relationship("Booking", back_populates="passengers")

    __table_args__ = (
        CheckConstraint("age >= 1", name="check_passenger_age_positive"),
        CheckConstraint("gender IN ('Male', 'Female', 'Other')", name="check_passenger_gender"),
        # A seat can be held by at most one active booking per flight
        Index(
            "uq_passenger_active_flight_seat",
            "flight_id",
            "seat_number",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    @validates("gender")
    def _check_gender(self, key, value):
        if value not in GENDERS:
            raise ValueError(f"Invalid gender: {value}")
        return value

    @validates("seat_number")
    def _normalize_seat(self, key, value):
        return value.strip().upper()

    def __repr__(self) -> str:
        return f"<Passenger(booking={self.booking_id}, seat={self.seat_number}, active={self.is_active})>"
