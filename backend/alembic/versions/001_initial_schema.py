"""Initial schema: users, flights, bookings, booking passengers.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Flights table
    op.create_table(
        "flights",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("airline", sa.String(120), nullable=False),
        sa.Column("airline_code", sa.String(8), nullable=False),
        sa.Column("flight_number", sa.Integer(), nullable=False),
        sa.Column("origin", sa.String(3), nullable=False),
        sa.Column("destination", sa.String(3), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("seat_capacity", sa.Integer(), nullable=False),
        sa.Column("available_seats", sa.Integer(), nullable=False),
        sa.Column("departure", sa.DateTime(timezone=True), nullable=False),
        sa.Column("arrival", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("operational_days_mask", sa.Integer(), nullable=False, server_default=sa.text("127")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("price >= 0", name="check_flight_price_non_negative"),
        sa.CheckConstraint("seat_capacity > 0", name="check_seat_capacity_positive"),
        sa.CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        sa.CheckConstraint("available_seats <= seat_capacity", name="check_available_lte_capacity"),
    )
    op.create_index("ix_flights_id", "flights", ["id"])
    # Search always filters on route and a departure-day window
    op.create_index("ix_flights_route_departure", "flights", ["origin", "destination", "departure"])
    op.create_index("ix_flights_price", "flights", ["price"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_reference", sa.String(32), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("flight_id", sa.Integer(), sa.ForeignKey("flights.id", ondelete="SET NULL"), nullable=True),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("total_seats > 0", name="check_booking_total_seats_positive"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_amount_non_negative"),
        sa.CheckConstraint("status IN ('confirmed', 'pending', 'cancelled')", name="check_booking_status"),
        sa.CheckConstraint("payment_status IN ('paid', 'pending', 'failed')", name="check_booking_payment_status"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_booking_reference", "bookings", ["booking_reference"], unique=True)
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_flight_id", "bookings", ["flight_id"])

    # Passengers of a booking, one row per held seat
    op.create_table(
        "booking_passengers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("flight_id", sa.Integer(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("gender", sa.String(10), nullable=False),
        sa.Column("seat_number", sa.String(8), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.CheckConstraint("age >= 1", name="check_passenger_age_positive"),
        sa.CheckConstraint("gender IN ('Male', 'Female', 'Other')", name="check_passenger_gender"),
    )
    op.create_index("ix_booking_passengers_id", "booking_passengers", ["id"])
    op.create_index("ix_booking_passengers_booking_id", "booking_passengers", ["booking_id"])
    # SEAT UNIQUENESS: at most one active holder per (flight, seat).
    # Cancelled bookings flip is_active off, which frees the seat for rebooking.
    op.create_index(
        "uq_passenger_active_flight_seat",
        "booking_passengers",
        ["flight_id", "seat_number"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )


def downgrade() -> None:
    op.drop_table("booking_passengers")
    op.drop_table("bookings")
    op.drop_table("flights")
    op.drop_table("users")
