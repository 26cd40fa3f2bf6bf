"""
Tests for model-level invariants that need no database.
"""

import re

import pytest

from app.models.booking import Booking, fallback_seat_number, generate_booking_reference
from app.models.flight import Flight, format_duration, weekday_mask
from conftest import passenger


@pytest.mark.parametrize(
    "index,seat",
    [(0, "1A"), (1, "1B"), (5, "1F"), (6, "2A"), (11, "2F"), (12, "3A")],
)
def test_fallback_seat_number(index, seat):
    assert fallback_seat_number(index) == seat


def test_booking_reference_format():
    reference = generate_booking_reference()
    assert re.fullmatch(r"BK\d{13,}\d{3}", reference)


def test_create_applies_defaults_and_totals():
    booking = Booking.create(
        user_id=1,
        flight_id=2,
        unit_price=120.0,
        passengers=[passenger("3A"), passenger(), passenger()],
    )
    assert booking.status == "confirmed"
    assert booking.payment_status == "paid"
    assert booking.total_seats == 3
    assert booking.total_amount == 360.0
    assert booking.booking_reference.startswith("BK")
    # Passengers without a seat take the one for their position
    assert booking.seat_numbers == ["3A", "1B", "1C"]
    assert all(p.is_active and p.flight_id == 2 for p in booking.passengers)


def test_create_requires_passengers():
    with pytest.raises(ValueError):
        Booking.create(user_id=1, flight_id=2, unit_price=10.0, passengers=[])


def test_booking_reference_is_immutable():
    booking = Booking.create(user_id=1, flight_id=2, unit_price=10.0, passengers=[passenger("1A")])
    with pytest.raises(ValueError):
        booking.booking_reference = "BK0"


def test_cancelled_booking_holds_no_seats():
    booking = Booking.create(
        user_id=1, flight_id=2, unit_price=10.0, passengers=[passenger("1A")], status="cancelled"
    )
    assert not booking.is_active
    assert not booking.passengers[0].is_active


def test_invalid_status_and_gender_rejected():
    booking = Booking.create(user_id=1, flight_id=2, unit_price=10.0, passengers=[passenger("1A")])
    with pytest.raises(ValueError):
        booking.status = "refunded"
    with pytest.raises(ValueError):
        Booking.create(user_id=1, flight_id=2, unit_price=10.0, passengers=[passenger("1A", gender="X")])


def test_seat_numbers_are_upper_cased():
    booking = Booking.create(user_id=1, flight_id=2, unit_price=10.0, passengers=[passenger(" 4c ")])
    assert booking.seat_numbers == ["4C"]


def test_flight_normalizes_codes_and_days():
    flight = Flight(origin=" del", destination="bom ", airline_code="ai", operational_days=[5, 0, 5])
    assert (flight.origin, flight.destination, flight.airline_code) == ("DEL", "BOM", "AI")
    assert flight.operational_days == [0, 5]
    assert flight.operates_on(0)
    assert not flight.operates_on(1)


def test_weekday_mask_bounds():
    assert weekday_mask(range(7)) == 0b1111111
    with pytest.raises(ValueError):
        weekday_mask([7])


@pytest.mark.parametrize("minutes,text", [(45, "0h 45m"), (130, "2h 10m"), (600, "10h 00m")])
def test_format_duration(minutes, text):
    assert format_duration(minutes) == text
