"""
Service-level tests for seat reservation under interleaved writers.

These drive app.services.booking_service directly to reproduce the races the
HTTP tests cannot: a seat counter that moves between read and write, a seat
claimed by someone else after the availability check, and two cancels of the
same booking.
"""

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import CapacityError, ConflictError
from app.models import booking as booking_model
from app.models.booking import Booking, Passenger
from app.models.flight import Flight
from app.schemas.booking import PassengerCreate
from app.services import booking_service
from conftest import make_flight, passenger


def passengers(*seats):
    return [PassengerCreate(**passenger(seat)) for seat in seats]


async def seats_left(db_session, flight_id: int) -> int:
    result = await db_session.execute(select(Flight.available_seats).where(Flight.id == flight_id))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_reserve_seat_count_uses_live_counter(db_session, test_flight):
    flight_id = test_flight.id

    # Two writers working from the same snapshot both get their seats
    assert await booking_service.reserve_seat_count(db_session, flight_id, 2) is True
    assert await booking_service.reserve_seat_count(db_session, flight_id, 2) is True
    assert await seats_left(db_session, flight_id) == 96


@pytest.mark.asyncio
async def test_reserve_seat_count_never_goes_negative(db_session, small_flight):
    flight_id = small_flight.id

    assert await booking_service.reserve_seat_count(db_session, flight_id, 3) is False
    assert await seats_left(db_session, flight_id) == 2


@pytest.mark.asyncio
async def test_disjoint_booking_in_between_does_not_force_retry(db_session, test_user, test_flight, monkeypatch):
    """Another booking takes other seats between our check and our update."""
    user_id, flight_id = test_user.id, test_flight.id
    original = booking_service.reserve_seat_count
    calls = []

    async def interleaved_reserve(db, flight_id, count):
        if not calls:
            await original(db, flight_id, 2)
            await db.commit()
        calls.append(count)
        return await original(db, flight_id, count)

    monkeypatch.setattr(booking_service, "reserve_seat_count", interleaved_reserve)

    booking = await booking_service.book_seats(db_session, user_id, flight_id, passengers("4D"))

    assert booking.seat_numbers == ["4D"]
    assert calls == [1]
    assert await seats_left(db_session, flight_id) == 97


@pytest.mark.asyncio
async def test_counter_race_rechecks_capacity(db_session, test_user, small_flight, monkeypatch):
    """Another booking sells the last seats between our check and our update."""
    user_id, flight_id = test_user.id, small_flight.id
    original = booking_service.reserve_seat_count
    raced = []

    async def racing_reserve(db, flight_id, count):
        if not raced:
            raced.append(True)
            await db.execute(
                update(Flight)
                .where(Flight.id == flight_id)
                .values(available_seats=0, version=Flight.version + 1)
            )
            await db.commit()
        return await original(db, flight_id, count)

    monkeypatch.setattr(booking_service, "reserve_seat_count", racing_reserve)

    with pytest.raises(CapacityError) as exc_info:
        await booking_service.book_seats(db_session, user_id, flight_id, passengers("1A"))

    assert exc_info.value.detail == "Only 0 seats available"
    assert await seats_left(db_session, flight_id) == 0


@pytest.mark.asyncio
async def test_retries_exhausted(db_session, test_user, test_flight, monkeypatch):
    user_id, flight_id = test_user.id, test_flight.id
    attempts = []

    async def always_short(db, flight_id, count):
        attempts.append(count)
        return False

    monkeypatch.setattr(booking_service, "reserve_seat_count", always_short)

    with pytest.raises(ConflictError) as exc_info:
        await booking_service.book_seats(db_session, user_id, flight_id, passengers("1A"))

    assert "high demand" in exc_info.value.detail
    assert len(attempts) == booking_service.settings.BOOKING_MAX_RETRIES
    assert await seats_left(db_session, flight_id) == 100


@pytest.mark.asyncio
async def test_reference_collision_retries_with_new_reference(db_session, test_user, other_user, test_flight, monkeypatch):
    user_id, other_id, flight_id = test_user.id, other_user.id, test_flight.id
    original = booking_model.generate_booking_reference
    pinned = iter(["BK1893456000000042", "BK1893456000000042"])

    def pinned_reference():
        return next(pinned, None) or original()

    monkeypatch.setattr(booking_model, "generate_booking_reference", pinned_reference)

    first = await booking_service.book_seats(db_session, other_id, flight_id, passengers("5E"))
    await db_session.commit()
    assert first.booking_reference == "BK1893456000000042"

    second = await booking_service.book_seats(db_session, user_id, flight_id, passengers("5F"))

    assert second.booking_reference != "BK1893456000000042"
    assert second.seat_numbers == ["5F"]
    assert await seats_left(db_session, flight_id) == 98


@pytest.mark.asyncio
async def test_seat_claimed_after_check_is_conflict(db_session, test_user, other_user, test_flight, monkeypatch):
    """The unique index catches a seat taken after the availability query ran."""
    user_id, other_id, flight_id = test_user.id, other_user.id, test_flight.id

    await booking_service.book_seats(db_session, other_id, flight_id, passengers("8C"))
    await db_session.commit()

    async def stale_view(db, flight_id, seat_numbers):
        return []

    monkeypatch.setattr(booking_service, "find_taken_seats", stale_view)

    with pytest.raises(ConflictError) as exc_info:
        await booking_service.book_seats(db_session, user_id, flight_id, passengers("8D", "8C"))

    assert exc_info.value.detail == "One or more selected seats are already booked"
    # The counter decrement was rolled back with the failed insert
    assert await seats_left(db_session, flight_id) == 99


@pytest.mark.asyncio
async def test_active_seat_unique_index(db_session, test_user, test_flight):
    user_id, flight_id = test_user.id, test_flight.id
    first = Booking.create(user_id, flight_id, 100.0, [passenger("10A")])
    db_session.add(first)
    await db_session.commit()
    first_id = first.id

    db_session.add(Booking.create(user_id, flight_id, 100.0, [passenger("10A")]))
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()

    # Once the holder is cancelled the seat is free at the database level too
    assert await booking_service.mark_cancelled(db_session, first_id) is True
    await db_session.flush()
    db_session.add(Booking.create(user_id, flight_id, 100.0, [passenger("10A")]))
    await db_session.flush()


@pytest.mark.asyncio
async def test_totals_follow_passenger_list(db_session, test_user):
    flight = await make_flight(db_session, price=149.5, seat_capacity=10, available_seats=10)
    booking = await booking_service.book_seats(
        db_session, test_user.id, flight.id, passengers("1A", "1B", "1C")
    )

    assert booking.total_seats == len(booking.passengers) == 3
    assert booking.total_amount == pytest.approx(448.5)
    assert booking.seat_numbers == ["1A", "1B", "1C"]


@pytest.mark.asyncio
async def test_cancel_restores_exact_count(db_session, test_user, test_flight):
    user_id, flight_id = test_user.id, test_flight.id
    booking = await booking_service.book_seats(
        db_session, user_id, flight_id, passengers("1A", "1B", "1C", "1D")
    )
    assert await seats_left(db_session, flight_id) == 96

    cancelled, restored = await booking_service.cancel_booking(db_session, booking.id, user_id)

    assert restored is True
    assert cancelled.status == "cancelled"
    assert all(not p.is_active for p in cancelled.passengers)
    assert await seats_left(db_session, flight_id) == 100


@pytest.mark.asyncio
async def test_overlapping_cancels_release_seats_once(db_session, test_user, test_flight, monkeypatch):
    """A second cancel that loaded the booking before the first committed is refused."""
    user_id, flight_id = test_user.id, test_flight.id
    booking = await booking_service.book_seats(
        db_session, user_id, flight_id, passengers("2A", "2B")
    )
    await db_session.commit()
    booking_id = booking.id
    original_load = booking_service._load_booking
    raced = []

    async def load_then_lose_race(db, booking_id):
        snapshot = await original_load(db, booking_id)
        if not raced:
            raced.append(True)
            # The other cancel commits while this one still sees "confirmed"
            await db.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(status="cancelled")
                .execution_options(synchronize_session=False)
            )
            await db.execute(
                update(Passenger)
                .where(Passenger.booking_id == booking_id)
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            await booking_service.release_seat_count(db, flight_id, 2)
            await db.commit()
        return snapshot

    monkeypatch.setattr(booking_service, "_load_booking", load_then_lose_race)

    with pytest.raises(ConflictError) as exc_info:
        await booking_service.cancel_booking(db_session, booking_id, user_id)

    assert exc_info.value.detail == "Booking is already cancelled"
    assert await seats_left(db_session, flight_id) == 100
    # Rebooking the released seats still works
    await booking_service.book_seats(db_session, user_id, flight_id, passengers("2A", "2B"))
    assert await seats_left(db_session, flight_id) == 98
