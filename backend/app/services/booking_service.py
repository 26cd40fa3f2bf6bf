"""
Booking service with concurrency-safe seat reservation.

SEAT INVENTORY
==============

A flight's seat inventory is two things that must agree:
  - flights.available_seats, the counter searched and displayed
  - the seat numbers held by passengers of active (non-cancelled) bookings

Creating a booking checks, in order and before any write:
  1. the flight exists                                   -> 404 not_found
  2. available_seats >= number of passengers             -> 409 capacity
  3. the requested seat numbers are pairwise distinct    -> 409 conflict
  4. none of them is held by an active booking           -> 409 conflict

Read-check-write race:
  Two requests can both pass the checks above against the same snapshot.
  Neither write is trusted to the snapshot:

  - The counter is decremented with a conditional UPDATE
      SET available_seats = available_seats - N, version = version + 1
      WHERE id = :flight_id AND available_seats >= N
    The predicate is evaluated against the row as it is now, so bookings for
    different seats never block each other. If no row matches, the seats were
    sold in the meantime: the transaction is rolled back and the checks re-run
    against fresh state, which reports the capacity error.
  - Seat claims are protected by the partial unique index on
    booking_passengers (flight_id, seat_number) WHERE is_active. A concurrent
    booking that claimed the same seat makes our INSERT fail, which is
    reported as the same "already booked" conflict as check 4.
  - A clash on the generated booking reference is rolled back and retried
    with a fresh reference, up to BOOKING_MAX_RETRIES attempts in total.

  Both writes share the request transaction, so a failure after the counter
  update never leaves a decremented counter without its booking.

Cancelling flips the status with UPDATE ... WHERE status != 'cancelled'. Of two
overlapping cancels only one matches a row, so seats are released once.
"""

import time
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import CapacityError, ConflictError, ForbiddenError, NotFoundError
from app.core.logging import get_logger
from app.core.metrics import booking_latency, db_retries, record_booking_attempt, record_cancellation
from app.models.booking import Booking, Passenger, fallback_seat_number
from app.models.flight import Flight
from app.schemas.booking import PassengerCreate

logger = get_logger(__name__)
settings = get_settings()

# How the active-seat index shows up in driver errors: PostgreSQL names the
# index, SQLite names the columns
SEAT_CLAIM_MARKERS = ("uq_passenger_active_flight_seat", "booking_passengers.seat_number")


async def _get_flight_or_none(db: AsyncSession, flight_id: Optional[int]) -> Optional[Flight]:
    if flight_id is None:
        return None
    result = await db.execute(
        select(Flight)
        .where(Flight.id == flight_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _load_booking(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    """Fetch a booking with passengers, flight and user, replacing any stale copy in the session."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_taken_seats(db: AsyncSession, flight_id: int, seat_numbers: list[str]) -> list[str]:
    """Which of `seat_numbers` are held by an active booking on the flight."""
    result = await db.execute(
        select(Passenger.seat_number)
        .join(Booking, Passenger.booking_id == Booking.id)
        .where(
            Booking.flight_id == flight_id,
            Booking.status != "cancelled",
            Passenger.seat_number.in_(seat_numbers),
        )
        .distinct()
    )
    return sorted(result.scalars().all())


async def reserve_seat_count(db: AsyncSession, flight_id: int, count: int) -> bool:
    """
    Atomically take `count` seats off the flight's counter.
    Returns False if the flight no longer has enough seats.
    """
    result = await db.execute(
        update(Flight)
        .where(
            Flight.id == flight_id,
            Flight.available_seats >= count,
        )
        .values(
            available_seats=Flight.available_seats - count,
            version=Flight.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_seat_count(db: AsyncSession, flight_id: int, count: int) -> None:
    await db.execute(
        update(Flight)
        .where(Flight.id == flight_id)
        .values(
            available_seats=Flight.available_seats + count,
            version=Flight.version + 1,
        )
        .execution_options(synchronize_session=False)
    )


async def mark_cancelled(db: AsyncSession, booking_id: int) -> bool:
    """
    Flip an active booking to cancelled and free its passengers' seats.
    Returns False if the booking was already cancelled by someone else.
    """
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status != "cancelled")
        .values(status="cancelled")
    )
    if result.rowcount != 1:
        return False

    await db.execute(
        update(Passenger)
        .where(Passenger.booking_id == booking_id)
        .values(is_active=False)
    )
    return True


def resolve_seat_numbers(passengers: list[PassengerCreate]) -> list[str]:
    return [p.seat_number or fallback_seat_number(index) for index, p in enumerate(passengers)]


async def book_seats(
    db: AsyncSession,
    user_id: int,
    flight_id: int,
    passengers: list[PassengerCreate],
) -> Booking:
    """
    Reserve one seat per passenger on a flight.
    Retries up to BOOKING_MAX_RETRIES when the seats sold out under us or the
    generated reference clashed.
    """
    started = time.perf_counter()
    try:
        booking = await _book_seats(db, user_id, flight_id, passengers)
    except (NotFoundError, CapacityError, ConflictError) as exc:
        record_booking_attempt(exc.kind)
        raise
    except Exception:
        record_booking_attempt("error")
        raise
    record_booking_attempt("success")
    booking_latency.observe(time.perf_counter() - started)
    return booking


async def _book_seats(
    db: AsyncSession,
    user_id: int,
    flight_id: int,
    passengers: list[PassengerCreate],
) -> Booking:
    seat_numbers = resolve_seat_numbers(passengers)
    requested = len(seat_numbers)

    for attempt in range(1, settings.BOOKING_MAX_RETRIES + 1):
        # Step 1: Read current flight state
        flight = await _get_flight_or_none(db, flight_id)
        if not flight:
            raise NotFoundError("Flight not found")

        if flight.available_seats < requested:
            logger.warning(
                "booking_failed_no_seats",
                flight_id=flight_id,
                requested=requested,
                available=flight.available_seats,
            )
            raise CapacityError(f"Only {flight.available_seats} seats available")

        if len(set(seat_numbers)) != requested:
            raise ConflictError("Duplicate seat numbers in booking")

        taken = await find_taken_seats(db, flight_id, seat_numbers)
        if taken:
            logger.info("booking_failed_seats_taken", flight_id=flight_id, seats=taken)
            raise ConflictError(
                f"One or more selected seats are already booked: {', '.join(taken)}"
            )

        # Step 2: Conditional decrement against the live counter
        if not await reserve_seat_count(db, flight_id, requested):
            db_retries.inc()
            logger.info(
                "booking_retry",
                flight_id=flight_id,
                attempt=attempt,
                reason="seats_sold_concurrently",
            )
            # Drop the stale snapshot so the next read sees the winner's write
            await db.rollback()
            continue

        # Step 3: Create booking record
        booking = Booking.create(
            user_id=user_id,
            flight_id=flight_id,
            unit_price=flight.price,
            passengers=[
                {**p.model_dump(mode="json"), "seat_number": seat}
                for p, seat in zip(passengers, seat_numbers)
            ],
        )
        db.add(booking)
        try:
            await db.flush()
        except IntegrityError as exc:
            # Also undoes the counter decrement from step 2
            await db.rollback()
            violated = str(exc.orig)
            if any(marker in violated for marker in SEAT_CLAIM_MARKERS):
                # A concurrent booking claimed one of the seats after check 4
                logger.info("booking_failed_seat_race", flight_id=flight_id, seats=seat_numbers)
                raise ConflictError("One or more selected seats are already booked")
            if "booking_reference" in violated:
                db_retries.inc()
                logger.info(
                    "booking_retry",
                    flight_id=flight_id,
                    attempt=attempt,
                    reason="reference_collision",
                )
                continue
            raise

        await db.refresh(flight)
        booking = await _load_booking(db, booking.id)

        logger.info(
            "booking_created",
            booking_id=booking.id,
            reference=booking.booking_reference,
            user_id=user_id,
            flight_id=flight_id,
            seats=seat_numbers,
            available_after=flight.available_seats,
            attempt=attempt,
        )
        return booking

    raise ConflictError("Booking failed due to high demand. Please try again.")


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
) -> tuple[Booking, bool]:
    """
    Cancel a booking and release its seats back to the flight.
    Returns the booking and whether the flight's seat counter was restored.
    """
    booking = await _load_booking(db, booking_id)

    if not booking:
        raise NotFoundError("Booking not found")

    if booking.user_id != user_id:
        logger.warning("booking_cancel_forbidden", booking_id=booking_id, user_id=user_id)
        raise ForbiddenError("Not authorized to cancel this booking")

    if booking.status == "cancelled" or not await mark_cancelled(db, booking.id):
        raise ConflictError("Booking is already cancelled")

    flight = await _get_flight_or_none(db, booking.flight_id)
    if flight is None:
        # Flight was removed out-of-band; the cancellation still stands
        logger.warning(
            "seat_restore_skipped",
            booking_id=booking.id,
            flight_id=booking.flight_id,
            reason="flight_missing",
        )
        seats_restored = False
    else:
        await release_seat_count(db, flight.id, booking.total_seats)
        await db.refresh(flight)
        seats_restored = True

    booking = await _load_booking(db, booking.id)
    record_cancellation(seats_restored)

    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        user_id=user_id,
        flight_id=booking.flight_id,
        seats_restored=booking.total_seats if seats_restored else 0,
    )
    return booking, seats_restored


async def get_booking(db: AsyncSession, booking_id: int, user_id: int) -> Booking:
    booking = await _load_booking(db, booking_id)

    if not booking:
        raise NotFoundError("Booking not found")
    if booking.user_id != user_id:
        raise ForbiddenError("Not authorized to access this booking")
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a user, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())
