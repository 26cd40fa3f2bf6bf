"""
Flight catalog queries: lookup, search, booked seats, and import.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.models.booking import Booking, Passenger
from app.models.flight import Flight, weekday_mask
from app.schemas.flight import FlightCreate, FlightSort

logger = get_logger(__name__)

SORT_ORDERS = {
    FlightSort.PRICE_ASC: (Flight.price.asc(),),
    FlightSort.PRICE_DESC: (Flight.price.desc(),),
    FlightSort.DEPARTURE_ASC: (Flight.departure.asc(),),
    FlightSort.DEPARTURE_DESC: (Flight.departure.desc(),),
    FlightSort.DURATION: (Flight.duration_minutes.asc(),),
}


def weekday_index(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return day.isoweekday() % 7


def day_window(day: date) -> tuple[datetime, datetime]:
    """Half-open [start, end) covering the whole UTC calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


async def get_flight(db: AsyncSession, flight_id: int) -> Flight:
    result = await db.execute(select(Flight).where(Flight.id == flight_id))
    flight = result.scalar_one_or_none()

    if not flight:
        raise NotFoundError("Flight not found")
    return flight


async def list_flights(db: AsyncSession) -> list[Flight]:
    result = await db.execute(select(Flight).order_by(Flight.departure.asc(), Flight.id.asc()))
    return list(result.scalars().all())


async def search_flights(
    db: AsyncSession,
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    travel_date: Optional[date] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    airline: Optional[str] = None,
    sort_by: FlightSort = FlightSort.PRICE_ASC,
) -> list[Flight]:
    """
    Search bookable flights. Every criterion is optional; sold-out flights
    are never returned. Uses ix_flights_route_departure for route + date.
    """
    query = select(Flight).where(Flight.available_seats > 0)

    if origin:
        query = query.where(Flight.origin == origin.strip().upper())
    if destination:
        query = query.where(Flight.destination == destination.strip().upper())

    if travel_date is not None:
        start, end = day_window(travel_date)
        day_bit = weekday_mask([weekday_index(travel_date)])
        query = query.where(
            Flight.operational_days_mask.op("&")(day_bit) != 0,
            Flight.departure >= start,
            Flight.departure < end,
        )

    if min_price is not None:
        query = query.where(Flight.price >= min_price)
    if max_price is not None:
        query = query.where(Flight.price <= max_price)

    if airline:
        query = query.where(Flight.airline.icontains(airline.strip(), autoescape=True))

    query = query.order_by(*SORT_ORDERS[sort_by], Flight.id.asc())
    result = await db.execute(query)
    flights = list(result.scalars().all())

    logger.debug(
        "flights_searched",
        origin=origin,
        destination=destination,
        travel_date=str(travel_date) if travel_date else None,
        sort_by=sort_by.value,
        results=len(flights),
    )
    return flights


async def get_booked_seats(db: AsyncSession, flight_id: int) -> list[str]:
    """
    Seat numbers held by confirmed bookings on a flight, de-duplicated and
    sorted. Seats of cancelled bookings are free again and not listed.
    """
    await get_flight(db, flight_id)

    result = await db.execute(
        select(Passenger.seat_number)
        .join(Booking, Passenger.booking_id == Booking.id)
        .where(
            Booking.flight_id == flight_id,
            Booking.status == "confirmed",
        )
        .distinct()
    )
    return sorted(result.scalars().all())


async def create_flights(db: AsyncSession, records: Iterable[FlightCreate]) -> list[Flight]:
    """Import flight records. New flights start fully available unless told otherwise."""
    flights = []
    for record in records:
        flight = Flight(
            airline=record.airline,
            airline_code=record.airline_code,
            flight_number=record.flight_number,
            origin=record.origin,
            destination=record.destination,
            price=record.price,
            seat_capacity=record.seat_capacity,
            available_seats=(
                record.available_seats if record.available_seats is not None else record.seat_capacity
            ),
            departure=record.departure,
            arrival=record.arrival,
            duration_minutes=record.duration_minutes,
            operational_days=record.operational_days,
        )
        db.add(flight)
        flights.append(flight)

    await db.flush()
    for flight in flights:
        await db.refresh(flight)

    logger.info("flights_imported", count=len(flights))
    return flights
