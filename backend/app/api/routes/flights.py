"""
Flight catalog endpoints. Search results are cached in Redis.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.flight import BookedSeatsResponse, FlightListResponse, FlightResponse, FlightSort
from app.services.flight_service import get_booked_seats, get_flight, list_flights, search_flights
from app.services.cache_service import get_cached_search, set_cached_search
from app.core.security import get_current_user_id
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(
    prefix="/flights",
    tags=["Flights"],
    dependencies=[Depends(get_current_user_id)],
)


@router.get("/", response_model=FlightListResponse)
async def list_flights_endpoint(db: AsyncSession = Depends(get_db)):
    """All flights, earliest departure first."""
    flights = await list_flights(db)
    return FlightListResponse(
        flights=[FlightResponse.model_validate(f) for f in flights],
        count=len(flights),
    )


@router.get("/search", response_model=FlightListResponse)
async def search_flights_endpoint(
    origin: Optional[str] = Query(None, min_length=3, max_length=3),
    destination: Optional[str] = Query(None, min_length=3, max_length=3),
    travel_date: Optional[date] = Query(None, alias="date"),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    airline: Optional[str] = Query(None, min_length=1, max_length=120),
    sort_by: FlightSort = Query(FlightSort.PRICE_ASC),
    db: AsyncSession = Depends(get_db),
):
    """
    Search flights with seats left.
    All criteria are optional; `date` must be an ISO date (YYYY-MM-DD).
    """
    params = {
        "origin": origin.upper() if origin else None,
        "destination": destination.upper() if destination else None,
        "date": travel_date.isoformat() if travel_date else None,
        "min_price": min_price,
        "max_price": max_price,
        "airline": airline.lower() if airline else None,
        "sort_by": sort_by.value,
    }

    cached = await get_cached_search(params)
    if cached:
        logger.info("flight_search_cache_hit")
        cached["cached"] = True
        return FlightListResponse(**cached)

    flights = await search_flights(
        db,
        origin=origin,
        destination=destination,
        travel_date=travel_date,
        min_price=min_price,
        max_price=max_price,
        airline=airline,
        sort_by=sort_by,
    )

    response_data = {
        "flights": [FlightResponse.model_validate(f).model_dump(mode="json") for f in flights],
        "count": len(flights),
        "cached": False,
    }
    await set_cached_search(params, response_data)

    return FlightListResponse(**response_data)


@router.get("/{flight_id}", response_model=FlightResponse)
async def get_flight_endpoint(flight_id: int, db: AsyncSession = Depends(get_db)):
    """Single flight. Not cached (needs real-time seat counts)."""
    return await get_flight(db, flight_id)


@router.get("/{flight_id}/booked-seats", response_model=BookedSeatsResponse)
async def booked_seats_endpoint(flight_id: int, db: AsyncSession = Depends(get_db)):
    """Seat numbers already held by confirmed bookings on the flight."""
    seats = await get_booked_seats(db, flight_id)
    return BookedSeatsResponse(flight_id=flight_id, seats=seats, count=len(seats))
