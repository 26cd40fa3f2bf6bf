"""
Booking endpoints with concurrency-safe seat reservation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.booking import BookingCreate, BookingResponse, BookingCancelResponse
from app.services.booking_service import book_seats, cancel_booking, get_booking, get_user_bookings
from app.services.cache_service import invalidate_search_cache
from app.core.security import get_current_user_id

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Book one seat per passenger on a flight.

    Fails with 404 if the flight does not exist, and with 409 if there are not
    enough seats left, the request repeats a seat, or a seat is already held
    by another active booking.
    """
    booking = await book_seats(db, user_id, booking_data.flight_id, booking_data.passengers)
    # Search results show available seats; drop them only once the new count is visible
    await db.commit()
    await invalidate_search_cache()
    return booking


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user, newest first."""
    return await get_user_bookings(db, user_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await get_booking(db, booking_id, user_id)


@router.put("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its seats back to the flight."""
    booking, seats_restored = await cancel_booking(db, booking_id, user_id)
    await db.commit()
    await invalidate_search_cache()
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking=BookingResponse.model_validate(booking),
        seats_restored=seats_restored,
    )
