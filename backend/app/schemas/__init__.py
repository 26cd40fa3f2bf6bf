from app.schemas.user import UserCreate, UserResponse, UserLogin, UserSummary, Token
from app.schemas.flight import (
    FlightCreate, FlightResponse, FlightListResponse, FlightSort, BookedSeatsResponse,
)
from app.schemas.booking import (
    Gender, PassengerCreate, BookingCreate, BookingResponse, BookingCancelResponse,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "UserSummary", "Token",
    "FlightCreate", "FlightResponse", "FlightListResponse", "FlightSort", "BookedSeatsResponse",
    "Gender", "PassengerCreate", "BookingCreate", "BookingResponse", "BookingCancelResponse",
]
