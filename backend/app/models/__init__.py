from app.models.user import User
from app.models.flight import Flight
from app.models.booking import Booking, Passenger

__all__ = ["User", "Flight", "Booking", "Passenger"]
