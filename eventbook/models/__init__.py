from .booking import ACTIVE_STATUSES, Booking, BookingStatus  # noqa: F401
from .event import Event  # noqa: F401
from .user import User, UserRole  # noqa: F401
