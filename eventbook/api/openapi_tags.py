"""
OpenAPI tag descriptions for the Eventbook API.
"""

tags_metadata = [
    {
        "name": "auth",
        "description": """
**Authentication**

Registration, login and password changes. Every other protected endpoint
expects the returned token as `Authorization: Bearer <token>`.
        """,
    },
    {
        "name": "events",
        "description": """
**Events**

Public catalogue of active events with filtering, sorting and pagination.
Creating, editing, deleting and reporting require the admin role.
        """,
    },
    {
        "name": "bookings",
        "description": """
**Bookings**

Seat reservations and cancellations. Seat counts are updated atomically
with the booking, so an event can never be oversold.

**Rules:**
- 1 to 10 seats per booking
- One active booking per user and event
- Cancellation only before the event starts
        """,
    },
    {"name": "Health", "description": "Liveness, health and metrics endpoints."},
]
