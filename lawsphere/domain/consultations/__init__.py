"""
Consultations Domain

Client-lawyer bookings: request, accept/reject, cancel, a single paid
reschedule, and automatic completion once the booked time has passed.
"""

from .router import router

__all__ = ["router"]
