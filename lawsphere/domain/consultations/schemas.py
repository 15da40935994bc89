"""Consultation domain schemas - Pydantic models for request validation"""

from typing import Optional

from pydantic import BaseModel


class ConsultationCreate(BaseModel):
    """Booking request; required fields are checked by the service"""

    date: Optional[str] = None
    time: Optional[str] = None
    type: Optional[str] = None
    notes: Optional[str] = None


class ConsultationStatusUpdate(BaseModel):
    status: Optional[str] = None


class ConsultationReschedule(BaseModel):
    date: Optional[str] = None
    time: Optional[str] = None
    message: Optional[str] = None
