"""Consultation router - FastAPI endpoints for booking lawyers"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import ConsultationCreate, ConsultationReschedule, ConsultationStatusUpdate
from .service import ConsultationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Consultations"])

limit_scheduling = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="consultation_create")


def get_consultation_service(db: Session = Depends(get_db)) -> ConsultationService:
    """Dependency injection for ConsultationService"""
    return ConsultationService(db)


# ============================================================================
# LAWYER-SCOPED
# ============================================================================


@router.post("/lawyers/{lawyer_id}/consultations", status_code=status.HTTP_201_CREATED)
async def schedule_consultation(
    lawyer_id: int,
    data: ConsultationCreate,
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
    _: None = Depends(limit_scheduling),
):
    consultation = service.schedule_consultation(
        current_user.id, lawyer_id, data.date, data.time, data.type, data.notes
    )
    return {
        "success": True,
        "data": consultation,
        "message": "Consultation request submitted successfully",
    }


@router.get("/lawyers/{lawyer_id}/consultations")
async def get_lawyer_consultations(
    lawyer_id: int,
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    """Bookings of the lawyer profile owned by the current user"""
    consultations = service.list_for_lawyer(lawyer_id, current_user.id)
    return {"success": True, "count": len(consultations), "data": consultations}


# ============================================================================
# CLIENT-SCOPED
# ============================================================================


@router.get("/users/consultations")
async def get_client_consultations(
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    consultations = service.list_for_client(current_user.id)
    return {"success": True, "count": len(consultations), "data": consultations}


@router.get("/users/consultations/unread-count")
async def get_client_unread_count(
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    return {"success": True, "data": {"count": service.get_unread_count_for_client(current_user.id)}}


@router.post("/users/consultations/mark-read")
async def mark_client_consultations_read(
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    service.mark_all_read_for_client(current_user.id)
    return {"success": True, "message": "Consultations marked as read"}


# ============================================================================
# BOOKING ACTIONS
# ============================================================================


@router.put("/consultations/{consultation_id}")
async def update_consultation_status(
    consultation_id: int,
    data: ConsultationStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    """Lawyer accepts, rejects or completes a booking"""
    result = service.update_status(consultation_id, current_user.id, data.status)
    return {"success": True, "data": result, "message": "Consultation status updated successfully"}


@router.put("/consultations/{consultation_id}/cancel")
async def cancel_consultation(
    consultation_id: int,
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    result = service.cancel(consultation_id, current_user.id)
    if result["deleted"]:
        return {"success": True, "message": "Consultation cancelled and removed."}
    return {
        "success": True,
        "data": {"status": result["status"]},
        "message": "Consultation cancelled successfully",
    }


@router.put("/consultations/{consultation_id}/reschedule")
async def reschedule_consultation(
    consultation_id: int,
    data: ConsultationReschedule,
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    result = service.reschedule(consultation_id, current_user.id, data.date, data.time, data.message)
    if result.pop("requestedBy") == "lawyer":
        message = "Reschedule sent. User will see the new date/time."
    else:
        message = "Reschedule requested. Lawyer will need to accept the new time."
    return {"success": True, "data": result, "message": message}


@router.put("/consultations/{consultation_id}/pay")
async def pay_consultation(
    consultation_id: int,
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    """Record a completed external payment"""
    result = service.record_payment(consultation_id, current_user.id)
    return {"success": True, "data": result, "message": "Payment recorded"}
