"""Consultation service - Booking lifecycle business logic"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...errors import (
    AuthorizationError,
    DuplicateActionError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ...models import Consultation, RescheduleRequest
from ...utils.sanitization import validate_and_sanitize_input
from . import lifecycle
from .repository import ConsultationRepository

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ConsultationService:
    """Service layer for client-lawyer consultations"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.repo = ConsultationRepository()
        self.clock = clock

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    @staticmethod
    def _format_reschedules(consultation: Consultation) -> list[dict]:
        return [
            {
                "date": _iso(r.date),
                "time": r.time,
                "message": r.message or "",
                "requestedBy": r.requested_by,
                "createdAt": _iso(r.created_at),
            }
            for r in consultation.reschedule_requests
        ]

    def _format_base(self, consultation: Consultation) -> dict:
        return {
            "id": consultation.id,
            "date": _iso(consultation.date),
            "time": consultation.time,
            "type": consultation.type,
            "notes": consultation.notes,
            "status": lifecycle.display_status(consultation.status),
            "paid": bool(consultation.paid),
            "message": consultation.message,
            "unreadByClient": bool(consultation.unread_by_client),
            "rescheduleRequests": self._format_reschedules(consultation),
            "createdAt": _iso(consultation.created_at),
        }

    def _format_for_lawyer(self, consultation: Consultation) -> dict:
        data = self._format_base(consultation)
        client = consultation.client
        if client:
            data["client"] = {
                "id": client.id,
                "name": client.name,
                "email": client.email,
                "profileImage": client.profile_image,
            }
        else:
            data["client"] = {"id": None, "name": UNKNOWN_NAME, "email": "", "profileImage": None}
        return data

    def _format_for_client(self, consultation: Consultation) -> dict:
        data = self._format_base(consultation)
        lawyer = consultation.lawyer
        user = lawyer.user if lawyer else None
        data["lawyer"] = {
            "id": lawyer.id if lawyer else None,
            "name": user.name if user else UNKNOWN_NAME,
            "profileImage": user.profile_image if user else None,
            "consultationFee": (lawyer.consultation_fee or 0) if lawyer else 0,
        }
        return data

    # ------------------------------------------------------------------
    # Lookups and guards
    # ------------------------------------------------------------------

    def _get_or_404(self, consultation_id: int) -> Consultation:
        consultation = self.repo.get_by_id(self.db, consultation_id)
        if not consultation:
            raise NotFoundError("Consultation not found")
        return consultation

    @staticmethod
    def _is_lawyer(consultation: Consultation, user_id: int) -> bool:
        return consultation.lawyer is not None and consultation.lawyer.user_id == user_id

    @staticmethod
    def _is_client(consultation: Consultation, user_id: int) -> bool:
        return consultation.client_id == user_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def schedule_consultation(
        self,
        client_id: int,
        lawyer_id: int,
        date,
        time: Optional[str],
        type: Optional[str],
        notes: Optional[str] = None,
    ) -> dict:
        """Create a pending booking request"""
        time = (time or "").strip()
        type = (type or "").strip()
        if not date or not time or not type:
            raise ValidationError("Date, time, and consultation type are required")
        if type not in lifecycle.CONSULTATION_TYPES:
            raise ValidationError(f"Invalid consultation type: {type}")
        scheduled_date = lifecycle.parse_date(date)

        lawyer = self.repo.get_lawyer(self.db, lawyer_id)
        if not lawyer:
            raise NotFoundError("Lawyer not found")

        try:
            notes = validate_and_sanitize_input(notes, max_length=2000) or None
        except ValueError as e:
            raise ValidationError("Notes must be at most 2000 characters") from e

        consultation = self.repo.create(
            self.db,
            lawyer_id=lawyer.id,
            client_id=client_id,
            date=scheduled_date,
            time=time,
            type=type,
            notes=notes,
            status=lifecycle.PENDING,
            paid=False,
            unread_by_client=False,
        )
        logger.info(
            f"📅 Consultation {consultation.id} requested by user {client_id} with lawyer {lawyer.id}"
        )
        return self._format_base(consultation)

    def update_status(self, consultation_id: int, acting_user_id: int, new_status: Optional[str]) -> dict:
        """Lawyer-only status change (accept, reject, complete, back to pending)"""
        if new_status not in lifecycle.ALLOWED_STATUS_UPDATES:
            raise ValidationError("Invalid status")

        consultation = self._get_or_404(consultation_id)
        if not self._is_lawyer(consultation, acting_user_id):
            logger.warning(
                f"🚫 User {acting_user_id} tried to set consultation {consultation_id} to {new_status}"
            )
            raise AuthorizationError("Not authorized to update this consultation")

        previous = consultation.status
        consultation.status = new_status
        if new_status == lifecycle.ACCEPTED:
            consultation.unread_by_client = True
        self.repo.save(self.db, consultation)

        logger.info(f"✅ Consultation {consultation_id} transitioned: {previous} → {new_status}")
        return {"status": consultation.status}

    def cancel(self, consultation_id: int, acting_user_id: int) -> dict:
        """
        Cancel a pending or accepted booking.

        A client cancelling an unpaid booking removes it entirely; every other
        cancellation keeps the record with status ``cancelled``.
        """
        consultation = self._get_or_404(consultation_id)
        is_lawyer = self._is_lawyer(consultation, acting_user_id)
        is_client = self._is_client(consultation, acting_user_id)

        if not is_lawyer and not is_client:
            raise AuthorizationError("Not authorized to cancel this consultation")
        if consultation.status not in lifecycle.OPEN_STATUSES:
            raise InvalidStateError("Consultation cannot be cancelled in its current status")

        if is_client and not consultation.paid:
            self.repo.delete(self.db, consultation)
            logger.info(f"🗑️ Unpaid consultation {consultation_id} cancelled and removed by client")
            return {"deleted": True, "status": None}

        consultation.status = lifecycle.CANCELLED
        if is_lawyer:
            consultation.unread_by_client = True
        self.repo.save(self.db, consultation)

        logger.info(
            f"❌ Consultation {consultation_id} cancelled by {'lawyer' if is_lawyer else 'client'}"
        )
        return {"deleted": False, "status": consultation.status}

    def reschedule(
        self,
        consultation_id: int,
        acting_user_id: int,
        new_date,
        new_time: Optional[str],
        message: Optional[str] = None,
    ) -> dict:
        """Move a paid booking once; a client proposal needs the lawyer to accept again"""
        new_time = (new_time or "").strip()
        if not new_date or not new_time:
            raise ValidationError("Date and time are required for rescheduling")
        scheduled_date = lifecycle.parse_date(new_date)

        consultation = self._get_or_404(consultation_id)
        is_lawyer = self._is_lawyer(consultation, acting_user_id)
        is_client = self._is_client(consultation, acting_user_id)

        if not is_lawyer and not is_client:
            raise AuthorizationError("Not authorized to reschedule this consultation")
        if not consultation.paid:
            raise InvalidStateError("Only paid consultations can be rescheduled")
        if consultation.status not in lifecycle.OPEN_STATUSES:
            raise InvalidStateError("Consultation cannot be rescheduled in its current status")
        if len(consultation.reschedule_requests) >= lifecycle.MAX_RESCHEDULES:
            raise InvalidStateError("Only one reschedule is allowed per consultation")

        try:
            message = validate_and_sanitize_input(message, max_length=2000)
        except ValueError as e:
            raise ValidationError("Message must be at most 2000 characters") from e

        consultation.reschedule_requests.append(
            RescheduleRequest(
                date=scheduled_date,
                time=new_time,
                message=message,
                requested_by=acting_user_id,
            )
        )
        consultation.date = scheduled_date
        consultation.time = new_time
        consultation.message = message or (
            "Reschedule requested by lawyer." if is_lawyer else "Reschedule requested by client."
        )

        if is_lawyer:
            consultation.status = lifecycle.ACCEPTED
            consultation.unread_by_client = True
        else:
            consultation.status = lifecycle.PENDING
        self.repo.save(self.db, consultation)

        logger.info(
            f"🔁 Consultation {consultation_id} rescheduled by {'lawyer' if is_lawyer else 'client'} "
            f"to {scheduled_date.date()} {new_time} ({consultation.status})"
        )
        return {
            "status": consultation.status,
            "date": _iso(consultation.date),
            "time": consultation.time,
            "requestedBy": "lawyer" if is_lawyer else "client",
        }

    def record_payment(self, consultation_id: int, acting_user_id: int) -> dict:
        """Client confirms an external payment for an open booking"""
        consultation = self._get_or_404(consultation_id)
        if not self._is_client(consultation, acting_user_id):
            raise AuthorizationError("Only the client can pay for this consultation")
        if consultation.paid:
            raise DuplicateActionError("Consultation is already paid")
        if consultation.status not in lifecycle.OPEN_STATUSES:
            raise InvalidStateError("Consultation cannot be paid in its current status")

        consultation.paid = True
        self.repo.save(self.db, consultation)
        logger.info(f"💳 Consultation {consultation_id} marked paid by client {acting_user_id}")
        return {"paid": True, "status": consultation.status}

    # ------------------------------------------------------------------
    # Sweep and listings
    # ------------------------------------------------------------------

    def complete_past_due(self) -> int:
        """
        Mark accepted consultations as completed once their date+time has passed.

        Returns:
            int: number of consultations completed
        """
        now = self.clock()
        completed = 0
        try:
            for consultation in self.repo.get_accepted(self.db):
                if lifecycle.is_past_due(consultation.date, consultation.time, now):
                    consultation.status = lifecycle.COMPLETED
                    completed += 1
                    logger.info(f"✅ Consultation {consultation.id} transitioned: accepted → completed")

            if completed:
                self.db.commit()
                logger.info(f"📊 Consultation sweep completed {completed} bookings")
            else:
                logger.debug("ℹ️ No consultations past due")
            return completed
        except Exception as e:
            logger.error(f"❌ Error completing past-due consultations: {str(e)}")
            self.db.rollback()
            raise

    def list_for_lawyer(self, lawyer_id: int, acting_user_id: int) -> list[dict]:
        self.complete_past_due()

        lawyer = self.repo.get_lawyer(self.db, lawyer_id)
        if not lawyer:
            raise NotFoundError("Lawyer profile not found")
        if lawyer.user_id != acting_user_id:
            raise AuthorizationError("Not authorized to view these consultations")

        return [self._format_for_lawyer(c) for c in self.repo.list_for_lawyer(self.db, lawyer_id)]

    def list_for_client(self, client_id: int) -> list[dict]:
        self.complete_past_due()
        return [self._format_for_client(c) for c in self.repo.list_for_client(self.db, client_id)]

    def get_unread_count_for_client(self, client_id: int) -> int:
        return self.repo.count_unread_for_client(self.db, client_id)

    def mark_all_read_for_client(self, client_id: int) -> int:
        updated = self.repo.mark_all_read_for_client(self.db, client_id)
        logger.debug(f"Marked {updated} consultations read for client {client_id}")
        return updated
