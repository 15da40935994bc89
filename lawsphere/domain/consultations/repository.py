"""Consultation repository - Database operations for bookings"""

from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload, selectinload

from ...models import Consultation, Lawyer


class ConsultationRepository:
    """Repository for consultation database operations"""

    @staticmethod
    def get_lawyer(db: Session, lawyer_id: int) -> Optional[Lawyer]:
        return db.query(Lawyer).filter(Lawyer.id == lawyer_id).first()

    @staticmethod
    def get_by_id(db: Session, consultation_id: int) -> Optional[Consultation]:
        """Get a consultation with its lawyer, locked for the current transaction"""
        return (
            db.query(Consultation)
            .options(joinedload(Consultation.lawyer))
            .filter(Consultation.id == consultation_id)
            .with_for_update(of=Consultation)
            .first()
        )

    @staticmethod
    def create(db: Session, **data) -> Consultation:
        consultation = Consultation(**data)
        db.add(consultation)
        db.commit()
        db.refresh(consultation)
        return consultation

    @staticmethod
    def delete(db: Session, consultation: Consultation) -> None:
        db.delete(consultation)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def save(db: Session, consultation: Consultation) -> Consultation:
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(consultation)
        return consultation

    @staticmethod
    def get_accepted(db: Session) -> list[Consultation]:
        return db.query(Consultation).filter(Consultation.status == "accepted").all()

    @staticmethod
    def list_for_lawyer(db: Session, lawyer_id: int) -> list[Consultation]:
        """Bookings of a lawyer with client info, newest first"""
        return (
            db.query(Consultation)
            .options(joinedload(Consultation.client), selectinload(Consultation.reschedule_requests))
            .filter(Consultation.lawyer_id == lawyer_id)
            .order_by(Consultation.created_at.desc(), Consultation.id.desc())
            .all()
        )

    @staticmethod
    def list_for_client(db: Session, client_id: int) -> list[Consultation]:
        """Bookings of a client with lawyer info, newest first"""
        return (
            db.query(Consultation)
            .options(
                joinedload(Consultation.lawyer).joinedload(Lawyer.user),
                selectinload(Consultation.reschedule_requests),
            )
            .filter(Consultation.client_id == client_id)
            .order_by(Consultation.created_at.desc(), Consultation.id.desc())
            .all()
        )

    @staticmethod
    def count_unread_for_client(db: Session, client_id: int) -> int:
        return (
            db.query(Consultation)
            .filter(Consultation.client_id == client_id, Consultation.unread_by_client.is_(True))
            .count()
        )

    @staticmethod
    def mark_all_read_for_client(db: Session, client_id: int) -> int:
        result = db.execute(
            update(Consultation)
            .where(Consultation.client_id == client_id, Consultation.unread_by_client.is_(True))
            .values(unread_by_client=False)
        )
        db.commit()
        return result.rowcount
