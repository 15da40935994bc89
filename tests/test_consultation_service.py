from datetime import datetime

import pytest

from lawsphere.domain.consultations import lifecycle
from lawsphere.domain.consultations.service import ConsultationService
from lawsphere.errors import (
    AuthorizationError,
    DuplicateActionError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from lawsphere.models import Consultation

NOW = datetime(2026, 10, 19, 12, 0)


@pytest.fixture
def service(db):
    return ConsultationService(db, clock=lambda: NOW)


@pytest.fixture
def lawyer(make_lawyer):
    return make_lawyer(name="Jane Counsel", fee=120.0)


@pytest.fixture
def client_user(make_user):
    return make_user(name="Carl Client")


@pytest.fixture
def booking(service, lawyer, client_user):
    return service.schedule_consultation(
        client_user.id, lawyer.id, "2026-11-02T00:00:00.000Z", "14:30", "video", "Lease dispute"
    )


def set_fields(db, consultation_id, **fields):
    consultation = db.get(Consultation, consultation_id)
    for key, value in fields.items():
        setattr(consultation, key, value)
    db.commit()
    return consultation


def reload(db, consultation_id):
    db.expire_all()
    return db.get(Consultation, consultation_id)


# ============================================================================
# Lifecycle helpers
# ============================================================================


@pytest.mark.parametrize(
    "value,expected",
    [
        ("14:30", (14, 30)),
        ("9", (9, 0)),
        ("", (0, 0)),
        (None, (0, 0)),
        ("ab:cd", (0, 0)),
        ("10:5pm", (10, 5)),
        (" 08 : 15 ", (8, 15)),
    ],
)
def test_parse_time(value, expected):
    assert lifecycle.parse_time(value) == expected


def test_scheduled_start_rolls_overflow_forward():
    assert lifecycle.scheduled_start(datetime(2026, 1, 31), "25:90") == datetime(2026, 2, 1, 2, 30)
    assert lifecycle.scheduled_start(datetime(2026, 1, 31, 18, 45), "08:00") == datetime(2026, 1, 31, 8, 0)


def test_parse_date_accepts_zulu_and_drops_timezone():
    assert lifecycle.parse_date("2026-11-02T10:00:00Z") == datetime(2026, 11, 2, 10, 0)
    assert lifecycle.parse_date("2026-11-02") == datetime(2026, 11, 2)
    with pytest.raises(ValidationError):
        lifecycle.parse_date("next tuesday")


def test_legacy_rescheduled_displays_as_accepted():
    assert lifecycle.display_status("rescheduled") == "accepted"
    assert lifecycle.display_status("pending") == "pending"


# ============================================================================
# Scheduling and status updates
# ============================================================================


def test_schedule_creates_pending_booking(booking):
    assert booking["status"] == "pending"
    assert booking["paid"] is False
    assert booking["date"] == "2026-11-02T00:00:00"
    assert booking["time"] == "14:30"
    assert booking["rescheduleRequests"] == []


@pytest.mark.parametrize(
    "date,time,type",
    [(None, "10:00", "video"), ("2026-11-02", "", "video"), ("2026-11-02", "10:00", None)],
)
def test_schedule_requires_date_time_type(service, lawyer, client_user, date, time, type):
    with pytest.raises(ValidationError):
        service.schedule_consultation(client_user.id, lawyer.id, date, time, type)


def test_schedule_rejects_unknown_type(service, lawyer, client_user):
    with pytest.raises(ValidationError):
        service.schedule_consultation(client_user.id, lawyer.id, "2026-11-02", "10:00", "carrier-pigeon")


def test_schedule_unknown_lawyer(service, client_user):
    with pytest.raises(NotFoundError):
        service.schedule_consultation(client_user.id, 99999, "2026-11-02", "10:00", "phone")


def test_only_lawyer_updates_status(db, service, lawyer, client_user, booking):
    with pytest.raises(AuthorizationError):
        service.update_status(booking["id"], client_user.id, "accepted")

    assert service.update_status(booking["id"], lawyer.user_id, "accepted") == {"status": "accepted"}
    assert reload(db, booking["id"]).unread_by_client is True


def test_update_status_rejects_unknown_status(service, lawyer, booking):
    with pytest.raises(ValidationError):
        service.update_status(booking["id"], lawyer.user_id, "cancelled")
    with pytest.raises(ValidationError):
        service.update_status(booking["id"], lawyer.user_id, "rescheduled")


def test_update_status_unknown_consultation(service, lawyer):
    with pytest.raises(NotFoundError):
        service.update_status(99999, lawyer.user_id, "accepted")


def test_reject_does_not_mark_unread(db, service, lawyer, booking):
    service.update_status(booking["id"], lawyer.user_id, "rejected")
    consultation = reload(db, booking["id"])
    assert consultation.status == "rejected"
    assert consultation.unread_by_client is False


# ============================================================================
# Cancellation
# ============================================================================


def test_client_cancelling_unpaid_booking_deletes_it(db, service, client_user, booking):
    result = service.cancel(booking["id"], client_user.id)
    assert result["deleted"] is True
    assert reload(db, booking["id"]) is None


def test_paid_accepted_booking_is_kept_when_client_cancels(db, service, lawyer, client_user, booking):
    set_fields(db, booking["id"], paid=True)
    service.update_status(booking["id"], lawyer.user_id, "accepted")
    consultation = reload(db, booking["id"])
    assert consultation.status == "accepted"
    assert consultation.unread_by_client is True

    result = service.cancel(booking["id"], client_user.id)
    assert result == {"deleted": False, "status": "cancelled"}
    assert reload(db, booking["id"]).status == "cancelled"


def test_lawyer_cancel_keeps_record_and_marks_unread(db, service, lawyer, booking):
    service.cancel(booking["id"], lawyer.user_id)
    consultation = reload(db, booking["id"])
    assert consultation.status == "cancelled"
    assert consultation.unread_by_client is True


def test_cancel_guards(db, service, lawyer, client_user, make_user, booking):
    with pytest.raises(AuthorizationError):
        service.cancel(booking["id"], make_user().id)

    service.update_status(booking["id"], lawyer.user_id, "rejected")
    with pytest.raises(InvalidStateError):
        service.cancel(booking["id"], client_user.id)

    with pytest.raises(NotFoundError):
        service.cancel(99999, client_user.id)


# ============================================================================
# Rescheduling
# ============================================================================


def test_single_reschedule(db, service, lawyer, client_user, booking):
    set_fields(db, booking["id"], paid=True, status="accepted")

    result = service.reschedule(booking["id"], client_user.id, "2026-11-05", "09:00", "Running late")
    assert result["status"] == "pending"
    assert result["requestedBy"] == "client"

    consultation = reload(db, booking["id"])
    assert consultation.status == "pending"
    assert len(consultation.reschedule_requests) == 1
    assert consultation.reschedule_requests[0].requested_by == client_user.id
    assert consultation.date == datetime(2026, 11, 5)
    assert consultation.time == "09:00"
    assert consultation.message == "Running late"

    with pytest.raises(InvalidStateError):
        service.reschedule(booking["id"], lawyer.user_id, "2026-11-06", "10:00")
    with pytest.raises(InvalidStateError):
        service.reschedule(booking["id"], client_user.id, "2026-11-06", "10:00")
    assert len(reload(db, booking["id"]).reschedule_requests) == 1


def test_lawyer_reschedule_keeps_booking_accepted(db, service, lawyer, booking):
    set_fields(db, booking["id"], paid=True, status="pending")

    result = service.reschedule(booking["id"], lawyer.user_id, "2026-11-07", "16:00")
    assert result["status"] == "accepted"

    consultation = reload(db, booking["id"])
    assert consultation.unread_by_client is True
    assert consultation.message == "Reschedule requested by lawyer."
    assert consultation.reschedule_requests[0].message == ""


def test_reschedule_guards(db, service, lawyer, client_user, make_user, booking):
    with pytest.raises(ValidationError):
        service.reschedule(booking["id"], client_user.id, "", "10:00")
    with pytest.raises(InvalidStateError):
        service.reschedule(booking["id"], client_user.id, "2026-11-05", "10:00")

    set_fields(db, booking["id"], paid=True)
    with pytest.raises(AuthorizationError):
        service.reschedule(booking["id"], make_user().id, "2026-11-05", "10:00")

    set_fields(db, booking["id"], status="completed")
    with pytest.raises(InvalidStateError):
        service.reschedule(booking["id"], lawyer.user_id, "2026-11-05", "10:00")


# ============================================================================
# Payment
# ============================================================================


def test_record_payment(db, service, lawyer, client_user, booking):
    with pytest.raises(AuthorizationError):
        service.record_payment(booking["id"], lawyer.user_id)

    assert service.record_payment(booking["id"], client_user.id) == {"paid": True, "status": "pending"}
    assert reload(db, booking["id"]).paid is True

    with pytest.raises(DuplicateActionError):
        service.record_payment(booking["id"], client_user.id)


def test_record_payment_on_terminal_booking(service, lawyer, client_user, booking):
    service.update_status(booking["id"], lawyer.user_id, "rejected")
    with pytest.raises(InvalidStateError):
        service.record_payment(booking["id"], client_user.id)


# ============================================================================
# Sweep and listings
# ============================================================================


def test_sweep_completes_only_past_due_accepted(db, service, lawyer, client_user):
    past = service.schedule_consultation(client_user.id, lawyer.id, "2026-10-19", "11:59", "phone")
    exact = service.schedule_consultation(client_user.id, lawyer.id, "2026-10-19", "12:00", "phone")
    future = service.schedule_consultation(client_user.id, lawyer.id, "2026-10-19", "12:01", "phone")
    pending_past = service.schedule_consultation(client_user.id, lawyer.id, "2026-10-01", "10:00", "phone")
    for booking in (past, exact, future):
        set_fields(db, booking["id"], status="accepted")

    assert service.complete_past_due() == 2

    assert reload(db, past["id"]).status == "completed"
    assert reload(db, exact["id"]).status == "completed"
    assert reload(db, future["id"]).status == "accepted"
    assert reload(db, pending_past["id"]).status == "pending"


def test_client_list_runs_sweep(db, service, lawyer, client_user):
    booking = service.schedule_consultation(client_user.id, lawyer.id, "2026-10-18", "09:00", "video")
    set_fields(db, booking["id"], status="accepted", paid=True)

    listed = service.list_for_client(client_user.id)
    assert [c["status"] for c in listed] == ["completed"]
    assert listed[0]["lawyer"] == {
        "id": lawyer.id,
        "name": "Jane Counsel",
        "profileImage": None,
        "consultationFee": 120.0,
    }


def test_lawyer_list_runs_sweep_and_shows_client(db, service, lawyer, client_user):
    booking = service.schedule_consultation(client_user.id, lawyer.id, "2026-10-18", "bad", "video")
    set_fields(db, booking["id"], status="accepted")

    listed = service.list_for_lawyer(lawyer.id, lawyer.user_id)
    assert listed[0]["status"] == "completed"
    assert listed[0]["client"]["name"] == "Carl Client"
    assert listed[0]["client"]["email"] == client_user.email


def test_lists_are_newest_first_and_map_legacy_status(db, service, lawyer, client_user):
    older = service.schedule_consultation(client_user.id, lawyer.id, "2026-12-01", "10:00", "video")
    newer = service.schedule_consultation(client_user.id, lawyer.id, "2026-12-02", "10:00", "video")
    set_fields(db, older["id"], status="rescheduled")

    listed = service.list_for_client(client_user.id)
    assert [c["id"] for c in listed] == [newer["id"], older["id"]]
    assert listed[1]["status"] == "accepted"


def test_list_for_lawyer_guards(service, lawyer, client_user):
    with pytest.raises(NotFoundError):
        service.list_for_lawyer(99999, lawyer.user_id)
    with pytest.raises(AuthorizationError):
        service.list_for_lawyer(lawyer.id, client_user.id)


def test_missing_client_shows_unknown(db, service, lawyer):
    booking = service.schedule_consultation(555555, lawyer.id, "2026-12-01", "10:00", "video")
    listed = service.list_for_lawyer(lawyer.id, lawyer.user_id)
    assert listed[0]["id"] == booking["id"]
    assert listed[0]["client"] == {"id": None, "name": "Unknown", "email": "", "profileImage": None}


def test_unread_count_and_mark_read(service, lawyer, client_user):
    first = service.schedule_consultation(client_user.id, lawyer.id, "2026-12-01", "10:00", "video")
    second = service.schedule_consultation(client_user.id, lawyer.id, "2026-12-02", "10:00", "video")
    assert service.get_unread_count_for_client(client_user.id) == 0

    service.update_status(first["id"], lawyer.user_id, "accepted")
    service.cancel(second["id"], lawyer.user_id)
    assert service.get_unread_count_for_client(client_user.id) == 2

    assert service.mark_all_read_for_client(client_user.id) == 2
    assert service.get_unread_count_for_client(client_user.id) == 0
