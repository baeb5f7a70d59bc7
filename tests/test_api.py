"""End-to-end tests for the public HTTP endpoints."""

import logging
import uuid
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from slotbook.api.dependencies import get_notifier
from slotbook.config.database import get_db
from slotbook.core import monitoring
from slotbook.main import create_app
from slotbook.models import Appointment, Customer
from slotbook.services.availability.availability_service import AvailabilityService
from slotbook.services.notifications.appointment_notifier import AppointmentNotifier

from conftest import MONDAY, add_hours, local, make_appointment, make_business, make_service

SLOTS_URL = "/api/v1/public/slots"
APPOINTMENTS_URL = "/api/v1/public/appointments"


class RecordingTask:
    """Stands in for a Celery task; records .delay() calls"""

    def __init__(self, name):
        self.name = name
        self.calls = []

    def delay(self, *args, **kwargs):
        self.calls.append((args, kwargs))


@pytest.fixture
def tasks():
    return SimpleNamespace(email=RecordingTask("email"), calendar=RecordingTask("calendar"))


@pytest.fixture
def client(session_factory, tasks):
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: AppointmentNotifier(
        email_task=tasks.email, calendar_task=tasks.calendar
    )

    with TestClient(app) as test_client:
        yield test_client


def booking_payload(business, service, start, **overrides):
    payload = {
        "business_id": str(business.id),
        "service_id": str(service.id),
        "customer_email": "Jane@Example.com",
        "customer_name": "Jane",
        "start_time": start.isoformat(),
    }
    payload.update(overrides)
    return payload


class TestSlotsEndpoint:

    def test_lists_slots_in_utc(self, client, salon):
        business, service, _ = salon

        response = client.get(SLOTS_URL, params={
            "business_id": str(business.id), "service_id": str(service.id), "date": MONDAY.isoformat(),
        })

        assert response.status_code == 200
        body = response.json()
        assert body["date"] == "2030-03-04"
        assert len(body["slots"]) == 32
        assert body["slots"][0]["start_time"].startswith("2030-03-04T14:00:00")
        assert body["slots"][0]["end_time"].startswith("2030-03-04T14:30:00")

    def test_closed_day_is_an_empty_list(self, client, salon):
        business, service, _ = salon

        response = client.get(SLOTS_URL, params={
            "business_id": str(business.id), "service_id": str(service.id), "date": "2030-03-03",
        })

        assert response.status_code == 200
        assert response.json()["slots"] == []

    def test_unknown_service_is_404(self, client, salon):
        business, _, _ = salon

        response = client.get(SLOTS_URL, params={
            "business_id": str(business.id), "service_id": str(uuid.uuid4()), "date": MONDAY.isoformat(),
        })

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_malformed_hours_is_422(self, client, db):
        business = make_business(db)
        service = make_service(db, business)
        add_hours(db, business, MONDAY.weekday(), "nine", "17:00")

        response = client.get(SLOTS_URL, params={
            "business_id": str(business.id), "service_id": str(service.id), "date": MONDAY.isoformat(),
        })

        assert response.status_code == 422
        assert response.json()["error"] == "ConfigurationError"

    def test_transient_storage_error_is_retried_once(self, client, salon, monkeypatch):
        business, service, _ = salon
        real = AvailabilityService.get_available_slots
        calls = []

        def flaky(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("SELECT", {}, Exception("server closed the connection"))
            return real(*args, **kwargs)

        monkeypatch.setattr(AvailabilityService, "get_available_slots", staticmethod(flaky))

        response = client.get(SLOTS_URL, params={
            "business_id": str(business.id), "service_id": str(service.id), "date": MONDAY.isoformat(),
        })

        assert response.status_code == 200
        assert len(calls) == 2


class TestCreateEndpoint:

    def test_books_and_notifies(self, client, salon, tasks, db):
        business, service, _ = salon

        response = client.post(APPOINTMENTS_URL, json=booking_payload(business, service, local(MONDAY, 10)))

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "scheduled"
        assert body["timezone"] == "America/New_York"
        assert body["start_time"].startswith("2030-03-04T15:00:00")
        assert body["end_time"].startswith("2030-03-04T15:30:00")

        assert tasks.calendar.calls == [((body["id"], "appointment.created"), {})]
        assert tasks.email.calls == [
            ((body["id"], "booked"), {"recipient": "customer"}),
            ((body["id"], "booked"), {"recipient": "business"}),
        ]
        # Existing jane@example.com customer from the fixture is reused
        assert db.query(Customer).count() == 1

    def test_taken_slot_is_409(self, client, salon, tasks, db):
        business, service, customer = salon
        make_appointment(db, business, service, customer, local(MONDAY, 10))

        response = client.post(APPOINTMENTS_URL, json=booking_payload(business, service, local(MONDAY, 10, 15)))

        assert response.status_code == 409
        assert response.json()["detail"] == "The selected time slot is no longer available"
        assert tasks.email.calls == []

    def test_second_request_for_same_slot_loses(self, client, salon):
        business, service, _ = salon
        payload = booking_payload(business, service, local(MONDAY, 10))

        first = client.post(APPOINTMENTS_URL, json=payload)
        second = client.post(APPOINTMENTS_URL, json=payload)

        assert first.status_code == 201
        assert second.status_code == 409

    def test_missing_start_time_is_400(self, client, salon):
        business, service, _ = salon
        payload = booking_payload(business, service, local(MONDAY, 10))
        del payload["start_time"]

        response = client.post(APPOINTMENTS_URL, json=payload)

        assert response.status_code == 400

    def test_start_without_offset_is_400(self, client, salon):
        business, service, _ = salon
        payload = booking_payload(business, service, local(MONDAY, 10), start_time="2030-03-04T10:00:00")

        assert client.post(APPOINTMENTS_URL, json=payload).status_code == 400

    def test_invalid_email_is_400(self, client, salon):
        business, service, _ = salon
        payload = booking_payload(business, service, local(MONDAY, 10), customer_email="nope")

        assert client.post(APPOINTMENTS_URL, json=payload).status_code == 400

    def test_unknown_business_is_404(self, client, salon):
        _, service, _ = salon
        payload = booking_payload(
            SimpleNamespace(id=uuid.uuid4()), service, local(MONDAY, 10)
        )

        assert client.post(APPOINTMENTS_URL, json=payload).status_code == 404

    def test_idempotent_replay_returns_200_without_notifying(self, client, salon, tasks, db):
        business, service, _ = salon
        payload = booking_payload(business, service, local(MONDAY, 10), idempotency_key="req-42")

        first = client.post(APPOINTMENTS_URL, json=payload)
        tasks.email.calls.clear()
        tasks.calendar.calls.clear()
        replay = client.post(APPOINTMENTS_URL, json=payload)

        assert first.status_code == 201
        assert replay.status_code == 200
        assert replay.json()["id"] == first.json()["id"]
        assert tasks.email.calls == []
        assert tasks.calendar.calls == []
        assert db.query(Appointment).count() == 1

    def test_broker_outage_does_not_fail_the_booking(self, client, salon, tasks, db):
        business, service, _ = salon

        def broken_delay(*args, **kwargs):
            raise ConnectionError("broker unreachable")

        tasks.email.delay = broken_delay
        tasks.calendar.delay = broken_delay

        response = client.post(APPOINTMENTS_URL, json=booking_payload(business, service, local(MONDAY, 10)))

        assert response.status_code == 201
        assert db.query(Appointment).count() == 1


class TestAppointmentEndpoints:

    def test_get_appointment(self, client, salon, db):
        business, service, customer = salon
        appointment = make_appointment(db, business, service, customer, local(MONDAY, 10))

        response = client.get(f"{APPOINTMENTS_URL}/{appointment.id}", params={"business_id": str(business.id)})

        assert response.status_code == 200
        assert response.json()["id"] == str(appointment.id)

    def test_get_appointment_of_other_business_is_404(self, client, salon, db):
        business, service, customer = salon
        appointment = make_appointment(db, business, service, customer, local(MONDAY, 10))
        other = make_business(db, name="Other")

        response = client.get(f"{APPOINTMENTS_URL}/{appointment.id}", params={"business_id": str(other.id)})

        assert response.status_code == 404

    def test_reschedule(self, client, salon, tasks, db):
        business, service, customer = salon
        appointment = make_appointment(db, business, service, customer, local(MONDAY, 10))

        response = client.post(f"{APPOINTMENTS_URL}/{appointment.id}/reschedule", json={
            "business_id": str(business.id),
            "new_start_time": local(MONDAY, 14).isoformat(),
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["appointment"]["start_time"].startswith("2030-03-04T19:00:00")

        assert tasks.calendar.calls == [((str(appointment.id), "appointment.rescheduled"), {})]
        assert [kwargs["recipient"] for _, kwargs in tasks.email.calls] == ["customer", "business"]
        for args, kwargs in tasks.email.calls:
            assert args == (str(appointment.id), "rescheduled")
            assert kwargs["previous_start_time"].startswith("2030-03-04T15:00:00")

    def test_reschedule_into_taken_slot_is_409(self, client, salon, db):
        business, service, customer = salon
        appointment = make_appointment(db, business, service, customer, local(MONDAY, 10))
        make_appointment(db, business, service, customer, local(MONDAY, 11))

        response = client.post(f"{APPOINTMENTS_URL}/{appointment.id}/reschedule", json={
            "business_id": str(business.id),
            "new_start_time": local(MONDAY, 11).isoformat(),
        })

        assert response.status_code == 409

    def test_cancel(self, client, salon, tasks, db):
        business, service, customer = salon
        appointment = make_appointment(db, business, service, customer, local(MONDAY, 10))

        response = client.post(f"{APPOINTMENTS_URL}/{appointment.id}/cancel", json={
            "business_id": str(business.id),
            "cancelled_by": "customer",
            "reason": "Running late",
        })

        assert response.status_code == 200
        assert response.json()["appointment"]["status"] == "cancelled"
        # Customer cancelled, so only the business is told
        assert tasks.email.calls == [
            ((str(appointment.id), "cancelled"), {"recipient": "business", "reason": "Running late"})
        ]

        slots = client.get(SLOTS_URL, params={
            "business_id": str(business.id), "service_id": str(service.id), "date": MONDAY.isoformat(),
        }).json()["slots"]
        assert len(slots) == 32

    def test_business_cancel_emails_the_customer(self, client, salon, tasks, db):
        business, service, customer = salon
        appointment = make_appointment(db, business, service, customer, local(MONDAY, 10))

        response = client.post(f"{APPOINTMENTS_URL}/{appointment.id}/cancel", json={
            "business_id": str(business.id),
            "cancelled_by": "business",
        })

        assert response.status_code == 200
        assert tasks.email.calls == [((str(appointment.id), "cancelled"), {"recipient": "customer", "reason": None})]

    def test_cancel_twice_is_400(self, client, salon, db):
        business, service, customer = salon
        appointment = make_appointment(db, business, service, customer, local(MONDAY, 10), status="cancelled")

        response = client.post(f"{APPOINTMENTS_URL}/{appointment.id}/cancel", json={
            "business_id": str(business.id),
            "cancelled_by": "business",
        })

        assert response.status_code == 400


class TestHealth:

    def test_basic_health(self, client):
        response = client.get("/health/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health_reports_failed_calendar_pushes(self, client, salon, db, monkeypatch):
        business, service, customer = salon
        make_appointment(db, business, service, customer, local(MONDAY, 10), sync_status="failed")

        class FakeRedis:
            async def ping(self):
                return True

            async def aclose(self):
                pass

        async def fake_get_redis():
            return FakeRedis()

        monkeypatch.setattr(monitoring, "get_redis", fake_get_redis)

        body = client.get("/health/detailed").json()

        assert body["database"] == "healthy"
        assert body["redis"] == "healthy"
        assert body["calendar_sync"] == "degraded: 1 failed pushes"
        assert body["overall"] == "degraded"

    def test_requests_are_logged_with_correlation_and_business_ids(self, client, salon, caplog):
        business, service, _ = salon
        caplog.set_level(logging.INFO, logger="slotbook.core.middleware")

        response = client.get(
            SLOTS_URL,
            params={"business_id": str(business.id), "service_id": str(service.id), "date": MONDAY.isoformat()},
            headers={"X-Correlation-ID": "req-abc"},
        )

        assert response.headers["X-Correlation-ID"] == "req-abc"
        record, = [r for r in caplog.records if r.name == "slotbook.core.middleware"]
        assert record.correlation_id == "req-abc"
        assert record.business_id == str(business.id)
