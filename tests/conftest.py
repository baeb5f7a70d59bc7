"""Shared test fixtures and helpers."""

import os

# Settings are read once at import time, so point them at throwaway backends first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from slotbook.models import Appointment, Base, Business, BusinessHours, Customer, Service

NEW_YORK = "America/New_York"
NY = ZoneInfo(NEW_YORK)

# 2030-03-04 is a Monday (EST, UTC-5); 2030-03-03 is the Sunday before
MONDAY = date(2030, 3, 4)
SUNDAY = date(2030, 3, 3)


def local(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware datetime in New York wall-clock time"""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=NY)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_business(db, timezone_name: str = NEW_YORK, **kwargs) -> Business:
    business = Business(name=kwargs.pop("name", "Main Street Salon"), timezone=timezone_name, **kwargs)
    db.add(business)
    db.commit()
    return business


def make_service(db, business: Business, duration: int = 30, buffer: int = 0, **kwargs) -> Service:
    service = Service(
        business_id=business.id,
        name=kwargs.pop("name", "Haircut"),
        duration_minutes=duration,
        buffer_minutes=buffer,
        **kwargs,
    )
    db.add(service)
    db.commit()
    return service


def add_hours(db, business: Business, day_of_week: int, start: str, end: str, **kwargs) -> BusinessHours:
    row = BusinessHours(
        business_id=business.id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        **kwargs,
    )
    db.add(row)
    db.commit()
    return row


def make_customer(db, business: Business, email: str = "jane@example.com") -> Customer:
    customer = Customer(business_id=business.id, email=email, name=email.split("@")[0])
    db.add(customer)
    db.commit()
    return customer


def make_appointment(
    db,
    business: Business,
    service: Service,
    customer: Customer,
    start: datetime,
    minutes: Optional[int] = None,
    status: str = "scheduled",
    **kwargs,
) -> Appointment:
    start_utc = start.astimezone(timezone.utc)
    appointment = Appointment(
        business_id=business.id,
        service_id=service.id,
        customer_id=customer.id,
        start_time=start_utc,
        end_time=start_utc + timedelta(minutes=minutes or service.duration_minutes),
        status=status,
        timezone=business.timezone,
        **kwargs,
    )
    db.add(appointment)
    db.commit()
    return appointment


@pytest.fixture
def salon(db):
    """Business open Monday 09:00-17:00 New York time with a 30 minute service"""
    business = make_business(db)
    service = make_service(db, business, duration=30)
    add_hours(db, business, MONDAY.weekday(), "09:00", "17:00")
    customer = make_customer(db, business)
    return business, service, customer


@pytest.fixture
def monday_morning():
    """'now' = Monday 08:00 local, before opening"""
    return local(MONDAY, 8)
