"""Tests for customer find-or-create."""

import uuid
from types import SimpleNamespace

import pytest

from slotbook.core.exceptions import ConfigurationError, NotFoundError, ValidationError
from slotbook.models import Customer
from slotbook.services.customer.customer_service import CustomerService

from conftest import make_business


class TestNormalizeEmail:

    def test_lowercases_and_strips(self):
        assert CustomerService.normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"

    @pytest.mark.parametrize("value", [None, "", "   ", "not-an-email", "jane@"])
    def test_rejects_missing_or_malformed(self, value):
        with pytest.raises(ValidationError):
            CustomerService.normalize_email(value)


class TestFindOrCreateCustomer:

    def test_creates_on_first_contact(self, db):
        business = make_business(db)

        customer = CustomerService.find_or_create_customer(
            db, business.id, "Jane@Example.com", name="Jane Doe", phone="+15550100"
        )

        assert customer.email == "jane@example.com"
        assert customer.name == "Jane Doe"
        assert customer.phone == "+15550100"
        assert db.query(Customer).count() == 1

    def test_name_defaults_to_local_part(self, db):
        business = make_business(db)
        customer = CustomerService.find_or_create_customer(db, business.id, "walk.in@example.com")
        assert customer.name == "walk.in"

    def test_returns_existing_customer_unchanged(self, db):
        business = make_business(db)
        first = CustomerService.find_or_create_customer(db, business.id, "jane@example.com", name="Jane")

        again = CustomerService.find_or_create_customer(
            db, business.id, "JANE@example.com", name="Someone Else", phone="+15550199"
        )

        assert again.id == first.id
        assert again.name == "Jane"
        assert again.phone is None
        assert db.query(Customer).count() == 1

    def test_same_email_is_separate_per_business(self, db):
        salon = make_business(db, name="Salon")
        spa = make_business(db, name="Spa")

        at_salon = CustomerService.find_or_create_customer(db, salon.id, "jane@example.com")
        at_spa = CustomerService.find_or_create_customer(db, spa.id, "jane@example.com")

        assert at_salon.id != at_spa.id
        assert db.query(Customer).count() == 2

    def test_unknown_business(self, db):
        with pytest.raises(NotFoundError):
            CustomerService.find_or_create_customer(db, uuid.uuid4(), "jane@example.com")
        assert db.query(Customer).count() == 0

    def test_invalid_email_creates_nothing(self, db):
        business = make_business(db)

        with pytest.raises(ValidationError):
            CustomerService.find_or_create_customer(db, business.id, "jane at example")

        assert db.query(Customer).count() == 0

    def test_unsupported_dialect_is_a_configuration_error(self):
        mysql_session = SimpleNamespace(get_bind=lambda: SimpleNamespace(dialect=SimpleNamespace(name="mysql")))

        with pytest.raises(ConfigurationError) as exc_info:
            CustomerService._insert_ignoring_duplicates(mysql_session, {"email": "jane@example.com"})

        assert "mysql" in exc_info.value.message
        assert exc_info.value.details == {"dialect": "mysql"}
