# slotbook/services/customer/customer_service.py
"""Customer identity resolution"""
from typing import Optional
from uuid import UUID, uuid4
import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from slotbook.core.exceptions import ConfigurationError, ValidationError
from slotbook.models.customer import Customer
from slotbook.services.business.business_service import BusinessService

logger = logging.getLogger(__name__)


class CustomerService:
    """Handles customer lookups and creation"""

    @staticmethod
    def normalize_email(email: Optional[str]) -> str:
        """Validate and lowercase an email address"""
        if not email or not email.strip():
            raise ValidationError("Customer email is required")
        try:
            validated = validate_email(email.strip(), check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationError(f"Invalid email address: {e}", email=email)
        return validated.normalized.lower()

    @staticmethod
    def _insert_ignoring_duplicates(db: Session, values: dict):
        """INSERT ... ON CONFLICT (business_id, email) DO NOTHING for the bound dialect"""
        dialect = db.get_bind().dialect.name

        if dialect == "postgresql":
            stmt = postgresql.insert(Customer).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite.insert(Customer).values(**values)
        else:
            raise ConfigurationError(
                f"Customer upsert is not supported on the {dialect} database dialect",
                dialect=dialect,
            )

        return stmt.on_conflict_do_nothing(index_elements=["business_id", "email"])

    @staticmethod
    def find_or_create_customer(
            db: Session,
            business_id: UUID,
            email: str,
            name: Optional[str] = None,
            phone: Optional[str] = None
    ) -> Customer:
        """
        Return the customer for (business, email), creating it on first contact.

        The insert and the duplicate check happen in one statement, so two
        concurrent first bookings from the same address end up sharing a row.
        An existing customer's name and phone are left untouched.

        Args:
            db: Database session
            business_id: Owning business
            email: Customer email (validated and lowercased)
            name: Display name, defaults to the email local-part
            phone: Optional phone number

        Returns:
            The persisted Customer

        Raises:
            NotFoundError: business unknown or inactive
            ValidationError: email missing or malformed
        """
        BusinessService.get_business(db, business_id)
        normalized = CustomerService.normalize_email(email)

        values = {
            "id": uuid4(),
            "business_id": business_id,
            "email": normalized,
            "name": (name or "").strip() or normalized.split("@")[0],
            "phone": phone or None,
        }

        db.execute(CustomerService._insert_ignoring_duplicates(db, values))

        customer = db.query(Customer).filter(
            Customer.business_id == business_id,
            Customer.email == normalized
        ).one()
        db.commit()

        if customer.id == values["id"]:
            logger.info(f"Created customer {customer.id} for business {business_id}")

        return customer
