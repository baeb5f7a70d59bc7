# slotbook/models/customer.py
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.sql import func
import uuid
from slotbook.models.base import Base


class Customer(Base):
    """One row per (business, email); created on first booking"""
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("business_id", "email", name="uq_customers_business_email"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)

    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Customer(id={self.id}, email={self.email})>"
