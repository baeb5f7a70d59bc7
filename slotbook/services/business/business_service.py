# slotbook/services/business/business_service.py
"""Service for resolving businesses, their services and operating hours"""
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session
import logging

from slotbook.core.exceptions import ConfigurationError, NotFoundError
from slotbook.models.business import Business, BusinessHours
from slotbook.models.service import Service

logger = logging.getLogger(__name__)


class BusinessService:
    """Handles business-related lookups for the scheduling core"""

    @staticmethod
    def get_business(db: Session, business_id: UUID, for_update: bool = False) -> Business:
        """Get an active business or raise NotFoundError"""
        query = db.query(Business).filter(
            Business.id == business_id,
            Business.is_active == True
        )
        if for_update:
            # Serialises concurrent writers for this business on Postgres
            query = query.with_for_update()

        business = query.first()
        if not business:
            raise NotFoundError(f"Business {business_id} not found", business_id=business_id)
        return business

    @staticmethod
    def get_service(db: Session, business_id: UUID, service_id: UUID) -> Service:
        """
        Exact service lookup scoped to the business.

        An unknown id is a NotFoundError; no other service is substituted.
        """
        service = db.query(Service).filter(
            Service.id == service_id,
            Service.business_id == business_id,
            Service.is_active == True
        ).first()

        if not service:
            logger.warning(f"Service {service_id} not found for business {business_id}")
            raise NotFoundError(
                f"Service {service_id} not found",
                business_id=business_id,
                service_id=service_id,
            )

        BusinessService.validate_service(service)
        return service

    @staticmethod
    def validate_service(service: Service) -> None:
        """Reject services whose duration or buffer cannot produce slots"""
        if not service.duration_minutes or service.duration_minutes <= 0:
            raise ConfigurationError(
                f"Service '{service.name}' has non-positive duration",
                service_id=service.id,
                duration_minutes=service.duration_minutes,
            )
        if (service.buffer_minutes or 0) < 0:
            raise ConfigurationError(
                f"Service '{service.name}' has a negative buffer",
                service_id=service.id,
                buffer_minutes=service.buffer_minutes,
            )

    @staticmethod
    def get_hours_for_date(
            db: Session,
            business_id: UUID,
            target_date: date,
            staff_member_id: Optional[UUID] = None
    ) -> List[BusinessHours]:
        """Active hours rows for the weekday of target_date (0=Monday)"""
        query = db.query(BusinessHours).filter(
            BusinessHours.business_id == business_id,
            BusinessHours.day_of_week == target_date.weekday(),
            BusinessHours.is_active == True
        )

        if staff_member_id:
            query = query.filter(BusinessHours.staff_member_id == staff_member_id)
        else:
            query = query.filter(BusinessHours.staff_member_id.is_(None))

        return query.order_by(BusinessHours.start_time.asc()).all()
