# ============================================================================
# FILE: slotbook/api/v1/public/slots.py
# Slot listing for the chat widget and API clients - thin HTTP layer
# ============================================================================
from datetime import date
from typing import Optional
from uuid import UUID
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from slotbook.config.database import get_db
from slotbook.schemas.appointment import SlotListResponse, SlotResponse
from slotbook.services.availability.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slots", tags=["public-slots"])

# Listing is read-only, so one retry on a dropped connection is safe
READ_ATTEMPTS = 2


@router.get("", response_model=SlotListResponse)
async def list_available_slots(
        business_id: UUID = Query(..., description="Business to book with"),
        service_id: UUID = Query(..., description="Service to book"),
        target_date: date = Query(..., alias="date", description="Calendar date (YYYY-MM-DD) in the business timezone"),
        staff_member_id: Optional[UUID] = Query(None, description="Limit to one staff member"),
        db: Session = Depends(get_db)
):
    """
    List bookable start times for a service on a date.
    Results are a snapshot; booking re-checks availability.
    """
    for attempt in range(1, READ_ATTEMPTS + 1):
        try:
            slots = AvailabilityService.get_available_slots(
                db=db,
                business_id=business_id,
                service_id=service_id,
                target_date=target_date,
                staff_member_id=staff_member_id,
            )
            break
        except OperationalError as e:
            db.rollback()
            if attempt == READ_ATTEMPTS:
                raise
            logger.warning(f"Transient storage error listing slots, retrying: {e}")

    return SlotListResponse(
        business_id=business_id,
        service_id=service_id,
        date=target_date.isoformat(),
        slots=[SlotResponse(start_time=s["start"], end_time=s["end"]) for s in slots],
    )
