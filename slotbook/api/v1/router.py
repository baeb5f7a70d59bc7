"""
API v1 router setup
"""
from fastapi import APIRouter

from slotbook.api.v1.public import appointments, slots

api_v1_router = APIRouter()

# ============================================================================
# PUBLIC ROUTES (chat widget and direct API callers)
# ============================================================================
api_v1_router.include_router(
    slots.router,
    prefix="/public",
    tags=["Public"]
)

api_v1_router.include_router(
    appointments.router,
    prefix="/public",
    tags=["Public"]
)


@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """API information and available endpoints."""
    return {
        "version": "1.0",
        "endpoints": {
            "slots": "GET /api/v1/public/slots",
            "book": "POST /api/v1/public/appointments",
            "reschedule": "POST /api/v1/public/appointments/{id}/reschedule",
            "cancel": "POST /api/v1/public/appointments/{id}/cancel",
        }
    }
