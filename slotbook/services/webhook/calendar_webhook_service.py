# slotbook/services/webhook/calendar_webhook_service.py
"""Pushes appointment events to a business's calendar-sync endpoint"""
import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

import httpx

from slotbook.config.settings import settings

logger = logging.getLogger(__name__)


class CalendarWebhookService:
    """Signed JSON delivery of appointment.* events"""

    VALID_EVENT_TYPES = [
        "appointment.created",
        "appointment.rescheduled",
        "appointment.cancelled",
    ]

    def __init__(self, http_client: Optional[httpx.Client] = None):
        self.http_client = http_client or httpx.Client(
            timeout=settings.CALENDAR_WEBHOOK_TIMEOUT_SECONDS,
            follow_redirects=True
        )

    @staticmethod
    def _sign_payload(payload_json: str, secret: str) -> str:
        """HMAC-SHA256 signature of the raw body"""
        return hmac.new(
            secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256
        ).hexdigest()

    @staticmethod
    def build_payload(event_type: str, appointment_data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "event": event_type,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "data": appointment_data,
        }

    def deliver(self, url: str, event_type: str, appointment_data: Dict[str, Any]) -> int:
        """
        POST the event; returns the HTTP status code.

        Raises httpx errors (including non-2xx via raise_for_status) so the
        calling task can record the failure and retry.
        """
        if event_type not in self.VALID_EVENT_TYPES:
            raise ValueError(f"Invalid event type: {event_type}")

        payload_json = json.dumps(self.build_payload(event_type, appointment_data))
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Event": event_type,
            "User-Agent": "Slotbook-Calendar/1.0",
        }
        if settings.CALENDAR_WEBHOOK_SECRET:
            headers["X-Webhook-Signature"] = self._sign_payload(
                payload_json, settings.CALENDAR_WEBHOOK_SECRET
            )

        response = self.http_client.post(url, content=payload_json, headers=headers)
        response.raise_for_status()

        logger.info(f"Delivered {event_type} to {url} ({response.status_code})")
        return response.status_code
