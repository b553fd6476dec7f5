"""Commission notification webhook.

Posts commission state changes (created, paid, cancelled) to
``NOTIFICATION_WEBHOOK_URL``. Delivery is fire-and-forget: failures are logged
and never raised back into the ledger.
"""
import logging
from typing import Optional

import requests

from app.core.config import settings
from app.core.events import COMMISSION_EVENTS, LedgerEvent

logger = logging.getLogger(__name__)


class CommissionNotifier:
    """Sends commission events to an inbound webhook URL."""

    def __init__(self, url: Optional[str] = None, timeout: Optional[int] = None):
        self.url = url if url is not None else settings.NOTIFICATION_WEBHOOK_URL
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT

    def build_payload(self, event: LedgerEvent) -> dict:
        after = event.after or {}
        return {
            "event": event.kind.value,
            "commission_id": event.entity_id,
            "agent_id": after.get("agent_id"),
            "transaction_id": after.get("transaction_id"),
            "amount": after.get("amount"),
            "currency": settings.CURRENCY,
            "status": after.get("status"),
            "previous_status": (event.before or {}).get("status"),
            "actor_id": event.actor_id,
            "occurred_at": event.occurred_at.isoformat(),
        }

    def __call__(self, event: LedgerEvent) -> dict:
        if event.kind not in COMMISSION_EVENTS:
            return {"skipped": True, "reason": "not_a_commission_event"}
        if not self.url:
            logger.debug(f"Notification webhook not configured for {event.kind.value}, skipping")
            return {"skipped": True, "reason": "no_url_configured"}

        payload = self.build_payload(event)
        try:
            resp = requests.post(
                self.url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "X-Renta-Event": event.kind.value,
                    "X-Renta-Timestamp": event.occurred_at.isoformat(),
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Notification {event.kind.value} for commission {event.entity_id} failed: {e}")
            return {"success": False, "error": str(e)}

        if resp.status_code >= 400:
            logger.warning(f"Notification {event.kind.value} returned {resp.status_code}: {resp.text[:200]}")
        else:
            logger.info(f"Notification {event.kind.value} sent for commission {event.entity_id} ({resp.status_code})")
        return {"success": resp.status_code < 400, "status_code": resp.status_code}
