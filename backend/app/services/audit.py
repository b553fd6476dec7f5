"""Audit sink: persists every rule and ledger event to ``audit_logs``.

Runs in its own session so a failure here never touches the publisher's unit
of work (the ledger transition is already committed when events fire).
"""
import logging
from typing import Callable

from sqlalchemy.orm import Session

from app.core.events import LedgerEvent
from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


class AuditSink:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def __call__(self, event: LedgerEvent) -> None:
        db = self.session_factory()
        try:
            db.add(AuditLog(
                user_id=event.actor_id,
                action=event.kind.value,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                old_values=event.before,
                new_values=event.after,
                created_at=event.occurred_at,
            ))
            db.commit()
            logger.debug(f"Audit: {event.kind.value} {event.entity_type} {event.entity_id} by {event.actor_id}")
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
