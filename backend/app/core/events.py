"""In-process event bus for rule and ledger mutations.

The rule store and the commission ledger publish one ``LedgerEvent`` after each
successful commit. Consumers (audit log, notifications) subscribe to the bus;
a failing consumer is logged and never affects the publisher or other
consumers.
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from app.core.database import utcnow

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    RULE_CREATED = "commission_rule.create"
    RULE_UPDATED = "commission_rule.update"
    RULE_DEACTIVATED = "commission_rule.deactivate"
    RULE_DELETED = "commission_rule.delete"
    COMMISSION_CREATED = "commission.create"
    COMMISSION_PAID = "commission.pay"
    COMMISSION_CANCELLED = "commission.cancel"


COMMISSION_EVENTS = frozenset({
    EventKind.COMMISSION_CREATED,
    EventKind.COMMISSION_PAID,
    EventKind.COMMISSION_CANCELLED,
})


@dataclass(frozen=True)
class LedgerEvent:
    kind: EventKind
    entity_type: str
    entity_id: int
    actor_id: Optional[int] = None
    before: Optional[dict] = None
    after: Optional[dict] = None
    occurred_at: datetime = field(default_factory=utcnow)


Handler = Callable[[LedgerEvent], None]


class EventBus:
    def __init__(self):
        self._subscribers: List[Tuple[Handler, Optional[frozenset]]] = []

    def subscribe(self, handler: Handler, kinds: Optional[Iterable[EventKind]] = None) -> None:
        """Register ``handler``; ``kinds`` limits delivery to those event kinds."""
        self._subscribers.append((handler, frozenset(kinds) if kinds else None))

    def clear(self) -> None:
        self._subscribers.clear()

    def publish(self, event: LedgerEvent) -> None:
        for handler, kinds in list(self._subscribers):
            if kinds is not None and event.kind not in kinds:
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    f"Event consumer {getattr(handler, '__name__', handler)!r} failed "
                    f"for {event.kind.value} on {event.entity_type} {event.entity_id}"
                )


# Process-wide bus; consumers are attached at startup (see app.main)
event_bus = EventBus()
