"""Commission calculation and the commission ledger.

Calculation:
1. Fixed rules pay ``commission_value`` whatever the transaction amount
2. Percentage rules need a transaction amount; raw = amount * value / 100
3. Raw percentage amounts are clamped to the rule's min/max, then rounded
   half-up to a whole currency unit, once

Ledger:
- One commission per transaction (unique ``transaction_id``)
- pending -> paid and pending -> cancelled are the only transitions; both are
  conditional updates on ``status = 'pending'`` so racing calls have one winner
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.database import utcnow
from app.core.errors import CommissionError, ErrorKind
from app.core.events import EventBus, EventKind, LedgerEvent, event_bus
from app.models.commission import (
    AgentCommission, AgentTransaction, CommissionRule, CommissionStatus, CommissionType,
)

logger = logging.getLogger(__name__)

ONE_PER_TRANSACTION_CONSTRAINT = "uq_agent_commissions_transaction_id"


def _violates_one_per_transaction(error: IntegrityError) -> bool:
    # PostgreSQL reports the constraint name, SQLite the column
    message = str(error.orig)
    return ONE_PER_TRANSACTION_CONSTRAINT in message or "agent_commissions.transaction_id" in message


def compute_commission(rule: CommissionRule, transaction_amount: Optional[int] = None) -> int:
    """Commission owed under ``rule`` for a transaction of ``transaction_amount``."""
    if CommissionType(rule.commission_type) == CommissionType.FIXED:
        return int(Decimal(rule.commission_value))

    if transaction_amount is None:
        raise CommissionError(
            ErrorKind.MISSING_AMOUNT,
            f"Percentage rule {rule.id} ({rule.name}) needs a transaction amount",
        )
    if transaction_amount < 0:
        raise CommissionError(ErrorKind.INVALID_AMOUNT, "Transaction amount must be non-negative")

    raw = Decimal(transaction_amount) * Decimal(rule.commission_value) / Decimal(100)
    if rule.min_amount is not None and raw < rule.min_amount:
        raw = Decimal(rule.min_amount)
    if rule.max_amount is not None and raw > rule.max_amount:
        raw = Decimal(rule.max_amount)

    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class SkippedItem:
    commission_id: int
    reason: str
    error: ErrorKind
    status: Optional[CommissionStatus] = None


@dataclass
class BulkPayOutcome:
    paid: List[AgentCommission] = field(default_factory=list)
    skipped: List[SkippedItem] = field(default_factory=list)


class CommissionLedger:
    def __init__(self, db: Session, events: Optional[EventBus] = None):
        self.db = db
        self.events = events or event_bus

    # ── Reads ──

    def get(self, commission_id: int) -> AgentCommission:
        commission = self.db.query(AgentCommission).filter(AgentCommission.id == commission_id).first()
        if not commission:
            raise CommissionError(ErrorKind.NOT_FOUND, f"Commission {commission_id} not found")
        return commission

    def for_transaction(self, transaction_id: int) -> Optional[AgentCommission]:
        return (
            self.db.query(AgentCommission)
            .filter(AgentCommission.transaction_id == transaction_id)
            .first()
        )

    def list_commissions(
        self,
        status: Optional[CommissionStatus] = None,
        agent_id: Optional[int] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[AgentCommission], int]:
        query = self.db.query(AgentCommission)
        if status:
            query = query.filter(AgentCommission.status == CommissionStatus(status))
        if agent_id:
            query = query.filter(AgentCommission.agent_id == agent_id)

        total = query.count()
        rows = (
            query.order_by(AgentCommission.created_at.desc(), AgentCommission.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    # ── Writes ──

    def create(self, transaction: AgentTransaction, rule: CommissionRule, amount: int) -> AgentCommission:
        """Create the pending commission for ``transaction``; at most one ever exists."""
        transaction_id = transaction.id
        if self.for_transaction(transaction_id):
            raise CommissionError(
                ErrorKind.DUPLICATE_COMMISSION,
                f"Transaction {transaction_id} already has a commission",
            )

        commission = AgentCommission(
            agent_id=transaction.agent_id,
            transaction_id=transaction_id,
            commission_rule_id=rule.id,
            amount=amount,
            rule_snapshot=rule.snapshot(),
            status=CommissionStatus.PENDING,
        )
        self.db.add(commission)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if not _violates_one_per_transaction(e):
                raise
            # A concurrent request inserted first; the unique constraint decides
            raise CommissionError(
                ErrorKind.DUPLICATE_COMMISSION,
                f"Transaction {transaction_id} already has a commission",
            )
        self.db.refresh(commission)

        logger.info(
            f"Commission {commission.id} created: agent {commission.agent_id}, "
            f"transaction {transaction_id}, rule {rule.id}, amount {amount}"
        )
        self._publish(EventKind.COMMISSION_CREATED, commission, actor_id=None, before=None)
        return commission

    def pay(self, commission_id: int, notes: Optional[str] = None, paid_by: Optional[int] = None) -> AgentCommission:
        values = {"paid_at": utcnow(), "paid_by": paid_by}
        if notes is not None:
            values["notes"] = notes
        return self._transition(commission_id, CommissionStatus.PAID, values, paid_by, EventKind.COMMISSION_PAID)

    def cancel(self, commission_id: int, notes: Optional[str] = None, cancelled_by: Optional[int] = None) -> AgentCommission:
        values = {"cancelled_at": utcnow()}
        if notes is not None:
            values["notes"] = notes
        return self._transition(
            commission_id, CommissionStatus.CANCELLED, values, cancelled_by, EventKind.COMMISSION_CANCELLED,
        )

    def pay_bulk(
        self,
        commission_ids: Iterable[int],
        notes: Optional[str] = None,
        paid_by: Optional[int] = None,
    ) -> BulkPayOutcome:
        """Pay each id independently; failures are reported per item, never for the batch."""
        outcome = BulkPayOutcome()
        for commission_id in commission_ids:
            try:
                outcome.paid.append(self.pay(commission_id, notes=notes, paid_by=paid_by))
            except CommissionError as e:
                current = self.db.get(AgentCommission, commission_id)
                outcome.skipped.append(SkippedItem(
                    commission_id=commission_id,
                    reason=e.message,
                    error=e.kind,
                    status=CommissionStatus(current.status) if current else None,
                ))

        logger.info(
            f"Bulk pay by user {paid_by}: {len(outcome.paid)} paid, {len(outcome.skipped)} skipped"
        )
        return outcome

    # ── Helpers ──

    def _transition(
        self,
        commission_id: int,
        target: CommissionStatus,
        values: dict,
        actor_id: Optional[int],
        event_kind: EventKind,
    ) -> AgentCommission:
        commission = self.get(commission_id)
        before = commission.snapshot()

        updated = (
            self.db.query(AgentCommission)
            .filter(
                AgentCommission.id == commission_id,
                AgentCommission.status == CommissionStatus.PENDING,
            )
            .update({AgentCommission.status: target, **{getattr(AgentCommission, k): v for k, v in values.items()}},
                    synchronize_session=False)
        )
        if updated != 1:
            self.db.rollback()
            self.db.refresh(commission)
            raise CommissionError(
                ErrorKind.INVALID_TRANSITION,
                f"Commission {commission_id} is {CommissionStatus(commission.status).value}; "
                f"only pending commissions can become {target.value}",
            )

        self.db.commit()
        self.db.refresh(commission)
        logger.info(f"Commission {commission_id} {before['status']} -> {target.value} by user {actor_id}")
        self._publish(event_kind, commission, actor_id=actor_id, before=before)
        return commission

    def _publish(self, kind: EventKind, commission: AgentCommission, actor_id, before) -> None:
        self.events.publish(LedgerEvent(
            kind=kind,
            entity_type="agent_commission",
            entity_id=commission.id,
            actor_id=actor_id,
            before=before,
            after=commission.snapshot(),
        ))
