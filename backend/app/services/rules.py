"""Commission rule store.

Rules are read fresh from the database on every lookup so that a deactivation
takes effect for the very next transaction. Writes keep the invariant that an
action type has at most one active rule; the partial unique index on
``commission_rules`` backs this up against concurrent writers.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import CommissionError, ErrorKind
from app.core.events import EventBus, EventKind, LedgerEvent, event_bus
from app.models.commission import (
    ActionType, AgentCommission, CommissionRule, CommissionType,
)
from app.schemas.commission import CommissionRuleCreate, CommissionRuleUpdate

logger = logging.getLogger(__name__)


# Default rules seeded on a fresh install (amounts in RWF)
DEFAULT_RULES = [
    {
        "action_type": ActionType.PROPERTY_REGISTRATION,
        "name": "Property Registration Bonus",
        "description": "Fixed commission for helping owners register new properties",
        "commission_type": CommissionType.FIXED,
        "commission_value": Decimal("5000"),
    },
    {
        "action_type": ActionType.TENANT_ONBOARDING,
        "name": "Tenant Onboarding Commission",
        "description": "Commission for successfully onboarding new tenants",
        "commission_type": CommissionType.FIXED,
        "commission_value": Decimal("10000"),
    },
    {
        "action_type": ActionType.RENT_COLLECTION,
        "name": "Rent Collection Commission",
        "description": "Percentage commission on rent payments collected",
        "commission_type": CommissionType.PERCENTAGE,
        "commission_value": Decimal("2"),
        "min_amount": 500,
        "max_amount": 20000,
    },
    {
        "action_type": ActionType.MAINTENANCE_SUBMISSION,
        "name": "Maintenance Request Commission",
        "description": "Small bonus for helping tenants submit maintenance requests",
        "commission_type": CommissionType.FIXED,
        "commission_value": Decimal("500"),
    },
]


def validate_rule_terms(
    commission_type: CommissionType,
    commission_value: Decimal,
    min_amount: Optional[int],
    max_amount: Optional[int],
) -> None:
    """Raise InvalidRule unless the terms describe a computable commission."""
    value = Decimal(commission_value)
    if value < 0:
        raise CommissionError(ErrorKind.INVALID_RULE, "Commission value must be non-negative")

    if CommissionType(commission_type) == CommissionType.FIXED:
        if value != value.to_integral_value():
            raise CommissionError(ErrorKind.INVALID_RULE, "Fixed commissions must be whole currency units")
        if min_amount is not None or max_amount is not None:
            raise CommissionError(ErrorKind.INVALID_RULE, "Minimum/maximum bounds apply to percentage rules only")
        return

    if value > 100:
        raise CommissionError(ErrorKind.INVALID_RULE, "Percentage commission must be between 0 and 100")
    for bound in (min_amount, max_amount):
        if bound is not None and bound < 0:
            raise CommissionError(ErrorKind.INVALID_RULE, "Commission bounds must be non-negative")
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise CommissionError(ErrorKind.INVALID_RULE, "Minimum amount cannot exceed maximum amount")


class RuleStore:
    def __init__(self, db: Session, events: Optional[EventBus] = None):
        self.db = db
        self.events = events or event_bus

    # ── Reads ──

    def find_active_rule(self, action_type: ActionType) -> Optional[CommissionRule]:
        """Active rule for ``action_type``; newest wins if the data ever holds more than one."""
        return (
            self.db.query(CommissionRule)
            .filter(
                CommissionRule.action_type == ActionType(action_type),
                CommissionRule.is_active.is_(True),
            )
            .order_by(CommissionRule.created_at.desc(), CommissionRule.id.desc())
            .first()
        )

    def get_rule(self, rule_id: int) -> CommissionRule:
        rule = self.db.query(CommissionRule).filter(CommissionRule.id == rule_id).first()
        if not rule:
            raise CommissionError(ErrorKind.NOT_FOUND, f"Commission rule {rule_id} not found")
        return rule

    def list_rules(self, include_inactive: bool = True) -> List[CommissionRule]:
        query = self.db.query(CommissionRule)
        if not include_inactive:
            query = query.filter(CommissionRule.is_active.is_(True))
        return query.order_by(CommissionRule.action_type, CommissionRule.created_at.desc()).all()

    # ── Writes ──

    def create_rule(self, data: CommissionRuleCreate, created_by: Optional[int] = None) -> CommissionRule:
        validate_rule_terms(data.commission_type, data.commission_value, data.min_amount, data.max_amount)
        if data.is_active:
            self._ensure_no_other_active(data.action_type)

        rule = CommissionRule(
            action_type=data.action_type,
            name=data.name,
            description=data.description,
            commission_type=data.commission_type,
            commission_value=data.commission_value,
            min_amount=data.min_amount,
            max_amount=data.max_amount,
            is_active=data.is_active,
            created_by=created_by,
        )
        self.db.add(rule)
        self._commit_rule_write(data.action_type)
        self.db.refresh(rule)

        logger.info(f"Commission rule {rule.id} created for {rule.action_type.value} by user {created_by}")
        self._publish(EventKind.RULE_CREATED, rule, created_by, before=None, after=rule.snapshot())
        return rule

    def update_rule(self, rule_id: int, changes: CommissionRuleUpdate, actor_id: Optional[int] = None) -> CommissionRule:
        rule = self.get_rule(rule_id)
        before = rule.snapshot()
        # Explicit nulls only clear the optional fields
        updates = {
            k: v for k, v in changes.model_dump(exclude_unset=True).items()
            if v is not None or k in ("description", "min_amount", "max_amount")
        }

        commission_type = updates.get("commission_type", rule.commission_type)
        commission_value = updates.get("commission_value", rule.commission_value)
        if commission_type == CommissionType.FIXED and "commission_type" in updates:
            # Switching to fixed drops bounds unless the caller sets them explicitly
            updates.setdefault("min_amount", None)
            updates.setdefault("max_amount", None)
        min_amount = updates.get("min_amount", rule.min_amount)
        max_amount = updates.get("max_amount", rule.max_amount)
        validate_rule_terms(commission_type, commission_value, min_amount, max_amount)

        if updates.get("is_active") and not rule.is_active:
            self._ensure_no_other_active(rule.action_type, exclude_id=rule.id)

        for field, value in updates.items():
            setattr(rule, field, value)
        self._commit_rule_write(rule.action_type)
        self.db.refresh(rule)

        logger.info(f"Commission rule {rule.id} updated by user {actor_id}: {sorted(updates)}")
        kind = EventKind.RULE_DEACTIVATED if before["is_active"] and not rule.is_active else EventKind.RULE_UPDATED
        self._publish(kind, rule, actor_id, before=before, after=rule.snapshot())
        return rule

    def deactivate_rule(self, rule_id: int, actor_id: Optional[int] = None) -> CommissionRule:
        return self.update_rule(rule_id, CommissionRuleUpdate(is_active=False), actor_id)

    def delete_rule(self, rule_id: int, actor_id: Optional[int] = None) -> None:
        rule = self.get_rule(rule_id)
        in_use = (
            self.db.query(AgentCommission.id)
            .filter(AgentCommission.commission_rule_id == rule.id)
            .count()
        )
        if in_use:
            raise CommissionError(
                ErrorKind.RULE_IN_USE,
                f"Commission rule {rule.id} is referenced by {in_use} commission(s); deactivate it instead",
            )

        before = rule.snapshot()
        self.db.delete(rule)
        self.db.commit()
        logger.info(f"Commission rule {rule_id} deleted by user {actor_id}")
        self.events.publish(LedgerEvent(
            kind=EventKind.RULE_DELETED,
            entity_type="commission_rule",
            entity_id=rule_id,
            actor_id=actor_id,
            before=before,
        ))

    # ── Helpers ──

    def _ensure_no_other_active(self, action_type: ActionType, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(CommissionRule.id).filter(
            CommissionRule.action_type == ActionType(action_type),
            CommissionRule.is_active.is_(True),
        )
        if exclude_id is not None:
            query = query.filter(CommissionRule.id != exclude_id)
        existing = query.first()
        if existing:
            raise CommissionError(
                ErrorKind.ACTIVE_RULE_EXISTS,
                f"An active commission rule already exists for {ActionType(action_type).value} (rule {existing.id})",
            )

    def _commit_rule_write(self, action_type: ActionType) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise CommissionError(
                ErrorKind.ACTIVE_RULE_EXISTS,
                f"An active commission rule already exists for {ActionType(action_type).value}",
            )

    def _publish(self, kind: EventKind, rule: CommissionRule, actor_id, before, after) -> None:
        self.events.publish(LedgerEvent(
            kind=kind,
            entity_type="commission_rule",
            entity_id=rule.id,
            actor_id=actor_id,
            before=before,
            after=after,
        ))


def seed_default_rules(db: Session, created_by: Optional[int] = None) -> int:
    """Create the default rules for action types that have no rule yet; returns the number created."""
    store = RuleStore(db)
    created = 0
    for data in DEFAULT_RULES:
        exists = db.query(CommissionRule.id).filter(CommissionRule.action_type == data["action_type"]).first()
        if exists:
            continue
        store.create_rule(CommissionRuleCreate(**data), created_by=created_by)
        created += 1
    if created:
        logger.info(f"Seeded {created} default commission rule(s)")
    return created
