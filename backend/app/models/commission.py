from sqlalchemy import (
    Column, Integer, BigInteger, String, Numeric, DateTime, ForeignKey, Boolean, Text, JSON,
    CheckConstraint, Index, UniqueConstraint, event, inspect, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base, utcnow, value_enum
import enum


class ActionType(str, enum.Enum):
    PROPERTY_REGISTRATION = "property_registration"
    PROPERTY_UPDATE = "property_update"
    TENANT_ONBOARDING = "tenant_onboarding"
    TENANT_INFO_UPDATE = "tenant_info_update"
    RENT_COLLECTION = "rent_collection"
    MAINTENANCE_SUBMISSION = "maintenance_submission"
    MAINTENANCE_RESOLUTION = "maintenance_resolution"
    LEASE_RENEWAL = "lease_renewal"


ACTION_TYPE_LABELS = {
    ActionType.PROPERTY_REGISTRATION: "Property Registration",
    ActionType.PROPERTY_UPDATE: "Property Update",
    ActionType.TENANT_ONBOARDING: "Tenant Onboarding",
    ActionType.TENANT_INFO_UPDATE: "Tenant Info Update",
    ActionType.RENT_COLLECTION: "Rent Collection",
    ActionType.MAINTENANCE_SUBMISSION: "Maintenance Request Submission",
    ActionType.MAINTENANCE_RESOLUTION: "Maintenance Resolution",
    ActionType.LEASE_RENEWAL: "Lease Renewal",
}

_unlabelled = set(ActionType) - set(ACTION_TYPE_LABELS)
if _unlabelled:
    raise RuntimeError(f"Action types without a label: {sorted(a.value for a in _unlabelled)}")


def action_type_label(action_type: ActionType) -> str:
    return ACTION_TYPE_LABELS[ActionType(action_type)]


class CommissionType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CommissionStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class TargetUserType(str, enum.Enum):
    OWNER = "owner"
    TENANT = "tenant"


class RelatedEntityType(str, enum.Enum):
    PROPERTY = "property"
    UNIT = "unit"
    TENANT = "tenant"
    PAYMENT = "payment"
    MAINTENANCE_TICKET = "maintenance_ticket"
    LEASE = "lease"


class CommissionRule(Base):
    """Admin-defined policy mapping an action type to a commission calculation"""
    __tablename__ = "commission_rules"
    __table_args__ = (
        # At most one active rule per action type
        Index(
            "uq_commission_rules_active_action_type", "action_type",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        CheckConstraint("commission_value >= 0", name="ck_commission_rules_value_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    action_type = Column(value_enum(ActionType), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    commission_type = Column(value_enum(CommissionType), nullable=False)
    commission_value = Column(Numeric(12, 2), nullable=False)  # percent (0-100) or fixed amount

    # Bounds for percentage rules, in the smallest currency unit
    min_amount = Column(BigInteger, nullable=True)
    max_amount = Column(BigInteger, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    creator = relationship("User", foreign_keys=[created_by])
    commissions = relationship("AgentCommission", viewonly=True)

    @property
    def action_type_label(self) -> str:
        return action_type_label(self.action_type)

    def snapshot(self) -> dict:
        """Terms of the rule as they stand now; stored on each commission it produces."""
        return {
            "id": self.id,
            "action_type": ActionType(self.action_type).value,
            "name": self.name,
            "commission_type": CommissionType(self.commission_type).value,
            "commission_value": str(self.commission_value),
            "min_amount": self.min_amount,
            "max_amount": self.max_amount,
            "is_active": self.is_active,
        }


class AgentTransaction(Base):
    """Immutable record of one agent-performed action"""
    __tablename__ = "agent_transactions"
    __table_args__ = (
        CheckConstraint(
            "(target_user_type = 'owner' AND target_user_id IS NOT NULL AND target_tenant_id IS NULL)"
            " OR (target_user_type = 'tenant' AND target_tenant_id IS NOT NULL AND target_user_id IS NULL)",
            name="ck_agent_transactions_single_target",
        ),
        CheckConstraint(
            "transaction_amount IS NULL OR transaction_amount >= 0",
            name="ck_agent_transactions_amount_non_negative",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action_type = Column(value_enum(ActionType), nullable=False, index=True)

    # Target: exactly one of user/tenant, matching target_user_type
    target_user_type = Column(value_enum(TargetUserType), nullable=False)
    target_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    target_tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=True)

    # Polymorphic reference to the property/tenant/payment/ticket involved
    related_entity_type = Column(value_enum(RelatedEntityType), nullable=True)
    related_entity_id = Column(Integer, nullable=True)

    description = Column(Text, nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    transaction_amount = Column(BigInteger, nullable=True)  # e.g. rent collected

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)

    agent = relationship("User", foreign_keys=[agent_id], back_populates="agent_transactions")
    target_user = relationship("User", foreign_keys=[target_user_id])
    target_tenant = relationship("Tenant", foreign_keys=[target_tenant_id])
    commission = relationship("AgentCommission", uselist=False, viewonly=True)


@event.listens_for(AgentTransaction, "before_update")
def _refuse_transaction_update(mapper, connection, target):
    state = inspect(target)
    changed = [attr.key for attr in state.mapper.column_attrs if state.attrs[attr.key].history.has_changes()]
    if changed:
        raise ValueError(f"Agent transaction {target.id} is immutable (attempted change: {', '.join(changed)})")


class AgentCommission(Base):
    """Payable commission derived from exactly one transaction via one rule snapshot"""
    __tablename__ = "agent_commissions"
    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_agent_commissions_transaction_id"),
        CheckConstraint("amount >= 0", name="ck_agent_commissions_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    transaction_id = Column(Integer, ForeignKey("agent_transactions.id"), nullable=False)
    commission_rule_id = Column(Integer, ForeignKey("commission_rules.id"), nullable=True, index=True)

    amount = Column(BigInteger, nullable=False)
    rule_snapshot = Column(JSON, nullable=True)

    status = Column(value_enum(CommissionStatus), default=CommissionStatus.PENDING, nullable=False, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    paid_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    agent = relationship("User", foreign_keys=[agent_id], back_populates="agent_commissions")
    payer = relationship("User", foreign_keys=[paid_by])
    transaction = relationship("AgentTransaction", viewonly=True)
    rule = relationship("CommissionRule", viewonly=True)

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "transaction_id": self.transaction_id,
            "commission_rule_id": self.commission_rule_id,
            "amount": self.amount,
            "status": CommissionStatus(self.status).value,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "notes": self.notes,
        }
