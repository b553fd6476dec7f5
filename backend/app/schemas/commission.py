from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Optional, Union
from datetime import datetime
from decimal import Decimal
from app.core.errors import CommissionError, ErrorKind
from app.models.commission import (
    ActionType, CommissionStatus, CommissionType, RelatedEntityType, TargetUserType,
)


# ── Targets ──────────────────────────────────────────────────────────

class OwnerTarget(BaseModel):
    kind: Literal["owner"] = "owner"
    user_id: int

    class Config:
        extra = "forbid"
        frozen = True


class TenantTarget(BaseModel):
    kind: Literal["tenant"] = "tenant"
    tenant_id: int

    class Config:
        extra = "forbid"
        frozen = True


TargetRef = Annotated[Union[OwnerTarget, TenantTarget], Field(discriminator="kind")]


def target_from_columns(
    target_user_type: Optional[str],
    target_user_id: Optional[int],
    target_tenant_id: Optional[int],
):
    """Build a TargetRef from the flat column representation.

    Exactly one id must be set and it must match ``target_user_type``.
    """
    try:
        user_type = TargetUserType(target_user_type)
    except ValueError:
        raise CommissionError(ErrorKind.INVALID_TARGET, f"Unknown target user type: {target_user_type!r}")

    if user_type == TargetUserType.OWNER:
        if target_user_id is None or target_tenant_id is not None:
            raise CommissionError(ErrorKind.INVALID_TARGET, "Owner targets need target_user_id and no target_tenant_id")
        return OwnerTarget(user_id=target_user_id)

    if target_tenant_id is None or target_user_id is not None:
        raise CommissionError(ErrorKind.INVALID_TARGET, "Tenant targets need target_tenant_id and no target_user_id")
    return TenantTarget(tenant_id=target_tenant_id)


class RelatedEntity(BaseModel):
    entity_type: RelatedEntityType
    entity_id: Optional[int] = None

    class Config:
        frozen = True


# ── Rules ────────────────────────────────────────────────────────────

class CommissionRuleBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    commission_type: CommissionType
    commission_value: Decimal = Field(..., ge=0)
    min_amount: Optional[int] = Field(None, ge=0)
    max_amount: Optional[int] = Field(None, ge=0)


class CommissionRuleCreate(CommissionRuleBase):
    action_type: ActionType
    is_active: bool = True


class CommissionRuleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    commission_type: Optional[CommissionType] = None
    commission_value: Optional[Decimal] = Field(None, ge=0)
    min_amount: Optional[int] = Field(None, ge=0)
    max_amount: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class CommissionRule(CommissionRuleBase):
    id: int
    action_type: ActionType
    action_type_label: str
    is_active: bool
    created_by: Optional[int]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ActionTypeOption(BaseModel):
    value: ActionType
    label: str


# ── Transactions & commissions ──────────────────────────────────────

class AgentActionCreate(BaseModel):
    """Payload a collaborator sends to record an agent-assisted action."""
    action_type: ActionType
    target: TargetRef
    related_entity: Optional[RelatedEntity] = None
    transaction_amount: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    metadata: Optional[dict] = None


class CommissionSummary(BaseModel):
    id: int
    amount: int
    status: CommissionStatus

    class Config:
        from_attributes = True


class AgentTransaction(BaseModel):
    id: int
    agent_id: int
    action_type: ActionType
    target_user_type: TargetUserType
    target_user_id: Optional[int]
    target_tenant_id: Optional[int]
    related_entity_type: Optional[RelatedEntityType]
    related_entity_id: Optional[int]
    description: Optional[str]
    metadata: Optional[dict] = Field(None, validation_alias="extra")
    transaction_amount: Optional[int]
    created_at: Optional[datetime]
    commission: Optional[CommissionSummary] = None

    class Config:
        from_attributes = True


class AgentCommission(BaseModel):
    id: int
    agent_id: int
    transaction_id: int
    commission_rule_id: Optional[int]
    amount: int
    rule_snapshot: Optional[dict]
    status: CommissionStatus
    paid_at: Optional[datetime]
    paid_by: Optional[int]
    cancelled_at: Optional[datetime]
    notes: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class RecordActionResult(BaseModel):
    transaction: AgentTransaction
    commission: Optional[AgentCommission] = None
    commission_amount: int = 0
    commission_error: Optional[str] = None


class CommissionTransition(BaseModel):
    notes: Optional[str] = None


class BulkPayRequest(BaseModel):
    commission_ids: List[int] = Field(..., min_length=1)
    notes: Optional[str] = None


class SkippedCommission(BaseModel):
    commission_id: int
    reason: str
    error: str
    status: Optional[CommissionStatus] = None


class BulkPayResult(BaseModel):
    paid: List[AgentCommission]
    skipped: List[SkippedCommission]


class Pagination(BaseModel):
    total: int
    page: int
    pages: int


class CommissionPage(BaseModel):
    commissions: List[AgentCommission]
    pagination: Pagination


class TransactionPage(BaseModel):
    transactions: List[AgentTransaction]
    pagination: Pagination


# ── Reports ──────────────────────────────────────────────────────────

class AgentReportRow(BaseModel):
    agent_id: int
    agent_name: Optional[str] = None
    agent_email: Optional[str] = None
    count: int
    total: int
    pending: int
    paid: int
    cancelled: int


class ActionTypeReportRow(BaseModel):
    action_type: ActionType
    label: str
    count: int
    total: int


class CommissionTotals(BaseModel):
    count: int
    total: int
    pending: int
    paid: int
    cancelled: int


class CommissionReport(BaseModel):
    start: Optional[datetime]
    end: Optional[datetime]
    totals: CommissionTotals
    by_agent: List[AgentReportRow]
    by_action_type: List[ActionTypeReportRow]


class AgentEarnings(BaseModel):
    agent_id: int
    total_earned: int
    total_pending: int
    total_paid: int
    transaction_count: int
    commission_count: int
