"""Admin commission console: rules, ledger, payouts and reports."""
import logging
import math
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import require_admin
from app.models.commission import ACTION_TYPE_LABELS, CommissionStatus
from app.models.user import User
from app.schemas.commission import (
    ActionTypeOption, AgentCommission, BulkPayRequest, BulkPayResult, CommissionPage,
    CommissionReport, CommissionRule, CommissionRuleCreate, CommissionRuleUpdate,
    CommissionTransition, Pagination, SkippedCommission,
)
from app.services.commission import CommissionLedger
from app.services.reporting import ReportingAggregator, ReportRange
from app.services.rules import RuleStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/commissions", tags=["commissions"])


def paginate(total: int, page: int, limit: int) -> Pagination:
    return Pagination(total=total, page=page, pages=max(1, math.ceil(total / limit)))


def report_range(start: Optional[datetime], end: Optional[datetime]) -> ReportRange:
    try:
        return ReportRange(start=start, end=end)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ── Rules ────────────────────────────────────────────────────────────

@router.get("/action-types", response_model=List[ActionTypeOption])
def list_action_types(current_user: User = Depends(require_admin)):
    return [ActionTypeOption(value=a, label=label) for a, label in ACTION_TYPE_LABELS.items()]


@router.get("/rules", response_model=List[CommissionRule])
def list_rules(
    include_inactive: bool = True,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return RuleStore(db).list_rules(include_inactive=include_inactive)


@router.post("/rules", response_model=CommissionRule, status_code=status.HTTP_201_CREATED)
def create_rule(
    data: CommissionRuleCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return RuleStore(db).create_rule(data, created_by=current_user.id)


@router.get("/rules/{rule_id}", response_model=CommissionRule)
def get_rule(
    rule_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return RuleStore(db).get_rule(rule_id)


@router.put("/rules/{rule_id}", response_model=CommissionRule)
def update_rule(
    rule_id: int,
    changes: CommissionRuleUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Edit a rule. Existing commissions keep the amount they were created with."""
    return RuleStore(db).update_rule(rule_id, changes, actor_id=current_user.id)


@router.put("/rules/{rule_id}/deactivate", response_model=CommissionRule)
def deactivate_rule(
    rule_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return RuleStore(db).deactivate_rule(rule_id, actor_id=current_user.id)


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
    rule_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete a rule no commission references; referenced rules must be deactivated."""
    RuleStore(db).delete_rule(rule_id, actor_id=current_user.id)


# ── Reports ──────────────────────────────────────────────────────────

@router.get("/reports", response_model=CommissionReport)
def commission_report(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Totals, per-agent and per-action-type breakdown for commissions created in [start, end)."""
    return ReportingAggregator(db).commission_report(report_range(start, end))


# ── Ledger ───────────────────────────────────────────────────────────

@router.get("", response_model=CommissionPage)
def list_commissions(
    status_filter: Optional[CommissionStatus] = Query(None, alias="status"),
    agent_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows, total = CommissionLedger(db).list_commissions(
        status=status_filter, agent_id=agent_id, page=page, limit=limit,
    )
    return {"commissions": rows, "pagination": paginate(total, page, limit)}


@router.post("/pay-bulk", response_model=BulkPayResult)
def pay_bulk(
    data: BulkPayRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Pay many commissions; ids that cannot be paid are reported, not fatal."""
    outcome = CommissionLedger(db).pay_bulk(data.commission_ids, notes=data.notes, paid_by=current_user.id)
    return {
        "paid": outcome.paid,
        "skipped": [
            SkippedCommission(
                commission_id=s.commission_id,
                reason=s.reason,
                error=s.error.value,
                status=s.status,
            )
            for s in outcome.skipped
        ],
    }


@router.get("/{commission_id}", response_model=AgentCommission)
def get_commission(
    commission_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return CommissionLedger(db).get(commission_id)


@router.put("/{commission_id}/pay", response_model=AgentCommission)
def pay_commission(
    commission_id: int,
    data: Optional[CommissionTransition] = None,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    notes = data.notes if data else None
    return CommissionLedger(db).pay(commission_id, notes=notes, paid_by=current_user.id)


@router.put("/{commission_id}/cancel", response_model=AgentCommission)
def cancel_commission(
    commission_id: int,
    data: Optional[CommissionTransition] = None,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    notes = data.notes if data else None
    return CommissionLedger(db).cancel(commission_id, notes=notes, cancelled_by=current_user.id)
