"""Agent portal: record assisted actions, view transactions and earnings."""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.commissions import paginate, report_range
from app.core.database import get_db
from app.core.security import require_agent
from app.models.user import User
from app.schemas.commission import (
    AgentActionCreate, AgentEarnings, RecordActionResult, TransactionPage,
)
from app.services.commission import CommissionLedger
from app.services.commission_pdf import generate_statement_pdf
from app.services.reporting import ReportingAggregator
from app.services.transactions import TransactionRecorder

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/agent-portal", tags=["agent-portal"])


@router.post("/actions", response_model=RecordActionResult, status_code=status.HTTP_201_CREATED)
def record_action(
    data: AgentActionCreate,
    current_user: User = Depends(require_agent),
    db: Session = Depends(get_db),
):
    """Record an action performed by the current agent and create its commission if a rule applies."""
    result = TransactionRecorder(db).record(
        agent_id=current_user.id,
        action_type=data.action_type,
        target=data.target,
        related_entity=data.related_entity,
        transaction_amount=data.transaction_amount,
        description=data.description,
        metadata=data.metadata,
    )
    return {
        "transaction": result.transaction,
        "commission": result.commission,
        "commission_amount": result.commission_amount,
        "commission_error": result.commission_error.kind.value if result.commission_error else None,
    }


@router.get("/transactions", response_model=TransactionPage)
def my_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    current_user: User = Depends(require_agent),
    db: Session = Depends(get_db),
):
    rows, total = TransactionRecorder(db).list_transactions(current_user.id, page=page, limit=limit)
    return {"transactions": rows, "pagination": paginate(total, page, limit)}


@router.get("/earnings", response_model=AgentEarnings)
def my_earnings(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    current_user: User = Depends(require_agent),
    db: Session = Depends(get_db),
):
    return ReportingAggregator(db).agent_earnings(current_user.id, report_range(start, end))


@router.get("/dashboard")
def my_dashboard(
    current_user: User = Depends(require_agent),
    db: Session = Depends(get_db),
):
    """Lifetime earnings plus the agent's five most recent commissions and transactions."""
    earnings = ReportingAggregator(db).agent_earnings(current_user.id)
    commissions, _ = CommissionLedger(db).list_commissions(agent_id=current_user.id, limit=5)
    transactions, _ = TransactionRecorder(db).list_transactions(current_user.id, limit=5)
    return {
        "agent": {"id": current_user.id, "name": current_user.full_name, "email": current_user.email},
        "earnings": earnings.model_dump(),
        "recent_commissions": [
            {
                "id": c.id,
                "transaction_id": c.transaction_id,
                "amount": c.amount,
                "status": c.status.value,
                "created_at": c.created_at.isoformat() if c.created_at else None,
            }
            for c in commissions
        ],
        "recent_transactions": [
            {
                "id": t.id,
                "action_type": t.action_type.value,
                "description": t.description,
                "transaction_amount": t.transaction_amount,
                "created_at": t.created_at.isoformat() if t.created_at else None,
            }
            for t in transactions
        ],
    }


@router.get("/earnings/statement.pdf")
def my_statement_pdf(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    current_user: User = Depends(require_agent),
    db: Session = Depends(get_db),
):
    statement = ReportingAggregator(db).agent_statement(current_user.id, report_range(start, end))
    pdf_bytes = generate_statement_pdf(statement)

    filename = f"Earnings_Statement_{current_user.full_name.replace(' ', '_')}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
