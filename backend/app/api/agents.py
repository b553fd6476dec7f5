"""Agent onboarding: public applications and admin review / agent management."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.commissions import paginate
from app.core.database import get_db
from app.core.security import require_admin
from app.models.agent import ApplicationStatus
from app.models.commission import CommissionStatus
from app.models.user import User
from app.schemas.agent import (
    Agent, AgentApplication, AgentApplicationCreate, AgentDetail, AgentStatusUpdate,
    ApplicationStatusOut, ApprovalResult, RejectApplicationRequest,
)
from app.schemas.commission import CommissionPage, TransactionPage
from app.services.agent_applications import AgentApplicationService
from app.services.commission import CommissionLedger
from app.services.reporting import ReportingAggregator
from app.services.transactions import TransactionRecorder

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/agents", tags=["agents"])
public_router = APIRouter(prefix="/api/agent-applications", tags=["agent-applications"])


def _service_call(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ── Public ───────────────────────────────────────────────────────────

@public_router.post("", response_model=AgentApplication, status_code=status.HTTP_201_CREATED)
def submit_application(data: AgentApplicationCreate, db: Session = Depends(get_db)):
    return _service_call(AgentApplicationService(db).submit, data)


@public_router.get("/status", response_model=ApplicationStatusOut)
def application_status(email: str, db: Session = Depends(get_db)):
    application = AgentApplicationService(db).application_status(email)
    if not application:
        raise HTTPException(status_code=404, detail="No application found for this email")
    return ApplicationStatusOut(
        email=application.email,
        status=application.status,
        submitted_at=application.created_at,
        reviewed_at=application.reviewed_at,
        rejection_reason=application.rejection_reason,
    )


# ── Admin ────────────────────────────────────────────────────────────

@router.get("/applications", response_model=List[AgentApplication])
def list_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return AgentApplicationService(db).list_applications(status_filter)


@router.post("/applications/{application_id}/approve", response_model=ApprovalResult)
def approve_application(
    application_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Approve and provision the agent account. The temporary password is only shown here."""
    approved = _service_call(AgentApplicationService(db).approve, application_id, current_user.id)
    return {
        "application": approved.application,
        "agent": approved.agent,
        "temporary_password": approved.temporary_password,
    }


@router.post("/applications/{application_id}/reject", response_model=AgentApplication)
def reject_application(
    application_id: int,
    data: RejectApplicationRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _service_call(AgentApplicationService(db).reject, application_id, current_user.id, data.reason)


@router.get("", response_model=List[Agent])
def list_agents(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    agents, _ = AgentApplicationService(db).list_agents(page=page, limit=limit)
    return agents


@router.get("/{agent_id}", response_model=AgentDetail)
def get_agent(
    agent_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Agent profile with lifetime earnings."""
    agent = _service_call(AgentApplicationService(db).get_agent, agent_id)
    return {"agent": agent, "earnings": ReportingAggregator(db).agent_earnings(agent.id)}


@router.get("/{agent_id}/transactions", response_model=TransactionPage)
def agent_transactions(
    agent_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    agent = _service_call(AgentApplicationService(db).get_agent, agent_id)
    rows, total = TransactionRecorder(db).list_transactions(agent.id, page=page, limit=limit)
    return {"transactions": rows, "pagination": paginate(total, page, limit)}


@router.get("/{agent_id}/commissions", response_model=CommissionPage)
def agent_commissions(
    agent_id: int,
    status_filter: Optional[CommissionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    agent = _service_call(AgentApplicationService(db).get_agent, agent_id)
    rows, total = CommissionLedger(db).list_commissions(
        status=status_filter, agent_id=agent.id, page=page, limit=limit,
    )
    return {"commissions": rows, "pagination": paginate(total, page, limit)}


@router.put("/{agent_id}/status", response_model=Agent)
def set_agent_status(
    agent_id: int,
    data: AgentStatusUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Suspend or reactivate an agent. Suspended agents cannot record actions."""
    return _service_call(AgentApplicationService(db).set_agent_active, agent_id, data.is_active)
