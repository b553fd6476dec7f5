"""Agent onboarding: application review and agent account provisioning.

Approving an application creates the agent's ``User`` with a one-time
password that is returned to the reviewer once and stored only as a hash.
Suspending an agent (``is_active = False``) makes the transaction recorder
refuse their actions.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.database import utcnow
from app.core.security import generate_temporary_password, get_password_hash
from app.models.agent import AgentApplication, ApplicationStatus
from app.models.user import User, UserRole
from app.schemas.agent import AgentApplicationCreate

logger = logging.getLogger(__name__)


@dataclass
class ApprovedAgent:
    application: AgentApplication
    agent: User
    temporary_password: str


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class AgentApplicationService:
    def __init__(self, db: Session):
        self.db = db

    def submit(self, data: AgentApplicationCreate) -> AgentApplication:
        email = _normalize_email(data.email)
        if self.db.query(User).filter(User.email == email).first():
            raise ValueError("An account with this email already exists")
        pending = self.db.query(AgentApplication).filter(
            AgentApplication.email == email,
            AgentApplication.status == ApplicationStatus.PENDING,
        ).first()
        if pending:
            raise ValueError("An application with this email is already pending review")

        application = AgentApplication(**{**data.model_dump(), "email": email})
        self.db.add(application)
        self.db.commit()
        self.db.refresh(application)
        logger.info(f"Agent application {application.id} submitted for {email}")
        return application

    def get(self, application_id: int) -> AgentApplication:
        application = self.db.query(AgentApplication).filter(AgentApplication.id == application_id).first()
        if not application:
            raise LookupError(f"Application {application_id} not found")
        return application

    def list_applications(self, status: Optional[ApplicationStatus] = None) -> List[AgentApplication]:
        query = self.db.query(AgentApplication)
        if status:
            query = query.filter(AgentApplication.status == ApplicationStatus(status))
        return query.order_by(AgentApplication.created_at.desc(), AgentApplication.id.desc()).all()

    def application_status(self, email: str) -> Optional[AgentApplication]:
        """Most recent application for ``email``, or None."""
        return (
            self.db.query(AgentApplication)
            .filter(AgentApplication.email == _normalize_email(email))
            .order_by(AgentApplication.created_at.desc(), AgentApplication.id.desc())
            .first()
        )

    def approve(self, application_id: int, reviewer_id: int) -> ApprovedAgent:
        application = self._pending(application_id)
        if self.db.query(User).filter(User.email == application.email).first():
            raise ValueError("An account with this email already exists")

        temporary_password = generate_temporary_password()
        agent = User(
            email=application.email,
            hashed_password=get_password_hash(temporary_password),
            first_name=application.first_name,
            last_name=application.last_name,
            phone=application.phone,
            role=UserRole.AGENT.value,
            is_active=True,
            must_change_password=True,
        )
        self.db.add(agent)
        try:
            self.db.flush()

            application.status = ApplicationStatus.APPROVED
            application.reviewed_by = reviewer_id
            application.reviewed_at = utcnow()
            application.user_id = agent.id
            self.db.commit()
        except IntegrityError:
            # Another reviewer provisioned this email first
            self.db.rollback()
            raise ValueError("An account with this email already exists")
        self.db.refresh(application)
        self.db.refresh(agent)

        logger.info(f"Agent application {application.id} approved by user {reviewer_id}; agent user {agent.id} created")
        return ApprovedAgent(application=application, agent=agent, temporary_password=temporary_password)

    def reject(self, application_id: int, reviewer_id: int, reason: str) -> AgentApplication:
        application = self._pending(application_id)
        application.status = ApplicationStatus.REJECTED
        application.reviewed_by = reviewer_id
        application.reviewed_at = utcnow()
        application.rejection_reason = reason
        self.db.commit()
        self.db.refresh(application)
        logger.info(f"Agent application {application.id} rejected by user {reviewer_id}")
        return application

    def list_agents(self, page: int = 1, limit: int = 20) -> Tuple[List[User], int]:
        query = self.db.query(User).filter(User.role == UserRole.AGENT.value)
        total = query.count()
        rows = query.order_by(User.last_name, User.first_name, User.id).offset((page - 1) * limit).limit(limit).all()
        return rows, total

    def get_agent(self, agent_id: int) -> User:
        agent = self.db.query(User).filter(User.id == agent_id, User.role == UserRole.AGENT.value).first()
        if not agent:
            raise LookupError(f"Agent {agent_id} not found")
        return agent

    def set_agent_active(self, agent_id: int, is_active: bool) -> User:
        agent = self.get_agent(agent_id)
        agent.is_active = is_active
        self.db.commit()
        self.db.refresh(agent)
        logger.info(f"Agent {agent_id} {'activated' if is_active else 'suspended'}")
        return agent

    def _pending(self, application_id: int) -> AgentApplication:
        application = self.get(application_id)
        if application.status != ApplicationStatus.PENDING:
            raise ValueError(f"Application {application_id} has already been {ApplicationStatus(application.status).value}")
        return application
