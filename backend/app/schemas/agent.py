from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from app.models.agent import ApplicationStatus
from app.schemas.commission import AgentEarnings


class AgentApplicationCreate(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=5)
    national_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    motivation: Optional[str] = None
    experience: Optional[str] = None


class AgentApplication(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: str
    national_id: Optional[str]
    address: Optional[str]
    city: Optional[str]
    motivation: Optional[str]
    experience: Optional[str]
    status: ApplicationStatus
    reviewed_by: Optional[int]
    reviewed_at: Optional[datetime]
    rejection_reason: Optional[str]
    user_id: Optional[int]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ApplicationStatusOut(BaseModel):
    email: str
    status: ApplicationStatus
    submitted_at: Optional[datetime]
    reviewed_at: Optional[datetime]
    rejection_reason: Optional[str] = None


class RejectApplicationRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class Agent(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str]
    is_active: bool
    must_change_password: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ApprovalResult(BaseModel):
    """Returned once on approval; the temporary password is not stored in clear."""
    application: AgentApplication
    agent: Agent
    temporary_password: str


class AgentStatusUpdate(BaseModel):
    is_active: bool


class AgentDetail(BaseModel):
    agent: Agent
    earnings: AgentEarnings
