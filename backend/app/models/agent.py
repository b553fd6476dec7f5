"""Agent onboarding: applications reviewed by an administrator."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base, value_enum
import enum


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AgentApplication(Base):
    __tablename__ = "agent_applications"

    id = Column(Integer, primary_key=True, index=True)

    # Applicant
    email = Column(String, nullable=False, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    national_id = Column(String, nullable=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    motivation = Column(Text, nullable=True)
    experience = Column(Text, nullable=True)

    # Review
    status = Column(value_enum(ApplicationStatus), default=ApplicationStatus.PENDING, nullable=False, index=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Provisioned agent account (set on approval)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    reviewer = relationship("User", foreign_keys=[reviewed_by])
    user = relationship("User", foreign_keys=[user_id])
