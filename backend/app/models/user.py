from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    OWNER = "owner"
    AGENCY = "agency"
    MANAGER = "manager"
    TENANT = "tenant"
    MAINTENANCE = "maintenance"
    AGENT = "agent"


# Roles that can be the "owner" side of an assisted action
OWNER_SIDE_ROLES = (UserRole.OWNER.value, UserRole.AGENCY.value, UserRole.MANAGER.value)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String, nullable=True)

    role = Column(String, default="owner", nullable=False, index=True)
    is_active = Column(Boolean, default=True)
    must_change_password = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    agent_transactions = relationship("AgentTransaction", back_populates="agent", foreign_keys="AgentTransaction.agent_id")
    agent_commissions = relationship("AgentCommission", back_populates="agent", foreign_keys="AgentCommission.agent_id")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
