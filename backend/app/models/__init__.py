from app.models.user import User, UserRole, OWNER_SIDE_ROLES
from app.models.tenant import Tenant
from app.models.agent import AgentApplication, ApplicationStatus
from app.models.commission import (
    ActionType, ACTION_TYPE_LABELS, action_type_label,
    CommissionType, CommissionStatus, TargetUserType, RelatedEntityType,
    CommissionRule, AgentTransaction, AgentCommission,
)
from app.models.audit import AuditLog

__all__ = [
    "User",
    "UserRole",
    "OWNER_SIDE_ROLES",
    "Tenant",
    "AgentApplication",
    "ApplicationStatus",
    "ActionType",
    "ACTION_TYPE_LABELS",
    "action_type_label",
    "CommissionType",
    "CommissionStatus",
    "TargetUserType",
    "RelatedEntityType",
    "CommissionRule",
    "AgentTransaction",
    "AgentCommission",
    "AuditLog",
]
