"""Transaction recorder: the entry point collaborators call after an agent-assisted action.

The transaction row is committed on its own before any commission work, so a
failed commission step never removes the transaction and a commission never
exists without its transaction.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from app.core.errors import CommissionError, ErrorKind
from app.core.events import EventBus
from app.models.commission import ActionType, AgentCommission, AgentTransaction, TargetUserType
from app.models.tenant import Tenant
from app.models.user import User, UserRole, OWNER_SIDE_ROLES
from app.schemas.commission import OwnerTarget, RelatedEntity, TenantTarget
from app.services.commission import CommissionLedger, compute_commission
from app.services.rules import RuleStore

logger = logging.getLogger(__name__)

# Commission-step failures that leave the recorded transaction in place
NON_FATAL_COMMISSION_ERRORS = (ErrorKind.MISSING_AMOUNT, ErrorKind.DUPLICATE_COMMISSION)


@dataclass
class RecordResult:
    transaction: AgentTransaction
    commission: Optional[AgentCommission] = None
    commission_error: Optional[CommissionError] = None

    @property
    def commission_amount(self) -> int:
        return self.commission.amount if self.commission else 0


class TransactionRecorder:
    def __init__(self, db: Session, events: Optional[EventBus] = None):
        self.db = db
        self.rules = RuleStore(db, events)
        self.ledger = CommissionLedger(db, events)

    def record(
        self,
        agent_id: int,
        action_type: ActionType,
        target: Union[OwnerTarget, TenantTarget],
        related_entity: Optional[RelatedEntity] = None,
        transaction_amount: Optional[int] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> RecordResult:
        """Record an agent action, then attempt to create its commission."""
        self._resolve_agent(agent_id)
        self._validate_target(target)
        if transaction_amount is not None and transaction_amount < 0:
            raise CommissionError(ErrorKind.INVALID_AMOUNT, "Transaction amount must be non-negative")

        action_type = ActionType(action_type)
        transaction = AgentTransaction(
            agent_id=agent_id,
            action_type=action_type,
            target_user_type=TargetUserType(target.kind),
            target_user_id=target.user_id if isinstance(target, OwnerTarget) else None,
            target_tenant_id=target.tenant_id if isinstance(target, TenantTarget) else None,
            related_entity_type=related_entity.entity_type if related_entity else None,
            related_entity_id=related_entity.entity_id if related_entity else None,
            description=description,
            extra=metadata,
            transaction_amount=transaction_amount,
        )
        self.db.add(transaction)
        self.db.commit()
        self.db.refresh(transaction)
        logger.info(f"Agent {agent_id} recorded {action_type.value} as transaction {transaction.id}")

        result = RecordResult(transaction=transaction)
        try:
            result.commission = self._create_commission(transaction)
        except CommissionError as e:
            if e.kind not in NON_FATAL_COMMISSION_ERRORS:
                raise
            logger.warning(f"No commission for transaction {transaction.id}: {e.kind.value}: {e.message}")
            result.commission_error = e
        return result

    def list_transactions(self, agent_id: int, page: int = 1, limit: int = 20) -> Tuple[List[AgentTransaction], int]:
        query = self.db.query(AgentTransaction).filter(AgentTransaction.agent_id == agent_id)
        total = query.count()
        rows = (
            query.order_by(AgentTransaction.created_at.desc(), AgentTransaction.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    # ── Helpers ──

    def _create_commission(self, transaction: AgentTransaction) -> Optional[AgentCommission]:
        # Re-read per transaction so a just-deactivated rule is never applied
        rule = self.rules.find_active_rule(transaction.action_type)
        if rule is None:
            logger.info(f"Transaction {transaction.id}: no active rule for {transaction.action_type.value}")
            return None

        amount = compute_commission(rule, transaction.transaction_amount)
        return self.ledger.create(transaction, rule, amount)

    def _resolve_agent(self, agent_id: int) -> User:
        agent = self.db.query(User).filter(User.id == agent_id).first()
        if not agent or agent.role != UserRole.AGENT.value or not agent.is_active:
            raise CommissionError(ErrorKind.UNKNOWN_AGENT, f"User {agent_id} is not an active agent")
        return agent

    def _validate_target(self, target) -> None:
        if isinstance(target, OwnerTarget):
            owner = self.db.query(User).filter(User.id == target.user_id).first()
            if not owner or owner.role not in OWNER_SIDE_ROLES:
                raise CommissionError(ErrorKind.INVALID_TARGET, f"User {target.user_id} is not a property owner")
        elif isinstance(target, TenantTarget):
            tenant = self.db.query(Tenant).filter(Tenant.id == target.tenant_id).first()
            if not tenant:
                raise CommissionError(ErrorKind.INVALID_TARGET, f"Tenant {target.tenant_id} not found")
        else:
            raise CommissionError(ErrorKind.INVALID_TARGET, f"Unsupported target: {target!r}")
