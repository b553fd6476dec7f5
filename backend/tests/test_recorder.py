"""Tests for the transaction recorder.

Covers:
- Agent and target validation
- Transaction persisted before the commission step
- No active rule -> no commission, no error
- Missing amount on percentage rules is reported, transaction kept
- Transactions are immutable
"""

import pytest
from pydantic import ValidationError

from app.core.errors import CommissionError, ErrorKind
from app.models.commission import (
    ActionType, AgentCommission, AgentTransaction, CommissionType, RelatedEntityType, TargetUserType,
)
from app.models.user import UserRole
from app.schemas.commission import OwnerTarget, RelatedEntity, TenantTarget, target_from_columns
from app.services.transactions import TransactionRecorder


# ── Validation ───────────────────────────────────────────


class TestAgentValidation:
    def test_unknown_user(self, db, bus, owner):
        with pytest.raises(CommissionError) as exc_info:
            TransactionRecorder(db, bus).record(999, ActionType.PROPERTY_REGISTRATION, OwnerTarget(user_id=owner.id))
        assert exc_info.value.kind == ErrorKind.UNKNOWN_AGENT

    def test_non_agent_user(self, db, bus, owner, admin):
        with pytest.raises(CommissionError) as exc_info:
            TransactionRecorder(db, bus).record(admin.id, ActionType.PROPERTY_REGISTRATION, OwnerTarget(user_id=owner.id))
        assert exc_info.value.kind == ErrorKind.UNKNOWN_AGENT

    def test_suspended_agent(self, db, bus, owner, make_user):
        suspended = make_user(UserRole.AGENT.value, is_active=False)
        with pytest.raises(CommissionError) as exc_info:
            TransactionRecorder(db, bus).record(
                suspended.id, ActionType.PROPERTY_REGISTRATION, OwnerTarget(user_id=owner.id),
            )
        assert exc_info.value.kind == ErrorKind.UNKNOWN_AGENT
        assert db.query(AgentTransaction).count() == 0


class TestTargetValidation:
    def test_owner_target_must_be_owner_side_user(self, db, bus, agent, make_user):
        tenant_user = make_user(UserRole.TENANT.value)
        with pytest.raises(CommissionError) as exc_info:
            TransactionRecorder(db, bus).record(
                agent.id, ActionType.PROPERTY_REGISTRATION, OwnerTarget(user_id=tenant_user.id),
            )
        assert exc_info.value.kind == ErrorKind.INVALID_TARGET

    def test_agency_accepted_as_owner_target(self, db, bus, agent, make_user):
        agency = make_user(UserRole.AGENCY.value)
        result = TransactionRecorder(db, bus).record(
            agent.id, ActionType.PROPERTY_REGISTRATION, OwnerTarget(user_id=agency.id),
        )
        assert result.transaction.target_user_id == agency.id

    def test_unknown_tenant(self, db, bus, agent):
        with pytest.raises(CommissionError) as exc_info:
            TransactionRecorder(db, bus).record(agent.id, ActionType.TENANT_ONBOARDING, TenantTarget(tenant_id=404))
        assert exc_info.value.kind == ErrorKind.INVALID_TARGET

    def test_negative_amount(self, db, bus, agent, tenant):
        with pytest.raises(CommissionError) as exc_info:
            TransactionRecorder(db, bus).record(
                agent.id, ActionType.RENT_COLLECTION, TenantTarget(tenant_id=tenant.id), transaction_amount=-100,
            )
        assert exc_info.value.kind == ErrorKind.INVALID_AMOUNT


class TestTargetFromColumns:
    def test_owner_columns(self):
        assert target_from_columns("owner", 5, None) == OwnerTarget(user_id=5)

    def test_tenant_columns(self):
        assert target_from_columns("tenant", None, 9) == TenantTarget(tenant_id=9)

    @pytest.mark.parametrize(
        "user_type,user_id,tenant_id",
        [("owner", None, 9), ("owner", 5, 9), ("tenant", 5, None), ("tenant", None, None), ("landlord", 5, None)],
    )
    def test_mismatched_columns(self, user_type, user_id, tenant_id):
        with pytest.raises(CommissionError) as exc_info:
            target_from_columns(user_type, user_id, tenant_id)
        assert exc_info.value.kind == ErrorKind.INVALID_TARGET

    def test_target_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            OwnerTarget(user_id=5, tenant_id=9)

    def test_target_is_immutable(self):
        target = TenantTarget(tenant_id=9)
        with pytest.raises(ValidationError):
            target.tenant_id = 10


# ── Recording ────────────────────────────────────────────


class TestRecord:
    def test_fixed_rule_creates_commission(self, db, bus, agent, owner, make_rule):
        make_rule(ActionType.PROPERTY_REGISTRATION, CommissionType.FIXED, "5000")
        result = TransactionRecorder(db, bus).record(
            agent.id,
            ActionType.PROPERTY_REGISTRATION,
            OwnerTarget(user_id=owner.id),
            related_entity=RelatedEntity(entity_type=RelatedEntityType.PROPERTY, entity_id=42),
            description="Registered Kacyiru apartment",
            metadata={"property_name": "Kacyiru Heights"},
        )
        transaction = result.transaction
        assert transaction.target_user_type == TargetUserType.OWNER
        assert transaction.target_tenant_id is None
        assert transaction.related_entity_type == RelatedEntityType.PROPERTY
        assert transaction.related_entity_id == 42
        assert transaction.extra == {"property_name": "Kacyiru Heights"}
        assert result.commission.transaction_id == transaction.id
        assert result.commission_amount == 5000
        assert result.commission_error is None

    def test_percentage_rule_on_tenant_target(self, db, bus, agent, tenant, make_rule):
        make_rule(ActionType.RENT_COLLECTION, CommissionType.PERCENTAGE, "2", min_amount=500, max_amount=20000)
        result = TransactionRecorder(db, bus).record(
            agent.id, ActionType.RENT_COLLECTION, TenantTarget(tenant_id=tenant.id), transaction_amount=350000,
        )
        assert result.transaction.target_tenant_id == tenant.id
        assert result.commission_amount == 7000

    def test_no_active_rule_means_no_commission(self, db, bus, agent, owner, make_rule):
        make_rule(ActionType.PROPERTY_UPDATE, is_active=False)
        result = TransactionRecorder(db, bus).record(agent.id, ActionType.PROPERTY_UPDATE, OwnerTarget(user_id=owner.id))
        assert result.transaction.id is not None
        assert result.commission is None
        assert result.commission_error is None
        assert db.query(AgentCommission).count() == 0

    def test_missing_amount_keeps_transaction(self, db, bus, agent, tenant, make_rule):
        make_rule(ActionType.RENT_COLLECTION, CommissionType.PERCENTAGE, "2")
        result = TransactionRecorder(db, bus).record(
            agent.id, ActionType.RENT_COLLECTION, TenantTarget(tenant_id=tenant.id),
        )
        assert result.commission is None
        assert result.commission_error.kind == ErrorKind.MISSING_AMOUNT
        assert db.query(AgentTransaction).count() == 1
        assert db.query(AgentCommission).count() == 0

    def test_zero_percentage_creates_zero_commission(self, db, bus, agent, tenant, make_rule):
        make_rule(ActionType.RENT_COLLECTION, CommissionType.PERCENTAGE, "0")
        result = TransactionRecorder(db, bus).record(
            agent.id, ActionType.RENT_COLLECTION, TenantTarget(tenant_id=tenant.id), transaction_amount=100000,
        )
        assert result.commission is not None
        assert result.commission_amount == 0

    def test_list_transactions(self, db, bus, agent, owner, make_user):
        other = make_user(UserRole.AGENT.value)
        recorder = TransactionRecorder(db, bus)
        for _ in range(3):
            recorder.record(agent.id, ActionType.PROPERTY_UPDATE, OwnerTarget(user_id=owner.id))
        recorder.record(other.id, ActionType.PROPERTY_UPDATE, OwnerTarget(user_id=owner.id))

        rows, total = recorder.list_transactions(agent.id, page=1, limit=2)
        assert total == 3
        assert len(rows) == 2
        assert all(r.agent_id == agent.id for r in rows)


class TestImmutability:
    def test_update_is_refused(self, db, bus, agent, owner):
        result = TransactionRecorder(db, bus).record(agent.id, ActionType.PROPERTY_UPDATE, OwnerTarget(user_id=owner.id))
        result.transaction.description = "edited"
        with pytest.raises(ValueError):
            db.commit()
        db.rollback()
