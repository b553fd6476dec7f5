"""Tests for commission reporting.

Covers:
- Per-agent totals equal the sum of the agent's commission amounts
- Per-action-type breakdown with labels
- Explicit time range filtering
- Agent earnings and statement data
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import CommissionError, ErrorKind
from app.models.commission import ActionType, AgentCommission, CommissionType
from app.models.user import UserRole
from app.schemas.commission import OwnerTarget, TenantTarget
from app.services.commission import CommissionLedger
from app.services.reporting import ReportingAggregator, ReportRange
from app.services.transactions import TransactionRecorder


def _at(days_ago: int) -> datetime:
    return datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc) - timedelta(days=days_ago)


@pytest.fixture
def rules(make_rule):
    make_rule(ActionType.PROPERTY_REGISTRATION, CommissionType.FIXED, "5000")
    make_rule(ActionType.TENANT_ONBOARDING, CommissionType.FIXED, "10000")
    make_rule(ActionType.RENT_COLLECTION, CommissionType.PERCENTAGE, "2", min_amount=500, max_amount=20000)


@pytest.fixture
def ledger_data(db, bus, rules, agent, owner, tenant, make_user):
    """Agent: 2 registrations (one paid) + 1 rent collection; second agent: 1 onboarding (cancelled)."""
    second = make_user(UserRole.AGENT.value, first_name="Aline", last_name="Uwase")
    recorder = TransactionRecorder(db, bus)
    ledger = CommissionLedger(db, bus)

    reg1 = recorder.record(agent.id, ActionType.PROPERTY_REGISTRATION, OwnerTarget(user_id=owner.id)).commission
    reg2 = recorder.record(agent.id, ActionType.PROPERTY_REGISTRATION, OwnerTarget(user_id=owner.id)).commission
    rent = recorder.record(
        agent.id, ActionType.RENT_COLLECTION, TenantTarget(tenant_id=tenant.id), transaction_amount=350000,
    ).commission
    onboard = recorder.record(second.id, ActionType.TENANT_ONBOARDING, TenantTarget(tenant_id=tenant.id)).commission

    ledger.pay(reg1.id)
    ledger.cancel(onboard.id)

    # Spread creation times: reg1 and rent 5 days before Oct 1, reg2 and onboarding 40 days before
    for commission, days_ago in ((reg1, 5), (rent, 5), (reg2, 40), (onboard, 40)):
        db.query(AgentCommission).filter(AgentCommission.id == commission.id).update(
            {AgentCommission.created_at: _at(days_ago)}, synchronize_session=False,
        )
    db.commit()
    return {"agent": agent, "second": second}


class TestReportByAgent:
    def test_totals_match_commission_sums(self, db, ledger_data):
        rows = ReportingAggregator(db).report_by_agent(ReportRange())
        by_id = {r.agent_id: r for r in rows}

        first = by_id[ledger_data["agent"].id]
        assert first.count == 3
        assert first.total == 5000 + 5000 + 7000
        assert first.paid == 5000
        assert first.pending == 12000
        assert first.cancelled == 0
        assert first.agent_name == "Jean Mugisha"

        second = by_id[ledger_data["second"].id]
        assert second.total == 10000
        assert second.cancelled == 10000

        for row in rows:
            expected = sum(
                c.amount for c in db.query(AgentCommission).filter(AgentCommission.agent_id == row.agent_id)
            )
            assert row.total == expected

    def test_sorted_by_total_descending(self, db, ledger_data):
        rows = ReportingAggregator(db).report_by_agent()
        assert [r.total for r in rows] == sorted((r.total for r in rows), reverse=True)

    def test_time_range(self, db, ledger_data):
        window = ReportRange(start=_at(10), end=_at(0))
        rows = ReportingAggregator(db).report_by_agent(window)
        assert len(rows) == 1
        assert rows[0].agent_id == ledger_data["agent"].id
        assert rows[0].total == 5000 + 7000


class TestReportByActionType:
    def test_breakdown_with_labels(self, db, ledger_data):
        rows = {r.action_type: r for r in ReportingAggregator(db).report_by_action_type()}
        assert rows[ActionType.PROPERTY_REGISTRATION].count == 2
        assert rows[ActionType.PROPERTY_REGISTRATION].total == 10000
        assert rows[ActionType.PROPERTY_REGISTRATION].label == "Property Registration"
        assert rows[ActionType.RENT_COLLECTION].total == 7000
        assert rows[ActionType.TENANT_ONBOARDING].total == 10000

    def test_end_is_exclusive(self, db, ledger_data):
        rows = ReportingAggregator(db).report_by_action_type(ReportRange(end=_at(5)))
        assert {r.action_type for r in rows} == {ActionType.PROPERTY_REGISTRATION, ActionType.TENANT_ONBOARDING}


class TestSummaryAndEarnings:
    def test_summary(self, db, ledger_data):
        totals = ReportingAggregator(db).summary()
        assert totals.count == 4
        assert totals.total == 27000
        assert totals.pending + totals.paid + totals.cancelled == totals.total

    def test_agent_earnings_exclude_cancelled(self, db, ledger_data):
        earnings = ReportingAggregator(db).agent_earnings(ledger_data["second"].id)
        assert earnings.total_earned == 0
        assert earnings.commission_count == 1
        assert earnings.transaction_count == 1

    def test_agent_earnings(self, db, ledger_data):
        earnings = ReportingAggregator(db).agent_earnings(ledger_data["agent"].id)
        assert earnings.total_earned == 17000
        assert earnings.total_paid == 5000
        assert earnings.total_pending == 12000
        assert earnings.transaction_count == 3

    def test_report_range_rejects_inverted_window(self):
        with pytest.raises(ValueError):
            ReportRange(start=_at(0), end=_at(10))

    def test_report_range_treats_naive_bounds_as_utc(self, db, ledger_data):
        window = ReportRange(start=_at(10).replace(tzinfo=None), end=_at(0))
        assert window.start == _at(10)
        rows = ReportingAggregator(db).report_by_agent(window)
        assert rows == ReportingAggregator(db).report_by_agent(ReportRange(start=_at(10), end=_at(0)))


class TestAgentStatement:
    def test_statement_lines(self, db, ledger_data):
        statement = ReportingAggregator(db).agent_statement(ledger_data["agent"].id)
        assert statement["agent_name"] == "Jean Mugisha"
        assert len(statement["line_items"]) == 3
        assert sum(item["amount"] for item in statement["line_items"]) == 17000
        assert {item["action_type"] for item in statement["line_items"]} == {"Property Registration", "Rent Collection"}

    def test_unknown_agent(self, db):
        with pytest.raises(CommissionError) as exc_info:
            ReportingAggregator(db).agent_statement(404)
        assert exc_info.value.kind == ErrorKind.NOT_FOUND
