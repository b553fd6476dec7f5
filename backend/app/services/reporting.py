"""Read-only commission reporting.

Every figure is derived from ``agent_commissions`` (joined to transactions and
users); nothing here writes. Callers pass the time window explicitly.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.core.errors import CommissionError, ErrorKind
from app.models.commission import (
    ActionType, AgentCommission, AgentTransaction, CommissionStatus, action_type_label,
)
from app.models.user import User
from app.schemas.commission import (
    ActionTypeReportRow, AgentEarnings, AgentReportRow, CommissionReport, CommissionTotals,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportRange:
    """Half-open window [start, end) on commission creation time; None means unbounded.

    Naive bounds are taken as UTC, matching how timestamps are stored.
    """
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "start", _as_utc(self.start))
        object.__setattr__(self, "end", _as_utc(self.end))
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("Report start must not be after report end")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


ALL_TIME = ReportRange()


def _sum_where(status: CommissionStatus):
    return func.coalesce(func.sum(case((AgentCommission.status == status, AgentCommission.amount), else_=0)), 0)


class ReportingAggregator:
    def __init__(self, db: Session):
        self.db = db

    def _in_range(self, query, window: ReportRange, column=AgentCommission.created_at):
        if window.start is not None:
            query = query.filter(column >= window.start)
        if window.end is not None:
            query = query.filter(column < window.end)
        return query

    def report_by_agent(self, window: ReportRange = ALL_TIME) -> List[AgentReportRow]:
        query = (
            self.db.query(
                AgentCommission.agent_id,
                User.first_name,
                User.last_name,
                User.email,
                func.count(AgentCommission.id),
                func.coalesce(func.sum(AgentCommission.amount), 0),
                _sum_where(CommissionStatus.PENDING),
                _sum_where(CommissionStatus.PAID),
                _sum_where(CommissionStatus.CANCELLED),
            )
            .select_from(AgentCommission)
            .outerjoin(User, User.id == AgentCommission.agent_id)
            .group_by(AgentCommission.agent_id, User.first_name, User.last_name, User.email)
        )
        rows = self._in_range(query, window).all()

        report = [
            AgentReportRow(
                agent_id=agent_id,
                agent_name=f"{first or ''} {last or ''}".strip() or None,
                agent_email=email,
                count=count,
                total=int(total),
                pending=int(pending),
                paid=int(paid),
                cancelled=int(cancelled),
            )
            for agent_id, first, last, email, count, total, pending, paid, cancelled in rows
        ]
        report.sort(key=lambda r: (-r.total, r.agent_id))
        return report

    def report_by_action_type(self, window: ReportRange = ALL_TIME) -> List[ActionTypeReportRow]:
        query = (
            self.db.query(
                AgentTransaction.action_type,
                func.count(AgentCommission.id),
                func.coalesce(func.sum(AgentCommission.amount), 0),
            )
            .select_from(AgentCommission)
            .join(AgentTransaction, AgentTransaction.id == AgentCommission.transaction_id)
            .group_by(AgentTransaction.action_type)
        )
        rows = self._in_range(query, window).all()

        report = [
            ActionTypeReportRow(
                action_type=ActionType(action_type),
                label=action_type_label(action_type),
                count=count,
                total=int(total),
            )
            for action_type, count, total in rows
        ]
        report.sort(key=lambda r: (-r.total, r.action_type.value))
        return report

    def summary(self, window: ReportRange = ALL_TIME, agent_id: Optional[int] = None) -> CommissionTotals:
        query = self.db.query(
            func.count(AgentCommission.id),
            func.coalesce(func.sum(AgentCommission.amount), 0),
            _sum_where(CommissionStatus.PENDING),
            _sum_where(CommissionStatus.PAID),
            _sum_where(CommissionStatus.CANCELLED),
        )
        if agent_id is not None:
            query = query.filter(AgentCommission.agent_id == agent_id)
        count, total, pending, paid, cancelled = self._in_range(query, window).one()
        return CommissionTotals(
            count=count, total=int(total), pending=int(pending), paid=int(paid), cancelled=int(cancelled),
        )

    def commission_report(self, window: ReportRange = ALL_TIME) -> CommissionReport:
        return CommissionReport(
            start=window.start,
            end=window.end,
            totals=self.summary(window),
            by_agent=self.report_by_agent(window),
            by_action_type=self.report_by_action_type(window),
        )

    def agent_earnings(self, agent_id: int, window: ReportRange = ALL_TIME) -> AgentEarnings:
        """Earnings for one agent; cancelled commissions are not earnings."""
        totals = self.summary(window, agent_id=agent_id)
        transaction_count = self._in_range(
            self.db.query(func.count(AgentTransaction.id)).filter(AgentTransaction.agent_id == agent_id),
            window,
            column=AgentTransaction.created_at,
        ).scalar()
        return AgentEarnings(
            agent_id=agent_id,
            total_earned=totals.pending + totals.paid,
            total_pending=totals.pending,
            total_paid=totals.paid,
            transaction_count=transaction_count or 0,
            commission_count=totals.count,
        )

    def agent_statement(self, agent_id: int, window: ReportRange = ALL_TIME) -> dict:
        """Data for the PDF earnings statement of one agent."""
        agent = self.db.query(User).filter(User.id == agent_id).first()
        if not agent:
            raise CommissionError(ErrorKind.NOT_FOUND, f"Agent {agent_id} not found")

        query = (
            self.db.query(AgentCommission, AgentTransaction)
            .join(AgentTransaction, AgentTransaction.id == AgentCommission.transaction_id)
            .filter(AgentCommission.agent_id == agent.id)
        )
        rows = self._in_range(query, window).order_by(AgentCommission.created_at, AgentCommission.id).all()

        line_items = [
            {
                "commission_id": commission.id,
                "date": commission.created_at,
                "action_type": action_type_label(transaction.action_type),
                "description": transaction.description or "",
                "transaction_amount": transaction.transaction_amount,
                "amount": commission.amount,
                "status": CommissionStatus(commission.status).value,
                "paid_at": commission.paid_at,
            }
            for commission, transaction in rows
        ]
        return {
            "agent_name": agent.full_name,
            "agent_email": agent.email,
            "agent_phone": agent.phone,
            "start": window.start,
            "end": window.end,
            "summary": self.agent_earnings(agent.id, window),
            "line_items": line_items,
        }
