"""Tests for the commission rule store.

Covers:
- Active rule lookup (inactive rules never returned, always re-read)
- Rule validation
- Single active rule per action type
- Updates, deactivation and deletion guard
- Events published for every mutation
"""

from decimal import Decimal

import pytest

from app.core.errors import CommissionError, ErrorKind
from app.core.events import EventKind
from app.models.commission import ActionType, CommissionType
from app.schemas.commission import CommissionRuleCreate, CommissionRuleUpdate, OwnerTarget
from app.services.rules import DEFAULT_RULES, RuleStore, seed_default_rules, validate_rule_terms
from app.services.transactions import TransactionRecorder


def _rule_data(**kwargs) -> CommissionRuleCreate:
    fields = {
        "action_type": ActionType.RENT_COLLECTION,
        "name": "Rent Collection Commission",
        "commission_type": CommissionType.PERCENTAGE,
        "commission_value": Decimal("2"),
        "min_amount": 500,
        "max_amount": 20000,
    }
    fields.update(kwargs)
    return CommissionRuleCreate(**fields)


# ── Lookup ───────────────────────────────────────────────


class TestFindActiveRule:
    def test_returns_active_rule(self, db, make_rule):
        rule = make_rule(ActionType.PROPERTY_REGISTRATION)
        found = RuleStore(db).find_active_rule(ActionType.PROPERTY_REGISTRATION)
        assert found.id == rule.id

    def test_inactive_rule_is_never_returned(self, db, make_rule):
        make_rule(ActionType.PROPERTY_REGISTRATION, is_active=False)
        assert RuleStore(db).find_active_rule(ActionType.PROPERTY_REGISTRATION) is None

    def test_no_rule_for_action_type(self, db, make_rule):
        make_rule(ActionType.PROPERTY_REGISTRATION)
        assert RuleStore(db).find_active_rule(ActionType.LEASE_RENEWAL) is None

    def test_deactivation_visible_on_next_lookup(self, db, bus, make_rule):
        rule = make_rule(ActionType.PROPERTY_REGISTRATION)
        store = RuleStore(db, bus)
        assert store.find_active_rule(ActionType.PROPERTY_REGISTRATION) is not None
        store.deactivate_rule(rule.id)
        assert store.find_active_rule(ActionType.PROPERTY_REGISTRATION) is None

    def test_get_rule_not_found(self, db):
        with pytest.raises(CommissionError) as exc_info:
            RuleStore(db).get_rule(999)
        assert exc_info.value.kind == ErrorKind.NOT_FOUND


# ── Validation ───────────────────────────────────────────


class TestValidateRuleTerms:
    @pytest.mark.parametrize(
        "commission_type,value,min_amount,max_amount",
        [
            (CommissionType.PERCENTAGE, "101", None, None),
            (CommissionType.PERCENTAGE, "-1", None, None),
            (CommissionType.PERCENTAGE, "2", 20000, 500),
            (CommissionType.PERCENTAGE, "2", -5, None),
            (CommissionType.FIXED, "5000.50", None, None),
            (CommissionType.FIXED, "5000", 100, None),
        ],
    )
    def test_invalid_terms(self, commission_type, value, min_amount, max_amount):
        with pytest.raises(CommissionError) as exc_info:
            validate_rule_terms(commission_type, Decimal(value), min_amount, max_amount)
        assert exc_info.value.kind == ErrorKind.INVALID_RULE

    @pytest.mark.parametrize(
        "commission_type,value,min_amount,max_amount",
        [
            (CommissionType.PERCENTAGE, "0", None, None),
            (CommissionType.PERCENTAGE, "100", None, None),
            (CommissionType.PERCENTAGE, "2", 500, 500),
            (CommissionType.FIXED, "0", None, None),
            (CommissionType.FIXED, "10000.00", None, None),
        ],
    )
    def test_valid_terms(self, commission_type, value, min_amount, max_amount):
        validate_rule_terms(commission_type, Decimal(value), min_amount, max_amount)


# ── Writes ───────────────────────────────────────────────


class TestCreateRule:
    def test_create_publishes_event(self, db, bus, recorder, admin):
        rule = RuleStore(db, bus).create_rule(_rule_data(), created_by=admin.id)
        assert rule.id is not None
        assert rule.created_by == admin.id
        assert recorder.kinds == [EventKind.RULE_CREATED]
        event = recorder.events[0]
        assert event.actor_id == admin.id
        assert event.before is None
        assert Decimal(event.after["commission_value"]) == Decimal("2")

    def test_second_active_rule_rejected(self, db, bus):
        store = RuleStore(db, bus)
        store.create_rule(_rule_data())
        with pytest.raises(CommissionError) as exc_info:
            store.create_rule(_rule_data(name="Another"))
        assert exc_info.value.kind == ErrorKind.ACTIVE_RULE_EXISTS

    def test_inactive_rule_alongside_active_allowed(self, db, bus):
        store = RuleStore(db, bus)
        store.create_rule(_rule_data())
        draft = store.create_rule(_rule_data(name="Draft", is_active=False))
        assert draft.is_active is False
        assert len(store.list_rules()) == 2
        assert len(store.list_rules(include_inactive=False)) == 1

    def test_invalid_rule_not_persisted(self, db, bus, recorder):
        store = RuleStore(db, bus)
        with pytest.raises(CommissionError):
            store.create_rule(_rule_data(min_amount=30000))
        assert store.list_rules() == []
        assert recorder.events == []


class TestUpdateRule:
    def test_update_value(self, db, bus, recorder):
        store = RuleStore(db, bus)
        rule = store.create_rule(_rule_data())
        updated = store.update_rule(rule.id, CommissionRuleUpdate(commission_value=Decimal("3")), actor_id=7)
        assert updated.commission_value == Decimal("3")
        assert recorder.kinds[-1] == EventKind.RULE_UPDATED
        assert Decimal(recorder.events[-1].before["commission_value"]) == Decimal("2")
        assert recorder.events[-1].actor_id == 7

    def test_update_validates_merged_terms(self, db, bus):
        store = RuleStore(db, bus)
        rule = store.create_rule(_rule_data())
        with pytest.raises(CommissionError) as exc_info:
            store.update_rule(rule.id, CommissionRuleUpdate(min_amount=50000))
        assert exc_info.value.kind == ErrorKind.INVALID_RULE

    def test_switch_to_fixed_drops_bounds(self, db, bus):
        store = RuleStore(db, bus)
        rule = store.create_rule(_rule_data())
        updated = store.update_rule(
            rule.id,
            CommissionRuleUpdate(commission_type=CommissionType.FIXED, commission_value=Decimal("1500")),
        )
        assert updated.commission_type == CommissionType.FIXED
        assert updated.min_amount is None
        assert updated.max_amount is None

    def test_deactivate_publishes_deactivate_event(self, db, bus, recorder):
        store = RuleStore(db, bus)
        rule = store.create_rule(_rule_data())
        store.deactivate_rule(rule.id, actor_id=3)
        assert recorder.kinds[-1] == EventKind.RULE_DEACTIVATED

    def test_reactivation_blocked_by_other_active_rule(self, db, bus):
        store = RuleStore(db, bus)
        old = store.create_rule(_rule_data(name="Old"))
        store.deactivate_rule(old.id)
        store.create_rule(_rule_data(name="New"))
        with pytest.raises(CommissionError) as exc_info:
            store.update_rule(old.id, CommissionRuleUpdate(is_active=True))
        assert exc_info.value.kind == ErrorKind.ACTIVE_RULE_EXISTS


class TestDeleteRule:
    def test_delete_unreferenced_rule(self, db, bus, recorder):
        store = RuleStore(db, bus)
        rule = store.create_rule(_rule_data())
        store.delete_rule(rule.id, actor_id=1)
        assert store.list_rules() == []
        assert recorder.kinds[-1] == EventKind.RULE_DELETED
        assert recorder.events[-1].after is None

    def test_delete_referenced_rule_refused(self, db, bus, agent, owner):
        store = RuleStore(db, bus)
        rule = store.create_rule(_rule_data(
            action_type=ActionType.PROPERTY_REGISTRATION,
            commission_type=CommissionType.FIXED,
            commission_value=Decimal("5000"),
            min_amount=None,
            max_amount=None,
        ))
        TransactionRecorder(db, bus).record(agent.id, ActionType.PROPERTY_REGISTRATION, OwnerTarget(user_id=owner.id))

        with pytest.raises(CommissionError) as exc_info:
            store.delete_rule(rule.id)
        assert exc_info.value.kind == ErrorKind.RULE_IN_USE
        assert store.get_rule(rule.id).is_active is True


class TestSeedDefaultRules:
    def test_seeds_once(self, db):
        assert seed_default_rules(db) == len(DEFAULT_RULES)
        assert seed_default_rules(db) == 0
        rent = RuleStore(db).find_active_rule(ActionType.RENT_COLLECTION)
        assert rent.min_amount == 500
        assert rent.max_amount == 20000
