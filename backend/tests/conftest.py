"""
Shared fixtures: an in-memory Rule Store and rule builders
"""

import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from ledgertax.models.tax_rule import (
    TaxRule, TaxBracket, TaxExemption, CategoryTaxRule, TaxRuleType
)
from ledgertax.models.tax_calculation import TaxCalculationInput
from ledgertax.monitoring.metrics import metrics_collector
from ledgertax.services.rule_cache import rule_cache
from ledgertax.services.rule_store import RuleStore
from ledgertax.services.tax_rules_engine import TaxRulesEngine

ORG_ID = "7d1c6a52-0f5e-4d59-9a51-3c1f8a0e2b11"
OTHER_ORG_ID = "0b8e2f3a-6c4d-4e7f-8a9b-1c2d3e4f5a6b"
FOOD_ID = "c0ffee00-0000-4000-8000-000000000001"
ELECTRONICS_ID = "c0ffee00-0000-4000-8000-000000000002"


def is_rule_active(rule: TaxRule, region: Optional[str], as_of: date) -> bool:
    """Same filter the SQL store applies: enabled, in its date window, scoped to the region"""
    if not rule.is_active:
        return False
    if rule.effective_date is not None and rule.effective_date > as_of:
        return False
    if rule.expiry_date is not None and rule.expiry_date < as_of:
        return False
    return rule.region is None or rule.region == region


def sort_rules(rules: List[TaxRule]) -> List[TaxRule]:
    """Highest priority first, newest first within a priority"""
    by_created = sorted(rules, key=lambda r: r.created_at or datetime.min, reverse=True)
    return sorted(by_created, key=lambda r: r.priority, reverse=True)


class InMemoryRuleStore(RuleStore):
    """Rule Store over a plain list, applying the same activity filter as SQL"""

    def __init__(self, rules: Optional[List[TaxRule]] = None, regions: Optional[Dict[str, str]] = None):
        self.rules = list(rules or [])
        self.regions = dict(regions or {})
        self.lookups = []
        self.error: Optional[Exception] = None

    async def get_active_rules(self, organization_id, region, as_of):
        self.lookups.append((organization_id, region, as_of))
        if self.error is not None:
            raise self.error
        active = [
            rule for rule in self.rules
            if rule.organization_id == organization_id and is_rule_active(rule, region, as_of)
        ]
        return sort_rules(active)

    async def get_organization_region(self, organization_id):
        if self.error is not None:
            raise self.error
        return self.regions.get(organization_id)


class RuleFactory:
    """Builds rules with increasing created_at so store order is predictable"""

    def __init__(self):
        self._sequence = 0
        self._clock = datetime(2025, 1, 1, 9, 0)

    def _next(self):
        self._sequence += 1
        self._clock += timedelta(minutes=1)
        return f"rule-{self._sequence}", self._clock

    def rule(self, rule_type: TaxRuleType, rule_name: Optional[str] = None, **fields) -> TaxRule:
        rule_id, created_at = self._next()
        data = {
            "id": rule_id,
            "organization_id": ORG_ID,
            "rule_type": rule_type,
            "rule_name": rule_name or f"{rule_type.value} rule {self._sequence}",
            "created_at": created_at,
            "updated_at": created_at,
        }
        data.update(fields)
        return TaxRule(**data)

    def bracket_rule(self, brackets, **fields) -> TaxRule:
        """brackets: iterable of (min_amount, max_amount, rate)"""
        rule = self.rule(TaxRuleType.BRACKET, **fields)
        rule.brackets = [
            TaxBracket(
                id=f"{rule.id}-bracket-{index}",
                rule_id=rule.id,
                min_amount=Decimal(str(min_amount)),
                max_amount=None if max_amount is None else Decimal(str(max_amount)),
                rate=Decimal(str(rate)),
                bracket_order=index,
            )
            for index, (min_amount, max_amount, rate) in enumerate(brackets)
        ]
        return rule

    def exemption_rule(self, exemptions, **fields) -> TaxRule:
        """exemptions: iterable of dicts of TaxExemption fields"""
        rule = self.rule(TaxRuleType.EXEMPTION, **fields)
        rule.exemptions = [
            TaxExemption(id=f"{rule.id}-exemption-{index}", rule_id=rule.id, **exemption)
            for index, exemption in enumerate(exemptions)
        ]
        return rule

    def category_rule(self, rates, **fields) -> TaxRule:
        """rates: iterable of (category_id, category_name, rate)"""
        rule = self.rule(TaxRuleType.CATEGORY, **fields)
        category_rules = []
        for index, (category_id, category_name, rate) in enumerate(rates):
            _, created_at = self._next()
            category_rules.append(CategoryTaxRule(
                id=f"{rule.id}-category-{index}",
                rule_id=rule.id,
                category_id=category_id,
                category_name=category_name,
                rate=Decimal(str(rate)),
                created_at=created_at,
            ))
        rule.category_rules = category_rules
        return rule


class FakeRow:
    def __init__(self, **values):
        self._mapping = values


class FakeResult:
    def __init__(self, rows=None):
        self.rows = list(rows or [])

    def fetchone(self):
        return self.rows[0] if self.rows else None

    def fetchall(self):
        return list(self.rows)


class FakeDb:
    """Async session stand-in that replays queued results in order"""

    def __init__(self, *results: FakeResult):
        self.results = list(results)
        self.executed = []
        self.info = {}

    async def execute(self, statement, params=None):
        self.executed.append((str(statement), params))
        if self.results:
            return self.results.pop(0)
        return FakeResult()


def rule_row(**fields) -> FakeRow:
    values = {
        "id": uuid.UUID("11111111-2222-4333-8444-555555555555"),
        "organization_id": uuid.UUID(ORG_ID),
        "region": None,
        "rule_type": "bracket",
        "rule_name": "Progressive",
        "description": None,
        "rule_config": '{"progressive": true}',
        "effective_date": None,
        "expiry_date": None,
        "is_active": True,
        "priority": 10,
        "created_at": datetime(2025, 1, 1, 9, 0),
        "updated_at": datetime(2025, 1, 1, 9, 0),
    }
    values.update(fields)
    return FakeRow(**values)


def make_input(amount, **fields) -> TaxCalculationInput:
    fields.setdefault("organization_id", ORG_ID)
    fields.setdefault("as_of", date(2025, 6, 1))
    return TaxCalculationInput(amount=Decimal(str(amount)), **fields)


@pytest.fixture(autouse=True)
def reset_process_state():
    metrics_collector.reset()
    rule_cache.clear()
    yield
    rule_cache.clear()


@pytest.fixture
def rules():
    return RuleFactory()


@pytest.fixture
def store():
    return InMemoryRuleStore(regions={ORG_ID: "uae"})


@pytest.fixture
def engine(store):
    return TaxRulesEngine(store)
