"""
Category Rate Resolver
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from ledgertax.models.tax_rule import TaxRule, CategoryTaxRule


@dataclass
class CategoryRateMatch:
    rule: TaxRule
    category_rule: CategoryTaxRule


def _created_key(value: Optional[datetime]) -> datetime:
    return value.replace(tzinfo=None) if value else datetime.min


def resolve_category_rate(
    rules: List[TaxRule],
    category_id: Optional[str] = None,
    category_name: Optional[str] = None,
) -> Optional[CategoryRateMatch]:
    """
    Pick the category rate for a transaction.

    Category rules are matched by id when an id is given, by the linked
    category's name otherwise. Among several candidates the owning rule with
    the highest priority wins, then the most recently created category rule.
    Rules are expected to be active already (see Rule Store).
    """
    if not category_id and not category_name:
        return None

    candidates: List[CategoryRateMatch] = []
    for rule in rules:
        for category_rule in rule.category_rules:
            if not category_rule.is_active:
                continue
            if category_id:
                matched = category_rule.category_id == category_id
            else:
                matched = category_rule.category_name == category_name
            if matched:
                candidates.append(CategoryRateMatch(rule=rule, category_rule=category_rule))

    if not candidates:
        return None

    return max(
        candidates,
        key=lambda m: (
            m.rule.priority,
            _created_key(m.rule.created_at),
            _created_key(m.category_rule.created_at),
        ),
    )
