"""
Bracket Resolver
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from ledgertax.models.tax_rule import TaxRule, TaxBracket, TaxRuleType
from ledgertax.services.exemptions import format_number


@dataclass
class BracketMatch:
    rule: TaxRule
    bracket: TaxBracket
    is_fallback: bool = False  # no range contained the amount; highest bracket used

    @property
    def rate(self) -> Decimal:
        return self.bracket.rate

    def describe(self) -> str:
        if self.is_fallback:
            return f"Tax bracket (highest rate): {format_number(self.bracket.rate)}%"
        upper = "∞" if self.bracket.max_amount is None else format_number(self.bracket.max_amount)
        return (
            f"Tax bracket: {format_number(self.bracket.rate)}% "
            f"({format_number(self.bracket.min_amount)} - {upper})"
        )


def bracket_contains(bracket: TaxBracket, amount: Decimal) -> bool:
    """Inclusive on both ends; a missing upper bound is unbounded"""
    if amount < bracket.min_amount:
        return False
    return bracket.max_amount is None or amount <= bracket.max_amount


def resolve_bracket(amount: Decimal, rules: List[TaxRule]) -> Optional[BracketMatch]:
    """Find the bracket for an amount on the highest-priority bracket rule"""
    bracket_rules = [rule for rule in rules if rule.rule_type == TaxRuleType.BRACKET]
    if not bracket_rules:
        return None

    # Only the leading bracket rule is consulted
    bracket_rule = bracket_rules[0]
    if not bracket_rule.brackets:
        return None

    ordered = sorted(bracket_rule.brackets, key=lambda b: (b.min_amount, b.bracket_order))
    for bracket in ordered:
        if bracket_contains(bracket, amount):
            return BracketMatch(rule=bracket_rule, bracket=bracket)

    return BracketMatch(rule=bracket_rule, bracket=ordered[-1], is_fallback=True)
