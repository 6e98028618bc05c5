"""
Exemption Evaluator

Shrinks the taxable base by walking exemption rules in store order
(priority first, newest first). A matching full exemption zeroes the base
and ends evaluation; percentage clauses are taken from the original amount,
fixed clauses are subtracted as-is.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from ledgertax.models.tax_rule import TaxRule, TaxExemption, TaxRuleType, ExemptionType

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass
class ExemptionOutcome:
    taxable_amount: Decimal
    applied_rules: List[str] = field(default_factory=list)
    full_exemption: bool = False


def format_number(value: Decimal) -> str:
    """Render a Decimal without trailing zeros (10.00 -> 10, 7.50 -> 7.5)"""
    normalized = Decimal(value).normalize()
    if normalized == normalized.to_integral():
        return str(normalized.quantize(Decimal("1")))
    return format(normalized, "f")


def _category_matches(
    exemption: TaxExemption,
    category_id: Optional[str],
    category_name: Optional[str],
) -> bool:
    if category_id and exemption.category_id == category_id:
        return True
    return bool(category_name) and exemption.category_name == category_name


def exemption_matches(
    exemption: TaxExemption,
    amount: Decimal,
    category_id: Optional[str] = None,
    category_name: Optional[str] = None,
) -> bool:
    """Whether an exemption clause applies to this transaction"""
    exemption_type = exemption.exemption_type

    if exemption_type in (ExemptionType.FULL, ExemptionType.CATEGORY):
        return _category_matches(exemption, category_id, category_name)

    if exemption_type == ExemptionType.AMOUNT_THRESHOLD:
        return exemption.threshold_amount is not None and amount <= exemption.threshold_amount

    if exemption_type == ExemptionType.PARTIAL:
        # Unscoped partial clauses apply to every transaction
        if exemption.category_id is None and exemption.category_name is None:
            return True
        return _category_matches(exemption, category_id, category_name)

    # product / vendor clauses have no matching input on a calculation
    return False


def apply_exemptions(
    amount: Decimal,
    rules: List[TaxRule],
    category_id: Optional[str] = None,
    category_name: Optional[str] = None,
) -> ExemptionOutcome:
    """Reduce the amount by every matching exemption clause"""
    outcome = ExemptionOutcome(taxable_amount=amount)

    for rule in rules:
        if rule.rule_type != TaxRuleType.EXEMPTION or not rule.exemptions:
            continue

        for exemption in rule.exemptions:
            if not exemption_matches(exemption, amount, category_id, category_name):
                continue

            if exemption.exemption_type == ExemptionType.FULL:
                outcome.taxable_amount = ZERO
                outcome.full_exemption = True
                outcome.applied_rules.append(
                    f"Full exemption: {rule.rule_name} - {exemption.description or 'Category exemption'}"
                )
                return outcome

            if exemption.exemption_percentage:
                outcome.taxable_amount -= amount * exemption.exemption_percentage / HUNDRED
                outcome.applied_rules.append(
                    f"Partial exemption ({format_number(exemption.exemption_percentage)}%): {rule.rule_name}"
                )
            elif exemption.exemption_amount:
                outcome.taxable_amount -= exemption.exemption_amount
                outcome.applied_rules.append(
                    f"Partial exemption ({format_number(exemption.exemption_amount)}): {rule.rule_name}"
                )

    outcome.taxable_amount = max(ZERO, outcome.taxable_amount)
    return outcome
