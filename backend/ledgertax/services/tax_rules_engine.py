"""
Tax Rules Engine for VAT Calculations

Resolves which tax treatment applies to an amount (special tax types,
exemptions, manual/category/bracket/regional rates) and splits the amount
into base and VAT. The engine reads rules and nothing else; "no rule found"
is a normal outcome resolved by the regional default.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from ledgertax.core.config import settings
from ledgertax.core.exceptions import RuleStoreError
from ledgertax.models.tax_calculation import (
    TaxCalculationInput, TaxCalculationResult, TaxBreakdown,
    VatTaxType, CalculationMethod
)
from ledgertax.monitoring.metrics import metrics_collector, track_timing
from ledgertax.services.exemptions import ExemptionOutcome, apply_exemptions
from ledgertax.services.rate_pipeline import (
    CalculationContext, RateResolution, get_default_tax_rate, resolve_rate
)
from ledgertax.services.rule_store import RuleStore
from ledgertax.services.tax_arithmetic import TaxAmounts, compute_tax

logger = structlog.get_logger()

ZERO = Decimal("0")
NO_TAX_TYPES = (VatTaxType.ZERO_RATED, VatTaxType.EXEMPT)


def assemble_result(
    amount: Decimal,
    exemptions: ExemptionOutcome,
    resolution: Optional[RateResolution],
    amounts: TaxAmounts,
    is_reverse_charge: bool,
) -> TaxCalculationResult:
    """Package amounts, the effective rate and the applied-rules trace"""
    exempt_portion = amount - exemptions.taxable_amount
    base_amount = amounts.base_amount
    if not is_reverse_charge:
        # The exempt part of the price is still part of the net amount
        base_amount += exempt_portion

    breakdown = TaxBreakdown(exemption_amount=exempt_portion)
    applied_rules = list(exemptions.applied_rules)
    effective_rate = ZERO
    if resolution is not None:
        effective_rate = resolution.rate
        applied_rules.extend(resolution.applied_rules)
        breakdown.bracket_amount = resolution.bracket_amount
        breakdown.bracket_rate = resolution.bracket_rate
        breakdown.category_rate = resolution.category_rate

    return TaxCalculationResult(
        base_amount=base_amount,
        vat_amount=amounts.vat_amount,
        effective_tax_rate=effective_rate,
        applied_rules=applied_rules,
        is_reverse_charge=is_reverse_charge,
        breakdown=breakdown,
    )


class TaxRulesEngine:
    """Deterministic VAT rules engine for one organization's rule set"""

    def __init__(self, rule_store: RuleStore):
        self.rule_store = rule_store

    async def resolve_region(self, calculation: TaxCalculationInput) -> str:
        """Region from the request, then the organization, then the baseline region"""
        if calculation.region is not None:
            return calculation.region.value

        region = await self.rule_store.get_organization_region(calculation.organization_id)
        if not region:
            logger.debug("Organization has no region, using baseline",
                         organization_id=calculation.organization_id,
                         region=settings.DEFAULT_REGION)
            return settings.DEFAULT_REGION
        return region

    @track_timing("tax_calculation")
    async def calculate_tax(self, calculation: TaxCalculationInput) -> TaxCalculationResult:
        """Calculate VAT for one transaction"""
        metrics_collector.increment_counter("tax_calculations")
        amount = calculation.amount

        # Special tax types bypass every rule
        if calculation.vat_tax_type in NO_TAX_TYPES:
            metrics_collector.increment_counter("special_tax_type_short_circuits")
            return TaxCalculationResult(
                base_amount=amount,
                vat_amount=ZERO,
                effective_tax_rate=ZERO,
                applied_rules=[f"{calculation.vat_tax_type.value} tax type"],
                is_reverse_charge=False,
            )

        is_reverse_charge = calculation.vat_tax_type == VatTaxType.REVERSE_CHARGE
        method = calculation.calculation_method or CalculationMethod(settings.DEFAULT_CALCULATION_METHOD)
        as_of = calculation.as_of or date.today()

        try:
            region = await self.resolve_region(calculation)
            rules = await self.rule_store.get_active_rules(calculation.organization_id, region, as_of)
        except RuleStoreError:
            metrics_collector.increment_counter("rule_store_errors")
            raise

        logger.info("Calculating tax",
                    organization_id=calculation.organization_id,
                    region=region,
                    method=method.value,
                    reverse_charge=is_reverse_charge,
                    active_rules=len(rules))

        if not rules and calculation.tax_rate is None:
            return self.calculate_standard_tax(amount, region, method, is_reverse_charge)

        exemptions = apply_exemptions(
            amount,
            rules,
            category_id=calculation.category_id,
            category_name=calculation.category_name,
        )

        if exemptions.full_exemption:
            metrics_collector.increment_counter("full_exemptions")
            amounts = compute_tax(exemptions.taxable_amount, ZERO, method, is_reverse_charge)
            return assemble_result(amount, exemptions, None, amounts, is_reverse_charge)

        resolution = resolve_rate(CalculationContext(
            taxable_amount=exemptions.taxable_amount,
            region=region,
            rules=rules,
            manual_rate=calculation.tax_rate,
            category_id=calculation.category_id,
            category_name=calculation.category_name,
        ))
        amounts = compute_tax(exemptions.taxable_amount, resolution.rate, method, is_reverse_charge)
        return assemble_result(amount, exemptions, resolution, amounts, is_reverse_charge)

    def calculate_standard_tax(
        self,
        amount: Decimal,
        region: str,
        method: CalculationMethod,
        is_reverse_charge: bool,
    ) -> TaxCalculationResult:
        """Fallback when an organization has no active rules and no override"""
        logger.debug("No tax rules found, using standard calculation", region=region)
        metrics_collector.increment_counter("standard_fallbacks")

        rate = get_default_tax_rate(region)
        amounts = compute_tax(amount, rate, method, is_reverse_charge)
        return TaxCalculationResult(
            base_amount=amounts.base_amount,
            vat_amount=amounts.vat_amount,
            effective_tax_rate=rate,
            applied_rules=["standard tax calculation"],
            is_reverse_charge=is_reverse_charge,
        )


def get_tax_rules_engine(rule_store: RuleStore) -> TaxRulesEngine:
    """Get tax rules engine bound to a rule store"""
    return TaxRulesEngine(rule_store=rule_store)
