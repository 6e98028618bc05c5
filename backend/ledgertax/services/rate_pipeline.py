"""
Rate Precedence Pipeline

The effective rate comes from the first resolver in the chain that returns
a resolution: manual override, category rate, bracket rate, regional
default. Resolvers are plain functions over a CalculationContext so a new
rule source is one more entry in RATE_RESOLVERS.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

import structlog

from ledgertax.core.config import settings
from ledgertax.models.tax_rule import Region, TaxRule
from ledgertax.services.brackets import resolve_bracket
from ledgertax.services.category_rates import resolve_category_rate

logger = structlog.get_logger()


REGION_DEFAULT_RATES: Dict[str, Decimal] = {
    Region.UAE.value: Decimal("5"),
    Region.SAUDI.value: Decimal("15"),
    Region.OMAN.value: Decimal("5"),
    Region.KUWAIT.value: Decimal("5"),
    Region.BAHRAIN.value: Decimal("10"),
    Region.QATAR.value: Decimal("5"),
    Region.INDIA.value: Decimal("18"),
}


def get_default_tax_rate(region: Optional[str]) -> Decimal:
    """Statutory default rate for a region"""
    return REGION_DEFAULT_RATES.get(region or "", Decimal(settings.FALLBACK_TAX_RATE))


@dataclass
class CalculationContext:
    taxable_amount: Decimal
    region: str
    rules: List[TaxRule] = field(default_factory=list)
    manual_rate: Optional[Decimal] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None


@dataclass
class RateResolution:
    rate: Decimal
    applied_rules: List[str] = field(default_factory=list)
    source: str = ""
    bracket_amount: Optional[Decimal] = None
    bracket_rate: Optional[Decimal] = None
    category_rate: Optional[Decimal] = None


RateResolver = Callable[[CalculationContext], Optional[RateResolution]]


def manual_override(context: CalculationContext) -> Optional[RateResolution]:
    if context.manual_rate is None:
        return None
    return RateResolution(
        rate=Decimal(context.manual_rate),
        applied_rules=["manual tax rate override"],
        source="manual",
    )


def category_rate(context: CalculationContext) -> Optional[RateResolution]:
    match = resolve_category_rate(context.rules, context.category_id, context.category_name)
    if match is None:
        return None
    rate = match.category_rule.rate
    return RateResolution(
        rate=rate,
        applied_rules=["category-specific tax rate"],
        source="category",
        category_rate=rate,
    )


def bracket_rate(context: CalculationContext) -> Optional[RateResolution]:
    match = resolve_bracket(context.taxable_amount, context.rules)
    if match is None:
        return None
    return RateResolution(
        rate=match.rate,
        applied_rules=[match.describe()],
        source="bracket",
        bracket_amount=context.taxable_amount,
        bracket_rate=match.rate,
    )


def regional_default(context: CalculationContext) -> Optional[RateResolution]:
    return RateResolution(
        rate=get_default_tax_rate(context.region),
        applied_rules=["default regional tax rate"],
        source="regional_default",
    )


RATE_RESOLVERS: Sequence[RateResolver] = (
    manual_override,
    category_rate,
    bracket_rate,
    regional_default,
)


def resolve_rate(
    context: CalculationContext,
    resolvers: Sequence[RateResolver] = RATE_RESOLVERS,
) -> RateResolution:
    """Run the resolver chain; the regional default closes any chain"""
    for resolver in resolvers:
        resolution = resolver(context)
        if resolution is not None:
            logger.debug("Tax rate resolved", source=resolution.source, rate=str(resolution.rate))
            return resolution
    return regional_default(context)
