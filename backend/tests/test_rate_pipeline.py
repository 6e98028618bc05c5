from decimal import Decimal

import pytest

from conftest import FOOD_ID
from ledgertax.services.rate_pipeline import (
    CalculationContext, RATE_RESOLVERS, RateResolution, get_default_tax_rate,
    manual_override, regional_default, resolve_rate
)

D = Decimal


@pytest.mark.parametrize("region,rate", [
    ("uae", "5"), ("saudi", "15"), ("oman", "5"), ("kuwait", "5"),
    ("bahrain", "10"), ("qatar", "5"), ("india", "18"),
])
def test_regional_defaults(region, rate):
    assert get_default_tax_rate(region) == D(rate)


def test_unknown_region_uses_fallback_rate():
    assert get_default_tax_rate("atlantis") == D("5")
    assert get_default_tax_rate(None) == D("5")


def test_chain_order():
    assert RATE_RESOLVERS[0] is manual_override
    assert RATE_RESOLVERS[-1] is regional_default


def test_manual_rate_beats_everything(rules):
    context = CalculationContext(
        taxable_amount=D("500"),
        region="uae",
        rules=[rules.category_rule([(FOOD_ID, "Food", 15)]), rules.bracket_rule([(0, None, 10)])],
        manual_rate=D("7"),
        category_id=FOOD_ID,
    )
    resolution = resolve_rate(context)

    assert resolution.rate == D("7")
    assert resolution.source == "manual"
    assert resolution.applied_rules == ["manual tax rate override"]


def test_zero_manual_rate_is_an_override(rules):
    context = CalculationContext(
        taxable_amount=D("500"), region="uae",
        rules=[rules.bracket_rule([(0, None, 10)])], manual_rate=D("0"),
    )
    assert resolve_rate(context).rate == D("0")


def test_category_rate_beats_bracket(rules):
    context = CalculationContext(
        taxable_amount=D("500"),
        region="uae",
        rules=[rules.bracket_rule([(0, None, 10)], priority=100), rules.category_rule([(FOOD_ID, "Food", 15)])],
        category_name="Food",
    )
    resolution = resolve_rate(context)

    assert resolution.rate == D("15")
    assert resolution.category_rate == D("15")
    assert resolution.bracket_rate is None
    assert resolution.applied_rules == ["category-specific tax rate"]


def test_bracket_reports_amount_and_rate(rules):
    context = CalculationContext(
        taxable_amount=D("250"), region="uae", rules=[rules.bracket_rule([(0, 1000, 10)])],
    )
    resolution = resolve_rate(context)

    assert resolution.source == "bracket"
    assert resolution.bracket_amount == D("250")
    assert resolution.bracket_rate == D("10")


def test_regional_default_closes_the_chain():
    resolution = resolve_rate(CalculationContext(taxable_amount=D("100"), region="bahrain"))

    assert resolution.rate == D("10")
    assert resolution.applied_rules == ["default regional tax rate"]


def test_custom_resolver_chain():
    def flat_three(context):
        return RateResolution(rate=D("3"), applied_rules=["flat"], source="flat")

    resolution = resolve_rate(
        CalculationContext(taxable_amount=D("100"), region="uae"),
        resolvers=[manual_override, flat_three],
    )
    assert resolution.rate == D("3")

    empty_chain = resolve_rate(CalculationContext(taxable_amount=D("100"), region="india"), resolvers=[])
    assert empty_chain.rate == D("18")
