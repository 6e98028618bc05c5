# Models package - Export all models

from .tax_rule import (
    TaxRule, TaxRuleCreate, TaxRuleUpdate,
    TaxBracket, TaxBracketCreate,
    TaxExemption, TaxExemptionCreate,
    CategoryTaxRule, CategoryTaxRuleCreate,
    BracketRuleConfig, ExemptionRuleConfig, CategoryRuleConfig,
    ThresholdRuleConfig, TimeBasedRuleConfig, RuleConfig, parse_rule_config,
    Region, TaxRuleType, ExemptionType
)

from .tax_calculation import (
    TaxCalculationRequest, TaxCalculationInput, TaxCalculationResult, TaxBreakdown,
    VatTaxType, CalculationMethod
)

from .user import TokenData, UserRole

__all__ = [
    # Tax rule models
    "TaxRule", "TaxRuleCreate", "TaxRuleUpdate",
    "TaxBracket", "TaxBracketCreate",
    "TaxExemption", "TaxExemptionCreate",
    "CategoryTaxRule", "CategoryTaxRuleCreate",
    "BracketRuleConfig", "ExemptionRuleConfig", "CategoryRuleConfig",
    "ThresholdRuleConfig", "TimeBasedRuleConfig", "RuleConfig", "parse_rule_config",
    "Region", "TaxRuleType", "ExemptionType",

    # Calculation models
    "TaxCalculationRequest", "TaxCalculationInput", "TaxCalculationResult", "TaxBreakdown",
    "VatTaxType", "CalculationMethod",

    # Identity models
    "TokenData", "UserRole"
]
