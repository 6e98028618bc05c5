"""
Tax Rule Models

Rules are prioritized containers; brackets, exemptions and category rates
hang off them. Amounts and rates are Decimal, rates are percentages.
"""

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator
from typing import Annotated, Optional, Dict, Any, List, Union, Literal
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


class Region(str, Enum):
    """Tax regions an organization can operate in"""
    UAE = "uae"
    SAUDI = "saudi"
    OMAN = "oman"
    KUWAIT = "kuwait"
    BAHRAIN = "bahrain"
    QATAR = "qatar"
    INDIA = "india"


class TaxRuleType(str, Enum):
    """Tax rule types"""
    BRACKET = "bracket"
    EXEMPTION = "exemption"
    CATEGORY = "category"
    THRESHOLD = "threshold"
    TIME_BASED = "time_based"


class ExemptionType(str, Enum):
    """Exemption clause types"""
    CATEGORY = "category"
    AMOUNT_THRESHOLD = "amount_threshold"
    PRODUCT = "product"
    VENDOR = "vendor"
    FULL = "full"
    PARTIAL = "partial"


# Rule config variants, one per rule type. Unknown keys are kept so that
# administrators can stash extra data without a schema change.

class _RuleConfigBase(BaseModel):
    class Config:
        extra = "allow"


class BracketRuleConfig(_RuleConfigBase):
    rule_type: Literal["bracket"] = "bracket"
    progressive: bool = False


class ExemptionRuleConfig(_RuleConfigBase):
    rule_type: Literal["exemption"] = "exemption"


class CategoryRuleConfig(_RuleConfigBase):
    rule_type: Literal["category"] = "category"


class ThresholdRuleConfig(_RuleConfigBase):
    rule_type: Literal["threshold"] = "threshold"
    threshold_amount: Optional[Decimal] = Field(None, ge=0)
    rate: Optional[Decimal] = Field(None, ge=0, le=100)


class TimeBasedRuleConfig(_RuleConfigBase):
    rule_type: Literal["time_based"] = "time_based"
    start_time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    end_time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    weekdays: List[int] = Field(default_factory=list)

    @field_validator("weekdays")
    @classmethod
    def check_weekdays(cls, value: List[int]) -> List[int]:
        for day in value:
            if day < 0 or day > 6:
                raise ValueError("weekdays must be between 0 (Monday) and 6 (Sunday)")
        return value


RuleConfig = Annotated[
    Union[
        BracketRuleConfig,
        ExemptionRuleConfig,
        CategoryRuleConfig,
        ThresholdRuleConfig,
        TimeBasedRuleConfig,
    ],
    Field(discriminator="rule_type"),
]

_rule_config_adapter = TypeAdapter(RuleConfig)


def parse_rule_config(rule_type: Union[TaxRuleType, str], raw: Optional[Dict[str, Any]]) -> RuleConfig:
    """Build the config variant for a rule type from stored JSON"""
    rule_type_value = TaxRuleType(rule_type).value
    payload = dict(raw or {})
    declared = payload.setdefault("rule_type", rule_type_value)
    if declared != rule_type_value:
        raise ValueError(
            f"rule_config is declared for '{declared}' but the rule type is '{rule_type_value}'"
        )
    return _rule_config_adapter.validate_python(payload)


class TaxBracket(BaseModel):
    """One progressive range of a bracket rule"""
    id: str
    rule_id: str
    min_amount: Decimal
    max_amount: Optional[Decimal] = None  # None = unbounded
    rate: Decimal
    description: Optional[str] = None
    bracket_order: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TaxExemption(BaseModel):
    """One exemption clause of an exemption rule"""
    id: str
    rule_id: str
    exemption_type: ExemptionType
    category_id: Optional[str] = None
    category_name: Optional[str] = None  # name of the linked category, if any
    exemption_amount: Optional[Decimal] = None
    exemption_percentage: Optional[Decimal] = None
    threshold_amount: Optional[Decimal] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CategoryTaxRule(BaseModel):
    """Flat rate for one category"""
    id: str
    rule_id: str
    category_id: str
    category_name: Optional[str] = None
    rate: Decimal
    is_active: bool = True
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TaxRule(BaseModel):
    """Tax rule with its children attached"""
    id: str
    organization_id: str
    region: Optional[str] = None  # None = all regions of the organization
    rule_type: TaxRuleType
    rule_name: str
    description: Optional[str] = None
    rule_config: Optional[RuleConfig] = None
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None
    is_active: bool = True
    priority: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    brackets: List[TaxBracket] = Field(default_factory=list)
    exemptions: List[TaxExemption] = Field(default_factory=list)
    category_rules: List[CategoryTaxRule] = Field(default_factory=list)

    class Config:
        from_attributes = True

    @model_validator(mode="before")
    @classmethod
    def tag_rule_config(cls, data: Any) -> Any:
        # Stored configs do not repeat the rule type; add the tag before
        # the discriminated union sees the payload.
        if isinstance(data, dict) and isinstance(data.get("rule_config"), dict):
            data = dict(data)
            data["rule_config"] = parse_rule_config(data.get("rule_type"), data["rule_config"])
        return data


class TaxRuleCreate(BaseModel):
    """Tax rule creation model"""
    region: Optional[Region] = None
    rule_type: TaxRuleType
    rule_name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    rule_config: Optional[Dict[str, Any]] = None
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None
    is_active: bool = True
    priority: int = Field(0, ge=0, le=1000)

    @model_validator(mode="after")
    def check_rule(self) -> "TaxRuleCreate":
        if self.effective_date and self.expiry_date and self.expiry_date < self.effective_date:
            raise ValueError("expiry_date must not be before effective_date")
        if self.rule_config is not None:
            parse_rule_config(self.rule_type, self.rule_config)
        return self


NON_NULLABLE_RULE_FIELDS = ("rule_type", "rule_name", "is_active", "priority")


class TaxRuleUpdate(BaseModel):
    """Tax rule update model (only fields that are set are written)"""
    region: Optional[Region] = None
    rule_type: Optional[TaxRuleType] = None
    rule_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    rule_config: Optional[Dict[str, Any]] = None
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None
    is_active: Optional[bool] = None
    priority: Optional[int] = Field(None, ge=0, le=1000)

    @field_validator(*NON_NULLABLE_RULE_FIELDS)
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        # Omit a field to leave it unchanged; these columns cannot be cleared
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value


class TaxBracketCreate(BaseModel):
    """Tax bracket creation model"""
    min_amount: Decimal = Field(..., ge=0)
    max_amount: Optional[Decimal] = Field(None, ge=0)
    rate: Decimal = Field(..., ge=0, le=100)
    description: Optional[str] = None
    bracket_order: int = 0

    @model_validator(mode="after")
    def check_range(self) -> "TaxBracketCreate":
        if self.max_amount is not None and self.max_amount < self.min_amount:
            raise ValueError("max_amount must not be below min_amount")
        return self


class TaxExemptionCreate(BaseModel):
    """Tax exemption creation model"""
    exemption_type: ExemptionType
    category_id: Optional[str] = None
    exemption_amount: Optional[Decimal] = Field(None, ge=0)
    exemption_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    threshold_amount: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None


class CategoryTaxRuleCreate(BaseModel):
    """Category tax rule creation model"""
    category_id: str
    rate: Decimal = Field(..., ge=0, le=100)
    is_active: bool = True
    description: Optional[str] = None
