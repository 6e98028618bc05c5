"""
Tax Calculation Models
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date
from decimal import Decimal
from enum import Enum

from ledgertax.models.tax_rule import Region


class VatTaxType(str, Enum):
    """Explicit tax treatment chosen by the caller"""
    STANDARD = "standard"
    ZERO_RATED = "zero_rated"
    EXEMPT = "exempt"
    REVERSE_CHARGE = "reverse_charge"


class CalculationMethod(str, Enum):
    """Whether the stated amount already contains tax"""
    INCLUSIVE = "inclusive"
    EXCLUSIVE = "exclusive"


class TaxCalculationRequest(BaseModel):
    """Calculation request body (organization comes from the caller)"""
    amount: Decimal = Field(..., ge=0)
    region: Optional[Region] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)  # manual override
    vat_tax_type: Optional[VatTaxType] = None
    calculation_method: Optional[CalculationMethod] = None
    as_of: Optional[date] = Field(None, alias="date")

    class Config:
        populate_by_name = True


class TaxCalculationInput(TaxCalculationRequest):
    """Engine input"""
    organization_id: str


class TaxBreakdown(BaseModel):
    """Observability detail for a calculation"""
    exemption_amount: Optional[Decimal] = None
    bracket_amount: Optional[Decimal] = None
    bracket_rate: Optional[Decimal] = None
    category_rate: Optional[Decimal] = None


class TaxCalculationResult(BaseModel):
    """Calculation result"""
    base_amount: Decimal
    vat_amount: Decimal
    effective_tax_rate: Decimal
    applied_rules: List[str] = Field(default_factory=list)
    is_reverse_charge: bool = False
    breakdown: Optional[TaxBreakdown] = None
