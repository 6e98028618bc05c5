"""
Tax Rules Endpoints
"""

from fastapi import APIRouter, Depends, status
from typing import List

from ledgertax.core.database import get_database
from ledgertax.services.auth_service import require_roles
from ledgertax.models.user import TokenData, UserRole
from ledgertax.models.tax_rule import (
    TaxRule, TaxRuleCreate, TaxRuleUpdate,
    TaxBracket, TaxBracketCreate,
    TaxExemption, TaxExemptionCreate,
    CategoryTaxRule, CategoryTaxRuleCreate
)
from ledgertax.models.tax_calculation import (
    TaxCalculationRequest, TaxCalculationInput, TaxCalculationResult
)
from ledgertax.services import tax_rules_service
from ledgertax.services.rule_cache import CachedRuleStore, rule_cache
from ledgertax.services.rule_store import SqlRuleStore
from ledgertax.services.tax_rules_engine import TaxRulesEngine, get_tax_rules_engine

router = APIRouter()

read_access = require_roles(UserRole.ADMIN, UserRole.ACCOUNTANT)
write_access = require_roles(UserRole.ADMIN)


async def get_engine(db = Depends(get_database)) -> TaxRulesEngine:
    """Engine reading rules through the shared cache"""
    return get_tax_rules_engine(CachedRuleStore(SqlRuleStore(db), rule_cache))


@router.post("/calculate", response_model=TaxCalculationResult)
async def calculate_tax(
    request: TaxCalculationRequest,
    current_user: TokenData = Depends(read_access),
    engine: TaxRulesEngine = Depends(get_engine)
):
    """Calculate tax for the caller's organization"""
    calculation = TaxCalculationInput(
        **request.model_dump(),
        organization_id=current_user.organization_id
    )
    return await engine.calculate_tax(calculation)


@router.get("", response_model=List[TaxRule])
async def list_tax_rules(
    current_user: TokenData = Depends(read_access),
    db = Depends(get_database)
):
    """List tax rules with brackets, exemptions and category rules"""
    return await tax_rules_service.list_tax_rules(db, current_user.organization_id)


@router.post("", response_model=TaxRule, status_code=status.HTTP_201_CREATED)
async def create_tax_rule(
    rule_data: TaxRuleCreate,
    current_user: TokenData = Depends(write_access),
    db = Depends(get_database)
):
    """Create a tax rule"""
    return await tax_rules_service.create_tax_rule(db, current_user.organization_id, rule_data)


@router.patch("/{rule_id}", response_model=TaxRule)
async def update_tax_rule(
    rule_id: str,
    rule_data: TaxRuleUpdate,
    current_user: TokenData = Depends(write_access),
    db = Depends(get_database)
):
    """Update a tax rule"""
    return await tax_rules_service.update_tax_rule(db, current_user.organization_id, rule_id, rule_data)


@router.delete("/{rule_id}")
async def delete_tax_rule(
    rule_id: str,
    current_user: TokenData = Depends(write_access),
    db = Depends(get_database)
):
    """Delete a tax rule"""
    await tax_rules_service.delete_tax_rule(db, current_user.organization_id, rule_id)
    return {"success": True}


@router.post("/{rule_id}/brackets", response_model=TaxBracket, status_code=status.HTTP_201_CREATED)
async def add_tax_bracket(
    rule_id: str,
    bracket_data: TaxBracketCreate,
    current_user: TokenData = Depends(write_access),
    db = Depends(get_database)
):
    """Attach a bracket to a tax rule"""
    return await tax_rules_service.add_tax_bracket(db, current_user.organization_id, rule_id, bracket_data)


@router.post("/{rule_id}/exemptions", response_model=TaxExemption, status_code=status.HTTP_201_CREATED)
async def add_tax_exemption(
    rule_id: str,
    exemption_data: TaxExemptionCreate,
    current_user: TokenData = Depends(write_access),
    db = Depends(get_database)
):
    """Attach an exemption to a tax rule"""
    return await tax_rules_service.add_tax_exemption(db, current_user.organization_id, rule_id, exemption_data)


@router.post("/{rule_id}/category-rules", response_model=CategoryTaxRule, status_code=status.HTTP_201_CREATED)
async def add_category_tax_rule(
    rule_id: str,
    category_rule_data: CategoryTaxRuleCreate,
    current_user: TokenData = Depends(write_access),
    db = Depends(get_database)
):
    """Attach a category-specific rate to a tax rule"""
    return await tax_rules_service.add_category_tax_rule(
        db, current_user.organization_id, rule_id, category_rule_data
    )
