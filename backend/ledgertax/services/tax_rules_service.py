"""
Tax Rules Service - CRUD operations for tax rules and their children

Every write invalidates the organization's cached rule lookups.
"""

import json
from functools import partial
from typing import List, Dict, Any
from sqlalchemy import text

from ledgertax.core.database import after_commit
from ledgertax.core.exceptions import (
    OrganizationNotFoundError, TaxRuleNotFoundError, CategoryNotFoundError,
    InvalidTaxRuleError
)
from ledgertax.models.tax_rule import (
    TaxRule, TaxRuleCreate, TaxRuleUpdate,
    TaxBracket, TaxBracketCreate,
    TaxExemption, TaxExemptionCreate,
    CategoryTaxRule, CategoryTaxRuleCreate,
    NON_NULLABLE_RULE_FIELDS, parse_rule_config
)
from ledgertax.monitoring.metrics import track_counter
from ledgertax.services.rule_cache import rule_cache
from ledgertax.services.rule_store import RULE_COLUMNS, attach_rule_children, row_to_dict

UPDATABLE_RULE_FIELDS = (
    "region", "rule_type", "rule_name", "description", "rule_config",
    "effective_date", "expiry_date", "is_active", "priority",
)


def _dump_config(config: Any) -> Any:
    # The rule type lives on the rule row; stored configs are untagged
    if config is None:
        return None
    return json.dumps({k: v for k, v in config.items() if k != "rule_type"})


def _invalidate_rules(db, organization_id: str):
    # Drop now, and again once the write is visible to other sessions
    rule_cache.invalidate(organization_id)
    after_commit(db, partial(rule_cache.invalidate, organization_id))


async def _get_rule_row(db, organization_id: str, rule_id: str) -> Dict[str, Any]:
    result = await db.execute(
        text(f"""
            SELECT {RULE_COLUMNS}
            FROM tax_rules
            WHERE id = :id AND organization_id = :organization_id
        """),
        {"id": rule_id, "organization_id": organization_id}
    )
    row = result.fetchone()
    if not row:
        raise TaxRuleNotFoundError(rule_id)
    return row_to_dict(row)


async def _ensure_category(db, organization_id: str, category_id: str):
    result = await db.execute(
        text("""
            SELECT id FROM categories
            WHERE id = :id AND organization_id = :organization_id
        """),
        {"id": category_id, "organization_id": organization_id}
    )
    if not result.fetchone():
        raise CategoryNotFoundError(category_id)


async def get_tax_rule(db, organization_id: str, rule_id: str) -> TaxRule:
    """Get one tax rule with its children"""
    row = await _get_rule_row(db, organization_id, rule_id)
    rules = await attach_rule_children(db, [row])
    return rules[0]


async def list_tax_rules(db, organization_id: str) -> List[TaxRule]:
    """List all tax rules for an organization, active or not"""
    result = await db.execute(
        text(f"""
            SELECT {RULE_COLUMNS}
            FROM tax_rules
            WHERE organization_id = :organization_id
            ORDER BY priority DESC, created_at DESC
        """),
        {"organization_id": organization_id}
    )
    rows = [row_to_dict(row) for row in result.fetchall()]
    return await attach_rule_children(db, rows)


@track_counter("rule_admin_writes")
async def create_tax_rule(db, organization_id: str, rule_data: TaxRuleCreate) -> TaxRule:
    """Create a new tax rule"""
    result = await db.execute(
        text("SELECT id FROM organizations WHERE id = :id"),
        {"id": organization_id}
    )
    if not result.fetchone():
        raise OrganizationNotFoundError(organization_id)

    result = await db.execute(
        text(f"""
            INSERT INTO tax_rules (
                organization_id, region, rule_type, rule_name, description, rule_config,
                effective_date, expiry_date, is_active, priority
            )
            VALUES (
                :organization_id, :region, :rule_type, :rule_name, :description,
                CAST(:rule_config AS JSONB), :effective_date, :expiry_date, :is_active, :priority
            )
            RETURNING {RULE_COLUMNS}
        """),
        {
            "organization_id": organization_id,
            "region": rule_data.region.value if rule_data.region else None,
            "rule_type": rule_data.rule_type.value,
            "rule_name": rule_data.rule_name,
            "description": rule_data.description,
            "rule_config": _dump_config(rule_data.rule_config or {}),
            "effective_date": rule_data.effective_date,
            "expiry_date": rule_data.expiry_date,
            "is_active": rule_data.is_active,
            "priority": rule_data.priority
        }
    )
    _invalidate_rules(db, organization_id)
    return TaxRule(**row_to_dict(result.fetchone()))


@track_counter("rule_admin_writes")
async def update_tax_rule(db, organization_id: str, rule_id: str, rule_data: TaxRuleUpdate) -> TaxRule:
    """Update the fields of a tax rule that are set on rule_data"""
    current = await _get_rule_row(db, organization_id, rule_id)
    changes = rule_data.model_dump(exclude_unset=True)
    cleared = [name for name in NON_NULLABLE_RULE_FIELDS if name in changes and changes[name] is None]
    if cleared:
        raise InvalidTaxRuleError(f"{', '.join(cleared)} cannot be set to null")

    merged = {**current, **changes}
    if merged.get("effective_date") and merged.get("expiry_date") \
            and merged["expiry_date"] < merged["effective_date"]:
        raise InvalidTaxRuleError("expiry_date must not be before effective_date")
    if "rule_type" in changes or "rule_config" in changes:
        try:
            parse_rule_config(merged["rule_type"], merged.get("rule_config"))
        except ValueError as e:
            raise InvalidTaxRuleError(str(e)) from e

    updates = []
    params: Dict[str, Any] = {"id": rule_id, "organization_id": organization_id}
    for field_name in UPDATABLE_RULE_FIELDS:
        if field_name not in changes:
            continue
        value = changes[field_name]
        if field_name == "rule_config":
            updates.append("rule_config = CAST(:rule_config AS JSONB)")
            value = _dump_config(value)
        else:
            updates.append(f"{field_name} = :{field_name}")
            if hasattr(value, "value"):
                value = value.value
        params[field_name] = value

    if not updates:
        return await get_tax_rule(db, organization_id, rule_id)

    updates.append("updated_at = CURRENT_TIMESTAMP")
    await db.execute(
        text(f"""
            UPDATE tax_rules
            SET {", ".join(updates)}
            WHERE id = :id AND organization_id = :organization_id
        """),
        params
    )
    _invalidate_rules(db, organization_id)
    return await get_tax_rule(db, organization_id, rule_id)


@track_counter("rule_admin_writes")
async def delete_tax_rule(db, organization_id: str, rule_id: str) -> None:
    """Delete a tax rule; brackets, exemptions and category rules cascade"""
    result = await db.execute(
        text("""
            DELETE FROM tax_rules
            WHERE id = :id AND organization_id = :organization_id
            RETURNING id
        """),
        {"id": rule_id, "organization_id": organization_id}
    )
    if not result.fetchone():
        raise TaxRuleNotFoundError(rule_id)
    _invalidate_rules(db, organization_id)


@track_counter("rule_admin_writes")
async def add_tax_bracket(db, organization_id: str, rule_id: str, bracket_data: TaxBracketCreate) -> TaxBracket:
    """Attach a bracket to a tax rule"""
    await _get_rule_row(db, organization_id, rule_id)

    result = await db.execute(
        text("""
            INSERT INTO tax_brackets (tax_rule_id, min_amount, max_amount, rate, description, bracket_order)
            VALUES (:rule_id, :min_amount, :max_amount, :rate, :description, :bracket_order)
            RETURNING id, tax_rule_id AS rule_id, min_amount, max_amount, rate,
                      description, bracket_order, created_at
        """),
        {
            "rule_id": rule_id,
            "min_amount": bracket_data.min_amount,
            "max_amount": bracket_data.max_amount,
            "rate": bracket_data.rate,
            "description": bracket_data.description,
            "bracket_order": bracket_data.bracket_order
        }
    )
    _invalidate_rules(db, organization_id)
    return TaxBracket(**row_to_dict(result.fetchone()))


@track_counter("rule_admin_writes")
async def add_tax_exemption(
    db, organization_id: str, rule_id: str, exemption_data: TaxExemptionCreate
) -> TaxExemption:
    """Attach an exemption clause to a tax rule"""
    await _get_rule_row(db, organization_id, rule_id)
    if exemption_data.category_id:
        await _ensure_category(db, organization_id, exemption_data.category_id)

    result = await db.execute(
        text("""
            WITH inserted AS (
                INSERT INTO tax_exemptions (
                    tax_rule_id, exemption_type, category_id, exemption_amount,
                    exemption_percentage, threshold_amount, description
                )
                VALUES (
                    :rule_id, :exemption_type, :category_id, :exemption_amount,
                    :exemption_percentage, :threshold_amount, :description
                )
                RETURNING *
            )
            SELECT i.id, i.tax_rule_id AS rule_id, i.exemption_type, i.category_id,
                   c.name AS category_name, i.exemption_amount, i.exemption_percentage,
                   i.threshold_amount, i.description, i.created_at
            FROM inserted i
            LEFT JOIN categories c ON c.id = i.category_id
        """),
        {
            "rule_id": rule_id,
            "exemption_type": exemption_data.exemption_type.value,
            "category_id": exemption_data.category_id,
            "exemption_amount": exemption_data.exemption_amount,
            "exemption_percentage": exemption_data.exemption_percentage,
            "threshold_amount": exemption_data.threshold_amount,
            "description": exemption_data.description
        }
    )
    _invalidate_rules(db, organization_id)
    return TaxExemption(**row_to_dict(result.fetchone()))


@track_counter("rule_admin_writes")
async def add_category_tax_rule(
    db, organization_id: str, rule_id: str, category_rule_data: CategoryTaxRuleCreate
) -> CategoryTaxRule:
    """Attach a category-specific rate to a tax rule"""
    await _get_rule_row(db, organization_id, rule_id)
    await _ensure_category(db, organization_id, category_rule_data.category_id)

    result = await db.execute(
        text("""
            WITH inserted AS (
                INSERT INTO category_tax_rules (tax_rule_id, category_id, rate, is_active, description)
                VALUES (:rule_id, :category_id, :rate, :is_active, :description)
                RETURNING *
            )
            SELECT i.id, i.tax_rule_id AS rule_id, i.category_id, c.name AS category_name,
                   i.rate, i.is_active, i.description, i.created_at
            FROM inserted i
            JOIN categories c ON c.id = i.category_id
        """),
        {
            "rule_id": rule_id,
            "category_id": category_rule_data.category_id,
            "rate": category_rule_data.rate,
            "is_active": category_rule_data.is_active,
            "description": category_rule_data.description
        }
    )
    _invalidate_rules(db, organization_id)
    return CategoryTaxRule(**row_to_dict(result.fetchone()))
