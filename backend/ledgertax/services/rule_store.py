"""
Rule Store - read-only access to tax rule definitions

The engine only ever calls get_active_rules and get_organization_region.
SqlRuleStore backs both with raw SQL against the tax tables; child rows are
loaded in one query per table and attached to their owning rule.
"""

import json
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Any, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import text, bindparam
from sqlalchemy.exc import SQLAlchemyError

from ledgertax.core.exceptions import RuleStoreError
from ledgertax.models.tax_rule import TaxRule, TaxBracket, TaxExemption, CategoryTaxRule

logger = structlog.get_logger()


RULE_COLUMNS = """
    id, organization_id, region, rule_type, rule_name, description, rule_config,
    effective_date, expiry_date, is_active, priority, created_at, updated_at
"""


def row_to_dict(row) -> Dict[str, Any]:
    """Convert a result row to a plain dict with string ids"""
    data = dict(row._mapping)
    for key, value in data.items():
        if isinstance(value, UUID):
            data[key] = str(value)
    if isinstance(data.get("rule_config"), str):
        data["rule_config"] = json.loads(data["rule_config"])
    return data


async def attach_rule_children(db, rule_rows: List[Dict[str, Any]]) -> List[TaxRule]:
    """Load brackets, exemptions and category rules for rule rows"""
    if not rule_rows:
        return []

    rule_ids = [row["id"] for row in rule_rows]
    children: Dict[str, Dict[str, list]] = {
        rule_id: {"brackets": [], "exemptions": [], "category_rules": []} for rule_id in rule_ids
    }

    result = await db.execute(
        text("""
            SELECT id, tax_rule_id AS rule_id, min_amount, max_amount, rate,
                   description, bracket_order, created_at
            FROM tax_brackets
            WHERE tax_rule_id IN :rule_ids
            ORDER BY min_amount ASC, bracket_order ASC
        """).bindparams(bindparam("rule_ids", expanding=True)),
        {"rule_ids": rule_ids}
    )
    for row in result.fetchall():
        bracket = TaxBracket(**row_to_dict(row))
        children[bracket.rule_id]["brackets"].append(bracket)

    result = await db.execute(
        text("""
            SELECT e.id, e.tax_rule_id AS rule_id, e.exemption_type, e.category_id,
                   c.name AS category_name, e.exemption_amount, e.exemption_percentage,
                   e.threshold_amount, e.description, e.created_at
            FROM tax_exemptions e
            LEFT JOIN categories c ON c.id = e.category_id
            WHERE e.tax_rule_id IN :rule_ids
            ORDER BY e.created_at ASC
        """).bindparams(bindparam("rule_ids", expanding=True)),
        {"rule_ids": rule_ids}
    )
    for row in result.fetchall():
        exemption = TaxExemption(**row_to_dict(row))
        children[exemption.rule_id]["exemptions"].append(exemption)

    result = await db.execute(
        text("""
            SELECT cr.id, cr.tax_rule_id AS rule_id, cr.category_id, c.name AS category_name,
                   cr.rate, cr.is_active, cr.description, cr.created_at
            FROM category_tax_rules cr
            JOIN categories c ON c.id = cr.category_id
            WHERE cr.tax_rule_id IN :rule_ids
            ORDER BY cr.created_at DESC
        """).bindparams(bindparam("rule_ids", expanding=True)),
        {"rule_ids": rule_ids}
    )
    for row in result.fetchall():
        category_rule = CategoryTaxRule(**row_to_dict(row))
        children[category_rule.rule_id]["category_rules"].append(category_rule)

    return [TaxRule(**row, **children[row["id"]]) for row in rule_rows]


class RuleStore(ABC):
    """Read-only provider of tax rule definitions"""

    @abstractmethod
    async def get_active_rules(self, organization_id: str, region: Optional[str], as_of: date) -> List[TaxRule]:
        """Rules active for the organization/region on a date, with children attached"""

    @abstractmethod
    async def get_organization_region(self, organization_id: str) -> Optional[str]:
        """Region configured on the organization record, if any"""


class SqlRuleStore(RuleStore):
    """Rule Store backed by the tax tables"""

    def __init__(self, db):
        self.db = db

    async def get_active_rules(self, organization_id: str, region: Optional[str], as_of: date) -> List[TaxRule]:
        try:
            result = await self.db.execute(
                text(f"""
                    SELECT {RULE_COLUMNS}
                    FROM tax_rules
                    WHERE organization_id = :organization_id
                    AND is_active = TRUE
                    AND (region = :region OR region IS NULL)
                    AND (effective_date IS NULL OR effective_date <= :as_of)
                    AND (expiry_date IS NULL OR expiry_date >= :as_of)
                    ORDER BY priority DESC, created_at DESC
                """),
                {"organization_id": organization_id, "region": region, "as_of": as_of}
            )
            rule_rows = [row_to_dict(row) for row in result.fetchall()]
            rules = await attach_rule_children(self.db, rule_rows)
        except SQLAlchemyError as e:
            logger.error("Failed to load active tax rules",
                         organization_id=organization_id,
                         region=region,
                         error=str(e))
            raise RuleStoreError("Tax rules are temporarily unavailable", organization_id) from e

        logger.debug("Loaded active tax rules",
                     organization_id=organization_id,
                     region=region,
                     as_of=as_of.isoformat(),
                     count=len(rules))
        return rules

    async def get_organization_region(self, organization_id: str) -> Optional[str]:
        try:
            result = await self.db.execute(
                text("SELECT region FROM organizations WHERE id = :organization_id"),
                {"organization_id": organization_id}
            )
            row = result.fetchone()
        except SQLAlchemyError as e:
            logger.error("Failed to load organization region",
                         organization_id=organization_id,
                         error=str(e))
            raise RuleStoreError("Organization lookup is temporarily unavailable", organization_id) from e

        if not row:
            return None
        return row_to_dict(row).get("region")
