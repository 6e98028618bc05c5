"""
Database Initialization Script
Creates the tax rule tables and indexes for LedgerTax
"""

import asyncio
import asyncpg
from ledgertax.core.config import settings


# Database schema
CREATE_TABLES = """
-- Organizations (tenants)
CREATE TABLE IF NOT EXISTS organizations (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name VARCHAR(255) NOT NULL,
    region VARCHAR(20),  -- uae, saudi, oman, kuwait, bahrain, qatar, india
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Product / expense categories
CREATE TABLE IF NOT EXISTS categories (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
    name VARCHAR(255) NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Tax rules
CREATE TABLE IF NOT EXISTS tax_rules (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
    region VARCHAR(20),  -- NULL applies to every region
    rule_type VARCHAR(20) NOT NULL,  -- bracket, exemption, category, threshold, time_based
    rule_name VARCHAR(255) NOT NULL,
    description TEXT,
    rule_config JSONB DEFAULT '{}'::jsonb,
    effective_date DATE,
    expiry_date DATE,
    is_active BOOLEAN DEFAULT TRUE,
    priority INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    CONSTRAINT tax_rules_dates_check CHECK (
        expiry_date IS NULL OR effective_date IS NULL OR expiry_date >= effective_date
    )
);

-- Progressive rate bands
CREATE TABLE IF NOT EXISTS tax_brackets (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    tax_rule_id UUID NOT NULL REFERENCES tax_rules(id) ON DELETE CASCADE,
    min_amount DECIMAL(15,2) NOT NULL,
    max_amount DECIMAL(15,2),  -- NULL is unbounded
    rate DECIMAL(5,2) NOT NULL,
    description TEXT,
    bracket_order INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Exemption clauses
CREATE TABLE IF NOT EXISTS tax_exemptions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    tax_rule_id UUID NOT NULL REFERENCES tax_rules(id) ON DELETE CASCADE,
    exemption_type VARCHAR(20) NOT NULL,  -- category, amount_threshold, product, vendor, full, partial
    category_id UUID REFERENCES categories(id) ON DELETE SET NULL,
    exemption_amount DECIMAL(15,2),
    exemption_percentage DECIMAL(5,2),
    threshold_amount DECIMAL(15,2),
    description TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Category-specific rates
CREATE TABLE IF NOT EXISTS category_tax_rules (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    tax_rule_id UUID NOT NULL REFERENCES tax_rules(id) ON DELETE CASCADE,
    category_id UUID NOT NULL REFERENCES categories(id) ON DELETE CASCADE,
    rate DECIMAL(5,2) NOT NULL,
    is_active BOOLEAN DEFAULT TRUE,
    description TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_categories_org ON categories(organization_id);
CREATE INDEX IF NOT EXISTS idx_tax_rules_org ON tax_rules(organization_id);
CREATE INDEX IF NOT EXISTS idx_tax_rules_lookup ON tax_rules(organization_id, is_active, region);
CREATE INDEX IF NOT EXISTS idx_tax_rules_priority ON tax_rules(priority DESC, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_tax_brackets_rule ON tax_brackets(tax_rule_id);
CREATE INDEX IF NOT EXISTS idx_tax_exemptions_rule ON tax_exemptions(tax_rule_id);
CREATE INDEX IF NOT EXISTS idx_category_tax_rules_rule ON category_tax_rules(tax_rule_id);
CREATE INDEX IF NOT EXISTS idx_category_tax_rules_category ON category_tax_rules(category_id);
"""


async def init_database():
    """Initialize database with tables and indexes"""
    conn = None

    try:
        conn = await asyncpg.connect(str(settings.DATABASE_URL))
        print("Connected to database")

        print("Creating tables...")
        await conn.execute(CREATE_TABLES)
        print("Tables created successfully")

        print("Creating indexes...")
        await conn.execute(CREATE_INDEXES)
        print("Indexes created successfully")

        print("Database initialization completed!")

    except Exception as e:
        print(f"Error initializing database: {e}")
        raise
    finally:
        if conn:
            await conn.close()


if __name__ == "__main__":
    asyncio.run(init_database())
