"""
API v1 Router
"""

from fastapi import APIRouter

from ledgertax.api.v1.endpoints import monitoring, tax_rules

api_router = APIRouter()

# Include all endpoint routers with proper prefixes
api_router.include_router(monitoring.router, tags=["monitoring"])
api_router.include_router(tax_rules.router, prefix="/tax-rules", tags=["tax-rules"])
