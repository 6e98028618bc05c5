"""
LedgerTax API application
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ledgertax.api.v1.api import api_router
from ledgertax.core.config import settings
from ledgertax.core.database import close_database
from ledgertax.core.exceptions import NotFoundError, RuleStoreError, InvalidTaxRuleError
from ledgertax.core.logging import configure_logging

logger = structlog.get_logger()

RULE_STORE_RETRY_AFTER_SECONDS = 5


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    logger.info("Starting LedgerTax API",
                environment=settings.ENVIRONMENT,
                version=settings.VERSION,
                default_region=settings.DEFAULT_REGION)
    yield
    await close_database()
    logger.info("LedgerTax API stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)}
    )


@app.exception_handler(InvalidTaxRuleError)
async def invalid_rule_handler(request: Request, exc: InvalidTaxRuleError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)}
    )


@app.exception_handler(RuleStoreError)
async def rule_store_error_handler(request: Request, exc: RuleStoreError):
    logger.error("Rule store unavailable",
                 organization_id=exc.organization_id,
                 path=request.url.path,
                 error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Tax rules are temporarily unavailable"},
        headers={"Retry-After": str(RULE_STORE_RETRY_AFTER_SECONDS)}
    )


app.include_router(api_router, prefix=settings.API_V1_STR)
