"""
Domain exceptions

The calculation path raises only RuleStoreError (infrastructure). Everything
else here belongs to the administrative rule surface.
"""

from typing import Optional


class RuleStoreError(Exception):
    """Rule definitions could not be read; the caller may retry"""

    retryable = True

    def __init__(self, message: str, organization_id: Optional[str] = None):
        super().__init__(message)
        self.organization_id = organization_id


class NotFoundError(Exception):
    """Base class for administrative lookups that found nothing"""

    resource = "Resource"

    def __init__(self, resource_id: Optional[str] = None):
        self.resource_id = resource_id
        super().__init__(f"{self.resource} not found")


class OrganizationNotFoundError(NotFoundError):
    resource = "Organization"


class TaxRuleNotFoundError(NotFoundError):
    resource = "Tax rule"


class CategoryNotFoundError(NotFoundError):
    resource = "Category"


class InvalidTaxRuleError(ValueError):
    """A rule write would leave the rule inconsistent"""
