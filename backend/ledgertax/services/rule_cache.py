"""
Short-lived cache for active rule lookups

Entries are keyed by (organization, region, as-of date) and dropped either on
expiry or when the organization's rules are written. A TTL of zero turns the
cache into a pass-through.
"""

import time
from datetime import date
from typing import Dict, List, Optional, Tuple

import structlog

from ledgertax.core.config import settings
from ledgertax.models.tax_rule import TaxRule
from ledgertax.monitoring.metrics import metrics_collector
from ledgertax.services.rule_store import RuleStore

logger = structlog.get_logger()

CacheKey = Tuple[str, Optional[str], date]


class RuleCache:
    """Process-wide TTL cache of active rule lists"""

    def __init__(self, ttl_seconds: int = 0, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[float, List[TaxRule]]] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def get(self, key: CacheKey) -> Optional[List[TaxRule]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, rules = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return rules

    def __len__(self) -> int:
        return len(self._entries)

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were dropped"""
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def put(self, key: CacheKey, rules: List[TaxRule]):
        if not self.enabled:
            return
        # Keys carry the as-of date, so stale keys are rarely read again
        self.purge_expired()
        self._entries[key] = (self._clock() + self.ttl_seconds, rules)

    def invalidate(self, organization_id: str) -> int:
        """Drop every entry of an organization; returns how many were dropped"""
        stale = [key for key in self._entries if key[0] == organization_id]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.info("Rule cache invalidated", organization_id=organization_id, entries=len(stale))
        return len(stale)

    def clear(self):
        self._entries.clear()


class CachedRuleStore(RuleStore):
    """Rule Store decorator that serves repeated lookups from a RuleCache"""

    def __init__(self, inner: RuleStore, cache: RuleCache):
        self.inner = inner
        self.cache = cache

    async def get_active_rules(self, organization_id: str, region: Optional[str], as_of: date) -> List[TaxRule]:
        if not self.cache.enabled:
            return await self.inner.get_active_rules(organization_id, region, as_of)

        key = (organization_id, region, as_of)
        rules = self.cache.get(key)
        if rules is not None:
            metrics_collector.increment_counter("rule_cache_hits")
            return rules

        rules = await self.inner.get_active_rules(organization_id, region, as_of)
        self.cache.put(key, rules)
        return rules

    async def get_organization_region(self, organization_id: str) -> Optional[str]:
        return await self.inner.get_organization_region(organization_id)


# Global rule cache
rule_cache = RuleCache(ttl_seconds=settings.RULE_CACHE_TTL_SECONDS)
