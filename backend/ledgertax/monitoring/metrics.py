"""
Application Metrics and Monitoring
"""

import time
from functools import wraps
from typing import Callable, Dict, Any
from datetime import datetime, timezone
import structlog

logger = structlog.get_logger()

MAX_TIMING_SAMPLES = 1000


class MetricsCollector:
    """Collect in-process counters and timings for tax calculations"""

    def __init__(self):
        self.metrics = {
            "tax_calculations": 0,
            "standard_fallbacks": 0,
            "special_tax_type_short_circuits": 0,
            "full_exemptions": 0,
            "rule_store_errors": 0,
            "rule_cache_hits": 0,
            "rule_admin_writes": 0,
            "errors": 0
        }

        self.timing_metrics = {}
        self.error_counts = {}

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric"""
        if metric_name in self.metrics:
            self.metrics[metric_name] += value
        else:
            self.metrics[metric_name] = value

        logger.debug("Metric incremented", metric=metric_name, value=value)

    def record_timing(self, operation: str, duration_ms: float):
        """Record operation timing"""
        if operation not in self.timing_metrics:
            self.timing_metrics[operation] = []

        self.timing_metrics[operation].append(duration_ms)

        if len(self.timing_metrics[operation]) > MAX_TIMING_SAMPLES:
            self.timing_metrics[operation] = self.timing_metrics[operation][-MAX_TIMING_SAMPLES:]

    def record_error(self, error_type: str, error_message: str):
        """Record error occurrence"""
        if error_type not in self.error_counts:
            self.error_counts[error_type] = 0

        self.error_counts[error_type] += 1
        self.metrics["errors"] += 1

        logger.error("Error recorded",
                     error_type=error_type,
                     error_message=error_message,
                     count=self.error_counts[error_type])

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get metrics summary"""
        timing_stats = {}

        for operation, timings in self.timing_metrics.items():
            if timings:
                ordered = sorted(timings)
                timing_stats[operation] = {
                    "count": len(timings),
                    "avg_ms": sum(timings) / len(timings),
                    "min_ms": ordered[0],
                    "max_ms": ordered[-1],
                    "p95_ms": ordered[int(len(ordered) * 0.95)] if len(ordered) > 1 else ordered[0]
                }

        return {
            "counters": dict(self.metrics),
            "timing_stats": timing_stats,
            "error_counts": dict(self.error_counts),
            "collected_at": datetime.now(timezone.utc).isoformat()
        }

    def reset(self):
        """Drop all collected values"""
        self.__init__()


# Global metrics collector
metrics_collector = MetricsCollector()


def track_timing(operation_name: str):
    """Decorator to track operation timing"""
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
                duration_ms = (time.perf_counter() - start_time) * 1000
                metrics_collector.record_timing(operation_name, duration_ms)
                return result
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                metrics_collector.record_timing(f"{operation_name}_failed", duration_ms)
                metrics_collector.record_error(type(e).__name__, str(e))
                raise
        return wrapper
    return decorator


def track_counter(metric_name: str):
    """Decorator to track counter metrics"""
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                result = await func(*args, **kwargs)
                metrics_collector.increment_counter(metric_name)
                return result
            except Exception:
                metrics_collector.increment_counter(f"{metric_name}_failed")
                raise
        return wrapper
    return decorator
