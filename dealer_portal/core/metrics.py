"""Prometheus metrics for monitoring"""
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry
import time
from functools import wraps
from typing import Callable

registry = CollectorRegistry()

request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=registry
)

store_calls = Counter(
    'record_store_calls_total',
    'Total calls made to the record store',
    ['app', 'operation', 'status'],
    registry=registry
)

store_call_duration = Histogram(
    'record_store_call_duration_seconds',
    'Record store call duration in seconds',
    ['app', 'operation'],
    registry=registry
)

order_submissions = Counter(
    'order_submissions_total',
    'Order submissions by outcome',
    ['outcome'],
    registry=registry
)

cache_hits = Counter(
    'cache_hits_total',
    'Total cache hits',
    ['cache_key'],
    registry=registry
)

cache_misses = Counter(
    'cache_misses_total',
    'Total cache misses',
    ['cache_key'],
    registry=registry
)

rate_limit_exceeded = Counter(
    'rate_limit_exceeded_total',
    'Total rate limit exceeded events',
    ['user_id'],
    registry=registry
)

push_deliveries = Counter(
    'push_deliveries_total',
    'Total push notification delivery attempts',
    ['status', 'retry_count'],
    registry=registry
)

audit_logs_created = Counter(
    'audit_logs_created_total',
    'Total audit logs created',
    ['action', 'user_id'],
    registry=registry
)

redis_connected = Gauge(
    'redis_connected',
    'Redis connection status (1=connected, 0=disconnected)',
    registry=registry
)


def track_store_call(operation: str):
    """Decorator for record store client methods taking ``app`` first"""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(self, app, *args, **kwargs):
            start_time = time.time()
            try:
                result = await func(self, app, *args, **kwargs)
                store_calls.labels(app=str(app), operation=operation, status='success').inc()
                return result
            except Exception:
                store_calls.labels(app=str(app), operation=operation, status='error').inc()
                raise
            finally:
                store_call_duration.labels(app=str(app), operation=operation).observe(
                    time.time() - start_time
                )
        return wrapper
    return decorator


def get_metrics_text() -> str:
    """Generate Prometheus metrics in text format"""
    from prometheus_client import generate_latest
    return generate_latest(registry).decode('utf-8')
