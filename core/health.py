"""
JETDASH Monitoring & Health Check Endpoints
=============================================

Provides:
1. /health/ - Basic liveness check (for load balancers/Docker)
2. /health/ready/ - Readiness check (DB, cache, channel layer)
"""

import time
import logging
from django.http import JsonResponse
from django.db import connection
from django.core.cache import cache
from django.views.decorators.http import require_GET
from django.views.decorators.csrf import csrf_exempt
from django.utils import timezone

logger = logging.getLogger('jetdash.monitoring')


@csrf_exempt
@require_GET
def health_check(request):
    """
    Basic liveness probe.
    Returns 200 if the Django process is alive.
    """
    return JsonResponse({
        'status': 'ok',
        'service': 'jetdash',
        'timestamp': timezone.now().isoformat(),
    })


def _check_database():
    start = time.time()
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()
    return {
        'status': 'healthy',
        'response_time_ms': round((time.time() - start) * 1000, 2),
        'engine': connection.vendor,
    }


def _check_cache():
    start = time.time()
    cache_key = '_healthcheck_ping'
    cache.set(cache_key, 'pong', 10)
    if cache.get(cache_key) != 'pong':
        raise RuntimeError("Cache read/write mismatch")
    return {
        'status': 'healthy',
        'response_time_ms': round((time.time() - start) * 1000, 2),
    }


def _check_channel_layer():
    from channels.layers import get_channel_layer

    layer = get_channel_layer()
    if layer is None:
        raise RuntimeError("No channel layer configured")
    return {
        'status': 'healthy',
        'backend': type(layer).__name__,
    }


@csrf_exempt
@require_GET
def readiness_check(request):
    """
    Readiness probe - checks all critical dependencies.
    Returns 200 only if ALL dependencies are healthy, 503 otherwise.
    """
    checks = {}
    all_healthy = True

    for name, check in (
        ('database', _check_database),
        ('cache', _check_cache),
        ('channel_layer', _check_channel_layer),
    ):
        try:
            checks[name] = check()
        except Exception as e:
            checks[name] = {
                'status': 'unhealthy',
                'error': str(e),
            }
            all_healthy = False
            logger.error(f"Health check - {name} unhealthy: {e}")

    return JsonResponse({
        'status': 'healthy' if all_healthy else 'unhealthy',
        'service': 'jetdash',
        'timestamp': timezone.now().isoformat(),
        'checks': checks,
    }, status=200 if all_healthy else 503)
