"""
DELIVERIES App - Celery Tasks

Periodic propagation of delivery progress (see services/propagator.py).
"""

from celery import shared_task
from django.conf import settings
import logging

logger = logging.getLogger(__name__)


@shared_task(name='deliveries.tasks.propagate_deliveries')
def propagate_deliveries():
    """
    Run one propagator tick.

    Scheduled by Celery beat every PROPAGATOR_INTERVAL_SECONDS.
    """
    if not getattr(settings, 'PROPAGATOR_ENABLED', True):
        logger.debug("[PROPAGATOR TASK] Disabled, skipping tick")
        return None

    from deliveries.engine import get_engine

    report = get_engine().propagator.tick()
    return report.to_dict()
