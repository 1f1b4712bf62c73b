"""
DELIVERIES App - Tracking & Earnings read models

Read-only views over the delivery store for customer tracking screens
and rider dashboards.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from django.db.models import Count, Sum
from django.utils import timezone

from deliveries.models import ACTIVE_STATUSES, Delivery, DeliveryStatus


# step, label, timestamp field
HISTORY_STEPS = (
    ('created', 'Order created', 'created_at'),
    ('accepted', 'Rider assigned', 'accepted_at'),
    ('picked_up', 'Package picked up', 'picked_up_at'),
    ('in_transit', 'On the way', 'in_transit_at'),
    ('completed', 'Delivered', 'completed_at'),
)


def build_delivery_history(delivery: Delivery) -> Dict:
    """Timestamped step list for one delivery, oldest step first."""
    history = []

    for step, label, field_name in HISTORY_STEPS:
        timestamp = getattr(delivery, field_name)
        if not timestamp:
            continue

        local = timezone.localtime(timestamp)
        if step in ('created', 'picked_up'):
            location = delivery.pickup
        elif step == 'completed':
            location = delivery.dropoff
        elif step == 'accepted':
            location = f'Rider {delivery.rider_id}'
        else:
            location = f'To {delivery.dropoff}'

        history.append({
            'step': step,
            'label': label,
            'timestamp': timestamp.isoformat(),
            'time_display': local.strftime('%H:%M'),
            'date_display': local.strftime('%d/%m/%Y'),
            'location': location,
        })

    return {
        'delivery_id': str(delivery.id),
        'current_status': delivery.status,
        'history': history,
        'receiver_name': delivery.receiver_name,
    }


def customer_deliveries(customer_id) -> List[Delivery]:
    """A customer's deliveries, most recent first."""
    return list(
        Delivery.objects
        .filter(customer_id=str(customer_id))
        .order_by('-created_at', '-sequence')
    )


def customer_active_delivery(customer_id) -> Optional[Delivery]:
    """The customer's most recent delivery that is still pending or in flight."""
    return (
        Delivery.objects
        .filter(
            customer_id=str(customer_id),
            status__in=(DeliveryStatus.PENDING,) + ACTIVE_STATUSES,
        )
        .order_by('-created_at', '-sequence')
        .first()
    )


def rider_earnings_summary(rider_id, now: Optional[datetime] = None) -> Dict:
    """
    Completed-delivery totals for a rider dashboard.

    Earnings are the sum of delivery_fee over completed deliveries;
    "today" is the local calendar day of now.

    Returns:
        Dict with completed_deliveries, today_deliveries, today_earnings
        and total_earnings (as Decimal)
    """
    now = now or timezone.now()
    completed = Delivery.objects.filter(rider_id=str(rider_id), status=DeliveryStatus.COMPLETED)

    start_of_day = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)

    totals = completed.aggregate(count=Count('id'), earnings=Sum('delivery_fee'))
    today = completed.filter(completed_at__gte=start_of_day, completed_at__lte=now).aggregate(
        count=Count('id'), earnings=Sum('delivery_fee')
    )

    return {
        'rider_id': str(rider_id),
        'completed_deliveries': totals['count'] or 0,
        'total_earnings': totals['earnings'] or Decimal('0'),
        'today_deliveries': today['count'] or 0,
        'today_earnings': today['earnings'] or Decimal('0'),
    }
