"""
DELIVERIES App - Delivery Lifecycle State Machine

Pure decision functions: given a status and an event, return the field
changes to apply or raise InvalidTransition. Nothing here touches the
database; DeliveryStore.transition() persists the result.

    pending -> accepted -> picked_up -> in_transit -> completed
       \\          \\
        +----------+--> cancelled
"""

from datetime import datetime
from typing import Any, Dict, Optional

from django.db import models

from deliveries.exceptions import InvalidTransition
from deliveries.models import DeliveryStatus, TERMINAL_STATUSES


class LifecycleEvent(models.TextChoices):
    """Events accepted by the lifecycle state machine."""
    ASSIGN = 'assign', 'Assign rider'
    MARK_PICKED_UP = 'mark_picked_up', 'Mark picked up'
    MARK_IN_TRANSIT = 'mark_in_transit', 'Mark in transit'
    MARK_COMPLETED = 'mark_completed', 'Mark completed'
    CANCEL = 'cancel', 'Cancel'


# ============================================
# TRANSITION TABLE
# ============================================
# event -> (valid source statuses, resulting status, timestamp field or None)

TRANSITIONS = {
    LifecycleEvent.ASSIGN: (
        (DeliveryStatus.PENDING,),
        DeliveryStatus.ACCEPTED,
        'accepted_at',
    ),
    LifecycleEvent.MARK_PICKED_UP: (
        (DeliveryStatus.ACCEPTED,),
        DeliveryStatus.PICKED_UP,
        'picked_up_at',
    ),
    LifecycleEvent.MARK_IN_TRANSIT: (
        (DeliveryStatus.PICKED_UP,),
        DeliveryStatus.IN_TRANSIT,
        'in_transit_at',
    ),
    LifecycleEvent.MARK_COMPLETED: (
        (DeliveryStatus.IN_TRANSIT,),
        DeliveryStatus.COMPLETED,
        'completed_at',
    ),
    LifecycleEvent.CANCEL: (
        (DeliveryStatus.PENDING, DeliveryStatus.ACCEPTED),
        DeliveryStatus.CANCELLED,
        None,
    ),
}

# Forward event applied automatically from each active status
_NEXT_EVENT = {
    DeliveryStatus.ACCEPTED: LifecycleEvent.MARK_PICKED_UP,
    DeliveryStatus.PICKED_UP: LifecycleEvent.MARK_IN_TRANSIT,
    DeliveryStatus.IN_TRANSIT: LifecycleEvent.MARK_COMPLETED,
}

_ENTERED_AT = {
    DeliveryStatus.PENDING: 'created_at',
    DeliveryStatus.ACCEPTED: 'accepted_at',
    DeliveryStatus.PICKED_UP: 'picked_up_at',
    DeliveryStatus.IN_TRANSIT: 'in_transit_at',
    DeliveryStatus.COMPLETED: 'completed_at',
}


def decide(
    status: str,
    event: str,
    now: datetime,
    rider_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Decide the outcome of applying an event to a delivery.

    Args:
        status: Current delivery status
        event: LifecycleEvent value
        now: Timestamp recorded by the transition
        rider_id: Rider taking the delivery (required for ASSIGN only)

    Returns:
        Dict of field changes (always includes 'status')

    Raises:
        InvalidTransition: If the event is unknown or not valid from status
        ValueError: If ASSIGN is requested without a rider_id
    """
    try:
        event = LifecycleEvent(event)
    except ValueError:
        raise InvalidTransition(event, status)

    sources, target, timestamp_field = TRANSITIONS[event]
    if status not in sources:
        raise InvalidTransition(event, status)

    changes: Dict[str, Any] = {'status': target}

    if event == LifecycleEvent.ASSIGN:
        if not rider_id:
            raise ValueError("A rider_id is required to assign a delivery")
        changes['rider_id'] = str(rider_id)

    if timestamp_field:
        changes[timestamp_field] = now

    return changes


def next_event(status: str) -> Optional[LifecycleEvent]:
    """Forward event from an active status, None for pending and terminal ones."""
    return _NEXT_EVENT.get(status)


def entered_at_field(status: str) -> Optional[str]:
    """Name of the timestamp recording when the delivery entered status."""
    return _ENTERED_AT.get(status)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def allowed_events(status: str):
    """Events that are valid from status, in table order."""
    return [event for event, (sources, _, _) in TRANSITIONS.items() if status in sources]
