"""
DELIVERIES App - Notification Bus & Real-time Broadcasting

NotificationBus fans delivery changes out to in-process subscribers.
ChannelsBridge is one such subscriber: it pushes every event to the
Django Channels groups the websocket consumers listen on.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

from django.utils import timezone

logger = logging.getLogger(__name__)


# ============================================
# EVENT TYPES
# ============================================

class EventTypes:
    DELIVERY_UPDATED = 'delivery_updated'
    NEW_DELIVERY_AVAILABLE = 'new_delivery_available'

    ALL = (DELIVERY_UPDATED, NEW_DELIVERY_AVAILABLE)


Handler = Callable[[Any], None]


# ============================================
# NOTIFICATION BUS
# ============================================

class NotificationBus:
    """
    Process-local publish/subscribe for delivery events.

    Handlers run synchronously in registration order. A handler that raises
    is logged and skipped; the remaining handlers still run.

    Usage:
        bus = NotificationBus()
        unsubscribe = bus.subscribe(EventTypes.DELIVERY_UPDATED, refresh_screen)
        bus.publish(EventTypes.DELIVERY_UPDATED, delivery)
        unsubscribe()
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """
        Register a handler for one event type.

        Returns:
            A callable removing this registration (safe to call twice)

        Raises:
            ValueError: If the event type is unknown
        """
        self._check_event_type(event_type)
        handlers = self._handlers[event_type]
        handlers.append(handler)

        def unsubscribe():
            try:
                handlers.remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, event_type: str, payload: Any) -> int:
        """
        Deliver payload to every current subscriber of event_type.

        Returns:
            Number of handlers that completed without raising
        """
        self._check_event_type(event_type)
        delivered = 0

        # Copy so handlers may unsubscribe while being notified
        for handler in list(self._handlers[event_type]):
            try:
                handler(payload)
                delivered += 1
            except Exception:
                logger.exception(
                    f"[EVENTS] Handler {getattr(handler, '__qualname__', handler)!r} "
                    f"failed on {event_type}"
                )

        return delivered

    def subscriber_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, ()))

    @staticmethod
    def _check_event_type(event_type: str):
        if event_type not in EventTypes.ALL:
            raise ValueError(f"Unknown event type: {event_type}")


# ============================================
# CHANNELS BROADCASTING
# ============================================

DISPATCH_GROUP = 'dispatch'
AVAILABLE_GROUP = 'available_deliveries'


def delivery_group(delivery_id) -> str:
    return f'delivery_{delivery_id}'


def rider_group(rider_id) -> str:
    return f'rider_{rider_id}'


def get_channel_layer():
    """Get the Django Channels layer (lazy import)."""
    from channels.layers import get_channel_layer as _get_channel_layer
    return _get_channel_layer()


def _send_group_event(group_name: str, event: dict) -> bool:
    """Send event to a channel group."""
    channel_layer = get_channel_layer()
    if not channel_layer:
        return False

    try:
        from asgiref.sync import async_to_sync
        async_to_sync(channel_layer.group_send)(group_name, event)
        return True
    except Exception as e:
        logger.error(f"[EVENTS] Failed to send to group {group_name}: {e}")
        return False


class ChannelsBridge:
    """
    Forwards bus events to websocket groups.

    - delivery_updated: the delivery's tracking group, its rider's group and
      the dispatch group
    - new_delivery_available: the dispatch group and the available-work
      group every rider consumer joins
    """

    def __init__(self, bus: NotificationBus):
        self._unsubscribers = [
            bus.subscribe(EventTypes.DELIVERY_UPDATED, self.on_delivery_updated),
            bus.subscribe(EventTypes.NEW_DELIVERY_AVAILABLE, self.on_new_delivery),
        ]

    def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()

    def on_delivery_updated(self, delivery):
        data = _serialize(delivery)
        event = {
            'type': 'delivery_updated',
            'delivery': data,
            'timestamp': timezone.now().isoformat(),
        }

        _send_group_event(delivery_group(delivery.id), event)
        if delivery.rider_id:
            _send_group_event(rider_group(delivery.rider_id), event)
        _send_group_event(DISPATCH_GROUP, event)

        logger.debug(
            f"[EVENTS] Broadcasted status change: {str(delivery.id)[:8]} -> {delivery.status}"
        )

    def on_new_delivery(self, delivery):
        event = {
            'type': 'new_delivery_available',
            'delivery': _serialize(delivery),
        }
        _send_group_event(AVAILABLE_GROUP, event)
        _send_group_event(DISPATCH_GROUP, event)
        logger.info(f"[EVENTS] Broadcasted new delivery {str(delivery.id)[:8]}")


def _serialize(delivery) -> dict:
    from deliveries.serializers import DeliverySerializer
    # Plain str/None values only, the redis layer msgpacks events
    return dict(DeliverySerializer(delivery).data)
