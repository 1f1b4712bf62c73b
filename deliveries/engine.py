"""
DELIVERIES App - Engine wiring

One DeliveryEngine per process ties the store, bus, resolver and
propagator together. Views, consumers, tasks and commands obtain it
through get_engine().
"""

import logging
import random
import threading
from typing import Callable, Iterable, List, Optional

from deliveries import lifecycle
from deliveries.events import ChannelsBridge, EventTypes, NotificationBus
from deliveries.exceptions import InvalidTransition
from deliveries.lifecycle import LifecycleEvent
from deliveries.models import Delivery
from deliveries.services.dispatch import RiderAssignmentResolver
from deliveries.services.propagator import PropagatorPolicy, UpdatePropagator
from deliveries.store import DeliveryStore

logger = logging.getLogger(__name__)


class DeliveryEngine:
    """
    Usage:
        engine = get_engine()
        delivery = engine.create_delivery(pickup='Pantami Market', ...)
        engine.resolver.accept(delivery.id, rider_id)
        engine.advance(delivery.id)
    """

    def __init__(
        self,
        store: Optional[DeliveryStore] = None,
        bus: Optional[NotificationBus] = None,
        policy: Optional[PropagatorPolicy] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable] = None
    ):
        self.store = store or DeliveryStore(clock=clock)
        self.bus = bus or NotificationBus()
        self.resolver = RiderAssignmentResolver(self.store, self.bus)
        self.propagator = UpdatePropagator(
            self.store, self.bus, self.resolver, policy=policy, rng=rng
        )

    def create_delivery(self, **fields) -> Delivery:
        delivery = self.store.create(**fields)
        self.bus.publish(EventTypes.NEW_DELIVERY_AVAILABLE, delivery)
        return delivery

    def create_deliveries(self, payloads: Iterable[dict]) -> List[Delivery]:
        """
        Create a batch of deliveries (SME bulk shipping).

        Either every delivery is stored or none is. Riders are notified
        once per delivery after the batch commits.
        """
        with self.store.locked():
            deliveries = [self.store.create(**fields) for fields in payloads]

        logger.info(f"[ENGINE] Bulk created {len(deliveries)} deliveries")
        for delivery in deliveries:
            self.bus.publish(EventTypes.NEW_DELIVERY_AVAILABLE, delivery)
        return deliveries

    def advance(self, delivery_id) -> Delivery:
        """
        Apply the next forward event (pickup, transit, completion).

        Raises:
            InvalidTransition: If the delivery is pending or terminal
            DeliveryNotFound: If no delivery has this id
        """
        with self.store.locked():
            current = self.store.get(delivery_id, for_update=True)
            event = lifecycle.next_event(current.status)
            if event is None:
                raise InvalidTransition('advance', current.status)
            delivery = self.store.transition(delivery_id, event)

        self.bus.publish(EventTypes.DELIVERY_UPDATED, delivery)
        return delivery

    def cancel(self, delivery_id) -> Delivery:
        delivery = self.store.transition(delivery_id, LifecycleEvent.CANCEL)
        logger.info(f"[ENGINE] Delivery {str(delivery.id)[:8]} cancelled")
        self.bus.publish(EventTypes.DELIVERY_UPDATED, delivery)
        return delivery


_engine: Optional[DeliveryEngine] = None
_engine_lock = threading.Lock()

# Websocket forwarding follows whichever engine is current
_bridge_enabled = False
_bridge: Optional[ChannelsBridge] = None


def _attach_bridge(engine: Optional[DeliveryEngine]):
    global _bridge
    if not _bridge_enabled:
        return
    if _bridge is not None:
        _bridge.close()
    _bridge = ChannelsBridge(engine.bus) if engine is not None else None


def get_engine() -> DeliveryEngine:
    """Process-wide engine, built on first use from settings."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = DeliveryEngine()
            _attach_bridge(_engine)
        return _engine


def set_engine(engine: Optional[DeliveryEngine]) -> Optional[DeliveryEngine]:
    """
    Replace the process-wide engine (tests). Returns the previous one.

    When websocket forwarding is on, it moves to the new engine's bus.
    """
    global _engine
    with _engine_lock:
        previous, _engine = _engine, engine
        _attach_bridge(engine)
        return previous


def enable_channels_bridge():
    """Forward the current engine's bus events to the websocket groups."""
    global _bridge_enabled, _engine
    with _engine_lock:
        _bridge_enabled = True
        if _engine is None:
            _engine = DeliveryEngine()
        _attach_bridge(_engine)
