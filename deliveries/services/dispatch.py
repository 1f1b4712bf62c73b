"""
DELIVERIES App - Rider Assignment Service for JETDASH

Matches pending deliveries with riders and enforces the
one-active-delivery-per-rider rule.
"""

import logging
from typing import List, Optional

from deliveries.events import EventTypes, NotificationBus
from deliveries.exceptions import AlreadyTaken, RiderBusy
from deliveries.lifecycle import LifecycleEvent
from deliveries.models import ACTIVE_STATUSES, Delivery, DeliveryStatus, Rider
from deliveries.store import DeliveryStore

logger = logging.getLogger(__name__)


class RiderAvailability:
    AVAILABLE = 'available'
    BUSY = 'busy'


class RiderAssignmentResolver:
    """
    The only way a delivery leaves 'pending' for a rider.

    Usage:
        resolver = RiderAssignmentResolver(store, bus)
        for delivery in resolver.list_available():
            ...
        resolver.accept(delivery.id, rider_id)
    """

    def __init__(self, store: DeliveryStore, bus: NotificationBus):
        self.store = store
        self.bus = bus

    def list_available(self) -> List[Delivery]:
        """Pending deliveries, newest first (insertion order breaks ties)."""
        pending = self.store.list(status=DeliveryStatus.PENDING)
        return sorted(pending, key=lambda d: (d.created_at, d.sequence), reverse=True)

    def accept(self, delivery_id, rider_id) -> Delivery:
        """
        Accept a delivery as a rider (race condition safe).

        Both checks and the assignment run under the store lock, so of two
        riders racing for the same delivery exactly one wins.

        Args:
            delivery_id: UUID of the pending delivery
            rider_id: Rider taking the delivery

        Returns:
            Updated Delivery instance

        Raises:
            RiderBusy: If the rider already holds an active delivery
            DeliveryNotFound: If the delivery does not exist
            AlreadyTaken: If the delivery is no longer pending
        """
        rider_id = str(rider_id)

        with self.store.locked():
            active = self.store.active_for_rider(rider_id)
            if active is not None:
                logger.warning(
                    f"[DISPATCH] Rider {rider_id} is busy with {str(active.id)[:8]}, "
                    f"cannot accept {str(delivery_id)[:8]}"
                )
                raise RiderBusy(rider_id, active.id)

            delivery = self.store.get(delivery_id, for_update=True)
            if delivery.status != DeliveryStatus.PENDING:
                logger.warning(
                    f"[DISPATCH] Delivery {str(delivery_id)[:8]} already taken "
                    f"(status: {delivery.status})"
                )
                raise AlreadyTaken(delivery.id, delivery.status)

            delivery = self.store.transition(delivery.id, LifecycleEvent.ASSIGN, rider_id=rider_id)

        logger.info(f"[DISPATCH] Delivery {str(delivery.id)[:8]} accepted by rider {rider_id}")

        self.bus.publish(EventTypes.DELIVERY_UPDATED, delivery)
        return delivery

    # ============================================
    # RIDER VIEWS
    # ============================================

    def active_delivery(self, rider_id) -> Optional[Delivery]:
        return self.store.active_for_rider(rider_id)

    def rider_availability(self, rider_id) -> str:
        if self.store.active_for_rider(rider_id) is None:
            return RiderAvailability.AVAILABLE
        return RiderAvailability.BUSY

    def available_riders(self) -> List[Rider]:
        """Active riders without an active delivery, oldest registration first."""
        busy = set(
            Delivery.objects
            .filter(status__in=ACTIVE_STATUSES)
            .exclude(rider_id__isnull=True)
            .values_list('rider_id', flat=True)
        )
        return [
            rider for rider in Rider.objects.filter(is_active=True).order_by('created_at', 'id')
            if str(rider.id) not in busy
        ]
