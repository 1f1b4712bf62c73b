"""
DELIVERIES App - Delivery Record Store

Single entry point for reading and writing Delivery rows. Every
read-modify-write runs inside locked(), which serializes writers in this
process and opens a database transaction (with row locks on backends that
support SELECT ... FOR UPDATE).
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Max
from django.utils import timezone

from deliveries import lifecycle
from deliveries.exceptions import DeliveryNotFound, PersistenceFailure
from deliveries.models import ACTIVE_STATUSES, Delivery, DeliveryStatus

logger = logging.getLogger(__name__)


# Fields owned by the store and the state machine
LIFECYCLE_FIELDS = frozenset({
    'id', 'sequence', 'status', 'rider_id', 'created_at',
    'accepted_at', 'picked_up_at', 'in_transit_at', 'completed_at',
})


class DeliveryStore:
    """
    CRUD over Delivery records.

    Outside callers create and read deliveries here, and move them through
    the lifecycle with transition() (or the rider assignment resolver).
    update() only edits the descriptive payload.

    Usage:
        store = DeliveryStore()
        delivery = store.create(pickup='Pantami Market', dropoff='Tudun Wada', ...)
        store.transition(delivery.id, LifecycleEvent.CANCEL)
    """

    def __init__(
        self,
        clock: Optional[Callable] = None,
        id_factory: Optional[Callable] = None
    ):
        self._clock = clock or timezone.now
        self._id_factory = id_factory or uuid.uuid4
        self._lock = threading.RLock()

    def now(self):
        return self._clock()

    @contextmanager
    def locked(self):
        """Linearize a read-modify-write sequence over the store."""
        with self._lock:
            with transaction.atomic():
                yield

    # ============================================
    # CREATE
    # ============================================

    def create(self, **fields) -> Delivery:
        """
        Persist a new delivery in 'pending' status.

        Args:
            **fields: Descriptive payload (pickup, dropoff, receiver_*,
                      package_*, delivery_fee, payment_*, customer_id)

        Returns:
            The saved Delivery

        Raises:
            ValueError: If a lifecycle field (id, status, rider_id, timestamps) is given
            ValidationError: If the payload does not validate
            PersistenceFailure: If the database write fails
        """
        protected = LIFECYCLE_FIELDS & set(fields)
        if protected:
            raise ValueError(
                f"Fields managed by the delivery lifecycle cannot be set on create: "
                f"{', '.join(sorted(protected))}"
            )

        with self.locked():
            last_sequence = Delivery.objects.aggregate(last=Max('sequence'))['last'] or 0
            delivery = Delivery(
                id=self._id_factory(),
                sequence=last_sequence + 1,
                status=DeliveryStatus.PENDING,
                created_at=self.now(),
                **fields
            )
            delivery.full_clean()
            self._save(delivery, force_insert=True)

        logger.info(
            f"[STORE] Delivery {str(delivery.id)[:8]} created | "
            f"{delivery.pickup} -> {delivery.dropoff} | fee: {delivery.delivery_fee}"
        )
        return delivery

    # ============================================
    # READ
    # ============================================

    def get(self, delivery_id, for_update: bool = False) -> Delivery:
        """
        Fetch a delivery by id.

        for_update=True locks the row and is only valid inside locked().

        Raises:
            DeliveryNotFound: If no delivery has this id
        """
        queryset = Delivery.objects.all()
        if for_update:
            queryset = queryset.select_for_update()

        try:
            return queryset.get(pk=delivery_id)
        except (Delivery.DoesNotExist, ValidationError, ValueError):
            raise DeliveryNotFound(delivery_id)

    def list(
        self,
        status: Optional[str] = None,
        rider_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None
    ) -> List[Delivery]:
        """Deliveries matching the filters, in insertion order."""
        queryset = Delivery.objects.all()

        if status:
            queryset = queryset.filter(status=status)
        if statuses is not None:
            queryset = queryset.filter(status__in=list(statuses))
        if rider_id:
            queryset = queryset.filter(rider_id=str(rider_id))
        if customer_id:
            queryset = queryset.filter(customer_id=str(customer_id))

        return list(queryset.order_by('sequence'))

    def active_for_rider(self, rider_id) -> Optional[Delivery]:
        """The rider's accepted, picked up or in transit delivery, if any."""
        return (
            Delivery.objects
            .filter(rider_id=str(rider_id), status__in=ACTIVE_STATUSES)
            .order_by('sequence')
            .first()
        )

    # ============================================
    # WRITE
    # ============================================

    def update(self, delivery_id, patch: Dict[str, Any]) -> Delivery:
        """
        Merge descriptive fields into a delivery and persist it.

        Status, rider and timestamps only change through transition().

        Raises:
            ValueError: If the patch touches a lifecycle field
            DeliveryNotFound: If no delivery has this id
            PersistenceFailure: If the database write fails
        """
        protected = LIFECYCLE_FIELDS & set(patch)
        if protected:
            raise ValueError(
                f"Fields managed by the delivery lifecycle cannot be updated: "
                f"{', '.join(sorted(protected))}"
            )

        with self.locked():
            delivery = self.get(delivery_id, for_update=True)
            return self._apply(delivery, patch)

    def transition(self, delivery_id, event: str, rider_id: Optional[str] = None) -> Delivery:
        """
        Apply a lifecycle event to the current state of a delivery.

        The row is re-read under lock, so a caller holding a stale copy
        cannot overwrite a newer status.

        Raises:
            DeliveryNotFound: If no delivery has this id
            InvalidTransition: If the event is not valid from the current status
            PersistenceFailure: If the database write fails
        """
        with self.locked():
            delivery = self.get(delivery_id, for_update=True)
            previous = delivery.status
            changes = lifecycle.decide(delivery.status, event, self.now(), rider_id=rider_id)
            delivery = self._apply(delivery, changes)

        logger.info(
            f"[STORE] Delivery {str(delivery.id)[:8]} status: "
            f"{previous} -> {delivery.status} ({event})"
        )
        return delivery

    def _apply(self, delivery: Delivery, changes: Dict[str, Any]) -> Delivery:
        for field, value in changes.items():
            setattr(delivery, field, value)
        self._save(delivery, update_fields=list(changes))
        return delivery

    def _save(self, delivery: Delivery, **kwargs):
        try:
            with transaction.atomic():
                delivery.save(**kwargs)
        except DatabaseError as e:
            logger.error(f"[STORE] Failed to persist delivery {str(delivery.id)[:8]}: {e}")
            raise PersistenceFailure(f"Could not save delivery {delivery.id}: {e}") from e
