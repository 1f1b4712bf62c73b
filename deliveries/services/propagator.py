"""
DELIVERIES App - Real-Time Update Propagator for JETDASH

Simulates real-world delivery progress without a live rider feed:
on every tick, active deliveries that have spent long enough in their
current status move to the next one with a fixed per-tick probability,
and new pending deliveries occasionally appear (organic demand).

Clock and random source are injected, so a tick over the same snapshot
with the same seed always makes the same decisions.

Runs either:
- as a Celery beat task (deliveries.tasks.propagate_deliveries), or
- on a background thread via start()/stop() (manage.py run_propagator)
"""

import logging
import random
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Callable, List, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.db import close_old_connections

from deliveries import lifecycle
from deliveries.events import EventTypes, NotificationBus
from deliveries.exceptions import DeliveryError, InvalidTransition
from deliveries.models import ACTIVE_STATUSES, Delivery, DeliveryStatus, PaymentStatus
from deliveries.services.dispatch import RiderAssignmentResolver
from deliveries.store import DeliveryStore

logger = logging.getLogger(__name__)


# ============================================
# POLICY
# ============================================

MIN_INTERVAL_SECONDS = 1
MAX_INTERVAL_SECONDS = 30


@dataclass
class PropagatorPolicy:
    """Tuning constants for the simulation. Demo values, not delivery SLAs."""
    interval_seconds: float = 5
    accepted_after: timedelta = timedelta(minutes=2)
    picked_up_after: timedelta = timedelta(minutes=5)
    in_transit_after: timedelta = timedelta(minutes=10)
    accepted_probability: float = 0.3
    picked_up_probability: float = 0.2
    in_transit_probability: float = 0.1
    new_delivery_probability: float = 0.15
    auto_accept: bool = False
    pending_after: timedelta = timedelta(minutes=2)
    auto_accept_probability: float = 0.4

    def __post_init__(self):
        if not MIN_INTERVAL_SECONDS <= self.interval_seconds <= MAX_INTERVAL_SECONDS:
            raise ValueError(
                f"Propagator interval must be between {MIN_INTERVAL_SECONDS} and "
                f"{MAX_INTERVAL_SECONDS} seconds, got {self.interval_seconds}"
            )
        for name in (
            'accepted_probability', 'picked_up_probability', 'in_transit_probability',
            'new_delivery_probability', 'auto_accept_probability',
        ):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")

    @classmethod
    def from_settings(cls) -> 'PropagatorPolicy':
        try:
            return cls(
                interval_seconds=settings.PROPAGATOR_INTERVAL_SECONDS,
                accepted_after=timedelta(minutes=settings.PROPAGATOR_ACCEPTED_MINUTES),
                picked_up_after=timedelta(minutes=settings.PROPAGATOR_PICKED_UP_MINUTES),
                in_transit_after=timedelta(minutes=settings.PROPAGATOR_IN_TRANSIT_MINUTES),
                accepted_probability=settings.PROPAGATOR_ACCEPTED_PROBABILITY,
                picked_up_probability=settings.PROPAGATOR_PICKED_UP_PROBABILITY,
                in_transit_probability=settings.PROPAGATOR_IN_TRANSIT_PROBABILITY,
                new_delivery_probability=settings.PROPAGATOR_NEW_DELIVERY_PROBABILITY,
                auto_accept=settings.PROPAGATOR_AUTO_ACCEPT,
                pending_after=timedelta(minutes=settings.PROPAGATOR_PENDING_MINUTES),
                auto_accept_probability=settings.PROPAGATOR_AUTO_ACCEPT_PROBABILITY,
            )
        except ValueError as e:
            raise ImproperlyConfigured(str(e))

    def threshold_for(self, status: str) -> Optional[timedelta]:
        return {
            DeliveryStatus.ACCEPTED: self.accepted_after,
            DeliveryStatus.PICKED_UP: self.picked_up_after,
            DeliveryStatus.IN_TRANSIT: self.in_transit_after,
        }.get(status)

    def probability_for(self, status: str) -> float:
        return {
            DeliveryStatus.ACCEPTED: self.accepted_probability,
            DeliveryStatus.PICKED_UP: self.picked_up_probability,
            DeliveryStatus.IN_TRANSIT: self.in_transit_probability,
        }.get(status, 0.0)


@dataclass
class TickReport:
    """Outcome of one propagator tick."""
    advanced: List[Delivery] = field(default_factory=list)
    auto_accepted: List[Delivery] = field(default_factory=list)
    created: Optional[Delivery] = None
    errors: int = 0

    def to_dict(self) -> dict:
        return {
            'advanced': [str(d.id) for d in self.advanced],
            'auto_accepted': [str(d.id) for d in self.auto_accepted],
            'created': str(self.created.id) if self.created else None,
            'errors': self.errors,
        }


# ============================================
# DEMAND CATALOGUE (Gombe)
# ============================================

PICKUP_POINTS = ['Pantami Market', 'Gombe Central', 'Nasarawo Market']
DROPOFF_POINTS = ['Federal Lowcost', 'Tudun Wada', 'Bolari Estate']
RECEIVER_NAMES = ['Ahmad Hassan', 'Fatima Ali', 'Ibrahim Sani']
PACKAGE_SIZES = ['Small', 'Medium', 'Large']
DELIVERY_FEES = [Decimal('600'), Decimal('800'), Decimal('1000')]


# ============================================
# PROPAGATOR
# ============================================

class UpdatePropagator:
    """
    Periodic driver of automatic delivery progress.

    Usage:
        propagator = UpdatePropagator(store, bus, resolver)
        report = propagator.tick()        # one pass (Celery, tests)

        propagator.start()                # background thread
        propagator.stop()
    """

    def __init__(
        self,
        store: DeliveryStore,
        bus: NotificationBus,
        resolver: RiderAssignmentResolver,
        policy: Optional[PropagatorPolicy] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable] = None
    ):
        self.store = store
        self.bus = bus
        self.resolver = resolver
        self.policy = policy or PropagatorPolicy.from_settings()
        self.rng = rng or random.Random()
        # Must agree with the clock stamping transitions
        self.clock = clock or store.now

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._thread_lock = threading.Lock()

    # ============================================
    # TICK
    # ============================================

    def tick(self) -> TickReport:
        """Run one pass over the store."""
        return self._tick(stop_event=None)

    def _tick(self, stop_event: Optional[threading.Event]) -> TickReport:
        report = TickReport()
        now = self.clock()

        # Ascending id keeps the sequence of random draws reproducible
        candidates = sorted(self.store.list(statuses=ACTIVE_STATUSES), key=lambda d: str(d.id))

        for delivery in candidates:
            # Stop between deliveries, never inside a transition
            if stop_event is not None and stop_event.is_set():
                logger.info("[PROPAGATOR] Stop requested, ending tick early")
                return report

            try:
                advanced = self.advance_if_due(delivery, now)
            except DeliveryError as e:
                report.errors += 1
                logger.warning(f"[PROPAGATOR] Delivery {str(delivery.id)[:8]} skipped: {e}")
                continue
            except Exception:
                report.errors += 1
                logger.exception(f"[PROPAGATOR] Delivery {str(delivery.id)[:8]} failed")
                continue

            if advanced is not None:
                report.advanced.append(advanced)

        if self.policy.auto_accept:
            self._auto_accept(now, report)

        if self.rng.random() < self.policy.new_delivery_probability:
            report.created = self._synthesize_delivery(report)

        if report.advanced or report.created or report.auto_accepted:
            logger.info(
                f"[PROPAGATOR] Tick: {len(report.advanced)} advanced, "
                f"{len(report.auto_accepted)} auto-accepted, "
                f"{'1' if report.created else '0'} new, {report.errors} errors"
            )
        return report

    def advance_if_due(self, delivery: Delivery, now) -> Optional[Delivery]:
        """
        Move a delivery one step forward if its dwell time and the dice allow.

        delivery may be a stale snapshot: the store re-reads the row, and a
        delivery that already moved on is left alone.

        Returns:
            The updated Delivery, or None if nothing changed
        """
        event = lifecycle.next_event(delivery.status)
        threshold = self.policy.threshold_for(delivery.status)
        if event is None or threshold is None:
            return None

        entered_at = getattr(delivery, lifecycle.entered_at_field(delivery.status))
        if entered_at is None:
            logger.warning(
                f"[PROPAGATOR] Delivery {str(delivery.id)[:8]} in {delivery.status} "
                f"has no entry timestamp"
            )
            return None

        if now - entered_at <= threshold:
            return None

        if self.rng.random() >= self.policy.probability_for(delivery.status):
            return None

        try:
            updated = self.store.transition(delivery.id, event)
        except InvalidTransition as e:
            logger.debug(f"[PROPAGATOR] Stale snapshot for {str(delivery.id)[:8]}: {e}")
            return None

        self.bus.publish(EventTypes.DELIVERY_UPDATED, updated)
        return updated

    def _auto_accept(self, now, report: TickReport):
        """Hand stale pending deliveries to idle riders through the resolver."""
        riders = self.resolver.available_riders()
        if not riders:
            return

        pending = sorted(self.store.list(status=DeliveryStatus.PENDING), key=lambda d: str(d.id))
        for delivery in pending:
            if not riders:
                break
            if now - delivery.created_at <= self.policy.pending_after:
                continue
            if self.rng.random() >= self.policy.auto_accept_probability:
                continue

            rider = riders.pop(0)
            try:
                accepted = self.resolver.accept(delivery.id, rider.id)
            except DeliveryError as e:
                logger.info(f"[PROPAGATOR] Auto-accept of {str(delivery.id)[:8]} skipped: {e}")
                continue
            except Exception:
                report.errors += 1
                logger.exception(f"[PROPAGATOR] Auto-accept of {str(delivery.id)[:8]} failed")
                continue

            report.auto_accepted.append(accepted)

    def _synthesize_delivery(self, report: TickReport) -> Optional[Delivery]:
        """Create a random pending delivery and announce it."""
        rng = self.rng
        fields = {
            'pickup': rng.choice(PICKUP_POINTS),
            'dropoff': rng.choice(DROPOFF_POINTS),
            'package_size': rng.choice(PACKAGE_SIZES),
            'delivery_fee': rng.choice(DELIVERY_FEES),
            'receiver_name': rng.choice(RECEIVER_NAMES),
            'receiver_phone': (
                f"+234 {800 + rng.randrange(100)} "
                f"{rng.randrange(100, 1000)} {rng.randrange(1000, 10000)}"
            ),
            'payment_status': PaymentStatus.COMPLETED,
        }

        try:
            delivery = self.store.create(**fields)
        except (DeliveryError, ValidationError) as e:
            report.errors += 1
            logger.warning(f"[PROPAGATOR] Could not create simulated delivery: {e}")
            return None

        self.bus.publish(EventTypes.NEW_DELIVERY_AVAILABLE, delivery)
        return delivery

    # ============================================
    # BACKGROUND THREAD
    # ============================================

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start ticking every policy.interval_seconds on a daemon thread."""
        with self._thread_lock:
            if self.is_running:
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name='delivery-propagator',
                daemon=True,
            )
            self._thread.start()

        logger.info(f"[PROPAGATOR] Started, ticking every {self.policy.interval_seconds}s")

    def stop(self, timeout: Optional[float] = None):
        """Stop the background thread and wait for it. Safe to call repeatedly."""
        with self._thread_lock:
            self._stop_event.set()
            thread, self._thread = self._thread, None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            logger.info("[PROPAGATOR] Stopped")

    def _run(self, stop_event: threading.Event):
        try:
            while not stop_event.wait(self.policy.interval_seconds):
                try:
                    self._tick(stop_event=stop_event)
                except Exception:
                    logger.exception("[PROPAGATOR] Tick failed")
                finally:
                    close_old_connections()
        finally:
            # Thread-local database connection
            from django.db import connection
            connection.close()
