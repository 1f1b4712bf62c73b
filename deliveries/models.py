"""
DELIVERIES App - Deliveries & Riders for JETDASH

Handles: Deliveries, Riders, lifecycle timestamps
"""

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models


class DeliveryStatus(models.TextChoices):
    """Delivery status enumeration."""
    PENDING = 'pending', 'Pending'
    ACCEPTED = 'accepted', 'Rider assigned'
    PICKED_UP = 'picked_up', 'Package picked up'
    IN_TRANSIT = 'in_transit', 'In transit'
    COMPLETED = 'completed', 'Delivered'
    CANCELLED = 'cancelled', 'Cancelled'


# A rider holds at most one delivery in these states
ACTIVE_STATUSES = (
    DeliveryStatus.ACCEPTED,
    DeliveryStatus.PICKED_UP,
    DeliveryStatus.IN_TRANSIT,
)

TERMINAL_STATUSES = (
    DeliveryStatus.COMPLETED,
    DeliveryStatus.CANCELLED,
)


class PaymentStatus(models.TextChoices):
    """Payment status, independent from the delivery status."""
    PENDING = 'pending', 'Pending'
    COMPLETED = 'completed', 'Paid'
    FAILED = 'failed', 'Failed'


class Delivery(models.Model):
    """
    Core delivery model.

    The fee is frozen at creation. Status and the transition timestamps are
    only written through DeliveryStore.transition(), never directly.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sequence = models.PositiveBigIntegerField(
        unique=True,
        editable=False,
        verbose_name="Insertion order"
    )

    # Actors (weak references, lookup only)
    customer_id = models.CharField(
        max_length=64,
        blank=True,
        db_index=True,
        verbose_name="Customer / SME"
    )
    rider_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        verbose_name="Rider"
    )

    # Status
    status = models.CharField(
        max_length=20,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.PENDING,
        verbose_name="Status"
    )

    # Locations (free text, not geocoded)
    pickup = models.CharField(max_length=255, verbose_name="Pickup location")
    dropoff = models.CharField(max_length=255, verbose_name="Dropoff location")

    # Package Info
    package_size = models.CharField(
        max_length=20,
        blank=True,
        verbose_name="Package size"
    )
    package_description = models.TextField(
        blank=True,
        verbose_name="Package description"
    )
    receiver_name = models.CharField(max_length=150, verbose_name="Receiver name")
    receiver_phone = models.CharField(max_length=32, verbose_name="Receiver phone")

    # Pricing & payment
    delivery_fee = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        verbose_name="Delivery fee (NGN)"
    )
    payment_method = models.CharField(
        max_length=20,
        blank=True,
        verbose_name="Payment method"
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        verbose_name="Payment status"
    )

    # Timestamps (each set once, by the transition entering the state)
    created_at = models.DateTimeField(editable=False)
    accepted_at = models.DateTimeField(null=True, blank=True)
    picked_up_at = models.DateTimeField(null=True, blank=True)
    in_transit_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Delivery"
        verbose_name_plural = "Deliveries"
        ordering = ['sequence']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='delivery_status_created_idx'),
            models.Index(fields=['rider_id', 'status'], name='delivery_rider_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['rider_id'],
                condition=models.Q(status__in=[s.value for s in ACTIVE_STATUSES]),
                name='one_active_delivery_per_rider',
            ),
            models.CheckConstraint(
                condition=models.Q(delivery_fee__gte=0),
                name='delivery_fee_non_negative',
            ),
        ]

    def __str__(self):
        return f"Delivery {str(self.id)[:8]} - {self.status}"

    @property
    def is_pending(self) -> bool:
        return self.status == DeliveryStatus.PENDING

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Rider(models.Model):
    """
    Dispatch rider.

    Availability is not stored: a rider is busy exactly when the store holds
    an active delivery for them.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=150, verbose_name="Full name")
    phone = models.CharField(max_length=32, blank=True, verbose_name="Phone")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Rider"
        verbose_name_plural = "Riders"
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.name} ({str(self.id)[:8]})"
