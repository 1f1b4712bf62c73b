"""
Deliveries App Serializers - Deliveries & Riders
"""

from rest_framework import serializers

from .models import Delivery, PaymentStatus, Rider


class DeliverySerializer(serializers.ModelSerializer):
    """Full serializer for Delivery model."""

    class Meta:
        model = Delivery
        fields = [
            'id', 'sequence', 'status',
            'pickup', 'dropoff',
            'package_size', 'package_description',
            'receiver_name', 'receiver_phone',
            'delivery_fee', 'payment_method', 'payment_status',
            'customer_id', 'rider_id',
            'created_at', 'accepted_at', 'picked_up_at', 'in_transit_at', 'completed_at',
        ]
        read_only_fields = fields


class DeliveryCreateSerializer(serializers.ModelSerializer):
    """
    Payload for a new delivery.

    Lifecycle fields (status, rider, timestamps) are not accepted here; the
    store sets them.
    """

    payment_status = serializers.ChoiceField(
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING
    )

    class Meta:
        model = Delivery
        fields = [
            'pickup', 'dropoff',
            'package_size', 'package_description',
            'receiver_name', 'receiver_phone',
            'delivery_fee', 'payment_method', 'payment_status',
            'customer_id',
        ]
        extra_kwargs = {
            'delivery_fee': {'required': True},
        }


class AcceptDeliverySerializer(serializers.Serializer):
    rider_id = serializers.CharField(max_length=64)

    def validate_rider_id(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("rider_id cannot be blank.")
        return value


class RiderSerializer(serializers.ModelSerializer):
    """Rider with availability derived from the delivery store."""

    availability = serializers.SerializerMethodField()

    class Meta:
        model = Rider
        fields = ['id', 'name', 'phone', 'is_active', 'created_at', 'availability']
        read_only_fields = ['id', 'created_at', 'availability']

    def get_availability(self, obj) -> str:
        resolver = self.context.get('resolver')
        if resolver is None:
            from .engine import get_engine
            resolver = get_engine().resolver
        return resolver.rider_availability(obj.id)


class RiderEarningsSerializer(serializers.Serializer):
    rider_id = serializers.CharField()
    completed_deliveries = serializers.IntegerField()
    total_earnings = serializers.DecimalField(max_digits=12, decimal_places=2)
    today_deliveries = serializers.IntegerField()
    today_earnings = serializers.DecimalField(max_digits=12, decimal_places=2)
