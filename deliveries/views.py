"""
Deliveries App Views - Deliveries, Riders & Customer tracking API
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from .engine import get_engine
from .exceptions import DeliveryError
from .models import Delivery, Rider
from .serializers import (
    AcceptDeliverySerializer, DeliveryCreateSerializer, DeliverySerializer,
    RiderEarningsSerializer, RiderSerializer
)
from .services import tracking

logger = logging.getLogger(__name__)


class DeliveryErrorMixin:
    """Answer engine errors with {"error", "code"} and the error's HTTP status."""

    def handle_exception(self, exc):
        if isinstance(exc, DeliveryError):
            return Response(
                {'error': str(exc), 'code': exc.code},
                status=exc.status_code
            )
        if isinstance(exc, DjangoValidationError):
            return Response(
                {'error': exc.message_dict if hasattr(exc, 'error_dict') else exc.messages,
                 'code': 'invalid'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return super().handle_exception(exc)


class DeliveryViewSet(DeliveryErrorMixin,
                      mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      viewsets.GenericViewSet):
    """
    ViewSet for Delivery lifecycle.

    Deliveries are never edited directly: they change through accept,
    advance and cancel.
    """

    queryset = Delivery.objects.all().order_by('sequence')
    serializer_class = DeliverySerializer
    permission_classes = [permissions.AllowAny]
    filterset_fields = ['status', 'rider_id', 'customer_id']

    @property
    def engine(self):
        return get_engine()

    def get_object(self):
        return self.engine.store.get(self.kwargs['pk'])

    def create(self, request):
        """Create a new pending delivery."""
        serializer = DeliveryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        delivery = self.engine.create_delivery(**serializer.validated_data)

        return Response(
            DeliverySerializer(delivery).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=False, methods=['post'])
    def bulk(self, request):
        """
        Create several deliveries at once (SME bulk shipping).

        POST /api/deliveries/bulk/ with a JSON list of delivery payloads.
        Nothing is created unless every item is valid.
        """
        serializer = DeliveryCreateSerializer(data=request.data, many=True, allow_empty=False)
        serializer.is_valid(raise_exception=True)

        deliveries = self.engine.create_deliveries(serializer.validated_data)

        return Response(
            DeliverySerializer(deliveries, many=True).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=False, methods=['get'])
    def available(self, request):
        """Pending deliveries for riders, newest first."""
        deliveries = self.engine.resolver.list_available()
        return Response(DeliverySerializer(deliveries, many=True).data)

    @action(detail=True, methods=['post'])
    def accept(self, request, pk=None):
        """Accept a pending delivery as a rider."""
        serializer = AcceptDeliverySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        delivery = self.engine.resolver.accept(pk, serializer.validated_data['rider_id'])
        return Response(DeliverySerializer(delivery).data)

    @action(detail=True, methods=['post'])
    def advance(self, request, pk=None):
        """Move the delivery to its next status (pickup, transit, completion)."""
        delivery = self.engine.advance(pk)
        return Response(DeliverySerializer(delivery).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        delivery = self.engine.cancel(pk)
        return Response(DeliverySerializer(delivery).data)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        """Timestamped step history for tracking screens."""
        delivery = self.get_object()
        return Response(tracking.build_delivery_history(delivery))


class RiderViewSet(DeliveryErrorMixin,
                   mixins.CreateModelMixin,
                   mixins.ListModelMixin,
                   mixins.RetrieveModelMixin,
                   viewsets.GenericViewSet):
    """Riders with derived availability, active delivery and earnings."""

    queryset = Rider.objects.all()
    serializer_class = RiderSerializer
    permission_classes = [permissions.AllowAny]
    filterset_fields = ['is_active']

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['resolver'] = get_engine().resolver
        return context

    @action(detail=True, methods=['get'], url_path='active-delivery')
    def active_delivery(self, request, pk=None):
        rider = self.get_object()
        delivery = get_engine().resolver.active_delivery(rider.id)
        if delivery is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(DeliverySerializer(delivery).data)

    @action(detail=True, methods=['get'])
    def earnings(self, request, pk=None):
        rider = self.get_object()
        summary = tracking.rider_earnings_summary(rider.id, now=get_engine().store.now())
        return Response(RiderEarningsSerializer(summary).data)


class CustomerDeliveriesView(APIView):
    """
    A customer's deliveries, most recent first.

    GET /api/customers/<customer_id>/deliveries/
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, customer_id):
        deliveries = tracking.customer_deliveries(customer_id)
        return Response(DeliverySerializer(deliveries, many=True).data)


class CustomerActiveDeliveryView(APIView):
    """
    The customer's current delivery, polled by tracking screens.

    GET /api/customers/<customer_id>/active-delivery/
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, customer_id):
        delivery = tracking.customer_active_delivery(customer_id)
        if delivery is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(DeliverySerializer(delivery).data)
