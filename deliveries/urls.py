"""
Deliveries App URLs
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    DeliveryViewSet, RiderViewSet,
    CustomerDeliveriesView, CustomerActiveDeliveryView
)

router = DefaultRouter()
router.register(r'deliveries', DeliveryViewSet, basename='delivery')
router.register(r'riders', RiderViewSet, basename='rider')

urlpatterns = [
    # Customer tracking
    path(
        'customers/<str:customer_id>/deliveries/',
        CustomerDeliveriesView.as_view(),
        name='customer-deliveries'
    ),
    path(
        'customers/<str:customer_id>/active-delivery/',
        CustomerActiveDeliveryView.as_view(),
        name='customer-active-delivery'
    ),

    # Router URLs
    path('', include(router.urls)),
]
