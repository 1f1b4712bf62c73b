"""
DELIVERIES App - WebSocket Routing Configuration

Maps WebSocket URLs to consumers for real-time tracking.
"""

from django.urls import re_path
from . import consumers


websocket_urlpatterns = [
    # Track a specific delivery in real-time
    # ws://localhost:8000/ws/deliveries/<uuid>/
    re_path(
        r'ws/deliveries/(?P<delivery_id>[0-9a-f-]+)/$',
        consumers.DeliveryTrackingConsumer.as_asgi()
    ),

    # Rider app - own deliveries and new work
    # ws://localhost:8000/ws/riders/<rider_id>/
    re_path(
        r'ws/riders/(?P<rider_id>[\w-]+)/$',
        consumers.RiderConsumer.as_asgi()
    ),

    # Dispatch console - every event
    # ws://localhost:8000/ws/dispatch/
    re_path(
        r'ws/dispatch/$',
        consumers.DispatchConsumer.as_asgi()
    ),
]
