"""
DELIVERIES App - WebSocket Consumers for Real-time Tracking

Provides real-time updates for:
- Delivery tracking (customers)
- Rider dashboards (own deliveries + new work)
- Dispatch monitoring (every event)

Events reach the consumers through ChannelsBridge (deliveries.events).
"""

import logging
from typing import Any, Dict, Optional

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from .events import AVAILABLE_GROUP, DISPATCH_GROUP, delivery_group, rider_group

logger = logging.getLogger(__name__)


class PingMixin:
    """Keep-alive shared by every consumer."""

    async def receive_json(self, content, **kwargs):
        message_type = content.get('type')

        if message_type == 'ping':
            await self.send_json({'type': 'pong'})
            return

        await self.handle_message(message_type, content)

    async def handle_message(self, message_type, content):
        await self.send_json({
            'type': 'error',
            'code': 'unknown_message',
            'error': f'Unsupported message type: {message_type}',
        })


class DeliveryTrackingConsumer(PingMixin, AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for tracking a specific delivery.

    Clients connect to: ws://host/ws/deliveries/<delivery_id>/
    """

    group_name = None

    async def connect(self):
        self.delivery_id = self.scope['url_route']['kwargs']['delivery_id']

        delivery = await self.get_delivery()
        if delivery is None:
            await self.close(code=4004)
            return

        self.group_name = delivery_group(self.delivery_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

        # Send initial state
        await self.send_json({
            'type': 'connection_established',
            'delivery': delivery,
        })

        logger.info(f"[WS] Client connected to delivery {self.delivery_id[:8]}")

    async def disconnect(self, close_code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
            logger.info(f"[WS] Client disconnected from delivery {self.delivery_id[:8]}")

    # ============================================
    # Event Handlers (called via channel_layer.group_send)
    # ============================================

    async def delivery_updated(self, event):
        await self.send_json({
            'type': 'delivery_updated',
            'delivery': event['delivery'],
            'timestamp': event['timestamp'],
        })

    @database_sync_to_async
    def get_delivery(self) -> Optional[Dict[str, Any]]:
        from .engine import get_engine
        from .exceptions import DeliveryNotFound
        from .serializers import DeliverySerializer

        try:
            delivery = get_engine().store.get(self.delivery_id)
        except DeliveryNotFound:
            return None
        return dict(DeliverySerializer(delivery).data)


class RiderConsumer(PingMixin, AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for the rider app.

    Clients connect to: ws://host/ws/riders/<rider_id>/

    Events sent by rider:
    - accept_delivery: {"type": "accept_delivery", "delivery_id": ...}

    Events received by rider:
    - delivery_updated: one of their deliveries changed
    - new_delivery_available: a delivery is waiting for a rider
    """

    groups_joined = ()

    async def connect(self):
        self.rider_id = self.scope['url_route']['kwargs']['rider_id']
        self.groups_joined = (rider_group(self.rider_id), AVAILABLE_GROUP)

        for group in self.groups_joined:
            await self.channel_layer.group_add(group, self.channel_name)

        await self.accept()

        active = await self.get_active_delivery()
        await self.send_json({
            'type': 'connection_established',
            'rider_id': self.rider_id,
            'active_delivery': active,
        })

        logger.info(f"[WS] Rider {self.rider_id} connected")

    async def disconnect(self, close_code):
        for group in self.groups_joined:
            await self.channel_layer.group_discard(group, self.channel_name)
        logger.info(f"[WS] Rider {self.rider_id} disconnected")

    async def handle_message(self, message_type, content):
        if message_type != 'accept_delivery':
            await super().handle_message(message_type, content)
            return

        delivery_id = content.get('delivery_id')
        if not delivery_id:
            await self.send_json({
                'type': 'error',
                'code': 'invalid',
                'error': 'delivery_id is required',
            })
            return

        await self.send_json(await self.accept_delivery(delivery_id))

    # ============================================
    # Event Handlers
    # ============================================

    async def delivery_updated(self, event):
        await self.send_json({
            'type': 'delivery_updated',
            'delivery': event['delivery'],
            'timestamp': event['timestamp'],
        })

    async def new_delivery_available(self, event):
        await self.send_json({
            'type': 'new_delivery_available',
            'delivery': event['delivery'],
        })

    # ============================================
    # Database helpers
    # ============================================

    @database_sync_to_async
    def get_active_delivery(self) -> Optional[Dict[str, Any]]:
        from .engine import get_engine
        from .serializers import DeliverySerializer

        delivery = get_engine().resolver.active_delivery(self.rider_id)
        return dict(DeliverySerializer(delivery).data) if delivery else None

    @database_sync_to_async
    def accept_delivery(self, delivery_id) -> Dict[str, Any]:
        from .engine import get_engine
        from .exceptions import DeliveryError
        from .serializers import DeliverySerializer

        try:
            delivery = get_engine().resolver.accept(delivery_id, self.rider_id)
        except DeliveryError as e:
            return {'type': 'error', 'code': e.code, 'error': str(e)}

        return {
            'type': 'delivery_accepted',
            'delivery': dict(DeliverySerializer(delivery).data),
        }


class DispatchConsumer(PingMixin, AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for the dispatch console.

    Clients connect to: ws://host/ws/dispatch/
    Receives every delivery_updated and new_delivery_available event.
    """

    async def connect(self):
        await self.channel_layer.group_add(DISPATCH_GROUP, self.channel_name)
        await self.accept()
        await self.send_json({'type': 'connection_established'})
        logger.info("[WS] Dispatch console connected")

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(DISPATCH_GROUP, self.channel_name)

    async def delivery_updated(self, event):
        await self.send_json({
            'type': 'delivery_updated',
            'delivery': event['delivery'],
            'timestamp': event['timestamp'],
        })

    async def new_delivery_available(self, event):
        await self.send_json({
            'type': 'new_delivery_available',
            'delivery': event['delivery'],
        })
