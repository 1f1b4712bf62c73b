"""
Tests for the websocket consumers, through the real notification bus,
Channels bridge and in-memory channel layer.
"""

from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.test import TransactionTestCase, override_settings

from deliveries.engine import get_engine
from deliveries.routing import websocket_urlpatterns

from .utils import delivery_payload


application = URLRouter(websocket_urlpatterns)


@override_settings(CHANNEL_LAYERS={'default': {'BACKEND': 'channels.layers.InMemoryChannelLayer'}})
class TestConsumers(TransactionTestCase):
    """End-to-end websocket tests for tracking, rider and dispatch screens."""

    def setUp(self):
        self.engine = get_engine()

    async def connect(self, path):
        communicator = WebsocketCommunicator(application, path)
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        return communicator

    # ==========================================
    # Delivery tracking
    # ==========================================

    async def test_tracking_receives_initial_state_and_updates(self):
        delivery = await database_sync_to_async(self.engine.create_delivery)(**delivery_payload())

        communicator = await self.connect(f'/ws/deliveries/{delivery.id}/')
        initial = await communicator.receive_json_from()
        self.assertEqual(initial['type'], 'connection_established')
        self.assertEqual(initial['delivery']['status'], 'pending')

        await database_sync_to_async(self.engine.resolver.accept)(delivery.id, 'rider-1')

        update = await communicator.receive_json_from(timeout=2)
        self.assertEqual(update['type'], 'delivery_updated')
        self.assertEqual(update['delivery']['status'], 'accepted')
        self.assertEqual(update['delivery']['rider_id'], 'rider-1')

        await communicator.disconnect()

    async def test_tracking_unknown_delivery_is_rejected(self):
        communicator = WebsocketCommunicator(
            application, '/ws/deliveries/00000000-0000-0000-0000-000000000404/'
        )
        connected, code = await communicator.connect()

        self.assertFalse(connected)
        self.assertEqual(code, 4004)

    async def test_ping_pong(self):
        communicator = await self.connect('/ws/dispatch/')
        await communicator.receive_json_from()

        await communicator.send_json_to({'type': 'ping'})

        self.assertEqual(await communicator.receive_json_from(), {'type': 'pong'})
        await communicator.disconnect()

    # ==========================================
    # Rider & dispatch
    # ==========================================

    async def test_rider_hears_new_work_and_accepts_it(self):
        communicator = await self.connect('/ws/riders/rider-7/')
        initial = await communicator.receive_json_from()
        self.assertIsNone(initial['active_delivery'])

        delivery = await database_sync_to_async(self.engine.create_delivery)(**delivery_payload())

        announced = await communicator.receive_json_from(timeout=2)
        self.assertEqual(announced['type'], 'new_delivery_available')
        self.assertEqual(announced['delivery']['id'], str(delivery.id))

        await communicator.send_json_to({'type': 'accept_delivery', 'delivery_id': str(delivery.id)})

        # The rider group update and the direct reply can arrive in either order
        messages = [
            await communicator.receive_json_from(timeout=2),
            await communicator.receive_json_from(timeout=2),
        ]
        types = sorted(message['type'] for message in messages)
        self.assertEqual(types, ['delivery_accepted', 'delivery_updated'])

        await communicator.send_json_to({'type': 'accept_delivery', 'delivery_id': str(delivery.id)})
        error = await communicator.receive_json_from(timeout=2)
        self.assertEqual(error['type'], 'error')
        self.assertEqual(error['code'], 'rider_busy')

        await communicator.disconnect()

    async def test_dispatch_sees_every_event(self):
        communicator = await self.connect('/ws/dispatch/')
        await communicator.receive_json_from()

        delivery = await database_sync_to_async(self.engine.create_delivery)(**delivery_payload())
        await database_sync_to_async(self.engine.cancel)(delivery.id)

        first = await communicator.receive_json_from(timeout=2)
        second = await communicator.receive_json_from(timeout=2)
        self.assertEqual(first['type'], 'new_delivery_available')
        self.assertEqual(second['type'], 'delivery_updated')
        self.assertEqual(second['delivery']['status'], 'cancelled')

        await communicator.disconnect()
