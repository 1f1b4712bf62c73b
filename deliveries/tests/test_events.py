"""
Tests for the notification bus and the Channels bridge.
"""

from unittest.mock import patch

from django.test import SimpleTestCase, TestCase

from deliveries.engine import DeliveryEngine, get_engine, set_engine
from deliveries.events import (
    AVAILABLE_GROUP, DISPATCH_GROUP, ChannelsBridge, EventTypes, NotificationBus,
    delivery_group, rider_group
)
from deliveries.services.propagator import PropagatorPolicy
from deliveries.store import DeliveryStore

from .utils import delivery_payload


class TestNotificationBus(SimpleTestCase):
    """Tests for subscribe/publish semantics."""

    def setUp(self):
        self.bus = NotificationBus()

    def test_handlers_run_in_registration_order(self):
        calls = []
        self.bus.subscribe(EventTypes.DELIVERY_UPDATED, lambda p: calls.append(('first', p)))
        self.bus.subscribe(EventTypes.DELIVERY_UPDATED, lambda p: calls.append(('second', p)))

        delivered = self.bus.publish(EventTypes.DELIVERY_UPDATED, 'payload')

        self.assertEqual(calls, [('first', 'payload'), ('second', 'payload')])
        self.assertEqual(delivered, 2)

    def test_event_types_are_separate(self):
        calls = []
        self.bus.subscribe(EventTypes.NEW_DELIVERY_AVAILABLE, calls.append)

        self.bus.publish(EventTypes.DELIVERY_UPDATED, 'payload')

        self.assertEqual(calls, [])

    def test_unsubscribe_is_idempotent(self):
        calls = []
        unsubscribe = self.bus.subscribe(EventTypes.DELIVERY_UPDATED, calls.append)

        unsubscribe()
        unsubscribe()
        self.bus.publish(EventTypes.DELIVERY_UPDATED, 'payload')

        self.assertEqual(calls, [])
        self.assertEqual(self.bus.subscriber_count(EventTypes.DELIVERY_UPDATED), 0)

    def test_failing_handler_does_not_block_others(self):
        calls = []

        def broken(payload):
            raise RuntimeError('screen closed')

        self.bus.subscribe(EventTypes.DELIVERY_UPDATED, broken)
        self.bus.subscribe(EventTypes.DELIVERY_UPDATED, calls.append)

        with self.assertLogs('deliveries.events', level='ERROR'):
            delivered = self.bus.publish(EventTypes.DELIVERY_UPDATED, 'payload')

        self.assertEqual(calls, ['payload'])
        self.assertEqual(delivered, 1)

    def test_handler_may_unsubscribe_while_notified(self):
        calls = []

        def once(payload):
            calls.append(payload)
            unsubscribe()

        unsubscribe = self.bus.subscribe(EventTypes.DELIVERY_UPDATED, once)
        self.bus.subscribe(EventTypes.DELIVERY_UPDATED, calls.append)

        self.bus.publish(EventTypes.DELIVERY_UPDATED, 'a')
        self.bus.publish(EventTypes.DELIVERY_UPDATED, 'b')

        self.assertEqual(calls, ['a', 'a', 'b'])

    def test_unknown_event_type(self):
        with self.assertRaises(ValueError):
            self.bus.subscribe('delivery_exploded', print)
        with self.assertRaises(ValueError):
            self.bus.publish('delivery_exploded', None)


@patch('deliveries.events._send_group_event', return_value=True)
class TestChannelsBridge(TestCase):
    """Tests for forwarding bus events to websocket groups."""

    def setUp(self):
        self.bus = NotificationBus()
        self.bridge = ChannelsBridge(self.bus)
        self.store = DeliveryStore()

    def tearDown(self):
        self.bridge.close()

    def test_new_delivery_goes_to_riders_and_dispatch(self, mock_send):
        delivery = self.store.create(**delivery_payload())

        self.bus.publish(EventTypes.NEW_DELIVERY_AVAILABLE, delivery)

        groups = [call.args[0] for call in mock_send.call_args_list]
        self.assertEqual(groups, [AVAILABLE_GROUP, DISPATCH_GROUP])
        event = mock_send.call_args_list[0].args[1]
        self.assertEqual(event['type'], 'new_delivery_available')
        self.assertEqual(event['delivery']['id'], str(delivery.id))
        self.assertEqual(event['delivery']['status'], 'pending')

    def test_update_goes_to_delivery_rider_and_dispatch(self, mock_send):
        delivery = self.store.create(**delivery_payload())
        delivery = self.store.transition(delivery.id, 'assign', rider_id='rider-1')

        self.bus.publish(EventTypes.DELIVERY_UPDATED, delivery)

        groups = [call.args[0] for call in mock_send.call_args_list]
        self.assertEqual(groups, [
            delivery_group(delivery.id),
            rider_group('rider-1'),
            DISPATCH_GROUP,
        ])
        event = mock_send.call_args_list[0].args[1]
        self.assertEqual(event['type'], 'delivery_updated')
        self.assertEqual(event['delivery']['rider_id'], 'rider-1')

    def test_update_without_rider_skips_rider_group(self, mock_send):
        delivery = self.store.create(**delivery_payload())
        delivery = self.store.transition(delivery.id, 'cancel')

        self.bus.publish(EventTypes.DELIVERY_UPDATED, delivery)

        groups = [call.args[0] for call in mock_send.call_args_list]
        self.assertEqual(groups, [delivery_group(delivery.id), DISPATCH_GROUP])

    def test_close_unsubscribes(self, mock_send):
        self.bridge.close()
        delivery = self.store.create(**delivery_payload())

        self.bus.publish(EventTypes.NEW_DELIVERY_AVAILABLE, delivery)

        mock_send.assert_not_called()


class TestEngineBridge(TestCase):
    """The websocket bridge follows the process-wide engine."""

    def test_set_engine_moves_bridge_to_new_bus(self):
        current = get_engine()
        replacement = DeliveryEngine(policy=PropagatorPolicy())

        previous = set_engine(replacement)
        try:
            self.assertIs(previous, current)
            for event_type in EventTypes.ALL:
                with self.subTest(event=event_type):
                    self.assertEqual(replacement.bus.subscriber_count(event_type), 1)
                    self.assertEqual(current.bus.subscriber_count(event_type), 0)
        finally:
            set_engine(previous)

        for event_type in EventTypes.ALL:
            self.assertEqual(current.bus.subscriber_count(event_type), 1)
            self.assertEqual(replacement.bus.subscriber_count(event_type), 0)

    @patch('deliveries.events._send_group_event', return_value=True)
    def test_replacement_engine_events_reach_websocket_groups(self, mock_send):
        replacement = DeliveryEngine(policy=PropagatorPolicy())
        previous = set_engine(replacement)
        try:
            delivery = replacement.create_delivery(**delivery_payload())
        finally:
            set_engine(previous)

        groups = [call.args[0] for call in mock_send.call_args_list]
        self.assertEqual(groups, [AVAILABLE_GROUP, DISPATCH_GROUP])
        self.assertEqual(mock_send.call_args_list[0].args[1]['delivery']['id'], str(delivery.id))
