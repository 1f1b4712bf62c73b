"""
Tests for the Deliveries REST API.
"""

from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase

from deliveries.engine import DeliveryEngine, set_engine
from deliveries.events import EventTypes
from deliveries.exceptions import PersistenceFailure
from deliveries.models import Delivery, DeliveryStatus, Rider
from deliveries.services.propagator import PropagatorPolicy

from .utils import FakeClock, RecordingObserver, delivery_payload


class ApiTestCase(TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.engine = DeliveryEngine(clock=self.clock, policy=PropagatorPolicy())
        self.previous_engine = set_engine(self.engine)
        self.observer = RecordingObserver(self.engine.bus)

    def tearDown(self):
        set_engine(self.previous_engine)

    def post_json(self, url, data=None):
        return self.client.post(url, data or {}, content_type='application/json')

    def create_delivery(self, **overrides):
        payload = delivery_payload(**overrides)
        payload['delivery_fee'] = str(payload['delivery_fee'])
        response = self.post_json('/api/deliveries/', payload)
        self.assertEqual(response.status_code, 201, response.content)
        return response.json()


class TestDeliveryEndpoints(ApiTestCase):
    """Tests for /api/deliveries/."""

    # ==========================================
    # Create / read
    # ==========================================

    def test_create_delivery(self):
        data = self.create_delivery(customer_id='sme-42')

        self.assertEqual(data['status'], 'pending')
        self.assertIsNone(data['rider_id'])
        self.assertIsNone(data['accepted_at'])
        self.assertEqual(data['customer_id'], 'sme-42')
        self.assertEqual(Decimal(data['delivery_fee']), Decimal('800'))
        self.assertEqual(len(self.observer.of_type(EventTypes.NEW_DELIVERY_AVAILABLE)), 1)

    def test_create_ignores_lifecycle_fields(self):
        payload = delivery_payload(status='completed', rider_id='rider-1')
        payload['delivery_fee'] = '800'

        response = self.post_json('/api/deliveries/', payload)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['status'], 'pending')
        self.assertIsNone(response.json()['rider_id'])

    def test_create_validates_payload(self):
        response = self.post_json('/api/deliveries/', {'pickup': 'Pantami Market'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('dropoff', response.json())

    def test_create_rejects_negative_fee(self):
        payload = delivery_payload()
        payload['delivery_fee'] = '-10'

        response = self.post_json('/api/deliveries/', payload)

        self.assertEqual(response.status_code, 400)

    def test_create_keeps_package_size_as_given(self):
        for package_size in ('small', 'extra_large', 'Medium', ''):
            with self.subTest(package_size=package_size):
                data = self.create_delivery(package_size=package_size)
                self.assertEqual(data['package_size'], package_size)

    # ==========================================
    # Bulk create (SME)
    # ==========================================

    def bulk_payload(self, *items):
        payloads = []
        for overrides in items:
            payload = delivery_payload(customer_id='sme-42', **overrides)
            payload['delivery_fee'] = str(payload['delivery_fee'])
            payloads.append(payload)
        return payloads

    def test_bulk_create(self):
        payloads = self.bulk_payload(
            {'dropoff': 'Tudun Wada', 'package_size': 'small'},
            {'dropoff': 'Jekadafari', 'package_size': 'extra_large'},
            {'dropoff': 'Federal Low Cost'},
        )

        response = self.post_json('/api/deliveries/bulk/', payloads)

        self.assertEqual(response.status_code, 201, response.content)
        data = response.json()
        self.assertEqual(
            [d['dropoff'] for d in data],
            ['Tudun Wada', 'Jekadafari', 'Federal Low Cost']
        )
        self.assertTrue(all(d['status'] == 'pending' for d in data))
        self.assertTrue(all(d['customer_id'] == 'sme-42' for d in data))
        self.assertEqual(data[1]['package_size'], 'extra_large')

        announced = self.observer.of_type(EventTypes.NEW_DELIVERY_AVAILABLE)
        self.assertEqual([str(d.id) for d in announced], [d['id'] for d in data])
        self.assertEqual(len(self.client.get('/api/customers/sme-42/deliveries/').json()), 3)

    def test_bulk_create_rejects_whole_batch_on_invalid_item(self):
        payloads = self.bulk_payload({}, {'dropoff': ''}, {})

        response = self.post_json('/api/deliveries/bulk/', payloads)

        self.assertEqual(response.status_code, 400)
        self.assertIn('dropoff', response.json()[1])
        self.assertEqual(Delivery.objects.count(), 0)
        self.assertEqual(self.observer.events, [])

    def test_bulk_create_rolls_back_on_storage_failure(self):
        """A write failing mid-batch leaves no delivery behind."""
        payloads = self.bulk_payload({}, {}, {})
        store = self.engine.store
        real_create = store.create
        calls = []

        def failing_second_create(**fields):
            calls.append(fields)
            if len(calls) == 2:
                raise PersistenceFailure('disk full')
            return real_create(**fields)

        with patch.object(store, 'create', side_effect=failing_second_create):
            response = self.post_json('/api/deliveries/bulk/', payloads)

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['code'], 'persistence_failure')
        self.assertEqual(Delivery.objects.count(), 0)
        self.assertEqual(self.observer.events, [])

    def test_bulk_create_requires_a_list(self):
        self.assertEqual(self.post_json('/api/deliveries/bulk/', []).status_code, 400)

        payload = self.bulk_payload({})[0]
        self.assertEqual(self.post_json('/api/deliveries/bulk/', payload).status_code, 400)
        self.assertEqual(Delivery.objects.count(), 0)

    def test_retrieve_and_not_found(self):
        created = self.create_delivery()

        response = self.client.get(f"/api/deliveries/{created['id']}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['id'], created['id'])

        response = self.client.get('/api/deliveries/00000000-0000-0000-0000-000000000404/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['code'], 'not_found')

    def test_list_filters(self):
        first = self.create_delivery(customer_id='c1')
        self.create_delivery(customer_id='c2')
        self.post_json(f"/api/deliveries/{first['id']}/accept/", {'rider_id': 'rider-1'})

        response = self.client.get('/api/deliveries/', {'status': 'accepted'})
        self.assertEqual([d['id'] for d in response.json()], [first['id']])

        response = self.client.get('/api/deliveries/', {'customer_id': 'c2'})
        self.assertEqual(len(response.json()), 1)

        response = self.client.get('/api/deliveries/', {'rider_id': 'rider-1'})
        self.assertEqual([d['id'] for d in response.json()], [first['id']])

    def test_available_lists_pending_newest_first(self):
        older = self.create_delivery()
        self.clock.advance(minutes=1)
        newer = self.create_delivery()

        response = self.client.get('/api/deliveries/available/')

        self.assertEqual([d['id'] for d in response.json()], [newer['id'], older['id']])

    # ==========================================
    # Lifecycle actions
    # ==========================================

    def test_accept_then_conflicts(self):
        delivery = self.create_delivery()
        other = self.create_delivery()
        url = f"/api/deliveries/{delivery['id']}/accept/"

        response = self.post_json(url, {'rider_id': 'rider-a'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'accepted')

        response = self.post_json(url, {'rider_id': 'rider-b'})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'already_taken')

        response = self.post_json(f"/api/deliveries/{other['id']}/accept/", {'rider_id': 'rider-a'})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'rider_busy')

    def test_accept_requires_rider_id(self):
        delivery = self.create_delivery()

        response = self.post_json(f"/api/deliveries/{delivery['id']}/accept/", {})

        self.assertEqual(response.status_code, 400)

    def test_advance_through_lifecycle(self):
        delivery = self.create_delivery()
        url = f"/api/deliveries/{delivery['id']}/advance/"

        response = self.post_json(url)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'invalid_transition')

        self.post_json(f"/api/deliveries/{delivery['id']}/accept/", {'rider_id': 'rider-1'})
        statuses = [self.post_json(url).json()['status'] for _ in range(3)]
        self.assertEqual(statuses, ['picked_up', 'in_transit', 'completed'])

        response = self.post_json(url)
        self.assertEqual(response.status_code, 409)

    def test_cancel(self):
        delivery = self.create_delivery()
        url = f"/api/deliveries/{delivery['id']}/cancel/"

        response = self.post_json(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'cancelled')

        response = self.post_json(url)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'invalid_transition')

    def test_history(self):
        delivery = self.create_delivery()
        self.post_json(f"/api/deliveries/{delivery['id']}/accept/", {'rider_id': 'rider-1'})
        self.clock.advance(minutes=4)
        self.post_json(f"/api/deliveries/{delivery['id']}/advance/")

        response = self.client.get(f"/api/deliveries/{delivery['id']}/history/")

        data = response.json()
        self.assertEqual(data['current_status'], 'picked_up')
        self.assertEqual([step['step'] for step in data['history']], ['created', 'accepted', 'picked_up'])


class TestRiderEndpoints(ApiTestCase):
    """Tests for /api/riders/."""

    def setUp(self):
        super().setUp()
        self.rider = Rider.objects.create(name='Musa Abdullahi', phone='+234 803 412 7781')

    def test_create_and_list_riders(self):
        response = self.post_json('/api/riders/', {'name': 'Aisha Bello', 'phone': '+234 806 955 0143'})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['availability'], 'available')

        response = self.client.get('/api/riders/')
        self.assertEqual(len(response.json()), 2)

    def test_availability_and_active_delivery(self):
        url = f'/api/riders/{self.rider.id}/active-delivery/'
        self.assertEqual(self.client.get(url).status_code, 204)

        delivery = self.create_delivery()
        self.post_json(f"/api/deliveries/{delivery['id']}/accept/", {'rider_id': str(self.rider.id)})

        response = self.client.get(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['id'], delivery['id'])
        rider = self.client.get(f'/api/riders/{self.rider.id}/').json()
        self.assertEqual(rider['availability'], 'busy')

    def test_earnings(self):
        for fee in ('600', '1000'):
            delivery = self.create_delivery(delivery_fee=Decimal(fee))
            self.post_json(f"/api/deliveries/{delivery['id']}/accept/", {'rider_id': str(self.rider.id)})
            for _ in range(3):
                self.post_json(f"/api/deliveries/{delivery['id']}/advance/")
        # Yesterday's completion counts for lifetime only
        self.clock.advance(days=1)
        delivery = self.create_delivery(delivery_fee=Decimal('800'))
        self.post_json(f"/api/deliveries/{delivery['id']}/accept/", {'rider_id': str(self.rider.id)})
        for _ in range(3):
            self.post_json(f"/api/deliveries/{delivery['id']}/advance/")

        data = self.client.get(f'/api/riders/{self.rider.id}/earnings/').json()

        self.assertEqual(data['completed_deliveries'], 3)
        self.assertEqual(Decimal(data['total_earnings']), Decimal('2400'))
        self.assertEqual(data['today_deliveries'], 1)
        self.assertEqual(Decimal(data['today_earnings']), Decimal('800'))

    def test_unknown_rider(self):
        response = self.client.get('/api/riders/00000000-0000-0000-0000-000000000404/')
        self.assertEqual(response.status_code, 404)


class TestCustomerEndpoints(ApiTestCase):
    """Tests for the customer tracking read models."""

    def test_customer_deliveries_and_active_delivery(self):
        url = '/api/customers/cust-7/active-delivery/'
        self.assertEqual(self.client.get(url).status_code, 204)

        old = self.create_delivery(customer_id='cust-7')
        self.post_json(f"/api/deliveries/{old['id']}/cancel/")
        self.clock.advance(minutes=5)
        current = self.create_delivery(customer_id='cust-7')
        self.create_delivery(customer_id='someone-else')

        response = self.client.get('/api/customers/cust-7/deliveries/')
        self.assertEqual([d['id'] for d in response.json()], [current['id'], old['id']])

        response = self.client.get(url)
        self.assertEqual(response.json()['id'], current['id'])

        self.clock.advance(minutes=1)
        self.post_json(f"/api/deliveries/{current['id']}/accept/", {'rider_id': 'rider-1'})
        self.assertEqual(self.client.get(url).json()['status'], DeliveryStatus.ACCEPTED)
