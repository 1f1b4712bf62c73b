"""
Shared test helpers: controllable clock, scripted random source,
recording bus observer and delivery payloads.
"""

import uuid
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from deliveries.events import EventTypes


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.current = start or datetime(2025, 3, 10, 9, 0, tzinfo=dt_timezone.utc)

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)
        return self.current


class FixedRandom:
    """Random source whose draws always return the same value."""

    def __init__(self, value=0.0):
        self.value = value
        self.draws = 0

    def random(self):
        self.draws += 1
        return self.value

    def choice(self, seq):
        return seq[0]

    def randrange(self, start, stop=None):
        return 0 if stop is None else start


class SequentialIds:
    """id_factory handing out predictable UUIDs."""

    def __init__(self, start=1):
        self.next_value = start

    def __call__(self):
        value = uuid.UUID(int=self.next_value)
        self.next_value += 1
        return value


class RecordingObserver:
    """Subscribes to every bus event and keeps what it saw."""

    def __init__(self, bus):
        self.events = []
        self._unsubscribers = [
            bus.subscribe(event_type, self._recorder(event_type))
            for event_type in EventTypes.ALL
        ]

    def _recorder(self, event_type):
        def record(payload):
            self.events.append((event_type, payload))
        return record

    def of_type(self, event_type):
        return [payload for kind, payload in self.events if kind == event_type]

    def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()


def delivery_payload(**overrides):
    payload = {
        'pickup': 'Pantami Market',
        'dropoff': 'Tudun Wada',
        'package_size': 'Small',
        'package_description': 'Documents',
        'receiver_name': 'Fatima Ali',
        'receiver_phone': '+234 803 555 0101',
        'delivery_fee': Decimal('800'),
        'payment_method': 'cash',
    }
    payload.update(overrides)
    return payload
