"""
Django management command running the delivery propagator in-process.

For single-node deployments without Celery beat.

Usage:
    python manage.py run_propagator
    python manage.py run_propagator --interval 2 --seed 42 --auto-accept
    python manage.py run_propagator --once
"""
import random
import threading
from dataclasses import replace

from django.core.management.base import BaseCommand, CommandError

from deliveries.engine import get_engine
from deliveries.services.propagator import PropagatorPolicy, UpdatePropagator


class Command(BaseCommand):
    help = 'Advance active deliveries and simulate new demand on a fixed interval'

    def add_arguments(self, parser):
        parser.add_argument('--interval', type=float, help='Seconds between ticks (1-30)')
        parser.add_argument('--seed', type=int, help='Seed the random source')
        parser.add_argument('--auto-accept', action='store_true',
                            help='Offer stale pending deliveries to idle riders')
        parser.add_argument('--once', action='store_true', help='Run a single tick and exit')

    def handle(self, *args, **options):
        engine = get_engine()

        overrides = {}
        if options['interval'] is not None:
            overrides['interval_seconds'] = options['interval']
        if options['auto_accept']:
            overrides['auto_accept'] = True

        try:
            policy = replace(PropagatorPolicy.from_settings(), **overrides)
        except ValueError as e:
            raise CommandError(str(e))

        propagator = UpdatePropagator(
            engine.store,
            engine.bus,
            engine.resolver,
            policy=policy,
            rng=random.Random(options['seed']),
        )

        if options['once']:
            report = propagator.tick()
            self.stdout.write(self.style.SUCCESS(
                f"Tick done: {len(report.advanced)} advanced, "
                f"{len(report.auto_accepted)} auto-accepted, "
                f"{'1' if report.created else '0'} created, {report.errors} errors"
            ))
            return

        propagator.start()
        self.stdout.write(self.style.SUCCESS(
            f'Propagator running every {policy.interval_seconds}s (Ctrl+C to stop)'
        ))

        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            pass
        finally:
            propagator.stop()
            self.stdout.write('Propagator stopped')
