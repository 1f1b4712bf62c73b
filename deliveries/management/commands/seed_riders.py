"""
Django management command to seed demo riders for Gombe.

Usage:
    python manage.py seed_riders
"""
from django.core.management.base import BaseCommand
from deliveries.models import Rider


DEMO_RIDERS = [
    ('Musa Abdullahi', '+234 803 412 7781'),
    ('Aisha Bello', '+234 806 955 0143'),
    ('Yusuf Garba', '+234 810 227 6609'),
    ('Halima Usman', '+234 813 708 3352'),
    ('Sani Ibrahim', '+234 815 664 9920'),
]


class Command(BaseCommand):
    help = 'Seed demo riders'

    def handle(self, *args, **options):
        created_count = 0

        for name, phone in DEMO_RIDERS:
            rider, created = Rider.objects.get_or_create(
                phone=phone,
                defaults={'name': name, 'is_active': True}
            )
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f'Created: {name} ({rider.id})'))
            else:
                self.stdout.write(f'Exists: {name}')

        self.stdout.write(self.style.SUCCESS(f'\n{created_count} riders created'))
