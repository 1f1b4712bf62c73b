import decimal
import uuid

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Delivery',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('sequence', models.PositiveBigIntegerField(editable=False, unique=True, verbose_name='Insertion order')),
                ('customer_id', models.CharField(blank=True, db_index=True, max_length=64, verbose_name='Customer / SME')),
                ('rider_id', models.CharField(blank=True, max_length=64, null=True, verbose_name='Rider')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Rider assigned'), ('picked_up', 'Package picked up'), ('in_transit', 'In transit'), ('completed', 'Delivered'), ('cancelled', 'Cancelled')], default='pending', max_length=20, verbose_name='Status')),
                ('pickup', models.CharField(max_length=255, verbose_name='Pickup location')),
                ('dropoff', models.CharField(max_length=255, verbose_name='Dropoff location')),
                ('package_size', models.CharField(blank=True, max_length=20, verbose_name='Package size')),
                ('package_description', models.TextField(blank=True, verbose_name='Package description')),
                ('receiver_name', models.CharField(max_length=150, verbose_name='Receiver name')),
                ('receiver_phone', models.CharField(max_length=32, verbose_name='Receiver phone')),
                ('delivery_fee', models.DecimalField(decimal_places=2, default=decimal.Decimal('0.00'), max_digits=10, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'))], verbose_name='Delivery fee (NGN)')),
                ('payment_method', models.CharField(blank=True, max_length=20, verbose_name='Payment method')),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Paid'), ('failed', 'Failed')], default='pending', max_length=20, verbose_name='Payment status')),
                ('created_at', models.DateTimeField(editable=False)),
                ('accepted_at', models.DateTimeField(blank=True, null=True)),
                ('picked_up_at', models.DateTimeField(blank=True, null=True)),
                ('in_transit_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'verbose_name': 'Delivery',
                'verbose_name_plural': 'Deliveries',
                'ordering': ['sequence'],
                'indexes': [
                    models.Index(fields=['status', 'created_at'], name='delivery_status_created_idx'),
                    models.Index(fields=['rider_id', 'status'], name='delivery_rider_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status__in', ['accepted', 'picked_up', 'in_transit'])), fields=('rider_id',), name='one_active_delivery_per_rider'),
                    models.CheckConstraint(condition=models.Q(('delivery_fee__gte', 0)), name='delivery_fee_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Rider',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=150, verbose_name='Full name')),
                ('phone', models.CharField(blank=True, max_length=32, verbose_name='Phone')),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Rider',
                'verbose_name_plural': 'Riders',
                'ordering': ['created_at', 'id'],
            },
        ),
    ]
