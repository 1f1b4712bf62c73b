"""
Django Admin configuration for DELIVERIES app.

Read-mostly: status and timestamps only change through the engine.
"""

from django.contrib import admin
from .models import Delivery, Rider


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    """Admin for Delivery with full details."""

    list_display = (
        'short_id',
        'sequence',
        'status',
        'pickup',
        'dropoff',
        'rider_id',
        'delivery_fee',
        'payment_status',
        'created_at'
    )
    list_filter = ('status', 'payment_status', 'package_size', 'created_at')
    search_fields = ('id', 'receiver_phone', 'receiver_name', 'rider_id', 'customer_id')
    ordering = ('-sequence',)
    date_hierarchy = 'created_at'

    readonly_fields = (
        'id',
        'sequence',
        'status',
        'rider_id',
        'delivery_fee',
        'created_at',
        'accepted_at',
        'picked_up_at',
        'in_transit_at',
        'completed_at'
    )

    fieldsets = (
        ('Identification', {
            'fields': ('id', 'sequence', 'status', 'customer_id', 'rider_id')
        }),
        ('Route', {
            'fields': ('pickup', 'dropoff')
        }),
        ('Package', {
            'fields': ('package_size', 'package_description', 'receiver_name', 'receiver_phone')
        }),
        ('Payment', {
            'fields': ('delivery_fee', 'payment_method', 'payment_status')
        }),
        ('Timeline', {
            'fields': ('created_at', 'accepted_at', 'picked_up_at', 'in_transit_at', 'completed_at'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        return False

    @admin.display(description='ID')
    def short_id(self, obj):
        return str(obj.id)[:8]


@admin.register(Rider)
class RiderAdmin(admin.ModelAdmin):
    list_display = ('name', 'phone', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name', 'phone')
