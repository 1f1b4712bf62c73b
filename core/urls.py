"""
Core App URLs - health probes
"""

from django.urls import path

from .health import health_check, readiness_check

urlpatterns = [
    path('', health_check, name='health'),
    path('ready/', readiness_check, name='health-ready'),
]
