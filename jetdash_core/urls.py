"""
JETDASH Main URL Configuration
"""

from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView
from rest_framework.decorators import api_view
from rest_framework.response import Response


# ===========================================
# ADMIN SITE CUSTOMIZATION
# ===========================================
admin.site.site_header = "JETDASH Dispatch Console"
admin.site.site_title = "JETDASH Admin"
admin.site.index_title = "Delivery Operations"


@api_view(['GET'])
def api_root(request):
    """API Root endpoint with available routes."""
    return Response({
        'name': 'JETDASH API',
        'version': '1.0.0',
        'endpoints': {
            'deliveries': '/api/deliveries/',
            'available': '/api/deliveries/available/',
            'riders': '/api/riders/',
            'customers': '/api/customers/<customer_id>/deliveries/',
            'schema': '/api/schema/',
        },
        'websockets': {
            'delivery': '/ws/deliveries/<delivery_id>/',
            'rider': '/ws/riders/<rider_id>/',
            'dispatch': '/ws/dispatch/',
        },
    })


urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Health probes
    path('health/', include('core.urls')),

    # API Root & schema
    path('api/', api_root, name='api-root'),
    path('api/schema/', SpectacularAPIView.as_view(), name='api-schema'),

    # App URLs
    path('api/', include('deliveries.urls')),
]
