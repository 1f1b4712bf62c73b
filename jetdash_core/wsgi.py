"""
WSGI config for JETDASH project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'jetdash_core.settings')

application = get_wsgi_application()
