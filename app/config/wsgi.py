"""
WSGI config for the chat backend.

The project is served through ASGI (see asgi.py) because the realtime
websocket surface needs it. WSGI is kept for the admin and REST API on
traditional deployments; websocket clients will not connect through it.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
