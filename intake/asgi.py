"""
ASGI config for the intake project.

Serves plain HTTP; queue reads are polled, so no WebSocket routing is wired.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "intake.settings")

application = get_asgi_application()
