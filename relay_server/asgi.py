"""
ASGI config for the relay.

It exposes the ASGI callable as a module-level variable named ``application``.
Run it with Daphne: ``daphne -b 0.0.0.0 -p $PORT relay_server.asgi:application``.
"""
# Load secrets from AWS Secrets Manager (when configured) before Django settings are loaded
import relay_server.env_bootstrap  # noqa: F401

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "relay_server.settings")

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator
from django.conf import settings
from django.contrib.staticfiles.handlers import ASGIStaticFilesHandler
from django.core.asgi import get_asgi_application

# Standard Django ASGI application for HTTP (pages, health, /static/).
django_asgi_app = ASGIStaticFilesHandler(get_asgi_application())

from relay_server.routing import websocket_urlpatterns  # noqa: E402

# Origin check only outside DEBUG so local pages on other ports still work.
websocket_app = URLRouter(websocket_urlpatterns)
if not settings.DEBUG:
    websocket_app = AllowedHostsOriginValidator(websocket_app)

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": websocket_app,
    }
)
