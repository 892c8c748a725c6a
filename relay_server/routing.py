"""
Project-level Channels routing.

Keeping routing in the Django project package ensures `relay_server.asgi` can import it.
"""

from realtime.routing import hub, websocket_urlpatterns

__all__ = ["hub", "websocket_urlpatterns"]
