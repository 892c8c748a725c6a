from django.urls import re_path

from .consumers import RelayConsumer
from .dispatcher import RelayHub

# The one hub for this process: registry, message logs, assistant bridge.
hub = RelayHub()


def build_websocket_urlpatterns(relay_hub: RelayHub) -> list:
    return [
        re_path(r"^ws/relay/$", RelayConsumer.as_asgi(hub=relay_hub)),
    ]


websocket_urlpatterns = build_websocket_urlpatterns(hub)
