import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class RealtimeConfig(AppConfig):
    name = "realtime"

    def ready(self):
        from relay_server.applib.config import config

        if not config.ASSISTANT_API_KEY:
            logger.warning("ASSISTANT_API_KEY is not set; assistant replies will use the fallback text")
