from __future__ import annotations

import time

from django.conf import settings
from django.http import JsonResponse

from realtime.routing import hub


def health(request):
    """
    Health check endpoint for the hosting platform.

    Keep it cheap and dependency-free: no call to the assistant service,
    only in-process counters.
    """

    counts = hub.registry.counts()
    return JsonResponse(
        {
            "status": "ok",
            "ts": int(time.time()),
            "instance_id": getattr(settings, "INSTANCE_ID", "unknown-instance"),
            "fellows": counts["fellows"],
            "coaches": counts["coaches"],
        }
    )
