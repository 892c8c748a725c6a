"""
Document routes served alongside the WebSocket endpoint.

- GET /        landing page with links to both entry points
- GET /user/   fellow page (chat with the coach and the assistant)
- GET /admin/  coach page (roster, per-fellow threads)
"""

from __future__ import annotations

from django.shortcuts import render
from django.views.decorators.http import require_GET


@require_GET
def landing_page(request):
    return render(request, "realtime/index.html")


@require_GET
def fellow_page(request):
    return render(request, "realtime/user.html")


@require_GET
def coach_page(request):
    return render(request, "realtime/admin.html")
