"""
URL configuration for the relay.

The pages are plain documents; everything interactive happens over /ws/relay/.
"""
from django.urls import path

from realtime.views import coach_page, fellow_page, landing_page
from .health import health

urlpatterns = [
    path("", landing_page, name="landing"),
    path("user/", fellow_page, name="fellow"),
    path("admin/", coach_page, name="coach"),
    path("health/", health),
]
