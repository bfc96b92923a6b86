# reconciliation/api/urls.py

"""
RECONCILIATION API URLS

daily-close/lock/ is registered BEFORE the <close_date> preview route.
"""

from django.urls import path

from reconciliation.api.views import (
    DailyCloseListCreateView,
    DailyCloseLockView,
    DailyClosePreviewView,
)

urlpatterns = [
    path("daily-close/", DailyCloseListCreateView.as_view(), name="daily-close"),
    path("daily-close/lock/", DailyCloseLockView.as_view(), name="daily-close-lock"),
    path(
        "daily-close/<str:close_date>/",
        DailyClosePreviewView.as_view(),
        name="daily-close-preview",
    ),
]
