# billing/api/urls.py

"""
BILLING API URLS

    /api/billing/invoices/...
    /api/billing/payments/...
    /api/billing/students/<uuid>/statement/
    /api/billing/students/<uuid>/apply-credit/

Explicit student routes are registered BEFORE router URLs.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from billing.api.views import (
    InvoiceViewSet,
    PaymentViewSet,
    StudentApplyCreditView,
    StudentStatementView,
)

router = DefaultRouter()
router.register(r"invoices", InvoiceViewSet, basename="invoices")
router.register(r"payments", PaymentViewSet, basename="payments")

urlpatterns = [
    path(
        "students/<uuid:student_id>/statement/",
        StudentStatementView.as_view(),
        name="student-statement",
    ),
    path(
        "students/<uuid:student_id>/apply-credit/",
        StudentApplyCreditView.as_view(),
        name="student-apply-credit",
    ),
    path("", include(router.urls)),
]
