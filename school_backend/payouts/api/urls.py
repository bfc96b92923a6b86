# payouts/api/urls.py

from django.urls import path

from payouts.api.views import PayoutRuleView, TeacherPayoutView

urlpatterns = [
    path(
        "teachers/<uuid:teacher_id>/payout/",
        TeacherPayoutView.as_view(),
        name="teacher-payout",
    ),
    path("rules/", PayoutRuleView.as_view(), name="payout-rules"),
]
