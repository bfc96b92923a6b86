# users/tests/test_roles.py

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import TestCase

from permissions.roles import (
    ALL_CAPABILITIES,
    CAP_BILLING_REFUND,
    CAP_DAILY_CLOSE_LOCK,
    CAP_PAYOUTS_MANAGE,
    CAP_PAYOUTS_VIEW_OWN,
    effective_capabilities_for,
    user_has_capability,
)

User = get_user_model()


class RoleCapabilityTests(TestCase):
    def _user(self, role):
        return User.objects.create_user(email=f"{role}@example.com", password="pass", role=role)

    def test_admin_and_management_have_everything(self):
        for role in ("admin", "management"):
            self.assertEqual(effective_capabilities_for(self._user(role)), set(ALL_CAPABILITIES))

    def test_finance_runs_the_ledger_but_not_rates(self):
        finance = self._user("finance")
        self.assertTrue(user_has_capability(finance, CAP_BILLING_REFUND))
        self.assertTrue(user_has_capability(finance, CAP_DAILY_CLOSE_LOCK))
        self.assertFalse(user_has_capability(finance, CAP_PAYOUTS_MANAGE))

    def test_teacher_and_parent(self):
        self.assertEqual(effective_capabilities_for(self._user("teacher")), {CAP_PAYOUTS_VIEW_OWN})
        self.assertEqual(effective_capabilities_for(self._user("parent")), set())

    def test_anonymous_has_nothing(self):
        self.assertFalse(user_has_capability(AnonymousUser(), CAP_PAYOUTS_VIEW_OWN))

    def test_staff_flag_follows_role(self):
        self.assertTrue(self._user("finance").is_staff)
        self.assertFalse(self._user("parent").is_staff)
