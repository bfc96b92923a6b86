# users/tests/test_me.py

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

User = get_user_model()


class MeEndpointTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_requires_authentication(self):
        res = self.client.get("/api/auth/me/")
        self.assertEqual(res.status_code, 401)

    def test_returns_role_capabilities(self):
        user = User.objects.create_user(email="bursar@example.com", password="pass", role="finance")
        self.client.force_authenticate(user)

        res = self.client.get("/api/auth/me/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["role"], "finance")
        self.assertIn("billing.collect", res.data["capabilities"])
        self.assertIn("daily_close.lock", res.data["capabilities"])
        self.assertNotIn("payouts.manage", res.data["capabilities"])

    def test_jwt_login(self):
        User.objects.create_user(email="teacher@example.com", password="Pass1234!", role="teacher")

        res = self.client.post(
            "/api/auth/jwt/create/",
            {"email": "teacher@example.com", "password": "Pass1234!"},
            format="json",
        )

        self.assertEqual(res.status_code, 200)
        self.assertIn("access", res.data)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")
        me = self.client.get("/api/auth/me/")
        self.assertEqual(me.data["capabilities"], ["payouts.view_own"])
