# users/tests/test_seed_users.py

from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

User = get_user_model()


class SeedUsersCommandTests(TestCase):
    def test_seeds_staff_and_teachers(self):
        call_command("seed_users", "--teachers", "3", stdout=StringIO())

        self.assertEqual(User.objects.filter(role="teacher").count(), 3)
        self.assertTrue(User.objects.get(email="bursar@example.com").check_password("Pass1234!"))
        self.assertTrue(User.objects.get(email="admin@example.com").is_superuser)

    def test_is_idempotent(self):
        call_command("seed_users", stdout=StringIO())
        call_command("seed_users", stdout=StringIO())

        self.assertEqual(User.objects.count(), 5)

    def test_short_password_rejected(self):
        with self.assertRaises(CommandError):
            call_command("seed_users", "--password", "123", stdout=StringIO())
