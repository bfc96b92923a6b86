# users/management/commands/seed_users.py

from __future__ import annotations

from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from permissions.roles import (
    ROLE_ADMIN,
    ROLE_FINANCE,
    ROLE_MANAGEMENT,
    ROLE_TEACHER,
)


@dataclass(frozen=True)
class SeedUserSpec:
    label: str
    role: str
    email: str
    first_name: str = ""
    last_name: str = ""


SCHOOL_STAFF = [
    SeedUserSpec("Admin", ROLE_ADMIN, "admin@example.com", "System", "Admin"),
    SeedUserSpec("Principal", ROLE_MANAGEMENT, "principal@example.com", "School", "Principal"),
    SeedUserSpec("Bursar", ROLE_FINANCE, "bursar@example.com", "Front", "Office"),
]


def _teacher_specs(count: int) -> list[SeedUserSpec]:
    return [
        SeedUserSpec(
            f"Teacher {i}",
            ROLE_TEACHER,
            f"teacher{i}@example.com",
            "Teacher",
            str(i),
        )
        for i in range(1, count + 1)
    ]


class Command(BaseCommand):
    help = "Seed school staff users (admin, principal, bursar, teachers)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--teachers",
            type=int,
            default=2,
            help="How many teacher accounts to seed (default: 2)",
        )
        parser.add_argument(
            "--password",
            type=str,
            default="Pass1234!",
            help="Password for seeded users (default: Pass1234!)",
        )
        parser.add_argument(
            "--force-password",
            action="store_true",
            help="Reset password for existing seeded users too.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        password = options.get("password") or ""
        force_password = bool(options.get("force_password"))
        teachers = int(options.get("teachers") or 0)

        if not password or len(password) < 6:
            raise CommandError("--password must be at least 6 characters.")
        if teachers < 0:
            raise CommandError("--teachers must be >= 0.")

        User = get_user_model()
        specs = SCHOOL_STAFF + _teacher_specs(teachers)

        created_count = 0
        updated_count = 0

        for spec in specs:
            is_admin = spec.role == ROLE_ADMIN

            user, created = User.objects.get_or_create(
                email=spec.email,
                defaults={
                    "username": spec.email.split("@")[0],
                    "role": spec.role,
                    "is_staff": True,
                    "is_superuser": is_admin,
                    "is_active": True,
                    "first_name": spec.first_name,
                    "last_name": spec.last_name,
                },
            )

            dirty = False

            if user.role != spec.role:
                user.role = spec.role
                dirty = True

            if not user.is_active:
                user.is_active = True
                dirty = True

            if created or force_password:
                user.set_password(password)
                dirty = True

            if dirty:
                user.save()
                if not created:
                    updated_count += 1

            if created:
                created_count += 1
                self.stdout.write(f"created: {spec.label} ({spec.role}) -> {spec.email}")
            else:
                self.stdout.write(f"exists:  {spec.label} ({spec.role}) -> {spec.email}")

        self.stdout.write("\n--- Summary ---")
        self.stdout.write(f"Created: {created_count}")
        self.stdout.write(f"Updated: {updated_count}")
