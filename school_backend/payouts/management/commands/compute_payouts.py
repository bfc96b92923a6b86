# payouts/management/commands/compute_payouts.py

"""
Compute teacher payouts for a period (read-only report).

Usage:
    python manage.py compute_payouts --from 2026-03-01 --to 2026-03-31
    python manage.py compute_payouts --from 2026-03-01 --to 2026-03-31 --strict
"""

from __future__ import annotations

from datetime import datetime

from django.core.management.base import BaseCommand, CommandError

from billing.services.exceptions import LedgerError
from billing.services.money import format_minor
from payouts.services.payout_service import compute_period_payouts


def _parse_date(s: str | None):
    if not s:
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


class Command(BaseCommand):
    help = "Compute teacher payouts for a reporting period."

    def add_arguments(self, parser):
        parser.add_argument("--from", dest="date_from", required=True, help="Period start YYYY-MM-DD")
        parser.add_argument("--to", dest="date_to", required=True, help="Period end YYYY-MM-DD")
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any teacher could not be computed.",
        )

    def handle(self, *args, **options):
        period_start = _parse_date(options.get("date_from"))
        period_end = _parse_date(options.get("date_to"))
        if not period_start or not period_end:
            raise CommandError("Invalid --from/--to date. Use YYYY-MM-DD")

        try:
            results, failures = compute_period_payouts(
                period_start=period_start, period_end=period_end
            )
        except LedgerError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(self.style.MIGRATE_HEADING(f"Payouts {period_start} -> {period_end}"))

        for result in results:
            line = (
                f"  {result.teacher_id}  revenue={format_minor(result.revenue_base)}  "
                f"payout={format_minor(result.payout)}  ({result.rule_applied.describe()})"
            )
            self.stdout.write(line)
            for warning in result.warnings:
                self.stdout.write(self.style.WARNING(f"    ! {warning['message']}"))

        for teacher, exc in failures:
            self.stderr.write(self.style.ERROR(f"  {teacher.email}: [{exc.code}] {exc}"))

        self.stdout.write(self.style.SUCCESS(f"Computed {len(results)} payout(s)"))

        if options.get("strict") and failures:
            raise SystemExit(1)
