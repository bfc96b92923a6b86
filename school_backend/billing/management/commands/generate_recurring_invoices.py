# billing/management/commands/generate_recurring_invoices.py

"""
Generate the next invoice for every recurring chain whose billing period
has ended. Safe to run daily from cron: a chain that already has its
successor is skipped.

Usage:
    python manage.py generate_recurring_invoices
    python manage.py generate_recurring_invoices --as-of 2026-03-01
"""

from __future__ import annotations

from datetime import datetime

from django.core.management.base import BaseCommand, CommandError

from billing.services.recurring_service import generate_due_recurring_invoices


def _parse_date(s: str | None):
    if not s:
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


class Command(BaseCommand):
    help = "Generate successor invoices for recurring chains whose billing period has ended."

    def add_arguments(self, parser):
        parser.add_argument(
            "--as-of",
            dest="as_of",
            help="Reference date YYYY-MM-DD (default: today)",
        )

    def handle(self, *args, **options):
        as_of = _parse_date(options.get("as_of"))
        if options.get("as_of") and not as_of:
            raise CommandError("Invalid --as-of date. Use YYYY-MM-DD")

        generated = generate_due_recurring_invoices(as_of=as_of)

        for invoice in generated:
            self.stdout.write(
                f"  {invoice.invoice_number}  {invoice.billing_period_start} -> {invoice.billing_period_end}"
            )
        self.stdout.write(self.style.SUCCESS(f"Generated {len(generated)} recurring invoice(s)"))
