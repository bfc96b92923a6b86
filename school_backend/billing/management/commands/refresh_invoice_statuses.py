# billing/management/commands/refresh_invoice_statuses.py

from __future__ import annotations

from datetime import datetime

from django.core.management.base import BaseCommand, CommandError

from billing.services.invoice_service import refresh_invoice_statuses


class Command(BaseCommand):
    help = "Mark sent invoices whose due date has passed as overdue."

    def add_arguments(self, parser):
        parser.add_argument(
            "--as-of",
            dest="as_of",
            help="Reference date YYYY-MM-DD (default: today)",
        )

    def handle(self, *args, **options):
        as_of = None
        if options.get("as_of"):
            try:
                as_of = datetime.strptime(options["as_of"], "%Y-%m-%d").date()
            except ValueError as exc:
                raise CommandError("Invalid --as-of date. Use YYYY-MM-DD") from exc

        changed = refresh_invoice_statuses(today=as_of)
        self.stdout.write(self.style.SUCCESS(f"{changed} invoice(s) marked overdue"))
