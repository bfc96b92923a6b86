# billing/management/commands/check_ledger_integrity.py

"""
Audit the whole billing ledger:

1) invoice.amount_paid == sum(active allocations) <= total
2) invoice.balance_due == total - amount_paid >= 0
3) sum(active allocations of a payment) <= payment.amount
4) refunded payments keep no active allocations

Usage:
    python manage.py check_ledger_integrity
    python manage.py check_ledger_integrity --strict   (non-zero exit on any problem)
"""

from __future__ import annotations

from django.core.management.base import BaseCommand

from billing.models import Invoice, Payment
from billing.services.invariants import invoice_violations, payment_violations


class Command(BaseCommand):
    help = "Validate billing ledger invariants (invoices, payments, allocations)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any problem is found.",
        )

    def handle(self, *args, **options):
        strict = bool(options.get("strict"))

        self.stdout.write(self.style.MIGRATE_HEADING("Billing Ledger Validation"))
        self.stdout.write(f"Invoices: {Invoice.objects.count()}")
        self.stdout.write(f"Payments: {Payment.objects.count()}")
        self.stdout.write("")

        errors = 0

        for label, problems in (
            ("Invoices", invoice_violations()),
            ("Payments", payment_violations()),
        ):
            if problems:
                errors += len(problems)
                self.stderr.write(self.style.ERROR(f"[FAIL] {label}: {len(problems)} problem(s)"))
                for line in problems[:20]:
                    self.stderr.write(f"  {line}")
            else:
                self.stdout.write(self.style.SUCCESS(f"[OK] {label} consistent"))

        self.stdout.write("")
        if errors == 0:
            self.stdout.write(self.style.SUCCESS("VALIDATION PASSED"))
        else:
            self.stderr.write(self.style.ERROR(f"VALIDATION FOUND ISSUES: {errors} problem(s)"))

        if strict and errors > 0:
            raise SystemExit(1)
