# reconciliation/tests/test_concurrency.py

from datetime import timedelta
from unittest import mock

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from billing.services.exceptions import AlreadyFinalized, DailyCloseRace
from billing.services.payment_service import record_payment
from billing.tests.helpers import make_invoice, make_student, make_user
from reconciliation.models import DailyClose
from reconciliation.services.daily_close_service import (
    expected_totals,
    lock_daily_close,
    save_daily_close,
)

EXPECTED_TOTALS = "reconciliation.services.daily_close_service.expected_totals"

_original_save = DailyClose.save


def _locked_elsewhere(**kwargs):
    DailyClose.objects.filter(close_date=kwargs["close_date"]).update(is_locked=True)
    return expected_totals(**kwargs)


def _created_elsewhere(**kwargs):
    DailyClose.objects.bulk_create([DailyClose(close_date=kwargs["close_date"])])
    return expected_totals(**kwargs)


def _save_after_competing_insert(record, *args, **kwargs):
    if record._state.adding:
        DailyClose.objects.bulk_create([DailyClose(close_date=record.close_date)])
    return _original_save(record, *args, **kwargs)


class DailyCloseConcurrencyTests(TestCase):
    """
    Two cashiers closing the same day.

    GUARANTEES:
    - Losing the lock race is AlreadyFinalized, never a second snapshot
    - Losing the create race is DailyCloseRace (retryable)
    - The losing request writes nothing
    """

    def setUp(self):
        self.today = timezone.localdate()
        self.cashier = make_user("cashier@example.com", "finance")
        student = make_student()
        make_invoice(
            student,
            20000,
            issue_date=self.today,
            due_date=self.today + timedelta(days=10),
            today=self.today,
        )
        record_payment(student_id=student.pk, amount=10000, method="cash", today=self.today)

    def test_lock_after_another_locker_won_is_already_finalized(self):
        save_daily_close(
            close_date=self.today, actual_cash=10000, actual_bank=0, today=self.today
        )

        with mock.patch(EXPECTED_TOTALS, side_effect=_locked_elsewhere):
            with self.assertRaises(AlreadyFinalized) as ctx:
                lock_daily_close(close_date=self.today, user=self.cashier, today=self.today)

        self.assertFalse(ctx.exception.retryable)
        self.assertIn("another request", str(ctx.exception))
        record = DailyClose.objects.get(close_date=self.today)
        self.assertFalse(record.is_locked)
        self.assertIsNone(record.closed_by)

    def test_draft_created_concurrently_is_race(self):
        with mock.patch(EXPECTED_TOTALS, side_effect=_created_elsewhere):
            with self.assertRaises(DailyCloseRace) as ctx:
                save_daily_close(
                    close_date=self.today, actual_cash=10000, actual_bank=0, today=self.today
                )

        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(ctx.exception.http_status, 409)
        self.assertFalse(DailyClose.objects.filter(close_date=self.today).exists())

    def test_lock_without_draft_created_concurrently_is_race(self):
        with mock.patch.object(
            DailyClose, "save", autospec=True, side_effect=_save_after_competing_insert
        ):
            with self.assertRaises(DailyCloseRace):
                lock_daily_close(
                    close_date=self.today, actual_cash=10000, actual_bank=0, today=self.today
                )

        self.assertFalse(DailyClose.objects.filter(close_date=self.today).exists())


class DailyCloseConcurrencyApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.today = timezone.localdate()
        self.manager = make_user("manager@example.com", "management")
        self.client.force_authenticate(self.manager)

    def test_lost_lock_race_is_409_not_retryable(self):
        save_daily_close(close_date=self.today, actual_cash=0, actual_bank=0, today=self.today)

        with mock.patch(EXPECTED_TOTALS, side_effect=_locked_elsewhere):
            res = self.client.post(
                "/api/reconciliation/daily-close/lock/",
                {"close_date": str(self.today)},
                format="json",
            )

        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["error"]["code"], "ALREADY_FINALIZED")
        self.assertFalse(res.data["error"]["retryable"])

    def test_lost_create_race_is_retryable_409(self):
        with mock.patch(EXPECTED_TOTALS, side_effect=_created_elsewhere):
            res = self.client.post(
                "/api/reconciliation/daily-close/",
                {"close_date": str(self.today), "actual_cash": "0", "actual_bank": "0"},
                format="json",
            )

        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["error"]["code"], "DAILY_CLOSE_RACE")
        self.assertTrue(res.data["error"]["retryable"])
        self.assertEqual(res.data["error"]["details"]["close_date"], str(self.today))

    def test_lost_create_race_on_lock_is_retryable_409(self):
        with mock.patch.object(
            DailyClose, "save", autospec=True, side_effect=_save_after_competing_insert
        ):
            res = self.client.post(
                "/api/reconciliation/daily-close/lock/",
                {"close_date": str(self.today), "actual_cash": "0", "actual_bank": "0"},
                format="json",
            )

        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["error"]["code"], "DAILY_CLOSE_RACE")
        self.assertTrue(res.data["error"]["retryable"])
