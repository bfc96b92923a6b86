# reconciliation/services/daily_close_service.py

"""
======================================================
PATH: reconciliation/services/daily_close_service.py
======================================================
DAILY CLOSE SERVICE

Operations:
- expected_totals(...)      -> ExpectedTotals  (live figures from completed payments)
- preview_daily_close(...)  -> DailyClosePreview
- save_daily_close(...)     -> DailyClose      (create or update the draft)
- lock_daily_close(...)     -> DailyClose      (one-way, compare-and-set)
- list_daily_closes(...)    -> QuerySet[DailyClose]

Rules:
- close_date may not be in the future
- Locked records are immutable; saving or locking them again raises AlreadyFinalized
- Expected figures are snapshotted at lock time; later refunds do not touch them
- Of two concurrent lock attempts exactly one succeeds
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from django.db import DEFAULT_DB_ALIAS, IntegrityError, transaction
from django.db.models import BigIntegerField, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from billing.models import Payment
from billing.services.exceptions import (
    AlreadyFinalized,
    DailyCloseRace,
    FutureDate,
    InvalidDailyClose,
    InvalidPeriod,
)
from billing.services.persistence import ledger_operation
from reconciliation.models import DailyClose

logger = logging.getLogger("reconciliation")


@dataclass(frozen=True)
class ExpectedTotals:
    cash: int
    bank: int

    @property
    def total(self) -> int:
        return self.cash + self.bank


@dataclass
class DailyClosePreview:
    close_date: object
    status: str
    expected_cash: int
    expected_bank: int
    actual_cash: int | None
    actual_bank: int | None
    variance: int | None
    record: DailyClose | None = None

    @property
    def expected_total(self) -> int:
        return self.expected_cash + self.expected_bank


STATUS_NO_RECORD = "no_record"
STATUS_DRAFT = "draft"
STATUS_LOCKED = "locked"


# ============================================================
# HELPERS
# ============================================================


def compute_variance(*, actual_cash: int, actual_bank: int, expected: ExpectedTotals) -> int:
    return (actual_cash + actual_bank) - expected.total


def _ensure_not_future(close_date, today) -> None:
    if close_date > today:
        raise FutureDate(
            f"Cannot close {close_date}; it is after today ({today})",
            close_date=str(close_date),
        )


def _validate_actual(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidDailyClose(f"{name} must be a whole number of minor units", field=name)
    if value < 0:
        raise InvalidDailyClose(f"{name} cannot be negative", field=name)
    return value


def expected_totals(*, close_date, using=DEFAULT_DB_ALIAS) -> ExpectedTotals:
    """Sum of completed payments dated close_date, split cash / bank."""
    zero = 0
    totals = Payment.objects.using(using).filter(
        payment_date=close_date,
        status=Payment.STATUS_COMPLETED,
    ).aggregate(
        cash=Coalesce(
            Sum("amount", filter=Q(method__in=Payment.CASH_METHODS)),
            zero,
            output_field=BigIntegerField(),
        ),
        bank=Coalesce(
            Sum("amount", filter=Q(method__in=Payment.BANK_METHODS)),
            zero,
            output_field=BigIntegerField(),
        ),
    )
    return ExpectedTotals(cash=totals["cash"], bank=totals["bank"])


# ============================================================
# PREVIEW
# ============================================================


def preview_daily_close(*, close_date, using=DEFAULT_DB_ALIAS, today=None) -> DailyClosePreview:
    """
    Current view of a day.

    - locked   -> the stored snapshot
    - draft    -> live expected figures against the stored actuals
    - no record -> live expected figures only
    """
    today = today or timezone.localdate()
    _ensure_not_future(close_date, today)

    record = DailyClose.objects.using(using).filter(close_date=close_date).first()

    if record is not None and record.is_locked:
        return DailyClosePreview(
            close_date=close_date,
            status=STATUS_LOCKED,
            expected_cash=record.expected_cash,
            expected_bank=record.expected_bank,
            actual_cash=record.actual_cash,
            actual_bank=record.actual_bank,
            variance=record.variance,
            record=record,
        )

    expected = expected_totals(close_date=close_date, using=using)

    if record is None:
        return DailyClosePreview(
            close_date=close_date,
            status=STATUS_NO_RECORD,
            expected_cash=expected.cash,
            expected_bank=expected.bank,
            actual_cash=None,
            actual_bank=None,
            variance=None,
        )

    return DailyClosePreview(
        close_date=close_date,
        status=STATUS_DRAFT,
        expected_cash=expected.cash,
        expected_bank=expected.bank,
        actual_cash=record.actual_cash,
        actual_bank=record.actual_bank,
        variance=compute_variance(
            actual_cash=record.actual_cash,
            actual_bank=record.actual_bank,
            expected=expected,
        ),
        record=record,
    )


# ============================================================
# SAVE DRAFT
# ============================================================


@ledger_operation("save_daily_close", logger=logger)
def save_daily_close(
    *,
    close_date,
    actual_cash: int,
    actual_bank: int,
    notes: str = "",
    user=None,
    using=DEFAULT_DB_ALIAS,
    today=None,
) -> DailyClose:
    """
    Create or update the draft for close_date.

    The draft stores the live expected figures so the variance shown
    before locking matches what the cashier counted against.
    """
    today = today or timezone.localdate()
    _ensure_not_future(close_date, today)
    actual_cash = _validate_actual("actual_cash", actual_cash)
    actual_bank = _validate_actual("actual_bank", actual_bank)

    with transaction.atomic(using=using):
        record = (
            DailyClose.objects.using(using)
            .select_for_update()
            .filter(close_date=close_date)
            .first()
        )

        if record is not None and record.is_locked:
            raise AlreadyFinalized(
                f"Daily close for {close_date} is already locked",
                close_date=str(close_date),
            )

        expected = expected_totals(close_date=close_date, using=using)
        variance = compute_variance(
            actual_cash=actual_cash, actual_bank=actual_bank, expected=expected
        )

        if record is None:
            record = DailyClose(close_date=close_date, prepared_by=user)
            _fill(record, expected, actual_cash, actual_bank, variance, notes)
            try:
                with transaction.atomic(using=using):
                    record.save(using=using)
            except IntegrityError as exc:
                raise DailyCloseRace(
                    f"Another draft for {close_date} was created concurrently",
                    close_date=str(close_date),
                ) from exc
        else:
            _fill(record, expected, actual_cash, actual_bank, variance, notes)
            if user is not None:
                record.prepared_by = user
            record.save(using=using)

    logger.info(
        "Daily close draft saved",
        extra={"close_date": str(close_date), "variance": record.variance},
    )
    return record


def _fill(record, expected, actual_cash, actual_bank, variance, notes) -> None:
    record.expected_cash = expected.cash
    record.expected_bank = expected.bank
    record.actual_cash = actual_cash
    record.actual_bank = actual_bank
    record.variance = variance
    record.notes = notes or record.notes


# ============================================================
# LOCK
# ============================================================


@ledger_operation("lock_daily_close", logger=logger)
def lock_daily_close(
    *,
    close_date,
    actual_cash: int | None = None,
    actual_bank: int | None = None,
    notes: str = "",
    user=None,
    using=DEFAULT_DB_ALIAS,
    today=None,
) -> DailyClose:
    """
    Lock the day.

    Actuals default to the draft's figures. Expected totals are computed
    here and frozen into the record. The transition is a conditional
    UPDATE on is_locked=False, so a second locker sees AlreadyFinalized.
    """
    today = today or timezone.localdate()
    _ensure_not_future(close_date, today)
    if actual_cash is not None:
        actual_cash = _validate_actual("actual_cash", actual_cash)
    if actual_bank is not None:
        actual_bank = _validate_actual("actual_bank", actual_bank)

    with transaction.atomic(using=using):
        record = DailyClose.objects.using(using).filter(close_date=close_date).first()

        if record is not None and record.is_locked:
            raise AlreadyFinalized(
                f"Daily close for {close_date} is already locked",
                close_date=str(close_date),
            )

        if record is None:
            if actual_cash is None or actual_bank is None:
                raise InvalidDailyClose(
                    f"No draft exists for {close_date}; actual_cash and actual_bank are required",
                    close_date=str(close_date),
                )
            record = DailyClose(close_date=close_date, prepared_by=user)
            try:
                with transaction.atomic(using=using):
                    record.save(using=using)
            except IntegrityError as exc:
                raise DailyCloseRace(
                    f"Another close for {close_date} was created concurrently",
                    close_date=str(close_date),
                ) from exc

        cash = record.actual_cash if actual_cash is None else actual_cash
        bank = record.actual_bank if actual_bank is None else actual_bank

        expected = expected_totals(close_date=close_date, using=using)
        variance = compute_variance(actual_cash=cash, actual_bank=bank, expected=expected)
        now = timezone.now()

        updated = DailyClose.objects.using(using).filter(
            pk=record.pk, is_locked=False
        ).update(
            is_locked=True,
            expected_cash=expected.cash,
            expected_bank=expected.bank,
            actual_cash=cash,
            actual_bank=bank,
            variance=variance,
            notes=notes or record.notes,
            closed_by=user,
            closed_at=now,
            updated_at=now,
        )

        if updated == 0:
            raise AlreadyFinalized(
                f"Daily close for {close_date} was locked by another request",
                close_date=str(close_date),
            )

        record.refresh_from_db(using=using)

    logger.info(
        "Daily close locked",
        extra={
            "close_date": str(close_date),
            "expected_total": record.expected_total,
            "actual_total": record.actual_total,
            "variance": record.variance,
        },
    )
    if record.variance:
        logger.warning(
            "Daily close locked with variance",
            extra={"close_date": str(close_date), "variance": record.variance},
        )
    return record


# ============================================================
# LIST
# ============================================================


def list_daily_closes(*, date_from=None, date_to=None, using=DEFAULT_DB_ALIAS):
    if date_from and date_to and date_from > date_to:
        raise InvalidPeriod(
            f"date_from {date_from} is after date_to {date_to}",
            date_from=str(date_from),
            date_to=str(date_to),
        )

    qs = DailyClose.objects.using(using).select_related("prepared_by", "closed_by")
    if date_from:
        qs = qs.filter(close_date__gte=date_from)
    if date_to:
        qs = qs.filter(close_date__lte=date_to)
    return qs.order_by("-close_date")
