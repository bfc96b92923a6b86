# payouts/services/payout_service.py

"""
======================================================
PATH: payouts/services/payout_service.py
======================================================
PAYOUT SERVICE

Operations:
- compute_payout(teacher_id, period_start, period_end) -> PayoutResult
- compute_period_payouts(period_start, period_end)     -> (results, failures)

Formula (exact fractions, one half-up rounding at the end):
- fixed:  revenue * fixed% / 100
- tiered: min(revenue, T) * t1% / 100 + max(0, revenue - T) * t2% / 100

At revenue == T everything is billed at t1.
Read-only: no rows are written.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from fractions import Fraction
import logging

from django.contrib.auth import get_user_model
from django.db import DEFAULT_DB_ALIAS

from billing.services.exceptions import InvalidPeriod, LedgerError
from billing.services.money import percentage_of, round_half_up
from payouts.models import PayoutRule
from payouts.services.revenue import revenue_base
from payouts.services.rules import get_teacher, select_rule
from permissions.roles import ROLE_TEACHER

logger = logging.getLogger("payouts")


@dataclass
class PayoutResult:
    teacher_id: object
    period_start: object
    period_end: object
    revenue_base: int
    rule_applied: PayoutRule
    payout: int
    tier1_base: int
    tier2_base: int
    warnings: list = field(default_factory=list)


def apply_rule(rule: PayoutRule, revenue: int) -> tuple[int, int, int]:
    """
    -> (payout, tier1_base, tier2_base)
    """
    if rule.is_fixed:
        return round_half_up(percentage_of(revenue, rule.fixed_percentage)), revenue, 0

    threshold = rule.tier1_threshold
    tier1_base = min(revenue, threshold)
    tier2_base = max(0, revenue - threshold)

    exact: Fraction = percentage_of(tier1_base, rule.tier1_percentage) + percentage_of(
        tier2_base, rule.tier2_percentage
    )
    return round_half_up(exact), tier1_base, tier2_base


def compute_payout(*, teacher_id, period_start, period_end, using=DEFAULT_DB_ALIAS) -> PayoutResult:
    if period_start > period_end:
        raise InvalidPeriod(
            f"period_start {period_start} is after period_end {period_end}",
            period_start=str(period_start),
            period_end=str(period_end),
        )

    teacher = get_teacher(teacher_id, using=using)
    rule, warnings = select_rule(teacher_id=teacher.pk, period_end=period_end, using=using)

    revenue = revenue_base(
        teacher_id=teacher.pk,
        period_start=period_start,
        period_end=period_end,
        using=using,
    )
    payout, tier1_base, tier2_base = apply_rule(rule, revenue)

    logger.info(
        "Payout computed",
        extra={
            "teacher_id": str(teacher.pk),
            "period_start": str(period_start),
            "period_end": str(period_end),
            "revenue_base": revenue,
            "rule_id": str(rule.pk),
            "payout": payout,
        },
    )

    return PayoutResult(
        teacher_id=teacher.pk,
        period_start=period_start,
        period_end=period_end,
        revenue_base=revenue,
        rule_applied=rule,
        payout=payout,
        tier1_base=tier1_base,
        tier2_base=tier2_base,
        warnings=warnings,
    )


def compute_period_payouts(*, period_start, period_end, using=DEFAULT_DB_ALIAS):
    """
    Payout for every teacher with a rule. Teachers whose computation fails
    are reported as (teacher, error) pairs; the rest still compute.
    """
    User = get_user_model()
    teachers = (
        User.objects.using(using)
        .filter(role=ROLE_TEACHER, payout_rules__isnull=False)
        .distinct()
        .order_by("email")
    )

    results, failures = [], []
    for teacher in teachers:
        try:
            results.append(
                compute_payout(
                    teacher_id=teacher.pk,
                    period_start=period_start,
                    period_end=period_end,
                    using=using,
                )
            )
        except LedgerError as exc:
            logger.warning(
                "Payout skipped",
                extra={"teacher_id": str(teacher.pk), "code": exc.code, "error": str(exc)},
            )
            failures.append((teacher, exc))
    return results, failures
