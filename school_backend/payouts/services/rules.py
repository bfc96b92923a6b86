# payouts/services/rules.py

"""
======================================================
PATH: payouts/services/rules.py
======================================================
PAYOUT RULE SERVICE

Operations:
- select_rule(...)         -> (PayoutRule, warnings)
- upsert_payout_rule(...)  -> PayoutRule  (new row, previous row deactivated)
- rule_history(...)        -> QuerySet[PayoutRule]

Selection:
- a rule is eligible when its window covers period_end
  (effective_from <= period_end, effective_to empty or >= period_end)
  and it is either still active or was superseded after period_end
- latest effective_from wins, then latest created_at
- more than one eligible rule is a configuration error: logged and
  returned as a warning, or raised when PAYOUTS["STRICT_RULE_SELECTION"]
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal, InvalidOperation
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import Q

from billing.services.exceptions import (
    AmbiguousPayoutRule,
    InvalidPayoutRule,
    NoPayoutRule,
    PayoutRuleNotLater,
    TeacherNotFound,
)
from billing.services.persistence import ledger_operation
from payouts.models import PayoutRule
from permissions.roles import ROLE_TEACHER

logger = logging.getLogger("payouts")

WARNING_AMBIGUOUS = "AMBIGUOUS_PAYOUT_RULE"

HUNDRED = Decimal("100")


def strict_rule_selection() -> bool:
    return bool(getattr(settings, "PAYOUTS", {}).get("STRICT_RULE_SELECTION", False))


def get_teacher(teacher_id, *, using=DEFAULT_DB_ALIAS):
    User = get_user_model()
    teacher = User.objects.using(using).filter(pk=teacher_id, role=ROLE_TEACHER).first()
    if teacher is None:
        raise TeacherNotFound(f"Teacher {teacher_id} not found", teacher_id=str(teacher_id))
    return teacher


# ============================================================
# SELECTION
# ============================================================


def eligible_rules(*, teacher_id, on_date, using=DEFAULT_DB_ALIAS):
    return (
        PayoutRule.objects.using(using)
        .filter(teacher_id=teacher_id, effective_from__lte=on_date)
        .filter(
            Q(is_active=True, effective_to__isnull=True)
            | Q(effective_to__gte=on_date)
        )
        .order_by("-effective_from", "-created_at")
    )


def select_rule(*, teacher_id, period_end, using=DEFAULT_DB_ALIAS):
    """
    Pick the rule in force at period_end. Never combines rules.
    """
    candidates = list(eligible_rules(teacher_id=teacher_id, on_date=period_end, using=using))

    if not candidates:
        raise NoPayoutRule(
            f"No payout rule for teacher {teacher_id} on {period_end}",
            teacher_id=str(teacher_id),
            period_end=str(period_end),
        )

    chosen = candidates[0]
    warnings = []

    if len(candidates) > 1:
        rule_ids = [str(rule.pk) for rule in candidates]
        if strict_rule_selection():
            raise AmbiguousPayoutRule(
                f"{len(candidates)} payout rules cover {period_end} for teacher {teacher_id}",
                teacher_id=str(teacher_id),
                period_end=str(period_end),
                rule_ids=rule_ids,
            )

        logger.warning(
            "Ambiguous payout rule configuration; using most recent rule",
            extra={
                "teacher_id": str(teacher_id),
                "period_end": str(period_end),
                "rule_ids": rule_ids,
                "chosen_rule_id": str(chosen.pk),
            },
        )
        warnings.append(
            {
                "code": WARNING_AMBIGUOUS,
                "message": (
                    f"{len(candidates)} payout rules cover {period_end}; "
                    f"applied the one effective from {chosen.effective_from}"
                ),
                "rule_ids": rule_ids,
            }
        )

    return chosen, warnings


# ============================================================
# UPSERT
# ============================================================


def _percentage(name: str, value) -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidPayoutRule(f"{name} is required", field=name)
    try:
        pct = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidPayoutRule(f"{name} is not a number", field=name) from exc
    if not pct.is_finite() or pct < 0 or pct > HUNDRED:
        raise InvalidPayoutRule(f"{name} must be between 0 and 100", field=name)
    if pct != pct.quantize(Decimal("0.01")):
        raise InvalidPayoutRule(f"{name} allows at most 2 decimal places", field=name)
    return pct


def _rule_fields(*, fixed_percentage, tier1_percentage, tier1_threshold, tier2_percentage) -> dict:
    tiered_given = any(
        v is not None for v in (tier1_percentage, tier1_threshold, tier2_percentage)
    )

    if fixed_percentage is not None and tiered_given:
        raise InvalidPayoutRule("Give either fixed_percentage or the tier fields, not both")

    if fixed_percentage is not None:
        return {
            "is_fixed": True,
            "fixed_percentage": _percentage("fixed_percentage", fixed_percentage),
        }

    if not tiered_given:
        raise InvalidPayoutRule("A payout rule needs fixed_percentage or tier fields")

    if isinstance(tier1_threshold, bool) or not isinstance(tier1_threshold, int) or tier1_threshold < 0:
        raise InvalidPayoutRule(
            "tier1_threshold must be a non-negative number of minor units",
            field="tier1_threshold",
        )

    return {
        "is_fixed": False,
        "tier1_percentage": _percentage("tier1_percentage", tier1_percentage),
        "tier1_threshold": tier1_threshold,
        "tier2_percentage": _percentage("tier2_percentage", tier2_percentage),
    }


@ledger_operation("upsert_payout_rule", logger=logger)
def upsert_payout_rule(
    *,
    teacher_id,
    effective_from,
    fixed_percentage=None,
    tier1_percentage=None,
    tier1_threshold=None,
    tier2_percentage=None,
    created_by=None,
    using=DEFAULT_DB_ALIAS,
) -> PayoutRule:
    """
    Insert a new rule version. Existing rows are deactivated, never edited.
    """
    fields = _rule_fields(
        fixed_percentage=fixed_percentage,
        tier1_percentage=tier1_percentage,
        tier1_threshold=tier1_threshold,
        tier2_percentage=tier2_percentage,
    )

    with transaction.atomic(using=using):
        teacher = get_teacher(teacher_id, using=using)

        active = list(
            PayoutRule.objects.using(using)
            .select_for_update()
            .filter(teacher=teacher, is_active=True)
            .order_by("pk")
        )

        for rule in active:
            if effective_from <= rule.effective_from:
                raise PayoutRuleNotLater(
                    f"effective_from {effective_from} must be after the current rule's "
                    f"{rule.effective_from}",
                    teacher_id=str(teacher.pk),
                    current_effective_from=str(rule.effective_from),
                )

        if active:
            PayoutRule.objects.using(using).filter(pk__in=[r.pk for r in active]).update(
                is_active=False,
                effective_to=effective_from - timedelta(days=1),
            )

        rule = PayoutRule(
            teacher=teacher,
            effective_from=effective_from,
            created_by=created_by,
            **fields,
        )
        rule.save(using=using)

    logger.info(
        "Payout rule saved",
        extra={
            "teacher_id": str(teacher.pk),
            "rule_id": str(rule.pk),
            "effective_from": str(effective_from),
            "superseded": len(active),
        },
    )
    return rule


def rule_history(*, teacher_id, using=DEFAULT_DB_ALIAS):
    get_teacher(teacher_id, using=using)
    return (
        PayoutRule.objects.using(using)
        .filter(teacher_id=teacher_id)
        .select_related("created_by")
        .order_by("-effective_from", "-created_at")
    )
