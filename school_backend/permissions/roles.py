# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS (SCHOOL STAFF ROLES)
# =========================================================
# They describe what the person does at the school.
ROLE_ADMIN = "admin"
ROLE_MANAGEMENT = "management"
ROLE_FINANCE = "finance"
ROLE_TEACHER = "teacher"
ROLE_PARENT = "parent"

ROLE_CHOICES = [
    (ROLE_ADMIN, "Admin"),
    (ROLE_MANAGEMENT, "Management"),
    (ROLE_FINANCE, "Finance"),
    (ROLE_TEACHER, "Teacher"),
    (ROLE_PARENT, "Parent"),
]

STAFF_ROLES = {
    ROLE_ADMIN,
    ROLE_MANAGEMENT,
    ROLE_FINANCE,
    ROLE_TEACHER,
}


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views should protect capabilities, not raw roles.
CAP_BILLING_VIEW = "billing.view"
CAP_BILLING_INVOICE = "billing.invoice"      # create / issue / recurring
CAP_BILLING_COLLECT = "billing.collect"      # record payments, apply credit
CAP_BILLING_ADJUST = "billing.adjust"        # discounts, late fees, write-offs
CAP_BILLING_REFUND = "billing.refund"

CAP_DAILY_CLOSE_PREPARE = "daily_close.prepare"
CAP_DAILY_CLOSE_LOCK = "daily_close.lock"

CAP_PAYOUTS_VIEW = "payouts.view"
CAP_PAYOUTS_VIEW_OWN = "payouts.view_own"
CAP_PAYOUTS_MANAGE = "payouts.manage"

ALL_CAPABILITIES = {
    CAP_BILLING_VIEW,
    CAP_BILLING_INVOICE,
    CAP_BILLING_COLLECT,
    CAP_BILLING_ADJUST,
    CAP_BILLING_REFUND,
    CAP_DAILY_CLOSE_PREPARE,
    CAP_DAILY_CLOSE_LOCK,
    CAP_PAYOUTS_VIEW,
    CAP_PAYOUTS_VIEW_OWN,
    CAP_PAYOUTS_MANAGE,
}


# =========================================================
# ROLE → CAPABILITY MAP (DEFAULT)
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_MANAGEMENT: {
        *ALL_CAPABILITIES,
    },
    ROLE_FINANCE: {
        CAP_BILLING_VIEW,
        CAP_BILLING_INVOICE,
        CAP_BILLING_COLLECT,
        CAP_BILLING_ADJUST,
        CAP_BILLING_REFUND,
        CAP_DAILY_CLOSE_PREPARE,
        CAP_DAILY_CLOSE_LOCK,
        CAP_PAYOUTS_VIEW,
        # rate changes stay with management
    },
    ROLE_TEACHER: {
        CAP_PAYOUTS_VIEW_OWN,
    },
    ROLE_PARENT: set(),
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    return getattr(user, "role", None)


def effective_capabilities_for(user) -> set[str]:
    """
    Capabilities granted by the user's role.
    """
    role = get_user_role(user)
    return set(ROLE_CAPABILITIES.get(role, set()))


def user_has_capability(user, capability: str) -> bool:
    if not user or not user.is_authenticated:
        return False
    return capability in effective_capabilities_for(user)


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        view.required_capability = CAP_BILLING_REFUND
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_capability", None)
        if not required:
            # unset -> deny
            return False

        return required in effective_capabilities_for(user)


class HasAnyCapability(BasePermission):
    """
    Require ANY capability from a list.

    Usage:
        view.required_any_capabilities = {CAP_PAYOUTS_VIEW, CAP_PAYOUTS_VIEW_OWN}
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_any_capabilities", None)
        if not required:
            return False

        caps = effective_capabilities_for(user)
        return any(cap in caps for cap in set(required))
