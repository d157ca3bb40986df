# permissions/roles.py
"""
Who may do what.

Users carry a job role; views ask for capabilities. The table below is the
only place the two meet, so granting a role a new action never touches a view.
Superusers hold every capability.
"""

from __future__ import annotations

from typing import Iterable

from rest_framework.permissions import BasePermission

# job roles (mirrors users.User.ROLE_CHOICES)
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_PHARMACIST = "pharmacist"
ROLE_CASHIER = "cashier"
ROLE_AUDITOR = "auditor"

# capabilities
CAP_POS_SELL = "pos.sell"
CAP_POS_REFUND = "pos.refund"
CAP_REPORTS_VIEW_POS = "reports.view_pos"
CAP_INVENTORY_VIEW = "inventory.view"
CAP_INVENTORY_ADJUST = "inventory.adjust"
CAP_AUDIT_VIEW = "audit.view"

ALL_CAPABILITIES = frozenset(
    {
        CAP_POS_SELL,
        CAP_POS_REFUND,
        CAP_REPORTS_VIEW_POS,
        CAP_INVENTORY_VIEW,
        CAP_INVENTORY_ADJUST,
        CAP_AUDIT_VIEW,
    }
)

_SELLING = {CAP_POS_SELL, CAP_INVENTORY_VIEW}
_READING = {CAP_REPORTS_VIEW_POS, CAP_INVENTORY_VIEW}

ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    ROLE_ADMIN: ALL_CAPABILITIES,
    ROLE_MANAGER: ALL_CAPABILITIES,
    ROLE_PHARMACIST: frozenset(_SELLING | _READING | {CAP_POS_REFUND}),
    # cashiers sell but never refund
    ROLE_CASHIER: frozenset(_SELLING),
    ROLE_AUDITOR: frozenset(_READING | {CAP_AUDIT_VIEW}),
}


def effective_capabilities_for(user) -> set[str]:
    if getattr(user, "is_superuser", False):
        return set(ALL_CAPABILITIES)
    return set(ROLE_CAPABILITIES.get(getattr(user, "role", None), ()))


class _CapabilityPermission(BasePermission):
    """
    Deny unless the view names what it needs and the user holds it.
    A view that forgets to declare anything is closed, not open.
    """

    def wanted(self, view) -> Iterable[str]:
        raise NotImplementedError

    def satisfied(self, held: set[str], wanted: set[str]) -> bool:
        raise NotImplementedError

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        wanted = {cap for cap in self.wanted(view) if cap}
        if not wanted:
            return False

        return self.satisfied(effective_capabilities_for(user), wanted)


class HasCapability(_CapabilityPermission):
    """view.required_capability = CAP_POS_REFUND"""

    def wanted(self, view):
        return [getattr(view, "required_capability", None)]

    def satisfied(self, held, wanted):
        return wanted <= held


class HasAnyCapability(_CapabilityPermission):
    """view.required_any_capabilities = {CAP_AUDIT_VIEW, CAP_INVENTORY_VIEW}"""

    def wanted(self, view):
        return getattr(view, "required_any_capabilities", None) or ()

    def satisfied(self, held, wanted):
        return bool(held & wanted)
