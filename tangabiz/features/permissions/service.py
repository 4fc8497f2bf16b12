"""
tangabiz/features/permissions/service.py

Role-based permission matrix for ADMIN, MANAGER and STAFF.

The matrix is fixed at import time. Lookups never raise: an unknown role or
permission (raw string, None) resolves to "not granted".
"""

from typing import Dict, FrozenSet, Iterable, Optional, Union

from tangabiz.models.permission import Permission, Role


P = Permission

ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    # Full access to everything
    Role.ADMIN: frozenset(Permission),
    # Most access except critical business settings and some financials
    Role.MANAGER: frozenset({
        P.VIEW_DASHBOARD,
        P.VIEW_SALES_STATS,
        P.VIEW_REVENUE,
        P.VIEW_PRODUCTS,
        P.CREATE_PRODUCTS,
        P.EDIT_PRODUCTS,
        P.VIEW_COST_PRICE,
        P.MANAGE_INVENTORY,
        P.VIEW_CATEGORIES,
        P.CREATE_CATEGORIES,
        P.EDIT_CATEGORIES,
        P.VIEW_CUSTOMERS,
        P.CREATE_CUSTOMERS,
        P.EDIT_CUSTOMERS,
        P.MANAGE_EMAIL_CAMPAIGNS,
        P.VIEW_TRANSACTIONS,
        P.CREATE_SALES,
        P.PROCESS_REFUNDS,
        P.VIEW_ALL_TRANSACTIONS,
        P.VIEW_REPORTS,
        P.VIEW_SALES_REPORTS,
        P.VIEW_INVENTORY_REPORTS,
        P.EXPORT_REPORTS,
        P.VIEW_BUSINESS_SETTINGS,
        P.MANAGE_TEAM,
        P.INVITE_MEMBERS,
        P.VIEW_NOTIFICATIONS,
        P.MANAGE_NOTIFICATION_SETTINGS,
    }),
    # Basic operational access
    Role.STAFF: frozenset({
        P.VIEW_DASHBOARD,
        P.VIEW_SALES_STATS,
        P.VIEW_PRODUCTS,
        P.MANAGE_INVENTORY,  # stock counts only
        P.VIEW_CATEGORIES,
        P.VIEW_CUSTOMERS,
        P.CREATE_CUSTOMERS,
        P.VIEW_TRANSACTIONS,
        P.CREATE_SALES,
        P.VIEW_REPORTS,
        P.VIEW_SALES_REPORTS,
        P.VIEW_INVENTORY_REPORTS,
        P.VIEW_NOTIFICATIONS,
    }),
}

_ROLE_DISPLAY_NAMES = {
    Role.ADMIN: "Administrator",
    Role.MANAGER: "Manager",
    Role.STAFF: "Staff Member",
}

RoleLike = Union[Role, str, None]
PermissionLike = Union[Permission, str, None]


def _coerce_role(role: RoleLike) -> Optional[Role]:
    if role is None:
        return None
    try:
        return Role(role)
    except ValueError:
        return None


def _coerce_permission(permission: PermissionLike) -> Optional[Permission]:
    if permission is None:
        return None
    try:
        return Permission(permission)
    except ValueError:
        return None


def permissions_for(role: RoleLike) -> FrozenSet[Permission]:
    """All permissions granted to a role; empty for an unknown role."""
    resolved = _coerce_role(role)
    if resolved is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(resolved, frozenset())


def has_permission(role: RoleLike, permission: PermissionLike) -> bool:
    resolved = _coerce_permission(permission)
    if resolved is None:
        return False
    return resolved in permissions_for(role)


def has_any_permission(role: RoleLike, permissions: Iterable[PermissionLike]) -> bool:
    """True if at least one of the permissions is granted."""
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role: RoleLike, permissions: Iterable[PermissionLike]) -> bool:
    """True only if every one of the permissions is granted."""
    return all(has_permission(role, p) for p in permissions)


def role_display_name(role: RoleLike) -> str:
    resolved = _coerce_role(role)
    if resolved is None:
        return str(role) if role is not None else ""
    return _ROLE_DISPLAY_NAMES[resolved]
