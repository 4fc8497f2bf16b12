"""
tangabiz/features/entitlements/service.py

Entitlement decision service.

Handles:
- The allow/deny decision for (actor, organization, permission, feature,
  resource kind, delta), evaluated role -> plan/trial -> feature -> quota and
  stopping at the first denial
- Translation of a denial into the matching AppError for request handlers
- Plan/usage summary for the billing view
- Structured logs for every decision

A denial is a return value. Only faults raise (UsageUnavailableError,
UnknownProductError, NotFoundError).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from tangabiz.core.database import get_db_session
from tangabiz.core.errors import (
    NotFoundError,
    PlanFeatureDisabledError,
    QuotaExceededError,
    RolePermissionDeniedError,
    TrialExpiredError,
    ValidationError,
)
from tangabiz.features.organizations.service import get_membership, get_organization
from tangabiz.features.permissions.service import has_permission
from tangabiz.features.plans.catalog import FEATURE_NAMES, format_limit, would_exceed_limit
from tangabiz.features.plans.resolver import (
    PlanState,
    resolve_effective_plan,
    trial_days_remaining,
)
from tangabiz.features.usage.service import count_usage, get_usage_snapshot
from tangabiz.models.decision import DecisionReason, EntitlementDecision
from tangabiz.models.organization import AccessContext
from tangabiz.models.permission import Permission
from tangabiz.models.plan import Feature
from tangabiz.models.usage import ResourceKind


logger = logging.getLogger(__name__)

# Permissions whose action is itself a billable feature
PERMISSION_FEATURES: Dict[Permission, Feature] = {
    Permission.EXPORT_REPORTS: Feature.EXPORT_DATA,
    Permission.VIEW_FINANCIAL_REPORTS: Feature.ADVANCED_REPORTS,
    Permission.MANAGE_EMAIL_CAMPAIGNS: Feature.EMAIL_MARKETING,
}

# Reachable without an entitled plan so an expired tenant can still pay
UNGATED_PERMISSIONS = frozenset({
    Permission.VIEW_BUSINESS_SETTINGS,
    Permission.EDIT_BUSINESS_SETTINGS,
    Permission.MANAGE_BILLING,
})

UsageCounterFn = Callable[[str, ResourceKind], int]


def _normalize_now(now: Optional[Any]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if getattr(now, "tzinfo", None) is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _log_decision(context: AccessContext, decision: EntitlementDecision) -> None:
    extra = {
        "organization_id": context.organization.id,
        "user_id": context.user_id,
        "permission": decision.permission.value if decision.permission else None,
        "feature": decision.feature.value if decision.feature else None,
        "resource_kind": decision.resource_kind.value if decision.resource_kind else None,
        "reason": decision.reason.value,
        "current": decision.current,
        "limit": decision.limit,
        "plan_id": decision.plan_id.value if decision.plan_id else None,
        "plan_state": decision.plan_state,
    }
    if decision.allowed:
        logger.info("[entitlement] ALLOWED", extra=extra)
    else:
        logger.warning("[entitlement] DENIED", extra=extra)


def evaluate(
    context: AccessContext,
    permission: Optional[Permission] = None,
    *,
    feature: Optional[Feature] = None,
    resource_kind: Optional[ResourceKind] = None,
    delta: int = 1,
    now: Optional[Any] = None,
    usage_counter: Optional[UsageCounterFn] = None,
) -> EntitlementDecision:
    """
    Decide whether the actor in `context` may perform an action.

    Args:
        context: Actor, organization and membership (None = not a member)
        permission: Role permission the action requires
        feature: Plan feature the action requires (defaults from PERMISSION_FEATURES)
        resource_kind: Countable resource the action consumes
        delta: Units consumed (>= 1)
        now: Fixed timestamp for deterministic trial/period evaluation
        usage_counter: fn(organization_id, resource_kind) -> count; defaults
            to a live query

    Raises:
        ValidationError: delta < 1
        UsageUnavailableError: usage could not be counted
    """
    if delta < 1:
        raise ValidationError(f"delta must be >= 1, got {delta}")

    permission = Permission(permission) if permission is not None else None
    feature = Feature(feature) if feature is not None else PERMISSION_FEATURES.get(permission)
    resource_kind = ResourceKind(resource_kind) if resource_kind is not None else None
    normalized_now = _normalize_now(now)

    def _decide(reason: DecisionReason, **fields) -> EntitlementDecision:
        decision = EntitlementDecision(
            allowed=reason == DecisionReason.ALLOWED,
            reason=reason,
            permission=permission,
            feature=feature,
            resource_kind=resource_kind,
            **fields,
        )
        _log_decision(context, decision)
        return decision

    # 1. Role: static, no I/O. Non-members are denied even without a permission.
    if context.membership is None:
        return _decide(DecisionReason.ROLE_PERMISSION_DENIED)
    if permission is not None and not has_permission(context.role, permission):
        return _decide(DecisionReason.ROLE_PERMISSION_DENIED)

    if permission in UNGATED_PERMISSIONS and feature is None and resource_kind is None:
        return _decide(DecisionReason.ALLOWED)

    # 2. Plan / trial
    effective = resolve_effective_plan(context.organization, normalized_now)
    plan_fields = {"plan_id": effective.plan_id, "plan_state": effective.state.value}
    if not effective.entitled:
        return _decide(DecisionReason.TRIAL_EXPIRED, **plan_fields)

    # 3. Feature flag
    if feature is not None and not effective.limits.features.enabled(feature):
        return _decide(DecisionReason.PLAN_FEATURE_DISABLED, **plan_fields)

    # 4. Quota
    if resource_kind is not None:
        limit = effective.limits.limit_for(resource_kind)
        if usage_counter is not None:
            current = usage_counter(context.organization.id, resource_kind)
        else:
            current = count_usage(context.organization.id, resource_kind, now=normalized_now)
        if would_exceed_limit(current, delta, limit):
            return _decide(DecisionReason.QUOTA_EXCEEDED, current=current, limit=limit, **plan_fields)
        return _decide(DecisionReason.ALLOWED, current=current, limit=limit, **plan_fields)

    return _decide(DecisionReason.ALLOWED, **plan_fields)


def load_access_context(user_id: str, organization_id: str, *, session: Optional[Session] = None) -> AccessContext:
    """
    Build the explicit context for a check.

    Raises:
        NotFoundError: organization does not exist
    """
    if session is None:
        with get_db_session() as own_session:
            return load_access_context(user_id, organization_id, session=own_session)

    organization = get_organization(organization_id, session=session)
    if organization is None:
        raise NotFoundError(f"Organization {organization_id} not found")
    membership = get_membership(organization_id, user_id, session=session)
    return AccessContext(user_id=user_id, organization=organization, membership=membership)


def check_entitlement(
    user_id: str,
    organization_id: str,
    permission: Optional[Permission] = None,
    *,
    feature: Optional[Feature] = None,
    resource_kind: Optional[ResourceKind] = None,
    delta: int = 1,
    now: Optional[Any] = None,
) -> EntitlementDecision:
    """
    Advisory check: read-only, safe to call from read paths (e.g. to decide
    whether to offer an "Add product" action).

    Writes that consume quota must go through reservation.reserve instead.
    """
    context = load_access_context(user_id, organization_id)
    return evaluate(
        context,
        permission,
        feature=feature,
        resource_kind=resource_kind,
        delta=delta,
        now=now,
    )


def raise_for_decision(decision: EntitlementDecision) -> EntitlementDecision:
    """Raise the AppError matching a denial; return the decision when allowed."""
    if decision.allowed:
        return decision

    details: Dict[str, Any] = {
        "permission": decision.permission.value if decision.permission else None,
    }
    if decision.reason == DecisionReason.ROLE_PERMISSION_DENIED:
        raise RolePermissionDeniedError(
            f"Your role does not allow '{details['permission']}'",
            details=details,
        )
    if decision.reason == DecisionReason.TRIAL_EXPIRED:
        raise TrialExpiredError(
            "Your trial has ended. Choose a plan to keep using this feature.",
            details=details,
        )
    if decision.reason == DecisionReason.PLAN_FEATURE_DISABLED:
        feature_name = FEATURE_NAMES.get(decision.feature, decision.feature.value if decision.feature else "This feature")
        details["feature"] = decision.feature.value if decision.feature else None
        plan_name = decision.plan_id.value if decision.plan_id else "current"
        raise PlanFeatureDisabledError(
            f"{feature_name} is not available on the {plan_name} plan. Please upgrade your plan.",
            details=details,
        )
    if decision.reason == DecisionReason.QUOTA_EXCEEDED:
        kind = decision.resource_kind.value.replace("_", " ") if decision.resource_kind else "resources"
        details["resource_kind"] = decision.resource_kind.value if decision.resource_kind else None
        raise QuotaExceededError(
            f"You've reached the maximum of {format_limit(decision.limit)} {kind} on your plan",
            current=decision.current,
            limit=decision.limit,
            details=details,
        )
    raise ValueError(f"Unhandled decision reason: {decision.reason}")


def get_limits_and_usage(organization_id: str, now: Optional[Any] = None) -> Dict[str, Any]:
    """
    Plan state, limits and live usage for an organization.

    Useful for the billing page to show usage vs limits.

    Raises:
        NotFoundError: organization does not exist
        UsageUnavailableError: usage could not be counted
    """
    normalized_now = _normalize_now(now)
    organization = get_organization(organization_id)
    if organization is None:
        raise NotFoundError(f"Organization {organization_id} not found")

    effective = resolve_effective_plan(organization, normalized_now)
    usage = get_usage_snapshot(organization_id, now=normalized_now)
    in_trial = effective.state == PlanState.TRIAL

    return {
        "organization_id": organization_id,
        "plan_state": effective.state.value,
        "plan_id": effective.plan_id.value if effective.plan_id else None,
        "plan_started_at": organization.plan_started_at,
        "subscription_status": organization.subscription_status,
        "trial_ends_at": effective.trial_ends_at,
        "trial_days_remaining": trial_days_remaining(organization.plan_started_at, normalized_now) if in_trial else 0,
        "limits": effective.limits.model_dump(mode="json") if effective.limits else None,
        "usage": usage.model_dump(mode="json"),
    }
