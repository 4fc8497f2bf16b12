"""
Billing API routes.

- GET  /api/organizations/{id}/billing/plans: Plan catalog with prices and limits
- GET  /api/organizations/{id}/billing/usage: Plan state, limits and live usage
- POST /api/organizations/{id}/billing/verify-subscription: Sync plan from Polar
- POST /api/organizations/{id}/billing/cancel: Drop the paid plan
"""
from fastapi import APIRouter, Depends

from tangabiz.core.auth import CurrentUser, get_current_user, get_current_user_id
from tangabiz.core.errors import ValidationError
from tangabiz.features.billing.service import billing_enabled, cancel_subscription, verify_subscription
from tangabiz.features.entitlements.service import (
    check_entitlement,
    get_limits_and_usage,
    raise_for_decision,
)
from tangabiz.features.plans.catalog import FEATURE_NAMES, all_plans
from tangabiz.models.permission import Permission


router = APIRouter(prefix="/api/organizations", tags=["billing"])


@router.get("/{organization_id}/billing/plans")
def get_plans(organization_id: str, user_id: str = Depends(get_current_user_id)):
    raise_for_decision(check_entitlement(user_id, organization_id, Permission.VIEW_BUSINESS_SETTINGS))
    return {
        "billing_enabled": billing_enabled(),
        "plans": [plan.model_dump(mode="json") for plan in all_plans()],
        "feature_names": {feature.value: name for feature, name in FEATURE_NAMES.items()},
    }


@router.get("/{organization_id}/billing/usage")
def get_usage(organization_id: str, user_id: str = Depends(get_current_user_id)):
    """Usage vs limits. Stays reachable after the trial so the tenant can pay."""
    raise_for_decision(check_entitlement(user_id, organization_id, Permission.VIEW_BUSINESS_SETTINGS))
    return get_limits_and_usage(organization_id)


@router.post("/{organization_id}/billing/verify-subscription")
def post_verify_subscription(organization_id: str, user: CurrentUser = Depends(get_current_user)):
    """Match on the caller's verified email; a body cannot name another customer."""
    if not user.email:
        raise ValidationError("Signed-in identity has no email to match a subscription against")
    return verify_subscription(user.user_id, organization_id, user.email)


@router.post("/{organization_id}/billing/cancel")
def post_cancel(organization_id: str, user_id: str = Depends(get_current_user_id)):
    return cancel_subscription(user_id, organization_id)
