"""
Billing service orchestrator.

Coordinates:
- Provider selection (Polar when configured)
- Subscription verification -> plan assignment
- Cancellation

All Polar-specific code is in polar_provider.py. Plan resolution from a
product id lives in features/plans/resolver.py.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from tangabiz.core.config import settings
from tangabiz.core.errors import BillingDisabledError, ConflictError, NotFoundError
from tangabiz.core.logging import log_event
from tangabiz.features.billing.polar_provider import PolarProvider
from tangabiz.features.billing.provider import BillingProvider, BillingProviderError
from tangabiz.features.entitlements.service import check_entitlement, raise_for_decision
from tangabiz.features.plans.resolver import resolve_plan_from_product
from tangabiz.features.plans.service import assign_plan, cancel_plan, organization_for_subscription
from tangabiz.models.permission import Permission


logger = logging.getLogger(__name__)


def billing_enabled() -> bool:
    """Check if billing is enabled (Polar configured)."""
    return bool(settings.POLAR_ACCESS_TOKEN)


def get_billing_provider() -> Optional[BillingProvider]:
    """Get billing provider if billing is enabled."""
    if not billing_enabled():
        return None
    try:
        return PolarProvider()
    except BillingProviderError:
        return None


def verify_subscription(
    user_id: str,
    organization_id: str,
    customer_email: str,
    provider: Optional[BillingProvider] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Look up the customer's subscription and put the organization on its plan.

    Args:
        user_id: Actor (needs manage_billing)
        organization_id: Organization to update
        customer_email: Verified email of the authenticated actor; never taken
            from request input
        provider: Billing provider override (tests)
        now: Plan start timestamp

    Raises:
        RolePermissionDeniedError: actor lacks manage_billing
        BillingDisabledError: no provider configured
        NotFoundError: no active subscription for the email
        ConflictError: the subscription already backs another organization
        UnknownProductError: subscription product has no plan mapping
    """
    raise_for_decision(check_entitlement(user_id, organization_id, Permission.MANAGE_BILLING, now=now))

    provider = provider or get_billing_provider()
    if provider is None:
        raise BillingDisabledError("Billing is not configured")

    try:
        subscription = provider.find_active_subscription(customer_email)
    except BillingProviderError as e:
        logger.error(
            "[billing] provider lookup failed",
            extra={"organization_id": organization_id, "user_id": user_id, "error_code": "billing_provider_error"},
        )
        raise BillingDisabledError(f"Billing provider unavailable: {e}") from e

    if subscription is None:
        raise NotFoundError("No active subscription found for this user")

    linked_to = organization_for_subscription(subscription.subscription_id)
    if linked_to is not None and linked_to != organization_id:
        logger.warning(
            "[billing] subscription already linked",
            extra={"organization_id": organization_id, "user_id": user_id, "error_code": "conflict"},
        )
        raise ConflictError("This subscription already backs another organization")

    plan_id = resolve_plan_from_product(subscription.product_id)
    organization = assign_plan(
        organization_id,
        plan_id,
        subscription_status=subscription.status,
        subscription_id=subscription.subscription_id,
        now=now,
    )

    logger.info(
        "[billing] subscription verified",
        extra={"organization_id": organization_id, "user_id": user_id, "plan_id": plan_id.value},
    )
    return {
        "success": True,
        "plan": plan_id.value,
        "is_yearly": subscription.is_yearly,
        "plan_started_at": organization.plan_started_at,
        "subscription": {
            "id": subscription.subscription_id,
            "status": subscription.status,
            "current_period_end": subscription.current_period_end,
            "product_name": subscription.product_name,
        },
    }


def cancel_subscription(user_id: str, organization_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Drop the organization's paid plan.

    Raises:
        RolePermissionDeniedError: actor lacks manage_billing
    """
    raise_for_decision(check_entitlement(user_id, organization_id, Permission.MANAGE_BILLING, now=now))
    organization = cancel_plan(organization_id)
    log_event(
        "info",
        "[billing] subscription canceled",
        user_id=user_id,
        organization_id=organization_id,
        event_type="billing.subscription_canceled",
    )
    return {
        "success": True,
        "plan": None,
        "subscription_status": organization.subscription_status,
    }
