"""
tangabiz/features/plans/catalog.py

Plan catalog: ceilings, feature flags and price metadata per plan.

Entries are data. Adding or adjusting a plan means editing PLANS; nothing
else in the decision path branches on a plan id.
"""

from typing import Dict, List, Optional, Union

from tangabiz.core.errors import NotFoundError
from tangabiz.models.plan import Feature, Plan, PlanFeatures, PlanId, PlanLimits, UNLIMITED


PLANS: Dict[PlanId, Plan] = {
    PlanId.STARTER: Plan(
        id=PlanId.STARTER,
        name="Starter",
        description="Perfect for small shops just getting started",
        price=19.99,
        yearly_price=203.90,  # 15% off
        limits=PlanLimits(
            max_products=50,
            max_customers=100,
            max_team_members=2,
            max_monthly_sales=500,
            max_locations=1,
            features=PlanFeatures(
                analytics=True,
                export_data=True,
            ),
        ),
    ),
    PlanId.GROWTH: Plan(
        id=PlanId.GROWTH,
        name="Growth",
        description="For growing businesses that need more power",
        price=49.99,
        yearly_price=509.90,
        popular=True,
        limits=PlanLimits(
            max_products=500,
            max_customers=1000,
            max_team_members=10,
            max_monthly_sales=5000,
            max_locations=3,
            features=PlanFeatures(
                analytics=True,
                advanced_reports=True,
                email_alerts=True,
                custom_branding=True,
                multi_location=True,
                bulk_import=True,
                export_data=True,
                customer_loyalty=True,
                inventory_alerts=True,
                email_marketing=True,
            ),
        ),
    ),
    PlanId.ENTERPRISE: Plan(
        id=PlanId.ENTERPRISE,
        name="Enterprise",
        description="For large businesses with advanced needs",
        price=89.99,
        yearly_price=917.90,
        limits=PlanLimits(
            max_products=UNLIMITED,
            max_customers=UNLIMITED,
            max_team_members=UNLIMITED,
            max_monthly_sales=UNLIMITED,
            max_locations=UNLIMITED,
            features=PlanFeatures(**{feature.value: True for feature in Feature}),
        ),
    ),
}

FEATURE_NAMES: Dict[Feature, str] = {
    Feature.ANALYTICS: "Basic Analytics",
    Feature.ADVANCED_REPORTS: "Advanced Reports",
    Feature.EMAIL_ALERTS: "Email Alerts",
    Feature.API_ACCESS: "API Access",
    Feature.CUSTOM_BRANDING: "Custom Branding",
    Feature.PRIORITY_SUPPORT: "Priority Support",
    Feature.MULTI_LOCATION: "Multi-Location Support",
    Feature.BULK_IMPORT: "Bulk Import",
    Feature.EXPORT_DATA: "Data Export",
    Feature.CUSTOMER_LOYALTY: "Customer Loyalty Program",
    Feature.INVENTORY_ALERTS: "Inventory Alerts",
    Feature.SALES_FORECASTING: "Sales Forecasting",
    Feature.EMAIL_MARKETING: "Email Marketing",
}


def get_plan(plan_id: Union[PlanId, str, None]) -> Optional[Plan]:
    """Get plan by id; None for a missing or unknown id."""
    if not plan_id:
        return None
    try:
        return PLANS.get(PlanId(plan_id))
    except ValueError:
        return None


def all_plans() -> List[Plan]:
    return list(PLANS.values())


def limits_for(plan_id: Union[PlanId, str]) -> PlanLimits:
    """
    Limits for a plan.

    Raises:
        NotFoundError: plan_id is not in the catalog
    """
    plan = get_plan(plan_id)
    if plan is None:
        raise NotFoundError(f"Plan {plan_id} not found")
    return plan.limits


def is_limit_exceeded(current: int, max_value: int) -> bool:
    """True when current usage is at or past the ceiling (-1 means unlimited)."""
    if max_value == UNLIMITED:
        return False
    return current >= max_value


def would_exceed_limit(current: int, requested: int, max_value: int) -> bool:
    """True when adding `requested` units to `current` would pass the ceiling.

    For requested == 1 this is exactly is_limit_exceeded(current, max_value).
    """
    if max_value == UNLIMITED:
        return False
    return current + requested > max_value


def format_limit(max_value: int) -> str:
    if max_value == UNLIMITED:
        return "Unlimited"
    return f"{max_value:,}"
