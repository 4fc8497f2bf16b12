"""
tangabiz/features/plans/resolver.py

Plan resolution.

Handles:
- Billing product id -> PlanId (static, configuration-provided mapping)
- Trial window arithmetic (half-open: [plan_started_at, plan_started_at + N days))
- Effective plan for an organization at a given instant
"""

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict

from tangabiz.core.config import Settings, settings as default_settings
from tangabiz.core.errors import UnknownProductError
from tangabiz.features.plans.catalog import limits_for
from tangabiz.models.organization import Organization
from tangabiz.models.plan import PlanId, PlanLimits


# Billing subscription statuses that keep a paid plan in force
ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})

_SECONDS_PER_DAY = 24 * 60 * 60


class PlanState(str, Enum):
    PAID = "paid"
    TRIAL = "trial"
    EXPIRED = "expired"  # trial elapsed, nothing purchased
    NONE = "none"  # no plan and no trial start on record


class EffectivePlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: PlanState
    plan_id: Optional[PlanId] = None
    limits: Optional[PlanLimits] = None
    trial_ends_at: Optional[datetime] = None

    @property
    def entitled(self) -> bool:
        return self.state in (PlanState.PAID, PlanState.TRIAL)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to aware UTC; naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _normalize_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return as_utc(now)


def _trial_days(trial_days: Optional[int]) -> int:
    return default_settings.TRIAL_DURATION_DAYS if trial_days is None else trial_days


def build_product_plan_map(settings_obj: Optional[Settings] = None) -> Dict[str, PlanId]:
    """Map configured billing product ids (monthly and yearly) to plans.

    Blank ids are skipped so an unset variable never maps "" to a plan.
    """
    cfg = settings_obj or default_settings
    pairs = (
        (cfg.POLAR_STARTER_PRODUCT_ID, PlanId.STARTER),
        (cfg.POLAR_GROWTH_PRODUCT_ID, PlanId.GROWTH),
        (cfg.POLAR_ENTERPRISE_PRODUCT_ID, PlanId.ENTERPRISE),
        (cfg.POLAR_STARTER_YEARLY_PRODUCT_ID, PlanId.STARTER),
        (cfg.POLAR_GROWTH_YEARLY_PRODUCT_ID, PlanId.GROWTH),
        (cfg.POLAR_ENTERPRISE_YEARLY_PRODUCT_ID, PlanId.ENTERPRISE),
    )
    return {product_id.strip(): plan_id for product_id, plan_id in pairs if product_id and product_id.strip()}


def resolve_plan_from_product(product_id: Optional[str], product_map: Optional[Dict[str, PlanId]] = None) -> PlanId:
    """
    Resolve a billing product id to a plan.

    Raises:
        UnknownProductError: the id is blank or not configured
    """
    mapping = product_map if product_map is not None else build_product_plan_map()
    key = (product_id or "").strip()
    plan_id = mapping.get(key) if key else None
    if plan_id is None:
        raise UnknownProductError(f"Unknown subscription product: {product_id!r}", product_id=product_id)
    return plan_id


def trial_end_date(plan_started_at: Optional[datetime], trial_days: Optional[int] = None) -> Optional[datetime]:
    started = as_utc(plan_started_at)
    if started is None:
        return None
    return started + timedelta(days=_trial_days(trial_days))


def is_trial_active(plan_started_at: Optional[datetime], now: Optional[datetime] = None, trial_days: Optional[int] = None) -> bool:
    """True iff now < plan_started_at + TRIAL_DURATION_DAYS."""
    trial_end = trial_end_date(plan_started_at, trial_days)
    if trial_end is None:
        return False
    return _normalize_now(now) < trial_end


def trial_days_remaining(plan_started_at: Optional[datetime], now: Optional[datetime] = None, trial_days: Optional[int] = None) -> int:
    """Whole days left in the trial, rounded up; never negative."""
    trial_end = trial_end_date(plan_started_at, trial_days)
    if trial_end is None:
        return 0
    remaining = (trial_end - _normalize_now(now)).total_seconds()
    return max(0, math.ceil(remaining / _SECONDS_PER_DAY))


def has_paid_plan(organization: Organization) -> bool:
    if organization.plan is None:
        return False
    status = organization.subscription_status
    return status is None or status.lower() in ACTIVE_SUBSCRIPTION_STATUSES


def resolve_effective_plan(
    organization: Organization,
    now: Optional[datetime] = None,
    settings_obj: Optional[Settings] = None,
) -> EffectivePlan:
    """
    Decide which limits govern an organization right now.

    Paid plan -> its limits. No paid plan but trial open -> TRIAL_PLAN limits.
    Otherwise EXPIRED (trial elapsed, or a subscription lapsed) or NONE (never
    started); neither grants anything gated.
    """
    cfg = settings_obj or default_settings
    normalized_now = _normalize_now(now)

    if has_paid_plan(organization):
        return EffectivePlan(
            state=PlanState.PAID,
            plan_id=organization.plan,
            limits=limits_for(organization.plan),
        )

    if organization.plan_started_at is None:
        return EffectivePlan(state=PlanState.NONE)

    trial_end = trial_end_date(organization.plan_started_at, cfg.TRIAL_DURATION_DAYS)
    # A lapsed or canceled subscription does not reopen the trial window
    lapsed = organization.subscription_status is not None
    if normalized_now < trial_end and not lapsed:
        trial_plan = PlanId(cfg.TRIAL_PLAN)
        return EffectivePlan(
            state=PlanState.TRIAL,
            plan_id=trial_plan,
            limits=limits_for(trial_plan),
            trial_ends_at=trial_end,
        )

    return EffectivePlan(state=PlanState.EXPIRED, trial_ends_at=trial_end)
