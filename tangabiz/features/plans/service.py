"""
tangabiz/features/plans/service.py

Plan lifecycle writes: trial start, paid plan assignment, cancellation.

Only these functions mutate organizations.plan / plan_started_at /
subscription_status. Limits themselves are never stored per organization;
they are always read from the catalog.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from tangabiz.core.database import get_db_session, organizations
from tangabiz.core.errors import ConflictError, NotFoundError
from tangabiz.features.organizations.service import get_organization
from tangabiz.features.plans.catalog import get_plan
from tangabiz.models.organization import Organization
from tangabiz.models.plan import PlanId


logger = logging.getLogger(__name__)


def _update_organization(organization_id: str, **values) -> Organization:
    try:
        with get_db_session() as session:
            result = session.execute(
                update(organizations)
                .where(organizations.c.id == organization_id)
                .values(**values)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Organization {organization_id} not found")
    except IntegrityError as exc:
        # uq_organizations_subscription: one organization per subscription
        raise ConflictError("Subscription is already linked to another organization") from exc
    return get_organization(organization_id)


def start_trial(organization_id: str, now: Optional[datetime] = None) -> Organization:
    """(Re)open the trial window at now and clear any paid plan."""
    now = now or datetime.now(timezone.utc)
    organization = _update_organization(
        organization_id,
        plan=None,
        plan_started_at=now,
        subscription_status=None,
        subscription_id=None,
    )
    logger.info("[plans] trial started", extra={"organization_id": organization_id})
    return organization


def assign_plan(
    organization_id: str,
    plan_id: Union[PlanId, str],
    *,
    subscription_status: Optional[str] = "active",
    subscription_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Organization:
    """
    Put an organization on a paid plan.

    Raises:
        NotFoundError: unknown plan or organization
        ConflictError: subscription_id already backs another organization
    """
    plan = get_plan(plan_id)
    if plan is None:
        raise NotFoundError(f"Plan {plan_id} not found")

    now = now or datetime.now(timezone.utc)
    organization = _update_organization(
        organization_id,
        plan=plan.id.value,
        plan_started_at=now,
        subscription_status=subscription_status,
        subscription_id=subscription_id,
    )
    logger.info(
        "[plans] plan assigned",
        extra={"organization_id": organization_id, "plan_id": plan.id.value, "status": subscription_status},
    )
    return organization


def cancel_plan(organization_id: str, *, subscription_status: str = "canceled") -> Organization:
    """
    Drop the paid plan.

    plan_started_at is kept, so an organization whose trial already elapsed
    resolves to expired right away.
    """
    organization = _update_organization(
        organization_id,
        plan=None,
        subscription_status=subscription_status,
        subscription_id=None,
    )
    logger.info(
        "[plans] plan canceled",
        extra={"organization_id": organization_id, "status": subscription_status},
    )
    return organization


def organization_for_subscription(subscription_id: str) -> Optional[str]:
    """Id of the organization a provider subscription is linked to, if any."""
    with get_db_session() as session:
        return session.execute(
            select(organizations.c.id).where(organizations.c.subscription_id == subscription_id)
        ).scalar_one_or_none()
