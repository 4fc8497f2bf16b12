"""
tangabiz/features/usage/service.py

Usage counting for quota checks.

Handles:
- Live counts of products, customers, team members and sales this period
- Snapshot of all four for the billing/usage view
- Fault propagation: a store failure is UsageUnavailableError, never zero

Counts are read on demand; nothing is cached between calls.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tangabiz.core.database import get_db_session, products, customers, members, sales
from tangabiz.core.errors import UsageUnavailableError
from tangabiz.models.usage import ResourceKind, UsageSnapshot


logger = logging.getLogger(__name__)


def _normalize_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def billing_period_start(now: Optional[datetime] = None) -> datetime:
    """First instant of the calendar month (UTC) containing now."""
    normalized = _normalize_now(now)
    return normalized.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


@contextmanager
def _session_scope(session: Optional[Session]):
    if session is not None:
        yield session
        return
    with get_db_session() as own_session:
        yield own_session


def _count_query(organization_id: str, resource_kind: ResourceKind, period_start: datetime):
    if resource_kind == ResourceKind.PRODUCTS:
        return (
            select(func.count())
            .select_from(products)
            .where(products.c.organization_id == organization_id)
            .where(products.c.is_active == True)  # noqa: E712
        )
    if resource_kind == ResourceKind.CUSTOMERS:
        return (
            select(func.count())
            .select_from(customers)
            .where(customers.c.organization_id == organization_id)
        )
    if resource_kind == ResourceKind.TEAM_MEMBERS:
        return (
            select(func.count())
            .select_from(members)
            .where(members.c.organization_id == organization_id)
        )
    if resource_kind == ResourceKind.SALES:
        return (
            select(func.count())
            .select_from(sales)
            .where(sales.c.organization_id == organization_id)
            .where(sales.c.created_at >= period_start)
        )
    raise ValueError(f"Unsupported resource kind: {resource_kind}")


def count_usage(
    organization_id: str,
    resource_kind: ResourceKind,
    *,
    now: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> int:
    """
    Count live usage of one resource kind.

    Args:
        organization_id: Organization to count for
        resource_kind: Which resource
        now: Fixed timestamp (sales are counted from the start of its month)
        session: Run inside an existing transaction (quota reservation)

    Raises:
        UsageUnavailableError: the store could not be queried
    """
    kind = ResourceKind(resource_kind)
    query = _count_query(organization_id, kind, billing_period_start(now))
    try:
        with _session_scope(session) as active:
            return int(active.execute(query).scalar_one())
    except SQLAlchemyError as exc:
        logger.error(
            "[usage] UNAVAILABLE",
            extra={"organization_id": organization_id, "resource_kind": kind.value, "error_code": "usage_unavailable"},
        )
        raise UsageUnavailableError(f"Usage for {kind.value} is unavailable") from exc


def get_usage_snapshot(
    organization_id: str,
    *,
    now: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> UsageSnapshot:
    """Counts of all four countable resources, read in one transaction."""
    normalized_now = _normalize_now(now)
    period_start = billing_period_start(normalized_now)
    try:
        with _session_scope(session) as active:
            counts = {
                kind: int(active.execute(_count_query(organization_id, kind, period_start)).scalar_one())
                for kind in ResourceKind
            }
    except SQLAlchemyError as exc:
        logger.error(
            "[usage] UNAVAILABLE",
            extra={"organization_id": organization_id, "error_code": "usage_unavailable"},
        )
        raise UsageUnavailableError("Usage snapshot is unavailable") from exc

    return UsageSnapshot(
        organization_id=organization_id,
        products=counts[ResourceKind.PRODUCTS],
        customers=counts[ResourceKind.CUSTOMERS],
        team_members=counts[ResourceKind.TEAM_MEMBERS],
        sales=counts[ResourceKind.SALES],
        period_start=period_start,
        computed_at=normalized_now,
    )
