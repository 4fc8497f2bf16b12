"""
tangabiz/features/entitlements/reservation.py

Atomic check-and-consume for quota-bearing writes.

The check and the insert it guards run in one transaction that first takes
the organization's lock row, so two concurrent creators cannot both observe
"one slot left". Role denials are settled by a read before the lock, so
non-members never queue behind the organization's writers.

Usage:
    with reserve(user_id, org_id, Permission.CREATE_PRODUCTS, ResourceKind.PRODUCTS) as reservation:
        reservation.session.execute(insert(products).values(...))
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Iterator, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tangabiz.core.database import get_read_session, get_session_factory, organizations
from tangabiz.core.errors import NotFoundError, UsageUnavailableError
from tangabiz.features.entitlements.service import evaluate, load_access_context, raise_for_decision
from tangabiz.features.permissions.service import has_permission
from tangabiz.features.usage.service import count_usage
from tangabiz.models.decision import EntitlementDecision
from tangabiz.models.permission import Permission
from tangabiz.models.usage import ResourceKind


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    organization_id: str
    user_id: str
    resource_kind: ResourceKind
    delta: int
    current: Optional[int]
    limit: Optional[int]
    decision: EntitlementDecision
    session: Session


def _lock_organization(session: Session, organization_id: str) -> None:
    # Row lock on PostgreSQL; with BEGIN IMMEDIATE the database write lock on SQLite
    result = session.execute(
        update(organizations)
        .where(organizations.c.id == organization_id)
        .values(quota_version=organizations.c.quota_version + 1)
    )
    if result.rowcount == 0:
        raise NotFoundError(f"Organization {organization_id} not found")


def _precheck_role(
    user_id: str,
    organization_id: str,
    permission: Permission,
    kind: ResourceKind,
    delta: int,
    now: datetime,
) -> None:
    """Reject non-members and role denials before queueing for the lock."""
    try:
        with get_read_session() as session:
            context = load_access_context(user_id, organization_id, session=session)
    except SQLAlchemyError as exc:
        raise UsageUnavailableError("Could not load organization; try again") from exc

    if context.membership is None or not has_permission(context.role, permission):
        # Role denials return before any usage is counted
        raise_for_decision(evaluate(context, permission, resource_kind=kind, delta=delta, now=now))


@contextmanager
def reserve(
    user_id: str,
    organization_id: str,
    permission: Permission,
    resource_kind: ResourceKind,
    delta: int = 1,
    now: Optional[datetime] = None,
) -> Iterator[Reservation]:
    """
    Check an entitlement and hold the organization's quota lock while the
    caller writes.

    Commits when the block exits cleanly; any exception rolls back both the
    lock bump and the caller's writes.

    Raises:
        RolePermissionDeniedError / TrialExpiredError /
        PlanFeatureDisabledError / QuotaExceededError: the check denied
        NotFoundError: organization does not exist
        UsageUnavailableError: lock timeout or store failure
    """
    kind = ResourceKind(resource_kind)
    normalized_now = now or datetime.now(timezone.utc)

    _precheck_role(user_id, organization_id, permission, kind, delta, normalized_now)

    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        try:
            _lock_organization(session, organization_id)
            context = load_access_context(user_id, organization_id, session=session)
        except SQLAlchemyError as exc:
            logger.error(
                "[reservation] LOCK FAILED",
                extra={"organization_id": organization_id, "user_id": user_id, "error_code": "usage_unavailable"},
            )
            raise UsageUnavailableError("Could not lock organization usage; try again") from exc

        decision = evaluate(
            context,
            permission,
            resource_kind=kind,
            delta=delta,
            now=normalized_now,
            usage_counter=lambda org_id, rk: count_usage(org_id, rk, now=normalized_now, session=session),
        )
        raise_for_decision(decision)

        yield Reservation(
            organization_id=organization_id,
            user_id=user_id,
            resource_kind=kind,
            delta=delta,
            current=decision.current,
            limit=decision.limit,
            decision=decision,
            session=session,
        )
        try:
            session.commit()
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error(
                "[reservation] COMMIT FAILED",
                extra={"organization_id": organization_id, "user_id": user_id, "error_code": "usage_unavailable"},
            )
            raise UsageUnavailableError("Could not record usage; try again") from exc
        logger.info(
            "[reservation] COMMITTED",
            extra={
                "organization_id": organization_id,
                "user_id": user_id,
                "resource_kind": kind.value,
                "delta": delta,
                "current": decision.current,
                "limit": decision.limit,
            },
        )
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
