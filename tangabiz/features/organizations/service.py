"""
tangabiz/features/organizations/service.py

Organization and membership lifecycle.

Handles:
- Organization creation (creator becomes the ADMIN owner, trial starts)
- Membership lookup
- Adding members through quota reservation, role changes, removal
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import select, insert, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tangabiz.core.database import get_db_session, organizations, members
from tangabiz.core.errors import ConflictError, NotFoundError, PermissionError, ValidationError
from tangabiz.core.logging import log_event
from tangabiz.models.organization import Membership, Organization
from tangabiz.models.permission import Permission, Role
from tangabiz.models.plan import PlanId
from tangabiz.models.usage import ResourceKind


logger = logging.getLogger(__name__)


def _parse_plan(value: Optional[str], organization_id: str) -> Optional[PlanId]:
    if not value:
        return None
    try:
        return PlanId(value)
    except ValueError:
        # Unrecognised plans grant nothing
        logger.warning("[organizations] unknown stored plan", extra={"organization_id": organization_id, "plan_id": value})
        return None


def _parse_role(value: Optional[str]) -> Optional[Role]:
    try:
        return Role(value)
    except ValueError:
        return None


def _row_to_organization(row) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        plan=_parse_plan(row.plan, row.id),
        plan_started_at=row.plan_started_at,
        subscription_status=row.subscription_status,
        subscription_id=row.subscription_id,
        created_at=row.created_at,
    )


def _row_to_membership(row) -> Membership:
    return Membership(
        organization_id=row.organization_id,
        user_id=row.user_id,
        role=_parse_role(row.role),
        is_owner=bool(row.is_owner),
        created_at=row.created_at,
    )


def _fetch_organization(session: Session, organization_id: str) -> Optional[Organization]:
    row = session.execute(
        select(organizations).where(organizations.c.id == organization_id)
    ).first()
    return _row_to_organization(row) if row else None


def _fetch_membership(session: Session, organization_id: str, user_id: str) -> Optional[Membership]:
    row = session.execute(
        select(members)
        .where(members.c.organization_id == organization_id)
        .where(members.c.user_id == user_id)
    ).first()
    return _row_to_membership(row) if row else None


def get_organization(organization_id: str, *, session: Optional[Session] = None) -> Optional[Organization]:
    if session is not None:
        return _fetch_organization(session, organization_id)
    with get_db_session() as own_session:
        return _fetch_organization(own_session, organization_id)


def get_membership(organization_id: str, user_id: str, *, session: Optional[Session] = None) -> Optional[Membership]:
    if session is not None:
        return _fetch_membership(session, organization_id, user_id)
    with get_db_session() as own_session:
        return _fetch_membership(own_session, organization_id, user_id)


def list_members(organization_id: str) -> List[Membership]:
    with get_db_session() as session:
        rows = session.execute(
            select(members)
            .where(members.c.organization_id == organization_id)
            .order_by(members.c.created_at, members.c.id)
        ).all()
        return [_row_to_membership(row) for row in rows]


def create_organization(
    name: str,
    owner_user_id: str,
    *,
    now: Optional[datetime] = None,
    organization_id: Optional[str] = None,
) -> Organization:
    """
    Create an organization and its owner membership.

    The trial window starts now; no paid plan is set.

    Raises:
        ValidationError: blank name or owner
    """
    if not name or not name.strip():
        raise ValidationError("Organization name is required")
    if not owner_user_id:
        raise ValidationError("Owner user id is required")

    now = now or datetime.now(timezone.utc)
    org_id = organization_id or str(uuid4())

    with get_db_session() as session:
        session.execute(
            insert(organizations).values(
                id=org_id,
                name=name.strip(),
                plan=None,
                plan_started_at=now,
                subscription_status=None,
                quota_version=0,
                created_at=now,
            )
        )
        session.execute(
            insert(members).values(
                organization_id=org_id,
                user_id=owner_user_id,
                role=Role.ADMIN.value,
                is_owner=True,
                created_at=now,
            )
        )

    log_event(
        "info",
        "[organizations] created",
        user_id=owner_user_id,
        organization_id=org_id,
        event_type="organization.created",
        extra={"organization_name": name.strip()},
    )
    return Organization(id=org_id, name=name.strip(), plan_started_at=now, created_at=now)


def _require(actor_user_id: str, organization_id: str, permission: Permission, now: Optional[datetime] = None) -> None:
    from tangabiz.features.entitlements.service import check_entitlement, raise_for_decision

    raise_for_decision(check_entitlement(actor_user_id, organization_id, permission, now=now))


def add_member(
    actor_user_id: str,
    organization_id: str,
    user_id: str,
    role: Role = Role.STAFF,
    *,
    now: Optional[datetime] = None,
) -> Membership:
    """
    Add a user to an organization (invitation accepted).

    Counts against max_team_members; goes through quota reservation. Any role
    above STAFF additionally needs change_roles.

    Raises:
        ConflictError: the user is already a member
        RolePermissionDeniedError / TrialExpiredError / QuotaExceededError
    """
    from tangabiz.features.entitlements.reservation import reserve

    role = Role(role)
    now = now or datetime.now(timezone.utc)

    if role != Role.STAFF:
        # Inviting above STAFF assigns a role
        _require(actor_user_id, organization_id, Permission.CHANGE_ROLES, now)

    if get_membership(organization_id, user_id) is not None:
        raise ConflictError(f"User {user_id} is already a member")

    try:
        with reserve(actor_user_id, organization_id, Permission.INVITE_MEMBERS, ResourceKind.TEAM_MEMBERS, now=now) as reservation:
            reservation.session.execute(
                insert(members).values(
                    organization_id=organization_id,
                    user_id=user_id,
                    role=role.value,
                    is_owner=False,
                    created_at=now,
                )
            )
    except IntegrityError as exc:
        raise ConflictError(f"User {user_id} is already a member") from exc

    return Membership(organization_id=organization_id, user_id=user_id, role=role, is_owner=False, created_at=now)


def change_role(
    actor_user_id: str,
    organization_id: str,
    user_id: str,
    role: Role,
    *,
    now: Optional[datetime] = None,
) -> Membership:
    """
    Change a member's role.

    Raises:
        RolePermissionDeniedError: actor lacks change_roles
        NotFoundError: no such member
        PermissionError: target is the owner
    """
    role = Role(role)
    _require(actor_user_id, organization_id, Permission.CHANGE_ROLES, now)

    with get_db_session() as session:
        target = _fetch_membership(session, organization_id, user_id)
        if target is None:
            raise NotFoundError("Member not found")
        if target.is_owner:
            raise PermissionError("Cannot change owner role")
        session.execute(
            update(members)
            .where(members.c.organization_id == organization_id)
            .where(members.c.user_id == user_id)
            .values(role=role.value)
        )

    logger.info(
        "[organizations] role changed",
        extra={"organization_id": organization_id, "user_id": user_id, "role": role.value},
    )
    return target.model_copy(update={"role": role})


def remove_member(actor_user_id: str, organization_id: str, user_id: str, *, now: Optional[datetime] = None) -> None:
    """
    Remove a member.

    Raises:
        RolePermissionDeniedError: actor lacks remove_members
        NotFoundError: no such member
        PermissionError: target is the owner, or the actor themselves
    """
    _require(actor_user_id, organization_id, Permission.REMOVE_MEMBERS, now)

    with get_db_session() as session:
        target = _fetch_membership(session, organization_id, user_id)
        if target is None:
            raise NotFoundError("Member not found")
        if target.is_owner:
            raise PermissionError("Cannot remove owner")
        if user_id == actor_user_id:
            raise PermissionError("Cannot remove yourself")
        session.execute(
            delete(members)
            .where(members.c.organization_id == organization_id)
            .where(members.c.user_id == user_id)
        )

    logger.info("[organizations] member removed", extra={"organization_id": organization_id, "user_id": user_id})
