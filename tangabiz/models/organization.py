"""
tangabiz/models/organization.py

Organization, membership and the explicit access context handed to every
entitlement check.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from tangabiz.models.permission import Role
from tangabiz.models.plan import PlanId


class Organization(BaseModel):
    """
    A tenant.

    plan is None until a paid plan is resolved; plan_started_at marks the
    trial start or, once paid, the subscription start.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    plan: Optional[PlanId] = None
    plan_started_at: Optional[datetime] = None
    subscription_status: Optional[str] = None
    subscription_id: Optional[str] = None
    created_at: Optional[datetime] = None


class Membership(BaseModel):
    """
    A user's role inside one organization.

    Constraint: exactly one membership per (organization_id, user_id).
    role is None when the stored value is not a known Role.
    """
    model_config = ConfigDict(frozen=True)

    organization_id: str
    user_id: str
    role: Optional[Role] = None
    is_owner: bool = False
    created_at: Optional[datetime] = None


class AccessContext(BaseModel):
    """Who is acting, and inside which organization."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    organization: Organization
    membership: Optional[Membership] = None

    @property
    def role(self) -> Optional[Role]:
        return self.membership.role if self.membership else None
