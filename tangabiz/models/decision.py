"""
tangabiz/models/decision.py

Outcome of an entitlement check.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from tangabiz.models.permission import Permission
from tangabiz.models.plan import Feature, PlanId
from tangabiz.models.usage import ResourceKind


class DecisionReason(str, Enum):
    ALLOWED = "allowed"
    ROLE_PERMISSION_DENIED = "role_permission_denied"
    PLAN_FEATURE_DISABLED = "plan_feature_disabled"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRIAL_EXPIRED = "trial_expired"


class EntitlementDecision(BaseModel):
    """
    Allow/deny with a typed reason.

    current and limit are set for quota checks (limit -1 = unlimited).
    """
    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: DecisionReason
    permission: Optional[Permission] = None
    feature: Optional[Feature] = None
    resource_kind: Optional[ResourceKind] = None
    current: Optional[int] = None
    limit: Optional[int] = None
    plan_id: Optional[PlanId] = None
    plan_state: Optional[str] = None
