"""
Organization API routes.

- POST /api/organizations: Create an organization (caller becomes owner)
- GET  /api/organizations/{id}/entitlements: Advisory decision for UI gating
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from tangabiz.core.auth import get_current_user_id
from tangabiz.features.entitlements.service import check_entitlement
from tangabiz.features.organizations.service import create_organization
from tangabiz.models.permission import Permission
from tangabiz.models.plan import Feature
from tangabiz.models.usage import ResourceKind


router = APIRouter(prefix="/api/organizations", tags=["organizations"])


class CreateOrganizationRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class OrganizationResponse(BaseModel):
    id: str
    name: str
    plan: Optional[str] = None
    plan_started_at: Optional[datetime] = None
    subscription_status: Optional[str] = None


@router.post("", status_code=201, response_model=OrganizationResponse)
def create(request: CreateOrganizationRequest, user_id: str = Depends(get_current_user_id)):
    organization = create_organization(request.name, user_id)
    return organization.model_dump(mode="json")


@router.get("/{organization_id}/entitlements")
def entitlements(
    organization_id: str,
    permission: Optional[Permission] = Query(None),
    feature: Optional[Feature] = Query(None),
    resource_kind: Optional[ResourceKind] = Query(None),
    delta: int = Query(1, ge=1),
    user_id: str = Depends(get_current_user_id),
):
    """
    Would the caller be allowed to do this right now?

    Read-only: always 200 with the decision, denials included.
    """
    decision = check_entitlement(
        user_id,
        organization_id,
        permission,
        feature=feature,
        resource_kind=resource_kind,
        delta=delta,
    )
    return decision.model_dump(mode="json")
