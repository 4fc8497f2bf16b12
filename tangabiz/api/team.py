"""
Team API routes.

- GET    /api/organizations/{id}/members
- POST   /api/organizations/{id}/members
- PATCH  /api/organizations/{id}/members/{user_id}
- DELETE /api/organizations/{id}/members/{user_id}
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from tangabiz.core.auth import get_current_user_id
from tangabiz.features.entitlements.service import check_entitlement, raise_for_decision
from tangabiz.features.organizations.service import (
    add_member,
    change_role,
    list_members,
    remove_member,
)
from tangabiz.features.permissions.service import role_display_name
from tangabiz.models.organization import Membership
from tangabiz.models.permission import Permission, Role


router = APIRouter(prefix="/api/organizations", tags=["team"])


class AddMemberRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=100)
    role: Role = Role.STAFF


class ChangeRoleRequest(BaseModel):
    role: Role


def _member_payload(membership: Membership) -> dict:
    payload = membership.model_dump(mode="json")
    payload["role_name"] = role_display_name(membership.role)
    return payload


@router.get("/{organization_id}/members")
def get_members(organization_id: str, user_id: str = Depends(get_current_user_id)):
    raise_for_decision(check_entitlement(user_id, organization_id, Permission.MANAGE_TEAM))
    return {"members": [_member_payload(m) for m in list_members(organization_id)]}


@router.post("/{organization_id}/members", status_code=201)
def post_member(organization_id: str, request: AddMemberRequest, user_id: str = Depends(get_current_user_id)):
    membership = add_member(user_id, organization_id, request.user_id, request.role)
    return _member_payload(membership)


@router.patch("/{organization_id}/members/{member_user_id}")
def patch_member(
    organization_id: str,
    member_user_id: str,
    request: ChangeRoleRequest,
    user_id: str = Depends(get_current_user_id),
):
    membership = change_role(user_id, organization_id, member_user_id, request.role)
    return _member_payload(membership)


@router.delete("/{organization_id}/members/{member_user_id}")
def delete_member(organization_id: str, member_user_id: str, user_id: str = Depends(get_current_user_id)):
    remove_member(user_id, organization_id, member_user_id)
    return {"success": True}
