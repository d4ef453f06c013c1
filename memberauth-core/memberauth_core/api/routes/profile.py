"""
Profile Routes
==============
Authenticated member's account and profile.
"""

from fastapi import APIRouter, Depends

from ...guard import AuthorizedMember
from ...models import Member, Profile
from ..dependencies import Services, get_services, current_member
from ..schemas import ProfileUpdateRequest

router = APIRouter()


def _profile_payload(member: Member, profile: Profile) -> dict:
    data = member.to_public()
    data["profile"] = profile.to_public()
    return data


@router.get("")
async def get_profile(
    auth: AuthorizedMember = Depends(current_member),
    services: Services = Depends(get_services),
):
    member, profile = await services.profile_service.get(auth.member)
    return {"success": True, "data": _profile_payload(member, profile)}


@router.patch("")
async def update_profile(
    body: ProfileUpdateRequest,
    auth: AuthorizedMember = Depends(current_member),
    services: Services = Depends(get_services),
):
    member, profile = await services.profile_service.update(auth.member, body.to_changes())
    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": _profile_payload(member, profile),
    }
