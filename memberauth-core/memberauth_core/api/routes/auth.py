"""
Auth Routes
===========
OTP issuance and verification endpoints.
"""

from fastapi import APIRouter, Depends, Response

from ...identifiers import parse_channel
from ..dependencies import Services, get_services
from ..schemas import SendOTPRequest, VerifyOTPRequest

router = APIRouter()


@router.post("/send-otp")
async def send_otp(body: SendOTPRequest, services: Services = Depends(get_services)):
    channel = parse_channel(body.method)
    result = await services.otp.issue(body.identifier(), channel)

    content = {"success": True, "message": f"OTP sent via {channel.value.upper()}"}
    if result.code is not None:
        content["devOtp"] = result.code
    return content


@router.post("/verify-otp")
async def verify_otp(
    body: VerifyOTPRequest,
    response: Response,
    services: Services = Depends(get_services),
):
    channel = parse_channel(body.method)
    member = await services.otp.verify(body.identifier(), channel, body.otp)
    session = services.sessions.issue(member)

    response.set_cookie(
        key=services.config.session_cookie_name,
        value=session.token,
        max_age=session.max_age,
        httponly=True,
        secure=services.config.is_production,
        samesite="lax",
    )
    return {
        "success": True,
        "message": "Verified successfully",
        "user": member.to_public(),
    }
