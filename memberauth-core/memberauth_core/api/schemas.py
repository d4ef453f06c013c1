"""
Request Schemas
===============
Pydantic models for the JSON bodies accepted by the API.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SendOTPRequest(BaseModel):
    mobile: Optional[str] = None
    email: Optional[str] = None
    method: str

    def identifier(self) -> Optional[str]:
        return self.email if self.method.strip().lower() == "email" else self.mobile


class VerifyOTPRequest(SendOTPRequest):
    otp: Optional[str] = None


class PreferencesUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    marketing_emails: Optional[bool] = Field(default=None, alias="marketingEmails")
    sms_notifications: Optional[bool] = Field(default=None, alias="smsNotifications")


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")
    preferences: Optional[PreferencesUpdate] = None

    def to_changes(self) -> dict:
        changes = self.model_dump(exclude_none=True, exclude={"preferences"})
        if self.preferences is not None:
            changes["preferences"] = self.preferences.model_dump(exclude_none=True)
        return changes
