"""
Pydantic models for API request/response validation.

Request bodies use camelCase on the wire (skinId, newName, ...). Fields are
optional where the service layer reports a missing value as a 400 with its
own message.
"""

from typing import Optional, List, Dict
from pydantic import BaseModel, Field, ConfigDict


# Auth


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    """Sign in with an email address or username."""

    identifier: Optional[str] = None
    password: Optional[str] = None


class TokenRequest(BaseModel):
    token: Optional[str] = None


class EmailRequest(BaseModel):
    """Email (or username, for resend-verification) of the account."""

    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None


class OkResponse(BaseModel):
    ok: bool = True


class UserResponse(BaseModel):
    """Public view of the signed-in user."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    username: str
    name: Optional[str] = None
    email_verified: Optional[str] = Field(default=None, alias="emailVerified")


class AuthResponse(BaseModel):
    """Access token issued at sign-in."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# Catalog


class SkinSummary(BaseModel):
    """Catalog list item with the viewer's membership flags."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    weapon: str
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    in_collection: bool = Field(default=False, alias="inCollection")
    in_wishlist: bool = Field(default=False, alias="inWishlist")


class SkinIdsRequest(BaseModel):
    ids: Optional[List[str]] = None


class SkinImage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    image_url: Optional[str] = Field(default=None, alias="imageUrl")


# Collection / wishlist


class MembershipRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    skin_id: Optional[str] = Field(default=None, alias="skinId")


class SuccessResponse(BaseModel):
    success: bool = True


# Loadouts


class LoadoutRequest(BaseModel):
    """
    Create/update body. ``entries`` maps weapon name to skin id (null for an
    empty slot). On update, leaving ``icon`` out keeps the current icon.
    """

    name: Optional[str] = None
    icon: Optional[str] = None
    entries: Optional[Dict[str, Optional[str]]] = None


# Sync


class SyncStats(BaseModel):
    new: int
    updated: int
    skipped: int
    total: int
    duration: str


class SyncResponse(BaseModel):
    success: bool
    stats: SyncStats
    timestamp: str


# Account settings


class ChangeNameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_name: Optional[str] = Field(default=None, alias="newName")


class ChangeNameResponse(BaseModel):
    message: str
    name: str


class ChangeEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_email: Optional[str] = Field(default=None, alias="newEmail")
    password: Optional[str] = None


class ChangeEmailResponse(BaseModel):
    message: str
    email: str


class DeleteAccountRequest(BaseModel):
    password: Optional[str] = None
    confirmation: Optional[str] = None


class MessageResponse(BaseModel):
    message: str
