"""Account schemas"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime


class AccountResponse(BaseModel):
    """Public account view in camelCase; never includes the password hash"""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    username: str
    email: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_active: bool
    has_password: bool
    oauth_linked: bool
    created_at: Optional[datetime] = None


class AccountEnvelope(BaseModel):
    account: AccountResponse


class AccountUpdate(BaseModel):
    """Profile update; omitted fields are left unchanged"""
    display_name: Optional[str] = Field(
        default=None, max_length=100, validation_alias=AliasChoices("display_name", "displayName")
    )
    avatar_url: Optional[str] = Field(
        default=None, max_length=500, validation_alias=AliasChoices("avatar_url", "avatarUrl")
    )
    email: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def at_least_one_field(self):
        if self.display_name is None and self.avatar_url is None and self.email is None:
            raise ValueError("No fields to update")
        return self


class PasswordChangeRequest(BaseModel):
    """Password change; current_password may be omitted by OAuth-only accounts"""
    current_password: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("current_password", "currentPassword")
    )
    new_password: str = Field(
        ..., min_length=6, max_length=128, validation_alias=AliasChoices("new_password", "newPassword")
    )
