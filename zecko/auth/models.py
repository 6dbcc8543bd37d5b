"""Request and response models for the auth endpoints."""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from zecko.common import Role, User
from zecko.common.validation import identifier_error, is_valid_phone_number

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, matching the web client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(BaseModel):
    """Login body. Either ``email`` or ``username`` identifies the account."""

    email: str | None = None
    username: str | None = None
    password: str | None = None

    @property
    def identifier(self) -> str | None:
        return self.email or self.username


class RegisterRequest(CamelModel):
    """Full registration payload; which fields are required depends on role."""

    email: str
    password: str
    user_type: Role
    country_code: Literal["GB", "US"] = "GB"
    phone_number: str | None = None
    business_name: str | None = None
    company_number: str | None = None
    vat_number: str | None = None
    utr_number: str | None = None
    ein_number: str | None = None
    state_registration_number: str | None = None
    registered_state: str | None = None
    payment_frequency: Literal["monthly", "annual"] | None = None

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not _EMAIL_PATTERN.match(value):
            msg = "Please enter a valid email address"
            raise ValueError(msg)
        return value

    @field_validator("user_type")
    @classmethod
    def _no_admin_signup(cls, value: Role) -> Role:
        if value == Role.ADMIN:
            msg = "Admin accounts cannot be self-registered"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _check_role_requirements(self) -> RegisterRequest:
        for field_name in ("company_number", "vat_number", "utr_number", "ein_number"):
            value = getattr(self, field_name)
            if value:
                error = identifier_error(to_camel(field_name), value)
                if error:
                    raise ValueError(error)

        if self.phone_number and not is_valid_phone_number(
            self.phone_number,
            self.country_code,
            self.user_type,
        ):
            msg = "Invalid phone number format"
            raise ValueError(msg)

        if self.user_type == Role.BUSINESS:
            if self.country_code == "GB" and not self.company_number:
                msg = "UK business accounts require a Companies House number"
                raise ValueError(msg)
            if self.country_code == "US" and not (
                self.ein_number and self.registered_state
            ):
                msg = "US business accounts require an EIN and registered state"
                raise ValueError(msg)

        if self.user_type == Role.VENDOR:
            if not self.business_name:
                msg = "Vendor accounts require a business name"
                raise ValueError(msg)
            if self.country_code == "GB" and not (
                self.company_number and self.utr_number
            ):
                msg = (
                    "UK vendor accounts require both Companies House number "
                    "and UTR number"
                )
                raise ValueError(msg)
            if self.country_code == "US" and not (
                self.ein_number and self.registered_state
            ):
                msg = "US vendor accounts require an EIN and registered state"
                raise ValueError(msg)

        return self


class UserResponse(CamelModel):
    """The user record returned to clients."""

    id: int
    email: str
    user_type: Role
    super_admin: bool = False
    subscription_active: bool = False
    subscription_tier: str = "none"
    country_code: str = "GB"
    business_name: str | None = None
    phone_number: str | None = None

    @classmethod
    def from_user(cls, user: User) -> UserResponse:
        """Create UserResponse from a User.

        :param user: User instance
        :return: UserResponse instance
        """
        return cls(
            id=user.id,
            email=user.email,
            user_type=user.role,
            super_admin=user.super_admin,
            subscription_active=user.subscription_active,
            subscription_tier=user.subscription_tier,
            country_code=user.country_code,
            business_name=user.business_name,
            phone_number=user.phone_number,
        )


class AuthResponse(BaseModel):
    """Response for login and registration.

    :param user: The authenticated user record
    :param token: Bearer token, only present when the token transport is active
    """

    user: UserResponse
    token: str | None = None


class VerifyResponse(BaseModel):
    authenticated: bool
    user: UserResponse | None = None


class MessageResponse(BaseModel):
    message: str
