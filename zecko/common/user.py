"""Fundamental user data model for app."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    """Marketplace account types."""

    FREE = "free"
    BUSINESS = "business"
    VENDOR = "vendor"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: object) -> Role | None:
        """Return the matching role, or None for anything unrecognized.

        :param value: Raw role value, usually the ``userType`` of a user record
        :return: The Role, or None if the value is not a known role
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @property
    def requires_subscription(self) -> bool:
        """Business and vendor accounts must pay before their tools unlock."""
        return self in (Role.BUSINESS, Role.VENDOR)


@dataclass
class User:
    """Data structure representing a marketplace user."""

    id: int
    email: str
    role: Role
    super_admin: bool = False
    subscription_active: bool = False
    subscription_tier: str = "none"
    country_code: str = "GB"
    business_name: str | None = None
    phone_number: str | None = None

    def to_record(self) -> dict[str, Any]:
        """Serialize to the camelCase user record sent over the wire."""
        return {
            "id": self.id,
            "email": self.email,
            "userType": str(self.role),
            "superAdmin": self.super_admin,
            "subscriptionActive": self.subscription_active,
            "subscriptionTier": self.subscription_tier,
            "countryCode": self.country_code,
            "businessName": self.business_name,
            "phoneNumber": self.phone_number,
        }
