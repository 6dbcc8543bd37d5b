"""Shared input formats for every form that collects user details.

Phone numbers and business identifiers used to be checked by slightly
different copies of the same rules; all callers read them from here.
Bump SCHEMA_VERSION whenever an accepted format changes.
"""

import re
from dataclasses import dataclass

from .user import Role

SCHEMA_VERSION = 1

SUPPORTED_COUNTRIES = ("GB", "US")


@dataclass(frozen=True)
class PhoneFormat:
    """Display format for phone numbers of one country.

    :param dial_code: International dialling code without the plus sign
    :param example: Human readable template shown as a placeholder
    :param pattern: Compiled pattern a fully formatted number must match
    """

    dial_code: str
    example: str
    pattern: re.Pattern[str]


PHONE_FORMATS: dict[str, PhoneFormat] = {
    "GB": PhoneFormat(
        dial_code="44",
        example="+44 XXXX XXXXXX",
        pattern=re.compile(r"^\+44\s\d{4}\s\d{6}$"),
    ),
    "US": PhoneFormat(
        dial_code="1",
        example="+1 (XXX) XXX-XXXX",
        pattern=re.compile(r"^\+1\s\(\d{3}\)\s\d{3}-\d{4}$"),
    ),
}

# Free accounts only need a dialable number.
_FREE_PHONE_PATTERN = re.compile(r"^\+\d{7,15}$")

COMPANY_NUMBER_PATTERN = re.compile(r"^[A-Z0-9]{8}$")
VAT_NUMBER_PATTERN = re.compile(r"^GB[0-9]{9}$")
UTR_NUMBER_PATTERN = re.compile(r"^[0-9]{10}$")
EIN_NUMBER_PATTERN = re.compile(r"^\d{2}-\d{7}$")

IDENTIFIER_PATTERNS: dict[str, tuple[re.Pattern[str], str]] = {
    "companyNumber": (COMPANY_NUMBER_PATTERN, "Invalid Companies House number format"),
    "vatNumber": (VAT_NUMBER_PATTERN, "Invalid UK VAT number format"),
    "utrNumber": (UTR_NUMBER_PATTERN, "Invalid UTR number format"),
    "einNumber": (EIN_NUMBER_PATTERN, "Invalid EIN format (XX-XXXXXXX)"),
}


def _phone_format(country: str) -> PhoneFormat:
    try:
        return PHONE_FORMATS[country]
    except KeyError:
        msg = f"Unsupported country code: {country}"
        raise ValueError(msg) from None


def format_phone_number(value: str, country: str, role: Role | str) -> str:
    """Format a phone number the way the registration forms display it.

    Free users get a compact international number. Business and vendor users
    get the country display format, applied progressively so partially typed
    input formats sensibly.

    :param value: Raw user input
    :param country: Country code, ``GB`` or ``US``
    :param role: Account type the number belongs to
    :return: The formatted number
    """
    phone_format = _phone_format(country)
    cleaned = re.sub(r"[^\d+]", "", value)

    if Role.parse(role) in (Role.FREE, None):
        if cleaned.startswith("+"):
            return cleaned
        return f"+{phone_format.dial_code}{cleaned}"

    digits = re.sub(r"\D", "", cleaned)
    if digits.startswith(phone_format.dial_code) and cleaned.startswith("+"):
        digits = digits[len(phone_format.dial_code) :]
    if len(digits) <= 1:
        return digits

    if country == "US":
        if len(digits) <= 3:  # noqa: PLR2004
            return f"+1 ({digits}"
        if len(digits) <= 6:  # noqa: PLR2004
            return f"+1 ({digits[:3]}) {digits[3:]}"
        return f"+1 ({digits[:3]}) {digits[3:6]}-{digits[6:10]}"

    if len(digits) <= 4:  # noqa: PLR2004
        return f"+44 {digits}"
    return f"+44 {digits[:4]} {digits[4:10]}"


def is_valid_phone_number(value: str, country: str, role: Role | str = Role.BUSINESS) -> bool:
    """Check a formatted phone number against the country rules.

    :param value: Already formatted phone number
    :param country: Country code, ``GB`` or ``US``
    :param role: Free accounts accept any international number
    :return: True if the number is acceptable
    """
    if Role.parse(role) == Role.FREE:
        return bool(_FREE_PHONE_PATTERN.match(value))
    return bool(_phone_format(country).pattern.match(value))


def identifier_error(field_name: str, value: str) -> str | None:
    """Validate a business identifier.

    :param field_name: Wire name of the field, e.g. ``companyNumber``
    :param value: Submitted value
    :return: An error message, or None if the value is well formed
    """
    pattern, message = IDENTIFIER_PATTERNS[field_name]
    if pattern.match(value):
        return None
    return message
