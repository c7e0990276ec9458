"""
Input validation and normalization for signup and login
"""
import re
from typing import List, Optional

from app.domain.exceptions import InvalidOTPCode, InvalidPhoneFormat

DEFAULT_COUNTRY_CODE = "91"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
STORABLE_PHONE_PATTERN = re.compile(r"^\+\d{10,15}$")
OTP_CODE_PATTERN = re.compile(r"^[0-9]{6}$")
MOBILE_LEADING_DIGITS = "6789"
MIN_PASSWORD_LENGTH = 6


def is_valid_email(email: Optional[str]) -> bool:
    """Check local@domain.tld shape"""
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def normalize_phone(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Reduce a phone number to canonical international form (+<cc><number>).

    - A bare 10-digit mobile number (leading 6-9) gets the country code.
    - A number already carrying the country code, with or without "+", is
      returned with a single leading "+".
    - Anything else raises InvalidPhoneFormat.

    Normalizing an already normalized number returns it unchanged.
    """
    digits = re.sub(r"\D", "", phone or "")

    if len(digits) == 10 and digits[0] in MOBILE_LEADING_DIGITS:
        return f"+{country_code}{digits}"

    if len(digits) == len(country_code) + 10 and digits.startswith(country_code):
        return f"+{digits}"

    raise InvalidPhoneFormat()


def try_normalize_phone(phone: Optional[str], country_code: str = DEFAULT_COUNTRY_CODE) -> Optional[str]:
    """normalize_phone that returns None instead of raising"""
    if not phone:
        return None
    try:
        return normalize_phone(phone, country_code)
    except InvalidPhoneFormat:
        return None


def is_storable_phone(phone: Optional[str]) -> bool:
    """Shape enforced by the user_profiles check constraint"""
    return bool(phone) and STORABLE_PHONE_PATTERN.match(phone) is not None


def validate_otp_code(code: Optional[str]) -> str:
    """Return the trimmed code or raise InvalidOTPCode; never touches the network"""
    code = (code or "").strip()
    if not OTP_CODE_PATTERN.match(code):
        raise InvalidOTPCode()
    return code


def signup_form_violations(
    product_id: str,
    full_name: str,
    email: str,
    mobile_number: str,
    password: str,
    confirm_password: str,
) -> List[str]:
    """
    Validate the signup form locally.

    Pure function: returns the ordered list of violated rules, empty when the
    form is valid. Callers surface the first entry.
    """
    errors = []
    mobile_digits = re.sub(r"\D", "", mobile_number or "")

    if not (product_id or "").strip():
        errors.append("Product ID is required")
    if not (full_name or "").strip():
        errors.append("Full name is required")
    if not (email or "").strip():
        errors.append("Email is required")
    elif not is_valid_email(email.strip()):
        errors.append("Please enter a valid email address")
    if not mobile_digits:
        errors.append("Mobile number is required")
    elif len(mobile_digits) != 10:
        errors.append("Mobile number must be 10 digits")
    if not password:
        errors.append("Password is required")
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if password != confirm_password:
        errors.append("Passwords do not match")

    return errors


def login_identifier_violation(email_or_phone: str, password: str) -> Optional[str]:
    """First login form problem, or None"""
    value = (email_or_phone or "").strip()
    if not value:
        return "Please enter your email or mobile number"
    if not password:
        return "Please enter your password"
    if "@" in value:
        if not is_valid_email(value):
            return "Please enter a valid email address"
    elif try_normalize_phone(value) is None:
        return "Please enter a valid 10-digit mobile number"
    return None


def mask_email(email: str) -> str:
    """fa****@example.com"""
    username, _, domain = email.partition("@")
    if len(username) <= 2:
        return f"{username}@{domain}"
    return f"{username[:2]}{'*' * (len(username) - 2)}@{domain}"


def format_phone_for_display(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """+91 98765 43210"""
    digits = re.sub(r"\D", "", phone)
    if len(digits) == len(country_code) + 10 and digits.startswith(country_code):
        digits = digits[len(country_code):]
    if len(digits) == 10:
        return f"+{country_code} {digits[:5]} {digits[5:]}"
    return phone
