import pytest

from app.domain.exceptions import InvalidOTPCode, InvalidPhoneFormat
from app.utils.validators import (
    format_phone_for_display,
    is_storable_phone,
    login_identifier_violation,
    mask_email,
    normalize_phone,
    signup_form_violations,
    try_normalize_phone,
    validate_otp_code,
)

VALID_FORM = {
    "product_id": "DEMO-001",
    "full_name": "Ramesh Kumar",
    "email": "ramesh@example.com",
    "mobile_number": "7877059117",
    "password": "secret123",
    "confirm_password": "secret123",
}


@pytest.mark.parametrize("number", ["6000000000", "7877059117", "8123456789", "9999999999", "9876543210"])
def test_ten_digit_mobile_gets_country_code(number):
    normalized = normalize_phone(number)

    assert normalized == f"+91{number}"
    assert normalize_phone(normalized) == normalized


@pytest.mark.parametrize("raw", ["917877059117", "+917877059117", "+91 78770 59117", "(+91) 7877-059-117"])
def test_country_code_prefixed_forms_reduce_to_same_number(raw):
    assert normalize_phone(raw) == "+917877059117"


@pytest.mark.parametrize("raw", [
    "12345",
    "abcdefghij",
    "",
    "5877059117",      # leading digit outside 6-9
    "78770591171",     # 11 digits, no country code
    "447877059117",    # 12 digits, other country
    "91787705911",     # too short with prefix
])
def test_unrecognized_shapes_are_rejected(raw):
    with pytest.raises(InvalidPhoneFormat):
        normalize_phone(raw)

    assert try_normalize_phone(raw) is None


def test_storable_phone_matches_profile_constraint():
    assert is_storable_phone("+917877059117")
    assert not is_storable_phone("917877059117")
    assert not is_storable_phone("+91787")
    assert not is_storable_phone(None)


@pytest.mark.parametrize("code", ["12345", "1234567", "12a456", "", None, "１２３４５６"])
def test_otp_code_must_be_six_ascii_digits(code):
    with pytest.raises(InvalidOTPCode):
        validate_otp_code(code)


def test_otp_code_is_trimmed():
    assert validate_otp_code(" 123456 ") == "123456"


def test_valid_form_has_no_violations():
    assert signup_form_violations(**VALID_FORM) == []


def test_violations_are_reported_in_form_order():
    form = dict(VALID_FORM, product_id="", full_name=" ", email="not-an-email", confirm_password="other")

    assert signup_form_violations(**form) == [
        "Product ID is required",
        "Full name is required",
        "Please enter a valid email address",
        "Passwords do not match",
    ]


@pytest.mark.parametrize("field,value,message", [
    ("email", "", "Email is required"),
    ("mobile_number", "", "Mobile number is required"),
    ("mobile_number", "98765", "Mobile number must be 10 digits"),
    ("mobile_number", "917877059117", "Mobile number must be 10 digits"),
])
def test_single_field_violation(field, value, message):
    assert signup_form_violations(**dict(VALID_FORM, **{field: value})) == [message]


def test_short_password():
    form = dict(VALID_FORM, password="abc", confirm_password="abc")

    assert signup_form_violations(**form) == ["Password must be at least 6 characters"]


def test_login_identifier_checks():
    assert login_identifier_violation("", "pw") == "Please enter your email or mobile number"
    assert login_identifier_violation("user@x.com", "") == "Please enter your password"
    assert login_identifier_violation("user@x", "pw") == "Please enter a valid email address"
    assert login_identifier_violation("12345", "pw") == "Please enter a valid 10-digit mobile number"
    assert login_identifier_violation("7877059117", "pw") is None
    assert login_identifier_violation("user@x.com", "pw") is None


def test_display_helpers():
    assert mask_email("farmer@example.com") == "fa****@example.com"
    assert mask_email("ab@example.com") == "ab@example.com"
    assert format_phone_for_display("+917877059117") == "+91 78770 59117"
