"""
Checkout Form Validation.

Two gates guard the checkout:
- can_continue_to_review: a cheap presence check that lets the customer reach
  the review screen, where the full errors are shown
- validate: the full check run before submission

validate evaluates every rule so the customer sees all errors at once. The
returned dict keeps the order in which fields first failed; its first key is
the field the storefront focuses.
"""

import re
import logging

import phonenumbers
from phonenumbers.phonenumberutil import NumberParseException
from email_validator import validate_email, EmailNotValidError

from .models import CustomerFormData, DeliveryMethod, OTHER_CITY
from .zone_policy import ZoneDecision, SHERBROOKE

logger = logging.getLogger(__name__)

# Canadian postal code, e.g. "J1H 4A8", "J1H-4A8" or "j1h4a8"
CA_POSTAL_CODE_PATTERN = re.compile(r"^[A-Za-z]\d[A-Za-z][ -]?\d[A-Za-z]\d$")

MIN_FIRST_NAME_LENGTH = 2
MIN_ADDRESS_LENGTH = 5

ERROR_FIRST_NAME = "Please enter a valid first name"
ERROR_EMAIL = "Please enter a valid email address"
ERROR_PHONE = "Please enter a valid Canadian phone number"
ERROR_DELIVERY_METHOD = "Please select pickup or delivery"
ERROR_CITY = "Please choose a city"
ERROR_AREA = "Please choose an area (Cartier)"
ERROR_CITY_OTHER = "Delivery unavailable in selected area — choose pickup"
ERROR_ADDRESS = "Please enter a valid street address"
ERROR_ZIP_CODE = "Please enter a valid Canadian postal code (e.g., J1H 4A8)"
ERROR_ZONE_DEFAULT = "Delivery not available"


def phone_digits(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def is_valid_phone_number(phone: str) -> bool:
    """North American numbering: 10 digits, or 11 with the leading 1."""
    digits = phone_digits(phone)
    return len(digits) == 10 or (len(digits) == 11 and digits.startswith("1"))


def is_valid_email_address(email: str) -> bool:
    """Syntax-only check with email-validator (no DNS/MX lookups)."""
    if not email:
        return False
    try:
        validate_email(email, check_deliverability=False)
        return True
    except EmailNotValidError as e:
        logger.debug("Email rejected: %s", e)
        return False


def is_valid_postal_code(zip_code: str) -> bool:
    return bool(zip_code) and bool(CA_POSTAL_CODE_PATTERN.match(zip_code))


def normalize_phone_number(phone: str) -> str:
    """
    Format a phone number in E.164 (e.g. "+18195551234") for storage.

    Numbers phonenumbers can't parse or doesn't consider valid are returned
    trimmed but otherwise unchanged.
    """
    raw = (phone or "").strip()
    digits = phone_digits(raw)
    if len(digits) == 10:
        digits = "1" + digits
    try:
        parsed = phonenumbers.parse("+" + digits, "CA")
    except NumberParseException as e:
        logger.debug("Phone not normalized: %s", e)
        return raw
    if not phonenumbers.is_valid_number(parsed):
        return raw
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def validate(form: CustomerFormData, zone_decision: ZoneDecision) -> dict[str, str]:
    """
    Run the full validation gate.

    Args:
        form: Current customer input
        zone_decision: Zone policy outcome for this form and cart

    Returns:
        Mapping of field name to error message, empty when the form is valid.
        A field that fails more than once keeps its first position and the
        latest message.
    """
    errors: dict[str, str] = {}

    if not form.first_name or len(form.first_name.strip()) < MIN_FIRST_NAME_LENGTH:
        errors["first_name"] = ERROR_FIRST_NAME
    if not is_valid_email_address(form.email):
        errors["email"] = ERROR_EMAIL
    if not is_valid_phone_number(form.phone):
        errors["phone"] = ERROR_PHONE
    if not form.delivery_method:
        errors["delivery_method"] = ERROR_DELIVERY_METHOD

    if form.delivery_method == DeliveryMethod.DELIVERY:
        if not form.city:
            errors["city"] = ERROR_CITY
        if form.city == SHERBROOKE and not form.area:
            errors["area"] = ERROR_AREA
        if form.city == OTHER_CITY:
            errors["city"] = ERROR_CITY_OTHER
        if not form.address or len(form.address.strip()) < MIN_ADDRESS_LENGTH:
            errors["address"] = ERROR_ADDRESS
        if not is_valid_postal_code(form.zip_code):
            errors["zip_code"] = ERROR_ZIP_CODE
        if not zone_decision.allowed:
            errors["city"] = zone_decision.reason or ERROR_ZONE_DEFAULT

    if errors:
        logger.debug("Checkout validation failed on %s", ", ".join(errors))

    return errors


def missing_for_review(form: CustomerFormData) -> list[str]:
    """Fields the lightweight gate requires but are still empty."""
    required = ["first_name", "email", "phone"]
    if form.delivery_method == DeliveryMethod.DELIVERY:
        required += ["address", "city"]
    return [name for name in required if not getattr(form, name)]


def can_continue_to_review(form: CustomerFormData) -> bool:
    """Lightweight gate: enough input to show the review screen."""
    return not missing_for_review(form)
