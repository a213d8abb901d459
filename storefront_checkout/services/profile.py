"""
Customer Profile Service
========================

Reads and writes the customer profile record of signed-in customers.

Key Functions:
--------------
- fetch_profile: Load a profile by customer id (used to prefill the form)
- resolve_customer: Turn a customer id into an AuthenticatedCustomer
- save_client_profile: Upsert the profile from the checkout form
- update_client_profile: Non-fatal wrapper used right before submission

Failure Policy:
---------------
The profile store is a convenience for the customer. A read failure means an
empty form; a write failure is logged and ignored. Neither ever blocks a
checkout.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..checkout.errors import ProfileUpdateError
from ..checkout.models import AuthenticatedCustomer, CustomerFormData
from ..checkout.validators import normalize_phone_number
from ..models import ClientProfile


logger = logging.getLogger(__name__)


def fetch_profile(db: Session, customer_id: str) -> Optional[ClientProfile]:
    """
    Load the profile of a customer.

    Returns:
        The ClientProfile, or None if it doesn't exist or can't be read
    """
    try:
        return db.get(ClientProfile, customer_id)
    except SQLAlchemyError as e:
        logger.warning("Could not load profile for customer %s: %s", customer_id, e)
        db.rollback()
        return None


def profile_prefill_values(profile: ClientProfile) -> Dict[str, Optional[str]]:
    """Map profile columns onto checkout form fields."""
    return {
        "first_name": profile.full_name,
        "email": profile.email,
        "phone": profile.phone,
        "address": profile.address,
        "city": profile.city,
        "zip_code": profile.zip_code,
    }


def resolve_customer(db: Session, customer_id: Optional[str]) -> Optional[AuthenticatedCustomer]:
    """
    Build the AuthenticatedCustomer for a verified customer id.

    The id comes from the identity gateway; a customer without a stored
    profile yet is still authenticated, with a zero points balance.
    """
    if not customer_id:
        return None
    profile = fetch_profile(db, customer_id)
    points = profile.points if profile and profile.points else 0
    return AuthenticatedCustomer(id=customer_id, points=points)


def save_client_profile(db: Session, customer_id: str, form: CustomerFormData) -> ClientProfile:
    """
    Upsert the customer's profile from the checkout form.

    Raises:
        ProfileUpdateError: If the write fails (the transaction is rolled back)
    """
    try:
        profile = db.get(ClientProfile, customer_id)
        if profile is None:
            profile = ClientProfile(id=customer_id, points=0)
            db.add(profile)

        profile.full_name = form.first_name.strip()
        profile.email = form.email.strip()
        profile.phone = normalize_phone_number(form.phone)
        profile.address = form.address.strip()
        profile.city = form.city
        profile.zip_code = form.zip_code.strip()
        profile.updated_at = datetime.now(timezone.utc)

        db.commit()
        db.refresh(profile)
        return profile
    except SQLAlchemyError as e:
        db.rollback()
        raise ProfileUpdateError(f"Could not update profile for customer {customer_id}: {e}")


def update_client_profile(db: Session, customer: AuthenticatedCustomer, form: CustomerFormData) -> bool:
    """
    Persist profile changes before submission, never failing the checkout.

    Returns:
        True if the profile was written, False otherwise
    """
    try:
        save_client_profile(db, customer.id, form)
    except ProfileUpdateError as e:
        logger.warning("Profile update skipped: %s", e.message)
        return False
    logger.debug("Profile updated for customer %s", customer.id)
    return True
