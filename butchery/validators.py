# validators.py
"""Local form validation used before checkout is submitted."""

import re
from typing import Dict, Optional

UAE_PHONE_RE = re.compile(r"^\+971\d{9}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_RE = re.compile(r"^[^\W\d_]+(?:[\s'\-]+[^\W\d_]+)*$")


def normalize_phone(phone: str) -> str:
    return re.sub(r"\s", "", phone or "")


def is_valid_uae_phone(phone: str) -> bool:
    """Accepts +971 50 123 4567, +971501234567, +97150 1234567."""
    return bool(UAE_PHONE_RE.match(normalize_phone(phone)))


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


def is_valid_name(name: str) -> bool:
    """At least two letters; spaces, hyphens and apostrophes between words."""
    name = (name or "").strip()
    return len(name) >= 2 and bool(NAME_RE.match(name))


def checkout_form_errors(
    name: str,
    email: str,
    phone: str,
    language: str = "en",
) -> Dict[str, str]:
    """Returns inline field errors; an empty dict means the form may be submitted."""
    ar = language == "ar"
    errors: Dict[str, str] = {}
    if not is_valid_name(name):
        errors["name"] = "يرجى إدخال اسم صحيح" if ar else "Please enter a valid name"
    if not is_valid_email(email):
        errors["email"] = "يرجى إدخال بريد إلكتروني صحيح" if ar else "Please enter a valid email address"
    if not is_valid_uae_phone(phone):
        errors["phone"] = (
            "يرجى إدخال رقم هاتف إماراتي صحيح (+971XXXXXXXXX)"
            if ar else "Please enter a valid UAE phone number (+971XXXXXXXXX)"
        )
    return errors


def first_error(errors: Dict[str, str]) -> Optional[str]:
    return next(iter(errors.values()), None)
