"""
Input validation and sanitization for contact submissions.

HTML-encoding here is the only XSS defense for values that are later
interpolated into the HTML email bodies, so every free-text field goes
through ``sanitize_input`` before storage or templating.
"""

from __future__ import annotations

import html
import re
from collections.abc import Mapping
from datetime import datetime

from email_validator import EmailNotValidError, validate_email

from clinic.errors import InvalidEmail, InvalidPhone, MissingFields
from clinic.schemas.contact import Submission

REQUIRED_FIELDS = ("name", "email", "subject", "message")
PHONE_PATTERN = re.compile(r"^[0-9+\-\s()]{10,15}$")
# Only the backslash an earlier escaping pass put in front of a quote is
# removed; any other backslash is text the visitor typed.
_SLASHED_QUOTE = re.compile(r"\\(['\"])")


def sanitize_input(value: object) -> str:
    """Trim, undo quote escaping, and HTML-encode (quotes included).

    Existing entities are decoded before encoding, so the function is
    idempotent: ``sanitize_input(sanitize_input(x)) == sanitize_input(x)``.
    """
    if value is None:
        return ""
    text = str(value).strip()
    text = _SLASHED_QUOTE.sub(r"\1", text)
    text = html.unescape(text).strip()
    return html.escape(text, quote=True)


def missing_fields(fields: Mapping[str, object]) -> list[str]:
    return [
        name for name in REQUIRED_FIELDS if not str(fields.get(name) or "").strip()
    ]


def is_valid_email(address: str) -> bool:
    try:
        validate_email(address, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.fullmatch(phone))


def validate_submission(
    fields: Mapping[str, object],
    client_ip: str,
    user_agent: str,
    submitted_at: datetime,
) -> Submission:
    """Build a sanitized ``Submission`` or raise ``ValidationFailed``.

    Checks run on the sanitized values in a fixed order: required fields,
    then email, then phone. A field holding only entities such as
    ``&nbsp;`` is therefore reported as missing.
    """
    cleaned = {
        name: sanitize_input(fields.get(name))
        for name in (*REQUIRED_FIELDS, "phone")
    }
    missing = missing_fields(cleaned)
    if missing:
        raise MissingFields(missing)

    name = cleaned["name"]
    email = cleaned["email"]
    phone = cleaned["phone"]
    subject = cleaned["subject"]
    message = cleaned["message"]

    if not is_valid_email(email):
        raise InvalidEmail()
    if phone and not is_valid_phone(phone):
        raise InvalidPhone()

    return Submission(
        name=name,
        email=email,
        phone=phone,
        subject=subject,
        message=message,
        ip_address=client_ip,
        user_agent=user_agent,
        submitted_at=submitted_at,
    )
