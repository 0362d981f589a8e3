"""
Signup Validation

Server-side, authoritative validation of signup input. Every field is checked
and every failure is collected, so the caller gets the complete list of
problems in one ``ValidationError`` keyed by field name.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from .errors import ValidationError

MINIMUM_AGE = 18

PHONE_PATTERN = re.compile(r"^\+[1-9]\d{9,14}$")
SSN_PATTERN = re.compile(r"^\d{9}$")
ZIP_PATTERN = re.compile(r"^\d{5}$")

# US states, DC and inhabited territories
REGION_CODES = frozenset({
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
    "DC", "PR", "GU", "VI", "AS", "MP",
})

SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

SIGNUP_FIELDS = (
    "email", "password", "first_name", "last_name", "phone_number",
    "date_of_birth", "ssn", "address", "city", "state", "zip_code",
)

# Client-facing names used as error keys
FIELD_ALIASES = {
    "first_name": "firstName",
    "last_name": "lastName",
    "phone_number": "phoneNumber",
    "date_of_birth": "dateOfBirth",
    "zip_code": "zipCode",
}


@dataclass
class PasswordPolicy:
    """Password policy configuration"""
    min_length: int = 8
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_digit: bool = True
    require_special: bool = True

    def violations(self, password: str) -> List[str]:
        """Validate password against policy"""
        violations = []

        if len(password) < self.min_length:
            violations.append(f"Password must be at least {self.min_length} characters")

        if self.require_uppercase and not any(c.isupper() for c in password):
            violations.append("Password must contain an uppercase letter")

        if self.require_lowercase and not any(c.islower() for c in password):
            violations.append("Password must contain a lowercase letter")

        if self.require_digit and not any(c.isdigit() for c in password):
            violations.append("Password must contain a digit")

        if self.require_special and not any(c in SPECIAL_CHARS for c in password):
            violations.append("Password must contain a special character")

        return violations


@dataclass
class EmailCheck:
    normalized: str
    notifications: Dict[str, str] = field(default_factory=dict)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def check_email(raw: str) -> EmailCheck:
    """Validate an address and return its canonical lowercase form"""
    trimmed = raw.strip()
    if not trimmed:
        raise ValueError("Email is required")
    try:
        validate_email(trimmed, check_deliverability=False, allow_smtputf8=False)
    except EmailNotValidError:
        raise ValueError("Invalid email address")

    normalized = normalize_email(trimmed)
    notifications = {}
    if normalized != trimmed:
        notifications["emailNormalization"] = "Email was converted to lowercase for consistency"
    return EmailCheck(normalized=normalized, notifications=notifications)


def years_between(born: date, today: date) -> int:
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years


def parse_adult_dob(value: str, today: Optional[date] = None) -> str:
    """Parse an ISO date of birth and require an adult applicant"""
    today = today or date.today()
    try:
        born = date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError("Invalid date of birth")
    if born > today:
        raise ValueError("Date of birth cannot be in the future")
    if years_between(born, today) < MINIMUM_AGE:
        raise ValueError(f"You must be at least {MINIMUM_AGE} years old to create an account")
    return born.isoformat()


@dataclass
class ValidatedSignup:
    """Normalized signup input, safe to persist once hashed/encrypted"""
    email: str
    password: str
    first_name: str
    last_name: str
    phone_number: str
    date_of_birth: str
    ssn: str
    address: str
    city: str
    state: str
    zip_code: str
    notifications: Dict[str, str] = field(default_factory=dict)

    def profile(self) -> Dict[str, str]:
        """Non-secret fields stored as-is on the user row"""
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone_number": self.phone_number,
            "date_of_birth": self.date_of_birth,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
        }


def validate_signup(fields: Mapping[str, Any], password_policy: Optional[PasswordPolicy] = None,
                    today: Optional[date] = None) -> ValidatedSignup:
    """
    Validate and normalize signup fields.

    Args:
        fields: Raw input keyed by snake_case field name
        password_policy: Password rules, defaults to PasswordPolicy()
        today: Reference date for the age check

    Returns:
        ValidatedSignup with normalized values and non-fatal notifications

    Raises:
        ValidationError: With every failing field, keyed by its client-facing name
    """
    policy = password_policy or PasswordPolicy()
    errors: Dict[str, List[str]] = {}
    values: Dict[str, str] = {}

    def fail(name: str, message: str) -> None:
        errors.setdefault(name, []).append(message)

    for name in SIGNUP_FIELDS:
        value = fields.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            fail(name, "This field is required")
        elif not isinstance(value, str):
            fail(name, "Must be a string")
        else:
            values[name] = value

    notifications: Dict[str, str] = {}

    if "email" in values:
        try:
            check = check_email(values["email"])
            values["email"] = check.normalized
            notifications.update(check.notifications)
        except ValueError as e:
            fail("email", str(e))

    if "password" in values:
        for violation in policy.violations(values["password"]):
            fail("password", violation)

    for name in ("first_name", "last_name", "address", "city"):
        if name in values:
            values[name] = values[name].strip()

    if "phone_number" in values:
        phone = values["phone_number"].strip()
        if not PHONE_PATTERN.match(phone):
            fail("phone_number", "Phone number must be in international format, e.g. +14155550123")
        values["phone_number"] = phone

    if "date_of_birth" in values:
        try:
            values["date_of_birth"] = parse_adult_dob(values["date_of_birth"], today)
        except ValueError as e:
            fail("date_of_birth", str(e))

    if "ssn" in values and not SSN_PATTERN.match(values["ssn"]):
        fail("ssn", "SSN must be exactly 9 digits")

    if "state" in values:
        state = values["state"].strip().upper()
        if state not in REGION_CODES:
            fail("state", "Invalid state code")
        values["state"] = state

    if "zip_code" in values and not ZIP_PATTERN.match(values["zip_code"].strip()):
        fail("zip_code", "ZIP code must be 5 digits")
    elif "zip_code" in values:
        values["zip_code"] = values["zip_code"].strip()

    if errors:
        raise ValidationError({
            FIELD_ALIASES.get(name, name): messages for name, messages in errors.items()
        })

    return ValidatedSignup(notifications=notifications, **values)
