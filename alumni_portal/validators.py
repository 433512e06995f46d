"""ALUMNI PORTAL VALIDATORS

Field validators raise ``ValueError`` with the message shown next to the
field. The ``validate_*`` form functions collect those into a single
``ValidationError`` carrying every field error, so a form is never
submitted with local errors. The decorators apply a form function to the
request body and answer 422 before the view runs.
"""

from dataclasses import dataclass
from functools import wraps
import re
from typing import Optional
import unicodedata

import bleach
from flask import request

from alumni_portal.errors import ValidationError
from alumni_portal.models import (
    COURSES,
    DECISIONS,
    PHILIPPINE_REGIONS,
    EmploymentStatus,
    LocationBreakdown,
    LocationScope,
    QuestionnaireAnswers,
    SignupMetadata,
)
from alumni_portal.routes.api.v1 import error

COMMON_DOMAINS = (
    "gmail.com",
    "yahoo.com",
    "outlook.com",
    "hotmail.com",
    "live.com",
    "icloud.com",
    "aol.com",
    "msn.com",
    "proton.me",
    "yahoo.com.ph",
    "gmail.com.ph",
)
# Real providers that sit within typo distance of a common one
KNOWN_DOMAINS = COMMON_DOMAINS + ("mail.com", "ymail.com", "gmx.com", "me.com")

BASIC_EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[A-Za-z]{2,}$")
TLD_REGEX = re.compile(r"^[A-Za-z]{2,24}$")
LABEL_REGEX = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?$")
TLD_TYPOS = (
    (re.compile(r"gmail\.(co|con|vom|c0m)$", re.IGNORECASE), "gmail.com"),
    (re.compile(r"yahoo\.(co|con)$", re.IGNORECASE), "yahoo.com"),
    (re.compile(r"outlook\.(co|con)$", re.IGNORECASE), "outlook.com"),
    (re.compile(r"hotmail\.(co|con)$", re.IGNORECASE), "hotmail.com"),
)

MIN_PASSWORD_LENGTH = 6
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 13
MIN_GRADUATION_YEAR = 1980
MAX_GRADUATION_YEAR = 2030
MAX_REASON_LENGTH = 2000


def sanitize_text(text, max_length=None):
    """
    Strip markup from free text while preserving international characters
    """
    if text is None:
        return text

    text = str(text).strip()
    text = bleach.clean(text, tags=[], strip=True)

    dangerous_patterns = [
        r"<script[^>]*>.*?</script>",
        r"javascript:",
        r"vbscript:",
        r"on\w+\s*=",
        r"data:text/html",
    ]
    for pattern in dangerous_patterns:
        if re.search(pattern, text, re.IGNORECASE | re.DOTALL):
            raise ValueError("Invalid content detected")

    text = unicodedata.normalize("NFC", text)

    if max_length and len(text) > max_length:
        text = text[:max_length].strip()

    return text


def levenshtein(a, b, max_distance=2):
    """Edit distance, or ``max_distance + 1`` as soon as it is exceeded."""
    if a == b:
        return 0
    if abs(len(a) - len(b)) > max_distance:
        return max_distance + 1

    row = list(range(len(b) + 1))
    for i in range(1, len(a) + 1):
        prev = row[0]
        row[0] = i
        row_min = row[0]
        for j in range(1, len(b) + 1):
            current = row[j]
            row[j] = min(
                row[j] + 1,
                row[j - 1] + 1,
                prev + (0 if a[i - 1] == b[j - 1] else 1),
            )
            prev = current
            row_min = min(row_min, row[j])
        if row_min > max_distance:
            return max_distance + 1
    return row[len(b)]


def has_reasonable_domain(domain):
    if "." not in domain or ".." in domain:
        return False
    if domain[0] in ".-" or domain[-1] in ".-":
        return False
    labels = domain.split(".")
    if not TLD_REGEX.match(labels[-1]):
        return False
    return all(label and LABEL_REGEX.match(label) for label in labels)


def suggest_domain(domain) -> Optional[str]:
    lower = domain.lower()
    best = None
    best_distance = None
    for candidate in COMMON_DOMAINS:
        distance = levenshtein(lower, candidate, 2)
        if distance <= 2 and (best is None or distance < best_distance):
            best, best_distance = candidate, distance
            if distance == 0:
                break
    if best is None:
        for pattern, replacement in TLD_TYPOS:
            if pattern.search(lower):
                return replacement
    return best


@dataclass
class EmailCheck:
    valid: bool
    reason: Optional[str] = None
    suggestion: Optional[str] = None

    def serialize(self):
        return {"valid": self.valid, "reason": self.reason, "suggestion": self.suggestion}


def check_email(value) -> EmailCheck:
    """Shape check plus a typo suggestion for the common mail providers.

    A domain a couple of keystrokes away from a common provider is treated
    as a mistake: ``jon@gmial.com`` is invalid with the suggestion
    ``jon@gmail.com``.
    """
    email = (value or "").strip()
    if not email:
        return EmailCheck(False, "Email is required")
    if not BASIC_EMAIL_REGEX.match(email):
        return EmailCheck(False, "Please enter a valid email address")

    local, _, domain = email.rpartition("@")
    if not local or not domain:
        return EmailCheck(False, "Email must include a valid domain")
    if (
        re.search(r"\s", local)
        or local.startswith(".")
        or local.endswith(".")
        or ".." in local
    ):
        return EmailCheck(False, "Local part of email is invalid")

    suggested = suggest_domain(domain)
    if not has_reasonable_domain(domain):
        return EmailCheck(
            False,
            "Email domain looks incorrect",
            f"{local}@{suggested}" if suggested else None,
        )
    if suggested and domain.lower() not in KNOWN_DOMAINS:
        return EmailCheck(False, "Email domain looks incorrect", f"{local}@{suggested}")
    return EmailCheck(True)


def validate_email(value):
    result = check_email(value)
    if not result.valid:
        message = result.reason
        if result.suggestion:
            message = f"{message}. Did you mean {result.suggestion}?"
        raise ValueError(message)
    return value.strip().lower()


def validate_phone(value):
    if not value or not str(value).strip():
        raise ValueError("Phone number is required")
    value = str(value).strip()
    digits = re.sub(r"[\s\-().]", "", value)
    if digits.startswith("+"):
        digits = digits[1:]
    if not digits.isdigit() or not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
        raise ValueError("Please enter a valid phone number")
    return value


def validate_password(password, confirm=None):
    if not password:
        raise ValueError("Password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if confirm is not None and password != confirm:
        raise ValueError("Passwords do not match")
    return password


def validate_required(value, label, max_length=120):
    if value is None or not str(value).strip():
        raise ValueError(f"{label} is required")
    clean = sanitize_text(value, max_length=max_length)
    if not clean:
        raise ValueError(f"{label} is required")
    return clean


def validate_name(value, label):
    clean = validate_required(value, label)
    for char in clean:
        if not (
            unicodedata.category(char).startswith("L")
            or unicodedata.category(char).startswith("M")
            or char in " '-."
            or unicodedata.category(char) == "Zs"
        ):
            raise ValueError(f"{label} contains invalid characters")
    return clean


def validate_course(value):
    if not value:
        raise ValueError("Course is required")
    if value not in COURSES:
        raise ValueError("Please select a course from the list")
    return value


def validate_graduation_year(value):
    if value is None or value == "":
        raise ValueError("Graduation year is required")
    try:
        year = int(value)
    except (TypeError, ValueError):
        raise ValueError("Graduation year must be a number") from None
    if not MIN_GRADUATION_YEAR <= year <= MAX_GRADUATION_YEAR:
        raise ValueError(
            f"Graduation year must be between {MIN_GRADUATION_YEAR} and "
            f"{MAX_GRADUATION_YEAR}"
        )
    return year


def validate_location(scope, region, specific_location) -> LocationBreakdown:
    errors = {}
    try:
        scope = LocationScope(scope or LocationScope.PHILIPPINES.value)
    except ValueError:
        errors["location_scope"] = "Please choose Philippines or International"
        scope = None
    if scope == LocationScope.PHILIPPINES and region not in PHILIPPINE_REGIONS:
        errors["region"] = "Region is required"
    try:
        specific_location = validate_required(
            specific_location, "Specific location", max_length=200
        )
    except ValueError as e:
        errors["specific_location"] = str(e)
    if errors:
        raise ValidationError(errors=errors)
    return LocationBreakdown(
        scope=scope,
        region=region if scope == LocationScope.PHILIPPINES else "",
        specific_location=specific_location,
    )


class _Collector:
    def __init__(self, data):
        self.data = data or {}
        self.errors = {}
        self.clean = {}

    def field(self, name, func, *args):
        try:
            self.clean[name] = func(self.data.get(name), *args)
        except ValueError as e:
            self.errors[name] = str(e)

    def merge(self, validation_error):
        self.errors.update(validation_error.errors)

    def result(self):
        if self.errors:
            raise ValidationError(errors=self.errors)
        return self.clean


def validate_login(data):
    form = _Collector(data)
    form.field("email", validate_required, "Email", 254)
    if not form.data.get("password"):
        form.errors["password"] = "Password is required"
    clean = form.result()
    return clean["email"].strip().lower(), form.data["password"]


def validate_registration(data):
    """Returns ``(email, password, SignupMetadata)``."""
    form = _Collector(data)
    form.field("email", validate_email)
    form.field("first_name", validate_name, "First name")
    form.field("last_name", validate_name, "Last name")
    form.field("course", validate_course)
    form.field("graduation_year", validate_graduation_year)
    form.field("phone_number", validate_phone)
    try:
        validate_password(
            form.data.get("password"), form.data.get("confirm_password") or ""
        )
    except ValueError as e:
        key = "confirm_password" if "match" in str(e) else "password"
        form.errors[key] = str(e)
    clean = form.result()
    metadata = SignupMetadata(
        first_name=clean["first_name"],
        last_name=clean["last_name"],
        course=clean["course"],
        graduation_year=clean["graduation_year"],
        phone_number=clean["phone_number"],
        role="alumni",
    )
    return clean["email"], form.data["password"], metadata


def validate_profile_update(data):
    """Every field of the profile form is required."""
    form = _Collector(data)
    form.field("first_name", validate_name, "First name")
    form.field("last_name", validate_name, "Last name")
    form.field("course", validate_course)
    form.field("graduation_year", validate_graduation_year)
    form.field("current_job", validate_required, "Current job")
    form.field("company", validate_required, "Company")
    form.field("phone_number", validate_phone)
    try:
        location = validate_location(
            form.data.get("location_scope"),
            form.data.get("region"),
            form.data.get("specific_location"),
        )
        form.clean["location"] = location.format()
    except ValidationError as e:
        form.merge(e)
    return form.result()


def validate_questionnaire(data) -> QuestionnaireAnswers:
    form = _Collector(data)
    try:
        location = validate_location(
            form.data.get("scope"), form.data.get("region"), form.data.get("specific_location")
        )
    except ValidationError as e:
        form.merge(e)
        location = None
    form.field("skills", validate_required, "Skills", 500)
    status = form.data.get("employment_status")
    if status not in [s.value for s in EmploymentStatus]:
        form.errors["employment_status"] = "Please select your employment status"
    form.result()
    return QuestionnaireAnswers(
        scope=location.scope,
        region=location.region or None,
        specific_location=location.specific_location,
        skills=form.clean["skills"],
        employment_status=EmploymentStatus(status),
    )


def validate_deletion_reason(value):
    if value is None:
        return ""
    return sanitize_text(value, max_length=MAX_REASON_LENGTH)


def validate_decision(data):
    data = data or {}
    status = data.get("status")
    if status not in [d.value for d in DECISIONS]:
        raise ValidationError(errors={"status": "Decision must be approved or denied"})
    note = data.get("note")
    return status, (sanitize_text(note, max_length=1000) if note else None)


def validates(form_function):
    """Run ``form_function`` on the JSON body and pass the result as ``form``."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            json_data = request.get_json(silent=True) or {}
            try:
                kwargs["form"] = form_function(json_data)
            except ValidationError as e:
                return error(status=422, detail=e.message, errors=e.errors)
            except ValueError as e:
                return error(status=422, detail=str(e))
            return func(*args, **kwargs)

        return wrapper

    return decorator


validate_login_request = validates(validate_login)
validate_registration_request = validates(validate_registration)
validate_profile_request = validates(validate_profile_update)
validate_questionnaire_request = validates(validate_questionnaire)
validate_decision_request = validates(validate_decision)
