"""
Tests for form validation
"""

import pytest

from alumni_portal.errors import ValidationError
from alumni_portal.models import DeletionStatus, EmploymentStatus, LocationScope
from alumni_portal.validators import (
    check_email,
    levenshtein,
    validate_decision,
    validate_email,
    validate_graduation_year,
    validate_login,
    validate_password,
    validate_phone,
    validate_profile_update,
    validate_questionnaire,
    validate_registration,
)


def registration_form(**overrides):
    form = {
        "email": "maria@gmail.com",
        "password": "secret123",
        "confirm_password": "secret123",
        "first_name": "Maria",
        "last_name": "Santos",
        "course": "BSIT",
        "graduation_year": 2019,
        "phone_number": "0917 123 4567",
    }
    form.update(overrides)
    return form


class TestEmailCheck:
    """Email shape checks and provider typo suggestions"""

    def test_typo_of_common_provider_is_invalid_with_suggestion(self):
        result = check_email("jon@gmial.com")

        assert result.valid is False
        assert result.reason == "Email domain looks incorrect"
        assert result.suggestion == "jon@gmail.com"

    def test_common_provider_is_valid(self):
        assert check_email("jon@gmail.com").valid is True

    def test_known_provider_near_common_one_is_valid(self):
        assert check_email("jon@ymail.com").valid is True

    def test_tld_typo_fallback(self):
        result = check_email("jon@gmail.con")

        assert result.valid is False
        assert result.suggestion == "jon@gmail.com"

    def test_unrelated_domain_is_valid(self):
        assert check_email("registrar@nbsc.edu.ph").valid is True

    @pytest.mark.parametrize(
        "value,reason",
        [
            ("", "Email is required"),
            ("not-an-email", "Please enter a valid email address"),
            ("jon..doe@example.com", "Local part of email is invalid"),
            (".jon@example.com", "Local part of email is invalid"),
            ("jon@-example.com", "Email domain looks incorrect"),
        ],
    )
    def test_invalid_shapes(self, value, reason):
        result = check_email(value)

        assert result.valid is False
        assert result.reason == reason

    def test_validate_email_message_includes_suggestion(self):
        with pytest.raises(ValueError) as exc_info:
            validate_email("jon@gmial.com")

        assert "Did you mean jon@gmail.com?" in str(exc_info.value)

    def test_levenshtein_is_bounded(self):
        assert levenshtein("gmial.com", "gmail.com") == 2
        assert levenshtein("example.org", "gmail.com") == 3


class TestFieldValidators:
    """Single field rules"""

    @pytest.mark.parametrize(
        "value", ["09171234567", "+63 917 123 4567", "(0917) 123-4567"]
    )
    def test_valid_phone_numbers(self, value):
        assert validate_phone(value) == value

    @pytest.mark.parametrize("value", ["12345", "0917-ABC-4567", "+1234567890123456"])
    def test_invalid_phone_numbers(self, value):
        with pytest.raises(ValueError):
            validate_phone(value)

    def test_password_length(self):
        with pytest.raises(ValueError) as exc_info:
            validate_password("abc", "abc")

        assert str(exc_info.value) == "Password must be at least 6 characters"

    def test_password_confirmation(self):
        with pytest.raises(ValueError) as exc_info:
            validate_password("secret123", "secret124")

        assert str(exc_info.value) == "Passwords do not match"

    @pytest.mark.parametrize("year", [1979, 2031, "soon"])
    def test_graduation_year_bounds(self, year):
        with pytest.raises(ValueError):
            validate_graduation_year(year)


class TestFormValidators:
    """Whole-form validation collects every field error"""

    def test_login_requires_both_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_login({})

        assert set(exc_info.value.errors) == {"email", "password"}

    def test_registration_returns_metadata(self):
        email, password, metadata = validate_registration(registration_form())

        assert email == "maria@gmail.com"
        assert password == "secret123"
        assert metadata.first_name == "Maria"
        assert metadata.graduation_year == 2019
        assert metadata.role == "alumni"

    def test_registration_collects_errors(self):
        form = registration_form(
            email="maria@gmial.com",
            confirm_password="different",
            course="Astronomy",
            phone_number="123",
        )

        with pytest.raises(ValidationError) as exc_info:
            validate_registration(form)

        assert set(exc_info.value.errors) == {
            "email",
            "confirm_password",
            "course",
            "phone_number",
        }

    def test_registration_requires_confirmation(self):
        form = registration_form()
        del form["confirm_password"]

        with pytest.raises(ValidationError) as exc_info:
            validate_registration(form)

        assert exc_info.value.errors["confirm_password"] == "Passwords do not match"

    def test_profile_update_combines_location(self):
        clean = validate_profile_update(
            {
                "first_name": "Maria",
                "last_name": "Santos",
                "course": "BSIT",
                "graduation_year": "2019",
                "current_job": "Developer",
                "company": "Acme",
                "phone_number": "09171234567",
                "location_scope": "Philippines",
                "region": "Region 10",
                "specific_location": "Manolo Fortich, Bukidnon",
            }
        )

        assert clean["location"] == "Region 10 - Manolo Fortich, Bukidnon"
        assert clean["graduation_year"] == 2019

    def test_profile_update_requires_region_in_philippines(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_profile_update(
                {"location_scope": "Philippines", "specific_location": "Cebu"}
            )

        assert "region" in exc_info.value.errors
        assert "current_job" in exc_info.value.errors

    def test_questionnaire_international(self):
        answers = validate_questionnaire(
            {
                "scope": "International",
                "specific_location": "Dubai, UAE",
                "skills": "Accounting",
                "employment_status": "employed",
            }
        )

        assert answers.scope == LocationScope.INTERNATIONAL
        assert answers.employment_status == EmploymentStatus.EMPLOYED
        assert answers.location.format() == "International - Dubai, UAE"

    def test_questionnaire_requires_employment_status(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_questionnaire(
                {"scope": "Philippines", "region": "NCR", "specific_location": "Makati"}
            )

        assert set(exc_info.value.errors) == {"skills", "employment_status"}

    def test_decision_must_be_approve_or_deny(self):
        with pytest.raises(ValidationError):
            validate_decision({"status": "pending"})

        status, note = validate_decision({"status": "approved", "note": "<b>ok</b>"})
        assert status == DeletionStatus.APPROVED.value
        assert note == "ok"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
