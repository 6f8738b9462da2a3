"""
Marketplace Backend — Validator Unit Tests
===========================================

What we test:
    ✅ First error per field wins
    ✅ Generic helpers (permitted values, duplicates, regex checks)
    ✅ Duration parsing accepts compact spans and rejects junk
    ✅ Entity rules: users, providers, business hours, categories
"""

from datetime import time, timedelta

import pytest

from marketplace.exceptions import FailedValidationError
from marketplace.schemas.auth import RegisterRequest
from marketplace.schemas.provider import BusinessHourRequest, ProviderCreateRequest
from marketplace.services.category_service import validate_category
from marketplace.services.provider_service import validate_business_hour, validate_provider
from marketplace.services.user_service import validate_user
from marketplace.validator import (
    CATEGORY_RX,
    EMAIL_RX,
    PHONE_RX,
    Validator,
    has_duplicates,
    matches,
    parse_duration,
    permitted_value,
)


class TestValidatorCore:
    def test_first_error_for_a_key_is_kept(self):
        v = Validator()
        v.check(False, "name", "must be provided")
        v.check(False, "name", "must not be more than 100 bytes long")
        assert v.errors == {"name": "must be provided"}

    def test_valid_until_an_error_is_added(self):
        v = Validator()
        v.check(True, "name", "never recorded")
        assert v.valid()
        v.add_error("email", "must be provided")
        assert not v.valid()

    def test_raise_if_invalid_carries_field_map(self):
        v = Validator()
        v.add_error("price", "must be greater than zero")
        with pytest.raises(FailedValidationError) as exc_info:
            v.raise_if_invalid()
        assert exc_info.value.errors == {"price": "must be greater than zero"}
        assert exc_info.value.status_code == 422

    def test_raise_if_invalid_is_silent_when_valid(self):
        Validator().raise_if_invalid()


class TestHelpers:
    def test_permitted_value(self):
        assert permitted_value("client", "client", "provider")
        assert not permitted_value("admin", "client", "provider")

    def test_has_duplicates(self):
        assert has_duplicates([1, 2, 1])
        assert not has_duplicates([1, 2, 3])
        assert not has_duplicates([])

    @pytest.mark.parametrize("email", ["ada@example.com", "a.b+tag@mail.co.uk"])
    def test_email_accepts(self, email):
        assert matches(email, EMAIL_RX)

    @pytest.mark.parametrize("email", ["", "ada", "ada@", "@example.com", "ada@exa mple.com"])
    def test_email_rejects(self, email):
        assert not matches(email, EMAIL_RX)

    def test_phone_requires_ten_digits(self):
        assert matches("5551234567", PHONE_RX)
        assert not matches("555123456", PHONE_RX)
        assert not matches("555-123-4567", PHONE_RX)

    def test_category_allows_letters_digits_spaces(self):
        assert matches("Hair Colour 2", CATEGORY_RX)
        assert not matches("Nails!", CATEGORY_RX)


class TestParseDuration:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("30m", timedelta(minutes=30)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("1.5h", timedelta(hours=1, minutes=30)),
            ("90s", timedelta(seconds=90)),
            ("0", timedelta(0)),
            ("-15m", -timedelta(minutes=15)),
        ],
    )
    def test_parses(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "30", "30 minutes", "1h30", "-", "h", "99999999999999h"])
    def test_rejects(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestUserRules:
    def _draft(self, **overrides):
        data = {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@example.com",
            "phone_number": None,
            "password": "pa55word!",
            "role": "client",
        }
        data.update(overrides)
        return RegisterRequest(**data)

    def test_valid_draft(self):
        v = Validator()
        validate_user(v, self._draft())
        assert v.valid()

    def test_password_bounds_are_bytes(self):
        v = Validator()
        validate_user(v, self._draft(password="short"))
        assert v.errors["password"] == "must be at least 8 bytes long"

        v = Validator()
        # 37 two-byte characters: 74 bytes
        validate_user(v, self._draft(password="é" * 37))
        assert v.errors["password"] == "must not be more than 72 bytes long"

    def test_unknown_role(self):
        v = Validator()
        validate_user(v, self._draft(role="admin"))
        assert v.errors == {"role": "invalid role value"}

    def test_email_fits_its_column(self):
        v = Validator()
        validate_user(v, self._draft(email="a" * 250 + "@example.com"))
        assert v.errors == {"email": "must not be more than 255 bytes long"}

    def test_optional_phone_is_still_checked_when_given(self):
        v = Validator()
        validate_user(v, self._draft(phone_number="12345"))
        assert v.errors == {"phone_number": "must be a valid 10 digit phone number"}


class TestProviderRules:
    def _draft(self, **overrides):
        data = {
            "name": "Shear Genius",
            "email": "hello@shear.example",
            "phone_number": "5559876543",
            "description": "Cuts",
        }
        data.update(overrides)
        return ProviderCreateRequest(**data)

    def test_valid_without_coordinates(self):
        v = Validator()
        validate_provider(v, self._draft())
        assert v.valid()

    def test_latitude_range(self):
        v = Validator()
        validate_provider(v, self._draft(latitude=91.0, longitude=0.0))
        assert v.errors == {"latitude": "must be between -90 and 90"}

    def test_coordinates_come_in_pairs(self):
        v = Validator()
        validate_provider(v, self._draft(latitude=10.0))
        assert v.errors == {"longitude": "must be provided together with latitude"}

    def test_missing_fields(self):
        v = Validator()
        validate_provider(v, self._draft(name="", email="", phone_number=""))
        assert v.errors == {
            "name": "must be provided",
            "email": "must be provided",
            "phone_number": "must be provided",
        }


class TestBusinessHourRules:
    def test_open_day_needs_ordered_times(self):
        v = Validator()
        validate_business_hour(
            v, BusinessHourRequest(day_of_week=1, open_time=time(17), close_time=time(9))
        )
        assert v.errors == {"close_time": "must be after open_time"}

    def test_closed_day_must_not_have_times(self):
        v = Validator()
        validate_business_hour(
            v, BusinessHourRequest(day_of_week=0, is_closed=True, open_time=time(9))
        )
        assert v.errors == {"open_time": "must be empty when closed"}

    def test_day_range(self):
        v = Validator()
        validate_business_hour(
            v, BusinessHourRequest(day_of_week=7, open_time=time(9), close_time=time(17))
        )
        assert v.errors == {"day_of_week": "must be between 0 (Sunday) and 6 (Saturday)"}


class TestCategoryRules:
    @pytest.mark.parametrize(
        "name, message",
        [
            ("", "must be provided"),
            ("ab", "must be at least 3 bytes long"),
            ("x" * 51, "must not be more than 50 bytes long"),
            ("Nails & Toes", "must contain only letters, numbers and spaces"),
        ],
    )
    def test_rejects(self, name, message):
        v = Validator()
        validate_category(v, name)
        assert v.errors == {"category": message}

    def test_accepts(self):
        v = Validator()
        validate_category(v, "Haircut")
        assert v.valid()
