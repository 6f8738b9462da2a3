"""
Marketplace Backend — Configuration and Error Mapping Tests
============================================================

What we test:
    ✅ Settings validators normalise and reject values
    ✅ Production startup checks list every missing collaborator
    ✅ FastAPI decoding errors map to one client-facing message
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from marketplace.config import Settings
from marketplace.main import describe_request_errors


class TestSettings:
    def test_defaults_are_development_friendly(self):
        settings = Settings(database_url="sqlite+aiosqlite:///./dev.db")

        assert settings.is_sqlite
        assert settings.auth_token_ttl == timedelta(hours=24)
        assert settings.verification_token_ttl == timedelta(minutes=5)

    def test_log_level_is_uppercased(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    def test_unknown_storage_backend(self):
        with pytest.raises(ValidationError):
            Settings(storage_backend="ftp")

    def test_cors_origins_list(self):
        settings = Settings(cors_origins="http://a.test, http://b.test,")
        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_production_requirements(self):
        settings = Settings(
            env="production",
            database_url="sqlite+aiosqlite:///./prod.db",
            storage_backend="local",
            s3_bucket="",
            smtp_username="",
            smtp_password="",
        )

        with pytest.raises(ValueError) as exc_info:
            settings.validate_required_for_production()

        message = str(exc_info.value)
        assert "STORAGE_BACKEND" in message
        assert "S3_BUCKET" in message
        assert "SMTP_USERNAME" in message
        assert "PostgreSQL" in message

    def test_production_ready(self):
        Settings(
            env="production",
            database_url="postgresql+asyncpg://u:p@db/marketplace",
            storage_backend="s3",
            s3_bucket="media",
            smtp_username="mailer",
            smtp_password="secret",
        ).validate_required_for_production()


class TestDescribeRequestErrors:
    @pytest.mark.parametrize(
        "errors, expected",
        [
            ([{"type": "int_parsing", "loc": ("path", "provider_id")}], (404, "the requested resource could not be found")),
            ([{"type": "json_invalid", "loc": ("body", 12)}], (400, "body contains badly-formed JSON")),
            ([{"type": "missing", "loc": ("body",)}], (400, "body must not be empty")),
            ([{"type": "extra_forbidden", "loc": ("body", "nickname")}], (400, "body contains unknown key 'nickname'")),
            ([{"type": "model_attributes_type", "loc": ("body",)}], (400, "body must be a single JSON object")),
            ([{"type": "string_type", "loc": ("body", "email")}], (400, "body contains incorrect JSON type for field 'email'")),
            ([], (400, "bad request")),
        ],
    )
    def test_mapping(self, errors, expected):
        assert describe_request_errors(errors) == expected
