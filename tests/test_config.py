"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from barbershop.config import (
    AppConfig,
    BookingConfig,
    FunctionsConfig,
    _safe_bool,
    _safe_int,
    _validate_config,
)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig())  # should not raise

    def test_default_booking_thresholds(self):
        booking = BookingConfig()
        assert booking.slot_step_minutes == 15
        assert booking.verification_code_ttl_minutes == 15
        assert booking.lookup_cache_ttl_hours == 24
        assert booking.stamps_per_card == 10

    def test_closing_time_not_enforced_by_default(self):
        assert BookingConfig().enforce_closing_time is False

    def test_zero_slot_step_rejected(self):
        config = replace(AppConfig(), booking=replace(BookingConfig(), slot_step_minutes=0))
        with pytest.raises(ValueError, match="SLOT_STEP_MINUTES"):
            _validate_config(config)

    def test_zero_code_ttl_rejected(self):
        config = replace(
            AppConfig(), booking=replace(BookingConfig(), verification_code_ttl_minutes=0)
        )
        with pytest.raises(ValueError, match="VERIFICATION_CODE_TTL_MINUTES"):
            _validate_config(config)

    def test_zero_cache_ttl_rejected(self):
        config = replace(AppConfig(), booking=replace(BookingConfig(), lookup_cache_ttl_hours=0))
        with pytest.raises(ValueError, match="LOOKUP_CACHE_TTL_HOURS"):
            _validate_config(config)

    def test_zero_stamps_rejected(self):
        config = replace(AppConfig(), booking=replace(BookingConfig(), stamps_per_card=0))
        with pytest.raises(ValueError, match="STAMPS_PER_CARD"):
            _validate_config(config)

    def test_non_positive_timeout_rejected(self):
        config = replace(AppConfig(), http_timeout_seconds=0)
        with pytest.raises(ValueError, match="HTTP_TIMEOUT_SECONDS"):
            _validate_config(config)

    def test_port_out_of_range_rejected(self):
        config = replace(AppConfig(), functions=replace(FunctionsConfig(), port=70000))
        with pytest.raises(ValueError, match="FUNCTIONS_PORT"):
            _validate_config(config)

    def test_config_is_frozen(self):
        config = AppConfig()
        with pytest.raises(AttributeError):
            config.log_level = "DEBUG"


class TestEnvParsing:
    def test_safe_int_reads_env(self, monkeypatch):
        monkeypatch.setenv("TEST_SLOT_STEP", "30")
        assert _safe_int("TEST_SLOT_STEP", "15") == 30

    def test_safe_int_default(self, monkeypatch):
        monkeypatch.delenv("TEST_SLOT_STEP", raising=False)
        assert _safe_int("TEST_SLOT_STEP", "15") == 15

    def test_safe_int_rejects_garbage(self, monkeypatch):
        monkeypatch.setenv("TEST_SLOT_STEP", "fifteen")
        with pytest.raises(ValueError, match="TEST_SLOT_STEP"):
            _safe_int("TEST_SLOT_STEP", "15")

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), ("YES", True), ("off", False), ("0", False),
    ])
    def test_safe_bool(self, monkeypatch, raw, expected):
        monkeypatch.setenv("TEST_FLAG", raw)
        assert _safe_bool("TEST_FLAG", "false") is expected

    def test_safe_bool_rejects_garbage(self, monkeypatch):
        monkeypatch.setenv("TEST_FLAG", "maybe")
        with pytest.raises(ValueError, match="TEST_FLAG"):
            _safe_bool("TEST_FLAG", "false")
