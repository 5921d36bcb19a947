"""Tests for utils/config.py - environment-driven configuration."""

import pytest

from utils.config import (
    AppConfig, BusinessConfig, StoreConfig,
    _safe_int, _optional, _validate_config, load_config,
)


class TestSafeInt:
    """Tests for _safe_int()."""

    def test_reads_env(self, monkeypatch):
        monkeypatch.setenv("REBUILD_MAX_TICKETS", "25")
        assert _safe_int("REBUILD_MAX_TICKETS", "200") == 25

    def test_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("REBUILD_MAX_TICKETS", raising=False)
        assert _safe_int("REBUILD_MAX_TICKETS", "200") == 200

    def test_bad_value_names_variable(self, monkeypatch):
        monkeypatch.setenv("REBUILD_MAX_TICKETS", "lots")
        with pytest.raises(ValueError, match="REBUILD_MAX_TICKETS"):
            _safe_int("REBUILD_MAX_TICKETS", "200")


class TestOptional:
    """Tests for _optional()."""

    def test_blank_is_none(self, monkeypatch):
        monkeypatch.setenv("SALON_PHONE", "   ")
        assert _optional("SALON_PHONE") is None

    def test_trimmed(self, monkeypatch):
        monkeypatch.setenv("SALON_PHONE", " 555-0100 ")
        assert _optional("SALON_PHONE") == "555-0100"


class TestValidateConfig:
    """Tests for _validate_config()."""

    def test_defaults_valid(self):
        config = load_config()
        assert 1 <= config.store.rebuild_flush_threshold <= 500

    def test_unknown_timezone(self):
        config = AppConfig(business=BusinessConfig(timezone="Mars/Olympus"))
        with pytest.raises(ValueError, match="SALON_TIMEZONE"):
            _validate_config(config)

    @pytest.mark.parametrize("threshold", [0, 501])
    def test_flush_threshold_bounds(self, threshold):
        config = AppConfig(store=StoreConfig(rebuild_flush_threshold=threshold))
        with pytest.raises(ValueError, match="REBUILD_FLUSH_THRESHOLD"):
            _validate_config(config)

    def test_max_tickets_positive(self):
        config = AppConfig(store=StoreConfig(rebuild_max_tickets=0))
        with pytest.raises(ValueError, match="REBUILD_MAX_TICKETS"):
            _validate_config(config)

    def test_max_service_items_positive(self):
        config = AppConfig(store=StoreConfig(rebuild_max_service_items=0))
        with pytest.raises(ValueError, match="REBUILD_MAX_SERVICE_ITEMS"):
            _validate_config(config)

    def test_frozen(self):
        config = load_config()
        with pytest.raises(AttributeError):
            config.log_level = "DEBUG"

    def test_unknown_log_level(self):
        config = AppConfig(log_level="LOUD")
        with pytest.raises(ValueError, match="LOG_LEVEL"):
            _validate_config(config)

    def test_log_level_case_insensitive(self):
        _validate_config(AppConfig(log_level="debug"))
