"""Tests for the central configuration loader (tiercache/config.py)."""

import os

import pytest
import yaml

from tiercache.cache import CacheManager, tier_configs_from_settings
from tiercache.config import (
    CacheSettings,
    Settings,
    TierSettings,
    _apply_dict,
    _load_yaml,
    get_settings,
    reset_settings,
)
from tiercache.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_settings():
    """Reset the singleton before and after each test."""
    reset_settings()
    yield
    reset_settings()


def _write_config(tmp_path, data):
    f = tmp_path / "config.yaml"
    f.write_text(yaml.dump(data))
    return f


# ── YAML loading ────────────────────────────────────────


class TestLoadYaml:
    def test_loads_valid_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("cache:\n  cleanup_interval_seconds: 60\n")
        data = _load_yaml(f)
        assert data["cache"]["cleanup_interval_seconds"] == 60

    def test_returns_empty_dict_for_missing_file(self, tmp_path):
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_returns_empty_dict_for_non_dict_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("- item1\n- item2\n")
        assert _load_yaml(f) == {}


# ── Settings defaults ───────────────────────────────────


class TestSettingsDefaults:
    def test_default_tiers(self):
        s = Settings()
        assert set(s.cache.tiers) == {"master", "api", "computed"}
        assert s.cache.tiers["master"].ttl_seconds == 1800
        assert s.cache.tiers["api"].ttl_seconds == 300
        assert s.cache.tiers["computed"].ttl_seconds == 600
        assert all(t.max_entries == 100 for t in s.cache.tiers.values())
        assert s.cache.cleanup_interval_seconds == 300
        assert s.logging.level == "INFO"

    def test_defaults_are_not_shared(self):
        a, b = CacheSettings(), CacheSettings()
        a.tiers["api"].ttl_seconds = 1
        assert b.tiers["api"].ttl_seconds == 300


# ── get_settings() from YAML ────────────────────────────


class TestGetSettings:
    def test_loads_yaml_values(self, tmp_path):
        cfg = _write_config(tmp_path, {
            "cache": {
                "cleanup_interval_seconds": 30,
                "tiers": {"api": {"ttl_seconds": 120}},
            },
            "logging": {"level": "DEBUG"},
        })
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.cache.cleanup_interval_seconds == 30
        assert s.cache.tiers["api"].ttl_seconds == 120
        assert s.cache.tiers["api"].max_entries == 100
        assert s.logging.level == "DEBUG"

    def test_yaml_can_declare_new_tier(self, tmp_path):
        cfg = _write_config(tmp_path, {
            "cache": {"tiers": {"sessions": {"ttl_seconds": 60, "max_entries": 10}}},
        })
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.cache.tiers["sessions"].max_entries == 10
        assert "master" in s.cache.tiers

    def test_malformed_tiers_rejected(self, tmp_path):
        cfg = _write_config(tmp_path, {"cache": {"tiers": ["api"]}})
        with pytest.raises(ConfigurationError):
            get_settings(yaml_path=cfg, _force_reload=True)

    def test_malformed_tier_entry_rejected(self, tmp_path):
        cfg = _write_config(tmp_path, {"cache": {"tiers": {"api": 5}}})
        with pytest.raises(ConfigurationError, match="cache.tiers.api"):
            get_settings(yaml_path=cfg, _force_reload=True)

    def test_missing_yaml_uses_defaults(self, tmp_path):
        s = get_settings(yaml_path=tmp_path / "nope.yaml", _force_reload=True)
        assert s.cache.tiers["api"].ttl_seconds == 300

    def test_singleton_returns_same_object(self, tmp_path):
        cfg = _write_config(tmp_path, {"cache": {"cleanup_interval_seconds": 5}})
        s1 = get_settings(yaml_path=cfg, _force_reload=True)
        s2 = get_settings()
        assert s1 is s2

    def test_force_reload_reloads(self, tmp_path):
        cfg = _write_config(tmp_path, {"cache": {"cleanup_interval_seconds": 11}})
        assert get_settings(yaml_path=cfg, _force_reload=True).cache.cleanup_interval_seconds == 11

        cfg.write_text(yaml.dump({"cache": {"cleanup_interval_seconds": 22}}))
        assert get_settings(yaml_path=cfg, _force_reload=True).cache.cleanup_interval_seconds == 22

    def test_dotenv_file_loaded(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TIERCACHE_LOGGING_LEVEL", raising=False)
        env = tmp_path / ".env"
        env.write_text("TIERCACHE_LOGGING_LEVEL=WARNING\n")
        cfg = _write_config(tmp_path, {})
        try:
            s = get_settings(yaml_path=cfg, env_path=env, _force_reload=True)
            assert s.logging.level == "WARNING"
        finally:
            os.environ.pop("TIERCACHE_LOGGING_LEVEL", None)


# ── Environment variable overrides ──────────────────────


class TestEnvOverrides:
    def test_env_override_section_value(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {"cache": {"cleanup_interval_seconds": 300}})
        monkeypatch.setenv("TIERCACHE_CACHE_CLEANUP_INTERVAL_SECONDS", "45")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.cache.cleanup_interval_seconds == 45.0

    def test_env_override_tier(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {"cache": {"tiers": {"api": {"ttl_seconds": 300}}}})
        monkeypatch.setenv("TIERCACHE_TIER_API_TTL_SECONDS", "90")
        monkeypatch.setenv("TIERCACHE_TIER_API_MAX_ENTRIES", "7")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.cache.tiers["api"].ttl_seconds == 90.0
        assert s.cache.tiers["api"].max_entries == 7

    def test_invalid_env_override_ignored(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {})
        monkeypatch.setenv("TIERCACHE_TIER_MASTER_MAX_ENTRIES", "lots")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.cache.tiers["master"].max_entries == 100

    def test_fractional_override_on_integer_yaml_value(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {
            "cache": {
                "cleanup_interval_seconds": 300,
                "tiers": {"api": {"ttl_seconds": 300}},
            },
        })
        monkeypatch.setenv("TIERCACHE_TIER_API_TTL_SECONDS", "0.5")
        monkeypatch.setenv("TIERCACHE_CACHE_CLEANUP_INTERVAL_SECONDS", "2.5")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.cache.tiers["api"].ttl_seconds == 0.5
        assert s.cache.cleanup_interval_seconds == 2.5


# ── _apply_dict helper ──────────────────────────────────


class TestApplyDict:
    def test_applies_known_keys(self):
        target = TierSettings()
        _apply_dict(target, {"ttl_seconds": 12, "max_entries": 3})
        assert target.ttl_seconds == 12
        assert target.max_entries == 3

    def test_ignores_unknown_keys(self):
        target = TierSettings()
        _apply_dict(target, {"unknown_field": "value"})
        assert target.max_entries == 100


# ── Settings -> tier configs ────────────────────────────


class TestTierConfigs:
    def test_settings_build_manager(self):
        manager = CacheManager.from_settings(Settings())
        assert sorted(manager.tier_names) == ["api", "computed", "master"]
        assert manager.get_tier("master").ttl_seconds == 1800

    def test_invalid_tier_settings_rejected(self):
        s = Settings()
        s.cache.tiers["api"].ttl_seconds = -1
        with pytest.raises(ConfigurationError, match="api"):
            tier_configs_from_settings(s)


# ── Integration: real config/config.yaml ─────────────────


class TestRealConfig:
    def test_loads_project_config_yaml(self):
        """The shipped config/config.yaml mirrors the built-in defaults."""
        s = get_settings(_force_reload=True)
        assert s.cache.tiers["master"].ttl_seconds == 1800
        assert s.cache.tiers["api"].ttl_seconds == 300
        assert s.cache.tiers["computed"].ttl_seconds == 600
        assert s.cache.cleanup_interval_seconds == 300
