"""
Central configuration loader for tiercache.

Reads ``config/config.yaml`` and ``.env``, merges environment-variable
overrides (``TIERCACHE_`` prefix), and exposes a typed :class:`Settings`
singleton via :func:`get_settings`.

Settings are read once.  A :class:`~tiercache.cache.manager.CacheManager`
copies its tier layout at construction, so reloading settings never
reshapes a live manager.
"""

import logging
import os
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from tiercache.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Resolve project root (directory containing ``config/``)
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent          # tiercache/
_PROJECT_ROOT = _THIS_DIR.parent                     # repo root


def _project_path(*parts: str) -> Path:
    """Build an absolute path relative to the project root."""
    return _PROJECT_ROOT.joinpath(*parts)


# ---------------------------------------------------------------------------
# Nested settings dataclasses
# ---------------------------------------------------------------------------


@dataclass
class TierSettings:
    ttl_seconds: float = 300.0
    max_entries: int = 100


def _default_tiers() -> Dict[str, TierSettings]:
    return {
        "master": TierSettings(ttl_seconds=1800.0, max_entries=100),
        "api": TierSettings(ttl_seconds=300.0, max_entries=100),
        "computed": TierSettings(ttl_seconds=600.0, max_entries=100),
    }


@dataclass
class CacheSettings:
    cleanup_interval_seconds: float = 300.0
    tiers: Dict[str, TierSettings] = field(default_factory=_default_tiers)


@dataclass
class LoggingSettings:
    level: str = "INFO"


@dataclass
class Settings:
    """Top-level settings container."""
    cache: CacheSettings = field(default_factory=CacheSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def _load_yaml(path: Path) -> Dict[str, Any]:
    """Read and parse a YAML file.  Returns ``{}`` if the file is missing."""
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


def _apply_dict(target: object, data: Dict[str, Any]) -> None:
    """Apply *data* values onto a dataclass instance, ignoring unknown keys."""
    for key, value in data.items():
        if not hasattr(target, key):
            continue
        setattr(target, key, value)


def _apply_tiers(cache: CacheSettings, data: Any) -> None:
    """Overlay the ``cache.tiers`` mapping.

    Known tiers keep their defaults for keys the YAML leaves out; unknown
    names declare new tiers.
    """
    if data is None:
        return
    if not isinstance(data, dict):
        raise ConfigurationError("cache.tiers must be a mapping of tier name to settings")
    for name, tier_data in data.items():
        if not isinstance(tier_data, dict):
            raise ConfigurationError(f"cache.tiers.{name} must be a mapping")
        tier = cache.tiers.setdefault(str(name), TierSettings())
        _apply_dict(tier, tier_data)


# ---------------------------------------------------------------------------
# Env-var overrides
#   TIERCACHE_<SECTION>_<KEY>         e.g. TIERCACHE_CACHE_CLEANUP_INTERVAL_SECONDS
#   TIERCACHE_TIER_<NAME>_<KEY>       e.g. TIERCACHE_TIER_API_TTL_SECONDS
# ---------------------------------------------------------------------------

_FLAT_SECTIONS = ["cache", "logging"]

_TYPE_MAP = {
    int: int,
    float: float,
    bool: lambda v: v.lower() in ("1", "true", "yes"),
    str: str,
}


def _override_fields(target: object, prefix: str) -> None:
    """Apply ``<prefix><FIELD>`` env vars, cast to each field's declared type."""
    for f in fields(target):
        cast = _TYPE_MAP.get(f.type)
        if cast is None:
            continue
        env_key = prefix + f.name.upper()
        env_val = os.environ.get(env_key)
        if env_val is None:
            continue
        try:
            setattr(target, f.name, cast(env_val))
            logger.debug("Env override applied: %s=%s", env_key, env_val)
        except (ValueError, TypeError):
            logger.warning("Invalid env override %s=%s", env_key, env_val)


def _apply_env_overrides(settings: Settings) -> None:
    """Override scalar fields and per-tier values from ``TIERCACHE_*`` env vars."""
    for section_name in _FLAT_SECTIONS:
        section = getattr(settings, section_name, None)
        if section is None:
            continue
        _override_fields(section, f"TIERCACHE_{section_name.upper()}_")

    for name, tier in settings.cache.tiers.items():
        _override_fields(tier, f"TIERCACHE_TIER_{name.upper()}_")


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Optional[Settings] = None
_lock = threading.Lock()


def get_settings(
    *,
    yaml_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
    _force_reload: bool = False,
) -> Settings:
    """Return the process-wide :class:`Settings` singleton.

    On first call (or when ``_force_reload=True``) the function:

    1. Calls ``load_dotenv()`` to populate env vars from ``.env``.
    2. Reads ``config/config.yaml``.
    3. Applies ``TIERCACHE_*`` environment-variable overrides.

    Args:
        yaml_path: Override the YAML config file path (testing).
        env_path: Override the ``.env`` file path (testing).
        _force_reload: Re-read everything even if already loaded.

    Returns:
        The global ``Settings`` instance.

    Raises:
        ConfigurationError: If the ``cache.tiers`` section is malformed.
    """
    global _settings

    if _settings is not None and not _force_reload:
        return _settings

    with _lock:
        if _settings is not None and not _force_reload:
            return _settings

        # 1. Load .env
        dotenv_path = env_path or _project_path(".env")
        load_dotenv(dotenv_path, override=True)

        # 2. Read YAML
        config_path = yaml_path or _project_path("config", "config.yaml")
        raw = _load_yaml(config_path)

        # 3. Build Settings with defaults, then overlay YAML values
        settings = Settings()

        cache_data = raw.get("cache")
        if isinstance(cache_data, dict):
            _apply_dict(
                settings.cache,
                {k: v for k, v in cache_data.items() if k != "tiers"},
            )
            _apply_tiers(settings.cache, cache_data.get("tiers"))

        logging_data = raw.get("logging")
        if isinstance(logging_data, dict):
            _apply_dict(settings.logging, logging_data)

        # 4. Apply TIERCACHE_* env-var overrides
        _apply_env_overrides(settings)

        _settings = settings
        logger.info(
            "Settings loaded from %s",
            config_path,
            extra={"tiers": sorted(settings.cache.tiers)},
        )
        return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for testing)."""
    global _settings
    with _lock:
        _settings = None
