"""Configuration Loader - Imperative Shell.

This module handles loading configuration from YAML files and
environment variables. All I/O is contained here.

Models (Config, MatchingConfig, ...) are defined in
exposure_watch/core/config.py to keep the core free of I/O.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from exposure_watch.core.config import (
    Config,
    MatchingConfig,
    NotificationConfig,
    ThrottleConfig,
)
from exposure_watch.shell.secret_manager_client import SecretManagerClient, SecretManagerConfig


logger = logging.getLogger(__name__)


def _get_secret_manager_client() -> Optional[SecretManagerClient]:
    """Get a Secret Manager client.

    Returns None if GCP_PROJECT is not set (e.g., local development).
    """
    project_id = os.environ.get("GCP_PROJECT")
    if project_id:
        return SecretManagerClient(SecretManagerConfig(project_id=project_id))
    return None


def _resolve_value(value: Any, secret_client: Optional[SecretManagerClient] = None) -> Any:
    """Resolve a value that may contain secret or env var placeholders.

    Args:
        value: Value to resolve (may contain ${...} placeholders)
        secret_client: Client for resolving secrets

    Returns:
        Resolved value
    """
    if not isinstance(value, str):
        return value

    if secret_client:
        return secret_client.resolve(value)

    # No secret client - only handle env vars
    if value.startswith("${") and value.endswith("}"):
        var_spec = value[2:-1]
        if not var_spec.startswith("secret:"):
            env_value = os.environ.get(var_spec)
            if env_value:
                return env_value
            logger.warning("Environment variable %s not set", var_spec)

    return value


_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0", ""}


def _parse_bool(value: Any, default: bool) -> bool:
    """Parse a flag that may arrive as a YAML bool or a quoted string.

    Raises:
        ValueError: If a string is not a recognised boolean word
    """
    if value is None:
        return default
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"Invalid boolean value: {value!r}")
    return bool(value)


def _parse_matching(data: dict[str, Any]) -> MatchingConfig:
    """Parse geo matching settings from config data."""
    defaults = MatchingConfig()
    return MatchingConfig(
        intersect_milliseconds=int(
            data.get("intersect_milliseconds", defaults.intersect_milliseconds)
        ),
        intersect_milliseconds_with_cluster=int(
            data.get(
                "intersect_milliseconds_with_cluster",
                defaults.intersect_milliseconds_with_cluster,
            )
        ),
        meter_radius=float(data.get("meter_radius", defaults.meter_radius)),
        buffer_units=str(data.get("buffer_units", defaults.buffer_units)),
        intersect_with_clusters=_parse_bool(
            data.get("intersect_with_clusters"), defaults.intersect_with_clusters
        ),
        sick_geometry_lat_index=int(
            data.get("sick_geometry_lat_index", defaults.sick_geometry_lat_index)
        ),
        sick_geometry_long_index=int(
            data.get("sick_geometry_long_index", defaults.sick_geometry_long_index)
        ),
    )


def _parse_throttle(data: dict[str, Any]) -> ThrottleConfig:
    """Parse check throttle settings from config data."""
    defaults = ThrottleConfig()
    return ThrottleConfig(
        min_geo_fetch_interval_minutes=int(
            data.get("min_geo_fetch_interval_minutes", defaults.min_geo_fetch_interval_minutes)
        ),
        min_ble_fetch_interval_minutes=int(
            data.get("min_ble_fetch_interval_minutes", defaults.min_ble_fetch_interval_minutes)
        ),
    )


def _parse_notification(
    data: dict[str, Any],
    secret_client: Optional[SecretManagerClient] = None,
) -> NotificationConfig:
    """Parse notification settings from config data."""
    defaults = NotificationConfig()
    return NotificationConfig(
        webhook_url=_resolve_value(data.get("webhook_url", defaults.webhook_url), secret_client),
        title=str(data.get("title", defaults.title)),
        body=str(data.get("body", defaults.body)),
        duration=int(data.get("duration", defaults.duration)),
        unit=str(data.get("unit", defaults.unit)),
    )


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """Load configuration from a dictionary.

    This is a pure-ish function (only placeholder expansion has side effects).

    Args:
        data: Configuration dictionary

    Returns:
        Parsed Config object
    """
    secret_client = _get_secret_manager_client()

    return Config(
        fetch_interval_seconds=int(data.get("fetch_interval_seconds", 3600)),
        data_url=_resolve_value(data.get("data_url", ""), secret_client),
        feed_signing_key=_resolve_value(data.get("feed_signing_key", ""), secret_client),
        proximity_enabled=_parse_bool(data.get("proximity_enabled"), True),
        matching=_parse_matching(data.get("matching") or {}),
        throttle=_parse_throttle(data.get("throttle") or {}),
        notification=_parse_notification(data.get("notification") or {}, secret_client),
        firestore_database=data.get("firestore_database"),
        firestore_collection_prefix=data.get("firestore_collection_prefix", "exposure_watch"),
        cycle_lease_seconds=int(data.get("cycle_lease_seconds", 600)),
    )


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file.

    This method performs file I/O.

    Args:
        config_path: Path to YAML config file.
                    If None, uses CONFIG_PATH env var or default.

    Returns:
        Parsed Config object

    Raises:
        yaml.YAMLError: If config file is invalid YAML
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", "config/config.yaml")

    path = Path(config_path)

    logger.info("Loading configuration from %s", path)

    if not path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return Config()

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        logger.warning("Config file is empty, using defaults")
        return Config()

    config = load_config_from_dict(data)

    logger.info(
        "Loaded config: feed %s, cluster mode %s, proximity %s",
        config.data_url or "<unset>",
        config.matching.intersect_with_clusters,
        "enabled" if config.proximity_enabled else "disabled",
    )

    return config


def load_config_from_env() -> Config:
    """Load minimal configuration from environment variables.

    Useful for simple deployments without a YAML file.

    Environment variables:
        FEED_URL: URL of the signed sick-report feed
        FEED_SIGNING_KEY: Feed signing key (or FEED_SIGNING_KEY_SECRET for Secret Manager)
        NOTIFY_WEBHOOK_URL: Notification webhook
        METER_RADIUS: Default report radius in meters
        INTERSECT_WITH_CLUSTERS: "true" to match against clusters
        FETCH_INTERVAL_SECONDS: Period of the recurring check
        FIRESTORE_DATABASE: Firestore database name

    Returns:
        Config object from environment
    """
    secret_client = _get_secret_manager_client()

    signing_key = None
    secret_name = os.environ.get("FEED_SIGNING_KEY_SECRET")
    if secret_client and secret_name:
        signing_key = secret_client.get_secret(secret_name)
        if signing_key:
            logger.info("Using feed signing key from Secret Manager")

    if not signing_key:
        signing_key = os.environ.get("FEED_SIGNING_KEY", "")

    matching = MatchingConfig(
        meter_radius=float(os.environ.get("METER_RADIUS", "500")),
        intersect_with_clusters=_parse_bool(os.environ.get("INTERSECT_WITH_CLUSTERS"), False),
    )

    return Config(
        fetch_interval_seconds=int(os.environ.get("FETCH_INTERVAL_SECONDS", "3600")),
        data_url=os.environ.get("FEED_URL", ""),
        feed_signing_key=signing_key,
        matching=matching,
        notification=NotificationConfig(webhook_url=os.environ.get("NOTIFY_WEBHOOK_URL", "")),
        firestore_database=os.environ.get("FIRESTORE_DATABASE"),
    )
