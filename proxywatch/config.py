"""Proxy Watch — Configuration Loader.

Loads and validates application configuration from a YAML file.
Resolves environment variables referenced via ${VAR_NAME} syntax.
Uses Python dataclasses for type-safe configuration access.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from proxywatch.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

# ── Environment Variable Pattern ─────────────────────────
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)}")

PROBE_BACKENDS = ("socks", "remote")
DEFAULT_REACHABILITY_URL = "https://api.ipify.org/"


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class MonitorConfig:
    """Settings shared by the prober, batch scheduler and dispatcher.

    Attributes:
        probe_service_url: Remote /check-ip endpoint, used by the
            "remote" probe backend.
        relay_service_url: Relay /send-webhook endpoint for the last
            dispatch stage. Empty disables the relay stage.
        relay_auth_token: Bearer token sent to both remote services.
        group_size: Probes run concurrently per group.
        inter_group_delay_ms: Pause between probe groups.
        connect_timeout_ms: Proxy connect timeout per probe.
        total_timeout_ms: Whole-probe timeout.
        probe_backend: "socks" (probe locally) or "remote".
        reachability_url: "What is my IP" service fetched through the proxy.
        alert_on_error: Send offline-style alerts for "error" probe results.
        request_timeout_ms: Timeout of a single webhook/relay POST.
    """

    probe_service_url: str = ""
    relay_service_url: str = ""
    relay_auth_token: str = ""
    group_size: int = 3
    inter_group_delay_ms: int = 1000
    connect_timeout_ms: int = 10_000
    total_timeout_ms: int = 15_000
    probe_backend: str = "socks"
    reachability_url: str = DEFAULT_REACHABILITY_URL
    alert_on_error: bool = False
    request_timeout_ms: int = 10_000


@dataclass(frozen=True)
class ScheduleConfig:
    """When the runner triggers a batch check."""

    check_interval_minutes: int
    run_on_start: bool = True


@dataclass(frozen=True)
class ServiceConfig:
    """Bind address for the HTTP service (check-ip / send-webhook)."""

    host: str = "0.0.0.0"
    port: int = 8080


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    monitor: MonitorConfig
    schedule: ScheduleConfig
    service: ServiceConfig
    database_path: str
    log_level: str


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all placeholders replaced.

    Raises:
        ValueError: If a referenced environment variable is not set.
    """
    if isinstance(value, str):
        for var_name in ENV_VAR_PATTERN.findall(value):
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '${{{var_name}}}' is required but not set. "
                    f"Add it to your .env file or export it in your shell."
                )
            value = value.replace(f"${{{var_name}}}", env_value)
        return value
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the file is empty.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Validate that all required keys exist in a config section.

    Raises:
        ValueError: If any required key is missing.
    """
    missing = [key for key in required if key not in data]
    if missing:
        raise ValueError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def build_monitor_config(data: dict[str, Any]) -> MonitorConfig:
    """Build a MonitorConfig from the 'monitor' section.

    Unset keys fall back to the dataclass defaults.

    Args:
        data: The 'monitor' section of settings.yaml.

    Returns:
        A validated MonitorConfig instance.

    Raises:
        ValueError: On an unknown backend, a non-positive group size or
            timeout, or a connect timeout longer than the total timeout.
    """
    defaults = MonitorConfig()
    config = MonitorConfig(
        probe_service_url=str(data.get("probe_service_url") or ""),
        relay_service_url=str(data.get("relay_service_url") or ""),
        relay_auth_token=str(data.get("relay_auth_token") or ""),
        group_size=int(data.get("group_size", defaults.group_size)),
        inter_group_delay_ms=int(data.get("inter_group_delay_ms", defaults.inter_group_delay_ms)),
        connect_timeout_ms=int(data.get("connect_timeout_ms", defaults.connect_timeout_ms)),
        total_timeout_ms=int(data.get("total_timeout_ms", defaults.total_timeout_ms)),
        probe_backend=str(data.get("probe_backend", defaults.probe_backend)),
        reachability_url=str(data.get("reachability_url") or defaults.reachability_url),
        alert_on_error=bool(data.get("alert_on_error", defaults.alert_on_error)),
        request_timeout_ms=int(data.get("request_timeout_ms", defaults.request_timeout_ms)),
    )

    if config.probe_backend not in PROBE_BACKENDS:
        raise ValueError(
            f"monitor.probe_backend must be one of {PROBE_BACKENDS}, "
            f"got '{config.probe_backend}'"
        )
    if config.probe_backend == "remote" and not config.probe_service_url:
        raise ValueError("monitor.probe_service_url is required for the 'remote' backend")
    if config.group_size < 1:
        raise ValueError(f"monitor.group_size must be >= 1, got {config.group_size}")
    if config.inter_group_delay_ms < 0:
        raise ValueError("monitor.inter_group_delay_ms must not be negative")
    if min(config.connect_timeout_ms, config.total_timeout_ms, config.request_timeout_ms) <= 0:
        raise ValueError("monitor timeouts must be positive")
    if config.connect_timeout_ms > config.total_timeout_ms:
        raise ValueError(
            f"monitor.connect_timeout_ms ({config.connect_timeout_ms}) exceeds "
            f"total_timeout_ms ({config.total_timeout_ms})"
        )
    return config


def _build_schedule_config(data: dict[str, Any]) -> ScheduleConfig:
    """Build a ScheduleConfig from the 'schedule' section."""
    _validate_keys(data, ["check_interval_minutes"], "schedule")

    interval = int(data["check_interval_minutes"])
    if interval < 1:
        raise ValueError(f"schedule.check_interval_minutes must be >= 1, got {interval}")

    return ScheduleConfig(
        check_interval_minutes=interval,
        run_on_start=bool(data.get("run_on_start", True)),
    )


def _build_service_config(data: dict[str, Any]) -> ServiceConfig:
    """Build a ServiceConfig from the optional 'service' section."""
    return ServiceConfig(
        host=str(data.get("host", "0.0.0.0")),
        port=int(data.get("port", 8080)),
    )


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def load_config(
    settings_path: Path | None = None,
    env_path: Path | None = None,
) -> AppConfig:
    """Load the complete application configuration.

    Loads .env, parses settings.yaml, resolves environment variables and
    returns a typed AppConfig.

    Args:
        settings_path: Override path to settings.yaml.
        env_path: Override path to the .env file.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ValueError: If required fields are missing or env vars are unset.
    """
    env_file = env_path or (PROJECT_ROOT / ".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    settings = _resolve_env_vars(_load_yaml(settings_path or SETTINGS_PATH))

    _validate_keys(settings, ["monitor", "schedule", "database", "logging"], "settings")
    _validate_keys(settings["database"], ["path"], "database")
    _validate_keys(settings["logging"], ["level"], "logging")

    config = AppConfig(
        monitor=build_monitor_config(settings["monitor"] or {}),
        schedule=_build_schedule_config(settings["schedule"]),
        service=_build_service_config(settings.get("service") or {}),
        database_path=settings["database"]["path"],
        log_level=settings["logging"]["level"],
    )

    logger.info("Configuration loaded successfully")
    logger.debug("Probe backend: %s", config.monitor.probe_backend)
    logger.debug(
        "Probe groups: %d every %dms",
        config.monitor.group_size, config.monitor.inter_group_delay_ms,
    )
    logger.debug("Relay configured: %s", bool(config.monitor.relay_service_url))

    return config
