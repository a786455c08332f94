"""
Configuration loading and models for Errors & Echoes.

Version: 0.1.0

Settings live in ``echoes.yaml``. Storage and editing of that file belong to
the host; this module only reads it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from echoes.core.endpoints import EndpointRegistration
from echoes.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "echoes.yaml"


def _known(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    """Keep only keys that are fields of ``cls`` to avoid TypeError."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in (data or {}).items() if k in names}


@dataclass
class AttributionConfig:
    """Configuration for stack parsing and attribution.

    Attributes:
        plugin_markers: Directory names holding one folder per plugin.
        core_markers: Directory names identifying host-internal code.
        max_frames: Frames parsed per trace before truncating.
    """

    plugin_markers: list[str] = field(default_factory=lambda: ["modules"])
    core_markers: list[str] = field(default_factory=lambda: ["common", "client"])
    max_frames: int = 500


@dataclass
class ReportingConfig:
    """Consent and privacy settings. Reporting is opt-in."""

    enabled: bool = False
    privacy_level: str = "standard"


@dataclass
class DispatchConfig:
    """Configuration for report delivery.

    Attributes:
        timeout_seconds: Per-endpoint delivery timeout.
        probe_timeout_seconds: Connectivity probe timeout.
        user_agent_product: Product token in the User-Agent header.
        verify_tls: Verify HTTPS certificates.
    """

    timeout_seconds: float = 10.0
    probe_timeout_seconds: float = 5.0
    user_agent_product: str = "ErrorsAndEchoes"
    verify_tls: bool = True


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    path: Optional[str] = None


@dataclass
class EchoesConfig:
    """Global configuration."""

    attribution: AttributionConfig = field(default_factory=AttributionConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    endpoints: list[EndpointRegistration] = field(default_factory=list)
    host: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EchoesConfig:
        """Create a config object from a dictionary.

        Endpoints that fail validation are dropped with an error log.
        """
        reporting_data = dict(data.get("reporting") or {})
        # Accept the camelCase key used by the host settings
        if "privacyLevel" in reporting_data and "privacy_level" not in reporting_data:
            reporting_data["privacy_level"] = reporting_data.pop("privacyLevel")

        endpoints: list[EndpointRegistration] = []
        for raw in data.get("endpoints") or []:
            try:
                endpoints.append(EndpointRegistration.from_dict(raw or {}))
            except ConfigurationError as e:
                logger.error("Ignoring endpoint entry: %s", e)

        return cls(
            attribution=AttributionConfig(**_known(AttributionConfig, data.get("attribution") or {})),
            reporting=ReportingConfig(**_known(ReportingConfig, reporting_data)),
            dispatch=DispatchConfig(**_known(DispatchConfig, data.get("dispatch") or {})),
            logging=LoggingConfig(**_known(LoggingConfig, data.get("logging") or {})),
            endpoints=endpoints,
            host=dict(data.get("host") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "attribution": {
                "plugin_markers": list(self.attribution.plugin_markers),
                "core_markers": list(self.attribution.core_markers),
                "max_frames": self.attribution.max_frames,
            },
            "reporting": {
                "enabled": self.reporting.enabled,
                "privacy_level": self.reporting.privacy_level,
            },
            "dispatch": {
                "timeout_seconds": self.dispatch.timeout_seconds,
                "probe_timeout_seconds": self.dispatch.probe_timeout_seconds,
                "user_agent_product": self.dispatch.user_agent_product,
                "verify_tls": self.dispatch.verify_tls,
            },
            "logging": {"level": self.logging.level, "path": self.logging.path},
            "endpoints": [e.to_dict() for e in self.endpoints],
            "host": dict(self.host),
        }

    def get_endpoint(self, name: str) -> Optional[EndpointRegistration]:
        for endpoint in self.endpoints:
            if endpoint.name == name:
                return endpoint
        return None


def get_config_path(path: Path | str | None = None) -> Path:
    """Resolve a config file path; a directory means ``<dir>/echoes.yaml``."""
    candidate = Path(path) if path else Path.cwd()
    if candidate.is_dir():
        return candidate / CONFIG_FILE_NAME
    return candidate


def load_config(path: Path | str | None = None) -> EchoesConfig:
    """Load configuration from a YAML file.

    A missing file yields defaults. An unreadable or invalid file is logged
    and also yields defaults.
    """
    config_path = get_config_path(path)

    if not config_path.is_file():
        logger.debug("No config file found at %s, using defaults.", config_path)
        return EchoesConfig()

    logger.info("Loading config from %s", config_path)
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError("Config root must be a mapping", details={"path": str(config_path)})
        return EchoesConfig.from_dict(data)
    except (OSError, yaml.YAMLError, ConfigurationError, TypeError, ValueError) as e:
        logger.error("Failed to load config file: %s", e)
        return EchoesConfig()
