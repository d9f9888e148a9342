"""Configuration for connecting to Paralus.

Loads pctl-style settings from environment variables or from a pctl config
JSON file. The resulting ParalusConfig is passed explicitly to every
ParalusClient; nothing reads it from global state afterwards.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from models import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class ParalusConfig:
    """Connection settings for one Paralus installation."""

    profile: str = ""
    rest_endpoint: str = ""
    ops_endpoint: str = ""
    api_key: str = field(default="", repr=False)
    api_secret: str = field(default="", repr=False)  # Never log secret
    partner: str = ""
    organization: str = ""
    skip_server_cert_valid: bool = False

    @classmethod
    def from_env(cls) -> "ParalusConfig":
        """Load from environment variables.

        PCTL_CONFIG_JSON, when set, points at a pctl config file that takes
        precedence over the individual variables.
        """
        config_json = os.getenv("PCTL_CONFIG_JSON", "")
        if config_json:
            logger.debug("Using pctl config json %s", config_json)
            return cls.from_file(config_json)

        return cls(
            profile=os.getenv("PCTL_PROFILE", ""),
            rest_endpoint=os.getenv("PCTL_REST_ENDPOINT", ""),
            ops_endpoint=os.getenv("PCTL_OPS_ENDPOINT", ""),
            api_key=os.getenv("PCTL_API_KEY", ""),
            api_secret=os.getenv("PCTL_API_SECRET", ""),
            partner=os.getenv("PCTL_PARTNER", ""),
            organization=os.getenv("PCTL_ORGANIZATION", ""),
            skip_server_cert_valid=_as_bool(
                os.getenv("PCTL_SKIP_SERVER_CERT_VALID", "false")
            ),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "ParalusConfig":
        """Load from a pctl config JSON file (as downloaded from the UI)."""
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"error parsing config_json file {path}: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParalusConfig":
        """Create from a pctl config mapping."""
        return cls(
            profile=data.get("profile", ""),
            rest_endpoint=data.get("rest_endpoint", ""),
            ops_endpoint=data.get("ops_endpoint", ""),
            api_key=data.get("api_key", ""),
            api_secret=data.get("api_secret", ""),
            partner=data.get("partner", ""),
            organization=data.get("organization", ""),
            skip_server_cert_valid=_as_bool(data.get("skip_server_cert_valid")),
        )

    def validate(self) -> "ParalusConfig":
        """Raise ConfigurationError naming the first missing setting."""
        required = (
            ("profile", "profile name not defined"),
            ("api_key", "api key not defined"),
            ("api_secret", "api secret not defined"),
            ("partner", "partner not defined"),
            ("rest_endpoint", "rest endpoint not defined"),
            ("ops_endpoint", "ops endpoint not defined"),
        )
        for attr, message in required:
            if not getattr(self, attr):
                raise ConfigurationError(message)
        return self

    @property
    def base_url(self) -> str:
        """REST endpoint as a URL, defaulting to https when no scheme is given."""
        endpoint = self.rest_endpoint.rstrip("/")
        if "://" not in endpoint:
            endpoint = f"https://{endpoint}"
        return endpoint

    def as_log_dict(self) -> dict[str, object]:
        """Settings safe to log (no credentials)."""
        return {
            "partner": self.partner,
            "rest_endpoint": self.rest_endpoint,
            "ops_endpoint": self.ops_endpoint,
            "organization": self.organization,
            "profile": self.profile,
            "skip_server_cert_valid": self.skip_server_cert_valid,
        }


@dataclass(frozen=True)
class OperatorSettings:
    """Operator runtime settings."""

    watch_namespace: str = ""
    metrics_port: int = 9090
    reconcile_interval: int = 300

    @classmethod
    def from_env(cls) -> "OperatorSettings":
        """Load from environment variables."""
        return cls(
            watch_namespace=os.getenv("WATCH_NAMESPACE", ""),
            metrics_port=int(os.getenv("METRICS_PORT", "9090")),
            reconcile_interval=int(os.getenv("PARALUS_RECONCILE_INTERVAL", "300")),
        )
