"""
Configuration management for the stagehand operator.

Loads and validates ~/.stagehand/config.yaml (or $STAGEHAND_HOME/config.yaml).
Secrets such as the registry password are read from the .env file next to the
config, and any STAGEHAND_<FIELD> environment variable overrides the file.
"""

import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv


class ConfigError(Exception):
    """Configuration validation error."""
    pass


BUILDER_KINDS = ("lifecycle", "image")
LOG_FORMATS = ("structured", "pretty")

ENV_PREFIX = "STAGEHAND_"


@dataclass
class StagehandConfig:
    """Complete operator configuration."""

    # Namespaces created for playbooks are "<prefix><playbook name>"
    namespace_prefix: str = "amp-"
    field_manager: str = "stagehand"

    # Requeue policy (seconds)
    requeue_interval: float = 120.0
    error_backoff: float = 60.0
    max_backoff: float = 900.0
    # Tick of the periodic timer that runs due passes
    timer_interval: float = 10.0

    # Image registry
    registry_host: str = "harbor.amp-system.svc.cluster.local"
    registry_project: str = "library"
    registry_username: Optional[str] = None
    registry_password: Optional[str] = None
    registry_insecure: bool = False
    registry_timeout: float = 10.0

    # Builders
    builder: str = "lifecycle"
    lifecycle_image: str = "paketobuildpacks/builder-jammy-base:latest"
    git_image: str = "alpine/git:latest"
    cluster_builder: str = "amp-default-cluster-builder"
    service_account: str = "default"

    # Partner manifests
    manifest_url: str = "{repository}/raw/{revision}/{path}"
    manifest_timeout: float = 10.0

    # Credentials
    docker_config: Optional[str] = None
    credential_refresh_interval: float = 300.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "pretty"
    log_file: Optional[str] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StagehandConfig":
        """Build a config from a mapping, collecting unknown keys in `extra`."""
        known = {f.name for f in fields(cls) if f.name != "extra"}
        values = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        return cls(**values, extra=extra)

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> None:
        """Override fields from STAGEHAND_<FIELD> environment variables."""
        environ = os.environ if environ is None else environ
        for f in fields(self):
            if f.name == "extra":
                continue
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            current = getattr(self, f.name)
            setattr(self, f.name, _coerce(raw, current))

    def validate(self) -> None:
        """Validate the configuration."""
        if self.builder not in BUILDER_KINDS:
            raise ConfigError(
                f"Unknown builder '{self.builder}', expected one of {BUILDER_KINDS}"
            )

        for name in ("requeue_interval", "error_backoff", "max_backoff",
                     "timer_interval", "credential_refresh_interval"):
            if float(getattr(self, name)) <= 0:
                raise ConfigError(f"{name} must be positive")

        if self.max_backoff < self.error_backoff:
            raise ConfigError("max_backoff must not be smaller than error_backoff")

        if not self.registry_host:
            raise ConfigError("registry_host is required")

        if self.log_format not in LOG_FORMATS:
            raise ConfigError(
                f"Unknown log_format '{self.log_format}', expected one of {LOG_FORMATS}"
            )

        for placeholder in ("{repository}", "{revision}"):
            if placeholder not in self.manifest_url:
                raise ConfigError(f"manifest_url must contain {placeholder}")

    def registry_scheme(self) -> str:
        """Return the URL scheme used to reach the registry."""
        return "http" if self.registry_insecure else "https"

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """Serialize to a dictionary, hiding the registry password by default."""
        data = asdict(self)
        if redact and data.get("registry_password"):
            data["registry_password"] = "********"
        if not data["extra"]:
            data.pop("extra")
        return data

    def __repr__(self) -> str:
        return (
            f"StagehandConfig(builder={self.builder}, registry={self.registry_host}, "
            f"requeue_interval={self.requeue_interval})"
        )


def _coerce(raw: str, current: Any) -> Any:
    """Coerce an environment string to the type of the current value."""
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, int):
        return int(raw)
    return raw


def get_stagehand_home() -> Path:
    """Return the stagehand home directory ($STAGEHAND_HOME or ~/.stagehand)."""
    return Path(os.environ.get("STAGEHAND_HOME", Path.home() / ".stagehand")).expanduser()


def load_config(config_path: Optional[Path] = None) -> StagehandConfig:
    """
    Load operator configuration.

    Missing config files are not an error: defaults apply, then the .env file
    and STAGEHAND_* environment variables.

    Args:
        config_path: Path to config file. Defaults to $STAGEHAND_HOME/config.yaml

    Returns:
        Validated StagehandConfig instance

    Raises:
        ConfigError: If the file is unreadable or the result is invalid
    """
    home = get_stagehand_home()
    if config_path is None:
        config_path = home / "config.yaml"
    config_path = Path(config_path)

    data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file must contain a mapping: {config_path}")

    env_file = data.pop("env_file", None) or home / ".env"
    if Path(env_file).expanduser().exists():
        load_dotenv(Path(env_file).expanduser(), override=False)

    try:
        config = StagehandConfig.from_dict(data)
        config.apply_env()
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}")

    config.validate()
    return config
