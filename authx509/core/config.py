"""Application configuration management.

Loads configuration from config.yaml files and environment variables.
Environment variables take precedence over config file settings.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from authx509.core.mapper import MapperConfig

logger = logging.getLogger(__name__)

# Default config locations
DEFAULT_CONFIG_DIR = Path.home() / ".authx509"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

# Environment variable prefix
ENV_PREFIX = "AUTHX509_"


@dataclass
class ServerSettings:
    """Server configuration settings."""

    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False
    client_cert_header: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServerSettings:
        """Create ServerSettings from a dictionary."""
        return cls(
            host=data.get("host", "127.0.0.1"),
            port=data.get("port", 8080),
            debug=data.get("debug", False),
            client_cert_header=data.get("client_cert_header") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "client_cert_header": self.client_cert_header,
        }


@dataclass
class LoggingSettings:
    """Logging configuration settings."""

    level: str = "INFO"
    trace: bool = False
    file: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoggingSettings:
        """Create LoggingSettings from a dictionary."""
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            trace=data.get("trace", False),
            file=Path(data["file"]) if data.get("file") else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "level": self.level,
            "trace": self.trace,
            "file": str(self.file) if self.file else None,
        }


@dataclass
class AppConfig:
    """Main application configuration."""

    server: ServerSettings = field(default_factory=ServerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    mapper: MapperConfig = field(default_factory=MapperConfig)
    config_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], config_path: Path | None = None) -> AppConfig:
        """Create AppConfig from a dictionary."""
        return cls(
            server=ServerSettings.from_dict(data.get("server") or {}),
            logging=LoggingSettings.from_dict(data.get("logging") or {}),
            mapper=MapperConfig.from_dict(data.get("mapper") or {}),
            config_path=config_path,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "server": self.server.to_dict(),
            "logging": self.logging.to_dict(),
            "mapper": self.mapper.to_dict(),
        }

    def save(self, path: Path | None = None) -> None:
        """Save configuration to a YAML file.

        Args:
            path: Path to save to. Uses config_path or default if not specified.
        """
        save_path = path or self.config_path or DEFAULT_CONFIG_FILE
        save_path.parent.mkdir(parents=True, exist_ok=True)

        with open(save_path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def _get_env_bool(key: str, default: bool) -> bool:
    """Get a boolean from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _get_env_int(key: str, default: int) -> int:
    """Get an integer from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _apply_mapper_env(mapper: MapperConfig) -> MapperConfig:
    """Override mapper options from environment variables."""
    options = mapper.to_dict()
    options["parse_san_emails"] = _get_env_bool(
        f"{ENV_PREFIX}PARSE_SAN_EMAILS", mapper.parse_san_emails
    )
    options["parse_policy"] = _get_env_bool(f"{ENV_PREFIX}PARSE_POLICY", mapper.parse_policy)
    options["export_eppn"] = _get_env_bool(f"{ENV_PREFIX}EXPORT_EPPN", mapper.export_eppn)

    if os.environ.get(f"{ENV_PREFIX}CERT_NAME_ATTRIBUTE"):
        options["cert_name_attribute"] = os.environ[f"{ENV_PREFIX}CERT_NAME_ATTRIBUTE"]

    return MapperConfig.from_dict(options)


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load application configuration.

    Configuration is loaded in this order (later values override earlier):
    1. Default values
    2. config.yaml file (if exists)
    3. Environment variables

    Args:
        config_path: Path to config file. Uses default if not specified.

    Returns:
        AppConfig with merged settings.
    """
    config = AppConfig()

    file_path = config_path or DEFAULT_CONFIG_FILE
    if file_path.exists():
        try:
            with open(file_path) as f:
                data = yaml.safe_load(f) or {}
            config = AppConfig.from_dict(data, config_path=file_path)
        except (OSError, yaml.YAMLError, AttributeError, TypeError) as e:
            # If config file is invalid, use defaults
            logger.warning(f"Ignoring invalid config file {file_path}: {e}")

    # Server settings
    if os.environ.get(f"{ENV_PREFIX}HOST"):
        config.server.host = os.environ[f"{ENV_PREFIX}HOST"]

    if os.environ.get(f"{ENV_PREFIX}PORT"):
        config.server.port = _get_env_int(f"{ENV_PREFIX}PORT", config.server.port)

    config.server.debug = _get_env_bool(f"{ENV_PREFIX}DEBUG", config.server.debug)

    if os.environ.get(f"{ENV_PREFIX}CLIENT_CERT_HEADER"):
        config.server.client_cert_header = os.environ[f"{ENV_PREFIX}CLIENT_CERT_HEADER"]

    # Logging settings
    if os.environ.get(f"{ENV_PREFIX}LOG_LEVEL"):
        config.logging.level = os.environ[f"{ENV_PREFIX}LOG_LEVEL"].upper()

    # Mapper settings
    config.mapper = _apply_mapper_env(config.mapper)

    return config


def get_default_config_yaml() -> str:
    """Get the default config.yaml content as a string.

    Useful for generating example configuration files.
    """
    return """\
# authx509 Configuration File
# Environment variables override these settings (prefix: AUTHX509_)

server:
  # Server bind address
  host: "127.0.0.1"

  # Server port
  port: 8080

  # Enable debug mode (not recommended for production)
  debug: false

  # Request header carrying the client certificate PEM, set by the
  # TLS-terminating proxy. SSL_CLIENT_CERT from the WSGI environ is
  # always checked first. Disabled by default: only enable it when every
  # request passes through a proxy that overwrites this header, otherwise
  # clients can send any certificate they like.
  # client_cert_header: "X-SSL-Client-Cert"

logging:
  # ERROR, INFO, DEBUG or TRACE
  level: "INFO"

  # Log full client certificates at TRACE level
  trace: false

  # Optional log file
  # file: ~/.authx509/authx509.log

mapper:
  # Subject RDN supplying the display name
  cert_name_attribute: "CN"

  # Assertion attribute names
  assertion_name_attribute: "displayName"
  assertion_dn_attribute: "distinguishedName"
  assertion_issuer_dn_attribute: "voPersonCertificateIssuerDN"
  assertion_assurance_attribute: "eduPersonAssurance"

  # Subject organization; set to "" to disable
  assertion_o_attribute: "o"

  # Extract email addresses from the Subject Alternative Name
  parse_san_emails: true

  # Extract certificate policy OIDs as assurance values
  parse_policy: true

  # Split a user@scope token out of the display name as eduPersonPrincipalName
  export_eppn: false
"""
