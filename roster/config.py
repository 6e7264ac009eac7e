"""Configuration management for the roster tool."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .credentials import PLAINTEXT_SCHEME
from .directory import DirectoryPlacement, LdapSettings
from .errors import ConfigurationError
from .models import Position
from .store import DEFAULT_DELIMITER, resolve_roster_path, validate_delimiter

logger = logging.getLogger("rosterctl.config")


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _resolve_relative(raw: str, base_path: Path | None) -> Path:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute() and base_path is not None:
        candidate = base_path / candidate
    return candidate.resolve(strict=False)


@dataclass(frozen=True)
class DirectoryConfig:
    """Directory connection details and the position placement table."""

    ldap: LdapSettings
    domain_suffix: str
    mapping: Dict[Position, DirectoryPlacement] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "DirectoryConfig":
        """Create a :class:`DirectoryConfig` from raw dictionary data."""
        required_fields = {"server", "bind_dn", "base_dn", "domain_suffix"}
        missing = required_fields - data.keys()
        if missing:
            raise ConfigurationError(
                f"Missing required directory configuration fields: {', '.join(sorted(missing))}"
            )

        port = data.get("port")
        ldap = LdapSettings(
            server=str(data["server"]),
            bind_dn=str(data["bind_dn"]),
            password=str(data.get("password") or ""),
            base_dn=str(data["base_dn"]),
            port=int(port) if port is not None else None,
            use_ssl=bool(data.get("use_ssl", True)),
            validate_certificate=bool(data.get("validate_certificate", True)),
        )

        suffix = str(data["domain_suffix"]).strip()
        if suffix and not suffix.startswith("@"):
            suffix = f"@{suffix}"

        return DirectoryConfig(
            ldap=ldap,
            domain_suffix=suffix,
            mapping=parse_mapping(data.get("mapping") or {}),
        )


def parse_mapping(raw: object) -> Dict[Position, DirectoryPlacement]:
    """Build the position placement table from its YAML representation."""

    if not isinstance(raw, Mapping):
        raise ConfigurationError("Directory mapping must be a mapping of position to placement")

    mapping: Dict[Position, DirectoryPlacement] = {}
    for key, value in raw.items():
        try:
            position = Position.parse(str(key))
        except ValueError as exc:
            raise ConfigurationError(f"Directory mapping references unknown position {key!r}") from exc

        if not isinstance(value, Mapping) or not value.get("ou"):
            raise ConfigurationError(f"Directory mapping for {position.value} must define an 'ou'")
        group = value.get("group")
        mapping[position] = DirectoryPlacement(ou=str(value["ou"]), group=str(group) if group else None)

    unmapped = [position.value for position in Position if position not in mapping]
    if unmapped:
        logger.warning(
            "No directory placement configured for position(s): %s; those accounts cannot be exported",
            ", ".join(unmapped),
        )
    return mapping


@dataclass(frozen=True)
class Settings:
    """Runtime settings injected into the roster components."""

    roster_path: Path
    delimiter: str = DEFAULT_DELIMITER
    credential_scheme: str = PLAINTEXT_SCHEME
    directory: Optional[DirectoryConfig] = None


def load_settings(config_path: Path, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from a YAML file, applying environment overrides.

    A missing configuration file yields the defaults.
    """
    env = os.environ if environ is None else environ

    raw: Dict[str, object] = {}
    if config_path.exists():
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Unable to parse configuration file {config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError("Configuration file must contain a mapping at the top level")
    else:
        logger.debug("Configuration file %s not found; using defaults", config_path)

    config_dir = config_path.parent
    roster_raw = raw.get("roster") or {}
    if not isinstance(roster_raw, Mapping):
        raise ConfigurationError("The 'roster' section must be a mapping")

    env_path = env.get("ROSTER_PATH")
    if env_path:
        roster_path = resolve_roster_path(env_path)
    elif roster_raw.get("path"):
        roster_path = _resolve_relative(str(roster_raw["path"]), config_dir)
    else:
        roster_path = resolve_roster_path(None)

    delimiter = env.get("ROSTER_DELIMITER") or str(roster_raw.get("delimiter", DEFAULT_DELIMITER))
    try:
        validate_delimiter(delimiter)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    credential_scheme = str(roster_raw.get("credential_scheme", PLAINTEXT_SCHEME))

    directory = None
    directory_raw = raw.get("directory")
    if directory_raw:
        if not isinstance(directory_raw, Mapping):
            raise ConfigurationError("The 'directory' section must be a mapping")
        directory_raw = dict(directory_raw)
        password = env.get("ROSTER_DIRECTORY_PASSWORD")
        if password:
            directory_raw["password"] = password
        if "ROSTER_DIRECTORY_VERIFY_TLS" in env:
            directory_raw["validate_certificate"] = _env_bool(env.get("ROSTER_DIRECTORY_VERIFY_TLS"), True)
        directory = DirectoryConfig.from_dict(directory_raw)

    return Settings(
        roster_path=roster_path,
        delimiter=delimiter,
        credential_scheme=credential_scheme,
        directory=directory,
    )


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "roster.yaml").resolve(strict=False)
    return candidate


__all__ = [
    "DirectoryConfig",
    "Settings",
    "load_settings",
    "parse_mapping",
    "resolve_config_path",
]
