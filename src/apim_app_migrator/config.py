"""
Run configuration.

Read from a TOML file (``environment.toml`` by default) and validated with
pydantic, so a missing or mistyped field fails before any request is sent.
"""

import tomllib
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_CONFIG_FILE = Path("environment.toml")


class ApimConfig(BaseModel):
    """Connection to the API Manager instance."""

    hostname: str = Field(description="Base URL, e.g. https://localhost:9443")
    verify_ssl: bool = Field(default=True, description="Verify the server TLS certificate")
    timeout: float = Field(default=60.0, gt=0, description="Per-request timeout in seconds")
    throttle_seconds: float = Field(
        default=1.0, ge=0, description="Minimum interval before export and map-keys calls"
    )

    @field_validator("hostname")
    def strip_hostname(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("hostname must not be empty")
        return v


class RegistrationConfig(BaseModel):
    """Identity used for dynamic client registration."""

    callback_url: str
    client_name: str
    owner: str
    grant_types: str
    saas_app: bool = True


class ExportConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    with_keys: bool = Field(default=True, alias="withKeys")


class ImportConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    preserve_owner: bool = Field(default=True, alias="preserveOwner")
    skip_subscriptions: bool = Field(default=False, alias="skipSubscriptions")
    skip_application_keys: bool = Field(default=False, alias="skipApplicationKeys")
    update: bool = Field(default=True)


class LogConfig(BaseModel):
    response: bool = Field(default=False, description="Log every response body")
    debug: bool = Field(default=False, description="Log archive metadata and mapping details")


class PathsConfig(BaseModel):
    archive_dir: Path = Path("exported")
    log_dir: Path = Path("logs")


class MigratorConfig(BaseModel):
    """Top-level configuration of a migration run."""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str
    scopes: str
    keymanagers: List[str] = Field(default_factory=list)
    apim: ApimConfig
    dynamic_client_registration: RegistrationConfig
    export: ExportConfig = Field(default_factory=ExportConfig)
    import_: ImportConfig = Field(default_factory=ImportConfig, alias="import")
    log: LogConfig = Field(default_factory=LogConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)

    @field_validator("keymanagers")
    def unique_keymanagers(cls, v: List[str]) -> List[str]:
        seen: List[str] = []
        for km in v:
            km = km.strip()
            if km and km not in seen:
                seen.append(km)
        return seen


def parse_config(raw: dict, source: str = "<config>") -> MigratorConfig:
    try:
        return MigratorConfig.model_validate(raw)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ConfigError(f"Invalid configuration in {source} ({fields})", cause=e) from e


def load_config(path: Path = DEFAULT_CONFIG_FILE) -> MigratorConfig:
    """Read and validate the TOML configuration file."""
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}", cause=e) from e
    except OSError as e:
        raise ConfigError(f"Cannot read configuration {path}", cause=e) from e

    return parse_config(raw, source=str(path))
