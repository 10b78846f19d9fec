"""Configuration loading and Pydantic models for recvault."""

import os
from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, ValidationError

from recvault.errors import ConfigError

DEFAULT_CLASSIFICATION_URL = (
    "https://e-space.vn/api/web/index.php/aws-s3-api/get-class-student"
)
DEFAULT_PUBLIC_URL_TEMPLATE = "https://s3.{region}.amazonaws.com/{bucket}/{key}"


class AWSConfig(BaseModel):
    """AWS account, region and archive bucket."""

    region: str = "ap-southeast-1"
    bucket: str = ""
    access_key: str = ""
    secret_key: str = ""
    endpoint_url: str = ""


class StorageConfig(BaseModel):
    """Object store backend selection."""

    backend: str = "aws"


class RelocationConfig(BaseModel):
    """Relocation pipeline settings."""

    processed_root: str = "ADMIN_RESULT"
    media_suffix: str = ".mp4"
    source_timezone: str = "UTC"
    target_timezone: str = "Asia/Ho_Chi_Minh"
    public_url_template: str = DEFAULT_PUBLIC_URL_TEMPLATE


class ClassificationConfig(BaseModel):
    """External classification service endpoint."""

    url: str = DEFAULT_CLASSIFICATION_URL


class IdentityConfig(BaseModel):
    """Identity provisioning settings."""

    policy_arn: str = ""
    # IAM endpoint override, independent of aws.endpoint_url.
    endpoint_url: str = ""


class LoggingConfig(BaseModel):
    """Process logging and outcome log settings."""

    level: str = "INFO"
    format: str = "text"
    outcome_dir: str = "./logs"


class MetricsConfig(BaseModel):
    """Prometheus textfile output. Empty path disables writing."""

    textfile_path: str = ""


class FFprobeConfig(BaseModel):
    """Location of the ffprobe binary."""

    path: str = "ffprobe"


class RecVaultConfig(BaseModel):
    """Top-level recvault configuration."""

    aws: AWSConfig = Field(default_factory=AWSConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    relocation: RelocationConfig = Field(default_factory=RelocationConfig)
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    ffprobe: FFprobeConfig = Field(default_factory=FFprobeConfig)


def _section(data: Any, fields: tuple[str, ...]) -> dict[str, Any]:
    """Pick the known keys of a YAML section, ignoring anything else."""
    if not isinstance(data, dict):
        return {}
    return {name: data[name] for name in fields if data.get(name) is not None}


def _parse_aws(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the aws section from YAML data."""
    return _section(data, ("region", "bucket", "access_key", "secret_key", "endpoint_url"))


def _parse_relocation(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the relocation section from YAML data."""
    return _section(
        data,
        (
            "processed_root",
            "media_suffix",
            "source_timezone",
            "target_timezone",
            "public_url_template",
        ),
    )


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the logging section from YAML data."""
    return _section(data, ("level", "format", "outcome_dir"))


# Environment variable names used by existing .env deployments.
_ENV_OVERRIDES: tuple[tuple[str, str, str], ...] = (
    ("AWS_REGION", "aws", "region"),
    ("AWS_BUCKETS", "aws", "bucket"),
    ("AWS_ACCESS_KEY", "aws", "access_key"),
    ("AWS_SECRET_ACCESS_KEY", "aws", "secret_key"),
    ("AWS_IAM_POLICY", "identity", "policy_arn"),
)


def apply_env_overrides(config: RecVaultConfig, environ: Mapping[str, str]) -> None:
    """Overwrite config values with non-empty environment variables."""
    for env_name, section, attr in _ENV_OVERRIDES:
        value = environ.get(env_name)
        if value:
            setattr(getattr(config, section), attr, value)


def _validate(config: RecVaultConfig) -> None:
    for label, zone in (
        ("relocation.source_timezone", config.relocation.source_timezone),
        ("relocation.target_timezone", config.relocation.target_timezone),
    ):
        try:
            ZoneInfo(zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown timezone for {label}: {zone!r}") from exc

    if config.storage.backend not in ("aws", "memory"):
        raise ConfigError(f"Unknown storage backend: {config.storage.backend!r}")
    if config.logging.format not in ("text", "json"):
        raise ConfigError(f"Unknown log format: {config.logging.format!r}")


def load_config(
    path: Path | None = None, environ: Mapping[str, str] | None = None
) -> RecVaultConfig:
    """Load a RecVaultConfig from a YAML file plus environment overrides.

    A missing file is not an error: defaults and the environment are used.

    Args:
        path: Path to the YAML configuration file.
        environ: Environment mapping. Defaults to ``os.environ``.

    Returns:
        A fully populated RecVaultConfig validated by Pydantic.

    Raises:
        ConfigError: If the file is not valid YAML or a value is invalid.
    """
    raw: dict[str, Any] = {}
    if path is not None and path.exists():
        try:
            with open(path, "r") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Top level of {path} must be a mapping")

    try:
        config = RecVaultConfig(
            aws=AWSConfig(**_parse_aws(raw.get("aws"))),
            storage=StorageConfig(**_section(raw.get("storage"), ("backend",))),
            relocation=RelocationConfig(**_parse_relocation(raw.get("relocation"))),
            classification=ClassificationConfig(**_section(raw.get("classification"), ("url",))),
            identity=IdentityConfig(**_section(raw.get("identity"), ("policy_arn", "endpoint_url"))),
            logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
            metrics=MetricsConfig(**_section(raw.get("metrics"), ("textfile_path",))),
            ffprobe=FFprobeConfig(**_section(raw.get("ffprobe"), ("path",))),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc
    apply_env_overrides(config, os.environ if environ is None else environ)
    _validate(config)
    return config
