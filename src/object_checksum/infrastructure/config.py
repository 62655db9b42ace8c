"""Configuration management for the checksum service using Pydantic Settings."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from object_checksum.domain.errors import ConfigurationError
from object_checksum.domain.value_objects import (
    ChecksumOptions,
    DigestAlgorithm,
    MetadataKeys,
)


_SIZE_UNITS = {
    "": 1,
    "B": 1,
    "KB": 1024,
    "KIB": 1024,
    "MB": 1024**2,
    "MIB": 1024**2,
    "GB": 1024**3,
    "GIB": 1024**3,
    "TB": 1024**4,
    "TIB": 1024**4,
}
_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*([A-Za-z]*)\s*$")


def parse_size(value: int | str) -> int:
    """Parse a byte size such as ``10485760``, ``"64MB"`` or ``"5GiB"``.

    Units are binary (1KB == 1024 bytes).

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    if isinstance(value, int):
        return value
    match = _SIZE_PATTERN.match(str(value))
    if match is None:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = match.groups()
    multiplier = _SIZE_UNITS.get(unit.upper())
    if multiplier is None:
        raise ValueError(f"Unknown size unit in {value!r}")
    return int(number) * multiplier


class ChecksumConfig(BaseSettings):
    """Checksum computation configuration."""

    model_config = SettingsConfigDict(env_prefix="OBJECT_CHECKSUM_")

    buffer_size: int = Field(
        default=10 * 1024 * 1024, gt=0, description="Read buffer size in bytes (default 10MB)"
    )
    part_size: int = Field(
        default=5 * 1024**3, gt=0, description="Bytes hashed per invocation (default 5GB)"
    )
    digest_algorithm: DigestAlgorithm = Field(
        default=DigestAlgorithm.SHA256, description="Digest algorithm: SHA256, MD5"
    )
    rehash_completed: bool = Field(
        default=False, description="Recompute objects that already carry a final hash"
    )

    @field_validator("buffer_size", "part_size", mode="before")
    @classmethod
    def _parse_size(cls, value: int | str) -> int:
        return parse_size(value)

    @field_validator("digest_algorithm", mode="before")
    @classmethod
    def _parse_algorithm(cls, value: str | DigestAlgorithm) -> DigestAlgorithm:
        try:
            return DigestAlgorithm.parse(value)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e


class MetadataKeysConfig(BaseSettings):
    """Object metadata key names."""

    model_config = SettingsConfigDict(env_prefix="OBJECT_CHECKSUM_METADATA_KEY_")

    hash: str | None = Field(
        default=None, description="Final hash key (default: lowercase algorithm name)"
    )
    partial_hash: str = "partial-hash"
    hash_progress: str = "hash-progress"


class StoreConfig(BaseSettings):
    """Object store backend configuration."""

    model_config = SettingsConfigDict(env_prefix="OBJECT_CHECKSUM_STORE_")

    backend: Literal["memory", "filesystem"] = "filesystem"
    data_dir: Path = Path("/var/lib/object_checksum/data")


class ServerConfig(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(env_prefix="OBJECT_CHECKSUM_SERVER_")

    host: str = "0.0.0.0"
    port: int = Field(default=9010, ge=1, le=65535)
    run_continuation_worker: bool = True


class ObservabilityConfig(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(env_prefix="OBJECT_CHECKSUM_OBSERVABILITY_")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"
    otlp_endpoint: str = ""
    environment: str = "development"


class Config(BaseSettings):
    """Root configuration for the checksum service."""

    model_config = SettingsConfigDict(
        env_prefix="OBJECT_CHECKSUM_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    checksum: ChecksumConfig = Field(default_factory=ChecksumConfig)
    metadata_keys: MetadataKeysConfig = Field(default_factory=MetadataKeysConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    def checksum_options(self) -> ChecksumOptions:
        """Build the orchestrator options from this configuration.

        Raises:
            ConfigurationError: If the metadata key names are invalid.
        """
        algorithm = self.checksum.digest_algorithm
        keys = MetadataKeys(
            final_hash=self.metadata_keys.hash or algorithm.metadata_key,
            partial_hash=self.metadata_keys.partial_hash,
            progress=self.metadata_keys.hash_progress,
        )
        return ChecksumOptions(
            part_size=self.checksum.part_size,
            buffer_size=self.checksum.buffer_size,
            algorithm=algorithm,
            metadata_keys=keys,
            rehash_completed=self.checksum.rehash_completed,
        )


def load_config() -> Config:
    """Load configuration from the environment.

    Raises:
        ConfigurationError: If any setting is missing, unparsable or out of range.
    """
    try:
        config = Config()
        config.checksum_options()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    return config


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return load_config()
