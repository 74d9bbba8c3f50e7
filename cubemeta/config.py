"""Metastore client configuration."""

from __future__ import annotations

from configparser import ConfigParser
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .logging import LOG_LEVELS

__all__ = ["MetastoreConfig", "ENABLE_CACHING_KEY", "CONFIG_SECTION"]

# Dotted option name accepted next to `enable_caching`
ENABLE_CACHING_KEY = "cube.metastore.enable.cache"

CONFIG_SECTION = "metastore"


class MetastoreConfig(BaseModel):
    """Configuration of a `CubeMetastoreClient`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enable_caching: bool = Field(
        True, description="Keep a write-through cache of catalog rows and entities"
    )
    log: str | None = Field(None, description="Path to a log file")
    log_level: str | None = Field(None, description="Package log level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str | None) -> str | None:
        if v is not None and v.lower() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level '{v}'")
        return v.lower() if v else v

    @classmethod
    def from_options(cls, options: dict[str, Any] | None) -> MetastoreConfig:
        """Create configuration from a dictionary of options. Both the
        field names and the dotted ``cube.metastore.enable.cache`` key are
        accepted."""
        options = dict(options or {})
        if ENABLE_CACHING_KEY in options:
            options["enable_caching"] = options.pop(ENABLE_CACHING_KEY)

        try:
            return cls(**options)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid metastore configuration: {e}") from e

    @classmethod
    def from_file(cls, path: str) -> MetastoreConfig:
        """Read configuration from the ``[metastore]`` section of an INI
        file. A file without the section yields the defaults."""
        parser = ConfigParser()
        if not parser.read(path):
            raise ConfigurationError(f"Unable to read configuration file '{path}'")

        if not parser.has_section(CONFIG_SECTION):
            return cls()

        options: dict[str, Any] = dict(parser.items(CONFIG_SECTION))
        for key in ("enable_caching", ENABLE_CACHING_KEY):
            if key in options:
                try:
                    options[key] = parser.getboolean(CONFIG_SECTION, key)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Option '{key}' must be a boolean in '{path}'"
                    ) from e

        return cls.from_options(options)
