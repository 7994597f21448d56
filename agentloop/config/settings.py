# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Configuration management for agentloop."""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from agentloop.core.errors import ConfigurationError

ENV_PREFIX = "AGENTLOOP_"

# Directories every tenant home is expected to contain
STANDARD_DIRECTORIES = (
    "Desktop",
    "Documents",
    "Pictures",
    "Videos",
    "Music",
    "Downloads",
    "Public",
    "Trash",
)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env" if not os.getenv("AGENTLOOP_SKIP_ENV_FILE") else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Loop bounds
    max_iterations: int = Field(default=5, ge=1, description="Model calls allowed per request")

    # Extraction
    enable_intent_inference: bool = True
    inference_max_length: int = Field(default=200, ge=1)

    # Execution
    max_read_chars: int = Field(default=50000, ge=1)
    default_directory: str = "Desktop"
    parallel_tool_execution: bool = False

    # Conversation
    result_message_role: str = "user"
    include_tool_prompt: bool = True

    # Model request defaults
    model: str = "default"
    temperature: float = 0.7
    max_tokens: int = 4096

    # Logging
    log_level: str = "INFO"

    @field_validator("result_message_role")
    @classmethod
    def validate_result_role(cls, v: str) -> str:
        """Result messages are sent either as user or tool turns."""
        v = v.lower()
        if v not in ("user", "tool"):
            raise ValueError(f"result_message_role must be 'user' or 'tool', got '{v}'")
        return v

    @field_validator("default_directory")
    @classmethod
    def validate_default_directory(cls, v: str) -> str:
        """Normalize to the canonical casing of a standard directory."""
        for name in STANDARD_DIRECTORIES:
            if name.lower() == v.lower():
                return name
        raise ValueError(
            f"default_directory must be one of {', '.join(STANDARD_DIRECTORIES)}, got '{v}'"
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return v


def _read_yaml(config_file: Path) -> Dict[str, Any]:
    try:
        with open(config_file, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read {config_file}: {e}", cause=e) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_file} must contain a mapping at the top level")
    return data


def load_settings(config_file: Optional[Union[str, Path]] = None) -> Settings:
    """Load application settings.

    Values from ``config_file`` (YAML) act as defaults. Environment variables
    with the ``AGENTLOOP_`` prefix take precedence over the file.

    Args:
        config_file: Optional path to a YAML settings file

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If the file is unreadable or holds invalid values
    """
    file_values: Dict[str, Any] = {}
    if config_file is not None:
        file_values = _read_yaml(Path(config_file))

    env_keys = {key.upper() for key in os.environ}
    overrides = {
        key: value
        for key, value in file_values.items()
        if f"{ENV_PREFIX}{key}".upper() not in env_keys
    }

    try:
        return Settings(**overrides)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationError(
            f"Invalid setting '{key}': {first.get('msg')}", config_key=key, cause=e
        ) from e
