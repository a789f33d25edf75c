"""
Settings base class used by every service in place of pydantic_settings.

Values are resolved in this order: keyword arguments, environment variables
(including aliases), the configured ``.env`` file, then the field default.
Being a plain class, instances are easy to build directly in tests.
"""

from __future__ import annotations

import json
import os
from abc import ABC
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar, Union, get_type_hints

T = TypeVar("T", bound="BaseSettings")


class FieldInfo:
    """Information about a field in a settings class."""

    def __init__(
        self,
        default: Any = None,
        description: str = "",
        validation_alias: Optional[Union[str, list, "AliasChoices"]] = None,
        required: bool = False,
    ) -> None:
        self.default = default
        self.description = description
        self.validation_alias = validation_alias
        self.required = required


def Field(
    default: Any = None,
    *,
    description: str = "",
    validation_alias: Optional[Union[str, list, "AliasChoices"]] = None,
    **kwargs: Any,
) -> Any:
    """Create a field descriptor for settings. ``default=...`` marks it required."""
    required = default is ...
    if required:
        default = None

    return FieldInfo(
        default=default,
        description=description,
        validation_alias=validation_alias,
        required=required,
    )


class SettingsConfigDict:
    """Configuration for settings loading."""

    def __init__(
        self,
        env_file: Optional[str] = None,
        env_file_encoding: str = "utf-8",
        case_sensitive: bool = True,
        extra: str = "forbid",
    ) -> None:
        self.env_file = env_file
        self.env_file_encoding = env_file_encoding
        self.case_sensitive = case_sensitive
        self.extra = extra


class AliasChoices:
    """Helper class to provide multiple environment variable aliases."""

    def __init__(self, *choices: str) -> None:
        self.choices = list(choices)


class BaseSettings(ABC):
    """Base class for settings that loads from environment variables."""

    model_config: SettingsConfigDict = SettingsConfigDict()

    def __init__(self, **kwargs: Any) -> None:
        env_vars: Dict[str, str] = {}
        if self.model_config.env_file:
            env_vars = self._load_env_file(self.model_config.env_file)

        annotations = get_type_hints(self.__class__)

        for field_name, field_type in annotations.items():
            if field_name.startswith("_") or field_name == "model_config":
                continue

            field_info = getattr(self.__class__, field_name, None)
            if isinstance(field_info, FieldInfo):
                default_value = field_info.default
                validation_alias = field_info.validation_alias
                required = field_info.required
            else:
                default_value = field_info
                validation_alias = None
                required = False

            value = None

            if field_name in kwargs:
                value = kwargs[field_name]
            else:
                env_names = []
                if validation_alias:
                    if isinstance(validation_alias, AliasChoices):
                        env_names.extend(validation_alias.choices)
                    elif isinstance(validation_alias, list):
                        env_names.extend(validation_alias)
                    else:
                        env_names.append(validation_alias)

                env_names.append(field_name.upper())

                if not self.model_config.case_sensitive:
                    env_names.extend([name.lower() for name in env_names])

                for env_name in env_names:
                    if env_name in os.environ:
                        value = os.environ[env_name]
                        break
                    elif env_name in env_vars:
                        value = env_vars[env_name]
                        break

                if value is None:
                    if required:
                        raise ValueError(
                            f"Required field '{field_name}' not found in environment"
                        )
                    value = default_value

            if value is not None:
                value = self._convert_value(value, field_type)

            setattr(self, field_name, value)

    def _load_env_file(self, env_file_path: str) -> Dict[str, str]:
        """Load environment variables from a .env file."""
        env_vars = {}
        env_path = Path(env_file_path)

        if env_path.exists():
            with open(
                env_path, "r", encoding=self.model_config.env_file_encoding
            ) as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, value = line.split("=", 1)
                        env_vars[key.strip()] = value.strip().strip("\"'")

        return env_vars

    def _convert_value(self, value: Any, target_type: Type) -> Any:
        """Convert a string value to the target type."""
        if not isinstance(value, str):
            return value

        if target_type is bool:
            return value.lower() in ("true", "1", "yes", "on")

        if target_type is int:
            return int(value)

        if target_type is float:
            return float(value)

        if getattr(target_type, "__origin__", None) is list:
            if value.startswith("[") and value.endswith("]"):
                return json.loads(value)
            return [item.strip() for item in value.split(",") if item.strip()]

        # Optional[X]: convert to X
        if getattr(target_type, "__origin__", None) is Union:
            non_none_types = [
                arg for arg in target_type.__args__ if arg is not type(None)
            ]
            if non_none_types:
                return self._convert_value(value, non_none_types[0])

        return value
