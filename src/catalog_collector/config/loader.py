"""Configuration loader for job argument files and dictionaries."""

import json
import re
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import ValidationError

from .settings import JobSettings
from ..core.errors import FatalError
from ..utils.logging import get_logger


class ConfigurationError(FatalError):
    """Raised when job configuration is missing or invalid."""
    pass


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_key(key: str) -> str:
    """Turn a job argument name into a settings field name.

    ``TargetBaseAddress``, ``targetBaseAddress``, ``target-base-address`` and
    ``target_base_address`` all map to ``target_base_address``.
    """
    key = key.strip().lstrip("-")
    key = _CAMEL_BOUNDARY.sub("_", key)
    return key.replace("-", "_").lower()


class ConfigLoader:
    """Loads and validates job settings from various sources."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def load_from_file(self, file_path: Union[str, Path], **overrides: Any) -> JobSettings:
        """Load settings from a JSON or YAML file.

        Values from the file take precedence over the environment; keyword
        overrides take precedence over both.

        Raises:
            ConfigurationError: If the file cannot be read or validated
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ConfigurationError(f"Configuration file not found: {file_path}")

        self.logger.info("Loading configuration from file", file_path=str(file_path))

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                if file_path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                elif file_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported file format: {file_path.suffix}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

        data.update(overrides)
        return self.load_from_dict(data)

    def load_from_dict(self, data: Dict[str, Any]) -> JobSettings:
        """Load settings from a dictionary of job arguments.

        Raises:
            ConfigurationError: If the arguments do not validate
        """
        arguments = {
            normalize_key(key): value
            for key, value in data.items()
            if value is not None
        }

        unknown = sorted(set(arguments) - set(JobSettings.model_fields))
        if unknown:
            self.logger.warning("Ignoring unknown job arguments", arguments=unknown)

        try:
            settings = JobSettings(**arguments)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid job configuration: {e}") from e

        self.logger.info(
            "Configuration loaded",
            feed_root=settings.feed_root,
            collector=settings.collector,
            dont_store_cursor=settings.dont_store_cursor
        )
        return settings

    def load_from_env(self, **overrides: Any) -> JobSettings:
        """Load settings from the environment and optional overrides."""
        return self.load_from_dict(overrides)
