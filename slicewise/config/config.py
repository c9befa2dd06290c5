"""
Configuration Management
========================

Hierarchical configuration system with support for:
- YAML job files
- Environment variables (and a .env file)
- Runtime overrides
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from slicewise.slicing.config import SlicerConfig

# Load .env file if it exists
load_dotenv()


class Config(BaseModel):
    """Main configuration object for a slicing job."""
    job_id: str = Field(default="default", description="Identifier used for checkpoints")
    slicer: SlicerConfig = Field(default_factory=SlicerConfig)
    checkpoint_store: str = Field(default="memory://", description="memory:// or redis+unix:///path.sock or redis://host")
    logging_level: str = Field(default="INFO", description="Logging level")
    log_dir: Optional[str] = Field(default=None, description="Directory for rotating log files")


# (environment variable, section, key, converter)
_ENV_FIELDS = [
    ("SLICEWISE_JOB_ID", None, "job_id", str),
    ("SLICEWISE_CHECKPOINT_STORE", None, "checkpoint_store", str),
    ("SLICEWISE_LOG_LEVEL", None, "logging_level", str),
    ("SLICEWISE_LOG_DIR", None, "log_dir", str),
    ("SLICEWISE_MODE", "slicer", "mode", str),
    ("SLICEWISE_INDEX", "slicer", "index", str),
    ("SLICEWISE_DATE_FIELD", "slicer", "date_field_name", str),
    ("SLICEWISE_QUERY", "slicer", "query", str),
    ("SLICEWISE_START", "slicer", "start", str),
    ("SLICEWISE_END", "slicer", "end", str),
    ("SLICEWISE_INTERVAL", "slicer", "interval", str),
    ("SLICEWISE_SIZE", "slicer", "size", int),
    ("SLICEWISE_TIME_RESOLUTION", "slicer", "time_resolution", str),
    ("SLICEWISE_KEY_TYPE", "slicer", "key_type", str),
    ("SLICEWISE_TYPE", "slicer", "type", str),
    ("SLICEWISE_SLICERS", "slicer", "slicers", int),
    ("SLICEWISE_MAX_RETRIES", "slicer", "max_retries", int),
]


class ConfigManager:
    """
    Configuration hierarchy (highest to lowest priority):
    1. Runtime overrides
    2. Environment variables (SLICEWISE_*)
    3. .env file
    4. YAML job file
    """

    @staticmethod
    def _load_yaml(file_path: Path) -> Dict[str, Any]:
        """Load YAML configuration file."""
        if not file_path.exists():
            return {}

        with open(file_path, 'r') as f:
            return yaml.safe_load(f) or {}

    @staticmethod
    def _load_env() -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}
        for env_name, section, key, convert in _ENV_FIELDS:
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            target = config.setdefault(section, {}) if section else config
            target[key] = convert(raw)
        return config

    @staticmethod
    def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    @staticmethod
    def load(config_path: Optional[Union[str, Path]] = None, override: Optional[Dict] = None) -> Config:
        """
        Load configuration with hierarchy.

        Args:
            config_path: Optional YAML job file
            override: Runtime configuration overrides

        Returns:
            Validated configuration object
        """
        config: Dict[str, Any] = {}
        if config_path is not None:
            config = ConfigManager._load_yaml(Path(config_path))

        config = ConfigManager._deep_merge(config, ConfigManager._load_env())

        if override:
            config = ConfigManager._deep_merge(config, override)

        return Config(**config)
