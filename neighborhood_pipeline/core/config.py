#!/usr/bin/env python3

"""
Configuration management for the neighborhood pipeline.

Centralized configuration with support for file-based configuration
and environment variable overrides.
"""

import os
import json
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any

import yaml

from .exceptions import ConfigurationError
from .identifiers import validate_separator


@dataclass
class PipelineConfig:
    """Centralized configuration for the neighborhood pipeline."""

    # Identifier grammar
    separator: str = "_"
    neighborhood_tag: str = "nbhd"
    group_tag: str = "fam"
    qualify_ids: bool = True

    # Neighborhood construction
    merge_distance: int = 0  # bp
    flank: int = 0  # bp

    # Annotation parsing
    target_feature_type: str = "gene"
    name_field: str = "ID"

    # Similarity post-processing
    min_similarity: float = 0.0
    rescale_similarity: bool = False

    # Performance settings
    memory_limit_mb: int = 4096
    batch_size: int = 1000
    enable_memory_monitoring: bool = True

    # Advanced settings
    debug_mode: bool = False

    @classmethod
    def from_file(cls, config_path: str) -> 'PipelineConfig':
        """Load configuration from file (JSON or YAML)."""
        if not os.path.exists(config_path):
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, 'r') as f:
                if config_path.lower().endswith(('.yaml', '.yml')):
                    config_data = yaml.safe_load(f)
                else:
                    config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid configuration file format: {e}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML configuration file format: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error loading configuration: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'PipelineConfig':
        """Create configuration from dictionary."""
        # Filter out unknown keys
        known_keys = set(cls.__dataclass_fields__.keys())
        filtered_dict = {k: v for k, v in config_dict.items() if k in known_keys}

        try:
            return cls(**filtered_dict)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration parameters: {e}")

    @classmethod
    def from_env(cls) -> 'PipelineConfig':
        """Load configuration from environment variables."""
        config = cls()

        def as_bool(value: str) -> bool:
            return value.lower() in ('true', '1', 'yes')

        env_mappings = {
            'NEIGHBORHOOD_SEPARATOR': ('separator', str),
            'NEIGHBORHOOD_TAG': ('neighborhood_tag', str),
            'NEIGHBORHOOD_GROUP_TAG': ('group_tag', str),
            'NEIGHBORHOOD_MERGE_DISTANCE': ('merge_distance', int),
            'NEIGHBORHOOD_FLANK': ('flank', int),
            'NEIGHBORHOOD_MIN_SIMILARITY': ('min_similarity', float),
            'NEIGHBORHOOD_MEMORY_LIMIT_MB': ('memory_limit_mb', int),
            'NEIGHBORHOOD_BATCH_SIZE': ('batch_size', int),
            'NEIGHBORHOOD_DEBUG_MODE': ('debug_mode', as_bool),
        }

        for env_var, (field_name, converter) in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value:
                try:
                    setattr(config, field_name, converter(env_value))
                except (ValueError, TypeError) as e:
                    raise ConfigurationError(f"Invalid environment variable {env_var}: {e}")

        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    def save_to_file(self, config_path: str) -> None:
        """Save configuration to file."""
        config_dict = self.to_dict()

        try:
            with open(config_path, 'w') as f:
                if config_path.lower().endswith(('.yaml', '.yml')):
                    yaml.safe_dump(config_dict, f, default_flow_style=False)
                else:
                    json.dump(config_dict, f, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Error saving configuration: {e}")

    def validate(self) -> None:
        """Validate configuration parameters."""
        validate_separator(self.separator)

        for name in ('neighborhood_tag', 'group_tag'):
            value = getattr(self, name)
            if not value:
                raise ConfigurationError(f"{name} cannot be empty")
            if self.separator in value:
                raise ConfigurationError(f"{name} must not contain the separator {self.separator!r}")

        if self.merge_distance < 0:
            raise ConfigurationError("merge_distance must be >= 0")

        if self.flank < 0:
            raise ConfigurationError("flank must be >= 0")

        if not self.target_feature_type or not self.name_field:
            raise ConfigurationError("target_feature_type and name_field must be set")

        if not 0 <= self.min_similarity < 1:
            raise ConfigurationError("min_similarity must be between 0 (inclusive) and 1 (exclusive)")

        if self.memory_limit_mb < 100:
            raise ConfigurationError("memory_limit_mb must be >= 100")

        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be >= 1")

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.validate()


def load_config(config_path: Optional[str] = None,
                use_env: bool = True) -> PipelineConfig:
    """
    Load configuration with priority: file > environment > defaults.

    Args:
        config_path: Path to configuration file (optional)
        use_env: Whether to load environment variables

    Returns:
        PipelineConfig: Loaded configuration
    """
    # Start with defaults
    config = PipelineConfig()

    # Override with environment variables if requested
    if use_env:
        env_config = PipelineConfig.from_env()
        for field_name in PipelineConfig.__dataclass_fields__.keys():
            env_value = getattr(env_config, field_name)
            if env_value != getattr(config, field_name):
                setattr(config, field_name, env_value)

    # Override with file configuration if provided
    if config_path:
        file_config = PipelineConfig.from_file(config_path)
        for field_name in PipelineConfig.__dataclass_fields__.keys():
            setattr(config, field_name, getattr(file_config, field_name))

    return config
