"""Configuration module for Fleet Validator.

- load_config: Fleet definition (YAML, validated)
- Settings: Environment variable configuration
"""

from fleet_validator.config.loader import load_config, parse_config
from fleet_validator.config.settings import Settings

__all__ = ["Settings", "load_config", "parse_config"]
