"""Fleet definition loader.

Reads the YAML fleet file and validates it against the models in
``fleet_validator.models.node``.
"""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from fleet_validator.errors import ConfigError
from fleet_validator.models import FleetConfig

logger = logging.getLogger(__name__)


def load_config(config_path: Path | str) -> FleetConfig:
    """Load and validate a fleet definition.

    Args:
        config_path: Path to the YAML file

    Returns:
        Validated, immutable fleet definition

    Raises:
        ConfigError: If the file is missing, is not YAML, or fails validation
    """
    path = Path(config_path).expanduser()
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    config = parse_config(raw)
    logger.debug("Loaded %d node(s) from %s", len(config.nodes), path)
    return config


def parse_config(raw: object) -> FleetConfig:
    """Validate an already-parsed document.

    Raises:
        ConfigError: With one ``  <path>: <message>`` line per issue
    """
    try:
        return FleetConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config:\n{format_validation_errors(e)}") from e


def format_validation_errors(error: ValidationError) -> str:
    """Render pydantic issues as an indented, dotted-path listing."""
    lines = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue["loc"]) or "<root>"
        lines.append(f"  {location}: {issue['msg']}")
    return "\n".join(lines)
