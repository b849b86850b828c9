"""Runtime settings from environment variables.

Centralized environment variable parsing and validation. Everything that
describes the fleet itself lives in the YAML fleet definition instead.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Runtime settings from environment.

    Handles parsing, validation, and defaults for all FLEET_* env vars.
    """

    # Session-oriented executors
    session_ready_timeout: float = field(default=30.0)
    session_command_timeout: float = field(default=1200.0)  # 20 minutes
    ssm_switch_user: str = field(default="ubuntu")
    debug_session: bool = field(default=False)

    # SSH
    ssh_command_timeout: float = field(default=120.0)
    ssh_persistent: bool = field(default=False)
    ssh_known_hosts: str | None = field(default=None)

    # Logging
    log_level: str = field(default="INFO")
    log_colors: bool = field(default=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with values from environment
        """
        known_hosts = os.getenv("FLEET_SSH_KNOWN_HOSTS", "").strip()
        return cls(
            session_ready_timeout=cls._get_float("FLEET_SESSION_READY_TIMEOUT", 30.0),
            session_command_timeout=cls._get_float("FLEET_SESSION_COMMAND_TIMEOUT", 1200.0),
            ssm_switch_user=os.getenv("FLEET_SSM_SWITCH_USER", "ubuntu").strip(),
            debug_session=cls._get_bool("FLEET_DEBUG_SESSION", False),
            ssh_command_timeout=cls._get_float("FLEET_SSH_COMMAND_TIMEOUT", 120.0),
            ssh_persistent=cls._get_bool("FLEET_SSH_PERSISTENT", False),
            ssh_known_hosts=os.path.expanduser(known_hosts) if known_hosts else None,
            log_level=os.getenv("FLEET_LOG_LEVEL", "INFO").upper(),
            log_colors=cls._get_bool("FLEET_LOG_COLORS", True),
        )

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        """Get a positive number of seconds from environment.

        Args:
            key: Environment variable key
            default: Default value if not set or invalid

        Returns:
            Float value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            parsed = float(value)
        except ValueError:
            logger.warning("Invalid number for %s: %s, using default %g", key, value, default)
            return default

        if parsed <= 0:
            logger.warning("%s must be > 0, got %s. Using default: %g", key, value, default)
            return default
        return parsed

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Boolean value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")
