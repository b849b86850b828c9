"""Run context for Fleet Validator.

Holds the loaded fleet and its executor for the lifetime of one run, in
place of module-level globals.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType

from fleet_validator.checks import CheckContext
from fleet_validator.config import Settings, load_config
from fleet_validator.models import FleetConfig
from fleet_validator.protocols import CommandExecutor
from fleet_validator.services import create_executor

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Container for a run's fleet definition and executor.

    Example:
        async with RunContext.create("hosts.yaml") as ctx:
            await ctx.executor.exec_on_all("uptime")
    """

    config: FleetConfig
    executor: CommandExecutor
    settings: Settings = field(default_factory=Settings)
    _closed: bool = field(default=False, init=False, repr=False)

    @classmethod
    def create(cls, config_path: Path | str, settings: Settings | None = None) -> "RunContext":
        """Load the fleet definition and build its executor.

        Args:
            config_path: Path to the fleet YAML file
            settings: Runtime settings (default: from environment)

        Raises:
            ConfigError: If the fleet definition is invalid
            MixedTransportError: If the fleet mixes transports
        """
        settings = settings if settings is not None else Settings.from_env()
        config = load_config(config_path)
        executor = create_executor(config.nodes, settings)
        return cls(config=config, executor=executor, settings=settings)

    def check_context(self) -> CheckContext:
        return CheckContext(config=self.config, executor=self.executor)

    async def cleanup(self) -> None:
        """Close the executor. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        logger.debug("Closing executor")
        await self.executor.close()

    async def __aenter__(self) -> "RunContext":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.cleanup()
