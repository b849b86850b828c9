"""Colorful console logging formatter."""

import logging
import re
from datetime import datetime

# ANSI color codes
COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "white": "\033[37m",
    "bright_black": "\033[90m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
    "bright_yellow": "\033[93m",
    "bright_blue": "\033[94m",
    "bright_magenta": "\033[95m",
    "bright_cyan": "\033[96m",
    "bg_red": "\033[41m",
}

LEVEL_COLORS = {
    "DEBUG": COLORS["bright_black"],
    "INFO": COLORS["bright_green"],
    "WARNING": COLORS["bright_yellow"],
    "ERROR": COLORS["bright_red"],
    "CRITICAL": COLORS["bg_red"] + COLORS["white"] + COLORS["bold"],
}

# Component colors for logger names
COMPONENT_COLORS = {
    "fleet_validator.services": COLORS["bright_magenta"],
    "fleet_validator.checks": COLORS["bright_blue"],
    "fleet_validator.actions": COLORS["bright_cyan"],
    "fleet_validator.config": COLORS["green"],
    "default": COLORS["white"],
}

PACKAGE_PREFIX = "fleet_validator."

_NODE_PATTERN = re.compile(r"(\[[\w.\-]+\])")
_DURATION_PATTERN = re.compile(r"(\d+\.?\d*m?s)\b")
_EXIT_PATTERN = re.compile(r"(exit(?: code)? -?\d+)")


class ColorfulFormatter(logging.Formatter):
    """Colorful log formatter with component highlighting."""

    def __init__(self, use_colors: bool = True) -> None:
        """Initialize the formatter.

        Args:
            use_colors: Whether to use ANSI colors.
        """
        super().__init__()
        self.use_colors = use_colors

    def _colorize(self, text: str, color: str) -> str:
        if not self.use_colors:
            return text
        return f"{color}{text}{COLORS['reset']}"

    def _get_component_color(self, name: str) -> str:
        for prefix, color in COMPONENT_COLORS.items():
            if prefix != "default" and name.startswith(prefix):
                return color
        return COMPONENT_COLORS["default"]

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created)
        return f"{dt:%H:%M:%S}.{int(record.msecs):03d}"

    def _format_level(self, record: logging.LogRecord) -> str:
        level = record.levelname
        color = LEVEL_COLORS.get(level, COLORS["white"])
        return self._colorize(f"{level:<8}", color)

    def _format_component(self, record: logging.LogRecord) -> str:
        name = record.name
        if name.startswith(PACKAGE_PREFIX):
            name = name[len(PACKAGE_PREFIX):]
        color = self._get_component_color(record.name)
        return self._colorize(f"{name:<28}", color)

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with colors."""
        timestamp = self._colorize(self._format_timestamp(record), COLORS["dim"])
        level = self._format_level(record)
        component = self._format_component(record)
        sep = self._colorize("|", COLORS["dim"])
        message = self._highlight_message(record.getMessage())

        line = f"{timestamp} {sep} {level} {sep} {component} {sep} {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    def _highlight_message(self, message: str) -> str:
        """Highlight node names, durations and exit codes."""
        if not self.use_colors:
            return message

        message = _NODE_PATTERN.sub(f"{COLORS['bright_cyan']}\\1{COLORS['reset']}", message)
        message = _DURATION_PATTERN.sub(f"{COLORS['bright_yellow']}\\1{COLORS['reset']}", message)
        message = _EXIT_PATTERN.sub(f"{COLORS['bright_magenta']}\\1{COLORS['reset']}", message)
        return message


class RunFormatter(ColorfulFormatter):
    """Adds a leading indicator for notable run events."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.use_colors:
            return base

        message = record.getMessage().lower()
        if "failed" in message or "error" in message:
            return f"{COLORS['bright_red']}!!{COLORS['reset']}  {base}"
        elif "timed out" in message or "skipping" in message:
            return f"{COLORS['bright_yellow']}!{COLORS['reset']}   {base}"
        elif "completed" in message or "succeeded" in message:
            return f"{COLORS['bright_green']}OK{COLORS['reset']}  {base}"
        elif "opening" in message or "running" in message:
            return f"{COLORS['bright_cyan']}+{COLORS['reset']}   {base}"
        elif "closing" in message:
            return f"{COLORS['bright_yellow']}-{COLORS['reset']}   {base}"

        return f"    {base}"
