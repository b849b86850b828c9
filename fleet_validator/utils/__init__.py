"""Utility functions for Fleet Validator."""

from fleet_validator.utils.console import ColorfulFormatter, RunFormatter
from fleet_validator.utils.shell import quote_arg

__all__ = [
    "ColorfulFormatter",
    "RunFormatter",
    "quote_arg",
]
