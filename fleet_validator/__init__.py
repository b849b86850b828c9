"""Fleet Validator: run commands and validation checks against rollup nodes."""

__version__ = "0.1.0"
