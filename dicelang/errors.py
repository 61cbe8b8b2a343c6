"""dicelang exception hierarchy.

Only structural and configuration failures are raised. Problems caused by
the expression text itself are collected as diagnostics or result errors.
"""


class DiceError(Exception):
    """Base exception for all dicelang errors."""


class DiceConfigError(DiceError):
    """Raised for invalid interpreter configuration."""


class DiceInterpreterError(DiceError):
    """Raised when the interpreter meets a malformed tree or unknown function."""
