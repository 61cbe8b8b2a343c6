"""Interpreter limits and their TOML loading.

Options come either from code (`InterpreterOptions(...)`), from a plain
mapping, or from a TOML file holding a `[dicelang]` table (or
`[tool.dicelang]` when the file is a pyproject.toml).
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import DiceConfigError

logger = logging.getLogger("dicelang.config")

DEFAULT_MAX_ITERATIONS = 1000


@dataclass(frozen=True)
class InterpreterOptions:
    max_roll_times: Optional[int] = None
    max_dice_sides: Optional[int] = None
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    def __post_init__(self) -> None:
        _check_limit(self.max_roll_times, name="max_roll_times", optional=True)
        _check_limit(self.max_dice_sides, name="max_dice_sides", optional=True)
        _check_limit(self.max_iterations, name="max_iterations", optional=False)


_KNOWN_KEYS = frozenset({"max_roll_times", "max_dice_sides", "max_iterations"})


def _check_limit(value: Any, *, name: str, optional: bool) -> None:
    if value is None and optional:
        return
    if not isinstance(value, int) or isinstance(value, bool):
        raise DiceConfigError(f"Expected {name} to be an integer.")
    if value < 1:
        raise DiceConfigError(f"Expected {name} to be positive, got {value}.")


def _as_table(value: Any, *, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DiceConfigError(f"Expected [{name}] to be a table.")
    return value


def options_from_mapping(data: Mapping[str, Any]) -> InterpreterOptions:
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise DiceConfigError(f"Unknown option(s): {', '.join(unknown)}.")
    return InterpreterOptions(
        max_roll_times=data.get("max_roll_times"),
        max_dice_sides=data.get("max_dice_sides"),
        max_iterations=data.get("max_iterations", DEFAULT_MAX_ITERATIONS),
    )


def load_options(path: Path) -> InterpreterOptions:
    """Load options from a TOML file; a file without a dicelang table yields defaults."""
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise DiceConfigError(f"Config file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise DiceConfigError(f"Invalid TOML in {path}: {e}") from e

    if "dicelang" in raw:
        table = _as_table(raw["dicelang"], name="dicelang")
    else:
        tool = _as_table(raw.get("tool"), name="tool")
        table = _as_table(tool.get("dicelang"), name="tool.dicelang")
    logger.debug("loaded options from %s: %s", path, table)
    return options_from_mapping(table)
