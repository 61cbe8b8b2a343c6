"""Function table consulted by the interpreter for Function nodes.

A function receives the interpreter and the Function node, and evaluates
whichever argument children it needs through `interpreter.evaluate`.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Callable, Dict, Iterator, Mapping, Optional, Union

from .ast import Node

if TYPE_CHECKING:  # pragma: no cover
    from .interpreter import DiceInterpreter

Number = Union[int, float]
DiceFunction = Callable[["DiceInterpreter", Node], Number]


class FunctionTable(Mapping[str, DiceFunction]):
    """Immutable name -> function mapping."""

    def __init__(self, functions: Optional[Mapping[str, DiceFunction]] = None) -> None:
        self._functions: Dict[str, DiceFunction] = dict(functions or {})

    def __getitem__(self, name: str) -> DiceFunction:
        return self._functions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def merge(self, overrides: Optional[Mapping[str, DiceFunction]]) -> "FunctionTable":
        """Return a new table where entries from `overrides` replace ours of the same name."""
        merged = dict(self._functions)
        merged.update(overrides or {})
        return FunctionTable(merged)


def round_half_up(value: Number) -> int:
    """Round to the nearest integer, ties towards positive infinity (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def _single_argument(interpreter: "DiceInterpreter", node: Node) -> Optional[Number]:
    name = node.get_attribute("name")
    if node.child_count() != 1:
        interpreter.report_error(f"Function {name} expects 1 argument, got {node.child_count()}.")
        return None
    return interpreter.evaluate(node.get_child(0))


def _abs(interpreter: "DiceInterpreter", node: Node) -> Number:
    value = _single_argument(interpreter, node)
    return 0 if value is None else abs(value)


def _ceil(interpreter: "DiceInterpreter", node: Node) -> Number:
    value = _single_argument(interpreter, node)
    return 0 if value is None else math.ceil(value)


def _floor(interpreter: "DiceInterpreter", node: Node) -> Number:
    value = _single_argument(interpreter, node)
    return 0 if value is None else math.floor(value)


def _round(interpreter: "DiceInterpreter", node: Node) -> Number:
    value = _single_argument(interpreter, node)
    return 0 if value is None else round_half_up(value)


def _sqrt(interpreter: "DiceInterpreter", node: Node) -> Number:
    value = _single_argument(interpreter, node)
    if value is None:
        return 0
    if value < 0:
        interpreter.report_error(f"Cannot take the square root of {value}.")
        return 0
    return math.sqrt(value)


DEFAULT_FUNCTIONS = FunctionTable(
    {
        "abs": _abs,
        "ceil": _ceil,
        "floor": _floor,
        "round": _round,
        "sqrt": _sqrt,
    }
)
