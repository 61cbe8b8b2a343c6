"""dicelang: parse and roll tabletop dice expressions.

Usage: ``roll("4d6kh3 + 2").total``; ``parse`` exposes the tree and its
diagnostics without rolling.
"""

from __future__ import annotations

from typing import Mapping, Optional

from .ast import FATE, Node, NodeType, create_node
from .config import InterpreterOptions, load_options, options_from_mapping
from .diagnostics import Diagnostic
from .errors import DiceConfigError, DiceError, DiceInterpreterError
from .functions import DEFAULT_FUNCTIONS, DiceFunction, FunctionTable
from .generator import DiceGenerator
from .interpreter import DiceInterpreter, DiceResult
from .lexer import Lexer, Token, TokenStream, TokenType
from .parser import DiceParser, ParseResult, parse
from .random_provider import DefaultRandomProvider, RandomProvider

__all__ = [
    "DEFAULT_FUNCTIONS",
    "FATE",
    "DefaultRandomProvider",
    "DiceConfigError",
    "DiceError",
    "DiceFunction",
    "DiceGenerator",
    "DiceInterpreter",
    "DiceInterpreterError",
    "DiceParser",
    "DiceResult",
    "Diagnostic",
    "FunctionTable",
    "InterpreterOptions",
    "Lexer",
    "Node",
    "NodeType",
    "ParseResult",
    "RandomProvider",
    "Token",
    "TokenStream",
    "TokenType",
    "create_node",
    "load_options",
    "options_from_mapping",
    "parse",
    "roll",
]


def roll(
    expression: str,
    *,
    random: Optional[RandomProvider] = None,
    functions: Optional[Mapping[str, DiceFunction]] = None,
    options: Optional[InterpreterOptions] = None,
) -> DiceResult:
    """Parse and evaluate `expression`.

    A tree with parse errors is not evaluated: the result then carries the
    partial tree, zero totals and the diagnostic messages as errors.
    """
    parsed = parse(expression)
    if not parsed.ok:
        return DiceResult(
            tree=parsed.root,
            total=0,
            errors=tuple(diagnostic.message for diagnostic in parsed.errors),
        )
    interpreter = DiceInterpreter(functions=functions, random=random, options=options)
    return interpreter.interpret(parsed.root)
