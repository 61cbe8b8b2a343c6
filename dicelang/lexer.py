from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from lark import Lark, UnexpectedCharacters

from .diagnostics import Diagnostic

logger = logging.getLogger("dicelang.lexer")


class TokenType(enum.Enum):
    INTEGER = "Integer"
    IDENTIFIER = "Identifier"
    PLUS = "Plus"
    MINUS = "Minus"
    ASTERISK = "Asterisk"
    SLASH = "Slash"
    PERCENT = "Percent"
    DOUBLE_ASTERISK = "DoubleAsterisk"
    EQUALS = "Equals"
    GREATER = "Greater"
    GREATER_OR_EQUAL = "GreaterOrEqual"
    LESS = "Less"
    LESS_OR_EQUAL = "LessOrEqual"
    PARENTHESIS_OPEN = "ParenthesisOpen"
    PARENTHESIS_CLOSE = "ParenthesisClose"
    BRACE_OPEN = "BraceOpen"
    BRACE_CLOSE = "BraceClose"
    COMMA = "Comma"
    EXCLAMATION = "Exclamation"
    ELLIPSIS = "Ellipsis"
    END_OF_INPUT = "EndOfInput"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class Token:
    type: TokenType
    position: int
    value: str


# Identifiers are letters only so that "d20" splits into "d" and "20".
_GRAMMAR_SRC = r"""
start: _token*
_token: INTEGER | IDENTIFIER | PLUS | MINUS | DOUBLE_ASTERISK | ASTERISK
      | SLASH | PERCENT | GREATER_OR_EQUAL | LESS_OR_EQUAL | GREATER | LESS
      | EQUALS | PARENTHESIS_OPEN | PARENTHESIS_CLOSE | BRACE_OPEN
      | BRACE_CLOSE | COMMA | EXCLAMATION | ELLIPSIS

INTEGER: /[0-9]+/
IDENTIFIER: /[A-Za-z]+/
PLUS: "+"
MINUS: "-"
DOUBLE_ASTERISK: "**"
ASTERISK: "*"
SLASH: "/"
PERCENT: "%"
GREATER_OR_EQUAL: ">="
LESS_OR_EQUAL: "<="
GREATER: ">"
LESS: "<"
EQUALS: "="
PARENTHESIS_OPEN: "("
PARENTHESIS_CLOSE: ")"
BRACE_OPEN: "{"
BRACE_CLOSE: "}"
COMMA: ","
EXCLAMATION: "!"
ELLIPSIS: "..."

%import common.WS
%ignore WS
"""

_TERMINAL_TYPES = {
    "INTEGER": TokenType.INTEGER,
    "IDENTIFIER": TokenType.IDENTIFIER,
    "PLUS": TokenType.PLUS,
    "MINUS": TokenType.MINUS,
    "DOUBLE_ASTERISK": TokenType.DOUBLE_ASTERISK,
    "ASTERISK": TokenType.ASTERISK,
    "SLASH": TokenType.SLASH,
    "PERCENT": TokenType.PERCENT,
    "GREATER_OR_EQUAL": TokenType.GREATER_OR_EQUAL,
    "LESS_OR_EQUAL": TokenType.LESS_OR_EQUAL,
    "GREATER": TokenType.GREATER,
    "LESS": TokenType.LESS,
    "EQUALS": TokenType.EQUALS,
    "PARENTHESIS_OPEN": TokenType.PARENTHESIS_OPEN,
    "PARENTHESIS_CLOSE": TokenType.PARENTHESIS_CLOSE,
    "BRACE_OPEN": TokenType.BRACE_OPEN,
    "BRACE_CLOSE": TokenType.BRACE_CLOSE,
    "COMMA": TokenType.COMMA,
    "EXCLAMATION": TokenType.EXCLAMATION,
    "ELLIPSIS": TokenType.ELLIPSIS,
}

_LEXER = Lark(
    _GRAMMAR_SRC,
    parser="lalr",
    lexer="basic",
    start="start",
)


class TokenStream:
    """Sequence of tokens with one-token lookahead.

    The stream always ends with an END_OF_INPUT sentinel, and consuming the
    sentinel leaves it in place, so peeking past the end is always safe.
    """

    def __init__(self, tokens: Iterable[Token]) -> None:
        self._tokens: List[Token] = list(tokens)
        if not self._tokens or self._tokens[-1].type is not TokenType.END_OF_INPUT:
            end = 0
            if self._tokens:
                last = self._tokens[-1]
                end = last.position + len(last.value)
            self._tokens.append(Token(TokenType.END_OF_INPUT, end, ""))
        self._index = 0
        self.errors: List[Diagnostic] = []

    def peek_next_token(self) -> Token:
        return self._tokens[self._index]

    def get_next_token(self) -> Token:
        token = self._tokens[self._index]
        if token.type is not TokenType.END_OF_INPUT:
            self._index += 1
        return token

    def split_next_token(self, length: int) -> None:
        """Split the next token after `length` characters into two tokens of the same type."""
        token = self._tokens[self._index]
        if not 0 < length < len(token.value):
            raise ValueError(f"cannot split {token.value!r} at {length}")
        head = Token(token.type, token.position, token.value[:length])
        tail = Token(token.type, token.position + length, token.value[length:])
        self._tokens[self._index:self._index + 1] = [head, tail]


class Lexer(TokenStream):
    """Tokenizes a dice expression.

    Unknown characters do not stop lexing: each one becomes an UNKNOWN token
    and a diagnostic, and scanning resumes with the next character.
    """

    def __init__(self, text: str) -> None:
        tokens, errors = _tokenize(text)
        super().__init__(tokens)
        self.text = text
        self.errors = errors


def _tokenize(text: str) -> Tuple[List[Token], List[Diagnostic]]:
    tokens: List[Token] = []
    errors: List[Diagnostic] = []
    offset = 0
    while True:
        try:
            for tok in _LEXER.lex(text[offset:]):
                tokens.append(Token(_TERMINAL_TYPES[tok.type], offset + tok.start_pos, tok.value))
        except UnexpectedCharacters as exc:
            position = offset + exc.pos_in_stream
            char = text[position]
            logger.debug("skipping unknown character %r at %d", char, position)
            errors.append(
                Diagnostic(
                    message=f"Unknown character '{char}' at position {position}.",
                    code="E-LEX-UNKNOWN-CHAR",
                    phase="lexer",
                    position=position,
                )
            )
            tokens.append(Token(TokenType.UNKNOWN, position, char))
            offset = position + 1
            continue
        break
    tokens.append(Token(TokenType.END_OF_INPUT, len(text), ""))
    return tokens, errors
