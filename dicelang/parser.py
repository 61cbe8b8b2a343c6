from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from .ast import FATE, Node, NodeType, create_node
from .diagnostics import Diagnostic
from .lexer import Lexer, Token, TokenStream, TokenType

logger = logging.getLogger("dicelang.parser")

_BOOLEAN_OPERATORS = {
    TokenType.EQUALS: NodeType.EQUAL,
    TokenType.GREATER: NodeType.GREATER,
    TokenType.GREATER_OR_EQUAL: NodeType.GREATER_OR_EQUAL,
    TokenType.LESS: NodeType.LESS,
    TokenType.LESS_OR_EQUAL: NodeType.LESS_OR_EQUAL,
}

_ADD_OPERATORS = {
    TokenType.PLUS: NodeType.ADD,
    TokenType.MINUS: NodeType.SUBTRACT,
}

_MULTI_OPERATORS = {
    TokenType.ASTERISK: NodeType.MULTIPLY,
    TokenType.SLASH: NodeType.DIVIDE,
    TokenType.PERCENT: NodeType.MODULO,
}

# Longest prefixes first so "kh" wins over "k".
_MODIFIER_PREFIXES = (
    ("kh", NodeType.KEEP, {"type": "highest"}),
    ("kl", NodeType.KEEP, {"type": "lowest"}),
    ("k", NodeType.KEEP, {"type": "highest"}),
    ("dh", NodeType.DROP, {"type": "highest"}),
    ("dl", NodeType.DROP, {"type": "lowest"}),
    ("d", NodeType.DROP, {"type": "lowest"}),
    ("ro", NodeType.REROLL, {"once": "yes"}),
    ("r", NodeType.REROLL, {"once": "no"}),
    ("cs", NodeType.CRITICAL, {"type": "success"}),
    ("cf", NodeType.CRITICAL, {"type": "failure"}),
    ("c", NodeType.CRITICAL, {"type": "success"}),
    ("sa", NodeType.SORT, {"direction": "ascending"}),
    ("sd", NodeType.SORT, {"direction": "descending"}),
    ("s", NodeType.SORT, {"direction": "ascending"}),
)

_CONDITIONAL_MODIFIERS = frozenset({NodeType.REROLL, NodeType.CRITICAL})
_COUNTED_MODIFIERS = frozenset({NodeType.KEEP, NodeType.DROP})

# Tokens a failed factor leaves in place for an enclosing rule to consume.
_SYNC_TOKENS = frozenset(
    {
        TokenType.END_OF_INPUT,
        TokenType.PARENTHESIS_CLOSE,
        TokenType.BRACE_CLOSE,
        TokenType.COMMA,
    }
)


@dataclass
class ParseResult:
    root: Node
    errors: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class DiceParser:
    """One-token lookahead recursive descent parser for dice expressions.

    Problems are recorded in `errors` instead of raised; the returned tree is
    always well formed, with Integer(0) placeholders where input was missing.
    """

    def __init__(self, source: Union[TokenStream, str]) -> None:
        self.lexer = Lexer(source) if isinstance(source, str) else source
        self.errors: List[Diagnostic] = list(self.lexer.errors)

    def parse(self) -> ParseResult:
        root = self.parse_expression()
        token = self.lexer.peek_next_token()
        if token.type is not TokenType.END_OF_INPUT:
            self._record(
                f"Unexpected {_describe(token)} at position {token.position}; expected end of input.",
                "E-PARSE-TRAILING-INPUT",
                token,
            )
        return ParseResult(root=root, errors=list(self.errors))

    def parse_expression(self) -> Node:
        root = self.parse_simple_expression()
        token_type = self.lexer.peek_next_token().type
        if token_type in _BOOLEAN_OPERATORS:
            self.lexer.get_next_token()
            new_root = create_node(_BOOLEAN_OPERATORS[token_type])
            new_root.add_child(root)
            new_root.add_child(self.parse_simple_expression())
            root = new_root
        return root

    def parse_simple_expression(self) -> Node:
        sign = self.lexer.peek_next_token().type
        if sign in _ADD_OPERATORS:
            self.lexer.get_next_token()

        root = self.parse_term()
        if sign is TokenType.MINUS:
            negate = create_node(NodeType.NEGATE)
            negate.add_child(root)
            root = negate

        token_type = self.lexer.peek_next_token().type
        while token_type in _ADD_OPERATORS:
            self.lexer.get_next_token()
            new_root = create_node(_ADD_OPERATORS[token_type])
            new_root.add_child(root)
            new_root.add_child(self.parse_term())
            root = new_root
            token_type = self.lexer.peek_next_token().type
        return root

    def parse_term(self) -> Node:
        root = self.parse_power()
        token_type = self.lexer.peek_next_token().type
        while token_type in _MULTI_OPERATORS:
            self.lexer.get_next_token()
            new_root = create_node(_MULTI_OPERATORS[token_type])
            new_root.add_child(root)
            new_root.add_child(self.parse_power())
            root = new_root
            token_type = self.lexer.peek_next_token().type
        return root

    def parse_power(self) -> Node:
        base = self.parse_factor()
        if self.lexer.peek_next_token().type is not TokenType.DOUBLE_ASTERISK:
            return base
        self.lexer.get_next_token()
        root = create_node(NodeType.EXPONENT)
        root.add_child(base)
        root.add_child(self.parse_power())
        return root

    def parse_factor(self) -> Node:
        token = self.lexer.peek_next_token()
        if token.type is TokenType.IDENTIFIER:
            if _is_dice_identifier(token.value):
                return self.parse_dice_roll(create_node(NodeType.INTEGER, value=1))
            return self.parse_function_call()
        if token.type is TokenType.PARENTHESIS_OPEN:
            root = self.parse_bracketed_expression()
            if self.lexer.peek_next_token().type is TokenType.IDENTIFIER:
                root = self.parse_dice_roll(root)
            return root
        if token.type is TokenType.BRACE_OPEN:
            return self.parse_expression_group()
        if token.type is TokenType.INTEGER:
            number = self.parse_integer()
            if self.lexer.peek_next_token().type is TokenType.IDENTIFIER:
                return self.parse_dice_roll(number)
            return number
        self._unexpected(token, "Integer")
        if token.type not in _SYNC_TOKENS:
            self.lexer.get_next_token()
        return create_node(NodeType.INTEGER, value=0)

    def parse_function_call(self) -> Node:
        name = self.lexer.get_next_token()
        root = create_node(NodeType.FUNCTION, name=name.value)
        if self.expect_and_consume(TokenType.PARENTHESIS_OPEN) is None:
            return root
        if self.lexer.peek_next_token().type is not TokenType.PARENTHESIS_CLOSE:
            self._parse_list_into(root)
        self.expect_and_consume(TokenType.PARENTHESIS_CLOSE)
        return root

    def parse_integer(self) -> Node:
        token = self.expect_and_consume(TokenType.INTEGER)
        value = int(token.value) if token is not None else 0
        return create_node(NodeType.INTEGER, value=value)

    def parse_bracketed_expression(self) -> Node:
        self.lexer.get_next_token()
        root = self.parse_expression()
        self.expect_and_consume(TokenType.PARENTHESIS_CLOSE)
        return root

    def parse_expression_group(self) -> Node:
        self.lexer.get_next_token()
        root = create_node(NodeType.GROUP)
        if self.lexer.peek_next_token().type is not TokenType.BRACE_CLOSE:
            self._parse_list_into(root)
        self.expect_and_consume(TokenType.BRACE_CLOSE)
        if self.lexer.peek_next_token().type is TokenType.ELLIPSIS:
            self.lexer.get_next_token()
            root.set_attribute("repeat", self.parse_integer().value)
        return root

    def parse_dice_roll(self, roll_times: Optional[Node] = None) -> Node:
        root = self.parse_simple_dice_roll(roll_times)
        return self.parse_modifiers(root)

    def parse_simple_dice_roll(self, roll_times: Optional[Node] = None) -> Node:
        if roll_times is None:
            token = self.lexer.peek_next_token()
            if token.type is TokenType.INTEGER:
                roll_times = self.parse_integer()
            elif token.type is TokenType.PARENTHESIS_OPEN:
                roll_times = self.parse_bracketed_expression()
            elif token.type is TokenType.IDENTIFIER and _is_dice_identifier(token.value):
                roll_times = create_node(NodeType.INTEGER, value=1)
            else:
                self._unexpected(token, "Integer")
                roll_times = create_node(NodeType.INTEGER, value=0)

        root = create_node(NodeType.DICE)
        root.add_child(roll_times)

        token = self.lexer.peek_next_token()
        if token.type is TokenType.IDENTIFIER and token.value.startswith("dF"):
            if len(token.value) > 2:
                self.lexer.split_next_token(2)
            self.lexer.get_next_token()
            root.add_child(create_node(NodeType.DICE_SIDES, value=FATE))
            return root

        token = self.expect_and_consume(TokenType.IDENTIFIER)
        if token is None or token.value != "d":
            if token is not None:
                self._record(
                    f"Unknown dice type '{token.value}' at position {token.position}.",
                    "E-PARSE-DICE-TYPE",
                    token,
                )
            root.add_child(create_node(NodeType.DICE_SIDES, value=0))
            return root

        if self.lexer.peek_next_token().type is TokenType.PERCENT:
            self.lexer.get_next_token()
            root.add_child(create_node(NodeType.DICE_SIDES, value=100))
            return root

        sides = self.expect_and_consume(TokenType.INTEGER)
        root.add_child(create_node(NodeType.DICE_SIDES, value=int(sides.value) if sides else 0))
        return root

    def parse_modifiers(self, root: Node) -> Node:
        while True:
            token = self.lexer.peek_next_token()
            if token.type is TokenType.EXCLAMATION:
                root = self._parse_explode(root)
            elif token.type is TokenType.IDENTIFIER:
                modifier = self._parse_named_modifier(root, token)
                if modifier is None:
                    return root
                root = modifier
            else:
                return root

    def parse_condition(self) -> Optional[Node]:
        """Parse an optional `<op> integer` modifier condition."""
        token_type = self.lexer.peek_next_token().type
        if token_type not in _BOOLEAN_OPERATORS:
            return None
        self.lexer.get_next_token()
        condition = create_node(_BOOLEAN_OPERATORS[token_type])
        condition.add_child(self.parse_integer())
        return condition

    def expect_and_consume(self, expected: TokenType) -> Optional[Token]:
        token = self.lexer.peek_next_token()
        if token.type is not expected:
            self._unexpected(token, expected.value)
            return None
        return self.lexer.get_next_token()

    def _parse_explode(self, operand: Node) -> Node:
        self.lexer.get_next_token()
        root = create_node(NodeType.EXPLODE, penetrate="no")
        root.add_child(operand)
        token = self.lexer.peek_next_token()
        if token.type is TokenType.IDENTIFIER and token.value.startswith("p"):
            if len(token.value) > 1:
                self.lexer.split_next_token(1)
            self.lexer.get_next_token()
            root.set_attribute("penetrate", "yes")
        condition = self.parse_condition()
        if condition is not None:
            root.add_child(condition)
        return root

    def _parse_named_modifier(self, operand: Node, token: Token) -> Optional[Node]:
        for prefix, node_type, attributes in _MODIFIER_PREFIXES:
            if token.value.startswith(prefix):
                break
        else:
            return None
        if len(token.value) > len(prefix):
            self.lexer.split_next_token(len(prefix))
        self.lexer.get_next_token()

        root = create_node(node_type, **attributes)
        root.add_child(operand)
        if node_type in _COUNTED_MODIFIERS:
            if self.lexer.peek_next_token().type is TokenType.INTEGER:
                root.add_child(self.parse_integer())
        elif node_type in _CONDITIONAL_MODIFIERS:
            condition = self.parse_condition()
            if condition is not None:
                root.add_child(condition)
        return root

    def _parse_list_into(self, root: Node) -> None:
        root.add_child(self.parse_expression())
        while self.lexer.peek_next_token().type is TokenType.COMMA:
            self.lexer.get_next_token()
            root.add_child(self.parse_expression())

    def _unexpected(self, token: Token, expected: str) -> None:
        self._record(
            f"Unexpected {_describe(token)} at position {token.position}; expected {expected}.",
            "E-PARSE-UNEXPECTED-TOKEN",
            token,
        )

    def _record(self, message: str, code: str, token: Token) -> None:
        logger.debug("%s: %s", code, message)
        self.errors.append(Diagnostic(message=message, code=code, phase="parser", position=token.position))


def _is_dice_identifier(value: str) -> bool:
    return value == "d" or value.startswith("dF")


def _describe(token: Token) -> str:
    if token.type is TokenType.END_OF_INPUT:
        return "end of input"
    return f"{token.type.value} '{token.value}'"


def parse(text: str) -> ParseResult:
    return DiceParser(text).parse()
