from __future__ import annotations

from typing import Dict

from .ast import COMPARISON_TYPES, FATE, MODIFIER_TYPES, Node, NodeType

_BINARY_OPERATORS: Dict[NodeType, str] = {
    NodeType.ADD: "+",
    NodeType.SUBTRACT: "-",
    NodeType.MULTIPLY: "*",
    NodeType.DIVIDE: "/",
    NodeType.MODULO: "%",
    NodeType.EXPONENT: "**",
    NodeType.EQUAL: "=",
    NodeType.GREATER: ">",
    NodeType.GREATER_OR_EQUAL: ">=",
    NodeType.LESS: "<",
    NodeType.LESS_OR_EQUAL: "<=",
}

_PRECEDENCE: Dict[NodeType, int] = {
    NodeType.EQUAL: 1,
    NodeType.GREATER: 1,
    NodeType.GREATER_OR_EQUAL: 1,
    NodeType.LESS: 1,
    NodeType.LESS_OR_EQUAL: 1,
    NodeType.ADD: 2,
    NodeType.SUBTRACT: 2,
    NodeType.NEGATE: 2,
    NodeType.MULTIPLY: 3,
    NodeType.DIVIDE: 3,
    NodeType.MODULO: 3,
    NodeType.EXPONENT: 4,
}
_ATOM = 5


class DiceGenerator:
    """Renders expression trees back to text.

    Unevaluated trees come back in canonical form ("4d6kh3 + 2"); expanded
    Dice nodes render as their rolls ("[6, 4, (1)]"), with dropped dice in
    parentheses and critical dice marked with "*".
    """

    def generate(self, node: Node) -> str:
        node_type = node.type
        if node_type is NodeType.INTEGER:
            return _number(node.value)
        if node_type is NodeType.DICE_SIDES:
            return "F" if node.value == FATE else _number(node.value)
        if node_type is NodeType.DICE:
            return self._dice(node)
        if node_type is NodeType.DICE_ROLL:
            return self._roll(node)
        if node_type is NodeType.NEGATE:
            return "-" + self._operand(node.children[0], _PRECEDENCE[NodeType.NEGATE] + 1)
        if node_type in COMPARISON_TYPES and node.child_count() == 1:
            return _BINARY_OPERATORS[node_type] + self.generate(node.children[0])
        if node_type in _BINARY_OPERATORS:
            return self._binary(node)
        if node_type is NodeType.FUNCTION:
            args = ", ".join(self.generate(child) for child in node.children)
            return f"{node.get_attribute('name')}({args})"
        if node_type is NodeType.GROUP:
            items = ", ".join(self.generate(child) for child in node.children)
            repeat = node.get_attribute("repeat")
            return "{" + items + "}" + (f"...{repeat}" if repeat is not None else "")
        if node_type in MODIFIER_TYPES:
            return self.generate(node.children[0]) + self._modifier_suffix(node)
        raise ValueError(f"Cannot render node type {node_type.value}")

    def _binary(self, node: Node) -> str:
        precedence = _PRECEDENCE[node.type]
        left, right = node.children
        # Exponent is right associative; everything else is left associative.
        if node.type is NodeType.EXPONENT:
            left_text = self._operand(left, precedence + 1)
            right_text = self._operand(right, precedence)
        else:
            left_text = self._operand(left, precedence)
            right_text = self._operand(right, precedence + 1)
        return f"{left_text} {_BINARY_OPERATORS[node.type]} {right_text}"

    def _operand(self, node: Node, minimum: int) -> str:
        text = self.generate(node)
        if _PRECEDENCE.get(node.type, _ATOM) < minimum:
            return f"({text})"
        return text

    def _dice(self, node: Node) -> str:
        children = node.children
        if len(children) == 2 and children[1].type is NodeType.DICE_SIDES:
            count = children[0]
            count_text = self.generate(count)
            if count.type is not NodeType.INTEGER:
                count_text = f"({count_text})"
            if children[1].value == FATE:
                return f"{count_text}dF"
            return f"{count_text}d{self.generate(children[1])}"
        return "[" + ", ".join(self.generate(child) for child in children) + "]"

    def _roll(self, node: Node) -> str:
        text = _number(node.value)
        if node.has_attribute("critical"):
            text += "*"
        if node.get_attribute("drop") == "yes":
            text = f"({text})"
        return text

    def _modifier_suffix(self, node: Node) -> str:
        node_type = node.type
        extra = self.generate(node.children[1]) if node.child_count() > 1 else ""
        if node_type is NodeType.EXPLODE:
            return "!" + ("p" if node.get_attribute("penetrate") == "yes" else "") + extra
        if node_type is NodeType.KEEP:
            return ("kh" if node.get_attribute("type") == "highest" else "kl") + extra
        if node_type is NodeType.DROP:
            return ("dh" if node.get_attribute("type") == "highest" else "dl") + extra
        if node_type is NodeType.CRITICAL:
            return ("cs" if node.get_attribute("type") == "success" else "cf") + extra
        if node_type is NodeType.REROLL:
            return ("ro" if node.get_attribute("once") == "yes" else "r") + extra
        return "sd" if node.get_attribute("direction") == "descending" else "sa"


def _number(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
