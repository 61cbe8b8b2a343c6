from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

AttributeValue = Union[int, float, str]

FATE = "fate"


class NodeType(enum.Enum):
    INTEGER = "Integer"
    DICE_SIDES = "DiceSides"
    DICE = "Dice"
    DICE_ROLL = "DiceRoll"
    ADD = "Add"
    SUBTRACT = "Subtract"
    MULTIPLY = "Multiply"
    DIVIDE = "Divide"
    MODULO = "Modulo"
    EXPONENT = "Exponent"
    NEGATE = "Negate"
    EQUAL = "Equal"
    GREATER = "Greater"
    GREATER_OR_EQUAL = "GreaterOrEqual"
    LESS = "Less"
    LESS_OR_EQUAL = "LessOrEqual"
    FUNCTION = "Function"
    GROUP = "Group"
    EXPLODE = "Explode"
    KEEP = "Keep"
    DROP = "Drop"
    CRITICAL = "Critical"
    REROLL = "Reroll"
    SORT = "Sort"


COMPARISON_TYPES = frozenset(
    {
        NodeType.EQUAL,
        NodeType.GREATER,
        NodeType.GREATER_OR_EQUAL,
        NodeType.LESS,
        NodeType.LESS_OR_EQUAL,
    }
)

MODIFIER_TYPES = frozenset(
    {
        NodeType.EXPLODE,
        NodeType.KEEP,
        NodeType.DROP,
        NodeType.CRITICAL,
        NodeType.REROLL,
        NodeType.SORT,
    }
)


@dataclass
class Node:
    """A mutable expression tree node.

    Children are owned exclusively by their parent. The computed value lives
    in the "value" attribute; its presence (not its truthiness) marks the node
    as evaluated.
    """

    type: NodeType
    children: List["Node"] = field(default_factory=list)
    attributes: Dict[str, AttributeValue] = field(default_factory=dict)

    def add_child(self, child: "Node") -> "Node":
        """Append `child` and return it."""
        self.children.append(child)
        return child

    def insert_child(self, index: int, child: "Node") -> "Node":
        self.children.insert(index, child)
        return child

    def get_child(self, index: int) -> "Node":
        return self.children[index]

    def child_count(self) -> int:
        return len(self.children)

    def clear_children(self) -> None:
        self.children.clear()

    def set_attribute(self, key: str, value: AttributeValue) -> "Node":
        self.attributes[key] = value
        return self

    def get_attribute(self, key: str, default: Optional[AttributeValue] = None) -> Optional[AttributeValue]:
        return self.attributes.get(key, default)

    def has_attribute(self, key: str) -> bool:
        return key in self.attributes

    def clear_attribute(self, key: str) -> None:
        self.attributes.pop(key, None)

    def has_value(self) -> bool:
        return "value" in self.attributes

    @property
    def value(self) -> Optional[AttributeValue]:
        return self.attributes.get("value")

    def copy(self) -> "Node":
        """Return a structural deep copy; no child is shared with the original."""
        return Node(
            type=self.type,
            children=[child.copy() for child in self.children],
            attributes=dict(self.attributes),
        )

    def walk(self):
        """Yield this node and all descendants, depth first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> dict:
        data: dict = {"type": self.type.value}
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def create_node(node_type: NodeType, **attributes: AttributeValue) -> Node:
    """Node factory keyed on type."""
    return Node(type=node_type, attributes=dict(attributes))
