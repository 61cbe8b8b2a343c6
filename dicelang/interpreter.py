from __future__ import annotations

import logging
import math
import operator
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .ast import FATE, MODIFIER_TYPES, AttributeValue, Node, NodeType, create_node
from .config import InterpreterOptions
from .errors import DiceInterpreterError
from .functions import DEFAULT_FUNCTIONS, DiceFunction, Number, round_half_up
from .random_provider import DefaultRandomProvider, RandomProvider

logger = logging.getLogger("dicelang.interpreter")

_ARITHMETIC: Dict[NodeType, Callable[[Number, Number], Number]] = {
    NodeType.ADD: operator.add,
    NodeType.SUBTRACT: operator.sub,
    NodeType.MULTIPLY: operator.mul,
    NodeType.DIVIDE: operator.truediv,
    NodeType.MODULO: operator.mod,
    NodeType.EXPONENT: math.pow,
}

_COMPARATORS: Dict[NodeType, Callable[[Number, Number], bool]] = {
    NodeType.EQUAL: operator.eq,
    NodeType.GREATER: operator.gt,
    NodeType.GREATER_OR_EQUAL: operator.ge,
    NodeType.LESS: operator.lt,
    NodeType.LESS_OR_EQUAL: operator.le,
}


@dataclass(frozen=True)
class DiceResult:
    tree: Node
    total: Number
    successes: int = 0
    fails: int = 0
    errors: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "successes": self.successes,
            "fails": self.fails,
            "errors": list(self.errors),
            "tree": self.tree.to_dict(),
        }


class DiceInterpreter:
    """Evaluates dice expression trees.

    `interpret` works on a deep copy of the tree it is given, so a parsed tree
    can be interpreted any number of times. The copy is expanded in place:
    each Dice node trades its (count, sides) children for one DiceRoll child
    per die rolled.
    """

    def __init__(
        self,
        functions: Optional[Mapping[str, DiceFunction]] = None,
        random: Optional[RandomProvider] = None,
        options: Optional[InterpreterOptions] = None,
    ) -> None:
        self.functions = DEFAULT_FUNCTIONS.merge(functions)
        self.random: RandomProvider = random if random is not None else DefaultRandomProvider()
        self.options = options or InterpreterOptions()
        self.errors: List[str] = []
        self._evaluators: Dict[NodeType, Callable[[Node], Number]] = {
            NodeType.INTEGER: self._evaluate_literal,
            NodeType.DICE_SIDES: self._evaluate_literal,
            NodeType.DICE_ROLL: self._evaluate_literal,
            NodeType.ADD: self._evaluate_arithmetic,
            NodeType.SUBTRACT: self._evaluate_arithmetic,
            NodeType.MULTIPLY: self._evaluate_arithmetic,
            NodeType.DIVIDE: self._evaluate_arithmetic,
            NodeType.MODULO: self._evaluate_arithmetic,
            NodeType.EXPONENT: self._evaluate_arithmetic,
            NodeType.NEGATE: self._evaluate_negate,
            NodeType.EQUAL: self._evaluate_comparison_node,
            NodeType.GREATER: self._evaluate_comparison_node,
            NodeType.GREATER_OR_EQUAL: self._evaluate_comparison_node,
            NodeType.LESS: self._evaluate_comparison_node,
            NodeType.LESS_OR_EQUAL: self._evaluate_comparison_node,
            NodeType.DICE: self._evaluate_dice,
            NodeType.FUNCTION: self._evaluate_function,
            NodeType.GROUP: self._evaluate_group,
            NodeType.EXPLODE: self._evaluate_explode,
            NodeType.KEEP: self._evaluate_keep,
            NodeType.DROP: self._evaluate_drop,
            NodeType.CRITICAL: self._evaluate_critical,
            NodeType.REROLL: self._evaluate_reroll,
            NodeType.SORT: self._evaluate_sort,
        }

    def interpret(self, expression: Node) -> DiceResult:
        self.errors = []
        tree = expression.copy()
        total = self.evaluate(tree)
        return DiceResult(
            tree=tree,
            total=total,
            successes=self.count_successes(tree),
            fails=self.count_failures(tree),
            errors=tuple(self.errors),
        )

    def evaluate(self, node: Node) -> Number:
        if node.has_value():
            return node.value
        evaluator = self._evaluators.get(node.type)
        if evaluator is None:
            raise DiceInterpreterError(f"Unsupported node type: {node.type.value}")
        value = _normalize(evaluator(node))
        node.set_attribute("value", value)
        return value

    def evaluate_comparison(self, lhs: Number, node: Node) -> bool:
        """Test `lhs` against the comparison `node`, whose last child is the right-hand side."""
        comparator = _COMPARATORS.get(node.type)
        if comparator is None:
            raise DiceInterpreterError(f"{node.type.value} is not a comparison")
        if not node.children:
            raise DiceInterpreterError(f"{node.type.value} node has no operand")
        return comparator(lhs, self.evaluate(node.children[-1]))

    def count_successes(self, tree: Node) -> int:
        return sum(1 for node in tree.walk() if node.get_attribute("success") == "yes")

    def count_failures(self, tree: Node) -> int:
        return sum(1 for node in tree.walk() if node.get_attribute("success") == "no")

    def report_error(self, message: str) -> None:
        logger.debug("collected error: %s", message)
        self.errors.append(message)

    # -- plain expressions -------------------------------------------------

    def _evaluate_literal(self, node: Node) -> Number:
        raise DiceInterpreterError(f"{node.type.value} node has no value")

    def _evaluate_arithmetic(self, node: Node) -> Number:
        self._expect_children(node, 2)
        left = self.evaluate(node.children[0])
        right = self.evaluate(node.children[1])
        try:
            value = _ARITHMETIC[node.type](left, right)
        except ZeroDivisionError:
            self.report_error("Division by zero.")
            return 0
        except (OverflowError, ValueError) as e:
            self.report_error(f"Invalid {node.type.value.lower()} of {left} and {right}: {e}.")
            return 0
        if isinstance(value, float) and not math.isfinite(value):
            self.report_error(f"Numeric overflow in {node.type.value.lower()} of {left} and {right}.")
            return 0
        return value

    def _evaluate_negate(self, node: Node) -> Number:
        self._expect_children(node, 1)
        return -self.evaluate(node.children[0])

    def _evaluate_comparison_node(self, node: Node) -> Number:
        # A modifier condition holds only its threshold.
        if node.child_count() == 1:
            return self.evaluate(node.children[0])
        self._expect_children(node, 2)
        lhs = node.children[0]
        self.evaluate(lhs)
        successes = 0
        for target in self._success_targets(lhs):
            hit = self.evaluate_comparison(target.value, node)
            target.set_attribute("success", "yes" if hit else "no")
            successes += int(hit)
        return successes

    def _success_targets(self, lhs: Node) -> List[Node]:
        if lhs.type is NodeType.DICE or lhs.type in MODIFIER_TYPES:
            dice = self._find_dice(lhs)
            return [die for die in dice.children if not _is_dropped(die)]
        if lhs.type is NodeType.GROUP:
            return list(lhs.children)
        return [lhs]

    def _evaluate_function(self, node: Node) -> Number:
        name = node.get_attribute("name")
        function = self.functions.get(name)
        if function is None:
            raise DiceInterpreterError(f"Unknown function: {name}")
        return function(self, node)

    def _evaluate_group(self, node: Node) -> Number:
        if node.has_attribute("repeat"):
            self._expand_group(node, node.get_attribute("repeat"))
        return sum(self.evaluate(child) for child in node.children)

    def _expand_group(self, node: Node, repeat: AttributeValue) -> None:
        node.clear_attribute("repeat")
        maximum = self.options.max_roll_times
        if maximum is not None and repeat > maximum:
            logger.warning("group repeat %s exceeds limit %s", repeat, maximum)
            self.report_error(f"Invalid number of repeats: {repeat}. Maximum allowed: {maximum}.")
            node.clear_children()
            return
        originals = list(node.children)
        node.clear_children()
        for _ in range(int(repeat)):
            for child in originals:
                node.add_child(child.copy())
        node.set_attribute("repeated", repeat)

    # -- dice ----------------------------------------------------------------

    def _evaluate_dice(self, node: Node) -> Number:
        self._expect_children(node, 2)
        count = round_half_up(self.evaluate(node.children[0]))
        sides_node = node.children[1]
        if sides_node.type is not NodeType.DICE_SIDES or not sides_node.has_value():
            raise DiceInterpreterError("Dice node requires a valued DiceSides child")
        sides = sides_node.value
        if sides != FATE:
            sides = round_half_up(sides)

        node.clear_children()
        node.set_attribute("count", count)
        node.set_attribute("sides", sides)
        if not self._within_limits(count, sides):
            return 0

        low, high = _faces(sides)
        for _ in range(count):
            node.add_child(self._roll(low, high, sides))
        logger.debug("rolled %sd%s: %s", count, sides, [die.value for die in node.children])
        return _dice_total(node)

    def _within_limits(self, count: int, sides: AttributeValue) -> bool:
        valid = True
        max_rolls = self.options.max_roll_times
        if count < 0:
            self.report_error(f"Invalid number of rolls: {count}. Minimum allowed: 0.")
            valid = False
        elif max_rolls is not None and count > max_rolls:
            logger.warning("roll count %s exceeds limit %s", count, max_rolls)
            self.report_error(f"Invalid number of rolls: {count}. Maximum allowed: {max_rolls}.")
            valid = False

        if sides == FATE:
            return valid
        max_sides = self.options.max_dice_sides
        if sides < 1:
            self.report_error(f"Invalid number of dice sides: {sides}. Minimum allowed: 1.")
            valid = False
        elif max_sides is not None and sides > max_sides:
            logger.warning("dice sides %s exceed limit %s", sides, max_sides)
            self.report_error(f"Invalid number of dice sides: {sides}. Maximum allowed: {max_sides}.")
            valid = False
        return valid

    def _roll(self, low: int, high: int, sides: AttributeValue) -> Node:
        value = self.random.number_between(low, high)
        return create_node(NodeType.DICE_ROLL, value=value, sides=sides, drop="no")

    # -- modifiers -------------------------------------------------------------

    def _evaluate_explode(self, node: Node) -> Number:
        operand, condition = self._modifier_operands(node)
        self.evaluate(operand)
        dice = self._find_dice(operand)
        sides = dice.get_attribute("sides")
        low, high = _faces(sides)
        penetrate = node.get_attribute("penetrate") == "yes"
        limit = self.options.max_iterations

        explosions = 0
        capped = False
        expanded: List[Node] = []
        for die in dice.children:
            expanded.append(die)
            if capped or _is_dropped(die):
                continue
            value = die.value
            while self._matches(value, condition, high):
                if explosions >= limit:
                    capped = True
                    break
                explosions += 1
                value = self.random.number_between(low, high)
                extra = create_node(
                    NodeType.DICE_ROLL,
                    value=value - 1 if penetrate else value,
                    sides=sides,
                    drop="no",
                    explode="yes",
                )
                expanded.append(extra)
        dice.children[:] = expanded

        if capped:
            logger.warning("explosion cap of %s reached", limit)
            self.report_error(f"Maximum number of explosions reached: {limit}.")
        logger.debug("exploded %s time(s)", explosions)
        return self._refresh(dice)

    def _evaluate_keep(self, node: Node) -> Number:
        return self._select(node, keep=True)

    def _evaluate_drop(self, node: Node) -> Number:
        return self._select(node, keep=False)

    def _select(self, node: Node, keep: bool) -> Number:
        operand, amount_node = self._modifier_operands(node)
        self.evaluate(operand)
        dice = self._find_dice(operand)
        amount = 1 if amount_node is None else round_half_up(self.evaluate(amount_node))

        ranked = [die for die in dice.children if not _is_dropped(die)]
        ranked.sort(key=lambda die: die.value, reverse=node.get_attribute("type") == "highest")
        for index, die in enumerate(ranked):
            selected = index < amount
            if keep:
                die.set_attribute("drop", "no" if selected else "yes")
            elif selected:
                die.set_attribute("drop", "yes")
        return self._refresh(dice)

    def _evaluate_critical(self, node: Node) -> Number:
        operand, condition = self._modifier_operands(node)
        self.evaluate(operand)
        dice = self._find_dice(operand)
        low, high = _faces(dice.get_attribute("sides"))
        kind = node.get_attribute("type", "success")
        default = high if kind == "success" else low
        for die in dice.children:
            if self._matches(die.value, condition, default):
                die.set_attribute("critical", kind)
        return self._refresh(dice)

    def _evaluate_reroll(self, node: Node) -> Number:
        operand, condition = self._modifier_operands(node)
        self.evaluate(operand)
        dice = self._find_dice(operand)
        low, high = _faces(dice.get_attribute("sides"))
        once = node.get_attribute("once") == "yes"
        limit = self.options.max_iterations

        capped = False
        for die in dice.children:
            if _is_dropped(die):
                continue
            rerolls = 0
            while self._matches(die.value, condition, low):
                if rerolls >= limit:
                    capped = True
                    break
                die.set_attribute("value", self.random.number_between(low, high))
                rerolls += 1
                if once:
                    break
            if rerolls:
                die.set_attribute("rerolled", rerolls)

        if capped:
            logger.warning("reroll cap of %s reached", limit)
            self.report_error(f"Maximum number of rerolls reached: {limit}.")
        return self._refresh(dice)

    def _evaluate_sort(self, node: Node) -> Number:
        operand, _ = self._modifier_operands(node, max_children=1)
        self.evaluate(operand)
        dice = self._find_dice(operand)
        dice.children.sort(key=lambda die: die.value, reverse=node.get_attribute("direction") == "descending")
        return self._refresh(dice)

    def _matches(self, value: Number, condition: Optional[Node], default: Number) -> bool:
        if condition is None:
            return value == default
        return self.evaluate_comparison(value, condition)

    def _find_dice(self, node: Node) -> Node:
        """Return the leftmost Dice node, following first children."""
        current = node
        while current.type is not NodeType.DICE:
            if not current.children:
                raise DiceInterpreterError(f"No dice node found under {node.type.value}")
            current = current.children[0]
        return current

    def _refresh(self, dice: Node) -> Number:
        total = _dice_total(dice)
        dice.set_attribute("value", total)
        return total

    # -- structure ---------------------------------------------------------

    def _modifier_operands(self, node: Node, max_children: int = 2) -> Tuple[Node, Optional[Node]]:
        count = node.child_count()
        if not 1 <= count <= max_children:
            raise DiceInterpreterError(
                f"{node.type.value} node requires 1 to {max_children} children, found {count}"
            )
        extra = node.children[1] if count == 2 else None
        return node.children[0], extra

    def _expect_children(self, node: Node, count: int) -> None:
        if node.child_count() != count:
            raise DiceInterpreterError(
                f"{node.type.value} node requires exactly {count} children, found {node.child_count()}"
            )


def _faces(sides: AttributeValue) -> Tuple[int, int]:
    if sides == FATE:
        return -1, 1
    return 1, int(sides)


def _is_dropped(die: Node) -> bool:
    return die.get_attribute("drop") == "yes"


def _dice_total(dice: Node) -> Number:
    return sum(die.value for die in dice.children if not _is_dropped(die))


def _normalize(value: Number) -> Number:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
