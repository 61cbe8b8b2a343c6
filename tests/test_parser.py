from __future__ import annotations

from dicelang.ast import FATE, Node, NodeType
from dicelang.lexer import Token, TokenStream, TokenType
from dicelang.parser import DiceParser, parse


def _root(text: str) -> Node:
    result = parse(text)
    assert result.errors == []
    return result.root


def _codes(text: str) -> list[str]:
    return [d.code for d in parse(text).errors]


def test_parse_integer_from_token_stream() -> None:
    parser = DiceParser(TokenStream([Token(TokenType.INTEGER, 0, "12")]))
    node = parser.parse_integer()
    assert parser.errors == []
    assert node.type is NodeType.INTEGER
    assert node.value == 12


def test_parse_dice_roll_with_pre_parsed_number() -> None:
    parser = DiceParser(
        TokenStream(
            [
                Token(TokenType.INTEGER, 0, "10"),
                Token(TokenType.IDENTIFIER, 2, "d"),
                Token(TokenType.INTEGER, 3, "6"),
            ]
        )
    )
    number = parser.parse_integer()
    dice = parser.parse_dice_roll(number)
    assert dice.type is NodeType.DICE
    assert dice.child_count() == 2
    assert dice.get_child(0).type is NodeType.INTEGER
    assert dice.get_child(0).value == 10
    assert dice.get_child(1).type is NodeType.DICE_SIDES
    assert dice.get_child(1).value == 6


def test_parse_dice_roll_reads_its_own_count() -> None:
    parser = DiceParser("10d6")
    dice = parser.parse_dice_roll()
    assert dice.type is NodeType.DICE
    assert dice.get_child(0).value == 10
    assert dice.get_child(1).value == 6


def test_exponent_binds_tighter_than_multiply() -> None:
    root = _root("2*3**2")
    assert root.type is NodeType.MULTIPLY
    assert root.get_child(0).value == 2
    assert root.get_child(1).type is NodeType.EXPONENT


def test_exponent_is_right_associative() -> None:
    root = _root("2**3**2")
    assert root.type is NodeType.EXPONENT
    assert root.get_child(0).value == 2
    assert root.get_child(1).type is NodeType.EXPONENT


def test_leading_minus_wraps_first_term() -> None:
    root = _root("-1d6 + 2")
    assert root.type is NodeType.ADD
    assert root.get_child(0).type is NodeType.NEGATE
    assert root.get_child(0).get_child(0).type is NodeType.DICE


def test_leading_plus_is_ignored() -> None:
    assert _root("+3").type is NodeType.INTEGER


def test_bracketed_roll_count() -> None:
    root = _root("(4d4)d20")
    assert root.type is NodeType.DICE
    assert root.get_child(0).type is NodeType.DICE
    assert root.get_child(1).value == 20


def test_fractional_roll_count_is_kept_unevaluated() -> None:
    root = _root("(2/5)d6")
    assert root.type is NodeType.DICE
    assert root.get_child(0).type is NodeType.DIVIDE


def test_bare_dice_has_implicit_count_of_one() -> None:
    root = _root("d20")
    assert root.type is NodeType.DICE
    assert root.get_child(0).value == 1
    assert root.get_child(1).value == 20


def test_fate_dice() -> None:
    for text in ("dF", "4dF"):
        root = _root(text)
        assert root.type is NodeType.DICE
        assert root.get_child(1).value == FATE


def test_percentile_dice() -> None:
    assert _root("d%").get_child(1).value == 100


def test_keep_with_success_test() -> None:
    root = _root("4d20kh3>=15")
    assert root.type is NodeType.GREATER_OR_EQUAL
    keep, threshold = root.children
    assert keep.type is NodeType.KEEP
    assert keep.get_attribute("type") == "highest"
    assert keep.get_child(0).type is NodeType.DICE
    assert keep.get_child(1).value == 3
    assert threshold.value == 15


def test_keep_and_drop_defaults() -> None:
    keep = _root("2d20k")
    assert keep.type is NodeType.KEEP
    assert keep.get_attribute("type") == "highest"
    assert keep.child_count() == 1

    drop = _root("4d6d1")
    assert drop.type is NodeType.DROP
    assert drop.get_attribute("type") == "lowest"
    assert drop.get_child(1).value == 1

    drop_high = _root("4d6dh")
    assert drop_high.get_attribute("type") == "highest"
    assert drop_high.child_count() == 1


def test_penetrating_explode_with_condition() -> None:
    root = _root("4d6!p>5")
    assert root.type is NodeType.EXPLODE
    assert root.get_attribute("penetrate") == "yes"
    condition = root.get_child(1)
    assert condition.type is NodeType.GREATER
    assert condition.child_count() == 1
    assert condition.get_child(0).value == 5


def test_modifiers_stack_left_to_right() -> None:
    root = _root("4d6!pkh3")
    assert root.type is NodeType.KEEP
    explode = root.get_child(0)
    assert explode.type is NodeType.EXPLODE
    assert explode.get_attribute("penetrate") == "yes"
    assert explode.get_child(0).type is NodeType.DICE

    root = _root("4d6r<2sd")
    assert root.type is NodeType.SORT
    assert root.get_attribute("direction") == "descending"
    reroll = root.get_child(0)
    assert reroll.type is NodeType.REROLL
    assert reroll.get_attribute("once") == "no"
    assert reroll.get_child(1).type is NodeType.LESS


def test_modifier_after_fate_identifier_is_split() -> None:
    root = _root("4dFkh1")
    assert root.type is NodeType.KEEP
    assert root.get_child(0).get_child(1).value == FATE
    assert root.get_child(1).value == 1


def test_critical_and_reroll_once() -> None:
    root = _root("3d20cf<2")
    assert root.type is NodeType.CRITICAL
    assert root.get_attribute("type") == "failure"
    assert _root("3d6ro").get_attribute("once") == "yes"


def test_group_with_repeat() -> None:
    root = _root("{1d6, 2}...3")
    assert root.type is NodeType.GROUP
    assert root.child_count() == 2
    assert root.get_attribute("repeat") == 3
    assert _root("{}").child_count() == 0


def test_function_call_arguments() -> None:
    root = _root("max(1, 2d6)")
    assert root.type is NodeType.FUNCTION
    assert root.get_attribute("name") == "max"
    assert [c.type for c in root.children] == [NodeType.INTEGER, NodeType.DICE]
    assert _root("abs()").child_count() == 0


def test_missing_operand_is_reported_with_placeholder() -> None:
    result = parse("2 +")
    assert [d.code for d in result.errors] == ["E-PARSE-UNEXPECTED-TOKEN"]
    assert result.errors[0].position == 3
    assert "end of input" in result.errors[0].message
    assert result.root.type is NodeType.ADD
    assert result.root.get_child(1).value == 0


def test_errors_accumulate_across_the_expression() -> None:
    result = parse("(1 +) * (2 +)")
    assert [d.position for d in result.errors] == [4, 12]
    assert result.root.type is NodeType.MULTIPLY
    assert not result.ok


def test_comparisons_do_not_chain() -> None:
    assert _codes("1 >= 2 >= 3") == ["E-PARSE-TRAILING-INPUT"]


def test_unknown_dice_type() -> None:
    assert _codes("4x6") == ["E-PARSE-DICE-TYPE", "E-PARSE-TRAILING-INPUT"]


def test_lexer_errors_come_first() -> None:
    assert _codes("2 # 3") == ["E-LEX-UNKNOWN-CHAR", "E-PARSE-TRAILING-INPUT"]
