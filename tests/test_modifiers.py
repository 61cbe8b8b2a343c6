from __future__ import annotations

import pytest

from dicelang.ast import NodeType
from dicelang.config import InterpreterOptions
from dicelang.interpreter import DiceInterpreter
from dicelang.parser import parse


def _interpret(text: str, random, **options):
    parsed = parse(text)
    assert parsed.errors == []
    return DiceInterpreter(random=random, options=InterpreterOptions(**options)).interpret(parsed.root)


def _dice(result):
    node = result.tree
    while node.children and node.type is not NodeType.DICE:
        node = node.children[0]
    return node


def _values(result) -> list:
    return [die.value for die in _dice(result).children]


def _dropped(result) -> list:
    return [die.value for die in _dice(result).children if die.get_attribute("drop") == "yes"]


@pytest.mark.parametrize(
    "text,total,dropped",
    [
        ("4d6kh2", 11, [3, 1]),
        ("4d6kl1", 1, [3, 6, 5]),
        ("4d6k", 6, [3, 1, 5]),
        ("4d6d1", 14, [1]),
        ("4d6dh2", 4, [6, 5]),
    ],
)
def test_keep_and_drop(sequence_random, text: str, total: int, dropped: list) -> None:
    result = _interpret(text, sequence_random(3, 6, 1, 5))
    assert result.total == total
    assert _values(result) == [3, 6, 1, 5]
    assert sorted(_dropped(result)) == sorted(dropped)


def test_explode_inserts_after_source_die(sequence_random) -> None:
    result = _interpret("2d6!", sequence_random(6, 2, 3))
    assert _values(result) == [6, 3, 2]
    assert result.total == 11
    assert _dice(result).children[1].get_attribute("explode") == "yes"


def test_explode_chains(sequence_random) -> None:
    result = _interpret("1d6!", sequence_random(6, 6, 2))
    assert _values(result) == [6, 6, 2]
    assert result.total == 14


def test_penetrating_explode_subtracts_one(sequence_random) -> None:
    result = _interpret("1d6!p", sequence_random(6, 6, 2))
    assert _values(result) == [6, 5, 1]
    assert result.total == 12


def test_explode_with_condition(sequence_random) -> None:
    result = _interpret("2d6!>4", sequence_random(5, 1, 3))
    assert _values(result) == [5, 3, 1]
    assert result.total == 9


def test_explosions_are_capped(sequence_random) -> None:
    result = _interpret("1d1!", sequence_random(1), max_iterations=5)
    assert _values(result) == [1] * 6
    assert result.errors == ("Maximum number of explosions reached: 5.",)


def test_reroll_until_condition_fails(sequence_random) -> None:
    result = _interpret("3d6r", sequence_random(1, 4, 5, 1, 3))
    assert _values(result) == [3, 4, 5]
    assert result.total == 12
    assert _dice(result).children[0].get_attribute("rerolled") == 2
    assert not _dice(result).children[1].has_attribute("rerolled")


def test_reroll_once_keeps_second_result(sequence_random) -> None:
    result = _interpret("2d6ro", sequence_random(1, 2, 1))
    assert _values(result) == [1, 2]
    assert result.total == 3


def test_reroll_with_condition(sequence_random) -> None:
    result = _interpret("3d6r<3", sequence_random(2, 1, 6, 5, 4))
    assert _values(result) == [5, 4, 6]


def test_rerolls_are_capped(sequence_random) -> None:
    result = _interpret("1d1r", sequence_random(1), max_iterations=3)
    assert result.total == 1
    assert result.errors == ("Maximum number of rerolls reached: 3.",)


def test_critical_success_and_failure(sequence_random) -> None:
    result = _interpret("3d20cs", sequence_random(20, 1, 10))
    marks = [die.get_attribute("critical") for die in _dice(result).children]
    assert marks == ["success", None, None]
    assert result.total == 31

    result = _interpret("3d20cf", sequence_random(20, 1, 10))
    marks = [die.get_attribute("critical") for die in _dice(result).children]
    assert marks == [None, "failure", None]

    result = _interpret("3d20cs>=19", sequence_random(19, 20, 18))
    marks = [die.get_attribute("critical") for die in _dice(result).children]
    assert marks == ["success", "success", None]


def test_sort(sequence_random) -> None:
    assert _values(_interpret("4d6sa", sequence_random(3, 6, 1, 5))) == [1, 3, 5, 6]
    assert _values(_interpret("4d6sd", sequence_random(3, 6, 1, 5))) == [6, 5, 3, 1]
    assert _values(_interpret("4d6s", sequence_random(3, 6, 1, 5))) == [1, 3, 5, 6]
    assert _values(_interpret("4d6sasa", sequence_random(3, 6, 1, 5))) == [1, 3, 5, 6]


def test_explode_then_keep(sequence_random) -> None:
    result = _interpret("4d6!kh3", sequence_random(6, 2, 3, 4, 1))
    assert _values(result) == [6, 1, 2, 3, 4]
    assert result.total == 13


def test_drop_then_keep_ignores_dropped_dice(sequence_random) -> None:
    result = _interpret("5d6dl1kh2", sequence_random(1, 2, 3, 4, 5))
    assert sorted(_dropped(result)) == [1, 2, 3]
    assert result.total == 9


def test_fate_dice_reroll_minimum_face(sequence_random) -> None:
    result = _interpret("2dFr", sequence_random(-1, 1, 0))
    assert _values(result) == [0, 1]
