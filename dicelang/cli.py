#!/usr/bin/env python3
from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

from . import roll
from .config import InterpreterOptions, load_options
from .errors import DiceError
from .generator import DiceGenerator
from .interpreter import DiceResult
from .random_provider import DefaultRandomProvider


def _build_options(args: argparse.Namespace) -> InterpreterOptions:
    options = load_options(args.config) if args.config else InterpreterOptions()
    overrides = {}
    if args.max_rolls is not None:
        overrides["max_roll_times"] = args.max_rolls
    if args.max_sides is not None:
        overrides["max_dice_sides"] = args.max_sides
    if args.max_iterations is not None:
        overrides["max_iterations"] = args.max_iterations
    return dataclasses.replace(options, **overrides)


def _print_result(result: DiceResult, file=None) -> None:
    if file is None:
        file = sys.stdout
    rendered = DiceGenerator().generate(result.tree)
    print(f"{rendered} = {result.total}", file=file)
    if result.successes or result.fails:
        print(f"successes: {result.successes}, fails: {result.fails}", file=file)


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="dicelang", description="Roll a tabletop dice expression")
    ap.add_argument("expression", help='Dice expression, e.g. "4d6kh3 + 2"')
    ap.add_argument("--seed", type=int, help="Seed the random provider for reproducible rolls")
    ap.add_argument("--config", type=Path, help="TOML file with a [dicelang] table of limits")
    ap.add_argument("--max-rolls", type=int, help="Maximum number of dice in a single roll")
    ap.add_argument("--max-sides", type=int, help="Maximum number of sides per die")
    ap.add_argument("--max-iterations", type=int, help="Cap on explosions per modifier and rerolls per die")
    ap.add_argument("--json", action="store_true", help="Print the full result, including the expanded tree, as JSON")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log individual rolls to stderr")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        options = _build_options(args)
        result = roll(args.expression, random=DefaultRandomProvider(args.seed), options=options)
    except DiceError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        _print_result(result)
    for message in result.errors:
        print(f"error: {message}", file=sys.stderr)
    return 1 if result.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
