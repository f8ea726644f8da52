"""Dice notation parsing and rolling for shared session rolls."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from typing import List, Optional

from tabletop.game_server.errors import ValidationError

MAX_DICE = 100
MAX_SIDES = 1000

# Matches "d20", "2d6", "2d6+3", "3d8 - 2"; digit runs are capped before int()
_DICE_RE = re.compile(
    r"^\s*(\d{0,3})d(\d{1,4})\s*([+-]\s*\d{1,4})?\s*$", re.IGNORECASE
)


@dataclass(frozen=True)
class DiceExpr:
    """Parsed NdM±K expression."""

    num_dice: int
    sides: int
    modifier: int = 0

    @property
    def formula(self) -> str:
        if self.modifier == 0:
            return f"{self.num_dice}d{self.sides}"
        sign = "+" if self.modifier > 0 else "-"
        return f"{self.num_dice}d{self.sides}{sign}{abs(self.modifier)}"


@dataclass(frozen=True)
class RollResult:
    formula: str
    total: int
    rolls: List[int] = field(default_factory=list)
    modifier: int = 0
    details: str = ""


def parse_dice(notation: str) -> DiceExpr:
    """Parse standard dice notation; "d20" means one die.

    Raises:
        ValidationError: For malformed notation or out-of-range counts
    """
    if not isinstance(notation, str):
        raise ValidationError("formula must be a string")
    match = _DICE_RE.match(notation)
    if not match:
        raise ValidationError(f"Invalid dice formula: {notation!r}")

    count_str, sides_str, modifier_str = match.groups()
    num_dice = int(count_str) if count_str else 1
    sides = int(sides_str)
    modifier = int(modifier_str.replace(" ", "")) if modifier_str else 0

    if not 1 <= num_dice <= MAX_DICE:
        raise ValidationError(f"Dice count must be between 1 and {MAX_DICE}")
    if not 2 <= sides <= MAX_SIDES:
        raise ValidationError(f"Dice sides must be between 2 and {MAX_SIDES}")
    return DiceExpr(num_dice=num_dice, sides=sides, modifier=modifier)


def _format_modifier(modifier: int) -> str:
    if modifier == 0:
        return ""
    return f" {'+' if modifier > 0 else '-'}{abs(modifier)}"


class DiceRoller:
    """Seedable roller so tests can reproduce results."""

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    def roll_die(self, sides: int) -> int:
        return self._rng.randint(1, sides)

    def roll(
        self,
        notation: str,
        *,
        advantage: bool = False,
        disadvantage: bool = False,
    ) -> RollResult:
        """Roll ``notation``.

        Advantage/disadvantage apply to single-die rolls only: two dice are
        rolled and the higher (or lower) one is kept before the modifier.
        Setting both cancels them out.
        """
        expr = parse_dice(notation)
        if advantage and disadvantage:
            advantage = disadvantage = False

        if advantage or disadvantage:
            if expr.num_dice != 1:
                raise ValidationError("Advantage applies to single-die rolls only")
            first = self.roll_die(expr.sides)
            second = self.roll_die(expr.sides)
            kept = max(first, second) if advantage else min(first, second)
            label = "Advantage" if advantage else "Disadvantage"
            total = kept + expr.modifier
            details = (
                f"{label}: {first}, {second} → {kept}{_format_modifier(expr.modifier)}"
            )
            return RollResult(
                formula=expr.formula,
                total=total,
                rolls=[first, second],
                modifier=expr.modifier,
                details=details,
            )

        rolls = [self.roll_die(expr.sides) for _ in range(expr.num_dice)]
        subtotal = sum(rolls)
        details = f"Rolls: [{', '.join(str(r) for r in rolls)}] = {subtotal}"
        details += _format_modifier(expr.modifier)
        return RollResult(
            formula=expr.formula,
            total=subtotal + expr.modifier,
            rolls=rolls,
            modifier=expr.modifier,
            details=details,
        )


__all__ = ["DiceExpr", "RollResult", "DiceRoller", "parse_dice", "MAX_DICE", "MAX_SIDES"]
