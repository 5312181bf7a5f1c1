"""
Dice rolling primitives for the encounter engine.

Handles:
- Single dice and multi-die sums with a flat bonus
- d20 rolls with advantage/disadvantage
- Shadowrun-style d6 pools (hits on 5 and 6, optional limit)
- Manual overrides, so every roll can be forced by the table instead of the RNG

A manual override is either ManualRolls (the physical dice the player rolled)
or ManualTotal (a final number). Malformed overrides are ignored and the roll
happens normally.
"""
import logging
import math
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from dm_engine.core.errors import ValidationError
from dm_engine.core.rng import RandomSource, make_rng

logger = logging.getLogger("dm_engine.dice")

POOL_HIT_THRESHOLD = 5  # d6 pool: 5 and 6 are hits

# "2d6+3", "1d8 - 1", "d20"
_FORMULA_PATTERN = re.compile(r'^(\d*)d(\d+)(?:([+-])(\d+))?$')


class RollMode(str, Enum):
    """d20 roll mode."""
    NORMAL = "normal"
    ADVANTAGE = "adv"
    DISADVANTAGE = "dis"

    @classmethod
    def coerce(cls, value: Any) -> "RollMode":
        """Accept enum members, short or long names; anything else rolls normally."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        if text in ("adv", "a", "advantage"):
            return cls.ADVANTAGE
        if text in ("dis", "d", "disadvantage"):
            return cls.DISADVANTAGE
        return cls.NORMAL


# =============================================================================
# Manual overrides
# =============================================================================

def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def _to_number(value: Any) -> Union[int, float]:
    """Coerce a die face; anything non-numeric counts as 0."""
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if not _is_number(value) or math.isinf(value):
        return 0
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


@dataclass(frozen=True)
class ManualRolls:
    """Dice faces supplied by the caller instead of rolled."""
    rolls: Tuple[Union[int, float], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "rolls", tuple(_to_number(r) for r in self.rolls))


@dataclass(frozen=True)
class ManualTotal:
    """A final result supplied by the caller; no individual dice."""
    total: Union[int, float]


ManualOverride = Union[ManualRolls, ManualTotal]


def parse_manual(raw: Any) -> Optional[ManualOverride]:
    """
    Normalize a manual override.

    Accepts ManualRolls/ManualTotal or a mapping like {"rolls": [4, 2]} or
    {"total": 17}. A rolls list wins over a total when both are present.

    Returns:
        The override, or None when the input is absent or malformed
    """
    if raw is None:
        return None
    if isinstance(raw, (ManualRolls, ManualTotal)):
        return raw
    if isinstance(raw, Mapping):
        rolls = raw.get("rolls")
        if isinstance(rolls, (list, tuple)):
            return ManualRolls(tuple(rolls))
        total = raw.get("total")
        if _is_number(total):
            return ManualTotal(total)
    logger.debug(f"Ignoring malformed manual override: {raw!r}")
    return None


# =============================================================================
# Roll results
# =============================================================================

@dataclass
class DiceSpec:
    """A dice expression: count x d(sides) + bonus, optionally typed (fire, slashing...)."""
    count: int = 1
    sides: int = 8
    bonus: int = 0
    damage_type: Optional[str] = None

    def doubled(self) -> "DiceSpec":
        """Critical hit: twice the dice, same bonus."""
        return replace(self, count=self.count * 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "sides": self.sides,
            "bonus": self.bonus,
            "damage_type": self.damage_type,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DiceSpec":
        return cls(
            count=int(data.get("count", 1) or 0),
            sides=int(data.get("sides", 8) or 0),
            bonus=int(data.get("bonus", 0) or 0),
            damage_type=data.get("damage_type", data.get("type")),
        )

    @classmethod
    def parse(cls, formula: str, damage_type: Optional[str] = None) -> "DiceSpec":
        """
        Parse dice notation into a spec.

        Args:
            formula: Notation like "2d6+3", "1d8-1" or "d20"
            damage_type: Optional damage type to attach

        Returns:
            DiceSpec for the formula

        Raises:
            ValidationError: If the formula is not NdS[+/-M]
        """
        notation = str(formula or "").lower().replace(" ", "")
        match = _FORMULA_PATTERN.match(notation)
        if not match:
            raise ValidationError("formula", f"Invalid dice formula: {formula!r}", formula)

        count = int(match.group(1)) if match.group(1) else 1
        sides = int(match.group(2))
        if sides < 1:
            raise ValidationError("formula", f"Invalid die: d{sides}", formula)
        bonus = int(match.group(4)) if match.group(4) else 0
        if match.group(3) == "-":
            bonus = -bonus
        return cls(count=count, sides=sides, bonus=bonus, damage_type=damage_type)

    @classmethod
    def coerce(cls, value: Union["DiceSpec", Mapping[str, Any], str]) -> "DiceSpec":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        return cls.from_dict(value)

    def __str__(self) -> str:
        if self.bonus:
            sign = "+" if self.bonus > 0 else "-"
            return f"{self.count}d{self.sides}{sign}{abs(self.bonus)}"
        return f"{self.count}d{self.sides}"


@dataclass
class DiceRoll:
    """Result of a multi-die roll."""
    rolls: List[Union[int, float]] = field(default_factory=list)
    total: Union[int, float] = 0
    bonus: int = 0
    manual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rolls": list(self.rolls),
            "total": self.total,
            "bonus": self.bonus,
            "manual": self.manual,
        }


@dataclass
class D20Roll:
    """Result of a d20 roll, tracking the mode and which die was used."""
    rolls: List[Union[int, float]]
    picked: Union[int, float]
    total: Union[int, float]
    bonus: int = 0
    mode: RollMode = RollMode.NORMAL
    manual: bool = False

    @property
    def natural_20(self) -> bool:
        """Any raw die showed 20 (also counts the unpicked die)."""
        return 20 in self.rolls

    @property
    def natural_1(self) -> bool:
        return 1 in self.rolls

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rolls": list(self.rolls),
            "picked": self.picked,
            "total": self.total,
            "bonus": self.bonus,
            "mode": self.mode.value,
            "manual": self.manual,
        }


@dataclass
class PoolRoll:
    """Result of a d6 pool roll."""
    rolls: List[Union[int, float]]
    hits: int
    limit: Optional[int] = None
    manual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rolls": list(self.rolls),
            "hits": self.hits,
            "limit": self.limit,
            "manual": self.manual,
        }


# =============================================================================
# Rolling
# =============================================================================

def roll_die(sides: int, rng: Optional[RandomSource] = None) -> int:
    """Roll a single die with the given number of sides."""
    if sides < 1:
        raise ValueError(f"Invalid die: d{sides}")
    source = rng if rng is not None else make_rng()
    return 1 + math.floor(source.random() * sides)


def roll_dice(
    spec: Union[DiceSpec, Mapping[str, Any], str],
    rng: Optional[RandomSource] = None,
    manual: Any = None,
) -> DiceRoll:
    """
    Roll count x d(sides) + bonus.

    Args:
        spec: Dice to roll
        rng: Random source (non-deterministic if omitted)
        manual: Optional override. Rolls keep the bonus; a total replaces
            everything and zeroes the bonus.

    Returns:
        DiceRoll with individual dice and total
    """
    spec = DiceSpec.coerce(spec)
    override = parse_manual(manual)

    if isinstance(override, ManualRolls):
        rolls = list(override.rolls)
        return DiceRoll(rolls=rolls, total=sum(rolls) + spec.bonus, bonus=spec.bonus, manual=True)
    if isinstance(override, ManualTotal):
        return DiceRoll(rolls=[], total=override.total, bonus=0, manual=True)

    rolls = [roll_die(spec.sides, rng) for _ in range(max(0, spec.count))]
    return DiceRoll(rolls=rolls, total=sum(rolls) + spec.bonus, bonus=spec.bonus, manual=False)


def pick_adv_dis(rolls: Sequence[Union[int, float]], mode: RollMode) -> Union[int, float]:
    """Pick the die that counts: max on advantage, min on disadvantage, else the first."""
    if not rolls:
        return 0
    if mode == RollMode.ADVANTAGE:
        return max(rolls)
    if mode == RollMode.DISADVANTAGE:
        return min(rolls)
    return rolls[0]


def roll_d20(
    bonus: int = 0,
    mode: Union[RollMode, str] = RollMode.NORMAL,
    rng: Optional[RandomSource] = None,
    manual: Any = None,
) -> D20Roll:
    """
    Roll a d20 with optional advantage/disadvantage.

    Args:
        bonus: Bonus to add to the picked die
        mode: normal | adv | dis
        rng: Random source (non-deterministic if omitted)
        manual: ManualRolls are picked from with the same mode rule;
            ManualTotal forces the final total (no dice, bonus zeroed)

    Returns:
        D20Roll with all dice, the picked die and the total
    """
    mode = RollMode.coerce(mode)
    override = parse_manual(manual)

    if isinstance(override, ManualRolls):
        rolls = list(override.rolls)
        picked = pick_adv_dis(rolls, mode)
        return D20Roll(rolls=rolls, picked=picked, total=picked + bonus, bonus=bonus, mode=mode, manual=True)
    if isinstance(override, ManualTotal):
        return D20Roll(rolls=[], picked=override.total, total=override.total, bonus=0, mode=mode, manual=True)

    if mode == RollMode.NORMAL:
        rolls = [roll_die(20, rng)]
    else:
        rolls = [roll_die(20, rng), roll_die(20, rng)]
    picked = pick_adv_dis(rolls, mode)
    return D20Roll(rolls=rolls, picked=picked, total=picked + bonus, bonus=bonus, mode=mode, manual=False)


def count_hits(rolls: Sequence[Union[int, float]], limit: Any = None) -> int:
    """Count 5s and 6s, capped by the limit when one is set."""
    hits = sum(1 for r in rolls if r >= POOL_HIT_THRESHOLD)
    if _is_number(limit):
        hits = min(hits, int(limit))
    return hits


def roll_d6_pool(
    dice: int,
    limit: Optional[int] = None,
    rng: Optional[RandomSource] = None,
    manual: Any = None,
) -> PoolRoll:
    """
    Roll a Shadowrun-style d6 pool.

    Only a ManualRolls override is honored; a forced total means nothing for
    a pool, so the pool is rolled normally in that case.
    """
    if not _is_number(limit):
        limit = None
    override = parse_manual(manual)

    if isinstance(override, ManualRolls):
        rolls = list(override.rolls)
        return PoolRoll(rolls=rolls, hits=count_hits(rolls, limit), limit=limit, manual=True)

    rolls = [roll_die(6, rng) for _ in range(max(0, int(dice or 0)))]
    return PoolRoll(rolls=rolls, hits=count_hits(rolls, limit), limit=limit, manual=False)
