"""
Initiative System.

Handles turn order for encounters:
- Manual or rolled initiative scores
- Sorting by score (name as tiebreaker)
- Cycling through turns
"""
import logging
from typing import Any, Optional, Union

from dm_engine.core.dice import D20Roll, RollMode, roll_d20
from dm_engine.core.encounter import Combatant, Encounter, SystemTag, parse_number
from dm_engine.core.event_log import LogType, push_log
from dm_engine.core.rng import make_rng

logger = logging.getLogger("dm_engine.initiative")

UNROLLED_INITIATIVE = -9999  # combatants without a score act last


def set_initiative(encounter: Encounter, combatant_id: str, value: Any) -> Combatant:
    """
    Set a combatant's initiative score by hand.

    Numbers and numeric strings are kept; anything else clears the score.

    Raises:
        CombatantNotFoundError: If the id is not in the encounter
    """
    combatant = encounter.get_combatant(combatant_id)
    combatant.initiative = parse_number(value)

    push_log(
        encounter,
        LogType.INITIATIVE_MANUAL,
        {"combatant_id": combatant_id, "initiative": combatant.initiative},
    )
    return combatant


def roll_initiative_d20(
    encounter: Encounter,
    combatant_id: str,
    bonus: int = 0,
    mode: Union[RollMode, str] = RollMode.NORMAL,
    manual: Any = None,
) -> D20Roll:
    """
    Roll d20 + bonus initiative for one combatant and store the total.

    Args:
        encounter: Encounter holding the combatant
        combatant_id: Who rolls
        bonus: Initiative bonus (usually DEX modifier)
        mode: normal | adv | dis
        manual: Optional roll override

    Returns:
        The D20Roll used
    """
    combatant = encounter.get_combatant(combatant_id)
    rng = make_rng(encounter.seed)

    roll = roll_d20(bonus=bonus, mode=mode, rng=rng, manual=manual)
    combatant.initiative = roll.total

    push_log(
        encounter,
        LogType.INITIATIVE,
        {"combatant_id": combatant_id, "roll": roll.to_dict()},
        system=SystemTag.D20.value,
    )
    logger.debug(f"{combatant.name} rolled initiative {roll.total}")
    return roll


def _initiative_key(combatant: Combatant):
    score = combatant.initiative if combatant.initiative is not None else UNROLLED_INITIATIVE
    return (-score, combatant.name.casefold())


def sort_initiative(encounter: Encounter) -> None:
    """
    Order combatants by initiative, highest first.

    Ties go to the alphabetically earlier name (case-insensitive); the sort
    is stable otherwise. Resets the turn pointer to the top.
    """
    encounter.combatants.sort(key=_initiative_key)
    encounter.turn_index = 0

    order = [c.id for c in encounter.combatants]
    push_log(encounter, LogType.INITIATIVE_SORT, {"order": order})
    logger.debug(f"Initiative order: {' -> '.join(c.name for c in encounter.combatants)}")


def next_turn(encounter: Encounter) -> None:
    """Advance to the next combatant, wrapping to the top. Does nothing when empty."""
    if not encounter.combatants:
        return
    encounter.turn_index = (encounter.turn_index + 1) % len(encounter.combatants)
    push_log(encounter, LogType.TURN_NEXT, {"turn_index": encounter.turn_index})


def current_actor(encounter: Encounter) -> Optional[Combatant]:
    """The combatant whose turn it is, or None for an empty encounter."""
    if not encounter.combatants:
        return None
    return encounter.combatants[encounter.turn_index % len(encounter.combatants)]
