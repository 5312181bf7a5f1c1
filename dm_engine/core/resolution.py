"""
Combat resolution procedures.

Implements the three table mechanics the engine resolves:
- d20 attack roll vs armor class, with natural 20/1 and critical damage
- d20 saving throw against a DC for one or many targets (area effects)
- Shadowrun-style d6 pool tests, single and opposed, with soak

Every procedure builds a fresh random source from the encounter seed, so a
seeded encounter replays the same dice for the same call. Combatant ids are
validated before anything is rolled or mutated; each call appends exactly one
log entry.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from dm_engine.core.damage_tracks import DamageTrack, apply_damage, is_incapacitated
from dm_engine.core.dice import (
    D20Roll,
    DiceRoll,
    DiceSpec,
    PoolRoll,
    RollMode,
    roll_d20,
    roll_d6_pool,
    roll_dice,
)
from dm_engine.core.encounter import Encounter, SystemTag, iter_combatants
from dm_engine.core.errors import ValidationError
from dm_engine.core.event_log import LogEntry, LogType, push_log
from dm_engine.core.rng import make_rng

logger = logging.getLogger("dm_engine.resolution")

DEFAULT_ARMOR_CLASS = 10
DEFAULT_ATTACK_DAMAGE = DiceSpec(count=1, sides=8, bonus=0, damage_type="slashing")
DEFAULT_SAVE_DAMAGE = DiceSpec(count=8, sides=6, bonus=0, damage_type="fire")  # fireball


class SuccessPolicy(str, Enum):
    """Damage taken on a successful save."""
    HALF = "half"
    NONE = "none"

    @classmethod
    def coerce(cls, value: Union["SuccessPolicy", str]) -> "SuccessPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError("on_success", "On-success policy must be 'half' or 'none'", value)


# =============================================================================
# Outcomes
# =============================================================================

@dataclass
class AttackOutcome:
    """Result of resolve_d20_attack."""
    entry: LogEntry
    to_hit: D20Roll
    hit: bool
    crit: bool
    damage: DiceRoll
    target_hp: Optional[int]


@dataclass
class SaveResult:
    """One target's saving throw."""
    target_id: str
    save: D20Roll
    success: bool
    applied_damage: int
    hp_after: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "save": self.save.to_dict(),
            "success": self.success,
            "applied_damage": self.applied_damage,
            "hp_after": self.hp_after,
        }


@dataclass
class SaveOutcome:
    """Result of resolve_d20_save."""
    entry: LogEntry
    damage: DiceRoll
    results: List[SaveResult] = field(default_factory=list)


@dataclass
class PoolTestOutcome:
    """Result of resolve_d6_pool_test."""
    entry: LogEntry
    roll: PoolRoll
    passed: Optional[bool]


@dataclass
class OpposedOutcome:
    """Result of resolve_opposed_d6_test."""
    entry: LogEntry
    hit: bool
    net_hits: int
    damage_applied: int
    attack: PoolRoll
    defense: PoolRoll
    soak: Optional[PoolRoll] = None


def _subtract_hp(hp: Optional[int], amount: Union[int, float]) -> Optional[int]:
    """Hit points only change when the combatant tracks them."""
    if hp is None:
        return None
    return max(0, hp - amount)


# =============================================================================
# d20
# =============================================================================

def resolve_d20_attack(
    encounter: Encounter,
    attacker_id: str,
    target_id: str,
    to_hit_bonus: int = 0,
    adv_mode: Union[RollMode, str] = RollMode.NORMAL,
    damage: Union[DiceSpec, Mapping[str, Any], str] = DEFAULT_ATTACK_DAMAGE,
    manual_to_hit: Any = None,
    manual_damage: Any = None,
    allow_crit: bool = True,
) -> AttackOutcome:
    """
    Resolve an attack roll against the target's armor class.

    A natural 20 on any rolled die always hits, a natural 1 always misses.
    On a critical hit the damage dice count is doubled (the bonus is not).

    Args:
        encounter: Encounter holding both combatants
        attacker_id: Who attacks
        target_id: Who is attacked
        to_hit_bonus: Attack bonus added to the d20
        adv_mode: normal | adv | dis
        damage: Damage dice on a hit (spec, mapping or "1d8+3")
        manual_to_hit: Optional override for the attack roll
        manual_damage: Optional override for the damage roll
        allow_crit: Whether a natural 20 doubles damage dice

    Returns:
        AttackOutcome with the log entry, rolls, hit/crit flags and target hp

    Raises:
        CombatantNotFoundError: If either id is not in the encounter
    """
    attacker = encounter.get_combatant(attacker_id)
    target = encounter.get_combatant(target_id)
    damage = DiceSpec.coerce(damage)
    rng = make_rng(encounter.seed)

    to_hit = roll_d20(bonus=to_hit_bonus, mode=adv_mode, rng=rng, manual=manual_to_hit)
    ac = target.ac if target.ac is not None else DEFAULT_ARMOR_CLASS

    if to_hit.natural_20:
        hit = True
    elif to_hit.natural_1:
        hit = False
    else:
        hit = to_hit.total >= ac

    crit = False
    damage_roll = DiceRoll()
    if hit:
        dice = damage
        if allow_crit and to_hit.natural_20:
            crit = True
            dice = damage.doubled()
        damage_roll = roll_dice(dice, rng, manual_damage)
        target.hp = _subtract_hp(target.hp, damage_roll.total)

    entry = push_log(
        encounter,
        LogType.D20_ATTACK,
        {
            "attacker_id": attacker_id,
            "target_id": target_id,
            "to_hit": to_hit.to_dict(),
            "ac": ac,
            "hit": hit,
            "crit": crit,
            "damage": damage_roll.to_dict(),
            "damage_type": damage.damage_type,
            "hp_after": target.hp,
        },
        system=SystemTag.D20.value,
    )
    logger.debug(
        f"{attacker.name} attacks {target.name}: {to_hit.total} vs AC {ac} "
        f"-> {'CRIT' if crit else 'hit' if hit else 'miss'} for {damage_roll.total}"
    )
    return AttackOutcome(
        entry=entry,
        to_hit=to_hit,
        hit=hit,
        crit=crit,
        damage=damage_roll,
        target_hp=target.hp,
    )


def resolve_d20_save(
    encounter: Encounter,
    target_ids: Sequence[str],
    save_stat: str = "dex",
    dc: int = 13,
    on_fail: Union[DiceSpec, Mapping[str, Any], str] = DEFAULT_SAVE_DAMAGE,
    on_success: Union[SuccessPolicy, str] = SuccessPolicy.HALF,
    caster_id: Optional[str] = None,
    manual_saves: Optional[Mapping[str, Any]] = None,
    manual_damage: Any = None,
) -> SaveOutcome:
    """
    Resolve a saving throw for every target of an effect.

    Damage is rolled once and shared by all targets. Each target saves with
    d20 + '<save_stat>_save' (or the raw stat, or 0). Failure takes full
    damage; success takes half (rounded down) or nothing per on_success.
    Target ids that don't resolve are skipped.

    Args:
        encounter: Encounter holding the targets
        target_ids: Who must save
        save_stat: Stat key for the save bonus (e.g. "dex")
        dc: Difficulty class to meet or beat
        on_fail: Damage dice on a failed save
        on_success: half | none
        caster_id: Source of the effect, recorded in the log only
        manual_saves: Per-target roll overrides, keyed by target id
        manual_damage: Optional override for the shared damage roll

    Returns:
        SaveOutcome with the log entry, shared damage roll and per-target results
    """
    policy = SuccessPolicy.coerce(on_success)
    on_fail = DiceSpec.coerce(on_fail)
    if not isinstance(manual_saves, Mapping):
        manual_saves = {}
    rng = make_rng(encounter.seed)

    damage_roll = roll_dice(on_fail, rng, manual_damage)

    results: List[SaveResult] = []
    for target in iter_combatants(encounter, target_ids):
        bonus = target.save_bonus(save_stat)
        save = roll_d20(bonus=bonus, mode=RollMode.NORMAL, rng=rng, manual=manual_saves.get(target.id))
        success = save.total >= dc

        if not success:
            applied = damage_roll.total
        elif policy == SuccessPolicy.HALF:
            applied = damage_roll.total // 2
        else:
            applied = 0

        target.hp = _subtract_hp(target.hp, applied)
        results.append(SaveResult(
            target_id=target.id,
            save=save,
            success=success,
            applied_damage=applied,
            hp_after=target.hp,
        ))

    entry = push_log(
        encounter,
        LogType.D20_SAVE,
        {
            "caster_id": caster_id,
            "save_stat": save_stat,
            "dc": dc,
            "damage": damage_roll.to_dict(),
            "damage_type": on_fail.damage_type,
            "on_success": policy.value,
            "results": [r.to_dict() for r in results],
        },
        system=SystemTag.D20.value,
    )
    logger.debug(
        f"DC {dc} {save_stat} save for {len(results)} target(s): "
        f"{sum(1 for r in results if r.success)} succeeded, damage {damage_roll.total}"
    )
    return SaveOutcome(entry=entry, damage=damage_roll, results=results)


# =============================================================================
# d6 pool
# =============================================================================

def resolve_d6_pool_test(
    encounter: Encounter,
    actor_id: str,
    pool_dice: int,
    limit: Optional[int] = None,
    threshold: Optional[int] = None,
    manual: Any = None,
) -> PoolTestOutcome:
    """
    Roll a single d6 pool, optionally against a threshold.

    Returns:
        PoolTestOutcome; passed is None when no threshold was given

    Raises:
        CombatantNotFoundError: If the actor is not in the encounter
    """
    actor = encounter.get_combatant(actor_id)
    rng = make_rng(encounter.seed)

    roll = roll_d6_pool(pool_dice, limit=limit, rng=rng, manual=manual)
    passed = roll.hits >= threshold if threshold is not None else None

    entry = push_log(
        encounter,
        LogType.D6POOL_TEST,
        {
            "actor_id": actor_id,
            "roll": roll.to_dict(),
            "threshold": threshold,
            "passed": passed,
        },
        system=SystemTag.D6POOL.value,
    )
    logger.debug(f"{actor.name} pool test: {roll.hits} hit(s) vs threshold {threshold}")
    return PoolTestOutcome(entry=entry, roll=roll, passed=passed)


def resolve_opposed_d6_test(
    encounter: Encounter,
    attacker_id: str,
    defender_id: str,
    attack_dice: int,
    defense_dice: int,
    attack_limit: Optional[int] = None,
    defense_limit: Optional[int] = None,
    base_damage: int = 0,
    track: Union[DamageTrack, str] = DamageTrack.PHYSICAL,
    apply_soak: bool = False,
    soak_dice: Optional[int] = None,
    manual_attack: Any = None,
    manual_defense: Any = None,
    manual_soak: Any = None,
) -> OpposedOutcome:
    """
    Resolve an opposed d6 pool test (attack vs defense).

    Net hits are attacker hits minus defender hits, floored at 0; any net hit
    is a hit. Damage is base_damage + net hits. With apply_soak the defender
    rolls a soak pool (soak_dice, else their stored soak dice) and each soak
    hit removes one point. What remains lands on the chosen damage track.

    Args:
        encounter: Encounter holding both combatants
        attacker_id: Who attacks
        defender_id: Who defends (and takes damage)
        attack_dice: Attacker pool size
        defense_dice: Defender pool size
        attack_limit: Optional cap on attacker hits
        defense_limit: Optional cap on defender hits
        base_damage: Damage value before net hits
        track: stun | physical
        apply_soak: Whether the defender soaks
        soak_dice: Soak pool size override
        manual_attack: Optional override for the attack pool
        manual_defense: Optional override for the defense pool
        manual_soak: Optional override for the soak pool

    Returns:
        OpposedOutcome with the log entry, hit flag, net hits, damage and rolls

    Raises:
        CombatantNotFoundError: If either id is not in the encounter
    """
    attacker = encounter.get_combatant(attacker_id)
    defender = encounter.get_combatant(defender_id)
    track = DamageTrack.coerce(track)
    rng = make_rng(encounter.seed)

    attack = roll_d6_pool(attack_dice, limit=attack_limit, rng=rng, manual=manual_attack)
    defense = roll_d6_pool(defense_dice, limit=defense_limit, rng=rng, manual=manual_defense)

    net_hits = max(0, attack.hits - defense.hits)
    hit = net_hits > 0
    damage_value = base_damage + net_hits if hit else 0

    soak: Optional[PoolRoll] = None
    if hit and apply_soak:
        soak_pool = soak_dice if soak_dice is not None else defender.sr.soak_dice
        soak = roll_d6_pool(soak_pool, rng=rng, manual=manual_soak)
        damage_value = max(0, damage_value - soak.hits)

    landed = None
    if damage_value > 0:
        landed = apply_damage(defender, track, damage_value)

    incapacitated = is_incapacitated(defender)
    entry = push_log(
        encounter,
        LogType.D6POOL_OPPOSED,
        {
            "attacker_id": attacker_id,
            "defender_id": defender_id,
            "attack": attack.to_dict(),
            "defense": defense.to_dict(),
            "net_hits": net_hits,
            "hit": hit,
            "base_damage": base_damage,
            "applied_soak": apply_soak,
            "soak": soak.to_dict() if soak else None,
            "damage_applied": damage_value,
            "track": track.value,
            "track_damage": landed.to_dict() if landed else None,
            "tracks_after": defender.sr.monitor(),
            "incapacitated": incapacitated,
        },
        system=SystemTag.D6POOL.value,
    )
    logger.debug(
        f"{attacker.name} vs {defender.name}: {attack.hits} - {defense.hits} hits, "
        f"{damage_value} {track.value} damage"
    )
    if incapacitated:
        logger.info(f"{defender.name} is incapacitated")
    return OpposedOutcome(
        entry=entry,
        hit=hit,
        net_hits=net_hits,
        damage_applied=damage_value,
        attack=attack,
        defense=defense,
        soak=soak,
    )
