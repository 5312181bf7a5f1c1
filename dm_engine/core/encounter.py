"""
Encounter and combatant state.

An Encounter owns its combatants (in turn order), the turn pointer and the
event log. Resolution procedures mutate it in place; every mutation appends
a log entry carrying a snapshot of the state after the change.
"""
import copy
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from dm_engine.config import get_settings
from dm_engine.core.damage_tracks import DamageTracks
from dm_engine.core.errors import CombatantNotFoundError, ValidationError
from dm_engine.core.event_log import LogEntry, parse_timestamp
from dm_engine.core.rng import Seed

logger = logging.getLogger("dm_engine.encounter")


class SystemTag(str, Enum):
    """Which rules family the encounter is run with."""
    D20 = "d20"
    D6POOL = "d6pool"

    @classmethod
    def coerce(cls, value: Union["SystemTag", str]) -> "SystemTag":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError("system", "System must be 'd20' or 'd6pool'", value)


def _optional_number(value: Any) -> Optional[Union[int, float]]:
    """Numbers pass through; anything else means 'not tracked'."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_number(value: Any) -> Optional[Union[int, float]]:
    """Like _optional_number, but numeric strings are parsed too."""
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    return _optional_number(value)


def _clean_stats(stats: Optional[Mapping[str, Any]]) -> Dict[str, Union[int, float]]:
    cleaned: Dict[str, Union[int, float]] = {}
    for key, value in (stats or {}).items():
        number = parse_number(value)
        if number is not None:
            cleaned[str(key)] = number
    return cleaned


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _generate_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Combatant:
    """
    A participant in an encounter.

    Attributes:
        id: Unique identifier within the encounter
        name: Display name
        hp: Hit points, or None when the combatant doesn't track them
        ac: Armor class, or None (attacks then use 10)
        initiative: Initiative score, or None when not rolled yet
        stats: Numeric stats, e.g. {"dex": 2, "dex_save": 5}
        conditions: Condition tags ("prone", "blinded", ...)
        sr: Stun/physical condition monitor and soak pool
    """
    id: str = field(default_factory=_generate_id)
    name: str = "Unknown"
    hp: Optional[int] = None
    ac: Optional[int] = None
    initiative: Optional[Union[int, float]] = None
    stats: Dict[str, Union[int, float]] = field(default_factory=dict)
    conditions: Set[str] = field(default_factory=set)
    sr: DamageTracks = field(default_factory=DamageTracks)

    def __post_init__(self):
        self.hp = _optional_number(self.hp)
        if self.hp is not None:
            self.hp = max(0, self.hp)
        self.ac = _optional_number(self.ac)
        self.initiative = _optional_number(self.initiative)
        self.stats = _clean_stats(self.stats)
        self.conditions = set(self.conditions or ())

    def save_bonus(self, stat: str) -> Union[int, float]:
        """Saving throw bonus: '<stat>_save' first, then the raw stat, else 0."""
        value = self.stats.get(f"{stat}_save")
        if value is None:
            value = self.stats.get(stat)
        return value if value is not None else 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "hp": self.hp,
            "ac": self.ac,
            "initiative": self.initiative,
            "stats": dict(self.stats),
            "conditions": sorted(self.conditions),
            "sr": self.sr.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Combatant":
        """Create from dictionary. Accepts 'init' as an alias for initiative."""
        sr_data = data.get("sr") or {}
        initiative = data.get("initiative", data.get("init"))
        return cls(
            id=str(data.get("id") or _generate_id()),
            name=str(data.get("name") or "Unknown"),
            hp=data.get("hp"),
            ac=data.get("ac"),
            initiative=initiative,
            stats=data.get("stats") or {},
            conditions=set(data.get("conditions") or ()),
            sr=DamageTracks.from_dict(sr_data),
        )


@dataclass
class Encounter:
    """
    A bounded combat session: ordered combatants, turn pointer, event log.

    The combatant list order is the turn order. turn_index always points
    inside the list while it is non-empty.
    """
    system: SystemTag = SystemTag.D20
    title: str = "Encounter"
    seed: Optional[Seed] = None
    id: str = field(default_factory=_generate_id)
    created_at: datetime = field(default_factory=_utc_now)
    combatants: List[Combatant] = field(default_factory=list)
    turn_index: int = 0
    log: List[LogEntry] = field(default_factory=list)

    def find_combatant(self, combatant_id: str) -> Optional[Combatant]:
        for combatant in self.combatants:
            if combatant.id == combatant_id:
                return combatant
        return None

    def get_combatant(self, combatant_id: str) -> Combatant:
        combatant = self.find_combatant(combatant_id)
        if combatant is None:
            raise CombatantNotFoundError(combatant_id)
        return combatant

    def state_dict(self) -> Dict[str, Any]:
        """Everything except the log; this is what log entries snapshot."""
        return {
            "id": self.id,
            "title": self.title,
            "system": self.system.value,
            "seed": self.seed,
            "created_at": self.created_at.isoformat(),
            "combatants": [c.to_dict() for c in self.combatants],
            "turn_index": self.turn_index,
        }

    def restore_state(self, state: Mapping[str, Any]) -> None:
        """Replace combatants, turn pointer, system, seed and timestamp from a state dict."""
        state = copy.deepcopy(state)
        self.system = SystemTag.coerce(state.get("system", self.system))
        self.seed = state.get("seed")
        created_at = parse_timestamp(state.get("created_at"))
        if created_at is not None:
            self.created_at = created_at
        self.combatants = [Combatant.from_dict(c) for c in state.get("combatants", [])]
        self.turn_index = int(state.get("turn_index", 0))

    def to_dict(self) -> Dict[str, Any]:
        """Full encounter including the log."""
        data = self.state_dict()
        data["log"] = [entry.to_dict() for entry in self.log]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Encounter":
        encounter = cls(
            system=SystemTag.coerce(data.get("system", SystemTag.D20)),
            title=str(data.get("title") or get_settings().DEFAULT_TITLE),
            id=str(data.get("id") or _generate_id()),
        )
        encounter.restore_state(data)
        encounter.log = [LogEntry.from_dict(e) for e in data.get("log", [])]
        return encounter


def create_encounter(
    system: Union[SystemTag, str] = SystemTag.D20,
    seed: Optional[Seed] = None,
    title: Optional[str] = None,
) -> Encounter:
    """
    Create an empty encounter.

    Args:
        system: d20 | d6pool
        seed: Optional seed for replayable rolls
        title: Display title (defaults to the configured default title)
    """
    encounter = Encounter(
        system=SystemTag.coerce(system),
        title=title or get_settings().DEFAULT_TITLE,
        seed=seed if seed != "" else None,
    )
    logger.info(
        f"Created encounter {encounter.id} ({encounter.system.value}, seeded={encounter.seed is not None})"
    )
    return encounter


_SR_KEYS = ("stun_max", "phys_max", "stun_dmg", "phys_dmg", "soak_dice")


def add_combatant(
    encounter: Encounter,
    fields: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> Combatant:
    """
    Append a combatant to the encounter.

    Fields can be passed as a mapping, as keyword arguments, or both.
    Condition monitor values go in an 'sr' mapping or as flat keys
    (stun_max, phys_max, soak_dice, ...). Omitted numbers mean 'not tracked'
    for hp/ac/initiative and the defaults of DamageTracks for the monitor.

    Returns:
        The new Combatant (owned by the encounter)
    """
    data: Dict[str, Any] = dict(fields or {})
    data.update(kwargs)

    sr_data = dict(data.get("sr") or {})
    for key in _SR_KEYS:
        if key in data:
            sr_data[key] = data[key]
    data["sr"] = sr_data

    combatant = Combatant.from_dict(data)
    if encounter.find_combatant(combatant.id) is not None:
        raise ValidationError("id", "Combatant id already exists in this encounter", combatant.id)

    encounter.combatants.append(combatant)
    logger.debug(f"Added combatant {combatant.name} ({combatant.id}) to encounter {encounter.id}")
    return combatant


def snapshot(encounter: Encounter) -> Encounter:
    """Full independent deep copy of the encounter, log included."""
    return copy.deepcopy(encounter)


def iter_combatants(encounter: Encounter, combatant_ids: Iterable[str]) -> Iterable[Combatant]:
    """Yield combatants for the ids that resolve, silently skipping the rest."""
    for combatant_id in combatant_ids:
        combatant = encounter.find_combatant(combatant_id)
        if combatant is None:
            logger.debug(f"Skipping unknown combatant id {combatant_id!r}")
            continue
        yield combatant
