"""
Shadowrun-style condition monitors.

Each combatant carries a stun track and a physical track. Damage fills a
track up to its maximum; stun damage past the end of the stun track spills
over into the physical track. A full track on either side incapacitates.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Union

from dm_engine.core.errors import ValidationError

DEFAULT_TRACK_MAX = 10


class DamageTrack(str, Enum):
    """Which condition monitor damage lands on."""
    STUN = "stun"
    PHYSICAL = "physical"

    @classmethod
    def coerce(cls, value: Union["DamageTrack", str]) -> "DamageTrack":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text in ("phys", "p"):
            return cls.PHYSICAL
        try:
            return cls(text)
        except ValueError:
            raise ValidationError("track", "Damage track must be 'stun' or 'physical'", value)


def _non_negative(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


@dataclass
class DamageTracks:
    """
    Stun/physical condition monitor plus soak pool.

    Damage values are clamped to [0, max] on construction and on every
    mutation through apply_damage.
    """
    stun_max: int = DEFAULT_TRACK_MAX
    phys_max: int = DEFAULT_TRACK_MAX
    stun_dmg: int = 0
    phys_dmg: int = 0
    soak_dice: int = 0

    def __post_init__(self):
        self.stun_max = _non_negative(self.stun_max)
        self.phys_max = _non_negative(self.phys_max)
        self.soak_dice = _non_negative(self.soak_dice)
        self.stun_dmg = min(_non_negative(self.stun_dmg), self.stun_max)
        self.phys_dmg = min(_non_negative(self.phys_dmg), self.phys_max)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stun_max": self.stun_max,
            "phys_max": self.phys_max,
            "stun_dmg": self.stun_dmg,
            "phys_dmg": self.phys_dmg,
            "soak_dice": self.soak_dice,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DamageTracks":
        return cls(
            stun_max=data.get("stun_max", DEFAULT_TRACK_MAX),
            phys_max=data.get("phys_max", DEFAULT_TRACK_MAX),
            stun_dmg=data.get("stun_dmg", 0),
            phys_dmg=data.get("phys_dmg", 0),
            soak_dice=data.get("soak_dice", 0),
        )

    def monitor(self) -> Dict[str, Dict[str, int]]:
        """Current/max per track, for log details and display."""
        return {
            "stun": {"current": self.stun_dmg, "max": self.stun_max},
            "physical": {"current": self.phys_dmg, "max": self.phys_max},
        }


@dataclass
class TrackDamage:
    """How much damage actually landed on each track."""
    stun: int = 0
    physical: int = 0
    overflow: int = 0  # stun damage that spilled into physical

    def to_dict(self) -> Dict[str, int]:
        return {"stun": self.stun, "physical": self.physical, "overflow": self.overflow}


def _tracks_of(target: Any) -> DamageTracks:
    if isinstance(target, DamageTracks):
        return target
    return target.sr


def apply_damage(target: Any, track: Union[DamageTrack, str], amount: int) -> TrackDamage:
    """
    Apply damage to a stun or physical track.

    Args:
        target: A Combatant (uses its sr block) or a DamageTracks block
        track: stun | physical
        amount: Damage boxes; negatives count as 0

    Returns:
        TrackDamage with the boxes filled on each track
    """
    tracks = _tracks_of(target)
    track = DamageTrack.coerce(track)
    amount = _non_negative(amount)
    result = TrackDamage()
    if amount == 0:
        return result

    # max may have been lowered under existing damage
    tracks.stun_dmg = min(tracks.stun_dmg, tracks.stun_max)
    tracks.phys_dmg = min(tracks.phys_dmg, tracks.phys_max)

    if track == DamageTrack.STUN:
        room = max(0, tracks.stun_max - tracks.stun_dmg)
        landed = min(amount, room)
        tracks.stun_dmg += landed
        result.stun = landed
        overflow = amount - landed
        if overflow > 0:
            result.overflow = overflow
            before = tracks.phys_dmg
            tracks.phys_dmg = min(tracks.phys_max, tracks.phys_dmg + overflow)
            result.physical = tracks.phys_dmg - before
        return result

    before = tracks.phys_dmg
    tracks.phys_dmg = min(tracks.phys_max, tracks.phys_dmg + amount)
    result.physical = tracks.phys_dmg - before
    return result


def is_incapacitated(target: Any) -> bool:
    """True when either track is full."""
    tracks = _tracks_of(target)
    return tracks.phys_dmg >= tracks.phys_max or tracks.stun_dmg >= tracks.stun_max
