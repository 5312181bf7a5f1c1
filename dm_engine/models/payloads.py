"""
Persisted encounter payload models.

Validates an encounter read back from storage before the engine rebuilds
it. The shape mirrors Encounter.to_dict().
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class DamageTracksPayload(BaseModel):
    """Stun/physical monitor block."""
    stun_max: int = Field(10, ge=0)
    phys_max: int = Field(10, ge=0)
    stun_dmg: int = Field(0, ge=0)
    phys_dmg: int = Field(0, ge=0)
    soak_dice: int = Field(0, ge=0)

    @model_validator(mode="after")
    def damage_within_max(self) -> "DamageTracksPayload":
        if self.stun_dmg > self.stun_max:
            raise ValueError("stun_dmg exceeds stun_max")
        if self.phys_dmg > self.phys_max:
            raise ValueError("phys_dmg exceeds phys_max")
        return self


class CombatantPayload(BaseModel):
    """A stored combatant."""
    id: str = Field(..., min_length=1)
    name: str = "Unknown"
    hp: Optional[float] = Field(None, ge=0)
    ac: Optional[float] = None
    initiative: Optional[float] = None
    stats: Dict[str, float] = Field(default_factory=dict)
    conditions: List[str] = Field(default_factory=list)
    sr: DamageTracksPayload = Field(default_factory=DamageTracksPayload)


class LogEntryPayload(BaseModel):
    """A stored log entry with its state snapshot."""
    id: str = Field(..., min_length=1)
    at: datetime
    type: Literal[
        "initiative",
        "initiative_manual",
        "initiative_sort",
        "turn_next",
        "d20_attack",
        "d20_save",
        "d6pool_test",
        "d6pool_opposed",
    ]
    system: Optional[str] = None
    detail: Dict[str, Any] = Field(default_factory=dict)
    snapshot: Dict[str, Any] = Field(default_factory=dict)


class EncounterPayload(BaseModel):
    """A stored encounter, log included."""
    id: str = Field(..., min_length=1)
    title: str = "Encounter"
    system: Literal["d20", "d6pool"] = "d20"
    seed: Optional[Union[str, int, float]] = None
    created_at: datetime
    combatants: List[CombatantPayload] = Field(default_factory=list)
    turn_index: int = Field(0, ge=0)
    log: List[LogEntryPayload] = Field(default_factory=list)

    @model_validator(mode="after")
    def turn_index_in_range(self) -> "EncounterPayload":
        if self.combatants and self.turn_index >= len(self.combatants):
            raise ValueError("turn_index out of range for combatants")
        ids = [c.id for c in self.combatants]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate combatant ids")
        return self
