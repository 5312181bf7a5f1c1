# Persisted payload models

from .payloads import (
    CombatantPayload,
    DamageTracksPayload,
    EncounterPayload,
    LogEntryPayload,
)
