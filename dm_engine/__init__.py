# DM Engine: dice, encounter state and combat resolution

from .core.dice import (
    DiceSpec,
    DiceRoll,
    D20Roll,
    PoolRoll,
    RollMode,
    ManualRolls,
    ManualTotal,
    roll_die,
    roll_dice,
    roll_d20,
    roll_d6_pool,
)

from .core.rng import make_rng

from .core.damage_tracks import (
    DamageTrack,
    DamageTracks,
    apply_damage,
    is_incapacitated,
)

from .core.encounter import (
    Combatant,
    Encounter,
    SystemTag,
    add_combatant,
    create_encounter,
    snapshot,
)

from .core.event_log import (
    LogEntry,
    LogType,
    push_log,
    rewind_to,
)

from .core.initiative import (
    current_actor,
    next_turn,
    roll_initiative_d20,
    set_initiative,
    sort_initiative,
)

from .core.resolution import (
    AttackOutcome,
    OpposedOutcome,
    PoolTestOutcome,
    SaveOutcome,
    SaveResult,
    SuccessPolicy,
    resolve_d20_attack,
    resolve_d20_save,
    resolve_d6_pool_test,
    resolve_opposed_d6_test,
)

from .core.encounter_storage import dump_encounter, load_encounter

from .core.errors import (
    GameError,
    NotFoundError,
    CombatantNotFoundError,
    LogEntryNotFoundError,
    ValidationError,
    EncounterLoadError,
)
