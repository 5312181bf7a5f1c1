"""
Encounter event log with snapshot-based rewind.

Every mutating engine call appends one LogEntry through push_log. The entry
carries a snapshot of the encounter state taken after the mutation, so any
entry can be used to restore the encounter exactly as it was at that point.

Snapshots hold everything except the log itself; on rewind the log is
restored by truncating it after the chosen entry.
"""
import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from dm_engine.core.errors import LogEntryNotFoundError

if TYPE_CHECKING:
    from dm_engine.core.encounter import Encounter

logger = logging.getLogger("dm_engine.event_log")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept datetimes or ISO-8601 strings (a trailing Z means UTC)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    return None


class LogType(str, Enum):
    """What produced a log entry."""
    INITIATIVE = "initiative"
    INITIATIVE_MANUAL = "initiative_manual"
    INITIATIVE_SORT = "initiative_sort"
    TURN_NEXT = "turn_next"
    D20_ATTACK = "d20_attack"
    D20_SAVE = "d20_save"
    D6POOL_TEST = "d6pool_test"
    D6POOL_OPPOSED = "d6pool_opposed"


@dataclass
class LogEntry:
    """
    One recorded engine event.

    Attributes:
        type: What happened
        detail: Type-specific payload (rolls, targets, outcomes)
        snapshot: Encounter state right after the event
        system: Rules family for resolution entries (d20 / d6pool)
        id: Unique entry id, used as a rewind target
        at: When the entry was appended (UTC)
    """
    type: LogType
    detail: Dict[str, Any] = field(default_factory=dict)
    snapshot: Dict[str, Any] = field(default_factory=dict)
    system: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "at": self.at.isoformat(),
            "type": self.type.value,
            "system": self.system,
            "detail": copy.deepcopy(self.detail),
            "snapshot": copy.deepcopy(self.snapshot),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LogEntry":
        return cls(
            id=str(data["id"]),
            at=parse_timestamp(data.get("at")) or datetime.now(timezone.utc),
            type=LogType(data["type"]),
            system=data.get("system"),
            detail=copy.deepcopy(dict(data.get("detail") or {})),
            snapshot=copy.deepcopy(dict(data.get("snapshot") or {})),
        )


def push_log(
    encounter: "Encounter",
    entry_type: LogType,
    detail: Optional[Dict[str, Any]] = None,
    system: Optional[str] = None,
) -> LogEntry:
    """
    Append an entry for a mutation that has already been applied.

    Assigns id and timestamp and attaches a snapshot of the current state.

    Returns:
        The appended LogEntry
    """
    entry = LogEntry(
        type=LogType(entry_type),
        detail=copy.deepcopy(detail or {}),
        snapshot=encounter.state_dict(),
        system=system,
    )
    encounter.log.append(entry)
    logger.debug(f"Logged {entry.type.value} entry {entry.id} (#{len(encounter.log) - 1}) for encounter {encounter.id}")
    return entry


def find_entry_index(encounter: "Encounter", entry_id: str) -> int:
    for index, entry in enumerate(encounter.log):
        if entry.id == entry_id:
            return index
    raise LogEntryNotFoundError(entry_id)


def rewind_to(encounter: "Encounter", entry_id: str) -> "Encounter":
    """
    Restore the encounter to the state recorded at a log entry.

    Entries after the chosen one are discarded for good. The encounter's id
    and title are kept from the live object.

    Args:
        encounter: Encounter to rewind in place
        entry_id: Id of the entry to return to

    Returns:
        The same encounter object

    Raises:
        LogEntryNotFoundError: If no entry has that id
    """
    index = find_entry_index(encounter, entry_id)
    entry = encounter.log[index]

    encounter.restore_state(entry.snapshot)
    discarded = len(encounter.log) - (index + 1)
    del encounter.log[index + 1:]

    logger.info(f"Rewound encounter {encounter.id} to entry {entry_id} ({discarded} later entries discarded)")
    return encounter
