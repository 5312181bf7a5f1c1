"""
Encounter persistence codec.

The engine does not pick a storage backend. These helpers turn an encounter
into a JSON document and back, validating the document on the way in, so
callers can keep it wherever they like (a file, a database column, browser
storage behind an API).
"""
import json
import logging
from typing import Any, Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from dm_engine.core.encounter import Encounter
from dm_engine.core.errors import EncounterLoadError
from dm_engine.models.payloads import EncounterPayload

logger = logging.getLogger("dm_engine.storage")


def dump_encounter(encounter: Encounter, indent: Any = None) -> str:
    """Serialize the encounter (log and snapshots included) to JSON."""
    return json.dumps(encounter.to_dict(), indent=indent)


def load_encounter(payload: Union[str, bytes, Mapping[str, Any]]) -> Encounter:
    """
    Rebuild an encounter from a stored payload.

    Args:
        payload: JSON text/bytes or an already decoded mapping

    Returns:
        A new Encounter equivalent to the one that was dumped

    Raises:
        EncounterLoadError: If the payload is not valid JSON or fails validation
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise EncounterLoadError(f"invalid JSON ({e.msg})") from e
        except UnicodeDecodeError as e:
            raise EncounterLoadError(f"payload is not text ({e.reason})") from e

    try:
        validated = EncounterPayload.model_validate(payload)
    except PydanticValidationError as e:
        errors = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        logger.warning(f"Rejected encounter payload: {len(errors)} validation error(s)")
        raise EncounterLoadError("payload failed validation", errors=errors) from e

    encounter = Encounter.from_dict(validated.model_dump())
    logger.info(f"Loaded encounter {encounter.id} ({len(encounter.combatants)} combatants, {len(encounter.log)} log entries)")
    return encounter
