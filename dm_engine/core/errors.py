"""
DM Engine - Custom Error Types
Structured exceptions for engine errors with recovery hints.
"""
from typing import Dict, Any, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the engine."""
    UNKNOWN = "UNKNOWN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Encounter errors
    COMBATANT_NOT_FOUND = "COMBATANT_NOT_FOUND"
    LOG_ENTRY_NOT_FOUND = "LOG_ENTRY_NOT_FOUND"
    ENCOUNTER_LOAD_FAILED = "ENCOUNTER_LOAD_FAILED"


class GameError(Exception):
    """
    Base exception for all engine errors.

    Engine calls raise these before touching encounter state, so a caught
    error leaves the encounter as it was. The code identifies the failure,
    details carry the offending id or field, and recovery_hint tells the
    table what to fix before retrying. to_dict() gives a JSON-ready form
    for hosts that surface errors to players.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.UNKNOWN,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        self.recovery_hint = recovery_hint

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for structured output."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "recoverable": self.recoverable,
                "recovery_hint": self.recovery_hint
            }
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# =============================================================================
# Not Found Errors
# =============================================================================

class NotFoundError(GameError):
    """Generic not found error."""

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
        recovery_hint: Optional[str] = None,
    ):
        details = {"resource": resource}
        if identifier:
            details["identifier"] = identifier
        super().__init__(
            code=code,
            message=f"{resource} not found",
            details=details,
            recovery_hint=recovery_hint,
        )


class CombatantNotFoundError(NotFoundError):
    """Raised when a combatant id does not resolve in the encounter."""

    def __init__(self, combatant_id: Optional[str] = None):
        super().__init__(
            "Combatant",
            combatant_id,
            code=ErrorCode.COMBATANT_NOT_FOUND,
            recovery_hint="Check the combatant id against the encounter roster",
        )


class LogEntryNotFoundError(NotFoundError):
    """Raised when a rewind target is not in the encounter log."""

    def __init__(self, entry_id: Optional[str] = None):
        super().__init__(
            "Log entry",
            entry_id,
            code=ErrorCode.LOG_ENTRY_NOT_FOUND,
            recovery_hint="Entries after an earlier rewind point are discarded",
        )


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(GameError):
    """Input validation errors."""

    def __init__(
        self,
        field: str,
        message: str,
        value: Any = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        details = {"field": field}
        if value is not None:
            details["value"] = str(value)
        super().__init__(
            code=code,
            message=message,
            details=details,
            recovery_hint=f"Check the value for '{field}'"
        )


class EncounterLoadError(ValidationError):
    """Raised when a persisted encounter payload cannot be restored."""

    def __init__(self, reason: str, errors: Optional[list] = None):
        super().__init__(
            field="payload",
            message=f"Failed to load encounter: {reason}",
            code=ErrorCode.ENCOUNTER_LOAD_FAILED,
        )
        if errors:
            self.details["errors"] = errors
        self.recoverable = False
