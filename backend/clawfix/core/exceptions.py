"""
ClawFix error hierarchy
=======================

Only invalid input and unknown fix ids are meant to reach the caller of
the diagnose/retrieve operations. Everything else (AI faults, storage
faults) is caught by the service layer and degrades the result.

Each class carries a default ``code``; ``details`` holds whatever the API
layer may need to build a response (a hint, the missing field, ...).

Usage:
    from clawfix.core.exceptions import FixNotFoundError

    result = store.get(fix_id)
    if result is None:
        raise FixNotFoundError(fix_id)
"""

from typing import Optional, Any, Dict


class ClawFixError(Exception):
    """Root of every error the service raises on purpose"""

    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or type(self).code
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


# --- 400: bad input ---

class ValidationError(ClawFixError):
    """Request content is unusable"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details={"field": field} if field else None)


class InvalidDiagnosticPayloadError(ValidationError):
    """Diagnostic payload is missing its required top-level shape"""

    code = "INVALID_DIAGNOSTIC"

    def __init__(self, hint: str, field: str = "system"):
        super().__init__("Invalid diagnostic payload", field=field)
        self.hint = hint
        self.details["hint"] = hint


# --- 404: unknown ids ---

class ResourceNotFoundError(ClawFixError):
    """Lookup by id came back empty"""

    def __init__(self, kind: str, resource_id: str):
        super().__init__(
            f"{kind} '{resource_id}' does not exist",
            code=f"{kind.upper()}_NOT_FOUND",
            details={"resource_type": kind, "resource_id": resource_id}
        )


class FixNotFoundError(ResourceNotFoundError):
    """Fix never stored, or already evicted from the result store"""

    def __init__(self, fix_id: str):
        super().__init__("Fix", fix_id)


# --- AI augmentation ---

class AIServiceError(ClawFixError):
    """The model call failed or returned something unusable"""

    code = "AI_SERVICE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)


class AIResponseParseError(AIServiceError):
    """Model reply had no usable analysis"""

    code = "AI_PARSE_ERROR"

    def __init__(self, message: str = "AI reply could not be parsed"):
        super().__init__(message)


# --- storage ---

class PersistenceError(ClawFixError):
    """Durable storage operation failed"""

    code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, details={"operation": operation} if operation else None)


class PersistenceDisabledError(PersistenceError):
    """No DATABASE_URL configured"""

    code = "PERSISTENCE_DISABLED"

    def __init__(self):
        super().__init__("Persistence is not configured")
