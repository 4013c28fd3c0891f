"""
Custom exceptions for CellarClub business logic.

Services raise these; the Flask error handlers registered in
cellarclub.utils.errors turn them into JSON error responses.
"""
from typing import List, Optional


class CellarClubError(Exception):
    """Base exception for all CellarClub business logic errors."""

    def __init__(self, message: str, code: str = "CELLARCLUB_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(CellarClubError):
    """Malformed or incomplete input. Always raised before any remote call."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class DraftIncomplete(ValidationError):
    """Enrollment completion attempted before every wizard gate was passed."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(
            f"Enrollment draft is incomplete; missing: {', '.join(self.missing)}"
        )
        self.code = "DRAFT_INCOMPLETE"


class NotFoundError(CellarClubError):
    """Resource not found, locally or on a remote platform."""

    def __init__(self, resource: str, identifier=None):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        code = resource.upper().replace(' ', '_')
        super().__init__(message, f"{code}_NOT_FOUND")


class TierNotFoundError(NotFoundError):
    """Club tier not found."""

    def __init__(self, identifier=None):
        super().__init__("Tier", identifier)


class RemoteCallError(CellarClubError):
    """Failure of a call to an external CRM platform."""

    def __init__(
        self,
        message: str,
        platform: str = None,
        operation: str = None,
        status_code: Optional[int] = None,
        original_error: Exception = None
    ):
        self.platform = platform
        self.operation = operation
        self.status_code = status_code
        self.original_error = original_error
        super().__init__(message, "REMOTE_CALL_ERROR")


class FatalSetupError(CellarClubError):
    """
    A setup step whose failure aborts the whole operation.

    ``orphans`` lists remote or local objects a compensating delete could
    not remove, so an operator can clean them up by hand.
    """

    def __init__(self, message: str, orphans: List[str] = None):
        self.orphans = list(orphans or [])
        super().__init__(message, "FATAL_SETUP_ERROR")


class DuplicateError(CellarClubError):
    """Resource already exists."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} already exists"
        if identifier:
            message = f"{resource} with {identifier} already exists"
        super().__init__(message, "DUPLICATE_ENTRY")


class ConfigurationError(CellarClubError):
    """Application or tenant configuration error."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
