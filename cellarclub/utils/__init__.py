"""
Shared utilities: exceptions, JSON error responses and logging setup.
"""
from .exceptions import (
    CellarClubError,
    ConfigurationError,
    DraftIncomplete,
    DuplicateError,
    FatalSetupError,
    NotFoundError,
    RemoteCallError,
    TierNotFoundError,
    ValidationError,
)

__all__ = [
    'CellarClubError',
    'ConfigurationError',
    'DraftIncomplete',
    'DuplicateError',
    'FatalSetupError',
    'NotFoundError',
    'RemoteCallError',
    'TierNotFoundError',
    'ValidationError',
]
