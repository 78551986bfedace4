"""Error taxonomy for the collection core.

Workflows raise these internally; the public operations catch them and hand
back an ``OperationResult`` so nothing escapes to the transport layer.
"""

from dataclasses import dataclass
from typing import Any, Optional


class CollectionError(Exception):
    """Base exception for collection core errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CollectionError):
    """Malformed or out-of-range input."""

    kind = "validation"
    status_code = 400


class NotFoundError(CollectionError):
    """Referenced customer or ledger entry does not exist."""

    kind = "not_found"
    status_code = 404


class ForbiddenError(CollectionError):
    """Caller's role or assignment does not permit the operation."""

    kind = "forbidden"
    status_code = 403


class ConflictError(CollectionError):
    """Duplicate transaction id, or a state transition that is no longer allowed."""

    kind = "conflict"
    status_code = 409


class StorageError(CollectionError):
    """Persistence failure. Message is always opaque."""

    kind = "storage"
    status_code = 503


@dataclass
class OperationResult:
    ok: bool
    data: Optional[Any] = None
    error: Optional[CollectionError] = None

    @classmethod
    def success(cls, data: Any) -> "OperationResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: CollectionError) -> "OperationResult":
        return cls(ok=False, error=error)

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None
