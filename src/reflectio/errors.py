"""Error taxonomy shared by the storage adapter, the workflows and the HTTP layer.

Permission checks never raise these for an expected denial; a denial is a
normal return value. They are raised by collaborators (storage, classifier)
and by the workflow layer that enforces a decision.
"""

from __future__ import annotations


class ReflectioError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ReflectioError):
    """The requested resource does not exist (or is not visible)."""

    status_code = 404
    code = "not_found"


class UnauthorizedError(ReflectioError):
    """No valid identity was presented."""

    status_code = 401
    code = "unauthorized"


class PermissionDeniedError(ReflectioError):
    """Identity is known but the action is not allowed."""

    status_code = 403
    code = "permission_denied"

    def __init__(self, message: str = "", *, upgrade_prompt: bool = False) -> None:
        super().__init__(message)
        self.upgrade_prompt = upgrade_prompt


class ConflictError(ReflectioError):
    """The write collides with existing state (e.g. duplicate connection)."""

    status_code = 409
    code = "conflict"


class ValidationError(ReflectioError):
    """The request is well-formed but semantically invalid."""

    status_code = 400
    code = "validation_error"


class UpstreamError(ReflectioError):
    """Storage or classifier call failed."""

    status_code = 503
    code = "upstream_error"
