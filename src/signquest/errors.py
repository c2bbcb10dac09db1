"""Domain error taxonomy.

Each error carries the HTTP status the API layer maps it to, so services stay
free of FastAPI imports while routers get consistent responses.
"""

from __future__ import annotations


class SignquestError(Exception):
    """Base class for errors surfaced to callers."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(SignquestError):
    """Referenced content or record does not exist."""

    status_code = 404
    code = "not_found"


class InvalidStateError(SignquestError):
    """Precondition not met (locked content, unclaimable quest, ineligible challenge)."""

    status_code = 409
    code = "invalid_state"


class InvalidInputError(SignquestError):
    """Request is well-formed but semantically wrong (e.g. video outside the lesson)."""

    status_code = 422
    code = "invalid_input"


class InsufficientResourceError(SignquestError):
    """Not enough hearts/energy to proceed; clients prompt a top-up flow."""

    status_code = 402
    code = "insufficient_resource"


class ConflictError(SignquestError):
    """A concurrent writer changed the record first. Safe to retry after re-fetching."""

    status_code = 409
    code = "conflict"
