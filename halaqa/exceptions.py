"""Error taxonomy shared by the engines, services and routes."""

from fastapi import status


class HalaqaError(Exception):
    """Base exception for Halaqa errors."""

    def __init__(self, message: str, error_type: str = "internal_error"):
        self.message = message
        self.error_type = error_type
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.error_type.upper()


class ValidationError(HalaqaError):
    """Raised for malformed input or a missing required field."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, "validation_error")
        self.field = field


class AuthenticationError(HalaqaError):
    """Raised when the caller cannot be identified."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, "unauthorized")


class AuthorizationError(HalaqaError):
    """Raised when the caller's role or relationship does not permit an action."""

    def __init__(self, action: str, entity: str = "resource"):
        super().__init__(
            f"Insufficient permissions to {action} this {entity}",
            "forbidden",
        )
        self.action = action
        self.entity = entity


class NotFoundError(HalaqaError):
    """Raised when an entity does not exist (or is outside the caller's school)."""

    def __init__(self, entity: str, identifier: object = None):
        message = f"{entity.capitalize()} not found"
        if identifier is not None:
            message = f"{entity.capitalize()} '{identifier}' not found"
        super().__init__(message, "not_found")
        self.entity = entity
        self.identifier = identifier


class InvalidTransitionError(HalaqaError):
    """Raised when an action is not allowed from the entity's current state."""

    def __init__(
        self,
        current: str,
        action: str,
        allowed: list[str] | None = None,
        error_type: str = "invalid_transition",
        message: str | None = None,
    ):
        if message is None:
            message = f"Cannot {action} from '{current}'"
            if allowed is not None:
                message += f". Allowed from '{current}': {allowed}"
        super().__init__(message, error_type)
        self.current = current
        self.action = action
        self.allowed = allowed or []


class AlreadyCompletedError(InvalidTransitionError):
    """Raised when completing something that is already in its completed state."""

    def __init__(self, entity: str, current: str = "completed"):
        super().__init__(
            current,
            "complete",
            error_type="already_completed",
            message=f"{entity.capitalize()} is already completed",
        )
        self.entity = entity


class LimitExceededError(HalaqaError):
    """Raised when a configured cap (reopens, milestones) would be exceeded."""

    def __init__(self, what: str, limit: int):
        super().__init__(f"Maximum {what} ({limit}) exceeded", "limit_exceeded")
        self.what = what
        self.limit = limit


class StaleStateError(HalaqaError):
    """Raised when a compare-and-swap finds the row no longer in the expected state."""

    def __init__(self, entity: str, expected: str, actual: str | None = None):
        message = (
            f"{entity.capitalize()} changed concurrently "
            f"(expected '{expected}'"
        )
        message += f", found '{actual}')" if actual is not None else ")"
        super().__init__(message + "; re-fetch and retry", "stale_state")
        self.entity = entity
        self.expected = expected
        self.actual = actual


STATUS_MAP: dict[str, int] = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "unauthorized": status.HTTP_401_UNAUTHORIZED,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_transition": status.HTTP_400_BAD_REQUEST,
    "already_completed": status.HTTP_400_BAD_REQUEST,
    "limit_exceeded": status.HTTP_400_BAD_REQUEST,
    "stale_state": status.HTTP_409_CONFLICT,
    "internal_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_status_for(error: HalaqaError) -> int:
    return STATUS_MAP.get(error.error_type, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_envelope(error: str, code: str, details: dict | None = None) -> dict:
    """Build the JSON failure body returned by every endpoint."""
    body: dict = {"success": False, "error": error, "code": code}
    if details:
        body["details"] = details
    return body
