"""Error taxonomy shared by services and the API layer."""

from datetime import datetime


class TaskflowError(Exception):
    """Base class for errors with a stable classification."""

    code = "error"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code

    def to_dict(self) -> dict:
        """Render as an API error body."""
        return {"error": self.code, "message": self.message}


class ValidationError(TaskflowError):
    """Malformed input."""

    code = "validation_error"
    status_code = 400


class AuthenticationError(TaskflowError):
    """Missing or invalid credential."""

    code = "authentication_error"
    status_code = 401


class PermissionDeniedError(TaskflowError):
    """Role or ownership check failed."""

    code = "permission_denied"
    status_code = 403


class NotFoundError(TaskflowError):
    """Referenced entity absent or out of team scope."""

    code = "not_found"
    status_code = 404


class NoItemsAvailableError(TaskflowError):
    """No queued items available to claim."""

    code = "no_items_available"
    status_code = 409


class CooldownActiveError(TaskflowError):
    """Claim attempted before the previous cooldown elapsed."""

    code = "cooldown_active"
    status_code = 429

    def __init__(self, cooldown_until: datetime):
        super().__init__(
            f"Cooldown active until {cooldown_until.isoformat()}"
        )
        self.cooldown_until = cooldown_until

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["cooldownUntil"] = self.cooldown_until.isoformat()
        return body


class TransportError(TaskflowError):
    """Persistence or network call failed."""

    code = "transport_error"
    status_code = 500
