"""Error hierarchy for the messaging core.

Domain errors (400-level) describe a bad request and are terminal for it.
PersistenceError wraps storage failures; callers may retry those at the
transport level.
"""

from typing import Any, Dict, Optional


class MessagingError(Exception):

    def __init__(self, message: str, code: str, http_status: int = 500, retriable: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status
        self.retriable = retriable

    def to_response(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "retriable": self.retriable,
            }
        }


class InvalidArgumentError(MessagingError):
    """Malformed or missing input, including messaging yourself."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message, "INVALID_ARGUMENT", 400)
        self.field = field

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        if self.field:
            body["error"]["field"] = self.field
        return body


class ForbiddenError(MessagingError):

    def __init__(self, message: str) -> None:
        super().__init__(message, "FORBIDDEN", 403)


class NotFoundError(MessagingError):

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(f"{resource_type} '{resource_id}' not found", "RESOURCE_NOT_FOUND", 404)
        self.resource_type = resource_type
        self.resource_id = resource_id


class PersistenceError(MessagingError):

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"Database {operation} failed: {message}", "PERSISTENCE_ERROR", 503, retriable=True)
        self.operation = operation
