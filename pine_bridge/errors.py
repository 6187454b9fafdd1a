"""Domain errors raised by the access rules and mapped to HTTP responses in main."""


class AccessDeniedError(PermissionError):
    """Caller is authenticated but may not touch the resource (403)."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)
        self.message = message


class InvalidActionError(ValueError):
    """Status action verb is not one of start/pause/stop (400)."""

    def __init__(self, action: str):
        super().__init__(f"Invalid action: {action}")
        self.action = action
        self.message = "Invalid action"
