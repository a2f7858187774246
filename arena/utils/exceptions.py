"""
Typed errors raised by the arena core.

Every caller-facing operation either returns plain data or raises one of these.
Each error carries a technical message (logged) and a short user-facing message
the API layer can show as-is.
"""

class ArenaError(Exception):
    """Base exception for arena core errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message

    def with_context(self, context: str) -> 'ArenaError':
        """Return a copy of this error with operation context prefixed."""
        return type(self)(f"{context}: {self.message}", self.user_message)

class StoreError(ArenaError):
    """Raised when the backing tabular store fails for an unclassified reason."""
    pass

class AuthError(StoreError):
    """Raised when the backing store rejects our credentials."""
    def __init__(self, message: str = "Backing store authentication failed", user_message: str = None):
        super().__init__(message, user_message or "Storage authentication failed. Please contact an administrator.")

class StorePermissionError(StoreError):
    """Raised when the backing store denies access to a sheet."""
    def __init__(self, message: str = "Permission denied by backing store", user_message: str = None):
        super().__init__(message, user_message or "Storage access denied. Please contact an administrator.")

class RateLimitError(StoreError):
    """Raised when the backing store throttles us."""
    def __init__(self, message: str = "Backing store rate limit exceeded", user_message: str = None):
        super().__init__(message, user_message or "Too many requests. Please try again later.")

class NotFoundError(ArenaError):
    """Raised when a sheet, row, player, match or result does not exist."""
    pass

class SchemaError(ArenaError):
    """Raised when a required column is missing from a sheet's header row."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message, user_message or "Data sheet layout is invalid. Please contact an administrator.")

class InvalidStateTransitionError(ArenaError):
    """Raised when a lifecycle operation is attempted from the wrong state."""
    pass

class ValidationError(ArenaError):
    """Raised when caller input is malformed."""
    pass
