"""
Custom exceptions for Journify storage.

Every layer raises these exceptions so that callers can classify
failures without inspecting backend-specific errors.
"""


class JournifyError(Exception):
    """Base exception for all Journify storage errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(JournifyError):
    """Raised when input data fails shape, length or format checks."""

    def __init__(self, field: str, reason: str, errors: list[str] | None = None):
        details: dict = {"field": field, "reason": reason}
        if errors:
            details["errors"] = list(errors)
        super().__init__(reason, details)
        self.field = field
        self.reason = reason
        self.errors = list(errors) if errors else [reason]


class NotFoundError(JournifyError):
    """Raised when an entry or user does not exist."""

    def __init__(self, resource: str, key: str):
        super().__init__(f"{resource} not found: {key}", {"resource": resource, "key": key})
        self.resource = resource
        self.key = key


class AuthenticationError(JournifyError):
    """Raised when an authentication or session operation fails.

    ``kind`` carries the classification (an ``AuthErrorKind`` value) that
    the session manager reports back to callers.
    """

    def __init__(self, kind: str, message: str):
        super().__init__(message, {"kind": kind})
        self.kind = kind


class InvalidCredentialsError(AuthenticationError):
    """Unknown email or wrong password."""


class EmailExistsError(AuthenticationError):
    """Signup attempted with an already registered email."""

    def __init__(self, email: str):
        super().__init__("email_exists", "An account with this email already exists")
        self.details["email"] = email
        self.email = email


class NotAuthenticatedError(AuthenticationError):
    """Operation requires an authenticated session."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__("not_authenticated", message)


class SessionExpiredError(AuthenticationError):
    """Refresh token missing, expired or rejected."""

    def __init__(self, message: str = "Session expired. Please log in again."):
        super().__init__("session_expired", message)


class StorageError(JournifyError):
    """Raised when a key-value store operation fails."""

    def __init__(self, operation: str, key: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if key:
            details["key"] = key
        if cause:
            details["cause"] = str(cause)
        message = f"Storage error during {operation}"
        if key:
            message += f": {key}"
        super().__init__(message, details)
        self.operation = operation
        self.key = key
        self.cause = cause


class StoreQuotaExceededError(StorageError):
    """The store refused a write because its capacity is exhausted."""

    def __init__(self, key: str | None = None, size_bytes: int = 0, quota_bytes: int = 0):
        super().__init__("set", key)
        self.message = f"Storage quota exceeded: {size_bytes} > {quota_bytes} bytes"
        self.args = (self.message,)
        self.details.update({"size_bytes": size_bytes, "quota_bytes": quota_bytes})
        self.size_bytes = size_bytes
        self.quota_bytes = quota_bytes


class StoreUnavailableError(StorageError):
    """The store cannot be used at all (disabled, unwritable, closed)."""

    def __init__(self, reason: str, cause: Exception | None = None):
        super().__init__("availability", None, cause)
        self.message = f"Storage unavailable: {reason}"
        self.args = (self.message,)
        self.details["reason"] = reason
        self.reason = reason
