"""Error taxonomy shared by the core services.

Learn: Services raise these typed errors; route handlers translate them to
HTTP status codes. Messages never contain secret material (keys, tokens,
plaintext entry content), so they are safe to log and return.

- AuthenticationError → 401 (missing/invalid/expired token, wrong kind)
- AuthorizationError  → 403 (only where the boundary chooses to reveal existence)
- NotFoundError       → 404 (missing, or owned by someone else)
- ValidationError     → 422
- ConflictError       → 409
- EncryptionError     → 500 (bad key at startup, tag mismatch on decrypt)
"""


class InkwellError(Exception):
    """Base class for all domain errors."""


class AuthenticationError(InkwellError):
    """The caller could not be authenticated."""

    reason = "unauthenticated"

    def __init__(self, message: str = "Authentication required", reason: str | None = None):
        super().__init__(message)
        if reason:
            self.reason = reason


class InvalidTokenError(AuthenticationError):
    """Bad signature, malformed token, or missing claims."""

    reason = "invalid"


class TokenKindError(InvalidTokenError):
    """Correctly signed token presented where the other kind was expected."""

    reason = "wrong_kind"


class TokenExpiredError(AuthenticationError):
    """Correctly signed token whose expiry is in the past."""

    reason = "expired"


class AuthorizationError(InkwellError):
    """The caller is authenticated but does not own the target."""


class NotFoundError(InkwellError):
    """No such record (or it belongs to someone else)."""


class ValidationError(InkwellError):
    """Input rejected at the core's boundary."""


class ConflictError(InkwellError):
    """The write conflicts with existing state (e.g. duplicate email)."""


class EncryptionError(InkwellError):
    """Key misconfiguration or failed authentication tag verification."""
