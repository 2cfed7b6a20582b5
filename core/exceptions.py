"""
Error taxonomy for the session token core.

Every failure the token lifecycle can produce is one of the classes below.
Routers never invent their own status codes for these: the transport layer
looks the error up in HTTP_STATUS_BY_ERROR.
"""

from starlette import status


class AuthError(Exception):
    """
    Base class for all token lifecycle errors.

    Attributes:
        message: Human-readable message, safe to return to clients
        code: Stable machine-readable code
    """
    code = "auth_error"
    default_message = "Authentication error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidTokenError(AuthError):
    """Token failed verification (signature, claims or expiry)."""
    code = "token_invalid"
    default_message = "Invalid token"


class MalformedTokenError(InvalidTokenError):
    code = "token_malformed"
    default_message = "Invalid token"


class ExpiredTokenError(InvalidTokenError):
    code = "token_expired"
    default_message = "Token expired"


class TokenNotActiveError(AuthError):
    """Record exists but is revoked, expired, or lost a rotation race."""
    code = "token_not_active"
    default_message = "Refresh token not active"


class ReuseDetectedError(AuthError):
    """A valid refresh token whose record is gone. All owner sessions were revoked."""
    code = "token_reuse_detected"
    default_message = "Refresh token re-use detected, all sessions revoked"


class AccountInactiveError(AuthError):
    code = "account_inactive"
    default_message = "Account is inactive"


class TokenConflictError(AuthError):
    """Digest already stored. Caller may retry with a freshly minted token."""
    code = "token_conflict"
    default_message = "Token conflict, please retry"


class StoreUnavailableError(AuthError):
    """Store unreachable or timed out. Retryable, never an authorization verdict."""
    code = "store_unavailable"
    default_message = "Session store temporarily unavailable"
    retry_after_seconds = 1


class SignerConfigurationError(AuthError):
    code = "signer_misconfigured"
    default_message = "Token signing is not configured"


HTTP_STATUS_BY_ERROR: dict[type[AuthError], int] = {
    MalformedTokenError: status.HTTP_401_UNAUTHORIZED,
    ExpiredTokenError: status.HTTP_401_UNAUTHORIZED,
    InvalidTokenError: status.HTTP_401_UNAUTHORIZED,
    TokenNotActiveError: status.HTTP_401_UNAUTHORIZED,
    ReuseDetectedError: status.HTTP_401_UNAUTHORIZED,
    AccountInactiveError: status.HTTP_403_FORBIDDEN,
    TokenConflictError: status.HTTP_409_CONFLICT,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    SignerConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_status_for(exc: AuthError) -> int:
    """Resolve the transport status for an error, most specific class first."""
    for klass in type(exc).__mro__:
        if klass in HTTP_STATUS_BY_ERROR:
            return HTTP_STATUS_BY_ERROR[klass]
    return status.HTTP_500_INTERNAL_SERVER_ERROR
