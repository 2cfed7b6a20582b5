import hashlib
import uuid
from datetime import datetime, timedelta
from jose import jwt, JWTError, ExpiredSignatureError
from jose.exceptions import JWTClaimsError
from core.config import settings
from core.exceptions import ExpiredTokenError, MalformedTokenError, SignerConfigurationError
from utils.datetime_utils import utc_now

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

REQUIRED_CLAIMS = {
    "require_exp": True,
    "require_iat": True,
    "require_sub": True,
    "require_jti": True,
    "require_iss": True,
    "require_aud": True,
}


class TokenSigner:
    """
    Signs and verifies access/refresh JWTs (HS256) and digests raw tokens.

    Access and refresh tokens are signed with independent secrets so a leaked
    access secret cannot mint refresh tokens, and vice versa. The signer holds
    no mutable state and is safe to share between threads.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        issuer: str,
        audience: str,
        access_lifetime: timedelta,
        refresh_lifetime: timedelta,
        algorithm: str = "HS256"
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.issuer = issuer
        self.audience = audience
        self.access_lifetime = access_lifetime
        self.refresh_lifetime = refresh_lifetime
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, config=settings) -> "TokenSigner":
        return cls(
            access_secret=config.ACCESS_TOKEN_SECRET,
            refresh_secret=config.REFRESH_TOKEN_SECRET,
            issuer=config.JWT_ISSUER,
            audience=config.JWT_AUDIENCE,
            access_lifetime=timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_lifetime=timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS),
            algorithm=config.ALGORITHM,
        )

    def _secret_for(self, token_type: str) -> str:
        secret = self.access_secret if token_type == ACCESS_TOKEN_TYPE else self.refresh_secret
        if not secret:
            raise SignerConfigurationError(f"Missing {token_type} token secret")
        return secret

    def _sign(self, token_type: str, subject: str, email: str,
              lifetime: timedelta, now: datetime | None) -> str:
        secret = self._secret_for(token_type)
        issued_at = now or utc_now()

        payload = {
            "sub": str(subject),
            "email": email,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + lifetime).timestamp()),
            "jti": str(uuid.uuid4()),
            "type": token_type,
            "iss": self.issuer,
            "aud": self.audience,
        }

        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def sign_access(self, subject: str, email: str, now: datetime | None = None,
                    expires_delta: timedelta | None = None) -> str:
        """
        Creates a short-lived access token.

        Args:
            subject: User ID (stored as the `sub` claim)
            email: User's email
            now: Issue time (default: current UTC time)
            expires_delta: Lifetime override (default: configured access lifetime)
        """
        return self._sign(ACCESS_TOKEN_TYPE, subject, email, expires_delta or self.access_lifetime, now)

    def sign_refresh(self, subject: str, email: str, now: datetime | None = None,
                     expires_delta: timedelta | None = None) -> str:
        """
        Creates a long-lived refresh token. Same claims as the access token,
        different secret and `type`.
        """
        return self._sign(REFRESH_TOKEN_TYPE, subject, email, expires_delta or self.refresh_lifetime, now)

    def _verify(self, token: str, token_type: str) -> dict:
        secret = self._secret_for(token_type)

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options=REQUIRED_CLAIMS
            )
        except ExpiredSignatureError:
            raise ExpiredTokenError(f"{token_type.capitalize()} token expired")
        except (JWTClaimsError, JWTError):
            raise MalformedTokenError(f"Invalid {token_type} token")

        if payload.get("type") != token_type:
            raise MalformedTokenError("Invalid token type")

        return payload

    def verify_access(self, token: str) -> dict:
        """
        Verifies signature, issuer, audience and expiry of an access token.

        Raises:
            ExpiredTokenError: `exp` has passed
            MalformedTokenError: anything else that does not check out
        """
        return self._verify(token, ACCESS_TOKEN_TYPE)

    def verify_refresh(self, token: str) -> dict:
        return self._verify(token, REFRESH_TOKEN_TYPE)

    @staticmethod
    def digest(token: str) -> str:
        """One-way SHA-256 of the raw token, lowercase hex. Used as the store key."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()


token_signer = TokenSigner.from_settings()
