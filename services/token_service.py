from sqlalchemy.orm import Session
from core.context import RequestContext
from core.exceptions import MalformedTokenError, TokenNotActiveError, ReuseDetectedError, AccountInactiveError
from models.refresh_tokens import is_active
from models.users import User
from services.auth_service import AuthService
from services.session_service import SessionService
from services.token_signer import token_signer
from services.token_store import RefreshTokenStore
from utils.datetime_utils import utc_now
from utils.logger import get_logger, log_audit_event, digest_prefix

logger = get_logger(__name__)


class TokenService:
    """
    Issues, rotates and revokes refresh tokens.

    Rotation state machine for a presented refresh token:

        invalid signature/claims/expiry  -> reject, no mutation
        record absent                    -> revoke all owner sessions, reject (reuse)
        record revoked or expired        -> reject, no mutation
        record active, revoke lost race  -> reject, no mutation
        record active, revoke won        -> issue new pair, link successor

    Only the last path ever issues tokens.
    """

    @staticmethod
    def _issue(user: User, db: Session, context: RequestContext) -> tuple[dict, str]:
        now = utc_now()
        subject = str(user.id)

        access_token = token_signer.sign_access(subject, user.email, now=now)
        refresh_token = token_signer.sign_refresh(subject, user.email, now=now)
        refresh_digest = token_signer.digest(refresh_token)

        RefreshTokenStore(db).insert(
            token_digest=refresh_digest,
            owner_id=user.id,
            issued_at=now,
            expires_at=now + token_signer.refresh_lifetime,
            issuer_ip=context.ip,
            issuer_user_agent=context.user_agent
        )

        tokens = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": int(token_signer.access_lifetime.total_seconds())
        }
        return tokens, refresh_digest

    @staticmethod
    def create_tokens(user: User, db: Session, context: RequestContext) -> dict:
        """
        Creates an access + refresh token pair and stores the refresh token record.

        Args:
            user: Owner of the new session
            db: Database session
            context: Request context (diagnostics and audit correlation)

        Returns:
            Dictionary with access_token, refresh_token, token_type and expires_in
        """
        tokens, refresh_digest = TokenService._issue(user, db, context)

        log_audit_event("issued", context, user_id=user.id, token_digest=refresh_digest)
        return tokens

    @staticmethod
    def rotate_tokens(refresh_token: str, db: Session, context: RequestContext) -> dict:
        """
        Exchanges a refresh token for a new pair. The presented token is
        single-use: it is revoked before the new pair is minted.

        Raises:
            MalformedTokenError / ExpiredTokenError: verification failed
            ReuseDetectedError: valid token without a record; all sessions of the owner revoked
            TokenNotActiveError: record revoked, expired, or a concurrent rotation won
            AccountInactiveError: owner missing or deactivated
            StoreUnavailableError: store unreachable or timed out
        """
        payload = token_signer.verify_refresh(refresh_token)

        try:
            owner_id = int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            raise MalformedTokenError("Invalid token payload")

        store = RefreshTokenStore(db)
        token_digest = token_signer.digest(refresh_token)
        record = store.find_by_digest(token_digest)

        if record is None:
            logger.warning(
                "Refresh token re-use detected",
                extra={"user_id": owner_id, "token_digest": digest_prefix(token_digest)}
            )
            SessionService.revoke_for_reuse(owner_id, token_digest, db, context)
            raise ReuseDetectedError()

        if record.owner_id != owner_id:
            logger.warning(
                "Refresh token subject does not match record owner",
                extra={"user_id": owner_id, "token_digest": digest_prefix(token_digest)}
            )
            raise MalformedTokenError("Invalid token payload")

        if not is_active(record):
            raise TokenNotActiveError()

        user = AuthService.get_active_user_by_id(db, owner_id)
        if user is None:
            raise AccountInactiveError()

        if not store.revoke_if_active(token_digest):
            logger.info(
                "Refresh token rotation lost a concurrent race",
                extra={"user_id": owner_id, "token_digest": digest_prefix(token_digest)}
            )
            raise TokenNotActiveError()

        tokens, successor_digest = TokenService._issue(user, db, context)
        store.set_successor(token_digest, successor_digest)

        log_audit_event(
            "rotated",
            context,
            user_id=owner_id,
            token_digest=token_digest,
            successor_digest=successor_digest
        )
        return tokens

    @staticmethod
    def revoke_token(refresh_token: str, db: Session, context: RequestContext) -> bool:
        """
        Revokes a refresh token (logout). Signature is not checked: only a
        token whose digest is stored can match.

        Returns:
            True if a live session was ended
        """
        token_digest = token_signer.digest(refresh_token)
        session_ended = RefreshTokenStore(db).revoke_if_active(token_digest)

        log_audit_event("logout", context, token_digest=token_digest, session_ended=session_ended)
        return session_ended
