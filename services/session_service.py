import logging
from sqlalchemy.orm import Session
from core.context import RequestContext
from services.token_store import RefreshTokenStore
from utils.logger import log_audit_event


class SessionService:
    """
    Owner-scoped bulk revocation.

    Logout-all and reuse-triggered revocation share one store primitive but
    are audited as different events.
    """

    @staticmethod
    def logout_all(user_id: int, db: Session, context: RequestContext) -> int:
        """
        Revokes every active refresh token of a user (logout from all devices).

        Returns:
            Number of sessions ended
        """
        revoked_count = RefreshTokenStore(db).revoke_all_active_for_owner(user_id)

        log_audit_event("logout_all", context, user_id=user_id, revoked_count=revoked_count)
        return revoked_count

    @staticmethod
    def revoke_for_reuse(owner_id: int, token_digest: str, db: Session, context: RequestContext) -> int:
        """
        Burns the whole session family after a consumed refresh token was replayed.
        """
        revoked_count = RefreshTokenStore(db).revoke_all_active_for_owner(owner_id)

        log_audit_event(
            "reuse_detected",
            context,
            level=logging.WARNING,
            user_id=owner_id,
            token_digest=token_digest,
            revoked_count=revoked_count
        )
        return revoked_count
