"""
Refresh token record store.

Every mutation that decides whether a token is still usable is a single
conditional UPDATE committed on its own. The row count tells the caller
whether *this* call performed the transition, which is what makes concurrent
rotations of the same token safe: the database serializes the UPDATEs and
only one of them can match `revoked_at IS NULL`.
"""

from datetime import datetime
from sqlalchemy import update, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from core.config import settings
from core.database import store_call
from core.exceptions import TokenConflictError
from models.refresh_tokens import RefreshToken
from utils.datetime_utils import utc_now
from utils.logger import get_logger, digest_prefix

logger = get_logger(__name__)


class RefreshTokenStore:

    def __init__(self, db: Session):
        self.db = db

    def _store_call(self, operation: str):
        return store_call(self.db, f"refresh_tokens.{operation}")

    def insert(
        self,
        token_digest: str,
        owner_id: int,
        issued_at: datetime,
        expires_at: datetime,
        issuer_ip: str | None = None,
        issuer_user_agent: str | None = None
    ) -> RefreshToken:
        """
        Creates a new active record.

        Raises:
            TokenConflictError: the digest is already stored
        """
        record = RefreshToken(
            token_digest=token_digest,
            owner_id=owner_id,
            issued_at=issued_at,
            expires_at=expires_at,
            issuer_ip=issuer_ip,
            issuer_user_agent=issuer_user_agent
        )

        with self._store_call("insert"):
            self.db.add(record)
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                logger.error(
                    "Refresh token digest collision",
                    extra={"token_digest": digest_prefix(token_digest), "user_id": owner_id}
                )
                raise TokenConflictError() from exc

        return record

    def find_by_digest(self, token_digest: str) -> RefreshToken | None:
        with self._store_call("find_by_digest"):
            return self.db.execute(
                select(RefreshToken).where(RefreshToken.token_digest == token_digest)
            ).scalar_one_or_none()

    def revoke_if_active(self, token_digest: str, now: datetime | None = None) -> bool:
        """
        Revokes the record only if it is still active.

        Returns:
            True if this call performed the transition, False if the record
            was already revoked, expired, or absent.
        """
        now = now or utc_now()

        with self._store_call("revoke_if_active"):
            result = self.db.execute(
                update(RefreshToken)
                .where(
                    RefreshToken.token_digest == token_digest,
                    RefreshToken.revoked_at.is_(None),
                    RefreshToken.expires_at > now
                )
                .values(revoked_at=now)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()

        return result.rowcount == 1

    def revoke_all_active_for_owner(self, owner_id: int, now: datetime | None = None) -> int:
        """
        Revokes every active record of one user.

        Returns:
            Number of records revoked by this call
        """
        now = now or utc_now()

        with self._store_call("revoke_all_active_for_owner"):
            result = self.db.execute(
                update(RefreshToken)
                .where(
                    RefreshToken.owner_id == owner_id,
                    RefreshToken.revoked_at.is_(None),
                    RefreshToken.expires_at > now
                )
                .values(revoked_at=now)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()

        return result.rowcount

    def set_successor(self, token_digest: str, successor_digest: str) -> bool:
        """
        Links a rotated record to its replacement. Write-once: an existing
        successor is never overwritten.

        Returns:
            True if the successor was recorded
        """
        with self._store_call("set_successor"):
            result = self.db.execute(
                update(RefreshToken)
                .where(
                    RefreshToken.token_digest == token_digest,
                    RefreshToken.successor_digest.is_(None)
                )
                .values(successor_digest=successor_digest)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()

        if result.rowcount != 1:
            logger.warning(
                "Successor not recorded: already set or record gone",
                extra={
                    "token_digest": digest_prefix(token_digest),
                    "successor_digest": digest_prefix(successor_digest)
                }
            )
            return False

        return True

    def delete_expired(self, now: datetime | None = None, batch_size: int | None = None) -> int:
        """
        Deletes records whose expires_at has passed, in batches.
        Revocation state is irrelevant here.

        Returns:
            Total number of records deleted
        """
        now = now or utc_now()
        batch_size = batch_size or settings.TOKEN_SWEEP_BATCH_SIZE
        total = 0

        while True:
            with self._store_call("delete_expired"):
                ids = self.db.execute(
                    select(RefreshToken.id)
                    .where(RefreshToken.expires_at <= now)
                    .order_by(RefreshToken.expires_at)
                    .limit(batch_size)
                ).scalars().all()

                if not ids:
                    break

                result = self.db.execute(
                    delete(RefreshToken)
                    .where(RefreshToken.id.in_(ids), RefreshToken.expires_at <= now)
                    .execution_options(synchronize_session=False)
                )
                self.db.commit()

            total += result.rowcount
            if len(ids) < batch_size:
                break

        return total
