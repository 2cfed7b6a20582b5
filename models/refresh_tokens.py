from datetime import datetime
from core.database import Base
from sqlalchemy import Column, DateTime, String, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from utils.datetime_utils import utc_now, ensure_utc


class RefreshToken(Base):
    """
    Lifecycle record of one issued refresh token.

    The record is keyed by the SHA-256 digest of the raw token; the raw token
    itself is never stored. A record is mutated at most once (revocation,
    optionally with the successor digest on rotation) and is only ever
    deleted by the expiry sweep, no earlier than expires_at.
    """
    __tablename__ = "refresh_tokens"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    owner = relationship("User", back_populates="refresh_tokens")

    token_digest = Column(String(64), nullable=False, unique=True, index=True)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    successor_digest = Column(String(64), nullable=True)

    # diagnostics only, never used for security decisions
    issuer_ip = Column(String(45), nullable=True)
    issuer_user_agent = Column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_refresh_tokens_owner_revoked", "owner_id", "revoked_at"),
    )

    def __repr__(self) -> str:
        return f"<RefreshToken id={self.id} owner_id={self.owner_id} digest={self.token_digest[:8]}...>"


def is_expired(record: RefreshToken, now: datetime | None = None) -> bool:
    now = now or utc_now()
    return now >= ensure_utc(record.expires_at)


def is_active(record: RefreshToken, now: datetime | None = None) -> bool:
    return record.revoked_at is None and not is_expired(record, now)
