from services.token_service import TokenService
from services.session_service import SessionService
from services.token_signer import token_signer
from services.token_store import RefreshTokenStore
from models.refresh_tokens import RefreshToken
from core.exceptions import (ExpiredTokenError, MalformedTokenError, TokenNotActiveError,
ReuseDetectedError, AccountInactiveError, StoreUnavailableError)
from tests.helpers import get_record
from datetime import timedelta
from utils.datetime_utils import utc_now
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query
import pytest


def test_create_tokens_stores_record(session, user, context):
    tokens = TokenService.create_tokens(user, session, context)

    assert tokens["token_type"] == "bearer"
    assert tokens["expires_in"] == 15 * 60

    record = get_record(session, tokens["refresh_token"])
    assert record.owner_id == user.id
    assert record.revoked_at is None
    assert record.issuer_ip == "127.0.0.1"
    assert record.issuer_user_agent == "pytest"
    # the raw token is never stored
    assert record.token_digest != tokens["refresh_token"]


def test_rotation_chain(session, user, context):
    r1 = TokenService.create_tokens(user, session, context)["refresh_token"]

    r2 = TokenService.rotate_tokens(r1, session, context)["refresh_token"]

    with pytest.raises(TokenNotActiveError):
        TokenService.rotate_tokens(r1, session, context)

    r3 = TokenService.rotate_tokens(r2, session, context)["refresh_token"]

    first = get_record(session, r1)
    second = get_record(session, r2)
    third = get_record(session, r3)

    assert first.revoked_at is not None
    assert first.successor_digest == token_signer.digest(r2)
    assert second.revoked_at is not None
    assert second.successor_digest == token_signer.digest(r3)
    assert third.revoked_at is None
    assert third.successor_digest is None


def test_rotated_access_token_belongs_to_owner(session, user, context):
    r1 = TokenService.create_tokens(user, session, context)["refresh_token"]
    tokens = TokenService.rotate_tokens(r1, session, context)

    payload = token_signer.verify_access(tokens["access_token"])
    assert payload["sub"] == str(user.id)
    assert payload["email"] == user.email


def test_reuse_of_unknown_token_revokes_owner_sessions(session, make_user, context):
    owner = make_user("owner@example.com")
    bystander = make_user("bystander@example.com")

    stolen = TokenService.create_tokens(owner, session, context)["refresh_token"]
    other_device = TokenService.create_tokens(owner, session, context)["refresh_token"]
    unrelated = TokenService.create_tokens(bystander, session, context)["refresh_token"]

    session.query(RefreshToken).filter(
        RefreshToken.token_digest == token_signer.digest(stolen)
    ).delete()
    session.commit()

    with pytest.raises(ReuseDetectedError):
        TokenService.rotate_tokens(stolen, session, context)

    assert get_record(session, other_device).revoked_at is not None
    assert get_record(session, unrelated).revoked_at is None

    with pytest.raises(TokenNotActiveError):
        TokenService.rotate_tokens(other_device, session, context)


def test_expired_record_is_rejected_without_mutation(session, user, context):
    refresh_token = token_signer.sign_refresh(str(user.id), user.email)
    now = utc_now()
    RefreshTokenStore(session).insert(
        token_digest=token_signer.digest(refresh_token),
        owner_id=user.id,
        issued_at=now - timedelta(days=8),
        expires_at=now - timedelta(days=1)
    )

    with pytest.raises(TokenNotActiveError):
        TokenService.rotate_tokens(refresh_token, session, context)

    record = get_record(session, refresh_token)
    assert record.revoked_at is None
    assert record.successor_digest is None
    assert session.query(RefreshToken).count() == 1


def test_expired_jwt_is_rejected(session, user, context):
    refresh_token = token_signer.sign_refresh(str(user.id), user.email, expires_delta=timedelta(seconds=-1))

    with pytest.raises(ExpiredTokenError):
        TokenService.rotate_tokens(refresh_token, session, context)


def test_malformed_tokens_are_rejected(session, user, context):
    access_token = token_signer.sign_access(str(user.id), user.email)

    for bad in ("not-a-jwt", access_token, ""):
        with pytest.raises(MalformedTokenError):
            TokenService.rotate_tokens(bad, session, context)

    assert session.query(RefreshToken).count() == 0


def test_non_numeric_subject_is_malformed(session, user, context):
    refresh_token = token_signer.sign_refresh("not-a-number", user.email)

    with pytest.raises(MalformedTokenError):
        TokenService.rotate_tokens(refresh_token, session, context)


def test_subject_must_match_record_owner(session, make_user, context):
    owner = make_user("owner@example.com")
    intruder = make_user("intruder@example.com")
    refresh_token = token_signer.sign_refresh(str(intruder.id), intruder.email)
    now = utc_now()
    RefreshTokenStore(session).insert(
        token_digest=token_signer.digest(refresh_token),
        owner_id=owner.id,
        issued_at=now,
        expires_at=now + timedelta(days=7)
    )

    with pytest.raises(MalformedTokenError):
        TokenService.rotate_tokens(refresh_token, session, context)

    assert get_record(session, refresh_token).revoked_at is None


def test_lost_race_issues_nothing(session, user, context, monkeypatch):
    r1 = TokenService.create_tokens(user, session, context)["refresh_token"]
    monkeypatch.setattr(RefreshTokenStore, "revoke_if_active", lambda self, digest, now=None: False)

    with pytest.raises(TokenNotActiveError):
        TokenService.rotate_tokens(r1, session, context)

    assert session.query(RefreshToken).count() == 1
    assert get_record(session, r1).successor_digest is None


def test_inactive_owner_cannot_rotate(session, user, context):
    r1 = TokenService.create_tokens(user, session, context)["refresh_token"]
    user.is_active = False
    session.commit()

    with pytest.raises(AccountInactiveError):
        TokenService.rotate_tokens(r1, session, context)

    assert session.query(RefreshToken).count() == 1


def test_store_unavailable_is_not_treated_as_reuse(session, user, context, monkeypatch):
    r1 = TokenService.create_tokens(user, session, context)["refresh_token"]

    def unavailable(self, digest):
        raise StoreUnavailableError()

    monkeypatch.setattr(RefreshTokenStore, "find_by_digest", unavailable)

    with pytest.raises(StoreUnavailableError):
        TokenService.rotate_tokens(r1, session, context)

    monkeypatch.undo()
    assert get_record(session, r1).revoked_at is None


def test_revoke_token(session, user, context):
    r1 = TokenService.create_tokens(user, session, context)["refresh_token"]

    assert TokenService.revoke_token(r1, session, context) is True
    assert TokenService.revoke_token(r1, session, context) is False
    assert TokenService.revoke_token("never-issued", session, context) is False

    with pytest.raises(TokenNotActiveError):
        TokenService.rotate_tokens(r1, session, context)


def test_logout_all_ends_every_session(session, user, context):
    tokens = [TokenService.create_tokens(user, session, context)["refresh_token"] for _ in range(3)]

    assert SessionService.logout_all(user.id, session, context) == 3
    assert SessionService.logout_all(user.id, session, context) == 0

    for refresh_token in tokens:
        with pytest.raises(TokenNotActiveError):
            TokenService.rotate_tokens(refresh_token, session, context)


def test_owner_lookup_outage_is_store_unavailable(session, user, context, monkeypatch):
    r1 = TokenService.create_tokens(user, session, context)["refresh_token"]

    def locked(self):
        raise OperationalError("SELECT users", {}, Exception("database is locked"))

    monkeypatch.setattr(Query, "one_or_none", locked)

    with pytest.raises(StoreUnavailableError):
        TokenService.rotate_tokens(r1, session, context)

    monkeypatch.undo()
    assert get_record(session, r1).revoked_at is None
