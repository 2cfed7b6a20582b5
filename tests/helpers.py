from httpx import AsyncClient
from sqlalchemy.orm import Session
from models.refresh_tokens import RefreshToken
from services.token_signer import token_signer

TEST_PASSWORD = "TestPassword123!"


async def login(client: AsyncClient, email: str, password: str = TEST_PASSWORD):
    """Logs in and returns (access_token, refresh_token)."""
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["access_token"], response.cookies.get("refresh_token")


def cookie_header(refresh_token: str) -> dict:
    """Explicit Cookie header; takes precedence over the client's cookie jar."""
    return {"Cookie": f"refresh_token={refresh_token}"}


def get_record(session: Session, refresh_token: str) -> RefreshToken | None:
    """Fresh read of the record stored for a raw refresh token."""
    session.expire_all()
    return session.query(RefreshToken).filter(
        RefreshToken.token_digest == token_signer.digest(refresh_token)
    ).one_or_none()
