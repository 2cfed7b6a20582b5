import pytest
from middleware.rate_limiter import limiter
from core.config import settings
from tests.helpers import TEST_PASSWORD


@pytest.fixture
def enabled_limiter():
    limiter.reset()
    limiter.enabled = True
    try:
        yield limiter
    finally:
        limiter.enabled = False
        limiter.reset()


def test_rate_limiter_disabled_in_testing():
    """Verify rate limiter is disabled during tests."""
    assert settings.ENV == "testing"
    assert limiter.enabled is False


async def test_can_make_multiple_requests_in_tests(client, user):
    """Verify rate limiting doesn't interfere with tests."""
    for _ in range(12):
        response = await client.post("/auth/login", json={
            "email": user.email,
            "password": TEST_PASSWORD
        })
        assert response.status_code == 200


async def test_login_is_rate_limited(client, user, enabled_limiter):
    statuses = []
    for _ in range(11):
        response = await client.post("/auth/login", json={
            "email": user.email,
            "password": "WrongPassword123!"
        })
        statuses.append(response.status_code)

    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429
