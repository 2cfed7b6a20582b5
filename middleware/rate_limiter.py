from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from core.config import settings
from core.exceptions import AuthError
from services.token_signer import token_signer


def get_user_id(request: Request):
    """Rate limit key: user id from a valid access token, else client address."""
    token = request.headers.get("Authorization")
    if token and token.startswith("Bearer "):
        try:
            payload = token_signer.verify_access(token.replace("Bearer ", "", 1))
            user_id = payload.get("sub")
            if user_id:
                return f"user:{user_id}"
        except AuthError:
            pass

    return get_remote_address(request)

limiter = Limiter(
    key_func=get_user_id,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
