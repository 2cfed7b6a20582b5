from passlib.context import CryptContext
from core.config import settings

BCRYPT_MAX_BYTES = 72

bcrypt_context = CryptContext(
    schemes=['bcrypt'],
    deprecated='auto',
    bcrypt__rounds=settings.BCRYPT_ROUNDS
)


def _bcrypt_input(password: str | None) -> bytes:
    # Bcrypt only looks at the first 72 bytes
    return str(password or "").encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str | None) -> str:
    return bcrypt_context.hash(_bcrypt_input(password))


def verify_password(plain_password: str | None, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    return bcrypt_context.verify(_bcrypt_input(plain_password), hashed_password)
