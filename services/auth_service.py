from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException
from starlette import status
from core.database import store_call
from models.users import User
from schemas.auth_schemas import RegisterRequest
from utils.hashing import verify_password, hash_password
from utils.logger import get_logger

logger = get_logger(__name__)


class AuthService:

    @staticmethod
    def create_user(request: RegisterRequest, db: Session) -> User:
        """
        Creates a new active user.

        Flow:
        1. Check if email already exists
        2. Hash password
        3. Create user
        """
        email = request.email.lower().strip()

        with store_call(db, "users.find_by_email"):
            existing_user = db.query(User).filter(User.email == email).first()

        if existing_user:
            logger.warning(
                "Registration attempt with existing email",
                extra={"user_id": existing_user.id}
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email already registered"
            )

        model = User(
            email=email,
            name=request.name or "",
            hashed_password=hash_password(request.password),
            is_active=True
        )

        with store_call(db, "users.insert"):
            db.add(model)
            try:
                db.commit()
            except IntegrityError:
                # lost a race against a concurrent registration of the same email
                db.rollback()
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Email already registered"
                )

            db.refresh(model)
        return model

    @staticmethod
    def authenticate_user(email: str, password: str, db: Session) -> User:
        email = email.lower().strip()
        with store_call(db, "users.find_by_email"):
            user = db.query(User).filter(User.email == email).first()

        if not user:
            logger.warning("Login failed - user not found")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials")

        if not verify_password(password, user.hashed_password):
            logger.warning(
                "Login failed - invalid password",
                extra={"user_id": user.id}
            )
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials")

        if not user.is_active:
            logger.warning(
                "Login failed - inactive account",
                extra={"user_id": user.id}
            )
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials")

        logger.debug(
            "User authenticated successfully",
            extra={"user_id": user.id}
        )

        return user

    @staticmethod
    def get_active_user_by_id(db: Session, user_id: int) -> User | None:
        with store_call(db, "users.find_active_by_id"):
            return db.query(User).filter(User.id == user_id, User.is_active == True).one_or_none()
