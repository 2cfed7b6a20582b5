from typing import Annotated
from fastapi import APIRouter, HTTPException, Request, Response, Cookie
from fastapi.responses import JSONResponse
from starlette import status
from utils.deps import db_dependency, user_dependency, context_dependency
from schemas.auth_schemas import (RegisterRequest, LoginRequest, RegisterResponse, Token,
RefreshResponse, LogoutResponse, LogoutAllResponse, UserOut)
from services.auth_service import AuthService
from services.token_service import TokenService
from services.session_service import SessionService
from core.exceptions import StoreUnavailableError
from middleware.rate_limiter import limiter
from utils.cookies import set_refresh_cookie, clear_refresh_cookie
from utils.logger import get_logger, log_audit_event

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=RegisterResponse)
@limiter.limit("5/minute")
def register(request: Request, response: Response, body: RegisterRequest,
             db: db_dependency, context: context_dependency):
    user = AuthService.create_user(body, db)

    logger.info(
        "User registered successfully",
        extra={"user_id": user.id, "request_id": context.request_id}
    )

    tokens = TokenService.create_tokens(user, db, context)
    set_refresh_cookie(response, tokens["refresh_token"])

    return {
        "access_token": tokens["access_token"],
        "token_type": tokens["token_type"],
        "expires_in": tokens["expires_in"],
        "user": UserOut.model_validate(user)
    }


@router.post("/login", response_model=Token)
@limiter.limit("10/15minutes")
def login(request: Request, response: Response, body: LoginRequest,
          db: db_dependency, context: context_dependency):
    user = AuthService.authenticate_user(body.email, body.password, db)

    tokens = TokenService.create_tokens(user, db, context)
    set_refresh_cookie(response, tokens["refresh_token"])

    logger.info(
        "User logged in successfully",
        extra={"user_id": user.id, "request_id": context.request_id}
    )

    return tokens


@router.post("/refresh", response_model=RefreshResponse)
@limiter.limit("30/5minutes")
def refresh(request: Request, response: Response, db: db_dependency,
            context: context_dependency,
            refresh_token: Annotated[str | None, Cookie()] = None):
    """
    Exchange the refresh cookie for a new access token and a new refresh cookie.
    """
    if not refresh_token or not refresh_token.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Refresh token missing")

    tokens = TokenService.rotate_tokens(refresh_token, db, context)
    set_refresh_cookie(response, tokens["refresh_token"])

    return tokens


@router.post("/logout", response_model=LogoutResponse)
@limiter.limit("10/minute")
def logout(request: Request, response: Response, db: db_dependency,
           context: context_dependency,
           refresh_token: Annotated[str | None, Cookie()] = None):
    """
    End the current session. The refresh cookie is cleared whatever happens,
    including when the token is unknown or already revoked.
    """
    session_ended = False

    if refresh_token:
        try:
            session_ended = TokenService.revoke_token(refresh_token, db, context)
        except StoreUnavailableError as exc:
            log_audit_event("logout_failed", context, error=exc.code)
            failed = JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"detail": "Logged out locally, session could not be revoked", "code": exc.code},
                headers={"Retry-After": str(exc.retry_after_seconds)}
            )
            clear_refresh_cookie(failed)
            return failed

    clear_refresh_cookie(response)

    if not session_ended:
        logger.info(
            "Logout with invalid or already revoked refresh token",
            extra={"request_id": context.request_id}
        )

    return {"message": "Logged out successfully", "session_ended": session_ended}


@router.post("/logout-all", response_model=LogoutAllResponse)
@limiter.limit("10/minute")
def logout_all(request: Request, response: Response, user: user_dependency,
               db: db_dependency, context: context_dependency):
    """
    Revoke every active refresh token of the authenticated user.
    """
    revoked_count = SessionService.logout_all(user["user_id"], db, context)
    clear_refresh_cookie(response)

    if revoked_count:
        return {"message": "Logged out from all devices", "revoked_count": revoked_count}

    return {"message": "No active session to logout from", "revoked_count": 0}
