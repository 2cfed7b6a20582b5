from core.database import SessionLocal
from typing import Annotated
from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from starlette import status
from core.context import RequestContext
from core.exceptions import InvalidTokenError, ExpiredTokenError
from middleware.request_id import get_request_id
from services.token_signer import token_signer


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_request_context(request: Request) -> RequestContext:
    return RequestContext.build(
        request_id=get_request_id(request),
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent")
    )

context_dependency = Annotated[RequestContext, Depends(get_request_context)]


def get_current_user(token: Annotated[str, Depends(OAuth2PasswordBearer(tokenUrl="auth/login"))]):
    try:
        payload = token_signer.verify_access(token)
    except ExpiredTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Access token expired",
                            headers={"WWW-Authenticate": "Bearer"})
    except InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Could not validate credentials.",
                            headers={"WWW-Authenticate": "Bearer"})

    try:
        user_id = int(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Could not validate credentials.",
                            headers={"WWW-Authenticate": "Bearer"})

    return {"user_id": user_id, "email": payload.get("email")}


user_dependency = Annotated[dict, Depends(get_current_user)]
