import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from app.core.clock import utcnow
from app.core.database import get_db
from app.core.security import InvalidToken, TokenExpired, verify_id_token
from app.models import User
from app.services.jobs import JobRegistry

log = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> int:
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: No token provided or malformed token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = verify_id_token(credentials.credentials)
        return int(payload["sub"])
    except TokenExpired:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: Token expired.")
    except (InvalidToken, ValueError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized: Invalid token.")


def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized: Invalid token.")
    try:
        user.last_login_at = utcnow()
        db.add(user)
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        log.warning("last_login_at update failed for user %s: %s", user_id, e)
    return user


def get_job_registry(request: Request) -> JobRegistry:
    return request.app.state.jobs
