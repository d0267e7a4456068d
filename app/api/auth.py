import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select

from app.core.clock import utcnow
from app.core.config import settings
from app.core.database import get_db, record
from app.core.rate_limit import client_ip, limiter, per_minute
from app.core.security import create_access_token, hash_password, verify_password
from app.models import SecurityLog, User
from app.schemas import LoginRequest, SignupRequest, SignupResponse, Token

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
_LOGIN_LIMIT = per_minute(settings.rate_limit_per_minute)
_SIGNUP_LIMIT = per_minute(settings.rate_limit_signup_per_minute)
MIN_PASSWORD_LENGTH = 6


@router.post("/signup", response_model=SignupResponse, status_code=201)
@limiter.limit(_SIGNUP_LIMIT)
def signup(request: Request, body: SignupRequest, db: Session = Depends(get_db)):
    email = (body.email or "").strip().lower()
    display_name = (body.display_name or "").strip()
    role = (body.role or "").strip()
    if not email or not body.password or not display_name or not role:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: email, password, displayName, and role are required.",
        )
    if "@" not in email:
        raise HTTPException(status_code=400, detail="The email address is not valid.")
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters long.")
    if db.exec(select(User).where(User.email == email)).first():
        raise HTTPException(status_code=400, detail="The email address is already in use by another account.")
    user = User(
        email=email,
        hashed_password=hash_password(body.password),
        display_name=display_name,
        role=role,
        phone=(body.phone or "").strip() or None,
        last_login_at=utcnow(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    log.info("user signed up: uid=%s role=%s", user.uid, role)
    return SignupResponse(uid=user.uid, email=user.email)


@router.post("/login", response_model=Token)
@limiter.limit(_LOGIN_LIMIT)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    email = (body.email or "").strip().lower()
    user = db.exec(select(User).where(User.email == email)).first()
    if not user or not verify_password(body.password, user.hashed_password):
        record(SecurityLog(event="failed_login", ip=client_ip(request), endpoint="/auth/login", detail=email or "no_email"))
        raise HTTPException(status_code=401, detail="Invalid email or password.")
    user.last_login_at = utcnow()
    db.add(user)
    db.commit()
    return Token(access_token=create_access_token({"sub": user.uid}), uid=user.uid)
