from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from app.api.deps import get_current_user
from app.core.database import get_db
from app.models import Study, User
from app.schemas import UserProfile
from app.services.studies import paginate, parse_study_id

router = APIRouter(prefix="/api", tags=["users"])


def _iso(dt) -> str | None:
    return dt.isoformat() if dt else None


@router.get("/my-profile")
def my_profile(user: User = Depends(get_current_user)):
    profile = UserProfile(
        uid=user.uid,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        contact_info={"phone": user.phone},
        photo_url=user.photo_url,
        auth_provider=user.auth_provider,
        created_at=_iso(user.created_at),
        last_login_at=_iso(user.last_login_at),
    )
    return {"userProfile": profile.model_dump(by_alias=True)}


@router.get("/my-studies")
def my_studies(
    page: int = 1,
    limit: int = 6,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The caller's own studies, approved or not, most recently updated first."""
    stmt = select(Study).where(Study.researcher_id == user.uid)
    return paginate(db, stmt, page, limit, Study.updated_at.desc(), Study.id.desc())


@router.get("/my-studies/{study_id}", response_model=Study)
def my_study(
    study_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    study = db.get(Study, parse_study_id(study_id))
    if not study:
        raise HTTPException(status_code=404, detail="Study not found.")
    if study.researcher_id != user.uid:
        raise HTTPException(status_code=403, detail="Forbidden: You do not own this study.")
    return study
