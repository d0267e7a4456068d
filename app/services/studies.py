"""Study queries shared by the public and researcher routes."""
import json
import math
from typing import Any

from fastapi import HTTPException
from sqlalchemy import String, cast, func, or_
from sqlmodel import Session, select

from app.models import Study, User


def parse_study_id(raw: str) -> int:
    try:
        study_id = int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid study ID format")
    if study_id <= 0:
        raise HTTPException(status_code=400, detail="Invalid study ID format")
    return study_id


def get_study_or_404(db: Session, raw_id: str) -> Study:
    study = db.get(Study, parse_study_id(raw_id))
    if not study:
        raise HTTPException(status_code=404, detail="Study not found")
    return study


def get_owned_study(db: Session, raw_id: str, user: User, action: str) -> Study:
    study = get_study_or_404(db, raw_id)
    if study.researcher_id != user.uid:
        raise HTTPException(status_code=403, detail=f"User not authorized to {action} this study")
    return study


def paginate(db: Session, stmt, page: int, limit: int, *order_by) -> dict[str, Any]:
    """Runs stmt for one page; returns the {studies, totalPages, currentPage, totalStudies} envelope."""
    page = max(page, 1)
    limit = max(limit, 1)
    total = db.exec(select(func.count()).select_from(stmt.subquery())).one()
    rows = list(db.exec(stmt.order_by(*order_by).offset((page - 1) * limit).limit(limit)).all())
    return {
        "studies": rows,
        "totalPages": math.ceil(total / limit),
        "currentPage": page,
        "totalStudies": total,
    }


def public_studies_query(genres: list[str] | None, title: str | None):
    """Approved studies; genre and title are case-insensitive substring filters."""
    stmt = select(Study).where(Study.approved == True)  # noqa: E712
    if genres:
        genre_text = func.lower(cast(Study.genres, String))
        clauses = [genre_text.contains(g.strip().lower()) for g in genres if g and g.strip()]
        if clauses:
            stmt = stmt.where(or_(*clauses))
    if title and title.strip():
        stmt = stmt.where(Study.title.ilike(f"%{title.strip()}%"))
    return stmt


def parse_json_field(raw: Any, default: Any, *, strict: bool = False, field: str = "") -> Any:
    """Form fields arrive as JSON strings. strict=True turns a parse error into a 400."""
    if raw is None or raw == "":
        return default
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        if strict:
            raise HTTPException(status_code=400, detail=f"Invalid format for {field}.")
        return default
