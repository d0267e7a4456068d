import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlmodel import Session
from starlette.datastructures import UploadFile

from app.api.deps import get_current_user
from app.core.clock import utcnow
from app.core.config import settings
from app.core.database import get_db
from app.models import PATENT_STATUSES, Study, User
from app.services.activity_log import log_study_click
from app.services.storage import delete_document, is_local_location, store_study_document
from app.services.studies import (
    get_owned_study,
    get_study_or_404,
    paginate,
    parse_json_field,
    public_studies_query,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/studies", tags=["studies"])

DOCUMENT_FIELD = "study_document_files"


async def _read_documents(form) -> list[tuple[str, bytes]]:
    """(original name, content) for every file under DOCUMENT_FIELD, size and count checked."""
    files = [f for f in form.getlist(DOCUMENT_FIELD) if isinstance(f, UploadFile) and f.filename]
    if len(files) > settings.max_study_documents:
        raise HTTPException(status_code=400, detail=f"Cannot exceed {settings.max_study_documents} documents in total.")
    out = []
    for f in files:
        content = await f.read()
        if len(content) > settings.upload_max_bytes:
            raise HTTPException(status_code=413, detail=f"Each file may be at most {settings.upload_max_mb} MB.")
        out.append((f.filename, content))
    return out


def _store_documents(uploads: list[tuple[str, bytes]], metadata: list) -> list[dict]:
    stored = []
    for i, (name, content) in enumerate(uploads):
        meta = metadata[i] if i < len(metadata) and isinstance(metadata[i], dict) else {}
        try:
            doc = store_study_document(content, name, meta.get("display_name"))
        except OSError as e:
            log.warning("Failed to store uploaded file %s: %s", name, e)
            continue
        doc["uploaded_at"] = utcnow().isoformat()
        stored.append(doc)
    return stored


def _rollback_documents(docs: list[dict]) -> None:
    for doc in docs:
        delete_document(doc["file_location"])


def _as_list(value) -> list:
    if isinstance(value, list):
        return value
    return [value] if value else []


def _owned(location, existing: dict) -> bool:
    return isinstance(location, str) and location in existing


def _patent_status(raw) -> str | None:
    value = (raw or "").strip() or None
    if value is not None and value not in PATENT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid patent_status. Allowed: {', '.join(PATENT_STATUSES)}.")
    return value


@router.get("")
@router.get("/")
def list_studies(
    genre: list[str] | None = Query(None),
    title: str | None = None,
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
):
    """Public catalogue: approved studies only, newest first."""
    stmt = public_studies_query(genre, title)
    return paginate(db, stmt, page, limit, Study.created_at.desc(), Study.id.desc())


@router.get("/{study_id}", response_model=Study)
def get_study(study_id: str, db: Session = Depends(get_db)):
    study = get_study_or_404(db, study_id)
    log_study_click(study.id, study.title)
    return study


@router.post("", status_code=201, response_model=Study)
@router.post("/", status_code=201, response_model=Study, include_in_schema=False)
async def create_study(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = await request.form()
    title = (form.get("title") or "").strip()
    abstract = (form.get("abstract") or "").strip()
    brief_description = (form.get("brief_description") or "").strip()
    if not title or not abstract or not brief_description:
        raise HTTPException(status_code=400, detail="Title, abstract, and brief description are required.")
    documents_metadata = _as_list(
        parse_json_field(form.get("documents_metadata"), [], strict=True, field="documents_metadata")
    )
    patent_status = _patent_status(form.get("patent_status"))
    uploads = await _read_documents(form)

    stored = _store_documents(uploads, documents_metadata)
    documents = stored
    if not uploads:
        # Documents hosted elsewhere, referenced by metadata only
        documents = [
            {
                "display_name": m.get("display_name") or "Untitled Document",
                "file_location": m["file_location"],
                "uploaded_at": utcnow().isoformat(),
            }
            for m in documents_metadata
            if isinstance(m, dict) and m.get("file_location") and not is_local_location(m["file_location"])
        ]

    genres = parse_json_field(form.get("genres"), None)
    if genres is None and form.get("genres"):
        genres = [form.get("genres")]
    questions = parse_json_field(form.get("questions"), [])
    additional_info = parse_json_field(form.get("additional_info"), {})

    study = Study(
        researcher_id=user.uid,
        title=title,
        abstract=abstract,
        brief_description=brief_description,
        genres=[str(g) for g in _as_list(genres)],
        documents=documents,
        patent_status=patent_status,
        questions=questions if isinstance(questions, list) else [],
        additional_info=additional_info if isinstance(additional_info, dict) else {},
    )
    try:
        db.add(study)
        db.commit()
        db.refresh(study)
    except Exception:
        db.rollback()
        _rollback_documents(stored)
        raise
    log.info("study created: id=%s researcher=%s documents=%s", study.id, user.uid, len(documents))
    return study


@router.put("/{study_id}", response_model=Study)
async def update_study(
    study_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    study = get_owned_study(db, study_id, user, "update")
    form = await request.form()
    kept = _as_list(parse_json_field(form.get("kept_documents_metadata"), [], strict=True, field="kept_documents_metadata"))
    deleted = _as_list(parse_json_field(form.get("deleted_documents_locations"), [], strict=True, field="deleted_documents_locations"))
    new_meta = _as_list(parse_json_field(form.get("new_documents_metadata"), [], strict=True, field="new_documents_metadata"))
    patent_raw = form.get("patent_status")
    patent_status = _patent_status(patent_raw) if patent_raw is not None else study.patent_status
    uploads = await _read_documents(form)

    # Only this study's own documents can be kept or deleted
    existing = {d.get("file_location"): d for d in study.documents or [] if isinstance(d, dict)}
    final_documents = []
    for doc in kept:
        if isinstance(doc, dict) and _owned(doc.get("file_location"), existing) and doc.get("display_name"):
            previous = existing.get(doc["file_location"]) or {}
            final_documents.append(
                {
                    "display_name": doc["display_name"],
                    "file_location": doc["file_location"],
                    "uploaded_at": previous.get("uploaded_at") or utcnow().isoformat(),
                }
            )
    if len(final_documents) + len(uploads) > settings.max_study_documents:
        raise HTTPException(status_code=400, detail=f"Cannot exceed {settings.max_study_documents} documents in total.")

    new_documents = _store_documents(uploads, new_meta)
    for location in deleted:
        if _owned(location, existing):
            delete_document(location)
        else:
            log.warning("study %s: ignoring delete of foreign location %s", study.id, location)

    study.documents = final_documents + new_documents
    study.title = (form.get("title") or "").strip() or study.title
    study.abstract = (form.get("abstract") or "").strip() or study.abstract
    study.brief_description = (form.get("brief_description") or "").strip() or study.brief_description
    study.patent_status = patent_status
    for name in ("genres", "questions", "additional_info"):
        if form.get(name):
            value = parse_json_field(form.get(name), None)
            if value is None:
                log.warning("Failed to parse %s for update of study %s, keeping old.", name, study.id)
            else:
                setattr(study, name, value)
    study.touch()
    try:
        db.add(study)
        db.commit()
        db.refresh(study)
    except Exception:
        db.rollback()
        _rollback_documents(new_documents)
        raise
    return study


@router.delete("/{study_id}")
def delete_study(
    study_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    study = get_owned_study(db, study_id, user, "delete")
    for doc in study.documents or []:
        delete_document(doc.get("file_location"))
    db.delete(study)
    db.commit()
    log.info("study deleted: id=%s researcher=%s", study_id, user.uid)
    return {"message": "Study deleted successfully"}
