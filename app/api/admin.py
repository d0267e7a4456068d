"""Admin API: only reachable with ADMIN_SECRET. Study approval and the analysis job table."""
import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlmodel import Session

from app.api.deps import get_job_registry
from app.core.config import settings
from app.core.database import get_db
from app.schemas import ApproveRequest
from app.services.jobs import JobRegistry, JobStatus
from app.services.studies import get_study_or_404

log = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _admin_secret_constant_time_compare(provided: str | None, expected: str | None) -> bool:
    """Timing-safe compare; length mismatch still costs one compare_digest."""
    p = (provided or "").encode("utf-8")
    e = (expected or "").encode("utf-8")
    if len(p) != len(e):
        hmac.compare_digest(e, e)
        return False
    return hmac.compare_digest(p, e)


def require_admin(x_admin_secret: str | None = Header(None, alias="X-Admin-Secret")) -> None:
    if not (settings.admin_secret or "").strip():
        raise HTTPException(status_code=503, detail="Admin API is not configured (ADMIN_SECRET missing).")
    if not _admin_secret_constant_time_compare(x_admin_secret, settings.admin_secret):
        raise HTTPException(status_code=403, detail="Forbidden.")


@router.patch("/studies/{study_id}/approve", dependencies=[Depends(require_admin)])
def approve_study(study_id: str, body: ApproveRequest | None = None, db: Session = Depends(get_db)):
    study = get_study_or_404(db, study_id)
    study.approved = body.approved if body is not None else True
    study.touch()
    db.add(study)
    db.commit()
    db.refresh(study)
    log.info("study %s approved=%s", study.id, study.approved)
    return study


@router.get("/analysis-jobs", dependencies=[Depends(require_admin)])
async def analysis_jobs(
    status_filter: str | None = None,
    jobs: JobRegistry = Depends(get_job_registry),
):
    """Current contents of the in-memory job table, newest first."""
    now = jobs.clock()
    snapshot = jobs.snapshot()
    rows = [
        {
            "id": j.id,
            "status": j.status.value,
            "originalName": j.original_name,
            "ownerId": j.owner_id,
            "ageSeconds": round(j.age(now), 1),
            "error": (j.error or "")[:200] or None,
        }
        for j in sorted(snapshot, key=lambda j: j.created_at, reverse=True)
        if not status_filter or j.status.value == status_filter
    ]
    # Counts cover the whole table, not just the filtered rows
    counts = {s.value: sum(1 for j in snapshot if j.status is s) for s in JobStatus}
    return {"jobs": rows, "counts": counts, "running": jobs.running()}
