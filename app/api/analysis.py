"""
Asynchronous document analysis.

POST answers 202 as soon as the upload is stored and the job is registered; the
analysis program runs as a detached task and its outcome is only visible
through the status endpoint.
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from app.api.deps import get_current_user, get_job_registry
from app.core.config import analysis_output_path, analysis_upload_path, settings, resolve_path
from app.models import User
from app.schemas import AnalysisAccepted, AnalysisStatus
from app.services.analysis_executor import run_analysis
from app.services.jobs import JobNotFound, JobRegistry
from app.services.storage import temp_upload_name, write_upload

log = logging.getLogger(__name__)

router = APIRouter(prefix="/studies", tags=["analysis"])

UPLOAD_FIELD = "document"


@router.post("/analyze-document-async", status_code=202, response_model=AnalysisAccepted)
async def analyze_document_async(
    document: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    jobs: JobRegistry = Depends(get_job_registry),
):
    if document is None or not document.filename:
        raise HTTPException(status_code=400, detail="No document file uploaded.")
    content = await document.read()
    if len(content) > settings.upload_max_bytes:
        raise HTTPException(status_code=413, detail=f"File may be at most {settings.upload_max_mb} MB.")
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    try:
        path = write_upload(analysis_upload_path(), temp_upload_name(UPLOAD_FIELD, document.filename), content)
    except OSError as e:
        log.exception("analysis upload could not be stored: %s", e)
        raise HTTPException(status_code=500, detail="Uploaded file could not be stored.")

    job = jobs.create(path, document.filename, owner_id=user.uid)
    task = asyncio.create_task(
        run_analysis(
            path,
            script_path=resolve_path(settings.analysis_script_path),
            python=settings.analysis_python,
            output_dir=analysis_output_path(),
        ),
        name=f"analysis-{job.id}",
    )
    jobs.track(job.id, task)
    log.info("analysis started: id=%s user=%s size=%s", job.id, user.uid, len(content))
    return AnalysisAccepted(analysis_id=job.id)


@router.get("/analysis-status/{analysis_id}", response_model=AnalysisStatus, response_model_exclude_none=True)
async def analysis_status(
    analysis_id: str,
    user: User = Depends(get_current_user),
    jobs: JobRegistry = Depends(get_job_registry),
):
    try:
        job = jobs.get(analysis_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Analysis job not found.")
    if job.owner_id is not None and job.owner_id != user.uid:
        raise HTTPException(status_code=403, detail="Forbidden: This analysis belongs to another user.")
    return AnalysisStatus.from_view(job.view())
