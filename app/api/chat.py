import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlmodel import Session

from app.api.deps import get_current_user
from app.core.config import resolve_path, settings
from app.core.database import get_db
from app.models import Study, User
from app.schemas import ChatRequest
from app.services.activity_log import log_chat_history
from app.services.chat import ChatError, chat_with_paper

log = logging.getLogger(__name__)

router = APIRouter(prefix="/studies", tags=["chat"])


@router.post("/chat-with-paper")
async def chat(
    body: ChatRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Asks the chat program a question about one study, using its abstract as context."""
    prompt = (body.prompt or "").strip()
    if not prompt or not body.study_id:
        raise HTTPException(status_code=400, detail="Prompt and studyId are required.")
    try:
        study = db.get(Study, int(body.study_id))
    except (TypeError, ValueError):
        study = None
    if not study:
        raise HTTPException(status_code=404, detail="Study not found.")

    try:
        answer = await chat_with_paper(
            prompt,
            study.abstract,
            body.chat_history,
            script_path=resolve_path(settings.chat_script_path),
            python=settings.analysis_python,
        )
    except ChatError as e:
        content = {"message": e.message}
        if e.detail:
            content["error"] = e.detail
        if e.raw is not None and not settings.is_production:
            content["rawResponse"] = e.raw
        return JSONResponse(status_code=500, content=content)

    log_chat_history(user.email, study.id, [*body.chat_history, {"role": "user", "content": prompt}, answer])
    return answer
