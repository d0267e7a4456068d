import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root wherever uvicorn is started from
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.admin import router as admin_router
from app.api.analysis import router as analysis_router
from app.api.auth import router as auth_router
from app.api.chat import router as chat_router
from app.api.studies import router as studies_router
from app.api.users import router as users_router
from app.core.config import documents_path, logs_path, settings
from app.core.database import init_db, ping, record
from app.core.rate_limit import client_ip, limiter
from app.logging import setup_logging
from app.models import ErrorLog, SecurityLog
from app.services.janitor import JobJanitor
from app.services.jobs import JobRegistry

setup_logging(level=logging.INFO, log_file=logs_path() / "server.log")
log = logging.getLogger("r2c")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.jobs = JobRegistry()
    app.state.janitor = JobJanitor(
        app.state.jobs,
        interval=settings.job_sweep_interval_seconds,
        retention=settings.job_retention_seconds,
    )
    app.state.janitor.start()
    log.info("environment=%s documents_dir=%s", settings.environment, documents_path())
    try:
        yield
    finally:
        await app.state.janitor.stop()


app = FastAPI(
    title="R2C API",
    description="Research study submission, document analysis and public catalogue",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, message: str, **extra) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"message": message, "status_code": status_code, **extra}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    record(SecurityLog(event="rate_limit", ip=client_ip(request), endpoint=request.url.path, detail="Rate limit exceeded"))
    return _error_response(request, 429, "Too many requests. Please wait a minute.")


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


def _jsonable_errors(errs: list) -> list:
    # ctx may hold exception instances that JSONResponse cannot encode
    return [{k: v for k, v in e.items() if k in ("type", "loc", "msg")} for e in errs]


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning(
        "Request validation error (422): path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        errs,
    )
    first = errs[0].get("msg") if errs else None
    return _error_response(request, 422, first or "Invalid request.", detail=_jsonable_errors(errs))


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        return _error_response(request, 404, "Sorry, can't find that route!")
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    response = _error_response(request, exc.status_code, detail)
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc, exc_info=exc)
    record(ErrorLog(
        endpoint=request.url.path,
        method=request.method,
        error_message=str(exc)[:2000],
        stack_trace="".join(traceback.format_exception(exc))[:10000],
    ))
    body = {"message": "Something broke on the server!"}
    if not settings.is_production:
        body["error"] = str(exc)
    return JSONResponse(status_code=500, content=body)


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth_router)
app.include_router(users_router)
# Fixed /studies/... paths before /studies/{study_id}
app.include_router(analysis_router)
app.include_router(chat_router)
app.include_router(studies_router)
app.include_router(admin_router)

_DOCUMENTS_DIR = documents_path()
_DOCUMENTS_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/documents", StaticFiles(directory=str(_DOCUMENTS_DIR)), name="documents")


@app.get("/health")
def health(request: Request):
    database = "ok" if ping() else "error"
    jobs = getattr(request.app.state, "jobs", None)
    return {"status": "ok", "database": database, "jobs": len(jobs) if jobs is not None else 0}
