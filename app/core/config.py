from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env lives at the project root: app/core/config.py -> app/core -> app -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:3001,http://r2c.iiitd.edu.in"


class Settings(BaseSettings):
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./r2c.db"
    # Comma separated origin list, "*" allows everything
    cors_origins: str = DEFAULT_CORS_ORIGINS
    rate_limit_per_minute: int = 60
    rate_limit_signup_per_minute: int = 3
    environment: str = "development"   # production hides 500 error detail
    admin_secret: str = ""             # X-Admin-Secret for study approval

    documents_dir: str = "documents"   # served under /documents
    upload_max_mb: int = 10
    max_study_documents: int = 5

    # External programs (document analysis, chat)
    analysis_python: str = "python"
    analysis_script_path: str = "../TechTransfer_Chatbot/qna_pipeline.py"
    analysis_upload_dir: str = "data/analysis_uploads"
    analysis_output_dir: str = ""      # empty: same as analysis_upload_dir
    chat_script_path: str = "../TechTransfer_Chatbot-Image_Worthiness_Removed/live_chat_handler.py"

    # Job table: retention window and sweep interval in seconds
    job_retention_seconds: int = 3600
    job_sweep_interval_seconds: int = 600

    logs_dir: str = "logs"

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, v: str | None) -> str:
        return (v or "development").strip().lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def upload_max_bytes(self) -> int:
        return self.upload_max_mb * 1024 * 1024


settings = Settings()


def resolve_path(raw: str) -> Path:
    """Relative paths are taken from the project root, not the working directory."""
    p = Path(raw).expanduser()
    return p if p.is_absolute() else (_ROOT / p).resolve()


def documents_path() -> Path:
    return resolve_path(settings.documents_dir)


def analysis_upload_path() -> Path:
    return resolve_path(settings.analysis_upload_dir)


def analysis_output_path() -> Path:
    return resolve_path(settings.analysis_output_dir or settings.analysis_upload_dir)


def logs_path() -> Path:
    return resolve_path(settings.logs_dir)
