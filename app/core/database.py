import logging

from sqlalchemy import text
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from .config import settings

log = logging.getLogger(__name__)

SQLITE_DEFAULT = "sqlite:///./r2c.db"


def _normalized_database_url(raw_url: str) -> str:
    """Hosted Postgres URLs (postgres://, driverless postgresql://) go to the psycopg3 dialect."""
    url = (raw_url or "").strip() or SQLITE_DEFAULT
    scheme, sep, rest = url.partition("://")
    if scheme in ("postgres", "postgresql"):
        return f"postgresql+psycopg{sep}{rest}"
    return url


DATABASE_URL = _normalized_database_url(settings.database_url)
_is_sqlite = DATABASE_URL.startswith("sqlite")

# :memory: needs one shared connection, otherwise each request sees an empty database
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    poolclass=StaticPool if _is_sqlite and ":memory:" in DATABASE_URL else None,
)


def get_db():
    with Session(engine) as session:
        yield session


def init_db() -> None:
    import app.models  # noqa: F401  table registration

    SQLModel.metadata.create_all(engine)


def ping() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        log.warning("database ping failed: %s", e)
        return False


def record(row: SQLModel) -> None:
    """Writes one audit row (ErrorLog, SecurityLog) in its own session; failures are only logged."""
    try:
        with Session(engine) as db:
            db.add(row)
            db.commit()
    except Exception as e:
        log.warning("%s write failed: %s", type(row).__name__, e)
