from .config import resolve_path, settings
from .database import engine, get_db, init_db

__all__ = ["engine", "get_db", "init_db", "resolve_path", "settings"]
