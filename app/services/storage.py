"""Local disk storage for uploaded study and analysis documents."""
import itertools
import logging
import random
import re
import time
from pathlib import Path

from app.core.config import documents_path

log = logging.getLogger(__name__)

# Relative prefix stored on Study.documents[*].file_location
DOCUMENTS_URL_PREFIX = "documents"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")
_DOT_RUNS = re.compile(r"\.\.+")


def sanitize_filename(filename: str) -> str:
    return _DOT_RUNS.sub(".", _UNSAFE_CHARS.sub("_", filename))


def temp_upload_name(field_name: str, original_name: str) -> str:
    """<field>-<epoch ms>-<random><ext>, unique enough for concurrent uploads."""
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{field_name}-{suffix}{Path(original_name or '').suffix.lower()}"


def write_upload(directory: Path, name: str, content: bytes) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_bytes(content)
    return path


def write_new_file(directory: Path, base: str, ext: str, content: bytes) -> str:
    """Creates <base><ext>, or <base>-<n><ext> when taken; an existing file is never overwritten."""
    directory.mkdir(parents=True, exist_ok=True)
    for n in itertools.count():
        name = f"{base}{ext}" if n == 0 else f"{base}-{n}{ext}"
        try:
            with (directory / name).open("xb") as f:
                f.write(content)
        except FileExistsError:
            continue
        return name


def store_study_document(content: bytes, original_name: str, display_name: str | None = None) -> dict:
    """Writes the file under documents_dir as <sanitized display name><ext>; returns the document entry."""
    display = (display_name or "").strip() or original_name
    ext = Path(original_name).suffix
    base = sanitize_filename(Path(display).stem or f"document_{int(time.time() * 1000)}")
    filename = write_new_file(documents_path(), base, ext, content)
    return {
        "display_name": display,
        "file_location": f"{DOCUMENTS_URL_PREFIX}/{filename}",
    }


def is_local_location(location: object) -> bool:
    return isinstance(location, str) and bool(location) and not location.startswith("http")


def path_for_location(location: str) -> Path:
    # Only the file name is honoured so a stored location cannot escape documents_dir
    return documents_path() / Path(location).name


def delete_document(location: str) -> bool:
    """Best-effort delete of a stored document; remote (http) locations are never touched."""
    if not is_local_location(location):
        return False
    path = path_for_location(location)
    try:
        if path.is_file():
            path.unlink()
            return True
    except OSError as e:
        log.warning("Failed to delete file %s: %s", path, e)
    return False
