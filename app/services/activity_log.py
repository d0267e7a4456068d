"""Plain-text activity logs: study click counters and chat transcripts."""
import json
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path

from app.core.config import logs_path

log = logging.getLogger(__name__)

STUDY_CLICKS_FILE = "study_clicks.log"
CHAT_HISTORY_FILE = "chat_history.log"

_clicks_lock = threading.Lock()
_COUNT_RE = re.compile(r"Clicks: (\d+)")


def _log_file(name: str) -> Path:
    d = logs_path()
    d.mkdir(parents=True, exist_ok=True)
    return d / name


def log_study_click(study_id: int | str, title: str) -> None:
    """Increments the per-study click line, adding it on first view."""
    identifier = f"Study: {title} (ID: {study_id})"
    with _clicks_lock:
        try:
            path = _log_file(STUDY_CLICKS_FILE)
            lines = []
            if path.is_file():
                lines = [ln for ln in path.read_text(encoding="utf-8").splitlines() if ln.strip()]
            found = False
            for i, line in enumerate(lines):
                if line.startswith(identifier):
                    m = _COUNT_RE.search(line)
                    count = int(m.group(1)) if m else 0
                    lines[i] = f"{identifier} - Clicks: {count + 1}"
                    found = True
                    break
            if not found:
                lines.append(f"{identifier} - Clicks: 1")
            path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as e:
            log.error("Failed to log study click: %s", e)


def read_study_clicks() -> dict[str, int]:
    path = logs_path() / STUDY_CLICKS_FILE
    if not path.is_file():
        return {}
    counts = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        m = _COUNT_RE.search(line)
        if m:
            counts[line.rsplit(" - Clicks:", 1)[0]] = int(m.group(1))
    return counts


def log_chat_history(user_email: str | None, study_id: int | str, chat_history: list) -> None:
    if not user_email:
        return
    try:
        header = (
            f"--- User: {user_email} | Study ID: {study_id} | "
            f"Timestamp: {datetime.now(timezone.utc).isoformat()} ---"
        )
        body = json.dumps(chat_history, indent=2, ensure_ascii=False)
        with _log_file(CHAT_HISTORY_FILE).open("a", encoding="utf-8") as f:
            f.write(f"{header}\n{body}\n\n")
    except (OSError, TypeError, ValueError) as e:
        log.error("Failed to log chat history: %s", e)
