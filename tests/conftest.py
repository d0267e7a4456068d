"""Pytest fixtures: test client, in-memory DB, temp storage dirs, fake external programs."""
import os
import sys
import tempfile
import textwrap
import time
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Must be set before app is imported
_TMP = Path(tempfile.mkdtemp(prefix="r2c-tests-"))
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DOCUMENTS_DIR", str(_TMP / "documents"))
os.environ.setdefault("ANALYSIS_UPLOAD_DIR", str(_TMP / "analysis"))
os.environ.setdefault("LOGS_DIR", str(_TMP / "logs"))
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")
os.environ.setdefault("ANALYSIS_PYTHON", sys.executable)
# High limits so every test can sign up and log in
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("RATE_LIMIT_SIGNUP_PER_MINUTE", "1000")

from app.core.config import settings
from app.main import app

# Behaviour is chosen by the first line of the uploaded document
FAKE_ANALYZER = textwrap.dedent(
    '''
    import argparse
    import json
    import os
    import sys
    import time

    parser = argparse.ArgumentParser()
    parser.add_argument("document")
    parser.add_argument("--output_dir", required=True)
    args = parser.parse_args()

    with open(args.document, encoding="utf-8", errors="replace") as f:
        first = (f.readline() or "").strip()

    stem = os.path.splitext(os.path.basename(args.document))[0]
    result_path = os.path.join(args.output_dir, stem + "_qna_data_batched.json")

    if first.startswith("SLOW"):
        time.sleep(1.5)
    if first.startswith("FAIL"):
        sys.stderr.write("could not read pdf\\n")
        sys.exit(3)
    if first.startswith("NORESULT"):
        sys.exit(0)
    if first.startswith("BADJSON"):
        with open(result_path, "w") as f:
            f.write("{not json")
        sys.exit(0)

    processed = stem + "_processed.txt"
    with open(os.path.join(args.output_dir, processed), "w") as f:
        f.write("extracted text")
    payload = {
        "extracted_metadata": {
            "title": "Title " + first,
            "abstract": "An abstract",
            "brief_description": "Short",
            "genres": ["Biology", "AI"],
        },
        "answer_batches": {
            "batch_2": [{"question": "Q2a", "answer": "A2a"}, {"question": "Q2b", "answer": "A2b"}],
            "batch_1": [{"question": "Q1a", "answer": "A1a"}, {"question": "", "answer": "dropped"}],
        },
        "processed_text_file_source": processed,
    }
    with open(result_path, "w") as f:
        json.dump(payload, f)
    '''
)

FAKE_CHAT = textwrap.dedent(
    '''
    import argparse
    import json
    import sys

    parser = argparse.ArgumentParser()
    parser.add_argument("--prompt")
    parser.add_argument("--thesis_text")
    parser.add_argument("--chat_history")
    args = parser.parse_args()

    if args.prompt == "crash":
        sys.stderr.write("model unavailable")
        sys.exit(1)
    if args.prompt == "garbage":
        print("no json here")
        sys.exit(0)
    history = json.loads(args.chat_history)
    print("warming up model...")
    print(json.dumps({"response": "About: " + args.thesis_text, "turns": len(history)}))
    '''
)


@pytest.fixture(scope="function")
def client():
    """TestClient as a context manager so the lifespan (registry + janitor) runs."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def analyzer_script(tmp_path) -> Path:
    script = tmp_path / "fake_analyzer.py"
    script.write_text(FAKE_ANALYZER, encoding="utf-8")
    return script


@pytest.fixture
def fake_analyzer(analyzer_script, monkeypatch) -> Path:
    """Points the analysis endpoint at the fake program."""
    script = analyzer_script
    monkeypatch.setattr(settings, "analysis_script_path", str(script))
    return script


@pytest.fixture
def fake_chat(tmp_path, monkeypatch) -> Path:
    script = tmp_path / "fake_chat.py"
    script.write_text(FAKE_CHAT, encoding="utf-8")
    monkeypatch.setattr(settings, "chat_script_path", str(script))
    return script


def _signup_and_login(c: TestClient, role: str = "researcher") -> dict:
    email = f"user-{uuid.uuid4().hex[:10]}@example.com"
    r = c.post(
        "/auth/signup",
        json={"displayName": "Test User", "email": email, "password": "secret123", "role": role},
    )
    assert r.status_code == 201, r.text
    r = c.post("/auth/login", json={"email": email, "password": "secret123"})
    assert r.status_code == 200, f"Login failed: {r.status_code} {r.text}"
    body = r.json()
    return {"headers": {"Authorization": f"Bearer {body['access_token']}"}, "uid": body["uid"], "email": email}


@pytest.fixture
def make_user(client):
    """Registers a fresh user; returns {headers, uid, email}."""
    return lambda role="researcher": _signup_and_login(client, role)


@pytest.fixture
def auth_headers(make_user) -> dict:
    return make_user()["headers"]


@pytest.fixture
def other_headers(make_user) -> dict:
    return make_user()["headers"]


@pytest.fixture
def admin_headers() -> dict:
    return {"X-Admin-Secret": "test-admin-secret"}


@pytest.fixture
def wait_for_terminal(client):
    """Polls the status endpoint until the job leaves pending (or the timeout passes)."""

    def _wait(job_id: str, headers: dict, timeout: float = 15.0) -> dict:
        deadline = time.monotonic() + timeout
        while True:
            r = client.get(f"/studies/analysis-status/{job_id}", headers=headers)
            assert r.status_code == 200, r.text
            body = r.json()
            if body["status"] != "pending" or time.monotonic() > deadline:
                return body
            time.sleep(0.05)

    return _wait
