"""Chat with a paper through a fake chat program."""
import uuid

from app.core.config import logs_path
from app.services.activity_log import CHAT_HISTORY_FILE

CHAT = "/studies/chat-with-paper"


def _study(client, headers) -> int:
    r = client.post(
        "/studies",
        headers=headers,
        data={"title": f"Chat {uuid.uuid4().hex[:6]}", "abstract": "Plants in orbit", "brief_description": "B"},
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


def test_chat_returns_program_json_and_logs_transcript(client, make_user, fake_chat):
    user = make_user()
    study_id = _study(client, user["headers"])
    history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]

    r = client.post(CHAT, headers=user["headers"], json={"prompt": "What?", "studyId": study_id, "chatHistory": history})
    assert r.status_code == 200, r.text
    assert r.json() == {"response": "About: Plants in orbit", "turns": 2}

    transcript = (logs_path() / CHAT_HISTORY_FILE).read_text(encoding="utf-8")
    assert f"--- User: {user['email']} | Study ID: {study_id} |" in transcript


def test_chat_requires_prompt_and_study(client, auth_headers):
    r = client.post(CHAT, headers=auth_headers, json={"prompt": "  "})
    assert r.status_code == 400


def test_chat_unknown_study(client, auth_headers, fake_chat):
    r = client.post(CHAT, headers=auth_headers, json={"prompt": "Q", "studyId": 99999999})
    assert r.status_code == 404


def test_chat_program_failure_is_500(client, auth_headers, fake_chat):
    study_id = _study(client, auth_headers)
    r = client.post(CHAT, headers=auth_headers, json={"prompt": "crash", "studyId": study_id})
    assert r.status_code == 500
    body = r.json()
    assert body["message"] == "An error occurred in the chatbot script."
    assert "model unavailable" in body["error"]


def test_chat_unparseable_output_is_500(client, auth_headers, fake_chat):
    study_id = _study(client, auth_headers)
    r = client.post(CHAT, headers=auth_headers, json={"prompt": "garbage", "studyId": study_id})
    assert r.status_code == 500
    body = r.json()
    assert body["message"] == "Failed to parse the response from the chatbot script."
    assert "no json here" in body["rawResponse"]
