import asyncio
import json
import logging
import re
from pathlib import Path

log = logging.getLogger(__name__)

# First "{" to last "}": the script may print warnings around its JSON answer
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class ChatError(Exception):
    def __init__(self, message: str, detail: str | None = None, raw: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.raw = raw


async def chat_with_paper(
    prompt: str,
    thesis_text: str,
    chat_history: list,
    *,
    script_path: str | Path,
    python: str = "python",
) -> dict:
    """Asks the chat script about one study; returns the JSON object it prints."""
    script = Path(script_path)
    if not script.is_file():
        log.error("Chatbot script not found at: %s", script)
        raise ChatError("Chatbot script not found on the server.")
    try:
        proc = await asyncio.create_subprocess_exec(
            python,
            str(script),
            "--prompt",
            prompt,
            "--thesis_text",
            thesis_text or "",
            "--chat_history",
            json.dumps(chat_history or []),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ChatError("An error occurred in the chatbot script.", detail=str(e)) from e

    stdout, stderr = await proc.communicate()
    out_text = stdout.decode("utf-8", errors="replace")
    err_text = stderr.decode("utf-8", errors="replace")
    if err_text:
        log.warning("chat script stderr: %s", err_text.strip()[-2000:])
    if proc.returncode != 0:
        log.error("Chat script exited with code %s", proc.returncode)
        raise ChatError("An error occurred in the chatbot script.", detail=err_text)

    match = _JSON_OBJECT.search(out_text)
    if not match:
        raise ChatError("Failed to parse the response from the chatbot script.", raw=out_text)
    try:
        data = json.loads(match.group(0))
    except ValueError:
        log.error("Failed to parse JSON from chat script. Raw response was: %s", out_text[-2000:])
        raise ChatError("Failed to parse the response from the chatbot script.", raw=out_text)
    if not isinstance(data, dict):
        raise ChatError("Failed to parse the response from the chatbot script.", raw=out_text)
    return data
