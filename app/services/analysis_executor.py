"""
Runs the external Q&A extraction program on one uploaded document.

Contract with the program: it gets the document path and --output_dir, and on
success writes <document stem>_qna_data_batched.json into that directory:

    {
      "extracted_metadata": {"title", "abstract", "brief_description", "genres"},
      "answer_batches": {"<batch key>": [{"question", "answer"}, ...], ...},
      "processed_text_file_source": "<optional intermediate file>"
    }
"""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

RESULT_SUFFIX = "_qna_data_batched.json"
METADATA_FIELDS = ("title", "abstract", "brief_description")


class AnalysisError(Exception):
    """The analysis program could not produce a usable result."""


def result_file_for(document_path: str | Path, output_dir: str | Path) -> Path:
    return Path(output_dir) / f"{Path(document_path).stem}{RESULT_SUFFIX}"


async def run_analysis(
    document_path: str | Path,
    *,
    script_path: str | Path,
    python: str = "python",
    output_dir: str | Path | None = None,
) -> dict[str, Any]:
    """Starts the program, waits for it to exit and returns the normalized payload."""
    document_path = Path(document_path)
    out_dir = Path(output_dir) if output_dir else document_path.parent
    script = Path(script_path)
    if not script.is_file():
        raise AnalysisError(f"Failed to start analysis process: script not found at {script}")
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        proc = await asyncio.create_subprocess_exec(
            python,
            str(script),
            str(document_path),
            "--output_dir",
            str(out_dir),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise AnalysisError(f"Failed to start analysis process: {e}") from e

    stdout, stderr = await proc.communicate()
    err_text = stderr.decode("utf-8", errors="replace").strip()
    if stdout:
        log.debug("analysis stdout for %s: %s", document_path.name, stdout.decode("utf-8", errors="replace")[-2000:])
    if proc.returncode != 0:
        log.error("analysis process exited with code %s for %s: %s", proc.returncode, document_path.name, err_text)
        raise AnalysisError(
            f"Analysis process exited with code {proc.returncode}: {err_text or 'no error output'}"
        )

    result_file = result_file_for(document_path, out_dir)
    if not result_file.is_file():
        detail = f" stderr: {err_text}" if err_text else ""
        raise AnalysisError(f"Analysis finished but result file {result_file.name} was not found.{detail}")

    try:
        raw = json.loads(result_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        _unlink(result_file)
        raise AnalysisError(f"Could not parse analysis result {result_file.name}: {e}") from e

    try:
        payload = normalize_result(raw)
    finally:
        _unlink(result_file)
        if isinstance(raw, dict) and raw.get("processed_text_file_source"):
            artifact = Path(str(raw["processed_text_file_source"]))
            _unlink(artifact if artifact.is_absolute() else out_dir / artifact)
    return payload


def normalize_result(raw: Any) -> dict[str, Any]:
    """Flattens the batched program output into {title, abstract, brief_description, genres, questions}."""
    if not isinstance(raw, dict):
        raise AnalysisError("Analysis result is not a JSON object.")
    meta = raw.get("extracted_metadata")
    batches = raw.get("answer_batches")
    if not isinstance(meta, dict):
        raise AnalysisError("Analysis result has no extracted_metadata.")
    if not isinstance(batches, dict):
        raise AnalysisError("Analysis result has no answer_batches.")

    payload: dict[str, Any] = {name: str(meta.get(name) or "").strip() for name in METADATA_FIELDS}
    genres = meta.get("genres") or []
    if isinstance(genres, str):
        genres = [genres]
    payload["genres"] = [str(g).strip() for g in genres if str(g).strip()]

    questions = []
    # Batch order is the order the program wrote them in
    for items in batches.values():
        if not isinstance(items, list):
            continue
        for item in items:
            if not isinstance(item, dict):
                continue
            q = str(item.get("question") or "").strip()
            a = str(item.get("answer") or "").strip()
            if q and a:
                questions.append({"question": q, "answer": a})
    payload["questions"] = questions
    return payload


def _unlink(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        log.warning("could not delete analysis artifact %s: %s", path, e)
