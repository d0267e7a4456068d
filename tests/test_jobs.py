"""JobRegistry: state transitions, ownership of outcomes, eviction."""
import asyncio

import pytest

from app.services.jobs import JobNotFound, JobRegistry, JobStatus


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_create_returns_pending_job_with_unique_id(tmp_path):
    reg = JobRegistry()
    a = reg.create(tmp_path / "a.pdf", "a.pdf")
    b = reg.create(tmp_path / "b.pdf", "b.pdf")
    assert a.id != b.id
    assert a.status is JobStatus.PENDING
    assert a.view() == {"status": "pending", "originalName": "a.pdf"}
    assert len(reg) == 2
    assert a.id in reg


def test_get_unknown_raises_job_not_found():
    with pytest.raises(JobNotFound):
        JobRegistry().get("nope")


def test_complete_is_terminal_and_later_fail_is_ignored(tmp_path):
    reg = JobRegistry()
    job = reg.create(tmp_path / "a.pdf", "a.pdf")
    assert reg.complete(job.id, {"questions": []}) is True
    assert reg.fail(job.id, "late error") is False
    view = reg.get(job.id).view()
    assert view["status"] == "completed"
    assert view["data"] == {"questions": []}
    assert "error" not in view


def test_fail_records_message(tmp_path):
    reg = JobRegistry()
    job = reg.create(tmp_path / "a.pdf", "a.pdf")
    assert reg.fail(job.id, "boom") is True
    assert reg.complete(job.id, {"questions": []}) is False
    assert reg.get(job.id).view() == {"status": "failed", "originalName": "a.pdf", "error": "boom"}


def test_outcome_for_unknown_job_is_discarded():
    reg = JobRegistry()
    assert reg.complete("evicted-id", {"questions": []}) is False
    assert reg.fail("evicted-id", "x") is False
    assert len(reg) == 0


def test_evict_older_than_removes_old_jobs_and_source_files(tmp_path):
    clock = FakeClock()
    reg = JobRegistry(clock=clock)
    old_file = tmp_path / "old.pdf"
    old_file.write_bytes(b"%PDF")
    old = reg.create(old_file, "old.pdf")
    reg.complete(old.id, {"questions": []})
    clock.now += 100
    new_file = tmp_path / "new.pdf"
    new_file.write_bytes(b"%PDF")
    new = reg.create(new_file, "new.pdf")

    evicted = reg.evict_older_than(50)

    assert [j.id for j in evicted] == [old.id]
    assert old.id not in reg
    assert new.id in reg
    assert not old_file.exists()
    assert new_file.exists()


def test_evict_includes_pending_jobs(tmp_path):
    clock = FakeClock()
    reg = JobRegistry(clock=clock)
    job = reg.create(tmp_path / "missing.pdf", "missing.pdf")
    clock.now += 10
    assert [j.id for j in reg.evict_older_than(5)] == [job.id]
    # Executor finishing afterwards has nowhere to write
    assert reg.complete(job.id, {"questions": []}) is False
    with pytest.raises(JobNotFound):
        reg.get(job.id)


def test_track_completes_job_from_task_result(tmp_path):
    async def scenario():
        reg = JobRegistry()
        job = reg.create(tmp_path / "a.pdf", "a.pdf")

        async def work():
            await asyncio.sleep(0.01)
            return {"title": "T", "questions": [{"question": "q", "answer": "a"}]}

        task = asyncio.create_task(work())
        reg.track(job.id, task)
        assert reg.running() == 1
        await task
        await asyncio.sleep(0)
        return reg, job.id

    reg, job_id = asyncio.run(scenario())
    job = reg.get(job_id)
    assert job.status is JobStatus.COMPLETED
    assert job.result["title"] == "T"
    assert reg.running() == 0


def test_track_fails_job_when_task_raises(tmp_path):
    async def scenario():
        reg = JobRegistry()
        job = reg.create(tmp_path / "a.pdf", "a.pdf")

        async def work():
            raise RuntimeError("analysis exploded")

        task = asyncio.create_task(work())
        reg.track(job.id, task)
        with pytest.raises(RuntimeError):
            await task
        await asyncio.sleep(0)
        return reg.get(job.id)

    job = asyncio.run(scenario())
    assert job.status is JobStatus.FAILED
    assert job.error == "analysis exploded"


def test_track_fails_job_when_task_cancelled(tmp_path):
    async def scenario():
        reg = JobRegistry()
        job = reg.create(tmp_path / "a.pdf", "a.pdf")
        task = asyncio.create_task(asyncio.sleep(10))
        reg.track(job.id, task)
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)
        return reg.get(job.id)

    job = asyncio.run(scenario())
    assert job.status is JobStatus.FAILED
    assert job.error == "Analysis was cancelled."


def test_concurrent_jobs_are_independent(tmp_path):
    async def scenario():
        reg = JobRegistry()
        ok = reg.create(tmp_path / "ok.pdf", "ok.pdf")
        bad = reg.create(tmp_path / "bad.pdf", "bad.pdf")

        async def succeed():
            await asyncio.sleep(0.02)
            return {"questions": []}

        async def explode():
            await asyncio.sleep(0.01)
            raise ValueError("bad pdf")

        t1 = asyncio.create_task(succeed())
        t2 = asyncio.create_task(explode())
        reg.track(ok.id, t1)
        reg.track(bad.id, t2)
        await asyncio.gather(t1, t2, return_exceptions=True)
        await asyncio.sleep(0)
        return reg.get(ok.id), reg.get(bad.id)

    ok, bad = asyncio.run(scenario())
    assert ok.status is JobStatus.COMPLETED
    assert bad.status is JobStatus.FAILED
    assert bad.error == "bad pdf"
