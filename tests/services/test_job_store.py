import threading

import pytest

from tubefetch.database import create_sqlite_engine
from tubefetch.models.job import JobStatus, MediaFormat, Quality
from tubefetch.services.job_store import JobStore, MemoryJobStore, SqlJobStore


@pytest.fixture(params=["memory", "sqlite"])
def job_store(request, tmp_path) -> JobStore:
    if request.param == "sqlite":
        engine = create_sqlite_engine(tmp_path / "jobs.db")
        yield SqlJobStore(engine)
        engine.dispose()
    else:
        yield MemoryJobStore()


def _create(store: JobStore, url: str = "https://example.com/v"):
    return store.create(url, MediaFormat.MP4, Quality.P720)


class TestCreate:
    def test_defaults(self, job_store):
        job = _create(job_store)
        assert job.id
        assert job.url == "https://example.com/v"
        assert job.format == MediaFormat.MP4
        assert job.quality == Quality.P720
        assert job.status == JobStatus.PENDING
        assert job.progress == 0
        assert job.speed is None
        assert job.total_size is None
        assert job.file_path is None
        assert job.error_message is None

    def test_ids_are_unique(self, job_store):
        ids = {_create(job_store).id for _ in range(20)}
        assert len(ids) == 20


class TestGet:
    def test_roundtrip(self, job_store):
        job = _create(job_store)
        fetched = job_store.get(job.id)
        assert fetched is not None
        assert fetched.id == job.id
        assert fetched.status == JobStatus.PENDING

    def test_unknown_returns_none(self, job_store):
        assert job_store.get("missing") is None

    def test_returns_snapshot(self, job_store):
        job = _create(job_store)
        snapshot = job_store.get(job.id)
        snapshot.progress = 77
        assert job_store.get(job.id).progress == 0


class TestUpdate:
    def test_merges_fields_and_bumps_updated_at(self, job_store):
        job = _create(job_store)
        updated = job_store.update(job.id, {"status": JobStatus.PROCESSING, "progress": 12})
        assert updated is not None
        assert updated.status == JobStatus.PROCESSING
        assert updated.progress == 12
        assert updated.url == job.url
        assert updated.updated_at >= updated.created_at

    def test_unknown_returns_none(self, job_store):
        assert job_store.update("missing", {"progress": 5}) is None

    def test_when_guard_blocks_other_statuses(self, job_store):
        job = _create(job_store)
        job_store.update(job.id, {"status": JobStatus.COMPLETED, "progress": 100})
        result = job_store.update(job.id, {"progress": 50}, when={JobStatus.PROCESSING})
        assert result is None
        assert job_store.get(job.id).progress == 100

    def test_when_guard_allows_matching_status(self, job_store):
        job = _create(job_store)
        result = job_store.update(
            job.id, {"status": JobStatus.PROCESSING}, when={JobStatus.PENDING}
        )
        assert result is not None
        assert result.status == JobStatus.PROCESSING

    def test_immutable_fields_rejected(self, job_store):
        job = _create(job_store)
        with pytest.raises(ValueError, match="Immutable"):
            job_store.update(job.id, {"url": "https://other.example/v"})


class TestDelete:
    def test_delete_existing(self, job_store):
        job = _create(job_store)
        assert job_store.delete(job.id) is True
        assert job_store.get(job.id) is None

    def test_delete_unknown(self, job_store):
        assert job_store.delete("missing") is False

    def test_update_after_delete_does_not_resurrect(self, job_store):
        job = _create(job_store)
        job_store.delete(job.id)
        assert job_store.update(job.id, {"progress": 40}) is None
        assert job_store.get(job.id) is None


class TestList:
    def test_newest_first(self, job_store):
        first = _create(job_store, "https://example.com/1")
        second = _create(job_store, "https://example.com/2")
        third = _create(job_store, "https://example.com/3")
        assert [j.id for j in job_store.list_jobs()] == [third.id, second.id, first.id]

    def test_filter_by_status(self, job_store):
        a = _create(job_store)
        b = _create(job_store)
        job_store.update(b.id, {"status": JobStatus.ERROR, "error_message": "boom"})
        assert [j.id for j in job_store.list_jobs(JobStatus.ERROR)] == [b.id]
        assert [j.id for j in job_store.list_jobs(JobStatus.PENDING)] == [a.id]

    def test_empty(self, job_store):
        assert job_store.list_jobs() == []


class TestConcurrentUpdates:
    def test_disjoint_fields_survive_interleaved_writers(self, job_store):
        job = _create(job_store)

        def write(field: str) -> None:
            for i in range(100):
                job_store.update(job.id, {field: f"{field}-{i}"})

        threads = [threading.Thread(target=write, args=(f,)) for f in ("speed", "eta")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        final = job_store.get(job.id)
        assert final.speed == "speed-99"
        assert final.eta == "eta-99"
