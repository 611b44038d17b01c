"""Tests for TaskOrchestrator class."""

import os
import threading

import pytest
from PIL import Image

from derivgen.errors import JobFailedError, PersistenceError, TransformError
from derivgen.orchestrator import TaskOrchestrator
from derivgen.subtask_outcome import Subtask, SubtaskOutcome


@pytest.fixture
def active_job(job_store, make_payload, sample_image):
    job_store.submit(make_payload(source=sample_image))
    return job_store.take_next()


class TestRun:
    """Tests for running a job's sub-tasks."""

    def test_success(self, orchestrator, active_job, metadata_store):
        payload = active_job.payload

        result = orchestrator.run(active_job)

        assert result.filename == 'photo1'
        assert result.thumbnail_path == payload.thumbnail_path
        assert result.preview_path == payload.preview_path
        with Image.open(payload.thumbnail_path) as thumb:
            assert thumb.size == (300, 200)
        with Image.open(payload.preview_path) as preview:
            assert preview.size == (1067, 800)
        assert len(metadata_store.records) == 1
        record = metadata_store.records[0]
        assert record.gallery_id == 'g1'
        assert record.author_id == 'cid-alice'
        assert record.author == 'alice'
        assert record.full_size_path == payload.full_size_image_path

    def test_renditions_share_one_decode(self, orchestrator, engine, job_store, make_payload, make_image,
                                         gallery_dir):
        source = make_image(gallery_dir / 'large.jpg', size=(4000, 3000))
        job_store.submit(make_payload(source=source, filename='large'))

        orchestrator.run(job_store.take_next())

        assert engine.cache.misses == 1
        assert engine.cache.hits == 1

    def test_progress_reported_between_subtasks(self, orchestrator, active_job, job_store, mocker):
        spy = mocker.spy(job_store, 'progress')

        orchestrator.run(active_job)

        assert [c.args[1] for c in spy.call_args_list] == [33, 66]
        assert job_store.get(active_job.id).progress == 66

    def test_missing_source(self, orchestrator, job_store, make_payload, metadata_store, gallery_dir):
        job_store.submit(make_payload(source=str(gallery_dir / 'missing.jpg')))
        job = job_store.take_next()

        with pytest.raises(JobFailedError) as exc_info:
            orchestrator.run(job)

        assert str(exc_info.value) == 'thumbnail failed, preview failed'
        assert exc_info.value.reasons == ['thumbnail failed', 'preview failed']
        # The record is written even though both renditions failed.
        assert len(metadata_store.records) == 1

    def test_metadata_failure_keeps_renditions(self, orchestrator, active_job, metadata_store):
        metadata_store.fail_with = 'connection refused'

        with pytest.raises(JobFailedError) as exc_info:
            orchestrator.run(active_job)

        assert str(exc_info.value) == 'database save failed'
        assert os.path.exists(active_job.payload.thumbnail_path)
        assert os.path.exists(active_job.payload.preview_path)

    def test_preview_only_failure(self, engine, metadata_store, job_store, active_job, mocker, logger):
        mocker.patch.object(engine, 'make_preview', side_effect=TransformError('disk full'))
        orchestrator = TaskOrchestrator(engine, metadata_store, job_store, logger=logger)
        try:
            with pytest.raises(JobFailedError) as exc_info:
                orchestrator.run(active_job)
        finally:
            orchestrator.shutdown()

        assert exc_info.value.reasons == ['preview failed']
        assert os.path.exists(active_job.payload.thumbnail_path)
        assert len(metadata_store.records) == 1

    def test_subtasks_run_concurrently(self, active_job, mocker, logger):
        """All three sub-tasks must be in flight at the same time to pass the barrier."""
        barrier = threading.Barrier(3, timeout=5)
        engine = mocker.MagicMock()
        engine.make_thumbnail.side_effect = lambda src, dest: barrier.wait()
        engine.make_preview.side_effect = lambda src, dest: barrier.wait()
        metadata_store = mocker.MagicMock()
        metadata_store.create.side_effect = lambda record: barrier.wait()
        orchestrator = TaskOrchestrator(engine, metadata_store, logger=logger)
        try:
            result = orchestrator.run(active_job)
        finally:
            orchestrator.shutdown()

        assert result.filename == 'photo1'

    def test_progress_error_does_not_fail_job(self, orchestrator, active_job, job_store, mocker):
        mocker.patch.object(job_store, 'progress', side_effect=RuntimeError('store down'))

        result = orchestrator.run(active_job)

        assert result.filename == 'photo1'

    def test_callable(self, orchestrator, active_job):
        assert orchestrator(active_job).filename == 'photo1'


class TestAggregate:
    """Tests for outcome aggregation."""

    def test_all_succeeded(self, orchestrator, make_payload):
        outcomes = [SubtaskOutcome.ok(s) for s in Subtask]

        result = orchestrator.aggregate(make_payload(), outcomes)

        assert result.to_dict()['filename'] == 'photo1'

    def test_reasons_in_fixed_order(self, orchestrator, make_payload):
        outcomes = [
            SubtaskOutcome.failed(Subtask.THUMBNAIL, TransformError('x')),
            SubtaskOutcome.ok(Subtask.PREVIEW),
            SubtaskOutcome.failed(Subtask.METADATA, PersistenceError('y')),
        ]

        with pytest.raises(JobFailedError) as exc_info:
            orchestrator.aggregate(make_payload(), outcomes)

        assert str(exc_info.value) == 'thumbnail failed, database save failed'


class TestExecutor:
    """Tests for the sub-task executor."""

    def test_sized_for_job_concurrency(self, engine, metadata_store, logger):
        orchestrator = TaskOrchestrator(engine, metadata_store, concurrency=4, logger=logger)
        try:
            assert orchestrator.executor._max_workers == 12
        finally:
            orchestrator.shutdown()

    def test_given_executor_is_not_shut_down(self, engine, metadata_store, logger, mocker):
        executor = mocker.MagicMock()
        orchestrator = TaskOrchestrator(engine, metadata_store, executor=executor, logger=logger)

        orchestrator.shutdown()

        executor.shutdown.assert_not_called()
