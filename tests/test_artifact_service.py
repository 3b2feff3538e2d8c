import threading

import pytest

from resume_pipeline.core.constants import ARTIFACT_MESSAGES
from resume_pipeline.db.capabilities import StorageMode
from resume_pipeline.db.repositories.document_repository import DocumentRepository
from resume_pipeline.models.document_record import ArtifactStatus, DocumentRecord
from resume_pipeline.services.artifact_service import ArtifactService
from resume_pipeline.services.record_service import RecordService
from resume_pipeline.utils.exceptions import NotFoundError

from .conftest import METADATA, PARSED_DOCUMENT, FakeRenderer, ManualWorkerPool

READY = ArtifactStatus.READY.value
PENDING = ArtifactStatus.PENDING.value
FAILED = ArtifactStatus.FAILED.value
GENERATING = ArtifactStatus.GENERATING.value


def _statuses(channel):
    return [
        e.to_dict()["newStatus"] for e in channel.drain() if "newStatus" in e.data
    ]


def _force_status(session_factory, record_id, status):
    db = session_factory()
    try:
        db.query(DocumentRecord).filter(DocumentRecord.id == record_id).update(
            {DocumentRecord.artifact_status: status}, synchronize_session=False
        )
        db.commit()
    finally:
        db.close()


def test_new_record_is_rendered_to_ready(
    record_service, artifact_service, worker_pool, hub, renderer, blob_store, owner_id
):
    channel = hub.subscribe(owner_id)
    record = record_service.create(owner_id, PARSED_DOCUMENT, schema_metadata=METADATA)

    assert artifact_service.get_status(record.id, owner_id).status == PENDING
    assert len(worker_pool.jobs) == 1

    assert worker_pool.run_pending() == [READY]

    view = artifact_service.get_status(record.id, owner_id)
    assert view.status == READY
    assert view.generated_at is not None
    assert blob_store.get(view.artifact_key) == renderer.content
    assert _statuses(channel) == [PENDING, GENERATING, READY]

    document, metadata = renderer.received[0]
    assert document.personal_info.first_name == "Ann"
    assert metadata == METADATA


def test_ready_event_carries_artifact_key(record_service, artifact_service, worker_pool, hub, owner_id):
    record = record_service.create(owner_id, PARSED_DOCUMENT)
    channel = hub.subscribe(owner_id)
    worker_pool.run_pending()

    ready = [e.to_dict() for e in channel.drain() if e.data.get("newStatus") == READY]
    assert len(ready) == 1
    assert ready[0]["recordId"] == record.id
    assert ready[0]["artifactKey"] == artifact_service.get_status(record.id).artifact_key
    assert ready[0]["message"] == ARTIFACT_MESSAGES["ready"]


def test_render_failure_is_isolated_per_record(
    session_factory, blob_store, hub, settings, owner_id
):
    def renderer(document, schema_metadata=None):
        if document.personal_info.first_name == "Bad":
            raise RuntimeError("layout engine exploded")
        return b"%PDF ok"

    pool = ManualWorkerPool().start()
    records = RecordService(session_factory, blob_store, StorageMode.TWO_TIER)
    service = ArtifactService(session_factory, blob_store, records, hub, renderer, pool, settings)
    records.on_payload_persisted(service.request_generation)

    bad_doc = dict(PARSED_DOCUMENT, personalInfo={"firstName": "Bad", "email": "b@x.com"})
    bad = records.create(owner_id, bad_doc)
    good = records.create(owner_id, PARSED_DOCUMENT)
    channel = hub.subscribe(owner_id)

    assert pool.run_pending() == [FAILED, READY]

    failed = records.get_record(owner_id, bad.id)
    assert failed.artifact_status == FAILED
    assert "layout engine exploded" in failed.artifact_error
    assert records.get_record(owner_id, good.id).artifact_status == READY

    failed_events = [e.to_dict() for e in channel.drain() if e.data.get("newStatus") == FAILED]
    # internal error text stays out of client notifications
    assert failed_events[0]["message"] == ARTIFACT_MESSAGES["failed"]
    service.shutdown()


def test_render_timeout_marks_failed(session_factory, blob_store, hub, settings, owner_id):
    slow = FakeRenderer(delay=2.0)
    pool = ManualWorkerPool().start()
    records = RecordService(session_factory, blob_store, StorageMode.TWO_TIER)
    service = ArtifactService(
        session_factory,
        blob_store,
        records,
        hub,
        slow,
        pool,
        settings.model_copy(update={"RENDER_TIMEOUT_SECONDS": 1}),
    )
    records.on_payload_persisted(service.request_generation)
    record = records.create(owner_id, PARSED_DOCUMENT)
    channel = hub.subscribe(owner_id)

    assert pool.run_pending() == [FAILED]

    stored = records.get_record(owner_id, record.id)
    assert stored.artifact_status == FAILED
    assert "RenderTimeoutError" in stored.artifact_error
    events = [e.to_dict() for e in channel.drain() if e.data.get("newStatus") == FAILED]
    assert events[0]["message"] == ARTIFACT_MESSAGES["timeout"]
    service.shutdown()


def test_hung_renders_do_not_starve_other_records(session_factory, blob_store, hub, settings, owner_id):
    release = threading.Event()
    rendered = []

    def renderer(document, schema_metadata=None):
        if document.personal_info.first_name == "Hang":
            release.wait(10)
            return b"%PDF late"
        rendered.append(document.personal_info.first_name)
        return b"%PDF ok"

    pool = ManualWorkerPool().start()
    records = RecordService(session_factory, blob_store, StorageMode.TWO_TIER)
    service = ArtifactService(
        session_factory,
        blob_store,
        records,
        hub,
        renderer,
        pool,
        settings.model_copy(update={"RENDER_TIMEOUT_SECONDS": 1, "ARTIFACT_WORKERS": 2}),
    )
    records.on_payload_persisted(service.request_generation)

    hung_doc = dict(PARSED_DOCUMENT, personalInfo={"firstName": "Hang", "email": "h@x.com"})
    hung = [records.create(owner_id, hung_doc) for _ in range(3)]
    healthy = records.create(owner_id, PARSED_DOCUMENT)

    try:
        assert pool.run_pending() == [FAILED, FAILED, FAILED, READY]
        assert service.abandoned_renders == 3
        assert rendered == ["Ann"]
        assert records.get_record(owner_id, healthy.id).artifact_status == READY
        for record in hung:
            assert records.get_record(owner_id, record.id).artifact_status == FAILED
    finally:
        release.set()
        service.shutdown()


def test_regenerate_from_ready_replaces_artifact(
    record_service, artifact_service, worker_pool, blob_store, renderer, owner_id
):
    record = record_service.create(owner_id, PARSED_DOCUMENT)
    worker_pool.run_pending()
    first_key = artifact_service.get_status(record.id).artifact_key

    result = artifact_service.regenerate(owner_id, record.id)
    assert result.accepted
    assert result.status == PENDING
    assert artifact_service.get_status(record.id).status == PENDING

    assert worker_pool.run_pending() == [READY]
    second_key = artifact_service.get_status(record.id).artifact_key
    assert second_key != first_key
    assert not blob_store.exists(first_key)
    assert blob_store.exists(second_key)
    assert renderer.calls == 2


def test_regenerate_from_failed(record_service, artifact_service, worker_pool, renderer, owner_id):
    renderer.error = RuntimeError("first attempt fails")
    record = record_service.create(owner_id, PARSED_DOCUMENT)
    assert worker_pool.run_pending() == [FAILED]

    renderer.error = None
    assert artifact_service.regenerate(owner_id, record.id).accepted
    assert worker_pool.run_pending() == [READY]
    assert record_service.get_record(owner_id, record.id).artifact_error is None


def test_regenerate_while_generating_is_rejected(
    record_service, artifact_service, worker_pool, session_factory, owner_id
):
    record = record_service.create(owner_id, PARSED_DOCUMENT)
    worker_pool.jobs.clear()
    _force_status(session_factory, record.id, GENERATING)

    result = artifact_service.regenerate(owner_id, record.id)
    assert not result.accepted
    assert result.status == GENERATING
    assert worker_pool.jobs == []


def test_regenerate_while_pending_is_rejected(record_service, artifact_service, worker_pool, owner_id):
    record = record_service.create(owner_id, PARSED_DOCUMENT)
    assert len(worker_pool.jobs) == 1

    result = artifact_service.regenerate(owner_id, record.id)
    assert not result.accepted
    assert result.status == PENDING
    assert len(worker_pool.jobs) == 1


def test_regenerate_unknown_record(artifact_service, owner_id):
    with pytest.raises(NotFoundError):
        artifact_service.regenerate(owner_id, "missing")


def test_concurrent_regenerate_renders_once(
    record_service, artifact_service, worker_pool, hub, renderer, owner_id
):
    record = record_service.create(owner_id, PARSED_DOCUMENT)
    worker_pool.run_pending()
    assert renderer.calls == 1
    channel = hub.subscribe(owner_id)

    barrier = threading.Barrier(8)
    results = []

    def request():
        barrier.wait()
        results.append(artifact_service.regenerate(owner_id, record.id))

    threads = [threading.Thread(target=request) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert [r.accepted for r in results].count(True) == 1
    assert all(r.status == PENDING for r in results)
    assert _statuses(channel) == [PENDING]
    assert len(worker_pool.jobs) == 1

    worker_pool.run_pending()
    assert renderer.calls == 2
    assert artifact_service.get_status(record.id).status == READY


def test_concurrent_workers_claim_once(
    record_service, artifact_service, worker_pool, renderer, owner_id
):
    record = record_service.create(owner_id, PARSED_DOCUMENT)
    worker_pool.jobs.clear()

    barrier = threading.Barrier(6)
    outcomes = []

    def work():
        barrier.wait()
        outcomes.append(artifact_service.run_generation(record.id))

    threads = [threading.Thread(target=work) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert renderer.calls == 1
    assert outcomes.count(READY) == 1
    assert outcomes.count(None) == 5


def test_ready_record_is_not_regenerated_by_stray_job(
    record_service, artifact_service, worker_pool, renderer, owner_id
):
    record = record_service.create(owner_id, PARSED_DOCUMENT)
    worker_pool.run_pending()

    assert artifact_service.run_generation(record.id) is None
    assert renderer.calls == 1
    assert artifact_service.get_status(record.id).status == READY


def test_stale_completion_is_discarded(
    record_service, artifact_service, worker_pool, blob_store, session_factory, owner_id
):
    record = record_service.create(owner_id, PARSED_DOCUMENT)

    # first worker claims attempt 1, then the record is reset and re-claimed
    stale_record, stale_attempt = artifact_service._claim(record.id)
    assert stale_attempt == 1
    _force_status(session_factory, record.id, PENDING)
    assert worker_pool.run_pending() == [READY]

    stale_key = f"{owner_id}/artifacts/{record.id}-stale.pdf"
    blob_store.put(stale_key, b"%PDF stale", "application/pdf")
    assert artifact_service._complete(stale_record, stale_attempt, stale_key) is None

    current = artifact_service.get_status(record.id)
    assert current.status == READY
    assert current.artifact_key != stale_key
    assert blob_store.exists(current.artifact_key)
    assert not blob_store.exists(stale_key)


def test_get_artifact_requires_ready(record_service, artifact_service, worker_pool, renderer, owner_id):
    record = record_service.create(owner_id, PARSED_DOCUMENT)
    with pytest.raises(NotFoundError):
        artifact_service.get_artifact(owner_id, record.id)

    worker_pool.run_pending()
    stored, content = artifact_service.get_artifact(owner_id, record.id)
    assert stored.id == record.id
    assert content == renderer.content


def test_jobs_dropped_when_pool_is_down(record_service, artifact_service, worker_pool, owner_id):
    worker_pool.shutdown()
    record = record_service.create(owner_id, PARSED_DOCUMENT)

    assert worker_pool.jobs == []
    assert artifact_service.get_status(record.id).status == PENDING


def test_failed_transition_does_not_touch_other_records(
    record_service, artifact_service, worker_pool, session_factory, owner_id
):
    first = record_service.create(owner_id, PARSED_DOCUMENT)
    second = record_service.create(owner_id, PARSED_DOCUMENT)
    worker_pool.jobs.clear()

    db = session_factory()
    try:
        won = DocumentRepository(db).compare_and_set(
            first.id, [PENDING], {"artifact_status": GENERATING}
        )
        db.commit()
    finally:
        db.close()

    assert won
    assert artifact_service.get_status(second.id).status == PENDING


def test_payload_update_during_render_discards_in_flight_result(
    record_service, artifact_service, worker_pool, blob_store, owner_id
):
    record = record_service.create(owner_id, PARSED_DOCUMENT)
    worker_pool.jobs.clear()
    in_flight, attempt = artifact_service._claim(record.id)

    record_service.update(owner_id, record.id, dict(PARSED_DOCUMENT, summaryPoints=["Changed"]))
    assert artifact_service.get_status(record.id).status == PENDING

    stale_key = f"{owner_id}/artifacts/{record.id}-{attempt}.pdf"
    blob_store.put(stale_key, b"%PDF old content", "application/pdf")
    assert artifact_service._complete(in_flight, attempt, stale_key) is None
    assert not blob_store.exists(stale_key)

    assert worker_pool.run_pending() == [READY]
    assert artifact_service.get_status(record.id).artifact_key.endswith(f"-{attempt + 1}.pdf")
