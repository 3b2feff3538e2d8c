import json
import os
import tempfile
import threading
import time

# Log files go to a scratch directory; must be set before the logger is imported
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="resume-pipeline-logs-"))

import pytest  # noqa: E402

from resume_pipeline.core.config import Settings  # noqa: E402
from resume_pipeline.db.base import Base  # noqa: E402
from resume_pipeline.db.capabilities import StorageMode  # noqa: E402
from resume_pipeline.db.session import build_engine, build_session_factory  # noqa: E402
from resume_pipeline import models  # noqa: E402,F401
from resume_pipeline.services.artifact_service import ArtifactService  # noqa: E402
from resume_pipeline.services.extraction_service import ExtractionService  # noqa: E402
from resume_pipeline.services.metering_service import MeteringService  # noqa: E402
from resume_pipeline.services.model_client import ModelResponse  # noqa: E402
from resume_pipeline.services.notification_hub import NotificationHub  # noqa: E402
from resume_pipeline.services.pipeline import DocumentPipeline  # noqa: E402
from resume_pipeline.services.record_service import RecordService  # noqa: E402
from resume_pipeline.storage.blob_store import LocalBlobStore  # noqa: E402
from resume_pipeline.utils.exceptions import ModelServiceError  # noqa: E402


RAW_TEXT = (
    "Ann Lee\nann@example.com | Berlin, Germany\n\n"
    "Backend engineer with eight years of experience building data services.\n\n"
    "Experience\nAcme GmbH, Senior Engineer, 2019 - present\n"
    "- Built the billing pipeline\n- Led a team of four\n"
)

PARSED_DOCUMENT = {
    "personalInfo": {
        "firstName": "Ann",
        "lastName": "Lee",
        "email": "ann@example.com",
        "location": {"city": "Berlin", "country": "Germany"},
    },
    "summaryPoints": ["Backend engineer with eight years of experience."],
    "experience": [
        {
            "position": "Senior Engineer",
            "company": "Acme GmbH",
            "duration": {"start": {"month": "Jan", "year": 2019}, "end": {"month": "", "year": None}},
            "responsibilities": ["Built the billing pipeline", "Led a team of four"],
        }
    ],
    "education": [],
    "internships": [],
    "projects": [],
    "technologies": [{"category": "Programming Languages", "items": ["Python", "Go"]}],
}

METADATA = {
    "sectionOrder": ["experience", "summary", "technologies"],
    "sectionTitles": {"experience": "Work History"},
}


class FakeModelClient:
    """Returns queued responses in order; a queued exception is raised instead"""

    def __init__(self, responses=None, tokens=120):
        self.responses = list(responses or [])
        self.tokens = tokens
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def call_model(self, messages, temperature=0.1, max_tokens=4000):
        self.calls.append(messages)
        if not self.responses:
            raise ModelServiceError("No response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            response = json.dumps(response)
        return ModelResponse(content=response, total_tokens=self.tokens)


class FakeRenderer:
    def __init__(self, content=b"%PDF-1.4 fake", delay=0.0, error=None):
        self.content = content
        self.delay = delay
        self.error = error
        self.calls = 0
        self.received = []
        self._lock = threading.Lock()

    def __call__(self, document, schema_metadata=None):
        with self._lock:
            self.calls += 1
            self.received.append((document, schema_metadata))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.content


class ManualWorkerPool:
    """Worker pool stand-in that holds jobs until the test runs them"""

    def __init__(self):
        self.jobs = []
        self.running = False

    def start(self):
        self.running = True
        return self

    def submit(self, fn, *args):
        if not self.running:
            return False
        self.jobs.append((fn, args))
        return True

    def run_pending(self):
        results = []
        while self.jobs:
            fn, args = self.jobs.pop(0)
            results.append(fn(*args))
        return results

    def shutdown(self, wait=True):
        self.running = False


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        BLOB_STORAGE_PATH=str(tmp_path / "blobs"),
        MIN_INPUT_CHARS=50,
        RENDER_TIMEOUT_SECONDS=5,
        ARTIFACT_WORKERS=2,
        SSE_HEARTBEAT_SECONDS=1,
    )


@pytest.fixture
def engine(settings):
    engine = build_engine(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def blob_store(settings):
    return LocalBlobStore(settings.BLOB_STORAGE_PATH)


@pytest.fixture
def model_client():
    return FakeModelClient()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def hub():
    hub = NotificationHub().init()
    yield hub
    hub.shutdown()


@pytest.fixture
def worker_pool():
    return ManualWorkerPool().start()


@pytest.fixture
def record_service(session_factory, blob_store):
    return RecordService(session_factory, blob_store, StorageMode.TWO_TIER)


@pytest.fixture
def artifact_service(session_factory, blob_store, record_service, hub, renderer, worker_pool, settings):
    service = ArtifactService(
        session_factory, blob_store, record_service, hub, renderer, worker_pool, settings
    )
    record_service.on_payload_persisted(service.request_generation)
    yield service
    service.shutdown()


@pytest.fixture
def extraction_service(model_client, session_factory, settings):
    return ExtractionService(model_client, MeteringService(session_factory), settings)


@pytest.fixture
def pipeline(settings, engine, blob_store, model_client, renderer, worker_pool, session_factory):
    """Pipeline over a sqlite file, local blobs, the fake model and manual jobs"""
    hub = NotificationHub()
    records = RecordService(session_factory, blob_store, StorageMode.TWO_TIER)
    artifacts = ArtifactService(
        session_factory, blob_store, records, hub, renderer, worker_pool, settings
    )
    extraction = ExtractionService(model_client, MeteringService(session_factory), settings)
    pipeline = DocumentPipeline(extraction, records, artifacts, hub, worker_pool).start()
    yield pipeline
    pipeline.shutdown()


@pytest.fixture
def owner_id():
    return "owner-1"
