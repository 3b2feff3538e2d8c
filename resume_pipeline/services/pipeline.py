"""
Operations exposed to callers, wired from the individual components.

``DocumentPipeline.build`` assembles a production graph from settings;
tests construct the components directly and pass them in.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ..core.config import Settings, get_settings
from ..core.logger import logger
from ..db.base import Base
from ..db.capabilities import StorageMode, probe_storage_mode
from ..db.session import build_engine, build_session_factory
from ..schemas.document import StructuredDocument
from ..storage.blob_store import BlobStore, LocalBlobStore
from .artifact_service import ArtifactService, ArtifactStatusView, RegenerateResult, Renderer
from .extraction_service import ExtractionService
from .metering_service import MeteringService
from .model_client import ModelClient
from .notification_hub import NotificationChannel, NotificationHub
from .record_service import RecordService, StoredDocument
from .renderer import render_document_pdf
from .worker_pool import ArtifactWorkerPool


@dataclass
class SubmitResult:
    record: Any
    document: StructuredDocument
    warnings: List[str] = field(default_factory=list)


class DocumentPipeline:
    def __init__(
        self,
        extraction: ExtractionService,
        records: RecordService,
        artifacts: ArtifactService,
        hub: NotificationHub,
        worker_pool: ArtifactWorkerPool,
    ):
        self.extraction = extraction
        self.records = records
        self.artifacts = artifacts
        self.hub = hub
        self.worker_pool = worker_pool
        records.on_payload_persisted(artifacts.request_generation)

    @classmethod
    def build(
        cls,
        settings: Optional[Settings] = None,
        engine: Optional[Engine] = None,
        blob_store: Optional[BlobStore] = None,
        model_client: Optional[ModelClient] = None,
        renderer: Optional[Renderer] = None,
    ) -> "DocumentPipeline":
        settings = settings or get_settings()
        engine = engine or build_engine(settings.DATABASE_URL)
        session_factory: sessionmaker = build_session_factory(engine)

        mode = probe_storage_mode(engine)
        if mode == StorageMode.TWO_TIER:
            Base.metadata.create_all(bind=engine)
        else:
            Base.metadata.create_all(bind=engine, tables=[Base.metadata.tables["token_usage"]])

        blob_store = blob_store or LocalBlobStore(settings.BLOB_STORAGE_PATH)
        hub = NotificationHub()
        worker_pool = ArtifactWorkerPool(max_workers=settings.ARTIFACT_WORKERS)
        records = RecordService(session_factory, blob_store, mode)
        artifacts = ArtifactService(
            session_factory,
            blob_store,
            records,
            hub,
            renderer or render_document_pdf,
            worker_pool,
            settings,
        )
        extraction = ExtractionService(
            model_client or ModelClient(settings),
            MeteringService(session_factory),
            settings,
        )
        logger.info(f"Document pipeline assembled (storage mode: {mode.value})")
        return cls(extraction, records, artifacts, hub, worker_pool)

    # lifecycle
    def start(self) -> "DocumentPipeline":
        self.hub.init()
        self.worker_pool.start()
        return self

    def shutdown(self) -> None:
        self.worker_pool.shutdown(wait=True)
        self.artifacts.shutdown()
        self.hub.shutdown()

    # operations
    def submit(
        self,
        raw_text: str,
        owner_id: str,
        source_bytes: Optional[bytes] = None,
        source_filename: Optional[str] = None,
        source_content_type: str = "application/octet-stream",
        display_name: Optional[str] = None,
    ) -> SubmitResult:
        """Extract, validate and persist; rendering happens in the background"""
        document = self.extraction.extract(raw_text, owner_id)
        metadata = self.extraction.extract_schema_metadata(raw_text, owner_id)
        record = self.records.create(
            owner_id,
            document,
            source_bytes=source_bytes,
            source_filename=source_filename,
            source_content_type=source_content_type,
            display_name=display_name,
            schema_metadata=metadata.metadata,
        )
        return SubmitResult(record=record, document=document, warnings=metadata.warnings)

    def save_parsed(
        self,
        owner_id: str,
        document: Any,
        source_bytes: Optional[bytes] = None,
        source_filename: Optional[str] = None,
        source_content_type: str = "application/octet-stream",
        display_name: Optional[str] = None,
    ) -> StoredDocument:
        record = self.records.create(
            owner_id,
            document,
            source_bytes=source_bytes,
            source_filename=source_filename,
            source_content_type=source_content_type,
            display_name=display_name,
        )
        return self.records.read(owner_id, record.id)

    def read(self, owner_id: str, record_id: str) -> StoredDocument:
        return self.records.read(owner_id, record_id)

    def list_documents(self, owner_id: str) -> List[Any]:
        return self.records.list_records(owner_id)

    def get_primary(self, owner_id: str) -> StoredDocument:
        return self.records.get_primary(owner_id)

    def update(self, owner_id: str, record_id: str, document: Any, display_name: Optional[str] = None):
        self.records.update(owner_id, record_id, document, display_name)
        # re-read: the payload listener has moved the artifact back to pending
        return self.records.get_record(owner_id, record_id)

    def set_primary(self, owner_id: str, record_id: str):
        return self.records.set_primary(owner_id, record_id)

    def delete(self, owner_id: str, record_id: str) -> None:
        self.records.delete(owner_id, record_id)

    def get_status(self, record_id: str, owner_id: Optional[str] = None) -> ArtifactStatusView:
        return self.artifacts.get_status(record_id, owner_id)

    def regenerate(self, owner_id: str, record_id: str) -> RegenerateResult:
        return self.artifacts.regenerate(owner_id, record_id)

    def get_artifact(self, owner_id: str, record_id: str):
        return self.artifacts.get_artifact(owner_id, record_id)

    def subscribe(self, owner_id: str) -> NotificationChannel:
        return self.hub.subscribe(owner_id)

    def unsubscribe(self, owner_id: str, channel: NotificationChannel) -> None:
        self.hub.unsubscribe(owner_id, channel)
