"""
Artifact generation state machine.

    pending --claim--> generating --render ok--> ready
                                  --error/timeout--> failed
    ready | failed --regenerate--> pending

Every transition is a conditional UPDATE on ``artifact_status`` (and, for
completions, ``artifact_attempt``), so at most one worker can own a record's
generation even when jobs are enqueued twice. Failures are recorded per
record and never retried automatically.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from ..core.config import Settings, get_settings
from ..core.constants import (
    ARTIFACT_ERROR_MAX_LENGTH,
    ARTIFACT_KEY_TEMPLATE,
    ARTIFACT_MESSAGES,
)
from ..core.logger import logger
from ..db.repositories.document_repository import DocumentRepository
from ..models.document_record import ArtifactStatus
from ..schemas.document import StructuredDocument
from ..schemas.events import status_changed_event
from ..storage.blob_store import BlobStore
from ..utils.decorators import log_execution_time
from ..utils.exceptions import NotFoundError, RenderTimeoutError, StorageError
from .notification_hub import NotificationHub
from .record_service import RecordService
from .worker_pool import ArtifactWorkerPool

Renderer = Callable[[StructuredDocument, Optional[Dict[str, Any]]], bytes]

ALL_STATUSES = [s.value for s in ArtifactStatus]


@dataclass
class ArtifactStatusView:
    record_id: str
    status: str
    artifact_key: Optional[str] = None
    generated_at: Optional[datetime] = None


@dataclass
class RegenerateResult:
    record_id: str
    status: str
    accepted: bool
    message: str


class ArtifactService:
    def __init__(
        self,
        session_factory: sessionmaker,
        blob_store: BlobStore,
        record_service: RecordService,
        hub: NotificationHub,
        renderer: Renderer,
        worker_pool: ArtifactWorkerPool,
        settings: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.blob_store = blob_store
        self.record_service = record_service
        self.hub = hub
        self.renderer = renderer
        self.worker_pool = worker_pool
        self.settings = settings or get_settings()
        self.model = record_service.model
        self._abandoned: List[threading.Thread] = []
        self._abandoned_lock = threading.Lock()

    # ------------------------------------------------------------------
    # caller-facing operations
    # ------------------------------------------------------------------
    def get_status(self, record_id: str, owner_id: Optional[str] = None) -> ArtifactStatusView:
        if owner_id is not None:
            record = self.record_service.get_record(owner_id, record_id)
        else:
            record = self.record_service.get_record_by_id(record_id)
            if record is None:
                raise NotFoundError(f"Document {record_id} not found")
        return ArtifactStatusView(
            record_id=record.id,
            status=record.artifact_status,
            artifact_key=record.artifact_key,
            generated_at=record.artifact_generated_at,
        )

    def regenerate(self, owner_id: str, record_id: str) -> RegenerateResult:
        record = self.record_service.get_record(owner_id, record_id)

        if self._transition(
            record_id,
            [ArtifactStatus.READY.value, ArtifactStatus.FAILED.value],
            {"artifact_status": ArtifactStatus.PENDING.value, "artifact_error": None},
        ):
            logger.info(f"Regeneration requested for record {record_id}")
            self._publish(owner_id, record_id, ArtifactStatus.PENDING.value)
            self.enqueue(record_id)
            return RegenerateResult(record_id, ArtifactStatus.PENDING.value, True, ARTIFACT_MESSAGES["pending"])

        # lost the compare-and-set: a job for this record is already queued or running
        current = self.get_status(record_id, owner_id).status
        logger.info(f"Regeneration of record {record.id} skipped, status is {current}")
        return RegenerateResult(record_id, current, False, "PDF generation already in progress")

    def get_artifact(self, owner_id: str, record_id: str) -> Tuple[Any, bytes]:
        record = self.record_service.get_record(owner_id, record_id)
        if record.artifact_status != ArtifactStatus.READY.value or not record.artifact_key:
            raise NotFoundError(f"Artifact for document {record_id} is not ready")
        return record, self.blob_store.get(record.artifact_key)

    def request_generation(self, record) -> None:
        """Payload created or replaced: (re)enter pending and queue a job"""
        if record.artifact_status != ArtifactStatus.PENDING.value:
            self._transition(
                record.id,
                ALL_STATUSES,
                {"artifact_status": ArtifactStatus.PENDING.value, "artifact_error": None},
            )
        self._publish(record.owner_id, record.id, ArtifactStatus.PENDING.value)
        self.enqueue(record.id)

    def enqueue(self, record_id: str) -> bool:
        queued = self.worker_pool.submit(self.run_generation, record_id)
        if queued:
            logger.info(f"PDF generation queued for record {record_id}")
        return queued

    @property
    def abandoned_renders(self) -> int:
        """Timed-out render threads that are still running"""
        with self._abandoned_lock:
            self._abandoned = [t for t in self._abandoned if t.is_alive()]
            return len(self._abandoned)

    def shutdown(self) -> None:
        remaining = self.abandoned_renders
        if remaining:
            logger.warning(f"{remaining} timed-out render(s) still running at shutdown")

    # ------------------------------------------------------------------
    # worker side
    # ------------------------------------------------------------------
    def run_generation(self, record_id: str) -> Optional[str]:
        """Worker entry point. Never raises; returns the final status it set"""
        try:
            claimed = self._claim(record_id)
            if claimed is None:
                return None
            record, attempt = claimed
            self._publish(record.owner_id, record_id, ArtifactStatus.GENERATING.value)

            try:
                document = self.record_service.load_document(record)
                content = self._render_with_timeout(document, record.schema_metadata)
                artifact_key = ARTIFACT_KEY_TEMPLATE.format(
                    owner_id=record.owner_id, record_id=record_id, attempt=attempt
                )
                self.blob_store.put(artifact_key, content, "application/pdf")
            except Exception as e:
                return self._fail(record, attempt, e)

            return self._complete(record, attempt, artifact_key)
        except Exception as e:
            logger.error(f"Unexpected error in PDF generation for record {record_id}: {str(e)}", exc_info=True)
            return None

    def _claim(self, record_id: str):
        db = self.session_factory()
        try:
            repo = DocumentRepository(db, self.model)
            record = repo.get_by_id(record_id)
            if record is None:
                logger.warning(f"Record {record_id} vanished before generation")
                return None
            if record.artifact_status != ArtifactStatus.PENDING.value:
                logger.info(f"Record {record_id} is {record.artifact_status}, nothing to claim")
                return None

            attempt = (record.artifact_attempt or 0) + 1
            won = repo.compare_and_set(
                record_id,
                [ArtifactStatus.PENDING.value],
                {"artifact_status": ArtifactStatus.GENERATING.value, "artifact_attempt": attempt},
                expected_attempt=record.artifact_attempt,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        if not won:
            logger.info(f"Lost claim on record {record_id}, another worker owns it")
            return None

        record.artifact_status = ArtifactStatus.GENERATING.value
        record.artifact_attempt = attempt
        logger.info(f"Claimed record {record_id} for generation (attempt {attempt})")
        return record, attempt

    @log_execution_time
    def _render_with_timeout(self, document: StructuredDocument, schema_metadata) -> bytes:
        timeout = self.settings.RENDER_TIMEOUT_SECONDS
        outcome: Dict[str, Any] = {}

        def render():
            try:
                outcome["content"] = self.renderer(document, schema_metadata)
            except Exception as e:
                outcome["error"] = e

        # a thread per render: the deadline starts with the render itself and a
        # hung render only ever holds its own thread
        thread = threading.Thread(target=render, name="artifact-render", daemon=True)
        thread.start()
        thread.join(timeout)
        if thread.is_alive():
            # cannot be interrupted; whatever it returns later is discarded
            with self._abandoned_lock:
                self._abandoned.append(thread)
            raise RenderTimeoutError(f"Rendering exceeded {timeout} seconds")

        if "error" in outcome:
            raise outcome["error"]
        content = outcome.get("content")
        if not content:
            raise ValueError("Renderer returned no content")
        return content

    def _complete(self, record, attempt: int, artifact_key: str) -> Optional[str]:
        won = self._transition(
            record.id,
            [ArtifactStatus.GENERATING.value],
            {
                "artifact_status": ArtifactStatus.READY.value,
                "artifact_key": artifact_key,
                "artifact_generated_at": datetime.now(timezone.utc),
                "artifact_error": None,
            },
            expected_attempt=attempt,
        )
        if not won:
            logger.warning(f"Discarding stale artifact {artifact_key} for record {record.id}")
            self._remove_quietly(artifact_key)
            return None

        if record.artifact_key and record.artifact_key != artifact_key:
            self._remove_quietly(record.artifact_key)

        logger.info(f"PDF generation completed for record {record.id}: {artifact_key}")
        self._publish(record.owner_id, record.id, ArtifactStatus.READY.value, artifact_key=artifact_key)
        return ArtifactStatus.READY.value

    def _fail(self, record, attempt: int, error: Exception) -> Optional[str]:
        detail = f"{type(error).__name__}: {error}"[:ARTIFACT_ERROR_MAX_LENGTH]
        logger.error(f"PDF generation failed for record {record.id}: {detail}")

        won = self._transition(
            record.id,
            [ArtifactStatus.GENERATING.value],
            {"artifact_status": ArtifactStatus.FAILED.value, "artifact_error": detail},
            expected_attempt=attempt,
        )
        if not won:
            logger.warning(f"Failure of stale attempt {attempt} for record {record.id} ignored")
            return None

        message_key = "timeout" if isinstance(error, RenderTimeoutError) else "failed"
        self._publish(
            record.owner_id,
            record.id,
            ArtifactStatus.FAILED.value,
            message=ARTIFACT_MESSAGES[message_key],
        )
        return ArtifactStatus.FAILED.value

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _transition(
        self,
        record_id: str,
        expected_statuses,
        values: Dict[str, Any],
        expected_attempt: Optional[int] = None,
    ) -> bool:
        db = self.session_factory()
        try:
            won = DocumentRepository(db, self.model).compare_and_set(
                record_id, expected_statuses, values, expected_attempt=expected_attempt
            )
            db.commit()
            return won
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _publish(
        self,
        owner_id: str,
        record_id: str,
        status: str,
        message: Optional[str] = None,
        artifact_key: Optional[str] = None,
    ) -> None:
        try:
            self.hub.publish(
                owner_id,
                status_changed_event(
                    record_id, status, message or ARTIFACT_MESSAGES[status], artifact_key
                ),
            )
        except Exception as e:
            logger.warning(f"Failed to publish {status} for record {record_id}: {str(e)}")

    def _remove_quietly(self, key: str) -> None:
        try:
            self.blob_store.remove(key)
        except StorageError as e:
            logger.warning(f"Could not remove artifact blob {key}: {str(e)}")
