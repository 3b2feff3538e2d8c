"""
Record lifecycle orchestrator.

Keeps the relational metadata row and the blob payload consistent without a
shared transaction. Ordering rules:

* create: source blob -> payload blob -> metadata row
* delete: blobs -> metadata row (row is kept if any blob removal fails)
* read: a row whose payload blob is missing is corrupt, not "not found"

When the documents table predates two-tier storage the payload is stored
inline in the row instead; callers see the same contract either way.
"""

import json
import os
import uuid
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.constants import PAYLOAD_KEY_TEMPLATE, SOURCE_KEY_TEMPLATE
from ..core.logger import logger
from ..db.capabilities import StorageMode
from ..db.repositories.document_repository import DocumentRepository
from ..models.document_record import ArtifactStatus, DocumentRecord, InlineDocumentRecord
from ..schemas.document import StructuredDocument
from ..storage.blob_store import BlobStore
from ..utils.exceptions import (
    CorruptRecordError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .compatibility import DocumentShape, detect_shape, normalize
from .extraction_service import validate_document


@dataclass
class StoredDocument:
    record: Any
    document: StructuredDocument


class RecordService:
    def __init__(
        self,
        session_factory: sessionmaker,
        blob_store: BlobStore,
        mode: StorageMode = StorageMode.TWO_TIER,
    ):
        self.session_factory = session_factory
        self.blob_store = blob_store
        self.mode = mode
        self.model = DocumentRecord if mode == StorageMode.TWO_TIER else InlineDocumentRecord
        self._persisted_listeners: List[Callable[[Any], None]] = []

    @property
    def two_tier(self) -> bool:
        return self.mode == StorageMode.TWO_TIER

    def on_payload_persisted(self, listener: Callable[[Any], None]) -> None:
        """Register a callback run after a payload is created or replaced"""
        self._persisted_listeners.append(listener)

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------
    def create(
        self,
        owner_id: str,
        document: Any,
        source_bytes: Optional[bytes] = None,
        source_filename: Optional[str] = None,
        source_content_type: str = "application/octet-stream",
        display_name: Optional[str] = None,
        schema_metadata: Optional[dict] = None,
    ):
        document = validate_document(normalize(document))
        payload = document.to_payload()
        payload_bytes = json.dumps(payload, indent=2).encode("utf-8")

        record_id = str(uuid.uuid4())
        file_id = uuid.uuid4().hex
        written: List[str] = []

        source_key = None
        if source_bytes is not None:
            source_key = SOURCE_KEY_TEMPLATE.format(
                owner_id=owner_id,
                file_id=file_id,
                filename=_safe_filename(source_filename or "source"),
            )
            self.blob_store.put(source_key, source_bytes, source_content_type)
            written.append(source_key)

        payload_key = None
        if self.two_tier:
            payload_key = PAYLOAD_KEY_TEMPLATE.format(owner_id=owner_id, file_id=file_id)
            try:
                self.blob_store.put(payload_key, payload_bytes, "application/json")
            except StorageError:
                self._discard_blobs(written)
                raise
            written.append(payload_key)

        db = self.session_factory()
        try:
            repo = DocumentRepository(db, self.model)
            # check-then-act: two concurrent first uploads for one owner can
            # both see zero records and both become primary
            is_primary = repo.count_for_owner(owner_id) == 0

            values = dict(
                id=record_id,
                owner_id=owner_id,
                source_file_key=source_key,
                artifact_status=ArtifactStatus.PENDING.value,
                artifact_attempt=0,
                is_primary=is_primary,
                schema_metadata=schema_metadata or {},
            )
            if self.two_tier:
                values.update(
                    payload_key=payload_key,
                    display_name=display_name or _default_display_name(source_filename, document),
                    byte_size=len(source_bytes) if source_bytes is not None else len(payload_bytes),
                )
            else:
                values.update(payload=payload)

            record = repo.add(self.model(**values))
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to insert metadata for owner {owner_id}: {str(e)}")
            self._discard_blobs(written)
            raise StorageError("Failed to save document metadata") from e
        finally:
            db.close()

        logger.info(
            f"Created record {record.id} for owner {owner_id} "
            f"(primary={record.is_primary}, mode={self.mode.value})"
        )
        self._notify_persisted(record)
        return record

    # ------------------------------------------------------------------
    # read
    # ------------------------------------------------------------------
    def read(self, owner_id: str, record_id: str) -> StoredDocument:
        record = self.get_record(owner_id, record_id)
        return StoredDocument(record=record, document=self.load_document(record))

    def get_record(self, owner_id: str, record_id: str):
        db = self.session_factory()
        try:
            record = DocumentRepository(db, self.model).get_owned(owner_id, record_id)
        finally:
            db.close()
        if record is None:
            raise NotFoundError(f"Document {record_id} not found")
        return record

    def get_record_by_id(self, record_id: str):
        db = self.session_factory()
        try:
            return DocumentRepository(db, self.model).get_by_id(record_id)
        finally:
            db.close()

    def list_records(self, owner_id: str) -> List[Any]:
        db = self.session_factory()
        try:
            return DocumentRepository(db, self.model).list_for_owner(owner_id)
        finally:
            db.close()

    def get_primary(self, owner_id: str) -> StoredDocument:
        db = self.session_factory()
        try:
            record = DocumentRepository(db, self.model).get_primary(owner_id)
        finally:
            db.close()
        if record is None:
            raise NotFoundError("No primary document found")
        return StoredDocument(record=record, document=self.load_document(record))

    def load_document(self, record) -> StructuredDocument:
        if self.two_tier:
            if not record.payload_key:
                raise CorruptRecordError(f"Document {record.id} has no payload key")
            try:
                raw = self.blob_store.get(record.payload_key)
            except StorageError as e:
                logger.error(f"Payload blob {record.payload_key} missing for record {record.id}")
                raise CorruptRecordError(f"Payload for document {record.id} is missing") from e
            try:
                payload = json.loads(raw.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise CorruptRecordError(f"Payload for document {record.id} is unreadable") from e
        else:
            payload = record.payload
            if payload is None:
                raise CorruptRecordError(f"Payload for document {record.id} is missing")

        if isinstance(payload, dict) and detect_shape(payload) == DocumentShape.LEGACY:
            logger.info(f"Record {record.id} holds a legacy-shaped payload, normalizing on read")

        try:
            return normalize(payload)
        except ValidationError as e:
            raise CorruptRecordError(f"Payload for document {record.id} is malformed") from e

    # ------------------------------------------------------------------
    # update
    # ------------------------------------------------------------------
    def update(
        self,
        owner_id: str,
        record_id: str,
        document: Any,
        display_name: Optional[str] = None,
    ):
        record = self.get_record(owner_id, record_id)
        document = validate_document(normalize(document))
        payload = document.to_payload()

        values = {}
        if self.two_tier:
            payload_bytes = json.dumps(payload, indent=2).encode("utf-8")
            self.blob_store.put(record.payload_key, payload_bytes, "application/json")
            if display_name:
                values["display_name"] = display_name
            if not record.source_file_key:
                values["byte_size"] = len(payload_bytes)
        else:
            values["payload"] = payload

        db = self.session_factory()
        try:
            repo = DocumentRepository(db, self.model)
            values["updated_at"] = func.now()
            repo.update_fields(owner_id, record_id, values)
            db.commit()
            record = repo.get_owned(owner_id, record_id)
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError("Failed to update document metadata") from e
        finally:
            db.close()

        if record is None:
            raise NotFoundError(f"Document {record_id} not found")

        logger.info(f"Updated payload of record {record_id}")
        self._notify_persisted(record)
        return record

    # ------------------------------------------------------------------
    # primary
    # ------------------------------------------------------------------
    def set_primary(self, owner_id: str, record_id: str):
        db = self.session_factory()
        try:
            repo = DocumentRepository(db, self.model)
            repo.unset_primary(owner_id)
            db.commit()

            if not repo.mark_primary(owner_id, record_id):
                db.rollback()
                raise NotFoundError(f"Document {record_id} not found")
            db.commit()
            record = repo.get_owned(owner_id, record_id)
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError("Failed to update primary document") from e
        finally:
            db.close()

        logger.info(f"Record {record_id} is now primary for owner {owner_id}")
        return record

    # ------------------------------------------------------------------
    # delete
    # ------------------------------------------------------------------
    def delete(self, owner_id: str, record_id: str) -> None:
        record = self.get_record(owner_id, record_id)

        keys = [
            key
            for key in (record.payload_key, record.source_file_key, record.artifact_key)
            if key
        ]
        failed = []
        for key in keys:
            try:
                self.blob_store.remove(key)
            except StorageError as e:
                logger.error(f"Failed to remove blob {key} of record {record_id}: {str(e)}")
                failed.append(key)

        if failed:
            raise StorageError(
                f"Could not remove {len(failed)} blob(s) of document {record_id}; "
                "metadata kept so the delete can be retried"
            )

        db = self.session_factory()
        try:
            DocumentRepository(db, self.model).delete_owned(owner_id, record_id)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError("Failed to delete document metadata") from e
        finally:
            db.close()

        logger.info(f"Deleted record {record_id} of owner {owner_id}")

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _discard_blobs(self, keys: List[str]) -> None:
        for key in keys:
            try:
                self.blob_store.remove(key)
            except StorageError as e:
                logger.warning(f"Could not clean up blob {key}: {str(e)}")

    def _notify_persisted(self, record) -> None:
        for listener in self._persisted_listeners:
            try:
                listener(record)
            except Exception as e:
                logger.error(f"Payload listener failed for record {record.id}: {str(e)}")


def _safe_filename(filename: str) -> str:
    name = os.path.basename(filename.replace("\\", "/")).strip()
    return "".join(c if c.isalnum() or c in "._-" else "_" for c in name) or "source"


def _default_display_name(source_filename: Optional[str], document: StructuredDocument) -> str:
    if source_filename:
        return os.path.splitext(os.path.basename(source_filename))[0]
    info = document.personal_info
    return f"{info.first_name} {info.last_name}".strip() or "Untitled"
