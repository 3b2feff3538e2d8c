import json
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.sql import func

from ..db.base import Base, LegacyBase


def _utcnow():
    return datetime.now(timezone.utc)


class ArtifactStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"


class DocumentColumnsMixin:
    """Columns shared by the two-tier and the single-tier table shapes"""

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(64), nullable=False, index=True)
    source_file_key = Column(String(500))
    artifact_key = Column(String(500))
    artifact_status = Column(
        String(20), nullable=False, default=ArtifactStatus.PENDING.value
    )
    artifact_generated_at = Column(DateTime(timezone=True))
    # incremented on every claim; guards against stale render completions
    artifact_attempt = Column(Integer, nullable=False, default=0)
    artifact_error = Column(Text)
    is_primary = Column(Boolean, nullable=False, default=False)
    schema_metadata = Column(JSON, default=dict)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class DocumentRecord(DocumentColumnsMixin, Base):
    __tablename__ = "documents"

    payload_key = Column(String(500), nullable=False)
    display_name = Column(String(255))
    byte_size = Column(BigInteger)

    __table_args__ = (Index("idx_documents_owner_primary", "owner_id", "is_primary"),)

    @property
    def payload(self):
        return None

    def __repr__(self):
        return f"<DocumentRecord {self.id} owner={self.owner_id} status={self.artifact_status}>"


class InlineDocumentRecord(DocumentColumnsMixin, LegacyBase):
    """Single-tier row: the structured document lives in the row itself"""

    __tablename__ = "documents"

    payload = Column(JSON, nullable=False)

    @property
    def payload_key(self):
        return None

    @property
    def display_name(self):
        return None

    @property
    def byte_size(self):
        return len(json.dumps(self.payload).encode("utf-8")) if self.payload else 0

    def __repr__(self):
        return f"<InlineDocumentRecord {self.id} owner={self.owner_id} status={self.artifact_status}>"
