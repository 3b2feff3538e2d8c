from .document_record import ArtifactStatus, DocumentRecord, InlineDocumentRecord
from .token_usage import TokenUsage

__all__ = ["ArtifactStatus", "DocumentRecord", "InlineDocumentRecord", "TokenUsage"]
