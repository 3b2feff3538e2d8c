from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SubmitRequest(BaseModel):
    raw_text: str
    display_name: Optional[str] = None


class SaveParsedRequest(BaseModel):
    parsed_data: Dict[str, Any]
    display_name: Optional[str] = None


class UpdateDocumentRequest(BaseModel):
    parsed_data: Dict[str, Any]
    display_name: Optional[str] = None


class DocumentRecordResponse(BaseModel):
    id: str
    owner_id: str
    payload_key: Optional[str] = None
    source_file_key: Optional[str] = None
    artifact_key: Optional[str] = None
    artifact_status: str
    artifact_generated_at: Optional[datetime] = None
    display_name: Optional[str] = None
    byte_size: Optional[int] = None
    is_primary: bool
    schema_metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentResponse(BaseModel):
    record: DocumentRecordResponse
    parsed_data: Dict[str, Any]


class SubmitResponse(DocumentResponse):
    warnings: List[str] = Field(default_factory=list)


class DocumentListResponse(BaseModel):
    documents: List[DocumentRecordResponse]


class ArtifactStatusResponse(BaseModel):
    record_id: str
    status: str
    artifact_key: Optional[str] = None
    generated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RegenerateResponse(BaseModel):
    record_id: str
    status: str
    accepted: bool
    message: str

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    message: str
