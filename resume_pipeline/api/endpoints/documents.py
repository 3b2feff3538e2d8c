import json
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from ...core.config import get_settings
from ...dependencies.owner import get_owner_id
from ...dependencies.services import get_pipeline
from ...schemas.record import (
    ArtifactStatusResponse,
    DocumentListResponse,
    DocumentRecordResponse,
    DocumentResponse,
    MessageResponse,
    RegenerateResponse,
    SaveParsedRequest,
    SubmitRequest,
    SubmitResponse,
    UpdateDocumentRequest,
)
from ...services.pipeline import DocumentPipeline
from ...utils.exceptions import PipelineException
from ..errors import to_http_exception

router = APIRouter()

ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx", ".txt"}


def _document_response(stored) -> DocumentResponse:
    return DocumentResponse(
        record=DocumentRecordResponse.model_validate(stored.record),
        parsed_data=stored.document.to_payload(),
    )


@router.post("", response_model=SubmitResponse, status_code=201)
def submit_document(
    body: SubmitRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        result = pipeline.submit(body.raw_text, owner_id, display_name=body.display_name)
    except PipelineException as e:
        raise to_http_exception(e)
    return SubmitResponse(
        record=DocumentRecordResponse.model_validate(result.record),
        parsed_data=result.document.to_payload(),
        warnings=result.warnings,
    )


@router.post("/upload", response_model=SubmitResponse, status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    raw_text: str = Form(...),  # text extracted from the file upstream
    display_name: Optional[str] = Form(None),
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    filename = file.filename or "document"
    extension = "." + filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only PDF, Word and text documents are allowed.",
        )

    content = await file.read()
    if len(content) > get_settings().MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File size exceeds upload limit.")

    try:
        result = await run_in_threadpool(
            pipeline.submit,
            raw_text,
            owner_id,
            content,
            filename,
            file.content_type or "application/octet-stream",
            display_name,
        )
    except PipelineException as e:
        raise to_http_exception(e)

    return SubmitResponse(
        record=DocumentRecordResponse.model_validate(result.record),
        parsed_data=result.document.to_payload(),
        warnings=result.warnings,
    )


@router.post("/parsed", response_model=DocumentResponse, status_code=201)
def save_parsed_document(
    body: SaveParsedRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        stored = pipeline.save_parsed(owner_id, body.parsed_data, display_name=body.display_name)
    except PipelineException as e:
        raise to_http_exception(e)
    return _document_response(stored)


@router.get("", response_model=DocumentListResponse)
def list_documents(
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    records = pipeline.list_documents(owner_id)
    return DocumentListResponse(
        documents=[DocumentRecordResponse.model_validate(r) for r in records]
    )


@router.get("/primary", response_model=DocumentResponse)
def get_primary_document(
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        return _document_response(pipeline.get_primary(owner_id))
    except PipelineException as e:
        raise to_http_exception(e)


@router.get("/{record_id}", response_model=DocumentResponse)
def get_document(
    record_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        return _document_response(pipeline.read(owner_id, record_id))
    except PipelineException as e:
        raise to_http_exception(e)


@router.put("/{record_id}", response_model=DocumentRecordResponse)
def update_document(
    record_id: str,
    body: UpdateDocumentRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        record = pipeline.update(owner_id, record_id, body.parsed_data, body.display_name)
    except PipelineException as e:
        raise to_http_exception(e)
    return DocumentRecordResponse.model_validate(record)


@router.delete("/{record_id}", response_model=MessageResponse)
def delete_document(
    record_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        pipeline.delete(owner_id, record_id)
    except PipelineException as e:
        raise to_http_exception(e)
    return MessageResponse(message="Document deleted successfully")


@router.post("/{record_id}/primary", response_model=DocumentRecordResponse)
def set_primary_document(
    record_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        record = pipeline.set_primary(owner_id, record_id)
    except PipelineException as e:
        raise to_http_exception(e)
    return DocumentRecordResponse.model_validate(record)


@router.get("/{record_id}/status", response_model=ArtifactStatusResponse)
def get_artifact_status(
    record_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        view = pipeline.get_status(record_id, owner_id)
    except PipelineException as e:
        raise to_http_exception(e)
    return ArtifactStatusResponse.model_validate(view)


@router.post(
    "/{record_id}/regenerate",
    response_model=RegenerateResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def regenerate_artifact(
    record_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        result = pipeline.regenerate(owner_id, record_id)
    except PipelineException as e:
        raise to_http_exception(e)
    return RegenerateResponse.model_validate(result)


@router.get("/{record_id}/artifact")
def download_artifact(
    record_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        record, content = pipeline.get_artifact(owner_id, record_id)
    except PipelineException as e:
        raise to_http_exception(e)

    filename = f"{record.display_name or record.id}.pdf"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={json.dumps(filename)}"},
    )
