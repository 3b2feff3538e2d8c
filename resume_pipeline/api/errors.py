from fastapi import HTTPException

from ..core.logger import logger
from ..utils.exceptions import (
    CorruptRecordError,
    InsufficientInputError,
    ModelServiceError,
    NotFoundError,
    PipelineException,
    StorageError,
    UnrecoverableResponseError,
    ValidationError,
)

# Checked in order; the first matching class wins
STATUS_BY_EXCEPTION = [
    (InsufficientInputError, 400),
    (ValidationError, 400),
    (NotFoundError, 404),
    (UnrecoverableResponseError, 502),
    (ModelServiceError, 502),
    (CorruptRecordError, 500),
    (StorageError, 500),
]


def to_http_exception(exc: PipelineException) -> HTTPException:
    for exc_type, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            break
    else:
        status_code = 500

    if status_code >= 500:
        logger.error(f"{type(exc).__name__}: {str(exc)}")

    if isinstance(exc, UnrecoverableResponseError):
        detail = "Could not understand the document. Please submit it again."
    elif isinstance(exc, CorruptRecordError):
        detail = "Stored document data is unavailable"
    elif isinstance(exc, StorageError):
        detail = "Storage operation failed"
    else:
        detail = str(exc)
    return HTTPException(status_code=status_code, detail=detail)
