from typing import Optional


class PipelineException(Exception):
    """Base exception for pipeline errors"""

    pass


class InsufficientInputError(PipelineException):
    """Raw text is too short to be worth sending to the model"""

    def __init__(self, length: int, minimum: int):
        self.length = length
        self.minimum = minimum
        super().__init__(
            f"Input text has {length} characters after trimming, at least {minimum} required"
        )


class UnrecoverableResponseError(PipelineException):
    """Model output could not be turned into JSON, even after repair"""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        self.raw_response = raw_response
        super().__init__(message)


class ValidationError(PipelineException):
    """A structured document is missing a required field"""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Missing required field: {field}")


class NotFoundError(PipelineException):
    """Record does not exist or does not belong to the owner"""

    pass


class CorruptRecordError(PipelineException):
    """Metadata row exists but its payload blob is missing or unreadable"""

    pass


class StorageError(PipelineException):
    """Base exception for blob or metadata storage failures"""

    pass


class BlobNotFoundError(StorageError):
    """Requested blob key does not exist"""

    pass


class RenderTimeoutError(PipelineException):
    """Artifact rendering exceeded its time budget"""

    pass


class ModelServiceError(PipelineException):
    """The model endpoint could not be reached or returned an HTTP error"""

    pass
