from fastapi import HTTPException, Request, status

from ..services.pipeline import DocumentPipeline


def get_pipeline(request: Request) -> DocumentPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return pipeline
