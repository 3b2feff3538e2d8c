from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...dependencies.services import get_pipeline
from ...services.pipeline import DocumentPipeline

router = APIRouter()


class HealthStatus(BaseModel):
    status: str
    timestamp: datetime
    storage_mode: str
    notifications: Dict[str, int]


@router.get("", response_model=HealthStatus)
def health_check(pipeline: DocumentPipeline = Depends(get_pipeline)):
    """Liveness plus a little detail about the running pipeline"""
    return HealthStatus(
        status="healthy" if pipeline.hub.running else "degraded",
        timestamp=datetime.now(timezone.utc),
        storage_mode=pipeline.records.mode.value,
        notifications={"connected_clients": pipeline.hub.total_client_count()},
    )
