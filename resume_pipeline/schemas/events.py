import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class NotificationType(Enum):
    CONNECTED = "connected"
    STATUS_CHANGED = "status_changed"


@dataclass
class NotificationEvent:
    """Event pushed to connected clients"""

    event_type: NotificationType
    data: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        payload = {"type": self.event_type.value, "eventId": self.event_id, "timestamp": self.timestamp}
        payload.update(self.data)
        return payload

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.to_dict())}\n\n"


def connected_event() -> NotificationEvent:
    return NotificationEvent(
        event_type=NotificationType.CONNECTED,
        data={"message": "Event stream connection established"},
    )


def status_changed_event(
    record_id: str,
    new_status: str,
    message: str,
    artifact_key: Optional[str] = None,
) -> NotificationEvent:
    data = {"recordId": record_id, "newStatus": new_status, "message": message}
    if artifact_key:
        data["artifactKey"] = artifact_key
    return NotificationEvent(event_type=NotificationType.STATUS_CHANGED, data=data)
