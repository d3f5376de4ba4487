import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel


class EventKind(StrEnum):
    UPDATED = "updated"
    PROGRESS = "progress"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class JobEvent(BaseModel):
    event: EventKind
    data: dict[str, Any]

    @property
    def job_id(self) -> str:
        return self.data["job_id"]

    def to_sse(self) -> str:
        return f"event: {self.event}\ndata: {json.dumps(self.data)}\n\n"
