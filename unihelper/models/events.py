from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    ANALYSIS_STARTED = "analysis_started"
    STAGE_COMPLETED = "stage_completed"
    CATEGORY_COMPLETED = "category_completed"
    ANALYSIS_COMPLETE = "analysis_complete"
    DISCOVERY_COMPLETE = "discovery_complete"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.data)}\n\n"
