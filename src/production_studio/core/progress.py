"""Progress events streamed to the host while a production runs"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

# Event types
STARTING = "starting"
INTENT_DETECTED = "intent_detected"
TOOL_CALL = "tool_call"
TOOL_RESULT = "tool_result"
RETRY = "retry"
FALLBACK = "fallback"
SCENE_PROGRESS = "scene_progress"
STAGE_PROGRESS = "stage_progress"
WARNING = "warning"
LIMIT_REACHED = "limit_reached"
SUMMARY = "summary"
ERROR = "error"
COMPLETE = "complete"

FALLBACK_PREFIX = "⚠️ "


@dataclass(frozen=True)
class ProgressEvent:
    type: str
    message: str = ""
    data: Mapping[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def __post_init__(self):
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "message": self.message, "timestamp": self.timestamp, **self.data}


ProgressCallback = Callable[[Dict[str, Any]], None]


class ProgressEmitter:
    """Fans progress events out to the host callback and keeps a local log"""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._callback = callback
        self.events: List[ProgressEvent] = []
        self.released = False

    def emit(self, event_type: str, message: str = "", **data) -> ProgressEvent:
        event = ProgressEvent(type=event_type, message=message, data=data)
        if self.released:
            logger.debug(f"[Progress] Dropping {event_type} after release")
            return event
        self.events.append(event)
        if self._callback is not None:
            try:
                self._callback(event.to_dict())
            except Exception as e:
                logger.warning(f"[Progress] Callback failed for event_type={event_type}: {type(e).__name__}: {e}")
        return event

    def scene_progress(self, tool: str, current_scene: int, total_scenes: int,
                       message: Optional[str] = None) -> ProgressEvent:
        percentage = int(round(current_scene / total_scenes * 100)) if total_scenes else 100
        return self.emit(
            SCENE_PROGRESS,
            message or f"{tool}: scene {current_scene}/{total_scenes}",
            tool=tool,
            currentScene=current_scene,
            totalScenes=total_scenes,
            percentage=percentage,
        )

    def of_type(self, event_type: str) -> List[ProgressEvent]:
        return [e for e in self.events if e.type == event_type]

    def release(self):
        self.released = True
        self._callback = None
