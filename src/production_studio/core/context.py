"""Invocation context handed to every tool"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .progress import ProgressEmitter
from .session_store import SessionStore
from .state import ToolError, make_tool_error

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """Shared services for tool calls

    ``emitter`` is installed by the orchestrator for the duration of a run and
    reset to None in its release epilogue. ``error_sink`` lets tools that
    detect a non-exception problem report it to the run's error tracker.
    """
    store: SessionStore
    providers: Any
    emitter: Optional[ProgressEmitter] = None
    error_sink: Optional[Callable[[str, ToolError], None]] = None

    def emit(self, event_type: str, message: str = "", **data):
        if self.emitter is not None:
            self.emitter.emit(event_type, message, **data)

    def emit_scene_progress(self, tool: str, current_scene: int, total_scenes: int,
                            message: Optional[str] = None):
        if self.emitter is not None:
            self.emitter.scene_progress(tool, current_scene, total_scenes, message)

    def record_error(self, session_id: str, tool: str, message: str, category: str = "permanent",
                     recoverable: bool = True) -> ToolError:
        """Record a tool-detected problem in the run tracker (or straight into state)"""
        tool_error = make_tool_error(tool, message, category, recoverable=recoverable)
        if self.error_sink is not None:
            self.error_sink(session_id, tool_error)
        elif self.store.has(session_id):
            self.store.update(session_id, lambda s: s.setdefault("errors", []).append(tool_error))
        logger.warning(f"[ToolContext] {tool} recorded {category} error: {message}")
        return tool_error
