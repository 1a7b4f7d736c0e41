"""
Tool dispatch for the production agents

One LLM tool call goes through: duplicate suppression -> result cache ->
retry harness -> fallback. Outcomes are counted in the run's ErrorTracker,
mirrored into the session's ``errors`` list and reported as progress events.
Both the monolithic orchestrator and the supervisor subagents dispatch
through the same ToolDispatcher so their session state ends up identical.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from ..core.context import ToolContext
from ..core.progress import FALLBACK, FALLBACK_PREFIX, RETRY, TOOL_CALL, TOOL_RESULT
from ..core.state import ToolError, make_tool_error
from ..core.tool_registry import ToolRegistry
from ..core.utils import truncate
from .base import parse_tool_payload
from .recovery import (
    ErrorCategory,
    ErrorTracker,
    FallbackRequest,
    apply_fallback,
    execute_with_retry,
    get_recovery_strategy,
)
from .result_cache import StepTracker, check_cached_result, create_step_identifier

logger = logging.getLogger(__name__)

# Tools whose payload opens the session the rest of the run works on
SESSION_CREATING_TOOLS = ("plan_video", "generate_breakdown", "import_youtube_content")


class ToolDispatcher:
    """Executes tool calls for one run"""

    def __init__(self, registry: ToolRegistry, context: ToolContext,
                 tracker: Optional[ErrorTracker] = None, steps: Optional[StepTracker] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.registry = registry
        self.context = context
        self.tracker = tracker or ErrorTracker()
        self.steps = steps or StepTracker()
        self.sleep = sleep
        self.session_id: Optional[str] = None
        self.fatal_error: Optional[ToolError] = None

    # --- Error bookkeeping ---

    def _append_to_state(self, session_id: Optional[str], error: ToolError):
        target = session_id if session_id and self.context.store.has(session_id) else self.session_id
        if target and self.context.store.has(target):
            self.context.store.update(target, lambda s: s.setdefault("errors", []).append(error))

    def record_failure(self, session_id: Optional[str], error: ToolError):
        self.tracker.record_failure(error)
        self._append_to_state(session_id, error)
        if not error["recoverable"] and self.fatal_error is None:
            self.fatal_error = error

    def record_reported_error(self, session_id: str, error: ToolError):
        """ToolContext error sink for problems a tool detects without failing"""
        self.tracker.record_reported(error)
        self._append_to_state(session_id, error)

    def downgrade_fatal(self, fallback_action: str) -> Optional[ToolError]:
        """Turn the recorded fatal error into a recovered one so the run can go on"""
        error = self.fatal_error
        if error is None:
            return None
        error["recoverable"] = True
        error["fallback_applied"] = fallback_action
        self.tracker.fallback_count += 1
        self.fatal_error = None
        logger.info(f"[Dispatcher] {error['tool']} failure recovered with {fallback_action}")
        return error

    # --- Session capture ---

    def _capture_session(self, tool_name: str, payload: Dict[str, Any]):
        new_id = payload.get("sessionId")
        if tool_name not in SESSION_CREATING_TOOLS or not new_id:
            return
        if self.session_id is None:
            self.session_id = new_id
            logger.info(f"[Dispatcher] Session captured from {tool_name}: {new_id}")
        elif self.session_id.startswith("import_") and tool_name != "import_youtube_content":
            self._carry_import(self.session_id, new_id)
            self.session_id = new_id
            logger.info(f"[Dispatcher] Production session {new_id} continues import session")

    def _carry_import(self, import_id: str, production_id: str):
        imported = (self.context.store.get(import_id) or {}).get("imported_content")
        if imported and self.context.store.has(production_id):
            self.context.store.update(production_id, lambda s: s.update({"imported_content": imported}))

    # --- Dispatch ---

    def _emit_result(self, tool_name: str, payload: Dict[str, Any], fallback: bool = False):
        message = payload.get("message") or payload.get("error") or ("done" if payload.get("success") else "failed")
        message = truncate(f"{tool_name}: {message}", 300)
        if fallback:
            message = FALLBACK_PREFIX + message
        self.context.emit(TOOL_RESULT, message, tool=tool_name, success=bool(payload.get("success")),
                          cached=bool(payload.get("cached")))

    def dispatch(self, tool_name: str, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Run one tool call and return the payload the LLM will see"""
        arguments = dict(arguments or {})
        call_session = arguments.get("contentPlanId") or arguments.get("sessionId")

        tool = self.registry.lookup(tool_name)
        if tool is None:
            error = make_tool_error(tool_name, f"Unknown tool: {tool_name}", ErrorCategory.VALIDATION.value)
            self.record_failure(call_session, error)
            payload = {"success": False, "error": error["error"],
                       "suggestion": f"Available tools: {', '.join(self.registry.names())}"}
            self._emit_result(tool_name, payload)
            return payload

        state = self.context.store.get(call_session) if call_session else None
        step_id = create_step_identifier(tool_name, arguments, state)
        if self.steps.is_executed(step_id):
            logger.info(f"[Dispatcher] Skipping duplicate step {step_id}")
            cached = check_cached_result(tool_name, arguments, self.context.store)
            if cached is not None:
                return {**cached, "skipped": True}
            return {"success": True, "skipped": True,
                    "message": f"{tool_name} already completed for this step; skipping duplicate call"}

        self.context.emit(TOOL_CALL, f"Calling {tool_name}", tool=tool_name)

        cached = check_cached_result(tool_name, arguments, self.context.store)
        if cached is not None:
            self.steps.mark_executed(step_id)
            self._emit_result(tool_name, cached)
            return cached

        strategy = get_recovery_strategy(tool_name)

        def on_retry(attempt: int, error: BaseException, delay_ms: int):
            self.context.emit(RETRY, f"{tool_name} failed ({truncate(str(error), 120)}); retrying in {delay_ms}ms",
                              tool=tool_name, attempt=attempt, delayMs=delay_ms)

        result = execute_with_retry(lambda: tool.invoke(self.context, arguments), strategy,
                                    on_retry=on_retry, sleep=self.sleep)

        if result.success:
            payload = parse_tool_payload(result.value)
            if not payload.get("success"):
                # In-band failure: recorded, but the step stays open so the agent can retry it
                self.record_failure(call_session, make_tool_error(
                    tool_name, payload.get("error") or "Tool reported failure",
                    ErrorCategory.PERMANENT.value, retry_count=result.retry_count, recoverable=True,
                ))
            else:
                self.tracker.record_success()
                self.steps.mark_executed(step_id)
                self._capture_session(tool_name, payload)
            self._emit_result(tool_name, payload)
            return payload

        request = FallbackRequest(tool=tool_name, session_id=call_session or self.session_id,
                                  arguments=arguments, failure=result, context=self.context)
        fallback = apply_fallback(strategy, request)
        if fallback is not None:
            action = fallback["fallbackApplied"]
            error = dict(result.error)
            error["fallback_applied"] = action
            if fallback.get("success"):
                # A working substitute (e.g. placeholders without credentials) keeps the run going
                error["recoverable"] = True
            self.record_failure(call_session, error)
            self.context.emit(FALLBACK, f"{tool_name}: applying {action}", tool=tool_name, fallbackAction=action)
            if fallback.get("success"):
                self.steps.mark_executed(step_id)
            self._emit_result(tool_name, fallback, fallback=True)
            return fallback

        self.record_failure(call_session, result.error)
        payload = {
            "success": False,
            "error": result.error["error"],
            "category": result.category.value,
            "retryCount": result.retry_count,
        }
        if result.category == ErrorCategory.VALIDATION:
            payload["suggestion"] = "Check the tool arguments against its schema"
        elif not strategy.continue_on_failure:
            payload["suggestion"] = f"{tool_name} is required; the production cannot continue without it"
        self._emit_result(tool_name, payload)
        return payload

    @property
    def is_fatal(self) -> bool:
        return self.fatal_error is not None
