"""
Production orchestrator (monolithic mode)

A single tool-calling LLM drives the whole pipeline. Each iteration sends
the full message history, dispatches every returned tool call through the
ToolDispatcher and feeds the payloads back as ToolMessages. The loop ends
when the model stops calling tools, when a fatal error is recorded, or at
the iteration bound.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage, ToolMessage

from ..core.config import (
    ENABLE_MUSIC_GENERATION,
    MAX_ITERATIONS,
    MAX_QUALITY_ITERATIONS,
    QUALITY_THRESHOLD,
)
from ..core.context import ToolContext
from ..core.progress import (
    COMPLETE,
    ERROR,
    INTENT_DETECTED,
    LIMIT_REACHED,
    STARTING,
    SUMMARY,
    WARNING,
    ProgressCallback,
    ProgressEmitter,
    ProgressEvent,
)
from ..core.session_store import SessionStore
from ..core.state import PartialSuccessReport, ProductionState, make_tool_error
from ..core.tool_registry import ToolRegistry
from ..prompts import PRODUCTION_AGENT_PROMPT_TEMPLATE, PRODUCTION_STATUS_REMINDER
from ..tools import build_default_registry
from ..tools.importing import register_audio_file
from ..tools.status import summarize_assets
from .base import dump_payload, format_time
from .dispatcher import ToolDispatcher
from .intent import IntentResult, analyze_intent, build_user_message
from .recovery import ErrorTracker, classify_error

logger = logging.getLogger(__name__)


@dataclass
class ProductionRunResult:
    session_id: Optional[str]
    state: Optional[ProductionState]
    report: PartialSuccessReport
    final_message: str = ""
    iterations: int = 0
    limit_reached: bool = False
    events: List[ProgressEvent] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.report["is_usable"] and not self.limit_reached


@dataclass
class RunContext:
    """Per-run objects shared by the orchestration loop"""
    user_input: str
    intent: IntentResult
    registry: ToolRegistry
    dispatcher: ToolDispatcher
    emitter: ProgressEmitter
    user_message: str
    audio_session_id: Optional[str] = None
    iterations: int = 0
    limit_reached: bool = False
    final_message: str = ""


def message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    parts = [part.get("text", "") if isinstance(part, dict) else str(part) for part in content or []]
    return "".join(parts)


class ProductionOrchestrator:
    """Runs a production request end to end

    Args:
        context: ToolContext holding the session store and providers
        llm: Chat model with ``bind_tools``/``invoke`` (GeminiVertexLLM by default)
        registry: Fixed tool registry; built per run from the intent when None
        max_iterations: LLM round-trip bound
        sleep: Backoff sleep, injectable for tests
    """

    def __init__(self, context: ToolContext, llm: Any = None, registry: Optional[ToolRegistry] = None,
                 max_iterations: int = MAX_ITERATIONS, sleep: Callable[[float], None] = time.sleep):
        if llm is None:
            from ..core.llm import get_llm
            llm = get_llm()
        self.context = context
        self.llm = llm
        self.registry = registry
        self.max_iterations = max_iterations
        self.sleep = sleep

    @property
    def store(self) -> SessionStore:
        return self.context.store

    @property
    def iteration_bound(self) -> int:
        """Bound reported when a run stops at its iteration limit"""
        return self.max_iterations

    # --- Setup ---

    def _registry_for(self, intent: IntentResult) -> ToolRegistry:
        if self.registry is not None:
            return self.registry
        return build_default_registry(include_music=ENABLE_MUSIC_GENERATION or intent.wants_music)

    def _register_audio(self, run: RunContext):
        try:
            run.audio_session_id = register_audio_file(self.store, run.intent.audio_file_path)
        except (OSError, ValueError) as e:
            logger.warning(f"[Orchestrator] Could not load audio file {run.intent.audio_file_path}: {e}")
            run.emitter.emit(WARNING, f"Could not load audio file: {e}")

    def _prepare(self, user_input: str, emitter: ProgressEmitter) -> RunContext:
        emitter.emit(STARTING, "Starting production")
        intent = analyze_intent(user_input)
        if intent.has_youtube_url:
            emitter.emit(INTENT_DETECTED, f"YouTube URL detected: {intent.youtube_url}",
                         intent="youtube", url=intent.youtube_url)
        elif intent.has_audio_file:
            emitter.emit(INTENT_DETECTED, f"Audio file detected: {intent.audio_file_path}",
                         intent="audio_file", path=intent.audio_file_path)

        registry = self._registry_for(intent)
        dispatcher = ToolDispatcher(registry, self.context, tracker=ErrorTracker(), sleep=self.sleep)
        run = RunContext(user_input=user_input, intent=intent, registry=registry, dispatcher=dispatcher,
                         emitter=emitter, user_message="")
        if intent.has_audio_file:
            self._register_audio(run)
        run.user_message = build_user_message(user_input, intent, run.audio_session_id)
        self.context.error_sink = dispatcher.record_reported_error
        logger.info(f"[Orchestrator] {len(registry)} tools, first tool: {intent.first_tool}")
        return run

    def system_prompt(self, registry: ToolRegistry) -> str:
        return PRODUCTION_AGENT_PROMPT_TEMPLATE["template"].format(
            tool_catalog=registry.describe(),
            quality_threshold=QUALITY_THRESHOLD,
            max_quality_iterations=MAX_QUALITY_ITERATIONS,
        )

    # --- Tool loop ---

    def run_tool_loop(self, run: RunContext, registry: ToolRegistry, messages: List[BaseMessage],
                      max_iterations: int, label: str = "Orchestrator") -> bool:
        """LLM round-trips until no tool calls, a fatal error, or the bound

        Returns:
            True when the bound was reached
        """
        llm = self.llm.bind_tools(registry.schemas())
        for iteration in range(1, max_iterations + 1):
            run.iterations += 1
            if iteration == max_iterations - 2:
                run.emitter.emit(WARNING, f"Approaching iteration limit ({iteration}/{max_iterations})",
                                 iteration=iteration, maxIterations=max_iterations)
                messages.append(HumanMessage(content=PRODUCTION_STATUS_REMINDER.format(
                    iteration=iteration, max_iterations=max_iterations)))

            response = llm.invoke(messages)
            messages.append(response)
            tool_calls = getattr(response, "tool_calls", None) or []
            if not tool_calls:
                run.final_message = message_text(response)
                logger.info(f"[{label}] Finished after {iteration} iteration(s)")
                return False

            logger.info(f"[{label}] Iteration {iteration}: {[c['name'] for c in tool_calls]}")
            for index, call in enumerate(tool_calls):
                payload = run.dispatcher.dispatch(call["name"], call.get("args"))
                messages.append(ToolMessage(
                    content=dump_payload(payload),
                    tool_call_id=call.get("id") or f"{call['name']}_{iteration}_{index}",
                    name=call["name"],
                ))
            if run.dispatcher.is_fatal:
                logger.error(f"[{label}] Fatal error from {run.dispatcher.fatal_error['tool']}; stopping")
                return False
        return True

    def _drive(self, run: RunContext):
        messages: List[BaseMessage] = [
            SystemMessage(content=self.system_prompt(run.registry)),
            HumanMessage(content=run.user_message),
        ]
        run.limit_reached = self.run_tool_loop(run, run.registry, messages, self.max_iterations)

    # --- Finish ---

    def _session_id(self, run: RunContext) -> Optional[str]:
        return run.dispatcher.session_id or run.audio_session_id

    def _write_report(self, run: RunContext) -> PartialSuccessReport:
        report = run.dispatcher.tracker.generate_report()
        if run.limit_reached:
            report["summary"] += f" Production stopped due to iteration limit ({self.iteration_bound})."
        session_id = self._session_id(run)
        if session_id and self.store.has(session_id):
            self.store.update(session_id, lambda s: s.update({"partial_success_report": report}))
        return report

    def _finish(self, run: RunContext, started: float) -> ProductionRunResult:
        report = self._write_report(run)
        session_id = self._session_id(run)
        state = self.store.get(session_id) if session_id else None
        run.emitter.emit(SUMMARY, report["summary"], report={k: v for k, v in report.items() if k != "errors"})

        if run.limit_reached:
            run.emitter.emit(LIMIT_REACHED, f"Stopped after {self.iteration_bound} iterations",
                             maxIterations=self.iteration_bound)
        elif run.dispatcher.is_fatal:
            run.emitter.emit(ERROR, f"Production failed: {run.dispatcher.fatal_error['error']}",
                             tool=run.dispatcher.fatal_error["tool"])
        else:
            run.emitter.emit(COMPLETE, run.final_message or "Production finished",
                             assetSummary=summarize_assets(state) if state else {})

        logger.info(f"[Orchestrator] Run finished in {format_time(time.time() - started)}: {report['summary']}")
        return ProductionRunResult(
            session_id=session_id,
            state=state,
            report=report,
            final_message=run.final_message,
            iterations=run.iterations,
            limit_reached=run.limit_reached,
            events=list(run.emitter.events),
        )

    def _record_fatal(self, run: RunContext, error: Exception):
        tool_error = make_tool_error("production_agent", str(error), classify_error(error).value,
                                     recoverable=False)
        run.dispatcher.record_failure(self._session_id(run), tool_error)
        self._write_report(run)
        run.emitter.emit(ERROR, f"Production failed: {error}", tool="production_agent")

    def run(self, user_input: str, on_progress: Optional[ProgressCallback] = None) -> ProductionRunResult:
        """Produce a video for ``user_input``

        Progress events go to ``on_progress`` as dicts. The emitter is
        installed on the ToolContext for the duration of the run and always
        released afterwards.

        Raises:
            Exception: Anything fatal outside a tool call (LLM failures), after
                it has been recorded as a ``production_agent`` error
        """
        emitter = ProgressEmitter(on_progress)
        self.context.emitter = emitter
        started = time.time()
        run: Optional[RunContext] = None
        try:
            run = self._prepare(user_input, emitter)
            self._drive(run)
            return self._finish(run, started)
        except Exception as e:
            logger.error(f"[Orchestrator] Fatal error: {e}")
            if run is not None:
                self._record_fatal(run, e)
            else:
                emitter.emit(ERROR, f"Production failed: {e}", tool="production_agent")
            raise
        finally:
            self.context.emitter = None
            self.context.error_sink = None
            emitter.release()

    def describe_run(self) -> Dict[str, Any]:
        return {"mode": "monolithic", "maxIterations": self.max_iterations}
