"""
Supervisor mode: four stage subagents sequenced by a langgraph StateGraph

Each subagent is a tool-calling loop over one slice of the registry with its
own short system prompt. They share the run's ToolDispatcher (session id,
step tracker, error tracker), so the session state after a supervisor run
has the same shape as after a monolithic run.

Stage failures (the subagent's LLM loop raising) go through the same retry
harness as tools, using the stage strategies below.
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional, TypedDict

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langgraph.checkpoint.memory import MemorySaver
from langgraph.graph import END, START, StateGraph

from ..core.config import QUALITY_THRESHOLD, SUBAGENT_MAX_ITERATIONS
from ..core.progress import FALLBACK, STAGE_PROGRESS, WARNING
from ..core.state import get_scenes
from ..core.tool_registry import ToolGroup, ToolRegistry
from ..prompts import (
    AGENT_REGISTRY,
    CONTENT_STAGE_INSTRUCTIONS,
    ENHANCEMENT_EXPORT_STAGE_INSTRUCTIONS,
    IMPORT_STAGE_INSTRUCTIONS,
    MEDIA_STAGE_INSTRUCTIONS,
    SUBAGENT_PROMPT_TEMPLATE,
)
from .orchestrator import ProductionOrchestrator, RunContext
from .recovery import (
    ExecutionResult,
    FallbackRequest,
    RecoveryStrategy,
    apply_fallback,
    execute_with_retry,
    get_recovery_strategy,
)

logger = logging.getLogger(__name__)

IMPORT_STAGE = "import_agent"
CONTENT_STAGE = "content_agent"
MEDIA_STAGE = "media_agent"
EXPORT_STAGE = "enhancement_export_agent"
STAGES = (IMPORT_STAGE, CONTENT_STAGE, MEDIA_STAGE, EXPORT_STAGE)

# Share of overall progress each stage accounts for
STAGE_WEIGHTS = {IMPORT_STAGE: 10, CONTENT_STAGE: 30, MEDIA_STAGE: 40, EXPORT_STAGE: 20}

STAGE_STRATEGIES: Dict[str, RecoveryStrategy] = {
    IMPORT_STAGE: RecoveryStrategy(tool=IMPORT_STAGE, max_retries=2, initial_delay_ms=1000, continue_on_failure=True),
    CONTENT_STAGE: RecoveryStrategy(tool=CONTENT_STAGE, max_retries=3, initial_delay_ms=1000,
                                    continue_on_failure=False),
    MEDIA_STAGE: RecoveryStrategy(tool=MEDIA_STAGE, max_retries=3, initial_delay_ms=1000, continue_on_failure=True),
    EXPORT_STAGE: RecoveryStrategy(tool=EXPORT_STAGE, max_retries=3, initial_delay_ms=1000, continue_on_failure=True),
}

TOPIC_WORKFLOW = "topic-workflow"


class SupervisorState(TypedDict, total=False):
    has_import_signal: bool
    session_id: Optional[str]
    completed_stages: List[str]
    failed_stages: List[str]
    progress: int
    halted: bool


class SupervisorOrchestrator(ProductionOrchestrator):
    """Runs the import, content, media and enhancement/export subagents in order"""

    def __init__(self, *args, subagent_max_iterations: int = SUBAGENT_MAX_ITERATIONS, **kwargs):
        super().__init__(*args, **kwargs)
        self.subagent_max_iterations = subagent_max_iterations
        self._run: Optional[RunContext] = None

    def describe_run(self) -> Dict[str, Any]:
        return {"mode": "supervisor", "stages": list(STAGES), "maxIterations": self.subagent_max_iterations}

    @property
    def iteration_bound(self) -> int:
        return self.subagent_max_iterations

    # --- Subagent prompts ---

    def _stage_registry(self, run: RunContext, stage: str) -> ToolRegistry:
        entry = AGENT_REGISTRY[stage]
        return run.registry.subset([ToolGroup[g] for g in entry["groups"]], entry["extra_tools"])

    def _session_line(self, run: RunContext) -> str:
        session_id = self._session_id(run)
        if session_id:
            return f"Session id: {session_id} (pass it as contentPlanId)"
        return "No session yet; the first planning or import tool creates one"

    def _instructions(self, run: RunContext, stage: str) -> str:
        if stage == IMPORT_STAGE:
            return IMPORT_STAGE_INSTRUCTIONS
        if stage == CONTENT_STAGE:
            return CONTENT_STAGE_INSTRUCTIONS.format(quality_threshold=QUALITY_THRESHOLD)
        if stage == MEDIA_STAGE:
            return MEDIA_STAGE_INSTRUCTIONS.format(scene_count=len(get_scenes(self._state(run))))
        return ENHANCEMENT_EXPORT_STAGE_INSTRUCTIONS

    def subagent_prompt(self, run: RunContext, stage: str, registry: ToolRegistry) -> str:
        return SUBAGENT_PROMPT_TEMPLATE["template"].format(
            stage_title=AGENT_REGISTRY[stage]["stage_title"],
            tool_catalog=registry.describe(),
            session_line=self._session_line(run),
            instructions=self._instructions(run, stage),
        )

    def _state(self, run: RunContext):
        session_id = self._session_id(run)
        return self.store.get(session_id) if session_id else None

    # --- Stage execution ---

    def _run_subagent(self, run: RunContext, stage: str) -> bool:
        registry = self._stage_registry(run, stage)
        messages: List[BaseMessage] = [
            SystemMessage(content=self.subagent_prompt(run, stage, registry)),
            HumanMessage(content=run.user_message),
        ]
        return self.run_tool_loop(run, registry, messages, self.subagent_max_iterations, label=f"Supervisor:{stage}")

    def _planned_weight(self, run: RunContext) -> int:
        stages = STAGES if run.intent.has_import_signal else STAGES[1:]
        return sum(STAGE_WEIGHTS[s] for s in stages)

    def _emit_stage(self, run: RunContext, stage: str, status: str, progress: int):
        # progress is the summed weight of finished stages, scaled over the stages this run plans
        overall = int(round(progress * 100 / self._planned_weight(run)))
        run.emitter.emit(STAGE_PROGRESS, f"{AGENT_REGISTRY[stage]['stage_title'].capitalize()} stage {status}",
                         stage=stage, status=status, weight=STAGE_WEIGHTS[stage], overallProgress=min(overall, 100))

    def _stage_fallback(self, run: RunContext, stage: str) -> Optional[str]:
        """Stage-level substitute once a subagent has failed for good"""
        session_id = self._session_id(run)
        if stage == IMPORT_STAGE:
            return TOPIC_WORKFLOW
        if stage == MEDIA_STAGE and session_id:
            state = self.store.get(session_id) or {}
            if len(state.get("visuals") or []) < len(get_scenes(state)):
                tool = "generate_visuals"
            else:
                return None
        elif stage == EXPORT_STAGE and session_id:
            tool = "export_final_video"
        else:
            return None

        strategy = get_recovery_strategy(tool)
        request = FallbackRequest(tool=tool, session_id=session_id, arguments={},
                                  failure=ExecutionResult(success=False), context=self.context)
        payload = apply_fallback(strategy, request)
        if payload is None:
            return None
        if payload.get("assetBundle"):
            run.emitter.emit(FALLBACK, f"{tool}: asset bundle available", tool=tool,
                             fallbackAction=payload["fallbackApplied"], assetBundle=payload["assetBundle"])
        return payload["fallbackApplied"]

    def _execute_stage(self, graph_state: SupervisorState, stage: str) -> SupervisorState:
        run = self._run
        completed = list(graph_state.get("completed_stages") or [])
        failed = list(graph_state.get("failed_stages") or [])
        progress = graph_state.get("progress", 0)
        self._emit_stage(run, stage, "started", progress)
        logger.info(f"[Supervisor] Starting {stage}")

        def on_retry(attempt: int, error: BaseException, delay_ms: int):
            run.emitter.emit(WARNING, f"{stage} failed ({error}); restarting in {delay_ms}ms",
                             stage=stage, attempt=attempt, delayMs=delay_ms)

        result = execute_with_retry(lambda: self._run_subagent(run, stage), STAGE_STRATEGIES[stage],
                                    on_retry=on_retry, sleep=self.sleep)

        if result.success and result.value:
            run.limit_reached = True
            failed.append(stage)
            self._emit_stage(run, stage, "limit_reached", progress)
            logger.warning(f"[Supervisor] {stage} hit its iteration limit ({self.subagent_max_iterations}); stopping")
            return {"failed_stages": failed, "halted": True, "session_id": self._session_id(run)}

        if result.success and not run.dispatcher.is_fatal:
            completed.append(stage)
            progress += STAGE_WEIGHTS[stage]
            self._emit_stage(run, stage, "completed", progress)
            return {"completed_stages": completed, "progress": progress, "session_id": self._session_id(run)}

        failed.append(stage)
        if not result.success:
            run.dispatcher.record_failure(self._session_id(run), result.error)

        if STAGE_STRATEGIES[stage].continue_on_failure:
            action = self._stage_fallback(run, stage)
            if run.dispatcher.is_fatal and action == TOPIC_WORKFLOW:
                run.dispatcher.downgrade_fatal(action)
            elif not result.success and action:
                result.error["fallback_applied"] = action
                run.dispatcher.tracker.fallback_count += 1
            if not run.dispatcher.is_fatal:
                if action:
                    run.emitter.emit(FALLBACK, f"{stage}: applying {action}", tool=stage, fallbackAction=action)
                progress += STAGE_WEIGHTS[stage]
                self._emit_stage(run, stage, "failed", progress)
                logger.warning(f"[Supervisor] {stage} failed; continuing with the next stage")
                return {"failed_stages": failed, "progress": progress, "session_id": self._session_id(run)}

        self._emit_stage(run, stage, "failed", progress)
        logger.error(f"[Supervisor] {stage} failed; stopping the pipeline")
        return {"failed_stages": failed, "halted": True, "session_id": self._session_id(run)}

    # --- Graph ---

    def _node(self, stage: str):
        def node(graph_state: SupervisorState) -> SupervisorState:
            return self._execute_stage(graph_state, stage)
        return node

    def _route_start(self, graph_state: SupervisorState) -> str:
        if graph_state.get("has_import_signal"):
            return IMPORT_STAGE
        logger.info("[Supervisor] No import signal; skipping import stage")
        return CONTENT_STAGE

    def _route_after(self, next_stage: str):
        def route(graph_state: SupervisorState) -> str:
            if graph_state.get("halted") or self._run.dispatcher.is_fatal:
                return END
            if next_stage == MEDIA_STAGE and not get_scenes(self._state(self._run)):
                logger.error("[Supervisor] No content plan after content stage; stopping")
                return END
            return next_stage
        return route

    def build_graph(self):
        workflow = StateGraph(SupervisorState)
        for stage in STAGES:
            workflow.add_node(stage, self._node(stage))

        workflow.add_conditional_edges(START, self._route_start, {IMPORT_STAGE: IMPORT_STAGE,
                                                                  CONTENT_STAGE: CONTENT_STAGE})
        workflow.add_conditional_edges(IMPORT_STAGE, self._route_after(CONTENT_STAGE),
                                       {CONTENT_STAGE: CONTENT_STAGE, END: END})
        workflow.add_conditional_edges(CONTENT_STAGE, self._route_after(MEDIA_STAGE),
                                       {MEDIA_STAGE: MEDIA_STAGE, END: END})
        workflow.add_conditional_edges(MEDIA_STAGE, self._route_after(EXPORT_STAGE),
                                       {EXPORT_STAGE: EXPORT_STAGE, END: END})
        workflow.add_edge(EXPORT_STAGE, END)
        return workflow.compile(checkpointer=MemorySaver())

    def _drive(self, run: RunContext):
        self._run = run
        try:
            graph = self.build_graph()
            started = time.time()
            final = graph.invoke(
                {"has_import_signal": run.intent.has_import_signal, "completed_stages": [],
                 "failed_stages": [], "progress": 0, "halted": False},
                config={"configurable": {"thread_id": uuid.uuid4().hex}},
            )
            logger.info(f"[Supervisor] Stages completed: {final.get('completed_stages')}, "
                        f"failed: {final.get('failed_stages')} ({time.time() - started:.1f}s)")
        finally:
            self._run = None
