"""Agent layer: intent detection, recovery, caching and the orchestrators"""

from .base import format_time, parse_tool_payload, dump_payload
from .intent import IntentResult, analyze_intent, build_user_message
from .recovery import ErrorCategory, ErrorTracker, classify_error, execute_with_retry, get_recovery_strategy
from .result_cache import StepTracker, check_cached_result, create_step_identifier
from .dispatcher import ToolDispatcher


def create_orchestrator(context, mode=None, **kwargs):
    """Orchestrator for ``mode`` ("monolithic" or "supervisor", ORCHESTRATION_MODE when None)

    The orchestrator modules import the tools package, which itself imports
    agents.quality, so they are loaded here on first use.
    """
    from ..core.config import ORCHESTRATION_MODE

    mode = (mode or ORCHESTRATION_MODE).lower()
    if mode == "supervisor":
        from .supervisor import SupervisorOrchestrator
        return SupervisorOrchestrator(context, **kwargs)
    if mode == "monolithic":
        from .orchestrator import ProductionOrchestrator
        return ProductionOrchestrator(context, **kwargs)
    raise ValueError(f"Unknown orchestration mode: {mode}. Must be 'monolithic' or 'supervisor'.")


__all__ = [
    'format_time',
    'parse_tool_payload',
    'dump_payload',
    'IntentResult',
    'analyze_intent',
    'build_user_message',
    'ErrorCategory',
    'ErrorTracker',
    'classify_error',
    'execute_with_retry',
    'get_recovery_strategy',
    'StepTracker',
    'check_cached_result',
    'create_step_identifier',
    'ToolDispatcher',
    'create_orchestrator'
]
