"""
Error recovery for tool dispatch

Per-tool recovery strategies are plain data (RECOVERY_STRATEGIES). The
harness classifies exceptions, retries them with tenacity, and applies the
strategy's fallback when a tool ultimately fails. Adding a tool only needs
a table entry; fallback handlers are looked up by action name.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import requests
from pydantic import ValidationError
from tenacity import Retrying, stop_after_attempt
from tenacity.retry import retry_base

from ..core.errors import CloudflareBlockedError, ProviderNotConfiguredError, SessionNotFoundError
from ..core.state import PartialSuccessReport, ToolError, make_tool_error

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    TRANSIENT = "transient"
    RECOVERABLE = "recoverable"
    PERMANENT = "permanent"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"


NON_RETRYABLE = (ErrorCategory.PERMANENT, ErrorCategory.VALIDATION, ErrorCategory.AUTHENTICATION)


class FallbackAction(str, Enum):
    USE_PLACEHOLDER_VISUAL = "use-placeholder-visual"
    FALL_BACK_TO_STATIC_IMAGE = "fall-back-to-static-image"
    SKIP_SFX = "skip-sfx"
    KEEP_ORIGINAL_IMAGE = "keep-original-image"
    PROVIDE_ASSET_BUNDLE = "provide-asset-bundle"
    SKIP_AUDIO_SOURCE = "skip-audio-source"
    NONE = "none"


@dataclass(frozen=True)
class RecoveryStrategy:
    tool: str
    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2.0
    jitter: bool = True
    continue_on_failure: bool = True
    fallback_action: FallbackAction = FallbackAction.NONE

    def delay_ms(self, retry_number: int) -> int:
        """Backoff before retry ``retry_number`` (1-based), clamped to max_delay_ms"""
        delay = self.initial_delay_ms * (self.backoff_multiplier ** (retry_number - 1))
        if self.jitter:
            delay *= random.uniform(0.75, 1.25)
        return int(min(delay, self.max_delay_ms))


def _strategy(tool, max_retries, initial_delay_ms, max_delay_ms, continue_on_failure=True,
              fallback_action=FallbackAction.NONE) -> RecoveryStrategy:
    return RecoveryStrategy(
        tool=tool,
        max_retries=max_retries,
        initial_delay_ms=initial_delay_ms,
        max_delay_ms=max_delay_ms,
        continue_on_failure=continue_on_failure,
        fallback_action=fallback_action,
    )


RECOVERY_STRATEGIES: Dict[str, RecoveryStrategy] = {
    # Content: the pipeline cannot continue without a plan or narration
    "plan_video": _strategy("plan_video", 3, 1000, 10000, continue_on_failure=False),
    "narrate_scenes": _strategy("narrate_scenes", 3, 1000, 10000, continue_on_failure=False),
    "validate_plan": _strategy("validate_plan", 2, 500, 5000),
    "adjust_timing": _strategy("adjust_timing", 1, 500, 2000),

    # Media
    "generate_visuals": _strategy("generate_visuals", 3, 2000, 15000,
                                  fallback_action=FallbackAction.USE_PLACEHOLDER_VISUAL),
    "generate_video": _strategy("generate_video", 2, 2000, 15000,
                                fallback_action=FallbackAction.FALL_BACK_TO_STATIC_IMAGE),
    "animate_image": _strategy("animate_image", 2, 1000, 10000,
                               fallback_action=FallbackAction.FALL_BACK_TO_STATIC_IMAGE),
    "generate_music": _strategy("generate_music", 2, 2000, 15000),
    "plan_sfx": _strategy("plan_sfx", 2, 1000, 8000, fallback_action=FallbackAction.SKIP_SFX),

    # Enhancement
    "remove_background": _strategy("remove_background", 2, 1000, 8000,
                                   fallback_action=FallbackAction.KEEP_ORIGINAL_IMAGE),
    "restyle_image": _strategy("restyle_image", 2, 1000, 8000,
                               fallback_action=FallbackAction.KEEP_ORIGINAL_IMAGE),
    "mix_audio_tracks": _strategy("mix_audio_tracks", 2, 1000, 8000,
                                  fallback_action=FallbackAction.SKIP_AUDIO_SOURCE),

    # Export
    "generate_subtitles": _strategy("generate_subtitles", 2, 500, 5000),
    "export_final_video": _strategy("export_final_video", 2, 2000, 15000,
                                    fallback_action=FallbackAction.PROVIDE_ASSET_BUNDLE),

    # Import
    "import_youtube_content": _strategy("import_youtube_content", 3, 2000, 15000, continue_on_failure=False),
    "transcribe_audio_file": _strategy("transcribe_audio_file", 3, 1000, 10000, continue_on_failure=False),
}


def get_recovery_strategy(tool_name: str) -> RecoveryStrategy:
    """Strategy for a tool, or the default (3 retries, continue, no fallback)"""
    strategy = RECOVERY_STRATEGIES.get(tool_name)
    if strategy is None:
        return RecoveryStrategy(tool=tool_name)
    return strategy


# --- Classification ---

TRANSIENT_MARKERS = (
    "timeout", "timed out", "network", "fetch failed", "econnrefused", "enotfound",
    "econnreset", "temporarily unavailable", "rate limit", "quota exceeded",
)

AUTH_MARKERS = ("api key", "unauthorized", "credentials", "not configured")

CLOUDFLARE_MARKERS = ("challenge-platform", "cf-browser-verification", "Just a moment...", "cf_chl_")


def _status_code(error: BaseException) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if status is None and isinstance(error, requests.HTTPError) and error.response is not None:
        status = error.response.status_code
    return status


def is_cloudflare_block(error: BaseException) -> bool:
    """True when a provider answered with a Cloudflare challenge page"""
    if isinstance(error, CloudflareBlockedError):
        return True
    body = getattr(error, "body", None) or ""
    text = f"{error} {body}"
    return any(marker in text for marker in CLOUDFLARE_MARKERS)


def classify_error(error: BaseException) -> ErrorCategory:
    if isinstance(error, ValidationError):
        return ErrorCategory.VALIDATION
    if isinstance(error, ProviderNotConfiguredError):
        return ErrorCategory.AUTHENTICATION
    if isinstance(error, SessionNotFoundError):
        return ErrorCategory.PERMANENT
    if is_cloudflare_block(error):
        return ErrorCategory.TRANSIENT

    status = _status_code(error)
    if status is not None:
        if status in (401, 403):
            return ErrorCategory.AUTHENTICATION
        if status == 429 or status >= 500:
            return ErrorCategory.TRANSIENT
        if 400 <= status < 500:
            return ErrorCategory.PERMANENT

    if isinstance(error, (requests.Timeout, requests.ConnectionError, TimeoutError, ConnectionError)):
        return ErrorCategory.TRANSIENT

    message = str(error).lower()
    if any(marker in message for marker in AUTH_MARKERS):
        return ErrorCategory.AUTHENTICATION
    if any(marker in message for marker in TRANSIENT_MARKERS):
        return ErrorCategory.TRANSIENT
    return ErrorCategory.RECOVERABLE


# --- Retry ---

@dataclass
class ExecutionResult:
    success: bool
    value: Any = None
    error: Optional[ToolError] = None
    exception: Optional[BaseException] = None
    category: Optional[ErrorCategory] = None
    retry_count: int = 0


class _retry_if_retryable(retry_base):
    """Transient errors use the whole budget; unclassified ones get a single retry"""

    def __call__(self, retry_state) -> bool:
        if retry_state.outcome is None or not retry_state.outcome.failed:
            return False
        category = classify_error(retry_state.outcome.exception())
        if category == ErrorCategory.TRANSIENT:
            return True
        return category == ErrorCategory.RECOVERABLE and retry_state.attempt_number == 1


RetryCallback = Callable[[int, BaseException, int], None]


def execute_with_retry(fn: Callable[[], Any], strategy: RecoveryStrategy,
                       on_retry: Optional[RetryCallback] = None,
                       sleep: Callable[[float], None] = time.sleep) -> ExecutionResult:
    """Run ``fn`` under the strategy's retry policy

    Args:
        fn: Zero-argument callable doing the tool work
        strategy: Recovery strategy for the tool
        on_retry: Called as ``on_retry(attempt, error, delay_ms)`` before each backoff sleep
        sleep: Sleep function (seconds), injectable for tests

    Returns:
        ExecutionResult; failures carry a ToolError with the retry count
    """
    delays: Dict[int, int] = {}
    attempts = {"count": 0}

    def wait(retry_state) -> float:
        delay_ms = strategy.delay_ms(retry_state.attempt_number)
        delays[retry_state.attempt_number] = delay_ms
        return delay_ms / 1000.0

    def before_sleep(retry_state):
        error = retry_state.outcome.exception()
        delay_ms = delays.get(retry_state.attempt_number, 0)
        logger.warning(f"[Recovery] {strategy.tool} attempt {retry_state.attempt_number}/"
                       f"{strategy.max_retries + 1} failed: {error}. Retrying in {delay_ms}ms")
        if on_retry is not None:
            on_retry(retry_state.attempt_number, error, delay_ms)

    def attempt():
        attempts["count"] += 1
        return fn()

    retrying = Retrying(
        stop=stop_after_attempt(strategy.max_retries + 1),
        wait=wait,
        retry=_retry_if_retryable(),
        before_sleep=before_sleep,
        sleep=sleep,
        reraise=True,
    )

    try:
        value = retrying(attempt)
    except Exception as e:
        category = classify_error(e)
        retry_count = max(attempts["count"] - 1, 0)
        recoverable = category == ErrorCategory.VALIDATION or (
            strategy.continue_on_failure and category != ErrorCategory.AUTHENTICATION
        )
        logger.error(f"[Recovery] {strategy.tool} failed after {attempts['count']} attempt(s) "
                     f"({category.value}): {e}")
        return ExecutionResult(
            success=False,
            exception=e,
            category=category,
            retry_count=retry_count,
            error=make_tool_error(strategy.tool, str(e), category.value, retry_count=retry_count,
                                  recoverable=recoverable),
        )

    return ExecutionResult(success=True, value=value, retry_count=max(attempts["count"] - 1, 0))


# --- Fallbacks ---

@dataclass
class FallbackRequest:
    """Everything a fallback handler may need to substitute a failed tool"""
    tool: str
    session_id: Optional[str]
    arguments: Dict[str, Any]
    failure: ExecutionResult
    context: Any


FallbackHandler = Callable[[FallbackRequest], Optional[Dict[str, Any]]]


def _scene_index(request: FallbackRequest) -> int:
    return int(request.arguments.get("sceneIndex") or 0)


def _placeholder_visuals(request: FallbackRequest) -> Optional[Dict[str, Any]]:
    from ..tools.media import fill_placeholder_visuals
    filled = fill_placeholder_visuals(request.context, request.session_id)
    return {
        "success": True,
        "visualCount": filled["visualCount"],
        "placeholderCount": filled["placeholderCount"],
        "message": f"Visual generation failed; inserted {filled['placeholderCount']} placeholder visual(s)",
        "warnings": ["Some scenes use placeholder visuals and will render as blank frames"],
    }


def _static_image(request: FallbackRequest) -> Optional[Dict[str, Any]]:
    from ..tools.media import render_static_image, render_text_to_video
    index = _scene_index(request)
    aspect_ratio = request.arguments.get("aspectRatio")

    if request.tool == "animate_image" and is_cloudflare_block(request.failure.exception):
        visual = render_text_to_video(request.context, request.session_id, index, aspect_ratio)
        return {
            "success": True,
            "sceneIndex": index,
            "videoUrl": visual.get("url"),
            "fallbackApplied": "veo-text-to-video",
            "message": f"Animation provider blocked; scene {index + 1} generated with text-to-video instead",
        }

    visual = render_static_image(request.context, request.session_id, index,
                                 style=request.arguments.get("style"), aspect_ratio=aspect_ratio)
    return {
        "success": True,
        "sceneIndex": index,
        "imageUrl": visual.get("url"),
        "message": f"Video unavailable for scene {index + 1}; using a still image",
    }


def _skip_sfx(request: FallbackRequest) -> Optional[Dict[str, Any]]:
    def mutate(state):
        if "sfx" not in state["audio_omissions"]:
            state["audio_omissions"].append("sfx")

    if request.session_id and request.context.store.has(request.session_id):
        request.context.store.update(request.session_id, mutate)
    return {"success": True, "skipped": True, "message": "Sound effects skipped; the mix will omit ambient tracks"}


def _keep_original(request: FallbackRequest) -> Optional[Dict[str, Any]]:
    index = _scene_index(request)
    state = request.context.store.get(request.session_id) if request.session_id else None
    visuals = (state or {}).get("visuals") or []
    original = visuals[index].get("url") if index < len(visuals) else None
    return {
        "success": True,
        "sceneIndex": index,
        "imageUrl": original,
        "message": f"Enhancement failed; kept the original image for scene {index + 1}",
    }


def _asset_bundle(request: FallbackRequest) -> Optional[Dict[str, Any]]:
    from ..tools.export import build_asset_bundle
    state = request.context.store.get(request.session_id) if request.session_id else None
    if state is None:
        return None
    bundle, bundle_data = build_asset_bundle(state)
    return {
        "success": False,
        "error": request.failure.error["error"] if request.failure.error else "Export failed",
        "fallback": "asset_bundle",
        "assetBundle": bundle,
        "assetBundleData": bundle_data,
        "suggestion": "Download the individual assets and assemble the video in an external editor",
    }


def _narration_only_mix(request: FallbackRequest) -> Optional[Dict[str, Any]]:
    from ..tools.audio_mixing import narration_only_mix
    mixed = narration_only_mix(request.context, request.session_id)
    return {
        "success": True,
        "duration": mixed["duration"],
        "tracks": mixed["tracks"],
        "duckingApplied": False,
        "message": "Mixing failed; export will use narration audio only",
    }


FALLBACK_HANDLERS: Dict[FallbackAction, FallbackHandler] = {
    FallbackAction.USE_PLACEHOLDER_VISUAL: _placeholder_visuals,
    FallbackAction.FALL_BACK_TO_STATIC_IMAGE: _static_image,
    FallbackAction.SKIP_SFX: _skip_sfx,
    FallbackAction.KEEP_ORIGINAL_IMAGE: _keep_original,
    FallbackAction.PROVIDE_ASSET_BUNDLE: _asset_bundle,
    FallbackAction.SKIP_AUDIO_SOURCE: _narration_only_mix,
}


def can_apply_fallback(strategy: RecoveryStrategy) -> bool:
    return strategy.fallback_action != FallbackAction.NONE and strategy.continue_on_failure


def apply_fallback(strategy: RecoveryStrategy, request: FallbackRequest) -> Optional[Dict[str, Any]]:
    """Run the strategy's fallback; returns the substitute payload or None when none applies

    The payload carries ``fallbackApplied`` (the action name unless the handler
    substituted something more specific).
    """
    if not can_apply_fallback(strategy):
        return None
    handler = FALLBACK_HANDLERS.get(strategy.fallback_action)
    if handler is None:
        return None
    try:
        payload = handler(request)
    except Exception as e:
        logger.error(f"[Recovery] Fallback {strategy.fallback_action.value} for {strategy.tool} failed: {e}")
        return None
    if payload is None:
        return None
    payload.setdefault("fallbackApplied", strategy.fallback_action.value)
    logger.info(f"[Recovery] Applied {payload['fallbackApplied']} for {strategy.tool}")
    return payload


# --- Aggregation ---

@dataclass
class ErrorTracker:
    """Counts outcomes over a run and builds the partial success report"""
    total_attempted: int = 0
    succeeded: int = 0
    fallback_count: int = 0
    errors: List[ToolError] = field(default_factory=list)

    def record_success(self):
        self.total_attempted += 1
        self.succeeded += 1

    def record_failure(self, error: ToolError):
        self.total_attempted += 1
        self.errors.append(error)
        if error.get("fallback_applied"):
            self.fallback_count += 1

    def record_reported(self, error: ToolError):
        """A problem a tool reported without failing the call"""
        self.errors.append(error)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def has_fatal_errors(self) -> bool:
        return any(not e["recoverable"] for e in self.errors)

    def generate_report(self) -> PartialSuccessReport:
        failed = len([e for e in self.errors if not e.get("fallback_applied") and not e["recoverable"]])
        is_usable = not self.has_fatal_errors() and self.succeeded > 0

        if not self.errors:
            summary = "All operations completed successfully."
        elif is_usable:
            summary = (f"Production completed with {len(self.errors)} issue(s). "
                       f"{self.fallback_count} fallback(s) applied. Result is usable.")
        else:
            summary = (f"Production failed with {failed} critical error(s). "
                       f"Please review the errors and try again.")

        return {
            "total_attempted": self.total_attempted,
            "succeeded": self.succeeded,
            "fallback_applied": self.fallback_count,
            "failed": failed,
            "errors": list(self.errors),
            "summary": summary,
            "is_usable": is_usable,
        }


def format_errors_for_response(errors: List[ToolError]) -> str:
    """One line per error, for tool payloads and logs"""
    lines = []
    for error in errors:
        suffix = f" (fallback: {error['fallback_applied']})" if error.get("fallback_applied") else ""
        lines.append(f"- {error['tool']}: {error['error']}{suffix}")
    return "\n".join(lines)
