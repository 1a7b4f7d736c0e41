"""Utility tools: production status and completion"""

import logging
from typing import Any, Dict

from ..core.context import ToolContext
from ..core.state import ProductionState
from .base import SessionArgs, load_session

logger = logging.getLogger(__name__)


def summarize_assets(state: ProductionState) -> Dict[str, Any]:
    """Counts of what a session has produced so far"""
    plan = state.get("content_plan") or {}
    visuals = state.get("visuals") or []
    export = state.get("export_result") or {}
    return {
        "hasContentPlan": bool(plan.get("scenes")),
        "sceneCount": len(plan.get("scenes") or []),
        "narrationSegments": len(state.get("narration_segments") or []),
        "visualCount": len(visuals),
        "placeholderCount": len([v for v in visuals if v.get("is_placeholder")]),
        "animatedCount": len([v for v in visuals if v.get("video_url") or v.get("type") == "video"]),
        "hasSfxPlan": bool(state.get("sfx_plan")),
        "hasMusic": bool(state.get("music_url")),
        "hasMixedAudio": bool(state.get("mixed_audio")),
        "hasSubtitles": bool(state.get("subtitles")),
        "hasExport": bool(export.get("video")),
        "downloadUrl": export.get("download_url"),
        "hasImportedContent": bool(state.get("imported_content")),
        "cloudUploaded": bool(state.get("cloud_upload")),
    }


def get_production_status(context: ToolContext, args: SessionArgs) -> Dict[str, Any]:
    """Report which assets exist for a session, its quality scores and recorded errors."""
    state, error = load_session(context, args.content_plan_id)
    if error:
        return error
    assets = summarize_assets(state)
    errors = state.get("errors") or []
    return {
        "success": True,
        "sessionId": args.content_plan_id,
        "assets": assets,
        "qualityScore": state.get("quality_score"),
        "bestQualityScore": state.get("best_quality_score", 0),
        "qualityIterations": state.get("quality_iterations", 0),
        "errorCount": len(errors),
        "errors": [{"tool": e["tool"], "error": e["error"], "category": e["category"]} for e in errors],
        "isComplete": bool(state.get("is_complete")),
    }


def mark_complete(context: ToolContext, args: SessionArgs) -> Dict[str, Any]:
    """Mark the production as finished. Call this last."""
    state, error = load_session(context, args.content_plan_id)
    if error:
        return error

    exported = bool((state.get("export_result") or {}).get("video"))
    if not exported:
        context.record_error(
            args.content_plan_id,
            "mark_complete",
            "Export skipped: production marked complete without a rendered video",
            category="permanent",
        )

    context.store.update(args.content_plan_id, lambda s: s.update({"is_complete": True}))
    logger.info(f"[Status] {args.content_plan_id} marked complete (exported={exported})")
    payload = {
        "success": True,
        "sessionId": args.content_plan_id,
        "isComplete": True,
        "exported": exported,
        "assets": summarize_assets(context.store.require(args.content_plan_id)),
        "message": "Production complete" if exported else "Production complete without an exported video",
    }
    if not exported:
        payload["warning"] = "No video was exported; call export_final_video to render one"
    return payload
