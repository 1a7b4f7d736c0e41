"""
Quality control for content plans

Rule-based checks plus an optional AI critique. The validate/adjust loop
itself is driven by the orchestrator prompt; this module holds the scoring
and the timing rewrite so both tools and tests share one implementation.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.config import MAX_QUALITY_ITERATIONS, QUALITY_THRESHOLD
from ..core.state import ProductionState, get_scenes

logger = logging.getLogger(__name__)

ISSUE_PENALTY = 10
DURATION_TOLERANCE_SECONDS = 1.5
TARGET_TOLERANCE_RATIO = 0.25
MIN_SCENE_SECONDS = 2
MAX_SCENE_SECONDS = 30


class QualityLimitReached(Exception):
    """adjust_timing called after the iteration cap"""


class NarrationMissing(Exception):
    """adjust_timing called before every scene is narrated"""


def _issue(severity: str, message: str, scene_index: Optional[int] = None) -> Dict[str, Any]:
    issue = {"severity": severity, "message": message}
    if scene_index is not None:
        issue["sceneIndex"] = scene_index
    return issue


def collect_plan_issues(state: ProductionState) -> List[Dict[str, Any]]:
    """Deterministic checks over plan, narration and visuals"""
    scenes = get_scenes(state)
    if not scenes:
        return [_issue("critical", "Content plan has no scenes")]

    issues = []
    segments = state.get("narration_segments") or []
    visuals = state.get("visuals") or []

    for i, scene in enumerate(scenes):
        label = scene.get("name") or f"Scene {i + 1}"
        if not (scene.get("narration_script") or "").strip():
            issues.append(_issue("major", f"{label} has no narration script", i))
        if not (scene.get("visual_description") or "").strip():
            issues.append(_issue("major", f"{label} has no visual description", i))

        duration = scene.get("duration") or 0
        if duration < MIN_SCENE_SECONDS or duration > MAX_SCENE_SECONDS:
            issues.append(_issue("minor", f"{label} duration {duration:.1f}s is outside "
                                          f"{MIN_SCENE_SECONDS}-{MAX_SCENE_SECONDS}s", i))

        if i < len(segments):
            audio_duration = segments[i].get("audio_duration") or 0
            if audio_duration and abs(audio_duration - duration) > DURATION_TOLERANCE_SECONDS:
                issues.append(_issue("minor", f"{label} lasts {duration:.1f}s but its narration "
                                              f"runs {audio_duration:.1f}s", i))

        if i < len(visuals) and visuals[i].get("is_placeholder"):
            issues.append(_issue("minor", f"{label} uses a placeholder visual", i))

    if len(segments) < len(scenes):
        issues.append(_issue("major", f"Narration missing for {len(scenes) - len(segments)} scene(s)"))

    plan = state.get("content_plan") or {}
    target = plan.get("target_duration")
    total = plan.get("total_duration") or sum(s.get("duration") or 0 for s in scenes)
    if target and abs(total - target) / target > TARGET_TOLERANCE_RATIO:
        issues.append(_issue("minor", f"Total duration {total:.1f}s is far from the requested {target}s"))

    return issues


def suggestions_for(issues: List[Dict[str, Any]]) -> List[str]:
    suggestions = []
    messages = " ".join(issue["message"] for issue in issues)
    if "narration runs" in messages or "outside" in messages:
        suggestions.append("Call adjust_timing to align scene durations with narration")
    if "Narration missing" in messages:
        suggestions.append("Call narrate_scenes before validating again")
    if "placeholder" in messages:
        suggestions.append("Regenerate visuals for placeholder scenes")
    if "no narration script" in messages or "no visual description" in messages:
        suggestions.append("Re-plan the video with a more specific topic")
    return suggestions


def evaluate_plan(state: ProductionState, critic: Optional[Any] = None) -> Dict[str, Any]:
    """Score a plan 0-100

    The rule-based score is 100 minus a fixed penalty per issue. When a
    critic (an object with ``critique_plan(content_plan)``) is supplied, its
    score replaces the rule score and its issues are merged in.
    """
    issues = collect_plan_issues(state)
    score = max(0, 100 - ISSUE_PENALTY * len(issues))
    suggestions = suggestions_for(issues)

    if critic is not None and state.get("content_plan"):
        critique = critic.critique_plan(state["content_plan"])
        score = int(critique.get("score", score))
        for issue in critique.get("issues") or []:
            issues.append(_issue(issue.get("severity", "minor"), issue.get("message", ""),
                                 issue.get("scene_index")))
        suggestions.extend(critique.get("suggestions") or [])

    return {"score": max(0, min(100, score)), "issues": issues, "suggestions": suggestions}


def record_validation(state: ProductionState, evaluation: Dict[str, Any]) -> Dict[str, Any]:
    """Commit a score to state and build the validate_plan payload fields"""
    score = evaluation["score"]
    issues = evaluation["issues"]
    has_narration = bool(state.get("narration_segments"))
    has_critical = any(issue["severity"] == "critical" for issue in issues)

    state["quality_score"] = score
    state["best_quality_score"] = max(state.get("best_quality_score") or 0, score)
    iterations = state.get("quality_iterations", 0)

    report = {
        "approved": score >= QUALITY_THRESHOLD and not has_critical,
        "score": score,
        "bestScore": state["best_quality_score"],
        "iterations": iterations,
        "needsImprovement": score < QUALITY_THRESHOLD or not has_narration,
        "canRetry": iterations < MAX_QUALITY_ITERATIONS,
        "issues": issues,
        "suggestions": evaluation["suggestions"],
    }
    state["quality_report"] = report
    logger.info(f"[Quality] Score {score} (best {state['best_quality_score']}, iteration {iterations})")
    return report


def apply_narration_timing(state: ProductionState) -> Dict[str, Any]:
    """Set every scene duration to its measured narration length

    Raises:
        QualityLimitReached: When the iteration cap was already used
        NarrationMissing: When some scene has no narration yet
    """
    iterations = state.get("quality_iterations", 0)
    if iterations >= MAX_QUALITY_ITERATIONS:
        raise QualityLimitReached(f"Maximum quality iterations ({MAX_QUALITY_ITERATIONS}) reached")

    scenes = get_scenes(state)
    segments = state.get("narration_segments") or []
    if not segments:
        raise NarrationMissing("No narration found. Run narrate_scenes first.")
    if len(segments) < len(scenes):
        raise NarrationMissing(f"Narration covers {len(segments)} of {len(scenes)} scenes. "
                               f"Run narrate_scenes for the missing scenes first.")

    for i, scene in enumerate(scenes):
        if i < len(segments) and segments[i].get("audio_duration"):
            scene["duration"] = segments[i]["audio_duration"]

    total = sum(scene.get("duration") or 0 for scene in scenes)
    state["content_plan"]["total_duration"] = total
    state["quality_iterations"] = iterations + 1
    return {"iteration": iterations + 1, "totalDuration": total, "sceneCount": len(scenes)}
