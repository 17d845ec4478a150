"""Task recommendations ranked by a cheap context preview."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping, Sequence

from pydantic import ValidationError as PydanticValidationError

from asd_context.context.filtering import basic_relevance_score
from asd_context.context.models import (
    AgentDefinition,
    ContextPreview,
    RecommendationSet,
    TaskRecommendation,
)
from asd_context.context.store import ContextStore
from asd_context.interfaces import ITaskGatherer

log = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    return value if isinstance(value, Mapping) else {}


def _unit(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return min(max(float(value), 0.0), 1.0)


def preview_from_gathered(gathered: Mapping[str, Any]) -> ContextPreview:
    validation = _section(gathered, "validation")
    performance = _section(_section(gathered, "metadata"), "performance")
    return ContextPreview(
        relevance_score=_unit(validation.get("relevance_score")),
        completeness=_unit(validation.get("completeness")),
        estimated_time_ms=float(performance.get("gathering_time_ms") or 0.0),
        has_required_context=bool(validation.get("is_sufficient")),
        confidence="high",
    )


def neutral_preview(error: str) -> ContextPreview:
    return ContextPreview(
        relevance_score=NEUTRAL_SCORE,
        completeness=NEUTRAL_SCORE,
        has_required_context=False,
        confidence="low",
        error=error,
    )


async def local_preview(
    candidate: TaskRecommendation,
    definition: AgentDefinition,
    store: ContextStore,
) -> ContextPreview:
    """Preview from the spec/task context documents on disk, no gatherer involved."""
    started = time.perf_counter()
    paths = store.get_context_paths()
    semi = await store.load_semi_dynamic(candidate.spec_id, candidate.task_id)

    found = {
        "spec": paths.spec_context(candidate.spec_id).is_file(),
        "task": paths.task_context(candidate.task_id).is_file(),
    }
    content = {
        "research_findings": semi.research_findings,
        "implementation_decisions": semi.implementation_decisions,
    }
    return ContextPreview(
        relevance_score=basic_relevance_score(content, definition.context_requirements),
        completeness=sum(found.values()) / len(found),
        estimated_time_ms=round((time.perf_counter() - started) * 1000, 3),
        has_required_context=all(found.values()),
        confidence="high",
    )


async def _preview(
    candidate: TaskRecommendation,
    agent_type: str,
    definition: AgentDefinition,
    store: ContextStore,
    gatherer: ITaskGatherer | None,
) -> ContextPreview:
    try:
        if gatherer is None:
            return await local_preview(candidate, definition, store)
        gathered = await gatherer.gather_task_context(
            spec_id=candidate.spec_id,
            task_id=candidate.task_id,
            agent_type=agent_type,
            include_files=False,
            use_cache=True,
        )
        return preview_from_gathered(gathered)
    except Exception as exc:
        log.warning(
            "Context preview failed for %s/%s: %s", candidate.spec_id, candidate.task_id, exc
        )
        return neutral_preview(str(exc))


async def recommend_tasks(
    agent_type: str,
    candidates: Sequence[Mapping[str, Any]],
    *,
    definition: AgentDefinition,
    store: ContextStore,
    gatherer: ITaskGatherer | None = None,
    limit: int = 3,
) -> RecommendationSet:
    """Preview the first *limit* candidates and rank them.

    Previewed candidates are ordered by ``0.7 * relevance + 0.3 * completeness``
    (stable on ties); the rest follow in router order without a preview.
    """
    recommendations: list[TaskRecommendation] = []
    for candidate in candidates:
        try:
            recommendations.append(TaskRecommendation.model_validate(dict(candidate)))
        except PydanticValidationError as exc:
            log.warning("Skipping malformed task candidate %s: %s", dict(candidate), exc)

    head, tail = recommendations[:limit], recommendations[limit:]
    previews = await asyncio.gather(
        *(_preview(c, agent_type, definition, store, gatherer) for c in head)
    )
    previewed = [
        c.model_copy(update={"context_preview": p}) for c, p in zip(head, previews)
    ]
    previewed.sort(key=lambda r: r.context_preview.rank_score, reverse=True)

    log.info(
        "Recommended %d tasks for %s (%d previewed)", len(recommendations), agent_type, len(head)
    )
    return RecommendationSet(agent_type=agent_type, recommendations=previewed + tail)
