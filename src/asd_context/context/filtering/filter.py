"""Agent-specific relevance filtering of a context bundle.

Filtering never removes content.  It annotates nodes that match the
agent's requirements and include/exclude patterns, scores each layer, and
buckets layers by priority.  The result is a copy of the bundle with
``filtering`` populated.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from asd_context.context.filtering.patterns import extract_searchable_text, matches_pattern
from asd_context.context.filtering.relevance import (
    HIGH_PRIORITY_THRESHOLD,
    calculate_content_relevance,
    priority_bucket,
)
from asd_context.context.models import (
    AgentDefinition,
    AgentFilterRule,
    ContextBundle,
    FilteringInfo,
    NodeAnnotation,
    PrioritizedContent,
    RelevanceScore,
)

log = logging.getLogger(__name__)

FilterConfig = Mapping[str, AgentFilterRule | Mapping[str, Any]]


class RelevanceFilter:
    """Scores and annotates bundle layers for one agent."""

    def filter_context_for_agent(
        self,
        bundle: ContextBundle,
        agent_definition: AgentDefinition,
        filter_config: FilterConfig | None = None,
    ) -> ContextBundle:
        agent_type = agent_definition.agent_type
        requirements = list(agent_definition.context_requirements)
        rule = self._rule_for(agent_type, filter_config or {})

        layers = bundle.layers.dump_layers()
        annotations: dict[str, NodeAnnotation] = {}
        for name, content in layers.items():
            self._annotate(content, name, requirements, rule, annotations)

        scores = self.calculate_layer_relevance_scores(layers, requirements)
        filtering = FilteringInfo(
            applied=True,
            method="advanced",
            agent_type=agent_type,
            context_requirements=requirements,
            include_patterns=list(rule.include_patterns),
            exclude_patterns=list(rule.exclude_patterns),
            relevance_scores=scores,
            prioritized_content=self.prioritize_content(layers, scores),
            annotations=annotations,
        )

        excluded = sum(1 for a in annotations.values() if a.excluded)
        log.debug(
            "Filtered context for %s: %d nodes annotated, %d flagged excluded",
            agent_type,
            len(annotations),
            excluded,
        )
        return bundle.model_copy(update={"filtering": filtering})

    def apply_basic_filtering(
        self,
        bundle: ContextBundle,
        agent_definition: AgentDefinition,
    ) -> ContextBundle:
        """Fallback: a single aggregate score, no per-layer detail."""
        requirements = list(agent_definition.context_requirements)
        filtering = FilteringInfo(
            applied=True,
            method="basic",
            agent_type=agent_definition.agent_type,
            context_requirements=requirements,
            relevance_score=basic_relevance_score(bundle.layers.dump_layers(), requirements),
        )
        return bundle.model_copy(update={"filtering": filtering})

    def calculate_layer_relevance_scores(
        self,
        layers: Mapping[str, Any],
        requirements: Sequence[str],
    ) -> dict[str, RelevanceScore]:
        return {
            name: calculate_content_relevance(content, requirements, name)
            for name, content in layers.items()
        }

    def prioritize_content(
        self,
        layers: Mapping[str, Any],
        scores: Mapping[str, RelevanceScore],
    ) -> PrioritizedContent:
        prioritized = PrioritizedContent()
        buckets = {
            "high": prioritized.high_priority,
            "medium": prioritized.medium_priority,
            "low": prioritized.low_priority,
        }
        for name, score in scores.items():
            buckets[priority_bucket(score.overall_score)][name] = layers.get(name)
        return prioritized

    def get_filtering_stats(self, bundle: ContextBundle) -> dict[str, Any]:
        """Summary numbers for a filtered bundle (debugging and tuning)."""
        stats: dict[str, Any] = {
            "total_layers": len(list(bundle.layers.items())),
            "average_relevance": 0.0,
            "high_relevance_content": 0,
            "matched_requirements": [],
            "excluded_content": 0,
        }
        filtering = bundle.filtering
        if filtering is None:
            return stats

        scores = list(filtering.relevance_scores.values())
        if scores:
            stats["average_relevance"] = sum(s.overall_score for s in scores) / len(scores)
            stats["high_relevance_content"] = sum(
                1 for s in scores if s.overall_score >= HIGH_PRIORITY_THRESHOLD
            )
            matched: list[str] = []
            for score in scores:
                matched.extend(t for t in score.matched_terms if t not in matched)
            stats["matched_requirements"] = matched

        stats["excluded_content"] = sum(1 for a in filtering.annotations.values() if a.excluded)
        return stats

    # ── Internal ────────────────────────────────────────────────────

    @staticmethod
    def _rule_for(agent_type: str, filter_config: FilterConfig) -> AgentFilterRule:
        raw = filter_config.get(agent_type)
        if raw is None:
            return AgentFilterRule()
        if isinstance(raw, AgentFilterRule):
            return raw
        return AgentFilterRule.model_validate(raw)

    def _annotate(
        self,
        node: Any,
        path: str,
        requirements: Sequence[str],
        rule: AgentFilterRule,
        annotations: dict[str, NodeAnnotation],
    ) -> None:
        if isinstance(node, dict):
            children = [(str(k), v) for k, v in node.items() if k != "filtering"]
        elif isinstance(node, list):
            children = [(str(i), v) for i, v in enumerate(node)]
        else:
            return

        text = extract_searchable_text(node)
        excluded = [p for p in rule.exclude_patterns if matches_pattern(text, p)]
        annotations[path] = NodeAnnotation(
            matched_requirements=[r for r in requirements if matches_pattern(text, r)],
            matched_includes=[p for p in rule.include_patterns if matches_pattern(text, p)],
            excluded=bool(excluded),
            excluded_patterns=excluded,
        )

        for key, child in children:
            if isinstance(child, (dict, list)):
                self._annotate(child, f"{path}.{key}", requirements, rule, annotations)


def basic_relevance_score(content: Any, requirements: Sequence[str]) -> float:
    """Fraction of requirements that match anywhere in *content*; 1.0 with none."""
    if not requirements:
        return 1.0
    text = extract_searchable_text(content)
    hits = sum(1 for r in requirements if matches_pattern(text, r))
    return hits / len(requirements)
