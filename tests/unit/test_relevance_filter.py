"""Tests for relevance scoring, prioritization, and agent filtering."""

from __future__ import annotations

import pytest

from asd_context.context.filtering import (
    RelevanceFilter,
    basic_relevance_score,
    calculate_content_relevance,
    calculate_requirement_score,
    priority_bucket,
)
from asd_context.context.models import (
    AgentDefinition,
    AgentSpecificLayer,
    BundleMetadata,
    ContextBundle,
    CriticalLayer,
    Document,
    LayerSet,
    RelevanceScore,
    SourceEntry,
)


def _bundle(critical_text: str = "", agent_type: str = "backend-developer") -> ContextBundle:
    critical = CriticalLayer()
    if critical_text:
        critical.sources.append(
            SourceEntry(file="project.md", content=Document(body=critical_text))
        )
    return ContextBundle(
        metadata=BundleMetadata(agent_type=agent_type),
        layers=LayerSet(
            critical=critical,
            agent_specific=AgentSpecificLayer(agent_type=agent_type),
        ),
    )


class TestRequirementScore:
    """Each text occurrence is credited to the most specific pattern only."""

    def test_spaced_phrase_against_hyphenated_requirement(self) -> None:
        score = calculate_requirement_score("We apply rate limiting per client", "rate-limiting")
        assert 0 < score.score < 0.3
        assert score.score == pytest.approx(0.1)
        assert score.matches == ["rate limiting"]

    def test_exact_phrase_bonus(self) -> None:
        score = calculate_requirement_score("Use rate-limiting on the gateway", "rate-limiting")
        assert score.score == pytest.approx(0.4)
        assert "rate-limiting" in score.matches

    def test_per_pattern_cap(self) -> None:
        text = " ".join(["cache"] * 20)
        assert calculate_requirement_score(text, "cache").score == pytest.approx(0.8)

    def test_no_match(self) -> None:
        score = calculate_requirement_score("nothing relevant", "kubernetes")
        assert score.score == 0
        assert score.matches == []

    def test_clamped_to_one(self) -> None:
        text = " ".join(["api design"] * 10 + ["api"] * 10 + ["design"] * 10)
        assert calculate_requirement_score(text, "api-design").score == 1.0


class TestContentRelevance:
    def test_scenario_overall_between_zero_and_medium(self) -> None:
        score = calculate_content_relevance(
            "We apply rate limiting per client", ["rate-limiting"], "task_specific"
        )
        assert 0 < score.overall_score < 0.3
        assert score.total_requirements == 1
        assert score.has_content is True

    def test_no_requirements_scores_zero(self) -> None:
        score = calculate_content_relevance("anything", [], "process")
        assert score.overall_score == 0
        assert score.requirement_scores == {}

    def test_no_content_scores_zero(self) -> None:
        score = calculate_content_relevance(None, ["api"], "process")
        assert score.overall_score == 0
        assert score.has_content is False

    @pytest.mark.parametrize(
        ("content_type", "expected"),
        [("critical", 0.48), ("agent_specific", 0.44), ("process", 0.4)],
    )
    def test_content_type_bonus(self, content_type: str, expected: float) -> None:
        score = calculate_content_relevance(
            "Use rate-limiting on the gateway", ["rate-limiting"], content_type
        )
        assert score.overall_score == pytest.approx(expected)

    def test_bonus_is_clamped(self) -> None:
        text = " ".join(["api design"] * 10 + ["api"] * 10 + ["design"] * 10)
        score = calculate_content_relevance(text, ["api-design"], "critical")
        assert score.overall_score == 1.0

    def test_matched_terms_have_set_semantics(self) -> None:
        score = calculate_content_relevance("cache cache", ["cache"], "process")
        assert score.matched_terms.count("cache") == 1


class TestPriorityBuckets:
    @pytest.mark.parametrize(
        ("score", "bucket"),
        [(1.0, "high"), (0.7, "high"), (0.6999, "medium"), (0.3, "medium"), (0.2999, "low"), (0.0, "low")],
    )
    def test_boundaries(self, score: float, bucket: str) -> None:
        assert priority_bucket(score) == bucket

    def test_prioritize_content(self) -> None:
        layers = {"critical": {"a": 1}, "process": {"b": 2}, "task_specific": {"c": 3}}
        scores = {
            "critical": RelevanceScore(content_type="critical", overall_score=0.7),
            "process": RelevanceScore(content_type="process", overall_score=0.6999),
            "task_specific": RelevanceScore(content_type="task_specific", overall_score=0.2999),
        }
        prioritized = RelevanceFilter().prioritize_content(layers, scores)
        assert list(prioritized.high_priority) == ["critical"]
        assert list(prioritized.medium_priority) == ["process"]
        assert list(prioritized.low_priority) == ["task_specific"]


class TestFilterContextForAgent:
    """Filtering annotates and scores but never removes content."""

    def test_populates_filtering_on_a_copy(self) -> None:
        bundle = _bundle("All endpoints need api-design review")
        definition = AgentDefinition(agent_type="backend-developer", context_requirements=["api-design"])

        filtered = RelevanceFilter().filter_context_for_agent(bundle, definition, {})

        assert bundle.filtering is None
        assert filtered.filtering is not None
        assert filtered.filtering.method == "advanced"
        assert filtered.filtering.agent_type == "backend-developer"
        assert set(filtered.filtering.relevance_scores) == {
            "critical",
            "task_specific",
            "agent_specific",
            "process",
        }
        assert filtered.layers == bundle.layers

    def test_annotations_keyed_by_dotted_path(self) -> None:
        bundle = _bundle("All endpoints need api-design review")
        definition = AgentDefinition(agent_type="backend-developer", context_requirements=["api-design"])

        filtered = RelevanceFilter().filter_context_for_agent(bundle, definition)
        annotations = filtered.filtering.annotations

        assert "critical" in annotations
        assert "critical.sources" in annotations
        assert annotations["critical"].matched_requirements == ["api-design"]
        assert annotations["process"].matched_requirements == []

    def test_include_and_exclude_patterns(self) -> None:
        bundle = _bundle("Legacy frontend notes and database migrations")
        definition = AgentDefinition(agent_type="backend-developer")
        config = {
            "backend-developer": {
                "include_patterns": ["database"],
                "exclude_patterns": ["frontend"],
            }
        }

        filtered = RelevanceFilter().filter_context_for_agent(bundle, definition, config)
        critical = filtered.filtering.annotations["critical"]

        assert critical.matched_includes == ["database"]
        assert critical.excluded is True
        assert critical.excluded_patterns == ["frontend"]
        assert filtered.filtering.include_patterns == ["database"]
        assert filtered.layers.critical.sources[0].content.body.startswith("Legacy frontend")

    def test_rules_for_other_agents_are_ignored(self) -> None:
        bundle = _bundle("frontend")
        definition = AgentDefinition(agent_type="backend-developer")
        config = {"qa-engineer": {"exclude_patterns": ["frontend"]}}

        filtered = RelevanceFilter().filter_context_for_agent(bundle, definition, config)

        assert filtered.filtering.exclude_patterns == []
        assert not any(a.excluded for a in filtered.filtering.annotations.values())

    def test_filtering_stats(self) -> None:
        bundle = _bundle("frontend and api-design")
        definition = AgentDefinition(agent_type="backend-developer", context_requirements=["api-design"])
        config = {"backend-developer": {"exclude_patterns": ["frontend"]}}
        relevance_filter = RelevanceFilter()

        stats = relevance_filter.get_filtering_stats(
            relevance_filter.filter_context_for_agent(bundle, definition, config)
        )

        assert stats["total_layers"] == 4
        assert 0 <= stats["average_relevance"] <= 1
        assert "api-design" in stats["matched_requirements"]
        assert stats["excluded_content"] >= 1

    def test_stats_without_filtering(self) -> None:
        stats = RelevanceFilter().get_filtering_stats(_bundle())
        assert stats["average_relevance"] == 0.0
        assert stats["excluded_content"] == 0


class TestBasicFiltering:
    def test_basic_relevance_fraction(self) -> None:
        assert basic_relevance_score({"a": "api design notes"}, ["api-design", "kubernetes"]) == 0.5

    def test_basic_relevance_without_requirements(self) -> None:
        assert basic_relevance_score({}, []) == 1.0

    def test_apply_basic_filtering(self) -> None:
        bundle = _bundle("api-design")
        definition = AgentDefinition(agent_type="backend-developer", context_requirements=["api-design"])

        filtered = RelevanceFilter().apply_basic_filtering(bundle, definition)

        assert filtered.filtering.method == "basic"
        assert filtered.filtering.relevance_score == 1.0
        assert filtered.filtering.relevance_scores == {}
