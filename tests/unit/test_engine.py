"""Tests for ContextEngine: the end-to-end injection pipeline."""

from __future__ import annotations

import pytest

from asd_context.context.models import ContextBundle
from asd_context.core.config import AppSettings, EngineConfig, ProjectConfig
from asd_context.engine import ContextEngine, create_context_engine
from asd_context.exceptions import InjectionError
from tests.fakes.fake_document_loader import FailingDocumentLoader
from tests.fakes.fake_gatherer import FakeTaskGatherer


class FakeClock:
    def __init__(self) -> None:
        self.now_ms = 5_000_000.0

    def __call__(self) -> float:
        return self.now_ms


@pytest.fixture
def engine(settings: AppSettings) -> ContextEngine:
    return ContextEngine(settings.project, settings=settings)


class TestInjectContext:
    """Layer assembly, filtering and validation for a single request."""

    async def test_backend_developer_without_task_files(self, engine, backend_agent) -> None:
        bundle = await engine.inject_context("backend-developer", "FEAT-012", "TASK-002")

        assert isinstance(bundle, ContextBundle)
        assert bundle.metadata.agent_type == "backend-developer"
        assert bundle.metadata.spec_id == "FEAT-012"
        assert bundle.layers.task_specific.spec is None
        assert bundle.layers.task_specific.task is None
        assert bundle.layers.agent_specific.context_requirements == ["api-design", "rate-limiting"]
        assert bundle.filtering is not None
        assert bundle.filtering.method == "advanced"
        assert set(bundle.filtering.relevance_scores) == {
            "critical",
            "task_specific",
            "agent_specific",
            "process",
        }
        assert bundle.validation is not None
        assert bundle.validation.is_valid is True
        assert not any(w.startswith("Missing context layer") for w in bundle.validation.warnings)

    async def test_performance_recorded(self, engine, backend_agent) -> None:
        bundle = await engine.inject_context("backend-developer")
        performance = bundle.metadata.performance
        for key in ("critical", "task_specific", "agent_specific", "process", "filtering", "total"):
            assert key in performance
        assert bundle.validation.performance["total"] == performance["total"]

    async def test_layers_read_from_disk(self, engine, backend_agent, write_doc) -> None:
        write_doc("context/project.md", {"constraints": ["no-eval"], "urgent_info": ["freeze"]}, "P")
        write_doc(
            "context/specs/FEAT-012-context.md",
            {
                "context_type": "spec",
                "spec_id": "FEAT-012",
                "spec_title": "API rate limiting",
                "priority": "P1",
                "status": "active",
                "implementation_decisions": ["token-bucket"],
            },
            "# Spec\n",
        )
        write_doc("processes/task-handoff-template.md", {}, "Handoff\n")
        write_doc("processes/validation-checklist.md", {}, "- [ ] tests\n")

        bundle = await engine.inject_context("backend-developer", "FEAT-012")

        critical = bundle.layers.critical
        assert [s.file for s in critical.sources] == ["project.md"]
        assert critical.constraints == ["no-eval"]
        assert critical.urgent_info == ["freeze"]
        assert bundle.layers.task_specific.sources == ["specs/FEAT-012-context.md"]
        assert len(bundle.layers.process.templates) == 1
        assert len(bundle.layers.process.checklists) == 1
        assert bundle.inheritance.hierarchy == ["project", "spec"]
        assert bundle.inheritance.decisions == ["token-bucket"]
        assert bundle.validation.is_valid is True

    async def test_missing_agent_type(self, engine) -> None:
        with pytest.raises(InjectionError, match="Agent type is required") as info:
            await engine.inject_context("")
        assert info.value.stage == "init"

    async def test_missing_agent_definition_degrades(self, engine) -> None:
        bundle = await engine.inject_context("qa-engineer")
        assert bundle.layers.agent_specific.agent_type == "qa-engineer"
        assert bundle.layers.agent_specific.capabilities == []
        assert bundle.validation.is_valid is True
        assert any(w.startswith("Agent definition not found") for w in bundle.validation.warnings)

    async def test_failing_source_degrades_with_warning(self, settings, backend_agent, write_doc) -> None:
        write_doc("context/project.md", {"constraints": ["no-eval"]}, "P")
        engine = ContextEngine(
            settings.project,
            settings=settings,
            document_loader=FailingDocumentLoader({"project.md"}),
        )

        bundle = await engine.inject_context("backend-developer")

        assert bundle.layers.critical.sources == []
        assert (
            "Failed to load critical context from project.md: simulated read failure"
            in bundle.validation.warnings
        )

    async def test_filter_failure_falls_back_to_basic(self, engine, backend_agent, monkeypatch) -> None:
        def boom(*args, **kwargs):
            raise RuntimeError("scoring exploded")

        monkeypatch.setattr(engine.relevance_filter, "filter_context_for_agent", boom)

        bundle = await engine.inject_context("backend-developer")

        assert bundle.filtering.method == "basic"
        assert bundle.filtering.relevance_score is not None
        assert any("scoring exploded" in w for w in bundle.validation.warnings)

    async def test_filter_rules_from_capabilities_config(self, engine, backend_agent, write_json) -> None:
        write_json(
            "config/agent-capabilities.json",
            {"context_filtering": {"backend-developer": {"exclude_patterns": ["database"]}}},
        )

        bundle = await engine.inject_context("backend-developer")

        assert bundle.filtering.exclude_patterns == ["database"]
        assert bundle.filtering.annotations["agent_specific"].excluded is True


class TestCaching:
    async def test_second_call_is_cached(self, settings, backend_agent) -> None:
        clock = FakeClock()
        engine = ContextEngine(settings.project, settings=settings, clock=clock)

        first = await engine.inject_context("backend-developer", "FEAT-012", "TASK-002")
        second = await engine.inject_context("backend-developer", "FEAT-012", "TASK-002")

        assert second == first
        assert second.metadata.injection_time == first.metadata.injection_time
        assert engine.get_cache_stats() == {
            "size": 1,
            "ttl_ms": 300_000,
            "hits": 1,
            "keys": ["backend-developer-FEAT-012-TASK-002"],
        }

    async def test_cached_bundle_isolated_from_callers(
        self, settings, backend_agent, write_doc
    ) -> None:
        write_doc("context/project.md", {"constraints": ["no-eval"]}, "Project")
        engine = ContextEngine(settings.project, settings=settings, clock=FakeClock())

        first = await engine.inject_context("backend-developer")
        first.inheritance.constraints.append("caller-added")
        first.validation.errors.append("caller-error")
        first.layers.agent_specific.capabilities.clear()

        second = await engine.inject_context("backend-developer")

        assert second.inheritance.constraints == ["no-eval"]
        assert "caller-error" not in second.validation.errors
        assert second.layers.agent_specific.capabilities == ["api-design", "database-modeling"]

        second.inheritance.constraints.clear()
        third = await engine.inject_context("backend-developer")
        assert third.inheritance.constraints == ["no-eval"]

    async def test_expired_entry_recomputed(self, settings, backend_agent) -> None:
        clock = FakeClock()
        engine = ContextEngine(settings.project, settings=settings, clock=clock)

        await engine.inject_context("backend-developer")
        clock.now_ms += 300_001
        await engine.inject_context("backend-developer")

        stats = engine.get_cache_stats()
        assert stats["size"] == 1
        assert stats["hits"] == 0

    async def test_use_cache_false_bypasses(self, engine, backend_agent) -> None:
        await engine.inject_context("backend-developer", use_cache=False)
        assert engine.get_cache_stats()["size"] == 0

    async def test_disabled_by_settings(self, project_root, backend_agent) -> None:
        settings = AppSettings(
            project=ProjectConfig(root=project_root),
            engine=EngineConfig(cache_enabled=False),
        )
        engine = ContextEngine(settings.project, settings=settings)
        await engine.inject_context("backend-developer")
        await engine.inject_context("backend-developer")
        assert engine.get_cache_stats()["size"] == 0
        assert engine.get_cache_stats()["hits"] == 0

    async def test_clear_cache(self, engine, backend_agent) -> None:
        await engine.inject_context("backend-developer")
        engine.clear_cache()
        assert engine.get_cache_stats()["size"] == 0


class TestContextConfig:
    async def test_file_overrides_cache_settings(self, engine, backend_agent, write_json) -> None:
        write_json(
            "config/context-config.json",
            {"context_system": {"performance": {"cache_enabled": False, "cache_ttl_seconds": 60}}},
        )

        await engine.inject_context("backend-developer")
        await engine.inject_context("backend-developer")

        assert engine.get_cache_stats()["size"] == 0
        assert engine.get_cache_stats()["ttl_ms"] == 60_000

    async def test_disabled_context_system_refuses_injection(
        self, engine, backend_agent, write_json
    ) -> None:
        write_json("config/context-config.json", {"context_system": {"enabled": False}})

        with pytest.raises(InjectionError, match="Context system is disabled") as excinfo:
            await engine.inject_context("backend-developer")
        assert excinfo.value.stage == "init"

    async def test_custom_critical_sources(self, engine, backend_agent, write_json, write_doc) -> None:
        write_json(
            "config/context-config.json",
            {"context_layers": {"critical": {"priority": 1, "max_size_kb": 1, "sources": ["rules.md"]}}},
        )
        write_doc("context/rules.md", {"constraints": ["x" * 2048]}, "")

        bundle = await engine.inject_context("backend-developer")

        assert [s.file for s in bundle.layers.critical.sources] == ["rules.md"]
        assert any("exceeding 1KB limit" in w for w in bundle.validation.warnings)

    async def test_malformed_file_uses_defaults(self, engine, backend_agent, project_root) -> None:
        (project_root / ".asd/config/context-config.json").write_text("{", encoding="utf-8")

        bundle = await engine.inject_context("backend-developer")

        assert any(
            w.startswith("Failed to load context config, using defaults")
            for w in bundle.validation.warnings
        )


class TestAutomatedInjection:
    GATHERED = {
        "task_specific": {"specification": {"title": "Rate limiting"}, "task": {"checklist": []}},
        "validation": {"relevance_score": 0.9, "completeness": 1.0, "is_sufficient": True},
        "metadata": {"performance": {"gathering_time_ms": 12.0}},
    }

    async def test_attaches_automation(self, settings, backend_agent) -> None:
        gatherer = FakeTaskGatherer(default=self.GATHERED)
        engine = create_context_engine(settings, gatherer=gatherer)

        bundle = await engine.inject_context_for_task(
            "backend-developer", "FEAT-012", "TASK-002", automated=True
        )

        assert bundle.automation is not None
        assert bundle.automation.validation.is_ready is True
        assert bundle.automation.task_specific["validation"]["relevance_score"] == 0.9
        assert "automated_injection" in bundle.metadata.performance
        assert gatherer.calls[0]["include_files"] is True

    async def test_cached_standard_bundle_untouched(self, settings, backend_agent) -> None:
        engine = create_context_engine(settings, gatherer=FakeTaskGatherer(default=self.GATHERED))

        await engine.inject_context_for_task("backend-developer", "FEAT-012", "TASK-002", automated=True)
        plain = await engine.inject_context("backend-developer", "FEAT-012", "TASK-002")

        assert plain.automation is None
        assert "automated_injection" not in plain.metadata.performance

    async def test_not_automated_is_standard(self, engine, backend_agent) -> None:
        bundle = await engine.inject_context_for_task("backend-developer", "FEAT-012", "TASK-002")
        assert bundle.automation is None

    async def test_without_agent_type_skips_gatherer(self, settings) -> None:
        gatherer = FakeTaskGatherer(default=self.GATHERED)
        engine = create_context_engine(settings, gatherer=gatherer)

        with pytest.raises(InjectionError, match="Agent type is required"):
            await engine.inject_context_for_task("", "FEAT-1", "TASK-1", automated=True)
        assert gatherer.calls == []

    async def test_without_gatherer(self, engine) -> None:
        with pytest.raises(InjectionError, match="No task gatherer configured"):
            await engine.inject_context_for_task("qa-engineer", "FEAT-1", "TASK-1", automated=True)

    async def test_gatherer_failure(self, settings) -> None:
        gatherer = FakeTaskGatherer(failures={("FEAT-1", "TASK-1"): RuntimeError("index offline")})
        engine = create_context_engine(settings, gatherer=gatherer)
        with pytest.raises(InjectionError, match="index offline"):
            await engine.inject_context_for_task("qa-engineer", "FEAT-1", "TASK-1", automated=True)
