"""Context engine: composes the four context layers for an agent.

Pipeline per request::

    INIT → LOAD_LAYERS → APPLY_INHERITANCE → FILTER → VALIDATE → CACHE → DONE

Layer loads run concurrently; every later stage is sequential.  Soft
failures (unreadable files, bad filter config) degrade to empty content and
are reported in ``validation.warnings``.  Anything else aborts the request
with :class:`InjectionError`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from asd_context.context.cache import BundleCache, compute_cache_key, format_cache_key
from asd_context.context.filtering import RelevanceFilter
from asd_context.context.models import (
    AgentDefinition,
    AgentFilterRule,
    AgentSpecificLayer,
    BundleMetadata,
    ContextBundle,
    CriticalLayer,
    LayerSet,
    ProcessLayer,
    RecommendationSet,
    SourceEntry,
    TaskSpecificLayer,
)
from asd_context.context.store import ContextStore
from asd_context.core.config import AppSettings
from asd_context.core.context_config import ContextConfig, default_context_config, load_context_config
from asd_context.engine.automation import build_automation_context
from asd_context.engine.recommendations import recommend_tasks
from asd_context.exceptions import ConfigError, InjectionError
from asd_context.hooks.run_tracker import (
    InjectionRun,
    InjectionStage,
    end_run,
    record_warning,
    start_run,
    track_stage,
)
from asd_context.interfaces import IDocumentLoader, IProjectRootProvider, ITaskGatherer, ITaskRouter
from asd_context.loaders import DefaultDocumentLoader
from asd_context.validation.engine import ContextValidator

log = logging.getLogger(__name__)

T = TypeVar("T")


class ContextEngine:
    """Assembles, filters, validates and caches context bundles.

    Args:
        root: Project root accessor; all ``.asd`` paths derive from it.
        settings: Engine tuning.  Defaults to :class:`AppSettings` from env.
        document_loader: Loader for layer source files.
        gatherer: Task-context gatherer for automated injection and previews.
        router: Task router for recommendations.
        clock: Epoch-milliseconds clock for cache expiry.
    """

    def __init__(
        self,
        root: IProjectRootProvider,
        *,
        settings: AppSettings | None = None,
        document_loader: IDocumentLoader | None = None,
        gatherer: ITaskGatherer | None = None,
        router: ITaskRouter | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._root = root
        self._settings = settings or AppSettings()
        self._loader = document_loader or DefaultDocumentLoader()
        self._gatherer = gatherer
        self._router = router

        engine = self._settings.engine
        self._cache_enabled = engine.cache_enabled
        self._performance_budget_ms: float = engine.performance_budget_ms
        self._cache = (
            BundleCache(engine.cache_ttl_ms, clock=clock)
            if clock is not None
            else BundleCache(engine.cache_ttl_ms)
        )

        self._store = ContextStore(root)
        self._filter = RelevanceFilter()
        self._validator = ContextValidator(
            total_budget_ms=engine.performance_budget_ms,
            layer_budget_ms=engine.layer_budget_ms,
        )
        self._context_config: ContextConfig | None = None

    @property
    def store(self) -> ContextStore:
        return self._store

    @property
    def relevance_filter(self) -> RelevanceFilter:
        return self._filter

    @property
    def validator(self) -> ContextValidator:
        return self._validator

    # ── Injection ───────────────────────────────────────────────────

    async def inject_context(
        self,
        agent_type: str,
        spec_id: str | None = None,
        task_id: str | None = None,
        *,
        use_cache: bool = True,
    ) -> ContextBundle:
        """Build the context bundle for *agent_type* working on a spec/task.

        Raises:
            InjectionError: If *agent_type* is empty or a stage fails hard.
        """
        run = start_run(agent_type or "", spec_id=spec_id, task_id=task_id)
        try:
            if not agent_type:
                raise ValueError("Agent type is required for context injection")
            return await self._inject(run, agent_type, spec_id, task_id, use_cache)
        except Exception as exc:
            stage = run.stage.value
            elapsed = run.elapsed_ms()
            run.advance(InjectionStage.ERROR)
            log.error("Context injection failed at %s after %.0fms: %s", stage, elapsed, exc)
            raise InjectionError(str(exc), elapsed_ms=elapsed, stage=stage) from exc
        finally:
            end_run()

    async def _inject(
        self,
        run: InjectionRun,
        agent_type: str,
        spec_id: str | None,
        task_id: str | None,
        use_cache: bool,
    ) -> ContextBundle:
        config = self._ensure_context_config()
        if not config.context_system.enabled:
            raise ValueError("Context system is disabled in context-config.json")
        caching = use_cache and self._cache_enabled
        key = compute_cache_key(agent_type, spec_id, task_id)

        if caching:
            cached = self._cache.get(key)
            if cached is not None:
                log.debug("Cache hit for %s", format_cache_key(key))
                run.advance(InjectionStage.DONE)
                return cached

        run.advance(InjectionStage.LOAD_LAYERS)
        with track_stage("agent_definition"):
            definition = await self.load_agent_definition(agent_type)

        critical, task_layer, agent_layer, process = await asyncio.gather(
            self._load_layer("critical", self.load_critical_context(config), CriticalLayer),
            self._load_layer(
                "task_specific",
                self.load_task_specific_context(spec_id, task_id, config),
                TaskSpecificLayer,
            ),
            self._load_layer(
                "agent_specific",
                self.load_agent_specific_context(definition),
                lambda: AgentSpecificLayer(agent_type=agent_type),
            ),
            self._load_layer("process", self.load_process_context(config), ProcessLayer),
        )

        run.advance(InjectionStage.APPLY_INHERITANCE)
        with track_stage("inheritance"):
            inheritance = await self._store.apply_inheritance(task_layer, spec_id, task_id)

        bundle = ContextBundle(
            metadata=BundleMetadata(agent_type=agent_type, spec_id=spec_id, task_id=task_id),
            layers=LayerSet(
                critical=critical,
                task_specific=task_layer,
                agent_specific=agent_layer,
                process=process,
            ),
            inheritance=inheritance,
        )

        run.advance(InjectionStage.FILTER)
        with track_stage("filtering"):
            bundle = self._apply_filtering(bundle, definition)

        total = run.elapsed_ms()
        run.performance["total"] = round(total, 3)
        if total > self._performance_budget_ms:
            log.warning(
                "Context injection took %.0fms, exceeding %.0fms target",
                total,
                self._performance_budget_ms,
            )
        bundle = self._with_performance(bundle, run.performance)

        run.advance(InjectionStage.VALIDATE)
        with track_stage("validation"):
            validation = self._validator.validate_injected_context(bundle)
        for warning in run.warnings:
            if warning not in validation.warnings:
                validation.warnings.append(warning)
        validation.performance = dict(run.performance)

        if validation.errors:
            log.warning("Context validation errors: %s", validation.errors)
        if validation.warnings:
            log.debug("Context validation warnings: %s", validation.warnings)

        bundle = self._with_performance(bundle, run.performance)
        bundle = bundle.model_copy(update={"validation": validation})

        run.advance(InjectionStage.CACHE)
        if caching:
            self._cache.put(key, bundle)

        run.advance(InjectionStage.DONE)
        log.info(
            "Injected context for %s (spec=%s, task=%s) in %.1fms",
            agent_type,
            spec_id,
            task_id,
            total,
        )
        return bundle

    async def inject_context_for_task(
        self,
        agent_type: str,
        spec_id: str,
        task_id: str,
        *,
        automated: bool = False,
        use_cache: bool = True,
    ) -> ContextBundle:
        """Standard injection, optionally enriched with gathered task context.

        With ``automated=True`` the gatherer's output and a readiness report
        are attached as ``automation``; the cached standard bundle is never
        modified.
        """
        if not automated:
            return await self.inject_context(agent_type, spec_id, task_id, use_cache=use_cache)

        run = start_run(agent_type or "", spec_id=spec_id, task_id=task_id)
        try:
            if not agent_type:
                raise ValueError("Agent type is required for context injection")
            if self._gatherer is None:
                raise ValueError("No task gatherer configured for automated injection")

            gathered = await self._gatherer.gather_task_context(
                spec_id=spec_id,
                task_id=task_id,
                agent_type=agent_type,
                include_files=True,
                use_cache=use_cache,
            )
            base = await self.inject_context(agent_type, spec_id, task_id, use_cache=use_cache)
            automation = build_automation_context(gathered, base.validation)

            elapsed = run.elapsed_ms()
            if elapsed > self._settings.engine.automation_budget_ms:
                log.warning(
                    "Automated context injection took %.0fms, exceeding %dms target",
                    elapsed,
                    self._settings.engine.automation_budget_ms,
                )
            performance = {**base.metadata.performance, "automated_injection": round(elapsed, 3)}
            return base.model_copy(
                update={
                    "automation": automation,
                    "metadata": base.metadata.model_copy(update={"performance": performance}),
                }
            )
        except InjectionError:
            raise
        except Exception as exc:
            elapsed = run.elapsed_ms()
            log.error("Automated context injection failed after %.0fms: %s", elapsed, exc)
            raise InjectionError(str(exc), elapsed_ms=elapsed, stage=run.stage.value) from exc
        finally:
            end_run()

    async def get_contextual_task_recommendations(
        self,
        agent_type: str,
        preferences: Mapping[str, Any] | None = None,
    ) -> RecommendationSet:
        """Router candidates for *agent_type*, the top few ranked by context preview."""
        if self._router is None:
            raise InjectionError("No task router configured for recommendations")

        candidates = await self._router.get_next_task(agent_type, preferences)
        definition = await self.load_agent_definition(agent_type)
        return await recommend_tasks(
            agent_type,
            candidates,
            definition=definition,
            store=self._store,
            gatherer=self._gatherer,
            limit=self._settings.engine.recommendation_preview_limit,
        )

    # ── Layer loaders ───────────────────────────────────────────────

    async def load_agent_definition(self, agent_type: str) -> AgentDefinition:
        """Load ``.asd/agents/{agent_type}.md``; a missing file yields an empty definition."""
        path = self._store.get_context_paths().agent_definition(agent_type)
        if not path.is_file():
            record_warning(f"Agent definition not found for {agent_type}: {path}")
            return AgentDefinition(agent_type=agent_type)

        try:
            document = await self._loader.load_document(path)
        except Exception as exc:
            record_warning(f"Failed to load agent definition for {agent_type}: {exc}")
            return AgentDefinition(agent_type=agent_type)
        return AgentDefinition.from_document(agent_type, document)

    async def load_critical_context(self, config: ContextConfig | None = None) -> CriticalLayer:
        config = config or self._ensure_context_config()
        settings = config.layer("critical")
        context_dir = self._store.get_context_paths().context
        layer = CriticalLayer()

        for source in settings.sources:
            path = context_dir / source
            if not path.is_file():
                log.debug("Skipping absent critical source %s", path)
                continue
            try:
                document = await self._loader.load_document(path)
            except Exception as exc:
                record_warning(f"Failed to load critical context from {source}: {exc}")
                continue

            self._check_size(path, "critical", settings.max_size_kb)
            layer.sources.append(SourceEntry(file=source, content=document))
            layer.constraints.extend(document.get_list("constraints"))
            layer.urgent_info.extend(document.get_list("urgent_info"))
        return layer

    async def load_task_specific_context(
        self,
        spec_id: str | None,
        task_id: str | None,
        config: ContextConfig | None = None,
    ) -> TaskSpecificLayer:
        config = config or self._ensure_context_config()
        max_size_kb = config.layer("task_specific").max_size_kb
        paths = self._store.get_context_paths()
        layer = TaskSpecificLayer()

        if spec_id:
            path = paths.spec_context(spec_id)
            if path.is_file():
                try:
                    layer.spec = await self._loader.load_document(path)
                    layer.sources.append(f"specs/{path.name}")
                    self._check_size(path, "task_specific", max_size_kb)
                except Exception as exc:
                    record_warning(f"Failed to load spec context for {spec_id}: {exc}")

        if task_id:
            path = paths.task_context(task_id)
            if path.is_file():
                try:
                    layer.task = await self._loader.load_document(path)
                    layer.sources.append(f"tasks/{path.name}")
                    self._check_size(path, "task_specific", max_size_kb)
                except Exception as exc:
                    record_warning(f"Failed to load task context for {task_id}: {exc}")

        return layer

    async def load_agent_specific_context(self, definition: AgentDefinition) -> AgentSpecificLayer:
        return AgentSpecificLayer.from_definition(definition)

    async def load_process_context(self, config: ContextConfig | None = None) -> ProcessLayer:
        config = config or self._ensure_context_config()
        settings = config.layer("process")
        base = self._store.get_context_paths().base
        layer = ProcessLayer()

        for source in settings.sources:
            path = base / source
            if not path.is_file():
                log.debug("Skipping absent process source %s", path)
                continue
            try:
                document = await self._loader.load_document(path)
            except Exception as exc:
                record_warning(f"Failed to load process context from {source}: {exc}")
                continue

            self._check_size(path, "process", settings.max_size_kb)
            name = Path(source).name
            if "template" in name:
                layer.templates.append(document)
            elif "checklist" in name:
                layer.checklists.append(document)
            layer.sources.append(name)
        return layer

    # ── Cache ───────────────────────────────────────────────────────

    def clear_cache(self) -> None:
        self._cache.clear()
        log.debug("Context cache cleared")

    def get_cache_stats(self) -> dict[str, Any]:
        return {
            "size": len(self._cache),
            "ttl_ms": self._cache.ttl_ms,
            "hits": self._cache.total_hits(),
            "keys": [format_cache_key(k) for k in self._cache.keys()],
        }

    # ── Internal ────────────────────────────────────────────────────

    async def _load_layer(
        self,
        name: str,
        loader: Awaitable[T],
        fallback: Callable[[], T],
    ) -> T:
        with track_stage(name):
            try:
                return await loader
            except Exception as exc:
                record_warning(f"Failed to load {name} context: {exc}")
                return fallback()

    def _apply_filtering(self, bundle: ContextBundle, definition: AgentDefinition) -> ContextBundle:
        try:
            filter_config = self._load_filter_config()
            return self._filter.filter_context_for_agent(bundle, definition, filter_config)
        except Exception as exc:
            record_warning(f"Context filtering failed, using basic filtering: {exc}")
            return self._filter.apply_basic_filtering(bundle, definition)

    def _load_filter_config(self) -> dict[str, AgentFilterRule]:
        """Read ``context_filtering`` from ``agent-capabilities.json``; soft on failure."""
        path = self._store.get_context_paths().config / "agent-capabilities.json"
        if not path.is_file():
            log.debug("No agent capabilities config at %s", path)
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            entries = raw.get("context_filtering") or {}
            return {name: AgentFilterRule.model_validate(rule) for name, rule in entries.items()}
        except Exception as exc:
            record_warning(f"Failed to load context filtering config: {exc}")
            return {}

    def _ensure_context_config(self) -> ContextConfig:
        """Load ``context-config.json`` once; values in the file override settings."""
        if self._context_config is not None:
            return self._context_config

        path = self._store.get_context_paths().config / "context-config.json"
        if not path.is_file():
            self._context_config = default_context_config()
            return self._context_config

        try:
            config = load_context_config(path)
        except ConfigError as exc:
            record_warning(f"Failed to load context config, using defaults: {exc}")
            self._context_config = default_context_config()
            return self._context_config

        performance = config.context_system.performance
        self._cache_enabled = self._cache_enabled and performance.cache_enabled
        self._cache.ttl_ms = performance.cache_ttl_seconds * 1000
        self._performance_budget_ms = performance.injection_timeout_ms
        self._validator = ContextValidator(
            total_budget_ms=performance.injection_timeout_ms,
            layer_budget_ms=self._settings.engine.layer_budget_ms,
        )
        self._context_config = config
        return config

    @staticmethod
    def _check_size(path: Path, layer: str, max_size_kb: int) -> None:
        size_kb = path.stat().st_size / 1024
        if size_kb > max_size_kb:
            record_warning(
                f"{layer} source {path.name} is {size_kb:.1f}KB, exceeding {max_size_kb}KB limit"
            )

    @staticmethod
    def _with_performance(bundle: ContextBundle, performance: Mapping[str, float]) -> ContextBundle:
        metadata = bundle.metadata.model_copy(update={"performance": dict(performance)})
        return bundle.model_copy(update={"metadata": metadata})

