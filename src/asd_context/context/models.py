"""Data models for context bundles, layers, and relevance scores.

Bundle-level models are pydantic so they can be dumped to JSON for callers
and walked as plain mappings by the filter and validator.  Layer keys in a
dumped bundle are ``critical``, ``task_specific``, ``agent_specific`` and
``process``.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from asd_context.validation.models import ValidationResult

# ── Documents ───────────────────────────────────────────────────────


class Document(BaseModel):
    """A loaded file: structured header plus free-text body."""

    header: dict[str, Any] = Field(default_factory=dict)
    body: str = ""
    path: str = ""
    format: str = "markdown"

    def get(self, key: str, default: Any = None) -> Any:
        """Header lookup that treats an explicit ``null`` as absent."""
        value = self.header.get(key)
        return default if value is None else value

    def get_list(self, key: str) -> list[Any]:
        """Header lookup coerced to a list (scalars become one-element lists)."""
        value = self.header.get(key)
        if value is None:
            return []
        if isinstance(value, list):
            return value
        return [value]


# ── Agent definitions ───────────────────────────────────────────────


class AgentDefinition(BaseModel):
    """Typed view of ``.asd/agents/{agent_type}.md``.

    Header values override the defaults; keys missing from the header stay
    empty.  ``raw_header`` keeps the original mapping for schema checks.
    """

    agent_type: str
    capabilities: list[Any] = Field(default_factory=list)
    specialization_areas: list[Any] = Field(default_factory=list)
    context_requirements: list[str] = Field(default_factory=list)
    workflow_steps: list[Any] = Field(default_factory=list)
    validation_requirements: list[Any] = Field(default_factory=list)
    handoff_checklist: list[Any] = Field(default_factory=list)
    body_text: str = ""
    raw_header: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, agent_type: str, document: Document) -> AgentDefinition:
        return cls(
            agent_type=document.get("agent_type", agent_type),
            capabilities=document.get_list("capabilities"),
            specialization_areas=document.get_list("specialization_areas"),
            context_requirements=[str(r) for r in document.get_list("context_requirements")],
            workflow_steps=document.get_list("workflow_steps"),
            validation_requirements=document.get_list("validation_requirements"),
            handoff_checklist=document.get_list("handoff_checklist"),
            body_text=document.body,
            raw_header=dict(document.header),
        )


# ── Layers ──────────────────────────────────────────────────────────


class LayerName(str, Enum):
    """The four fixed context layers, in priority order."""

    CRITICAL = "critical"
    TASK_SPECIFIC = "task_specific"
    AGENT_SPECIFIC = "agent_specific"
    PROCESS = "process"


class SourceEntry(BaseModel):
    file: str
    content: Document
    loaded_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class CriticalLayer(BaseModel):
    sources: list[SourceEntry] = Field(default_factory=list)
    constraints: list[Any] = Field(default_factory=list)
    urgent_info: list[Any] = Field(default_factory=list)


class TaskSpecificLayer(BaseModel):
    spec: Document | None = None
    task: Document | None = None
    sources: list[str] = Field(default_factory=list)


class AgentSpecificLayer(BaseModel):
    agent_type: str
    capabilities: list[Any] = Field(default_factory=list)
    specializations: list[Any] = Field(default_factory=list)
    context_requirements: list[str] = Field(default_factory=list)
    workflow_steps: list[Any] = Field(default_factory=list)
    validation_requirements: list[Any] = Field(default_factory=list)
    handoff_checklist: list[Any] = Field(default_factory=list)

    @classmethod
    def from_definition(cls, definition: AgentDefinition) -> AgentSpecificLayer:
        return cls(
            agent_type=definition.agent_type,
            capabilities=definition.capabilities,
            specializations=definition.specialization_areas,
            context_requirements=definition.context_requirements,
            workflow_steps=definition.workflow_steps,
            validation_requirements=definition.validation_requirements,
            handoff_checklist=definition.handoff_checklist,
        )


class ProcessLayer(BaseModel):
    templates: list[Document] = Field(default_factory=list)
    checklists: list[Document] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)


class LayerSet(BaseModel):
    """All four layers.  Every key is always present, possibly empty."""

    critical: CriticalLayer = Field(default_factory=CriticalLayer)
    task_specific: TaskSpecificLayer = Field(default_factory=TaskSpecificLayer)
    agent_specific: AgentSpecificLayer
    process: ProcessLayer = Field(default_factory=ProcessLayer)

    def items(self) -> Iterator[tuple[str, BaseModel]]:
        for name in LayerName:
            yield name.value, getattr(self, name.value)

    def dump_layers(self) -> dict[str, dict[str, Any]]:
        return {name: layer.model_dump(mode="json") for name, layer in self.items()}


# ── Inheritance ─────────────────────────────────────────────────────


class Inheritance(BaseModel):
    """Merged project → spec → task context."""

    applied: bool = True
    hierarchy: list[Literal["project", "spec", "task"]] = Field(default_factory=list)
    constraints: list[Any] = Field(default_factory=list)
    decisions: list[Any] = Field(default_factory=list)
    research_findings: list[Any] = Field(default_factory=list)
    progress: dict[str, Any] = Field(default_factory=dict)
    blockers: list[Any] = Field(default_factory=list)
    next_steps: list[Any] = Field(default_factory=list)
    current_assignments: Any | None = None
    current_progress: Any | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_project_context(self) -> bool:
        return "project" in self.hierarchy

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_spec_context(self) -> bool:
        return "spec" in self.hierarchy

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_task_context(self) -> bool:
        return "task" in self.hierarchy


# ── Relevance / filtering ───────────────────────────────────────────


class RequirementScore(BaseModel):
    requirement: str
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    matches: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)


class RelevanceScore(BaseModel):
    content_type: str
    overall_score: float = Field(default=0.0, ge=0.0, le=1.0)
    requirement_scores: dict[str, RequirementScore] = Field(default_factory=dict)
    matched_terms: list[str] = Field(default_factory=list)
    total_requirements: int = 0
    has_content: bool = False


class NodeAnnotation(BaseModel):
    """Filter flags for one node in a layer (keyed by dotted path)."""

    matched_requirements: list[str] = Field(default_factory=list)
    matched_includes: list[str] = Field(default_factory=list)
    excluded: bool = False
    excluded_patterns: list[str] = Field(default_factory=list)


class PrioritizedContent(BaseModel):
    high_priority: dict[str, Any] = Field(default_factory=dict)
    medium_priority: dict[str, Any] = Field(default_factory=dict)
    low_priority: dict[str, Any] = Field(default_factory=dict)


class AgentFilterRule(BaseModel):
    """One entry of ``agent-capabilities.json`` → ``context_filtering``."""

    model_config = ConfigDict(extra="ignore")

    include_patterns: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)


class FilteringInfo(BaseModel):
    applied: bool = True
    method: Literal["advanced", "basic"] = "advanced"
    agent_type: str = ""
    context_requirements: list[str] = Field(default_factory=list)
    include_patterns: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)
    relevance_scores: dict[str, RelevanceScore] = Field(default_factory=dict)
    prioritized_content: PrioritizedContent = Field(default_factory=PrioritizedContent)
    annotations: dict[str, NodeAnnotation] = Field(default_factory=dict)
    relevance_score: float | None = None


# ── Automation ──────────────────────────────────────────────────────


class ReadinessCheck(BaseModel):
    name: str
    passed: bool
    weight: float
    detail: str = ""


class ReadinessReport(BaseModel):
    is_ready: bool
    score: float = Field(ge=0.0, le=1.0)
    issues: list[str] = Field(default_factory=list)
    checks: list[ReadinessCheck] = Field(default_factory=list)


class AutomationContext(BaseModel):
    enabled: bool = True
    task_specific: dict[str, Any] = Field(default_factory=dict)
    validation: ReadinessReport


# ── Bundle ──────────────────────────────────────────────────────────


class BundleMetadata(BaseModel):
    agent_type: str
    spec_id: str | None = None
    task_id: str | None = None
    injection_time: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    performance: dict[str, float] = Field(default_factory=dict)


class ContextBundle(BaseModel):
    """The assembled, filtered, validated context returned to callers."""

    metadata: BundleMetadata
    layers: LayerSet
    inheritance: Inheritance = Field(default_factory=Inheritance)
    filtering: FilteringInfo | None = None
    validation: ValidationResult | None = None
    automation: AutomationContext | None = None


# ── Recommendations ─────────────────────────────────────────────────


class TaskRef(BaseModel):
    """A candidate task from the router.  Unknown keys are preserved."""

    model_config = ConfigDict(extra="allow")

    spec_id: str
    task_id: str
    priority: str | None = None


class ContextPreview(BaseModel):
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    completeness: float = Field(default=0.0, ge=0.0, le=1.0)
    estimated_time_ms: float = 0.0
    has_required_context: bool = False
    confidence: Literal["high", "low"] = "high"
    error: str | None = None

    @property
    def rank_score(self) -> float:
        return 0.7 * self.relevance_score + 0.3 * self.completeness


class TaskRecommendation(TaskRef):
    context_preview: ContextPreview | None = None


class RecommendationSet(BaseModel):
    agent_type: str
    recommendations: list[TaskRecommendation] = Field(default_factory=list)
    generated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


# ── Cache ───────────────────────────────────────────────────────────

CacheKey = tuple[str, str, str]


@dataclasses.dataclass
class CacheEntry:
    """A cached bundle with the wall-clock time it was stored (epoch ms)."""

    key: CacheKey
    bundle: ContextBundle
    stored_at_ms: float
    hit_count: int = 0

    def age_ms(self, now_ms: float) -> float:
        return now_ms - self.stored_at_ms
