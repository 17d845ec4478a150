"""Header schemas for context documents and agent definitions.

Schema problems never raise: missing required fields and type mismatches
are recorded as errors, unexpected enum values as warnings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from asd_context.validation.models import IssueSink


@dataclass(frozen=True)
class SchemaDefinition:
    required: tuple[str, ...]
    optional: tuple[str, ...] = ()
    types: Mapping[str, str] = field(default_factory=dict)


SCHEMAS: dict[str, SchemaDefinition] = {
    "agent": SchemaDefinition(
        required=("agent_type", "capabilities", "context_requirements"),
        optional=(
            "specializations",
            "workflow_steps",
            "validation_requirements",
            "handoff_checklist",
        ),
        types={
            "agent_type": "string",
            "capabilities": "array",
            "context_requirements": "array",
            "specializations": "array",
            "workflow_steps": "array",
            "validation_requirements": "array",
            "handoff_checklist": "array",
        },
    ),
    "project": SchemaDefinition(
        required=("context_type", "project_name", "version", "phase"),
        optional=("constraints", "architecture_decisions", "technology_stack", "last_updated"),
        types={
            "context_type": "string",
            "project_name": "string",
            "version": "string",
            "phase": "string",
            "constraints": "array",
            "architecture_decisions": "array",
            "technology_stack": "array",
            "last_updated": "string",
        },
    ),
    "spec": SchemaDefinition(
        required=("context_type", "spec_id", "spec_title", "priority", "status"),
        optional=(
            "phase",
            "assigned_agents",
            "research_findings",
            "implementation_decisions",
            "constraints",
        ),
        types={
            "context_type": "string",
            "spec_id": "string",
            "spec_title": "string",
            "priority": "string",
            "status": "string",
            "phase": "string",
            "assigned_agents": "array",
            "research_findings": "array",
            "implementation_decisions": "array",
            "constraints": "array",
        },
    ),
    "task": SchemaDefinition(
        required=("context_type", "task_id", "spec_id", "task_title", "assigned_agent", "status"),
        optional=(
            "started",
            "progress",
            "implementation_notes",
            "research_findings",
            "decisions_made",
            "blockers",
            "next_steps",
            "handoff_notes",
        ),
        types={
            "context_type": "string",
            "task_id": "string",
            "spec_id": "string",
            "task_title": "string",
            "assigned_agent": "string",
            "status": "string",
            "started": "string",
            "progress": "object",
            "implementation_notes": "array",
            "research_findings": "array",
            "decisions_made": "array",
            "blockers": "array",
            "next_steps": "array",
            "handoff_notes": "array",
        },
    ),
}

ENUM_RULES: dict[str, tuple[str, ...]] = {
    "priority": ("P0", "P1", "P2", "P3"),
    "status": ("active", "ready", "in_progress", "blocked", "completed", "cancelled"),
    "context_type": ("project", "spec", "task", "agent", "process"),
    "agent_type": ("software-architect", "backend-developer", "cli-specialist", "qa-engineer"),
}

KNOWN_AGENT_TYPES = ENUM_RULES["agent_type"]


def type_name(value: Any) -> str:
    """Schema type name of a parsed header value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def validate_context_schema(header: Mapping[str, Any], schema_type: str, sink: IssueSink) -> None:
    """Check *header* against the named schema, appending issues to *sink*."""
    schema = SCHEMAS.get(schema_type)
    if schema is None:
        sink.errors.append(f"Unknown schema type: {schema_type}")
        return

    for name in schema.required:
        if header.get(name) is None:
            sink.errors.append(f"Missing required field: {name}")

    for name, expected in schema.types.items():
        value = header.get(name)
        if value is None:
            continue
        actual = type_name(value)
        if actual != expected:
            sink.errors.append(f"Field {name} should be {expected}, got {actual}")

    for name, allowed in ENUM_RULES.items():
        value = header.get(name)
        if value and value not in allowed:
            sink.warnings.append(f"Field {name} has unexpected value: {value}")
