"""Per-layer content checks."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from asd_context.validation.models import LayerValidation, ValidationResult
from asd_context.validation.schemas import KNOWN_AGENT_TYPES, validate_context_schema

REQUIRED_AGENT_FIELDS = ("agent_type", "capabilities", "context_requirements")


def check_layers(layers: Any, result: ValidationResult) -> None:
    """Validate every layer present and fold its issues into *result*."""
    if not isinstance(layers, Mapping):
        return

    for name, content in layers.items():
        layer_result = LayerValidation()
        checker = _LAYER_CHECKS.get(name)
        if checker is not None:
            checker(content, layer_result)

        layer_result.is_valid = not layer_result.errors
        result.layers[name] = layer_result
        result.errors.extend(layer_result.errors)
        result.warnings.extend(layer_result.warnings)


def _check_critical(content: Any, check: LayerValidation) -> None:
    if not content:
        check.warnings.append("Critical layer is empty")
        return

    constraints = content.get("constraints")
    sources = content.get("sources")
    if not isinstance(constraints, list):
        check.warnings.append("Critical layer missing constraints array")
    if not isinstance(sources, list):
        check.warnings.append("Critical layer missing sources array")

    check.content_check["has_constraints"] = bool(constraints)
    check.content_check["has_sources"] = bool(sources)


def _document_header(document: Mapping[str, Any]) -> Mapping[str, Any]:
    header = document.get("header")
    return header if isinstance(header, Mapping) else document


def _check_task_specific(content: Any, check: LayerValidation) -> None:
    if not content:
        check.warnings.append("Task-specific layer is empty")
        return

    spec = content.get("spec")
    task = content.get("task")
    if isinstance(spec, Mapping):
        validate_context_schema(_document_header(spec), "spec", check)
    if isinstance(task, Mapping):
        validate_context_schema(_document_header(task), "task", check)

    check.content_check["has_spec"] = bool(spec)
    check.content_check["has_task"] = bool(task)


def _check_agent_specific(content: Any, check: LayerValidation) -> None:
    if not content:
        check.errors.append("Agent-specific layer is empty")
        return

    # Presence, not truthiness: an agent with no capabilities listed is valid.
    for name in REQUIRED_AGENT_FIELDS:
        if content.get(name) is None:
            check.errors.append(f"Agent layer missing required field: {name}")

    agent_type = content.get("agent_type")
    if agent_type and agent_type not in KNOWN_AGENT_TYPES:
        check.warnings.append(f"Unknown agent type: {agent_type}")

    check.content_check["has_capabilities"] = bool(content.get("capabilities"))
    check.content_check["has_context_requirements"] = bool(content.get("context_requirements"))


def _check_process(content: Any, check: LayerValidation) -> None:
    if not content:
        check.warnings.append("Process layer is empty")
        return

    check.content_check["has_templates"] = bool(content.get("templates"))
    check.content_check["has_checklists"] = bool(content.get("checklists"))
    if not (check.content_check["has_templates"] or check.content_check["has_checklists"]):
        check.warnings.append("Process layer lacks both templates and checklists")


_LAYER_CHECKS: dict[str, Callable[[Any, LayerValidation], None]] = {
    "critical": _check_critical,
    "task_specific": _check_task_specific,
    "agent_specific": _check_agent_specific,
    "process": _check_process,
}
