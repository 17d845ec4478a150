"""Top-level bundle structure: required sections, metadata, layer presence."""

from __future__ import annotations

from typing import Any, Mapping

from asd_context.validation.models import LAYER_NAMES, ValidationResult

REQUIRED_SECTIONS = ("metadata", "layers")
REQUIRED_METADATA = ("agent_type", "injection_time")


def check_structure(bundle: Mapping[str, Any], result: ValidationResult) -> None:
    for section in REQUIRED_SECTIONS:
        if not bundle.get(section):
            result.errors.append(f"Missing required field: {section}")

    metadata = bundle.get("metadata")
    if isinstance(metadata, Mapping):
        for name in REQUIRED_METADATA:
            if not metadata.get(name):
                result.warnings.append(f"Missing metadata field: {name}")

    layers = bundle.get("layers")
    if isinstance(layers, Mapping):
        for layer in LAYER_NAMES:
            if not isinstance(layers.get(layer), Mapping):
                result.warnings.append(f"Missing context layer: {layer}")
