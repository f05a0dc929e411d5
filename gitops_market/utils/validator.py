"""Validator — check pattern definitions and operator-supplied configuration.

All checks accumulate every issue before returning so the caller sees the
complete list. An empty list means valid.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gitops_market.models.pattern import ConfigItem, Pattern


PATTERN_KIND = "Pattern"
VALID_COMPONENT_TYPES = {"helm", "kustomize", "manifest", "operator"}


def validate_pattern(pattern: Pattern) -> list[str]:
    """Validate a pattern definition against the schema."""
    issues: list[str] = []

    if not pattern.api_version:
        issues.append("apiVersion is required")
    if pattern.kind != PATTERN_KIND:
        issues.append(f"kind must be '{PATTERN_KIND}'")

    meta = pattern.metadata
    if not meta.name:
        issues.append("metadata.name is required")
    if not meta.version:
        issues.append("metadata.version is required")
    if not meta.description:
        issues.append("metadata.description is required")

    for i, comp in enumerate(pattern.spec.components):
        if not comp.name:
            issues.append(f"components[{i}].name is required")
        if not comp.type:
            issues.append(f"components[{i}].type is required")

    for key, item in pattern.spec.config.items():
        if not item.type:
            issues.append(f"config.{key}.type is required")

    return issues


def validate_config(pattern: Pattern, config: dict[str, Any]) -> list[str]:
    """Validate supplied configuration against a pattern's config schema.

    Required keys must be present. Keys that are declared in the schema are
    type-checked; unknown keys pass through untouched.
    """
    issues: list[str] = []
    schema = pattern.spec.config

    for key, item in schema.items():
        if item.required and key not in config:
            issues.append(f"required config '{key}' is missing")

    for key, value in config.items():
        item = schema.get(key)
        if item is None:
            continue
        issue = _check_value(key, value, item)
        if issue:
            issues.append(issue)

    return issues


def merge_config_with_defaults(pattern: Pattern, config: dict[str, Any] | None) -> dict[str, Any]:
    """Declared defaults first, then every supplied key on top."""
    merged: dict[str, Any] = {}
    for key, item in pattern.spec.config.items():
        if item.default is not None:
            merged[key] = item.default
    merged.update(config or {})
    return merged


def _is_integer(value: Any) -> bool:
    # bool is an int subclass; YAML true/false must not pass as integers
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float)


def _check_value(key: str, value: Any, item: ConfigItem) -> str:
    if item.type == "string":
        if not isinstance(value, str):
            return f"{key} must be a string"
    elif item.type == "integer":
        if not _is_integer(value):
            return f"{key} must be an integer"
        number = int(value)
        if item.min is not None and number < item.min:
            return f"{key} must be at least {item.min}"
        if item.max is not None and number > item.max:
            return f"{key} must be at most {item.max}"
    elif item.type == "boolean":
        if not isinstance(value, bool):
            return f"{key} must be a boolean"
    elif item.type == "array":
        if not isinstance(value, list):
            return f"{key} must be an array"

    if item.enum and isinstance(value, str) and value not in item.enum:
        return f"{key} must be one of: {item.enum}"

    return ""


def check_path_segment(label: str, value: str) -> str:
    """Return an issue when *value* cannot be used as a single path component."""
    if value in (".", "..") or "/" in value or "\\" in value or "\x00" in value:
        return f"{label} '{value}' is not a valid path segment"
    return ""
