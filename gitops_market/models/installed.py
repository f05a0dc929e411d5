"""Installation record — what was installed, when, and with which configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from gitops_market.models.pattern import Pattern, pattern_from_dict, pattern_to_dict


@dataclass
class InstalledPattern:
    """A pattern installed into a project.

    Created on a successful install, rewritten on update (``installed_at`` is
    kept), and dropped on uninstall.
    """

    pattern: Pattern
    installed_at: str = ""  # ISO 8601
    updated_at: str = ""  # ISO 8601
    config: dict[str, Any] = field(default_factory=dict)
    environments: list[str] = field(default_factory=list)
    status: str = "installed"
    health: str = ""
    paths: list[str] = field(default_factory=list)
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.pattern.metadata.name

    @property
    def version(self) -> str:
        return self.pattern.metadata.version

    @property
    def category(self) -> str:
        return self.pattern.metadata.category


def installed_to_dict(record: InstalledPattern) -> dict:
    data = {
        "pattern": pattern_to_dict(record.pattern),
        "installedAt": record.installed_at,
        "status": record.status,
    }
    if record.updated_at:
        data["updatedAt"] = record.updated_at
    if record.config:
        data["config"] = dict(record.config)
    if record.environments:
        data["environments"] = list(record.environments)
    if record.health:
        data["health"] = record.health
    if record.paths:
        data["paths"] = list(record.paths)
    if record.annotations:
        data["annotations"] = dict(record.annotations)
    return data


def installed_from_dict(data: dict) -> InstalledPattern:
    return InstalledPattern(
        pattern=pattern_from_dict(data.get("pattern") or {}),
        installed_at=str(data.get("installedAt") or ""),
        updated_at=str(data.get("updatedAt") or ""),
        config=dict(data.get("config") or {}),
        environments=list(data.get("environments") or []),
        status=data.get("status", "installed"),
        health=data.get("health", ""),
        paths=list(data.get("paths") or []),
        annotations=dict(data.get("annotations") or {}),
    )
