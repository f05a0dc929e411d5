"""Builders for pattern and local-registry fixtures."""

from pathlib import Path

import yaml

from gitops_market.models.pattern import Component, ConfigItem, Dependency, Pattern, new_pattern
from gitops_market.registry.models import Registry, RegistryType


def make_pattern(
    name: str,
    version: str = "1.0.0",
    category: str = "observability",
    components: list[Component] | None = None,
    dependencies: list[Dependency] | None = None,
    config: dict[str, ConfigItem] | None = None,
    tags: list[str] | None = None,
) -> Pattern:
    pattern = new_pattern(name, version, f"The {name} pattern")
    pattern.metadata.category = category
    pattern.metadata.author = "platform-team"
    pattern.metadata.tags = tags or [category]
    pattern.spec.components = components if components is not None else [
        Component(name=name, type="helm", chart=f"charts/{name}", version="1.2.3",
                  repository="https://charts.example.com", namespace=name),
    ]
    pattern.spec.dependencies = dependencies or []
    pattern.spec.config = config or {}
    return pattern


def write_local_registry(
    root: Path,
    patterns: list[Pattern],
    stats: dict[str, dict] | None = None,
    categories: list[dict] | None = None,
) -> Path:
    """Lay out ``root`` as a local registry holding *patterns*.

    *stats* maps a pattern name to extra index fields (rating, downloads, ...).
    """
    stats = stats or {}
    entries: dict[str, dict] = {}
    for pattern in patterns:
        meta = pattern.metadata
        pattern.save(root / "patterns" / meta.name / meta.version / "pattern.yaml")
        entry = entries.setdefault(meta.name, {
            "name": meta.name,
            "description": meta.description,
            "category": meta.category,
            "tags": list(meta.tags),
            "versions": [],
        })
        entry["versions"].append(meta.version)
        entry["latest"] = meta.version
        entry.update(stats.get(meta.name, {}))

    index = {"version": "1.0", "generated": "2026-01-01T00:00:00Z", "patterns": list(entries.values())}
    if categories:
        index["categories"] = categories
    root.mkdir(parents=True, exist_ok=True)
    with open(root / "index.yaml", "w") as f:
        yaml.safe_dump(index, f)
    return root


def local_registry(name: str, root: Path, priority: int = 0) -> Registry:
    return Registry(name=name, type=RegistryType.LOCAL, url=str(root), priority=priority)
