"""Build a registry ``index.yaml`` from a tree of ``pattern.yaml`` files."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

import yaml

from gitops_market.errors import MarketplaceError
from gitops_market.models.pattern import PATTERN_FILE, category_description, load_pattern
from gitops_market.registry.models import (
    CategoryIndexEntry,
    PatternIndexEntry,
    RegistryIndex,
    index_to_dict,
)

logger = logging.getLogger(__name__)


def version_key(version: str) -> tuple:
    """Order versions numerically where possible (``1.10.0`` > ``1.9.0``)."""
    parts = re.split(r"[.\-+]", version.lstrip("v"))
    return tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts)


def build_index(patterns_dir: str | Path) -> RegistryIndex:
    """Scan *patterns_dir* and return an index with one entry per pattern name.

    Files that fail to load are skipped.
    """
    entries: dict[str, PatternIndexEntry] = {}

    for path in sorted(Path(patterns_dir).rglob(PATTERN_FILE)):
        try:
            pattern = load_pattern(path)
        except MarketplaceError as e:
            logger.warning("skipping %s: %s", path, e)
            continue

        meta = pattern.metadata
        entry = entries.get(meta.name)
        if entry is None:
            entry = PatternIndexEntry(name=meta.name)
            entries[meta.name] = entry
        if meta.version not in entry.versions:
            entry.versions.append(meta.version)
        entry.versions.sort(key=version_key)

        # Descriptive fields follow the newest version
        if entry.versions[-1] == meta.version:
            entry.latest = meta.version
            entry.description = meta.description
            entry.category = meta.category
            entry.tags = list(meta.tags)
            entry.author = meta.author

    counts: dict[str, int] = {}
    for entry in entries.values():
        if entry.category:
            counts[entry.category] = counts.get(entry.category, 0) + 1

    return RegistryIndex(
        version="1.0",
        generated=datetime.now(timezone.utc).isoformat(),
        patterns=sorted(entries.values(), key=lambda e: e.name),
        categories=[
            CategoryIndexEntry(name=cat, description=category_description(cat), count=n)
            for cat, n in sorted(counts.items())
        ],
    )


def generate_index(patterns_dir: str | Path, output_path: str | Path) -> RegistryIndex:
    """Build the index for *patterns_dir* and write it to *output_path*."""
    index = build_index(patterns_dir)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        yaml.safe_dump(index_to_dict(index), f, sort_keys=False, allow_unicode=True)
    return index
