"""Pattern scaffolding — create and check a pattern source directory.

A pattern source directory holds::

    <name>/
    ├── pattern.yaml   # the definition
    └── README.md      # generated usage notes
"""

from __future__ import annotations

from pathlib import Path

from gitops_market.errors import MarketplaceError
from gitops_market.models.pattern import (
    PATTERN_FILE,
    Component,
    ConfigItem,
    Pattern,
    ValidationCheck,
    load_pattern,
    new_pattern,
)
from gitops_market.utils.validator import VALID_COMPONENT_TYPES

_README_TEMPLATE = """\
# {name}

{description}

## Installation

```bash
gitops-market install {name}
```

## Configuration

| Key | Type | Default | Description |
|-----|------|---------|-------------|
{config_rows}

## Components

{component_rows}
"""


def render_readme(pattern: Pattern) -> str:
    config_rows = "\n".join(
        f"| {key} | {item.type} | {'' if item.default is None else item.default} | {item.description} |"
        for key, item in sorted(pattern.spec.config.items())
    )
    component_rows = "\n".join(
        f"- **{c.name}**: {c.type}" + (f" ({c.version})" if c.version else "")
        for c in pattern.spec.components
    )
    return _README_TEMPLATE.format(
        name=pattern.metadata.name,
        description=pattern.metadata.description,
        config_rows=config_rows,
        component_rows=component_rows,
    )


def scaffold_pattern(name: str, category: str, output_dir: str | Path) -> Pattern:
    """Write a starter ``pattern.yaml`` and ``README.md`` under ``output_dir/name``."""
    pattern = new_pattern(name, "0.1.0", f"A GitOps pattern for {name}")
    pattern.metadata.category = category
    pattern.metadata.author = "your-name"
    pattern.metadata.tags = [category] if category else []

    pattern.spec.components = [
        Component(
            name=name,
            type="helm",
            chart="example/chart",
            version="1.0.0",
            repository="https://charts.example.com",
        ),
    ]
    pattern.spec.config = {
        "replicas": ConfigItem(type="integer", default=1, description="Number of replicas"),
        "enabled": ConfigItem(type="boolean", default=True, description="Enable the component"),
    }
    pattern.spec.validation = [
        ValidationCheck(name="deployment-ready", check=f"deployment/{name} ready", timeout="5m"),
    ]

    pattern_dir = Path(output_dir) / name
    pattern.save(pattern_dir / PATTERN_FILE)
    with open(pattern_dir / "README.md", "w") as f:
        f.write(render_readme(pattern))

    return pattern


def validate_pattern_dir(pattern_dir: str | Path) -> list[str]:
    """Check a pattern source directory. Returns issues; empty means publishable."""
    pattern_dir = Path(pattern_dir)
    pattern_path = pattern_dir / PATTERN_FILE
    if not pattern_path.exists():
        return [f"{PATTERN_FILE} is missing"]

    try:
        pattern = load_pattern(pattern_path)
    except MarketplaceError as e:
        return [str(e)]

    issues: list[str] = []
    if not (pattern_dir / "README.md").exists():
        issues.append("README.md is recommended but missing")

    for comp in pattern.spec.components:
        if comp.type not in VALID_COMPONENT_TYPES:
            issues.append(f"component '{comp.name}' has invalid type '{comp.type}'")

    return issues
