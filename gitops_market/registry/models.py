"""Registry data models — sources, index entries, and search."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RegistryType(Enum):
    OFFICIAL = "official"
    COMMUNITY = "community"
    PRIVATE = "private"
    LOCAL = "local"


@dataclass
class RegistryAuth:
    """Credentials for a private registry."""

    type: str = "token"  # token | basic | ssh
    token: str = ""
    username: str = ""
    password: str = ""
    ssh_key: str = ""


@dataclass
class Registry:
    """A named, prioritized pattern source.

    ``url`` is a base HTTP URL, or a filesystem path for local registries.
    Higher ``priority`` is searched first.
    """

    name: str
    type: RegistryType = RegistryType.COMMUNITY
    url: str = ""
    priority: int = 0
    auth: RegistryAuth | None = None
    enabled: bool = True

    @property
    def is_local(self) -> bool:
        return self.type == RegistryType.LOCAL


@dataclass
class PatternIndexEntry:
    """One pattern as listed in a registry index."""

    name: str
    description: str = ""
    category: str = ""
    tags: list[str] = field(default_factory=list)
    versions: list[str] = field(default_factory=list)
    latest: str = ""
    author: str = ""
    rating: float = 0.0  # 0.0 - 5.0
    downloads: int = 0
    verified: bool = False
    deprecated: bool = False


@dataclass
class CategoryIndexEntry:
    name: str
    description: str = ""
    icon: str = ""
    count: int = 0


@dataclass
class RegistryIndex:
    """Catalog snapshot published by a registry."""

    version: str = "1.0"
    generated: str = ""  # ISO 8601
    patterns: list[PatternIndexEntry] = field(default_factory=list)
    categories: list[CategoryIndexEntry] = field(default_factory=list)

    def find(self, name: str) -> PatternIndexEntry | None:
        for entry in self.patterns:
            if entry.name == name:
                return entry
        return None


@dataclass
class PatternVersion:
    version: str
    released_at: str = ""
    changelog: str = ""
    deprecated: bool = False
    min_upgrade: str = ""
    breaking_api: bool = False


@dataclass
class SearchOptions:
    """Filters for a cross-registry search."""

    category: str = ""
    tags: list[str] = field(default_factory=list)
    platform: str = ""
    tool: str = ""
    limit: int = 0  # 0 means unlimited


@dataclass
class PatternSearchResult:
    name: str
    version: str = ""
    description: str = ""
    category: str = ""
    tags: list[str] = field(default_factory=list)
    rating: float = 0.0
    downloads: int = 0
    installed: bool = False
    registry: str = ""
    verified: bool = False


# ---------------------------------------------------------------------------
# YAML mapping
# ---------------------------------------------------------------------------


def registry_to_dict(reg: Registry) -> dict:
    data = {
        "name": reg.name,
        "type": reg.type.value,
        "url": reg.url,
        "priority": reg.priority,
        "enabled": reg.enabled,
    }
    if reg.auth:
        # Secrets are never serialized
        data["auth"] = {"type": reg.auth.type}
    return data


def registry_from_dict(data: dict) -> Registry:
    auth_data = data.get("auth")
    auth = None
    if auth_data:
        auth = RegistryAuth(
            type=auth_data.get("type", "token"),
            token=auth_data.get("token", ""),
            username=auth_data.get("username", ""),
            password=auth_data.get("password", ""),
            ssh_key=auth_data.get("sshKey", ""),
        )
    return Registry(
        name=data.get("name", ""),
        type=RegistryType(data.get("type", "community")),
        url=data.get("url", ""),
        priority=int(data.get("priority", 0)),
        auth=auth,
        enabled=bool(data.get("enabled", True)),
    )


def index_to_dict(index: RegistryIndex) -> dict:
    data: dict = {
        "version": index.version,
        "generated": index.generated,
        "patterns": [
            {
                "name": e.name,
                "description": e.description,
                "category": e.category,
                "tags": list(e.tags),
                "versions": list(e.versions),
                "latest": e.latest,
                "author": e.author,
                "rating": e.rating,
                "downloads": e.downloads,
                "verified": e.verified,
                "deprecated": e.deprecated,
            }
            for e in index.patterns
        ],
    }
    if index.categories:
        data["categories"] = [
            {"name": c.name, "description": c.description, "icon": c.icon, "count": c.count}
            for c in index.categories
        ]
    return data


def index_from_dict(data: dict) -> RegistryIndex:
    return RegistryIndex(
        version=str(data.get("version", "")),
        generated=str(data.get("generated") or ""),
        patterns=[
            PatternIndexEntry(
                name=str(p.get("name", "")),
                description=p.get("description") or "",
                category=p.get("category") or "",
                tags=list(p.get("tags") or []),
                versions=[str(v) for v in p.get("versions") or []],
                latest=str(p.get("latest") or ""),
                author=p.get("author") or "",
                rating=float(p.get("rating") or 0.0),
                downloads=int(p.get("downloads") or 0),
                verified=bool(p.get("verified", False)),
                deprecated=bool(p.get("deprecated", False)),
            )
            for p in data.get("patterns") or []
        ],
        categories=[
            CategoryIndexEntry(
                name=c.get("name", ""),
                description=c.get("description") or "",
                icon=c.get("icon") or "",
                count=int(c.get("count") or 0),
            )
            for c in data.get("categories") or []
        ],
    )
