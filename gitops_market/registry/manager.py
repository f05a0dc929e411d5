"""Registry manager — an ordered set of registries behind one discovery API.

Registries are kept sorted by descending priority (ties keep insertion
order). Searches walk them in that order and the first registry to report a
pattern name owns it; the final ranking is by relevance, not by registry.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import httpx

from gitops_market.errors import (
    MarketplaceError,
    PatternNotFoundError,
    RegistryConfigError,
    RegistryNotFoundError,
)
from gitops_market.models.pattern import Pattern, category_description
from gitops_market.registry.cache import IndexCache
from gitops_market.registry.client import DEFAULT_TIMEOUT, RegistryClient
from gitops_market.registry.models import (
    CategoryIndexEntry,
    PatternIndexEntry,
    PatternSearchResult,
    PatternVersion,
    Registry,
    RegistryIndex,
    RegistryType,
    SearchOptions,
    registry_to_dict,
)

logger = logging.getLogger(__name__)

OFFICIAL_REGISTRY_URL = "https://raw.githubusercontent.com/gitopsi/patterns/main"
CANCEL_POLL_INTERVAL = 0.05


def default_registry() -> Registry:
    return Registry(
        name="official",
        type=RegistryType.OFFICIAL,
        url=OFFICIAL_REGISTRY_URL,
        priority=100,
        enabled=True,
    )


class RegistryManager:
    """Owns the registry set, the index cache, and the HTTP client."""

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        include_default: bool = True,
    ):
        self.cache = IndexCache(cache_dir)
        self.client = RegistryClient(cache=self.cache, timeout=timeout, transport=transport)
        self._registries: list[Registry] = [default_registry()] if include_default else []

    def close(self) -> None:
        self.client.close()

    # ------------------------------------------------------------------
    # Registry set
    # ------------------------------------------------------------------

    def add_registry(self, registry: Registry) -> None:
        if not registry.name:
            raise RegistryConfigError("registry name is required")
        if not registry.url and not registry.is_local:
            raise RegistryConfigError(f"registry URL is required for '{registry.name}'")
        if any(r.name == registry.name for r in self._registries):
            raise RegistryConfigError(f"registry '{registry.name}' already exists")

        self._registries.append(registry)
        self._registries.sort(key=lambda r: r.priority, reverse=True)

    def remove_registry(self, name: str) -> None:
        for i, reg in enumerate(self._registries):
            if reg.name == name:
                del self._registries[i]
                return
        raise RegistryNotFoundError(name)

    def get_registry(self, name: str) -> Registry:
        for reg in self._registries:
            if reg.name == name:
                return reg
        raise RegistryNotFoundError(name)

    def list_registries(self) -> list[Registry]:
        return list(self._registries)

    def _enabled(self) -> list[Registry]:
        return [r for r in self._registries if r.enabled]

    # ------------------------------------------------------------------
    # Indexes and patterns
    # ------------------------------------------------------------------

    def fetch_index(self, registry_name: str) -> RegistryIndex:
        """Live fetch only; use :meth:`get_cached_index` for the fallback copy."""
        reg = self.get_registry(registry_name)
        if not reg.enabled:
            raise RegistryConfigError(f"registry '{registry_name}' is disabled")
        return self.client.fetch_index(reg)

    def get_cached_index(self, registry_name: str) -> RegistryIndex:
        return self.cache.read(registry_name)

    def fetch_pattern(self, registry_name: str, name: str, version: str) -> Pattern:
        reg = self.get_registry(registry_name)
        return self.client.fetch_pattern(reg, name, version)

    def _index_or_cached(self, reg: Registry) -> RegistryIndex | None:
        try:
            return self.fetch_index(reg.name)
        except MarketplaceError as live_error:
            try:
                index = self.get_cached_index(reg.name)
            except MarketplaceError:
                logger.warning("skipping registry '%s': %s", reg.name, live_error)
                return None
            logger.warning("registry '%s' unreachable, using cached index: %s", reg.name, live_error)
            return index

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def search_patterns(
        self,
        query: str = "",
        options: SearchOptions | None = None,
        cancel: threading.Event | None = None,
    ) -> list[PatternSearchResult]:
        """Search every enabled registry and return ranked, de-duplicated results.

        A registry that can be reached neither live nor through the cache
        contributes nothing. Setting *cancel* abandons the fetch in flight
        and returns what earlier registries produced. An abandoned fetch
        finishes in the background within the client timeout and its result
        is discarded.
        """
        options = options or SearchOptions()
        query = query.lower()
        results: list[PatternSearchResult] = []
        seen: set[str] = set()

        executor = ThreadPoolExecutor(max_workers=1) if cancel is not None else None
        try:
            for reg in self._enabled():
                if cancel is not None and cancel.is_set():
                    logger.info("search cancelled, returning partial results")
                    break

                if executor is None:
                    index = self._index_or_cached(reg)
                else:
                    future = executor.submit(self._index_or_cached, reg)
                    while not future.done() and not cancel.wait(CANCEL_POLL_INTERVAL):
                        pass
                    if not future.done():
                        logger.info("search cancelled while fetching registry '%s'", reg.name)
                        break
                    index = future.result()

                if index is not None:
                    self._collect(reg, index, query, options, seen, results)
        finally:
            if executor is not None:
                executor.shutdown(wait=False, cancel_futures=True)

        sort_search_results(results, query)

        if options.limit > 0:
            results = results[: options.limit]
        return results

    @staticmethod
    def _collect(
        reg: Registry,
        index: RegistryIndex,
        query: str,
        options: SearchOptions,
        seen: set[str],
        results: list[PatternSearchResult],
    ) -> None:
        """Append matching entries whose names no earlier registry claimed."""
        for entry in index.patterns:
            if entry.name in seen:
                continue
            if matches_search(entry, query, options):
                seen.add(entry.name)
                results.append(
                    PatternSearchResult(
                        name=entry.name,
                        version=entry.latest,
                        description=entry.description,
                        category=entry.category,
                        tags=list(entry.tags),
                        rating=entry.rating,
                        downloads=entry.downloads,
                        registry=reg.name,
                        verified=entry.verified,
                    )
                )

    def find_pattern(self, name: str) -> tuple[PatternIndexEntry, str]:
        """Return the entry and registry name of the first registry listing *name*."""
        for reg in self._enabled():
            try:
                index = self.fetch_index(reg.name)
            except MarketplaceError as e:
                logger.warning("skipping registry '%s' while looking up '%s': %s", reg.name, name, e)
                continue
            entry = index.find(name)
            if entry is not None:
                return entry, reg.name
        raise PatternNotFoundError(name)

    def get_pattern_versions(self, name: str) -> list[PatternVersion]:
        entry, _ = self.find_pattern(name)
        return [PatternVersion(version=v) for v in entry.versions]

    def get_categories(self) -> list[CategoryIndexEntry]:
        """Merge category lists across registries, summing counts by name."""
        merged: dict[str, CategoryIndexEntry] = {}

        for reg in self._enabled():
            try:
                index = self.fetch_index(reg.name)
            except MarketplaceError as e:
                logger.warning("skipping registry '%s' for categories: %s", reg.name, e)
                continue

            if index.categories:
                for cat in index.categories:
                    if cat.name in merged:
                        merged[cat.name].count += cat.count
                    else:
                        merged[cat.name] = CategoryIndexEntry(
                            name=cat.name,
                            description=cat.description,
                            icon=cat.icon,
                            count=cat.count,
                        )
                continue

            # No published list: derive from the entries
            for entry in index.patterns:
                if not entry.category:
                    continue
                if entry.category not in merged:
                    merged[entry.category] = CategoryIndexEntry(
                        name=entry.category,
                        description=category_description(entry.category),
                    )
                merged[entry.category].count += 1

        return sorted(merged.values(), key=lambda c: c.name)

    def to_json(self) -> str:
        return json.dumps([registry_to_dict(r) for r in self._registries], indent=2)


def matches_search(entry: PatternIndexEntry, query: str, options: SearchOptions) -> bool:
    """Apply category/tag filters, then substring-match the lowercased query."""
    if options.category and entry.category.lower() != options.category.lower():
        return False

    if options.tags:
        wanted = {t.lower() for t in options.tags}
        if not any(t.lower() in wanted for t in entry.tags):
            return False

    if not query:
        return True

    if query in entry.name.lower() or query in entry.description.lower():
        return True
    return any(query in t.lower() for t in entry.tags)


def sort_search_results(results: list[PatternSearchResult], query: str) -> None:
    """Exact name, then name prefix, then rating, then downloads."""
    query = query.lower()
    results.sort(
        key=lambda r: (
            r.name.lower() != query,
            not r.name.lower().startswith(query),
            -r.rating,
            -r.downloads,
        )
    )
