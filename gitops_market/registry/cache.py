"""On-disk cache of registry indexes.

The cache is a fallback for when a live fetch fails. It is never consulted
to decide whether a pattern exists, and writing to it is best effort: a
failed write is reported through :class:`CacheWriteResult` and logged, but
never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from gitops_market.errors import RegistryConfigError, TransportError
from gitops_market.registry.models import RegistryIndex, index_from_dict, index_to_dict

logger = logging.getLogger(__name__)


@dataclass
class CacheWriteResult:
    """Outcome of a best-effort cache write."""

    ok: bool
    path: str = ""
    error: str = ""


class IndexCache:
    """Stores one ``index.yaml`` per registry under ``<cache_dir>/registries/``."""

    INDEX_FILE = "index.yaml"

    def __init__(self, cache_dir: str | Path | None):
        self.cache_dir = Path(cache_dir) if cache_dir else None

    def path_for(self, registry_name: str) -> Path:
        if self.cache_dir is None:
            raise RegistryConfigError("cache not configured")
        return self.cache_dir / "registries" / registry_name / self.INDEX_FILE

    def write(self, registry_name: str, index: RegistryIndex) -> CacheWriteResult:
        if self.cache_dir is None:
            return CacheWriteResult(ok=True)

        path = self.path_for(registry_name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                yaml.safe_dump(index_to_dict(index), f, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("failed to cache index for registry '%s': %s", registry_name, e)
            return CacheWriteResult(ok=False, path=str(path), error=str(e))

        return CacheWriteResult(ok=True, path=str(path))

    def read(self, registry_name: str) -> RegistryIndex:
        path = self.path_for(registry_name)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise TransportError(
                f"cached index not found for registry '{registry_name}'",
                registry=registry_name,
                location=str(path),
            ) from e
        except (OSError, yaml.YAMLError) as e:
            raise TransportError(
                f"failed to read cached index for registry '{registry_name}': {e}",
                registry=registry_name,
                location=str(path),
            ) from e

        if not isinstance(data, dict):
            raise TransportError(
                f"cached index for registry '{registry_name}' is not a mapping",
                registry=registry_name,
                location=str(path),
            )
        try:
            return index_from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            raise TransportError(
                f"malformed cached index for registry '{registry_name}': {e}",
                registry=registry_name,
                location=str(path),
            ) from e
