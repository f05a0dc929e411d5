"""Registry client — read indexes and pattern definitions from one source.

Local registries are directory trees::

    <path>/index.yaml
    <path>/patterns/<name>/<version>/pattern.yaml

Remote registries serve the same layout over HTTP. Successful remote index
fetches are written to the index cache.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
import yaml

from gitops_market.errors import MarketplaceError, PatternValidationError, TransportError
from gitops_market.models.pattern import PATTERN_FILE, Pattern, load_pattern, parse_pattern
from gitops_market.registry.cache import IndexCache
from gitops_market.registry.models import Registry, RegistryIndex, index_from_dict
from gitops_market.utils.validator import check_path_segment

logger = logging.getLogger(__name__)

INDEX_FILE = "index.yaml"
DEFAULT_TIMEOUT = 30.0


class RegistryClient:
    """Fetches indexes and patterns for any :class:`Registry`.

    One ``httpx.Client`` is shared by all remote fetches; its timeout applies
    per client, not per call.
    """

    def __init__(
        self,
        cache: IndexCache | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.cache = cache or IndexCache(None)
        self._http = httpx.Client(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self) -> RegistryClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def fetch_index(self, registry: Registry) -> RegistryIndex:
        """Fetch the live index. Never falls back to the cache."""
        if registry.is_local:
            return self._fetch_local_index(registry)
        return self._fetch_remote_index(registry)

    def _fetch_local_index(self, registry: Registry) -> RegistryIndex:
        path = Path(registry.url) / INDEX_FILE
        try:
            with open(path) as f:
                text = f.read()
        except OSError as e:
            raise TransportError(
                f"failed to read local index for registry '{registry.name}': {e}",
                registry=registry.name,
                location=str(path),
            ) from e
        return self._parse_index(text, registry, str(path))

    def _fetch_remote_index(self, registry: Registry) -> RegistryIndex:
        url = f"{registry.url.rstrip('/')}/{INDEX_FILE}"
        text = self._get(registry, url, "index")
        index = self._parse_index(text, registry, url)
        self.cache.write(registry.name, index)
        return index

    @staticmethod
    def _parse_index(text: str, registry: Registry, location: str) -> RegistryIndex:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise TransportError(
                f"failed to parse index for registry '{registry.name}': {e}",
                registry=registry.name,
                location=location,
            ) from e
        if not isinstance(data, dict):
            raise TransportError(
                f"index for registry '{registry.name}' is not a mapping",
                registry=registry.name,
                location=location,
            )
        try:
            return index_from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            raise TransportError(
                f"malformed index for registry '{registry.name}': {e}",
                registry=registry.name,
                location=location,
            ) from e

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def fetch_pattern(self, registry: Registry, name: str, version: str) -> Pattern:
        issues = [
            issue
            for issue in (check_path_segment("pattern name", name), check_path_segment("version", version))
            if issue
        ]
        if issues:
            raise PatternValidationError(issues)

        if registry.is_local:
            path = Path(registry.url) / "patterns" / name / version / PATTERN_FILE
            try:
                return load_pattern(path)
            except TransportError as e:
                e.registry = registry.name
                raise

        url = f"{registry.url.rstrip('/')}/patterns/{name}/{version}/{PATTERN_FILE}"
        text = self._get(registry, url, f"pattern '{name}@{version}'")
        try:
            return parse_pattern(text, source=url)
        except MarketplaceError:
            logger.warning("registry '%s' served an invalid pattern at %s", registry.name, url)
            raise

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _get(self, registry: Registry, url: str, what: str) -> str:
        headers: dict[str, str] = {}
        auth = None
        if registry.auth is not None:
            if registry.auth.type == "token":
                headers["Authorization"] = f"Bearer {registry.auth.token}"
            elif registry.auth.type == "basic":
                auth = httpx.BasicAuth(registry.auth.username, registry.auth.password)

        try:
            response = self._http.get(url, headers=headers, auth=auth)
        except httpx.HTTPError as e:
            raise TransportError(
                f"failed to fetch {what} from registry '{registry.name}': {e}",
                registry=registry.name,
                location=url,
            ) from e

        if response.status_code != 200:
            raise TransportError(
                f"failed to fetch {what} from registry '{registry.name}': HTTP {response.status_code}",
                registry=registry.name,
                location=url,
            )
        return response.text
