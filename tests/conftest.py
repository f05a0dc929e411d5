import pytest

from gitops_market.registry.manager import RegistryManager


@pytest.fixture
def manager(tmp_path):
    """A registry manager with no default registry and a private cache."""
    rm = RegistryManager(cache_dir=tmp_path / "cache", include_default=False)
    yield rm
    rm.close()
