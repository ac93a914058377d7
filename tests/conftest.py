import os
import sys

import pytest

# Ensure the 'src' directory is in the python path so we can import kubegate
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from builders import RELEASES, StubProvider  # noqa: E402
from kubegate.capabilities.cache import CapabilityCache  # noqa: E402
from kubegate.core.engine import AdmissionEngine  # noqa: E402
from kubegate.releases import ReleaseRegistry  # noqa: E402


@pytest.fixture
def provider():
    return StubProvider()


@pytest.fixture
def cache(provider):
    cache = CapabilityCache(provider, fetch_timeout=5.0)
    yield cache
    cache.close()


@pytest.fixture
def releases():
    return ReleaseRegistry(RELEASES)


@pytest.fixture
def engine(cache, releases):
    return AdmissionEngine(cache, releases)
