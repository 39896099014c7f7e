"""
Shared fixtures for the Tessera test suite.
"""

import pytest

from tessera import ServiceManager, Registry
from tessera.diagnostics import Diagnostics, RecordingListener

from sample_services import CountingFactory


@pytest.fixture
def manager():
    """A clean service manager."""
    return ServiceManager()


@pytest.fixture
def strict_manager():
    """A manager whose registry rejects overrides."""
    return ServiceManager(registry=Registry(allow_override=False))


@pytest.fixture
def recorder():
    return RecordingListener()


@pytest.fixture
def observed_manager(recorder):
    """A manager with a recording diagnostics listener."""
    return ServiceManager(diagnostics=Diagnostics([recorder]))


@pytest.fixture
def counting_factory():
    return CountingFactory()
