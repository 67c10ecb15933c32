# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Iterator

import httpx
import pytest
from hypothesis import Phase, Verbosity, settings

from sinkhub.core.context import ProcessContext
from sinkhub.dispatch.catalog import SinkKindCatalog
from sinkhub.dispatch.factory import discover_sink_kinds
from tests.fixtures.dispatch import FakeClock, FakeSocketFactory, make_context

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host CGI/sinkhub variables out of channel detection and providers."""
    for var in ("SINKHUB_CHANNEL", "SINKHUB_PRIVACY_KEY", "REQUEST_METHOD", "REMOTE_ADDR", "HTTP_USER_AGENT"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def context(clock: FakeClock) -> ProcessContext:
    """Fresh process context per test: CLI channel, production, seeded rng."""
    return make_context(clock=clock)


@pytest.fixture(scope="session")
def catalog() -> SinkKindCatalog:
    """Built-in sink kinds (discovery is pure, so one per session)."""
    return discover_sink_kinds()


@pytest.fixture
def socket_factory() -> FakeSocketFactory:
    return FakeSocketFactory()


@pytest.fixture
def http_client() -> Iterator[httpx.Client]:
    """Shared client for respx-mocked tests."""
    client = httpx.Client(timeout=5.0)
    try:
        yield client
    finally:
        client.close()
