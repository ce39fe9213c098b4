"""Test configuration and shared fixtures.

Provide isolated settings, provider/record factories, a scripted provider
invoker and an HTTP client wired to fresh routing-core instances. No fixture
touches the network, environment files or secrets.
"""
import asyncio
from typing import Any, Callable, Generator, Optional
from unittest import mock

import pytest
from fastapi.testclient import TestClient

from app.config import Settings, get_settings
from app.main import Services, app, build_services
from app.polyroute.core.metrics import MetricsLogger
from app.polyroute.core.types import AttemptRecord, Completion, Provider, RouteRequest

# ==============================================================================
# CONFIGURATION FIXTURES
# ==============================================================================

@pytest.fixture(scope="session")
def mock_settings() -> Settings:
    """Provide isolated test configuration without external dependencies.

    Returns:
        Settings: Development configuration with a fake OpenAI key and rate
            limiting disabled so repeated test requests stay deterministic.
    """
    return Settings(
        ENVIRONMENT="development",
        LOG_LEVEL="debug",
        OPENAI_API_KEY="test_openai_key",
        PROVIDER_RATE_LIMIT_PER_MINUTE=None,
        PROVIDER_CATALOG_FILE=None,
        _env_file=None  # Bypass production environment file
    )

# ==============================================================================
# DOMAIN FACTORIES
# ==============================================================================

@pytest.fixture
def make_provider() -> Callable[..., Provider]:
    """Provide a factory for providers with sensible defaults."""
    def _make(provider_id: str, reliability: float = 0.9, **overrides: Any) -> Provider:
        fields: dict[str, Any] = {
            "id": provider_id,
            "name": provider_id.upper(),
            "vendor": "openai",
            "model": f"{provider_id}-model",
            "endpoint": f"https://{provider_id}.example.com/v1/chat/completions",
            "task_types": ("general",),
            "reliability": reliability,
            "response_time_ms": 1000.0,
            "cost_per_token": 0.00001,
        }
        fields.update(overrides)
        return Provider(**fields)
    return _make


@pytest.fixture
def make_record() -> Callable[..., AttemptRecord]:
    """Provide a factory for attempt records with sensible defaults."""
    def _make(**overrides: Any) -> AttemptRecord:
        fields: dict[str, Any] = {
            "request_id": "req-1",
            "provider": "alpha",
            "model": "alpha-model",
            "task_type": "general",
            "tokens_used": 100,
            "response_time_ms": 100.0,
            "cost": 0.001,
            "success": True,
        }
        fields.update(overrides)
        return AttemptRecord(**fields)
    return _make


class ScriptedInvoker:
    """Provider invoker whose outcome per provider is scripted by the test.

    An outcome may be a `Completion`, an exception instance to raise, or an
    async callable ``(provider, request) -> Completion``. Providers without
    a script answer with a 100-token completion.
    """

    def __init__(self, outcomes: Optional[dict[str, Any]] = None, delay: float = 0.0):
        self.outcomes: dict[str, Any] = dict(outcomes or {})
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    @property
    def called_providers(self) -> list[str]:
        return [provider_id for provider_id, _ in self.calls]

    async def invoke(self, provider: Provider, request: RouteRequest) -> Completion:
        self.calls.append((provider.id, request.id))
        outcome = self.outcomes.get(
            provider.id, Completion(content=f"{provider.id} answered", tokens_used=100)
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(provider, request)
        return outcome


@pytest.fixture
def scripted_invoker() -> type[ScriptedInvoker]:
    """Provide the scripted invoker class for tests to instantiate."""
    return ScriptedInvoker

# ==============================================================================
# APPLICATION FIXTURES
# ==============================================================================

@pytest.fixture
def services(mock_settings: Settings) -> Services:
    """Provide a fresh routing core over the default catalog.

    The metrics logger has no sink and the invoker is scripted, so HTTP
    tests never reach a real provider.
    """
    return build_services(mock_settings, invoker=ScriptedInvoker(), metrics=MetricsLogger())


@pytest.fixture(scope="function")
def client(mock_settings: Settings, services: Services) -> Generator[TestClient, None, None]:
    """Provide HTTP test client with isolated dependency injection.

    The lifespan builds its own core from the isolated settings, never from
    the process environment; the test core replaces it on `app.state` once
    startup completes.

    Args:
        mock_settings: Isolated test configuration.
        services: Fresh routing core for this test.

    Yields:
        TestClient: FastAPI test client bound to the test core.
    """
    original_override = app.dependency_overrides.get(get_settings)
    app.dependency_overrides[get_settings] = lambda: mock_settings
    # The lifespan calls get_settings() directly, outside dependency injection.
    get_settings.cache_clear()

    with mock.patch("app.main.get_settings", return_value=mock_settings):
        with TestClient(app) as test_client:
            services.attach(app)
            app.state.is_ready = True
            yield test_client
            test_client.portal.call(services.queue.stop)

    get_settings.cache_clear()
    if original_override:
        app.dependency_overrides[get_settings] = original_override
    else:
        app.dependency_overrides.pop(get_settings, None)

# ==============================================================================
# MOCKING HELPERS
# ==============================================================================

@pytest.fixture
def mock_fs_open():
    """Provide mock for file system operations.

    Yields:
        Mock: Patched builtins.open to intercept secret file reads.
    """
    with mock.patch("builtins.open", mock.mock_open()) as mock_file:
        yield mock_file
