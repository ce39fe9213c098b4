"""HTTP provider invoker test suite.

Replies are served by `httpx.MockTransport`; no test reaches the network.
"""
import json

import httpx
import pytest
from pydantic import SecretStr

from app.polyroute.core.errors import ProviderError
from app.polyroute.core.invokers import HttpProviderInvoker, ProviderInvoker, estimate_tokens
from app.polyroute.core.types import RouteRequest


def _completion_body(content: str = "Hello there", total_tokens=42) -> dict:
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if total_tokens is not None:
        body["usage"] = {"total_tokens": total_tokens}
    return body


def _invoker(handler, api_keys=None) -> HttpProviderInvoker:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpProviderInvoker(api_keys or {"openai": SecretStr("sk-test")}, client=client)


@pytest.fixture
def provider(make_provider):
    return make_provider("alpha", max_tokens=1024)


# ═══════════════════════════════════════════════════════════════════════════
# SUCCESS PATH
# ═══════════════════════════════════════════════════════════════════════════

class TestSuccess:

    @pytest.mark.asyncio
    async def test_parses_completion_and_sends_auth(self, provider) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, json=_completion_body())

        invoker = _invoker(handler)
        completion = await invoker.invoke(provider, RouteRequest(prompt="Hi", user_id="u-1"))

        assert completion.content == "Hello there"
        assert completion.tokens_used == 42
        assert seen["url"] == provider.endpoint
        assert seen["auth"] == "Bearer sk-test"
        assert seen["payload"]["model"] == provider.model
        assert seen["payload"]["messages"] == [{"role": "user", "content": "Hi"}]
        assert seen["payload"]["user"] == "u-1"
        assert "temperature" not in seen["payload"]

    @pytest.mark.asyncio
    async def test_missing_usage_is_estimated(self, provider) -> None:
        invoker = _invoker(lambda request: httpx.Response(200, json=_completion_body("abcd" * 3, None)))

        completion = await invoker.invoke(provider, RouteRequest(prompt="abcd"))

        assert completion.tokens_used == estimate_tokens("abcd", "abcd" * 3) == 4

    def test_max_tokens_capped_by_provider(self, provider) -> None:
        payload = HttpProviderInvoker.build_payload(
            provider, RouteRequest(prompt="Hi", max_tokens=5000, temperature=0.3)
        )
        assert payload["max_tokens"] == 1024
        assert payload["temperature"] == 0.3

    def test_defaults_to_provider_max_tokens(self, provider) -> None:
        payload = HttpProviderInvoker.build_payload(provider, RouteRequest(prompt="Hi"))
        assert payload["max_tokens"] == 1024

    def test_satisfies_invoker_protocol(self) -> None:
        assert isinstance(HttpProviderInvoker({}), ProviderInvoker)


# ═══════════════════════════════════════════════════════════════════════════
# FAILURE MAPPING
# ═══════════════════════════════════════════════════════════════════════════

class TestFailures:

    @pytest.mark.asyncio
    async def test_missing_key_rejected_without_a_call(self, provider) -> None:
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_completion_body())

        invoker = _invoker(handler, api_keys={"anthropic": "sk-other"})

        with pytest.raises(ProviderError) as exc_info:
            await invoker.invoke(provider, RouteRequest(prompt="Hi"))

        assert exc_info.value.kind == "rejected"
        assert calls == []

    @pytest.mark.asyncio
    async def test_missing_endpoint_rejected(self, make_provider) -> None:
        invoker = _invoker(lambda request: httpx.Response(200, json=_completion_body()))
        with pytest.raises(ProviderError) as exc_info:
            await invoker.invoke(make_provider("alpha", endpoint=""), RouteRequest(prompt="Hi"))
        assert exc_info.value.kind == "rejected"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code, kind",
        [(400, "rejected"), (401, "rejected"), (429, "rejected"), (500, "provider_error"), (503, "provider_error")],
    )
    async def test_status_codes(self, provider, status_code, kind) -> None:
        invoker = _invoker(lambda request: httpx.Response(status_code, text="nope"))

        with pytest.raises(ProviderError) as exc_info:
            await invoker.invoke(provider, RouteRequest(prompt="Hi"))

        assert exc_info.value.kind == kind
        assert f"HTTP {status_code}" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [b"not json", b"{}", b'{"choices": []}', b'{"choices": [{"message": {"content": 7}}]}'],
    )
    async def test_malformed_bodies(self, provider, body) -> None:
        invoker = _invoker(lambda request: httpx.Response(200, content=body))

        with pytest.raises(ProviderError) as exc_info:
            await invoker.invoke(provider, RouteRequest(prompt="Hi"))

        assert exc_info.value.kind == "provider_error"
        assert "malformed response" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_timeout(self, provider) -> None:
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(ProviderError) as exc_info:
            await _invoker(handler).invoke(provider, RouteRequest(prompt="Hi"))

        assert exc_info.value.kind == "timeout"

    @pytest.mark.asyncio
    async def test_transport_error(self, provider) -> None:
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            await _invoker(handler).invoke(provider, RouteRequest(prompt="Hi"))

        assert exc_info.value.kind == "provider_error"


@pytest.mark.asyncio
async def test_shared_client_is_not_closed() -> None:
    client = httpx.AsyncClient()
    async with HttpProviderInvoker({}, client=client):
        pass
    assert client.is_closed is False
    await client.aclose()


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("a") == 1
    assert estimate_tokens("abcd", "e") == 2
