"""Provider invocation capability.

The router never talks to a vendor SDK directly; it calls a `ProviderInvoker`.
`HttpProviderInvoker` is the production implementation and speaks the
OpenAI-compatible chat completions protocol over `httpx`, which every
provider in the default catalog exposes.
"""

import math
from typing import Any, Mapping, Optional, Protocol, Union, runtime_checkable

import httpx
from pydantic import SecretStr

from app.polyroute.core.errors import ProviderError
from app.polyroute.core.logging_config import get_logger
from app.polyroute.core.types import Completion, Provider, RouteRequest

logger = get_logger(__name__)

DEFAULT_HTTP_TIMEOUT_SECONDS = 60.0


@runtime_checkable
class ProviderInvoker(Protocol):
    """Perform one completion call against one provider.

    Implementations raise `ProviderError` on failure. Any other exception is
    wrapped into a `ProviderError` by the router.
    """

    async def invoke(self, provider: Provider, request: RouteRequest) -> Completion:
        ...


def estimate_tokens(*texts: str) -> int:
    """Rough token count (four characters per token) for usage-less replies."""
    return math.ceil(sum(len(t) for t in texts) / 4)


class HttpProviderInvoker:
    """Invoke OpenAI-compatible chat completion endpoints.

    Args:
        api_keys: Bearer keys keyed by `Provider.vendor`.
        client: Optional shared client. When omitted the invoker owns one and
            closes it in `aclose`.
        timeout: Transport timeout in seconds. The router applies its own,
            usually tighter, per-attempt timeout on top of it.
    """

    def __init__(
        self,
        api_keys: Mapping[str, Union[SecretStr, str]],
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ):
        self._api_keys = dict(api_keys)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "HttpProviderInvoker":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _key_for(self, provider: Provider) -> Optional[str]:
        key = self._api_keys.get(provider.vendor)
        if isinstance(key, SecretStr):
            key = key.get_secret_value()
        return key or None

    @staticmethod
    def build_payload(provider: Provider, request: RouteRequest) -> dict[str, Any]:
        max_tokens = provider.max_tokens
        if request.max_tokens is not None:
            max_tokens = min(request.max_tokens, provider.max_tokens)
        payload: dict[str, Any] = {
            "model": provider.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "max_tokens": max_tokens,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.user_id:
            payload["user"] = request.user_id
        return payload

    async def invoke(self, provider: Provider, request: RouteRequest) -> Completion:
        """Call the provider and translate its reply into a `Completion`.

        Raises:
            ProviderError: ``rejected`` for missing configuration and 4xx
                replies, ``timeout`` for transport timeouts, ``provider_error``
                for other transport failures, 5xx replies and malformed bodies.
        """
        key = self._key_for(provider)
        if key is None:
            raise ProviderError(
                provider.id, f"no API key configured for vendor '{provider.vendor}'", kind="rejected"
            )
        if not provider.endpoint:
            raise ProviderError(provider.id, "no endpoint configured", kind="rejected")

        try:
            response = await self._client.post(
                provider.endpoint,
                json=self.build_payload(provider, request),
                headers={"Authorization": f"Bearer {key}"},
            )
        except httpx.TimeoutException as exc:
            raise ProviderError(provider.id, f"transport timeout: {exc}", kind="timeout") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(provider.id, f"transport error: {exc}") from exc

        if response.is_client_error:
            raise ProviderError(
                provider.id, f"HTTP {response.status_code}: {response.text[:200]}", kind="rejected"
            )
        if not response.is_success:
            raise ProviderError(provider.id, f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
            usage = body.get("usage") or {}
            tokens_used = usage.get("total_tokens")
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ProviderError(provider.id, f"malformed response: {exc!r}") from exc

        if not isinstance(content, str):
            raise ProviderError(provider.id, "malformed response: content is not a string")
        if not isinstance(tokens_used, int) or tokens_used < 0:
            tokens_used = estimate_tokens(request.prompt, content)
            logger.debug("Provider reply carried no usage; tokens estimated", provider=provider.id)

        return Completion(content=content, tokens_used=tokens_used)
