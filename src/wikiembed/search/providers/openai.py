"""OpenAIEmbeddingProvider: embeddings over OpenAI-compatible HTTP APIs."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from wikiembed.search.types import EmbeddingResponse

try:
    from openai import APIStatusError, AsyncOpenAI

    _HAS_OPENAI = True
except ImportError:  # pragma: no cover
    _HAS_OPENAI = False

if TYPE_CHECKING:
    from openai import AsyncOpenAI as AsyncOpenAIType

    from wikiembed.config import EmbeddingConfig

logger = logging.getLogger(__name__)

# Providers with a well-known endpoint; everything else needs base_url.
_DEFAULT_BASE_URLS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "siliconflow": "https://api.siliconflow.cn/v1",
}

# Placeholder for keyless local servers; the SDK rejects an empty key.
_NO_KEY = "not-needed"


class OpenAIEmbeddingProvider:
    """Embedding provider for OpenAI and OpenAI-compatible endpoints.

    Covers ``openai``, ``deepseek``, ``siliconflow``, ``ollama`` and any
    ``openAICompatible`` server.  The endpoint and credentials come from
    the :class:`~wikiembed.config.EmbeddingConfig` of each call, falling
    back to the values given here and to ``OPENAI_API_KEY`` for the
    ``openai`` provider.  One ``AsyncOpenAI`` client is kept per
    endpoint/key pair.

    Provider failures (missing key, HTTP errors, transport errors) never
    raise: they come back as an ``error`` :class:`EmbeddingResponse`.

    Requires the ``openai`` package::

        pip install wikiembed[openai]
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        max_retries: int = 2,
        timeout: float = 60.0,
    ) -> None:
        if not _HAS_OPENAI:
            msg = (
                "openai is required for OpenAIEmbeddingProvider. "
                "Install it with: pip install wikiembed[openai]"
            )
            raise ImportError(msg)

        self._api_key = api_key
        self._base_url = base_url
        self._max_retries = max_retries
        self._timeout = timeout
        self._clients: dict[tuple[str, str], AsyncOpenAIType] = {}

    # ------------------------------------------------------------------
    # EmbeddingProvider protocol
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str], config: EmbeddingConfig) -> EmbeddingResponse:
        """Embed *texts* with ``config.model`` on ``config.provider``."""
        if not texts:
            return EmbeddingResponse.success([])

        try:
            client = self._client_for(config)
        except ValueError as e:
            logger.warning("Embedding provider %s is not usable: %s", config.provider, e)
            return EmbeddingResponse.failure(
                str(e), provider=config.provider, name=type(e).__name__
            )

        kwargs: dict[str, Any] = {"input": texts, "model": config.model}
        if config.dimensions is not None:
            kwargs["dimensions"] = config.dimensions

        try:
            response = await client.embeddings.create(**kwargs)
        except APIStatusError as e:
            message = _status_message(config, e)
            logger.warning("%s embedding error: %s", config.provider, message)
            return EmbeddingResponse.failure(
                message, provider=config.provider, name=type(e).__name__
            )
        except Exception as e:
            logger.warning("%s embedding error", config.provider, exc_info=True)
            return EmbeddingResponse.failure(
                str(e) or type(e).__name__, provider=config.provider, name=type(e).__name__
            )

        # Sort by index to ensure order matches input
        sorted_data = sorted(response.data, key=lambda e: e.index)
        return EmbeddingResponse.success([list(item.embedding) for item in sorted_data])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close every underlying httpx client."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _client_for(self, config: EmbeddingConfig) -> AsyncOpenAIType:
        base_url = _resolve_base_url(config, self._base_url)
        api_key = config.api_key or self._api_key
        if not api_key and config.provider == "openai":
            api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            if not _is_keyless(config.provider, base_url):
                msg = f"No API key provided for embedding provider {config.provider!r}"
                raise ValueError(msg)
            api_key = _NO_KEY

        cache_key = (base_url, api_key)
        client = self._clients.get(cache_key)
        if client is None:
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                max_retries=self._max_retries,
                timeout=self._timeout,
            )
            self._clients[cache_key] = client
        return client


def _resolve_base_url(config: EmbeddingConfig, fallback: str | None) -> str:
    base_url = config.base_url or fallback or _DEFAULT_BASE_URLS.get(config.provider)
    if not base_url:
        msg = f"No base URL configured for embedding provider {config.provider!r}"
        raise ValueError(msg)
    return base_url.rstrip("/")


def _is_keyless(provider: str, base_url: str) -> bool:
    """Ollama and servers on the local machine accept requests without a key."""
    if provider == "ollama":
        return True
    return "localhost" in base_url or "127.0.0.1" in base_url


def _status_message(config: EmbeddingConfig, error: APIStatusError) -> str:
    if error.status_code == 401:
        return f"{config.provider} authentication failed: check the API key"
    if error.status_code == 404:
        return f"{config.provider} error: model {config.model!r} not found"
    if error.status_code == 429:
        return f"{config.provider} too many requests: reduce request frequency or check API limits"
    return f"{config.provider} embedding error: {error.message}"
