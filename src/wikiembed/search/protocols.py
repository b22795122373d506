"""EmbeddingProvider protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from wikiembed.exceptions import EmbeddingProviderError

if TYPE_CHECKING:
    from wikiembed.config import EmbeddingConfig
    from wikiembed.search.types import EmbeddingResponse


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding providers.

    Implementations convert a batch of texts into fixed-dimension float
    vectors, one per text, in input order.  Failures are reported in the
    returned :class:`EmbeddingResponse` rather than raised.
    """

    async def embed(self, texts: list[str], config: EmbeddingConfig) -> EmbeddingResponse:
        """Embed *texts* with the model described by *config*."""
        ...


async def embed_text(
    provider: EmbeddingProvider, text: str, config: EmbeddingConfig
) -> list[float]:
    """Embed a single text, raising if the provider reports a failure.

    Raises:
        EmbeddingProviderError: The response has an error status or no
            embedding.
    """
    response = await provider.embed([text], config)
    if not response.ok:
        raise EmbeddingProviderError(response.error_message)
    vector = response.embeddings[0]
    if not vector:
        msg = "Provider returned an empty embedding"
        raise EmbeddingProviderError(msg)
    return vector
