"""SentenceTransformerProvider: local in-process embedding provider."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from wikiembed.search.types import EmbeddingResponse

try:
    from sentence_transformers import SentenceTransformer

    _HAS_SENTENCE_TRANSFORMERS = True
except ImportError:  # pragma: no cover
    _HAS_SENTENCE_TRANSFORMERS = False

if TYPE_CHECKING:
    from wikiembed.config import EmbeddingConfig

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "all-MiniLM-L6-v2"


class SentenceTransformerProvider:
    """Embedding provider backed by ``sentence-transformers``.

    Models are loaded lazily, once per ``config.model``, on first use.
    Inference is CPU-bound and runs in a thread pool via
    :func:`asyncio.to_thread`.  Load or inference failures come back as an
    ``error`` :class:`EmbeddingResponse`.
    """

    def __init__(self, *, device: str | None = None) -> None:
        if not _HAS_SENTENCE_TRANSFORMERS:
            msg = (
                "sentence-transformers is required for SentenceTransformerProvider. "
                "Install it with: pip install wikiembed[sentence-transformers]"
            )
            raise ImportError(msg)
        self._device = device
        self._models: dict[str, SentenceTransformer] = {}
        self._lock = threading.Lock()

    def _load_model(self, model_name: str) -> SentenceTransformer:
        with self._lock:
            model = self._models.get(model_name)
            if model is None:
                model = SentenceTransformer(model_name, device=self._device)
                self._models[model_name] = model
            return model

    def embed_sync(self, texts: list[str], model_name: str = DEFAULT_MODEL) -> list[list[float]]:
        """Embed *texts* (synchronous)."""
        model = self._load_model(model_name)
        result: Any = model.encode(texts)
        return [row.tolist() for row in result]

    async def embed(self, texts: list[str], config: EmbeddingConfig) -> EmbeddingResponse:
        """Embed *texts* in a thread pool."""
        if not texts:
            return EmbeddingResponse.success([])
        model_name = config.model or DEFAULT_MODEL
        try:
            vectors = await asyncio.to_thread(self.embed_sync, texts, model_name)
        except Exception as e:
            logger.warning("Local embedding with %s failed", model_name, exc_info=True)
            return EmbeddingResponse.failure(
                str(e) or type(e).__name__, provider=config.provider, name=type(e).__name__
            )
        return EmbeddingResponse.success(vectors)
