"""Search layer data types: provider responses, vector matches, and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from wikiembed.models.embeddings import EmbeddingRecord


EMBEDDING_FAILED = "EMBEDDING_FAILED"

# ------------------------------------------------------------------
# Provider responses
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ErrorDetail:
    """Why a provider call failed.

    Attributes:
        message: Human-readable failure description.
        code: Machine-readable error code.
        name: Error class name reported by the provider.
        provider: Provider that produced the error.
    """

    message: str
    code: str = EMBEDDING_FAILED
    name: str = "EmbeddingError"
    provider: str | None = None


@dataclass(frozen=True, slots=True)
class EmbeddingResponse:
    """What an embedding provider returns for one batch of texts.

    Providers report failures through ``status="error"`` and
    ``error_detail`` instead of raising.  A ``success`` response with no
    embeddings is treated as an error by callers.

    Attributes:
        status: ``"success"`` or ``"error"``.
        embeddings: One vector per input text, in input order.
        error_detail: Populated when ``status`` is ``"error"``.
    """

    status: Literal["success", "error"]
    embeddings: list[list[float]] = field(default_factory=list)
    error_detail: ErrorDetail | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success" and bool(self.embeddings)

    @property
    def error_message(self) -> str:
        if self.error_detail is not None:
            return self.error_detail.message
        if self.status == "success":
            return "Provider returned no embeddings"
        return "Embedding failed"

    @classmethod
    def success(cls, embeddings: list[list[float]]) -> EmbeddingResponse:
        return cls(status="success", embeddings=embeddings)

    @classmethod
    def failure(
        cls,
        message: str,
        *,
        provider: str | None = None,
        name: str = "EmbeddingError",
        code: str = EMBEDDING_FAILED,
    ) -> EmbeddingResponse:
        return cls(
            status="error",
            error_detail=ErrorDetail(message=message, code=code, name=name, provider=provider),
        )


# ------------------------------------------------------------------
# Results
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VectorMatch:
    """A single nearest-neighbour hit from the vector store.

    Attributes:
        row_id: Id of the matched row (the metadata record id).
        distance: Cosine distance to the query, in ``[0, 2]``.
    """

    row_id: str
    distance: float


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A hydrated search hit.

    Attributes:
        record: The matched chunk record.
        similarity: ``max(0, 1 - distance)``, higher is more similar.
    """

    record: EmbeddingRecord
    similarity: float
