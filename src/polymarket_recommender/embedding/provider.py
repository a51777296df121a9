"""Text-embedding providers for market titles.

The sentence-transformers backend is loaded lazily and strictly: if it is not
installed or the model cannot be loaded, embedding calls raise
:class:`EmbeddingProviderError` instead of returning placeholder vectors.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class EmbeddingProviderError(RuntimeError):
    pass


class EmbeddingProvider(Protocol):
    def embed_one(self, text: str) -> list[float]: ...

    def embed_many(self, texts: list[str]) -> list[list[float]]: ...


@dataclass(frozen=True)
class EmbeddingConfig:
    model_name_or_path: str
    device: str
    expected_dim: int
    normalize: bool = True


class SentenceTransformerEmbeddingProvider:
    def __init__(self, *, config: EmbeddingConfig) -> None:
        self._cfg = config
        self._model: Any = None

    @property
    def dim(self) -> int:
        return self._cfg.expected_dim

    def _load(self) -> Any:
        if self._model is not None:
            return self._model
        try:
            from sentence_transformers import SentenceTransformer  # type: ignore[import-not-found]
        except Exception as e:  # pragma: no cover
            raise EmbeddingProviderError(
                "sentence-transformers is required for EMBEDDING_MODEL"
            ) from e

        try:
            self._model = SentenceTransformer(self._cfg.model_name_or_path, device=self._cfg.device)
        except Exception as e:
            raise EmbeddingProviderError(f"Failed to load embedding model: {e}") from e
        logger.info("Loaded embedding model %s on %s", self._cfg.model_name_or_path, self._cfg.device)
        return self._model

    def embed_one(self, text: str) -> list[float]:
        vecs = self.embed_many([text])
        return vecs[0]

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        model = self._load()
        try:
            vectors = model.encode(
                texts,
                normalize_embeddings=self._cfg.normalize,
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingProviderError(f"Embedding failed: {e}") from e

        out: list[list[float]] = []
        for v in vectors:
            row = [float(x) for x in v.tolist()]
            if len(row) != self._cfg.expected_dim:
                raise EmbeddingProviderError(
                    f"Embedding dim mismatch: got {len(row)} expected {self._cfg.expected_dim}"
                )
            out.append(row)
        return out


class RetryingEmbedder:
    """Request-path wrapper: runs the provider off-loop with a timeout and retries.

    Used where an embedding must be fetched synchronously for a response, so a
    slow or flaky provider costs bounded latency rather than a hung request.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        *,
        timeout_seconds: float = 10.0,
        max_retries: int = 1,
        retry_delay_seconds: float = 0.5,
    ) -> None:
        self._provider = provider
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(self._provider.embed_many, texts),
                    timeout=self._timeout,
                )
            except (EmbeddingProviderError, TimeoutError) as e:
                last_error = e
                if attempt == self._max_retries:
                    break
                logger.warning(
                    "Embedding attempt %d/%d failed: %s. Retrying in %.1f seconds...",
                    attempt + 1,
                    self._max_retries + 1,
                    e,
                    self._retry_delay,
                )
                await asyncio.sleep(self._retry_delay)
        raise EmbeddingProviderError(
            f"Embedding failed after {self._max_retries + 1} attempts: {last_error}"
        ) from last_error
