"""Embedding layer - Vector codec, similarity and text-embedding providers."""

from polymarket_recommender.embedding.codec import decode_vector, encode_vector
from polymarket_recommender.embedding.provider import (
    EmbeddingProviderError,
    RetryingEmbedder,
    SentenceTransformerEmbeddingProvider,
)
from polymarket_recommender.embedding.similarity import (
    DimensionMismatchError,
    cosine,
    rank,
    top_k,
)

__all__ = [
    "DimensionMismatchError",
    "EmbeddingProviderError",
    "RetryingEmbedder",
    "SentenceTransformerEmbeddingProvider",
    "cosine",
    "decode_vector",
    "encode_vector",
    "rank",
    "top_k",
]
