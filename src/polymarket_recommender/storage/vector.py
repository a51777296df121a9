"""Minimal pgvector SQLAlchemy type without requiring the pgvector Python package.

Embeddings are written as pgvector text literals. Reads are left untouched:
depending on the driver a value comes back as a literal string or a list,
and the DTO layer decodes it via ``embedding.codec.decode_vector``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy.types import UserDefinedType

from polymarket_recommender.embedding.codec import to_vector_literal


class Vector(UserDefinedType):
    cache_ok = True

    def __init__(self, dimensions: int | None = None) -> None:
        if dimensions is None:
            self._dimensions = None
            return
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self._dimensions = int(dimensions)

    @property
    def dimensions(self) -> int | None:
        return self._dimensions

    def get_col_spec(self, **kw: Any) -> str:  # noqa: ARG002
        if self._dimensions is None:
            return "vector"
        return f"vector({self._dimensions})"

    def bind_processor(self, dialect: Any) -> Any:  # noqa: ARG002
        dimensions = self._dimensions

        def process(value: Any) -> Any:
            if value is None:
                return None
            if isinstance(value, str):
                return value
            if isinstance(value, Sequence) or hasattr(value, "tolist"):
                values = value.tolist() if hasattr(value, "tolist") else list(value)
                if dimensions is not None and len(values) != dimensions:
                    raise ValueError(
                        f"Vector has {len(values)} dimensions, column expects {dimensions}"
                    )
                return to_vector_literal(values)
            raise TypeError("Vector value must be a sequence of floats or a vector literal string")

        return process
