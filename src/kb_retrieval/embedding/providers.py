"""Embedding provider adapters."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from hashlib import blake2b
from math import sqrt
from typing import Any, Protocol

import httpx

from kb_retrieval.config import EmbeddingConfig

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Turns a batch of texts into vectors with a single remote call."""

    @property
    def configured(self) -> bool:
        """False when the provider cannot be called at all (e.g. no credential)."""

    async def embed(self, inputs: Sequence[str]) -> list[list[float] | None]:
        """Return one entry per input; None marks a malformed item.

        Transport and HTTP errors are raised.
        """


class HttpEmbeddingProvider:
    """OpenAI-compatible ``POST {model, input}`` embeddings endpoint."""

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or EmbeddingConfig()
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout_seconds)
        self._owns_client = client is None

    @property
    def configured(self) -> bool:
        return self.config.api_key is not None and bool(self.config.api_key.get_secret_value())

    async def embed(self, inputs: Sequence[str]) -> list[list[float] | None]:
        if not inputs:
            return []
        if self.config.api_key is None:
            raise RuntimeError("embedding api_key is not configured")

        payload = {
            "model": self.config.model,
            "input": inputs[0] if len(inputs) == 1 else list(inputs),
        }
        response = await self._client.post(
            self.config.api_url,
            json=payload,
            headers={"Authorization": f"Bearer {self.config.api_key.get_secret_value()}"},
            timeout=self.config.timeout_seconds,
        )
        response.raise_for_status()
        data = response.json().get("data")
        if not isinstance(data, list):
            logger.warning("[embed] response missing data array model=%s", self.config.model)
            data = []
        return [_parse_vector(data[idx] if idx < len(data) else None) for idx in range(len(inputs))]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class HashingEmbeddingProvider:
    """Deterministic bag-of-words embedding without external model calls.

    Intended for local tests and prototyping. Texts sharing tokens get a
    positive cosine similarity.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension
        self.calls: list[list[str]] = []

    @property
    def configured(self) -> bool:
        return True

    async def embed(self, inputs: Sequence[str]) -> list[list[float] | None]:
        self.calls.append(list(inputs))
        return [self._embed(text) for text in inputs]

    def _embed(self, text: str) -> list[float]:
        vector = [0.0 for _ in range(self.dimension)]
        tokens = text.lower().split()
        if not tokens:
            return vector

        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "little") % self.dimension
            sign = -1.0 if digest[4] % 2 else 1.0
            vector[idx] += sign

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]


def _parse_vector(item: Any) -> list[float] | None:
    if not isinstance(item, dict):
        return None
    embedding = item.get("embedding")
    if not isinstance(embedding, list) or not embedding:
        return None
    try:
        return [float(value) for value in embedding]
    except (TypeError, ValueError):
        return None
