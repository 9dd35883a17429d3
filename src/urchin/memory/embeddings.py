"""Embedding similarity engine."""

import asyncio
import math

import litellm

from urchin.core.logging import get_logger
from urchin.core.typing import Vector

logger = get_logger("memory.embeddings")


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine similarity in [-1, 1].

    Returns 0.0 for mismatched lengths or zero-magnitude vectors.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return max(-1.0, min(1.0, dot / (math.sqrt(norm_a) * math.sqrt(norm_b))))


class Embedder:
    """Best-effort text embedding via ``litellm.aembedding``.

    ``embed`` never raises: any transport or auth failure yields ``None``
    and callers fall back to keyword matching.
    """

    def __init__(
        self,
        model: str,
        api_key: str = "",
        api_base: str = "",
        timeout: float = 30.0,
    ):
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.timeout = timeout

    @property
    def available(self) -> bool:
        """True when embedding credentials are configured in settings."""
        return bool(self.model and (self.api_key or self.api_base))

    async def embed(self, text: str) -> Vector | None:
        if not self.available:
            return None

        params = {"model": self.model, "input": [text[:8000]]}
        if self.api_key:
            params["api_key"] = self.api_key
        if self.api_base:
            params["api_base"] = self.api_base

        try:
            response = await asyncio.wait_for(litellm.aembedding(**params), timeout=self.timeout)
            item = response.data[0]
            vector = item["embedding"] if isinstance(item, dict) else item.embedding
            return [float(x) for x in vector]
        except Exception as e:
            logger.warning(f"Embedding failed ({self.model}): {e}")
            return None
