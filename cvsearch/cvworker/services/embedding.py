"""Feature-hashing text embeddings.

A deterministic bag-of-words embedding: tokens are hashed into a fixed number
of buckets and the counts are L2-normalized. Vectors are reproducible across
runs and implementations, so stored entity embeddings can be re-scored
against new queries without re-parsing.
"""

import math
import re
from collections.abc import Sequence

EMBEDDING_DIMENSIONS = 256

TOKEN_SPLIT_PATTERN = re.compile(r"[^a-z0-9+]+")

_HASH_MASK = 0xFFFFFFFF


def tokenize(text: str) -> list[str]:
    """Lowercase and split on anything outside [a-z0-9+], dropping 1-char tokens."""
    return [token for token in TOKEN_SPLIT_PATTERN.split(text.lower()) if len(token) > 1]


def hash_token(token: str) -> int:
    """32-bit unsigned rolling hash (h = h * 31 + code)."""
    value = 0
    for char in token:
        value = (value * 31 + ord(char)) & _HASH_MASK
    return value


def embed(text: str, dimensions: int = EMBEDDING_DIMENSIONS) -> list[float]:
    """
    Compute the hashed embedding of a text.

    Args:
        text: Free text (label, line or summary)
        dimensions: Vector length

    Returns:
        Unit-length vector rounded to 6 decimals, or the zero vector if the
        text has no qualifying tokens
    """
    vector = [0.0] * dimensions

    for token in tokenize(text or ""):
        vector[hash_token(token) % dimensions] += 1.0

    magnitude = math.sqrt(sum(value * value for value in vector))
    if magnitude == 0:
        return vector

    return [round(value / magnitude, 6) for value in vector]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 for empty, mismatched or zero-norm vectors."""
    if len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b, strict=True):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
