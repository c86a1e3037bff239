"""Vector helpers for similarity ranking."""

from typing import Sequence

import numpy as np

from shared.exceptions import DataIntegrityError


def to_array(vector: Sequence[float], expected_dimension: int | None = None) -> np.ndarray:
    """Convert a vector to a float64 array and validate it.

    Args:
        vector: The raw vector.
        expected_dimension: Required length, or None to accept any length.

    Returns:
        np.ndarray: One-dimensional float64 array.

    Raises:
        DataIntegrityError: If the vector is empty, has the wrong dimension
            or contains NaN/inf values.
    """
    arr = np.asarray(vector, dtype=np.float64)
    if arr.ndim != 1 or arr.size == 0:
        raise DataIntegrityError("Vector must be a non-empty one-dimensional sequence.")
    if expected_dimension is not None and arr.size != expected_dimension:
        raise DataIntegrityError(
            f"Vector dimension {arr.size} does not match expected dimension {expected_dimension}."
        )
    if not np.all(np.isfinite(arr)):
        raise DataIntegrityError("Vector contains non-finite values.")
    return arr


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two validated vectors of equal length.

    A zero-magnitude vector has similarity 0 with everything. Rounding can
    push the raw quotient slightly outside [-1, 1], so the result is clipped.
    """
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))


def cosine_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine distance in [0, 2]."""
    return 1.0 - cosine_similarity(a, b)
