# ==============================
# Vector Math
# ==============================
"""
Numeric helpers shared by corpus and knowledge search.

Policy:
- Zero-length or zero-norm vectors score 0.
- NaN / infinite scores become 0.
- Final scores are clamped to [-1, 1].
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def l2_normalize(vec: Sequence[float] | np.ndarray) -> np.ndarray:
    """
    Return vec / ||vec||. A zero or non-finite norm leaves the vector unchanged.
    """
    arr = np.asarray(vec, dtype=np.float64)
    if arr.size == 0:
        return arr
    norm = float(np.linalg.norm(arr))
    if norm == 0.0 or not math.isfinite(norm):
        return arr
    return arr / norm


def safe_score(score: float) -> float:
    if not math.isfinite(score):
        return 0.0
    return max(-1.0, min(1.0, float(score)))


def sanitize_scores(scores: np.ndarray) -> np.ndarray:
    """Vectorized safe_score."""
    out = np.where(np.isfinite(scores), scores, 0.0)
    return np.clip(out, -1.0, 1.0)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    dot / (||a|| * ||b||) for vectors that are not pre-normalized.
    Mismatched lengths, empty vectors and zero norms score 0.
    """
    if len(a) == 0 or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0 or not math.isfinite(denom):
        return 0.0
    return safe_score(float(np.dot(va, vb)) / denom)
