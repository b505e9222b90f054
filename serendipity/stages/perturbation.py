"""
Query perturbation for exploratory search modes.

Three noise kinds:
- gaussian: independent Box-Muller noise per component
- uniform: independent Uniform(-level, level) noise per component
- directional: one random unit direction, added as a consistent drift

Every kind renormalizes the result to unit length. level == 0 returns the
input untouched (no renormalization); a zero-magnitude result falls back to
the unperturbed input.
"""

import logging
import math
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from ..errors import ValidationError

logger = logging.getLogger(__name__)


class PerturbationType(str, Enum):
    GAUSSIAN = "gaussian"
    UNIFORM = "uniform"
    DIRECTIONAL = "directional"


class PerturbationGenerator:
    """Noise source for query vectors. Inject a seeded rng for reproducible runs."""

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def _open_unit(self, n: int) -> np.ndarray:
        """n uniforms in (0, 1); exact zeros are re-drawn."""
        u = self.rng.random(n)
        zeros = u == 0.0
        while zeros.any():
            u[zeros] = self.rng.random(int(zeros.sum()))
            zeros = u == 0.0
        return u

    def gaussian_noise(self, n: int) -> np.ndarray:
        """Standard normal samples via Box-Muller: sqrt(-2 ln u) * cos(2 pi v)."""
        u = self._open_unit(n)
        v = self._open_unit(n)
        return np.sqrt(-2.0 * np.log(u)) * np.cos(2.0 * math.pi * v)

    @staticmethod
    def _finish(original: Sequence[float], noisy: np.ndarray, kind: str):
        norm = np.linalg.norm(noisy)
        if norm == 0 or not np.isfinite(norm):
            logger.warning("[perturbation] ZERO_MAGNITUDE kind=%s dim=%d, returning input", kind, len(original))
            return original
        return (noisy / norm).tolist()

    def gaussian(self, vector: Sequence[float], level: float):
        if level == 0:
            return vector
        base = np.asarray(vector, dtype=np.float64)
        return self._finish(vector, base + self.gaussian_noise(base.size) * level, "gaussian")

    def uniform(self, vector: Sequence[float], level: float):
        if level == 0:
            return vector
        base = np.asarray(vector, dtype=np.float64)
        noise = self.rng.uniform(-level, level, base.size)
        return self._finish(vector, base + noise, "uniform")

    def directional(self, vector: Sequence[float], level: float):
        if level == 0:
            return vector
        base = np.asarray(vector, dtype=np.float64)
        direction = self.gaussian_noise(base.size)
        norm = np.linalg.norm(direction)
        if norm > 0:
            direction = direction / norm
        return self._finish(vector, base + level * direction, "directional")

    def perturb(self, vector: Sequence[float], level: float, kind: str = "gaussian") -> List[float]:
        """Apply noise of the given kind. Returns the input itself when level is 0."""
        if level is None or not (0.0 <= level <= 1.0):
            raise ValidationError(f"Perturbation level must be in [0, 1], got {level}")
        try:
            kind = PerturbationType(kind)
        except ValueError as exc:
            raise ValidationError(f"Unknown perturbation type {kind!r}") from exc
        if kind is PerturbationType.UNIFORM:
            return self.uniform(vector, level)
        if kind is PerturbationType.DIRECTIONAL:
            return self.directional(vector, level)
        return self.gaussian(vector, level)
