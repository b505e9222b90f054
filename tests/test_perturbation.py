"""
Perturbation tests: Box-Muller sampling, noise kinds, identity at level 0.

Run:
----
    pytest tests/test_perturbation.py -v
"""

import numpy as np
import pytest

from serendipity.errors import ValidationError
from serendipity.stages.perturbation import PerturbationGenerator


class ZeroThenHalfRng:
    """random() yields zeros on its first call, 0.5 afterwards."""

    def __init__(self):
        self.calls = 0

    def random(self, n):
        self.calls += 1
        return np.zeros(n) if self.calls == 1 else np.full(n, 0.5)


class TestIdentity:
    @pytest.mark.parametrize("kind", ["gaussian", "uniform", "directional"])
    def test_level_zero_returns_input(self, kind, rng):
        v = [0.3, 0.4, 0.5]
        out = PerturbationGenerator(rng).perturb(v, 0.0, kind)
        assert out is v
        assert out == [0.3, 0.4, 0.5]


class TestNoiseKinds:
    @pytest.mark.parametrize("kind", ["gaussian", "uniform", "directional"])
    def test_result_is_unit_length_and_moved(self, kind, rng):
        v = [1.0, 0.0, 0.0, 0.0]
        out = PerturbationGenerator(rng).perturb(v, 0.3, kind)
        assert np.linalg.norm(out) == pytest.approx(1.0)
        assert out != pytest.approx(v)

    @pytest.mark.parametrize("kind", ["gaussian", "uniform", "directional"])
    def test_seeded_generators_agree(self, kind):
        v = [0.2, -0.7, 0.1]
        a = PerturbationGenerator(np.random.default_rng(11)).perturb(v, 0.5, kind)
        b = PerturbationGenerator(np.random.default_rng(11)).perturb(v, 0.5, kind)
        assert a == pytest.approx(b)

    def test_repeated_calls_differ(self, rng):
        gen = PerturbationGenerator(rng)
        v = [1.0, 0.0, 0.0]
        assert gen.perturb(v, 0.3) != pytest.approx(gen.perturb(v, 0.3))

    def test_small_noise_stays_close(self, rng):
        gen = PerturbationGenerator(rng)
        v = np.zeros(64)
        v[0] = 1.0
        out = np.asarray(gen.perturb(v.tolist(), 0.01, "gaussian"))
        assert float(out @ v) > 0.9


class TestBoxMuller:
    def test_standard_normal_moments(self):
        samples = PerturbationGenerator(np.random.default_rng(7)).gaussian_noise(20000)
        assert abs(samples.mean()) < 0.05
        assert abs(samples.std() - 1.0) < 0.05

    def test_zero_uniforms_are_redrawn(self):
        gen = PerturbationGenerator(ZeroThenHalfRng())
        u = gen._open_unit(4)
        assert u.tolist() == [0.5, 0.5, 0.5, 0.5]


class TestValidation:
    @pytest.mark.parametrize("level", [-0.1, 1.5, float("nan")])
    def test_level_out_of_range(self, level, rng):
        with pytest.raises(ValidationError):
            PerturbationGenerator(rng).perturb([1.0, 0.0], level)

    def test_unknown_kind(self, rng):
        with pytest.raises(ValidationError):
            PerturbationGenerator(rng).perturb([1.0, 0.0], 0.2, "sideways")
