import numpy as np
import pytest
from scorefield.analytic_score import true_score, true_score_batch
from scorefield.distributions import DistributionKind
from scorefield.score_error import (DENSITY_EPS, ErrorKind, ErrorSpec, NO_ERROR, hash_noise,
                                    noise_field, score, score_batch, smooth_noise)
from scorefield.score_MLP import ScoreEstimator, ScoreRegime

UNIFORM_STABLE = ErrorSpec(ErrorKind.UNIFORM, severity=1.0, deterministic=True)


@pytest.mark.parametrize("kind", list(DistributionKind))
def test_no_error_passes_true_score_through(kind, rng):
    for p in rng.uniform(-5, 5, size=(25, 2)):
        assert score(p, kind, 0.4, NO_ERROR) == true_score(p, kind, 0.4)
    assert score((1.0, 2.0), kind, 0.0, ErrorSpec(ErrorKind.NONE, severity=3.0)) == true_score((1.0, 2.0), kind, 0.0)


def test_stable_noise_is_deterministic():
    p = (0.3, -1.7)
    assert score(p, DistributionKind.MIXTURE, 0.0, UNIFORM_STABLE) == score(p, DistributionKind.MIXTURE, 0.0, UNIFORM_STABLE)
    spec = ErrorSpec(ErrorKind.UNIFORM, severity=1.0, deterministic=True, smooth=False)
    assert score(p, DistributionKind.MIXTURE, 0.0, spec) == score(p, DistributionKind.MIXTURE, 0.0, spec)


def test_stable_noise_is_bounded():
    pnts = np.random.default_rng(1).uniform(-10, 10, size=(5000, 2))
    for spec in [UNIFORM_STABLE, ErrorSpec(ErrorKind.UNIFORM, 1.0, deterministic=True, smooth=False)]:
        noise = noise_field(pnts, spec)
        assert noise.shape == (5000, 2)
        assert np.all(np.abs(noise) <= 1.0)


def test_stable_smooth_noise_close_for_nearby_points():
    for x, y in [(0.0, 0.0), (1.3, -2.2), (-3.1, 0.4), (2.5, 2.5), (-4.0, -4.0)]:
        for dx, dy in [(0.01, 0.0), (0.0, 0.01)]:
            err0 = np.subtract(score((x, y), DistributionKind.GAUSSIAN, 0.0, UNIFORM_STABLE),
                               true_score((x, y), DistributionKind.GAUSSIAN, 0.0))
            err1 = np.subtract(score((x + dx, y + dy), DistributionKind.GAUSSIAN, 0.0, UNIFORM_STABLE),
                               true_score((x + dx, y + dy), DistributionKind.GAUSSIAN, 0.0))
            assert np.linalg.norm(err1 - err0) < 0.1


def test_stable_smooth_noise_uncorrelated_for_far_points():
    rng = np.random.default_rng(7)
    n = 4000
    p0 = rng.uniform(-20, 20, size=(n, 2))
    dist = rng.uniform(3, 8, size=n)
    angle = rng.uniform(0, 2 * np.pi, size=n)
    p1 = p0 + dist[:, None] * np.stack((np.cos(angle), np.sin(angle)), axis=1)
    for seed in [1.0, 2.0]:
        corr = np.corrcoef(smooth_noise(p0[:, 0], p0[:, 1], seed), smooth_noise(p1[:, 0], p1[:, 1], seed))[0, 1]
        assert abs(corr) < 0.2


def test_hash_noise_is_uncorrelated_at_short_range():
    rng = np.random.default_rng(3)
    p0 = rng.uniform(-5, 5, size=(4000, 2))
    p1 = p0 + np.array([0.1, 0.0])
    near_smooth = np.corrcoef(smooth_noise(p0[:, 0], p0[:, 1], 1.0), smooth_noise(p1[:, 0], p1[:, 1], 1.0))[0, 1]
    near_hash = np.corrcoef(hash_noise(p0[:, 0], p0[:, 1], 1.0), hash_noise(p1[:, 0], p1[:, 1], 1.0))[0, 1]
    assert near_smooth > 0.5
    assert abs(near_hash) < 0.1


def test_volatile_noise_redrawn_every_call(rng):
    spec = ErrorSpec(ErrorKind.UNIFORM, severity=1.0, deterministic=False)
    a = score((1.0, 1.0), DistributionKind.GAUSSIAN, 0.0, spec, rng=rng)
    b = score((1.0, 1.0), DistributionKind.GAUSSIAN, 0.0, spec, rng=rng)
    assert a != b


def test_volatile_noise_independent_per_point_and_axis(rng):
    spec = ErrorSpec(ErrorKind.UNIFORM, severity=1.0, deterministic=False)
    pnts = np.zeros((20000, 2))
    err = score_batch(pnts, DistributionKind.GAUSSIAN, 0.0, spec, rng=rng)
    assert abs(err.mean()) < 0.03
    np.testing.assert_allclose(err.std(axis=0), 1.0, atol=0.03)
    assert abs(np.corrcoef(err[:, 0], err[:, 1])[0, 1]) < 0.03


def test_uniform_error_scales_with_severity():
    p = (0.5, 0.5)
    base = np.array(true_score(p, DistributionKind.RING, 0.0))
    err1 = np.array(score(p, DistributionKind.RING, 0.0, ErrorSpec(ErrorKind.UNIFORM, 1.0))) - base
    err3 = np.array(score(p, DistributionKind.RING, 0.0, ErrorSpec(ErrorKind.UNIFORM, 3.0))) - base
    np.testing.assert_allclose(err3, 3 * err1)


def test_density_weighted_error_larger_in_low_density():
    spec = ErrorSpec(ErrorKind.DENSITY_WEIGHTED, severity=0.5, deterministic=True)
    p_low, p_high = (0.0, 0.0), (-2.5, -2.5)
    err_low = np.subtract(score(p_low, DistributionKind.MIXTURE, 0.0, spec), true_score(p_low, DistributionKind.MIXTURE, 0.0))
    err_high = np.subtract(score(p_high, DistributionKind.MIXTURE, 0.0, spec), true_score(p_high, DistributionKind.MIXTURE, 0.0))
    assert np.linalg.norm(err_low) > np.linalg.norm(err_high)


def test_density_weighted_error_bounded_by_floor():
    spec = ErrorSpec(ErrorKind.DENSITY_WEIGHTED, severity=1.0, deterministic=True)
    pnts = np.array([[50.0, 50.0], [-40.0, 10.0]])
    err = score_batch(pnts, DistributionKind.GAUSSIAN, 0.0, spec) - true_score_batch(pnts, DistributionKind.GAUSSIAN, 0.0)
    assert np.all(np.isfinite(err))
    assert np.all(np.abs(err) <= 1.0 / DENSITY_EPS)


def test_negative_severity_clamped():
    p = (1.0, -1.0)
    spec = ErrorSpec(ErrorKind.UNIFORM, severity=-2.0)
    assert score(p, DistributionKind.MIXTURE, 0.0, spec) == true_score(p, DistributionKind.MIXTURE, 0.0)


def test_learned_and_naive_bypass_analytic_score(random_score_model, estimator):
    p = (1.0, 2.0)
    learned = score(p, DistributionKind.RING, 0.0, ErrorSpec(ErrorKind.LEARNED), estimator=estimator)
    assert learned == estimator.forward(p, DistributionKind.RING, ScoreRegime.NOISE_AUGMENTED)
    assert learned != true_score(p, DistributionKind.RING, 0.0)
    # sigma does not enter the learned path
    assert score(p, DistributionKind.RING, 2.0, ErrorSpec(ErrorKind.LEARNED), estimator=estimator) == learned
    with pytest.warns(UserWarning):
        naive = score(p, DistributionKind.RING, 0.0, ErrorSpec(ErrorKind.NAIVE), estimator=estimator)
    assert naive == (0.0, 0.0)


def test_learned_unknown_kind_degrades(tmp_path):
    with pytest.warns(UserWarning):
        out = score((0.0, 0.0), "banana", 0.0, ErrorSpec(ErrorKind.LEARNED), estimator=ScoreEstimator(str(tmp_path)))
    assert out == (0.0, 0.0)
