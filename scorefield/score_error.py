"""
Synthetic score estimation error on top of the analytic score.

Stable (deterministic) noise is a pure function of position, so a static score field
renders the same way on every query; volatile noise is redrawn on every call, which is
what the sampler uses.
"""
import dataclasses
import enum
import numpy as np
from scorefield.analytic_score import density_batch, true_score_batch
from scorefield.gaussian_mixture_lib import Point, as_points
from scorefield.score_MLP import ScoreRegime, get_estimator

# floor added to the density before dividing in the density weighted error
DENSITY_EPS = 1E-3
# seed of the stable noise field for the x and y component of the score
STABLE_AXIS_SEEDS = (1.0, 2.0)


class ErrorKind(enum.Enum):
    NONE = "none"
    UNIFORM = "uniform"
    DENSITY_WEIGHTED = "density"
    LEARNED = "learned"
    NAIVE = "naive"


_LEARNED_REGIMES = {
    ErrorKind.LEARNED: ScoreRegime.NOISE_AUGMENTED,
    ErrorKind.NAIVE: ScoreRegime.NAIVE,
}


@dataclasses.dataclass(frozen=True)
class ErrorSpec:
    """How the true score is corrupted.

    deterministic: stable, position hashed noise (True) or fresh normal draws (False).
    smooth: for stable noise, spatially correlated sum of sines (True) or white hash noise (False).
    """
    kind: ErrorKind = ErrorKind.NONE
    severity: float = 0.0
    deterministic: bool = True
    smooth: bool = True

    def volatile(self):
        return dataclasses.replace(self, deterministic=False)


NO_ERROR = ErrorSpec()


def clamp_severity(severity):
    """Negative severities are treated as 0; values above 1 pass through."""
    return max(0.0, float(severity))


def smooth_noise(x, y, seed=0.0):
    """Sum of 3 sine waves at frequency 3, 6, 12, scaled into [-1, 1].

    Nearby points give close values, so the error field looks like a smooth
    distortion of the score field rather than speckle.
    """
    val1 = np.sin(x * 3.0 + seed) * np.cos(y * 3.0 + seed * 1.5)
    val2 = np.sin(x * 6.0 + seed * 2) * np.cos(y * 6.0 + seed * 2.5) * 0.5
    val3 = np.sin(x * 12.0 + seed * 3) * np.cos(y * 12.0 + seed * 3.5) * 0.25
    return (val1 + val2 + val3) / 1.75


def hash_noise(x, y, seed=0.0):
    """Deterministic pseudo random value in [-1, 1], uncorrelated between nearby points."""
    v = np.sin(x * 12.9898 + y * 78.233 + seed) * 43758.5453
    return (v - np.floor(v)) * 2 - 1


def noise_field(pnts, error_spec, rng=None):
    """Unit scale noise, one value per point and axis, shape (N, 2)."""
    pnts = as_points(pnts)
    if not error_spec.deterministic:
        if rng is None:
            rng = np.random.default_rng()
        return rng.standard_normal(pnts.shape)
    generator = smooth_noise if error_spec.smooth else hash_noise
    return np.stack([generator(pnts[:, 0], pnts[:, 1], seed) for seed in STABLE_AXIS_SEEDS], axis=1)


def apply_score_error(pnts, scorevecs, kind, sigma, error_spec, rng=None):
    """Add the synthetic error of `error_spec` to precomputed true scores (UNIFORM / DENSITY_WEIGHTED)."""
    pnts = as_points(pnts)
    severity = clamp_severity(error_spec.severity)
    if error_spec.kind == ErrorKind.UNIFORM:
        scale = np.full(pnts.shape[0], severity)
    elif error_spec.kind == ErrorKind.DENSITY_WEIGHTED:
        scale = severity / (density_batch(pnts, kind, sigma) + DENSITY_EPS)
    else:
        return scorevecs
    return scorevecs + scale[:, None] * noise_field(pnts, error_spec, rng)


def score_batch(pnts, kind, sigma=0.0, error_spec=NO_ERROR, rng=None, estimator=None):
    """Score field seen by the sampler / the renderer at a batch of points, shape (N, 2)."""
    pnts = as_points(pnts)
    if error_spec is None:
        error_spec = NO_ERROR
    if error_spec.kind in _LEARNED_REGIMES:
        if estimator is None:
            estimator = get_estimator()
        return estimator.forward_batch(pnts, kind, _LEARNED_REGIMES[error_spec.kind])
    scorevecs = true_score_batch(pnts, kind, sigma)
    return apply_score_error(pnts, scorevecs, kind, sigma, error_spec, rng)


def score(p, kind, sigma=0.0, error_spec=NO_ERROR, rng=None, estimator=None):
    scorevec = score_batch(p, kind, sigma, error_spec, rng=rng, estimator=estimator)[0]
    return Point(float(scorevec[0]), float(scorevec[1]))
