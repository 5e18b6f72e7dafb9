"""
Closed form density and score of the catalog distributions, perturbed by
isotropic Gaussian noise of std sigma.
Unknown kinds evaluate to zero density / zero score instead of raising.
"""
import numpy as np
from scorefield.distributions import get_mixture
from scorefield.gaussian_mixture_lib import Point, as_points

SIGMA_RANGE = (0.0, 3.0)


def clamp_sigma(sigma):
    """Negative noise levels are treated as 0; there is no upper clamp."""
    return max(0.0, float(sigma))


def density_batch(pnts, kind, sigma=0.0):
    pnts = as_points(pnts)
    gmm = get_mixture(kind)
    if gmm is None:
        return np.zeros(pnts.shape[0])
    return gmm.pdf(pnts, noise_std=clamp_sigma(sigma))


def true_score_batch(pnts, kind, sigma=0.0):
    pnts = as_points(pnts)
    gmm = get_mixture(kind)
    if gmm is None:
        return np.zeros_like(pnts)
    return gmm.score(pnts, noise_std=clamp_sigma(sigma))


def density(p, kind, sigma=0.0):
    """p_sigma(p) = sum_i w_i N(p; mu_i, (s_i^2 + sigma^2) I)"""
    return float(density_batch(p, kind, sigma)[0])


def true_score(p, kind, sigma=0.0):
    """grad log p_sigma(p); the zero vector where p_sigma(p) <= 1e-12."""
    scorevec = true_score_batch(p, kind, sigma)[0]
    return Point(float(scorevec[0]), float(scorevec[1]))
