"""
Mixture of isotropic 2d Gaussians, numpy version.
Evaluates density and score (grad log p) on batches of points of shape (N, 2),
optionally for the noised marginal p_sigma = p * N(0, sigma^2 I).
"""
import math
from typing import NamedTuple
import numpy as np

TWO_PI = 2 * math.pi
# below this total density the score is reported as zero
DENSITY_FLOOR = 1E-12


class Point(NamedTuple):
    x: float
    y: float


Vector = Point


class GaussianComponent(NamedTuple):
    mean: Point
    data_std: float
    weight: float


def as_points(pnts):
    """Cast a single point or a batch of points to a float64 array of shape (N, 2)."""
    pnts = np.asarray(pnts, dtype=np.float64)
    return pnts.reshape(-1, 2)


class IsotropicGaussianMixture:
    """Weighted mixture of isotropic Gaussians N(mu_i, s_i^2 I) in 2d.

    Weights are used as given (callers keep them summing to 1).
    All methods take `noise_std`, the std of the isotropic Gaussian kernel
    convolved with the data density, so the component variance is s_i^2 + noise_std^2.
    """

    def __init__(self, components):
        self.components = tuple(components)
        self.mus = np.array([comp.mean for comp in self.components], dtype=np.float64).reshape(-1, 2)
        self.data_stds = np.array([comp.data_std for comp in self.components], dtype=np.float64)
        self.weights = np.array([comp.weight for comp in self.components], dtype=np.float64)
        self.n_components = len(self.components)

    def variances(self, noise_std=0.0):
        return self.data_stds ** 2 + noise_std ** 2

    def pdf_decompose(self, pnts, noise_std=0.0):
        """Weighted density of each branch.

        Returns:
            prob: (N,) total density
            prob_branch: (N, K) weight_k * N(x; mu_k, var_k I)
        """
        pnts = as_points(pnts)
        var = self.variances(noise_std)  # (K,)
        res = pnts[:, None, :] - self.mus[None, :, :]  # (N, K, 2)
        sqdist = (res ** 2).sum(axis=-1)
        prob_branch = self.weights / (TWO_PI * var) * np.exp(-sqdist / (2 * var))
        return prob_branch.sum(axis=1), prob_branch

    def pdf(self, pnts, noise_std=0.0):
        prob, _ = self.pdf_decompose(pnts, noise_std)
        return prob

    def score_decompose(self, pnts, noise_std=0.0):
        """Score of each Gaussian branch and the participance (responsibility) of each branch.

        Returns:
            gradvec_list: list of K arrays (N, 2), -(x - mu_k) / var_k
            participance: (N, K) posterior weight of each branch, rows of zeros
                where the total density is below DENSITY_FLOOR.
        """
        pnts = as_points(pnts)
        var = self.variances(noise_std)
        prob, prob_branch = self.pdf_decompose(pnts, noise_std)
        gradvec_list = [-(pnts - self.mus[k]) / var[k] for k in range(self.n_components)]
        participance = np.zeros_like(prob_branch)
        valid = prob > DENSITY_FLOOR
        participance[valid] = prob_branch[valid] / prob[valid, None]
        return gradvec_list, participance

    def score(self, pnts, noise_std=0.0):
        """grad_x log p(x), the responsibility weighted average of the branch scores."""
        pnts = as_points(pnts)
        if self.n_components == 0:
            return np.zeros_like(pnts)
        gradvec_list, participance = self.score_decompose(pnts, noise_std)
        scorevecs = np.zeros_like(pnts)
        for k, gradvec in enumerate(gradvec_list):
            scorevecs += participance[:, k:k + 1] * gradvec
        return scorevecs

    def sample(self, N, noise_std=0.0, rng=None):
        """Draw N samples from the (noised) mixture.

        Returns:
            samples: (N, 2)
            rand_component: (N,) index of the branch each sample came from
        """
        if rng is None:
            rng = np.random.default_rng()
        probs = self.weights / self.weights.sum()
        rand_component = rng.choice(self.n_components, size=N, p=probs)
        stds = np.sqrt(self.variances(noise_std))[rand_component]
        samples = self.mus[rand_component] + rng.standard_normal((N, 2)) * stds[:, None]
        return samples, rand_component
