"""
Fixed catalog of 2d target densities, each a mixture of isotropic Gaussians.
Built once at import and never mutated.
"""
import enum
import math
import numpy as np
from scorefield.gaussian_mixture_lib import GaussianComponent, IsotropicGaussianMixture, Point


class DistributionKind(enum.Enum):
    GAUSSIAN = "Gaussian"
    MIXTURE = "Mixture of Gaussians"
    RING = "Ring"
    SWISS_ROLL = "Swiss Roll (Approx)"

    @property
    def slug(self):
        return self.name.lower()

    @classmethod
    def parse(cls, key):
        """Accept a member, its name, its display label or its slug ("swiss_roll")."""
        if isinstance(key, cls):
            return key
        for kind in cls:
            if key in (kind.name, kind.value, kind.slug):
                return kind
        raise ValueError(f"Unknown distribution kind {key!r}, "
                         f"choose from {[kind.slug for kind in cls]}")


def generate_ring_mus(n_points, R=3.5):
    """Means evenly spaced on a circle of radius R, starting at angle 0."""
    theta = np.arange(n_points) / n_points * 2 * math.pi
    return np.stack((R * np.cos(theta), R * np.sin(theta)), axis=1)


def generate_swiss_roll_mus(n_points, a=0.5, b=0.3, scale=0.4):
    """Means along a spiral r = a + b * theta, theta in [1.5 pi, 4.5 pi)."""
    theta = 1.5 * math.pi * (1 + 2 * np.arange(n_points) / n_points)
    r = a + b * theta
    return np.stack((scale * r * np.cos(theta), scale * r * np.sin(theta)), axis=1)


def _components(mus, data_std, weights):
    return [GaussianComponent(Point(float(mu[0]), float(mu[1])), data_std, float(w))
            for mu, w in zip(mus, weights)]


def _build_catalog():
    ring_mus = generate_ring_mus(8, R=3.5)
    roll_mus = generate_swiss_roll_mus(15)
    return {
        DistributionKind.GAUSSIAN: IsotropicGaussianMixture(
            _components([(0.0, 0.0)], 1.0, [1.0])),
        DistributionKind.MIXTURE: IsotropicGaussianMixture(
            _components([(-2.5, -2.5), (2.5, 2.5)], 0.8, [0.5, 0.5])),
        DistributionKind.RING: IsotropicGaussianMixture(
            _components(ring_mus, 0.5, [1 / 8] * 8)),
        DistributionKind.SWISS_ROLL: IsotropicGaussianMixture(
            _components(roll_mus, 0.35, [1 / 15] * 15)),
    }


_CATALOG = _build_catalog()


def get_mixture(kind):
    """Mixture for `kind`, or None when the kind is not in the catalog."""
    try:
        return _CATALOG.get(kind)
    except TypeError:  # unhashable key
        return None


def catalog_kinds():
    return tuple(_CATALOG)
