"""
Grids of density and score values for rendering a static frame.
"""
import functools
import numpy as np
from scorefield.analytic_score import clamp_sigma, density_batch
from scorefield.distributions import get_mixture
from scorefield.score_error import NO_ERROR, score_batch

DOMAIN = (-5.0, 5.0)
DENSITY_GRID_SIZE = 100
VECTOR_GRID_SIZE = 20


def grid_coords(ngrid, lim=DOMAIN, centered=False):
    """1d coordinates lim[0] + i * step, shifted by half a cell when `centered`."""
    step = (lim[1] - lim[0]) / ngrid
    offset = 0.5 if centered else 0.0
    return lim[0] + (np.arange(ngrid) + offset) * step


def grid_points(ngrid, lim=DOMAIN, centered=False):
    """Returns XX, YY of shape (ngrid, ngrid), row index j along y, and the (ngrid**2, 2) points."""
    coords = grid_coords(ngrid, lim, centered)
    XX, YY = np.meshgrid(coords, coords)
    pnt_vecs = np.stack((XX, YY), axis=-1).reshape(-1, 2)
    return XX, YY, pnt_vecs


def _density_grid(kind, sigma, ngrid, lim):
    XX, YY, pnt_vecs = grid_points(ngrid, lim)
    prob = density_batch(pnt_vecs, kind, sigma).reshape(ngrid, ngrid)
    for arr in (XX, YY, prob):
        arr.setflags(write=False)
    return XX, YY, prob


_density_grid_cached = functools.lru_cache(maxsize=64)(_density_grid)


def density_grid(kind, sigma=0.0, ngrid=DENSITY_GRID_SIZE, lim=DOMAIN):
    """Density on a regular ngrid x ngrid grid, memoized on (kind, sigma, ngrid, lim).

    The returned arrays are shared between callers and read-only. Kinds outside the
    catalog (possibly unhashable) skip the memo and give an all zero grid.
    """
    args = (kind, clamp_sigma(sigma), int(ngrid), tuple(float(v) for v in lim))
    if get_mixture(kind) is None:
        return _density_grid(*args)
    return _density_grid_cached(*args)


def score_grid(kind, sigma=0.0, error_spec=NO_ERROR, ngrid=VECTOR_GRID_SIZE, lim=DOMAIN,
               rng=None, estimator=None):
    """Score vectors at cell centers of an ngrid x ngrid grid.

    Returns:
        pnt_vecs: (ngrid**2, 2) arrow positions
        score_vecs: (ngrid**2, 2)
        magnitudes: (ngrid**2,)
    """
    _, _, pnt_vecs = grid_points(ngrid, lim, centered=True)
    score_vecs = score_batch(pnt_vecs, kind, sigma, error_spec, rng=rng, estimator=estimator)
    magnitudes = np.linalg.norm(score_vecs, axis=-1)
    return pnt_vecs, score_vecs, magnitudes
