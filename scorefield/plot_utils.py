import os
from os.path import join
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from scorefield.field_grid import DOMAIN, density_grid, score_grid
from scorefield.langevin_sampler import VIS_BOUND
from scorefield.score_error import NO_ERROR


def saveallforms(figdir, fignm, figh=None, fmts=("png", "pdf")):
    """Save the figure in every format of `fmts` under figdir/fignm.<fmt>"""
    if figh is None:
        figh = plt.gcf()
    os.makedirs(figdir, exist_ok=True)
    paths = []
    for fmt in fmts:
        path = join(figdir, f"{fignm}.{fmt}")
        figh.savefig(path, bbox_inches="tight")
        paths.append(path)
    return paths


def quiver_plot(pnts, vecs, *args, ax=None, **kwargs):
    if ax is None:
        ax = plt.gca()
    return ax.quiver(pnts[:, 0], pnts[:, 1], vecs[:, 0], vecs[:, 1], *args, **kwargs)


def plot_score_field(kind, sigma=0.0, error_spec=NO_ERROR, normalize_arrows=False,
                     ax=None, titlestr=None, estimator=None):
    """Density contours with the score arrows on top."""
    if ax is None:
        figh, ax = plt.subplots(1, 1, figsize=(7, 7))
    else:
        figh = ax.figure
    XX, YY, prob = density_grid(kind, sigma)
    ax.contourf(XX, YY, prob, levels=20, cmap="Blues")
    pnt_vecs, score_vecs, magnitudes = score_grid(kind, sigma, error_spec, estimator=estimator)
    if normalize_arrows:
        score_vecs = score_vecs / np.maximum(magnitudes, 1E-12)[:, None]
    quiver_plot(pnt_vecs, score_vecs, ax=ax, color="black", alpha=0.7, angles="xy")
    ax.set_xlim(DOMAIN)
    ax.set_ylim(DOMAIN)
    ax.set_aspect("equal")
    if titlestr is None:
        titlestr = f"Score field {kind.value}, sigma={sigma:.2f}\nerror={error_spec.kind.value} severity={error_spec.severity}"
    ax.set_title(titlestr)
    return figh


def visualize_samples(particles, kind, sigma=0.0, explabel=""):
    """Particles over the density contour (left) and their kde (right)."""
    figh, axs = plt.subplots(1, 2, figsize=[12, 6])
    XX, YY, prob = density_grid(kind, sigma)
    axs[0].contour(XX, YY, prob, levels=10, cmap="Greys")
    axs[0].scatter(particles[:, 0], particles[:, 1], s=8, color="k", alpha=0.5)
    axs[0].set_title("Langevin samples")
    if particles.shape[0] > 2:
        sns.kdeplot(x=particles[:, 0], y=particles[:, 1], ax=axs[1], fill=True, cmap="Reds")
    axs[1].set_title("Density of samples")
    for ax in axs:
        ax.set_xlim(-VIS_BOUND, VIS_BOUND)
        ax.set_ylim(-VIS_BOUND, VIS_BOUND)
        ax.set_aspect("equal")
    plt.suptitle(explabel)
    return figh
