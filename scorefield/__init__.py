"""Density, score and Langevin sampling core of the score field visualizer."""
from scorefield.analytic_score import density, density_batch, true_score, true_score_batch
from scorefield.distributions import DistributionKind, get_mixture
from scorefield.gaussian_mixture_lib import Point, Vector
from scorefield.langevin_sampler import LangevinSampler, SamplerLoop, init_ensemble, step_ensemble
from scorefield.score_error import ErrorKind, ErrorSpec, score, score_batch
from scorefield.score_MLP import ScoreEstimator, ScoreRegime, configure_weights_dir, learned_score
