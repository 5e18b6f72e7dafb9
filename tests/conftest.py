import matplotlib
matplotlib.use("Agg")
import numpy as np
import pytest
import torch
from scorefield.distributions import DistributionKind
from scorefield.score_MLP import ScoreEstimator, ScoreMLP, ScoreRegime, export_mlp_weights, weight_table_path


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def random_score_model():
    torch.manual_seed(0)
    return ScoreMLP().double().eval()


@pytest.fixture
def weights_dir(tmp_path, random_score_model):
    """Weight tables for every kind in the noise augmented regime only."""
    for kind in DistributionKind:
        export_mlp_weights(random_score_model,
                           weight_table_path(str(tmp_path), kind, ScoreRegime.NOISE_AUGMENTED))
    return str(tmp_path)


@pytest.fixture
def estimator(weights_dir):
    return ScoreEstimator(weights_dir)
