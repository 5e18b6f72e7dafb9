"""
Pretrained MLP surrogates of the score, one per (distribution kind, training regime).
The nets are frozen: weights are read from JSON tables and only the forward pass is run.

    Linear(2, 128) -> Softplus -> Linear(128, 128) -> Softplus
    -> Linear(128, 128) -> Softplus -> Linear(128, 2)
"""
import enum
import json
import os
import threading
import warnings
from os.path import join
import numpy as np
import torch
import torch.nn as nn
from scorefield.gaussian_mixture_lib import Point, as_points

NDIM = 2
NHIDDEN = 128
NLAYERS = 4
# Softplus(z) = z above this, avoids overflow of exp(z)
SOFTPLUS_THRESHOLD = 20
WEIGHTS_DIR_ENV = "SCOREFIELD_WEIGHTS_DIR"
DEFAULT_WEIGHTS_DIR = join(os.path.dirname(os.path.abspath(__file__)), "weights")


class ScoreRegime(enum.Enum):
    NOISE_AUGMENTED = "noise_augmented"
    NAIVE = "naive"


class ScoreMLP(nn.Module):
    """Time independent score net s(x) for 2d points."""

    def __init__(self, ndim=NDIM, nhidden=NHIDDEN, nlayers=NLAYERS):
        super().__init__()
        layers = []
        layers.extend([nn.Linear(ndim, nhidden),
                       nn.Softplus(beta=1, threshold=SOFTPLUS_THRESHOLD)])
        for _ in range(nlayers - 2):
            layers.extend([nn.Linear(nhidden, nhidden),
                           nn.Softplus(beta=1, threshold=SOFTPLUS_THRESHOLD)])
        layers.extend([nn.Linear(nhidden, ndim)])
        self.net = nn.Sequential(*layers)

    def forward(self, x):
        return self.net(x)


def _linear_keys(nlayers=NLAYERS):
    # Softplus modules sit between the Linear ones in self.net
    return [f"net.{2 * i}" for i in range(nlayers)]


def _layer_record(record):
    weight = record.get("weight", record.get("weightMatrix"))
    bias = record.get("bias", record.get("biasVector"))
    if weight is None or bias is None:
        raise ValueError(f"layer record needs weight and bias, got keys {sorted(record)}")
    return np.asarray(weight, dtype=np.float64), np.asarray(bias, dtype=np.float64)


def layers_to_state_dict(layers):
    """Validate the 4 layer records of a weight table and convert them to a ScoreMLP state_dict."""
    if len(layers) != NLAYERS:
        raise ValueError(f"expected {NLAYERS} layers, got {len(layers)}")
    expected_shapes = [(NHIDDEN, NDIM)] + [(NHIDDEN, NHIDDEN)] * (NLAYERS - 2) + [(NDIM, NHIDDEN)]
    state_dict = {}
    for key, record, shape in zip(_linear_keys(), layers, expected_shapes):
        weight, bias = _layer_record(record)
        if weight.shape != shape or bias.shape != (shape[0],):
            raise ValueError(f"layer {key} has weight {weight.shape} bias {bias.shape}, "
                             f"expected {shape} and ({shape[0]},)")
        state_dict[f"{key}.weight"] = torch.from_numpy(weight)
        state_dict[f"{key}.bias"] = torch.from_numpy(bias)
    return state_dict


def load_weight_table(path):
    """Build a frozen float64 ScoreMLP from a JSON weight table."""
    with open(path, "r") as f:
        layers = json.load(f)
    score_model = ScoreMLP().double()
    score_model.load_state_dict(layers_to_state_dict(layers))
    for param in score_model.parameters():
        param.requires_grad = False
    score_model.eval()
    return score_model


def load_checkpoint_weights(checkpoint_path):
    """Read a torch.save'd ScoreMLP state_dict from disk."""
    return torch.load(checkpoint_path, map_location="cpu")


def export_mlp_weights(model, path):
    """Write a ScoreMLP (module or state_dict) as a JSON weight table of 4 layer records."""
    state_dict = model.state_dict() if isinstance(model, nn.Module) else model
    layers = []
    for key in _linear_keys():
        if f"{key}.weight" not in state_dict or f"{key}.bias" not in state_dict:
            raise ValueError(f"state_dict is missing {key}, not a {NLAYERS} layer ScoreMLP")
        layers.append({"weight": state_dict[f"{key}.weight"].detach().cpu().double().tolist(),
                       "bias": state_dict[f"{key}.bias"].detach().cpu().double().tolist()})
    layers_to_state_dict(layers)  # shape check before touching the disk
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w") as f:
        json.dump(layers, f)
    return path


def weight_table_path(weights_dir, kind, regime):
    return join(weights_dir, regime.value, f"weights_{kind.slug}.json")


class ScoreEstimator:
    """Lazily loaded, read-only table of pretrained score nets keyed by (kind, regime).

    A missing or unreadable table gives a warning once and the zero vector afterwards.
    """

    def __init__(self, weights_dir=None):
        if weights_dir is None:
            weights_dir = os.environ.get(WEIGHTS_DIR_ENV, DEFAULT_WEIGHTS_DIR)
        self.weights_dir = weights_dir
        self._models = {}
        self._lock = threading.Lock()

    def model(self, kind, regime):
        key = (kind, regime)
        if key in self._models:
            return self._models[key]
        with self._lock:
            if key not in self._models:
                self._models[key] = self._load(kind, regime)
        return self._models[key]

    def _load(self, kind, regime):
        if not hasattr(kind, "slug"):
            warnings.warn(f"No weights found for distribution type: {kind!r}")
            return None
        path = weight_table_path(self.weights_dir, kind, regime)
        try:
            return load_weight_table(path)
        except OSError:  # includes a weights_dir that is not a directory
            warnings.warn(f"No weights found for distribution type: {kind.value} "
                          f"({regime.value}), expected {path}")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            warnings.warn(f"Unusable weight table {path}: {e}")
        return None

    def forward_batch(self, pnts, kind, regime):
        pnts = as_points(pnts)
        score_model = self.model(kind, regime)
        if score_model is None:
            return np.zeros_like(pnts)
        with torch.no_grad():
            return score_model(torch.tensor(pnts, dtype=torch.float64)).numpy()

    def forward(self, p, kind, regime):
        scorevec = self.forward_batch(p, kind, regime)[0]
        return Point(float(scorevec[0]), float(scorevec[1]))


_default_estimator = None
_default_lock = threading.Lock()


def get_estimator():
    global _default_estimator
    with _default_lock:
        if _default_estimator is None:
            _default_estimator = ScoreEstimator()
        return _default_estimator


def configure_weights_dir(weights_dir):
    """Replace the process wide estimator with one reading from `weights_dir`."""
    global _default_estimator
    with _default_lock:
        _default_estimator = ScoreEstimator(weights_dir)
        return _default_estimator


def learned_score(p, kind, regime=ScoreRegime.NOISE_AUGMENTED):
    return get_estimator().forward(p, kind, regime)
