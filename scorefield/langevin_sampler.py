"""
Unadjusted Langevin sampling of a particle ensemble driven by the (possibly corrupted) score.

    x_{t+1} = x_t + (eps / 2) * s(x_t, sigma) + sqrt(eps) * z_t,   z_t ~ N(0, I)

No Metropolis correction is applied.
"""
import enum
import math
import threading
import numpy as np
from tqdm import trange
from scorefield.analytic_score import clamp_sigma
from scorefield.score_error import NO_ERROR, score_batch

INIT_BOUND = 5.0
# Particles are clipped to the plotted area after every step. This is a display
# convenience: it biases the empirical distribution near the edge and is not a
# reflecting boundary of the dynamics.
VIS_BOUND = 6.0
STEP_SIZE_RANGE = (0.001, 0.2)
SAMPLE_COUNT_RANGE = (10, 500)


def clamp_count(count):
    return max(0, int(count))


def clamp_step_size(step_size):
    return max(0.0, float(step_size))


def init_ensemble(count, bound=INIT_BOUND, rng=None):
    """`count` points uniform in [-bound, bound]^2, shape (count, 2)."""
    if rng is None:
        rng = np.random.default_rng()
    return rng.uniform(-bound, bound, size=(clamp_count(count), 2))


def step_ensemble(ensemble, kind, sigma=0.0, error_spec=NO_ERROR, step_size=0.05,
                  rng=None, estimator=None, volatile_error=True):
    """One Langevin step for every particle, returns a new (N, 2) array.

    The synthetic error is redrawn every step (volatile) unless `volatile_error` is False,
    in which case particles move through the fixed, stable error field.
    """
    if rng is None:
        rng = np.random.default_rng()
    if error_spec is None:
        error_spec = NO_ERROR
    if volatile_error:
        error_spec = error_spec.volatile()
    ensemble = np.asarray(ensemble, dtype=np.float64).reshape(-1, 2)
    eps = clamp_step_size(step_size)
    score_xt = score_batch(ensemble, kind, clamp_sigma(sigma), error_spec,
                           rng=rng, estimator=estimator)
    eps_z = rng.standard_normal(ensemble.shape)
    x_next = ensemble + (eps / 2) * score_xt + math.sqrt(eps) * eps_z
    return np.clip(x_next, -VIS_BOUND, VIS_BOUND)


class SamplerState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"


class LangevinSampler:
    """Owns one particle ensemble and its step counter.

    `particles` is only ever replaced, never written in place, so a reader always
    sees a complete snapshot. Steps are serialized by a lock.
    """

    def __init__(self, kind, sigma=0.0, error_spec=NO_ERROR, step_size=0.05,
                 count=200, seed=None, estimator=None):
        self.kind = kind
        self.sigma = sigma
        self.error_spec = error_spec
        self.step_size = step_size
        self.count = count
        self.estimator = estimator
        self.rng = np.random.default_rng(seed)
        self.state = SamplerState.UNINITIALIZED
        self.particles = None
        self.step_count = 0
        self._lock = threading.Lock()

    def initialize(self, count=None, bound=INIT_BOUND):
        with self._lock:
            if count is not None:
                self.count = count
            self.particles = init_ensemble(self.count, bound=bound, rng=self.rng)
            self.step_count = 0
            self.state = SamplerState.READY
        return self.particles

    def reset(self):
        return self.initialize()

    def set_count(self, count):
        """A new sample count throws away the current ensemble."""
        if clamp_count(count) != clamp_count(self.count) or self.particles is None:
            self.initialize(count)

    def set_kind(self, kind):
        self.kind = kind
        self.initialize()

    def start(self):
        if self.state == SamplerState.UNINITIALIZED:
            self.initialize()
        with self._lock:
            self.state = SamplerState.RUNNING

    def pause(self):
        with self._lock:
            if self.state == SamplerState.RUNNING:
                self.state = SamplerState.PAUSED

    def _step_locked(self):
        # caller holds self._lock
        if self.particles is None:
            self.particles = init_ensemble(self.count, rng=self.rng)
            self.state = SamplerState.READY
        self.particles = step_ensemble(self.particles, self.kind, self.sigma,
                                       self.error_spec, self.step_size,
                                       rng=self.rng, estimator=self.estimator)
        self.step_count += 1
        return self.particles

    def step(self):
        """Advance one step regardless of the run state."""
        with self._lock:
            return self._step_locked()

    def tick(self):
        """Scheduler entry point: one step while RUNNING, nothing otherwise.

        The state is read under the step lock, so a reset or reinitialization that
        lands before the tick acquires it cancels the step.
        """
        with self._lock:
            if self.state != SamplerState.RUNNING:
                return False
            self._step_locked()
            return True

    def run(self, nsteps, callback_func=lambda sampler: None, callback_every=0, progress=True):
        """Synchronously take `nsteps` steps, calling `callback_func` every `callback_every` steps."""
        if self.particles is None:
            self.initialize()
        pbar = trange(nsteps, disable=not progress)
        for _ in pbar:
            self.step()
            if callback_every and self.step_count % callback_every == 0:
                callback_func(self)
            pbar.set_description(f"step {self.step_count}")
        return self.particles


class SamplerLoop:
    """Background scheduler calling `sampler.tick()` every `interval` seconds.

    Ticks run on a single thread so they never overlap; `stop` takes effect between ticks.
    """

    def __init__(self, sampler, interval=1 / 60):
        self.sampler = sampler
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread = None

    def start(self):
        self.sampler.start()
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    def _loop(self):
        while not self._stop_event.is_set():
            self.sampler.tick()
            self._stop_event.wait(self.interval)

    def pause(self):
        self.sampler.pause()

    def reset(self):
        self.sampler.reset()

    def stop(self, timeout=None):
        self._stop_event.set()
        self.sampler.pause()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()
