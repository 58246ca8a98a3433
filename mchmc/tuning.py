"""Self-tuning of the step size and trajectory length.

The step size is adjusted until the variance of the energy estimate per dimension,
Var[E]/d, measured over short runs of the dynamics, matches `varE_wanted`. The
variance of the energy error grows roughly as eps^6, so each run contributes
xi / eps^6 (xi = varE / varE_wanted) to a weighted estimate F/W, and the next step
size is (F/W)^(-1/6). Runs far from the target get a small weight through
w = exp(-0.5 (log xi / (6 sigma_xi))^2).

A run that diverges, or whose varE exceeds `BLOWUP_RATIO * varE_wanted`, sets a
ceiling eps_max that no later step size may exceed. The step size is also kept
below `EPS_L_FRACTION * L`.

L is set from the tuning samples as sqrt(sum of per-coordinate variances), the size
of the typical set. nu is left to be derived from eps, L and d at every step.

Non-convergence is not an error: the best step size seen is kept.
"""

import logging
import math
from typing import NamedTuple

import torch

from .dynamics import step
from .integrators import ChainState

logger = logging.getLogger(__name__)

# Relative tolerance on varE / varE_wanted.
TOLERANCE = 0.05
# varE / varE_wanted above which a run counts as blown up.
BLOWUP_RATIO = 100.0
# Shrink factor applied to a step size that blew up to get eps_max.
BLOWUP_SHRINK = 0.8
# Width of the weighting in log xi.
SIGMA_XI = 1.5
# Weight kept by earlier runs in the step size estimate.
GAMMA_FORGET = 0.5
# Upper bound on eps / L.
EPS_L_FRACTION = 0.5


class TuningResult(NamedTuple):
    """Outcome of self-tuning.

    Attributes:
        eps, L, nu: hyperparameters installed on the sampler (nu for the tuned target)
        varE: last finite energy variance per dimension (nan if none)
        converged: whether varE reached the tolerance
        n_iter: tuning iterations run
        state: chain state at the end of tuning
    """
    eps: float
    L: float
    nu: float
    varE: float
    converged: bool
    n_iter: int
    state: ChainState


def initial_guess(sampler, target) -> None:
    """Install eps = sqrt(d)/2 and L = sqrt(d) where they are unset."""
    hp = sampler.hyperparameters
    d = target.d
    if hp.eps == 0.0:
        hp.eps = 0.5 * math.sqrt(d)
    if hp.L == 0.0:
        hp.L = math.sqrt(d)


def energy_variance(sampler, target, state: ChainState, n_steps: int
                    ) -> tuple[float, ChainState, torch.Tensor]:
    """Run n_steps with energy monitoring from E = 0.

    Returns:
        (Var[E]/d, end state, positions of shape (n_steps, d) in sampling coordinates)
    """
    state = state._replace(E=0.0)
    Es = torch.empty(n_steps, dtype=torch.float64)
    xs = torch.empty(n_steps, target.d, dtype=state.x.dtype, device=state.x.device)
    for i in range(n_steps):
        state, record = step(sampler, target, state, monitor_energy=True)
        Es[i] = record.energy
        xs[i] = state.x
    varE = ((Es - Es.mean())**2).mean().item() / target.d
    return varE, state, xs


class _SizeEstimate:
    """Weighted per-coordinate moments of the tuning samples."""

    def __init__(self):
        self.W = 0.0
        self.F1 = None
        self.F2 = None

    def update(self, xs: torch.Tensor, w: float) -> None:
        if w <= 0.0:
            return
        m1 = xs.mean(0).to(torch.float64).cpu()
        m2 = (xs**2).mean(0).to(torch.float64).cpu()
        if self.F1 is None:
            self.F1, self.F2 = torch.zeros_like(m1), torch.zeros_like(m2)
        self.F1 = (self.W * self.F1 + w * m1) / (self.W + w)
        self.F2 = (self.W * self.F2 + w * m2) / (self.W + w)
        self.W += w

    def L(self) -> float:
        """sqrt(sum of variances), or nan without samples."""
        if self.F1 is None:
            return math.nan
        variances = (self.F2 - self.F1**2).clamp(min=0.0)
        return math.sqrt(variances.sum().item())


def tune_hyperparameters(sampler, target, state: ChainState) -> TuningResult:
    """Tune eps and L in place on `sampler.hyperparameters`.

    Runs at most `tune_maxiter` iterations of `tune_samples` steps each. A run whose
    energy diverges halves eps and is discarded; the chain continues from the state
    reached by the last finite run.
    """
    hp = sampler.hyperparameters
    sett = sampler.settings
    d = target.d

    if hp.eps == 0.0 or hp.L == 0.0:
        initial_guess(sampler, target)
    hp.eps = min(hp.eps, EPS_L_FRACTION * hp.L)

    eps_max = math.inf
    W, F = 0.0, 0.0
    size = _SizeEstimate()
    best_score, best_eps, varE = math.inf, None, math.nan
    converged = False
    n_iter = 0
    for n_iter in range(1, sett.tune_maxiter + 1):
        eps = hp.eps
        varE_run, new_state, xs = energy_variance(sampler, target, state, sett.tune_samples)

        if not math.isfinite(varE_run):
            logger.debug("tuning iteration %d: eps=%.4g diverged, halving", n_iter, eps)
            eps_max = min(eps_max, BLOWUP_SHRINK * eps)
            hp.eps = min(0.5 * eps, eps_max)
            continue

        state, varE = new_state, varE_run
        xi = varE / sett.varE_wanted + 1e-8
        logger.debug("tuning iteration %d: eps=%.4g varE=%.4g", n_iter, eps, varE)

        w = math.exp(-0.5 * (math.log(xi) / (6.0 * SIGMA_XI))**2)
        if xi > BLOWUP_RATIO:
            eps_max = min(eps_max, BLOWUP_SHRINK * eps)
        else:
            size.update(xs, w)
            score = abs(math.log(xi))
            if score < best_score:
                best_score, best_eps = score, eps

        if abs(xi - 1.0) < TOLERANCE:
            converged = True
            break

        F = GAMMA_FORGET * F + w * xi / eps**6
        W = GAMMA_FORGET * W + w
        hp.eps = min((F / W)**(-1.0 / 6.0), eps_max, EPS_L_FRACTION * hp.L)

    if not converged:
        if best_eps is not None:
            hp.eps = min(best_eps, eps_max)
        logger.warning(
            "Self-tuning did not reach varE_wanted=%.3g within %d iterations; "
            "using eps=%.4g (last varE=%.4g)",
            sett.varE_wanted, sett.tune_maxiter, hp.eps, varE,
        )

    L = size.L()
    if math.isfinite(L) and L > 0.0:
        hp.L = L
        hp.eps = min(hp.eps, EPS_L_FRACTION * hp.L)

    nu = hp.noise_scale(d)
    logger.info("Tuned hyperparameters: eps=%.4g, L=%.4g, nu=%.4g", hp.eps, hp.L, nu)
    return TuningResult(hp.eps, hp.L, nu, varE, converged, n_iter, state)
