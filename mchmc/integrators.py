"""Integrators for microcanonical (energy-conserving) dynamics.

The momentum lives on the unit sphere: u = v/|v|, |u| = 1, and the position moves
along it, dx/dt = u. Under a locally constant gradient the momentum ODE has a
closed-form solution (`momentum_update`), which the integrators compose with
position drifts into one discrete step.

Convention: positions x, momenta u and gradients g have shape (..., d).

Integrators:
- SingleStage: drift, then one momentum update (1 gradient evaluation per step)
- MinimalNorm: symmetric Omelyan splitting (2 gradient evaluations per step)

Reference: Robnik, De Luca, Silverstein & Seljak, "Microcanonical Hamiltonian
Monte Carlo", arXiv:2212.08549; Ver Steeg & Galstyan, arXiv:2111.02434.
"""

import math
from enum import Enum
from typing import NamedTuple

import torch

# Coefficient of the minimal-norm (Omelyan) integrator.
LAMBDA_C = 0.1931833275037836


class ChainState(NamedTuple):
    """State of one chain.

    Attributes:
        x: position, shape (d,)
        u: unit momentum direction, shape (d,)
        g: scaled gradient of nlogp at x, shape (d,)
        E: running energy estimate (diagnostic only)
        time: accumulated trajectory time
    """
    x: torch.Tensor
    u: torch.Tensor
    g: torch.Tensor
    E: float
    time: float


def scaled_gradient(target, x: torch.Tensor) -> torch.Tensor:
    """Gradient of nlogp scaled by d/(d-1), the force felt by the unit momentum."""
    d = target.d
    g = target.grad_nlogp(x)
    if d > 1:
        g = g * (d / (d - 1))
    return g


def _log_cosh(a: torch.Tensor) -> torch.Tensor:
    a = a.abs()
    return a + torch.log1p(torch.exp(-2.0 * a)) - math.log(2.0)


def momentum_update(u: torch.Tensor, g: torch.Tensor, eff_eps: float
                    ) -> tuple[torch.Tensor, torch.Tensor]:
    """Advance the unit momentum for time eff_eps under a fixed gradient.

    With e = -g/|g|, ue = u·e and a = eff_eps |g| / d:
        uu = (u + e (sinh a + ue (cosh a - 1))) / (cosh a + ue sinh a)
        delta_r = log cosh a + log1p(ue tanh a)

    Evaluated with numerator and denominator divided by cosh a so that large
    gradient norms do not overflow. eff_eps may be negative; the map with -eff_eps
    inverts the map with eff_eps. A zero gradient leaves u unchanged with
    delta_r = 0.

    Returns:
        (uu, delta_r) with uu of shape (..., d) and delta_r of shape (...,)
    """
    d = u.shape[-1]
    g_norm = g.norm(dim=-1, keepdim=True)
    e = -g / torch.where(g_norm > 0, g_norm, torch.ones_like(g_norm))
    ue = (u * e).sum(dim=-1, keepdim=True)

    a = eff_eps * g_norm / d
    th = torch.tanh(a)
    sech = torch.exp(-_log_cosh(a))
    denom = (1.0 + ue * th).clamp(min=torch.finfo(u.dtype).tiny)

    uu = (u * sech + e * (th + ue * (1.0 - sech))) / denom
    # Remove rounding drift off the sphere.
    norm = uu.norm(dim=-1, keepdim=True)
    uu = torch.where(norm > 0, uu / norm.clamp(min=torch.finfo(u.dtype).tiny), u)

    delta_r = _log_cosh(a) + torch.log1p(ue * th)
    return uu, delta_r.squeeze(-1)


class IntegratorKind(Enum):
    """Which integrator a sampler uses."""
    SINGLE_STAGE = "single-stage"
    MINIMAL_NORM = "minimal-norm"


class SingleStage:
    """First-order scheme with one gradient evaluation per step.

    Drift x by eps along u, evaluate the gradient there, then update u once
    over the full step.
    """

    grad_evals_per_step = 1

    def advance(self, state: ChainState, target, eps: float
                ) -> tuple[ChainState, torch.Tensor]:
        """One step. Returns (new_state, kinetic_change)."""
        x = state.x + eps * state.u
        g = scaled_gradient(target, x)
        u, delta_r = momentum_update(state.u, g, eps)
        kinetic_change = delta_r * (target.d - 1)
        return state._replace(x=x, u=u, g=g), kinetic_change


class MinimalNorm:
    """Minimal-norm (Omelyan) splitting with two gradient evaluations per step.

    Momentum updates of length λε, (1-2λ)ε, λε interleaved with two position
    half-steps. Symmetric, hence time-reversible; the first momentum update
    reuses the gradient carried in the state.

    Args:
        lambda_c: splitting coefficient λ (default: the value minimizing the
            norm of the leading error term).
    """

    grad_evals_per_step = 2

    def __init__(self, lambda_c: float = LAMBDA_C):
        self.lambda_c = lambda_c

    def advance(self, state: ChainState, target, eps: float
                ) -> tuple[ChainState, torch.Tensor]:
        """One step. Returns (new_state, kinetic_change)."""
        lam = self.lambda_c
        u, dr1 = momentum_update(state.u, state.g, eps * lam)
        x = state.x + 0.5 * eps * u
        g = scaled_gradient(target, x)
        u, dr2 = momentum_update(u, g, eps * (1.0 - 2.0 * lam))
        x = x + 0.5 * eps * u
        g = scaled_gradient(target, x)
        u, dr3 = momentum_update(u, g, eps * lam)
        kinetic_change = (dr1 + dr2 + dr3) * (target.d - 1)
        return state._replace(x=x, u=u, g=g), kinetic_change


def make_integrator(kind: IntegratorKind | str, lambda_c: float = LAMBDA_C):
    """Build the integrator for `kind`. Unknown kinds raise ValueError."""
    try:
        kind = IntegratorKind(kind)
    except ValueError:
        valid = ", ".join(k.value for k in IntegratorKind)
        raise ValueError(f"integrator = {kind!r} is not a valid option (expected one of: {valid})") from None
    if kind is IntegratorKind.SINGLE_STAGE:
        return SingleStage()
    return MinimalNorm(lambda_c)
