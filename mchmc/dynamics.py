"""One iteration of the sampler: integrator step, momentum refresh, energy tracking.

The only stochastic part of the chain is the partial momentum refresh; every random
draw goes through the sampler's torch.Generator in a fixed order, so a given seed
always reproduces the same chain.
"""

from typing import NamedTuple

import torch

from .integrators import ChainState, scaled_gradient


class SampleRecord(NamedTuple):
    """One retained step of the chain.

    Attributes:
        position: inv_transform of the position, shape (d,)
        energy: energy estimate, or None when energy is not monitored
        logp: log-density at the position (up to a constant)
    """
    position: torch.Tensor
    energy: float | None
    logp: float


def random_unit_vector(d: int | tuple[int, ...], generator: torch.Generator,
                       normalize: bool = True, dtype: torch.dtype = torch.float64
                       ) -> torch.Tensor:
    """Isotropic random direction.

    Draws standard normal components of shape (d,) (or `d` if it is a shape) and,
    if `normalize`, projects them onto the unit sphere.
    """
    shape = (d,) if isinstance(d, int) else tuple(d)
    z = torch.randn(shape, generator=generator, dtype=dtype, device=generator.device)
    if normalize:
        z = z / z.norm(dim=-1, keepdim=True)
    return z


def partially_refresh_momentum(u: torch.Tensor, nu: float,
                               generator: torch.Generator) -> torch.Tensor:
    """Add Gaussian noise of scale nu to u and renormalize. nu = 0 is a no-op."""
    z = nu * random_unit_vector(u.shape, generator, normalize=False, dtype=u.dtype)
    uu = u + z
    return uu / uu.norm(dim=-1, keepdim=True)


def dynamics_step(sampler, target, state: ChainState) -> tuple[ChainState, torch.Tensor]:
    """Integrator step followed by a partial momentum refresh.

    Returns:
        (new_state, kinetic_change). The energy field of the state is carried
        through untouched; `energy` turns kinetic_change into an energy estimate.
    """
    hp = sampler.hyperparameters
    sett = sampler.settings

    state, kinetic_change = sampler.integrator.advance(state, target, hp.eps)
    u = partially_refresh_momentum(state.u, hp.noise_scale(target.d), sett.generator)

    time = state.time
    if sett.accumulate_time:
        time = time + hp.eps

    return state._replace(u=u, time=time), kinetic_change


def energy(target, x: torch.Tensor, xx: torch.Tensor, E: float,
           kinetic_change: torch.Tensor) -> tuple[float, float]:
    """Energy random walk: E + kinetic_change + nlogp(xx) - nlogp(x).

    Returns:
        (logp at xx, new energy estimate)
    """
    nlogp = target.nlogp(x)
    nllogp = target.nlogp(xx)
    EE = E + kinetic_change + nllogp - nlogp
    return -float(nllogp), float(EE)


def get_initial_conditions(sampler, target, initial_x=None) -> ChainState:
    """Initial chain state: prior draw (or initial_x), its gradient, random direction."""
    sett = sampler.settings
    if initial_x is None:
        x = target.prior_draw(sett.generator, dtype=sett.dtype)
    else:
        x = torch.as_tensor(initial_x, dtype=sett.dtype)
        if x.shape != (target.d,):
            raise ValueError(
                f"initial_x must have shape ({target.d},), got {tuple(x.shape)}"
            )
    x = x.to(device=sett.device, dtype=sett.dtype)
    g = scaled_gradient(target, x)
    u = random_unit_vector(target.d, sett.generator, dtype=sett.dtype)
    return ChainState(x=x, u=u, g=g, E=0.0, time=0.0)


def step(sampler, target, state: ChainState, monitor_energy: bool = False
         ) -> tuple[ChainState, SampleRecord]:
    """Advance the chain once and record the position reached."""
    new_state, kinetic_change = dynamics_step(sampler, target, state)
    if monitor_energy:
        logp, E = energy(target, state.x, new_state.x, state.E, kinetic_change)
        new_state = new_state._replace(E=E)
    else:
        logp, E = -float(target.nlogp(new_state.x)), None
    return new_state, SampleRecord(target.inv_transform(new_state.x), E, logp)
