"""Microcanonical Hamiltonian Monte Carlo sampler.

Runs the chain Init -> burn-in -> (self-tuning) -> production. Self-tuning runs
exactly when eps and L are both left at 0.

Example:
    >>> target = StandardGaussian(d=10)
    >>> sampler = Sampler(eps=0.5, L=3.0, seed=1, integrator="minimal-norm")
    >>> records = sampler.sample(target, num_steps=1000)
    >>> x = stack_positions(records)   # (1001, 10)
"""

import logging

import torch

from .config import SETTINGS_KEYS, Hyperparameters, Settings, check_options, load_config
from .dynamics import SampleRecord, get_initial_conditions, step
from .integrators import make_integrator
from .tuning import initial_guess, tune_hyperparameters

logger = logging.getLogger(__name__)


class Sampler:
    """MCHMC sampler: hyperparameters, settings and the chosen integrator.

    Args:
        eps: step size (0 = tune).
        L: trajectory length (0 = tune).
        **options: nu, lambda_c and any `Settings` argument. Unknown options raise
            TypeError; invalid values raise ValueError.
    """

    def __init__(self, eps: float = 0.0, L: float = 0.0, **options):
        check_options(options, allowed=("nu", "lambda_c") + SETTINGS_KEYS)
        hp_options = {k: options.pop(k) for k in ("nu", "lambda_c") if k in options}
        self.hyperparameters = Hyperparameters(eps=eps, L=L, **hp_options)
        self.settings = Settings(**options)
        self.integrator = make_integrator(self.settings.integrator,
                                          self.hyperparameters.lambda_c)

    @classmethod
    def from_config(cls, path: str) -> "Sampler":
        """Build a sampler from a YAML file (see `config.load_config`)."""
        return cls(**load_config(path))

    def __repr__(self):
        return f"Sampler({self.hyperparameters!r}, {self.settings!r})"

    def sample(self, target, num_steps: int, initial_x=None,
               monitor_energy: bool = False) -> list[SampleRecord]:
        """Draw num_steps samples.

        Args:
            target: Target providing d, nlogp, grad_nlogp, prior_draw, inv_transform.
            num_steps: number of production steps (>= 0).
            initial_x: starting position of shape (d,); drawn from the prior if None.
            monitor_energy: track the energy estimate in each record.

        Returns:
            num_steps + 1 records in chain order, the initial state first.
        """
        if num_steps < 0:
            raise ValueError(f"num_steps must be >= 0, got {num_steps}")

        tune = self.hyperparameters.unset
        if tune:
            # Burn-in needs a nonzero step size.
            initial_guess(self, target)

        state = get_initial_conditions(self, target, initial_x)
        for _ in range(self.settings.burn_in):
            state, _ = step(self, target, state)

        if tune:
            logger.info("Self-tuning hyperparameters")
            result = tune_hyperparameters(self, target, state)
            state = result.state._replace(E=0.0)

        records = [SampleRecord(
            target.inv_transform(state.x),
            state.E if monitor_energy else None,
            -float(target.nlogp(state.x)),
        )]
        for _ in range(num_steps):
            state, record = step(self, target, state, monitor_energy=monitor_energy)
            records.append(record)
        return records


def sample(sampler: Sampler, target, num_steps: int, initial_x=None,
           monitor_energy: bool = False) -> list[SampleRecord]:
    """Functional form of `Sampler.sample`."""
    return sampler.sample(target, num_steps, initial_x=initial_x,
                          monitor_energy=monitor_energy)


def stack_positions(records: list[SampleRecord]) -> torch.Tensor:
    """Positions of all records as a (n_records, d) tensor."""
    return torch.stack([r.position for r in records])


def log_densities(records: list[SampleRecord]) -> torch.Tensor:
    """Log-densities of all records, shape (n_records,)."""
    return torch.tensor([r.logp for r in records], dtype=torch.float64)


def energy_trace(records: list[SampleRecord]) -> torch.Tensor | None:
    """Energy estimates of all records, or None if energy was not monitored."""
    if any(r.energy is None for r in records):
        return None
    return torch.tensor([r.energy for r in records], dtype=torch.float64)
