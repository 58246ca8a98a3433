"""Microcanonical Hamiltonian Monte Carlo in torch."""

from .device import get_device, available_devices, make_generator
from .targets import Target, StandardGaussian, Gaussian, Rosenbrock, CustomTarget
from .integrators import (
    ChainState, IntegratorKind, SingleStage, MinimalNorm, LAMBDA_C,
    momentum_update, scaled_gradient, make_integrator,
)
from .dynamics import (
    SampleRecord, random_unit_vector, partially_refresh_momentum,
    dynamics_step, energy, get_initial_conditions, step,
)
from .config import Hyperparameters, Settings, load_config
from .tuning import TuningResult, tune_hyperparameters
from .sampler import Sampler, sample, stack_positions, log_densities, energy_trace

__version__ = "0.1.0"
__all__ = [
    # Device
    "get_device", "available_devices", "make_generator",
    # Targets
    "Target", "StandardGaussian", "Gaussian", "Rosenbrock", "CustomTarget",
    # Integrators
    "ChainState", "IntegratorKind", "SingleStage", "MinimalNorm", "LAMBDA_C",
    "momentum_update", "scaled_gradient", "make_integrator",
    # Dynamics
    "SampleRecord", "random_unit_vector", "partially_refresh_momentum",
    "dynamics_step", "energy", "get_initial_conditions", "step",
    # Configuration and tuning
    "Hyperparameters", "Settings", "load_config",
    "TuningResult", "tune_hyperparameters",
    # Sampler
    "Sampler", "sample", "stack_positions", "log_densities", "energy_trace",
]
