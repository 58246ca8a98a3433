"""Sampler configuration: hyperparameters, run settings and YAML loading."""

import math
import os
from typing import Any, Dict

import torch
import yaml

from .device import get_device, make_generator
from .integrators import LAMBDA_C, IntegratorKind

__all__ = [
    "Hyperparameters",
    "Settings",
    "derive_nu",
    "HYPERPARAMETER_KEYS",
    "SETTINGS_KEYS",
    "CONFIG_KEYS",
    "load_config",
    "check_options",
]

HYPERPARAMETER_KEYS = ("eps", "L", "nu", "lambda_c")
SETTINGS_KEYS = (
    "seed", "varE_wanted", "burn_in", "tune_samples", "tune_maxiter",
    "integrator", "accumulate_time", "device", "dtype",
)
CONFIG_KEYS = HYPERPARAMETER_KEYS + SETTINGS_KEYS


def check_options(options: Dict[str, Any], allowed=CONFIG_KEYS) -> None:
    """Raise TypeError if `options` holds keys outside `allowed`."""
    unknown = sorted(set(options) - set(allowed))
    if unknown:
        raise TypeError(
            f"Unknown sampler option(s): {', '.join(unknown)}. "
            f"Recognized options: {', '.join(allowed)}"
        )


class Hyperparameters:
    """Step size and trajectory length of the dynamics.

    eps = 0 and L = 0 mean "unset": both are then chosen by self-tuning.

    Args:
        eps: step size.
        L: trajectory length; sets the momentum noise through nu.
        nu: momentum noise scale. None derives it from eps, L and the target
            dimension; 0 gives purely deterministic dynamics.
        lambda_c: coefficient of the minimal-norm integrator.
    """

    def __init__(self, eps: float = 0.0, L: float = 0.0, nu: float | None = None,
                 lambda_c: float = LAMBDA_C):
        if eps < 0 or L < 0:
            raise ValueError(f"eps and L must be non-negative, got eps={eps}, L={L}")
        if (eps == 0) != (L == 0):
            raise ValueError(
                "eps and L must both be set, or both left at 0 for self-tuning "
                f"(got eps={eps}, L={L})"
            )
        if nu is not None and nu < 0:
            raise ValueError(f"nu must be non-negative, got {nu}")
        self.eps = float(eps)
        self.L = float(L)
        self.nu = None if nu is None else float(nu)
        self.lambda_c = float(lambda_c)

    @property
    def unset(self) -> bool:
        """True when eps and L are left for self-tuning."""
        return self.eps == 0.0 and self.L == 0.0

    def noise_scale(self, d: int) -> float:
        """nu, or sqrt((exp(2 eps/L) - 1)/d) when it was not given."""
        if self.nu is not None:
            return self.nu
        if self.unset:
            return 0.0
        return derive_nu(self.eps, self.L, d)

    def __repr__(self):
        return (f"Hyperparameters(eps={self.eps}, L={self.L}, nu={self.nu}, "
                f"lambda_c={self.lambda_c})")


def derive_nu(eps: float, L: float, d: int) -> float:
    """Momentum noise scale that decorrelates u over a length L."""
    return math.sqrt(math.expm1(2.0 * eps / L) / d)


class Settings:
    """Run settings, fixed once the sampler is built.

    Args:
        seed: seed of the random stream (a torch.Generator on `device`).
        varE_wanted: energy-error variance per dimension targeted by tuning.
        burn_in: number of initial steps discarded.
        tune_samples: steps per tuning iteration (> 0).
        tune_maxiter: maximum tuning iterations (> 0).
        integrator: "single-stage" or "minimal-norm".
        accumulate_time: add eps to the state's time at every step.
        device: device of the random stream and of the chain state ("auto" picks CUDA
            when available).
        dtype: floating point type of the chain state.
    """

    def __init__(self, seed: int = 0, varE_wanted: float = 0.2, burn_in: int = 0,
                 tune_samples: int = 1000, tune_maxiter: int = 10,
                 integrator: IntegratorKind | str = IntegratorKind.SINGLE_STAGE,
                 accumulate_time: bool = False, device: torch.device | str = "cpu",
                 dtype: torch.dtype | str = torch.float64):
        if varE_wanted <= 0:
            raise ValueError(f"varE_wanted must be positive, got {varE_wanted}")
        if burn_in < 0:
            raise ValueError(f"burn_in must be >= 0, got {burn_in}")
        if tune_samples <= 0:
            raise ValueError(f"tune_samples must be > 0, got {tune_samples}")
        if tune_maxiter <= 0:
            raise ValueError(f"tune_maxiter must be > 0, got {tune_maxiter}")
        try:
            self.integrator = IntegratorKind(integrator)
        except ValueError:
            valid = ", ".join(k.value for k in IntegratorKind)
            raise ValueError(
                f"integrator = {integrator!r} is not a valid option (expected one of: {valid})"
            ) from None
        if isinstance(dtype, str):
            dtype = getattr(torch, dtype, None)
        if not isinstance(dtype, torch.dtype) or not dtype.is_floating_point:
            raise ValueError(f"dtype must be a floating point torch dtype, got {dtype!r}")

        self.seed = int(seed)
        self.varE_wanted = float(varE_wanted)
        self.burn_in = int(burn_in)
        self.tune_samples = int(tune_samples)
        self.tune_maxiter = int(tune_maxiter)
        self.accumulate_time = bool(accumulate_time)
        self.device = get_device(device)
        self.dtype = dtype
        self.generator = make_generator(self.seed, self.device)

    def __repr__(self):
        return (f"Settings(seed={self.seed}, varE_wanted={self.varE_wanted}, "
                f"burn_in={self.burn_in}, tune_samples={self.tune_samples}, "
                f"tune_maxiter={self.tune_maxiter}, integrator={self.integrator.value!r}, "
                f"accumulate_time={self.accumulate_time}, device={str(self.device)!r})")


def load_config(path: str) -> Dict[str, Any]:
    """Load a YAML sampler configuration.

    The file holds a flat mapping of `eps`, `L` and sampler options. Unknown keys
    are rejected.

    Returns:
        A dictionary of options, ready for `Sampler(**cfg)`.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as fh:
        cfg = yaml.safe_load(fh)

    if cfg is None:
        cfg = {}
    if not isinstance(cfg, dict):
        raise ValueError(f"Configuration file must hold a mapping, got {type(cfg).__name__}")
    check_options(cfg)
    return cfg
