"""Target distributions for the sampler.

A target is known through its negative log-density. All targets are vectorized
over leading batch dimensions: input (..., d), `nlogp` output (...,).

The sampler only uses the capability set
    d, nlogp(x), grad_nlogp(x), prior_draw(generator), inv_transform(x)
and never mutates the target.
"""

import math
from typing import Callable

import torch
import torch.nn as nn


class Target(nn.Module):
    """Base class for targets. Subclasses must implement nlogp()."""
    
    def __init__(self, d: int):
        super().__init__()
        if d < 1:
            raise ValueError(f"Target dimension must be >= 1, got {d}")
        self.d = int(d)
    
    def nlogp(self, x: torch.Tensor) -> torch.Tensor:
        """Negative log-density (up to a constant). Override in subclass."""
        raise NotImplementedError
    
    def grad_nlogp(self, x: torch.Tensor) -> torch.Tensor:
        """Gradient of nlogp with respect to x. Works for any batch shape."""
        with torch.enable_grad():
            x = x.detach().requires_grad_(True)
            nlogp = self.nlogp(x)
            grad = torch.autograd.grad(nlogp.sum(), x)[0]
        return grad.detach()
    
    def prior_draw(self, generator: torch.Generator,
                   dtype: torch.dtype = torch.float64) -> torch.Tensor:
        """Draw an initial position. Default: standard normal."""
        return torch.randn(self.d, generator=generator, dtype=dtype,
                           device=generator.device)
    
    def inv_transform(self, x: torch.Tensor) -> torch.Tensor:
        """Map sampler coordinates back to the model's natural space."""
        return x
    
    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.nlogp(x)


class StandardGaussian(Target):
    """Standard normal in d dimensions: nlogp(x) = |x|²/2."""
    
    def nlogp(self, x: torch.Tensor) -> torch.Tensor:
        return 0.5 * (x**2).sum(-1)
    
    def grad_nlogp(self, x: torch.Tensor) -> torch.Tensor:
        return x


class Gaussian(Target):
    """Diagonal Gaussian with per-coordinate standard deviations.
    
    nlogp(x) = Σᵢ xᵢ² / (2σᵢ²). The prior draw is exact, so chains start
    in the typical set.
    
    Args:
        scales: Standard deviations σ, shape (d,). Stored as a buffer.
    """
    
    def __init__(self, scales: torch.Tensor | list[float]):
        scales = torch.as_tensor(scales, dtype=torch.float64)
        super().__init__(scales.shape[-1])
        self.register_buffer("scales", scales)
    
    @classmethod
    def ill_conditioned(cls, d: int, condition_number: float = 100.0) -> "Gaussian":
        """Variances spaced log-uniformly between 1 and condition_number."""
        variances = torch.logspace(0.0, math.log10(condition_number), d,
                                   dtype=torch.float64)
        return cls(variances.sqrt())
    
    def nlogp(self, x: torch.Tensor) -> torch.Tensor:
        return 0.5 * ((x / self.scales)**2).sum(-1)
    
    def grad_nlogp(self, x: torch.Tensor) -> torch.Tensor:
        return x / self.scales**2
    
    def prior_draw(self, generator: torch.Generator,
                   dtype: torch.dtype = torch.float64) -> torch.Tensor:
        z = torch.randn(self.d, generator=generator, dtype=dtype,
                        device=generator.device)
        return z * self.scales.to(dtype)


class Rosenbrock(Target):
    """Banana-shaped Rosenbrock density in d (even) dimensions.
    
    With x = first half, y = second half of the coordinates:
        nlogp = Σᵢ [(xᵢ² - yᵢ)² / Q + (xᵢ - 1)²] / 2
    
    Small Q gives a narrow curved ridge. Marginals: xᵢ ~ N(1, 1),
    yᵢ | xᵢ ~ N(xᵢ², Q), which is also how the prior draw is done.
    
    Args:
        d: Dimension, must be even.
        Q: Width of the ridge (default 0.1).
    """
    
    def __init__(self, d: int = 2, Q: float = 0.1):
        if d % 2:
            raise ValueError(f"Rosenbrock dimension must be even, got {d}")
        super().__init__(d)
        self.Q = Q
    
    def nlogp(self, x: torch.Tensor) -> torch.Tensor:
        half = self.d // 2
        X, Y = x[..., :half], x[..., half:]
        return 0.5 * ((X**2 - Y)**2 / self.Q + (X - 1.0)**2).sum(-1)
    
    def prior_draw(self, generator: torch.Generator,
                   dtype: torch.dtype = torch.float64) -> torch.Tensor:
        half = self.d // 2
        z = torch.randn(self.d, generator=generator, dtype=dtype,
                        device=generator.device)
        X = 1.0 + z[:half]
        Y = X**2 + math.sqrt(self.Q) * z[half:]
        return torch.cat([X, Y])


class CustomTarget(Target):
    """Target built from plain callables.
    
    Args:
        nlogp_fn: x -> negative log-density.
        d: Dimension.
        grad_fn: Optional x -> gradient of nlogp. Autograd of nlogp_fn if None.
        prior_draw_fn: Optional generator -> initial position.
        inv_transform_fn: Optional coordinate map used when reporting samples.
    """
    
    def __init__(self, nlogp_fn: Callable[[torch.Tensor], torch.Tensor], d: int,
                 grad_fn: Callable[[torch.Tensor], torch.Tensor] | None = None,
                 prior_draw_fn: Callable[[torch.Generator], torch.Tensor] | None = None,
                 inv_transform_fn: Callable[[torch.Tensor], torch.Tensor] | None = None):
        super().__init__(d)
        self.nlogp_fn = nlogp_fn
        self.grad_fn = grad_fn
        self.prior_draw_fn = prior_draw_fn
        self.inv_transform_fn = inv_transform_fn
    
    def nlogp(self, x: torch.Tensor) -> torch.Tensor:
        return self.nlogp_fn(x)
    
    def grad_nlogp(self, x: torch.Tensor) -> torch.Tensor:
        if self.grad_fn is None:
            return super().grad_nlogp(x)
        return self.grad_fn(x)
    
    def prior_draw(self, generator: torch.Generator,
                   dtype: torch.dtype = torch.float64) -> torch.Tensor:
        if self.prior_draw_fn is None:
            return super().prior_draw(generator, dtype)
        return torch.as_tensor(self.prior_draw_fn(generator), dtype=dtype)
    
    def inv_transform(self, x: torch.Tensor) -> torch.Tensor:
        if self.inv_transform_fn is None:
            return x
        return self.inv_transform_fn(x)
