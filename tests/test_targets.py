"""Tests for target distributions."""

import pytest
import torch

from mchmc.targets import Target, StandardGaussian, Gaussian, Rosenbrock, CustomTarget
from mchmc.device import available_devices, make_generator


DEVICES = available_devices()


class TestTargetBase:
    
    def test_invalid_dimension(self):
        with pytest.raises(ValueError, match="dimension"):
            StandardGaussian(d=0)
    
    def test_nlogp_not_implemented(self):
        with pytest.raises(NotImplementedError):
            Target(d=2).nlogp(torch.zeros(2))
    
    def test_autograd_gradient(self):
        """Default grad_nlogp matches an analytic gradient."""
        target = CustomTarget(lambda x: (x**4).sum(-1), d=3)
        x = torch.tensor([1.0, -2.0, 0.5], dtype=torch.float64)
        assert torch.allclose(target.grad_nlogp(x), 4 * x**3)
        assert not target.grad_nlogp(x).requires_grad


class TestStandardGaussian:
    
    @pytest.mark.parametrize("device", DEVICES)
    def test_values(self, device):
        target = StandardGaussian(d=2)
        x = torch.tensor([3.0, 4.0], dtype=torch.float64, device=device)
        assert target.nlogp(x).item() == pytest.approx(12.5)
        assert torch.equal(target.grad_nlogp(x), x)
        assert torch.equal(target.inv_transform(x), x)
    
    def test_batch_shapes(self):
        target = StandardGaussian(d=3)
        assert target.nlogp(torch.randn(3)).shape == ()
        assert target.nlogp(torch.randn(10, 3)).shape == (10,)
        assert target.nlogp(torch.randn(5, 10, 3)).shape == (5, 10)
    
    @pytest.mark.parametrize("device", DEVICES)
    def test_prior_draw(self, device):
        target = StandardGaussian(d=4)
        x = target.prior_draw(make_generator(0, device))
        assert x.shape == (4,)
        assert x.dtype == torch.float64
        assert x.device.type == device


class TestGaussian:
    
    def test_gradient_matches_autograd(self):
        target = Gaussian([0.5, 1.0, 2.0])
        x = torch.tensor([1.0, 1.0, 1.0], dtype=torch.float64)
        autograd = Target.grad_nlogp(target, x)
        assert torch.allclose(target.grad_nlogp(x), autograd)
        assert torch.allclose(target.grad_nlogp(x), torch.tensor([4.0, 1.0, 0.25], dtype=torch.float64))
    
    def test_prior_scales(self):
        target = Gaussian([0.1, 10.0])
        gen = make_generator(0)
        draws = torch.stack([target.prior_draw(gen) for _ in range(4000)])
        assert draws.std(0)[0] == pytest.approx(0.1, rel=0.1)
        assert draws.std(0)[1] == pytest.approx(10.0, rel=0.1)
    
    def test_ill_conditioned(self):
        target = Gaussian.ill_conditioned(d=5, condition_number=100.0)
        assert target.d == 5
        assert (target.scales**2)[0].item() == pytest.approx(1.0)
        assert (target.scales**2)[-1].item() == pytest.approx(100.0)


class TestRosenbrock:
    
    def test_minimum(self):
        target = Rosenbrock(d=4)
        x = torch.ones(4, dtype=torch.float64)
        assert target.nlogp(x).item() == pytest.approx(0.0)
        assert torch.allclose(target.grad_nlogp(x), torch.zeros(4, dtype=torch.float64))
    
    def test_odd_dimension(self):
        with pytest.raises(ValueError, match="even"):
            Rosenbrock(d=3)
    
    def test_prior_draw_is_exact(self):
        """Prior draws follow x ~ N(1, 1), y | x ~ N(x², Q)."""
        target = Rosenbrock(d=2, Q=0.1)
        gen = make_generator(0)
        draws = torch.stack([target.prior_draw(gen) for _ in range(4000)])
        assert draws[:, 0].mean().item() == pytest.approx(1.0, abs=0.1)
        resid = draws[:, 1] - draws[:, 0]**2
        assert resid.var().item() == pytest.approx(0.1, rel=0.15)


class TestCustomTarget:
    
    def test_callables(self):
        target = CustomTarget(
            lambda x: 0.5 * (x**2).sum(-1), d=2,
            grad_fn=lambda x: x,
            prior_draw_fn=lambda gen: torch.full((2,), 3.0),
            inv_transform_fn=lambda x: 2 * x,
        )
        x = torch.tensor([1.0, 2.0], dtype=torch.float64)
        assert torch.equal(target.grad_nlogp(x), x)
        assert torch.equal(target.prior_draw(make_generator(0)),
                           torch.full((2,), 3.0, dtype=torch.float64))
        assert torch.equal(target.inv_transform(x), 2 * x)
        assert target(x).item() == pytest.approx(2.5)
    
    def test_defaults(self):
        target = CustomTarget(lambda x: 0.5 * (x**2).sum(-1), d=3)
        x = target.prior_draw(make_generator(0))
        assert x.shape == (3,)
        assert torch.allclose(target.grad_nlogp(x), x)
        assert torch.equal(target.inv_transform(x), x)
