"""Tests for the sampler driver."""

import pytest
import torch

import mchmc.sampler as sampler_module
from mchmc.sampler import Sampler, sample, stack_positions, log_densities, energy_trace
from mchmc.targets import StandardGaussian, Gaussian, CustomTarget
from mchmc.device import available_devices


DEVICES = available_devices()


class TestSampleOutput:
    """Tests for the shape and order of the output records."""
    
    def test_zero_steps_returns_initial_state(self):
        target = StandardGaussian(d=3)
        records = Sampler(eps=0.1, L=1.0).sample(target, num_steps=0)
        assert len(records) == 1
        assert records[0].position.shape == (3,)
    
    @pytest.mark.parametrize("device", DEVICES)
    def test_record_count(self, device):
        target = StandardGaussian(d=3)
        records = Sampler(eps=0.1, L=1.0, device=device).sample(target, num_steps=25)
        assert len(records) == 26
        x = stack_positions(records)
        assert x.shape == (26, 3)
        assert x.device.type == device
        assert log_densities(records).shape == (26,)
    
    def test_negative_steps(self):
        with pytest.raises(ValueError, match="num_steps"):
            Sampler(eps=0.1, L=1.0).sample(StandardGaussian(d=2), num_steps=-1)
    
    def test_initial_x(self):
        target = StandardGaussian(d=2)
        records = Sampler(eps=0.1, L=1.0).sample(target, 5, initial_x=[3.0, -1.0])
        assert torch.equal(records[0].position, torch.tensor([3.0, -1.0], dtype=torch.float64))
        assert records[0].logp == pytest.approx(-5.0)
    
    def test_energy_monitoring(self):
        target = StandardGaussian(d=5)
        monitored = Sampler(eps=0.1, L=1.0).sample(target, 20, monitor_energy=True)
        assert monitored[0].energy == 0.0
        assert all(isinstance(r.energy, float) for r in monitored)
        assert energy_trace(monitored).shape == (21,)
        
        plain = Sampler(eps=0.1, L=1.0).sample(target, 20)
        assert all(r.energy is None for r in plain)
        assert energy_trace(plain) is None
    
    def test_inv_transform_applied(self):
        """Records hold positions mapped back by inv_transform."""
        target = CustomTarget(lambda x: 0.5 * (x**2).sum(-1), d=2, inv_transform_fn=torch.exp)
        records = Sampler(eps=0.2, L=1.0).sample(target, 10)
        assert (stack_positions(records) > 0).all()
    
    def test_functional_form(self):
        target = StandardGaussian(d=3)
        a = sample(Sampler(eps=0.1, L=1.0, seed=5), target, 10)
        b = Sampler(eps=0.1, L=1.0, seed=5).sample(target, 10)
        assert torch.equal(stack_positions(a), stack_positions(b))


class TestDeterminism:
    """Same seed, same chain."""
    
    @pytest.mark.parametrize("integrator", ["single-stage", "minimal-norm"])
    def test_same_seed_identical(self, integrator):
        target = Gaussian([1.0, 2.0, 3.0])
        runs = [
            Sampler(eps=0.3, L=2.0, seed=11, integrator=integrator).sample(target, 100, monitor_energy=True)
            for _ in range(2)
        ]
        assert torch.equal(stack_positions(runs[0]), stack_positions(runs[1]))
        assert [r.logp for r in runs[0]] == [r.logp for r in runs[1]]
        assert [r.energy for r in runs[0]] == [r.energy for r in runs[1]]
    
    def test_different_seed_differs(self):
        target = StandardGaussian(d=3)
        a = Sampler(eps=0.3, L=2.0, seed=1).sample(target, 10)
        b = Sampler(eps=0.3, L=2.0, seed=2).sample(target, 10)
        assert not torch.equal(stack_positions(a), stack_positions(b))
    
    def test_burn_in_discards_steps(self):
        """Burn-in steps are exactly the first steps of the chain."""
        target = StandardGaussian(d=4)
        full = Sampler(eps=0.2, L=1.0, seed=3).sample(target, 15)
        burned = Sampler(eps=0.2, L=1.0, seed=3, burn_in=10).sample(target, 5)
        assert len(burned) == 6
        assert torch.equal(stack_positions(burned), stack_positions(full[10:]))


class TestSelfTuningTrigger:
    """Tuning runs exactly when eps and L are both unset."""
    
    def test_not_run_when_set(self, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("tuner should not run")
        
        monkeypatch.setattr(sampler_module, "tune_hyperparameters", fail)
        Sampler(eps=0.1, L=1.0).sample(StandardGaussian(d=3), 5)
    
    def test_run_when_unset(self, monkeypatch):
        calls = []
        real = sampler_module.tune_hyperparameters
        
        def spy(*args, **kwargs):
            calls.append(1)
            return real(*args, **kwargs)
        
        monkeypatch.setattr(sampler_module, "tune_hyperparameters", spy)
        sampler = Sampler(tune_samples=50, tune_maxiter=2)
        records = sampler.sample(StandardGaussian(d=3), 5)
        assert calls == [1]
        assert len(records) == 6
        assert sampler.hyperparameters.eps > 0
        assert sampler.hyperparameters.L > 0
        assert sampler.hyperparameters.noise_scale(3) > 0
    
    def test_tuned_values_reused(self, monkeypatch):
        """A second run keeps the tuned hyperparameters."""
        sampler = Sampler(tune_samples=50, tune_maxiter=2)
        sampler.sample(StandardGaussian(d=3), 5)
        eps = sampler.hyperparameters.eps
        
        def fail(*args, **kwargs):
            raise AssertionError("tuner should not run twice")
        
        monkeypatch.setattr(sampler_module, "tune_hyperparameters", fail)
        sampler.sample(StandardGaussian(d=3), 5)
        assert sampler.hyperparameters.eps == eps


class TestGaussianSampling:
    """End-to-end sampling of a standard Gaussian."""
    
    @pytest.mark.parametrize("integrator", ["single-stage", "minimal-norm"])
    def test_moments(self, integrator):
        """Pooled sample mean ~ 0 and variance ~ 1."""
        torch.manual_seed(0)
        target = StandardGaussian(d=1000)
        sampler = Sampler(eps=0.1, L=1.0, burn_in=0, seed=42, integrator=integrator)
        x = stack_positions(sampler.sample(target, num_steps=1000))
        assert abs(x.mean().item()) < 0.1
        assert abs(x.var().item() - 1.0) < 0.2
    
    def test_moments_low_dimension(self):
        """A 10-d Gaussian, sampled with tuned-scale hyperparameters."""
        target = Gaussian([1.0] * 10)
        sampler = Sampler(eps=0.5, L=3.0, seed=7, integrator="minimal-norm", burn_in=200)
        x = stack_positions(sampler.sample(target, num_steps=5000))
        assert abs(x.mean().item()) < 0.15
        assert abs(x.var().item() - 1.0) < 0.25
    
    def test_one_dimension_runs(self):
        """d = 1 is degenerate but stays well defined."""
        target = StandardGaussian(d=1)
        records = Sampler(eps=0.1, L=1.0, seed=0).sample(target, 100, monitor_energy=True)
        x = stack_positions(records)
        assert torch.isfinite(x).all()
        assert all(r.energy == pytest.approx(
            -r.logp - (-records[0].logp)) for r in records)
    
    @pytest.mark.parametrize("integrator", ["single-stage", "minimal-norm"])
    def test_self_tuned_moments(self, integrator):
        """With eps and L left unset, the tuned chain recovers unit variances."""
        target = StandardGaussian(d=64)
        sampler = Sampler(seed=1, integrator=integrator, varE_wanted=0.01,
                          tune_samples=500, tune_maxiter=10)
        x = stack_positions(sampler.sample(target, num_steps=4000))
        hp = sampler.hyperparameters
        assert 0 < hp.eps <= 0.5 * hp.L
        assert abs(x.mean().item()) < 0.1
        assert abs(x.var(0).mean().item() - 1.0) < 0.15
    
    def test_start_far_from_mode(self):
        """A chain started far out in the tails relaxes to the target."""
        d = 50
        target = StandardGaussian(d=d)
        sampler = Sampler(eps=0.7, L=7.0, seed=3, integrator="minimal-norm", burn_in=2000)
        x0 = torch.full((d,), 20.0, dtype=torch.float64)
        x = stack_positions(sampler.sample(target, num_steps=4000, initial_x=x0))
        assert abs(x.mean().item()) < 0.1
        assert x.mean(0).abs().max().item() < 0.5
        assert abs(x.var(0).mean().item() - 1.0) < 0.15
