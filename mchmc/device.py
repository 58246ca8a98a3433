"""Device and random-stream utilities for CPU/CUDA/MPS support."""

import torch


def get_device(preference: str | torch.device = "auto") -> torch.device:
    """Get the best available device.
    
    Args:
        preference: "auto", or a device string such as "cpu", "cuda", "cuda:1", "mps"
    
    Returns:
        torch.device for computation
    """
    if isinstance(preference, str) and preference == "auto":
        # MPS is skipped: the sampler works in float64.
        if torch.cuda.is_available():
            return torch.device("cuda")
        return torch.device("cpu")
    
    device = torch.device(preference)
    if device.type == "cuda" and not torch.cuda.is_available():
        raise RuntimeError("CUDA requested but not available")
    if device.type == "mps" and not torch.backends.mps.is_available():
        raise RuntimeError("MPS requested but not available")
    return device


def available_devices(float64: bool = True) -> list[str]:
    """Return list of available device names.
    
    MPS has no float64 support, so it is only listed when float64=False.
    """
    devices = ["cpu"]
    if torch.cuda.is_available():
        devices.append("cuda")
    if not float64 and torch.backends.mps.is_available():
        devices.append("mps")
    return devices


def make_generator(seed: int, device: torch.device | str = "cpu") -> torch.Generator:
    """Create a seeded random stream living on `device`."""
    gen = torch.Generator(device=torch.device(device))
    gen.manual_seed(int(seed))
    return gen
