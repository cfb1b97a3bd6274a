from __future__ import annotations

from typing import Optional

import torch

__all__ = ["get_device", "scalar_dtype", "real_dtype_of"]

_SCALARS = {
    ("real", "double"): torch.float64,
    ("real", "single"): torch.float32,
    ("complex", "double"): torch.complex128,
    ("complex", "single"): torch.complex64,
}


def get_device(prefer: Optional[str] = None) -> torch.device:
    """
    Choose a torch device with a simple preference policy.
    prefer: one of {"cuda", "mps", "cpu"} or None to auto.
    """
    if prefer == "cuda" and torch.cuda.is_available():
        return torch.device("cuda")
    if prefer == "mps" and torch.backends.mps.is_available():
        return torch.device("mps")
    if prefer is None:
        if torch.cuda.is_available():
            return torch.device("cuda")
        if torch.backends.mps.is_available():
            return torch.device("mps")
    return torch.device("cpu")


def scalar_dtype(kind: str = "real", precision: str = "double") -> torch.dtype:
    """Map a ('real'|'complex', 'double'|'single') pair onto a torch dtype."""
    try:
        return _SCALARS[(kind, precision)]
    except KeyError:
        raise ValueError(f"Unknown scalar representation: kind={kind!r}, precision={precision!r}") from None


def real_dtype_of(dtype: torch.dtype) -> torch.dtype:
    # complex128 -> float64, complex64 -> float32; real dtypes map to themselves
    if dtype.is_complex:
        return torch.empty((), dtype=dtype).real.dtype
    return dtype
