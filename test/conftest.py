import sys
from pathlib import Path

import pytest
import torch

# Ensure local src directory is importable as package root for fockbuild
root = Path(__file__).resolve().parents[1]
src = root / 'src'
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from fockbuild.linalg.blasext import use_vendor_kernels  # noqa: E402


@pytest.fixture(params=[True, False], ids=["vendor", "generic"])
def dispatch(request):
    """Run a test once with the accelerated mat_add registry and once without."""
    if request.param and not torch.backends.mkl.is_available():
        pytest.skip("torch built without a vendor math backend")
    use_vendor_kernels(request.param)
    yield request.param
    use_vendor_kernels(True)


def random_eri(nb: int, naux: int = 6, seed: int = 0) -> torch.Tensor:
    """(mn|ls) = sum_P L_Pmn L_Pls with symmetric L: has the full 8-fold permutational symmetry."""
    g = torch.Generator().manual_seed(seed)
    L = torch.randn((naux, nb, nb), generator=g, dtype=torch.float64) * 0.1
    L = 0.5 * (L + L.transpose(1, 2))
    return torch.einsum('pmn,pls->mnls', L, L)


def random_hermitian(nb: int, dtype=torch.float64, seed: int = 1, scale: float = 1.0) -> torch.Tensor:
    g = torch.Generator().manual_seed(seed)
    A = torch.randn((nb, nb), generator=g, dtype=torch.float64)
    if dtype.is_complex:
        A = A + 1j * torch.randn((nb, nb), generator=g, dtype=torch.float64)
    return scale * 0.5 * (A + A.conj().T)
