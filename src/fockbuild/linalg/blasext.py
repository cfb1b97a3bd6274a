from __future__ import annotations

"""Column-major BLAS extensions over flat torch buffers.

A matrix buffer is a flat 1-D tensor; element (i, j) of an M x N block with
leading dimension ld lives at offset i + j*ld. All routines accept only the
no-transpose case ('N').

mat_add computes C = alpha*A + beta*B. Operand dtypes may differ (a real
operand is promoted); the promoted type must be castable to C's dtype.
Two execution paths:
 - accelerated: torch's native fused elementwise kernel, registered for
   same-typed float64 / complex128 triples when torch ships a vendor math
   backend (MKL);
 - generic: a numba kernel that splits the N columns over worker threads
   (prange) and streams the M rows of each column.
Buffers on a non-CPU device always go through torch.
"""

import logging
from typing import Callable, Dict, Tuple

import numpy as np
import torch
from numba import njit, prange

Tensor = torch.Tensor
logger = logging.getLogger(__name__)

__all__ = [
    "colmajor_view",
    "from_matrix",
    "to_matrix",
    "mat_add",
    "set_mat_re",
    "set_mat_im",
    "get_mat_re",
    "kernel_for",
    "use_vendor_kernels",
    "vendor_kernels_enabled",
]

_Kernel = Callable[[int, int, complex, Tensor, int, complex, Tensor, int, Tensor, int], None]

_VENDOR_DTYPES = (torch.float64, torch.complex128)
_VENDOR: Dict[Tuple[torch.dtype, torch.dtype, torch.dtype], _Kernel] = {}


def _check_extent(buf: Tensor, m: int, n: int, ld: int) -> None:
    assert buf.dim() == 1, "matrix buffers are flat 1-D tensors"
    assert ld >= m, f"leading dimension {ld} smaller than row count {m}"
    assert n == 0 or m == 0 or buf.numel() >= ld * (n - 1) + m, (
        f"buffer of {buf.numel()} elements cannot hold a {m}x{n} block with ld={ld}"
    )


def colmajor_view(buf: Tensor, m: int, n: int, ld: int) -> Tensor:
    """Strided (m, n) view of a flat column-major buffer; no copy."""
    _check_extent(buf, m, n, ld)
    assert buf.numel() <= 1 or buf.stride(0) == 1, "matrix buffers must be contiguous"
    return buf.as_strided((m, n), (1, ld), buf.storage_offset())


def from_matrix(mat: Tensor, ld: int | None = None, dtype: torch.dtype | None = None) -> Tensor:
    """Pack a 2-D tensor into a new flat column-major buffer."""
    m, n = mat.shape
    ld = m if ld is None else ld
    buf = torch.zeros(ld * n, dtype=dtype or mat.dtype, device=mat.device)
    colmajor_view(buf, m, n, ld).copy_(mat)
    return buf


def to_matrix(buf: Tensor, m: int, n: int | None = None, ld: int | None = None) -> Tensor:
    """Unpack an (m, n) block of a flat column-major buffer into a 2-D tensor copy."""
    n = m if n is None else n
    ld = m if ld is None else ld
    return colmajor_view(buf, m, n, ld).clone()


@njit(parallel=True, cache=True)
def _mat_add_cols(m, n, alpha, a, lda, beta, b, ldb, c, ldc):
    for j in prange(n):
        ja = j * lda
        jb = j * ldb
        jc = j * ldc
        for i in range(m):
            c[jc + i] = alpha * a[ja + i] + beta * b[jb + i]


def _as_numpy(buf: Tensor) -> np.ndarray:
    return buf.detach().resolve_conj().numpy()


def _mat_add_generic(m, n, alpha, A, lda, beta, B, ldb, C, ldc) -> None:
    # Output array shares memory with C; inputs may alias C element-for-element.
    _mat_add_cols(m, n, alpha, _as_numpy(A), lda, beta, _as_numpy(B), ldb, C.detach().numpy(), ldc)


def _mat_add_torch(m, n, alpha, A, lda, beta, B, ldb, C, ldc) -> None:
    a = colmajor_view(A, m, n, lda)
    b = colmajor_view(B, m, n, ldb)
    c = colmajor_view(C, m, n, ldc)
    # Evaluate into a temporary so that C may alias A or B.
    if A.dtype == B.dtype == C.dtype:
        out = torch.mul(a, alpha).add_(b, alpha=beta)
    else:
        out = a * alpha + b * beta
    c.copy_(out)


def use_vendor_kernels(enabled: bool = True) -> None:
    """(Re)build the accelerated-kernel registry; configuration time only."""
    _VENDOR.clear()
    if enabled and torch.backends.mkl.is_available():
        for dt in _VENDOR_DTYPES:
            _VENDOR[(dt, dt, dt)] = _mat_add_torch
    logger.debug("mat_add accelerated kernels: %s", sorted(str(k[0]) for k in _VENDOR) or "none")


def vendor_kernels_enabled() -> bool:
    return bool(_VENDOR)


def kernel_for(dtype_a: torch.dtype, dtype_b: torch.dtype, dtype_c: torch.dtype, device: torch.device) -> _Kernel:
    """Return the mat_add kernel used for this operand-type triple on `device`."""
    if device.type != "cpu":
        return _mat_add_torch
    return _VENDOR.get((dtype_a, dtype_b, dtype_c), _mat_add_generic)


def _coerce_scalar(x, result_dtype: torch.dtype):
    z = complex(x)
    if result_dtype.is_complex:
        return z
    assert z.imag == 0.0, f"complex scale factor {x!r} cannot target a real matrix"
    return z.real


def mat_add(
    trans_a: str,
    trans_b: str,
    m: int,
    n: int,
    alpha,
    A: Tensor,
    lda: int,
    beta,
    B: Tensor,
    ldb: int,
    C: Tensor,
    ldc: int,
) -> None:
    """C = alpha*A + beta*B over an m x n column-major block (in place on C)."""
    assert trans_a == "N" and trans_b == "N", "mat_add supports only the no-transpose case"
    _check_extent(A, m, n, lda)
    _check_extent(B, m, n, ldb)
    _check_extent(C, m, n, ldc)
    promoted = torch.promote_types(A.dtype, B.dtype)
    if isinstance(alpha, complex) or isinstance(beta, complex):
        promoted = torch.promote_types(promoted, torch.complex64)
    assert torch.can_cast(promoted, C.dtype), f"cannot store {promoted} result into {C.dtype} matrix"
    if m == 0 or n == 0:
        return
    kernel = kernel_for(A.dtype, B.dtype, C.dtype, C.device)
    kernel(m, n, _coerce_scalar(alpha, C.dtype), A, lda, _coerce_scalar(beta, C.dtype), B, ldb, C, ldc)


def set_mat_re(trans: str, m: int, n: int, alpha, A: Tensor, lda: int, B: Tensor, ldb: int) -> None:
    """Re(B) = alpha*A for a real A; Im(B) is left untouched."""
    assert trans == "N", "set_mat_re supports only the no-transpose case"
    assert not A.is_complex(), "set_mat_re source must be real"
    a = colmajor_view(A, m, n, lda)
    b = colmajor_view(B, m, n, ldb)
    if B.is_complex():
        b = b.real
    b.copy_(a * alpha)


def set_mat_im(trans: str, m: int, n: int, alpha, A: Tensor, lda: int, B: Tensor, ldb: int) -> None:
    """Im(B) = alpha*A for a real A and a complex B; Re(B) is left untouched."""
    assert trans == "N", "set_mat_im supports only the no-transpose case"
    assert not A.is_complex(), "set_mat_im source must be real"
    assert B.is_complex(), "set_mat_im target must be complex"
    a = colmajor_view(A, m, n, lda)
    colmajor_view(B, m, n, ldb).imag.copy_(a * alpha)


def get_mat_re(trans: str, m: int, n: int, alpha, A: Tensor, lda: int, B: Tensor, ldb: int) -> None:
    """B = alpha*Re(A) for a real B."""
    assert trans == "N", "get_mat_re supports only the no-transpose case"
    assert not B.is_complex(), "get_mat_re target must be real"
    a = colmajor_view(A, m, n, lda)
    colmajor_view(B, m, n, ldb).copy_(a.real * alpha)


use_vendor_kernels(True)
