from __future__ import annotations

"""Buffer set of a single-determinant electronic-structure state.

Every matrix quantity is a list of flat column-major NB x NB buffers indexed
by PauliSpinorComp. With X_a / X_b the alpha / beta spin blocks:

    X[SCALAR] = X_a + X_b,   X[MZ] = X_a - X_b

(MY, MX carry the off-diagonal spin blocks of two-component states). The
state owns fock, one_pdm, delta_one_pdm, gd and k in the working dtype and a
real j_scalar; they live as long as the state and are only mutated by the
Fock build.
"""

import enum
from typing import List, Optional, Sequence

import torch

from ..device import real_dtype_of
from ..integrals.aoints import AOIntegrals
from ..linalg.blasext import colmajor_view, to_matrix
from ..memory import DEFAULT_BLOCK_SIZE, MemoryManager
from ..perturbation import EMPerturbation

Tensor = torch.Tensor

__all__ = ["PauliSpinorComp", "SingleSlater"]


class PauliSpinorComp(enum.IntEnum):
    SCALAR = 0
    MZ = 1
    MY = 2
    MX = 3


_LAYOUTS = (1, 2, 4)


class SingleSlater:
    def __init__(
        self,
        aoints: AOIntegrals,
        dtype: torch.dtype = torch.float64,
        n_components: int = 1,
        mem: Optional[MemoryManager] = None,
        device: Optional[torch.device] = None,
    ):
        if n_components not in _LAYOUTS:
            raise ValueError(f"n_components must be one of {_LAYOUTS}, got {n_components}")
        if dtype not in (torch.float64, torch.complex128):
            raise ValueError(f"working dtype must be float64 or complex128, got {dtype}")
        if n_components == 4 and not dtype.is_complex:
            raise ValueError("two-component states require a complex working dtype")
        if len(aoints.core_h) > n_components:
            raise ValueError(
                f"{len(aoints.core_h)} core Hamiltonian components do not fit a {n_components}-component state"
            )
        if len(aoints.core_h) > 1 and not dtype.is_complex:
            raise ValueError("spin components of the core Hamiltonian require a complex working dtype")
        self.aoints = aoints
        self.nb = aoints.nb
        self.dtype = dtype
        self.n_components = n_components
        self.device = aoints.core_h[0].device if device is None else torch.device(device)
        self._mem = mem

        nb2 = self.nb * self.nb

        def _set() -> List[Tensor]:
            return [torch.zeros(nb2, dtype=dtype, device=self.device) for _ in range(n_components)]

        self.fock = _set()
        self.one_pdm = _set()
        self.delta_one_pdm = _set()
        self.gd = _set()
        self.k = _set()
        self.j_scalar = torch.zeros(nb2, dtype=real_dtype_of(dtype), device=self.device)

    @property
    def mem(self) -> MemoryManager:
        """Allocator for transient buffers; without a shared one, a private pool is
        created on first use, sized for one NB x NB matrix of the working dtype."""
        if self._mem is None:
            itemsize = torch.empty((), dtype=self.dtype).element_size()
            need = max(self.nb * self.nb * itemsize, DEFAULT_BLOCK_SIZE)
            self._mem = MemoryManager(mem=-(-need // DEFAULT_BLOCK_SIZE) * DEFAULT_BLOCK_SIZE, device=self.device)
        return self._mem

    @property
    def is_complex(self) -> bool:
        return self.dtype.is_complex

    def buffers_consistent(self) -> bool:
        """True if every owned buffer is a flat NB*NB block (checked under assert)."""
        nb2 = self.nb * self.nb
        sets = (self.fock, self.one_pdm, self.delta_one_pdm, self.gd, self.k, self.aoints.core_h)
        for bufs in sets:
            for b in bufs:
                if b.dim() != 1 or b.numel() != nb2:
                    return False
        if self.aoints.len_elec_dipole is not None:
            if any(d.numel() != nb2 for d in self.aoints.len_elec_dipole):
                return False
        return self.j_scalar.numel() == nb2

    def _write(self, bufs: List[Tensor], mats: Sequence[Tensor]) -> None:
        if len(mats) > self.n_components:
            raise ValueError(f"got {len(mats)} components for a {self.n_components}-component state")
        for buf, mat in zip(bufs, mats):
            if tuple(mat.shape) != (self.nb, self.nb):
                raise ValueError(f"density component must be {self.nb}x{self.nb}, got {tuple(mat.shape)}")
            colmajor_view(buf, self.nb, self.nb, self.nb).copy_(mat)
        for buf in bufs[len(mats):]:
            buf.zero_()

    def set_density(self, mats: Sequence[Tensor]) -> None:
        """Store full densities (missing trailing components are zero); clears the delta."""
        self._write(self.one_pdm, mats)
        for d in self.delta_one_pdm:
            d.zero_()

    def update_density(self, mats: Sequence[Tensor]) -> None:
        """Store new full densities and their change against the current ones in delta_one_pdm."""
        old = [b.clone() for b in self.one_pdm]
        self._write(self.one_pdm, mats)
        for delta, new, prev in zip(self.delta_one_pdm, self.one_pdm, old):
            torch.sub(new, prev, out=delta)

    def density_matrices(self) -> List[Tensor]:
        return [to_matrix(b, self.nb) for b in self.one_pdm]

    def fock_matrices(self) -> List[Tensor]:
        return [to_matrix(b, self.nb) for b in self.fock]

    def gd_matrices(self) -> List[Tensor]:
        return [to_matrix(b, self.nb) for b in self.gd]

    def form_gd(self, increment: bool = False, x_hfx: float = 1.0) -> None:
        from .fock import form_gd
        form_gd(self, increment, x_hfx)

    def form_fock(self, pert: EMPerturbation, increment: bool = False, x_hfx: float = 1.0) -> None:
        from .fock import form_fock
        form_fock(self, pert, increment, x_hfx)
