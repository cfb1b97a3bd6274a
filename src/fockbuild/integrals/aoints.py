from __future__ import annotations

"""Precomputed AO integrals consumed by the Fock build.

Core Hamiltonian: one real NB x NB buffer per spin component (index 0 is the
scalar part). Dipole: three real NB x NB length-gauge electric dipole
buffers (x, y, z). All buffers are flat column-major with ld = NB.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import torch

from ..linalg.blasext import from_matrix
from .twobody import DenseERIEngine, TwoBodyContraction, TwoBodyEngine

Tensor = torch.Tensor

__all__ = ["AOIntegrals"]


@dataclass
class AOIntegrals:
    nb: int
    core_h: List[Tensor]
    engine: TwoBodyEngine
    len_elec_dipole: Optional[List[Tensor]] = None
    meta: dict = field(default_factory=dict)

    def __post_init__(self):
        nb2 = self.nb * self.nb
        if not self.core_h:
            raise ValueError("at least the scalar core Hamiltonian component is required")
        for i, h in enumerate(self.core_h):
            if h.dim() != 1 or h.numel() != nb2:
                raise ValueError(f"core_h[{i}] must be a flat buffer of {nb2} elements")
            if h.is_complex():
                raise ValueError(f"core_h[{i}] must be real")
        if self.len_elec_dipole is not None:
            if len(self.len_elec_dipole) != 3:
                raise ValueError("len_elec_dipole needs exactly three (x, y, z) buffers")
            for i, d in enumerate(self.len_elec_dipole):
                if d.dim() != 1 or d.numel() != nb2:
                    raise ValueError(f"len_elec_dipole[{i}] must be a flat buffer of {nb2} elements")

    @classmethod
    def from_matrices(
        cls,
        core_h: Sequence[Tensor],
        eri: Optional[Tensor] = None,
        dipole: Optional[Sequence[Tensor]] = None,
        engine: Optional[TwoBodyEngine] = None,
    ) -> "AOIntegrals":
        """Build from ordinary 2-D matrices; `eri` selects the in-core engine unless `engine` is given."""
        nb = core_h[0].shape[0]
        if engine is None:
            if eri is None:
                raise ValueError("either eri or engine must be provided")
            engine = DenseERIEngine(eri)
        return cls(
            nb=nb,
            core_h=[from_matrix(h) for h in core_h],
            engine=engine,
            len_elec_dipole=None if dipole is None else [from_matrix(d) for d in dipole],
        )

    def two_body_contract(self, requests: Sequence[TwoBodyContraction]) -> None:
        self.engine.two_body_contract(self.nb, requests)
