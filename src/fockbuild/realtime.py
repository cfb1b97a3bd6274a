from __future__ import annotations

"""Real-time coupling of a time-dependent field to the Fock build.

RealTime.form_fock freezes the perturbation at the requested time and hands
it to the propagated state's Fock build. propagate() is a minimal driver for
an orthonormal AO basis: each step rebuilds F (fully on the first step,
incrementally from the density change afterwards) and advances every spin
block of the density with U = exp(-i dt F).
"""

import logging
from typing import List

import torch

from .perturbation import TDEMPerturbation
from .singleslater.state import PauliSpinorComp, SingleSlater

Tensor = torch.Tensor
logger = logging.getLogger(__name__)

__all__ = ["RealTime"]


def _spin_blocks(mats: List[Tensor]) -> List[Tensor]:
    if len(mats) == 1:
        return [0.5 * mats[PauliSpinorComp.SCALAR]]
    s, z = mats[PauliSpinorComp.SCALAR], mats[PauliSpinorComp.MZ]
    return [0.5 * (s + z), 0.5 * (s - z)]


def _pauli_components(blocks: List[Tensor]) -> List[Tensor]:
    if len(blocks) == 1:
        return [2.0 * blocks[0]]
    return [blocks[0] + blocks[1], blocks[0] - blocks[1]]


class RealTime:
    def __init__(self, propagator: SingleSlater, pert: TDEMPerturbation, x_hfx: float = 1.0):
        self.propagator = propagator
        self.pert = pert
        self.x_hfx = x_hfx
        self.cur_time = 0.0

    def form_fock(self, increment: bool, t: float) -> None:
        """Build the propagator's Fock matrix under the field active at time t."""
        self.cur_time = t
        pert_t = self.pert.get_pert(t)
        self.propagator.form_fock(pert_t, increment, self.x_hfx)

    def propagate(self, n_steps: int, dt: float) -> float:
        """Advance the density by n_steps of length dt; returns the final time."""
        ss = self.propagator
        if not ss.is_complex:
            raise NotImplementedError("propagation requires a complex working dtype")
        if ss.n_components not in (1, 2):
            raise NotImplementedError("propagation is implemented for restricted and collinear states only")
        if n_steps < 0 or dt <= 0:
            raise ValueError(f"need n_steps >= 0 and dt > 0, got n_steps={n_steps}, dt={dt}")

        for step in range(n_steps):
            self.form_fock(increment=step > 0, t=self.cur_time)
            fock = _spin_blocks(ss.fock_matrices())
            dens = _spin_blocks(ss.density_matrices())
            new = []
            for F, D in zip(fock, dens):
                U = torch.linalg.matrix_exp(-1j * dt * F)
                new.append(U @ D @ U.conj().T)
            ss.update_density(_pauli_components(new))
            self.cur_time += dt
            logger.debug("step %d: t=%.6f", step, self.cur_time)
        return self.cur_time
