from __future__ import annotations

"""Fock matrix and two-body mean-field (G[D]) assembly.

    G[D] = 2 J[D] - x K[D]
    F    = H_core + G[D] - 2 sum_k E_k mu_k        (dipole field E, integrals mu)

form_gd may run incrementally: the delta density is contracted and J / K
accumulate on their previous contents. form_fock always leaves a complete
Fock matrix, whichever mode G[D] was built in.
"""

import logging
from contextlib import ExitStack

from ..integrals.twobody import ContractionType, TwoBodyContraction
from ..linalg.blasext import get_mat_re, mat_add, set_mat_im, set_mat_re
from ..perturbation import EMPerturbation
from .state import PauliSpinorComp, SingleSlater

logger = logging.getLogger(__name__)

__all__ = ["form_gd", "form_fock", "EXCHANGE_THRESH", "FIELD_THRESH"]

EXCHANGE_THRESH = 1e-12
FIELD_THRESH = 1e-10

SCALAR = PauliSpinorComp.SCALAR


def form_gd(ss: SingleSlater, increment: bool, x_hfx: float) -> None:
    """Form G[D] into ss.gd, refreshing ss.j_scalar and (if exchange is on) ss.k.

    On entry gd holds anything; j_scalar and k hold the previous build's values
    when incrementing (otherwise anything). On exit j_scalar, k and gd hold the
    values for the current full density.
    """
    assert ss.buffers_consistent(), "state buffers do not share NB"
    nb = ss.nb
    if nb == 0:
        return
    contract_pdm = ss.delta_one_pdm if increment else ss.one_pdm
    # J accumulates directly in j_scalar only when the working type matches it
    direct_j = ss.dtype == ss.j_scalar.dtype
    do_exchange = abs(x_hfx) > EXCHANGE_THRESH

    with ExitStack() as stack:
        if direct_j:
            j_contract = ss.j_scalar
        else:
            j_contract = stack.enter_context(ss.mem.scoped(ss.dtype, nb * nb))
        if not increment or not direct_j:
            j_contract.zero_()

        contract = [TwoBodyContraction(contract_pdm[SCALAR], j_contract, True, ContractionType.COULOMB)]
        if do_exchange:
            for i, k in enumerate(ss.k):
                contract.append(TwoBodyContraction(contract_pdm[i], k, True, ContractionType.EXCHANGE))
                if not increment:
                    k.zero_()
        logger.debug(
            "form_gd: increment=%s, x_hfx=%g, %d contraction(s), transient J=%s",
            increment, x_hfx, len(contract), not direct_j,
        )
        ss.aoints.two_body_contract(contract)

        if not direct_j:
            if increment:
                mat_add("N", "N", nb, nb, 1.0, j_contract, nb, 1.0, ss.j_scalar, nb, j_contract, nb)
            get_mat_re("N", nb, nb, 1.0, j_contract, nb, ss.j_scalar, nb)

    if do_exchange:
        for i, k in enumerate(ss.k):
            # overwrite: gd[i] is written, never read
            mat_add("N", "N", nb, nb, -x_hfx, k, nb, 0.0, k, nb, ss.gd[i], nb)
    else:
        for g in ss.gd:
            g.zero_()

    # Coulomb enters the scalar component only
    mat_add("N", "N", nb, nb, 1.0, ss.gd[SCALAR], nb, 2.0, ss.j_scalar, nb, ss.gd[SCALAR], nb)


def form_fock(ss: SingleSlater, pert: EMPerturbation, increment: bool, x_hfx: float) -> None:
    """Form the full Fock matrix into ss.fock for the current density and field."""
    nb = ss.nb
    form_gd(ss, increment, x_hfx)

    for f in ss.fock:
        f.zero_()

    core_h = ss.aoints.core_h
    set_mat_re("N", nb, nb, 1.0, core_h[SCALAR], nb, ss.fock[SCALAR], nb)
    for i in range(1, len(core_h)):
        set_mat_im("N", nb, nb, 1.0, core_h[i], nb, ss.fock[i], nb)

    for f, g in zip(ss.fock, ss.gd):
        mat_add("N", "N", nb, nb, 1.0, f, nb, 1.0, g, nb, f, nb)

    if not pert.is_empty:
        dipole = pert.get_amp()
        for ixyz, amp in enumerate(dipole):
            if abs(amp) <= FIELD_THRESH:
                continue
            if ss.aoints.len_elec_dipole is None:
                raise ValueError("an electric field is active but no dipole integrals were provided")
            logger.debug("form_fock: field axis %d, amplitude %.6e", ixyz, amp)
            mat_add(
                "N", "N", nb, nb, 1.0, ss.fock[SCALAR], nb,
                -2.0 * amp, ss.aoints.len_elec_dipole[ixyz], nb, ss.fock[SCALAR], nb,
            )
