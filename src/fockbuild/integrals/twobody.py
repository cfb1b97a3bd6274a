from __future__ import annotations

"""Two-body contraction requests and an in-core reference engine.

A request pairs a density buffer with a destination buffer (both flat,
column-major NB x NB) and names the operator to contract:

    J[D]_{mn} = sum_{ls} (mn|ls) D_{ls}      (COULOMB)
    K[D]_{mn} = sum_{ls} (ml|sn) D_{ls}      (EXCHANGE)

With accumulate=True the result is added onto the destination, otherwise it
overwrites it. Engines receive the whole request list of a Fock build at once.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Protocol, Sequence

import torch

from ..linalg.blasext import colmajor_view

Tensor = torch.Tensor
logger = logging.getLogger(__name__)

__all__ = ["ContractionType", "TwoBodyContraction", "TwoBodyEngine", "DenseERIEngine"]


class ContractionType(enum.Enum):
    COULOMB = "coulomb"
    EXCHANGE = "exchange"


@dataclass
class TwoBodyContraction:
    density: Tensor
    target: Tensor
    accumulate: bool
    kind: ContractionType


class TwoBodyEngine(Protocol):
    def two_body_contract(self, nb: int, requests: Sequence[TwoBodyContraction]) -> None:
        ...


_SUBSCRIPTS = {
    ContractionType.COULOMB: "mnls,xls->xmn",
    ContractionType.EXCHANGE: "mlsn,xls->xmn",
}


class DenseERIEngine:
    """Contract against a full (NB,NB,NB,NB) chemists'-notation ERI tensor held in memory."""

    def __init__(self, eri: Tensor):
        if eri.dim() != 4 or len(set(eri.shape)) != 1:
            raise ValueError(f"ERI tensor must have shape (NB,NB,NB,NB), got {tuple(eri.shape)}")
        self.eri = eri
        self.nb = eri.shape[0]
        self._promoted: Dict[torch.dtype, Tensor] = {eri.dtype: eri}
        self.n_calls = 0

    def _eri_as(self, dtype: torch.dtype) -> Tensor:
        if dtype not in self._promoted:
            self._promoted[dtype] = self.eri.to(dtype)
        return self._promoted[dtype]

    def two_body_contract(self, nb: int, requests: Sequence[TwoBodyContraction]) -> None:
        assert nb == self.nb, f"engine built for NB={self.nb}, asked for NB={nb}"
        self.n_calls += 1
        # One batched contraction per operator kind over all densities of that kind
        for kind, subscripts in _SUBSCRIPTS.items():
            batch: List[TwoBodyContraction] = [r for r in requests if r.kind is kind]
            if not batch:
                continue
            dens = [colmajor_view(r.density, nb, nb, nb) for r in batch]
            dtype = dens[0].dtype
            for d in dens[1:]:
                dtype = torch.promote_types(dtype, d.dtype)
            stacked = torch.stack([d.to(dtype) for d in dens])
            result = torch.einsum(subscripts, self._eri_as(dtype), stacked)
            for req, res in zip(batch, result):
                assert torch.can_cast(res.dtype, req.target.dtype), (
                    f"{kind.value} result of type {res.dtype} cannot be stored in {req.target.dtype}"
                )
                out = colmajor_view(req.target, nb, nb, nb)
                if req.accumulate:
                    out.add_(res)
                else:
                    out.copy_(res)
        logger.debug(
            "two-body contraction: %d coulomb, %d exchange",
            sum(r.kind is ContractionType.COULOMB for r in requests),
            sum(r.kind is ContractionType.EXCHANGE for r in requests),
        )
