"""Fock-matrix assembly for SCF and real-time propagation (real and complex)."""

from .integrals import AOIntegrals, ContractionType, DenseERIEngine, TwoBodyContraction
from .linalg.blasext import mat_add
from .memory import MemoryManager, PoolExhaustedError
from .perturbation import DipoleField, EMPerturbation, TDEMPerturbation
from .realtime import RealTime
from .singleslater import PauliSpinorComp, SingleSlater

__all__ = [
    "AOIntegrals",
    "ContractionType",
    "DenseERIEngine",
    "TwoBodyContraction",
    "mat_add",
    "MemoryManager",
    "PoolExhaustedError",
    "DipoleField",
    "EMPerturbation",
    "TDEMPerturbation",
    "RealTime",
    "PauliSpinorComp",
    "SingleSlater",
]

__version__ = "0.1.0"
