from .state import PauliSpinorComp, SingleSlater
from .fock import EXCHANGE_THRESH, FIELD_THRESH, form_fock, form_gd

__all__ = ["PauliSpinorComp", "SingleSlater", "form_fock", "form_gd", "EXCHANGE_THRESH", "FIELD_THRESH"]
