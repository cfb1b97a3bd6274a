from .aoints import AOIntegrals
from .twobody import ContractionType, DenseERIEngine, TwoBodyContraction, TwoBodyEngine

__all__ = ["AOIntegrals", "ContractionType", "DenseERIEngine", "TwoBodyContraction", "TwoBodyEngine"]
