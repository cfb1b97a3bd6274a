from __future__ import annotations

"""Uniform electric dipole perturbations.

EMPerturbation is the static descriptor handed to a Fock build: a list of
dipole fields whose (x, y, z) amplitudes are summed by get_amp().
TDEMPerturbation is the time-dependent source used during propagation; each
field carries an envelope f(t) and get_pert(t) freezes the fields at time t.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

__all__ = [
    "DipoleField",
    "EMPerturbation",
    "TDEMPerturbation",
    "StepEnvelope",
    "LinearRampEnvelope",
]

Envelope = Callable[[float], float]


@dataclass(frozen=True)
class StepEnvelope:
    """1 for t_on <= t < t_off, else 0."""
    t_on: float = 0.0
    t_off: float = float("inf")

    def __call__(self, t: float) -> float:
        return 1.0 if self.t_on <= t < self.t_off else 0.0


@dataclass(frozen=True)
class LinearRampEnvelope:
    """0 before t_on, rising linearly to 1 over t_ramp, then 1."""
    t_on: float
    t_ramp: float

    def __post_init__(self):
        if self.t_ramp <= 0:
            raise ValueError(f"t_ramp must be positive, got {self.t_ramp}")

    def __call__(self, t: float) -> float:
        if t < self.t_on:
            return 0.0
        return min(1.0, (t - self.t_on) / self.t_ramp)


@dataclass(frozen=True)
class DipoleField:
    amplitude: Tuple[float, float, float]
    envelope: Optional[Envelope] = None

    def __post_init__(self):
        if len(self.amplitude) != 3:
            raise ValueError(f"dipole amplitude needs (x, y, z) components, got {self.amplitude!r}")
        object.__setattr__(self, "amplitude", tuple(float(a) for a in self.amplitude))

    def at(self, t: float) -> "DipoleField":
        """Static copy of this field with the envelope evaluated at t."""
        scale = 1.0 if self.envelope is None else float(self.envelope(t))
        return DipoleField(tuple(scale * a for a in self.amplitude))


@dataclass
class EMPerturbation:
    fields: List[DipoleField] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return len(self.fields) == 0

    def add_field(self, f: DipoleField) -> None:
        self.fields.append(f)

    def get_amp(self) -> Tuple[float, float, float]:
        amp = [0.0, 0.0, 0.0]
        for f in self.fields:
            for i in range(3):
                amp[i] += f.amplitude[i]
        return tuple(amp)


@dataclass
class TDEMPerturbation:
    fields: List[DipoleField] = field(default_factory=list)

    @classmethod
    def from_fields(cls, fields: Sequence[DipoleField]) -> "TDEMPerturbation":
        return cls(list(fields))

    @property
    def is_empty(self) -> bool:
        return len(self.fields) == 0

    def add_field(self, f: DipoleField) -> None:
        self.fields.append(f)

    def get_pert(self, t: float) -> EMPerturbation:
        return EMPerturbation([f.at(t) for f in self.fields])

    def amplitude_at(self, t: float) -> Tuple[float, float, float]:
        return self.get_pert(t).get_amp()
