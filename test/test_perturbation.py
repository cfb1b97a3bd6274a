import pytest

from fockbuild.perturbation import (
    DipoleField,
    EMPerturbation,
    LinearRampEnvelope,
    StepEnvelope,
    TDEMPerturbation,
)


def test_static_amplitudes_are_summed():
    pert = EMPerturbation()
    assert pert.is_empty
    assert pert.get_amp() == (0.0, 0.0, 0.0)
    pert.add_field(DipoleField((0.1, 0.0, -0.2)))
    pert.add_field(DipoleField((0.4, 0.5, 0.0)))
    assert not pert.is_empty
    amp = pert.get_amp()
    assert amp == pytest.approx((0.5, 0.5, -0.2))


def test_dipole_field_requires_three_components():
    with pytest.raises(ValueError):
        DipoleField((1.0, 2.0))


def test_envelopes():
    step = StepEnvelope(1.0, 2.0)
    assert step(0.5) == 0.0 and step(1.0) == 1.0 and step(1.99) == 1.0 and step(2.0) == 0.0
    ramp = LinearRampEnvelope(t_on=1.0, t_ramp=2.0)
    assert ramp(0.0) == 0.0
    assert ramp(2.0) == pytest.approx(0.5)
    assert ramp(5.0) == 1.0
    with pytest.raises(ValueError):
        LinearRampEnvelope(0.0, 0.0)


def test_time_dependent_source_freezes_fields():
    src = TDEMPerturbation.from_fields([
        DipoleField((0.0, 0.0, 0.01), envelope=StepEnvelope(0.0, 1.0)),
        DipoleField((0.02, 0.0, 0.0)),
    ])
    assert not src.is_empty
    p0 = src.get_pert(0.5)
    assert isinstance(p0, EMPerturbation)
    assert all(f.envelope is None for f in p0.fields)
    assert p0.get_amp() == pytest.approx((0.02, 0.0, 0.01))
    assert src.amplitude_at(3.0) == pytest.approx((0.02, 0.0, 0.0))
    assert TDEMPerturbation().get_pert(0.0).is_empty
