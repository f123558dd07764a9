import numpy as np
import pytest
from hmf.halos.mass_definitions import SOCritical, SOMean, SOVirial

from onehalo import concentration as cm


@pytest.fixture()
def mass():
    return np.logspace(10, 15, 100)


@pytest.mark.parametrize("mdef", [SOMean, SOCritical, SOVirial])
def test_duffy_decreasing(mass, mdef):
    duffy = cm.Duffy08(sample="full", mdef=mdef())
    c = duffy.cm(mass)

    assert np.all(c > 0)
    assert np.all(np.diff(c) < 0)


def test_duffy_redshift(mass):
    duffy = cm.Duffy08()
    assert np.all(duffy.cm(mass, z=1) < duffy.cm(mass, z=0))


def test_bullock_needs_mstar(mass):
    with pytest.raises(ValueError):
        cm.Bullock01Power().cm(mass)

    c = cm.Bullock01Power(mstar=1e12).cm(1e12)
    assert c == pytest.approx(9.0)


def test_duffy_fitted_values():
    duffy = cm.Duffy08(mdef=SOMean())
    assert duffy.cm(2e12) == pytest.approx(11.93)
    assert duffy.cm(2e12, z=1) == pytest.approx(11.93 / 2 ** 0.99)

    assert cm.Duffy08(a=3.0).cm(2e12) == pytest.approx(3.0)
    assert cm.Duffy08(sample="full").cm(2e12) == pytest.approx(5.71)


def test_non_native_mdef():
    with pytest.warns(UserWarning, match="not in native definitions"):
        bullock = cm.Bullock01Power(mdef=SOMean(), ms=1e12)

    assert bullock.mdef == SOMean()
    assert bullock.cm(1e12) == pytest.approx(9.0)


def test_colossus_factory():
    Duffy = cm.make_colossus_cm("duffy08")
    assert issubclass(Duffy, cm.CMRelation)
    assert Duffy.__name__ == "Duffy08"
