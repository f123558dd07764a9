import numpy as np
import pytest

from onehalo.hod import Zehavi05
from onehalo.one_halo import RealSpaceOneHalo
from onehalo.profiles import NFW


class CountingMassFunction:
    """A simple Schechter-like dn/dm which counts how often it is called."""

    def __init__(self):
        self.calls = 0

    def __call__(self, m):
        self.calls += 1
        return 1e-2 / m * (m / 1e12) ** -0.9 * np.exp(-m / 3e14)


def _ingredients():
    return dict(
        dndm=CountingMassFunction(),
        concentration=lambda m: 10.0 * (m / 1e12) ** -0.1,
        hod=Zehavi05(M_min=11.5, M_1=12.8, alpha=1.0),
        pair_profile=NFW(),
        galaxy_density=1e-3,
        rho_crit=2.775e11,
        omega_m=0.3,
        delta_halo=200.0,
        m_min=1e11,
        m_max=1e15,
    )


@pytest.fixture
def ingredients():
    """Keyword arguments for a RealSpaceOneHalo with light-weight ingredients."""
    return _ingredients()


@pytest.fixture(scope="module")
def xi():
    """A RealSpaceOneHalo with the default table size, shared by a module."""
    return RealSpaceOneHalo(**_ingredients())
