"""
Module for defining HOD classes.

The HOD class exposes methods that deal directly with occupation statistics and don't
interact with the broader halo model: the average satellite/central occupation, the
total occupation, and the "pair counts" which weight the one-halo term.

All classes contain the notion that there may be a "satellite" component of the
occupation, and a "central" component. The assumptions surrounding the
satellite/central decomposition are:

1. The average satellite occupancy is taken to be the average over *all* haloes, with
   and without centrals.

2. We provide the option to enforce a "central condition", that is, the requirement
   that a central be found in a halo before any satellites are observed. To enforce
   this, set ``central=True`` in the constructor of any HOD. Then, if the defined
   satellite occupancy is Ns', the returned occupancy is Ns = Nc*Ns', unless the
   class sets ``central_condition_inherent``.

3. The pair-wise counts involve a term <Nc*Ns>. When the central condition is enforced,
   this reduces trivially to <Ns>. Otherwise we *assume* that Nc and Ns are
   uncorrelated, and use <Nc*Ns> = <Nc><Ns>.

4. By default, the central condition is *not* enforced.

Every occupation function accepts either a scalar mass or an array of masses, and
returns the same kind of object, so that they may be used inside scalar quadrature
routines as well as on mass grids.
"""
from abc import ABCMeta, abstractmethod

import numpy as np
import scipy.special as sp
from hmf import Component
from hmf._internals import pluggable


def _like(m, out):
    """Return ``out`` as a float if ``m`` was a scalar."""
    return float(out) if np.ndim(m) == 0 else out


@pluggable
class HOD(Component, metaclass=ABCMeta):
    """
    Halo Occupation Distribution model base class.

    This class should not be called directly. The user
    should call a derived class.

    As with all :class:`hmf.Component` classes, each class should specify its
    parameters in a ``_defaults`` dictionary at class-level.

    The exception to this is the M_min parameter, which is defined for every
    model (it may still be defined to modify the default). It is the log10 mass below
    which the tracer is not expected to be found, and sets the lower limit of mass
    integrals. If the model has a sharp cutoff at M_min, ``sharp_cut`` is True.
    """

    _defaults = {"M_min": 11.0}
    sharp_cut = False
    central_condition_inherent = False

    def __init__(self, central: bool = False, **model_parameters):
        self._central = central
        super().__init__(**model_parameters)

    @abstractmethod
    def _central_occupation(self, m):
        """The central occupation function of the tracer."""
        pass

    @abstractmethod
    def _satellite_occupation(self, m):
        """The satellite occupation function of the tracer."""
        pass

    @abstractmethod
    def ss_pairs(self, m):
        """The average number of satellite pairs in haloes of mass m, <Ns(Ns-1)>."""
        pass

    @abstractmethod
    def cs_pairs(self, m):
        """The average number of central-satellite pairs in haloes of mass m, <Nc Ns>."""
        pass

    def central_occupation(self, m):
        """The occupation function of the central component."""
        return _like(m, self._central_occupation(np.asarray(m, dtype=float)))

    def satellite_occupation(self, m):
        """The occupation function of the satellite component."""
        mm = np.asarray(m, dtype=float)
        if self._central and not self.central_condition_inherent:
            out = self._central_occupation(mm) * self._satellite_occupation(mm)
        else:
            out = self._satellite_occupation(mm)
        return _like(m, out)

    def total_occupation(self, m):
        """The total (average) occupation of the halo."""
        return self.central_occupation(m) + self.satellite_occupation(m)

    def total_pair_function(self, m):
        """The total number of pairs, <N(N-1)>/2."""
        return 0.5 * self.ss_pairs(m) + self.cs_pairs(m)

    @property
    def mmin(self):
        """Defines a reasonable minimum (log10) mass for this HOD to converge when integrated."""
        return self.params["M_min"]


class HODPoisson(HOD, abstract=True):
    """
    Base class for discrete HOD's with poisson-distributed satellite population.

    This accounts for all traditional number-count HOD's.
    """

    def ss_pairs(self, m):
        """The average number of satellite pairs in haloes of mass m, <Ns(Ns-1)>."""
        return self.satellite_occupation(m) ** 2

    def cs_pairs(self, m):
        """The average number of central-satellite pairs in haloes of mass m, <Nc Ns>."""
        if self._central:
            return self.satellite_occupation(m)
        else:
            return self.central_occupation(m) * self.satellite_occupation(m)


class Zehavi05(HODPoisson):
    r"""
    Three-parameter model of Zehavi (2005) [1]_.

    Parameters
    ----------
    M_min : float, default = 11.6222
        Minimum mass of halo that supports a central galaxy
    M_1 : float, default = 12.851
        Mass of a halo which on average contains 1 satellite
    alpha : float, default = 1.049
        Index of power law for satellite galaxies

    References
    ----------
    .. [1] Zehavi, I. et al., "The Luminosity and Color Dependence of the Galaxy Correlation
           Function ", https://ui.adsabs.harvard.edu/abs/2005ApJ...630....1Z.

    """

    _defaults = {"M_min": 11.6222, "M_1": 12.851, "alpha": 1.049}
    sharp_cut = True

    def _central_occupation(self, m):
        return np.where(m < 10 ** self.params["M_min"], 0.0, 1.0)

    def _satellite_occupation(self, m):
        return (m / 10 ** self.params["M_1"]) ** self.params["alpha"]


class Zheng05(HODPoisson):
    """
    Five-parameter model of Zheng (2005) [1]_.

    Parameters
    ----------
    M_min : float, default = 11.6222
        Minimum mass of halo that supports a central galaxy
    M_1 : float, default = 12.851
        Mass of a halo which on average contains 1 satellite
    alpha : float, default = 1.049
        Index of power law for satellite galaxies
    sig_logm : float, default = 0.26
        Width of smoothed cutoff
    M_0 : float, default = 11.5047
        Minimum mass of halo containing satellites

    References
    ----------
    .. [1] Zheng, Z. et al., "Theoretical Models of the Halo Occupation Distribution:
           Separating Central and Satellite Galaxies ",
           https://ui.adsabs.harvard.edu/abs/2005ApJ...633..791Z.

    """

    _defaults = {
        "M_min": 11.6222,
        "M_1": 12.851,
        "alpha": 1.049,
        "M_0": 11.5047,
        "sig_logm": 0.26,
    }

    def _central_occupation(self, m):
        return 0.5 * (
            1 + sp.erf((np.log10(m) - self.params["M_min"]) / self.params["sig_logm"])
        )

    def _satellite_occupation(self, m):
        m0 = 10 ** self.params["M_0"]
        return np.where(
            m > m0,
            (np.clip(m - m0, 0, None) / 10 ** self.params["M_1"]) ** self.params["alpha"],
            0.0,
        )

    @property
    def mmin(self):
        """Minimum turnover mass for tracer"""
        return self.params["M_min"] - 5 * self.params["sig_logm"]


class Tinker05(Zehavi05):
    """
    3-parameter model of Tinker et. al. (2005) [1]_.

    References
    ----------
    .. [1] Tinker, J. L. et al., "On the Mass-to-Light Ratio of Large-Scale Structure",
           https://ui.adsabs.harvard.edu/abs/2005ApJ...631...41T.

    """

    _defaults = {"M_min": 11.6222, "M_1": 12.851, "M_cut": 12.0}
    central_condition_inherent = True

    def _satellite_occupation(self, m):
        mmin = 10 ** self.params["M_min"]
        excess = np.where(m > mmin, m - mmin, 1.0)
        return np.where(
            m > mmin,
            np.exp(-(10 ** self.params["M_cut"]) / excess) * (m / 10 ** self.params["M_1"]),
            0.0,
        )
