r"""
The real-space one-halo term of the galaxy correlation function.

The one-halo term counts pairs of galaxies which share a host halo. Following
Berlind & Weinberg (2002), Zheng (2004) and Tinker et al. (2005, App. B), at a
separation :math:`r` it is

.. math:: 1 + \xi_{1h}(r) \propto \frac{1}{2\pi r^2 \bar{n}_1 \bar{n}_2}
          \int dm\, \frac{dn}{dm} \left[\frac{\langle N_s(N_s-1)\rangle}{2}
          F'_{ss}\left(\frac{r}{2R_{\rm vir}}\right) +
          \langle N_c\rangle\langle N_s\rangle
          F'_{cs}\left(\frac{r}{2R_{\rm vir}}\right)\right] \frac{1}{2R_{\rm vir}},

where :math:`F'` are the normalised distributions of pair separations within a halo
(see :mod:`onehalo.profiles`). Only haloes with :math:`2R_{\rm vir} > r` contribute.

The integral is done once for each point of a logarithmic grid in :math:`r`, and a
spline through the resulting table is used for all subsequent queries. The table is
rebuilt only after :meth:`RealSpaceOneHalo.invalidate` is called.

Examples
--------
>>> from onehalo.one_halo import RealSpaceOneHalo
>>> xi = RealSpaceOneHalo(dndm=..., concentration=..., hod=..., pair_profile=...,
...                       galaxy_density=1e-3, rho_crit=2.775e11, omega_m=0.3,
...                       delta_halo=200.0, m_min=1e11, m_max=1e15)
>>> xi(0.5)
"""
import contextlib
import logging
import warnings
from typing import NamedTuple

import numpy as np

from . import tools

logger = logging.getLogger(__name__)

#: Smallest tabulated separation [Mpc/h].
RMIN = 0.01

#: The largest tabulated separation, in units of the virial radius of the most massive
#: halo. Pairs can be no further apart than twice this radius.
RMAX_FACTOR = 1.9

#: Tabulation stops at the first value smaller than this. Larger separations are zero.
EARLY_STOP_THRESHOLD = 1e-10

_TERMS = ("total", "ss", "cs")


class OneHaloException(Exception):
    """Base class for errors raised when computing the one-halo term."""


class IntegrationBoundsError(OneHaloException, ValueError):
    """The mass integral has an empty range."""


class DegenerateIntegralWarning(UserWarning):
    """A mass integral evaluated to exactly zero."""


class OneHaloTable(NamedTuple):
    """A tabulation of the one-halo term."""

    r: np.ndarray
    xi: np.ndarray


class RealSpaceOneHalo:
    """
    The real-space one-halo term as a function of separation.

    Instances are callable: ``xi(r)`` returns the one-halo term at ``r`` (a scalar or
    array), building the underlying table on first use.

    Parameters
    ----------
    dndm : callable
        The halo mass function, ``dn/dm`` at mass ``m`` [h^4/Msun/Mpc^3].
    concentration : callable
        The concentration of a halo of mass ``m``.
    hod : :class:`~onehalo.hod.HOD` instance
        Provides the pair moments ``ss_pairs`` and ``cs_pairs``.
    pair_profile : :class:`~onehalo.profiles.PairProfile` instance
        Provides ``dFdx_ss`` and ``dFdx_cs``.
    galaxy_density : float
        Mean number density of the galaxies [h^3/Mpc^3].
    rho_crit : float
        Critical density of the universe [Msun h^2/Mpc^3].
    omega_m : float
        Matter density parameter.
    delta_halo : float
        Halo overdensity with respect to the mean matter density.
    m_min, m_max : float
        Bounds of the mass integral [Msun/h].
    galaxy_density2 : float, optional
        Density of the second galaxy sample, for cross-correlations. Defaults to
        ``galaxy_density``.
    cvir_fac : float, optional
        Factor by which to scale the halo concentrations.
    quad : callable, optional
        ``quad(f, a, b)`` returns the integral of ``f`` from ``a`` to ``b``.
    n_table : int, optional
        Number of tabulated separations.
    enabled : bool, optional
        If False, the one-halo term is identically zero.
    output_level : int, optional
        Above 1, log every tabulated point. Above 2, also append every point to the
        file ``<run_label>.1halo``.
    run_label : str, optional
        Root of the diagnostic file name.
    """

    def __init__(
        self,
        dndm,
        concentration,
        hod,
        pair_profile,
        galaxy_density: float,
        rho_crit: float,
        omega_m: float,
        delta_halo: float,
        m_min: float,
        m_max: float,
        galaxy_density2: [float, None] = None,
        cvir_fac: float = 1.0,
        quad=tools.quad_open,
        n_table: int = 100,
        enabled: bool = True,
        output_level: int = 0,
        run_label: str = "onehalo",
    ):
        if galaxy_density2 is None:
            galaxy_density2 = galaxy_density

        if galaxy_density <= 0 or galaxy_density2 <= 0:
            raise ValueError(
                f"galaxy densities must be positive, got {galaxy_density}, {galaxy_density2}"
            )

        self.dndm = dndm
        self.concentration = concentration
        self.hod = hod
        self.pair_profile = pair_profile
        self.galaxy_density = galaxy_density
        self.galaxy_density2 = galaxy_density2
        self.rho_crit = rho_crit
        self.omega_m = omega_m
        self.delta_halo = delta_halo
        self.m_min = m_min
        self.m_max = m_max
        self.cvir_fac = cvir_fac
        self.quad = quad
        self.enabled = enabled
        self.output_level = output_level
        self.run_label = run_label

        self.degenerate_points = []
        self._interp = tools.CachedInterpolant(self.build_table, n=n_table)

    # ===========================================================================
    # Halo geometry
    # ===========================================================================
    def virial_radius(self, m):
        """The spherical-overdensity radius of a halo of mass ``m``."""
        return (
            3 * m / (4 * np.pi * self.delta_halo * self.omega_m * self.rho_crit)
        ) ** (1.0 / 3.0)

    def virial_mass(self, r):
        """The mass of a halo with spherical-overdensity radius ``r``."""
        return 4 * np.pi * self.rho_crit * self.delta_halo * self.omega_m * r ** 3 / 3

    @property
    def rmax(self):
        """The largest tabulated separation."""
        return RMAX_FACTOR * self.virial_radius(self.m_max)

    # ===========================================================================
    # Integrand
    # ===========================================================================
    def integrand(self, lnm, r, term="total"):
        """
        The density of galaxy pairs at separation ``r`` in haloes of mass ``exp(lnm)``,
        per unit ``ln m``.

        ``term`` is one of "total", "ss" (satellite-satellite pairs only) or "cs"
        (central-satellite pairs only).
        """
        m = np.exp(lnm)
        c = self.concentration(m) * self.cvir_fac
        n = self.dndm(m)

        # Pairs are separated by at most the diameter of the halo.
        rvir = 2 * self.virial_radius(m)
        x = r / rvir

        terms = 0.0
        if term in ("total", "ss"):
            terms += self.pair_profile.dFdx_ss(x, c) * self.hod.ss_pairs(m) * 0.5
        if term in ("total", "cs"):
            terms += self.pair_profile.dFdx_cs(x, c) * self.hod.cs_pairs(m)

        return n * terms / rvir * m

    def combined(self, lnm, r):
        """Pair density from all pairs (see :meth:`integrand`)."""
        return self.integrand(lnm, r, "total")

    def sat_sat_only(self, lnm, r):
        """Pair density from satellite-satellite pairs (see :meth:`integrand`)."""
        return self.integrand(lnm, r, "ss")

    def cen_sat_only(self, lnm, r):
        """Pair density from central-satellite pairs (see :meth:`integrand`)."""
        return self.integrand(lnm, r, "cs")

    # ===========================================================================
    # Mass integral
    # ===========================================================================
    def prefactor(self, r):
        """Normalisation of the mass integral at separation ``r``."""
        return 1.0 / (2 * np.pi * r ** 2 * self.galaxy_density * self.galaxy_density2)

    def mass_limits(self, r):
        """
        Limits of the mass integral at separation ``r``.

        Only haloes whose radius is larger than ``r/2`` can host such pairs.
        """
        mlo = max(self.virial_mass(0.5 * r), self.m_min)

        if mlo >= self.m_max:
            raise IntegrationBoundsError(
                f"No haloes contribute at r={r}: lower mass limit {mlo:.3e} is not "
                f"below m_max={self.m_max:.3e}"
            )
        return mlo, self.m_max

    def tabulate_point(self, r, term="total"):
        """The one-halo term at a single separation, from direct integration."""
        if term not in _TERMS:
            raise ValueError(f"term must be one of {_TERMS}, got '{term}'")

        mlo, mhi = self.mass_limits(r)
        integral = self.quad(
            lambda lnm: self.integrand(lnm, r, term), np.log(mlo), np.log(mhi)
        )

        if integral == 0:
            self.degenerate_points.append(r)
            warnings.warn(
                f"The one-halo mass integral is exactly zero at r={r}.",
                DegenerateIntegralWarning,
            )

        return self.prefactor(r) * integral

    @property
    def degenerate(self) -> bool:
        """Whether any point of the current tabulation had a vanishing integral."""
        return bool(self.degenerate_points)

    # ===========================================================================
    # Tabulation
    # ===========================================================================
    def r_grid(self, n):
        """The ``n`` log-spaced separations of the tabulation."""
        r = np.exp(np.linspace(np.log(RMIN), np.log(self.rmax), n))

        # Pin the ends so the tabulated range is exact.
        r[0], r[-1] = RMIN, self.rmax
        return r

    def _diagnostic_file(self):
        if self.output_level > 2:
            return open(f"{self.run_label}.1halo", "a")
        return contextlib.nullcontext()

    def build_table(self, n):
        """
        Tabulate the one-halo term at ``n`` separations.

        Separations are done in increasing order, and the tabulation stops at the first
        value below :data:`EARLY_STOP_THRESHOLD`. All later values are zero.
        """
        r = self.r_grid(n)
        xi = np.zeros(n)
        self.degenerate_points = []

        logger.debug("Tabulating one-halo term at %d points up to r=%.3f", n, r[-1])

        with self._diagnostic_file() as fl:
            for i, rr in enumerate(r):
                xi[i] = self.tabulate_point(rr)

                if self.output_level > 1:
                    logger.info("%f %e %e", rr, xi[i], self.prefactor(rr))
                if fl is not None:
                    np.savetxt(fl, [[rr, xi[i], self.prefactor(rr)]])

                if xi[i] < EARLY_STOP_THRESHOLD:
                    logger.debug("One-halo term negligible beyond r=%.3f", rr)
                    break

        return OneHaloTable(r=r, xi=xi)

    # ===========================================================================
    # Cached evaluation
    # ===========================================================================
    @property
    def table(self) -> OneHaloTable:
        """The current tabulation (built if necessary)."""
        return self._interp.table

    @property
    def state(self) -> tools.CacheState:
        """The state of the cached tabulation."""
        return self._interp.state

    @property
    def n_builds(self) -> int:
        """The number of times the table has been built."""
        return self._interp.n_builds

    def invalidate(self):
        """Mark the tabulation as stale, e.g. after changing any ingredient in place."""
        self._interp.invalidate()

    def __call__(self, r):
        """The one-halo term at ``r``. Zero outside the tabulated range."""
        if not self.enabled:
            return tools._zero(r)

        out = self._interp(r)

        # Spline overshoot near the early-stop cut must not yield negative pair counts.
        if np.isscalar(out):
            return max(out, 0.0)
        return np.clip(out, 0, None)

    def split_terms(self, r):
        """
        The satellite-satellite and central-satellite terms at ``r``, integrated directly.

        These are not cached. Separations outside the tabulated range give zero.
        """
        r = np.atleast_1d(r)
        ss = np.zeros(len(r))
        cs = np.zeros(len(r))
        for i, rr in enumerate(r):
            if not self.enabled or rr < RMIN or rr > self.rmax:
                continue
            ss[i] = self.tabulate_point(rr, "ss")
            cs[i] = self.tabulate_point(rr, "cs")
        return ss, cs
