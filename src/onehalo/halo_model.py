"""
Framework combining all components necessary to compute the one-halo term
(mass function, concentration-mass relation, HOD and pair-separation profile).

:class:`OneHaloModel` is subclassed from hmf's ``MassFunction``, and operates in a
similar manner: every input is a parameter which may be changed via :meth:`update`,
and every derived quantity is cached until one of the parameters it depends on changes.

Examples
--------
>>> from onehalo import OneHaloModel
>>> hm = OneHaloModel(hod_model="Zheng05", transfer_model="EH")
>>> plt.plot(hm.r, hm.corr_1h_real_space)
>>> hm.update(hod_params={"M_1": 13.0})
>>> plt.plot(hm.r, hm.corr_1h_real_space)
"""
import numpy as np
from hmf import MassFunction, cached_quantity, parameter
from hmf._internals import get_mdl

from . import tools
from .concentration import CMRelation
from .hod import HOD
from .one_halo import RealSpaceOneHalo
from .profiles import PairProfile


class OneHaloModel(MassFunction):
    """
    Real-space one-halo term of a galaxy population described by a HOD.

    Parameters
    ----------
    rmin : float or array-like, optional
        Minimum length scale at which to evaluate :attr:`corr_1h_real_space`, in
        Mpc/h. Alternatively, if an array, this is used to specify the entire array of
        scales and `rmax`, `rnum` and `rlog` are ignored.
    rmax : float, optional
        Maximum length scale, in Mpc/h.
    rnum : int, optional
        The number of scales.
    rlog : bool, optional
        Whether the array of scales is regular in log-space.
    hod_model : str or :class:`~hod.HOD` subclass, optional
        A model for the halo occupation distribution.
    hod_params : dict, optional
        Parameters for the HOD model.
    halo_concentration_model : str or :class:`~concentration.CMRelation` subclass, optional
        The model for the concentration-mass relation of the halos.
    halo_concentration_params : dict, optional
        Parameters for the concentration-mass relation.
    pair_profile_model : str or :class:`~profiles.PairProfile` subclass, optional
        The model for the distribution of pair separations within halos.
    pair_profile_params : dict, optional
        Parameters for the pair profile model.
    cvir_fac : float, optional
        Factor multiplying all concentrations.
    galaxy_density : float, optional
        Mean density of the galaxies. By default, the density implied by the HOD.
    galaxy_density2 : float, optional
        Mean density of a second galaxy sample, for cross-correlations. By default,
        the same as `galaxy_density`.
    include_1halo : bool, optional
        Whether to compute the one-halo term at all. If False, it is zero.
    n_table : int, optional
        Number of separations at which the one-halo term is tabulated.
    output_level : int, optional
        Verbosity of the tabulation (see :class:`~one_halo.RealSpaceOneHalo`).
    run_label : str, optional
        Label used to name diagnostic output files.

    Other Parameters
    ----------------
    All other parameters are passed to :class:`~MassFunction`.
    """

    def __init__(
        self,
        rmin=0.01,
        rmax=10.0,
        rnum=50,
        rlog=True,
        hod_model="Zehavi05",
        hod_params=None,
        halo_concentration_model="Duffy08",
        halo_concentration_params=None,
        pair_profile_model="NFW",
        pair_profile_params=None,
        cvir_fac=1.0,
        galaxy_density=None,
        galaxy_density2=None,
        include_1halo=True,
        n_table=100,
        output_level=0,
        run_label="onehalo",
        Mmin=10,
        Mmax=15,
        **hmf_kwargs,
    ):
        super().__init__(Mmin=Mmin, Mmax=Mmax, **hmf_kwargs)

        self.rmin = rmin
        self.rmax = rmax
        self.rnum = rnum
        self.rlog = rlog

        self.hod_model, self.hod_params = hod_model, hod_params or {}
        self.halo_concentration_model, self.halo_concentration_params = (
            halo_concentration_model,
            halo_concentration_params or {},
        )
        self.pair_profile_model, self.pair_profile_params = (
            pair_profile_model,
            pair_profile_params or {},
        )

        self.cvir_fac = cvir_fac
        self.galaxy_density = galaxy_density
        self.galaxy_density2 = galaxy_density2
        self.include_1halo = include_1halo
        self.n_table = n_table
        self.output_level = output_level
        self.run_label = run_label

    # ===============================================================================
    # Parameters
    # ===============================================================================
    def validate(self):
        super().validate()
        if not hasattr(self.rmin, "__len__"):
            assert self.rmin < self.rmax, f"rmin >= rmax: {self.rmin}, {self.rmax}"
        assert len(self.r) > 0, "r has length zero!"
        assert self.n_table >= 2, f"n_table must be at least 2, got {self.n_table}"
        for name in ("galaxy_density", "galaxy_density2"):
            val = getattr(self, name)
            assert val is None or val > 0, f"{name} must be positive, got {val}"

    @parameter("switch")
    def rmin(self, val):
        """Minimum length scale."""
        return val

    @parameter("res")
    def rmax(self, val):
        """Maximum length scale."""
        return float(val)

    @parameter("res")
    def rnum(self, val):
        """Number of r bins."""
        return int(val)

    @parameter("option")
    def rlog(self, val):
        """If True, r bins are logarithmically distributed."""
        return bool(val)

    @parameter("model")
    def hod_model(self, val):
        """:class:`~hod.HOD` class."""
        return get_mdl(val, HOD)

    @parameter("param")
    def hod_params(self, val: dict):
        """Dictionary of parameters for the HOD model."""
        return val

    @parameter("model")
    def halo_concentration_model(self, val):
        """A halo_concentration-mass relation"""
        return get_mdl(val, CMRelation)

    @parameter("param")
    def halo_concentration_params(self, val):
        """Dictionary of parameters for the concentration model."""
        return val

    @parameter("model")
    def pair_profile_model(self, val):
        """The model for pair separations within halos."""
        return get_mdl(val, PairProfile)

    @parameter("param")
    def pair_profile_params(self, val):
        """Dictionary of parameters for the PairProfile model."""
        return val

    @parameter("param")
    def cvir_fac(self, val):
        """Factor multiplying all halo concentrations."""
        return float(val)

    @parameter("param")
    def galaxy_density(self, val):
        """Mean density of the galaxies, ONLY if passed directly."""
        return val if val is None else float(val)

    @parameter("param")
    def galaxy_density2(self, val):
        """Mean density of the second galaxy sample, ONLY if passed directly."""
        return val if val is None else float(val)

    @parameter("switch")
    def include_1halo(self, val):
        """Whether the one-halo term is computed."""
        return bool(val)

    @parameter("res")
    def n_table(self, val):
        """Number of separations in the one-halo table."""
        return int(val)

    @parameter("option")
    def output_level(self, val):
        """Verbosity of the one-halo tabulation."""
        return int(val)

    @parameter("option")
    def run_label(self, val):
        """Label used to name diagnostic output files."""
        return str(val)

    # ===========================================================================
    # Basic Quantities
    # ===========================================================================
    @cached_quantity
    def r(self):
        """
        Scales at which correlation functions are computed [Mpc/h].
        """
        if hasattr(self.rmin, "__len__"):
            r = np.array(self.rmin)
        else:
            if self.rlog:
                r = np.exp(np.linspace(np.log(self.rmin), np.log(self.rmax), self.rnum))
            else:
                r = np.linspace(self.rmin, self.rmax, self.rnum)

        return r

    @cached_quantity
    def omega_m(self):
        """The matter density parameter."""
        return self.cosmo.Om0

    @cached_quantity
    def rho_crit(self):
        """The critical density at z=0 [Msun h^2/Mpc^3]."""
        return self.mean_density0 / self.omega_m

    @cached_quantity
    def delta_halo(self):
        """The halo overdensity with respect to the mean density."""
        return self.halo_overdensity_mean

    @cached_quantity
    def dndm_fnc(self):
        """A callable returning the mass function dn/dm at any mass."""
        mask = self.dndm > 0
        spl = tools.ExtendedSpline(np.log(self.m[mask]), np.log(self.dndm[mask]))
        return lambda m: np.exp(spl(np.log(m)))

    @cached_quantity
    def halo_concentration(self):
        """The concentration-mass relation."""
        return self.halo_concentration_model(
            cosmo=self.cosmo,
            mdef=self.mdef,
            mstar=self.mass_nonlinear,
            **self.halo_concentration_params,
        )

    @cached_quantity
    def hod(self):
        """A class representing the HOD"""
        return self.hod_model(**self.hod_params)

    @cached_quantity
    def pair_profile(self):
        """A class describing the distribution of pair separations in halos."""
        return self.pair_profile_model(**self.pair_profile_params)

    @cached_quantity
    def m_min(self):
        """The lower mass limit of the one-halo integral."""
        return max(10 ** self.Mmin, 10 ** self.hod.mmin)

    @cached_quantity
    def m_max(self):
        """The upper mass limit of the one-halo integral."""
        return 10 ** self.Mmax

    # ===========================================================================
    # Basic HOD Quantities
    # ===========================================================================
    @cached_quantity
    def central_occupation(self):
        """The mean central occupation of the tracer as a function of halo mass."""
        return self.hod.central_occupation(self.m)

    @cached_quantity
    def satellite_occupation(self):
        """The mean satellite occupation of the tracer as a function of halo mass."""
        return self.hod.satellite_occupation(self.m)

    @property
    def _central_occupation(self):
        """The central occupation to use when integrating over mass.

        If a sharp cut happens, we need to make sure the spline carries all the way
        through past the mmin as unity. Setting the pixel below mmin to zero causes a
        bad spline.
        """
        return (
            np.ones_like(self.m) if self.hod.sharp_cut else self.central_occupation
        )

    @property
    def tracer_mmin(self):
        """The minimum halo mass of integrals over the tracer population."""
        if self.hod.sharp_cut:
            return 10 ** self.hod.mmin
        else:
            return None

    @cached_quantity
    def mean_tracer_den(self):
        """
        The mean density of the tracer, integrated from the HOD.
        """
        return tools.spline_integral(
            self.m,
            self.dndm * (self._central_occupation + self.satellite_occupation),
            xmin=self.tracer_mmin,
        )

    @cached_quantity
    def satellite_fraction(self):
        """The total fraction of tracers that are satellites."""
        s = tools.spline_integral(
            self.m, self.dndm * self.satellite_occupation, xmin=self.tracer_mmin
        )
        return s / self.mean_tracer_den

    @cached_quantity
    def pair_density(self):
        """The two galaxy densities normalising the pair counts."""
        n1 = self.galaxy_density or self.mean_tracer_den
        n2 = self.galaxy_density2 or n1
        return n1, n2

    # ===========================================================================
    # One-halo term
    # ===========================================================================
    @cached_quantity
    def corr_1h_real_space_fnc(self):
        """A callable returning the real-space one-halo term of the galaxy correlation."""
        kwargs = dict(
            hod=self.hod,
            pair_profile=self.pair_profile,
            rho_crit=self.rho_crit,
            omega_m=self.omega_m,
            delta_halo=self.delta_halo,
            m_min=self.m_min,
            m_max=self.m_max,
            cvir_fac=self.cvir_fac,
            n_table=self.n_table,
            output_level=self.output_level,
            run_label=self.run_label,
        )

        # A disabled term is never tabulated, so the mass function, concentrations
        # and tracer densities are not computed at all.
        if not self.include_1halo:
            return RealSpaceOneHalo(
                dndm=None, concentration=None, galaxy_density=1.0, enabled=False, **kwargs
            )

        n1, n2 = self.pair_density
        cm = self.halo_concentration
        z = self.z

        return RealSpaceOneHalo(
            dndm=self.dndm_fnc,
            concentration=lambda m: cm.cm(m, z),
            galaxy_density=n1,
            galaxy_density2=n2,
            **kwargs,
        )

    @property
    def corr_1h_real_space(self):
        """The real-space one-halo term of the galaxy correlation, at :attr:`r`."""
        return self.corr_1h_real_space_fnc(self.r)

    @property
    def corr_1h_ss_real_space(self):
        """The satellite-satellite part of the one-halo term at :attr:`r` (uncached)."""
        return self.corr_1h_real_space_fnc.split_terms(self.r)[0]

    @property
    def corr_1h_cs_real_space(self):
        """The central-satellite part of the one-halo term at :attr:`r` (uncached)."""
        return self.corr_1h_real_space_fnc.split_terms(self.r)[1]
