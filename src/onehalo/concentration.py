"""
Module defining concentration-mass relations.

This module defines a base :class:`CMRelation` component class, and a number of specific
concentration-mass relations. In addition, it defines a factory function
:func:`make_colossus_cm` which helps with integration with the ``colossus`` cosmology
code, so that any of the models from ``colossus`` can be used in a native way.

Examples
--------
A simple example of using a native concentration-mass relation::

>>> from onehalo.concentration import Duffy08
>>> duffy = Duffy08()
>>> m = np.logspace(10, 15, 100)
>>> plt.plot(m, duffy.cm(m, z=0))

Constructing and using a colossus-based relation::

>>> from onehalo.concentration import make_colossus_cm
>>> diemer = make_colossus_cm(model='diemer15', statistic='median')()
>>> plt.plot(m, diemer.cm(m, z=1))

Note the extra function call on the second line here -- :func:`make_colossus_cm`
returns a *class*, not an instance.
"""
import warnings
from typing import Optional

from astropy.cosmology import Planck15
from colossus.halo import concentration
from hmf import Component
from hmf._internals import pluggable
from hmf.cosmology.cosmo import astropy_to_colossus
from hmf.halos.mass_definitions import (
    MassDefinition,
    SOCritical,
    SOMean,
    SOVirial,
    from_colossus_name,
)


@pluggable
class CMRelation(Component):
    r"""
    Base-class for Concentration-Mass relations

    Parameters
    ----------
    cosmo : :class:`astropy.cosmology.FLRW` instance, optional
        The cosmology.
    mdef : :class:`hmf.halos.mass_definitions.MassDefinition` instance, optional
        The mass definition of input masses. Defaults to the first native definition
        of the model.
    mstar : float, optional
        The nonlinear mass at the desired redshift. Only used by models which need it.
    \*\*model_parameters : unpacked-dictionary
        These parameters are model-specific. For any model, list the available
        parameters (and their defaults) using ``<model>._defaults``
    """

    _defaults = {}

    native_mdefs = tuple()

    def __init__(
        self,
        cosmo=Planck15,
        mdef: Optional[MassDefinition] = None,
        mstar: Optional[float] = None,
        **model_parameters,
    ):
        self.cosmo = cosmo
        self.mstar = mstar
        self.mdef = self.native_mdefs[0] if mdef is None else mdef

        if self.mdef not in self.native_mdefs:
            warnings.warn(
                f"Requested mass definition '{mdef}' is not in native definitions for "
                f"the '{self.__class__.__name__}' CMRelation. No mass conversion will be "
                f"performed, so results will be wrong. Using '{self.mdef}'."
            )

        super().__init__(**model_parameters)

    def cm(self, m, z=0):
        """
        Return concentration parameter for mass m at z.

        Parameters
        ----------
        m : float or array
            Halo Mass.
        z : float
            Redshift. Must not be an array.
        """
        raise NotImplementedError


def make_colossus_cm(model="diemer15", **defaults):
    r"""
    A factory function which helps with integration with the ``colossus`` cosmology code.
    See :mod:`~onehalo.concentration` for an example of how to use it.

    Notice that it returns a *class* :class:`CustomColossusCM` not an instance.
    """

    class CustomColossusCM(CMRelation):
        _model_name = model
        _defaults = defaults
        native_mdefs = tuple(
            from_colossus_name(d) for d in concentration.models[model].mdefs
        )

        def __init__(self, *args, sigma8=0.8, ns=1, **kwargs):
            super().__init__(*args, **kwargs)
            astropy_to_colossus(self.cosmo, sigma8=sigma8, ns=ns)

        def cm(self, m, z=0):
            return concentration.concentration(
                M=m,
                mdef=self.mdef.colossus_name,
                z=z,
                model=self._model_name,
                range_return=False,
                range_warning=True,
                **self.params,
            )

    CustomColossusCM.__name__ = model.capitalize()
    CustomColossusCM.__qualname__ = model.capitalize()

    return CustomColossusCM


class Bullock01Power(CMRelation):
    r"""
    Extended Concentration-Mass relation of Bullock et al.(2001) [1]_.

    Notes
    -----
    The form of the concentration is

    ..math:: c_{\rm vir} = a/(1+z)^c\big(\frac{m}{m_s}\big)^b

    where a,b,c,ms are model parameters.

    Other Parameters
    ----------------
    a, b, c: float
        Default value is ``a=9.0``, ``b=-0.13`` and ``c=1.0``.

    ms: float
        Default value is ``None``, where it's set to be the non-linear mass passed as
        ``mstar``.

    References
    ----------
    .. [1] Bullock, J.S. et al., " Profiles of dark haloes:
           evolution, scatter and environment ",
           https://ui.adsabs.harvard.edu/abs/2001MNRAS.321..559B.
    """
    _defaults = {"a": 9.0, "b": -0.13, "c": 1.0, "ms": None}
    native_mdefs = (SOCritical(),)

    def _cm(self, m, ms, a, b, c, z=0):
        return a / (1 + z) ** c * (m / ms) ** b

    def cm(self, m, z=0):
        ms = self.params["ms"] or self.mstar
        if ms is None:
            raise ValueError(
                f"{self.__class__.__name__} needs either the 'ms' parameter or mstar"
            )
        return self._cm(m, ms, self.params["a"], self.params["b"], self.params["c"], z)


class Duffy08(Bullock01Power):
    r"""
    The power-law fits of Duffy et al.(2008) [1]_, for NFW haloes in WMAP5 simulations.

    The form is that of :class:`Bullock01Power`, with a fixed pivot mass and a set of
    ``(a, b, c)`` fitted separately for each mass definition. Any of ``a``, ``b`` or
    ``c`` given explicitly overrides the fitted value.

    Other Parameters
    ----------------
    ms: float
        Pivot mass, default ``2e12``.
    sample : str
        Which haloes the fit was made to: "relaxed" (default) or "full".

    References
    ----------
    .. [1] Duffy, A. R. et al., "Dark matter halo concentrations in the
           Wilkinson Microwave Anisotropy Probe year 5 cosmology ",
           https://ui.adsabs.harvard.edu/abs/2008MNRAS.390L..64D.
    """

    _defaults = {"a": None, "b": None, "c": None, "ms": 2e12, "sample": "relaxed"}
    native_mdefs = (SOCritical(), SOMean(), SOVirial())

    # (a, b, c) for each mass definition and sample (Table 1 of the paper).
    fits = {
        ("200c", "full"): (5.71, -0.084, 0.47),
        ("200c", "relaxed"): (6.71, -0.091, 0.44),
        ("vir", "full"): (7.85, -0.081, 0.71),
        ("vir", "relaxed"): (9.23, -0.09, 0.69),
        ("200m", "full"): (10.14, -0.081, 1.01),
        ("200m", "relaxed"): (11.93, -0.09, 0.99),
    }

    def cm(self, m, z=0):
        name = self.mdef.colossus_name
        if (name, self.params["sample"]) not in self.fits:
            name = "200c"

        fitted = self.fits[(name, self.params["sample"])]
        a, b, c = (
            fitted[i] if self.params[p] is None else self.params[p]
            for i, p in enumerate("abc")
        )
        return self._cm(m, self.params["ms"], a, b, c, z)
