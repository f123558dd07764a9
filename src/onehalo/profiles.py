"""
Module defining the distribution of galaxy-pair separations within haloes.

The one-halo term needs, for a halo of a given concentration, the probability
distribution of the separation of a pair of galaxies in that halo. Two kinds of pair
are considered:

* central-satellite pairs, whose separation is simply the radial position of the
  satellite, and so is distributed as the (mass-normalised) enclosed-mass profile;
* satellite-satellite pairs, whose separation is distributed as the self-convolution of
  the density profile.

Both distributions are expressed in terms of ``x = r / (2 R_vir)``, so that all pairs
lie in ``0 <= x <= 1``, and both are normalised to unit integral over ``x``.

Subclasses provide the dimensionless density shape ``_f(x)`` (with ``x`` in units of the
scale radius), the enclosed "mass" ``_h(c)`` and, optionally, the self-convolution
``_l(x, c)``. See :class:`NFW` for an example.

Examples
--------
>>> from onehalo.profiles import NFW
>>> prof = NFW()
>>> x = np.linspace(0.01, 1, 50)
>>> plt.plot(x, prof.dFdx_cs(x, c=5.0))
>>> plt.plot(x, prof.dFdx_ss(x, c=5.0))
"""
import numpy as np
from hmf import Component
from hmf._internals import pluggable


@pluggable
class PairProfile(Component):
    """
    Pair-separation distributions of galaxies in a halo.

    This class should not be called directly. Subclasses must define the profile
    shape ``_f(x)`` and its enclosed mass ``_h(c)``; if the profile self-convolution
    ``_l(x, c)`` is known, satellite-satellite distributions are also available.
    """

    _defaults = {}

    def __init__(self, **model_parameters):
        self.has_lam = hasattr(self, "_l")
        super().__init__(**model_parameters)

    def _f(self, x):
        raise NotImplementedError

    def _h(self, c):
        raise NotImplementedError

    def dFdx_cs(self, x, c):
        """
        Distribution of central-satellite pair separations.

        Parameters
        ----------
        x : float or array
            Separation in units of twice the virial radius.
        c : float or array
            Concentration of the halo.
        """
        x = np.asarray(x, dtype=float)
        y = 2 * x
        out = np.where(
            y <= 1,
            2 * c ** 3 * y ** 2 * self._f(np.maximum(c * y, 1e-30)) / self._h(c),
            0.0,
        )
        return out if out.ndim else float(out)

    def dFdx_ss(self, x, c):
        """
        Distribution of satellite-satellite pair separations.

        Parameters
        ----------
        x : float or array
            Separation in units of twice the virial radius.
        c : float or array
            Concentration of the halo.
        """
        if not self.has_lam:
            raise AttributeError("this pair profile has no self-convolution defined.")

        x = np.asarray(x, dtype=float)
        s = 2 * c * x
        out = c * s ** 2 * self._l(s, c) / (2 * np.pi * self._h(c) ** 2)
        out = np.reshape(out, np.shape(s))
        return out if out.ndim else float(out)


class NFW(PairProfile):
    r"""
    Canonical Density Profile of Navarro, Frenk & White(1997).

    This model has no free parameters.

    Notes
    -----
    The density has the form

    .. math:: \rho(r) = \frac{\rho_s}{r/R_s\big(1+r/R_s\big)^2}

    and its truncated self-convolution follows Sheth et al. (2001).

    References
    ----------
    .. [1] Navarro, Julio F., Frenk, Carlos S. and White, Simon D. M., "A Universal Density Profile
           from Hierarchical Clustering",
           https://ui.adsabs.harvard.edu/abs/1997ApJ...490..493N.
    .. [2] Sheth, R. K. et al., "The halo model of large scale structure",
           https://ui.adsabs.harvard.edu/abs/2001MNRAS.325.1288S.
    """

    def _f(self, x):
        return 1.0 / (x * (1 + x) ** 2)

    def _h(self, c):
        return np.log(1.0 + c) - c / (1.0 + c)

    def _l(self, x, c):
        x, c = np.broadcast_arrays(np.atleast_1d(np.asarray(x, dtype=float)), c)
        result = np.zeros(x.shape)

        if np.all(x >= 2 * c):
            return result  # Stays as zero

        # Get low values
        mask = np.logical_and(x > 0, x <= c)
        if np.any(mask):
            x_lo = x[mask]
            a_lo = 1.0 / c[mask]

            f2_lo = (
                -4 * (1 + a_lo) + 2 * a_lo * x_lo * (1 + 2 * a_lo) + (a_lo * x_lo) ** 2
            )
            f2_lo /= 2 * (x_lo * (1 + a_lo)) ** 2 * (2 + x_lo)
            f3_lo = (
                np.log((1 + a_lo - a_lo * x_lo) * (1 + x_lo) / (1 + a_lo)) / x_lo ** 3
            )
            f4 = np.log(1 + x_lo) / (x_lo * (2 + x_lo) ** 2)
            result[mask] = 4 * np.pi * (f2_lo + f3_lo + f4)

        # And high values
        mask = np.logical_and(x > c, x < 2 * c)
        if np.any(mask):
            x_hi = x[mask]
            a_hi = 1.0 / c[mask]

            f2_hi = np.log((1 + a_hi) / (a_hi + a_hi * x_hi - 1)) / (
                x_hi * (2 + x_hi) ** 2
            )
            f3_hi = (x_hi * a_hi ** 2 - 2 * a_hi) / (
                2 * x_hi * (1 + a_hi) ** 2 * (2 + x_hi)
            )
            result[mask] = 4 * np.pi * (f2_hi + f3_hi)

        return result
