"""
Numerical utilities used throughout the package: an open-interval quadrature,
interpolating splines with well-defined out-of-range behaviour, and a lazily
built, invalidatable interpolant over a tabulated function.
"""
import enum
import warnings

import numpy as np
import scipy.integrate as intg
from scipy.interpolate import CubicSpline
from scipy.interpolate import InterpolatedUnivariateSpline as spline

#: Boundary condition for the tabulation splines. A "free" (natural) boundary
#: sets the second derivative to zero at both ends of the table.
NATURAL_BOUNDARY = "natural"


def quad_open(f, a, b, rtol=1e-4, limit=200):
    """
    Integrate ``f`` from ``a`` to ``b``.

    This uses the adaptive QUADPACK routine, which never evaluates the integrand at
    the end-points, so integrands which vanish or diverge there are safe.
    """
    return intg.quad(f, a, b, epsrel=rtol, limit=limit)[0]


def _zero(x):
    """Simple function that returns zeros."""
    if np.isscalar(x):
        return 0.0
    else:
        return np.zeros_like(x)


class ExtendedSpline:
    """Generate a function from data x,y with arbitrary behaviour below and above limit.

    Within the data range, the function is a cubic spline with the boundary condition
    ``bc_type`` (by default :data:`NATURAL_BOUNDARY`). Outside it, ``lower_func`` and
    ``upper_func`` are used. These may be callables, ``"boundary"`` (constant at the
    edge value), or ``None`` (extrapolate the spline).
    """

    def __init__(
        self,
        x: np.ndarray,
        y: np.ndarray,
        lower_func: [callable, None, str] = None,
        upper_func: [callable, None, str] = None,
        bc_type=NATURAL_BOUNDARY,
    ):
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)

        if np.any(np.diff(x) <= 0):
            raise ValueError("x must be strictly increasing")

        self.xmin = x[0]
        self.xmax = x[-1]

        self._spl = CubicSpline(x, y, bc_type=bc_type, extrapolate=True)

        self.lfunc = self._get_extension_func(lower_func, self.xmin)
        self.ufunc = self._get_extension_func(upper_func, self.xmax)

    def _get_extension_func(self, fnc, edge):
        """Function to generate the extended spline"""
        if callable(fnc):
            return fnc
        elif fnc == "boundary":
            return lambda xx: np.ones_like(xx) * self._spl(edge)
        elif fnc is None:
            return self._spl
        else:
            raise ValueError("Invalid choice for lower or upper func")

    def __call__(self, x):
        """Function to call the output"""
        if np.isscalar(x):
            if x < self.xmin:
                return self.lfunc(x)
            elif x > self.xmax:
                return self.ufunc(x)
            else:
                return float(self._spl(x))
        else:
            x = np.array(x, dtype=float)
            out = np.zeros_like(x)
            lmask = x < self.xmin
            umask = x > self.xmax
            mmask = ~(lmask | umask)

            out[lmask] = self.lfunc(x[lmask])
            out[umask] = self.ufunc(x[umask])
            out[mmask] = self._spl(x[mmask])

            return out


class CacheState(enum.Enum):
    """Lifecycle of a :class:`CachedInterpolant`."""

    UNINITIALIZED = "uninitialized"
    BUILT = "built"
    STALE = "stale"


class CachedInterpolant:
    """
    A tabulated function, built on first use and interpolated thereafter.

    Parameters
    ----------
    builder : callable
        ``builder(n)`` must return an object with array attributes ``r`` and ``xi``
        (both of length ``n``, with ``r`` strictly increasing).
    n : int, optional
        The number of tabulated points.

    Notes
    -----
    The interpolant is UNINITIALIZED until the first evaluation, which builds the
    table and fits a natural cubic spline through it (BUILT). :meth:`invalidate` marks
    the table STALE, and the next evaluation rebuilds it. Queries outside the range of
    the table return zero.

    The table and its spline are replaced together, in a single assignment.
    """

    def __init__(self, builder, n: int = 100):
        if n < 2:
            raise ValueError(f"need at least two tabulated points, got n={n}")

        self._builder = builder
        self.n = int(n)
        self._state = CacheState.UNINITIALIZED
        self._snapshot = None
        self.n_builds = 0

    @property
    def state(self) -> CacheState:
        """The current state of the cache."""
        return self._state

    @property
    def table(self):
        """The current table (building it if necessary)."""
        self._ensure_built()
        return self._snapshot[0]

    def invalidate(self):
        """Mark the tabulation as out of date. It will be rebuilt on next use."""
        if self._state is CacheState.BUILT:
            self._state = CacheState.STALE

    def _ensure_built(self):
        if self._state is CacheState.BUILT:
            return

        table = self._builder(self.n)
        fnc = ExtendedSpline(table.r, table.xi, lower_func=_zero, upper_func=_zero)

        self._snapshot = (table, fnc)
        self._state = CacheState.BUILT
        self.n_builds += 1

    def evaluate(self, r):
        """Evaluate the interpolated function at ``r`` (zero outside the table)."""
        self._ensure_built()
        return self._snapshot[1](r)

    __call__ = evaluate


def spline_integral(
    x: np.ndarray,
    f: np.ndarray,
    xmin: [None, float] = None,
    xmax: [None, float] = None,
    log: bool = True,
) -> float:
    """
    Perform an integral using a spline function over a vector of data.

    The purpose of this function is to do robust integration when the bounds of integration
    don't necessarily fall on a particular x co-ordinate. It falls back to integrating
    over all ``x`` if no explicit ``xmin`` is given.

    Parameters
    ----------
    x
        The co-ordinates of the integral
    f
        The integrand at ``x`` (same shape as ``x``).
    xmin
        The lower bound of the integral.
    xmax
        The upper bound of the integral.
    log
        Whether to interpolate the integrand in log space.

    Returns
    -------
    integral
        The integral from ``xmin`` to ``xmax``.
    """
    if xmin and xmin < x.min():
        warnings.warn(
            f"Extrapolation occurs in integral! xmin={xmin} while x.min() ={x.min()}"
        )
    if xmax and xmax > x.max():
        warnings.warn(
            f"Extrapolation occurs in integral! xmax={xmax} while x.max() ={x.max()}"
        )

    if log:
        spl = spline(np.log(x), x * f)
        return spl.integral(
            np.log(xmin) if xmin is not None else np.log(x.min()),
            np.log(xmax) if xmax is not None else np.log(x.max()),
        )
    else:
        spl = spline(x, f)
        return spl.integral(xmin or x.min(), xmax or x.max())
