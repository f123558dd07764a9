"""
Tests of the tabulated real-space one-halo term, using simple stand-in ingredients.
"""
import numpy as np
import pytest

from onehalo.one_halo import (
    EARLY_STOP_THRESHOLD,
    RMIN,
    DegenerateIntegralWarning,
    IntegrationBoundsError,
    RealSpaceOneHalo,
)
from onehalo.hod import Zheng05
from onehalo.tools import CacheState, quad_open


def test_grid_is_log_uniform(xi):
    n = len(xi.table.r)
    assert n == 100

    delta = (np.log(xi.rmax) - np.log(RMIN)) / (n - 1)
    expected = np.exp(np.arange(n) * delta + np.log(RMIN))

    assert np.all(np.diff(xi.table.r) > 0)
    assert np.allclose(xi.table.r, expected, rtol=1e-12)
    assert xi.table.r[0] == RMIN
    assert xi.table.r[-1] == xi.rmax


def test_rmax_is_below_two_virial_radii(xi):
    assert xi.rmax == pytest.approx(1.9 * xi.virial_radius(1e15))
    assert xi.rmax < 2 * xi.virial_radius(1e15)


def test_out_of_range_is_zero(xi):
    r = xi.table.r
    assert xi(0.5 * r[0]) == 0
    assert xi(r[-1] * 1.01) == 0
    assert np.all(xi(np.array([1e-4, 1e-3, 2 * r[-1], 10 * r[-1]])) == 0)


def test_first_sample_is_served_exactly(xi):
    assert xi(0.01) == pytest.approx(xi.table.xi[0], rel=1e-12)
    assert xi(2 * xi.rmax) == 0


def test_tabulated_values_are_served(xi):
    r = xi.table.r[:20]
    assert np.allclose(xi(r), np.clip(xi.table.xi[:20], 0, None), rtol=1e-8)


def test_non_negative(xi):
    r = np.logspace(np.log10(RMIN), np.log10(xi.rmax), 500)
    assert np.all(xi(r) >= 0)
    assert np.all(xi.table.xi >= 0)


def test_decreasing_at_small_scales(xi):
    assert xi.table.xi[0] > xi.table.xi[10] > xi.table.xi[30] > 0


def test_early_termination_zeros_the_tail(ingredients):
    # Mass ranges starting above 1e13 integrate to almost nothing, so the term drops
    # below the threshold near r = 1.
    cut = np.log(1e13)

    def quad(f, a, b):
        return quad_open(f, a, b) if a < cut else 1e-30

    xi = RealSpaceOneHalo(quad=quad, n_table=30, **ingredients)
    table = xi.table
    first = np.where(table.xi < EARLY_STOP_THRESHOLD)[0][0]

    assert 0 < first < 29
    assert np.all(table.xi[:first] >= EARLY_STOP_THRESHOLD)
    assert table.xi[first] > 0
    assert np.all(table.xi[first + 1 :] == 0)


def test_idempotent_single_build(ingredients):
    xi = RealSpaceOneHalo(n_table=30, **ingredients)
    assert xi.state is CacheState.UNINITIALIZED

    first = xi(0.3)
    calls = ingredients["dndm"].calls
    second = xi(0.3)

    assert first == second
    assert xi.n_builds == 1
    assert ingredients["dndm"].calls == calls
    assert xi.state is CacheState.BUILT


def test_invalidate_rebuilds(ingredients):
    xi = RealSpaceOneHalo(n_table=30, **ingredients)
    before = xi(0.3)
    r_before = xi.table.r.copy()

    xi.invalidate()
    assert xi.state is CacheState.STALE
    assert xi.n_builds == 1

    calls = ingredients["dndm"].calls
    after = xi(0.3)

    assert xi.state is CacheState.BUILT
    assert xi.n_builds == 2
    assert ingredients["dndm"].calls > calls
    assert len(xi.table.r) == 30
    assert np.array_equal(xi.table.r, r_before)
    assert after == pytest.approx(before)


def test_invalidate_picks_up_changed_ingredients(ingredients):
    xi = RealSpaceOneHalo(n_table=30, **ingredients)
    before = xi(0.3)

    xi.hod.params["M_1"] = 13.5
    assert xi(0.3) == before  # still cached

    xi.invalidate()
    assert xi(0.3) < before


def test_disabled_never_touches_mass_function(ingredients):
    xi = RealSpaceOneHalo(enabled=False, **ingredients)

    assert xi(0.1) == 0
    assert np.all(xi(np.logspace(-2, 0, 10)) == 0)
    assert ingredients["dndm"].calls == 0
    assert xi.state is CacheState.UNINITIALIZED


def test_zero_quadrature_flags_degenerate_point(ingredients):
    xi = RealSpaceOneHalo(quad=lambda f, a, b: 0.0, **ingredients)

    with pytest.warns(DegenerateIntegralWarning):
        table = xi.table

    assert np.all(table.xi == 0)
    assert xi.degenerate
    assert xi.degenerate_points == [RMIN]


def test_early_stop_skips_remaining_points(ingredients):
    values = iter([5.0, 2.0, 1.0, 1e-20, 3.0, 3.0])
    calls = []

    def quad(f, a, b):
        calls.append((a, b))
        return next(values)

    xi = RealSpaceOneHalo(quad=quad, n_table=10, **ingredients)
    table = xi.table

    assert len(calls) == 4
    assert len(table.xi) == 10
    assert np.all(table.xi[:3] > 0)
    assert np.all(table.xi[3:] < EARLY_STOP_THRESHOLD)
    assert np.all(table.xi[4:] == 0)


def test_integration_limits(ingredients):
    xi = RealSpaceOneHalo(**ingredients)

    # Small separations are limited by the minimum mass.
    assert xi.mass_limits(0.01) == (1e11, 1e15)

    # Large separations need haloes at least r/2 in radius.
    r = 2.0
    mlo, mhi = xi.mass_limits(r)
    assert mlo == pytest.approx(xi.virial_mass(1.0))
    assert xi.virial_radius(mlo) == pytest.approx(1.0)
    assert mhi == 1e15


def test_empty_mass_range_raises(ingredients):
    ingredients["m_min"] = 1e16
    xi = RealSpaceOneHalo(**ingredients)

    with pytest.raises(IntegrationBoundsError):
        xi(0.1)


def test_integrand_variants_sum(ingredients):
    xi = RealSpaceOneHalo(**ingredients)
    for lnm in np.log([2e11, 1e13, 5e14]):
        for r in (0.05, 0.5):
            total = xi.combined(lnm, r)
            assert total == pytest.approx(
                xi.sat_sat_only(lnm, r) + xi.cen_sat_only(lnm, r), rel=1e-12
            )
            assert total >= 0


def test_integrand_vanishes_beyond_halo(ingredients):
    xi = RealSpaceOneHalo(**ingredients)
    m = 1e12
    r = 2.5 * xi.virial_radius(m)
    assert xi.combined(np.log(m), r) == 0


def test_split_terms(ingredients):
    xi = RealSpaceOneHalo(**ingredients)
    r = np.array([0.005, 0.1, 0.5, 10 * xi.rmax])
    ss, cs = xi.split_terms(r)

    assert ss[0] == cs[0] == 0
    assert ss[-1] == cs[-1] == 0
    assert np.all(ss >= 0)
    assert np.all(cs >= 0)
    assert ss[1] + cs[1] == pytest.approx(xi.tabulate_point(0.1), rel=1e-3)


def test_bad_term(ingredients):
    xi = RealSpaceOneHalo(**ingredients)
    with pytest.raises(ValueError):
        xi.tabulate_point(0.1, term="cc")


def test_cross_density_normalisation(ingredients):
    auto = RealSpaceOneHalo(**ingredients)
    cross = RealSpaceOneHalo(galaxy_density2=2e-3, **ingredients)

    assert cross.tabulate_point(0.2) == pytest.approx(0.5 * auto.tabulate_point(0.2))


@pytest.mark.parametrize("density", (0, -1e-3))
def test_bad_density(ingredients, density):
    ingredients["galaxy_density"] = density
    with pytest.raises(ValueError):
        RealSpaceOneHalo(**ingredients)


def test_diagnostic_file(ingredients, tmp_path):
    label = tmp_path / "run"

    quiet = RealSpaceOneHalo(n_table=20, **ingredients)
    loud = RealSpaceOneHalo(n_table=20, output_level=3, run_label=str(label), **ingredients)

    assert np.array_equal(quiet.table.xi, loud.table.xi)

    data = np.atleast_2d(np.loadtxt(f"{label}.1halo"))
    below = np.where(loud.table.xi < EARLY_STOP_THRESHOLD)[0]
    n_done = below[0] + 1 if len(below) else 20

    assert data.shape[1] == 3
    assert len(data) == n_done
    assert np.allclose(data[:, 0], loud.table.r[: len(data)])
    assert np.allclose(data[:, 1], loud.table.xi[: len(data)])


def test_verbose_logging(ingredients, caplog):
    xi = RealSpaceOneHalo(n_table=5, output_level=2, **ingredients)

    with caplog.at_level("INFO", logger="onehalo.one_halo"):
        xi.table

    assert len(caplog.records) >= 1
    assert all(rec.levelname == "INFO" for rec in caplog.records)


@pytest.mark.parametrize("central", (False, True))
def test_cen_sat_weighted_by_pair_counts(ingredients, central):
    ingredients["hod"] = Zheng05(central=central)
    xi = RealSpaceOneHalo(**ingredients)

    m, r = 10 ** 11.7, 0.05
    rvir = 2 * xi.virial_radius(m)
    c = ingredients["concentration"](m)
    expected = (
        ingredients["dndm"](m)
        * xi.pair_profile.dFdx_cs(r / rvir, c)
        * xi.hod.central_occupation(m)
        * xi.hod._satellite_occupation(np.asarray(m))
        / rvir
        * m
    )

    # The central occupation enters once, whether or not satellites require a central.
    assert xi.cen_sat_only(np.log(m), r) == pytest.approx(expected, rel=1e-12)
    assert xi.cen_sat_only(np.log(m), r) == pytest.approx(
        ingredients["dndm"](m) * xi.pair_profile.dFdx_cs(r / rvir, c)
        * xi.hod.cs_pairs(m) / rvir * m,
        rel=1e-12,
    )
