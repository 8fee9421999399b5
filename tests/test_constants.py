"""Test constants and naming conventions."""

import math

from jaxprimordial import constants as const


def test_k_per_decade_min():
    assert const.K_PER_DECADE_PRIMORDIAL_MIN == 1.0


def test_ln10():
    assert const.LN10 == math.log(10.0)


def test_friedmann_prefactor():
    assert abs(const.EIGHT_PI_OVER_3 - 8.37758040957278) < 1e-12


def test_scalar_ic_order():
    """Cross parameters are named in this order (c_ad_bi, c_bi_cdi, ...)."""
    assert const.SCALAR_ICS == ("ad", "bi", "cdi", "nid", "niv")
    assert const.ISOCURVATURE_ICS == const.SCALAR_ICS[1:]


def test_spectrum_types():
    assert const.SPECTRUM_TYPES == ("analytic_Pk", "inflation_V")
