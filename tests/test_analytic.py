"""Test the analytic amplitude / tilt / running model."""

import math

import jax.numpy as jnp
import numpy as np
import pytest

from jaxprimordial.analytic import (
    analytic_log_spectra,
    analytic_spectra,
    analytic_spectrum,
    correlation_catalogue,
    diagonal_catalogue,
    resolve_coefficients,
)
from jaxprimordial.constants import SCALARS, TENSORS
from jaxprimordial.errors import InvalidAmplitude, InvalidCorrelation
from jaxprimordial.indexing import index_symmetric_matrix
from jaxprimordial.params import PerturbationLayout, PrimordialParams


AD_BI = PerturbationLayout.from_flags(1e-4, 1.0, has_bi=True)
AD_BI_CDI = PerturbationLayout.from_flags(1e-4, 1.0, has_bi=True, has_cdi=True)


class TestCatalogues:

    def test_diagonal_entries(self):
        params = PrimordialParams(A_s=2e-9, n_s=0.96, alpha_s=-0.01, f_cdi=0.3, n_cdi=1.1, r=0.2, n_t=-0.02)
        catalogue = diagonal_catalogue(params)
        assert catalogue[(SCALARS, "ad")] == (2e-9, 0.96, -0.01)
        A, n, alpha = catalogue[(SCALARS, "cdi")]
        assert A == pytest.approx(2e-9 * 0.09)
        assert (n, alpha) == (1.1, 0.0)
        A, n, alpha = catalogue[(TENSORS, "ten")]
        assert A == pytest.approx(4e-10)
        assert n == pytest.approx(0.98)

    def test_correlation_entries_unordered(self):
        params = PrimordialParams(c_bi_nid=0.4, n_bi_nid=0.1)
        catalogue = correlation_catalogue(params)
        assert catalogue[(SCALARS, frozenset(("nid", "bi")))] == (0.4, 0.1, 0.0)
        assert len(catalogue) == 10


class TestResolveCoefficients:

    def test_uncorrelated_pair_not_contributing(self):
        (coeffs,) = resolve_coefficients(PrimordialParams(), AD_BI)
        off = index_symmetric_matrix(0, 1, 2)
        assert not bool(coeffs.is_non_zero[off])
        assert float(coeffs.amplitude[off]) == 0.0
        k = jnp.logspace(-4, 0, 13)
        assert float(jnp.max(jnp.abs(analytic_spectrum(coeffs, off, k, 0.05)))) == 0.0
        assert float(jnp.max(jnp.abs(analytic_spectra(coeffs, k, 0.05)[:, off]))) == 0.0

    def test_correlated_pair(self):
        params = PrimordialParams(f_bi=2.0, n_bi=1.2, alpha_bi=0.02, c_ad_bi=0.5, n_ad_bi=0.03)
        (coeffs,) = resolve_coefficients(params, AD_BI)
        A_ad, A_bi = params.A_s, params.A_s * 4.0
        off = index_symmetric_matrix(0, 1, 2)
        assert bool(coeffs.is_non_zero[off])
        assert float(coeffs.amplitude[off]) == pytest.approx(0.5 * math.sqrt(A_ad * A_bi), rel=1e-14)
        assert float(coeffs.tilt[off]) == pytest.approx(0.5 * (params.n_s + 1.2) + 0.03)
        assert float(coeffs.running[off]) == pytest.approx(0.5 * (0.0 + 0.02))

    def test_pair_order_follows_layout(self):
        """Correlation parameters are found whatever the IC order in the layout."""
        layout = PerturbationLayout(modes=(SCALARS,), ics=(("cdi", "ad"),), k_min=(1e-4,), k_max=(1.0,))
        (coeffs,) = resolve_coefficients(PrimordialParams(c_ad_cdi=-0.3), layout)
        assert float(coeffs.amplitude[1]) < 0.0

    @pytest.mark.parametrize("c", [1.5, -1.01])
    def test_invalid_correlation(self, c):
        with pytest.raises(InvalidCorrelation) as exc:
            resolve_coefficients(PrimordialParams(c_bi_cdi=c), AD_BI_CDI)
        assert exc.value.context["correlation"] == c

    def test_boundary_correlation_allowed(self):
        (coeffs,) = resolve_coefficients(PrimordialParams(c_ad_bi=-1.0), AD_BI)
        assert bool(coeffs.is_non_zero[1])

    def test_invalid_amplitude(self):
        with pytest.raises(InvalidAmplitude):
            resolve_coefficients(PrimordialParams(A_s=0.0), AD_BI)
        with pytest.raises(InvalidAmplitude):
            resolve_coefficients(PrimordialParams(f_bi=0.0), AD_BI)

    def test_tensor_amplitude_requires_r(self):
        layout = PerturbationLayout.from_flags(1e-4, 1.0, has_tensors=True)
        with pytest.raises(InvalidAmplitude) as exc:
            resolve_coefficients(PrimordialParams(r=0.0), layout)
        assert exc.value.context["mode"] == TENSORS

    def test_vectors_have_no_amplitude(self):
        layout = PerturbationLayout.from_flags(1e-4, 1.0, has_vectors=True)
        with pytest.raises(InvalidAmplitude):
            resolve_coefficients(PrimordialParams(), layout)


class TestEvaluation:

    def test_exact_at_pivot(self):
        params = PrimordialParams(A_s=2.1e-9, n_s=0.965, alpha_s=0.01, f_bi=0.7, c_ad_bi=0.5)
        (coeffs,) = resolve_coefficients(params, AD_BI)
        for offset in range(3):
            assert float(analytic_spectrum(coeffs, offset, params.k_pivot, params.k_pivot)) == float(coeffs.amplitude[offset])

    def test_power_law(self):
        params = PrimordialParams(A_s=2.1e-9, n_s=0.965)
        (coeffs,) = resolve_coefficients(params, PerturbationLayout.from_flags(1e-4, 1.0))
        pk = float(analytic_spectrum(coeffs, 0, 0.5, 0.05))
        assert pk == pytest.approx(2.1e-9 * 10.0 ** (0.965 - 1.0), rel=1e-12)

    def test_running(self):
        params = PrimordialParams(A_s=1.0, n_s=1.0, alpha_s=0.1)
        (coeffs,) = resolve_coefficients(params, PerturbationLayout.from_flags(1e-4, 1.0))
        x = math.log(10.0)
        assert float(analytic_spectrum(coeffs, 0, 0.5, 0.05)) == pytest.approx(math.exp(0.05 * x**2))

    def test_tensor_tilt_convention(self):
        """n_t = 0 is scale invariant."""
        layout = PerturbationLayout.from_flags(1e-4, 1.0, has_tensors=True)
        params = PrimordialParams(r=0.1, n_t=0.0)
        coeffs = resolve_coefficients(params, layout)[layout.index_md(TENSORS)]
        pk = np.asarray(analytic_spectra(coeffs, jnp.array([1e-3, 0.05, 0.7]), 0.05))[:, 0]
        np.testing.assert_allclose(pk, 0.1 * params.A_s, rtol=1e-13)


def test_log_spectra_match_linear():
    """Log-space evaluation agrees with logging the linear spectra where both are finite."""
    params = PrimordialParams(
        f_bi=0.8, n_bi=1.1, alpha_bi=0.01, f_cdi=0.3, c_ad_bi=-0.5, n_ad_bi=0.02, alpha_ad_bi=0.001
    )
    (coeffs,) = resolve_coefficients(params, AD_BI_CDI)
    lnk = jnp.log(jnp.array([1e-6, 1e-3, 0.05, 2.0, 300.0]))
    log_form = np.asarray(analytic_log_spectra(coeffs, 3, lnk, 0.05))
    linear = np.asarray(analytic_spectra(coeffs, jnp.exp(lnk), 0.05))
    for i, j in [(0, 0), (1, 1), (2, 2)]:
        offset = index_symmetric_matrix(i, j, 3)
        np.testing.assert_allclose(log_form[:, offset], np.log(linear[:, offset]), rtol=1e-12)
    cross = index_symmetric_matrix(0, 1, 3)
    angle = linear[:, cross] / np.sqrt(linear[:, 0] * linear[:, 3])
    np.testing.assert_allclose(log_form[:, cross], angle, rtol=1e-10)
    assert np.all(log_form[:, cross] < 0.0)
    assert np.all(log_form[:, index_symmetric_matrix(0, 2, 3)] == 0.0)
