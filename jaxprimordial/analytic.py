"""Analytic primordial spectra: amplitude, tilt and running per pair of ICs.

    P(k) = A exp[(n - 1) ln(k/k_pivot) + alpha/2 ln(k/k_pivot)^2]

Diagonal pairs (ic, ic) take (A, n, alpha) from the catalogue of named
initial conditions; off-diagonal pairs are built from the diagonal ones and
the correlation parameters c_x_y, n_x_y, alpha_x_y:

    A_xy     = c_xy sqrt(A_x A_y)
    n_xy     = (n_x + n_y)/2 + n_xy
    alpha_xy = (alpha_x + alpha_y)/2 + alpha_xy

Pairs with c_xy = 0, and pairs absent from the catalogue, do not contribute.

References:
    CLASS source: primordial.c (primordial_analytic_spectrum_init,
    primordial_analytic_spectrum)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Bool, Float

from jaxprimordial.constants import IC_AD, IC_TEN, ISOCURVATURE_ICS, SCALAR_ICS, SCALARS, TENSORS
from jaxprimordial.errors import InvalidAmplitude, InvalidCorrelation
from jaxprimordial.indexing import ic_ic_size, index_symmetric_matrix, pair_diagonals
from jaxprimordial.params import PerturbationLayout, PrimordialParams

Triple = Tuple[float, float, float]


@dataclass(frozen=True)
class AnalyticCoefficients:
    """Coefficients of one mode, packed over IC pairs (see indexing.py).

    Attributes:
        amplitude: A per pair, shape (ic_ic_size,)
        tilt: n per pair (1 is scale invariant)
        running: alpha per pair
        is_non_zero: False for pairs that do not contribute
    """

    amplitude: Float[Array, "P"]
    tilt: Float[Array, "P"]
    running: Float[Array, "P"]
    is_non_zero: Bool[Array, "P"]


def diagonal_catalogue(params: PrimordialParams) -> Dict[Tuple[str, str], Triple]:
    """(mode, ic) -> (amplitude, tilt, running) for every known initial condition."""
    catalogue = {
        (SCALARS, IC_AD): (params.A_s, params.n_s, params.alpha_s),
        # tensor tilt shifted so that 1 is scale invariant, as for scalars
        (TENSORS, IC_TEN): (params.A_s * params.r, params.n_t + 1.0, params.alpha_t),
    }
    for ic in ISOCURVATURE_ICS:
        f = getattr(params, f"f_{ic}")
        catalogue[(SCALARS, ic)] = (
            params.A_s * f * f,
            getattr(params, f"n_{ic}"),
            getattr(params, f"alpha_{ic}"),
        )
    return catalogue


def correlation_catalogue(params: PrimordialParams) -> Dict[Tuple[str, FrozenSet[str]], Triple]:
    """(mode, {ic1, ic2}) -> (c, n, alpha) for every named scalar cross-correlation."""
    catalogue = {}
    for i, ic1 in enumerate(SCALAR_ICS):
        for ic2 in SCALAR_ICS[i + 1:]:
            catalogue[(SCALARS, frozenset((ic1, ic2)))] = tuple(
                getattr(params, f"{prefix}_{ic1}_{ic2}") for prefix in ("c", "n", "alpha")
            )
    return catalogue


def resolve_coefficients(
    params: PrimordialParams, layout: PerturbationLayout
) -> Tuple[AnalyticCoefficients, ...]:
    """Coefficients of every requested mode.

    Raises:
        InvalidAmplitude: a diagonal amplitude is <= 0 (including unknown ICs)
        InvalidCorrelation: a correlation lies outside [-1, 1]
    """
    diagonal = diagonal_catalogue(params)
    correlations = correlation_catalogue(params)

    result = []
    for mode, ics in zip(layout.modes, layout.ics):
        n = len(ics)
        size = ic_ic_size(n)
        amplitude, tilt, running = np.zeros(size), np.zeros(size), np.zeros(size)
        is_non_zero = np.zeros(size, dtype=bool)

        for i, ic in enumerate(ics):
            A, n_ic, alpha = diagonal.get((mode, ic), (0.0, 0.0, 0.0))
            if A <= 0.0:
                raise InvalidAmplitude(
                    f"primordial amplitude for {mode}/{ic} is {A:g}: it should be "
                    "strictly positive",
                    mode=mode,
                    ic=ic,
                    amplitude=A,
                )
            index = index_symmetric_matrix(i, i, n)
            amplitude[index], tilt[index], running[index] = A, n_ic, alpha
            is_non_zero[index] = True

        for i in range(n):
            for j in range(i + 1, n):
                c, n_xy, alpha_xy = correlations.get(
                    (mode, frozenset((ics[i], ics[j]))), (0.0, 0.0, 0.0)
                )
                if c < -1.0 or c > 1.0:
                    raise InvalidCorrelation(
                        f"correlation {ics[i]}-{ics[j]} is {c:g}: it should be "
                        "in the range [-1,1]",
                        mode=mode,
                        ics=(ics[i], ics[j]),
                        correlation=c,
                    )
                if c == 0.0:
                    continue
                ii = index_symmetric_matrix(i, i, n)
                jj = index_symmetric_matrix(j, j, n)
                index = index_symmetric_matrix(i, j, n)
                amplitude[index] = np.sqrt(amplitude[ii] * amplitude[jj]) * c
                tilt[index] = 0.5 * (tilt[ii] + tilt[jj]) + n_xy
                running[index] = 0.5 * (running[ii] + running[jj]) + alpha_xy
                is_non_zero[index] = True

        result.append(
            AnalyticCoefficients(
                amplitude=jnp.asarray(amplitude),
                tilt=jnp.asarray(tilt),
                running=jnp.asarray(running),
                is_non_zero=jnp.asarray(is_non_zero),
            )
        )
    return tuple(result)


def analytic_spectrum(coeffs: AnalyticCoefficients, index_ic1_ic2: int, k, k_pivot: float):
    """P(k) of one IC pair; exactly 0 for non-contributing pairs."""
    k = jnp.asarray(k)
    if not bool(coeffs.is_non_zero[index_ic1_ic2]):
        return jnp.zeros_like(k, dtype=jnp.float64)
    x = jnp.log(k / k_pivot)
    return coeffs.amplitude[index_ic1_ic2] * jnp.exp(
        (coeffs.tilt[index_ic1_ic2] - 1.0) * x
        + 0.5 * coeffs.running[index_ic1_ic2] * x**2
    )


def analytic_spectra(coeffs: AnalyticCoefficients, k, k_pivot: float) -> Float[Array, "... P"]:
    """P(k) of every IC pair, shape k.shape + (ic_ic_size,)."""
    return analytic_spectra_lnk(coeffs, jnp.log(jnp.asarray(k)), k_pivot)


def analytic_spectra_lnk(coeffs: AnalyticCoefficients, lnk, k_pivot: float) -> Float[Array, "... P"]:
    """P of every IC pair as a function of ln k."""
    x = (jnp.asarray(lnk) - math.log(k_pivot))[..., None]
    pk = coeffs.amplitude * jnp.exp((coeffs.tilt - 1.0) * x + 0.5 * coeffs.running * x**2)
    return jnp.where(coeffs.is_non_zero, pk, 0.0)


def analytic_log_spectra(coeffs: AnalyticCoefficients, n: int, lnk, k_pivot: float) -> Float[Array, "... P"]:
    """Logarithmic form of analytic_spectra_lnk, evaluated without forming P.

    n is the number of ICs of the mode. Returns ln P on diagonal pairs and
    P_ij/sqrt(P_ii P_jj) off-diagonal (0 for pairs that do not contribute).
    Diagonals stay finite for any finite ln k.
    """
    first, second = (np.asarray(d) for d in pair_diagonals(n))
    x = (jnp.asarray(lnk) - math.log(k_pivot))[..., None]
    log_amplitude = jnp.log(jnp.abs(jnp.where(coeffs.is_non_zero, coeffs.amplitude, 1.0)))
    lnpk = log_amplitude + (coeffs.tilt - 1.0) * x + 0.5 * coeffs.running * x**2
    is_diag = first == second
    angle = (
        jnp.sign(coeffs.amplitude)
        * jnp.exp(lnpk - 0.5 * (lnpk[..., first] + lnpk[..., second]))
    )
    return jnp.where(is_diag, lnpk, jnp.where(coeffs.is_non_zero, angle, 0.0))
