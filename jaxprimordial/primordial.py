"""Primordial power spectrum module for jaxprimordial.

primordial_init tabulates, for every requested mode, the spectra of all
pairs of initial conditions on a logarithmic k grid and splines them:

    diagonal pairs:      ln P_ii(k)
    off-diagonal pairs:  P_ij / sqrt(P_ii P_jj)   (correlation angle, no log)

spectrum_at_k then serves P(k) or ln P(ln k) for any wavenumber: by spline
interpolation inside the grid, by direct evaluation of the analytic model
outside it (analytic spectra only).

Key functions:
    primordial_init(params, prec, layout) -> PrimordialResult
    spectrum_at_k(pm, index_md, mode, value) -> array (ic_ic_size,)
    primordial_spectrum(pm, index_md, k) -> array (..., ic_ic_size)

References:
    CLASS source: primordial.c (primordial_init, primordial_spectrum_at_k,
    primordial_get_lnk_list)
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float

from jaxprimordial.analytic import (
    AnalyticCoefficients,
    analytic_log_spectra,
    analytic_spectra,
    analytic_spectra_lnk,
    resolve_coefficients,
)
from jaxprimordial.constants import (
    ANALYTIC_PK,
    IC_AD,
    IC_TEN,
    LINEAR,
    LN10,
    LOGARITHMIC,
    SCALARS,
    TENSORS,
)
from jaxprimordial.errors import (
    InvalidRange,
    InvalidWavenumber,
    OutOfRange,
    UnsupportedConfiguration,
)
from jaxprimordial.grid import check_density, get_lnk_list
from jaxprimordial.indexing import ic_ic_size, index_symmetric_matrix, pair_diagonals
from jaxprimordial.inflation import solve_inflation
from jaxprimordial.interpolation import SPLINE_EST_DERIV, SPLINE_NATURAL, CubicSpline
from jaxprimordial.log import progress
from jaxprimordial.params import PerturbationLayout, PrecisionParams, PrimordialParams


@dataclass(frozen=True)
class PrimordialResult:
    """Tabulated primordial spectra and derived parameters.

    Inputs (params, prec, layout) are kept unchanged next to the computed
    tables. When the layout requests no modes, `skipped` is True and the
    tables are empty.

    Attributes:
        params: physical inputs
        prec: precision parameters
        layout: requested modes and initial conditions
        lnk: log-k grid, shape (N,)
        splines: per mode, spline of the (N, ic_ic_size) table
        is_non_zero: per mode, contributing flag of each IC pair
        coefficients: per mode analytic coefficients (analytic spectra only)
        A_s, n_s, alpha_s: scalar adiabatic amplitude, tilt and running at k_pivot
        r, n_t, alpha_t: tensor-to-scalar ratio, tensor tilt and running at k_pivot
    """

    params: PrimordialParams
    prec: PrecisionParams
    layout: PerturbationLayout
    lnk: Float[Array, "N"]
    splines: Tuple[CubicSpline, ...] = ()
    is_non_zero: Tuple[Tuple[bool, ...], ...] = ()
    coefficients: Optional[Tuple[AnalyticCoefficients, ...]] = None
    skipped: bool = False

    A_s: Optional[float] = None
    n_s: Optional[float] = None
    alpha_s: Optional[float] = None
    r: Optional[float] = None
    n_t: Optional[float] = None
    alpha_t: Optional[float] = None

    @property
    def lnk_size(self) -> int:
        return int(self.lnk.shape[0])

    @property
    def md_size(self) -> int:
        return self.layout.md_size

    @property
    def lnpk(self) -> Tuple[Float[Array, "N P"], ...]:
        """Per mode, the tabulated values (log of diagonals, angles off-diagonal)."""
        return tuple(spline.y for spline in self.splines)

    @property
    def ddlnpk(self) -> Tuple[Float[Array, "N P"], ...]:
        """Per mode, spline second derivatives of lnpk with respect to ln k."""
        return tuple(spline.d2y for spline in self.splines)

    def index_md(self, mode: str) -> int:
        return self.layout.index_md(mode)

    def index_ic(self, mode: str, ic: str) -> int:
        return self.layout.index_ic(mode, ic)

    def ic_size(self, index_md: int) -> int:
        return self.layout.ic_size(index_md)

    def ic_ic_size(self, index_md: int) -> int:
        return ic_ic_size(self.ic_size(index_md))


# ---------------------------------------------------------------------------
# Conversions between linear spectra and tabulated (log / angle) values
# ---------------------------------------------------------------------------

def to_log_form(linear, is_non_zero, n: int):
    """ln P on diagonals, P_12/sqrt(P_11 P_22) off-diagonal, 0 if not contributing."""
    first, second = (np.asarray(d) for d in pair_diagonals(n))
    is_diag = first == second
    non_zero = jnp.asarray(is_non_zero)
    p1, p2 = linear[..., first], linear[..., second]
    log_diag = jnp.log(jnp.where(is_diag, linear, 1.0))
    angle = jnp.where(non_zero, linear / jnp.sqrt(p1 * p2), 0.0)
    return jnp.where(is_diag, log_diag, angle)


def to_linear_form(values, is_non_zero, n: int):
    """Inverse of to_log_form."""
    first, second = (np.asarray(d) for d in pair_diagonals(n))
    is_diag = first == second
    non_zero = jnp.asarray(is_non_zero)
    diag = jnp.exp(jnp.where(is_diag, values, 0.0))
    p1, p2 = diag[..., first], diag[..., second]
    cross = jnp.where(non_zero, values * jnp.sqrt(p1 * p2), 0.0)
    return jnp.where(is_diag, diag, cross)


# ---------------------------------------------------------------------------
# Initialisation
# ---------------------------------------------------------------------------

def _check_inflation_layout(layout: PerturbationLayout) -> None:
    if not layout.has_scalars:
        raise UnsupportedConfiguration(
            "inflationary module cannot work if you do not ask for scalar modes"
        )
    if layout.has_vectors:
        raise UnsupportedConfiguration(
            "inflationary module cannot work if you ask for vector modes"
        )
    if not layout.has_tensors:
        raise UnsupportedConfiguration(
            "inflationary module cannot work if you do not ask for tensor modes"
        )
    scalar_ics = layout.ics[layout.index_md(SCALARS)]
    if scalar_ics != (IC_AD,):
        raise UnsupportedConfiguration(
            "inflationary module cannot work if you ask for isocurvature modes "
            f"(scalar initial conditions requested: {scalar_ics})",
            ics=scalar_ics,
        )


def _analytic_tables(params: PrimordialParams, layout: PerturbationLayout, lnk):
    coefficients = resolve_coefficients(params, layout)
    k = jnp.exp(lnk)
    tables = tuple(
        to_log_form(analytic_spectra(c, k, params.k_pivot), c.is_non_zero, len(ics))
        for c, ics in zip(coefficients, layout.ics)
    )
    is_non_zero = tuple(tuple(bool(v) for v in c.is_non_zero) for c in coefficients)
    return tables, is_non_zero, coefficients


def _inflation_tables(params: PrimordialParams, prec: PrecisionParams, layout: PerturbationLayout, lnk):
    _check_inflation_layout(layout)
    lnpk_scalars, lnpk_tensors = solve_inflation(
        params.potential, prec, lnk, params.k_pivot, params.verbose
    )
    by_mode = {SCALARS: lnpk_scalars, TENSORS: lnpk_tensors}
    tables = tuple(jnp.asarray(by_mode[mode])[:, None] for mode in layout.modes)
    is_non_zero = tuple((True,) for _ in layout.modes)
    return tables, is_non_zero, None


def _derived_parameters(pm: PrimordialResult) -> dict:
    """Amplitude, tilt and running at k_pivot by centred differences of ln P."""
    layout = pm.layout
    lnk_pivot = math.log(pm.params.k_pivot)
    dlnk = LN10 / pm.prec.k_per_decade_primordial

    def log_spectrum(mode, ic):
        index_md = layout.index_md(mode)
        offset = index_symmetric_matrix(
            layout.index_ic(mode, ic), layout.index_ic(mode, ic), layout.ic_size(index_md)
        )
        return [
            float(spectrum_at_k(pm, index_md, LOGARITHMIC, x)[offset])
            for x in (lnk_pivot - dlnk, lnk_pivot, lnk_pivot + dlnk)
        ]

    derived = {}
    if layout.has_ic(SCALARS, IC_AD):
        minus, zero, plus = log_spectrum(SCALARS, IC_AD)
        derived["A_s"] = math.exp(zero)
        derived["n_s"] = (plus - minus) / (2.0 * dlnk) + 1.0
        derived["alpha_s"] = (plus - 2.0 * zero + minus) / dlnk**2

    if layout.has_ic(TENSORS, IC_TEN):
        minus, zero, plus = log_spectrum(TENSORS, IC_TEN)
        if "A_s" in derived:
            derived["r"] = math.exp(zero) / derived["A_s"]
        derived["n_t"] = (plus - minus) / (2.0 * dlnk)
        derived["alpha_t"] = (plus - 2.0 * zero + minus) / dlnk**2

    return derived


def primordial_init(
    params: PrimordialParams = PrimordialParams(),
    prec: PrecisionParams = PrecisionParams(),
    layout: PerturbationLayout = PerturbationLayout(),
) -> PrimordialResult:
    """Tabulate and spline the primordial spectra of every requested mode.

    Args:
        params: physical inputs (spectrum type, amplitudes, potential, ...)
        prec: precision parameters (static)
        layout: modes, initial conditions and k ranges of the perturbations

    Returns:
        PrimordialResult with tables, splines and derived parameters

    Raises:
        InvalidRange, InvalidDensity: bad k range, pivot or sampling
        InvalidAmplitude, InvalidCorrelation: bad analytic coefficients
        UnsupportedConfiguration: modes the inflation solver cannot treat
        InvalidPotential, InflationDisrupted, AttractorNotFound,
        NoConvergence, NegativeSpectrum, IntegrationFailed: inflation solver
    """
    say = progress(params.verbose)

    if not layout.has_perturbations:
        say("No perturbations requested. Primordial module skipped.")
        return PrimordialResult(
            params=params, prec=prec, layout=layout, lnk=jnp.zeros(0), skipped=True
        )

    k_min = min(layout.k_min)
    k_max = max(layout.k_max)
    if k_min <= 0.0 or k_max <= 0.0 or params.k_pivot <= 0.0:
        raise InvalidRange(
            f"inconsistent values of kmin={k_min:e}, kmax={k_max:e}, "
            f"k_pivot={params.k_pivot:e}",
            k_min=k_min,
            k_max=k_max,
            k_pivot=params.k_pivot,
        )
    check_density(prec.k_per_decade_primordial)
    lnk = get_lnk_list(k_min, k_max, prec.k_per_decade_primordial)

    if params.spectrum_type == ANALYTIC_PK:
        say("Computing primordial spectra (analytic spectrum)")
        tables, is_non_zero, coefficients = _analytic_tables(params, layout, lnk)
    else:
        say("Computing primordial spectra (simple inflation model)")
        tables, is_non_zero, coefficients = _inflation_tables(params, prec, layout, lnk)

    boundary = SPLINE_EST_DERIV if lnk.shape[0] >= 3 else SPLINE_NATURAL
    splines = tuple(CubicSpline(lnk, table, boundary=boundary) for table in tables)

    pm = PrimordialResult(
        params=params,
        prec=prec,
        layout=layout,
        lnk=lnk,
        splines=splines,
        is_non_zero=is_non_zero,
        coefficients=coefficients,
    )
    derived = _derived_parameters(pm)
    if "A_s" in derived:
        say(
            "Scalar spectrum at pivot: A_s={:.6e}, n_s={:.6f}, alpha_s={:.6f}",
            derived["A_s"], derived["n_s"], derived["alpha_s"],
        )
    if "n_t" in derived:
        say(
            "Tensor spectrum at pivot: r={}, n_t={:.6f}, alpha_t={:.6f}",
            derived.get("r"), derived["n_t"], derived["alpha_t"],
        )
    return dataclasses.replace(pm, **derived)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def _check_index_md(pm: PrimordialResult, index_md: int) -> None:
    if pm.skipped:
        raise ValueError("primordial module was skipped: no perturbation modes requested")
    if not 0 <= index_md < pm.md_size:
        raise ValueError(f"index_md={index_md} out of range (md_size={pm.md_size})")


def spectrum_at_k(pm: PrimordialResult, index_md: int, mode: str, value: float):
    """Primordial spectrum of all IC pairs of one mode at a single wavenumber.

    Args:
        pm: result of primordial_init
        index_md: mode index (see PrimordialResult.index_md)
        mode: "linear" (value = k, output P) or "logarithmic" (value = ln k,
            output ln P on diagonals, P_12/sqrt(P_11 P_22) off-diagonal)
        value: k or ln k

    Returns:
        array of shape (ic_ic_size,), packed as in indexing.py

    Raises:
        InvalidWavenumber: k <= 0 in the linear convention
        OutOfRange: ln k outside the grid for a non-analytic spectrum
    """
    _check_index_md(pm, index_md)
    if mode == LINEAR:
        if value <= 0.0:
            raise InvalidWavenumber(
                f"k = {value:e}: the primordial spectrum is defined for k > 0 only",
                k=value,
            )
        lnk = math.log(value)
    elif mode == LOGARITHMIC:
        lnk = float(value)
    else:
        raise ValueError(f"Unknown spectrum convention: {mode!r} (expected {LINEAR!r} or {LOGARITHMIC!r})")

    n = pm.ic_size(index_md)
    is_non_zero = pm.is_non_zero[index_md]
    lnk_min, lnk_max = float(pm.lnk[0]), float(pm.lnk[-1])

    if lnk < lnk_min or lnk > lnk_max:
        if pm.params.spectrum_type != ANALYTIC_PK:
            raise OutOfRange(
                f"ln k={lnk:g} out of range [{lnk_min:g} : {lnk_max:g}] of the tabulated spectrum",
                lnk=lnk,
                lnk_min=lnk_min,
                lnk_max=lnk_max,
            )
        coefficients = pm.coefficients[index_md]
        if mode == LINEAR:
            return analytic_spectra_lnk(coefficients, lnk, pm.params.k_pivot)
        return analytic_log_spectra(coefficients, n, lnk, pm.params.k_pivot)

    values = pm.splines[index_md].evaluate(lnk)
    if mode == LOGARITHMIC:
        return values
    return to_linear_form(values, is_non_zero, n)


def primordial_spectrum(pm: PrimordialResult, index_md: int, k) -> Float[Array, "... P"]:
    """P(k) of all IC pairs for an array of wavenumbers (linear convention).

    Vectorised counterpart of spectrum_at_k(pm, index_md, "linear", k).
    """
    _check_index_md(pm, index_md)
    k = jnp.asarray(k, dtype=jnp.float64)
    if bool(jnp.any(k <= 0.0)):
        raise InvalidWavenumber(
            "the primordial spectrum is defined for k > 0 only",
            k_min=float(jnp.min(k)),
        )

    lnk = jnp.log(k)
    inside = (lnk >= pm.lnk[0]) & (lnk <= pm.lnk[-1])
    is_analytic = pm.params.spectrum_type == ANALYTIC_PK
    if not is_analytic and not bool(jnp.all(inside)):
        raise OutOfRange(
            f"some k outside [{math.exp(float(pm.lnk[0])):e} : {math.exp(float(pm.lnk[-1])):e}]",
            lnk_min=float(pm.lnk[0]),
            lnk_max=float(pm.lnk[-1]),
        )

    n = pm.ic_size(index_md)
    is_non_zero = pm.is_non_zero[index_md]
    linear = to_linear_form(pm.splines[index_md].evaluate(lnk), is_non_zero, n)
    if is_analytic:
        fallback = analytic_spectra(pm.coefficients[index_md], k, pm.params.k_pivot)
        linear = jnp.where(inside[..., None], linear, fallback)
    return linear
