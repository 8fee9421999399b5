"""Mode functions of scalar and tensor perturbations during inflation.

For each wavenumber k, the Mukhanov-Sasaki variable ksi and the tensor
amplitude ah (complex, split into real and imaginary parts) are evolved
together with the background, in conformal time:

    ksi'' = -(k^2 - z''/z) ksi,      z = a dphi / aH
    ah''  = -(k^2 - a''/a) ah

starting from the Bunch-Davies vacuum when k/aH = ratio_min and stopping
once k/aH < ratio_max and the curvature spectrum has frozen,
|d ln P_R / dN| < tol_curvature. The spectra are then

    P_R(k) = k^3/(2 pi^2) |ksi|^2 / z^2
    P_T(k) = 32 k^3/pi    |ah|^2  / a^2

Wavenumbers are independent: the whole set is one jax.lax.map over ln k,
optionally batched with vmap (PrecisionParams.k_batch_size).

References:
    CLASS source: primordial.c (primordial_inflation_spectra,
    primordial_inflation_one_k, primordial_inflation_derivs)
"""

from __future__ import annotations

import functools
import math
from typing import NamedTuple

import jax
import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float

from jaxprimordial.background import (
    BackgroundState,
    Status,
    as_state,
    background_rhs,
    conformal_hubble,
    raise_for_status,
    reach_aH_loop,
    select_state,
    status_code,
)
from jaxprimordial.errors import NegativeSpectrum, NoConvergence
from jaxprimordial.log import progress
from jaxprimordial.ode import integrate_interval
from jaxprimordial.params import PotentialParams, PrecisionParams
from jaxprimordial.potential import check_potential, potential


class ModeState(NamedTuple):
    """Background plus scalar (ksi) and tensor (ah) mode functions."""

    bg: BackgroundState
    ksi_re: Float[Array, ""]
    ksi_im: Float[Array, ""]
    dksi_re: Float[Array, ""]
    dksi_im: Float[Array, ""]
    ah_re: Float[Array, ""]
    ah_im: Float[Array, ""]
    dah_re: Float[Array, ""]
    dah_im: Float[Array, ""]


def effective_masses(pot: PotentialParams, bg: BackgroundState):
    """Return (aH, z''/z, a''/a) for the background state bg."""
    _, dV, ddV = potential(pot, bg.phi)
    aH = conformal_hubble(pot, bg)
    a2dV = bg.a**2 * dV
    a2ddV = bg.a**2 * ddV
    zpp_over_z = (
        2.0 * aH**2
        - a2ddV
        - 4.0 * math.pi * (7.0 * bg.dphi**2 + 4.0 * bg.dphi / aH * a2dV)
        + 32.0 * math.pi**2 * bg.dphi**4 / aH**2
    )
    app_over_a = 2.0 * aH**2 - 4.0 * math.pi * bg.dphi**2
    return aH, zpp_over_z, app_over_a


def mode_rhs(tau, y: ModeState, args) -> ModeState:
    """Right-hand side of the background + mode system; args = (pot, k)."""
    pot, k = args
    _, zpp_over_z, app_over_a = effective_masses(pot, y.bg)
    w2_scalar = k**2 - zpp_over_z
    w2_tensor = k**2 - app_over_a
    return ModeState(
        bg=background_rhs(tau, y.bg, pot),
        ksi_re=y.dksi_re,
        ksi_im=y.dksi_im,
        dksi_re=-w2_scalar * y.ksi_re,
        dksi_im=-w2_scalar * y.ksi_im,
        ah_re=y.dah_re,
        ah_im=y.dah_im,
        dah_re=-w2_tensor * y.ah_re,
        dah_im=-w2_tensor * y.ah_im,
    )


def bunch_davies(bg: BackgroundState, k) -> ModeState:
    """Vacuum initial conditions ksi = ah = e^{-ik tau}/sqrt(2k) at tau = 0."""
    norm = 1.0 / jnp.sqrt(2.0 * k)
    zero = jnp.zeros_like(norm)
    return ModeState(
        bg=bg,
        ksi_re=norm,
        ksi_im=zero,
        dksi_re=zero,
        dksi_im=-k * norm,
        ah_re=norm,
        ah_im=zero,
        dah_re=zero,
        dah_im=-k * norm,
    )


def mode_powers(pot: PotentialParams, y: ModeState, k):
    """Return (P_R, P_T, aH) for the current mode state."""
    aH = conformal_hubble(pot, y.bg)
    z = y.bg.a * y.bg.dphi / aH
    ksi2 = y.ksi_re**2 + y.ksi_im**2
    ah2 = y.ah_re**2 + y.ah_im**2
    curvature = k**3 / (2.0 * math.pi**2) * ksi2 / z**2
    tensor = 32.0 * k**3 / math.pi * ah2 / y.bg.a**2
    return curvature, tensor, aH


def perturbation_step(prec: PrecisionParams, pot: PotentialParams, y: ModeState, k):
    """Outer step: a fraction of the scalar oscillation period, at most 2pi/k."""
    _, zpp_over_z, _ = effective_masses(pot, y.bg)
    omega = jnp.maximum(jnp.sqrt(jnp.abs(k**2 - zpp_over_z)), k)
    return prec.inflation_pt_stepsize * 2.0 * math.pi / omega


def evolve_one_k_loop(pot: PotentialParams, prec: PrecisionParams, bg: BackgroundState, k):
    """Evolve one mode from the vacuum until its spectra freeze.

    Traceable. Returns (P_R, P_T, status, phi) with phi the final field value.
    """
    k = jnp.asarray(k, dtype=jnp.float64)
    y = bunch_davies(as_state(bg), k)
    _, _, aH = mode_powers(pot, y, k)
    dtau = perturbation_step(prec, pot, y, k)

    def keep_going(aH, dlnPdN):
        return (k / aH >= prec.inflation_ratio_max) | (jnp.abs(dlnPdN) > prec.inflation_tol_curvature)

    def cond(carry):
        tau, y, dtau, curvature, tensor, aH, dlnPdN, status, n = carry
        return (status == Status.OK) & (n < prec.inflation_pt_max_steps) & keep_going(aH, dlnPdN)

    def body(carry):
        tau, y, dtau, curvature, tensor, aH, dlnPdN, status, n = carry
        y_new, ok = integrate_interval(
            mode_rhs,
            tau,
            tau + dtau,
            y,
            args=(pot, k),
            rtol=prec.inflation_tol_integration,
            atol=prec.inflation_atol_integration,
            max_steps=prec.ode_max_steps,
            adjoint=prec.ode_adjoint,
        )
        curvature_new, tensor_new, aH_new = mode_powers(pot, y_new, k)
        # dN = aH dtau
        dlnPdN_new = (curvature_new - curvature) / (dtau * aH_new) / curvature_new
        dtau_new = perturbation_step(prec, pot, y_new, k)
        return (
            jnp.where(ok, tau + dtau, tau),
            select_state(ok, y_new, y),
            jnp.where(ok, dtau_new, dtau),
            jnp.where(ok, curvature_new, curvature),
            jnp.where(ok, tensor_new, tensor),
            jnp.where(ok, aH_new, aH),
            jnp.where(ok, dlnPdN_new, dlnPdN),
            status_code(jnp.where(ok, Status.OK, Status.INTEGRATION_FAILED)),
            n + 1,
        )

    init = (
        jnp.asarray(0.0, dtype=jnp.float64),
        y,
        dtau,
        jnp.asarray(1.0e10, dtype=jnp.float64),
        jnp.asarray(0.0, dtype=jnp.float64),
        aH,
        jnp.asarray(jnp.inf, dtype=jnp.float64),
        status_code(Status.OK),
        jnp.asarray(0, dtype=jnp.int32),
    )
    tau, y, dtau, curvature, tensor, aH, dlnPdN, status, n = jax.lax.while_loop(cond, body, init)
    status = status_code(
        jnp.where((status == Status.OK) & keep_going(aH, dlnPdN), Status.STEP_BUDGET, status)
    )
    return curvature, tensor, status, y.bg.phi


@functools.partial(jax.jit, static_argnums=(1,))
def _spectra_on_grid(pot: PotentialParams, prec: PrecisionParams, lnk, y_ini: BackgroundState):
    """P_R and P_T for every ln k, with a status code and field value per k."""

    def one_k(lnk_i):
        k = jnp.exp(lnk_i)
        bg, status = reach_aH_loop(pot, prec, y_ini, k / prec.inflation_ratio_min)

        def evolve():
            return evolve_one_k_loop(pot, prec, bg, k)

        def fail():
            nan = jnp.asarray(jnp.nan, dtype=jnp.float64)
            return nan, nan, status, bg.phi

        return jax.lax.cond(status == Status.OK, evolve, fail)

    if prec.k_batch_size > 0:
        return jax.lax.map(one_k, lnk, batch_size=prec.k_batch_size)
    return jax.lax.map(one_k, lnk)


def evolve_one_k(pot: PotentialParams, prec: PrecisionParams, y_ini: BackgroundState, k: float):
    """P_R(k) and P_T(k) for one wavenumber, starting from the background y_ini.

    Raises:
        InvalidPotential, IntegrationFailed: from the integration
        NegativeSpectrum: non-positive power
    """
    curvature, tensor = inflation_spectra(pot, prec, np.array([math.log(k)]), y_ini)
    return math.exp(float(curvature[0])), math.exp(float(tensor[0]))


def inflation_spectra(
    pot: PotentialParams,
    prec: PrecisionParams,
    lnk,
    y_ini: BackgroundState,
    verbose: int = 0,
):
    """ln P_R and ln P_T on the grid lnk, from the initial background y_ini.

    Raises:
        InvalidPotential: at y_ini or along the trajectory
        NoConvergence: y_ini is not early enough for the largest scale
        IntegrationFailed: stepper failure or step budget exhausted
        NegativeSpectrum: non-positive power at some k
    """
    lnk = np.asarray(lnk, dtype=np.float64)
    y_ini = as_state(y_ini)

    check_potential(pot, float(y_ini.phi))
    aH_ini = float(conformal_hubble(pot, y_ini))
    k_min = math.exp(lnk[0])
    if aH_ini >= k_min / prec.inflation_ratio_min:
        raise NoConvergence(
            f"at initial time, a_k_min > a*H*ratio_min: aH={aH_ini:e}, "
            f"k_min={k_min:e}. Start the background evolution earlier",
            aH=aH_ini,
            k_min=k_min,
        )

    progress(verbose)("Evolving mode functions for {} wavenumbers", len(lnk))
    curvature, tensor, status, phi = (
        np.asarray(v) for v in _spectra_on_grid(pot, prec, jnp.asarray(lnk), y_ini)
    )

    for index_k in np.flatnonzero(status != Status.OK):
        k = math.exp(lnk[index_k])
        raise_for_status(status[index_k], pot, float(phi[index_k]), f"mode k={k:e}", k=k)

    for name, power in (("curvature", curvature), ("tensor", tensor)):
        bad = np.flatnonzero(~(power > 0.0))
        if bad.size:
            k = math.exp(lnk[bad[0]])
            raise NegativeSpectrum(
                f"negative {name} spectrum at k={k:e}: P={power[bad[0]]:e}",
                k=k,
                power=float(power[bad[0]]),
            )

    return np.log(curvature), np.log(tensor)
