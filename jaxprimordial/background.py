"""Homogeneous inflaton background for jaxprimordial.

Integrates the background equations in conformal time tau (G = 1):

    aH      = a'/a = sqrt(8pi/3 (phi'^2/2 + a^2 V))
    a'      = a aH
    phi'    = dphi
    dphi'   = -2 aH dphi - a^2 dV/dphi

The outer step is chosen by hand, bg_stepsize * min(1/aH, |dphi/dphi'|),
and each step is integrated adaptively by Diffrax (see ode.py). The step
loops run inside jax.lax.while_loop; failures are reported as Status codes
and turned into exceptions by the Python wrappers.

Key functions:
    evolve_background(pot, prec, y, phi_stop) -> BackgroundState
    reach_aH(pot, prec, y, aH_stop) -> BackgroundState

References:
    CLASS source: primordial.c (primordial_inflation_evolve_background,
    primordial_inflation_reach_aH, primordial_inflation_derivs)
"""

from __future__ import annotations

from typing import NamedTuple

import jax
import jax.numpy as jnp
from jaxtyping import Array, Float

from jaxprimordial.constants import EIGHT_PI_OVER_3
from jaxprimordial.errors import InflationDisrupted, IntegrationFailed
from jaxprimordial.ode import integrate_interval
from jaxprimordial.params import PotentialParams, PrecisionParams
from jaxprimordial.potential import check_potential, epsilon, potential


class BackgroundState(NamedTuple):
    """Scale factor, field value and conformal-time field velocity."""

    a: Float[Array, ""]
    phi: Float[Array, ""]
    dphi: Float[Array, ""]  # dphi/dtau = a dphi/dt


class Status:
    """Outcome codes of the compiled integration loops (plain ints, usable in jnp.where)."""

    OK = 0
    NEGATIVE_POTENTIAL = 1
    POSITIVE_SLOPE = 2
    INFLATION_DISRUPTED = 3
    INTEGRATION_FAILED = 4
    STEP_BUDGET = 5


_STATUS_NAMES = {value: name for name, value in vars(Status).items() if name.isupper()}


def status_code(value):
    return jnp.asarray(value, dtype=jnp.int32)


def as_state(y) -> BackgroundState:
    """Cast a (a, phi, dphi) triple to a float64 BackgroundState."""
    return BackgroundState(*(jnp.asarray(v, dtype=jnp.float64) for v in y))


def select_state(ok, new, old):
    """Per-leaf select: new where ok, old otherwise."""
    return jax.tree_util.tree_map(lambda n, o: jnp.where(ok, n, o), new, old)


# ---------------------------------------------------------------------------
# Equations of motion
# ---------------------------------------------------------------------------

def conformal_hubble(pot: PotentialParams, y: BackgroundState):
    """aH = a'/a from the Friedmann equation."""
    V, _, _ = potential(pot, y.phi)
    return jnp.sqrt(EIGHT_PI_OVER_3 * (0.5 * y.dphi**2 + y.a**2 * V))


def background_rhs(tau, y: BackgroundState, pot: PotentialParams) -> BackgroundState:
    """Right-hand side of the background system (Diffrax signature)."""
    _, dV, _ = potential(pot, y.phi)
    aH = conformal_hubble(pot, y)
    return BackgroundState(
        a=y.a * aH,
        phi=y.dphi,
        dphi=-2.0 * aH * y.dphi - y.a**2 * dV,
    )


def potential_status(pot: PotentialParams, phi):
    """Traceable check_potential: Status code for V <= 0 or dV >= 0."""
    V, dV, _ = potential(pot, phi)
    return status_code(
        jnp.where(
            V <= 0.0,
            Status.NEGATIVE_POTENTIAL,
            jnp.where(dV >= 0.0, Status.POSITIVE_SLOPE, Status.OK),
        )
    )


def background_step(prec: PrecisionParams, y: BackgroundState, dy: BackgroundState):
    """Outer step: a fraction of the Hubble time or of the field-velocity time scale."""
    aH = dy.a / y.a
    return prec.inflation_bg_stepsize * jnp.minimum(1.0 / aH, jnp.abs(y.dphi / dy.dphi))


def integrate_background(prec: PrecisionParams, pot: PotentialParams, tau, dtau, y):
    """One adaptive Diffrax integration of the background over [tau, tau + dtau]."""
    return integrate_interval(
        background_rhs,
        tau,
        tau + dtau,
        y,
        args=pot,
        rtol=prec.inflation_tol_integration,
        atol=prec.inflation_atol_integration,
        max_steps=prec.ode_max_steps,
        adjoint=prec.ode_adjoint,
    )


# ---------------------------------------------------------------------------
# Compiled loops (traceable; also used inside the per-k map of mode_functions)
# ---------------------------------------------------------------------------

def evolve_background_loop(pot: PotentialParams, prec: PrecisionParams, y: BackgroundState, phi_stop):
    """Step forward until the next step would carry phi beyond phi_stop.

    Returns (y, status), with y linearly extrapolated onto phi = phi_stop.
    """
    y = as_state(y)
    phi_stop = jnp.asarray(phi_stop, dtype=jnp.float64)
    dtau = background_step(prec, y, background_rhs(0.0, y, pot))
    eps = epsilon(pot, y.phi)

    def keep_going(y, dtau):
        # written as a negation so that NaNs keep the loop alive until the
        # potential check in the body reports them
        return ~(y.phi > phi_stop - y.dphi * dtau)

    def cond(carry):
        tau, y, dtau, eps, status, n = carry
        return (status == Status.OK) & (n < prec.inflation_bg_max_steps) & keep_going(y, dtau)

    def body(carry):
        tau, y, dtau, eps, status, n = carry
        status = potential_status(pot, y.phi)

        def step():
            dtau_new = background_step(prec, y, background_rhs(tau, y, pot))
            y_new, ok = integrate_background(prec, pot, tau, dtau_new, y)
            eps_new = epsilon(pot, y_new.phi)
            st = jnp.where(
                ok,
                jnp.where((eps_new > 1.0) & (eps <= 1.0), Status.INFLATION_DISRUPTED, Status.OK),
                Status.INTEGRATION_FAILED,
            )
            return (
                tau + dtau_new,
                select_state(ok, y_new, y),
                dtau_new,
                jnp.where(ok, eps_new, eps),
                status_code(st),
            )

        def skip():
            return tau, y, dtau, eps, status

        tau, y, dtau, eps, status = jax.lax.cond(status == Status.OK, step, skip)
        return tau, y, dtau, eps, status, n + 1

    init = (jnp.asarray(0.0, dtype=jnp.float64), y, dtau, eps, status_code(Status.OK), jnp.asarray(0, dtype=jnp.int32))
    tau, y, dtau, eps, status, n = jax.lax.while_loop(cond, body, init)
    status = status_code(
        jnp.where((status == Status.OK) & keep_going(y, dtau), Status.STEP_BUDGET, status)
    )

    # last partial step: land exactly on phi_stop. On failure the last
    # valid state is returned instead, for the error report.
    dy = background_rhs(tau, y, pot)
    dtau = (phi_stop - y.phi) / dy.phi
    y_stop = BackgroundState(
        a=y.a + dy.a * dtau,
        phi=y.phi + dy.phi * dtau,
        dphi=y.dphi + dy.dphi * dtau,
    )
    return select_state(status == Status.OK, y_stop, y), status


def reach_aH_loop(pot: PotentialParams, prec: PrecisionParams, y: BackgroundState, aH_stop):
    """Step forward until aH >= aH_stop. Returns (y, status)."""
    y = as_state(y)
    aH_stop = jnp.asarray(aH_stop, dtype=jnp.float64)

    def keep_going(y):
        return ~(conformal_hubble(pot, y) >= aH_stop)

    def cond(carry):
        tau, y, status, n = carry
        return (status == Status.OK) & (n < prec.inflation_bg_max_steps) & keep_going(y)

    def body(carry):
        tau, y, status, n = carry
        status = potential_status(pot, y.phi)

        def step():
            dtau = background_step(prec, y, background_rhs(tau, y, pot))
            y_new, ok = integrate_background(prec, pot, tau, dtau, y)
            st = jnp.where(ok, Status.OK, Status.INTEGRATION_FAILED)
            return tau + dtau, select_state(ok, y_new, y), status_code(st)

        def skip():
            return tau, y, status

        tau, y, status = jax.lax.cond(status == Status.OK, step, skip)
        return tau, y, status, n + 1

    init = (jnp.asarray(0.0, dtype=jnp.float64), y, status_code(Status.OK), jnp.asarray(0, dtype=jnp.int32))
    tau, y, status, n = jax.lax.while_loop(cond, body, init)
    status = status_code(
        jnp.where((status == Status.OK) & keep_going(y), Status.STEP_BUDGET, status)
    )
    return y, status


_evolve_background = jax.jit(evolve_background_loop, static_argnums=(1,))
_reach_aH = jax.jit(reach_aH_loop, static_argnums=(1,))


# ---------------------------------------------------------------------------
# Python-level API
# ---------------------------------------------------------------------------

def raise_for_status(status, pot: PotentialParams, phi: float, where: str, **context) -> None:
    """Translate a Status code from a compiled loop into the matching exception."""
    status = int(status)
    if status == Status.OK:
        return
    if status in (Status.NEGATIVE_POTENTIAL, Status.POSITIVE_SLOPE):
        check_potential(pot, phi)
    if status == Status.INFLATION_DISRUPTED:
        raise InflationDisrupted(
            f"Inflaton evolution crosses the border from epsilon<1 to epsilon>1 at "
            f"phi={phi:g}. Inflation disrupted during the observable e-folds",
            phi=phi,
            **context,
        )
    if status == Status.STEP_BUDGET:
        raise IntegrationFailed(
            f"{where}: step budget exhausted at phi={phi:g}; increase the max-steps "
            "precision parameters or the step sizes",
            phi=phi,
            **context,
        )
    raise IntegrationFailed(
        f"{where}: ODE integration failed at phi={phi:g}",
        phi=phi,
        status=_STATUS_NAMES.get(status, status),
        **context,
    )


def evolve_background(
    pot: PotentialParams, prec: PrecisionParams, y: BackgroundState, phi_stop: float
) -> BackgroundState:
    """Evolve the background from y until phi = phi_stop.

    Raises:
        InvalidPotential: V <= 0 or dV >= 0 along the way
        InflationDisrupted: epsilon crosses 1 from below
        IntegrationFailed: stepper failure or step budget exhausted
    """
    y_end, status = _evolve_background(pot, prec, as_state(y), phi_stop)
    raise_for_status(status, pot, float(y_end.phi), "evolve_background", phi_stop=phi_stop)
    return y_end


def reach_aH(
    pot: PotentialParams, prec: PrecisionParams, y: BackgroundState, aH_stop: float
) -> BackgroundState:
    """Evolve the background from y until aH = a'/a reaches aH_stop.

    Raises:
        InvalidPotential: V <= 0 or dV >= 0 along the way
        IntegrationFailed: stepper failure or step budget exhausted
    """
    y_end, status = _reach_aH(pot, prec, as_state(y), aH_stop)
    raise_for_status(status, pot, float(y_end.phi), "reach_aH", aH_stop=aH_stop)
    return y_end
