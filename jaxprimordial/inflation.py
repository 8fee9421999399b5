"""Inflaton initial conditions: attractor search and choice of the starting epoch.

The numerical spectra need a background trajectory that is (i) on the
slow-roll attractor and (ii) started early enough that the largest scale,
k_min, is still deep inside the Hubble radius (k_min/aH >= ratio_min).
Both searches are short Python loops around the compiled background
integrators of background.py; every iteration launches one jitted call.

Key functions:
    find_attractor(pot, prec, phi_0, precision) -> (H_0, dphidt_0)
    solve_inflation(pot, prec, lnk, k_pivot, verbose) -> (lnpk_scalars, lnpk_tensors)

References:
    CLASS source: primordial.c (primordial_inflation_find_attractor,
    primordial_inflation_solve_inflation)
"""

from __future__ import annotations

import math

import numpy as np

from jaxprimordial.background import BackgroundState, evolve_background, reach_aH
from jaxprimordial.constants import EIGHT_PI_OVER_3
from jaxprimordial.errors import AttractorNotFound, NoConvergence
from jaxprimordial.log import progress
from jaxprimordial.mode_functions import inflation_spectra
from jaxprimordial.params import PotentialParams, PrecisionParams
from jaxprimordial.potential import check_potential, potential


def _slow_roll_velocity(V: float, dV: float) -> float:
    """dphi/dt on the slow-roll trajectory: -V'/(3H) with H^2 = 8pi/3 V."""
    return -dV / (3.0 * math.sqrt(EIGHT_PI_OVER_3 * V))


def find_attractor(
    pot: PotentialParams,
    prec: PrecisionParams,
    phi_0: float,
    precision: float,
):
    """Field velocity and Hubble rate at phi_0 on the inflationary attractor.

    Starting from the slow-roll velocity, the field is placed a little
    before phi_0 and evolved up to phi_0; the start is moved back each
    iteration until dphi/dt at phi_0 changes by less than `precision`
    (relative).

    Returns:
        (H_0, dphidt_0) in cosmic time (a = 1 at the start of each trial)

    Raises:
        AttractorNotFound: no convergence within inflation_attractor_maxit
    """
    V_0, dV_0, _ = (float(v) for v in potential(pot, phi_0))
    dphidt_new = _slow_roll_velocity(V_0, dV_0)
    dphidt_old = dphidt_new / (precision + 2.0)

    phi = phi_0
    counter = 0
    while abs(dphidt_new / dphidt_old - 1.0) >= precision:
        counter += 1
        if counter >= prec.inflation_attractor_maxit:
            raise AttractorNotFound(
                f"could not converge after {counter} iterations: there exists "
                f"no attractor solution near phi={phi_0:g}. Potential probably "
                "too steep in this region, or precision parameter "
                f"attractor_precision={precision:g} too small",
                phi=phi_0,
                iterations=counter,
                precision=precision,
            )

        dphidt_old = dphidt_new
        phi = phi + dV_0 / V_0 / (16.0 * math.pi)

        check_potential(pot, phi)
        V, dV, _ = (float(v) for v in potential(pot, phi))
        y = BackgroundState(a=1.0, phi=phi, dphi=_slow_roll_velocity(V, dV))
        y = evolve_background(pot, prec, y, phi_0)
        dphidt_new = float(y.dphi / y.a)

    H_0 = math.sqrt(EIGHT_PI_OVER_3 * (0.5 * dphidt_new**2 + V_0))
    return H_0, dphidt_new


def find_initial_state(
    pot: PotentialParams,
    prec: PrecisionParams,
    k_min: float,
    k_max: float,
    k_pivot: float,
    verbose: int = 0,
) -> BackgroundState:
    """Background state early enough for k_min/aH >= ratio_min.

    The scale factor is normalised so that aH = k_pivot when phi = phi_pivot.

    Raises:
        InvalidPotential, InflationDisrupted, AttractorNotFound,
        IntegrationFailed: from the background integration
        NoConvergence: more than inflation_phi_ini_maxit trial field values
    """
    say = progress(verbose)
    phi_pivot = float(pot.phi_pivot)

    check_potential(pot, phi_pivot)
    H_pivot, dphidt_pivot = find_attractor(
        pot, prec, phi_pivot, prec.inflation_attractor_precision_pivot
    )
    a_pivot = k_pivot / H_pivot
    say("Attractor at pivot: H={:.6e}, dphi/dt={:.6e}", H_pivot, dphidt_pivot)

    # inflation must last until the smallest scale is far outside the horizon
    y = BackgroundState(a=a_pivot, phi=phi_pivot, dphi=a_pivot * dphidt_pivot)
    reach_aH(pot, prec, y, k_max / prec.inflation_ratio_max)

    aH_ini = k_min / prec.inflation_ratio_min
    a_try, H_try, phi_try, dphidt_try = a_pivot, H_pivot, phi_pivot, dphidt_pivot
    counter = 0
    while a_try * H_try >= aH_ini:
        counter += 1
        if counter >= prec.inflation_phi_ini_maxit:
            raise NoConvergence(
                f"when searching for an initial value of phi just before "
                f"observable inflation takes place, could not converge after "
                f"{counter} iterations. The potential does not allow enough "
                "inflationary e-folds before reaching the pivot scale",
                phi=phi_try,
                iterations=counter,
            )

        V, dV, _ = (float(v) for v in potential(pot, phi_try))
        phi_try += (
            prec.inflation_jump_initial
            * math.log(a_try * H_try / aH_ini)
            * dV / V / (8.0 * math.pi)
        )

        H_try, dphidt_try = find_attractor(
            pot, prec, phi_try, prec.inflation_attractor_precision_initial
        )
        y = BackgroundState(a=1.0, phi=phi_try, dphi=dphidt_try)
        y = evolve_background(pot, prec, y, phi_pivot)
        a_try = a_pivot / float(y.a)

    say("Initial field value phi={:.6e} after {} trial(s)", phi_try, counter)
    return BackgroundState(a=a_try, phi=phi_try, dphi=a_try * dphidt_try)


def solve_inflation(
    pot: PotentialParams,
    prec: PrecisionParams,
    lnk,
    k_pivot: float,
    verbose: int = 0,
):
    """Scalar and tensor log-spectra on the grid lnk from single-field inflation.

    Returns:
        (lnpk_scalars, lnpk_tensors): each of shape (len(lnk),)
    """
    lnk = np.asarray(lnk)
    y_ini = find_initial_state(
        pot, prec, math.exp(lnk[0]), math.exp(lnk[-1]), k_pivot, verbose
    )
    return inflation_spectra(pot, prec, lnk, y_ini, verbose)
