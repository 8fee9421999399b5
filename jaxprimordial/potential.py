"""Quartic inflaton potential.

    V(phi) = V0 + V1 x + V2 x^2/2 + V3 x^3/6 + V4 x^4/24,  x = phi - phi_pivot

The inflation solver assumes V > 0 and dV/dphi < 0 along the whole
observable trajectory (the field rolls towards larger phi).

References:
    CLASS source: primordial.c (primordial_inflation_potential,
    primordial_inflation_check_potential, primordial_inflation_get_epsilon)
"""

from __future__ import annotations

import math

from jaxprimordial.errors import InvalidPotential
from jaxprimordial.params import PotentialParams


def potential(pot: PotentialParams, phi):
    """Return (V, dV/dphi, d2V/dphi2) at phi. Works on floats and traced arrays."""
    x = phi - pot.phi_pivot
    V = pot.V0 + x * pot.V1 + x**2 / 2.0 * pot.V2 + x**3 / 6.0 * pot.V3 + x**4 / 24.0 * pot.V4
    dV = pot.V1 + x * pot.V2 + x**2 / 2.0 * pot.V3 + x**3 / 6.0 * pot.V4
    ddV = pot.V2 + x * pot.V3 + x**2 / 2.0 * pot.V4
    return V, dV, ddV


def check_potential(pot: PotentialParams, phi: float) -> None:
    """Raise InvalidPotential unless V(phi) > 0 and dV/dphi(phi) < 0."""
    V, dV, _ = potential(pot, phi)
    V, dV = float(V), float(dV)
    if V <= 0.0:
        raise InvalidPotential(
            f"This potential becomes negative at phi={phi:g}, before the end of "
            "observable inflation. It cannot be treated by this code",
            phi=phi,
            V=V,
        )
    if dV >= 0.0:
        raise InvalidPotential(
            f"All the code is written for the case dV/dphi<0. Here, in phi={phi:g}, "
            f"we have dV/dphi={dV:g}. This potential cannot be treated by this code",
            phi=phi,
            dV=dV,
        )


def epsilon(pot: PotentialParams, phi):
    """Potential slow-roll parameter epsilon = (dV/V)^2 / (16 pi)."""
    V, dV, _ = potential(pot, phi)
    return (dV / V) ** 2 / (16.0 * math.pi)


def slow_roll_predictions(pot: PotentialParams) -> dict:
    """Leading-order slow-roll observables at phi_pivot.

    Handy for sanity checks of the numerical spectra; not used by the solver.
    """
    V, dV, ddV = pot.V0, pot.V1, pot.V2
    A_s = 128.0 * math.pi / 3.0 * V**3 / dV**2
    r = (dV / V) ** 2 / math.pi
    return {
        "A_s": A_s,
        "r": r,
        "n_s": 1.0 - 6.0 / (16.0 * math.pi) * (dV / V) ** 2 + 2.0 / (8.0 * math.pi) * ddV / V,
        "n_t": -2.0 / (16.0 * math.pi) * (dV / V) ** 2,
    }
