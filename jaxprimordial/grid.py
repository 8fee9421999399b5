"""Logarithmic wavenumber grid for the primordial spectrum tables.

References:
    CLASS source: primordial.c (primordial_get_lnk_list)
"""

from __future__ import annotations

import math

import jax.numpy as jnp
from jaxtyping import Array, Float

from jaxprimordial.constants import K_PER_DECADE_PRIMORDIAL_MIN, LN10
from jaxprimordial.errors import InvalidDensity, InvalidRange


def lnk_size(k_min: float, k_max: float, k_per_decade: float) -> int:
    """Number of grid points: enough to encompass k_max."""
    return int(math.log10(k_max / k_min) * k_per_decade) + 2


def check_density(k_per_decade: float) -> None:
    """Reject non-positive or implausibly sparse sampling densities."""
    if k_per_decade <= 0.0:
        raise InvalidDensity(
            f"k_per_decade_primordial = {k_per_decade:e} is negative or null",
            k_per_decade=k_per_decade,
        )
    if k_per_decade <= K_PER_DECADE_PRIMORDIAL_MIN:
        raise InvalidDensity(
            f"k_per_decade_primordial = {k_per_decade:e}: such a sparse sampling "
            "of the primordial spectrum is probably a mistake "
            f"(minimum {K_PER_DECADE_PRIMORDIAL_MIN:g})",
            k_per_decade=k_per_decade,
        )


def get_lnk_list(k_min: float, k_max: float, k_per_decade: float) -> Float[Array, "N"]:
    """Build ln(k) samples from k_min, spaced by ln(10)/k_per_decade.

    The last sample is the first one at or beyond k_max (or one more), so the
    grid always covers [k_min, k_max].

    Raises:
        InvalidRange: k_min <= 0 or k_max <= k_min
        InvalidDensity: k_per_decade <= 0 or too small
    """
    if k_min <= 0.0 or k_max <= k_min:
        raise InvalidRange(
            f"inconsistent values of kmin={k_min:e}, kmax={k_max:e}",
            k_min=k_min,
            k_max=k_max,
        )
    check_density(k_per_decade)

    n = lnk_size(k_min, k_max, k_per_decade)
    return math.log(k_min) + jnp.arange(n) * (LN10 / k_per_decade)
