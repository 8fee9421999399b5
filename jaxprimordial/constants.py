"""Numerical constants and naming conventions for jaxprimordial.

Values follow CLASS conventions (include/primordial.h, include/precisions.h).
The inflaton sector uses units where G = 1 (phi in Planck masses), with
conformal time and wavenumbers in Mpc / Mpc^-1.

References:
    CLASS source: include/primordial.h
"""

import math

# --- Sampling ---
# cf. primordial.h: _K_PER_DECADE_PRIMORDIAL_MIN_
K_PER_DECADE_PRIMORDIAL_MIN = 1.0
"""Smallest sensible number of primordial k samples per decade."""

LN10 = math.log(10.0)
"""Natural log of 10, spacing unit of the log-k grid."""

# --- Gravity ---
EIGHT_PI_OVER_3 = 8.0 * math.pi / 3.0
"""Friedmann prefactor: (aH)^2 = 8pi/3 (phi'^2/2 + a^2 V) with G = 1."""

# --- Spectrum types ---
ANALYTIC_PK = "analytic_Pk"
"""Parametric spectrum: amplitudes, tilts and runnings."""

INFLATION_V = "inflation_V"
"""Spectrum from single-field inflation in a given potential V(phi)."""

SPECTRUM_TYPES = (ANALYTIC_PK, INFLATION_V)

# --- Output conventions for spectrum_at_k ---
LINEAR = "linear"
"""Input k, output P(k)."""

LOGARITHMIC = "logarithmic"
"""Input ln(k), output ln P(k) (diagonal) and correlation angles (off-diagonal)."""

# --- Perturbation modes ---
SCALARS = "scalars"
VECTORS = "vectors"
TENSORS = "tensors"

# --- Initial conditions ---
IC_AD = "ad"     # adiabatic
IC_BI = "bi"     # baryon isocurvature
IC_CDI = "cdi"   # CDM isocurvature
IC_NID = "nid"   # neutrino density isocurvature
IC_NIV = "niv"   # neutrino velocity isocurvature
IC_TEN = "ten"   # tensor

SCALAR_ICS = (IC_AD, IC_BI, IC_CDI, IC_NID, IC_NIV)
"""Scalar initial conditions, in the order used to name cross parameters (c_ad_bi, ...)."""

ISOCURVATURE_ICS = (IC_BI, IC_CDI, IC_NID, IC_NIV)
