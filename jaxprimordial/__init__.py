"""jaxprimordial: primordial power spectra of cosmological perturbations in JAX.

Usage:
    import jaxprimordial

    # Analytic spectrum: amplitude, tilt and running per initial condition
    layout = jaxprimordial.PerturbationLayout.from_flags(1e-5, 1.0, has_tensors=True)
    pm = jaxprimordial.primordial_init(jaxprimordial.PrimordialParams(r=0.05), layout=layout)
    pk = jaxprimordial.spectrum_at_k(pm, pm.index_md("scalars"), "linear", 0.05)
    print(pm.A_s, pm.n_s, pm.r)

    # Spectrum from single-field inflation in a quartic potential
    params = jaxprimordial.PrimordialParams(spectrum_type="inflation_V")
    pm = jaxprimordial.primordial_init(params, jaxprimordial.PrecisionParams.fast(), layout)
"""

import jax
jax.config.update("jax_enable_x64", True)

from jaxprimordial.constants import *  # noqa: F401,F403
from jaxprimordial.errors import (  # noqa: F401
    AttractorNotFound,
    InflationDisrupted,
    IntegrationFailed,
    InvalidAmplitude,
    InvalidCorrelation,
    InvalidDensity,
    InvalidPotential,
    InvalidRange,
    InvalidWavenumber,
    NegativeSpectrum,
    NoConvergence,
    OutOfRange,
    PrimordialError,
    UnsupportedConfiguration,
)
from jaxprimordial.params import PerturbationLayout, PotentialParams, PrecisionParams, PrimordialParams  # noqa: F401
from jaxprimordial.indexing import ic_ic_size, index_symmetric_matrix  # noqa: F401
from jaxprimordial.grid import get_lnk_list  # noqa: F401
from jaxprimordial.potential import check_potential, epsilon, potential  # noqa: F401
from jaxprimordial.inflation import find_attractor, solve_inflation  # noqa: F401
from jaxprimordial.primordial import PrimordialResult, primordial_init, primordial_spectrum, spectrum_at_k  # noqa: F401
from jaxprimordial.log import init_logging, get_logger  # noqa: F401
