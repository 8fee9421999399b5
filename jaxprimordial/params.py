"""Parameter containers for jaxprimordial.

PrimordialParams: physical inputs of the primordial module (amplitudes,
    tilts, runnings, correlations, inflaton potential).
PotentialParams: quartic inflaton potential, registered as a JAX pytree so
    compiled solvers are shared by all potentials.
PrecisionParams: numerical settings, static (hashable, not traced).
PerturbationLayout: what the perturbation module hands over (modes, initial
    conditions, k ranges).

References:
    CLASS source: include/primordial.h (struct primordial)
    CLASS source: include/precisions.h
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Mapping, Tuple

import jax

from jaxprimordial.constants import (
    ANALYTIC_PK,
    IC_AD,
    IC_TEN,
    ISOCURVATURE_ICS,
    SCALARS,
    SPECTRUM_TYPES,
    TENSORS,
    VECTORS,
)


# ---------------------------------------------------------------------------
# PotentialParams: traced by JAX
# ---------------------------------------------------------------------------

@jax.tree_util.register_pytree_node_class
@dataclass(frozen=True)
class PotentialParams:
    """Quartic inflaton potential, Taylor-expanded about phi_pivot.

    V(phi) = V0 + V1 x + V2 x^2/2 + V3 x^3/6 + V4 x^4/24,  x = phi - phi_pivot

    Units: G = 1 (phi in Planck masses). The defaults give the usual
    A_s ~ 2.1e-9 in slow roll (A_s ~ 128 pi/3 V0^3/V1^2).
    """

    V0: float = 1.25e-13
    V1: float = -1.12e-14
    V2: float = -6.95e-14
    V3: float = 0.0
    V4: float = 0.0
    phi_pivot: float = 0.0

    def tree_flatten(self):
        children = tuple(getattr(self, f.name) for f in fields(self))
        return children, None

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(*children)

    def replace(self, **kwargs) -> PotentialParams:
        """Return a new PotentialParams with specified fields replaced."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update(kwargs)
        return PotentialParams(**current)


# ---------------------------------------------------------------------------
# PrimordialParams
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PrimordialParams:
    """Inputs of the primordial module.

    Naming follows CLASS input files: f_x, n_x, alpha_x for the isocurvature
    mode x (bi, cdi, nid, niv), and c_x_y, n_x_y, alpha_x_y for the
    correlation between x and y (ordered as ad, bi, cdi, nid, niv).
    A correlation of exactly 0 means the pair is uncorrelated.
    """

    spectrum_type: str = ANALYTIC_PK   # "analytic_Pk" or "inflation_V"
    k_pivot: float = 0.05              # Mpc^-1
    verbose: int = 0

    # Adiabatic
    A_s: float = 2.1e-9
    n_s: float = 0.9649
    alpha_s: float = 0.0

    # Tensors (n_t is the usual tensor tilt: 0 is scale invariant)
    r: float = 1.0
    n_t: float = 0.0
    alpha_t: float = 0.0

    # Isocurvature amplitudes relative to A_s, tilts, runnings
    f_bi: float = 1.0
    n_bi: float = 1.0
    alpha_bi: float = 0.0
    f_cdi: float = 1.0
    n_cdi: float = 1.0
    alpha_cdi: float = 0.0
    f_nid: float = 1.0
    n_nid: float = 1.0
    alpha_nid: float = 0.0
    f_niv: float = 1.0
    n_niv: float = 1.0
    alpha_niv: float = 0.0

    # Cross-correlations
    c_ad_bi: float = 0.0
    n_ad_bi: float = 0.0
    alpha_ad_bi: float = 0.0
    c_ad_cdi: float = 0.0
    n_ad_cdi: float = 0.0
    alpha_ad_cdi: float = 0.0
    c_ad_nid: float = 0.0
    n_ad_nid: float = 0.0
    alpha_ad_nid: float = 0.0
    c_ad_niv: float = 0.0
    n_ad_niv: float = 0.0
    alpha_ad_niv: float = 0.0
    c_bi_cdi: float = 0.0
    n_bi_cdi: float = 0.0
    alpha_bi_cdi: float = 0.0
    c_bi_nid: float = 0.0
    n_bi_nid: float = 0.0
    alpha_bi_nid: float = 0.0
    c_bi_niv: float = 0.0
    n_bi_niv: float = 0.0
    alpha_bi_niv: float = 0.0
    c_cdi_nid: float = 0.0
    n_cdi_nid: float = 0.0
    alpha_cdi_nid: float = 0.0
    c_cdi_niv: float = 0.0
    n_cdi_niv: float = 0.0
    alpha_cdi_niv: float = 0.0
    c_nid_niv: float = 0.0
    n_nid_niv: float = 0.0
    alpha_nid_niv: float = 0.0

    # Inflaton potential (inflation_V only)
    potential: PotentialParams = field(default_factory=PotentialParams)

    def __post_init__(self):
        if self.spectrum_type not in SPECTRUM_TYPES:
            raise ValueError(
                f"Unknown primordial spectrum type: {self.spectrum_type!r} "
                f"(expected one of {SPECTRUM_TYPES})"
            )

    def replace(self, **kwargs) -> PrimordialParams:
        """Return a new PrimordialParams with specified fields replaced."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update(kwargs)
        return PrimordialParams(**current)

    @classmethod
    def from_dict(cls, values: Mapping[str, object]) -> PrimordialParams:
        """Build from a flat mapping of CLASS-style names.

        Potential coefficients (V0..V4, phi_pivot) may be given at top level.
        Unknown keys raise ValueError.
        """
        own = {f.name for f in fields(cls)} - {"potential"}
        pot_names = {f.name for f in fields(PotentialParams)}
        kwargs, pot_kwargs = {}, {}
        for key, value in values.items():
            if key in own:
                kwargs[key] = value
            elif key in pot_names:
                pot_kwargs[key] = float(value)
            else:
                raise ValueError(f"Unknown primordial parameter: {key!r}")
        kwargs["potential"] = PotentialParams(**pot_kwargs)
        return cls(**kwargs)


# ---------------------------------------------------------------------------
# PrecisionParams: static
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PrecisionParams:
    """Numerical precision parameters. Not traced by JAX.

    Hashable, so they are passed to jitted solvers as static arguments.
    Defaults follow CLASS precisions.h.
    """

    # Tabulation
    k_per_decade_primordial: float = 10.0

    # Inflation: horizon-crossing ratios k/aH
    inflation_ratio_min: float = 100.0      # start of mode integration (sub-horizon)
    inflation_ratio_max: float = 1.0 / 50.0  # mode must be this far outside the horizon

    # Inflation: initial-condition search
    inflation_phi_ini_maxit: int = 10000
    inflation_jump_initial: float = 1.2

    # Inflation: attractor
    inflation_attractor_precision_pivot: float = 1e-3
    inflation_attractor_precision_initial: float = 0.1
    inflation_attractor_maxit: int = 10

    # Inflation: step sizes (fraction of 1/aH or of an oscillation period)
    inflation_bg_stepsize: float = 0.005
    inflation_pt_stepsize: float = 0.01

    # Inflation: convergence of the super-horizon curvature spectrum
    inflation_tol_curvature: float = 1e-3

    # ODE stepper (diffrax Tsit5 + PID controller)
    inflation_tol_integration: float = 1e-6
    inflation_atol_integration: float = 1e-14
    ode_max_steps: int = 4096           # internal steps per outer step
    inflation_bg_max_steps: int = 500000  # outer steps per background call
    inflation_pt_max_steps: int = 500000  # outer steps per k-mode
    ode_adjoint: str = "recursive_checkpoint"  # or "direct"

    # k-modes evaluated together by vmap inside lax.map (0 = one at a time)
    k_batch_size: int = 0

    @staticmethod
    def fast():
        """Coarse preset for quick runs and tests."""
        return PrecisionParams(
            k_per_decade_primordial=5.0,
            inflation_bg_stepsize=0.01,
            inflation_pt_stepsize=0.02,
            inflation_tol_integration=1e-5,
        )


# ---------------------------------------------------------------------------
# PerturbationLayout: handed over by the perturbation module
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PerturbationLayout:
    """Modes, initial conditions and k ranges requested by the perturbations.

    Attributes:
        modes: mode names, e.g. ("scalars", "tensors"); position = index_md
        ics: for each mode, its initial-condition names; position = index_ic
        k_min: for each mode, smallest wavenumber [Mpc^-1]
        k_max: for each mode, largest wavenumber [Mpc^-1]
    """

    modes: Tuple[str, ...] = (SCALARS,)
    ics: Tuple[Tuple[str, ...], ...] = ((IC_AD,),)
    k_min: Tuple[float, ...] = (1e-5,)
    k_max: Tuple[float, ...] = (5.0,)

    def __post_init__(self):
        n = len(self.modes)
        if not (len(self.ics) == len(self.k_min) == len(self.k_max) == n):
            raise ValueError(
                f"PerturbationLayout: {n} modes but {len(self.ics)} IC lists, "
                f"{len(self.k_min)} k_min and {len(self.k_max)} k_max values"
            )

    @classmethod
    def from_flags(
        cls,
        k_min: float,
        k_max: float,
        has_scalars: bool = True,
        has_vectors: bool = False,
        has_tensors: bool = False,
        has_ad: bool = True,
        has_bi: bool = False,
        has_cdi: bool = False,
        has_nid: bool = False,
        has_niv: bool = False,
    ) -> PerturbationLayout:
        """Build a layout from CLASS-style has_* flags, one k range for all modes."""
        flags = {IC_AD: has_ad}
        flags.update(zip(ISOCURVATURE_ICS, (has_bi, has_cdi, has_nid, has_niv)))
        modes, ics = [], []
        if has_scalars:
            modes.append(SCALARS)
            ics.append(tuple(name for name, on in flags.items() if on))
        if has_vectors:
            modes.append(VECTORS)
            ics.append((IC_AD,))
        if has_tensors:
            modes.append(TENSORS)
            ics.append((IC_TEN,))
        n = len(modes)
        return cls(
            modes=tuple(modes),
            ics=tuple(ics),
            k_min=(k_min,) * n,
            k_max=(k_max,) * n,
        )

    @property
    def md_size(self) -> int:
        return len(self.modes)

    @property
    def has_perturbations(self) -> bool:
        return self.md_size > 0

    def has_mode(self, mode: str) -> bool:
        return mode in self.modes

    @property
    def has_scalars(self) -> bool:
        return self.has_mode(SCALARS)

    @property
    def has_vectors(self) -> bool:
        return self.has_mode(VECTORS)

    @property
    def has_tensors(self) -> bool:
        return self.has_mode(TENSORS)

    def has_ic(self, mode: str, ic: str) -> bool:
        return self.has_mode(mode) and ic in self.ics[self.index_md(mode)]

    def index_md(self, mode: str) -> int:
        """Index of a mode name; ValueError if not requested."""
        try:
            return self.modes.index(mode)
        except ValueError:
            raise ValueError(f"Mode {mode!r} not requested (have {self.modes})") from None

    def index_ic(self, mode: str, ic: str) -> int:
        """Index of an initial condition within a mode."""
        ics = self.ics[self.index_md(mode)]
        try:
            return ics.index(ic)
        except ValueError:
            raise ValueError(f"IC {ic!r} not requested for {mode} (have {ics})") from None

    def ic_size(self, index_md: int) -> int:
        return len(self.ics[index_md])
