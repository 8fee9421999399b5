"""Exceptions raised by jaxprimordial.

Every failure of the primordial module is a subclass of PrimordialError.
The offending values (wavenumber, field value, iteration count, ...) are kept
in ``err.context`` so that callers can adjust their configuration and retry.
Errors caused by bad user input also derive from ValueError.
"""

from __future__ import annotations


class PrimordialError(Exception):
    """Base class for all primordial-module failures."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.context = context


# --- Configuration / input errors ---

class InvalidRange(PrimordialError, ValueError):
    """Wavenumber range or pivot scale is not positive / not ordered."""


class InvalidDensity(PrimordialError, ValueError):
    """Number of k samples per decade is non-positive or implausibly small."""


class InvalidAmplitude(PrimordialError, ValueError):
    """A resolved primordial amplitude is not positive."""


class InvalidCorrelation(PrimordialError, ValueError):
    """A cross-correlation coefficient lies outside [-1, 1]."""


class OutOfRange(PrimordialError, ValueError):
    """Query outside the tabulated k range with no analytic fallback."""


class InvalidWavenumber(PrimordialError, ValueError):
    """Non-positive k passed in the linear convention."""


class UnsupportedConfiguration(PrimordialError, ValueError):
    """Requested modes / initial conditions cannot be treated by this spectrum type."""


# --- Numerical failures during inflaton evolution ---

class InvalidPotential(PrimordialError):
    """V <= 0 or dV/dphi >= 0 somewhere along the observable trajectory."""


class InflationDisrupted(PrimordialError):
    """Slow-roll parameter epsilon crossed 1 during the observable e-folds."""


class AttractorNotFound(PrimordialError):
    """Attractor iteration did not converge within the allowed iterations."""


class NoConvergence(PrimordialError):
    """Search for the initial field value did not converge."""


class NegativeSpectrum(PrimordialError):
    """Numerically extracted power is not positive."""


class IntegrationFailed(PrimordialError):
    """The ODE stepper failed or a step budget was exhausted."""
