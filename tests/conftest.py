"""Test fixtures for the jaxprimordial test suite.

Provides:
- Default PrimordialParams, PrecisionParams and PerturbationLayout
- assert_close with concise failure messages
- --fast flag to skip the inflation end-to-end runs
"""

# Enable 64-bit JAX (required for the inflaton integration)
import jax
jax.config.update("jax_enable_x64", True)

import numpy as np
import pytest

from jaxprimordial.params import PerturbationLayout, PrecisionParams, PrimordialParams


def pytest_addoption(parser):
    parser.addoption(
        "--fast", action="store_true", default=False,
        help="Skip the slow inflation end-to-end tests"
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: numerical inflation runs (skipped with --fast)")


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--fast"):
        return
    skip = pytest.mark.skip(reason="--fast given")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def fast_mode(request):
    return request.config.getoption("--fast")


@pytest.fixture
def analytic_params():
    """Planck-like adiabatic spectrum with tensors."""
    return PrimordialParams(A_s=2.1e-9, n_s=0.965, alpha_s=0.0, k_pivot=0.05, r=0.1)


@pytest.fixture
def scalar_layout():
    """Single scalar adiabatic mode."""
    return PerturbationLayout.from_flags(1e-4, 1.0)


@pytest.fixture
def scalar_tensor_layout():
    """Scalar adiabatic plus tensor modes, as needed by the inflation solver."""
    return PerturbationLayout.from_flags(1e-4, 1.0, has_tensors=True)


@pytest.fixture
def prec():
    return PrecisionParams()


def relative_error(computed, reference, eps=1e-30):
    """Compute relative error, avoiding division by zero."""
    return np.abs(np.asarray(computed) - reference) / (np.abs(reference) + eps)


def max_relative_error(computed, reference, eps=1e-30):
    """Return (max_rel_err, index_of_max)."""
    rel = np.atleast_1d(relative_error(computed, reference, eps))
    idx = int(np.argmax(rel))
    return float(rel[idx]), idx


def assert_close(computed, reference, rtol, name="quantity", coordinate=None):
    """Assert computed matches reference within rtol, with a concise message."""
    computed = np.atleast_1d(np.asarray(computed, dtype=float))
    reference = np.atleast_1d(np.asarray(reference, dtype=float))
    computed, reference = np.broadcast_arrays(computed, reference)
    max_err, idx = max_relative_error(computed, reference)
    if max_err > rtol:
        coord_str = f" at index {idx}"
        if coordinate is not None:
            coord_str = f" at {coordinate[idx]:.6g}"
        msg = (
            f"{name}: max rel error {max_err:.4%}{coord_str}"
            f" (expected {reference[idx]:.6e}, got {computed[idx]:.6e})"
            f" -- tolerance {rtol:.4%}"
        )
        raise AssertionError(msg)


@pytest.fixture
def caplog_loguru():
    """Messages logged through loguru at INFO and above during the test."""
    from jaxprimordial.log import get_logger

    logger = get_logger()
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="INFO")
    yield messages
    logger.remove(handler_id)
