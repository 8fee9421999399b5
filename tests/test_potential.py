"""Test the quartic inflaton potential and its guards."""

import math

import jax
import jax.numpy as jnp
import pytest

from jaxprimordial.errors import InvalidPotential, PrimordialError
from jaxprimordial.params import PotentialParams
from jaxprimordial.potential import check_potential, epsilon, potential, slow_roll_predictions


def test_taylor_expansion():
    pot = PotentialParams(V0=1.0, V1=-2.0, V2=3.0, V3=-4.0, V4=5.0, phi_pivot=0.5)
    phi = 1.5  # x = 1
    V, dV, ddV = potential(pot, phi)
    assert V == pytest.approx(1.0 - 2.0 + 1.5 - 4.0 / 6.0 + 5.0 / 24.0)
    assert dV == pytest.approx(-2.0 + 3.0 - 2.0 + 5.0 / 6.0)
    assert ddV == pytest.approx(3.0 - 4.0 + 2.5)


def test_derivatives_match_autodiff():
    pot = PotentialParams(V0=1.0, V1=-0.3, V2=0.2, V3=0.1, V4=-0.05, phi_pivot=0.2)
    V_fn = lambda phi: potential(pot, phi)[0]
    for phi in (-1.0, 0.2, 0.9):
        _, dV, ddV = potential(pot, jnp.asarray(phi))
        assert float(jax.grad(V_fn)(phi)) == pytest.approx(float(dV), rel=1e-12)
        assert float(jax.grad(jax.grad(V_fn))(phi)) == pytest.approx(float(ddV), rel=1e-12)


@pytest.mark.parametrize("phi", [-3.0, 0.0, 0.7, 12.0])
def test_flat_potential_rejected(phi):
    """Only V0 set: V = V0, dV = ddV = 0, and the dV >= 0 guard triggers."""
    pot = PotentialParams(V0=1e-10, V1=0.0, V2=0.0, V3=0.0, V4=0.0)
    assert potential(pot, phi) == (1e-10, 0.0, 0.0)
    with pytest.raises(InvalidPotential) as exc:
        check_potential(pot, phi)
    assert exc.value.context["dV"] == 0.0


def test_negative_potential_rejected():
    pot = PotentialParams(V0=-1e-12, V1=-1e-13)
    with pytest.raises(InvalidPotential) as exc:
        check_potential(pot, 0.0)
    assert "negative" in str(exc.value)
    assert isinstance(exc.value, PrimordialError)


def test_default_potential_valid_at_pivot():
    check_potential(PotentialParams(), 0.0)


def test_epsilon():
    pot = PotentialParams()
    assert epsilon(pot, 0.0) == pytest.approx((pot.V1 / pot.V0) ** 2 / (16.0 * math.pi))


def test_slow_roll_predictions_default():
    """The default potential gives a Planck-like scalar amplitude."""
    pred = slow_roll_predictions(PotentialParams())
    assert 1.5e-9 < pred["A_s"] < 3e-9
    assert 0.93 < pred["n_s"] < 0.97
    assert pred["n_t"] == pytest.approx(-pred["r"] / 8.0)
