"""Test cubic spline tables (natural and estimated-derivative boundaries)."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from jaxprimordial.interpolation import SPLINE_EST_DERIV, SPLINE_NATURAL, CubicSpline


def test_spline_sin():
    """Spline of sin(x) should match to high accuracy."""
    x = jnp.linspace(0, 2 * jnp.pi, 100)
    y = jnp.sin(x)
    spl = CubicSpline(x, y)

    x_eval = jnp.linspace(0.1, 2 * jnp.pi - 0.1, 500)
    y_eval = spl.evaluate(x_eval)
    y_exact = jnp.sin(x_eval)

    max_err = float(jnp.max(jnp.abs(y_eval - y_exact)))
    assert max_err < 1e-5, f"Spline sin error: {max_err:.2e}"


def test_spline_derivative_cos():
    """Derivative of spline(sin) should be cos."""
    x = jnp.linspace(0, 2 * jnp.pi, 200)
    spl = CubicSpline(x, jnp.sin(x), boundary=SPLINE_EST_DERIV)

    x_eval = jnp.linspace(0.1, 2 * jnp.pi - 0.1, 100)
    max_err = float(jnp.max(jnp.abs(spl.derivative(x_eval) - jnp.cos(x_eval))))
    assert max_err < 1e-3, f"Spline derivative error: {max_err:.2e}"


def test_est_deriv_reproduces_parabola():
    """End slopes from the parabola through three knots are exact for quadratics."""
    x = jnp.array([0.0, 0.3, 1.0, 1.7, 2.1, 3.0])
    y = 2.0 * x**2 - x + 0.5
    spl = CubicSpline(x, y, boundary=SPLINE_EST_DERIV)

    x_eval = jnp.linspace(0.0, 3.0, 37)
    np.testing.assert_allclose(spl.evaluate(x_eval), 2.0 * x_eval**2 - x_eval + 0.5, rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(spl.d2y, 4.0, rtol=1e-10)


def test_natural_boundary_zero_curvature():
    x = jnp.linspace(0.0, 1.0, 11)
    spl = CubicSpline(x, jnp.exp(x), boundary=SPLINE_NATURAL)
    assert float(spl.d2y[0]) == 0.0
    assert float(spl.d2y[-1]) == 0.0


def test_multi_column_matches_single():
    """Columns of a table are splined independently."""
    x = jnp.linspace(-3.0, 2.0, 30)
    table = jnp.stack([jnp.sin(x), x**3, jnp.zeros_like(x)], axis=1)
    spl = CubicSpline(x, table, boundary=SPLINE_EST_DERIV)

    x_eval = jnp.linspace(-2.9, 1.9, 17)
    values = spl.evaluate(x_eval)
    assert values.shape == (17, 3)
    for col in range(3):
        single = CubicSpline(x, table[:, col], boundary=SPLINE_EST_DERIV)
        np.testing.assert_allclose(values[:, col], single.evaluate(x_eval), rtol=1e-12, atol=1e-14)
    assert float(jnp.max(jnp.abs(values[:, 2]))) == 0.0

    scalar = spl.evaluate(0.25)
    assert scalar.shape == (3,)


def test_two_knots_linear():
    spl = CubicSpline(jnp.array([0.0, 2.0]), jnp.array([1.0, 5.0]))
    assert float(spl.evaluate(0.5)) == pytest.approx(2.0)


def test_invalid_inputs():
    with pytest.raises(ValueError):
        CubicSpline(jnp.array([0.0]), jnp.array([1.0]))
    with pytest.raises(ValueError):
        CubicSpline(jnp.linspace(0, 1, 5), jnp.ones(5), boundary="periodic")


def test_spline_pytree():
    """CubicSpline should work as a JAX pytree (flatten/unflatten)."""
    x = jnp.linspace(0, 1, 10)
    spl = CubicSpline(x, x ** 2)

    leaves, treedef = jax.tree_util.tree_flatten(spl)
    spl2 = jax.tree_util.tree_unflatten(treedef, leaves)

    x_eval = jnp.array([0.5])
    assert jnp.allclose(spl.evaluate(x_eval), spl2.evaluate(x_eval))


def test_spline_grad():
    """Gradients should flow through spline construction and evaluation."""
    x = jnp.linspace(0, 1, 20)

    def f(y_knots):
        spl = CubicSpline(x, y_knots, boundary=SPLINE_EST_DERIV)
        return spl.evaluate(jnp.array(0.5))

    grad = jax.grad(f)(jnp.sin(x))
    assert float(jnp.sum(jnp.abs(grad))) > 0, "Gradient through spline is zero"
    assert jnp.all(jnp.isfinite(grad)), "NaN in spline gradient"
