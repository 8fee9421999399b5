"""Cubic spline tables for jaxprimordial.

A spline is built once from knots x and a table y whose first axis runs over
the knots; extra axes (e.g. one column per pair of initial conditions) are
splined independently, like CLASS's array_spline_table_lines. The class is a
JAX pytree, so it can be stored in result containers and used under jit.

Boundary conditions:
    "natural":   S''(x[0]) = S''(x[-1]) = 0
    "est_deriv": S'(x[0]), S'(x[-1]) fixed to the slope of the parabola through
                 the three nearest knots (CLASS _SPLINE_EST_DERIV_)

The tridiagonal system is solved with the Thomas algorithm in
jax.lax.fori_loop; interval lookup uses jnp.searchsorted.

References:
    CLASS: tools/arrays.c (array_spline_table_lines, array_interpolate_spline)
    Numerical Recipes, section 3.3
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jaxtyping import Array, Float

SPLINE_NATURAL = "natural"
SPLINE_EST_DERIV = "est_deriv"


@jax.tree_util.register_pytree_node_class
class CubicSpline:
    """Cubic spline through (x, y) with per-column second derivatives d2y.

    Attributes:
        x: knot positions, shape (N,), strictly increasing
        y: knot values, shape (N,) or (N, M)
        d2y: second derivatives at knots, same shape as y
    """

    def __init__(
        self,
        x: Float[Array, "N"],
        y: Float[Array, "N ..."],
        boundary: str = SPLINE_NATURAL,
    ):
        self.x = jnp.asarray(x)
        self.y = jnp.asarray(y)
        self.d2y = spline_second_derivatives(self.x, self.y, boundary)

    def _interval(self, x_eval):
        """Interval index and barycentric weights A, B broadcast against y columns."""
        x_eval = jnp.asarray(x_eval)
        x_clamped = jnp.clip(x_eval, self.x[0], self.x[-1])
        idx = jnp.searchsorted(self.x, x_clamped, side="right") - 1
        idx = jnp.clip(idx, 0, len(self.x) - 2)

        h = self.x[idx + 1] - self.x[idx]
        A = (self.x[idx + 1] - x_clamped) / h
        B = (x_clamped - self.x[idx]) / h
        extra = (None,) * (self.y.ndim - 1)
        return idx, h[(...,) + extra], A[(...,) + extra], B[(...,) + extra]

    def evaluate(self, x_eval: Float[Array, "..."]) -> Float[Array, "..."]:
        """Evaluate the spline (all columns) at x_eval.

            S(x) = A*y_i + B*y_{i+1} + ((A^3 - A)*d2y_i + (B^3 - B)*d2y_{i+1})*h^2/6

        Output shape: x_eval.shape + y.shape[1:].
        """
        idx, h, A, B = self._interval(x_eval)
        return (
            A * self.y[idx]
            + B * self.y[idx + 1]
            + ((A**3 - A) * self.d2y[idx] + (B**3 - B) * self.d2y[idx + 1])
            * h**2
            / 6.0
        )

    def derivative(self, x_eval: Float[Array, "..."]) -> Float[Array, "..."]:
        """S'(x) = (y_{i+1} - y_i)/h - (3A^2 - 1)*d2y_i*h/6 + (3B^2 - 1)*d2y_{i+1}*h/6"""
        idx, h, A, B = self._interval(x_eval)
        return (
            (self.y[idx + 1] - self.y[idx]) / h
            - (3.0 * A**2 - 1.0) * self.d2y[idx] * h / 6.0
            + (3.0 * B**2 - 1.0) * self.d2y[idx + 1] * h / 6.0
        )

    # --- JAX pytree registration ---

    def tree_flatten(self):
        children = (self.x, self.y, self.d2y)
        aux_data = None
        return children, aux_data

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        obj = object.__new__(cls)
        obj.x, obj.y, obj.d2y = children
        return obj


def _estimated_end_slopes(x, y):
    """Slopes at both ends from the parabola through the three nearest knots."""
    dy_first = (
        (x[2] - x[0]) ** 2 * (y[1] - y[0]) - (x[1] - x[0]) ** 2 * (y[2] - y[0])
    ) / ((x[2] - x[0]) * (x[1] - x[0]) * (x[2] - x[1]))
    dy_last = (
        (x[-3] - x[-1]) ** 2 * (y[-2] - y[-1]) - (x[-2] - x[-1]) ** 2 * (y[-3] - y[-1])
    ) / ((x[-3] - x[-1]) * (x[-2] - x[-1]) * (x[-3] - x[-2]))
    return dy_first, dy_last


def spline_second_derivatives(
    x: Float[Array, "N"],
    y: Float[Array, "N ..."],
    boundary: str = SPLINE_NATURAL,
) -> Float[Array, "N ..."]:
    """Second derivatives of the cubic spline through (x, y), column by column.

    The full N x N tridiagonal system is

        row 0:      b_0 M_0 + c_0 M_1 = r_0
        row i:      h_{i-1} M_{i-1} + 2(h_{i-1} + h_i) M_i + h_i M_{i+1}
                        = 6 [(y_{i+1}-y_i)/h_i - (y_i-y_{i-1})/h_{i-1}]
        row N-1:    a_{N-1} M_{N-2} + b_{N-1} M_{N-1} = r_{N-1}

    with end rows M = 0 (natural) or the clamped-slope conditions
    2 h_0 M_0 + h_0 M_1 = 6[(y_1-y_0)/h_0 - y'_0] and its mirror (est_deriv).
    Grids with fewer than 3 knots always use the natural boundary.

    Args:
        x: knot positions, shape (N,)
        y: knot values, shape (N,) or (N, M)
        boundary: "natural" or "est_deriv"

    Returns:
        d2y: same shape as y
    """
    if boundary not in (SPLINE_NATURAL, SPLINE_EST_DERIV):
        raise ValueError(f"Unknown spline boundary condition: {boundary}")

    n = x.shape[0]
    if n < 2:
        raise ValueError(f"Need at least 2 knots for a spline, got {n}")
    if n == 2:
        return jnp.zeros_like(y)

    extra = (None,) * (y.ndim - 1)
    h = x[1:] - x[:-1]                      # (N-1,)
    slope = (y[1:] - y[:-1]) / h[(...,) + extra]  # (N-1, ...)

    # Interior rows
    lower = jnp.concatenate([jnp.zeros(1), h[:-1], jnp.zeros(1)])
    diag = jnp.concatenate([jnp.ones(1), 2.0 * (h[:-1] + h[1:]), jnp.ones(1)])
    upper = jnp.concatenate([jnp.zeros(1), h[1:], jnp.zeros(1)])
    zero_row = jnp.zeros_like(y[:1])
    rhs = jnp.concatenate([zero_row, 6.0 * (slope[1:] - slope[:-1]), zero_row])

    if boundary == SPLINE_EST_DERIV and n >= 3:
        dy_first, dy_last = _estimated_end_slopes(x, y)
        diag = diag.at[0].set(2.0 * h[0]).at[-1].set(2.0 * h[-1])
        upper = upper.at[0].set(h[0])
        lower = lower.at[-1].set(h[-1])
        rhs = rhs.at[0].set(6.0 * (slope[0] - dy_first))
        rhs = rhs.at[-1].set(6.0 * (dy_last - slope[-1]))

    # Thomas algorithm: forward sweep
    def forward_step(i, carry):
        d, r = carry
        w = lower[i] / d[i - 1]
        d = d.at[i].set(d[i] - w * upper[i - 1])
        r = r.at[i].set(r[i] - w * r[i - 1])
        return (d, r)

    diag_mod, rhs_mod = jax.lax.fori_loop(1, n, forward_step, (diag, rhs))

    # Back substitution
    d2y = jnp.zeros_like(rhs_mod)
    d2y = d2y.at[-1].set(rhs_mod[-1] / diag_mod[-1])

    def backward_step(i, d2y):
        j = n - 2 - i  # counts down from n-2 to 0
        d2y = d2y.at[j].set((rhs_mod[j] - upper[j] * d2y[j + 1]) / diag_mod[j])
        return d2y

    return jax.lax.fori_loop(0, n - 1, backward_step, d2y)
