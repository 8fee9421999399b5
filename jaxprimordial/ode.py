"""ODE stepper wrapper around Diffrax for jaxprimordial.

The inflaton solvers choose their own outer step (a fraction of 1/aH or of an
oscillation period) and check stopping criteria between steps; each outer
step is integrated adaptively by Diffrax's Tsit5 with a PID controller.
States are pytrees (NamedTuples of scalars), so no flat index bookkeeping is
needed.

References:
    Diffrax docs: https://docs.kidger.site/diffrax/
    CLASS: tools/evolver_rkck.c (generic_integrator)
"""

import diffrax
import jax
import jax.numpy as jnp


def integrate_interval(
    rhs_fn,
    t0,
    t1,
    y0,
    args=None,
    rtol: float = 1e-6,
    atol: float = 1e-14,
    max_steps: int = 4096,
    adjoint: str = "recursive_checkpoint",
):
    """Integrate a non-stiff ODE from t0 to t1 and return the final state.

    Traceable: usable inside jax.lax.while_loop bodies. Failures do not raise
    (they cannot, inside compiled loops); they are reported through `ok`.

    Args:
        rhs_fn: callable (t, y, args) -> dy with dy of the same pytree type as y
        t0: initial time
        t1: final time
        y0: initial state pytree
        args: additional arguments passed to rhs_fn
        rtol: relative tolerance
        atol: absolute tolerance
        max_steps: maximum number of internal solver steps
        adjoint: "recursive_checkpoint" or "direct"

    Returns:
        (y1, ok): state at t1 and a boolean success flag
    """
    sol = diffrax.diffeqsolve(
        diffrax.ODETerm(rhs_fn),
        solver=diffrax.Tsit5(),
        t0=t0,
        t1=t1,
        dt0=None,
        y0=y0,
        saveat=diffrax.SaveAt(t1=True),
        stepsize_controller=diffrax.PIDController(rtol=rtol, atol=atol),
        adjoint=_get_adjoint(adjoint),
        max_steps=max_steps,
        args=args,
        throw=False,
    )
    y1 = jax.tree_util.tree_map(lambda leaf: leaf[-1], sol.ys)
    ok = sol.result == diffrax.RESULTS.successful
    ok = ok & _all_finite(y1)
    return y1, ok


def _all_finite(y):
    leaves = jax.tree_util.tree_leaves(y)
    return jnp.all(jnp.stack([jnp.all(jnp.isfinite(leaf)) for leaf in leaves]))


def _get_adjoint(adjoint: str):
    """Return the Diffrax adjoint method from string name."""
    if adjoint == "recursive_checkpoint":
        return diffrax.RecursiveCheckpointAdjoint()
    elif adjoint == "direct":
        return diffrax.DirectAdjoint()
    else:
        raise ValueError(f"Unknown adjoint method: {adjoint}")
