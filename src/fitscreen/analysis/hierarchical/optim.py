"""
Optimizers for variational fitting.
"""

import jax
import jax.numpy as jnp
import optax
from numpyro.optim import (
    ClippedAdam,
    optax_to_numpyro
)

from typing import NamedTuple


class DecayedAdaGradState(NamedTuple):
    """
    Running (decayed) sum of squared gradients.
    """
    sum_of_squares: optax.Updates


def scale_by_decayed_adagrad(pre: float = 1.1,
                             post: float = 0.9,
                             eps: float = 1e-8) -> optax.GradientTransformation:
    """
    Rescale updates by a decayed accumulation of squared gradients.

    acc = post*acc + pre*g**2
    update = g/(sqrt(acc) + eps)

    Unlike AdaGrad, old gradients are forgotten at rate `post`, so the
    effective step size does not shrink to zero over long runs.

    Parameters
    ----------
    pre : float, optional
        Weight on the newest squared gradient.
    post : float, optional
        Decay applied to the accumulator at each step.
    eps : float, optional
        Added to the denominator. The accumulator also starts at `eps`.

    Returns
    -------
    optax.GradientTransformation
    """

    def init_fn(params):
        sum_of_squares = jax.tree_util.tree_map(
            lambda p: jnp.full_like(p, eps), params
        )
        return DecayedAdaGradState(sum_of_squares=sum_of_squares)

    def update_fn(updates, state, params=None):
        del params
        acc = jax.tree_util.tree_map(
            lambda g, a: post*a + pre*jnp.square(g),
            updates,
            state.sum_of_squares
        )
        updates = jax.tree_util.tree_map(
            lambda g, a: g/(jnp.sqrt(a) + eps),
            updates,
            acc
        )
        return updates, DecayedAdaGradState(sum_of_squares=acc)

    return optax.GradientTransformation(init_fn, update_fn)


def decayed_adagrad(learning_rate=1e-2,
                    pre: float = 1.1,
                    post: float = 0.9,
                    eps: float = 1e-8) -> optax.GradientTransformation:
    """
    Decayed AdaGrad as an optax transformation.

    Parameters
    ----------
    learning_rate : float or callable, optional
        Step size. Can be a fixed float or an optax schedule.
    pre, post, eps : float, optional
        See `scale_by_decayed_adagrad`.

    Returns
    -------
    optax.GradientTransformation
    """

    return optax.chain(
        scale_by_decayed_adagrad(pre=pre, post=post, eps=eps),
        optax.scale_by_learning_rate(learning_rate),
    )


def get_optimizer(optimizer="decayed_adagrad",
                  step_size=1e-2,
                  clip_norm=10.0,
                  pre=1.1,
                  post=0.9):
    """
    Build a numpyro optimizer by name.

    Parameters
    ----------
    optimizer : str, optional
        'decayed_adagrad' (default) or 'clipped_adam'.
    step_size : float or callable, optional
        Step size (fixed or an optax schedule).
    clip_norm : float, optional
        Gradient clipping norm for 'clipped_adam'.
    pre, post : float, optional
        Accumulator weights for 'decayed_adagrad'.

    Returns
    -------
    numpyro.optim._NumPyroOptim
    """

    if optimizer == "decayed_adagrad":
        return optax_to_numpyro(decayed_adagrad(learning_rate=step_size,
                                                pre=pre,
                                                post=post))

    if optimizer == "clipped_adam":
        return ClippedAdam(step_size=step_size, clip_norm=clip_norm)

    raise ValueError(
        f"optimizer '{optimizer}' not recognized. Should be 'decayed_adagrad' "
        "or 'clipped_adam'."
    )
