import pytest
import numpy as np
import jax.numpy as jnp
import optax
from numpyro.optim import ClippedAdam

from fitscreen.analysis.hierarchical.optim import (
    DecayedAdaGradState,
    scale_by_decayed_adagrad,
    decayed_adagrad,
    get_optimizer
)


def test_scale_by_decayed_adagrad_init():
    tx = scale_by_decayed_adagrad(eps=1e-8)
    state = tx.init({"a":jnp.zeros(3)})
    assert isinstance(state, DecayedAdaGradState)
    assert jnp.allclose(state.sum_of_squares["a"], 1e-8)


def test_scale_by_decayed_adagrad_update():

    pre, post, eps = 1.1, 0.9, 1e-8
    tx = scale_by_decayed_adagrad(pre=pre, post=post, eps=eps)

    params = {"a":jnp.zeros(2)}
    state = tx.init(params)

    g1 = {"a":jnp.array([1.0, -2.0])}
    updates, state = tx.update(g1, state)

    acc = post*eps + pre*np.array([1.0, 4.0])
    assert np.allclose(np.asarray(state.sum_of_squares["a"]), acc)
    assert np.allclose(np.asarray(updates["a"]),
                       np.array([1.0, -2.0])/(np.sqrt(acc) + eps))

    g2 = {"a":jnp.array([0.5, 0.0])}
    updates, state = tx.update(g2, state)

    acc = post*acc + pre*np.array([0.25, 0.0])
    assert np.allclose(np.asarray(state.sum_of_squares["a"]), acc)
    assert np.allclose(np.asarray(updates["a"]), [0.5/(np.sqrt(acc[0]) + eps), 0.0])


def test_decayed_adagrad_descends():
    """
    Minimizing (x - 3)^2 moves x toward 3.
    """

    tx = decayed_adagrad(learning_rate=0.1)
    x = jnp.array(0.0)
    state = tx.init(x)
    for _ in range(200):
        grad = 2*(x - 3.0)
        updates, state = tx.update(grad, state)
        x = optax.apply_updates(x, updates)

    assert abs(float(x) - 3.0) < 0.2


def test_get_optimizer():
    opt = get_optimizer("decayed_adagrad", step_size=0.01)
    state = opt.init({"a":jnp.ones(2)})
    assert opt.get_params(state)["a"].shape == (2,)

    assert isinstance(get_optimizer("clipped_adam", step_size=0.01), ClippedAdam)

    with pytest.raises(ValueError, match="not recognized"):
        get_optimizer("sgd")
