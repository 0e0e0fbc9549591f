import pytest
import numpy as np
import jax.numpy as jnp
import numpyro.distributions as dist
from numpyro.handlers import trace
from collections import namedtuple

from fitscreen.analysis.hierarchical.fitness_model.observe.counts import observe

MockFitnessData = namedtuple("MockFitnessData", [
    "bc_count",
    "bc_total",
])


@pytest.fixture
def mock_data():
    bc_count = jnp.array([[10, 5, 0],
                          [ 8, 6, 2]])
    return MockFitnessData(bc_count=bc_count, bc_total=bc_count.sum(axis=1))


def test_observe_sites(mock_data):

    lam = jnp.array([[10.0, 5.0, 1.0],
                     [ 8.0, 6.0, 2.0]])
    freq = lam/lam.sum(axis=-1, keepdims=True)

    with trace() as tr:
        observe("bc", mock_data, lam, freq)

    assert set(tr.keys()) == {"bc_total", "bc_count"}

    total_site = tr["bc_total"]
    assert total_site["is_observed"]
    assert isinstance(total_site["fn"], dist.Poisson)
    assert jnp.allclose(total_site["fn"].rate, lam.sum(axis=-1))
    assert jnp.array_equal(total_site["value"], mock_data.bc_total)

    count_site = tr["bc_count"]
    assert count_site["is_observed"]
    assert jnp.allclose(count_site["fn"].probs, freq, atol=1e-6)
    assert jnp.array_equal(count_site["value"], mock_data.bc_count)


def test_observe_zero_frequency_is_clipped(mock_data):
    """
    An intensity that underflows to zero must not make the multinomial
    log-likelihood infinite.
    """

    lam = jnp.array([[10.0, 5.0, 0.0],
                     [ 8.0, 6.0, 0.0]])
    freq = lam/lam.sum(axis=-1, keepdims=True)

    with trace() as tr:
        observe("bc", mock_data, lam, freq)

    probs = tr["bc_count"]["fn"].probs
    assert jnp.all(probs > 0)
    assert np.allclose(np.asarray(probs.sum(axis=-1)), 1.0)

    # first row has no reads in the zero-intensity lineage
    row_log_prob = tr["bc_count"]["fn"].log_prob(mock_data.bc_count)
    assert jnp.isfinite(row_log_prob[0])
