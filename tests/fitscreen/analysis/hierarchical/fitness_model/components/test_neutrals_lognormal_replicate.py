import pytest
import jax.numpy as jnp
from numpyro.handlers import trace, seed, substitute
from collections import namedtuple

from fitscreen.analysis.hierarchical.fitness_model.components.neutrals_lognormal_replicate import (
    ModelPriors,
    define_model,
    get_hyperparameters,
    get_guesses,
    get_priors
)

MockFitnessData = namedtuple("MockFitnessData", [
    "bc_count",
    "num_replicate",
    "num_time",
    "num_bc",
])


@pytest.fixture
def mock_data():
    """
    Two replicates, three time points, four lineages (replicate axis first).
    """
    bc_count = jnp.arange(24).reshape((2, 3, 4))
    return MockFitnessData(bc_count=bc_count, num_replicate=2, num_time=3, num_bc=4)


def test_get_hyperparameters():
    params = get_hyperparameters()
    assert params["tau_prior"] == [-2.0, 1.0]
    assert set(params) == {"s_pop_prior", "tau_prior", "sigma_pop_prior", "lambda_prior"}


def test_get_priors(mock_data):
    priors = get_priors(mock_data, tau_prior=[-1.0, 0.5])
    assert isinstance(priors, ModelPriors)
    assert priors.tau_loc == -1.0
    assert priors.tau_scale == 0.5
    assert priors.lambda_loc.shape == (2, 3, 4)
    assert priors.lambda_scale.shape == (2, 3, 4)

    with pytest.raises(ValueError, match="not recognized"):
        get_priors(mock_data, bad=[0, 1])


def test_get_guesses(mock_data):
    guesses = get_guesses(mock_data)
    assert guesses["s_pop"].shape == (2,)
    assert guesses["s_pop_offset"].shape == (2, 2)
    assert guesses["sigma_pop"].shape == (2, 2)
    assert guesses["lambda"].shape == (2, 3, 4)
    assert guesses["tau"] > 0


def test_define_model_replicate_trajectories(mock_data):
    priors = get_priors(mock_data)
    guesses = get_guesses(mock_data)
    guesses["s_pop"] = jnp.array([0.1, 0.2])
    guesses["tau"] = jnp.array(0.5)
    guesses["s_pop_offset"] = jnp.array([[1.0, 0.0],
                                         [-1.0, 2.0]])

    substituted_model = substitute(define_model, data=guesses)
    with trace() as model_trace:
        lam, s_pop_rep, sigma_pop = substituted_model(mock_data, priors)

    expected = jnp.array([[0.6, 0.2],
                          [-0.4, 1.2]])
    assert jnp.allclose(s_pop_rep, expected)
    assert jnp.allclose(model_trace["s_pop_rep"]["value"], expected)
    assert lam.shape == (2, 3, 4)
    assert sigma_pop.shape == (2, 2)


def test_define_model_sites(mock_data):
    priors = get_priors(mock_data)
    model_trace = trace(seed(define_model, 0)).get_trace(mock_data, priors)

    assert model_trace["s_pop"]["value"].shape == (2,)
    assert model_trace["tau"]["value"].shape == ()
    assert model_trace["s_pop_offset"]["value"].shape == (2, 2)
    assert model_trace["sigma_pop"]["value"].shape == (2, 2)
    assert model_trace["lambda"]["fn"].event_shape == (2, 3, 4)
