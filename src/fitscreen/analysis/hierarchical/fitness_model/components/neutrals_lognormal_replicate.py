import jax.numpy as jnp
import numpyro as pyro
import numpyro.distributions as dist
from flax.struct import dataclass

import numpy as np
from typing import Dict, Any, Tuple

from fitscreen.analysis.hierarchical.fitness_model.data_class import FitnessData
from fitscreen.analysis.hierarchical.fitness_model.components.neutrals_lognormal import (
    expand_lambda_prior
)


@dataclass(frozen=True)
class ModelPriors:
    """
    JAX Pytree holding hyperparameters for the neutrals_lognormal_replicate
    model.

    Attributes
    ----------
    s_pop_loc, s_pop_scale : float
        Normal prior on the shared population mean fitness.
    tau_loc, tau_scale : float
        LogNormal prior on the spread of replicate mean fitness around the
        shared value.
    sigma_pop_loc, sigma_pop_scale : float
        LogNormal prior on the neutral log-ratio error.
    lambda_loc, lambda_scale : jnp.ndarray
        Per-entry LogNormal prior on the Poisson intensities,
        (num_replicate, num_time, num_bc).
    """

    s_pop_loc: float
    s_pop_scale: float
    tau_loc: float
    tau_scale: float
    sigma_pop_loc: float
    sigma_pop_scale: float
    lambda_loc: jnp.ndarray
    lambda_scale: jnp.ndarray


def define_model(data: FitnessData,
                 priors: ModelPriors) -> Tuple[jnp.ndarray, jnp.ndarray, jnp.ndarray]:
    """
    Sample the latent parameters of the replicate model.

    Each replicate has its own mean fitness trajectory, drawn around a
    shared trajectory ``s_pop`` with a non-centered parameterization:
    ``s_pop_rep = s_pop + tau * s_pop_offset``. Errors and intensities are
    independent per replicate.

    Parameters
    ----------
    data : FitnessData
        Count data with a leading replicate axis.
    priors : ModelPriors
        Hyperparameters.

    Returns
    -------
    lam : jnp.ndarray
        (num_replicate, num_time, num_bc) Poisson intensities.
    s_pop_rep : jnp.ndarray
        (num_replicate, num_time - 1) per-replicate mean fitness.
    sigma_pop : jnp.ndarray
        (num_replicate, num_time - 1) log-ratio error.
    """

    num_step = data.num_time - 1

    with pyro.plate("time_step", num_step, dim=-1):
        s_pop = pyro.sample("s_pop",
                            dist.Normal(priors.s_pop_loc, priors.s_pop_scale))

    tau = pyro.sample("tau", dist.LogNormal(priors.tau_loc, priors.tau_scale))

    with pyro.plate("replicate", data.num_replicate, dim=-2):
        with pyro.plate("time_step", num_step, dim=-1):
            s_pop_offset = pyro.sample("s_pop_offset", dist.Normal(0.0, 1.0))
            sigma_pop = pyro.sample("sigma_pop",
                                    dist.LogNormal(priors.sigma_pop_loc,
                                                   priors.sigma_pop_scale))

    s_pop_rep = s_pop + tau*s_pop_offset
    pyro.deterministic("s_pop_rep", s_pop_rep)

    lam = pyro.sample("lambda",
                      dist.LogNormal(priors.lambda_loc,
                                     priors.lambda_scale).to_event(3))

    return lam, s_pop_rep, sigma_pop


def get_hyperparameters() -> Dict[str, Any]:
    """
    Get default values for the model hyperparameters.
    """

    parameters = {}
    parameters["s_pop_prior"] = [0.0, 1.0]
    parameters["tau_prior"] = [-2.0, 1.0]
    parameters["sigma_pop_prior"] = [0.0, 0.5]
    parameters["lambda_prior"] = [3.0, 3.0]

    return parameters


def get_guesses(data: FitnessData) -> Dict[str, jnp.ndarray]:
    """
    Get guess values for the latent parameters. Replicates start on the
    shared trajectory (zero offsets).
    """

    step_shape = (data.num_replicate, data.num_time - 1)

    guesses = {}
    guesses["s_pop"] = jnp.zeros(data.num_time - 1, dtype=float)
    guesses["tau"] = jnp.array(0.1)
    guesses["s_pop_offset"] = jnp.zeros(step_shape, dtype=float)
    guesses["sigma_pop"] = jnp.ones(step_shape, dtype=float)
    guesses["lambda"] = jnp.asarray(data.bc_count, dtype=float) + 1.0

    return guesses


def get_priors(data: FitnessData, **hyperparameters) -> ModelPriors:
    """
    Build a ModelPriors object from defaults overridden by `hyperparameters`.
    A per-entry ``lambda_prior`` is shared by all replicates.
    """

    params = get_hyperparameters()
    for k in hyperparameters:
        if k not in params:
            raise ValueError(
                f"hyperparameter '{k}' not recognized. Should be one of: "
                f"{list(params.keys())}"
            )
        params[k] = hyperparameters[k]

    lambda_loc, lambda_scale = expand_lambda_prior(params["lambda_prior"],
                                                   data.num_time,
                                                   data.num_bc)
    full_shape = (data.num_replicate, data.num_time, data.num_bc)

    return ModelPriors(s_pop_loc=float(params["s_pop_prior"][0]),
                       s_pop_scale=float(params["s_pop_prior"][1]),
                       tau_loc=float(params["tau_prior"][0]),
                       tau_scale=float(params["tau_prior"][1]),
                       sigma_pop_loc=float(params["sigma_pop_prior"][0]),
                       sigma_pop_scale=float(params["sigma_pop_prior"][1]),
                       lambda_loc=jnp.asarray(np.broadcast_to(lambda_loc, full_shape)),
                       lambda_scale=jnp.asarray(np.broadcast_to(lambda_scale, full_shape)))
