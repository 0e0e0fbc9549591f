import jax.numpy as jnp
import numpyro as pyro
import numpyro.distributions as dist
from flax.struct import dataclass

import numpy as np
from typing import Dict, Any, Tuple

from fitscreen.analysis.hierarchical.fitness_model.data_class import FitnessData


@dataclass(frozen=True)
class ModelPriors:
    """
    JAX Pytree holding hyperparameters for the neutrals_lognormal model.

    Attributes
    ----------
    s_pop_loc, s_pop_scale : float
        Normal prior on the population mean fitness at each time step.
    sigma_pop_loc, sigma_pop_scale : float
        LogNormal prior on the neutral log-ratio error at each time step.
    lambda_loc, lambda_scale : jnp.ndarray
        Per-entry LogNormal prior on the Poisson intensities, with the same
        shape as ``data.bc_count``.
    """

    s_pop_loc: float
    s_pop_scale: float
    sigma_pop_loc: float
    sigma_pop_scale: float
    lambda_loc: jnp.ndarray
    lambda_scale: jnp.ndarray


def expand_lambda_prior(lambda_prior, num_time, num_bc):
    """
    Expand a user-facing intensity prior into (num_time, num_bc) loc and
    scale arrays.

    Parameters
    ----------
    lambda_prior : array_like
        One of:
        - a (loc, scale) pair shared by every entry;
        - a (num_time, num_bc, 2) array of per-entry (loc, scale);
        - a (num_time*num_bc, 2) array of per-entry (loc, scale), flattened
          with time varying fastest (one block of num_time rows per lineage).
    num_time, num_bc : int
        Shape of the count matrix.

    Returns
    -------
    lambda_loc, lambda_scale : np.ndarray
        Arrays of shape (num_time, num_bc).
    """

    arr = np.asarray(lambda_prior, dtype=float)
    shape = (num_time, num_bc)

    if arr.shape == (2,):
        loc = np.full(shape, arr[0])
        scale = np.full(shape, arr[1])
    elif arr.shape == shape + (2,):
        loc = arr[..., 0]
        scale = arr[..., 1]
    elif arr.shape == (num_time*num_bc, 2):
        per_lineage = arr.reshape((num_bc, num_time, 2))
        loc = per_lineage[..., 0].T
        scale = per_lineage[..., 1].T
    else:
        raise ValueError(
            f"lambda_prior has shape {arr.shape}. It must be (2,), "
            f"{shape + (2,)}, or {(num_time*num_bc, 2)}."
        )

    if np.any(scale <= 0):
        raise ValueError("lambda_prior scales must be positive.")

    return loc, scale


def define_model(data: FitnessData,
                 priors: ModelPriors) -> Tuple[jnp.ndarray, jnp.ndarray, jnp.ndarray]:
    """
    Sample the latent parameters of the neutrals_lognormal model.

    Draws the population mean fitness ``s_pop`` and the neutral log-ratio
    error ``sigma_pop`` independently at each of the num_time - 1 time steps,
    and the Poisson intensity ``lambda`` independently for every
    (time, lineage) entry.

    Parameters
    ----------
    data : FitnessData
        Count data. Uses ``num_time`` and ``num_bc``.
    priors : ModelPriors
        Hyperparameters.

    Returns
    -------
    lam : jnp.ndarray
        (num_time, num_bc) Poisson intensities.
    s_pop : jnp.ndarray
        (num_time - 1,) population mean fitness.
    sigma_pop : jnp.ndarray
        (num_time - 1,) log-ratio error.
    """

    num_step = data.num_time - 1

    with pyro.plate("time_step", num_step, dim=-1):
        s_pop = pyro.sample("s_pop",
                            dist.Normal(priors.s_pop_loc, priors.s_pop_scale))
        sigma_pop = pyro.sample("sigma_pop",
                                dist.LogNormal(priors.sigma_pop_loc,
                                               priors.sigma_pop_scale))

    lam = pyro.sample("lambda",
                      dist.LogNormal(priors.lambda_loc,
                                     priors.lambda_scale).to_event(2))

    return lam, s_pop, sigma_pop


def get_hyperparameters() -> Dict[str, Any]:
    """
    Get default values for the model hyperparameters.

    Returns
    -------
    dict[str, Any]
        Hyperparameter names mapped to (loc, scale) defaults.
    """

    parameters = {}
    parameters["s_pop_prior"] = [0.0, 1.0]
    parameters["sigma_pop_prior"] = [0.0, 0.5]
    parameters["lambda_prior"] = [3.0, 3.0]

    return parameters


def get_guesses(data: FitnessData) -> Dict[str, jnp.ndarray]:
    """
    Get guess values for the latent parameters: no change in mean fitness,
    unit error, and intensities equal to the observed counts (plus one so
    they are strictly positive).
    """

    guesses = {}
    guesses["s_pop"] = jnp.zeros(data.num_time - 1, dtype=float)
    guesses["sigma_pop"] = jnp.ones(data.num_time - 1, dtype=float)
    guesses["lambda"] = jnp.asarray(data.bc_count, dtype=float) + 1.0

    return guesses


def get_priors(data: FitnessData, **hyperparameters) -> ModelPriors:
    """
    Build a ModelPriors object from defaults overridden by `hyperparameters`.

    Parameters
    ----------
    data : FitnessData
        Count data, used to expand the intensity prior.
    **hyperparameters
        Any of ``s_pop_prior``, ``sigma_pop_prior``, ``lambda_prior``.

    Returns
    -------
    ModelPriors
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

    return ModelPriors(s_pop_loc=float(params["s_pop_prior"][0]),
                       s_pop_scale=float(params["s_pop_prior"][1]),
                       sigma_pop_loc=float(params["sigma_pop_prior"][0]),
                       sigma_pop_scale=float(params["sigma_pop_prior"][1]),
                       lambda_loc=jnp.asarray(lambda_loc),
                       lambda_scale=jnp.asarray(lambda_scale))
