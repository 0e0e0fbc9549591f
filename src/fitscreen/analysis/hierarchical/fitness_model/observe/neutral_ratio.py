import jax.numpy as jnp
import numpyro as pyro

import numpyro.distributions as dist

from fitscreen.analysis.hierarchical.fitness_model.data_class import FitnessData


def observe(name: str,
            data: FitnessData,
            freq: jnp.ndarray,
            s_pop: jnp.ndarray,
            sigma_pop: jnp.ndarray):
    """
    Tie the decay of neutral lineages to the population mean fitness.

    Neutral lineages have zero relative fitness, so the ratio of their
    frequencies across consecutive time points ``gamma = F[t+1]/F[t]`` is
    LogNormal with location ``-s_pop[t]`` and scale ``sigma_pop[t]``,
    independently for every neutral lineage. ``gamma`` is a function of the
    latent intensities rather than data, so the term is added to the joint
    density as a factor site rather than an observed sample site.

    Parameters
    ----------
    name : str
        Name of the factor site.
    data : FitnessData
        Uses ``num_neutral``. Neutral lineages occupy the first
        ``num_neutral`` columns.
    freq : jnp.ndarray
        (..., num_time, num_bc) frequencies.
    s_pop, sigma_pop : jnp.ndarray
        (..., num_time - 1) population mean fitness and log-ratio error.

    Returns
    -------
    jnp.ndarray
        (..., num_time - 1, num_neutral) neutral frequency ratios.
    """

    neutral_freq = freq[..., :data.num_neutral]
    gamma = neutral_freq[..., 1:, :]/neutral_freq[..., :-1, :]

    log_prob = dist.LogNormal(-s_pop[..., None],
                              sigma_pop[..., None]).log_prob(gamma)

    pyro.factor(name, jnp.sum(log_prob))

    return gamma
