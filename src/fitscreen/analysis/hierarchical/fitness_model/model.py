
from .data_class import FitnessData

import jax.numpy as jnp
import numpyro as pyro


def jax_model(data: FitnessData,
              priors,
              **control):
    """
    Joint model of barcode counts, barcode frequencies, and population mean
    fitness.

    Parameters
    ----------
    data : FitnessData
        Observed counts and totals.
    priors : flax.struct.dataclass
        The ModelPriors pytree of the fitness component.
    control : dict
        Keyword arguments specifying the model. Expects:
        - fitness : callable with signature ``(data, priors)`` returning
          ``(lam, s_pop, sigma_pop)``
        - observe_counts : callable observing ``bc_total`` and ``bc_count``
        - observe_neutral : callable adding the neutral log-ratio factor

    Returns
    -------
    jnp.ndarray
        Barcode frequencies, same shape as ``data.bc_count``. Also recorded
        as the deterministic site ``freq``.
    """

    fitness_model = control["fitness"]
    count_observer = control["observe_counts"]
    neutral_observer = control["observe_neutral"]

    lam, s_pop, sigma_pop = fitness_model(data, priors)

    freq = lam/jnp.sum(lam, axis=-1, keepdims=True)
    pyro.deterministic("freq", freq)

    count_observer("bc", data, lam, freq)
    neutral_observer("neutral_log_ratio", data, freq, s_pop, sigma_pop)

    return freq
