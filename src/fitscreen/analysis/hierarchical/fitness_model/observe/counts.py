import jax.numpy as jnp
import numpyro as pyro

import numpyro.distributions as dist

from fitscreen.analysis.hierarchical.fitness_model.data_class import FitnessData

# Smallest positive float. Frequencies are clipped to this before the
# multinomial so that an underflowed intensity never zeroes a category.
_TINY = jnp.finfo(jnp.float32).tiny


def observe(name: str,
            data: FitnessData,
            lam: jnp.ndarray,
            freq: jnp.ndarray):
    """
    Observation sites for the read counts.

    The total reads at each time point are Poisson with mean equal to the
    summed intensities, and the reads at each time point are multinomial
    across lineages with the frequencies implied by the intensities.

    Parameters
    ----------
    name : str
        Prefix for the observation sites (``{name}_total`` and
        ``{name}_count``).
    data : FitnessData
        Observed ``bc_total`` and ``bc_count``.
    lam : jnp.ndarray
        Poisson intensities with the same shape as ``data.bc_count``.
    freq : jnp.ndarray
        ``lam`` normalized over the lineage (last) axis.
    """

    pyro.sample(f"{name}_total",
                dist.Poisson(jnp.sum(lam, axis=-1)),
                obs=data.bc_total)

    # Renormalize after clipping so each row sums to one within float
    # precision.
    probs = jnp.clip(freq, _TINY, 1.0)
    probs = probs/jnp.sum(probs, axis=-1, keepdims=True)

    pyro.sample(f"{name}_count",
                dist.Multinomial(total_count=data.bc_total, probs=probs),
                obs=data.bc_count)
