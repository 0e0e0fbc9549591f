
import jax.numpy as jnp
from flax.struct import (
    dataclass,
    field
)


@dataclass(frozen=True)
class FitnessData:
    """
    Count data for the fitness models, treated as a JAX Pytree.

    Without replicates ``bc_count`` is (num_time, num_bc) and ``bc_total`` is
    (num_time,). With replicates the replicate axis leads: ``bc_count`` is
    (num_replicate, num_time, num_bc) and ``bc_total`` is
    (num_replicate, num_time).
    """

    # Data tensors
    bc_count: jnp.ndarray
    bc_total: jnp.ndarray

    # Tensor shape
    num_replicate: int = field(pytree_node=False)
    num_time: int = field(pytree_node=False)
    num_bc: int = field(pytree_node=False)

    # Lineage classes. Neutral lineages occupy the first num_neutral columns.
    num_neutral: int = field(pytree_node=False)
    num_mut: int = field(pytree_node=False)
