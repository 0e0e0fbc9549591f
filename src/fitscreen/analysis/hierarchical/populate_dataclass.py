import inspect
import numpy as np
from jax import numpy as jnp


def populate_dataclass(target_dataclass, sources):
    """
    Build a flax dataclass from one or more dictionaries.

    The `__init__` signature of `target_dataclass` decides which keys are
    pulled from `sources`; extra keys are ignored and parameters with
    defaults may be omitted. numpy arrays are converted to jax arrays.

    Parameters
    ----------
    target_dataclass : type
        The flax dataclass to instantiate.
    sources : dict or list of dict
        Dictionaries holding the values to load.

    Returns
    -------
    object
        An instance of `target_dataclass`.

    Raises
    ------
    ValueError
        If a key is duplicated across sources, a required parameter is
        missing, or a value is a python list/tuple (not a valid pytree leaf
        for an array field).
    """

    if isinstance(sources, dict):
        sources = [sources]

    merged = {}
    for source in sources:
        if not isinstance(source, dict):
            raise ValueError(
                "sources should be a dictionary or list of dictionaries."
            )

        duplicates = merged.keys() & source.keys()
        if duplicates:
            raise ValueError(
                f"the keys '{duplicates}' are duplicated in the source data"
            )
        merged.update(source)

    kwargs = {}
    for k, param in inspect.signature(target_dataclass).parameters.items():

        if k not in merged:
            if param.default is inspect.Parameter.empty:
                raise ValueError(
                    f"could not find required parameter '{k}' in sources"
                )
            continue

        value = merged[k]
        if isinstance(value, (list, tuple)):
            raise ValueError(
                f"Parameter '{k}' is a '{type(value)}', but must be an array "
                "or scalar. Python lists/tuples are not valid JAX Pytree nodes."
            )

        if isinstance(value, np.ndarray):
            value = jnp.asarray(value)

        kwargs[k] = value

    return target_dataclass(**kwargs)
