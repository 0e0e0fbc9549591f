
from typing import NamedTuple, Any

from .components import neutrals_lognormal
from .components import neutrals_lognormal_replicate

from .observe import counts
from .observe import neutral_ratio


class ModelDescriptor(NamedTuple):
    """
    Registry entry for a fitness model.

    Attributes
    ----------
    name : str
        Registry key.
    module : module
        Component module exposing ``define_model``, ``get_hyperparameters``,
        ``get_guesses`` and ``get_priors``.
    requires_replicate : bool
        True if the model needs counts with a replicate axis (and therefore a
        replicate column in the input table).
    """

    name: str
    module: Any
    requires_replicate: bool


model_registry = {
    "fitness":{
        "neutrals_lognormal":ModelDescriptor("neutrals_lognormal",
                                             neutrals_lognormal,
                                             requires_replicate=False),
        "neutrals_lognormal_replicate":ModelDescriptor("neutrals_lognormal_replicate",
                                                       neutrals_lognormal_replicate,
                                                       requires_replicate=True),
    },
    "observe_counts":counts,
    "observe_neutral":neutral_ratio,
}


def get_model_descriptor(model):
    """
    Look up a fitness model by name.

    Raises
    ------
    ValueError
        If `model` is not in the registry.
    """

    known = model_registry["fitness"]
    if model not in known:
        raise ValueError(
            f"model '{model}' not recognized. Should be one of: "
            f"{list(known.keys())}"
        )

    return known[model]
