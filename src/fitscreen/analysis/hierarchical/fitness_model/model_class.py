from fitscreen.__version__ import __version__

import yaml

from fitscreen.util.io import read_yaml
from fitscreen.errors import (
    ShapeMismatch,
    DegenerateCounts
)
from fitscreen.analysis.hierarchical.populate_dataclass import populate_dataclass

from fitscreen.analysis.hierarchical.fitness_model.model import jax_model
from fitscreen.analysis.hierarchical.fitness_model.registry import (
    model_registry,
    get_model_descriptor
)
from fitscreen.analysis.hierarchical.fitness_model.data_class import FitnessData

import numpy as np

from functools import partial
import warnings


class FitnessModel:
    """
    Fitness model built from assembled barcode count arrays.

    This class validates the count arrays, loads them into a JAX pytree,
    builds the prior pytree for the selected model, and exposes the
    numpyro model and initial guesses used by the inference drivers.

    Parameters
    ----------
    bc_count : array_like
        Counts, (num_time, num_bc), or (num_time, num_bc, num_replicate) for
        models that require replicates. Neutral lineages occupy the first
        `n_neutral` columns and mutants the next `n_mut`. Extra trailing
        columns (e.g. an aggregated "everything else" lineage) are allowed.
    bc_total : array_like
        Total reads at each time point, (num_time,) or
        (num_time, num_replicate). Must equal the row sums of `bc_count`.
    n_neutral : int
        Number of neutral lineages.
    n_mut : int
        Number of mutant lineages.
    model : str, optional
        Name of the model in the registry (default "neutrals_lognormal").
    **hyperparameters
        Prior hyperparameters overriding the model defaults (for example
        ``s_pop_prior=(0, 1)``, ``sigma_pop_prior=(0, 0.5)``,
        ``lambda_prior=(3, 3)``).
    """

    def __init__(self,
                 bc_count,
                 bc_total,
                 n_neutral,
                 n_mut,
                 model="neutrals_lognormal",
                 **hyperparameters):

        self._descriptor = get_model_descriptor(model)

        self._bc_count = np.asarray(bc_count)
        self._bc_total = np.asarray(bc_total)
        self._n_neutral = int(n_neutral)
        self._n_mut = int(n_mut)
        self._hyperparameters = dict(hyperparameters)

        self._initialize_data()
        self._initialize_classes()

    def _initialize_data(self):
        """
        Validate the count arrays and build the FitnessData pytree.
        """

        bc_count = self._bc_count
        bc_total = self._bc_total

        if self.requires_replicate:
            expected_ndim = 3
            layout = "(num_time, num_bc, num_replicate)"
        else:
            expected_ndim = 2
            layout = "(num_time, num_bc)"

        if bc_count.ndim != expected_ndim:
            raise ShapeMismatch(
                f"model '{self.model_name}' expects bc_count with shape "
                f"{layout}, but bc_count has shape {bc_count.shape}."
            )

        expected_total_shape = (bc_count.shape[0],) + bc_count.shape[2:]
        if bc_total.shape != expected_total_shape:
            raise ShapeMismatch(
                f"bc_total has shape {bc_total.shape}, but should have shape "
                f"{expected_total_shape} to match bc_count."
            )

        if not np.array_equal(bc_count.sum(axis=1), bc_total):
            raise ValueError(
                "bc_total must equal the sum of bc_count over lineages at "
                "every time point."
            )

        num_time = bc_count.shape[0]
        num_bc = bc_count.shape[1]

        if np.any(bc_count < 0):
            raise DegenerateCounts("bc_count has negative counts.")
        if num_time < 2:
            raise DegenerateCounts(
                f"at least two time points are needed, found {num_time}."
            )
        if self._n_neutral < 1:
            raise DegenerateCounts("at least one neutral lineage is needed.")
        if self._n_mut < 0 or self._n_neutral + self._n_mut > num_bc:
            raise ShapeMismatch(
                f"n_neutral ({self._n_neutral}) + n_mut ({self._n_mut}) "
                f"exceeds the number of lineages in bc_count ({num_bc})."
            )
        if np.any(bc_total == 0):
            raise DegenerateCounts("bc_total has time points with zero reads.")

        # Replicate axis leads internally
        if self.requires_replicate:
            bc_count = np.moveaxis(bc_count, -1, 0)
            bc_total = np.moveaxis(bc_total, -1, 0)
            num_replicate = bc_count.shape[0]
        else:
            num_replicate = 1

        sources = {"bc_count":bc_count.astype(np.int32),
                   "bc_total":bc_total.astype(np.int32),
                   "num_replicate":num_replicate,
                   "num_time":num_time,
                   "num_bc":num_bc,
                   "num_neutral":self._n_neutral,
                   "num_mut":self._n_mut}

        self._data = populate_dataclass(FitnessData, sources)

    def _initialize_classes(self):
        """
        Build priors, guesses, and the numpyro model for the selected
        fitness component.
        """

        module = self._descriptor.module

        self._priors = module.get_priors(self._data, **self._hyperparameters)
        self._init_params = module.get_guesses(self._data)

        control = {"fitness":module.define_model,
                   "observe_counts":model_registry["observe_counts"].observe,
                   "observe_neutral":model_registry["observe_neutral"].observe}

        self._jax_model = partial(jax_model, **control)

    @property
    def init_params(self):
        return self._init_params

    @property
    def jax_model(self):
        return self._jax_model

    @property
    def data(self):
        return self._data

    @property
    def priors(self):
        return self._priors

    @property
    def model_name(self):
        return self._descriptor.name

    @property
    def requires_replicate(self):
        return self._descriptor.requires_replicate

    @property
    def settings(self):
        """
        Model name and the full set of hyperparameters (defaults merged with
        overrides) as plain python types.
        """

        hyperparameters = self._descriptor.module.get_hyperparameters()
        hyperparameters.update(self._hyperparameters)
        hyperparameters = {k: np.asarray(v).tolist()
                           for k, v in hyperparameters.items()}

        return {"model":self.model_name,
                "hyperparameters":hyperparameters}

    @staticmethod
    def load_config(config_file):
        """
        Load a run configuration written by `write_config`.

        Parameters
        ----------
        config_file : str
            Path to the YAML configuration file.

        Returns
        -------
        dict
            The configuration. ``settings`` holds the model name and
            hyperparameters; ``data`` and ``inference`` hold the column names
            and inference settings used for the run.
        """

        config = read_yaml(config_file,
                           required_keys=["fitscreen_version", "settings"])

        if config["fitscreen_version"] != __version__:
            warnings.warn(
                f"Configuration file version {config['fitscreen_version']} does "
                f"not match current fitscreen version {__version__}"
            )

        return config

    def write_config(self,
                     out_root,
                     data_settings=None,
                     inference_settings=None):
        """
        Write the model configuration to ``{out_root}_config.yaml``.

        Parameters
        ----------
        out_root : str
            Root filename for the configuration file.
        data_settings : dict, optional
            Column names and preprocessing options used to assemble the data.
        inference_settings : dict, optional
            Settings of the inference run.

        Returns
        -------
        str
            Path to the configuration file.
        """

        config = {
            "fitscreen_version": __version__,
            "settings": self.settings,
            "data": {} if data_settings is None else dict(data_settings),
            "inference": {} if inference_settings is None else dict(inference_settings),
        }

        config_file = f"{out_root}_config.yaml"
        with open(config_file, "w") as f:
            yaml.safe_dump(config, f, default_flow_style=False)

        return config_file
