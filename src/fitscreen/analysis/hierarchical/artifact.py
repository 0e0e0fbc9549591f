from fitscreen.errors import AlreadyProcessed

import numpy as np
import dill

import os


class FittedPosterior:
    """
    Approximate posterior produced by an inference driver.

    Parameters
    ----------
    method : str
        How the approximation was built ('meanfield', 'fullrank',
        'pathfinder_single', 'pathfinder_multi').
    samples : dict
        Site name to array of draws with a leading sample axis. Includes
        the latent sites and deterministic sites (such as ``freq``).
    params : dict, optional
        Parameters of the approximating distribution (e.g. the guide
        parameters of a variational fit).
    info : dict, optional
        Diagnostics (losses, ELBO values, importance weights, ...).
    """

    def __init__(self, method, samples, params=None, info=None):

        self._method = method
        self._samples = {k: np.asarray(v) for k, v in samples.items()}
        self._params = {} if params is None else {k: np.asarray(v) for k, v in params.items()}
        self._info = {} if info is None else dict(info)

        sizes = {v.shape[0] for v in self._samples.values()}
        if len(sizes) > 1:
            raise ValueError(
                f"all sites must have the same number of samples, found {sizes}"
            )

    def draws(self, site):
        """
        Draws for `site`, with a leading sample axis.
        """

        if site not in self._samples:
            raise KeyError(
                f"site '{site}' not in posterior. Available sites: {self.site_names}"
            )
        return self._samples[site]

    @property
    def method(self):
        return self._method

    @property
    def samples(self):
        return self._samples

    @property
    def params(self):
        return self._params

    @property
    def info(self):
        return self._info

    @property
    def site_names(self):
        return list(self._samples.keys())

    @property
    def num_samples(self):
        if len(self._samples) == 0:
            return 0
        return next(iter(self._samples.values())).shape[0]


def artifact_path(out_root):
    """
    Path of the artifact written for `out_root`.
    """

    return f"{out_root}_fit.pkl"


def check_artifact(out_root):
    """
    Raise AlreadyProcessed if the artifact for `out_root` exists.
    """

    out_file = artifact_path(out_root)
    if os.path.exists(out_file):
        raise AlreadyProcessed(
            f"{out_file} already exists. Remove it or choose a different out_root."
        )


def write_artifact(out_root, mutant_ids, posterior, **extra):
    """
    Atomically write a fit to ``{out_root}_fit.pkl``.

    The container is written to a temporary file and moved into place, so
    the artifact either exists completely or not at all. An existing
    artifact is never overwritten.

    Parameters
    ----------
    out_root : str
        Root name for the output file.
    mutant_ids : list
        Mutant lineage identifiers, in the column order used for the fit.
    posterior : FittedPosterior
        The fitted approximation.
    **extra
        Additional entries (e.g. ``neutral_ids``, ``settings``).

    Returns
    -------
    str
        Path to the artifact.

    Raises
    ------
    AlreadyProcessed
        If the artifact already exists.
    """

    check_artifact(out_root)

    out_dict = {"mutant_ids":list(mutant_ids),
                "posterior":posterior}
    out_dict.update(extra)

    out_file = artifact_path(out_root)
    tmp_out_file = f"{out_root}_fit.tmp.pkl"

    try:
        with open(tmp_out_file, "wb") as f:
            dill.dump(out_dict, f)
    except Exception:
        if os.path.exists(tmp_out_file):
            os.remove(tmp_out_file)
        raise

    os.replace(tmp_out_file, out_file)

    return out_file


def read_artifact(source):
    """
    Load a fit written by `write_artifact`.

    Parameters
    ----------
    source : str
        Either the artifact path or the `out_root` used to write it.

    Returns
    -------
    dict
        Holds at least ``mutant_ids`` and ``posterior``.
    """

    if os.path.isfile(source):
        in_file = source
    else:
        in_file = artifact_path(source)

    with open(in_file, "rb") as f:
        out_dict = dill.load(f)

    for k in ["mutant_ids", "posterior"]:
        if k not in out_dict:
            raise ValueError(f"{in_file} does not appear to hold a fit (missing '{k}')")

    return out_dict
