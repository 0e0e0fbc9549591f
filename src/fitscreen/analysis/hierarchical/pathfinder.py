import jax
from jax import random
from jax import numpy as jnp
from jax.flatten_util import ravel_pytree

import blackjax
from numpyro.infer import init_to_value
from numpyro.infer.util import initialize_model

from fitscreen.analysis.hierarchical.artifact import FittedPosterior
from fitscreen.errors import InvalidMode

import arviz as az
import numpy as np
from tqdm.auto import tqdm

PATHFINDER_MODES = ("single", "multi")


def check_pathfinder_mode(mode):
    """
    Raise InvalidMode unless `mode` is 'single' or 'multi'.
    """

    if mode not in PATHFINDER_MODES:
        raise InvalidMode(
            f"pathfinder mode '{mode}' not recognized. Should be one of: "
            f"{list(PATHFINDER_MODES)}"
        )


def smooth_importance_weights(log_weights):
    """
    Pareto-smooth importance log weights.

    The largest weights are replaced by order statistics of a generalized
    Pareto distribution fit to the upper tail (`arviz.psislw`). Entries that
    are not finite are given zero weight and left out of the fit.

    Parameters
    ----------
    log_weights : array_like
        1D array of unnormalized log importance weights.

    Returns
    -------
    smoothed : np.ndarray
        Smoothed log weights, normalized so that they logsumexp to zero.
    pareto_k : float
        Estimated shape of the tail. Values above 0.7 mean the resampled
        draws are unreliable.

    Raises
    ------
    RuntimeError
        If no entry of `log_weights` is finite.
    """

    log_weights = np.asarray(log_weights, dtype=float)
    finite = np.isfinite(log_weights)
    if not np.any(finite):
        raise RuntimeError(
            "no pathfinder draw has a finite importance weight."
        )

    finite_smoothed, pareto_k = az.psislw(log_weights[finite], reff=1.0)

    smoothed = np.full(log_weights.shape, -np.inf)
    smoothed[finite] = finite_smoothed
    smoothed = smoothed - np.logaddexp.reduce(smoothed[finite])

    return smoothed, float(pareto_k)


class RunPathfinder:
    """
    Quasi-Newton (Pathfinder) approximation of the posterior of a fitness
    model.

    Each path runs L-BFGS on the unconstrained log density from a starting
    point, fits a Gaussian with low-rank-plus-diagonal covariance at every
    iterate, and keeps the one with the highest ELBO. 'single' mode runs one
    path from the model guesses. 'multi' mode runs several paths from
    jittered starting points and resamples the pooled draws by
    Pareto-smoothed importance weights.
    """

    def __init__(self, model, seed):
        """
        Parameters
        ----------
        model : object
            Exposes `data`, `priors`, `jax_model` and (optionally)
            `init_params`.
        seed : int
            Random seed for JAX PRNG key generation.
        """

        required_attr = ["data",
                         "priors",
                         "jax_model"]
        for attr in required_attr:
            if not hasattr(model, attr):
                raise ValueError(f"`model` must have attribute {attr}")

        self.model = model
        self._seed = seed
        self._main_key = random.PRNGKey(self._seed)

    def get_key(self):
        """
        Get a new JAX PRNG key, splitting the main key.
        """

        new_key, self._main_key = random.split(self._main_key)
        return new_key

    def _initialize(self):
        """
        Build the unconstrained starting point, potential function, and
        constraining (postprocess) function for the model.
        """

        init_params = getattr(self.model, "init_params", None)
        kwargs = {}
        if init_params:
            kwargs["init_strategy"] = init_to_value(values=init_params)

        model_info = initialize_model(self.get_key(),
                                      self.model.jax_model,
                                      model_kwargs={"data":self.model.data,
                                                    "priors":self.model.priors},
                                      **kwargs)

        return (model_info.param_info.z,
                model_info.potential_fn,
                model_info.postprocess_fn)

    def _run_path(self,
                  logdensity_fn,
                  initial_position,
                  ndraws,
                  maxiter,
                  num_samples_elbo):
        """
        Run one path and draw `ndraws` samples from its best Gaussian.

        Returns
        -------
        state : blackjax PathfinderState
        draws : dict
            Unconstrained draws with a leading sample axis.
        logq : jnp.ndarray
            Log density of each draw under the path approximation.
        """

        state, _ = blackjax.vi.pathfinder.approximate(self.get_key(),
                                                      logdensity_fn,
                                                      initial_position,
                                                      num_samples=num_samples_elbo,
                                                      maxiter=maxiter)

        draws, logq = blackjax.vi.pathfinder.sample(self.get_key(),
                                                    state,
                                                    num_samples=ndraws)

        return state, draws, logq

    def run(self,
            mode="single",
            ndraws=1000,
            num_paths=4,
            maxiter=100,
            num_samples_elbo=200,
            init_jitter=0.5,
            verbose=True):
        """
        Approximate the posterior.

        Parameters
        ----------
        mode : str, optional
            'single' (default) or 'multi'.
        ndraws : int, optional
            Number of posterior draws to return.
        num_paths : int, optional
            Number of paths in 'multi' mode.
        maxiter : int, optional
            Maximum number of L-BFGS iterations per path.
        num_samples_elbo : int, optional
            Number of draws used to estimate the ELBO along each path.
        init_jitter : float, optional
            Standard deviation of the normal noise added to the unconstrained
            starting point of each path in 'multi' mode.
        verbose : bool, optional
            Print the ELBO of each path.

        Returns
        -------
        FittedPosterior

        Raises
        ------
        InvalidMode
            If `mode` is not 'single' or 'multi'. Checked before the model is
            evaluated.
        RuntimeError
            If no path produces a finite importance weight.
        """

        check_pathfinder_mode(mode)

        z0, potential_fn, postprocess_fn = self._initialize()

        def logdensity_fn(z):
            return -potential_fn(z)

        if mode == "single":

            state, draws, logq = self._run_path(logdensity_fn,
                                                z0,
                                                ndraws,
                                                maxiter,
                                                num_samples_elbo)
            elbo = float(state.elbo)
            if verbose:
                print(f"Pathfinder ELBO: {elbo:10.5e}", flush=True)

            info = {"elbo":np.array([elbo]),
                    "logq":np.asarray(logq)}

        else:

            flat_z0, unravel = ravel_pytree(z0)

            path_draws = []
            path_log_weights = []
            elbos = []
            for i in tqdm(range(num_paths), desc="pathfinder paths", disable=not verbose):

                noise = random.normal(self.get_key(), flat_z0.shape)
                start = unravel(flat_z0 + init_jitter*noise)

                state, draws, logq = self._run_path(logdensity_fn,
                                                    start,
                                                    ndraws,
                                                    maxiter,
                                                    num_samples_elbo)

                logp = jax.vmap(logdensity_fn)(draws)

                path_draws.append(draws)
                path_log_weights.append(logp - logq)
                elbos.append(float(state.elbo))

                if verbose:
                    print(f"Path {i:3d}, ELBO: {elbos[-1]:10.5e}", flush=True)

            pooled = jax.tree_util.tree_map(lambda *x: jnp.concatenate(x, axis=0),
                                            *path_draws)

            log_w = np.asarray(jnp.concatenate(path_log_weights), dtype=float)
            log_w = np.where(np.isfinite(log_w), log_w, -np.inf)

            smoothed, pareto_k = smooth_importance_weights(log_w)
            if verbose and pareto_k > 0.7:
                print(f"Pareto k = {pareto_k:.2f} > 0.7; resampled draws may "
                      "be unreliable.", flush=True)

            weights = np.exp(smoothed)
            idx = random.choice(self.get_key(),
                                log_w.shape[0],
                                shape=(ndraws,),
                                replace=True,
                                p=jnp.asarray(weights))
            draws = jax.tree_util.tree_map(lambda x: x[idx], pooled)

            info = {"elbo":np.array(elbos),
                    "importance_ess":float(1.0/np.sum(weights**2)),
                    "log_weights":log_w,
                    "smoothed_log_weights":smoothed,
                    "pareto_k":pareto_k}

        samples = jax.vmap(postprocess_fn)(draws)
        samples = {k: np.asarray(jax.device_get(v)) for k, v in samples.items()}

        return FittedPosterior(method=f"pathfinder_{mode}",
                               samples=samples,
                               info=info)
