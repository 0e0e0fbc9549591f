import jax
from jax import random
from jax import numpy as jnp

import numpyro.distributions as dist
from numpyro.distributions.transforms import biject_to
from numpyro.handlers import seed, trace

from numpyro.infer import (
    SVI,
    Trace_ELBO,
    Predictive,
    init_to_value
)
from numpyro.infer.autoguide import (
    AutoNormal,
    AutoMultivariateNormal
)

from fitscreen.analysis.hierarchical.optim import get_optimizer

import numpy as np
from tqdm.auto import tqdm

from typing import NamedTuple
import warnings


class LatentProbe(NamedTuple):
    """
    Result of drawing one sample from the prior of a model.

    Attributes
    ----------
    num_latent : int
        Number of unconstrained latent scalars (the dimension of a full-rank
        Gaussian over the latent parameters).
    num_auxiliary : int
        Number of factor (auxiliary log-probability) sites. These carry no
        parameters and are not counted in `num_latent`.
    prior_sample : dict
        Site name to the sampled (constrained) value of each latent site.
    site_sizes : dict
        Site name to the number of unconstrained scalars for that site.
    """

    num_latent: int
    num_auxiliary: int
    prior_sample: dict
    site_sizes: dict


def _is_auxiliary(site):
    """
    True for factor sites (``numpyro.factor``), which are recorded as
    observed sample sites of a ``Unit`` distribution.
    """

    if site.get("infer", {}).get("is_auxiliary", False):
        return True
    return isinstance(site["fn"], dist.distribution.Unit)


def fullrank_init_vector(key, num_latent):
    """
    Draw a standard-normal starting vector for full-rank fitting: `num_latent`
    entries for the mean followed by `num_latent**2` entries for the
    covariance factor.

    Parameters
    ----------
    key : jax.random.PRNGKey
    num_latent : int

    Returns
    -------
    jnp.ndarray
        Vector of length ``num_latent + num_latent**2``.
    """

    return random.normal(key, (num_latent + num_latent*num_latent,))


def unpack_fullrank_vector(vec, num_latent, init_scale=0.1):
    """
    Map a flat starting vector onto the parameters of
    ``AutoMultivariateNormal``.

    The first `num_latent` entries are the mean. The rest are read row-major
    into a square matrix; its strict lower triangle (scaled by
    1/sqrt(num_latent)) and its softplus-transformed diagonal form the
    Cholesky factor, which is then multiplied by `init_scale`.

    Parameters
    ----------
    vec : array_like
        Vector of length ``num_latent + num_latent**2``.
    num_latent : int
        Latent dimension.
    init_scale : float, optional
        Overall scale of the starting covariance factor.

    Returns
    -------
    dict
        ``{"auto_loc": (num_latent,), "auto_scale_tril": (num_latent, num_latent)}``
    """

    vec = jnp.asarray(vec)
    expected = num_latent + num_latent*num_latent
    if vec.shape != (expected,):
        raise ValueError(
            f"full-rank vector has shape {vec.shape}, expected ({expected},) "
            f"for {num_latent} latent parameters."
        )

    loc = vec[:num_latent]
    raw = vec[num_latent:].reshape((num_latent, num_latent))

    scale_tril = jnp.tril(raw, k=-1)/jnp.sqrt(num_latent)
    scale_tril = scale_tril + jnp.diag(jax.nn.softplus(jnp.diag(raw)))

    return {"auto_loc":loc,
            "auto_scale_tril":init_scale*scale_tril}


class RunInference:
    """
    Manages variational fitting (SVI) of a fitness model.

    This class handles guide/optimizer setup, the optimization loop,
    latent-dimension probing for full-rank fits, and posterior sampling. It
    interfaces with a 'model' object (e.g. FitnessModel) that defines the
    numpyro model, data, and priors.
    """

    def __init__(self, model, seed):
        """
        Initialize the RunInference class.

        Parameters
        ----------
        model : object
            A model object that must expose the following attributes:
            - `data` (flax.struct.dataclass): count data.
            - `priors` (flax.struct.dataclass): model priors.
            - `jax_model` (callable): the numpyro model, called with `data`
              and `priors` keyword arguments.
            It may also expose `init_params` (dict of initial guesses).
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
        self._current_step = 0

    def _trace_model(self, rng_key=None):
        """
        Run the model once under a seed and return its trace.
        """

        if rng_key is None:
            rng_key = 0

        seeded_model = seed(self.model.jax_model, rng_seed=rng_key)
        return trace(seeded_model).get_trace(data=self.model.data,
                                             priors=self.model.priors)

    def probe_latent_dimension(self):
        """
        Draw one sample from the prior and count the latent parameters.

        Factor sites are counted separately (as auxiliary sites) and are
        never included in the latent count. Warnings raised while sampling
        are suppressed.

        Returns
        -------
        LatentProbe

        Raises
        ------
        ValueError
            If the model has no latent parameters.
        """

        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            model_trace = self._trace_model(rng_key=self.get_key())

        num_auxiliary = 0
        prior_sample = {}
        site_sizes = {}
        for name, site in model_trace.items():

            if site["type"] != "sample":
                continue

            if _is_auxiliary(site):
                num_auxiliary += 1
                continue

            if site["is_observed"]:
                continue

            value = site["value"]
            unconstrained = biject_to(site["fn"].support).inv(value)

            prior_sample[name] = np.asarray(value)
            site_sizes[name] = int(jnp.size(unconstrained))

        num_latent = int(sum(site_sizes.values()))
        if num_latent == 0:
            raise ValueError("model has no latent parameters to fit.")

        return LatentProbe(num_latent=num_latent,
                           num_auxiliary=num_auxiliary,
                           prior_sample=prior_sample,
                           site_sizes=site_sizes)

    def fullrank_init_params(self, probe, init_scale=0.1):
        """
        Starting parameters for a full-rank guide, drawn as a flat
        standard-normal vector of length ``d + d**2`` where
        ``d = probe.num_latent``.

        Parameters
        ----------
        probe : LatentProbe
            Output of `probe_latent_dimension`.
        init_scale : float, optional
            See `unpack_fullrank_vector`.

        Returns
        -------
        dict
            Initial ``auto_loc`` and ``auto_scale_tril``.
        """

        vec = fullrank_init_vector(self.get_key(), probe.num_latent)
        return unpack_fullrank_vector(vec, probe.num_latent, init_scale=init_scale)

    def setup_svi(self,
                  guide_type="meanfield",
                  optimizer="decayed_adagrad",
                  step_size=1e-2,
                  clip_norm=10.0,
                  elbo_num_particles=1,
                  probe=None):
        """
        Set up SVI.

        Parameters
        ----------
        guide_type : str, optional
            - 'meanfield' (default): independent Gaussians over the
              unconstrained latent parameters (AutoNormal).
            - 'fullrank': a single Gaussian with dense covariance
              (AutoMultivariateNormal). Requires `probe`.
        optimizer : str, optional
            'decayed_adagrad' (default) or 'clipped_adam'.
        step_size : float or callable, optional
            Step size, fixed or an optax schedule.
        clip_norm : float, optional
            Gradient clipping norm for 'clipped_adam'.
        elbo_num_particles : int, optional
            Number of particles for ELBO estimation.
        probe : LatentProbe, optional
            Output of `probe_latent_dimension`. Required for 'fullrank'.

        Returns
        -------
        numpyro.infer.SVI
            An SVI object
        """

        init_params = getattr(self.model, "init_params", None)
        if init_params:
            init_loc_fn = init_to_value(values=init_params)
        else:
            init_loc_fn = None

        if guide_type == "meanfield":
            if init_loc_fn is None:
                guide = AutoNormal(self.model.jax_model)
            else:
                guide = AutoNormal(self.model.jax_model, init_loc_fn=init_loc_fn)

        elif guide_type == "fullrank":
            if probe is None:
                raise ValueError(
                    "guide_type 'fullrank' requires the LatentProbe returned "
                    "by probe_latent_dimension()."
                )
            guide = AutoMultivariateNormal(self.model.jax_model)

        else:
            raise ValueError(f"guide_type '{guide_type}' not recognized.")

        optim = get_optimizer(optimizer=optimizer,
                              step_size=step_size,
                              clip_norm=clip_norm)

        svi = SVI(self.model.jax_model,
                  guide,
                  optim,
                  loss=Trace_ELBO(num_particles=elbo_num_particles))

        return svi

    def run_optimization(self,
                         svi,
                         init_params=None,
                         num_steps=10000,
                         progress_interval=1000,
                         verbose=True):
        """
        Run the SVI optimization loop for a fixed number of steps.

        Steps run in jit-compiled blocks of `progress_interval` updates. After
        each block the loss is reported (if `verbose`) and the parameters are
        checked for NaN.

        Parameters
        ----------
        svi : numpyro.infer.SVI
            The SVI object from `setup_svi`.
        init_params : dict, optional
            Initial guide parameters (e.g. from `fullrank_init_params`).
        num_steps : int, optional
            Total number of optimization steps.
        progress_interval : int, optional
            Number of steps per block.
        verbose : bool, optional
            Print progress after each block.

        Returns
        -------
        svi_state : Any
            The final SVI state.
        params : dict
            The final optimized parameters.
        losses : np.ndarray
            Loss (negative ELBO) at every step.

        Raises
        ------
        RuntimeError
            If parameters explode to NaN during optimization.
        """

        data = self.model.data
        priors = self.model.priors

        def scan_fn(carry, _):
            new_svi_state, loss = svi.update(carry, data=data, priors=priors)
            return new_svi_state, loss

        fast_scan = jax.jit(lambda state, xs: jax.lax.scan(scan_fn, state, xs))

        init_key = self.get_key()
        svi_state = svi.init(init_key,
                             init_params=init_params,
                             data=data,
                             priors=priors)

        all_losses = []
        step = 0
        while step < num_steps:

            block_size = min(progress_interval, num_steps - step)

            svi_state, block_losses = fast_scan(svi_state, jnp.arange(block_size))
            block_losses = np.atleast_1d(np.array(block_losses))
            all_losses.append(block_losses)

            step += block_size
            self._current_step += block_size

            if verbose:
                print(f"Step: {self._current_step:10d}, Loss: {block_losses[-1]:10.5e}", flush=True)

            params = svi.get_params(svi_state)
            for k in params:
                if np.any(np.isnan(params[k])):
                    raise RuntimeError(
                        f"model exploded (observed at step {self._current_step})."
                    )

        params = svi.get_params(svi_state)

        if all_losses:
            losses = np.concatenate(all_losses)
        else:
            losses = np.zeros(0)

        return svi_state, params, losses

    def get_posteriors(self,
                       svi,
                       svi_state,
                       num_posterior_samples=1000,
                       sampling_batch_size=1000,
                       verbose=True):
        """
        Sample latent and deterministic sites from the fitted guide.

        Parameters
        ----------
        svi : numpyro.infer.SVI
            The SVI object being used for inference.
        svi_state : Any
            The fitted SVI state.
        num_posterior_samples : int, optional
            Number of posterior samples to draw.
        sampling_batch_size : int, optional
            Draw samples in batches of this size.
        verbose : bool, optional
            Show a progress bar.

        Returns
        -------
        dict
            Site name to numpy array with a leading sample axis.
        """

        params = svi.get_params(svi_state)

        return_sites = self._get_site_names(["latent", "deterministic"])

        sampling_batch_size = min(sampling_batch_size, num_posterior_samples)
        num_batches = -(-num_posterior_samples // sampling_batch_size)

        predictive = Predictive(self.model.jax_model,
                                guide=svi.guide,
                                params=params,
                                num_samples=sampling_batch_size,
                                return_sites=return_sites)

        collected = {}
        for _ in tqdm(range(num_batches), desc="sampling posterior", disable=not verbose):
            batch = predictive(self.get_key(),
                               data=self.model.data,
                               priors=self.model.priors)
            for k, v in batch.items():
                collected.setdefault(k, []).append(np.asarray(jax.device_get(v)))

        samples = {}
        for k, v_list in collected.items():
            samples[k] = np.concatenate(v_list, axis=0)[:num_posterior_samples]

        return samples

    def get_key(self):
        """
        Get a new JAX PRNG key, splitting the main key.

        Returns
        -------
        jax.random.PRNGKey
            A new, unique PRNG key.
        """

        new_key, self._main_key = random.split(self._main_key)
        return new_key

    def _get_site_names(self, target_sites="deterministic"):
        """
        Dry-run the model to extract site names.

        Parameters
        ----------
        target_sites : str or list of str
            Site kinds to extract: 'deterministic', 'latent' (unobserved
            sample sites), or 'observed'.

        Returns
        -------
        list
            Site names in trace order.
        """

        if isinstance(target_sites, str):
            target_sites = [target_sites]

        model_trace = self._trace_model()

        site_names = []
        for name, site in model_trace.items():

            if site["type"] == "deterministic":
                kind = "deterministic"
            elif site["type"] == "sample" and not _is_auxiliary(site):
                kind = "observed" if site["is_observed"] else "latent"
            else:
                continue

            if kind in target_sites:
                site_names.append(name)

        return site_names
