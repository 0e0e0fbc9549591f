from fitscreen.analysis.hierarchical.assemble import assemble
from fitscreen.analysis.hierarchical.fitness_model import (
    FitnessModel,
    get_model_descriptor
)
from fitscreen.analysis.hierarchical.run_inference import RunInference
from fitscreen.analysis.hierarchical.pathfinder import (
    RunPathfinder,
    check_pathfinder_mode
)
from fitscreen.analysis.hierarchical.artifact import (
    FittedPosterior,
    check_artifact,
    write_artifact
)
from fitscreen.errors import MissingDependency
from fitscreen.util.validation import check_number
from fitscreen.util.cli import generalized_main

import jax
import numpy as np


def _load_run_config(config_file):
    """
    Read model name, hyperparameters, and data settings from a configuration
    written by a previous run.
    """

    config = FitnessModel.load_config(config_file)

    settings = config["settings"]
    model = settings["model"]
    model_kwargs = settings.get("hyperparameters", {})
    data_settings = config.get("data", {})

    return model, model_kwargs, data_settings


def _data_settings(data, id_col, time_col, count_col, neutral_col, rep_col, rm_T0):
    """
    Data-assembly settings recorded in the run configuration.
    """

    return {"source":data if isinstance(data, str) else None,
            "id_col":id_col,
            "time_col":time_col,
            "count_col":count_col,
            "neutral_col":neutral_col,
            "rep_col":rep_col,
            "rm_T0":bool(rm_T0)}


def advi(data=None,
         out_root="fitscreen",
         model="neutrals_lognormal",
         model_kwargs=None,
         id_col="barcode",
         time_col="time",
         count_col="count",
         neutral_col="neutral",
         rep_col=None,
         rm_T0=False,
         fullrank=False,
         num_steps=10000,
         elbo_num_particles=1,
         optimizer="decayed_adagrad",
         step_size=1e-2,
         num_posterior_samples=1000,
         seed=0,
         verbose=True,
         config_file=None):
    """
    Fit a fitness model to a tidy barcode-count table by variational
    inference and write the fit to ``{out_root}_fit.pkl``.

    A mean-field Gaussian is fit by default. With `fullrank`, the latent
    dimension d is first probed with one draw from the prior, and a
    Gaussian with dense covariance is fit starting from a random vector of
    length d + d**2.

    Parameters
    ----------
    data : pandas.DataFrame or str
        Tidy table (or path) with one row per lineage and time point.
    out_root : str, optional
        Root name for output files (default 'fitscreen').
    model : str, optional
        Fitness model ('neutrals_lognormal' or
        'neutrals_lognormal_replicate').
    model_kwargs : dict, optional
        Hyperparameters passed to the model (e.g. ``lambda_prior``).
    id_col, time_col, count_col, neutral_col : str, optional
        Names of the lineage, time, count and neutral-flag columns.
    rep_col : str, optional
        Replicate column. Required for replicate models.
    rm_T0 : bool, optional
        Drop the earliest time point before fitting.
    fullrank : bool, optional
        Fit a full-rank rather than mean-field Gaussian.
    num_steps : int, optional
        Number of optimization steps (default 10000).
    elbo_num_particles : int, optional
        Number of particles for ELBO estimation (default 1).
    optimizer : str, optional
        'decayed_adagrad' (default) or 'clipped_adam'.
    step_size : float, optional
        Optimizer step size (default 1e-2).
    num_posterior_samples : int, optional
        Number of posterior draws stored in the fit (default 1000).
    seed : int, optional
        Random seed.
    verbose : bool, optional
        Print progress.
    config_file : str, optional
        Configuration written by a previous run. Its model, hyperparameters
        and data settings replace the corresponding arguments.

    Returns
    -------
    FittedPosterior

    Raises
    ------
    AlreadyProcessed
        If ``{out_root}_fit.pkl`` exists.
    ValueError
        If `model` is not recognized, or if `rep_col` is given for a model
        that does not take replicates.
    MissingDependency
        If a replicate model is requested without `rep_col`.
    """

    if config_file is not None:
        model, model_kwargs, data_settings = _load_run_config(config_file)
        if data is None:
            data = data_settings.get("source", None)
        id_col = data_settings.get("id_col", id_col)
        time_col = data_settings.get("time_col", time_col)
        count_col = data_settings.get("count_col", count_col)
        neutral_col = data_settings.get("neutral_col", neutral_col)
        rep_col = data_settings.get("rep_col", rep_col)
        rm_T0 = data_settings.get("rm_T0", rm_T0)

    if data is None:
        raise ValueError("data must be provided if config_file does not record it.")

    if model_kwargs is None:
        model_kwargs = {}

    # Checks before any data is read
    check_artifact(out_root)

    descriptor = get_model_descriptor(model)
    if descriptor.requires_replicate and rep_col is None:
        raise MissingDependency(
            f"model '{model}' requires replicate information. Specify rep_col."
        )
    if rep_col is not None and not descriptor.requires_replicate:
        raise ValueError(
            f"rep_col was given but model '{model}' does not take replicates. "
            "Use a replicate model or set rep_col to None."
        )

    num_steps = check_number(num_steps, "num_steps", cast_type=int, min_allowed=0)
    elbo_num_particles = check_number(elbo_num_particles, "elbo_num_particles",
                                      cast_type=int, min_allowed=1)
    num_posterior_samples = check_number(num_posterior_samples, "num_posterior_samples",
                                         cast_type=int, min_allowed=1)
    step_size = check_number(step_size, "step_size", min_allowed=0, inclusive_min=False)

    arrays = assemble(data,
                      id_col=id_col,
                      time_col=time_col,
                      count_col=count_col,
                      neutral_col=neutral_col,
                      rep_col=rep_col,
                      rm_T0=rm_T0)

    fm = FitnessModel(arrays["bc_count"],
                      arrays["bc_total"],
                      arrays["n_neutral"],
                      arrays["n_mut"],
                      model=model,
                      **model_kwargs)

    guide_type = "fullrank" if fullrank else "meanfield"
    inference_settings = {"method":"advi",
                          "guide_type":guide_type,
                          "optimizer":optimizer,
                          "step_size":step_size,
                          "num_steps":num_steps,
                          "elbo_num_particles":elbo_num_particles,
                          "num_posterior_samples":num_posterior_samples,
                          "seed":seed}
    fm.write_config(out_root,
                    data_settings=_data_settings(data, id_col, time_col, count_col,
                                                 neutral_col, rep_col, rm_T0),
                    inference_settings=inference_settings)

    ri = RunInference(fm, seed)

    probe = None
    init_params = None
    if fullrank:
        probe = ri.probe_latent_dimension()
        if verbose:
            print(f"Fitting full-rank Gaussian over {probe.num_latent} latent parameters.",
                  flush=True)
        init_params = ri.fullrank_init_params(probe)

    svi = ri.setup_svi(guide_type=guide_type,
                       optimizer=optimizer,
                       step_size=step_size,
                       elbo_num_particles=elbo_num_particles,
                       probe=probe)

    svi_state, params, losses = ri.run_optimization(svi,
                                                    init_params=init_params,
                                                    num_steps=num_steps,
                                                    verbose=verbose)

    samples = ri.get_posteriors(svi,
                                svi_state,
                                num_posterior_samples=num_posterior_samples,
                                verbose=verbose)

    info = {"losses":losses}
    if probe is not None:
        info["num_latent"] = probe.num_latent

    posterior = FittedPosterior(method=guide_type,
                                samples=samples,
                                params=jax.device_get(params),
                                info=info)

    write_artifact(out_root,
                   arrays["mutant_ids"],
                   posterior,
                   neutral_ids=list(arrays["neutral_ids"]),
                   timepoints=np.asarray(arrays["timepoints"]),
                   settings=fm.settings)

    return posterior


def pathfinder_joint_fitness(data,
                             out_root="fitscreen",
                             model="neutrals_lognormal",
                             model_kwargs=None,
                             id_col="barcode",
                             time_col="time",
                             count_col="count",
                             neutral_col="neutral",
                             rm_T0=False,
                             pathfinder="single",
                             ndraws=1000,
                             num_paths=4,
                             maxiter=100,
                             seed=0,
                             verbose=True):
    """
    Approximate the joint posterior of a fitness model with Pathfinder and
    write the fit to ``{out_root}_fit.pkl``.

    Parameters
    ----------
    data : pandas.DataFrame or str
        Tidy table (or path) with one row per lineage and time point.
    out_root : str, optional
        Root name for output files (default 'fitscreen').
    model : str, optional
        Fitness model (default 'neutrals_lognormal').
    model_kwargs : dict, optional
        Hyperparameters passed to the model.
    id_col, time_col, count_col, neutral_col : str, optional
        Names of the lineage, time, count and neutral-flag columns.
    rm_T0 : bool, optional
        Drop the earliest time point before fitting.
    pathfinder : str, optional
        'single' (default) for one path or 'multi' for several
        importance-resampled paths.
    ndraws : int, optional
        Number of posterior draws (default 1000).
    num_paths : int, optional
        Number of paths for 'multi' (default 4).
    maxiter : int, optional
        Maximum L-BFGS iterations per path (default 100).
    seed : int, optional
        Random seed.
    verbose : bool, optional
        Print progress.

    Returns
    -------
    FittedPosterior

    Raises
    ------
    InvalidMode
        If `pathfinder` is not 'single' or 'multi'.
    AlreadyProcessed
        If ``{out_root}_fit.pkl`` exists.
    MissingDependency
        If `model` requires replicates, which this driver does not take.
    """

    check_pathfinder_mode(pathfinder)
    check_artifact(out_root)

    if model_kwargs is None:
        model_kwargs = {}

    descriptor = get_model_descriptor(model)
    if descriptor.requires_replicate:
        raise MissingDependency(
            f"model '{model}' requires replicate information, which "
            "pathfinder_joint_fitness does not take. Use advi with rep_col."
        )

    ndraws = check_number(ndraws, "ndraws", cast_type=int, min_allowed=1)
    num_paths = check_number(num_paths, "num_paths", cast_type=int, min_allowed=1)
    maxiter = check_number(maxiter, "maxiter", cast_type=int, min_allowed=1)

    arrays = assemble(data,
                      id_col=id_col,
                      time_col=time_col,
                      count_col=count_col,
                      neutral_col=neutral_col,
                      rm_T0=rm_T0)

    bc_count = np.hstack([arrays["neutral_counts"], arrays["mutant_counts"]])
    bc_total = bc_count.sum(axis=1)

    fm = FitnessModel(bc_count,
                      bc_total,
                      arrays["n_neutral"],
                      arrays["n_mut"],
                      model=model,
                      **model_kwargs)

    inference_settings = {"method":"pathfinder",
                          "mode":pathfinder,
                          "ndraws":ndraws,
                          "num_paths":num_paths,
                          "maxiter":maxiter,
                          "seed":seed}
    fm.write_config(out_root,
                    data_settings=_data_settings(data, id_col, time_col, count_col,
                                                 neutral_col, None, rm_T0),
                    inference_settings=inference_settings)

    rp = RunPathfinder(fm, seed)
    posterior = rp.run(mode=pathfinder,
                       ndraws=ndraws,
                       num_paths=num_paths,
                       maxiter=maxiter,
                       verbose=verbose)

    write_artifact(out_root,
                   arrays["mutant_ids"],
                   posterior,
                   neutral_ids=list(arrays["neutral_ids"]),
                   timepoints=np.asarray(arrays["timepoints"]),
                   settings=fm.settings)

    return posterior


def main_advi():
    """
    CLI entry point for variational fitting.
    """
    return generalized_main(advi, skip_args=["model_kwargs"])


def main_pathfinder():
    """
    CLI entry point for Pathfinder fitting.
    """
    return generalized_main(pathfinder_joint_fitness, skip_args=["model_kwargs"])
