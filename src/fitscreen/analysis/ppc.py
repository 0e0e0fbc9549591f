"""
Posterior-predictive quantile bands.

`quantile_bands` turns a (samples x time) matrix of a derived quantity into
credible-interval bounds at each time point. The derive functions built here
extract that matrix from the different sample sources: a fitted posterior,
a DataFrame of samples, or a raw matrix.
"""

import numpy as np
import pandas as pd

import warnings


def _check_levels(quantile_levels):
    """
    Validate quantile levels and return them sorted in descending order.
    """

    levels = np.atleast_1d(np.asarray(quantile_levels, dtype=float))

    if levels.ndim != 1 or len(levels) == 0:
        raise ValueError("quantile_levels must be a non-empty list of levels.")

    if np.any(levels <= 0) or np.any(levels >= 1):
        raise ValueError(
            f"quantile_levels must be between 0 and 1 (exclusive), got {list(levels)}."
        )

    sorted_levels = np.sort(levels)[::-1]
    if not np.array_equal(sorted_levels, levels):
        warnings.warn(
            "quantile_levels were sorted in descending order so intervals are "
            "drawn widest first."
        )

    return sorted_levels


def quantile_bands(quantile_levels,
                   sample_source,
                   derive_fn=None):
    """
    Compute credible-interval bands of a derived quantity at each time point.

    Parameters
    ----------
    quantile_levels : list of float
        Interval masses, each in (0, 1) (e.g. [0.95, 0.68, 0.05]). Levels are
        always sorted in descending order before computing bounds; a warning
        is issued if this changes their order.
    sample_source : Any
        Object holding the samples. Passed to `derive_fn`.
    derive_fn : callable, optional
        Maps `sample_source` to a (num_samples, num_time) matrix. If None,
        `sample_source` must already be that matrix.

    Returns
    -------
    np.ndarray
        (num_time, num_levels, 2) array. ``[:, i, 0]`` and ``[:, i, 1]`` are the
        (1 - q)/2 and (1 + q)/2 empirical quantiles of the i-th level (in
        descending order).

    Raises
    ------
    ValueError
        If the levels are empty or outside (0, 1), or the derived matrix is
        not 2D or holds non-finite values.
    """

    levels = _check_levels(quantile_levels)

    if derive_fn is None:
        matrix = sample_source
    else:
        matrix = derive_fn(sample_source)

    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim != 2:
        raise ValueError(
            f"derived samples must be (num_samples, num_time), got shape {matrix.shape}."
        )
    if not np.all(np.isfinite(matrix)):
        raise ValueError("derived samples contain NaN or infinite values.")

    bands = np.empty((matrix.shape[1], len(levels), 2), dtype=float)
    for i, q in enumerate(levels):
        bounds = np.quantile(matrix, [(1 - q)/2, (1 + q)/2], axis=0)
        bands[:, i, 0] = bounds[0]
        bands[:, i, 1] = bounds[1]

    return bands


def matrix_quantile_range(quantile_levels, matrix):
    """
    `quantile_bands` on a raw (num_samples, num_time) matrix.
    """

    return quantile_bands(quantile_levels, matrix)


def _get_draws(posterior, site):
    """
    Draws of `site` from a FittedPosterior, a fit dictionary written by
    `write_artifact`, or a plain dict of sample arrays.
    """

    if isinstance(posterior, dict) and "posterior" in posterior:
        posterior = posterior["posterior"]

    if hasattr(posterior, "draws"):
        return np.asarray(posterior.draws(site))

    return np.asarray(posterior[site])


def freq_from_posterior(lineage, site="freq", replicate=None):
    """
    Build a derive function returning the frequency trajectory of one
    lineage.

    Parameters
    ----------
    lineage : int
        Column of the lineage in the count matrix (neutral lineages first).
    site : str, optional
        Frequency site (default 'freq').
    replicate : int, optional
        Replicate index for replicate models.

    Returns
    -------
    callable
        Maps a posterior to a (num_samples, num_time) matrix.
    """

    def derive(posterior):
        draws = _get_draws(posterior, site)
        if replicate is not None:
            draws = draws[:, replicate]
        return draws[..., lineage]

    return derive


def logfreq_ratio_from_posterior(lineage, site="freq", log_fn=np.log, replicate=None):
    """
    Build a derive function returning the log frequency ratio of one lineage
    across consecutive time points, ``log(f[t+1]) - log(f[t])``.

    Parameters
    ----------
    lineage : int
        Column of the lineage in the count matrix.
    site : str, optional
        Frequency site (default 'freq').
    log_fn : callable, optional
        Logarithm to use (np.log, np.log2, np.log10).
    replicate : int, optional
        Replicate index for replicate models.

    Returns
    -------
    callable
        Maps a posterior to a (num_samples, num_time - 1) matrix.
    """

    get_freq = freq_from_posterior(lineage, site=site, replicate=replicate)

    def derive(posterior):
        freq = get_freq(posterior)
        if np.any(freq <= 0):
            raise ValueError("frequencies must be positive to take a log ratio.")
        return np.diff(log_fn(freq), axis=1)

    return derive


def _pattern_columns(df, pattern):
    """
    Columns of `df` whose names contain `pattern`, in table order.
    """

    cols = [c for c in df.columns if pattern in str(c)]
    if len(cols) == 0:
        raise ValueError(f"no columns matching '{pattern}' in the sample table.")
    return cols


def freq_mutant_from_df(varname_mut, varname_mean, varname_freq):
    """
    Build a derive function for the predicted frequency trajectory of a
    mutant from a table of posterior samples.

    The frequency at the first time point is the sampled initial frequency
    f0; later time points are ``f0*exp(cumsum(s_mut - s_t))``.

    Parameters
    ----------
    varname_mut : str
        Column holding the mutant relative fitness.
    varname_mean : str
        Name pattern shared by all population mean fitness columns. Matching
        columns must appear in time order.
    varname_freq : str
        Column holding the mutant initial frequency.

    Returns
    -------
    callable
        Maps a DataFrame of samples to a (num_samples, num_mean + 1) matrix.
    """

    def derive(df):
        s_mean = df[_pattern_columns(df, varname_mean)].to_numpy(dtype=float)
        s_mut = df[varname_mut].to_numpy(dtype=float)[:, None]
        f0 = df[varname_freq].to_numpy(dtype=float)[:, None]

        growth = np.cumsum(s_mut - s_mean, axis=1)
        return np.hstack([f0, f0*np.exp(growth)])

    return derive


def logfreq_ratio_neutral_from_df(varname_mean="s_pop[",
                                  varname_sigma=None,
                                  seed=None):
    """
    Build a derive function for the posterior predictive log frequency ratio
    of neutral lineages from a table of posterior samples.

    Neutral log ratios are ``log(gamma) ~ Normal(-s_t, sigma_t)``. The
    returned matrix is negated (``-log(gamma)``) so it is on the same
    growth-oriented scale as the population mean fitness.

    Parameters
    ----------
    varname_mean : str, optional
        Name pattern of the population mean fitness columns (time order).
    varname_sigma : str, optional
        Name pattern of the log-ratio error columns (time order). If None, the
        mean ``-s_t`` is used without predictive noise.
    seed : int, optional
        Seed for the predictive noise.

    Returns
    -------
    callable
        Maps a DataFrame of samples to a (num_samples, num_mean) matrix.
    """

    def derive(df):
        s_mean = df[_pattern_columns(df, varname_mean)].to_numpy(dtype=float)

        log_gamma = -s_mean
        if varname_sigma is not None:
            sigma = df[_pattern_columns(df, varname_sigma)].to_numpy(dtype=float)
            if sigma.shape != s_mean.shape:
                raise ValueError(
                    f"found {sigma.shape[1]} '{varname_sigma}' columns but "
                    f"{s_mean.shape[1]} '{varname_mean}' columns."
                )
            rng = np.random.default_rng(seed)
            log_gamma = rng.normal(loc=-s_mean, scale=sigma)

        return -log_gamma

    return derive


def posterior_to_dataframe(posterior, sites):
    """
    Flatten posterior draws of the given sites into a DataFrame with one row
    per sample and one column per scalar (``site[i]`` or ``site[i,j]``).
    """

    columns = {}
    for site in sites:
        draws = _get_draws(posterior, site)
        flat = draws.reshape((draws.shape[0], -1))
        for j, idx in enumerate(np.ndindex(*draws.shape[1:])):
            if len(idx) == 0:
                columns[site] = flat[:, j]
            else:
                label = ",".join(str(i) for i in idx)
                columns[f"{site}[{label}]"] = flat[:, j]

    return pd.DataFrame(columns)
