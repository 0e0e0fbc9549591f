
from fitscreen.analysis.ppc import (
    quantile_bands,
    freq_mutant_from_df,
    logfreq_ratio_neutral_from_df
)
from fitscreen.errors import InsufficientColors

import numpy as np
from matplotlib import pyplot as plt


def _default_colors(num_levels, reverse=False):
    """
    Colors from the matplotlib Blues ramp, lightest for the widest interval.
    """

    colors = list(plt.get_cmap("Blues")(np.linspace(0.25, 0.9, num_levels)))
    if reverse:
        colors = colors[::-1]
    return colors


def ppc_bands(quantile_levels,
              sample_source,
              derive_fn=None,
              colors=None,
              alpha=0.75,
              time=None,
              ax=None):
    """
    Draw posterior predictive credible-interval bands over time.

    Parameters
    ----------
    quantile_levels : list of float
        Interval masses in (0, 1). Drawn widest first.
    sample_source : Any
        Samples, passed to `derive_fn` (see `fitscreen.analysis.ppc`).
    derive_fn : callable, optional
        Maps `sample_source` to a (num_samples, num_time) matrix. If None,
        `sample_source` is that matrix.
    colors : list, optional
        One color per level, matched to the levels in descending order.
        Defaults to the Blues ramp.
    alpha : float, optional
        Transparency of each band.
    time : array_like, optional
        x values. Defaults to 0, 1, 2, ...
    ax : matplotlib.axes._axes.Axes, optional
        Axes object to plot on. If None, a new figure and axes are created.

    Returns
    -------
    matplotlib.axes._axes.Axes
        The axes object with the plot.

    Raises
    ------
    InsufficientColors
        If fewer colors than levels are given.
    """

    num_levels = len(np.atleast_1d(quantile_levels))
    if colors is None:
        colors = _default_colors(num_levels)
    if len(colors) < num_levels:
        raise InsufficientColors(
            f"{len(colors)} colors given for {num_levels} quantile levels."
        )

    bands = quantile_bands(quantile_levels, sample_source, derive_fn=derive_fn)

    if time is None:
        time = np.arange(bands.shape[0])
    time = np.asarray(time)
    if len(time) != bands.shape[0]:
        raise ValueError(
            f"time has {len(time)} entries but the bands have {bands.shape[0]} time points."
        )

    if ax is None:
        _, ax = plt.subplots(1, figsize=(6, 4))

    for i in range(bands.shape[1]):
        ax.fill_between(time,
                        bands[:, i, 0],
                        bands[:, i, 1],
                        color=colors[i],
                        alpha=alpha,
                        lw=0)

    return ax


def freq_mutant_ppc(quantile_levels,
                    df,
                    varname_mut,
                    varname_mean,
                    varname_freq,
                    colors=None,
                    alpha=0.75,
                    ax=None):
    """
    Posterior predictive bands of a mutant's frequency trajectory from a
    table of samples (see `fitscreen.analysis.ppc.freq_mutant_from_df`).
    """

    ax = ppc_bands(quantile_levels,
                   df,
                   derive_fn=freq_mutant_from_df(varname_mut, varname_mean, varname_freq),
                   colors=colors,
                   alpha=alpha,
                   ax=ax)
    ax.set_xlabel("time point")
    ax.set_ylabel("barcode frequency")

    return ax


def logfreq_ratio_neutral_ppc(quantile_levels,
                              df,
                              varname_mean="s_pop[",
                              varname_sigma=None,
                              seed=None,
                              colors=None,
                              alpha=0.75,
                              ax=None):
    """
    Posterior predictive bands of the neutral log frequency ratio, drawn
    with the growth-oriented sign (see
    `fitscreen.analysis.ppc.logfreq_ratio_neutral_from_df`).
    """

    num_levels = len(np.atleast_1d(quantile_levels))
    if colors is None:
        colors = _default_colors(num_levels, reverse=True)

    ax = ppc_bands(quantile_levels,
                   df,
                   derive_fn=logfreq_ratio_neutral_from_df(varname_mean,
                                                           varname_sigma,
                                                           seed=seed),
                   colors=colors,
                   alpha=alpha,
                   ax=ax)
    ax.set_xlabel("time step")
    ax.set_ylabel("-ln(f[t+1]/f[t])")

    return ax
