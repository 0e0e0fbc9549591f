
from fitscreen.util.io import read_dataframe
from fitscreen.util.dataframe import check_columns

import numpy as np
from matplotlib import pyplot as plt
from matplotlib import colors as mcolors


def _lineage_colors(num_lineages, color, seed):
    """
    One color per lineage. A single color is repeated; a list of colors (or
    a colormap name, default 'tab20') is sampled at random for each lineage.
    """

    if color is None:
        color = "tab20"

    if mcolors.is_color_like(color):
        return [color]*num_lineages

    if isinstance(color, str):
        cmap = plt.get_cmap(color)
        color = [cmap(i) for i in range(cmap.N)]

    rng = np.random.default_rng(seed)
    idx = rng.integers(0, len(color), size=num_lineages)

    return [color[i] for i in idx]


def _trajectories(data, id_col, time_col, value_col):
    """
    Yield (time, values) for each lineage in a tidy table, sorted by time.
    """

    df = read_dataframe(data)
    check_columns(df, [id_col, time_col, value_col])

    for _, sub_df in df.groupby(id_col, sort=False):
        sub_df = sub_df.sort_values(time_col)
        yield (sub_df[time_col].to_numpy(),
               sub_df[value_col].to_numpy(dtype=float))


def bc_time_series(data,
                   id_col="barcode",
                   time_col="time",
                   quant_col="count",
                   zero_lim=1e-8,
                   zero_label=None,
                   color=None,
                   alpha=1.0,
                   linewidth=2,
                   seed=None,
                   ax=None):
    """
    Plot the raw time series of a quantity (counts or frequencies) for every
    lineage in a tidy table.

    Parameters
    ----------
    data : pandas.DataFrame or str
        Tidy table (or path) with one row per lineage and time point.
    id_col : str, optional
        Lineage identifier column.
    time_col : str, optional
        Time column. Each trajectory is drawn in sorted time order.
    quant_col : str, optional
        Column holding the quantity to plot.
    zero_lim : float, optional
        Values below this are drawn at `zero_lim`, so trajectories that hit
        zero stay visible on a log axis.
    zero_label : str, optional
        If given, `zero_lim` gets a y tick carrying this label.
    color : str, tuple or list, optional
        A single color for every trajectory, or a list of colors (or a
        colormap name) from which each trajectory draws one at random.
        Defaults to the 'tab20' colormap.
    alpha : float, optional
        Transparency of the trajectories.
    linewidth : float, optional
        Trajectory line width.
    seed : int, optional
        Seed for the random color assignment.
    ax : matplotlib.axes._axes.Axes, optional
        Axes object to plot on. If None, a new figure and axes are created.

    Returns
    -------
    matplotlib.axes._axes.Axes
        The axes object with the plot.
    """

    trajectories = list(_trajectories(data, id_col, time_col, quant_col))
    colors = _lineage_colors(len(trajectories), color, seed)

    if ax is None:
        _, ax = plt.subplots(1, figsize=(6, 4))

    for (time, values), c in zip(trajectories, colors):
        values = np.where(values < zero_lim, zero_lim, values)
        ax.plot(time, values, color=c, alpha=alpha, lw=linewidth)

    if zero_label is not None:
        ticks = [t for t in ax.get_yticks() if t > zero_lim]
        ax.set_yticks([zero_lim] + ticks)
        ax.set_yticklabels([zero_label] + [f"{t:g}" for t in ticks])

    ax.set_xlabel(time_col)
    ax.set_ylabel(quant_col)

    return ax


def logfreq_ratio_time_series(data,
                              id_col="barcode",
                              time_col="time",
                              freq_col="freq",
                              color=None,
                              alpha=1.0,
                              linewidth=2,
                              log_fn=np.log,
                              seed=None,
                              ax=None):
    """
    Plot the log frequency ratio between consecutive time points,
    log(f[t+1]) - log(f[t]), for every lineage in a tidy table. Each ratio
    is drawn at the earlier of its two time points.

    Parameters
    ----------
    data : pandas.DataFrame or str
        Tidy table (or path) with one row per lineage and time point.
    id_col, time_col : str, optional
        Lineage identifier and time columns.
    freq_col : str, optional
        Column holding the lineage frequency.
    color, alpha, linewidth, seed, ax
        See `bc_time_series`.
    log_fn : callable, optional
        Logarithm to use (np.log, np.log10 or np.log2).

    Returns
    -------
    matplotlib.axes._axes.Axes
        The axes object with the plot.
    """

    trajectories = list(_trajectories(data, id_col, time_col, freq_col))
    colors = _lineage_colors(len(trajectories), color, seed)

    if ax is None:
        _, ax = plt.subplots(1, figsize=(6, 4))

    with np.errstate(divide="ignore", invalid="ignore"):
        for (time, values), c in zip(trajectories, colors):
            ax.plot(time[:-1],
                    np.diff(log_fn(values)),
                    color=c,
                    alpha=alpha,
                    lw=linewidth)

    ax.set_xlabel(time_col)
    ax.set_ylabel("log(f[t+1]/f[t])")

    return ax
