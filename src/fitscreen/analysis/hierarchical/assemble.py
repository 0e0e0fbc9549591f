from fitscreen.util.io import read_dataframe
from fitscreen.util.dataframe import check_columns
from fitscreen.errors import (
    ShapeMismatch,
    DegenerateCounts
)

import numpy as np
import pandas as pd


def _build_group_matrix(sub_df,
                        id_col,
                        time_col,
                        count_col,
                        timepoints):
    """
    Pivot the rows of one lineage class (neutral or mutant) into a
    (num_time, num_lineage) count matrix. Lineages appear in the order they
    first appear in `sub_df`.
    """

    ids = []
    columns = []
    for bc, bc_df in sub_df.groupby(id_col, sort=False):

        bc_df = bc_df.sort_values(time_col)
        bc_times = bc_df[time_col].to_numpy()

        if len(bc_times) != len(timepoints) or np.any(bc_times != timepoints):
            raise ShapeMismatch(
                f"lineage '{bc}' has {len(bc_times)} observations at times "
                f"{list(bc_times)}, but every lineage must be observed exactly "
                f"once at each of the times {list(timepoints)}."
            )

        ids.append(bc)
        columns.append(bc_df[count_col].to_numpy())

    if len(columns) == 0:
        return ids, np.zeros((len(timepoints), 0), dtype=np.int64)

    return ids, np.stack(columns, axis=1).astype(np.int64)


def _check_degenerate(bc_count, bc_ids, n_neutral, label=""):
    """
    Fail on count patterns that would put a zero frequency into a ratio or
    a log downstream.
    """

    if n_neutral == 0:
        raise DegenerateCounts(f"{label}no neutral lineages found.")

    if bc_count.shape[0] < 2:
        raise DegenerateCounts(
            f"{label}at least two time points are needed, found {bc_count.shape[0]}."
        )

    lineage_total = bc_count.sum(axis=0)
    never_seen = [bc_ids[i] for i in np.where(lineage_total == 0)[0]]
    if never_seen:
        raise DegenerateCounts(
            f"{label}lineages never observed (zero counts at every time): {never_seen}"
        )

    time_total = bc_count.sum(axis=1)
    empty_times = np.where(time_total == 0)[0]
    if len(empty_times) > 0:
        raise DegenerateCounts(
            f"{label}time indexes {list(empty_times)} have zero total reads."
        )


def _assemble_replicate(df,
                        id_col,
                        time_col,
                        count_col,
                        neutral_col,
                        label=""):
    """
    Assemble the count arrays for a table holding a single replicate.
    """

    timepoints = np.sort(pd.unique(df[time_col]))

    is_neutral = df[neutral_col].astype(bool)

    neutral_ids, neutral_counts = _build_group_matrix(df[is_neutral],
                                                      id_col,
                                                      time_col,
                                                      count_col,
                                                      timepoints)
    mutant_ids, mutant_counts = _build_group_matrix(df[~is_neutral],
                                                    id_col,
                                                    time_col,
                                                    count_col,
                                                    timepoints)

    bc_count = np.hstack([neutral_counts, mutant_counts])

    _check_degenerate(bc_count,
                      neutral_ids + mutant_ids,
                      n_neutral=len(neutral_ids),
                      label=label)

    out = {"neutral_counts":neutral_counts,
           "mutant_counts":mutant_counts,
           "bc_count":bc_count,
           "bc_total":bc_count.sum(axis=1),
           "n_neutral":len(neutral_ids),
           "n_mut":len(mutant_ids),
           "neutral_ids":neutral_ids,
           "mutant_ids":mutant_ids,
           "timepoints":timepoints}

    return out


def _align_replicate(ref, rep, rep_name):
    """
    Reorder the lineage columns of `rep` to match `ref`. Raises
    ShapeMismatch if the replicates disagree on time points or lineages.
    """

    if len(ref["timepoints"]) != len(rep["timepoints"]) or \
       np.any(ref["timepoints"] != rep["timepoints"]):
        raise ShapeMismatch(
            f"replicate '{rep_name}' has time points {list(rep['timepoints'])}, "
            f"expected {list(ref['timepoints'])}."
        )

    for group in ["neutral", "mutant"]:

        ref_ids = ref[f"{group}_ids"]
        rep_ids = rep[f"{group}_ids"]
        if set(ref_ids) != set(rep_ids):
            raise ShapeMismatch(
                f"replicate '{rep_name}' does not have the same {group} "
                "lineages as the other replicates."
            )

        order = [rep_ids.index(bc) for bc in ref_ids]
        rep[f"{group}_counts"] = rep[f"{group}_counts"][:, order]
        rep[f"{group}_ids"] = list(ref_ids)

    rep["bc_count"] = np.hstack([rep["neutral_counts"], rep["mutant_counts"]])
    rep["bc_total"] = rep["bc_count"].sum(axis=1)

    return rep


def assemble(data,
             id_col="barcode",
             time_col="time",
             count_col="count",
             neutral_col="neutral",
             rep_col=None,
             rm_T0=False):
    """
    Convert a tidy barcode-count table into the arrays used by the fitness
    models.

    Lineages are split into neutral and mutant groups. Within each group
    lineages keep the order in which they first appear in the table. The
    combined count matrix places all neutral lineages first.

    Parameters
    ----------
    data : pandas.DataFrame or str
        Tidy table (or path to one) with one row per lineage, time point
        (and replicate).
    id_col : str, optional
        Column holding the lineage (barcode) identifier.
    time_col : str, optional
        Column holding the (orderable) time point.
    count_col : str, optional
        Column holding the non-negative integer read count.
    neutral_col : str, optional
        Boolean column marking neutral lineages.
    rep_col : str, optional
        Column holding the replicate identifier. If given, each replicate is
        assembled separately and the arrays are stacked along a final
        replicate axis.
    rm_T0 : bool, optional
        If True, drop all rows taken at the earliest time point before
        assembling.

    Returns
    -------
    dict
        - ``neutral_counts`` : (num_time, n_neutral) array (with a trailing
          replicate axis if `rep_col` is set)
        - ``mutant_counts`` : (num_time, n_mut) array
        - ``bc_count`` : (num_time, n_neutral + n_mut) array, neutral first
        - ``bc_total`` : (num_time,) row sums of ``bc_count`` ((num_time,
          num_rep) with replicates)
        - ``n_neutral``, ``n_mut`` : int
        - ``neutral_ids``, ``mutant_ids`` : lists of lineage identifiers
        - ``timepoints`` : sorted time values
        - ``rep_ids`` : list of replicate identifiers (only with `rep_col`)

    Raises
    ------
    ShapeMismatch
        If a lineage is not observed exactly once at every time point, or
        replicates disagree on lineages or time points.
    DegenerateCounts
        If there are negative counts, no neutral lineages, fewer than two
        time points, a lineage with no reads, or a time point with no reads.
    """

    df = read_dataframe(data)
    check_columns(df, [id_col, time_col, count_col, neutral_col, rep_col])

    counts = df[count_col].to_numpy()
    if np.any(counts < 0):
        raise DegenerateCounts(f"column '{count_col}' has negative counts.")
    if not np.all(np.equal(np.mod(counts, 1), 0)):
        raise ValueError(f"column '{count_col}' must hold integer counts.")

    if rm_T0:
        first_time = np.sort(pd.unique(df[time_col]))[0]
        df = df.loc[df[time_col] != first_time]

    if rep_col is None:
        return _assemble_replicate(df,
                                   id_col,
                                   time_col,
                                   count_col,
                                   neutral_col)

    rep_ids = list(np.sort(pd.unique(df[rep_col])))
    per_rep = []
    for rep in rep_ids:
        rep_df = df.loc[df[rep_col] == rep]
        out = _assemble_replicate(rep_df,
                                  id_col,
                                  time_col,
                                  count_col,
                                  neutral_col,
                                  label=f"replicate '{rep}': ")
        if per_rep:
            out = _align_replicate(per_rep[0], out, rep)
        per_rep.append(out)

    ref = per_rep[0]
    stacked = {}
    for k in ["neutral_counts", "mutant_counts", "bc_count", "bc_total"]:
        stacked[k] = np.stack([r[k] for r in per_rep], axis=-1)

    for k in ["n_neutral", "n_mut", "neutral_ids", "mutant_ids", "timepoints"]:
        stacked[k] = ref[k]

    stacked["rep_ids"] = rep_ids

    return stacked
