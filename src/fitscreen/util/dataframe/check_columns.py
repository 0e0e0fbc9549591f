def check_columns(df, required_columns):
    """
    Check if a DataFrame contains all required columns.

    Parameters
    ----------
    df : pandas.DataFrame
        The DataFrame to check.
    required_columns : list of str
        Column names that must be present. ``None`` entries are ignored so
        optional columns (e.g. an unset replicate column) can be passed
        straight through.

    Raises
    ------
    ValueError
        If any of the required columns are not found. The message lists
        every missing column.
    """

    required = [c for c in required_columns if c is not None]
    missing = [c for c in required if c not in df.columns]
    if missing:
        err = "Not all required columns seen. Missing columns:\n"
        for c in missing:
            err += f"    {c}\n"
        err += "\n"
        raise ValueError(err)
