import pandas as pd


def read_dataframe(source):
    """
    Read a tidy observation table from a file path or DataFrame.

    Handles .csv, .tsv, and .xlsx/.xls files. Other extensions are read
    with pandas' delimiter sniffer. A spurious 'Unnamed: 0' column (left
    behind when a frame is written with its index) is dropped.

    Parameters
    ----------
    source : pandas.DataFrame or str
        A pandas DataFrame or the file path to read. DataFrames are copied
        so callers never see their input modified.

    Returns
    -------
    pandas.DataFrame
        The loaded DataFrame.
    """

    if isinstance(source, str):
        ext = source.split(".")[-1].strip().lower()
        try:
            if ext in ["xlsx", "xls"]:
                df = pd.read_excel(source)
            elif ext == "csv":
                df = pd.read_csv(source)
            elif ext == "tsv":
                df = pd.read_csv(source, sep="\t")
            else:
                df = pd.read_csv(source, sep=None, engine="python")
        except FileNotFoundError:
            raise ValueError(f"File not found at path: {source}")

    elif isinstance(source, pd.DataFrame):
        df = source.copy()
    else:
        raise TypeError("`source` must be a file path (str) or pandas DataFrame.")

    unnamed_col = "Unnamed: 0"
    if unnamed_col in df.columns:
        col_data = df[unnamed_col]
        is_spurious = pd.api.types.is_integer_dtype(col_data) and \
                      col_data.equals(pd.RangeIndex(start=0, stop=len(df)).to_series())
        if is_spurious:
            df = df.drop(columns=unnamed_col)

    return df
