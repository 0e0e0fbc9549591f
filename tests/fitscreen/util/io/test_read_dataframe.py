import pytest
import pandas as pd
from fitscreen.util import read_dataframe


@pytest.fixture
def tidy_df():
    return pd.DataFrame({"barcode": ["a", "a", "b", "b"],
                         "time": [0, 1, 0, 1],
                         "count": [10, 12, 5, 3]})


def test_dataframe_is_copied(tidy_df):
    out = read_dataframe(tidy_df)
    assert out is not tidy_df
    pd.testing.assert_frame_equal(out, tidy_df)

    out.loc[0, "count"] = 1000
    assert tidy_df.loc[0, "count"] == 10


@pytest.mark.parametrize("ext,sep", [("csv", ","), ("tsv", "\t"), ("txt", ",")])
def test_read_from_file(tmpdir, tidy_df, ext, sep):
    path = str(tmpdir.join(f"counts.{ext}"))
    tidy_df.to_csv(path, sep=sep, index=False)

    out = read_dataframe(path)
    pd.testing.assert_frame_equal(out, tidy_df)


def test_spurious_index_column_dropped(tmpdir, tidy_df):
    path = str(tmpdir.join("counts.csv"))
    tidy_df.to_csv(path)

    out = read_dataframe(path)
    assert "Unnamed: 0" not in out.columns
    pd.testing.assert_frame_equal(out, tidy_df)


def test_missing_file():
    with pytest.raises(ValueError, match="File not found"):
        read_dataframe("does_not_exist.csv")


def test_bad_type():
    with pytest.raises(TypeError):
        read_dataframe(42)
