"""
Pytest configuration and shared fixtures for AccessGB tests.
"""

from pathlib import Path

import duckdb
import pandas as pd
import pytest


# Travel time matrix rows: (from_id, to_id, travel_time_p50, time_band)
# B -> D has no travel time (stored as NA in CSV files).
MATRIX_ROWS = [
    ("A", "B", 5, "am"),
    ("A", "C", 50, "am"),
    ("A", "D", 25, "am"),
    ("A", "B", 15, "pm"),
    ("A", "C", 40, "pm"),
    ("B", "A", 12, "am"),
    ("B", "D", None, "am"),
    ("C", "C", 3, "am"),
]


def make_matrix(rows=MATRIX_ROWS) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=["from_id", "to_id", "travel_time_p50", "time_band"])
    df["travel_time_p50"] = df["travel_time_p50"].astype("Int64")
    return df


def write_csv(df: pd.DataFrame, path: Path) -> Path:
    df.to_csv(path, index=False, na_rep="NA")
    return path


def write_parquet(df: pd.DataFrame, path: Path) -> Path:
    con = duckdb.connect()
    try:
        con.register("frame", df)
        escaped = path.as_posix().replace("'", "''")
        con.execute(f"COPY (SELECT * FROM frame) TO '{escaped}' (FORMAT PARQUET)")
    finally:
        con.close()
    return path


@pytest.fixture
def matrix_df() -> pd.DataFrame:
    return make_matrix()


@pytest.fixture
def weights_df() -> pd.DataFrame:
    """Opportunities per destination; C has no row at all."""
    return pd.DataFrame({
        "id": ["A", "B", "D"],
        "n": [10, 20, 0],
        "jobs": [0, 5, 7],
    })


@pytest.fixture
def csv_matrix_file(tmp_path, matrix_df) -> Path:
    return write_csv(matrix_df, tmp_path / "ttm.csv")


@pytest.fixture
def parquet_matrix_file(tmp_path, matrix_df) -> Path:
    return write_parquet(matrix_df, tmp_path / "ttm.parquet")


@pytest.fixture
def csv_matrix_dir(tmp_path, matrix_df) -> Path:
    directory = tmp_path / "ttm_csv"
    directory.mkdir()
    write_csv(matrix_df.iloc[:4], directory / "part_0.csv")
    write_csv(matrix_df.iloc[4:], directory / "part_1.csv")
    return directory


@pytest.fixture
def parquet_matrix_dir(tmp_path, matrix_df) -> Path:
    directory = tmp_path / "ttm_parquet"
    directory.mkdir()
    write_parquet(matrix_df.iloc[:3], directory / "part_0.parquet")
    write_parquet(matrix_df.iloc[3:], directory / "part_1.parquet")
    return directory


@pytest.fixture
def matrix_csv_factory(tmp_path):
    """Write arbitrary (from_id, to_id, travel_time_p50, time_band) rows to a CSV."""
    def _factory(rows, name="ttm.csv") -> Path:
        return write_csv(make_matrix(rows), tmp_path / name)
    return _factory


@pytest.fixture
def parquet_shard_factory(tmp_path):
    """Write (from_id, to_id, travel_time_p50, time_band) rows to a Parquet file below tmp_path."""
    def _factory(rows, relative_path) -> Path:
        path = tmp_path / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        return write_parquet(make_matrix(rows), path)
    return _factory
