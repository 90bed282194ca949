from pathlib import Path

import pandas as pd
import pytest

from src.ingest.travel_matrix import Directory, MatrixFormat, SingleFile
from src.processing.accessibility_query import (
    AccessibilityQueryBuilder,
    AggregationTerm,
    TermKind,
    format_threshold,
    quote_identifier,
    weight_columns,
)
from src.utils.errors import InvalidTimeCut, NoWeightColumns

PARQUET_DIR = Directory(path=Path("/data/ttm"), format=MatrixFormat.PARQUET)
CSV_FILE = SingleFile(path=Path("/data/ttm.csv"), format=MatrixFormat.CSV)


def test_quote_identifier_escapes_double_quotes():
    assert quote_identifier("jobs") == '"jobs"'
    assert quote_identifier('we"ird') == '"we""ird"'


@pytest.mark.parametrize("value, expected", [
    (30, "30"),
    (30.0, "30"),
    (12.5, "12.5"),
    (0, "0"),
])
def test_format_threshold(value, expected):
    assert format_threshold(value) == expected


@pytest.mark.parametrize("value", ["30", None, True, float("nan"), float("inf")])
def test_format_threshold_rejects_non_numbers(value):
    with pytest.raises(InvalidTimeCut):
        format_threshold(value)


def test_cumulative_term_sql():
    term = AggregationTerm(kind=TermKind.CUMULATIVE, weight="jobs", alias="access_jobs_30", threshold="30")

    assert term.render("travel_time_p50") == (
        'SUM(CASE WHEN a."travel_time_p50" <= 30 '
        'THEN COALESCE(b."jobs", 0) ELSE 0 END) AS "access_jobs_30"'
    )


def test_nearest_term_sql():
    term = AggregationTerm(kind=TermKind.NEAREST, weight="jobs", alias="nearest_jobs")

    assert term.render("travel_time_p50") == (
        'MIN(CASE WHEN b."jobs" > 0 THEN a."travel_time_p50" ELSE NULL END) AS "nearest_jobs"'
    )


def test_cumulative_columns_are_ordered_weight_then_cut():
    query = AccessibilityQueryBuilder().build_cumulative(
        PARQUET_DIR, "travel_time_p50", ["n", "jobs"], [45, 10]
    )

    assert query.aliases == ["access_n_45", "access_n_10", "access_jobs_45", "access_jobs_10"]


def test_cumulative_query_skeleton():
    sql = AccessibilityQueryBuilder().build_cumulative(
        PARQUET_DIR, "travel_time_p50", ["jobs"], [30]
    ).render()

    assert sql.startswith('SELECT a."from_id", SUM(')
    assert "FROM '/data/ttm/*.parquet' AS a" in sql
    assert 'LEFT JOIN "weights" AS b ON a."to_id" = b."id"' in sql
    assert 'GROUP BY a."from_id"\n' in sql
    assert sql.endswith('ORDER BY a."from_id";')


def test_extra_groups_are_selected_grouped_and_ordered_first():
    sql = AccessibilityQueryBuilder().build_cumulative(
        PARQUET_DIR, "travel_time_p50", ["jobs"], [30], extra_group=["time_band", "day"]
    ).sql

    assert sql.startswith('SELECT a."from_id", a."time_band", a."day", SUM(')
    assert 'GROUP BY a."from_id", a."time_band", a."day"' in sql
    assert sql.endswith('ORDER BY a."time_band", a."day", a."from_id";')


def test_single_string_group_is_accepted():
    query = AccessibilityQueryBuilder().build_nearest(
        PARQUET_DIR, "travel_time_p50", ["jobs"], extra_group="time_band"
    )

    assert query.extra_group == ["time_band"]


def test_csv_source_renders_read_csv_with_null_token():
    sql = str(AccessibilityQueryBuilder(csv_null_string="-").build_nearest(
        CSV_FILE, "travel_time_p50", ["jobs"]
    ))

    assert "FROM read_csv('/data/ttm.csv', header=true, auto_detect=true, nullstr='-') AS a" in sql


def test_identifiers_with_quotes_cannot_break_out():
    sql = AccessibilityQueryBuilder().build_nearest(
        PARQUET_DIR, 'cost"; DROP TABLE weights; --', ["jobs"]
    ).render()

    assert 'a."cost""; DROP TABLE weights; --"' in sql


def test_empty_time_cut_is_rejected():
    with pytest.raises(InvalidTimeCut):
        AccessibilityQueryBuilder().build_cumulative(PARQUET_DIR, "travel_time_p50", ["jobs"], [])


def test_no_weight_columns_is_rejected():
    with pytest.raises(NoWeightColumns):
        AccessibilityQueryBuilder().build_nearest(PARQUET_DIR, "travel_time_p50", [])


def test_weight_columns_excludes_id():
    weights = pd.DataFrame({"id": ["A"], "jobs": [1], "schools": [2]})

    assert weight_columns(weights) == ["jobs", "schools"]

    with pytest.raises(NoWeightColumns):
        weight_columns(pd.DataFrame({"id": ["A"]}))
