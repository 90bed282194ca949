"""
AccessGB - Accessibility Estimation

Entry points for computing accessibility over a travel time matrix:

- estimate_accessibility: cumulative opportunities within each time cut
- estimate_nearest_opportunity: travel cost to the closest destination
  with positive weight
- my_accessibility / my_nearest_opportunity: the same measures on the
  published GB public transport matrix (PTAI 2021, median travel time),
  starting from destination points or pre-aggregated weights

Usage:
    weights = pd.DataFrame({"id": ["E01000001", "E01000002"], "jobs": [120, 40]})
    result = estimate_accessibility(
        travel_matrix="data/ttm/",
        travel_cost="travel_time_p50",
        weights=weights,
        time_cut=[30, 45],
    )
"""

from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import geopandas as gpd
import pandas as pd

from config.settings import get_settings
from src.ingest.datasets import AccessibilityDataProvider
from src.ingest.destinations import DestinationAggregator
from src.ingest.travel_matrix import find_matrix_file, locate
from src.processing.accessibility_query import AccessibilityQueryBuilder, weight_columns
from src.processing.query_executor import QueryExecutor
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

GroupSpec = Union[str, Sequence[str], None]


def estimate_accessibility(
    travel_matrix: Union[str, Path],
    travel_cost: str,
    weights: pd.DataFrame,
    time_cut: Sequence[float],
    additional_group: GroupSpec = None,
    csv_null_string: Optional[str] = None,
    engine_factory: Optional[Callable] = None,
) -> pd.DataFrame:
    """
    Cumulative accessibility for each origin and time cut.

    Args:
        travel_matrix: Parquet/CSV file or directory of shards with
            ``from_id``, ``to_id`` and the travel cost column
        travel_cost: Column used as travel cost c_ij
        weights: DataFrame with ``id`` and one or more weight columns
        time_cut: Thresholds t; one output column per weight and threshold
        additional_group: Extra matrix column(s) to group by, e.g. time of day
        csv_null_string: Null token of CSV matrices (default settings.CSV_NULL_STRING)
        engine_factory: Engine constructor, for testing

    Returns:
        DataFrame with ``from_id``, the extra groups and
        ``access_<weight>_<time_cut>`` columns
    """
    source = locate(travel_matrix)
    query = AccessibilityQueryBuilder(csv_null_string).build_cumulative(
        source, travel_cost, weight_columns(weights), time_cut, extra_group=additional_group
    )
    return QueryExecutor(engine_factory).run(weights, query)


def estimate_nearest_opportunity(
    travel_matrix: Union[str, Path],
    travel_cost: str,
    weights: pd.DataFrame,
    additional_group: GroupSpec = None,
    csv_null_string: Optional[str] = None,
    engine_factory: Optional[Callable] = None,
) -> pd.DataFrame:
    """
    Travel cost to the nearest destination with positive weight.

    Destinations with zero weight never count as nearest, however close.
    Origins reaching no such destination get a null.

    Returns:
        DataFrame with ``from_id``, the extra groups and ``nearest_<weight>``
        columns
    """
    source = locate(travel_matrix)
    query = AccessibilityQueryBuilder(csv_null_string).build_nearest(
        source, travel_cost, weight_columns(weights), extra_group=additional_group
    )
    return QueryExecutor(engine_factory).run(weights, query)


def _ptai_inputs(
    destinations: Union[gpd.GeoDataFrame, pd.DataFrame],
    aggregator: Optional[DestinationAggregator],
    provider: Optional[AccessibilityDataProvider],
):
    aggregator = aggregator or DestinationAggregator()
    weights = aggregator.aggregate(destinations)

    data_dir = (provider or AccessibilityDataProvider()).ensure_available()
    ttm_path = find_matrix_file(data_dir, settings.PTAI_TTM_PATTERN)
    return weights, ttm_path


def my_accessibility(
    destinations: Union[gpd.GeoDataFrame, pd.DataFrame],
    time_cut: Sequence[float],
    additional_group: GroupSpec = None,
    aggregator: Optional[DestinationAggregator] = None,
    provider: Optional[AccessibilityDataProvider] = None,
) -> pd.DataFrame:
    """
    Custom cumulative accessibility on the GB public transport matrix.

    Args:
        destinations: GeoDataFrame of points (counted per LSOA/DZ) or a
            weights DataFrame already aggregated by LSOA/DZ
        time_cut: Thresholds in minutes
        additional_group: Extra matrix column(s) to group by
    """
    weights, ttm_path = _ptai_inputs(destinations, aggregator, provider)
    return estimate_accessibility(
        travel_matrix=ttm_path,
        travel_cost=settings.DEFAULT_TRAVEL_COST,
        weights=weights,
        time_cut=time_cut,
        additional_group=additional_group,
    )


def my_nearest_opportunity(
    destinations: Union[gpd.GeoDataFrame, pd.DataFrame],
    additional_group: GroupSpec = None,
    aggregator: Optional[DestinationAggregator] = None,
    provider: Optional[AccessibilityDataProvider] = None,
) -> pd.DataFrame:
    """Custom nearest opportunity on the GB public transport matrix."""
    weights, ttm_path = _ptai_inputs(destinations, aggregator, provider)
    return estimate_nearest_opportunity(
        travel_matrix=ttm_path,
        travel_cost=settings.DEFAULT_TRAVEL_COST,
        weights=weights,
        additional_group=additional_group,
    )
