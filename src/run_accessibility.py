"""
AccessGB - Accessibility Command Line

Computes cumulative or nearest-opportunity accessibility over a travel time
matrix and writes the result to CSV.

Destinations are given either as pre-aggregated weights (CSV with an ``id``
column) or as point coordinates (CSV with lon/lat columns) that are counted
per LSOA/DZ first.

Usage:
    python -m src.run_accessibility --travel-matrix data/ttm --weights jobs.csv --time-cut 30 45
    python -m src.run_accessibility --measure nearest --destinations gps.csv --crs EPSG:4326
    python -m src.run_accessibility --download-only
"""

import argparse
import os
import sys
from datetime import datetime
from typing import List, Optional

import pandas as pd

from config.database import test_connection
from config.settings import get_settings
from src.ingest.datasets import AccessibilityDataProvider, LsoaGeometryProvider
from src.ingest.destinations import DestinationAggregator, ShapefileGeometryStore, points_from_table
from src.ingest.travel_matrix import find_matrix_file
from src.processing.accessibility import estimate_accessibility, estimate_nearest_opportunity
from src.utils.errors import AccessibilityError
from src.utils.logging import setup_logging

logger = setup_logging("accessibility")
settings = get_settings()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AccessGB - Accessibility over travel time matrices"
    )

    parser.add_argument(
        "--measure",
        type=str,
        default="cumulative",
        choices=["cumulative", "nearest"],
        help="Accessibility measure (default: cumulative)"
    )

    parser.add_argument(
        "--travel-matrix",
        type=str,
        help="Matrix file or directory (default: downloaded GB public transport matrix)"
    )

    parser.add_argument(
        "--travel-cost",
        type=str,
        default=settings.DEFAULT_TRAVEL_COST,
        help=f"Travel cost column (default: {settings.DEFAULT_TRAVEL_COST})"
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--weights",
        type=str,
        help="CSV with an 'id' column and one or more weight columns"
    )
    source.add_argument(
        "--destinations",
        type=str,
        help="CSV of destination points, aggregated by LSOA/DZ"
    )

    parser.add_argument("--lon-col", type=str, default="lon", help="Longitude/x column of --destinations")
    parser.add_argument("--lat-col", type=str, default="lat", help="Latitude/y column of --destinations")
    parser.add_argument("--crs", type=str, default="EPSG:4326", help="CRS of --destinations (default: EPSG:4326)")

    parser.add_argument(
        "--time-cut",
        type=float,
        nargs='+',
        help="Travel cost thresholds for the cumulative measure"
    )

    parser.add_argument(
        "--additional-group",
        type=str,
        nargs='+',
        help="Extra matrix column(s) to group by, e.g. time of day"
    )

    parser.add_argument(
        "--csv-null-string",
        type=str,
        default=None,
        help=f"Null token in CSV matrices (default: {settings.CSV_NULL_STRING})"
    )

    parser.add_argument(
        "--output",
        type=str,
        help="Output CSV path (default: EXPORT_DIR/<measure>_<timestamp>.csv)"
    )

    parser.add_argument(
        "--download-only",
        action="store_true",
        help="Only make sure the GB datasets are downloaded"
    )

    parser.add_argument(
        "--force-update",
        action="store_true",
        help="Re-download datasets even if cached"
    )

    return parser


def load_weights(args: argparse.Namespace) -> pd.DataFrame:
    if args.weights:
        weights = pd.read_csv(args.weights, dtype={"id": str})
        return DestinationAggregator().aggregate(weights)

    points = pd.read_csv(args.destinations)
    layer = points_from_table(points, lon_col=args.lon_col, lat_col=args.lat_col, crs=args.crs)
    provider = LsoaGeometryProvider()
    if args.force_update:
        provider.ensure_available(force_update=True)
    return DestinationAggregator(geometry_store=ShapefileGeometryStore(provider)).aggregate(layer)


def resolve_travel_matrix(args: argparse.Namespace) -> str:
    if args.travel_matrix:
        return args.travel_matrix
    data_dir = AccessibilityDataProvider().ensure_available(force_update=args.force_update)
    return str(find_matrix_file(data_dir, settings.PTAI_TTM_PATTERN))


def run(args: argparse.Namespace) -> Optional[str]:
    """
    Execute one accessibility request.

    Returns:
        Path of the written CSV, or None for --download-only
    """
    if args.download_only:
        AccessibilityDataProvider().ensure_available(force_update=args.force_update)
        LsoaGeometryProvider().ensure_available(force_update=args.force_update)
        return None

    if args.measure == "cumulative" and not args.time_cut:
        raise AccessibilityError("--time-cut is required for the cumulative measure")

    weights = load_weights(args)
    travel_matrix = resolve_travel_matrix(args)

    if args.measure == "cumulative":
        result = estimate_accessibility(
            travel_matrix=travel_matrix,
            travel_cost=args.travel_cost,
            weights=weights,
            time_cut=args.time_cut,
            additional_group=args.additional_group,
            csv_null_string=args.csv_null_string,
        )
    else:
        result = estimate_nearest_opportunity(
            travel_matrix=travel_matrix,
            travel_cost=args.travel_cost,
            weights=weights,
            additional_group=args.additional_group,
            csv_null_string=args.csv_null_string,
        )

    output = args.output
    if not output:
        os.makedirs(settings.EXPORT_DIR, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output = os.path.join(settings.EXPORT_DIR, f"{args.measure}_{stamp}.csv")

    result.to_csv(output, index=False)
    logger.info(f"Wrote {len(result)} rows to {output}")
    return output


def main(argv: Optional[List[str]] = None):
    """Command line entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.download_only and not (args.weights or args.destinations):
        parser.error("one of --weights or --destinations is required")

    start_time = datetime.now()
    logger.info("=" * 60)
    logger.info("AccessGB - Accessibility Run")
    logger.info(f"Arguments: {vars(args)}")
    logger.info("=" * 60)

    if not test_connection():
        logger.error("DuckDB is not usable, exiting")
        sys.exit(1)

    try:
        run(args)
    except AccessibilityError as e:
        logger.error(f"Accessibility run failed: {e}")
        sys.exit(1)

    duration = (datetime.now() - start_time).total_seconds()
    logger.info(f"Completed in {duration:.1f}s")
    sys.exit(0)


if __name__ == "__main__":
    main()
