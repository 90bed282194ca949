"""
AccessGB - Destination Aggregation

Turns destination points into a weights table keyed by areal unit
(LSOA / Data Zone ``geo_code``), the form the accessibility queries join
against.

Steps for point input:
1. Validate: a single-type point layer with a CRS
2. Reproject to the boundaries' CRS when they differ
3. Spatial join: each point is assigned to at most one containing unit;
   points outside every unit are dropped (and counted in the log)
4. Count points per unit: ``id = geo_code``, ``n = count``

Units without points are absent from the result; the later LEFT JOIN
treats a missing id as zero opportunity.

A plain DataFrame with an ``id`` column and numeric weight columns is
already aggregated and is returned unchanged.
"""

from pathlib import Path
from typing import Optional, Union

import geopandas as gpd
import pandas as pd

from config.settings import get_settings
from src.ingest.datasets import UKDS_NOTICE, LsoaGeometryProvider
from src.utils.errors import (
    InvalidGeometryType,
    InvalidWeightsTable,
    MissingCrs,
    NoWeightColumns,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

GEO_CODE = "geo_code"


class CrsReprojector:
    """Reproject point layers to a fixed CRS."""

    def __init__(self, target_crs=None):
        self.target_crs = target_crs or settings.TARGET_CRS

    def to_target_crs(self, points: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
        return points.to_crs(self.target_crs)


class PolygonGeometryStore:
    """
    Areal units held in memory.

    Args:
        polygons: GeoDataFrame with a geometry column and an id column
        id_column: Name of the unit identifier in ``polygons``
    """

    def __init__(self, polygons: Optional[gpd.GeoDataFrame] = None, id_column: str = GEO_CODE):
        self.id_column = id_column
        self._polygons = self._standardize(polygons) if polygons is not None else None

    def _standardize(self, polygons: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
        if self.id_column not in polygons.columns:
            raise KeyError(f"Boundary layer has no '{self.id_column}' column")
        out = polygons[[self.id_column, polygons.geometry.name]].rename(
            columns={self.id_column: GEO_CODE}
        )
        return out.set_geometry(polygons.geometry.name)

    def load_polygons(self) -> gpd.GeoDataFrame:
        return self._polygons

    def intersect(self, points: gpd.GeoDataFrame, polygons: gpd.GeoDataFrame) -> pd.DataFrame:
        """
        Match points to the unit containing them.

        Returns:
            DataFrame with ``point_index`` (index label in ``points``) and
            ``geo_code``; unmatched points are absent
        """
        joined = gpd.sjoin(
            points[[points.geometry.name]],
            polygons[[GEO_CODE, polygons.geometry.name]],
            how="inner",
            predicate="intersects",
        )
        # A point on a shared edge touches two units; keep one
        joined = joined[~joined.index.duplicated(keep="first")]

        return pd.DataFrame({
            "point_index": joined.index.to_numpy(),
            GEO_CODE: joined[GEO_CODE].to_numpy(),
        })


class ShapefileGeometryStore(PolygonGeometryStore):
    """
    LSOA / DZ boundaries read from the shapefiles of a dataset provider.

    Boundaries are read on first use and kept for the lifetime of the store.
    """

    def __init__(
        self,
        provider: Optional[LsoaGeometryProvider] = None,
        id_column: str = GEO_CODE,
        geoms_dir: Union[str, Path, None] = None,
    ):
        super().__init__(None, id_column=id_column)
        self.provider = provider or LsoaGeometryProvider()
        self.geoms_dir = Path(geoms_dir) if geoms_dir else None

    def load_polygons(self) -> gpd.GeoDataFrame:
        if self._polygons is None:
            geoms_dir = self.geoms_dir or self.provider.ensure_available()
            shapefiles = sorted(Path(geoms_dir).rglob("*.shp"))
            if not shapefiles:
                raise FileNotFoundError(f"No shapefile found in {geoms_dir}")

            layers = [gpd.read_file(path) for path in shapefiles]
            polygons = gpd.GeoDataFrame(pd.concat(layers, ignore_index=True), crs=layers[0].crs)
            self._polygons = self._standardize(polygons)
            logger.info(f"Loaded {len(self._polygons)} areal units from {len(shapefiles)} shapefile(s)")

        return self._polygons


def validate_points(destinations: gpd.GeoDataFrame) -> None:
    geom_types = destinations.geometry.geom_type
    found = set(geom_types.dropna().unique())
    if geom_types.isna().any() or found - {"Point"}:
        raise InvalidGeometryType(
            f"Destinations must be point geometries only, found: {sorted(map(str, found))}"
        )
    if destinations.crs is None:
        raise MissingCrs("Destination points have no coordinate reference system")


def validate_weights(weights: pd.DataFrame) -> pd.DataFrame:
    """Check a pre-aggregated weights table; returns it unchanged."""
    if "id" not in weights.columns:
        raise InvalidWeightsTable("Weights table needs an 'id' column")

    others = [c for c in weights.columns if c != "id"]
    if not others:
        raise NoWeightColumns("Weights table has no weight columns besides 'id'")
    non_numeric = [c for c in others if not pd.api.types.is_numeric_dtype(weights[c])]
    if non_numeric:
        raise InvalidWeightsTable(f"Weight columns must be numeric, got non-numeric {non_numeric}")

    return weights


def points_from_table(
    df: pd.DataFrame,
    lon_col: str = "lon",
    lat_col: str = "lat",
    crs: str = "EPSG:4326",
) -> gpd.GeoDataFrame:
    """Build a point layer from coordinate columns."""
    return gpd.GeoDataFrame(
        df.drop(columns=[lon_col, lat_col]),
        geometry=gpd.points_from_xy(df[lon_col], df[lat_col]),
        crs=crs,
    )


class DestinationAggregator:
    """
    Aggregate destinations into a weights table.

    Args:
        geometry_store: Source of areal units (default: LSOA/DZ shapefiles)
        reprojector: Point reprojector (default: to the units' CRS)
        quiet: Suppress the data licence notice
    """

    def __init__(
        self,
        geometry_store: Optional[PolygonGeometryStore] = None,
        reprojector: Optional[CrsReprojector] = None,
        quiet: bool = False,
    ):
        self.geometry_store = geometry_store or ShapefileGeometryStore()
        self.reprojector = reprojector
        self.quiet = quiet

    def aggregate(self, destinations: Union[gpd.GeoDataFrame, pd.DataFrame]) -> pd.DataFrame:
        if isinstance(destinations, gpd.GeoDataFrame):
            return self.aggregate_points(destinations)
        if isinstance(destinations, pd.DataFrame):
            logger.debug("Destinations are pre-aggregated weights, passing through")
            return validate_weights(destinations)
        raise InvalidWeightsTable(
            f"Destinations must be a GeoDataFrame of points or a weights DataFrame, "
            f"got {type(destinations).__name__}"
        )

    def aggregate_points(self, destinations: gpd.GeoDataFrame) -> pd.DataFrame:
        validate_points(destinations)

        polygons = self.geometry_store.load_polygons()
        points = destinations.reset_index(drop=True)

        if polygons.crs is not None and points.crs != polygons.crs:
            reprojector = self.reprojector or CrsReprojector(polygons.crs)
            logger.info(f"Transforming destinations CRS to {reprojector.target_crs}")
            points = reprojector.to_target_crs(points)

        matches = self.geometry_store.intersect(points, polygons)

        dropped = len(points) - matches["point_index"].nunique()
        if dropped:
            logger.warning(f"{dropped} of {len(points)} destination points fall outside every areal unit")

        counts = (
            matches.groupby(GEO_CODE).size()
            .rename("n")
            .reset_index()
            .rename(columns={GEO_CODE: "id"})
            .sort_values("id", ignore_index=True)
        )
        counts["n"] = counts["n"].astype("int64")

        logger.info(f"Aggregated {len(matches)} destinations into {len(counts)} areal units")
        if not self.quiet:
            logger.info(UKDS_NOTICE)

        return counts


def aggregate_destinations(
    destinations: Union[gpd.GeoDataFrame, pd.DataFrame],
    quiet: bool = False,
) -> pd.DataFrame:
    """Aggregate destinations against the LSOA/DZ boundaries."""
    return DestinationAggregator(quiet=quiet).aggregate(destinations)
