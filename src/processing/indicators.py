"""
AccessGB - Published Indicators

Read the precomputed accessibility indicators and the public transport
travel time matrix from the GB accessibility dataset, optionally restricted
to a set of origin LSOA/DZ codes.
"""

from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import pandas as pd

from config.database import DuckDBEngine
from config.settings import MODE_TOKENS, get_settings
from src.ingest.datasets import AccessibilityDataProvider
from src.ingest.travel_matrix import find_matrix_file, locate, render_source
from src.processing.accessibility_query import ORIGIN_COLUMN, quote_identifier
from src.utils.errors import IndicatorNotFound
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

GEO_COLUMN = "geo_code"
INDICATOR_EXTENSIONS = {".csv", ".parquet"}

OriginSpec = Union[str, Sequence[str], None]


def _as_list(from_ids: OriginSpec) -> List[str]:
    if from_ids is None:
        return []
    if isinstance(from_ids, str):
        return [from_ids]
    return [str(code) for code in from_ids]


def _mode_token(mode: str) -> str:
    try:
        return MODE_TOKENS[mode]
    except KeyError:
        raise ValueError(
            f"Mode requested not available: {mode!r}. It should be one of {sorted(MODE_TOKENS)}"
        ) from None


def find_indicator_file(data_dir: Union[str, Path], service: str, mode: str) -> Path:
    """
    Pick the indicator file whose path mentions both the mode and the service.

    Raises:
        ValueError: Unknown mode
        IndicatorNotFound: No file matches
    """
    token = _mode_token(mode)
    data_dir = Path(data_dir)
    candidates = sorted(
        p for p in data_dir.rglob("*")
        if p.is_file()
        and p.suffix.lower() in INDICATOR_EXTENSIONS
        and token in p.relative_to(data_dir).as_posix()
        and service in p.relative_to(data_dir).as_posix()
        and settings.PTAI_TTM_PATTERN not in p.name
    )
    if not candidates:
        raise IndicatorNotFound(
            f"No indicator for service '{service}' and mode '{mode}'. "
            "Choose from the modes and services available."
        )
    if len(candidates) > 1:
        logger.warning(f"{len(candidates)} files match '{service}'/'{mode}', using {candidates[0]}")
    return candidates[0]


def _filtered_query(source_sql: str, column: str, codes: List[str]) -> str:
    sql = f"SELECT * FROM {source_sql}"
    if codes:
        placeholders = ", ".join("?" for _ in codes)
        sql += f" WHERE {quote_identifier(column)} IN ({placeholders})"
    return sql


def get_accessibility(
    from_ids: OriginSpec = None,
    service: str = "employment",
    mode: str = "public_transport",
    provider: Optional[AccessibilityDataProvider] = None,
    engine_factory: Optional[Callable] = None,
) -> pd.DataFrame:
    """
    Load a published accessibility indicator.

    Args:
        from_ids: Origin LSOA/DZ code(s); None returns every origin
        service: Service name, e.g. "employment", "supermarket", "school"
        mode: "public_transport" or "car"

    Returns:
        DataFrame with ``geo_code`` columns kept as read and every other
        column coerced to numeric
    """
    # Fail on a bad mode before any download
    _mode_token(mode)
    data_dir = (provider or AccessibilityDataProvider()).ensure_available()
    access_file = find_indicator_file(data_dir, service, mode)
    logger.info(f"Reading {service} indicator ({mode}) from {access_file}")

    codes = _as_list(from_ids)
    source = locate(access_file)
    sql = _filtered_query(render_source(source), GEO_COLUMN, codes)

    engine = (engine_factory or DuckDBEngine)()
    try:
        indices = engine.execute(sql, codes or None)
    finally:
        engine.close()

    non_geo = [c for c in indices.columns if not str(c).startswith("geo")]
    for col in non_geo:
        indices[col] = pd.to_numeric(indices[col], errors="coerce")

    return indices


def travel_time(
    from_ids: OriginSpec = None,
    provider: Optional[AccessibilityDataProvider] = None,
    engine_factory: Optional[Callable] = None,
) -> pd.DataFrame:
    """
    Public transport travel times from the given origins to every destination.

    Args:
        from_ids: Origin LSOA/DZ code(s); None returns the whole matrix

    Returns:
        DataFrame of matrix rows
    """
    data_dir = (provider or AccessibilityDataProvider()).ensure_available()
    ttm_path = find_matrix_file(data_dir, settings.PTAI_TTM_PATTERN)

    codes = _as_list(from_ids)
    sql = _filtered_query(render_source(locate(ttm_path)), ORIGIN_COLUMN, codes)

    engine = (engine_factory or DuckDBEngine)()
    try:
        return engine.execute(sql, codes or None)
    finally:
        engine.close()
