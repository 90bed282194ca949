"""
AccessGB - Travel Matrix Locator

Resolves a user supplied travel time matrix path (a single file or a
directory of shards, CSV or Parquet) into a MatrixSource that the query
builder can render as a DuckDB table expression.

A directory is read as one logical relation through a glob. Only one format
is used per directory: Parquet wins when both are present.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from config.settings import get_settings
from src.utils.errors import NoMatrixFilesFound
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


class MatrixFormat(str, Enum):
    """Physical format of matrix shards."""
    PARQUET = "parquet"
    CSV = "csv"

    @property
    def extension(self) -> str:
        return f".{self.value}"


# Order matters: columnar first
FORMAT_PREFERENCE = [MatrixFormat.PARQUET, MatrixFormat.CSV]


def quote_literal(value: str) -> str:
    """Render a value as a single-quoted SQL string literal."""
    return "'" + str(value).replace("'", "''") + "'"


@dataclass(frozen=True)
class SingleFile:
    """A matrix stored in one file."""
    path: Path
    format: MatrixFormat

    @property
    def location(self) -> str:
        return self.path.as_posix()


@dataclass(frozen=True)
class Directory:
    """A matrix split over same-format files below a directory."""
    path: Path
    format: MatrixFormat
    recursive: bool = False

    @property
    def location(self) -> str:
        pattern = f"*{self.format.extension}"
        if self.recursive:
            pattern = f"**/{pattern}"
        return (self.path / pattern).as_posix()


MatrixSource = Union[SingleFile, Directory]


def source_expression(source: MatrixSource) -> str:
    """Quoted file or glob literal, usable directly after FROM."""
    return quote_literal(source.location)


def render_source(source: MatrixSource, csv_null_string: Optional[str] = None) -> str:
    """
    Render the table expression used in FROM.

    CSV sources are wrapped in an explicit read_csv call so that header
    detection, type sniffing and the matrix's null token apply to every
    shard a glob expands to.
    """
    literal = source_expression(source)
    if source.format is MatrixFormat.CSV:
        null_token = settings.CSV_NULL_STRING if csv_null_string is None else csv_null_string
        return (
            f"read_csv({literal}, header=true, auto_detect=true, "
            f"nullstr={quote_literal(null_token)})"
        )
    return literal


def _format_of(path: Path) -> Optional[MatrixFormat]:
    suffix = path.suffix.lower()
    for fmt in FORMAT_PREFERENCE:
        if suffix == fmt.extension:
            return fmt
    return None


def _list_files(directory: Path) -> List[Path]:
    return [p for p in directory.rglob("*") if p.is_file()]


def locate(travel_matrix: Union[str, Path]) -> MatrixSource:
    """
    Decide once how a travel matrix path is read.

    Args:
        travel_matrix: File ending in .parquet/.csv, or a directory of them

    Returns:
        SingleFile or Directory source

    Raises:
        NoMatrixFilesFound: If nothing readable is found at the path
    """
    path = Path(travel_matrix)

    fmt = _format_of(path)
    if fmt is not None and path.is_file():
        logger.debug(f"Travel matrix is a single {fmt.value} file: {path}")
        return SingleFile(path=path, format=fmt)

    if not path.is_dir():
        raise NoMatrixFilesFound(f"No parquet or csv travel matrix found at {path}")

    files = _list_files(path)
    for fmt in FORMAT_PREFERENCE:
        matches = [f for f in files if _format_of(f) is fmt]
        if not matches:
            continue

        # A top-level glob misses every shard below the top level
        nested = any(f.parent != path for f in matches)
        source = Directory(path=path, format=fmt, recursive=nested)
        logger.info(f"Travel matrix directory {path}: {len(matches)} {fmt.value} file(s)")
        return source

    raise NoMatrixFilesFound(f"No parquet or csv files found in the specified directory: {path}")


def resolve(travel_matrix: Union[str, Path]) -> str:
    """Resolve a matrix path straight to its quoted source expression."""
    return source_expression(locate(travel_matrix))


def find_matrix_file(data_dir: Union[str, Path], pattern: Optional[str] = None) -> Path:
    """
    Find a matrix file by name fragment below a dataset directory.

    Used to pick the PTAI public transport matrix (``ttm_pt``) out of the
    downloaded accessibility dataset.
    """
    pattern = pattern or settings.PTAI_TTM_PATTERN
    candidates = sorted(
        p for p in Path(data_dir).rglob("*")
        if p.is_file() and pattern in p.name and _format_of(p) is not None
    )
    if not candidates:
        raise NoMatrixFilesFound(f"No travel matrix matching '{pattern}' below {data_dir}")
    if len(candidates) > 1:
        logger.warning(f"Several matrices match '{pattern}', using {candidates[0]}")
    return candidates[0]
