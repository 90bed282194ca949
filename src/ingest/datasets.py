"""
AccessGB - Dataset Providers

Cache-or-refresh access to the two external datasets:

- Accessibility indicators for GB (Zenodo record 8037156), which includes
  the public transport travel time matrix (PTAI 2021)
- 2011 LSOA / Data Zone boundaries from the UK Data Service (InFuse)

Each provider exposes ``ensure_available(force_update) -> Path``: it returns
the cached directory when present and downloads, extracts and prepares the
data otherwise.
"""

import shutil
from pathlib import Path
from typing import List, Optional, Tuple, Union

from config.settings import PTAI_TTM_HEADER, get_settings
from src.utils.csv_header import rewrite_header
from src.utils.data_sources import download_first_available, extract_zip
from src.utils.errors import DatasetUnavailable
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

UKDS_NOTICE = "This dataset uses UK Data Service data. Please read the Terms and Conditions file"


class ZipDatasetProvider:
    """
    Base class for datasets published as a single zip archive.

    Subclasses set ``name`` and implement ``sources``; they may override
    ``is_cached`` and ``prepare``.
    """

    name = "dataset"

    def __init__(self, data_dir: Union[str, Path, None] = None, quiet: bool = False):
        self.data_dir = Path(data_dir or settings.DATA_DIR)
        self.quiet = quiet

    @property
    def dataset_dir(self) -> Path:
        return self.data_dir / self.name

    def sources(self) -> List[Tuple[str, Optional[str]]]:
        raise NotImplementedError

    def is_cached(self) -> bool:
        return self.dataset_dir.is_dir() and any(self.dataset_dir.iterdir())

    def prepare(self, dataset_dir: Path) -> None:
        """Hook run once after a fresh extraction."""

    def _info(self, message: str) -> None:
        if not self.quiet:
            logger.info(message)

    def ensure_available(self, force_update: bool = False) -> Path:
        """
        Return the dataset directory, downloading it first if needed.

        Args:
            force_update: Re-download even when a cached copy exists

        Raises:
            DatasetUnavailable: If no source could be downloaded
        """
        if self.is_cached() and not force_update:
            self._info(f"Using cached {self.name} data in {self.dataset_dir}")
            return self.dataset_dir

        self.data_dir.mkdir(parents=True, exist_ok=True)
        zip_path = self.data_dir / f"{self.name}.zip"

        used = download_first_available(self.sources(), zip_path)
        if used is None:
            raise DatasetUnavailable(f"Failed to download {self.name} from every source")

        if self.dataset_dir.exists():
            shutil.rmtree(self.dataset_dir)
        extract_zip(zip_path, self.dataset_dir, remove=True)

        self.prepare(self.dataset_dir)
        self._info(f"{self.name} ready in {self.dataset_dir} (source: {used})")
        return self.dataset_dir


class AccessibilityDataProvider(ZipDatasetProvider):
    """Accessibility indicators and PTAI travel time matrix for Great Britain."""

    name = "accessibility_indicators_gb"

    def sources(self) -> List[Tuple[str, Optional[str]]]:
        return [
            ("Zenodo", settings.ACCESSIBILITY_DATA_URL),
            ("fallback mirror", settings.ACCESSIBILITY_FALLBACK_URL),
        ]

    def prepare(self, dataset_dir: Path) -> None:
        # The published matrix uses different column names than the queries
        for ttm_path in sorted(dataset_dir.rglob(f"*{settings.PTAI_TTM_PATTERN}*.csv")):
            rewrite_header(ttm_path, PTAI_TTM_HEADER)


class LsoaGeometryProvider(ZipDatasetProvider):
    """2011 LSOA (England and Wales) and Data Zone (Scotland) boundaries."""

    name = "lsoa_geoms"

    def sources(self) -> List[Tuple[str, Optional[str]]]:
        return [("UK Data Service", settings.LSOA_GEOMS_URL)]

    def is_cached(self) -> bool:
        return self.dataset_dir.is_dir() and any(self.dataset_dir.rglob("*.shp"))

    def prepare(self, dataset_dir: Path) -> None:
        self._info(UKDS_NOTICE)
