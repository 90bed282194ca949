"""
AccessGB - Application Settings
Manages environment variables and configuration using Pydantic
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional
import os


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Nothing is required; every value has a working default.

    Optional:
        - ACCESSIBILITY_FALLBACK_URL (mirror used when Zenodo fails)
        - DUCKDB_THREADS / DUCKDB_MEMORY_LIMIT (engine tuning)
    """

    # Application
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    # File storage
    DATA_DIR: str = "data"
    EXPORT_DIR: str = "exports"
    LOG_DIR: str = "logs"

    # Data sources
    ACCESSIBILITY_DATA_URL: str = (
        "https://zenodo.org/record/8037156/files/accessibility_indicators_gb.zip?download=1"
    )
    ACCESSIBILITY_FALLBACK_URL: Optional[str] = None
    LSOA_GEOMS_URL: str = (
        "https://borders.ukdataservice.ac.uk/ukborders/easy_download/prebuilt/shape/"
        "infuse_lsoa_lyr_2011_clipped.zip"
    )

    # Download behaviour (per attempt)
    DOWNLOAD_TIMEOUT: int = 3600  # seconds
    DOWNLOAD_LOW_SPEED_LIMIT_MB: float = 5.0  # MB/s
    DOWNLOAD_LOW_SPEED_TIME: int = 120  # seconds below limit before abort
    DOWNLOAD_MAX_ATTEMPTS: int = 2

    # Spatial reference of the LSOA/DZ boundaries (British National Grid)
    TARGET_CRS: str = "EPSG:27700"

    # Travel time matrix conventions
    CSV_NULL_STRING: str = "NA"
    DEFAULT_TRAVEL_COST: str = "travel_time_p50"
    PTAI_TTM_PATTERN: str = "ttm_pt"

    # Analytical engine
    DUCKDB_THREADS: Optional[int] = None
    DUCKDB_MEMORY_LIMIT: Optional[str] = None  # e.g. "4GB"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.LOG_DIR:
            os.makedirs(self.LOG_DIR, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """
    Returns cached settings instance.
    Uses lru_cache to avoid re-reading .env on every call.
    """
    return Settings()


# Column names written over the PTAI travel time matrix header after download
PTAI_TTM_HEADER = [
    "from_id",
    "to_id",
    "travel_time_p25",
    "travel_time_p50",
    "travel_time_p75",
]

# Transport mode tokens used in published indicator file names
MODE_TOKENS = {
    "public_transport": "pt",
    "car": "car",
}
