"""
AccessGB - Analytical Engine Connection Management
DuckDB configuration for out-of-core queries over travel time matrices
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional

import duckdb
import pandas as pd

from config.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def _engine_config() -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    if settings.DUCKDB_THREADS:
        config["threads"] = settings.DUCKDB_THREADS
    if settings.DUCKDB_MEMORY_LIMIT:
        config["memory_limit"] = settings.DUCKDB_MEMORY_LIMIT
    return config


class DuckDBEngine:
    """
    Thin wrapper over a DuckDB connection.

    One instance is one connection. Tables registered on it are local to the
    connection and disappear when it is closed.

    Usage:
        engine = DuckDBEngine()
        try:
            engine.register_table("weights", weights_df)
            result = engine.execute("SELECT * FROM weights")
        finally:
            engine.close()
    """

    def __init__(self, database: str = ":memory:", config: Optional[Dict[str, Any]] = None):
        self.database = database
        self._conn: Optional[duckdb.DuckDBPyConnection] = duckdb.connect(
            database, config=config if config is not None else _engine_config()
        )
        logger.debug(f"DuckDB connection opened ({database})")

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DuckDB connection is closed")
        return self._conn

    def register_table(self, name: str, rows: pd.DataFrame) -> None:
        """Expose a DataFrame as a table, replacing any earlier one with that name."""
        self.connection.register(name, rows)
        logger.debug(f"Registered table '{name}' ({len(rows)} rows)")

    def execute(self, sql: str, parameters: Optional[List[Any]] = None) -> pd.DataFrame:
        """Run a query and return the complete result as a DataFrame."""
        if parameters:
            return self.connection.execute(sql, parameters).df()
        return self.connection.execute(sql).df()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("DuckDB connection closed")

    def __enter__(self) -> "DuckDBEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@contextmanager
def get_engine() -> Generator[DuckDBEngine, None, None]:
    """
    Context manager for engine connections.

    Usage:
        with get_engine() as engine:
            engine.execute(...)
    """
    engine = DuckDBEngine()
    try:
        yield engine
    except Exception as e:
        logger.error(f"Engine error: {e}")
        raise
    finally:
        engine.close()


def test_connection() -> bool:
    """
    Check that DuckDB can be opened and answers a trivial query.

    Returns:
        bool: True if the engine works, False otherwise
    """
    try:
        with get_engine() as engine:
            result = engine.execute("SELECT 1 AS ok")
            assert int(result["ok"].iloc[0]) == 1
            logger.info(f"DuckDB {duckdb.__version__} available")
            return True

    except Exception as e:
        logger.error(f"Engine check failed: {e}")
        return False
