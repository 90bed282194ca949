"""
AccessGB - Query Executor

Runs an accessibility query against a fresh analytical engine connection.

Each run opens one connection, registers the weights table (replacing any
table of the same name), executes the query, collects the full result and
closes the connection, whether or not the query succeeded. Failures are not
retried: the same query against the same matrix fails the same way.
"""

from typing import Callable, Optional, Union

import duckdb
import pandas as pd

from config.database import DuckDBEngine
from src.processing.accessibility_query import WEIGHTS_TABLE, AccessibilityQuery
from src.utils.errors import QueryExecutionFailed
from src.utils.logging import get_logger

logger = get_logger(__name__)


class QueryExecutor:
    """
    Execute accessibility queries with a scoped engine connection.

    Args:
        engine_factory: Callable returning an object with register_table,
            execute and close (default: DuckDBEngine)
    """

    def __init__(self, engine_factory: Optional[Callable[[], DuckDBEngine]] = None):
        self.engine_factory = engine_factory or DuckDBEngine

    def run(self, weights: pd.DataFrame, query: Union[AccessibilityQuery, str]) -> pd.DataFrame:
        """
        Register weights, run the query and return its result.

        Args:
            weights: Weights table keyed by ``id``
            query: AccessibilityQuery or raw SQL referencing ``weights``

        Returns:
            DataFrame with the full result set

        Raises:
            QueryExecutionFailed: If the engine rejects the query
        """
        sql = query.render() if isinstance(query, AccessibilityQuery) else str(query)

        engine = None
        try:
            engine = self.engine_factory()
            engine.register_table(WEIGHTS_TABLE, weights)
            logger.info(f"Running accessibility query ({len(weights)} destination weights)")
            logger.debug(sql)

            result = engine.execute(sql)

        except duckdb.Error as e:
            logger.error(f"Accessibility query failed: {e}")
            raise QueryExecutionFailed(str(e), sql=sql) from e

        finally:
            if engine is not None:
                engine.close()

        logger.info(f"Accessibility query returned {len(result)} rows")
        return result
