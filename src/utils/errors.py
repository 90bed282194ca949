"""Exception hierarchy shared by the accessibility pipeline."""


class AccessibilityError(Exception):
    """Base exception for accessibility computation errors"""
    pass


class InvalidGeometryType(AccessibilityError, ValueError):
    """Raised when destinations are not a single-type point layer"""
    pass


class MissingCrs(AccessibilityError, ValueError):
    """Raised when a point layer carries no coordinate reference system"""
    pass


class InvalidWeightsTable(AccessibilityError, ValueError):
    """Raised when pre-aggregated weights lack an id or numeric weight column"""
    pass


class NoWeightColumns(AccessibilityError, ValueError):
    """Raised when a weights table has nothing besides the id column"""
    pass


class InvalidTimeCut(AccessibilityError, ValueError):
    """Raised when cumulative thresholds are empty or not finite numbers"""
    pass


class NoMatrixFilesFound(AccessibilityError, FileNotFoundError):
    """Raised when a travel matrix path holds no CSV or Parquet files"""
    pass


class HeaderTooLong(AccessibilityError, ValueError):
    """Raised when an in-place header rewrite would grow the first line"""
    pass


class QueryExecutionFailed(AccessibilityError, RuntimeError):
    """Raised when the analytical engine rejects a composed query"""

    def __init__(self, message: str, sql: str = ""):
        super().__init__(message)
        self.engine_message = message
        self.sql = sql


class DatasetUnavailable(AccessibilityError, RuntimeError):
    """Raised when no download source for a dataset could be reached"""
    pass


class IndicatorNotFound(AccessibilityError, FileNotFoundError):
    """Raised when a published accessibility indicator file does not exist"""
    pass
