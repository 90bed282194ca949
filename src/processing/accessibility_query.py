"""
AccessGB - Accessibility Query Builder

Composes the DuckDB query behind both accessibility measures.

Measures:
- Cumulative opportunities: sum of destination weight reachable within each
  travel cost threshold, one column per (weight, threshold)
- Nearest opportunity: minimum travel cost to any destination with positive
  weight, one column per weight

Both measures share one skeleton: the matrix (alias ``a``) is left joined to
the registered weights table (alias ``b``) on ``a.to_id = b.id`` and grouped
by origin, plus any extra grouping columns of the matrix.

The builder first produces a list of AggregationTerm descriptors; all quoting
of identifiers, literals and paths happens in AccessibilityQuery.render.
"""

import math
import numbers
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Union

import pandas as pd

from src.ingest.travel_matrix import MatrixSource, render_source
from src.utils.errors import InvalidTimeCut, NoWeightColumns
from src.utils.logging import get_logger

logger = get_logger(__name__)

WEIGHTS_TABLE = "weights"
MATRIX_ALIAS = "a"
WEIGHTS_ALIAS = "b"
ID_COLUMN = "id"
ORIGIN_COLUMN = "from_id"
DESTINATION_COLUMN = "to_id"


class TermKind(str, Enum):
    CUMULATIVE = "cumulative"
    NEAREST = "nearest"


def quote_identifier(name: str) -> str:
    """Double-quote a SQL identifier, escaping embedded quotes."""
    return '"' + str(name).replace('"', '""') + '"'


def format_threshold(value) -> str:
    """
    Render a threshold as a SQL numeric literal.

    Integral values print without a decimal part so that aliases read
    ``access_jobs_30`` rather than ``access_jobs_30.0``.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidTimeCut(f"Time cut must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidTimeCut(f"Time cut must be finite, got {value!r}")
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass(frozen=True)
class AggregationTerm:
    """One aggregated output column."""
    kind: TermKind
    weight: str
    alias: str
    threshold: Optional[str] = None

    def render(self, travel_cost: str) -> str:
        cost = f"{MATRIX_ALIAS}.{quote_identifier(travel_cost)}"
        weight = f"{WEIGHTS_ALIAS}.{quote_identifier(self.weight)}"
        alias = quote_identifier(self.alias)

        if self.kind is TermKind.CUMULATIVE:
            # Destinations without a weights row add nothing
            return (
                f"SUM(CASE WHEN {cost} <= {self.threshold} "
                f"THEN COALESCE({weight}, 0) ELSE 0 END) AS {alias}"
            )
        return f"MIN(CASE WHEN {weight} > 0 THEN {cost} ELSE NULL END) AS {alias}"


@dataclass
class AccessibilityQuery:
    """Intermediate representation of an accessibility query."""
    source: MatrixSource
    travel_cost: str
    terms: List[AggregationTerm]
    extra_group: List[str] = field(default_factory=list)
    csv_null_string: Optional[str] = None

    @property
    def aliases(self) -> List[str]:
        return [term.alias for term in self.terms]

    @property
    def group_columns(self) -> List[str]:
        return [f"{MATRIX_ALIAS}.{quote_identifier(col)}" for col in self.extra_group]

    def render(self) -> str:
        origin = f"{MATRIX_ALIAS}.{quote_identifier(ORIGIN_COLUMN)}"
        groups = self.group_columns

        select_list = ", ".join([origin] + groups + [t.render(self.travel_cost) for t in self.terms])
        group_by = ", ".join([origin] + groups)
        order_by = ", ".join(groups + [origin])

        return (
            f"SELECT {select_list}\n"
            f"FROM {render_source(self.source, self.csv_null_string)} AS {MATRIX_ALIAS}\n"
            f"LEFT JOIN {quote_identifier(WEIGHTS_TABLE)} AS {WEIGHTS_ALIAS} "
            f"ON {MATRIX_ALIAS}.{quote_identifier(DESTINATION_COLUMN)} = "
            f"{WEIGHTS_ALIAS}.{quote_identifier(ID_COLUMN)}\n"
            f"GROUP BY {group_by}\n"
            f"ORDER BY {order_by};"
        )

    @property
    def sql(self) -> str:
        return self.render()

    def __str__(self) -> str:
        return self.render()


def weight_columns(weights: pd.DataFrame) -> List[str]:
    """Every column of a weights table except ``id``."""
    cols = [c for c in weights.columns if c != ID_COLUMN]
    if not cols:
        raise NoWeightColumns("Weights table has no weight columns besides 'id'")
    return cols


def _normalize_group(extra_group: Union[str, Sequence[str], None]) -> List[str]:
    if extra_group is None:
        return []
    if isinstance(extra_group, str):
        return [extra_group]
    return list(extra_group)


class AccessibilityQueryBuilder:
    """
    Builds AccessibilityQuery objects for the two accessibility measures.

    Args:
        csv_null_string: Token read as NULL in CSV matrices (default from settings)
    """

    def __init__(self, csv_null_string: Optional[str] = None):
        self.csv_null_string = csv_null_string

    def _check_weights(self, weight_cols: Sequence[str]) -> List[str]:
        cols = list(weight_cols)
        if not cols:
            raise NoWeightColumns("At least one weight column is required")
        return cols

    def cumulative_terms(
        self, weight_cols: Sequence[str], time_cuts: Sequence[float]
    ) -> List[AggregationTerm]:
        cuts = list(time_cuts) if time_cuts is not None else []
        if not cuts:
            raise InvalidTimeCut("Cumulative accessibility needs at least one time cut")
        rendered_cuts = [format_threshold(t) for t in cuts]

        return [
            AggregationTerm(
                kind=TermKind.CUMULATIVE,
                weight=weight,
                threshold=cut,
                alias=f"access_{weight}_{cut}",
            )
            for weight in self._check_weights(weight_cols)
            for cut in rendered_cuts
        ]

    def nearest_terms(self, weight_cols: Sequence[str]) -> List[AggregationTerm]:
        return [
            AggregationTerm(kind=TermKind.NEAREST, weight=weight, alias=f"nearest_{weight}")
            for weight in self._check_weights(weight_cols)
        ]

    def build_cumulative(
        self,
        source: MatrixSource,
        travel_cost_col: str,
        weight_cols: Sequence[str],
        time_cuts: Sequence[float],
        extra_group: Union[str, Sequence[str], None] = None,
    ) -> AccessibilityQuery:
        """
        Cumulative opportunities query.

        Terms are ordered weight by weight, each over time_cuts in the order
        given.
        """
        query = AccessibilityQuery(
            source=source,
            travel_cost=travel_cost_col,
            terms=self.cumulative_terms(weight_cols, time_cuts),
            extra_group=_normalize_group(extra_group),
            csv_null_string=self.csv_null_string,
        )
        logger.debug(f"Built cumulative query with {len(query.terms)} terms")
        return query

    def build_nearest(
        self,
        source: MatrixSource,
        travel_cost_col: str,
        weight_cols: Sequence[str],
        extra_group: Union[str, Sequence[str], None] = None,
    ) -> AccessibilityQuery:
        """Nearest opportunity query, one MIN term per weight column."""
        query = AccessibilityQuery(
            source=source,
            travel_cost=travel_cost_col,
            terms=self.nearest_terms(weight_cols),
            extra_group=_normalize_group(extra_group),
            csv_null_string=self.csv_null_string,
        )
        logger.debug(f"Built nearest opportunity query with {len(query.terms)} terms")
        return query
