"""
Boundary Probe Module

This module discovers the minimum, maximum and (optionally) row count of an
integer partition column with a single query:

    SELECT MIN(col) AS min, MAX(col) AS max, COUNT(col) AS count FROM table
    SELECT MIN(col) AS min, MAX(col) AS max FROM table

The count is only requested when no explicit partition count was asked for,
because only batch-size driven planning needs it.

Probe outcomes are returned as a ProbeResult (boundaries or a typed error)
rather than raised, so the planner can match on both outcomes explicitly.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import logging

from partition_planner.utils import validate_sql_identifier, validate_table_ref

logger = logging.getLogger(__name__)

NO_BOUNDARIES_MESSAGE = "Min, max and count value could not be retrieved"


class ProbeError(Exception):
    """Boundary discovery failed; wraps the underlying cause when there is one."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ProbeConnectivityError(ProbeError):
    """The driver could not be loaded or the connection could not be established."""


class ProbeQueryError(ProbeError):
    """The boundary query was rejected by the database or returned no row."""


@dataclass(frozen=True)
class Boundaries:
    """Probed boundaries of a partition column. count is 0 when it was not requested."""

    min: int
    max: int
    count: int = 0


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a boundary probe: exactly one of boundaries or error is set."""

    boundaries: Optional[Boundaries] = None
    error: Optional[ProbeError] = None

    def __post_init__(self):
        if (self.boundaries is None) == (self.error is None):
            raise ValueError("ProbeResult needs exactly one of boundaries or error")

    @classmethod
    def success(cls, boundaries: Boundaries) -> "ProbeResult":
        return cls(boundaries=boundaries)

    @classmethod
    def failure(cls, error: ProbeError) -> "ProbeResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.boundaries is not None


ProberFn = Callable[[int], ProbeResult]


def build_boundary_query(table: str, partition_column: str, requested_partitions: int = 0) -> str:
    """
    Build the boundary query for a table and partition column.

    Args:
        table: Table reference ('table' or 'schema.table')
        partition_column: Integer column to partition on
        requested_partitions: Explicit partition count, 0 when not specified

    Returns:
        SQL text requesting min and max, plus count when requested_partitions is 0

    Raises:
        ValueError: If an identifier is invalid or requested_partitions is negative
    """
    table = validate_table_ref(table)
    col = validate_sql_identifier(partition_column, "partition column")

    if requested_partitions < 0:
        raise ValueError(
            f"Invalid requested_partitions: must be >= 0 (got {requested_partitions})"
        )

    if requested_partitions == 0:
        return f"SELECT MIN({col}) AS min, MAX({col}) AS max, COUNT({col}) AS count FROM {table}"
    return f"SELECT MIN({col}) AS min, MAX({col}) AS max FROM {table}"


def _as_int(value: Any) -> int:
    # MIN/MAX of an empty table come back as NULL; read them as 0
    if value is None:
        return 0
    return int(value)


def _row_to_boundaries(columns: Dict[str, Any], with_count: bool) -> Boundaries:
    try:
        return Boundaries(
            min=_as_int(columns['min']),
            max=_as_int(columns['max']),
            count=_as_int(columns['count']) if with_count else 0,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ProbeQueryError(f"{NO_BOUNDARIES_MESSAGE}: {e}", cause=e) from e


class BoundaryProber:
    """
    Run boundary probes against a source database.

    The connection factory must provide ensure_driver() and a connection()
    context manager yielding a DB-API connection (see
    partition_planner.connections.SourceConnectionFactory). Each probe opens
    its own connection and releases it before returning; nothing is cached
    between probes.
    """

    def __init__(self, connection_factory):
        self.connection_factory = connection_factory

    def fetch_boundaries(self, table: str, partition_column: str,
                         requested_partitions: int = 0) -> Boundaries:
        """
        Query the boundaries of a partition column.

        Raises:
            ProbeConnectivityError: If the driver cannot be loaded or the connection fails
            ProbeQueryError: If the query is invalid, rejected, or returns no row
        """
        try:
            query = build_boundary_query(table, partition_column, requested_partitions)
        except ValueError as e:
            raise ProbeQueryError(str(e), cause=e) from e

        self.connection_factory.ensure_driver()

        with self.connection_factory.connection() as conn:
            cursor = None
            try:
                cursor = conn.cursor()
                logger.debug(f"Boundary query: {query}")
                cursor.execute(query)
                row = cursor.fetchone()
                names = [d[0].lower() for d in (cursor.description or [])]
            except Exception as e:
                logger.error(f"Error executing boundary query: {e}")
                logger.error(f"Query: {query}")
                raise ProbeQueryError(f"Boundary query failed for {table}: {e}", cause=e) from e
            finally:
                if cursor is not None:
                    try:
                        cursor.close()
                    except Exception:
                        logger.debug("Could not close boundary query cursor", exc_info=True)

        if row is None:
            raise ProbeQueryError(NO_BOUNDARIES_MESSAGE)

        return _row_to_boundaries(dict(zip(names, row)), with_count=requested_partitions == 0)

    def probe(self, table: str, partition_column: str, requested_partitions: int = 0) -> ProbeResult:
        """
        Probe the boundaries of a partition column.

        Args:
            table: Table reference ('table' or 'schema.table')
            partition_column: Integer column to partition on
            requested_partitions: Explicit partition count, 0 when not specified

        Returns:
            ProbeResult with Boundaries on success or the ProbeError on failure
        """
        try:
            boundaries = self.fetch_boundaries(table, partition_column, requested_partitions)
        except ProbeError as e:
            return ProbeResult.failure(e)

        logger.info(
            f"Boundaries of {table}.{partition_column}: min={boundaries.min:,}, "
            f"max={boundaries.max:,}"
            + (f", count={boundaries.count:,}" if requested_partitions == 0 else "")
        )
        return ProbeResult.success(boundaries)

    def prober_for(self, table: str, partition_column: str) -> ProberFn:
        """Return a prober function bound to one table and column, taking requested_partitions."""
        def prober_fn(requested_partitions: int) -> ProbeResult:
            return self.probe(table, partition_column, requested_partitions)

        return prober_fn
