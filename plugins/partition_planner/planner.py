"""
Partition Planner Module

This module turns probed boundaries and caller hints into a partition plan
for a parallel range read. Rules are checked in order and the first match wins:

1. No partition column        -> empty plan, no probe
2. Boundary probe failed      -> empty plan
3. requested_partitions > 0   -> requested_partitions over [min, max]
4. batch_size > 0             -> count // batch_size + 1 over [min, max]
5. Anything else              -> empty plan

An empty plan means "read the table with a single unpartitioned query".
Planning never fails the read: every probe failure degrades to the empty plan.

The +1 in rule 4 keeps every partition at or below the batch size at the
cost of one small extra partition when count divides evenly.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
import logging

from partition_planner.boundaries import BoundaryProber, ProbeError, ProbeResult, ProberFn
from partition_planner.config import PartitionRequest
from partition_planner.utils import validate_sql_identifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartitionPlan:
    """
    Partition parameters for a range read, or the empty plan.

    A populated plan always has num_partitions >= 1 and lower_bound <= upper_bound.
    """

    partition_column: Optional[str] = None
    lower_bound: Optional[int] = None
    upper_bound: Optional[int] = None
    num_partitions: Optional[int] = None

    def __post_init__(self):
        values = (self.lower_bound, self.upper_bound, self.num_partitions)
        if not self.partition_column:
            if any(v is not None for v in values):
                raise ValueError("Empty partition plan cannot carry bounds or a partition count")
            return
        if any(v is None for v in values):
            raise ValueError("Partition plan needs lower_bound, upper_bound and num_partitions")
        if self.num_partitions < 1:
            raise ValueError(f"Invalid num_partitions: must be >= 1 (got {self.num_partitions})")
        if self.lower_bound > self.upper_bound:
            raise ValueError(
                f"Invalid bounds: lower_bound ({self.lower_bound}) > upper_bound ({self.upper_bound})"
            )

    @classmethod
    def empty(cls) -> "PartitionPlan":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.partition_column

    def __bool__(self) -> bool:
        return not self.is_empty

    def as_properties(self) -> Dict[str, str]:
        """
        Return the plan as read properties for the transfer layer.

        Returns:
            {} for the empty plan, otherwise partitionColumn, lowerBound,
            upperBound and numPartitions as strings
        """
        if self.is_empty:
            return {}
        return {
            'partitionColumn': self.partition_column,
            'lowerBound': str(self.lower_bound),
            'upperBound': str(self.upper_bound),
            'numPartitions': str(self.num_partitions),
        }

    @classmethod
    def from_properties(cls, properties: Mapping[str, Any]) -> "PartitionPlan":
        """
        Rebuild a plan from as_properties() output (e.g. after an XCom round trip).

        Raises:
            ValueError: If partitionColumn is not a valid SQL identifier
        """
        if not properties or not properties.get('partitionColumn'):
            return cls.empty()
        return cls(
            partition_column=validate_sql_identifier(properties['partitionColumn'], "partition column"),
            lower_bound=int(properties['lowerBound']),
            upper_bound=int(properties['upperBound']),
            num_partitions=int(properties['numPartitions']),
        )


EMPTY_PLAN = PartitionPlan.empty()


def partitions_for_batch_size(count: int, batch_size: int) -> int:
    """
    Number of partitions needed to keep each partition at or below batch_size rows.

    Examples:
        >>> partitions_for_batch_size(100000, 50000)
        3
        >>> partitions_for_batch_size(0, 50000)
        1
    """
    return count // batch_size + 1


def _run_prober(prober_fn: ProberFn, requested_partitions: int) -> ProbeResult:
    try:
        return prober_fn(requested_partitions)
    except ProbeError as e:
        return ProbeResult.failure(e)
    except Exception as e:
        # Prober functions should return failures, but a raising one must not abort the read
        return ProbeResult.failure(ProbeError(f"Boundary probe raised: {e}", cause=e))


def plan_partitions(
    partition_column: Optional[str],
    requested_partitions: int,
    batch_size: int,
    prober_fn: ProberFn,
) -> PartitionPlan:
    """
    Derive the partition plan for a read.

    Args:
        partition_column: Integer column to partition on, or None/'' to disable partitioning
        requested_partitions: Explicit partition count, 0 when not specified
        batch_size: Target rows per partition, 0 when not specified
        prober_fn: Called with requested_partitions, returns a ProbeResult

    Returns:
        PartitionPlan, empty when partitioning is disabled or not possible
    """
    if not partition_column:
        logger.debug("No partition column given, planning an unpartitioned read")
        return EMPTY_PLAN

    result = _run_prober(prober_fn, requested_partitions)

    if not result.ok:
        logger.warning(
            f"Could not retrieve boundaries for partition column '{partition_column}', "
            f"reading without partitioning: {result.error}"
        )
        return EMPTY_PLAN

    boundaries = result.boundaries
    if boundaries.min > boundaries.max:
        logger.warning(
            f"Invalid range for '{partition_column}': min ({boundaries.min}) > "
            f"max ({boundaries.max}), reading without partitioning"
        )
        return EMPTY_PLAN

    if requested_partitions > 0:
        num_partitions = requested_partitions
    elif batch_size > 0:
        num_partitions = partitions_for_batch_size(boundaries.count, batch_size)
    else:
        logger.info(
            f"Neither a partition count nor a batch size is set for '{partition_column}', "
            f"reading without partitioning"
        )
        return EMPTY_PLAN

    plan = PartitionPlan(
        partition_column=partition_column,
        lower_bound=boundaries.min,
        upper_bound=boundaries.max,
        num_partitions=num_partitions,
    )
    logger.info(
        f"Partition plan for '{partition_column}': {num_partitions} partitions "
        f"over [{boundaries.min:,}, {boundaries.max:,}]"
    )
    return plan


class PartitionPlanner:
    """Plan reads for tables of one source through a BoundaryProber."""

    def __init__(self, prober: BoundaryProber):
        self.prober = prober

    def plan(self, request: PartitionRequest) -> PartitionPlan:
        """
        Plan the read described by a PartitionRequest.

        The table is only probed when a partition column is given.
        """
        logger.info(f"Planning partitions for {request.table} ({request.hints})")
        return plan_partitions(
            partition_column=request.partition_column,
            requested_partitions=request.hints.requested_partitions,
            batch_size=request.hints.batch_size,
            prober_fn=self.prober.prober_for(request.table, request.partition_column or ''),
        )


@dataclass(frozen=True)
class PartitionRange:
    """
    One sub-range of a partitioned read.

    lower is inclusive, upper is exclusive; None means unbounded on that side.
    predicate is the WHERE clause for the range, None for a single full read.
    """

    index: int
    lower: Optional[int]
    upper: Optional[int]
    predicate: Optional[str]


def split_ranges(plan: PartitionPlan) -> List[PartitionRange]:
    """
    Split a plan's [lower_bound, upper_bound] into num_partitions range predicates.

    Ranges are strided evenly over the value span. The first range is open
    below and also picks up NULLs, the last range is open above, so rows
    outside the probed bounds are still read. When the span is narrower than
    the requested partition count, the count is reduced.

    Returns:
        List of PartitionRange, [] for the empty plan
    """
    if plan.is_empty:
        return []

    col = plan.partition_column
    lower, upper = plan.lower_bound, plan.upper_bound
    span = upper - lower
    num_parts = min(plan.num_partitions, max(1, span))

    if num_parts < plan.num_partitions:
        logger.warning(
            f"Reduced partitions from {plan.num_partitions} to {num_parts} "
            f"due to small range ({lower}-{upper})"
        )

    if num_parts == 1:
        return [PartitionRange(index=0, lower=None, upper=None, predicate=None)]

    stride = span // num_parts
    ranges = []
    current = lower
    for i in range(num_parts):
        start = current if i > 0 else None
        current += stride
        end = current if i < num_parts - 1 else None

        if start is None:
            predicate = f"{col} < {end} OR {col} IS NULL"
        elif end is None:
            predicate = f"{col} >= {start}"
        else:
            predicate = f"{col} >= {start} AND {col} < {end}"

        ranges.append(PartitionRange(index=i, lower=start, upper=end, predicate=predicate))

    logger.info(
        f"Generated {len(ranges)} range partitions on '{col}' ({lower}-{upper}, stride={stride})"
    )
    return ranges
