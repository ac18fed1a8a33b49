"""
Partition Planning Configuration

Partition hints come from explicit arguments (DAG params, callers) and fall
back to environment variables:

- PARTITION_COUNT: explicit number of partitions (default 0, meaning unset)
- PARTITION_BATCH_SIZE: target rows per partition (default 50000)
- ODBC_DRIVER: ODBC driver used for SQL Server sources
  (default 'ODBC Driver 18 for SQL Server')

Environment values are read at call time so each plan sees current settings.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import os

DEFAULT_PARTITION_COUNT = 0
DEFAULT_BATCH_SIZE = 50000
DEFAULT_ODBC_DRIVER = 'ODBC Driver 18 for SQL Server'


def _read_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Invalid {name}={raw!r}: must be an integer") from None


def get_odbc_driver() -> str:
    return os.environ.get('ODBC_DRIVER', '').strip() or DEFAULT_ODBC_DRIVER


@dataclass(frozen=True)
class PartitionHints:
    """
    Caller-supplied partitioning hints.

    requested_partitions > 0 takes precedence over batch_size when both are set.
    A value of 0 means "not specified".
    """

    requested_partitions: int = DEFAULT_PARTITION_COUNT
    batch_size: int = DEFAULT_BATCH_SIZE

    def __post_init__(self):
        if self.requested_partitions < 0:
            raise ValueError(
                f"Invalid requested_partitions: must be >= 0 (got {self.requested_partitions})"
            )
        if self.batch_size < 0:
            raise ValueError(f"Invalid batch_size: must be >= 0 (got {self.batch_size})")


def get_partition_hints(
    requested_partitions: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> PartitionHints:
    """
    Build partition hints, filling unset values from the environment.

    Args:
        requested_partitions: Explicit partition count, or None to use PARTITION_COUNT
        batch_size: Target rows per partition, or None to use PARTITION_BATCH_SIZE

    Returns:
        PartitionHints instance

    Raises:
        ValueError: If an environment variable is not an integer or a hint is negative
    """
    if requested_partitions is None:
        requested_partitions = _read_int_env('PARTITION_COUNT', DEFAULT_PARTITION_COUNT)
    if batch_size is None:
        batch_size = _read_int_env('PARTITION_BATCH_SIZE', DEFAULT_BATCH_SIZE)
    return PartitionHints(
        requested_partitions=int(requested_partitions),
        batch_size=int(batch_size),
    )


@dataclass(frozen=True)
class PartitionRequest:
    """A request to plan the read of one table."""

    table: str
    partition_column: Optional[str] = None
    hints: PartitionHints = field(default_factory=PartitionHints)

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "PartitionRequest":
        """
        Build a request from DAG params.

        Expected keys: source_table, partition_column, num_partitions, batch_size.
        Missing or None hint values fall back to the environment.
        """
        hints = get_partition_hints(
            requested_partitions=params.get('num_partitions'),
            batch_size=params.get('batch_size'),
        )
        return cls(
            table=params['source_table'],
            partition_column=params.get('partition_column') or None,
            hints=hints,
        )
