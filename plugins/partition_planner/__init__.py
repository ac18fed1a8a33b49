"""
Partitioned Read Planning Utilities

This package computes partition plans for bulk extraction from a relational
source so a large table can be read as independent range queries in parallel.

Modules:
- boundaries: Probe MIN/MAX/COUNT of an integer partition column
- planner: Derive the partition plan and split it into range predicates
- connections: Resolve Airflow connections and open dedicated probe connections
- config: Partition hints from params and environment variables
- utils: SQL identifier validation

Configuration Options:
- PARTITION_COUNT=N: Explicit number of partitions (0 = derive from batch size)
- PARTITION_BATCH_SIZE=N: Target rows per partition (default 50000)
- ODBC_DRIVER=name: ODBC driver for SQL Server sources
"""

__version__ = "1.0.0"

from partition_planner import utils
from partition_planner import config
from partition_planner import boundaries
from partition_planner import planner
from partition_planner import connections

__all__ = [
    "utils",
    "config",
    "boundaries",
    "planner",
    "connections",
]
