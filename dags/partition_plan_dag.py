"""
Partition Plan DAG

This DAG computes the partition plan for a bulk read of one source table.
It handles:
1. Resolving the source connection once from Airflow
2. Probing MIN/MAX (and COUNT when no partition count is given) of the partition column
3. Deriving the partition count from num_partitions or batch_size
4. Splitting the plan into range predicates for parallel readers

When no partition column is given, or the boundary probe fails, the plan is
empty and downstream readers should perform a single unpartitioned read.
The transfer itself is left to the consuming DAG.
"""

from airflow.sdk import dag, task
from airflow.models.param import Param
from pendulum import datetime
from typing import List, Dict, Any
import logging

from partition_planner.boundaries import BoundaryProber
from partition_planner.config import PartitionRequest
from partition_planner.connections import SourceConnectionFactory
from partition_planner.planner import PartitionPlan, PartitionPlanner, split_ranges

logger = logging.getLogger(__name__)


@dag(
    start_date=datetime(2025, 1, 1),
    schedule=None,  # Run manually or trigger via API
    catchup=False,
    is_paused_upon_creation=False,
    doc_md=__doc__,
    default_args={
        "owner": "data-team",
        # Planning degrades to an unpartitioned read instead of failing, no retries needed
        "retries": 0,
    },
    params={
        "source_conn_id": Param(
            default="mssql_source",
            type="string",
            description="Source database connection ID (mssql, odbc or postgres)"
        ),
        "source_table": Param(
            default="dbo.orders",
            type="string",
            description="Table to read, as 'table' or 'schema.table'"
        ),
        "partition_column": Param(
            default="",
            type="string",
            description="Integer column to partition on (empty = no partitioning)"
        ),
        "num_partitions": Param(
            default=None,
            type=["null", "integer"],
            minimum=0,
            description="Explicit number of partitions (0 = derive from batch_size, empty = PARTITION_COUNT)"
        ),
        "batch_size": Param(
            default=None,
            type=["null", "integer"],
            minimum=0,
            description="Target number of rows per partition (empty = PARTITION_BATCH_SIZE)"
        ),
    },
    tags=["partitioning", "extract", "planning"],
)
def partition_plan():
    """
    DAG computing a partition plan for a source table.
    """

    @task
    def plan_partitions(**context) -> Dict[str, str]:
        """
        Compute the partition plan for the requested table.

        Returns:
            Plan properties (partitionColumn, lowerBound, upperBound, numPartitions),
            or an empty dict for an unpartitioned read
        """
        params = context["params"]
        request = PartitionRequest.from_params(params)

        factory = SourceConnectionFactory.from_airflow(params["source_conn_id"])
        planner = PartitionPlanner(BoundaryProber(factory))
        plan = planner.plan(request)

        if plan:
            logger.info(f"✓ {request.table}: {plan.num_partitions} partitions on {plan.partition_column}")
        else:
            logger.info(f"{request.table}: unpartitioned read")

        return plan.as_properties()

    @task
    def materialize_ranges(plan_properties: Dict[str, str], **context) -> List[Dict[str, Any]]:
        """
        Split the plan into range predicates for parallel readers.

        Args:
            plan_properties: Output of plan_partitions

        Returns:
            One dict per range with index, lower, upper and where_clause
        """
        params = context["params"]
        plan = PartitionPlan.from_properties(plan_properties)

        ranges = [
            {
                "table_name": params["source_table"],
                "partition_index": r.index,
                "lower": r.lower,
                "upper": r.upper,
                "where_clause": r.predicate,
            }
            for r in split_ranges(plan)
        ]

        if not ranges:
            # A single unpartitioned read
            ranges.append({
                "table_name": params["source_table"],
                "partition_index": 0,
                "lower": None,
                "upper": None,
                "where_clause": None,
            })

        logger.info(f"Prepared {len(ranges)} read ranges for {params['source_table']}")
        return ranges

    materialize_ranges(plan_partitions())


# Instantiate the DAG
partition_plan()
