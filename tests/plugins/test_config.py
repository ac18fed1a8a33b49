"""
Tests for Partition Planning Configuration and Identifier Validation
"""

import pytest

from partition_planner.config import (
    DEFAULT_BATCH_SIZE,
    PartitionHints,
    PartitionRequest,
    get_partition_hints,
)
from partition_planner.utils import parse_table_ref, validate_sql_identifier, validate_table_ref


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv('PARTITION_COUNT', raising=False)
    monkeypatch.delenv('PARTITION_BATCH_SIZE', raising=False)


class TestPartitionHints:
    """Test partition hint construction."""

    def test_defaults(self):
        hints = PartitionHints()

        assert hints.requested_partitions == 0
        assert hints.batch_size == DEFAULT_BATCH_SIZE

    @pytest.mark.parametrize("requested,batch", [(-1, 0), (0, -5)])
    def test_negative_rejected(self, requested, batch):
        with pytest.raises(ValueError):
            PartitionHints(requested, batch)

    def test_environment_fallback(self, monkeypatch):
        monkeypatch.setenv('PARTITION_COUNT', '12')
        monkeypatch.setenv('PARTITION_BATCH_SIZE', '1000')

        assert get_partition_hints() == PartitionHints(12, 1000)

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setenv('PARTITION_COUNT', '12')

        assert get_partition_hints(requested_partitions=0, batch_size=10) == PartitionHints(0, 10)

    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv('PARTITION_BATCH_SIZE', 'lots')

        with pytest.raises(ValueError, match="PARTITION_BATCH_SIZE"):
            get_partition_hints()


class TestPartitionRequest:
    """Test building requests from DAG params."""

    def test_from_params(self):
        request = PartitionRequest.from_params({
            'source_table': 'dbo.orders',
            'partition_column': 'id',
            'num_partitions': 0,
            'batch_size': 50000,
        })

        assert request.table == 'dbo.orders'
        assert request.partition_column == 'id'
        assert request.hints == PartitionHints(0, 50000)

    def test_none_params_use_environment(self, monkeypatch):
        monkeypatch.setenv('PARTITION_COUNT', '3')
        monkeypatch.setenv('PARTITION_BATCH_SIZE', '777')

        request = PartitionRequest.from_params({
            'source_table': 'orders',
            'partition_column': 'id',
            'num_partitions': None,
            'batch_size': None,
        })

        assert request.hints == PartitionHints(3, 777)

    def test_empty_column_disables_partitioning(self):
        request = PartitionRequest.from_params({'source_table': 'orders', 'partition_column': ''})

        assert request.partition_column is None
        assert request.hints == PartitionHints()


class TestIdentifiers:
    """Test SQL identifier validation."""

    @pytest.mark.parametrize("name", ["id", "order_id", "_rowid", "Id2"])
    def test_valid(self, name):
        assert validate_sql_identifier(name) == name

    @pytest.mark.parametrize("name", ["", "2id", "id;--", "order id", "a" * 129])
    def test_invalid(self, name):
        with pytest.raises(ValueError):
            validate_sql_identifier(name)

    def test_table_refs(self):
        assert parse_table_ref('orders') == ('orders',)
        assert parse_table_ref('sales.orders') == ('sales', 'orders')
        assert validate_table_ref(' sales.orders ') == 'sales.orders'

    @pytest.mark.parametrize("table", ["", "a.b.c", "sales.", "sales.or ders"])
    def test_invalid_table_refs(self, table):
        with pytest.raises(ValueError):
            parse_table_ref(table)
