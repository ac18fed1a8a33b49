"""
Utility functions for partition planning.

This module provides SQL identifier validation for the names that are
interpolated into boundary queries and range predicates. Boundary queries
cannot bind identifiers as parameters, so every table and column name is
checked before it reaches SQL text.
"""

import re
from typing import Tuple

_IDENTIFIER_PATTERN = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')


def validate_sql_identifier(identifier: str, identifier_type: str = "identifier") -> str:
    """
    Validate SQL identifiers to prevent SQL injection.

    Args:
        identifier: The identifier to validate
        identifier_type: Type description for error messages (e.g., "table name", "column")

    Returns:
        The validated identifier (unchanged if valid)

    Raises:
        ValueError: If the identifier is invalid

    Rules:
        - Non-empty
        - Max 128 characters (SQL Server limit)
        - Must start with letter or underscore
        - Can contain only alphanumeric characters and underscores

    Examples:
        >>> validate_sql_identifier("orders")
        'orders'
        >>> validate_sql_identifier("order_id")
        'order_id'
        >>> validate_sql_identifier("id; --")  # doctest: +SKIP
        ValueError: Invalid identifier 'id; --': must start with letter or underscore ...
    """
    if not identifier:
        raise ValueError(f"Invalid {identifier_type}: cannot be empty")

    if len(identifier) > 128:
        raise ValueError(
            f"Invalid {identifier_type}: exceeds maximum length of 128 characters "
            f"(got {len(identifier)} characters)"
        )

    if not _IDENTIFIER_PATTERN.match(identifier):
        raise ValueError(
            f"Invalid {identifier_type} '{identifier}': must start with letter or underscore "
            "and contain only alphanumeric characters and underscores"
        )

    return identifier


def parse_table_ref(table: str) -> Tuple[str, ...]:
    """
    Split a table reference into validated parts.

    Handles:
    - Bare table: "orders" -> ("orders",)
    - Schema-qualified: "sales.orders" -> ("sales", "orders")

    Raises:
        ValueError: If the reference is empty, has more than two parts,
            or any part is not a valid identifier
    """
    if not table or not table.strip():
        raise ValueError("Invalid table reference: cannot be empty")

    parts = table.strip().split('.')
    if len(parts) > 2:
        raise ValueError(
            f"Invalid table reference '{table}': must be 'table' or 'schema.table'"
        )

    kinds = ("schema name", "table name") if len(parts) == 2 else ("table name",)
    return tuple(
        validate_sql_identifier(part.strip(), kind) for part, kind in zip(parts, kinds)
    )


def validate_table_ref(table: str) -> str:
    """Return the normalized 'schema.table' (or 'table') text for a table reference."""
    return '.'.join(parse_table_ref(table))
