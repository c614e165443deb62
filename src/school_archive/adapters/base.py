"""Persistence store protocol used by the archive engine.

Defines the ``DatabaseClient`` Protocol that every store adapter must
implement.  All methods are ``async def`` -- the engine is async-first.

Usage:
    from school_archive.adapters.base import DatabaseClient

    async def count_lessons(client: DatabaseClient) -> int:
        rows = await client.select("lessons", "count(*) as cnt")
        return rows[0]["cnt"]
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Store interface consumed by the builder, restorer and reset operation.

    Rows are plain dicts keyed by column name.  Adapters raise on
    constraint violations; the restorer catches those per record.
    """

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names, ``"*"``, or an aggregate
                such as ``"count(*) as cnt"``.
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name to sort by.

        Returns:
            List of dicts, one per row.  Empty list if no matches.

        Example:
            rows = await client.select(
                "users",
                "id, username",
                filters={"role": "admin"},
                order_by="created_at",
            )
        """
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert row into table and return the created row.

        Raises:
            Exception: If duplicate key or constraint violation.
        """
        ...

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> dict:
        """Update rows in table and return the first updated row.

        Raises:
            Exception: If no rows match filters.
        """
        ...

    async def delete(self, table: str, filters: dict[str, Any] | None = None) -> None:
        """Delete rows from table.

        Args:
            table: Table name.
            filters: Dict of field=value filters (all must match via AND).
                ``None`` or an empty dict deletes every row.

        Example:
            await client.delete("class_students", {"class_id": "c-1"})
            await client.delete("attempts")
        """
        ...

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a single raw SQL statement (DDL or other non-query operations)."""
        ...

    async def execute_script(
        self,
        statements: list[tuple[str, dict | None]],
    ) -> None:
        """Execute several statements in one transaction.

        Either every statement is committed or none is.  Used by the
        destructive reset (drop, recreate, seed).

        Args:
            statements: Ordered ``(sql, params)`` pairs.

        Example:
            await client.execute_script([
                ("DROP TABLE IF EXISTS attempts", None),
                ("INSERT INTO settings (key, value) VALUES (:k, :v)",
                 {"k": "school_name", "v": "Hillside"}),
            ])
        """
        ...

    async def close(self) -> None:
        """Close the connection and clean up resources."""
        ...
