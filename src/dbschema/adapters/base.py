"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol the schema engine consumes. The
engine never opens connections itself: it only needs to run a statement
and get back either rows or an affected-row count, and to know the
server version.

All methods are blocking -- each call completes one round trip.

Usage:
    from dbschema.adapters.base import DatabaseClient

    def do_work(client: DatabaseClient) -> None:
        rows = client.fetch_all("EXEC sp_pkeys @table_name = :t", {"t": "Users"})
        client.execute("CREATE INDEX [IX_Name] ON [Users] ([Name]);")
        print(client.server_version())
        client.close()
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Execution capability that all adapters must implement.

    Adapters raise ``StatementError`` when the database rejects a
    statement; the schema engine translates that into a
    ``ConnectivityError`` (introspection) or ``StructuralChangeError``
    (DDL and seed inserts).
    """

    def fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Run a query and return its rows.

        Args:
            sql: SQL text using ``:name`` bind parameters.
            params: Optional dict of bind parameter values.

        Returns:
            List of dicts, one per row, keyed by column name.

        Raises:
            StatementError: If the statement fails.
        """
        ...

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Run a DDL or DML statement and commit it.

        Args:
            sql: SQL text using ``:name`` bind parameters.
            params: Optional dict of bind parameter values.

        Returns:
            Affected row count (``-1`` when the driver does not report one).

        Raises:
            StatementError: If the statement fails.
        """
        ...

    def server_version(self) -> str:
        """Return the server version string, e.g. ``"15.0.2000.5"``."""
        ...

    def close(self) -> None:
        """Close connections and release resources."""
        ...
