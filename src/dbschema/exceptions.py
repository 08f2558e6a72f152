"""Exception classes for dbschema.

Every error raised by the library derives from ``DBSchemaError`` so callers
can catch the whole family with one clause.
"""

from typing import Any


class DBSchemaError(Exception):
    """Base exception for all dbschema errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ParseError(DBSchemaError):
    """Raised when a schema descriptor document is malformed."""

    pass


class DuplicateDefinitionError(DBSchemaError):
    """Raised when a named element is added twice to the same owner."""

    def __init__(self, kind: str, name: str, owner: str) -> None:
        super().__init__(
            f"{kind} '{name}' already exists in {owner}",
            details={"kind": kind, "name": name, "owner": owner},
        )
        self.kind = kind
        self.name = name
        self.owner = owner


class StatementError(DBSchemaError):
    """Raised by adapters when the database rejects a statement."""

    def __init__(self, sql: str, cause: Exception | None = None) -> None:
        first_line = sql.strip().splitlines()[0] if sql.strip() else ""
        super().__init__(f"Statement failed: {first_line}", cause=cause)
        self.sql = sql


class ConnectivityError(DBSchemaError):
    """Raised when a catalog metadata query cannot be executed."""

    def __init__(
        self,
        step: str,
        table: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        where = f" for table '{table}'" if table else ""
        super().__init__(
            f"Failed to read {step}{where}",
            details={"step": step, "table": table} if table else {"step": step},
            cause=cause,
        )
        self.step = step
        self.table = table


class StructuralChangeError(DBSchemaError):
    """Raised when a DDL or seed insert statement is rejected."""

    def __init__(
        self,
        action: str,
        table: str,
        name: str,
        cause: Exception | None = None,
        statement_index: int = 0,
    ) -> None:
        super().__init__(
            f"{action} '{name}' failed on table '{table}'",
            details={"action": action, "table": table, "name": name},
            cause=cause,
        )
        self.action = action
        self.table = table
        self.name = name
        # Position within the action's statements; earlier ones were applied
        self.statement_index = statement_index
