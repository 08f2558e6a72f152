"""Schema reconciliation -- make a live database conform to a descriptor.

A reconciliation pass runs four strictly sequential phases:

1. Create tables that are missing entirely (with their seed rows).
2. Re-capture the live schema if any table was created.
3. Add missing columns and indexes to tables present in both schemas.
4. Add missing foreign keys to tables present in both schemas.

Elements are matched by name only, so rerunning a pass against a
conformant database issues no statements. Changes are additive only:
nothing existing is dropped or altered, and nothing is rolled back when a
later statement fails.

Usage:
    from dbschema.schema.reconciler import reconcile

    result = reconcile(adapter, "schema.xml")
    print(result.format_report())
    result.raise_for_failures()
"""

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from dbschema.exceptions import ConnectivityError, StructuralChangeError
from dbschema.schema import comparator
from dbschema.schema.activity import ActivityLog
from dbschema.schema.ddl import (
    Action,
    AddColumn,
    AddForeignKey,
    AddIndex,
    CreateTable,
    DDLEmitter,
)
from dbschema.schema.descriptor import Source, read_descriptor
from dbschema.schema.introspector import SchemaIntrospector
from dbschema.schema.models import (
    ActionOutcome,
    ActionStatus,
    ReconcileResult,
    Schema,
)

if TYPE_CHECKING:
    from dbschema.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)


class _Pass:
    """State of one reconciliation pass."""

    def __init__(
        self,
        desired: Schema,
        introspector: SchemaIntrospector,
        emitter: DDLEmitter,
        log: ActivityLog,
    ) -> None:
        self.desired = desired
        self.introspector = introspector
        self.emitter = emitter
        self.log = log
        self.result = ReconcileResult(dry_run=emitter.dry_run)

    def run(self) -> ReconcileResult:
        self.log.info("Getting schema as per database...")
        live = self.introspector.capture()
        check_indexes = bool(self.introspector.index_catalogs_available)

        # Phase 1: missing tables
        for table in comparator.missing_tables(self.desired, live):
            self.log.info(f"Table '{table.name}' not found in database")
            error = self._apply(CreateTable(table=table), phase=1)
            if error is None:
                self.result.created_tables.append(table.name)
            elif error.statement_index > 0:
                self.log.warning(
                    f"Table '{table.name}' was created but a seed record was rejected"
                )
                self.result.created_tables.append(table.name)

        # Phase 2: refresh the live view after creating tables
        if self.result.created_tables:
            try:
                live = self._recapture(live)
            except ConnectivityError as e:
                self.log.error("Recapture after table creation failed; pass aborted")
                self.result.failures.append(e)
                return self._finish()

        # Phase 3: missing columns and indexes
        if not check_indexes:
            self.log.warning("Index reconciliation skipped: server lacks index catalogs")
        for desired_table, live_table in comparator.common_tables(self.desired, live):
            actions: list[Action] = []
            for column in comparator.missing_columns(desired_table, live_table):
                self.log.info(
                    f"Table '{desired_table.name}' does not have column '{column.name}'"
                )
                actions.append(AddColumn(table_name=desired_table.name, column=column))
            if check_indexes:
                for index in comparator.missing_indexes(desired_table, live_table):
                    self.log.info(
                        f"Table '{desired_table.name}' does not have index '{index.name}'"
                    )
                    actions.append(AddIndex(table_name=desired_table.name, index=index))
            self._apply_all(actions, phase=3)

        # Phase 4: missing foreign keys
        for desired_table, live_table in comparator.common_tables(self.desired, live):
            actions = []
            for foreign_key in comparator.missing_foreign_keys(desired_table, live_table):
                self.log.info(
                    f"Table '{desired_table.name}' does not have foreign key "
                    f"'{foreign_key.name}'"
                )
                actions.append(
                    AddForeignKey(table_name=desired_table.name, foreign_key=foreign_key)
                )
            self._apply_all(actions, phase=4)

        return self._finish()

    def _recapture(self, live: Schema) -> Schema:
        if not self.emitter.dry_run:
            self.log.info("Tables created; re-reading schema from database...")
            return self.introspector.capture()

        # Nothing was executed: model the created tables as the database would
        self.log.info("Dry run: simulating created tables in the live schema")
        for name in self.result.created_tables:
            source = self.desired.tables[name]
            table = live.add_table(name)
            for column in source.columns:
                table.add_column(column.name, column.data_type, column.options)
            if source.primary_key is not None:
                table.set_primary_key(source.primary_key.name, source.primary_key.columns)
        return live

    def _apply_all(self, actions: Iterable[Action], phase: int) -> None:
        """Apply one table's actions; a failure skips the rest of them."""
        remaining = list(actions)
        while remaining:
            action = remaining.pop(0)
            if self._apply(action, phase) is not None:
                for skipped in remaining:
                    self.log.warning(
                        f"Skipping {skipped.kind.value} '{skipped.name}' on table "
                        f"'{skipped.table_name}' after earlier failure"
                    )
                    self.result.actions.append(
                        ActionOutcome(
                            kind=skipped.kind,
                            table=skipped.table_name,
                            name=skipped.name,
                            phase=phase,
                            status=ActionStatus.SKIPPED,
                        )
                    )
                return

    def _apply(self, action: Action, phase: int) -> StructuralChangeError | None:
        """Apply one action and record its outcome; returns the failure, if any."""
        statements = action.to_statements()
        outcome = ActionOutcome(
            kind=action.kind,
            table=action.table_name,
            name=action.name,
            phase=phase,
            statements=[s.sql for s in statements],
        )
        self.result.actions.append(outcome)
        try:
            self.emitter.apply(action, statements)
        except StructuralChangeError as e:
            outcome.status = ActionStatus.FAILED
            outcome.error = str(e)
            self.result.failures.append(e)
            return e

        outcome.status = ActionStatus.PLANNED if self.emitter.dry_run else ActionStatus.APPLIED
        return None

    def _finish(self) -> ReconcileResult:
        if self.result.success:
            self.log.info(
                f"Reconciliation complete: {self.result.action_count} action(s)"
            )
        else:
            self.log.error(
                f"Reconciliation finished with {len(self.result.failures)} failure(s)"
            )
        self.result.log = self.log.entries
        return self.result


def reconcile_schema(
    client: "DatabaseClient",
    desired: Schema,
    *,
    dry_run: bool = False,
    owner: str = "dbo",
    excluded_tables: Iterable[str] | None = None,
    introspector: SchemaIntrospector | None = None,
    log: ActivityLog | None = None,
) -> ReconcileResult:
    """Bring the live database in line with a desired schema.

    Args:
        client: Database adapter implementing ``DatabaseClient``.
        desired: Schema the database should contain.
        dry_run: If True, report the actions and their statements without
            executing anything.
        owner: Schema owner whose tables are captured.
        excluded_tables: System tables to skip (introspector default when
            omitted).
        introspector: Preconfigured introspector for the live database;
            *owner* and *excluded_tables* are ignored when given.
        log: Activity log to append to. Defaults to the introspector's log,
            or a fresh one.

    Returns:
        ``ReconcileResult`` with every action, its statements and status,
        collected failures and the activity log of this call.

    Raises:
        ConnectivityError: If the initial capture of the live schema fails.

    Example:
        result = reconcile_schema(adapter, desired)
        if not result.success:
            print(result.format_report())
    """
    if introspector is None:
        log = log if log is not None else ActivityLog(logger)
        introspector = SchemaIntrospector(
            client, owner=owner, excluded_tables=excluded_tables, log=log
        )
    else:
        log = log if log is not None else introspector.log
    emitter = DDLEmitter(client, log, dry_run=dry_run)
    return _Pass(desired, introspector, emitter, log).run()


def reconcile(
    client: "DatabaseClient",
    descriptor_source: Source,
    *,
    dry_run: bool = False,
    owner: str = "dbo",
    excluded_tables: Iterable[str] | None = None,
) -> ReconcileResult:
    """Load a descriptor and reconcile the live database against it.

    Args:
        client: Database adapter implementing ``DatabaseClient``.
        descriptor_source: Descriptor file path or stream.
        dry_run: If True, only report what would be done.
        owner: Schema owner whose tables are captured.
        excluded_tables: System tables to skip.

    Returns:
        ``ReconcileResult`` for the pass.

    Raises:
        ParseError: If the descriptor is malformed.
        DuplicateDefinitionError: If the descriptor repeats a name.
        ConnectivityError: If the initial capture of the live schema fails.
    """
    log = ActivityLog(logger)
    log.info("Getting schema as per descriptor...")
    desired = read_descriptor(descriptor_source)
    return reconcile_schema(
        client,
        desired,
        dry_run=dry_run,
        owner=owner,
        excluded_tables=excluded_tables,
        log=log,
    )
