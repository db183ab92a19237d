# partpal/migration.py
"""Copy every table from the legacy store into the target store.

Tables are copied one at a time in foreign-key dependency order; that order
is the only referential-integrity enforcement. Rows are written one by one
(create, falling back to update by id) and a failing row is recorded and
skipped. Only startup and whole-table read failures abort a run.
"""
import json
import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import (
    ConnectivityFailure, MigrationCancelled, RowDecodeFailure, RowWriteFailure,
    TableReadFailure, TargetNotEmpty,
)
from .stores import RecordStore
from .utils import logger, retry

BATCH_SIZE = int(os.getenv("MIGRATION_BATCH_SIZE", 100))

# table used to decide whether the target already holds data
SENTINEL_TABLE = "users"


@dataclass(frozen=True)
class FieldCodec:
    decode: Callable[[str], Any]
    encode: Callable[[Any], str]


def _decode_json(raw):
    if raw.strip() == "":
        return None
    return json.loads(raw)


JSON_CODEC = FieldCodec(decode=_decode_json, encode=json.dumps)


@dataclass(frozen=True)
class TableSpec:
    name: str
    encoded_fields: Tuple[Tuple[str, FieldCodec], ...] = ()


MIGRATION_ORDER: Tuple[TableSpec, ...] = (
    TableSpec("categories"),
    TableSpec("users"),
    TableSpec("refresh_tokens"),
    TableSpec("sellers", (("business_hours", JSON_CODEC),)),
    TableSpec("vehicles"),
    TableSpec("parts", (
        ("images", JSON_CODEC),
        ("dimensions", JSON_CODEC),
        ("compatibility", JSON_CODEC),
    )),
    TableSpec("analytics_events", (("metadata", JSON_CODEC),)),
    TableSpec("activity_logs", (("metadata", JSON_CODEC),)),
)


class RowStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"


@dataclass
class RowOutcome:
    row_id: Any
    status: RowStatus
    reason: Optional[str] = None
    decode_failures: List[RowDecodeFailure] = field(default_factory=list)

    @property
    def migrated(self) -> bool:
        return self.status is not RowStatus.FAILED


@dataclass
class TableReport:
    table: str
    outcomes: List[RowOutcome] = field(default_factory=list)
    rows_read: int = 0

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def migrated(self) -> int:
        return sum(1 for o in self.outcomes if o.migrated)

    @property
    def failed(self) -> int:
        return self.attempted - self.migrated

    @property
    def failures(self) -> List[RowOutcome]:
        return [o for o in self.outcomes if not o.migrated]


@dataclass
class MigrationReport:
    per_table: Dict[str, TableReport] = field(default_factory=dict)
    source_counts: Dict[str, int] = field(default_factory=dict)
    final_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def short_tables(self) -> List[str]:
        """Tables whose target holds fewer rows than the source had."""
        return [t for t, n in self.source_counts.items() if self.final_counts.get(t, 0) < n]

    def summary(self) -> Dict[str, Any]:
        return {
            "perTable": {
                t: {"attempted": r.attempted, "migrated": r.migrated}
                for t, r in self.per_table.items()
            },
            "finalCounts": dict(self.final_counts),
        }


def decode_row(row: Dict[str, Any], spec: TableSpec):
    """Decode the table's encoded fields. A field that fails to decode is
    set to None and reported; the row itself is never rejected."""
    converted = dict(row)
    failures = []
    for name, codec in spec.encoded_fields:
        value = converted.get(name)
        if not isinstance(value, str):
            continue
        try:
            converted[name] = codec.decode(value)
        except (ValueError, TypeError) as e:
            logger.warning("  Failed to parse JSON field %s on record %s: %s", name, row.get("id"), e)
            converted[name] = None
            failures.append(RowDecodeFailure(name, e))
    return converted, failures


def migrate_row(target: RecordStore, spec: TableSpec, row: Dict[str, Any]) -> RowOutcome:
    converted, decode_failures = decode_row(row, spec)
    row_id = row.get("id")
    try:
        target.create(spec.name, converted)
        return RowOutcome(row_id, RowStatus.CREATED, decode_failures=decode_failures)
    except Exception as create_error:
        logger.debug("  Create failed for record %s: %s", row_id, create_error)
        try:
            target.update(spec.name, row_id, converted)
        except Exception as update_error:
            failure = RowWriteFailure(row_id, create_error, update_error)
            logger.error("  %s", failure)
            return RowOutcome(row_id, RowStatus.FAILED, reason=str(failure), decode_failures=decode_failures)
        logger.info("  Updated existing record %s", row_id)
        return RowOutcome(row_id, RowStatus.UPDATED, decode_failures=decode_failures)


def check_batch_size(batch_size):
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}")
    return batch_size


def migrate_table(source: RecordStore, target: RecordStore, spec: TableSpec,
                  batch_size: int = BATCH_SIZE) -> TableReport:
    check_batch_size(batch_size)
    logger.info("Migrating %s...", spec.name)
    try:
        rows = source.find_many(spec.name)
    except Exception as e:
        raise TableReadFailure(spec.name, e) from e

    report = TableReport(spec.name, rows_read=len(rows))
    logger.info("  Found %d records in source database", len(rows))
    if not rows:
        logger.info("  No data to migrate for %s", spec.name)
        return report

    for start in range(0, len(rows), batch_size):
        for row in rows[start:start + batch_size]:
            report.outcomes.append(migrate_row(target, spec, row))
        logger.info("  Progress: %d/%d", min(start + batch_size, len(rows)), len(rows))

    logger.info("  Successfully migrated %d/%d records", report.migrated, report.attempted)
    return report


class MigrationRunner:
    """Runs a full migration between two stores.

    `confirm_upsert` must be set to migrate into a target that already
    holds data; existing records are then overwritten by id. `cancel_event`
    is checked between tables only, so a row is never half-written.
    """

    def __init__(self, source: RecordStore, target: RecordStore,
                 tables: Tuple[TableSpec, ...] = MIGRATION_ORDER,
                 batch_size: int = BATCH_SIZE,
                 confirm_upsert: bool = False,
                 cancel_event: Optional[threading.Event] = None,
                 ping_tries: int = 3, ping_delay: float = 1):
        self.source = source
        self.target = target
        self.tables = tables
        self.batch_size = check_batch_size(batch_size)
        self.confirm_upsert = confirm_upsert
        self.cancel_event = cancel_event
        self.ping_tries = ping_tries
        self.ping_delay = ping_delay

    def check_connections(self):
        logger.info("Testing database connections...")
        for role, store in (("source", self.source), ("target", self.target)):
            ping = retry(Exception, tries=self.ping_tries, delay=self.ping_delay)(store.ping)
            try:
                ping()
            except Exception as e:
                raise ConnectivityFailure(f"{role} ({store.name})", e) from e
            logger.info("  %s: Connected", store.name)

    def check_target_empty(self):
        count = self.target.count(SENTINEL_TABLE)
        if count == 0:
            return
        logger.warning("Target database is not empty! Found %d %s.", count, SENTINEL_TABLE)
        if not self.confirm_upsert:
            raise TargetNotEmpty(SENTINEL_TABLE, count)
        logger.warning("Upsert confirmed: existing records will be updated.")

    def verify(self, report: MigrationReport):
        logger.info("Verifying migration...")
        for spec in self.tables:
            report.final_counts[spec.name] = self.target.count(spec.name)
            logger.info("  %s: %d", spec.name, report.final_counts[spec.name])
        for table in report.short_tables:
            logger.warning(
                "  %s has %d records in target but %d in source",
                table, report.final_counts.get(table, 0), report.source_counts[table],
            )

    def run(self) -> MigrationReport:
        self.check_connections()
        self.check_target_empty()

        report = MigrationReport()
        logger.info("Starting migration...")
        for spec in self.tables:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise MigrationCancelled(spec.name, report)
            table_report = migrate_table(self.source, self.target, spec, self.batch_size)
            report.per_table[spec.name] = table_report
            report.source_counts[spec.name] = table_report.rows_read
        logger.info("Migration completed.")

        self.verify(report)
        return report


def run_migration(source: RecordStore, target: RecordStore, **kwargs) -> MigrationReport:
    return MigrationRunner(source, target, **kwargs).run()
