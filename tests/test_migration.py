import json
import threading
import pytest

from partpal.errors import ConnectivityFailure, MigrationCancelled, TableReadFailure, TargetNotEmpty
from partpal.migration import (
    JSON_CODEC, MIGRATION_ORDER, MigrationRunner, RowStatus, TableSpec, decode_row, migrate_table,
    run_migration,
)
from partpal.stores import InMemoryStore


class RecordingStore(InMemoryStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reads = []

    def find_many(self, table):
        self.reads.append(table)
        return super().find_many(table)


class BrokenWrites(InMemoryStore):
    """Rejects both create and update for the given ids."""

    def __init__(self, bad_ids, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.bad_ids = set(bad_ids)

    def create(self, table, row):
        if row.get("id") in self.bad_ids:
            raise RuntimeError("foreign key constraint failed")
        return super().create(table, row)

    def update(self, table, row_id, row):
        if row_id in self.bad_ids:
            raise RuntimeError("record to update not found")
        return super().update(table, row_id, row)


def runner(source, target, **kwargs):
    kwargs.setdefault("ping_delay", 0)
    return MigrationRunner(source, target, **kwargs)


def test_table_order_puts_referenced_tables_first():
    names = [spec.name for spec in MIGRATION_ORDER]
    assert names == [
        "categories", "users", "refresh_tokens", "sellers",
        "vehicles", "parts", "analytics_events", "activity_logs",
    ]
    encoded = {spec.name: [f for f, _ in spec.encoded_fields] for spec in MIGRATION_ORDER}
    assert encoded["sellers"] == ["business_hours"]
    assert encoded["parts"] == ["images", "dimensions", "compatibility"]
    assert encoded["analytics_events"] == ["metadata"]
    assert encoded["activity_logs"] == ["metadata"]


def test_decode_row_parses_and_nulls_bad_fields():
    spec = TableSpec("parts", (("images", JSON_CODEC),))
    row, failures = decode_row({"id": "p1", "images": '["a.jpg", "b.jpg"]'}, spec)
    assert row["images"] == ["a.jpg", "b.jpg"]
    assert failures == []

    row, failures = decode_row({"id": "p2", "images": "[not json"}, spec)
    assert row["images"] is None
    assert [f.field for f in failures] == ["images"]

    row, failures = decode_row({"id": "p3", "images": ["already.jpg"]}, spec)
    assert row["images"] == ["already.jpg"]

    row, failures = decode_row({"id": "p4", "images": "  "}, spec)
    assert row["images"] is None
    assert failures == []


def test_decode_failure_and_duplicate_are_both_migrated():
    source = InMemoryStore({"parts": [
        {"id": "p1", "name": "Brake Disc", "images": "[broken"},
        {"id": "p2", "name": "Radiator", "images": json.dumps(["r.jpg"])},
        {"id": "p3", "name": "Mirror", "images": None},
    ]})
    target = InMemoryStore({"parts": [{"id": "p2", "name": "Old Radiator", "images": []}]})

    report = run_migration(source, target, ping_delay=0)
    parts = report.per_table["parts"]
    assert parts.attempted == 3
    assert parts.migrated == 3
    assert parts.failed == 0

    by_id = {o.row_id: o for o in parts.outcomes}
    assert by_id["p1"].status is RowStatus.CREATED
    assert [f.field for f in by_id["p1"].decode_failures] == ["images"]
    assert by_id["p2"].status is RowStatus.UPDATED

    rows = {r["id"]: r for r in target.find_many("parts")}
    assert rows["p1"]["images"] is None
    assert rows["p2"] == {"id": "p2", "name": "Radiator", "images": ["r.jpg"]}
    assert report.final_counts["parts"] == 3


def test_failed_row_is_skipped_and_run_continues():
    source = InMemoryStore({
        "vehicles": [{"id": "v1"}, {"id": "v2"}, {"id": "v3"}],
        "parts": [{"id": "p1", "images": "[]"}],
    })
    target = BrokenWrites({"v2"})

    report = runner(source, target).run()
    vehicles = report.per_table["vehicles"]
    assert (vehicles.attempted, vehicles.migrated, vehicles.failed) == (3, 2, 1)
    assert [o.row_id for o in vehicles.failures] == ["v2"]
    assert "create failed" in vehicles.failures[0].reason
    assert report.per_table["parts"].migrated == 1
    assert report.short_tables == ["vehicles"]
    assert report.summary()["perTable"]["vehicles"] == {"attempted": 3, "migrated": 2}


def test_sellers_always_read_before_vehicles():
    source = RecordingStore({"vehicles": [{"id": "v1", "seller_id": "s1"}]})
    runner(source, InMemoryStore()).run()
    assert source.reads == [spec.name for spec in MIGRATION_ORDER]
    assert source.reads.index("sellers") < source.reads.index("vehicles")


def test_empty_tables_report_zero():
    report = runner(InMemoryStore(), InMemoryStore()).run()
    assert set(report.per_table) == {spec.name for spec in MIGRATION_ORDER}
    assert all(r.attempted == 0 and r.migrated == 0 for r in report.per_table.values())
    assert all(n == 0 for n in report.final_counts.values())
    assert report.short_tables == []


def test_batches_report_progress(caplog):
    rows = [{"id": f"c{i}"} for i in range(5)]
    target = InMemoryStore()
    with caplog.at_level("INFO", logger="partpal"):
        report = migrate_table(InMemoryStore({"categories": rows}), target, MIGRATION_ORDER[0], batch_size=2)
    assert report.migrated == 5
    assert target.count("categories") == 5
    progress = [r.getMessage().strip() for r in caplog.records if "Progress" in r.getMessage()]
    assert progress == ["Progress: 2/5", "Progress: 4/5", "Progress: 5/5"]


def test_source_is_not_mutated():
    rows = [{"id": "s1", "business_hours": '{"mon": "08:00-17:00"}'}]
    source = InMemoryStore({"sellers": rows})
    target = InMemoryStore()
    runner(source, target).run()
    assert source.find_many("sellers") == rows
    assert target.find_many("sellers") == [{"id": "s1", "business_hours": {"mon": "08:00-17:00"}}]


def test_connectivity_failure_aborts_before_any_table():
    class Offline(RecordingStore):
        def ping(self):
            raise OSError("connection refused")

    source = Offline({"categories": [{"id": "c1"}]})
    target = InMemoryStore()
    with pytest.raises(ConnectivityFailure):
        runner(source, target, ping_tries=2).run()
    assert source.reads == []
    assert target.count("categories") == 0


def test_table_read_failure_aborts_run():
    class FailingRead(RecordingStore):
        def find_many(self, table):
            if table == "vehicles":
                raise RuntimeError("disk I/O error")
            return super().find_many(table)

    source = FailingRead({"sellers": [{"id": "s1"}], "parts": [{"id": "p1"}]})
    target = InMemoryStore()
    with pytest.raises(TableReadFailure) as exc:
        runner(source, target).run()
    assert exc.value.table == "vehicles"
    assert target.count("sellers") == 1
    assert target.count("parts") == 0
    assert "parts" not in source.reads


def test_non_empty_target_needs_confirmation():
    source = InMemoryStore({"users": [{"id": "u1", "email": "new@example.com"}]})
    target = InMemoryStore({"users": [{"id": "u1", "email": "old@example.com"}]})

    with pytest.raises(TargetNotEmpty):
        runner(source, target).run()
    assert target.find_many("users")[0]["email"] == "old@example.com"

    report = runner(source, target, confirm_upsert=True).run()
    assert report.per_table["users"].outcomes[0].status is RowStatus.UPDATED
    assert target.find_many("users")[0]["email"] == "new@example.com"


def test_cancellation_is_checked_between_tables():
    class CancelAfterUsers(RecordingStore):
        def find_many(self, table):
            rows = super().find_many(table)
            if table == "users":
                cancel.set()
            return rows

    cancel = threading.Event()
    source = CancelAfterUsers({"users": [{"id": "u1"}, {"id": "u2"}]})
    target = InMemoryStore()
    with pytest.raises(MigrationCancelled) as exc:
        runner(source, target, cancel_event=cancel).run()
    assert exc.value.next_table == "refresh_tokens"
    # the table in progress is finished before stopping
    assert target.count("users") == 2
    assert exc.value.report.per_table["users"].migrated == 2
    assert list(exc.value.report.per_table) == ["categories", "users"]


@pytest.mark.parametrize("batch_size", [0, -1, -5])
def test_batch_size_must_be_positive(batch_size):
    source = InMemoryStore({"categories": [{"id": "c1"}, {"id": "c2"}]})
    target = InMemoryStore()
    with pytest.raises(ValueError):
        runner(source, target, batch_size=batch_size)
    with pytest.raises(ValueError):
        migrate_table(source, target, MIGRATION_ORDER[0], batch_size=batch_size)
    assert target.count("categories") == 0


def test_source_counts_are_rows_read():
    source = InMemoryStore({"vehicles": [{"id": "v1"}, {"id": "v2"}, {"id": "v3"}]})
    report = runner(source, BrokenWrites({"v1", "v3"})).run()
    assert report.source_counts["vehicles"] == 3
    assert report.per_table["vehicles"].rows_read == 3
    assert report.final_counts["vehicles"] == 1
    assert report.short_tables == ["vehicles"]


def test_parts_encoded_fields_are_decoded():
    source = InMemoryStore({"parts": [{
        "id": "p1",
        "images": "[]",
        "dimensions": '{"length": 40, "width": 20, "height": 10}',
        "compatibility": '["BMW 320i", "BMW 318i"]',
    }]})
    target = InMemoryStore()
    runner(source, target).run()
    part = target.find_many("parts")[0]
    assert part["dimensions"] == {"length": 40, "width": 20, "height": 10}
    assert part["compatibility"] == ["BMW 320i", "BMW 318i"]
