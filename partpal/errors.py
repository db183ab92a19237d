# partpal/errors.py
"""Domain exceptions.

Query errors are raised to the caller. Migration errors split into
run-level failures (raised, abort the run) and row-level failures
(recorded on the row outcome, never raised past the row).
"""


class InvalidParameter(ValueError):
    """A query parameter could not be parsed or is out of range."""

    def __init__(self, name, value, reason="invalid value"):
        self.name = name
        self.value = value
        super().__init__(f"Invalid parameter '{name}': {reason} ({value!r})")


class MigrationError(Exception):
    pass


class ConnectivityFailure(MigrationError):
    def __init__(self, store, cause):
        self.store = store
        self.cause = cause
        super().__init__(f"Cannot connect to {store} store: {cause}")


class TableReadFailure(MigrationError):
    def __init__(self, table, cause):
        self.table = table
        self.cause = cause
        super().__init__(f"Failed reading table '{table}' from source: {cause}")


class TargetNotEmpty(MigrationError):
    def __init__(self, table, count):
        self.table = table
        self.count = count
        super().__init__(
            f"Target store is not empty ({count} rows in '{table}'); "
            "rerun with confirmation to update existing records"
        )


class MigrationCancelled(MigrationError):
    def __init__(self, next_table, report=None):
        self.next_table = next_table
        # tables finished before the cancellation
        self.report = report
        super().__init__(f"Migration cancelled before table '{next_table}'")


class RowDecodeFailure(Exception):
    def __init__(self, field, cause):
        self.field = field
        self.cause = cause
        super().__init__(f"Failed to decode field '{field}': {cause}")


class RowWriteFailure(Exception):
    def __init__(self, row_id, create_error, update_error):
        self.row_id = row_id
        self.create_error = create_error
        self.update_error = update_error
        super().__init__(
            f"Record {row_id}: create failed ({create_error}); update failed ({update_error})"
        )
