# partpal/stores.py
"""Record stores used by the migration runner.

A store exposes a small per-table CRUD contract: ping, find_many, create,
update and count. `SqlAlchemyStore` backs it with a database engine,
`InMemoryStore` with plain lists of dicts.
"""
import copy
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import MetaData, func, select, text
from sqlalchemy.engine import Engine

from .utils import logger


class RecordStore(Protocol):
    name: str

    def ping(self) -> None: ...

    def find_many(self, table: str) -> List[Dict[str, Any]]: ...

    def create(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]: ...

    def update(self, table: str, row_id: Any, row: Dict[str, Any]) -> Dict[str, Any]: ...

    def count(self, table: str) -> int: ...


class SqlAlchemyStore:
    """Store over a SQLAlchemy engine.

    With no metadata the schema is reflected from the database, which is how
    the legacy SQLite file is read: its JSON columns come back as plain text.
    The target store is given the ORM metadata so JSON columns bind as JSON.
    Each create/update runs in its own transaction.
    """

    def __init__(self, engine: Engine, metadata: Optional[MetaData] = None, name: str = "database"):
        self.engine = engine
        self.name = name
        self._metadata = metadata
        self._drift_reported = set()

    @property
    def metadata(self) -> MetaData:
        if self._metadata is None:
            md = MetaData()
            md.reflect(bind=self.engine)
            self._metadata = md
        return self._metadata

    def _table(self, table: str):
        try:
            return self.metadata.tables[table]
        except KeyError:
            raise LookupError(f"Unknown table '{table}' in {self.name} store")

    def _values(self, t, row):
        dropped = sorted(k for k in row if k not in t.c)
        if dropped and t.name not in self._drift_reported:
            self._drift_reported.add(t.name)
            logger.warning("Columns %s are not in %s table '%s'; their values are dropped",
                           ", ".join(dropped), self.name, t.name)
        return {k: v for k, v in row.items() if k in t.c}

    def ping(self):
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def find_many(self, table):
        t = self._table(table)
        with self.engine.connect() as conn:
            return [dict(r) for r in conn.execute(select(t)).mappings().all()]

    def create(self, table, row):
        t = self._table(table)
        with self.engine.begin() as conn:
            conn.execute(t.insert().values(**self._values(t, row)))
        return row

    def update(self, table, row_id, row):
        t = self._table(table)
        values = self._values(t, row)
        values.pop("id", None)
        with self.engine.begin() as conn:
            res = conn.execute(t.update().where(t.c.id == row_id).values(**values))
            if res.rowcount == 0:
                raise LookupError(f"No record {row_id} in '{table}'")
        return row

    def count(self, table):
        t = self._table(table)
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(t)).scalar_one()


class InMemoryStore:
    """Store over dicts keyed by table name. Rows are copied on the way in
    and out so callers never share state with the store."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None, name: str = "memory"):
        self.name = name
        self.tables = {k: [copy.deepcopy(r) for r in v] for k, v in (tables or {}).items()}

    def _rows(self, table):
        return self.tables.setdefault(table, [])

    def ping(self):
        return None

    def find_many(self, table):
        return [copy.deepcopy(r) for r in self._rows(table)]

    def create(self, table, row):
        rows = self._rows(table)
        if any(r.get("id") == row.get("id") for r in rows):
            raise ValueError(f"Unique constraint failed on '{table}.id' ({row.get('id')})")
        rows.append(copy.deepcopy(row))
        return row

    def update(self, table, row_id, row):
        rows = self._rows(table)
        for i, r in enumerate(rows):
            if r.get("id") == row_id:
                merged = dict(r)
                merged.update(copy.deepcopy(row))
                merged["id"] = row_id
                rows[i] = merged
                return merged
        raise LookupError(f"No record {row_id} in '{table}'")

    def count(self, table):
        return len(self._rows(table))
