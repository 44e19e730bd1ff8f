"""
Storage Backend Module

Table-of-dicts repository shared by every store in the system, plus its
in-memory implementation. A store is built once per process (or per test)
and handed to its consumers; nothing here is a module-level singleton.
Records are kept as plain JSON-compatible dicts, with money as Decimal
strings.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Tuple
from contextlib import contextmanager
from dataclasses import dataclass, fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
import json
import threading

from .currency import Currency


Row = Dict[str, Any]


def to_plain(value: Any) -> Any:
    """Recursively convert a value into something json.dumps accepts"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Currency):
        return value.code
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


@dataclass
class StorageRecord:
    """Common identity and timestamps of persisted entities"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Row:
        """Shallow field-by-field conversion; enums become their values"""
        return {f.name: to_plain(getattr(self, f.name)) for f in fields(self)}


class StorageInterface(ABC):
    """
    Repository contract

    Rows live in named tables keyed by record id. ``find`` and ``load_all``
    return rows in insertion order. ``atomic()`` groups writes: if the block
    raises, none of its writes remain visible.
    """

    @abstractmethod
    def save(self, table: str, record_id: str, data: Row) -> None:
        """Insert or replace a row"""

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Row]:
        """Row by id, or None"""

    @abstractmethod
    def load_all(self, table: str) -> List[Row]:
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Remove a row; False if it was not there"""

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Row]:
        """Rows whose fields equal every filter value"""

    @abstractmethod
    def count(self, table: str) -> int:
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        pass

    def create_index(self, table: str, field_name: str) -> None:
        """Declare a field that ``find`` filters on often; backends may ignore it"""

    def begin_transaction(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Commit on normal exit, roll back on any exception (re-raised)"""
        self.begin_transaction()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        self.commit()


# (table, record id) -> (row, insertion position) before the first write in a block
UndoLog = Dict[Tuple[str, str], Optional[Tuple[Row, int]]]


class InMemoryStorage(StorageInterface):
    """
    In-memory storage implementation.

    ``atomic()`` blocks hold the storage lock for their whole duration and
    remember the previous version of every row they write, so a rollback
    restores exactly the state seen before the outermost block began. Blocks
    nest; only the outermost one commits or restores.

    Fields registered with ``create_index`` are served from a value -> ids map,
    so ``find`` on them reads only the matching rows. Indexed values must be
    hashable.
    """

    def __init__(self):
        self._tables: Dict[str, Dict[str, Row]] = {}
        self._positions: Dict[str, Dict[str, int]] = {}
        self._indexes: Dict[str, Dict[str, Dict[Any, Dict[str, None]]]] = {}
        self._next_position = 0
        self._lock = threading.RLock()
        self._depth = 0
        self._undo: Optional[UndoLog] = None

    def _table(self, name: str) -> Dict[str, Row]:
        return self._tables.setdefault(name, {})

    @staticmethod
    def _detach(row: Row) -> Row:
        # JSON round trip: callers never share mutable state with the store
        return json.loads(json.dumps(row, default=str))

    def _index_add(self, table: str, record_id: str, row: Row) -> None:
        for field_name, entries in self._indexes.get(table, {}).items():
            if field_name in row:
                entries.setdefault(row[field_name], {})[record_id] = None

    def _index_remove(self, table: str, record_id: str, row: Row) -> None:
        for field_name, entries in self._indexes.get(table, {}).items():
            if field_name in row:
                ids = entries.get(row[field_name], {})
                ids.pop(record_id, None)
                if not ids:
                    entries.pop(row[field_name], None)

    def _put(self, table: str, record_id: str, row: Optional[Row], position: Optional[int] = None) -> None:
        """Single write path: keeps positions, indexes and the undo log in step"""
        rows = self._table(table)
        positions = self._positions.setdefault(table, {})
        previous = rows.get(record_id)

        if self._undo is not None and (table, record_id) not in self._undo:
            self._undo[(table, record_id)] = (previous, positions[record_id]) if previous is not None else None

        if previous is not None:
            self._index_remove(table, record_id, previous)
        if row is None:
            rows.pop(record_id, None)
            positions.pop(record_id, None)
            return

        rows[record_id] = row
        if position is not None:
            positions[record_id] = position
        elif record_id not in positions:
            self._next_position += 1
            positions[record_id] = self._next_position
        self._index_add(table, record_id, row)

    def create_index(self, table: str, field_name: str) -> None:
        with self._lock:
            indexes = self._indexes.setdefault(table, {})
            if field_name in indexes:
                return
            entries: Dict[Any, Dict[str, None]] = {}
            for record_id, row in self._table(table).items():
                if field_name in row:
                    entries.setdefault(row[field_name], {})[record_id] = None
            indexes[field_name] = entries

    def save(self, table: str, record_id: str, data: Row) -> None:
        with self._lock:
            self._put(table, record_id, self._detach(data))

    def load(self, table: str, record_id: str) -> Optional[Row]:
        with self._lock:
            row = self._table(table).get(record_id)
            return self._detach(row) if row is not None else None

    def load_all(self, table: str) -> List[Row]:
        with self._lock:
            return [self._detach(row) for row in self._table(table).values()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            if record_id not in self._table(table):
                return False
            self._put(table, record_id, None)
            return True

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Row]:
        with self._lock:
            rows = self._table(table)
            indexes = self._indexes.get(table, {})
            indexed = next((name for name in filters if name in indexes), None)
            if indexed is None:
                candidates = rows.items()
            else:
                ids = indexes[indexed].get(filters[indexed], {})
                positions = self._positions.get(table, {})
                candidates = [(record_id, rows[record_id]) for record_id in sorted(ids, key=positions.__getitem__)]
            return [
                self._detach(row)
                for _, row in candidates
                if all(key in row and row[key] == wanted for key, wanted in filters.items())
            ]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def clear_table(self, table: str) -> None:
        with self._lock:
            for record_id in list(self._table(table)):
                self._put(table, record_id, None)

    def begin_transaction(self) -> None:
        self._lock.acquire()
        if self._depth == 0:
            self._undo = {}
        self._depth += 1

    def commit(self) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._undo = None
        self._lock.release()

    def rollback(self) -> None:
        self._depth -= 1
        if self._depth == 0 and self._undo is not None:
            undo, self._undo = self._undo, None
            moved = set()
            for (table, record_id), previous in undo.items():
                if previous is None:
                    self._put(table, record_id, None)
                    continue
                row, position = previous
                if self._positions[table].get(record_id) != position:
                    moved.add(table)
                self._put(table, record_id, row, position)
            for table in moved:
                self._reorder(table)
        self._lock.release()

    def _reorder(self, table: str) -> None:
        positions = self._positions[table]
        rows = self._tables[table]
        self._tables[table] = {record_id: rows[record_id] for record_id in sorted(rows, key=positions.__getitem__)}

    @property
    def in_transaction(self) -> bool:
        with self._lock:
            return self._depth > 0
