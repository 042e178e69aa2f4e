# tablesync/schema/column_set.py
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    is_identity: bool = False
    is_computed: bool = False
    is_primary_key: bool = False
    nullable: bool = True
    has_default: bool = False

    @property
    def is_required(self) -> bool:
        """NOT NULL, no default and not generated by the database"""
        return not self.nullable and not self.has_default and not self.is_computed


class ColumnSet:
    """
    Columns of one table on one endpoint, in declaration order.

    Lookups are case-insensitive. Built per table per sync attempt and never
    cached, because the two endpoints may drift apart at any time.
    """

    def __init__(self, columns: Iterable[ColumnInfo] = ()):
        self._columns: Dict[str, ColumnInfo] = {}
        for column in columns:
            self._columns.setdefault(column.name.lower(), column)

    def __iter__(self) -> Iterator[ColumnInfo]:
        return iter(self._columns.values())

    def __len__(self) -> int:
        return len(self._columns)

    def __bool__(self) -> bool:
        return bool(self._columns)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._columns

    def get(self, name: str) -> Optional[ColumnInfo]:
        return self._columns.get(name.lower())

    def resolve(self, name: Optional[str]) -> Optional[str]:
        """Return this endpoint's spelling of a column name"""
        if not name:
            return None
        column = self._columns.get(name.lower())
        return column.name if column else None

    @property
    def names(self) -> List[str]:
        return [column.name for column in self._columns.values()]

    @property
    def identity(self) -> Optional[str]:
        for column in self._columns.values():
            if column.is_identity:
                return column.name
        return None

    @property
    def primary_key(self) -> Optional[str]:
        for column in self._columns.values():
            if column.is_primary_key:
                return column.name
        return None

    @property
    def computed(self) -> Set[str]:
        return {column.name for column in self._columns.values() if column.is_computed}

    @property
    def required(self) -> List[str]:
        return [column.name for column in self._columns.values() if column.is_required]


# Sentinel for a column the cursor row does not carry at all
MISSING = object()


class RowView:
    """Case-insensitive read-only view over one cursor row"""

    def __init__(self, row: Mapping[str, Any]):
        self._row = row
        self._keys = {str(key).lower(): key for key in row.keys()}

    def get(self, name: Optional[str], default: Any = MISSING) -> Any:
        if not name:
            return default
        key = self._keys.get(name.lower())
        if key is None:
            return default
        return self._row[key]

    def first_present(self, *names: Optional[str]) -> Any:
        """Value of the first name the row carries, MISSING if none"""
        for name in names:
            value = self.get(name)
            if value is not MISSING:
                return value
        return MISSING

    def __repr__(self) -> str:
        return f"RowView({dict(self._row)!r})"
