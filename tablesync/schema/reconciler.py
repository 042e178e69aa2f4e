# tablesync/schema/reconciler.py
from typing import Iterable, List, Optional, Sequence


def reconcile_columns(source_columns: Sequence[str],
                      destination_columns: Iterable[str],
                      destination_computed: Iterable[str] = (),
                      destination_identity: Optional[str] = None,
                      identity_override: bool = True) -> List[str]:
    """
    Compute the columns that are safe to read from the source and write to
    the destination

    Args:
        source_columns: Source column names in declaration order
        destination_columns: Destination column names
        destination_computed: Destination columns that reject writes
        destination_identity: Destination identity column, if any
        identity_override: Whether identity override will be used on the
            destination; the identity column must then be in the statement

    Returns:
        Column names in source spelling and source order. The identity column,
        when forced back in, goes first.
    """
    destination = {name.lower() for name in destination_columns}
    computed = {name.lower() for name in destination_computed}

    columns = [
        name for name in source_columns
        if name.lower() in destination and name.lower() not in computed
    ]

    if identity_override and destination_identity:
        identity = destination_identity.lower()
        source_identity = next((name for name in source_columns if name.lower() == identity), None)
        in_list = any(name.lower() == identity for name in columns)
        if source_identity and identity in destination and not in_list:
            columns.insert(0, source_identity)

    return columns


def missing_columns(source_columns: Iterable[str], destination_columns: Iterable[str]) -> List[str]:
    """Source columns the destination does not have"""
    destination = {name.lower() for name in destination_columns}
    return [name for name in source_columns if name.lower() not in destination]
