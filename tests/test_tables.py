# tests/test_tables.py
import pytest

from tablesync.db_sync.tables import (SYNC_TABLES, TableDescriptor, table_names,
                                      validate_table_order)


def test_fixed_order_is_valid():
    validate_table_order(SYNC_TABLES)


def test_parents_come_first():
    names = table_names(SYNC_TABLES)
    assert names.index('tbl_roles') < names.index('tbl_users')
    assert names.index('tbl_category') < names.index('tbl_product')
    assert names.index('tbl_stock_in') < names.index('tbl_stock_in_items')
    assert names.index('tbl_chart_of_accounts') < names.index('tbl_general_ledger')


def test_every_dependency_precedes_its_child():
    position = {name: i for i, name in enumerate(table_names(SYNC_TABLES))}
    for table in SYNC_TABLES:
        for parent in table.depends_on:
            assert position[parent] < position[table.name]


def test_child_before_parent_is_rejected():
    tables = [TableDescriptor('tbl_users', ('tbl_roles',)), TableDescriptor('tbl_roles')]
    with pytest.raises(ValueError, match='before its parent'):
        validate_table_order(tables)


def test_unknown_parent_is_rejected():
    with pytest.raises(ValueError, match='unknown table'):
        validate_table_order([TableDescriptor('tbl_users', ('tbl_groups',))])


def test_duplicates_are_rejected():
    with pytest.raises(ValueError, match='Duplicate'):
        validate_table_order([TableDescriptor('tbl_roles'), TableDescriptor('TBL_ROLES')])
