# tablesync/db_sync/tables.py
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple


@dataclass(frozen=True)
class TableDescriptor:
    """A replicated table and the tables its foreign keys point at"""
    name: str
    depends_on: Tuple[str, ...] = ()


# Parents are always listed before their children.
SYNC_TABLES: Tuple[TableDescriptor, ...] = (
    # User & role management
    TableDescriptor('tbl_roles'),
    TableDescriptor('tbl_users', ('tbl_roles',)),

    # Product master data
    TableDescriptor('tbl_category'),
    TableDescriptor('tbl_brand'),
    TableDescriptor('tbl_tax'),
    TableDescriptor('tbl_product', ('tbl_category', 'tbl_brand', 'tbl_tax')),

    # Supplier & customer
    TableDescriptor('tbl_supplier'),
    TableDescriptor('tbl_customer'),

    # Purchase operations
    TableDescriptor('tbl_purchase_order', ('tbl_supplier', 'tbl_users')),
    TableDescriptor('tbl_purchase_order_items', ('tbl_purchase_order', 'tbl_product')),
    TableDescriptor('tbl_stock_in', ('tbl_purchase_order', 'tbl_supplier')),
    TableDescriptor('tbl_stock_in_items', ('tbl_stock_in', 'tbl_product')),

    # Sales operations
    TableDescriptor('tbl_sales_order', ('tbl_customer', 'tbl_users')),
    TableDescriptor('tbl_sales_order_items', ('tbl_sales_order', 'tbl_product')),
    TableDescriptor('tbl_stock_out', ('tbl_sales_order', 'tbl_customer')),
    TableDescriptor('tbl_stock_out_items', ('tbl_stock_out', 'tbl_product')),

    # Accounting
    TableDescriptor('tbl_chart_of_accounts'),
    TableDescriptor('tbl_accounts_payable', ('tbl_supplier', 'tbl_purchase_order')),
    TableDescriptor('tbl_payments', ('tbl_accounts_payable',)),
    TableDescriptor('tbl_expenses', ('tbl_chart_of_accounts',)),
    TableDescriptor('tbl_general_ledger', ('tbl_chart_of_accounts',)),
)


def validate_table_order(tables: Sequence[TableDescriptor]) -> None:
    """
    Check that every table comes after the tables it depends on

    Raises:
        ValueError: On duplicate names, unknown parents or a parent listed
            after its child
    """
    seen = set()
    known = {table.name.lower() for table in tables}

    for table in tables:
        name = table.name.lower()
        if name in seen:
            raise ValueError(f"Duplicate table in sync order: {table.name}")

        for parent in table.depends_on:
            if parent.lower() not in known:
                raise ValueError(f"{table.name} depends on unknown table {parent}")
            if parent.lower() not in seen:
                raise ValueError(f"{table.name} is listed before its parent {parent}")

        seen.add(name)


def table_names(tables: Iterable[TableDescriptor]) -> List[str]:
    return [table.name for table in tables]
