# tests/conftest.py
import pytest
from sqlalchemy import create_engine, text

from tablesync.db_sync.models import SyncConfig
from tablesync.db_sync.sync_service import DatabaseSyncService
from tablesync.db_sync.tables import TableDescriptor

ROLES_DDL = '''
    CREATE TABLE tbl_roles (
        role_id INTEGER PRIMARY KEY,
        role_name TEXT NOT NULL,
        created_date DATETIME,
        modified_date DATETIME
    )
'''

USERS_DDL = '''
    CREATE TABLE tbl_users (
        user_id INTEGER PRIMARY KEY AUTOINCREMENT,
        role_id INTEGER NOT NULL,
        username TEXT NOT NULL,
        email TEXT,
        modified_date DATETIME
    )
'''

TAX_DDL = '''
    CREATE TABLE tbl_tax (
        tax_id INTEGER PRIMARY KEY,
        tax_name TEXT NOT NULL,
        rate REAL
    )
'''

TEST_TABLES = (
    TableDescriptor('tbl_roles'),
    TableDescriptor('tbl_users', ('tbl_roles',)),
    TableDescriptor('tbl_tax'),
)


def run_sql(url, *statements):
    engine = create_engine(url)
    with engine.begin() as conn:
        for statement in statements:
            conn.execute(text(statement))
    engine.dispose()


def fetch_all(url, query):
    engine = create_engine(url)
    with engine.connect() as conn:
        rows = [tuple(row) for row in conn.execute(text(query))]
    engine.dispose()
    return rows


@pytest.fixture
def local_url(tmp_path):
    return f"sqlite:///{tmp_path / 'local.db'}"


@pytest.fixture
def cloud_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cloud.db'}"


@pytest.fixture
def schema(local_url, cloud_url):
    """Create the same three tables on both endpoints"""
    for url in (local_url, cloud_url):
        run_sql(url, ROLES_DDL, USERS_DDL, TAX_DDL)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_service(local_url, cloud_url, sleeps):
    def factory(tables=TEST_TABLES, **config):
        return DatabaseSyncService(
            local_url, cloud_url,
            config=SyncConfig(**config),
            tables=tables,
            sleep=sleeps.append,
        )
    return factory


@pytest.fixture
def seeded_local(schema, local_url):
    run_sql(
        local_url,
        "INSERT INTO tbl_roles (role_id, role_name, created_date, modified_date) VALUES "
        "(1, 'admin', '2024-01-01 08:00:00', '2024-01-01 08:00:00'), "
        "(2, 'clerk', '2024-01-01 08:00:00', '2024-01-02 08:00:00')",
        "INSERT INTO tbl_users (user_id, role_id, username, email, modified_date) VALUES "
        "(1, 1, 'alice', 'alice@example.com', '2024-01-03 08:00:00'), "
        "(2, 2, 'bob', 'bob@example.com', '2024-01-03 09:00:00'), "
        "(5, 2, 'carol', NULL, NULL)",
        "INSERT INTO tbl_tax (tax_id, tax_name, rate) VALUES (1, 'VAT', 0.12), (2, 'Exempt', 0)",
    )
