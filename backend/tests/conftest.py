"""
Pytest fixtures for stockdesk backend tests.

Provides the SQL-backed app (in-memory SQLite), per-test file-backed apps
(JSON document under tmp_path), a `store_app` fixture parametrized over both
backends, and small builders for suppliers/customers/sellers/products.
"""

from decimal import Decimal

import pytest

from stockdesk import create_app
from stockdesk.extensions import db
from stockdesk.storage import get_storage

SQL_CONFIG = {
    'TESTING': True,
    'STORAGE_BACKEND': 'sql',
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
}


def file_config(path) -> dict:
    return {
        'TESTING': True,
        'STORAGE_BACKEND': 'file',
        'DATA_FILE': str(path),
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    }


@pytest.fixture(scope='session')
def app():
    """Create SQL-backed application for testing."""
    app = create_app(SQL_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def file_app(tmp_path):
    """File-backed application writing to tmp_path/db.json."""
    app = create_app(file_config(tmp_path / "db.json"))
    with app.app_context():
        yield app


@pytest.fixture(scope='function', params=['sql', 'file'])
def store_app(request):
    """The same test run once per storage backend, each starting empty."""
    if request.param == 'sql':
        request.getfixturevalue('db_session')
        app = request.getfixturevalue('app')
        with app.app_context():
            yield app
    else:
        yield request.getfixturevalue('file_app')


@pytest.fixture(scope='function')
def storage(store_app):
    return get_storage()


@pytest.fixture(scope='function')
def api(store_app):
    return store_app.test_client()


# --- builders -------------------------------------------------------------

def make_supplier(storage, name="Acme Distribution"):
    return storage.create("suppliers", {"name": name, "phone": "555-0100", "email": "acme@example.com"})


def make_customer(storage, name="Dana Ortiz"):
    return storage.create("customers", {"name": name, "phone": "555-0142", "email": "dana@example.com"})


def make_seller(storage, name="Front Counter"):
    return storage.create("sellers", {"name": name, "email": "counter@example.com"})


def make_product(
    storage,
    stock_code="USB-C-1M",
    *,
    name="USB-C Cable",
    category="Cables",
    buying="6.00",
    selling="10.00",
    quantity=5,
    supplier_id=None,
):
    return storage.create("products", {
        "stock_code": stock_code,
        "name": name,
        "category": category,
        "buying_price": Decimal(buying),
        "selling_price": Decimal(selling),
        "quantity": quantity,
        "supplier_id": supplier_id,
    })


@pytest.fixture(scope='function')
def parties(storage):
    """A customer and a seller to attach sales to."""
    return {"customer": make_customer(storage), "seller": make_seller(storage)}


def sale_payload(parties, items, **overrides) -> dict:
    payload = {
        "customerId": parties["customer"]["id"],
        "sellerId": parties["seller"]["id"],
        "paymentMethod": "cash",
        "discount": "0",
        "discountType": "percentage",
        "items": items,
    }
    payload.update(overrides)
    return payload


def backdate_sale(storage, sale_id, when):
    """Move a sale (and its items) to a different UTC-naive timestamp."""
    from stockdesk.time_utils import to_utc_z

    document = storage.export_document()
    stamp = to_utc_z(when)
    for sale in document["sales"]:
        if sale["id"] == sale_id:
            sale["createdAt"] = stamp
    for item in document["saleItems"]:
        if item["saleId"] == sale_id:
            item["createdAt"] = stamp
    storage.load_document(document)
