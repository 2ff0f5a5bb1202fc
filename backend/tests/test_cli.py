"""
CLI tests for the `flask data` command group.
"""

import json

from stockdesk.cli import DEMO_CUSTOMERS, DEMO_PRODUCTS, DEMO_SELLERS, DEMO_SUPPLIERS
from stockdesk.storage import get_storage


def test_seed_is_idempotent(file_app):
    runner = file_app.test_cli_runner()

    result = runner.invoke(args=["data", "seed"])
    assert result.exit_code == 0, result.output
    assert "PASS Seeded" in result.output

    again = runner.invoke(args=["data", "seed"])
    assert again.exit_code == 0
    assert "SKIP" in again.output

    assert len(get_storage().list("products")) == len(DEMO_PRODUCTS)


def test_seed_after_partial_delete_does_not_duplicate_parties(file_app):
    runner = file_app.test_cli_runner()
    runner.invoke(args=["data", "seed"])
    storage = get_storage()
    first = storage.find_product_by_stock_code(DEMO_PRODUCTS[0][0])
    storage.delete("products", first["id"])

    result = runner.invoke(args=["data", "seed"])
    assert result.exit_code == 0, result.output
    assert "PASS Seeded 0 suppliers, 0 customers, 0 sellers, 1 products." in result.output

    assert len(storage.list("suppliers")) == len(DEMO_SUPPLIERS)
    assert len(storage.list("customers")) == len(DEMO_CUSTOMERS)
    assert len(storage.list("sellers")) == len(DEMO_SELLERS)
    restored = storage.find_product_by_stock_code(DEMO_PRODUCTS[0][0])
    assert restored["supplierId"] == first["supplierId"]


def test_export_from_file_then_import_into_sql(app, db_session, file_app, tmp_path):
    out = tmp_path / "backup.json"
    runner = file_app.test_cli_runner()
    runner.invoke(args=["data", "seed"])

    exported = runner.invoke(args=["data", "export", "--out", str(out)])
    assert exported.exit_code == 0, exported.output
    document = json.loads(out.read_text())
    assert len(document["products"]) == len(DEMO_PRODUCTS)

    with app.app_context():
        # CLI commands run against whichever app context is on top
        imported = app.test_cli_runner().invoke(args=["data", "import", "--src", str(out), "--yes"])
        assert imported.exit_code == 0, imported.output
        assert f"products={len(DEMO_PRODUCTS)}" in imported.output

        sql_storage = get_storage()
        assert sql_storage.name == "sql"
        codes = sorted(p["stockCode"] for p in sql_storage.list("products"))
        assert codes == sorted(p[0] for p in DEMO_PRODUCTS)
        by_id = lambda rows: sorted(rows, key=lambda r: r["id"])
        assert by_id(sql_storage.export_document()["suppliers"]) == by_id(document["suppliers"])


def test_import_rejects_unknown_collections(file_app, tmp_path):
    src = tmp_path / "bad.json"
    src.write_text(json.dumps({"widgets": []}))

    result = file_app.test_cli_runner().invoke(args=["data", "import", "--src", str(src), "--yes"])
    assert result.exit_code != 0
    assert "Unknown collections: widgets" in result.output


def test_reset_db(file_app):
    runner = file_app.test_cli_runner()
    runner.invoke(args=["data", "seed"])

    result = runner.invoke(args=["data", "reset-db", "--yes"])
    assert result.exit_code == 0
    assert get_storage().list("products") == []


def test_init_db_on_sql(app, db_session):
    result = app.test_cli_runner().invoke(args=["data", "init-db"])
    assert result.exit_code == 0
    assert "PASS sql store initialized." in result.output
