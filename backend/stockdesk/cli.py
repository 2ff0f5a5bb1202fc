# Overview: Flask CLI command group for bootstrap, seeding and data export/import.

# backend/stockdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask data <command> [options]
#
# - python -m flask data init-db
#   Create tables (sql backend) or the JSON document (file backend). Idempotent.
# - python -m flask data reset-db --yes
#   DEV/TEST only: drop and recreate the store (deletes all data).
# - python -m flask data seed
#   Add demo suppliers, customers, sellers and products (skips records that already exist).
# - python -m flask data export --out backup.json
#   Dump the active store in the JSON document layout (usable as a file-backend db.json).
# - python -m flask data import --src backup.json --yes
#   Replace the active store with a JSON document.

import json
from decimal import Decimal

import click
from flask.cli import with_appcontext

from .storage import COLLECTIONS, get_storage

DEMO_SUPPLIERS = [
    {"name": "Acme Distribution", "phone": "555-0100", "email": "orders@acme.example"},
    {"name": "Northwind Supply", "phone": "555-0199", "email": "sales@northwind.example"},
]

DEMO_CUSTOMERS = [
    {"name": "Walk-in Customer", "phone": "555-0000", "email": "walkin@stockdesk.local"},
    {"name": "Dana Ortiz", "phone": "555-0142", "email": "dana@example.com"},
]

DEMO_SELLERS = [
    {"name": "Front Counter", "email": "counter@stockdesk.local"},
]

# (stock_code, name, category, buying, selling, quantity, supplier index)
DEMO_PRODUCTS = [
    ("USB-C-1M", "USB-C Cable 1m", "Cables", "2.50", "6.99", 120, 0),
    ("USB-A-HUB4", "USB Hub 4-Port", "Accessories", "8.00", "17.50", 35, 0),
    ("HDMI-2M", "HDMI Cable 2m", "Cables", "3.10", "8.99", 15, 1),
    ("KB-WL-01", "Wireless Keyboard", "Peripherals", "14.00", "29.99", 12, 1),
    ("MS-OPT-01", "Optical Mouse", "Peripherals", "4.20", "11.99", 60, 1),
]


@click.group('data')
def data_group():
    """Store bootstrap, demo data and JSON export/import."""


@data_group.command('init-db')
@with_appcontext
def init_db():
    """Create the schema (or JSON document) if missing."""
    storage = get_storage()
    storage.initialize()
    click.echo(f"PASS {storage.name} store initialized.")


@data_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop everything and recreate an empty store.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    storage = get_storage()
    click.echo(f"DELETE  Resetting {storage.name} store...")
    storage.initialize(reset=True)
    click.echo("PASS Store reset complete. Run 'python -m flask data seed' for demo data.")


def _ensure_party(storage, kind: str, fields: dict) -> tuple[dict, bool]:
    """Return the existing row with the same email, or create it."""
    existing = next((row for row in storage.list(kind) if row["email"] == fields["email"]), None)
    if existing is not None:
        return existing, False
    return storage.create(kind, dict(fields)), True


@data_group.command('seed')
@with_appcontext
def seed():
    """Insert demo records. Parties are matched by email and products by stock code; existing ones are skipped."""
    storage = get_storage()
    created = {"suppliers": 0, "customers": 0, "sellers": 0, "products": 0}

    suppliers = []
    for s in DEMO_SUPPLIERS:
        row, is_new = _ensure_party(storage, "suppliers", s)
        suppliers.append(row)
        created["suppliers"] += is_new
    for kind, demo_rows in (("customers", DEMO_CUSTOMERS), ("sellers", DEMO_SELLERS)):
        for fields in demo_rows:
            _, is_new = _ensure_party(storage, kind, fields)
            created[kind] += is_new

    for code, name, category, buying, selling, qty, supplier_idx in DEMO_PRODUCTS:
        if storage.find_product_by_stock_code(code) is not None:
            continue
        storage.create("products", {
            "stock_code": code,
            "name": name,
            "category": category,
            "buying_price": Decimal(buying),
            "selling_price": Decimal(selling),
            "quantity": qty,
            "supplier_id": suppliers[supplier_idx]["id"],
        })
        created["products"] += 1

    if not any(created.values()):
        click.echo("SKIP Demo data already present.")
        return

    click.echo(
        f"PASS Seeded {created['suppliers']} suppliers, {created['customers']} customers, "
        f"{created['sellers']} sellers, {created['products']} products."
    )


@data_group.command('export')
@click.option('--out', 'out_path', required=True, type=click.Path(dir_okay=False, writable=True),
              help='Destination JSON file')
@with_appcontext
def export_data(out_path):
    """Write the whole store as a JSON document."""
    document = get_storage().export_document()
    with open(out_path, "w", encoding="utf-8") as fh:
        json.dump(document, fh, indent=2)

    counts = ", ".join(f"{k}={len(document.get(k, []))}" for k in COLLECTIONS)
    click.echo(f"PASS Exported to {out_path} ({counts})")


@data_group.command('import')
@click.option('--src', 'src_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='JSON document to load')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def import_data(src_path, yes):
    """Replace the whole store with a JSON document (same layout as export)."""
    with open(src_path, "r", encoding="utf-8") as fh:
        try:
            document = json.load(fh)
        except ValueError as exc:
            raise click.ClickException(f"Invalid JSON in {src_path}: {exc}")

    if not isinstance(document, dict):
        raise click.ClickException("Document must be a JSON object")
    unknown = sorted(set(document) - set(COLLECTIONS))
    if unknown:
        raise click.ClickException(f"Unknown collections: {', '.join(unknown)}")

    if not yes:
        click.confirm("WARN This will REPLACE ALL DATA. Are you sure?", abort=True)

    counts = get_storage().load_document(document)
    summary = ", ".join(f"{k}={v}" for k, v in counts.items())
    click.echo(f"PASS Imported {src_path} ({summary})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(data_group)
