"""
Sale recording tests (both backends).

Verifies:
- stock decrement and line snapshots
- reject-on-insufficient-stock leaves nothing behind
- receipt numbering
- server-side recomputation of subtotal/total
"""

import re
from datetime import datetime
from decimal import Decimal

import pytest

from conftest import backdate_sale, make_customer, make_product, sale_payload
from stockdesk.services.sales_service import build_sale, create_sale
from stockdesk.storage import InsufficientStockError
from stockdesk.time_utils import start_of_year
from stockdesk.validation import NotFoundError, ValidationError

RECEIPT_RE = re.compile(r"^RCP-\d{4}-\d{6}$")


def one_item(product, quantity=2, **extra):
    return [{"productId": product["id"], "quantity": quantity, **extra}]


class TestRecordSale:

    def test_decrements_stock_and_snapshots_item(self, storage, parties):
        product = make_product(storage, quantity=5, buying="6.00", selling="12.00")

        result = create_sale(sale_payload(parties, one_item(product, 2, unitPrice="10.00")))

        assert storage.get("products", product["id"])["quantity"] == 3
        assert len(result["items"]) == 1
        item = result["items"][0]
        assert item["subtotal"] == "20.00"
        assert item["unitPrice"] == "10.00"
        assert item["buyingPrice"] == "6.00"
        assert item["productName"] == "USB-C Cable"
        assert item["stockCode"] == "USB-C-1M"
        assert item["lineNo"] == 1
        assert item["saleId"] == result["sale"]["id"]
        assert result["sale"]["subtotal"] == "20.00"
        assert result["sale"]["total"] == "20.00"

    def test_unit_price_defaults_to_selling_price(self, storage, parties):
        product = make_product(storage, selling="7.25")
        result = create_sale(sale_payload(parties, one_item(product, 2)))
        assert result["items"][0]["unitPrice"] == "7.25"
        assert result["sale"]["total"] == "14.50"

    def test_snapshot_survives_product_edit(self, storage, parties):
        product = make_product(storage)
        result = create_sale(sale_payload(parties, one_item(product, 1)))

        storage.update("products", product["id"], {"name": "Renamed", "buying_price": Decimal("1.00")})

        stored = storage.get_sale_with_items(result["sale"]["id"])
        assert stored["items"][0]["productName"] == "USB-C Cable"
        assert stored["items"][0]["buyingPrice"] == "6.00"

    def test_insufficient_stock_rejects_whole_sale(self, storage, parties):
        plenty = make_product(storage, "PLENTY", quantity=50)
        scarce = make_product(storage, "SCARCE", quantity=1)

        items = [
            {"productId": plenty["id"], "quantity": 3},
            {"productId": scarce["id"], "quantity": 2},
        ]
        with pytest.raises(InsufficientStockError) as exc:
            create_sale(sale_payload(parties, items))

        assert exc.value.details["productId"] == scarce["id"]
        assert exc.value.details["requested"] == 2
        assert storage.get("products", plenty["id"])["quantity"] == 50
        assert storage.get("products", scarce["id"])["quantity"] == 1
        assert storage.list_sales() == []

    def test_repeated_lines_count_against_same_stock(self, storage, parties):
        product = make_product(storage, quantity=5)
        items = [
            {"productId": product["id"], "quantity": 3},
            {"productId": product["id"], "quantity": 3},
        ]
        with pytest.raises(InsufficientStockError):
            create_sale(sale_payload(parties, items))
        assert storage.get("products", product["id"])["quantity"] == 5

    def test_selling_exact_stock_reaches_zero(self, storage, parties):
        product = make_product(storage, quantity=4)
        create_sale(sale_payload(parties, one_item(product, 4)))
        assert storage.get("products", product["id"])["quantity"] == 0

        with pytest.raises(InsufficientStockError):
            create_sale(sale_payload(parties, one_item(product, 1)))
        assert storage.get("products", product["id"])["quantity"] == 0

    def test_items_keep_line_order(self, storage, parties):
        a = make_product(storage, "A-1", quantity=10)
        b = make_product(storage, "B-1", quantity=10)
        result = create_sale(sale_payload(parties, [
            {"productId": b["id"], "quantity": 1},
            {"productId": a["id"], "quantity": 1},
        ]))

        stored = storage.get_sale_with_items(result["sale"]["id"])
        assert stored["sale"] == result["sale"]
        assert [i["productId"] for i in stored["items"]] == [b["id"], a["id"]]
        assert [i["lineNo"] for i in stored["items"]] == [1, 2]

    def test_get_missing_sale(self, storage):
        assert storage.get_sale("missing") is None
        assert storage.get_sale_with_items("missing") is None


class TestReceiptNumbers:

    def test_sequential_and_formatted(self, storage, parties):
        product = make_product(storage, quantity=10)
        year, _ = start_of_year()

        receipts = [
            create_sale(sale_payload(parties, one_item(product, 1)))["sale"]["receiptNumber"]
            for _ in range(3)
        ]

        assert all(RECEIPT_RE.match(r) for r in receipts)
        assert receipts == [f"RCP-{year}-000001", f"RCP-{year}-000002", f"RCP-{year}-000003"]

    def test_bumps_past_taken_number(self, storage, parties):
        product = make_product(storage, quantity=10)
        year, _ = start_of_year()

        first = create_sale(sale_payload(parties, one_item(product, 1)))
        # Last year's sale still holds RCP-<this year>-000001
        backdate_sale(storage, first["sale"]["id"], datetime(year - 1, 6, 1, 12, 0))

        second = create_sale(sale_payload(parties, one_item(product, 1)))
        assert second["sale"]["receiptNumber"] == f"RCP-{year}-000002"


class TestRecentSales:

    def test_joins_names_newest_first(self, storage, parties):
        product = make_product(storage, quantity=10)
        other = make_customer(storage, "Second Buyer")

        first = create_sale(sale_payload(parties, one_item(product, 1)))
        second = create_sale(sale_payload(parties, one_item(product, 1), customerId=other["id"]))

        recent = storage.recent_sales(10)
        assert [s["id"] for s in recent] == [second["sale"]["id"], first["sale"]["id"]]
        assert recent[0]["customerName"] == "Second Buyer"
        assert recent[1]["customerName"] == "Dana Ortiz"
        assert recent[0]["sellerName"] == "Front Counter"

        assert len(storage.recent_sales(1)) == 1


# =============================================================================
# PAYLOAD VALIDATION / RECOMPUTATION
# =============================================================================


class TestBuildSale:

    @pytest.mark.parametrize("subtotal,discount,discount_type,expected", [
        ("100.00", "10", "percentage", Decimal("90.00")),
        ("100.00", "10", "fixed", Decimal("90.00")),
        ("50.00", "60", "fixed", Decimal("0.00")),
    ])
    def test_discounts(self, storage, parties, subtotal, discount, discount_type, expected):
        product = make_product(storage, selling=subtotal, quantity=1)
        header, _ = build_sale(sale_payload(
            parties, one_item(product, 1), discount=discount, discountType=discount_type,
        ))
        assert header.total == expected

    def test_matching_claimed_totals_accepted(self, storage, parties):
        product = make_product(storage, selling="10.00")
        header, lines = build_sale(sale_payload(
            parties,
            one_item(product, 3, subtotal="30.00"),
            subtotal="30.00",
            discount="5",
            discountType="percentage",
            total="28.50",
        ))
        assert header.subtotal == Decimal("30.00")
        assert header.total == Decimal("28.50")
        assert lines[0].subtotal == Decimal("30.00")

    @pytest.mark.parametrize("overrides", [
        {"subtotal": "99.00"},
        {"total": "1.00"},
    ])
    def test_mismatched_claims_rejected(self, storage, parties, overrides):
        product = make_product(storage, selling="10.00")
        payload = sale_payload(parties, one_item(product, 1))
        payload.update(overrides)
        with pytest.raises(ValidationError, match="mismatch"):
            build_sale(payload)

    def test_mismatched_line_subtotal_rejected(self, storage, parties):
        product = make_product(storage, selling="10.00")
        with pytest.raises(ValidationError, match="items\\[0\\].subtotal"):
            build_sale(sale_payload(parties, one_item(product, 2, subtotal="10.00")))

    def test_client_snapshots_ignored(self, storage, parties):
        product = make_product(storage)
        result = create_sale(sale_payload(parties, one_item(
            product, 1, productName="Forged", stockCode="FAKE", buyingPrice="0.01",
        )))
        assert result["items"][0]["productName"] == "USB-C Cable"
        assert result["items"][0]["buyingPrice"] == "6.00"

    @pytest.mark.parametrize("overrides,message", [
        ({"items": []}, "items"),
        ({"paymentMethod": "cheque"}, "paymentMethod"),
        ({"discountType": "bogus"}, "discountType"),
        ({"discount": "-1"}, "discount"),
        ({"discount": 1.5}, "discount"),
        ({"customerId": ""}, "customerId"),
    ])
    def test_invalid_header(self, storage, parties, overrides, message):
        product = make_product(storage)
        payload = sale_payload(parties, one_item(product, 1))
        payload.update(overrides)
        with pytest.raises(ValidationError, match=message):
            build_sale(payload)

    @pytest.mark.parametrize("item_overrides,message", [
        ({"quantity": 0}, "quantity"),
        ({"quantity": -2}, "quantity"),
        ({"quantity": 1.5}, "quantity"),
        ({"unitPrice": 9.99}, "unitPrice"),
        ({"unitPrice": "-1.00"}, "unitPrice"),
        ({"unitPrice": "1.005"}, "unitPrice"),
    ])
    def test_invalid_items(self, storage, parties, item_overrides, message):
        product = make_product(storage)
        item = {"productId": product["id"], "quantity": 1, **item_overrides}
        with pytest.raises(ValidationError, match=message):
            build_sale(sale_payload(parties, [item]))

    def test_unknown_references(self, storage, parties):
        product = make_product(storage)
        with pytest.raises(NotFoundError, match="Product"):
            build_sale(sale_payload(parties, [{"productId": "missing", "quantity": 1}]))
        with pytest.raises(NotFoundError, match="Customer"):
            build_sale(sale_payload(parties, one_item(product, 1), customerId="missing"))
        with pytest.raises(NotFoundError, match="Seller"):
            build_sale(sale_payload(parties, one_item(product, 1), sellerId="missing"))
