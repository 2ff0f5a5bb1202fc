"""
Dashboard and report aggregates (both backends).
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import backdate_sale, make_customer, make_product, sale_payload
from stockdesk.services import reporting_service
from stockdesk.services.sales_service import create_sale
from stockdesk.time_utils import utcnow


def sell(parties, product, quantity, unit_price=None, **overrides):
    item = {"productId": product["id"], "quantity": quantity}
    if unit_price is not None:
        item["unitPrice"] = unit_price
    return create_sale(sale_payload(parties, [item], **overrides))


class TestDashboard:

    def test_todays_profit_uses_item_margins(self, storage, parties):
        cheap = make_product(storage, "CHEAP", buying="6.00", selling="10.00", quantity=50)
        dear = make_product(storage, "DEAR", buying="15.00", selling="20.00", quantity=50)

        sell(parties, cheap, 2, "10.00")
        sell(parties, dear, 1, "20.00")
        old = sell(parties, cheap, 5, "10.00")
        backdate_sale(storage, old["sale"]["id"], utcnow() - timedelta(days=2))

        stats = storage.dashboard_stats(low_stock_threshold=20)
        assert stats.todays_profit == Decimal("13.00")
        assert stats.todays_sales == Decimal("40.00")
        assert stats.total_products == 2
        assert stats.low_stock_count == 0

    def test_discount_does_not_change_item_profit(self, storage, parties):
        product = make_product(storage, buying="6.00", selling="10.00", quantity=10)
        sell(parties, product, 1, discount="50", discountType="percentage")

        stats = storage.dashboard_stats(low_stock_threshold=20)
        assert stats.todays_sales == Decimal("5.00")
        assert stats.todays_profit == Decimal("4.00")

    def test_empty_store(self, storage):
        assert reporting_service.dashboard_stats() == {
            "totalProducts": 0,
            "todaysSales": "0.00",
            "lowStockCount": 0,
            "todaysProfit": "0.00",
        }

    def test_low_stock_threshold(self, storage):
        make_product(storage, "A", quantity=19)
        make_product(storage, "B", quantity=20)
        make_product(storage, "C", quantity=3)

        low = storage.low_stock_products(20)
        assert [p["stockCode"] for p in low] == ["C", "A"]
        assert [p["stockCode"] for p in reporting_service.low_stock(5)] == ["C"]
        assert storage.dashboard_stats(low_stock_threshold=20).low_stock_count == 2


class TestStockReport:

    def test_groups_by_category(self, storage):
        make_product(storage, "C-1", category="Cables", selling="2.50", quantity=40)
        make_product(storage, "C-2", category="Cables", selling="1.00", quantity=10)
        make_product(storage, "P-1", category="Peripherals", selling="20.00", quantity=25)

        report = reporting_service.stock_report()
        assert report == [
            {"category": "Cables", "products": 2, "value": "110.00", "status": "low"},
            {"category": "Peripherals", "products": 1, "value": "500.00", "status": "healthy"},
        ]


class TestSalesByPeriod:

    def test_windows(self, storage, parties):
        product = make_product(storage, buying="6.00", selling="10.00", quantity=100)

        sell(parties, product, 1)
        three_days = sell(parties, product, 2)
        backdate_sale(storage, three_days["sale"]["id"], utcnow() - timedelta(days=3))
        ten_days = sell(parties, product, 4)
        backdate_sale(storage, ten_days["sale"]["id"], utcnow() - timedelta(days=10))

        today = storage.sales_by_period("today")
        assert (today.transactions, today.revenue, today.profit) == (1, Decimal("10.00"), Decimal("4.00"))

        week = storage.sales_by_period("week")
        assert (week.transactions, week.revenue, week.profit) == (2, Decimal("30.00"), Decimal("12.00"))

        everything = storage.sales_by_period("all")
        assert (everything.transactions, everything.revenue) == (3, Decimal("70.00"))
        assert everything.profit == Decimal("28.00")

    def test_wire_shape_and_default_period(self, storage):
        assert reporting_service.sales_report() == {
            "period": "today",
            "transactions": 0,
            "revenue": "0.00",
            "profit": "0.00",
        }

    def test_unknown_period(self, storage):
        with pytest.raises(reporting_service.ReportError):
            reporting_service.sales_report("fortnight")


class TestTopCustomers:

    def test_ranked_by_spend(self, storage, parties):
        product = make_product(storage, selling="10.00", quantity=100)
        big = make_customer(storage, "Big Spender")

        sell(parties, product, 1)
        sell(parties, product, 1)
        sell(parties, product, 5, customerId=big["id"])

        ranked = reporting_service.customer_report(10)
        assert ranked == [
            {"customerId": big["id"], "name": "Big Spender", "purchases": 1, "spent": "50.00"},
            {"customerId": parties["customer"]["id"], "name": "Dana Ortiz", "purchases": 2, "spent": "20.00"},
        ]
        assert len(reporting_service.customer_report(1)) == 1
