"""Tests for the aggregation stages behind the published BI tables."""

import pytest
from collections import Counter
from datetime import date, datetime
from decimal import Decimal

from olist_bi.analytics import (
    build_customer_rfm,
    build_cohort_retention,
    build_top_products,
    build_basket_pairs,
    build_seller_scorecard,
    category_pairs,
    RFM_COLUMNS,
    COHORT_COLUMNS,
    TOP_PRODUCT_COLUMNS,
    BASKET_COLUMNS,
    SELLER_COLUMNS,
)
from olist_bi.config import AnalysisWindow


def _order(order_id, customer, ts, delivered=None):
    return {
        "order_id": order_id,
        "customer_unique_id": customer,
        "order_purchase_timestamp": ts,
        "order_delivered_customer_date": delivered,
    }


def _item(order_id, product_id="P1", seller_id="S1", price="10.00", freight="0.00"):
    return {
        "order_id": order_id,
        "product_id": product_id,
        "seller_id": seller_id,
        "price": price,
        "freight_value": freight,
    }


class TestCustomerRFM:
    """Tests for the CustomerRFM table."""

    def test_columns(self, source_tables, full_window):
        df = build_customer_rfm(source_tables, full_window)
        assert df.columns == RFM_COLUMNS

    def test_metrics_per_customer(self, source_tables, full_window):
        """Recency, frequency and monetary for each sample customer."""
        rows = {r["customer_unique_id"]: r
                for r in build_customer_rfm(source_tables, full_window).collect()}

        assert rows["C1"]["frequency"] == 2
        assert rows["C1"]["monetary"] == Decimal("145.00")
        assert rows["C1"]["recency_days"] == 0

        assert rows["C2"]["recency_days"] == 13
        assert rows["C3"]["recency_days"] == 4
        assert rows["C4"]["recency_days"] == 114
        assert rows["C4"]["monetary"] == Decimal("120.00")

    def test_scores_and_cells(self, source_tables, full_window):
        """Four customers fill the top four quintiles of each metric."""
        rows = {r["customer_unique_id"]: r
                for r in build_customer_rfm(source_tables, full_window).collect()}

        assert rows["C1"]["rfm_cell"] == "555"
        assert rows["C2"]["rfm_cell"] == "343"
        assert rows["C3"]["rfm_cell"] == "432"
        assert rows["C4"]["rfm_cell"] == "224"

    def test_running_revenue_is_prefix_sum(self, source_tables, full_window):
        rows = build_customer_rfm(source_tables, full_window).collect()

        running = [r["running_revenue"] for r in rows]
        assert running == [Decimal("145.00"), Decimal("265.00"),
                           Decimal("380.00"), Decimal("405.00")]
        assert running[-1] == sum(r["monetary"] for r in rows)
        assert all(a <= b for a, b in zip(running, running[1:]))

    def test_single_customer_scores_five(self, make_tables):
        """One customer with orders of 50 and 30 is alone in every quintile."""
        tables = make_tables(
            orders=[
                _order("A", "ONLY", "2018-05-01 10:00:00"),
                _order("B", "ONLY", "2018-06-01 10:00:00"),
            ],
            order_items=[_item("A", price="50.00"), _item("B", price="30.00")],
        )
        window = AnalysisWindow(datetime(2018, 1, 1), datetime(2018, 12, 31))

        rows = build_customer_rfm(tables, window).collect()

        assert len(rows) == 1
        row = rows[0]
        assert row["frequency"] == 2
        assert row["monetary"] == Decimal("80.00")
        assert (row["r_score"], row["f_score"], row["m_score"]) == (5, 5, 5)
        assert row["rfm_cell"] == "555"

    def test_quintile_sizes_differ_by_at_most_one(self, make_tables):
        orders = [_order(f"O{i}", f"C{i:02d}", f"2018-01-{i + 1:02d} 12:00:00") for i in range(23)]
        items = [_item(f"O{i}", price=f"{i + 1}.00") for i in range(23)]
        tables = make_tables(orders=orders, order_items=items)
        window = AnalysisWindow(datetime(2017, 1, 1), datetime(2018, 2, 1))

        rows = build_customer_rfm(tables, window).collect()

        for score in ("r_score", "f_score", "m_score"):
            sizes = Counter(r[score] for r in rows)
            assert set(sizes) == {1, 2, 3, 4, 5}
            assert max(sizes.values()) - min(sizes.values()) <= 1

        # Highest spender lands in the top monetary bucket
        top = max(rows, key=lambda r: r["monetary"])
        assert top["m_score"] == 5

    def test_window_excludes_older_orders(self, source_tables):
        window = AnalysisWindow(datetime(2018, 1, 1), datetime(2018, 3, 5, 9, 0, 0))

        ids = {r["customer_unique_id"] for r in build_customer_rfm(source_tables, window).collect()}

        assert ids == {"C1", "C2", "C3"}

    def test_window_end_is_inclusive(self, source_tables):
        """An order placed exactly at the window end still counts."""
        window = AnalysisWindow(datetime(2018, 1, 1), datetime(2018, 3, 5, 9, 0, 0))

        rows = {r["customer_unique_id"]: r for r in build_customer_rfm(source_tables, window).collect()}

        assert rows["C1"]["frequency"] == 2

    def test_empty_population(self, source_tables):
        window = AnalysisWindow(datetime(2010, 1, 1), datetime(2010, 12, 31))

        df = build_customer_rfm(source_tables, window)

        assert df.count() == 0
        assert df.columns == RFM_COLUMNS


class TestCohortRetention:
    """Tests for the CohortRetention table."""

    def test_columns(self, source_tables):
        assert build_cohort_retention(source_tables).columns == COHORT_COLUMNS

    def test_sample_cohorts(self, source_tables):
        rows = [(r["cohort_month"], r["months_since_first"], r["customers"])
                for r in build_cohort_retention(source_tables).collect()]

        assert rows == [
            (date(2017, 11, 1), 0, 1),
            (date(2018, 1, 1), 0, 1),
            (date(2018, 1, 1), 2, 1),
            (date(2018, 2, 1), 0, 1),
            (date(2018, 3, 1), 0, 1),
        ]

    def test_month_zero_is_one_hundred(self, source_tables):
        rows = build_cohort_retention(source_tables).collect()

        for row in rows:
            if row["months_since_first"] == 0:
                assert row["retention_pct"] == 100.0

    def test_partial_retention(self, make_tables):
        """Two January customers, one comes back in February."""
        tables = make_tables(orders=[
            _order("A1", "A", "2018-01-03 10:00:00"),
            _order("B1", "B", "2018-01-20 10:00:00"),
            _order("A2", "A", "2018-02-14 10:00:00"),
            _order("A3", "A", "2018-02-20 10:00:00"),
        ])

        rows = {r["months_since_first"]: r for r in build_cohort_retention(tables).collect()}

        assert rows[0]["customers"] == 2
        assert rows[1]["customers"] == 1
        assert rows[1]["retention_pct"] == pytest.approx(50.0)

    def test_uses_full_history(self, source_tables):
        """Cohorts do not depend on any analysis window."""
        months = {r["cohort_month"] for r in build_cohort_retention(source_tables).collect()}
        assert date(2017, 11, 1) in months


class TestTopProducts:
    """Tests for the TopProducts table."""

    def test_ranking(self, source_tables, full_window):
        rows = build_top_products(source_tables, full_window, top_n=20).collect()

        assert [r["product_id"] for r in rows] == ["P3", "P1", "P2"]
        assert [r["revenue"] for r in rows] == [Decimal("200.00"), Decimal("100.00"), Decimal("40.00")]
        assert rows[0]["product_category_name"] is None

    def test_top_n_cutoff(self, source_tables, full_window):
        rows = build_top_products(source_tables, full_window, top_n=2).collect()

        assert len(rows) == 2
        assert [r["product_id"] for r in rows] == ["P3", "P1"]

    def test_avg_price(self, source_tables, full_window):
        df = build_top_products(source_tables, full_window)
        assert df.columns == TOP_PRODUCT_COLUMNS

        for row in df.collect():
            assert row["items_sold"] > 0
            assert row["avg_price"] == pytest.approx(float(row["revenue"]) / row["items_sold"], rel=1e-12)

    def test_avg_price_is_not_rounded(self, make_tables):
        """10.00 over three items stays 3.333..., not 3.33."""
        tables = make_tables(
            orders=[_order("O1", "C1", "2018-01-01 10:00:00")],
            order_items=[_item("O1", price="3.00"), _item("O1", price="3.00"), _item("O1", price="4.00")],
            products=[{"product_id": "P1", "product_category_name": "bebes"}],
        )
        window = AnalysisWindow(datetime(2017, 1, 1), datetime(2018, 12, 31))

        row = build_top_products(tables, window).collect()[0]

        assert row["revenue"] == Decimal("10.00")
        assert row["items_sold"] == 3
        assert row["avg_price"] == pytest.approx(10 / 3, rel=1e-12)

    def test_ties_break_on_product_id(self, make_tables):
        tables = make_tables(
            orders=[_order("O1", "C1", "2018-01-01 10:00:00")],
            order_items=[_item("O1", product_id="PB"), _item("O1", product_id="PA")],
            products=[
                {"product_id": "PA", "product_category_name": "bebes"},
                {"product_id": "PB", "product_category_name": "bebes"},
            ],
        )
        window = AnalysisWindow(datetime(2017, 1, 1), datetime(2018, 12, 31))

        rows = build_top_products(tables, window, top_n=1).collect()

        assert [r["product_id"] for r in rows] == ["PA"]

    def test_window_filter(self, source_tables):
        window = AnalysisWindow(datetime(2018, 1, 1), datetime(2018, 3, 5, 9, 0, 0))

        rows = {r["product_id"]: r for r in build_top_products(source_tables, window).collect()}

        # O5 (2017) is outside the window
        assert rows["P3"]["revenue"] == Decimal("100.00")
        assert rows["P3"]["items_sold"] == 1


class TestBasketPairs:
    """Tests for the BasketPairs table."""

    def test_category_pairs_helper(self):
        assert category_pairs(["b", "a", "c", "a", None]) == [("a", "b"), ("a", "c"), ("b", "c")]
        assert category_pairs(["a", "a"]) == []

    def test_three_categories_in_one_order(self, make_tables):
        tables = make_tables(
            orders=[_order("X", "C1", "2018-01-01 10:00:00")],
            order_items=[_item("X", product_id="PA"), _item("X", product_id="PB"),
                         _item("X", product_id="PC")],
            products=[
                {"product_id": "PA", "product_category_name": "A"},
                {"product_id": "PB", "product_category_name": "B"},
                {"product_id": "PC", "product_category_name": "C"},
            ],
        )
        window = AnalysisWindow(datetime(2017, 1, 1), datetime(2018, 12, 31))

        rows = build_basket_pairs(tables, window, min_orders=1).collect()

        assert [(r["cat_a"], r["cat_b"], r["orders_together"]) for r in rows] == [
            ("A", "B", 1), ("A", "C", 1), ("B", "C", 1),
        ]
        assert build_basket_pairs(tables, window, min_orders=50).count() == 0

    def test_sample_pairs(self, source_tables, full_window):
        """Null categories never form pairs."""
        df = build_basket_pairs(source_tables, full_window, min_orders=1)
        assert df.columns == BASKET_COLUMNS

        rows = df.collect()

        assert [(r["cat_a"], r["cat_b"], r["orders_together"]) for r in rows] == [
            ("cama_mesa_banho", "moveis_decoracao", 1),
        ]

    def test_order_counted_once_per_pair(self, make_tables):
        """Several items of the same categories count the order once."""
        tables = make_tables(
            orders=[_order("X", "C1", "2018-01-01 10:00:00"), _order("Y", "C2", "2018-01-02 10:00:00")],
            order_items=[
                _item("X", product_id="PA"), _item("X", product_id="PA"),
                _item("X", product_id="PB"), _item("X", product_id="PB2"),
                _item("Y", product_id="PB"), _item("Y", product_id="PA"),
            ],
            products=[
                {"product_id": "PA", "product_category_name": "A"},
                {"product_id": "PB", "product_category_name": "B"},
                {"product_id": "PB2", "product_category_name": "B"},
            ],
        )
        window = AnalysisWindow(datetime(2017, 1, 1), datetime(2018, 12, 31))

        rows = build_basket_pairs(tables, window, min_orders=2).collect()

        assert [(r["cat_a"], r["cat_b"], r["orders_together"]) for r in rows] == [("A", "B", 2)]

    def test_no_reversed_or_self_pairs(self, source_tables, full_window):
        rows = build_basket_pairs(source_tables, full_window, min_orders=1).collect()

        assert all(r["cat_a"] < r["cat_b"] for r in rows)


class TestSellerScorecard:
    """Tests for the SellerScore table."""

    def test_columns(self, source_tables):
        assert build_seller_scorecard(source_tables).columns == SELLER_COLUMNS

    def test_sample_sellers(self, source_tables):
        rows = {r["seller_id"]: r for r in build_seller_scorecard(source_tables).collect()}

        # S1's item on unreviewed order O4 is excluded by the review join
        assert rows["S1"]["items_shipped"] == 2
        assert rows["S1"]["gross_revenue"] == Decimal("120.00")
        assert rows["S1"]["avg_review"] == pytest.approx(4.5)
        assert rows["S1"]["avg_delivery_days"] == pytest.approx(4.5)

        assert rows["S2"]["gross_revenue"] == Decimal("140.00")
        assert rows["S2"]["avg_review"] == pytest.approx(3.5)
        assert rows["S2"]["avg_delivery_days"] == pytest.approx(6.5)

        assert rows["S3"]["avg_delivery_days"] == pytest.approx(9.0)

    def test_percentiles(self, source_tables):
        rows = {r["seller_id"]: r for r in build_seller_scorecard(source_tables).collect()}

        assert rows["S2"]["revenue_percentile"] == 0.0
        # S1 and S3 tie on revenue and share a rank
        assert rows["S1"]["revenue_percentile"] == pytest.approx(0.5)
        assert rows["S3"]["revenue_percentile"] == pytest.approx(0.5)

        assert rows["S1"]["review_percentile"] == 0.0
        assert rows["S2"]["review_percentile"] == pytest.approx(0.5)
        assert rows["S3"]["review_percentile"] == pytest.approx(1.0)

    def test_average_review(self, make_tables):
        """Two items reviewed 4 and 2 average to 3.0."""
        tables = make_tables(
            orders=[
                _order("A", "C1", "2018-01-01 10:00:00", "2018-01-04 10:00:00"),
                _order("B", "C2", "2018-01-02 10:00:00", "2018-01-05 10:00:00"),
            ],
            order_items=[_item("A"), _item("B")],
            sellers=[{"seller_id": "S1"}],
            reviews=[{"order_id": "A", "review_score": "4"}, {"order_id": "B", "review_score": "2"}],
        )

        rows = build_seller_scorecard(tables).collect()

        assert len(rows) == 1
        assert rows[0]["avg_review"] == pytest.approx(3.0)

    def test_undelivered_orders_excluded_from_delivery_mean(self, make_tables):
        tables = make_tables(
            orders=[
                _order("A", "C1", "2018-01-01 10:00:00", "2018-01-04 10:00:00"),
                _order("B", "C2", "2018-01-02 10:00:00", None),
            ],
            order_items=[_item("A"), _item("B")],
            sellers=[{"seller_id": "S1"}],
            reviews=[{"order_id": "A", "review_score": "5"}, {"order_id": "B", "review_score": "1"}],
        )

        row = build_seller_scorecard(tables).collect()[0]

        assert row["avg_delivery_days"] == pytest.approx(3.0)

    def test_single_seller_percentiles_are_null(self, make_tables):
        tables = make_tables(
            orders=[_order("A", "C1", "2018-01-01 10:00:00", "2018-01-04 10:00:00")],
            order_items=[_item("A")],
            sellers=[{"seller_id": "S1"}],
            reviews=[{"order_id": "A", "review_score": "5"}],
        )

        row = build_seller_scorecard(tables).collect()[0]

        assert row["revenue_percentile"] is None
        assert row["review_percentile"] is None

    def test_percentiles_in_range(self, source_tables):
        for row in build_seller_scorecard(source_tables).collect():
            assert 0.0 <= row["revenue_percentile"] <= 1.0
            assert 0.0 <= row["review_percentile"] <= 1.0
