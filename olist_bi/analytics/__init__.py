"""Aggregation stages, one module per published BI table."""

from .rfm import build_customer_rfm, quintile_score, RFM_COLUMNS
from .cohort import build_cohort_retention, COHORT_COLUMNS
from .products import build_top_products, TOP_PRODUCT_COLUMNS
from .basket import build_basket_pairs, category_pairs, BASKET_COLUMNS
from .sellers import build_seller_scorecard, percent_rank_desc, SELLER_COLUMNS

__all__ = [
    "build_customer_rfm",
    "quintile_score",
    "build_cohort_retention",
    "build_top_products",
    "build_basket_pairs",
    "category_pairs",
    "build_seller_scorecard",
    "percent_rank_desc",
    "RFM_COLUMNS",
    "COHORT_COLUMNS",
    "TOP_PRODUCT_COLUMNS",
    "BASKET_COLUMNS",
    "SELLER_COLUMNS",
]
