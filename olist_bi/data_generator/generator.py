"""
Olist Sample Data Generator

Generates a synthetic dataset in the shape of the public Olist
Brazilian e-commerce export, so the BI pipeline can be run end to end
without downloading the real data:
- Customers (a new customer_id per order, shared customer_unique_id)
- Sellers and products (Portuguese category names, a few uncategorised)
- Orders with purchase and delivery timestamps
- Order items (one row per unit, with price and freight)
- Reviews (most delivered orders, worse scores for late deliveries)

The data has realistic patterns:
- A minority of customers place repeat orders
- Some categories are bought together (bed/bath with furniture, ...)
- Undelivered orders have no delivery date

Usage:
    python -m olist_bi.data_generator.generator --output data/raw --orders 10000
"""

import os
import csv
import random
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import List, Dict, Optional
import click
from faker import Faker
from tqdm import tqdm

from .schemas import (
    Customer, Order, OrderItem, Product, Seller, Review,
    OrderStatus, ProductCategory,
)


fake = Faker("pt_BR")
Faker.seed(42)
random.seed(42)


# =============================================================================
# CONFIGURATION
# =============================================================================

# Category -> (min price, max price) in BRL
PRICE_RANGES = {
    ProductCategory.BED_BATH_TABLE: (19, 249),
    ProductCategory.HEALTH_BEAUTY: (9, 199),
    ProductCategory.SPORTS_LEISURE: (15, 399),
    ProductCategory.FURNITURE_DECOR: (29, 599),
    ProductCategory.COMPUTERS_ACCESSORIES: (19, 899),
    ProductCategory.HOUSEWARES: (9, 299),
    ProductCategory.WATCHES_GIFTS: (49, 999),
    ProductCategory.TELEPHONY: (19, 1299),
    ProductCategory.GARDEN_TOOLS: (15, 349),
    ProductCategory.AUTO: (19, 499),
    ProductCategory.TOYS: (15, 299),
    ProductCategory.COOL_STUFF: (29, 399),
    ProductCategory.PERFUMERY: (29, 349),
    ProductCategory.BABY: (19, 399),
    ProductCategory.ELECTRONICS: (19, 699),
}

# Categories frequently bought together
AFFINITIES = {
    ProductCategory.BED_BATH_TABLE: ProductCategory.FURNITURE_DECOR,
    ProductCategory.FURNITURE_DECOR: ProductCategory.HOUSEWARES,
    ProductCategory.HEALTH_BEAUTY: ProductCategory.PERFUMERY,
    ProductCategory.COMPUTERS_ACCESSORIES: ProductCategory.ELECTRONICS,
    ProductCategory.TELEPHONY: ProductCategory.ELECTRONICS,
    ProductCategory.BABY: ProductCategory.TOYS,
}

STATES = ["SP", "RJ", "MG", "RS", "PR", "SC", "BA", "DF", "GO", "ES", "PE", "CE"]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Kaggle export file names
OUTPUT_FILES = {
    "customers": "olist_customers_dataset.csv",
    "sellers": "olist_sellers_dataset.csv",
    "products": "olist_products_dataset.csv",
    "orders": "olist_orders_dataset.csv",
    "order_items": "olist_order_items_dataset.csv",
    "reviews": "olist_order_reviews_dataset.csv",
}


def _money(value: float) -> Decimal:
    return Decimal(str(round(value, 2)))


class OlistDataGenerator:
    """
    Generates an Olist-shaped dataset for testing and development.

    Referential integrity is maintained: orders reference generated
    customers, items reference generated orders, products and sellers,
    and reviews reference delivered orders.

    Attributes:
        num_customers: Number of distinct people (customer_unique_id)
        num_products: Number of products in the catalog
        num_sellers: Number of marketplace sellers
        num_orders: Number of orders to generate
        start_date: Earliest purchase timestamp
        end_date: Latest purchase timestamp
    """

    def __init__(
        self,
        num_customers: int = 3000,
        num_products: int = 500,
        num_sellers: int = 100,
        num_orders: int = 5000,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ):
        self.num_customers = num_customers
        self.num_products = num_products
        self.num_sellers = num_sellers
        self.num_orders = num_orders
        self.start_date = start_date or datetime(2016, 9, 1)
        self.end_date = end_date or datetime(2018, 8, 31)

        self.customers: List[Dict] = []
        self.sellers: List[Dict] = []
        self.products: List[Dict] = []
        self.orders: List[Dict] = []
        self.order_items: List[Dict] = []
        self.reviews: List[Dict] = []

        self._unique_ids: List[str] = []
        self._customer_homes: Dict[str, tuple] = {}  # unique id -> (zip, city, state)
        self._products_by_category: Dict[ProductCategory, List[str]] = {}
        self._product_prices: Dict[str, tuple] = {}  # product_id -> (min, max)

    def generate_all(self) -> Dict[str, List[Dict]]:
        """
        Generate all datasets in dependency order.

        Returns:
            Dictionary mapping table name to its records
        """
        print("🏭 Starting data generation...")

        self._generate_people()
        self._generate_sellers()
        self._generate_products()
        self._generate_orders()

        for name, records in self.tables().items():
            print(f"✅ Generated {len(records)} {name}")

        return self.tables()

    def tables(self) -> Dict[str, List[Dict]]:
        return {
            "customers": self.customers,
            "sellers": self.sellers,
            "products": self.products,
            "orders": self.orders,
            "order_items": self.order_items,
            "reviews": self.reviews,
        }

    def _generate_people(self) -> None:
        """Create the distinct people behind the per-order customer ids."""
        print("👥 Generating customers...")

        for _ in tqdm(range(self.num_customers), desc="Customers"):
            unique_id = uuid.uuid4().hex
            self._unique_ids.append(unique_id)
            self._customer_homes[unique_id] = (
                fake.postcode().replace("-", "")[:5],
                fake.city(),
                random.choice(STATES),
            )

    def _generate_sellers(self) -> None:
        print("🏪 Generating sellers...")

        for _ in tqdm(range(self.num_sellers), desc="Sellers"):
            seller = Seller(
                seller_id=uuid.uuid4().hex,
                seller_city=fake.city(),
                seller_state=random.choice(STATES),
            )
            self.sellers.append(seller.model_dump())

    def _generate_products(self) -> None:
        """Generate the catalog; about 2% of products have no category."""
        print("📦 Generating products...")

        categories = list(ProductCategory)
        for _ in tqdm(range(self.num_products), desc="Products"):
            category = random.choice(categories)
            product = Product(
                product_id=uuid.uuid4().hex,
                product_category_name=None if random.random() < 0.02 else category.value,
            )
            self.products.append(product.model_dump())
            self._products_by_category.setdefault(category, []).append(product.product_id)
            self._product_prices[product.product_id] = PRICE_RANGES[category]

    def _generate_orders(self) -> None:
        """
        Generate orders with their items and reviews.

        Patterns simulated:
        - 10% of people are repeat buyers and place most repeat orders
        - A second category in the order follows AFFINITIES half the time
        - Delivery takes 2-30 days; recent orders may still be in transit
        """
        print("🛒 Generating orders...")

        repeat_buyers = self._unique_ids[:max(1, len(self._unique_ids) // 10)]
        seller_ids = [s["seller_id"] for s in self.sellers]
        categories = list(self._products_by_category)

        for _ in tqdm(range(self.num_orders), desc="Orders"):
            if random.random() < 0.3:
                unique_id = random.choice(repeat_buyers)
            else:
                unique_id = random.choice(self._unique_ids)

            customer_id = uuid.uuid4().hex
            zip_code, city, state = self._customer_homes[unique_id]
            self.customers.append(Customer(
                customer_id=customer_id,
                customer_unique_id=unique_id,
                customer_zip_code_prefix=zip_code,
                customer_city=city,
                customer_state=state,
            ).model_dump())

            purchased_at = self._random_timestamp()
            status, delivered_at = self._delivery_outcome(purchased_at)

            order = Order(
                order_id=uuid.uuid4().hex,
                customer_id=customer_id,
                order_status=status,
                order_purchase_timestamp=purchased_at,
                order_delivered_customer_date=delivered_at,
            )
            self.orders.append(self._to_record(order))

            order_categories = [random.choice(categories)]
            if random.random() < 0.25:
                first = order_categories[0]
                if first in AFFINITIES and random.random() < 0.5:
                    order_categories.append(AFFINITIES[first])
                else:
                    order_categories.append(random.choice(categories))

            item_number = 1
            for category in order_categories:
                product_id = random.choice(self._products_by_category[category])
                seller_id = random.choice(seller_ids)
                low, high = self._product_prices[product_id]
                price = _money(random.uniform(low, high))
                freight = _money(random.uniform(7, 40))
                quantity = random.choices([1, 2, 3], weights=[85, 12, 3])[0]

                for _ in range(quantity):
                    item = OrderItem(
                        order_id=order.order_id,
                        order_item_id=item_number,
                        product_id=product_id,
                        seller_id=seller_id,
                        price=price,
                        freight_value=freight,
                    )
                    self.order_items.append(self._to_record(item))
                    item_number += 1

            if delivered_at is not None and random.random() < 0.97:
                late = (delivered_at - purchased_at).days > 20
                self.reviews.append(Review(
                    review_id=uuid.uuid4().hex,
                    order_id=order.order_id,
                    review_score=self._review_score(late),
                ).model_dump())

    def _random_timestamp(self) -> datetime:
        """Purchase time with growth over the period (more orders later)."""
        span = (self.end_date - self.start_date).total_seconds()
        # sqrt skews the draw towards the end of the range
        offset = span * (random.random() ** 0.5)
        moment = self.start_date + timedelta(seconds=int(offset))
        return moment.replace(microsecond=0)

    def _delivery_outcome(self, purchased_at: datetime):
        """Status and delivery timestamp for an order placed at purchased_at."""
        delivered_at = purchased_at + timedelta(
            days=random.randint(2, 30), hours=random.randint(0, 23)
        )
        if random.random() < 0.03:
            return random.choice([OrderStatus.CANCELED, OrderStatus.UNAVAILABLE]), None
        if delivered_at > self.end_date:
            return OrderStatus.SHIPPED, None
        return OrderStatus.DELIVERED, delivered_at

    def _review_score(self, late: bool) -> int:
        if late:
            return random.choices([1, 2, 3, 4, 5], weights=[45, 15, 15, 10, 15])[0]
        return random.choices([1, 2, 3, 4, 5], weights=[8, 3, 8, 20, 61])[0]

    @staticmethod
    def _to_record(model) -> Dict:
        """Flatten a model into CSV-ready values."""
        record = {}
        for key, value in model.model_dump().items():
            if isinstance(value, datetime):
                value = value.strftime(TIMESTAMP_FORMAT)
            elif isinstance(value, Enum):
                value = value.value
            record[key] = value
        return record

    def save_to_csv(self, output_dir: str) -> Dict[str, str]:
        """
        Save all generated data to CSV files using the Kaggle file names.

        Args:
            output_dir: Directory to save CSV files

        Returns:
            Dictionary mapping dataset names to file paths
        """
        os.makedirs(output_dir, exist_ok=True)

        files = {}

        for name, data in self.tables().items():
            if not data:
                continue

            filepath = os.path.join(output_dir, OUTPUT_FILES[name])

            with open(filepath, 'w', newline='', encoding='utf-8') as f:
                writer = csv.DictWriter(f, fieldnames=data[0].keys())
                writer.writeheader()
                writer.writerows(data)

            files[name] = filepath
            print(f"📄 Saved {OUTPUT_FILES[name]} ({len(data)} records)")

        return files



# =============================================================================
# CLI Interface
# =============================================================================

@click.command()
@click.option('--output', '-o', default='data/raw', help='Output directory for CSV files')
@click.option('--customers', '-c', default=3000, help='Number of distinct customers')
@click.option('--products', '-p', default=500, help='Number of products to generate')
@click.option('--sellers', '-s', default=100, help='Number of sellers to generate')
@click.option('--orders', '-r', default=5000, help='Number of orders to generate')
@click.option('--seed', default=42, help='Random seed for reproducibility')
def main(output: str, customers: int, products: int, sellers: int, orders: int, seed: int):
    """
    Generate an Olist-shaped sample dataset for the BI pipeline.

    Example:
        python -m olist_bi.data_generator.generator --output data/raw --orders 10000
    """
    random.seed(seed)
    Faker.seed(seed)

    generator = OlistDataGenerator(
        num_customers=customers,
        num_products=products,
        num_sellers=sellers,
        num_orders=orders,
    )

    generator.generate_all()
    generator.save_to_csv(output)

    print(f"\n✨ Data generation complete!")
    print(f"📁 Files saved to: {os.path.abspath(output)}")


if __name__ == '__main__':
    main()
