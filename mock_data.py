"""
Placeholder data for the dashboards.

These generators keep the admin UI populated when the event store has
nothing useful to show. They are not forecasts: every series is uniform
noise shaped by a weekday multiplier. Pass a seeded ``random.Random`` to get
reproducible output.

Run ``postsale-mockdata`` (or ``python mock_data.py``) to write the
``dashboard.json`` fixture read by the fixture stats source.
"""
import argparse
import json
import logging
import os
import random
import string
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from schemas import utcnow

logger = logging.getLogger(__name__)

PRODUCTS = [
    {"id": "prod001", "name": "SportMax 3D Sneakers", "price": 299.90, "category": "Footwear"},
    {"id": "prod002", "name": "Tech-Fit T-Shirt", "price": 89.90, "category": "Apparel"},
    {"id": "prod003", "name": "FitPro Smartwatch", "price": 499.90, "category": "Electronics"},
    {"id": "prod004", "name": "Adventure Pro Backpack", "price": 159.90, "category": "Accessories"},
    {"id": "prod005", "name": "Immersive VR Headset", "price": 1299.90, "category": "Electronics"},
]

CATEGORIES = ["Footwear", "Apparel", "Accessories", "Electronics", "Sports"]

CUSTOMIZATION_VALUES = {
    "Color": ["Red", "Blue", "Black", "White", "Green"],
    "Size": ["S", "M", "L", "XL"],
    "Material": ["Cotton", "Polyester", "Leather", "Synthetic"],
    "Print": ["Plain", "Printed", "Striped", "Checkered"],
}

DEVICE_RANGES = [("Desktop", 30, 59), ("Mobile", 30, 59), ("Tablet", 5, 14)]

LOG_EVENT_TYPES = [
    "page_view",
    "product_view",
    "cart_add",
    "checkout_start",
    "purchase",
    "product_customize",
    "view_3d_model",
]

# (base value, min step, max step) per trend metric
TREND_PROFILES = {
    "sales": (1000, -200, 300),
    "visitors": (500, -100, 150),
    "conversion": (3, -0.5, 1),
    "customizations": (200, -50, 80),
}
DEFAULT_TREND_PROFILE = (100, -20, 30)

PUBLIC_STATS = {
    "totalProducts": 1250,
    "totalCustomers": 5800,
    "satisfactionRate": 4.8,
    "totalOrders": 12500,
}

FIXTURE_OVERVIEW_COUNTS = {
    "totalEvents": 1000,
    "productViews": 450,
    "productCustomizations": 200,
    "cartAdds": 300,
    "checkoutStarts": 150,
    "checkoutCompletes": 100,
}

ADMIN_DASHBOARD = {
    "summary": {
        "totalSales": 15780.50,
        "totalOrders": 127,
        "averageOrderValue": 124.25,
        "conversionRate": 3.2,
    },
    "recentOrders": [
        {"id": "ORD-001", "customer": "John Smith", "total": 245.90, "status": "Delivered", "date": "2025-05-30"},
        {"id": "ORD-002", "customer": "Mary Oliver", "total": 189.50, "status": "Processing", "date": "2025-05-31"},
        {"id": "ORD-003", "customer": "Peter Sands", "total": 312.75, "status": "Shipped", "date": "2025-06-01"},
    ],
    "topProducts": [
        {"id": "PROD-001", "name": "Sport Sneakers", "sales": 42, "revenue": 4200.00},
        {"id": "PROD-002", "name": "Casual T-Shirt", "sales": 38, "revenue": 1520.00},
        {"id": "PROD-003", "name": "Smart Watch", "sales": 25, "revenue": 3750.00},
    ],
    "lowStock": [
        {"id": "PROD-004", "name": "Sport Cap", "stock": 3},
        {"id": "PROD-005", "name": "Adventure Backpack", "stock": 2},
        {"id": "PROD-006", "name": "Casual Sneakers", "stock": 5},
    ],
}

ORDERS = [
    {
        "id": "ORD-001",
        "customer": {"id": "USR-001", "name": "John Smith", "email": "john@example.com"},
        "items": [
            {"productId": "PROD-001", "name": "Sport Sneakers", "quantity": 1, "price": 199.90},
            {"productId": "PROD-003", "name": "Sport Socks", "quantity": 2, "price": 29.90},
        ],
        "total": 259.70,
        "status": "Delivered",
        "paymentMethod": "Credit Card",
        "shippingAddress": "123 Example St - Springfield",
        "createdAt": "2025-05-30T14:30:00Z",
        "updatedAt": "2025-05-31T10:15:00Z",
    },
    {
        "id": "ORD-002",
        "customer": {"id": "USR-002", "name": "Mary Oliver", "email": "mary@example.com"},
        "items": [
            {"productId": "PROD-002", "name": "Casual T-Shirt", "quantity": 3, "price": 49.90},
            {"productId": "PROD-004", "name": "Sport Cap", "quantity": 1, "price": 39.90},
        ],
        "total": 189.60,
        "status": "Processing",
        "paymentMethod": "Bank Slip",
        "shippingAddress": "456 Example Ave - Riverside",
        "createdAt": "2025-05-31T09:45:00Z",
        "updatedAt": "2025-05-31T09:45:00Z",
    },
]
ORDERS_TOTAL = 127


def _rng(rng: Optional[random.Random]) -> random.Random:
    return rng if rng is not None else random.Random()


def weekday_multiplier(day: date) -> float:
    # Saturday/Sunday sell more, Monday less
    weekday = day.weekday()
    if weekday >= 5:
        return 1.3
    if weekday == 0:
        return 0.7
    return 1.0


def _days(days: int, today: Optional[date] = None) -> List[date]:
    today = today or date.today()
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def daily_sales(
    days: int = 30,
    low: int = 500,
    high: int = 5000,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    rng = _rng(rng)
    series = []
    for day in _days(days, today):
        amount = rng.randrange(low, high) * weekday_multiplier(day)
        series.append({"date": day.isoformat(), "amount": round(amount, 2)})
    return series


def daily_visitors(days: int = 30, rng: Optional[random.Random] = None, today: Optional[date] = None) -> List[Dict[str, Any]]:
    rng = _rng(rng)
    return [{"date": day.isoformat(), "count": rng.randint(50, 499)} for day in _days(days, today)]


def sales_by_category(rng: Optional[random.Random] = None) -> List[Dict[str, Any]]:
    rng = _rng(rng)
    return [{"category": category, "sales": rng.randint(1000, 9999)} for category in CATEGORIES]


def popular_customizations(top: int = 10, rng: Optional[random.Random] = None) -> List[Dict[str, Any]]:
    rng = _rng(rng)
    customizations = [
        {"type": kind, "value": value, "count": rng.randint(50, 499)}
        for kind, values in CUSTOMIZATION_VALUES.items()
        for value in values
    ]
    customizations.sort(key=lambda item: item["count"], reverse=True)
    return customizations[:top]


def device_usage(rng: Optional[random.Random] = None) -> List[Dict[str, Any]]:
    """Random device shares normalised to percentages that sum to 100."""
    rng = _rng(rng)
    raw = [(device, rng.randint(low, high)) for device, low, high in DEVICE_RANGES]
    total = sum(weight for _, weight in raw)
    return [{"device": device, "percentage": round(weight / total * 100, 2)} for device, weight in raw]


def metrics(sales: List[Dict[str, Any]], rng: Optional[random.Random] = None) -> Dict[str, Any]:
    rng = _rng(rng)
    total_revenue = sum(day["amount"] for day in sales)
    order_count = rng.randint(500, 999)
    return {
        "totalRevenue": round(total_revenue, 2),
        "orderCount": order_count,
        "averageOrderValue": round(total_revenue / order_count, 2),
        "returnRate": round(rng.uniform(0, 5), 1),
        "customerSatisfaction": round(4 + rng.random(), 1),
    }


def dashboard_bundle(days: int = 30, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    rng = _rng(rng)
    sales = daily_sales(days, rng=rng)
    return {
        "dailySales": sales,
        "dailyVisitors": daily_visitors(days, rng=rng),
        "salesByCategory": sales_by_category(rng),
        "popularCustomizations": popular_customizations(rng=rng),
        "deviceUsage": device_usage(rng),
        "metrics": metrics(sales, rng),
    }


def trend_series(
    metric: Optional[str], start: datetime, end: datetime, rng: Optional[random.Random] = None
) -> List[Dict[str, Any]]:
    """Random walk with an upward drift that grows over the window."""
    rng = _rng(rng)
    base, min_step, max_step = TREND_PROFILES.get(metric or "", DEFAULT_TREND_PROFILE)
    seconds = (end - start).total_seconds()
    days = max(int(-(-seconds // 86400)), 0)
    value = float(base)
    series = []
    for index in range(days):
        day = (start + timedelta(days=index)).date()
        drift = max_step * (index / days)
        value += rng.uniform(min_step, max_step) + drift
        value = max(value, 0.0)
        series.append({"date": day.isoformat(), "value": round(value, 2)})
    return series


def _random_id(rng: random.Random, prefix: str = "", length: int = 8) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return prefix + "".join(rng.choice(alphabet) for _ in range(length))


def log_events(count: int = 1000, days: int = 30, users: int = 100, rng: Optional[random.Random] = None) -> List[Dict[str, Any]]:
    """Synthetic log viewer rows, newest first."""
    rng = _rng(rng)
    now = utcnow().replace(microsecond=0)
    window = days * 86400
    events = []
    for _ in range(count):
        event_type = rng.choice(LOG_EVENT_TYPES)
        user_id = f"user{rng.randint(1, users)}"
        product = rng.choice(PRODUCTS)
        severity = "info"
        if event_type in ("checkout_start", "purchase") and rng.random() < 0.1:
            severity = "warning"
        if event_type == "page_view":
            message = f"User {user_id} viewed page {rng.choice(['home', 'products', 'categories', 'about', 'contact'])}"
        elif event_type == "product_view":
            message = f"User {user_id} viewed product {product['name']}"
        elif event_type == "cart_add":
            message = f"User {user_id} added {product['name']} to cart"
        elif event_type == "checkout_start":
            message = f"User {user_id} started checkout with {rng.randint(1, 5)} products"
        elif event_type == "purchase":
            message = f"User {user_id} purchased {product['price'] * rng.randint(1, 3):.2f}"
        elif event_type == "product_customize":
            kind = rng.choice(list(CUSTOMIZATION_VALUES))
            message = f"User {user_id} customized {product['name']} with {kind}: {rng.choice(CUSTOMIZATION_VALUES[kind])}"
        else:
            message = f"User {user_id} viewed the 3D model of {product['name']} for {rng.randint(10, 120)} seconds"
        created_at = now - timedelta(seconds=rng.randint(0, window))
        events.append({
            "_id": _random_id(rng, "evt"),
            "eventType": event_type,
            "userId": user_id,
            "productId": product["id"],
            "severity": severity,
            "message": message,
            "createdAt": created_at.isoformat() + "Z",
            "metadata": {
                "browser": rng.choice(["Chrome", "Firefox", "Safari", "Edge"]),
                "os": rng.choice(["Windows", "MacOS", "iOS", "Android"]),
                "device": rng.choice(DEVICE_RANGES)[0],
            },
        })
    events.sort(key=lambda event: event["createdAt"], reverse=True)
    return events


def write_fixtures(output_dir: str, event_count: int = 1000, seed: Optional[int] = None) -> Dict[str, str]:
    rng = random.Random(seed)
    os.makedirs(output_dir, exist_ok=True)
    paths = {
        "dashboard": os.path.join(output_dir, "dashboard.json"),
        "logs": os.path.join(output_dir, "logs.json"),
    }
    with open(paths["dashboard"], "w", encoding="utf-8") as fh:
        json.dump(dashboard_bundle(rng=rng), fh, indent=2, ensure_ascii=False)
    with open(paths["logs"], "w", encoding="utf-8") as fh:
        json.dump(log_events(event_count, rng=rng), fh, indent=2, ensure_ascii=False)
    return paths


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate dashboard fixtures for the stats API")
    parser.add_argument("--output", default="data", help="directory for dashboard.json and logs.json")
    parser.add_argument("--events", type=int, default=1000, help="number of synthetic log events")
    parser.add_argument("--seed", type=int, default=None, help="random seed for reproducible output")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    paths = write_fixtures(args.output, args.events, args.seed)
    for name, path in paths.items():
        logger.info(f"Wrote {name} fixture to {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
