# freshmart/db/analytics.py
"""
Store-owner aggregates: revenue, category split, top sellers, the 7-day
sales chart, waste estimates, discount offers and inventory alerts.

Revenue of an order line is ``quantity * (price - price * discount / 100)``
using the price and discount captured when the order was placed.
"""
import logging
import math
from datetime import date, datetime, time, timedelta

from sqlalchemy import desc, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from freshmart.config import EXPIRING_WINDOW_DAYS, LOW_STOCK_THRESHOLD
from freshmart.db.models import Order, OrderItem, Product
from freshmart.pricing import auto_discount, days_until_expiry, discounted_price

logger = logging.getLogger(__name__)

TIME_RANGES = {"7d": 7, "30d": 30, "90d": 90}
DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
WASTE_SHARE = 0.3  # share of an expired product's stock counted as wasted
EXPIRY_ALERT_DAYS = 3

line_revenue = OrderItem.quantity * (OrderItem.price - OrderItem.price * OrderItem.discount / 100)


def _today(today: date = None) -> date:
    return today or datetime.utcnow().date()


def _window(today: date, days: int):
    """[start, end) datetimes covering the last ``days`` days, today included."""
    start = datetime.combine(today - timedelta(days=days - 1), time.min)
    end = datetime.combine(today + timedelta(days=1), time.min)
    return start, end


def _store_lines(store_id: int, *columns):
    return (
        select(*columns)
        .select_from(OrderItem)
        .join(Order, OrderItem.order_id == Order.id)
        .join(Product, OrderItem.product_id == Product.id)
        .filter(Product.store_id == store_id)
    )


def _in_window(query, start: datetime = None, end: datetime = None):
    if start is not None:
        query = query.filter(Order.order_date >= start)
    if end is not None:
        query = query.filter(Order.order_date < end)
    return query


async def store_revenue(db: AsyncSession, store_id: int, start: datetime = None, end: datetime = None) -> float:
    query = _in_window(_store_lines(store_id, func.coalesce(func.sum(line_revenue), 0)), start, end)
    result = await db.execute(query)
    return round(float(result.scalar_one() or 0), 2)


async def top_products(db: AsyncSession, store_id: int, start: datetime = None, end: datetime = None,
                       limit: int = 5):
    revenue = func.sum(line_revenue).label("revenue")
    query = _store_lines(
        store_id, Product.id, Product.name, Product.stock, func.sum(OrderItem.quantity).label("sales"), revenue,
    )
    query = _in_window(query, start, end).group_by(Product.id, Product.name, Product.stock)
    result = await db.execute(query.order_by(desc("revenue")).limit(limit))
    return [
        {
            "id": str(row.id),
            "name": row.name,
            "sales": int(row.sales or 0),
            "revenue": round(float(row.revenue or 0), 2),
            "stock": int(row.stock or 0),
        }
        for row in result.all()
    ]


async def category_revenue(db: AsyncSession, store_id: int, start: datetime = None, end: datetime = None):
    revenue = func.sum(line_revenue).label("revenue")
    query = _in_window(_store_lines(store_id, Product.category, revenue), start, end).group_by(Product.category)
    result = await db.execute(query.order_by(desc("revenue")))
    rows = [(row.category, float(row.revenue or 0)) for row in result.all()]

    total = sum(amount for _, amount in rows)
    return {
        "labels": [category for category, _ in rows],
        "data": [round(amount / total * 100, 1) for _, amount in rows] if total > 0 else [],
    }


async def daily_sales(db: AsyncSession, store_id: int, today: date = None, days: int = 7):
    """Revenue per day for the last ``days`` days, oldest first, 0 for quiet days."""
    today = _today(today)
    start, end = _window(today, days)
    result = await db.execute(_in_window(_store_lines(store_id, Order.order_date, line_revenue), start, end))

    revenue_by_date = {}
    for order_date, amount in result.all():
        day = order_date.date()
        revenue_by_date[day] = revenue_by_date.get(day, 0) + float(amount or 0)

    dates = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    return {
        "labels": [DAY_NAMES[day.weekday()] for day in dates],
        "data": [round(revenue_by_date.get(day, 0), 2) for day in dates],
    }


async def _store_product_rows(db: AsyncSession, store_id: int):
    result = await db.execute(select(Product).filter(Product.store_id == store_id).order_by(Product.id))
    return result.scalars().all()


async def inventory_summary(db: AsyncSession, store_id: int, today: date = None):
    today = _today(today)
    products = await _store_product_rows(db, store_id)
    expiring = 0
    for product in products:
        days = days_until_expiry(product.expiry_date, today)
        if days is not None and 0 <= days <= EXPIRING_WINDOW_DAYS:
            expiring += 1
    return {
        "total": len(products),
        "lowStock": sum(1 for product in products if (product.stock or 0) < LOW_STOCK_THRESHOLD),
        "expiring": expiring,
    }


def _growth(current: float, previous: float) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 1)
    return 100.0 if current > 0 else 0.0


async def build_analytics(db: AsyncSession, store_id: int, time_range: str = "30d", today: date = None):
    today = _today(today)
    days = TIME_RANGES[time_range]
    start, end = _window(today, days)
    previous_start = start - timedelta(days=days)

    current = await store_revenue(db, store_id, start, end)
    previous = await store_revenue(db, store_id, previous_start, start)
    logger.debug("Analytics store=%s range=%s current=%.2f previous=%.2f", store_id, time_range, current, previous)

    return {
        "revenue": {"current": current, "previous": previous, "growth": _growth(current, previous)},
        "inventory": await inventory_summary(db, store_id, today),
        "categories": await category_revenue(db, store_id, start, end),
        "topProducts": await top_products(db, store_id, start, end),
        "sales": await daily_sales(db, store_id, today),
    }


async def debug_orders(db: AsyncSession, store_id: int):
    products = await _store_product_rows(db, store_id)
    query = _store_lines(
        store_id,
        OrderItem.order_id, OrderItem.product_id, Product.name.label("product_name"),
        OrderItem.quantity, OrderItem.price, OrderItem.discount, line_revenue.label("item_total"),
    ).order_by(OrderItem.order_id, OrderItem.id)
    result = await db.execute(query)
    items = [
        {
            "order_id": row.order_id,
            "product_id": row.product_id,
            "product_name": row.product_name,
            "quantity": row.quantity,
            "price": row.price,
            "discount": row.discount,
            "item_total": round(float(row.item_total or 0), 2),
        }
        for row in result.all()
    ]
    return {
        "storeId": store_id,
        "productsInStore": [{"id": product.id, "name": product.name, "store_id": product.store_id}
                            for product in products],
        "storeOrderItems": items,
        "totalRevenue": round(sum(item["item_total"] for item in items), 2),
        "orderCount": len({item["order_id"] for item in items}),
    }


async def waste_logs(db: AsyncSession, store_id: int, today: date = None):
    """Expired products with the estimated wasted quantity and its value."""
    today = _today(today)
    result = await db.execute(
        select(Product)
        .filter(Product.store_id == store_id, Product.expiry_date < today)
        .order_by(Product.expiry_date, Product.id)
    )
    logs = []
    for index, product in enumerate(result.scalars().all(), start=1):
        quantity = math.floor((product.stock or 0) * WASTE_SHARE)
        logs.append({
            "id": f"WL{index:03d}",
            "productId": product.id,
            "productName": product.name,
            "category": product.category,
            "expiryDate": product.expiry_date.isoformat(),
            "quantityExpired": quantity,
            "estimatedLoss": round(discounted_price(product.price, product.discount) * quantity, 2),
            "loggedDate": today.isoformat(),
        })
    return {
        "logs": logs,
        "totalWaste": sum(log["quantityExpired"] for log in logs),
        "totalLoss": round(sum(log["estimatedLoss"] for log in logs), 2),
    }


async def discount_offers(db: AsyncSession, store_id: int):
    result = await db.execute(
        select(Product)
        .filter(Product.store_id == store_id, Product.discount > 0)
        .order_by(Product.discount.desc(), Product.id)
    )
    return [
        {
            "id": f"DO-{product.id}",
            "productId": product.id,
            "productName": product.name,
            "quantity": product.stock,
            "discountPercent": product.discount,
            "validTill": product.expiry_date,
        }
        for product in result.scalars().all()
    ]


async def notifications(db: AsyncSession, store_id: int, today: date = None):
    today = _today(today)
    alerts = []
    for product in await _store_product_rows(db, store_id):
        days = days_until_expiry(product.expiry_date, today)
        if days is not None and 0 <= days <= EXPIRY_ALERT_DAYS:
            discount = max(product.discount or 0, auto_discount(product.expiry_date, today))
            alerts.append({
                "id": f"N-EXP-{product.id}",
                "type": "expiry",
                "title": "Product Expiring Soon",
                "message": f"{product.name} will expire in {days} day{'' if days == 1 else 's'}. "
                           f"Auto-discount of {discount}% applies.",
                "productId": product.id,
            })
        if (product.stock or 0) < LOW_STOCK_THRESHOLD:
            alerts.append({
                "id": f"N-STK-{product.id}",
                "type": "stock",
                "title": "Low Stock Alert",
                "message": f"{product.name} has only {product.stock} units left in stock.",
                "productId": product.id,
            })
    return alerts
