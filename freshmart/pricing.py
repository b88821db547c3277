# freshmart/pricing.py
"""Expiry-based discount rules shared by products, orders and analytics."""
from datetime import date, datetime
from typing import Optional

# (days remaining, discount percent), checked in order
AUTO_DISCOUNT_TIERS = ((3, 30), (7, 20), (14, 10))


def days_until_expiry(expiry_date: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """Whole days left before expiry; negative once the product has expired."""
    if expiry_date is None:
        return None
    if isinstance(expiry_date, datetime):
        expiry_date = expiry_date.date()
    today = today or datetime.utcnow().date()
    return (expiry_date - today).days


def auto_discount(expiry_date: Optional[date], today: Optional[date] = None) -> int:
    """Discount percent a product earns from how close it is to expiry."""
    days = days_until_expiry(expiry_date, today)
    if days is None:
        return 0
    for max_days, percent in AUTO_DISCOUNT_TIERS:
        if days <= max_days:
            return percent
    return 0


def discounted_price(price: float, discount: Optional[float]) -> float:
    return round(float(price) * (1 - float(discount or 0) / 100), 2)


def line_total(price: float, discount: Optional[float], quantity: int) -> float:
    return round(discounted_price(price, discount) * quantity, 2)
