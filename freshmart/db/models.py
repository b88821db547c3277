# freshmart/db/models.py
from enum import Enum as PyEnum
from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from freshmart.db.database import Base
from freshmart import pricing


class RoleEnum(str, PyEnum):
    customer = "customer"
    store_owner = "store_owner"


class OrderStatus(str, PyEnum):
    placed = "Placed"
    allocated = "Allocated"
    delivered = "Delivered"


# Orders may only move forward along this sequence
ORDER_STATUS_FLOW = [OrderStatus.placed, OrderStatus.allocated, OrderStatus.delivered]


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    location = Column(String, nullable=True)

    products = relationship("Product", back_populates="store")
    owners = relationship("User", back_populates="store")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(Enum(RoleEnum), default=RoleEnum.customer, nullable=False)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=True)  # only for store owners
    created_at = Column(DateTime, default=datetime.utcnow)

    store = relationship("Store", back_populates="owners")
    orders = relationship("Order", back_populates="user")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    category = Column(String, index=True, nullable=False)
    price = Column(Float, nullable=False)
    stock = Column(Integer, default=0)
    discount = Column(Integer, default=0)  # percent
    expiry_date = Column(Date, nullable=True)
    description = Column(String, nullable=True)
    image_url = Column(String, default="")
    store_id = Column(Integer, ForeignKey("stores.id"), index=True)
    rating = Column(Float, default=0)
    review_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    store = relationship("Store", back_populates="products")
    reviews = relationship("Review", back_populates="product")
    order_items = relationship("OrderItem", back_populates="product")

    @property
    def final_price(self) -> float:
        return pricing.discounted_price(self.price, self.discount)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True)
    total_amount = Column(Float, nullable=False, default=0)
    status = Column(Enum(OrderStatus), default=OrderStatus.placed, nullable=False)
    payment_method = Column(String, default="cash_on_delivery")
    order_date = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True)
    product_id = Column(Integer, ForeignKey("products.id"), index=True)
    quantity = Column(Integer, nullable=False, default=1)
    # price and discount as they were when the order was placed
    price = Column(Float, nullable=False)
    discount = Column(Integer, default=0)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")

    @property
    def product_name(self) -> str:
        return self.product.name if self.product is not None else None

    @property
    def line_total(self) -> float:
        return pricing.line_total(self.price, self.discount, self.quantity)


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), index=True)
    author = Column(String, nullable=False)  # free text, not a user reference
    rating = Column(Integer, nullable=False)
    comment = Column(String, nullable=True)
    date = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="reviews")
