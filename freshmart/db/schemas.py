# freshmart/db/schemas.py

from datetime import date, datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from freshmart.db.models import OrderStatus, RoleEnum


# Схемы товара (Product)
class ProductBase(BaseModel):
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    expiry_date: Optional[date] = Field(
        None,
        validation_alias=AliasChoices("expiryDate", "expiry_date"),
        serialization_alias="expiryDate",
    )
    description: Optional[str] = None
    image_url: Optional[str] = ""

    class Config:
        from_attributes = True
        populate_by_name = True


class ProductCreate(ProductBase):
    # None means "derive from the expiry date"
    discount: Optional[int] = Field(None, ge=0, le=100)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    discount: Optional[int] = Field(None, ge=0, le=100)
    expiry_date: Optional[date] = Field(
        None,
        validation_alias=AliasChoices("expiryDate", "expiry_date"),
        serialization_alias="expiryDate",
    )
    description: Optional[str] = None

    class Config:
        populate_by_name = True

    @field_validator("name", "category", "price", "stock", "discount", mode="before")
    @classmethod
    def reject_null(cls, value):
        # пропущенное поле не меняется, а null затёр бы NOT NULL колонку
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class Product(ProductBase):
    id: int
    discount: int = 0
    store_id: Optional[int] = None
    rating: float = 0
    review_count: int = Field(
        0,
        validation_alias=AliasChoices("reviewCount", "review_count"),
        serialization_alias="reviewCount",
    )
    final_price: float
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class StoreProduct(Product):
    store_name: Optional[str] = None


class StockUpdate(BaseModel):
    stock: int = Field(..., ge=0)


class DiscountRefreshResult(BaseModel):
    updated: int


class DiscountOffer(BaseModel):
    id: str
    productId: int
    productName: str
    quantity: int
    discountPercent: int
    validTill: Optional[date] = None


# Схемы отзывов (Review)
class ReviewCreate(BaseModel):
    author: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class ProductReviewCreate(ReviewCreate):
    product_id: int = Field(..., validation_alias=AliasChoices("productId", "product_id"))


class Review(BaseModel):
    id: int
    product_id: int
    author: str
    rating: int
    comment: Optional[str] = None
    date: Optional[datetime] = None

    class Config:
        from_attributes = True


# Схемы пользователя (User)
class UserCreate(BaseModel):
    username: str = Field(..., min_length=3)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6)
    role: RoleEnum = RoleEnum.customer
    store_name: Optional[str] = None


class UserLogin(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None
    password: str


class User(BaseModel):
    id: int
    username: str
    email: str
    role: RoleEnum
    store_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


# Схемы заказа (Order)
class OrderItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    items: List[OrderItemCreate] = Field(..., min_length=1)
    payment_method: str = "cash_on_delivery"


class OrderItem(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    price: float
    discount: int
    line_total: float

    class Config:
        from_attributes = True


class Order(BaseModel):
    id: int
    user_id: int
    total_amount: float
    status: OrderStatus
    payment_method: Optional[str] = None
    order_date: Optional[datetime] = None
    items: List[OrderItem] = []

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
